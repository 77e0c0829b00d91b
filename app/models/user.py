from sqlalchemy import Column, String, Boolean
from .base import BaseModel


class User(BaseModel):
    """
    Account owned by the surrounding platform.

    The notification center only reads it to resolve email recipients;
    every other table references users by opaque id.
    """
    __tablename__ = "users"

    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
