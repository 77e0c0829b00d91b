"""
Base Model Module

This module provides a base class for all SQLAlchemy models with common fields:
- id: Primary key (UUID)
- created_at: Timestamp when record was created
- updated_at: Timestamp when record was last updated
- deleted_at: Soft-delete marker (rows are never physically removed)
- version: Row version, bumped on every UPDATE
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, Integer, Uuid, func, literal_column

from app.db.database import Base


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class BaseModel(Base):
    """
    Abstract base model class that provides common fields for all models.

    Attributes:
        id (UUID): Primary key, auto-generated UUID
        created_at (DateTime): Timestamp set when record is created
        updated_at (DateTime): Timestamp updated whenever the record is modified
        deleted_at (DateTime): Set instead of deleting the row
        version (int): Incremented by the database on each UPDATE
    """

    __abstract__ = True

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
        index=True
    )

    # Python-side default keeps microsecond ordering on every backend
    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True
    )

    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False
    )

    deleted_at = Column(DateTime(timezone=True), nullable=True)

    version = Column(
        Integer,
        default=1,
        server_default="1",
        onupdate=literal_column("version + 1"),
        nullable=False
    )

    def __repr__(self):
        """String representation for debugging."""
        return f"<{self.__class__.__name__}(id={self.id})>"
