from dataclasses import dataclass, field
from datetime import datetime, timezone, timedelta
from typing import Any, Dict, List, Optional, Sequence, Union
import uuid

from jose import JWTError, jwt

# =====================================================
# Application Settings
# =====================================================
from app.core.config import settings


# =====================================================
# Token Type Constants
# =====================================================
TOKEN_TYPE_ACCESS = "access"


@dataclass(frozen=True)
class TokenPrincipal:
    """Caller identity carried by a verified access token."""
    user_id: uuid.UUID
    roles: List[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return any(role in settings.ADMIN_ROLES for role in self.roles)


# =====================================================
# JWT Creation Functions
# =====================================================
def create_access_token(
    subject: Union[str, Any],
    roles: Sequence[str] = (),
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token.

    Tokens are normally issued by the platform's auth service; this
    mirrors its claim layout.
    """
    now = datetime.now(timezone.utc)

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "exp": expire,                     # Expiration time
        "sub": str(subject),               # Subject (user ID)
        "roles": list(roles),              # Role names, e.g. ["admin"]
        "type": TOKEN_TYPE_ACCESS,         # Token type
        "iat": now,                        # Issued at
        "jti": str(uuid.uuid4())           # Unique token ID
    }

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )


# =====================================================
# Token Verification Functions
# =====================================================
def verify_token(
    token: str,
    token_type: str = TOKEN_TYPE_ACCESS
) -> Optional[Dict[str, Any]]:
    """
    Verify a JWT token and return its payload if valid.
    """
    try:
        # Signature and exp are checked by jose
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )

        if payload.get("type") != token_type:
            return None

        return payload

    except JWTError:
        return None


def decode_access_token(token: str) -> Optional[TokenPrincipal]:
    """
    Verify an access token and return the caller, or None if invalid.
    """
    payload = verify_token(token, TOKEN_TYPE_ACCESS)
    if not payload:
        return None

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        return None

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    return TokenPrincipal(user_id=user_id, roles=[str(role) for role in roles])
