"""Security utilities: bearer token handling.

Tokens are issued by the identity provider and signed with the shared secret.
The subject claim is the provider's principal id, which becomes User.identity.
"""

from datetime import datetime, timedelta, timezone
import logging

import jwt
from pydantic import BaseModel, ValidationError

from .config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class TokenPayload(BaseModel):
    """JWT token payload."""

    sub: str  # Identity provider principal id
    name: str | None = None
    exp: datetime
    iat: datetime | None = None


def create_access_token(
    identity: str,
    name: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token (development and tests)."""
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )

    payload = {
        "sub": identity,
        "name": name,
        "exp": expire,
        "iat": now,
    }

    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> TokenPayload | None:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
        return TokenPayload(**payload)
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired token")
        return None
    except (jwt.InvalidTokenError, ValidationError):
        return None
