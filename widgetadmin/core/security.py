"""Password hashing and JWT issue/verification for authentication."""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import bcrypt
import jwt

from widgetadmin.core.config import settings
from widgetadmin.core.errors import InvalidToken

if TYPE_CHECKING:
    from widgetadmin.models.user import User

logger = logging.getLogger(__name__)

# Min/max lengths for input validation.
EMAIL_MAX_LEN = 255
FULL_NAME_MAX_LEN = 255
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

# Role reported to single-role consumers when a user holds no role at all.
FALLBACK_PRIMARY_ROLE = "user"


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def primary_role(role_names: Sequence[str]) -> str:
    """First assigned role, or 'user' when none is assigned."""
    return role_names[0] if role_names else FALLBACK_PRIMARY_ROLE


def issue_access_token(user: "User", role_names: Sequence[str]) -> str:
    """
    Create a signed access token for a user.

    Claims are a display snapshot (sub, email, name, primary role, roles, tenant);
    authorization always re-reads live grants, never these claims.
    """
    now = datetime.now(UTC)
    expire = now + timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    payload: dict[str, Any] = {
        "sub": str(user.id),
        "email": user.email,
        "name": user.full_name,
        "tid": user.tenant_id,
        "role": primary_role(role_names),
        "roles": list(role_names),
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(
        payload,
        settings.JWT_SECRET.get_secret_value(),
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and validate a JWT; return its payload.
    Raises jwt.PyJWTError on invalid or expired token.
    """
    return jwt.decode(
        token,
        settings.JWT_SECRET.get_secret_value(),
        algorithms=[settings.JWT_ALGORITHM],
        options={"require": ["exp", "sub"]},
    )


def verify_access_token(token: str) -> int:
    """Check signature and expiry and return the subject user id. No database access."""
    try:
        payload = decode_access_token(token)
    except jwt.PyJWTError as e:
        logger.info("Token rejected: %s", e.__class__.__name__)
        raise InvalidToken() from e
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidToken("Invalid token payload") from e
