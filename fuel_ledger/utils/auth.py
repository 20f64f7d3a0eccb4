import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from fuel_ledger.config import Settings

# bcrypt only looks at the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a bcrypt hash."""
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
    except ValueError:
        return False


def generate_refresh_secret() -> str:
    """Random secret half of a refresh token (64 hex chars, fits bcrypt)."""
    return secrets.token_hex(32)


def create_access_token(
    user_id: int,
    username: str,
    role: str,
    settings: Settings,
    now: datetime | None = None,
) -> str:
    """Sign a short-lived bearer token for the user."""
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "username": username,
        "role": role,
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=settings.JWT_ACCESS_TTL_SECONDS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> dict | None:
    """Validate a bearer token. Returns the payload or None."""
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError:
        return None
