"""Login, refresh-token rotation and logout."""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fuel_ledger.config import Settings
from fuel_ledger.exceptions import AuthenticationError
from fuel_ledger.models.refresh_token import RefreshToken
from fuel_ledger.models.user import User
from fuel_ledger.schemas.user import AuthSession, UserResponse
from fuel_ledger.utils.auth import (
    create_access_token,
    generate_refresh_secret,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def _revoke_active_tokens(
    db: AsyncSession, user_id: int, now: datetime
) -> None:
    await db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
        .values(revoked_at=now)
    )


async def _issue_session(db: AsyncSession, settings: Settings, user: User) -> AuthSession:
    """Revoke the user's outstanding refresh tokens and start a new session."""
    now = datetime.now(timezone.utc)
    await _revoke_active_tokens(db, user.id, now)

    secret = generate_refresh_secret()
    token = RefreshToken(
        token_hash=hash_password(secret),
        expires_at=now + timedelta(seconds=settings.JWT_REFRESH_TTL_SECONDS),
        user_id=user.id,
    )
    db.add(token)
    await db.commit()
    await db.refresh(token)

    access_token = create_access_token(
        user.id, user.username, user.role.value, settings, now=now
    )
    return AuthSession(
        access_token=access_token,
        refresh_token=f"{token.id}.{secret}",
        expires_in=settings.JWT_ACCESS_TTL_SECONDS,
        user=UserResponse.model_validate(user),
    )


async def login(
    db: AsyncSession, settings: Settings, email: str, password: str
) -> AuthSession:
    """Check credentials and open a session."""
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise AuthenticationError(INVALID_CREDENTIALS)
    if not verify_password(password, user.password_hash):
        raise AuthenticationError(INVALID_CREDENTIALS)

    session = await _issue_session(db, settings, user)
    logger.info("User %d logged in", user.id)
    return session


async def refresh_tokens(
    db: AsyncSession, settings: Settings, raw_token: str
) -> AuthSession:
    """Trade a valid refresh token for a fresh session (rotation)."""
    token_id, _, secret = (raw_token or "").partition(".")
    if not token_id.isdigit() or not secret:
        raise AuthenticationError(INVALID_REFRESH_TOKEN)

    result = await db.execute(
        select(RefreshToken).where(RefreshToken.id == int(token_id))
    )
    stored = result.scalar_one_or_none()
    now = datetime.now(timezone.utc)
    if (
        stored is None
        or stored.revoked_at is not None
        or _as_utc(stored.expires_at) <= now
        or not verify_password(secret, stored.token_hash)
    ):
        raise AuthenticationError(INVALID_REFRESH_TOKEN)

    user = stored.user
    if user is None or not user.is_active:
        raise AuthenticationError(INVALID_REFRESH_TOKEN)

    stored.revoked_at = now
    await db.flush()
    return await _issue_session(db, settings, user)


async def logout(db: AsyncSession, user: User) -> None:
    """Revoke every active refresh token of the user."""
    await _revoke_active_tokens(db, user.id, datetime.now(timezone.utc))
    await db.commit()
    logger.info("User %d logged out", user.id)
