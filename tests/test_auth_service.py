from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from fuel_ledger.exceptions import AuthenticationError
from fuel_ledger.models.refresh_token import RefreshToken
from fuel_ledger.services import auth_service
from fuel_ledger.utils.auth import create_access_token, decode_access_token

from conftest import TEST_PASSWORD


@pytest.mark.asyncio
async def test_login_issues_tokens(session, settings, admin):
    result = await auth_service.login(session, settings, "admin@example.com", TEST_PASSWORD)

    assert result.token_type == "bearer"
    assert result.expires_in == settings.JWT_ACCESS_TTL_SECONDS
    assert result.user.username == "admin"

    payload = decode_access_token(result.access_token, settings)
    assert payload["sub"] == str(admin.id)
    assert payload["role"] == "admin"

    token_id, secret = result.refresh_token.split(".")
    stored = await session.get(RefreshToken, int(token_id))
    assert stored.token_hash != secret


@pytest.mark.asyncio
async def test_login_email_is_case_insensitive(session, settings, admin):
    result = await auth_service.login(session, settings, " Admin@Example.com", TEST_PASSWORD)
    assert result.user.id == admin.id


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "email, password",
    [
        ("admin@example.com", "wrong-password"),
        ("nobody@example.com", TEST_PASSWORD),
    ],
)
async def test_login_rejects_bad_credentials(session, settings, admin, email, password):
    with pytest.raises(AuthenticationError, match="Invalid email or password"):
        await auth_service.login(session, settings, email, password)


@pytest.mark.asyncio
async def test_login_rejects_inactive_user(session, settings, make_user):
    await make_user("retired", is_active=False)

    with pytest.raises(AuthenticationError):
        await auth_service.login(session, settings, "retired@example.com", TEST_PASSWORD)


@pytest.mark.asyncio
async def test_refresh_rotates_token(session, settings, admin):
    first = await auth_service.login(session, settings, "admin@example.com", TEST_PASSWORD)

    second = await auth_service.refresh_tokens(session, settings, first.refresh_token)

    assert second.refresh_token != first.refresh_token
    with pytest.raises(AuthenticationError):
        await auth_service.refresh_tokens(session, settings, first.refresh_token)


@pytest.mark.asyncio
async def test_new_login_revokes_previous_tokens(session, settings, admin):
    first = await auth_service.login(session, settings, "admin@example.com", TEST_PASSWORD)
    await auth_service.login(session, settings, "admin@example.com", TEST_PASSWORD)

    with pytest.raises(AuthenticationError):
        await auth_service.refresh_tokens(session, settings, first.refresh_token)


@pytest.mark.asyncio
async def test_refresh_after_logout_fails(session, settings, admin):
    result = await auth_service.login(session, settings, "admin@example.com", TEST_PASSWORD)

    await auth_service.logout(session, admin)

    with pytest.raises(AuthenticationError):
        await auth_service.refresh_tokens(session, settings, result.refresh_token)
    active = await session.execute(
        select(RefreshToken).where(RefreshToken.revoked_at.is_(None))
    )
    assert active.scalars().all() == []


@pytest.mark.asyncio
async def test_expired_refresh_token_fails(session, settings, admin):
    result = await auth_service.login(session, settings, "admin@example.com", TEST_PASSWORD)
    token_id = int(result.refresh_token.split(".")[0])
    stored = await session.get(RefreshToken, token_id)
    stored.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
    await session.commit()

    with pytest.raises(AuthenticationError):
        await auth_service.refresh_tokens(session, settings, result.refresh_token)


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["", "garbage", "abc.def", "999.secret", "1."])
async def test_malformed_refresh_token_fails(session, settings, admin, raw):
    with pytest.raises(AuthenticationError, match="Invalid or expired refresh token"):
        await auth_service.refresh_tokens(session, settings, raw)


@pytest.mark.asyncio
async def test_tampered_secret_fails(session, settings, admin):
    result = await auth_service.login(session, settings, "admin@example.com", TEST_PASSWORD)
    token_id = result.refresh_token.split(".")[0]

    with pytest.raises(AuthenticationError):
        await auth_service.refresh_tokens(session, settings, f"{token_id}.{'0' * 64}")


def test_access_token_expiry(settings):
    issued = datetime.now(timezone.utc) - timedelta(seconds=settings.JWT_ACCESS_TTL_SECONDS + 5)
    token = create_access_token(1, "admin", "admin", settings, now=issued)

    assert decode_access_token(token, settings) is None
    assert decode_access_token("not-a-jwt", settings) is None
