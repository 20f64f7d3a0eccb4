from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fuel_ledger.config import Settings
from fuel_ledger.database import get_db, get_settings
from fuel_ledger.exceptions import AuthenticationError, PermissionDeniedError
from fuel_ledger.models.user import User, UserRole
from fuel_ledger.schemas.common import ApiResponse
from fuel_ledger.schemas.user import (
    AuthSession,
    LoginRequest,
    RefreshRequest,
    UserResponse,
)
from fuel_ledger.services import auth_service
from fuel_ledger.utils.auth import decode_access_token

router = APIRouter(prefix="/auth", tags=["auth"])

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """Dependency that returns the current authenticated user."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(credentials.credentials, settings)
    if payload is None or not str(payload["sub"]).isdigit():
        raise AuthenticationError("Not authenticated")

    result = await db.execute(
        select(User).where(User.id == int(payload["sub"]), User.is_active.is_(True))
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise AuthenticationError("Not authenticated")
    return user


def require_roles(*roles: UserRole):
    """Dependency factory allowing only the given roles."""

    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise PermissionDeniedError("You do not have permission for this action")
        return user

    return _check


@router.post("/login")
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[AuthSession]:
    session = await auth_service.login(db, settings, body.email, body.password)
    return ApiResponse.ok(session)


@router.post("/refresh")
async def refresh(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[AuthSession]:
    session = await auth_service.refresh_tokens(db, settings, body.refresh_token)
    return ApiResponse.ok(session)


@router.post("/logout")
async def logout(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[None]:
    await auth_service.logout(db, user)
    return ApiResponse.ok(None)


@router.get("/me")
async def get_me(
    user: User = Depends(get_current_user),
) -> ApiResponse[UserResponse]:
    return ApiResponse.ok(UserResponse.model_validate(user))
