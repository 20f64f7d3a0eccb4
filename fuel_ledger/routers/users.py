from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fuel_ledger.database import get_db
from fuel_ledger.models.user import User, UserRole
from fuel_ledger.routers.auth import require_roles
from fuel_ledger.schemas.common import ApiResponse
from fuel_ledger.schemas.user import UserCreate, UserResponse, UserUpdate
from fuel_ledger.services import user_service

router = APIRouter(prefix="/users", tags=["users"])

admin_only = require_roles(UserRole.ADMIN)


@router.get("")
async def list_users(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(admin_only),
) -> ApiResponse[list[UserResponse]]:
    users = await user_service.list_users(db)
    return ApiResponse.ok([UserResponse.model_validate(u) for u in users])


@router.post("", status_code=201)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(admin_only),
) -> ApiResponse[UserResponse]:
    user = await user_service.create_user(db, body)
    return ApiResponse.ok(UserResponse.model_validate(user))


@router.patch("/{user_id}")
async def update_user(
    user_id: int,
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current: User = Depends(admin_only),
) -> ApiResponse[UserResponse]:
    user = await user_service.update_user(db, user_id, body, current)
    return ApiResponse.ok(UserResponse.model_validate(user))


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current: User = Depends(admin_only),
) -> ApiResponse[UserResponse]:
    user = await user_service.delete_user(db, user_id, current)
    return ApiResponse.ok(UserResponse.model_validate(user))
