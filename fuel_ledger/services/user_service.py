import logging

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fuel_ledger.exceptions import ConflictError, InvalidInputError, NotFoundError
from fuel_ledger.models.user import User, UserRole
from fuel_ledger.schemas.user import UserCreate, UserUpdate
from fuel_ledger.services.auth_service import logout
from fuel_ledger.utils.auth import hash_password

logger = logging.getLogger(__name__)


async def _ensure_unique(
    db: AsyncSession,
    username: str | None,
    email: str | None,
    exclude_id: int | None = None,
) -> None:
    clauses = []
    if username:
        clauses.append(User.username == username)
    if email:
        clauses.append(User.email == email)
    if not clauses:
        return
    query = select(User).where(or_(*clauses))
    if exclude_id is not None:
        query = query.where(User.id != exclude_id)
    result = await db.execute(query)
    if result.scalars().first() is not None:
        raise ConflictError("Username or email already in use")


async def get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError(f"User with id {user_id} not found")
    return user


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.id))
    return list(result.scalars().all())


async def create_user(db: AsyncSession, data: UserCreate) -> User:
    email = data.email.lower()
    username = data.username.strip()
    await _ensure_unique(db, username, email)

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(data.password),
        role=data.role,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Created user %d (%s)", user.id, user.role.value)
    return user


async def update_user(
    db: AsyncSession,
    user_id: int,
    data: UserUpdate,
    acting_user: User,
) -> User:
    """Apply the fields present in ``data``.

    Deactivation ends the user's sessions. Admins cannot demote or
    deactivate themselves.
    """
    user = await get_user(db, user_id)
    changes = data.model_dump(exclude_unset=True)

    if user.id == acting_user.id and (
        changes.get("is_active") is False
        or changes.get("role") not in (None, UserRole.ADMIN)
    ):
        raise InvalidInputError("You cannot demote or deactivate your own account")

    username = changes.get("username")
    email = changes.get("email")
    if username is not None:
        username = username.strip()
    if email is not None:
        email = email.lower()
    await _ensure_unique(db, username, email, exclude_id=user.id)

    if username is not None:
        user.username = username
    if email is not None:
        user.email = email
    if changes.get("password") is not None:
        user.password_hash = hash_password(changes["password"])
    if changes.get("role") is not None:
        user.role = changes["role"]
    deactivated = user.is_active and changes.get("is_active") is False
    if changes.get("is_active") is not None:
        user.is_active = changes["is_active"]

    if deactivated:
        await logout(db, user)
    else:
        await db.commit()
    await db.refresh(user)
    return user


async def delete_user(db: AsyncSession, user_id: int, acting_user: User) -> User:
    """Deactivate a user and end their sessions.

    Ledger rows reference users, so accounts are never removed.
    """
    if user_id == acting_user.id:
        raise InvalidInputError("You cannot delete your own account")
    user = await get_user(db, user_id)
    user.is_active = False
    await logout(db, user)
    await db.refresh(user)
    logger.info("Deactivated user %d", user.id)
    return user
