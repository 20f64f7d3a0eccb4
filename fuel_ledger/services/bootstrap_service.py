"""Idempotent first-run data: default admin and companies."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fuel_ledger.config import Settings
from fuel_ledger.models.user import User, UserRole
from fuel_ledger.services.revenue_service import seed_companies
from fuel_ledger.utils.auth import hash_password

logger = logging.getLogger(__name__)


async def _seed_admin(db: AsyncSession, settings: Settings) -> bool:
    email = settings.DEFAULT_ADMIN_EMAIL.lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        return False

    db.add(
        User(
            username=settings.DEFAULT_ADMIN_USERNAME,
            email=email,
            password_hash=hash_password(settings.DEFAULT_ADMIN_PASSWORD),
            role=UserRole.ADMIN,
            is_active=True,
        )
    )
    await db.commit()
    logger.info("Created default admin user %s", settings.DEFAULT_ADMIN_USERNAME)
    return True


async def seed_defaults(db: AsyncSession, settings: Settings) -> None:
    """Create the default admin and companies when seeding is enabled."""
    if not settings.SEED_DEFAULT_DATA:
        logger.info("Default data seeding disabled")
        return
    await _seed_admin(db, settings)
    await seed_companies(db)
