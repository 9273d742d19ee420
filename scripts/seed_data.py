"""Seed default settings and the first superadmin."""
import asyncio
import logging

from sqlalchemy import select

from app.config import settings
from app.core.logging import setup_logging
from app.core.security import get_password_hash
from app.database import init_db, async_session_factory
from app.models.user import User, UserRole
from app.services.settings_service import SettingsService


logger = logging.getLogger("seed_data")


async def seed():
    """Seed initial data. Safe to run more than once."""
    await init_db()

    async with async_session_factory() as db:
        try:
            logger.info("Seeding data...")

            # 1. Business settings
            created = await SettingsService(db).seed_defaults()
            logger.info("Created %d default settings", created)

            # 2. Superadmin
            email = settings.SEED_ADMIN_EMAIL.strip().lower()
            existing = await db.execute(select(User).where(User.email == email))
            if existing.scalar_one_or_none():
                logger.info("User %s already exists, skipping", email)
                return

            if not settings.SEED_ADMIN_PASSWORD:
                logger.warning("SEED_ADMIN_PASSWORD is not set, superadmin not created")
                return

            admin = User(
                email=email,
                name="Super Admin",
                password_hash=get_password_hash(settings.SEED_ADMIN_PASSWORD),
                role=UserRole.SUPERADMIN.value,
                is_active=True,
            )
            db.add(admin)
            await db.commit()
            logger.info("Created superadmin: %s", email)

        except Exception:
            await db.rollback()
            logger.exception("Error seeding data")
            raise


if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL)
    asyncio.run(seed())
