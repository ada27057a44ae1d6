"""User account helpers."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from bizgov.core.security import get_password_hash
from bizgov.models import User, UserRole

logger = logging.getLogger(__name__)


async def get_user_by_username(session: AsyncSession, username: str) -> User | None:
    result = await session.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def ensure_admin_user(session: AsyncSession, username: str, password: str | None) -> User | None:
    """Create the initial admin account if it does not exist yet.

    Nothing is created without a configured password.
    """
    existing = await get_user_by_username(session, username)
    if existing is not None:
        return existing
    if not password:
        logger.info("No admin password configured; skipping initial admin creation")
        return None

    admin = User(
        username=username,
        hashed_password=get_password_hash(password),
        role=UserRole.ADMIN,
        full_name="Administrator",
    )
    session.add(admin)
    await session.commit()
    logger.info(f"Created initial admin user '{username}'")
    return admin
