"""
User service for managing queue players.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hoopqueue.database.models import User
from hoopqueue.services.errors import QueueError, UserNotFound

logger = logging.getLogger(__name__)


def user_to_dict(user: User) -> Dict:
    return {
        "id": user.id,
        "username": user.username,
        "autoup": user.autoup,
        "is_player": user.is_player,
        "birth_year": user.birth_year,
    }


async def get_user_by_username(session: AsyncSession, username: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def create_user(
    session: AsyncSession,
    username: str,
    autoup: bool = False,
    is_player: bool = True,
    birth_year: Optional[int] = None,
) -> Dict:
    """
    Create a new user.

    Args:
        session: Database session
        username: Unique display name
        autoup: Re-queue automatically after each game
        is_player: Include in "check in all players"
        birth_year: Optional birth year

    Returns:
        User dict

    Raises:
        QueueError: If the username is empty or already taken
    """
    username = (username or "").strip()
    if not username:
        raise QueueError("Username is required")
    if await get_user_by_username(session, username) is not None:
        raise QueueError(f"Username {username} is already taken")

    user = User(username=username, autoup=autoup, is_player=is_player, birth_year=birth_year)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    logger.info(f"Created user {user.id} ({username})")
    return user_to_dict(user)


async def list_users(session: AsyncSession) -> List[Dict]:
    result = await session.execute(select(User).order_by(User.username.asc()))
    return [user_to_dict(u) for u in result.scalars().all()]


async def set_autoup(session: AsyncSession, user_id: int, autoup: bool) -> Dict:
    """Turn automatic re-queueing on or off for a user."""
    user = await session.get(User, user_id)
    if user is None:
        raise UserNotFound(user_id)
    user.autoup = autoup
    await session.commit()
    logger.info(f"User {user_id} autoup set to {autoup}")
    return user_to_dict(user)
