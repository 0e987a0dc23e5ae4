"""
Settings service for runtime configuration with database overrides.

Supports checking database settings first, then falling back to environment variables.
"""

import os
import logging
from typing import Optional, Dict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from dotenv import load_dotenv

from hoopqueue.database.models import Setting

load_dotenv()

logger = logging.getLogger(__name__)


async def get_setting(session: AsyncSession, key: str) -> Optional[str]:
    """
    Get a setting value.

    Args:
        session: Database session
        key: Setting key

    Returns:
        Setting value or None if not found
    """
    result = await session.execute(select(Setting).where(Setting.key == key))
    setting = result.scalar_one_or_none()
    return setting.value if setting else None


async def set_setting(session: AsyncSession, key: str, value: str) -> None:
    """
    Set a setting value (upsert).

    Args:
        session: Database session
        key: Setting key
        value: Setting value
    """
    result = await session.execute(select(Setting).where(Setting.key == key))
    setting = result.scalar_one_or_none()
    if setting is None:
        session.add(Setting(key=key, value=value))
    else:
        setting.value = value
    await session.commit()


async def get_all_settings(session: AsyncSession) -> Dict[str, str]:
    result = await session.execute(select(Setting).order_by(Setting.key))
    return {s.key: s.value for s in result.scalars().all()}


async def get_setting_with_fallback(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
    default: Optional[str] = None,
) -> Optional[str]:
    """
    Get a setting value from database first, then env var, then default.

    Args:
        session: Database session (optional)
        key: Setting key in database
        env_var: Environment variable name to fall back to
        default: Default value if neither database nor env var is set

    Returns:
        Setting value as string, or None
    """
    if session:
        try:
            value = await get_setting(session, key)
            if value is not None:
                return value
        except Exception as e:
            logger.warning(f"Error reading setting {key} from database: {e}")

    if env_var:
        value = os.getenv(env_var)
        if value is not None:
            return value

    return default


async def get_bool_setting(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
    default: bool = True,
) -> bool:
    """Get a boolean setting value ("true", "1" and "yes" are truthy)."""
    value = await get_setting_with_fallback(session, key, env_var, None)

    if value is None:
        return default

    return value.lower() in ("true", "1", "yes")


async def get_int_setting(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
    default: Optional[int] = None,
) -> Optional[int]:
    """
    Get an integer setting value.

    Returns:
        int: Setting value as int, or default when unset or unparseable
    """
    value = await get_setting_with_fallback(session, key, env_var, None)

    if value is None:
        return default

    try:
        return int(value)
    except (ValueError, TypeError):
        logger.warning(f"Invalid integer value for setting {key}: {value}")
        return default
