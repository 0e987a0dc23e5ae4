#!/usr/bin/env python3
"""
Initialize default database values.
This script is run on startup to populate default settings that are not yet set.
"""

import asyncio
from hoopqueue.database.db import AsyncSessionLocal
from hoopqueue.services import settings_service
from hoopqueue.services.checkout_resolver import CheckoutPolicy
from hoopqueue.services.promotion_calculator import TiePolicy
from hoopqueue.utils.constants import (
    HOME_CHECKOUT_POLICY_KEY,
    AWAY_CHECKOUT_POLICY_KEY,
    TIE_POLICY_KEY,
    STALE_GAME_SET_HOURS_KEY,
    DEFAULT_STALE_GAME_SET_HOURS,
)

DEFAULT_SETTINGS = {
    HOME_CHECKOUT_POLICY_KEY: CheckoutPolicy.REQUIRE_REPLACEMENT.value,
    AWAY_CHECKOUT_POLICY_KEY: CheckoutPolicy.ALLOW_SHORT_HANDED.value,
    TIE_POLICY_KEY: TiePolicy.AWAY_WINS.value,
    STALE_GAME_SET_HOURS_KEY: str(DEFAULT_STALE_GAME_SET_HOURS),
}


async def seed_default_settings(session) -> list:
    """Write every default setting that has no value yet. Returns the keys written."""
    written = []
    for key, value in DEFAULT_SETTINGS.items():
        existing = await settings_service.get_setting(session, key)
        if existing is None:
            await settings_service.set_setting(session, key, value)
            written.append(key)
            print(f"✓ Set default {key}: {value}")
        else:
            print(f"✓ {key} already set: {existing}")
    return written


async def init_defaults():
    """Initialize default database values."""
    print("Initializing default database values...")

    async with AsyncSessionLocal() as session:
        await seed_default_settings(session)
        await session.commit()

    print("✓ Default values initialized")


if __name__ == "__main__":
    asyncio.run(init_defaults())
