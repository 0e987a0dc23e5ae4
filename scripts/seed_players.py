#!/usr/bin/env python3
"""
Seed a local dev database with players and an active game set.

Creates a dozen players (a few with autoup on) and, unless one is already
active, a game set with default settings. Idempotent: skips players that
already exist.

Usage:
    python scripts/seed_players.py [--check-in]

With --check-in every seeded player is also checked into the active game set.
"""

import asyncio
import os
import sys

# Add apps/ to path so the hoopqueue package resolves without installing
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.join(project_root, "apps"))

from hoopqueue.database.db import AsyncSessionLocal, init_database  # noqa: E402
from hoopqueue.services import queue_service, user_service  # noqa: E402
from hoopqueue.services.game_set_registry import get_game_set_registry  # noqa: E402

SEED_PLAYERS = [
    ("mike", True),
    ("dre", False),
    ("tony", True),
    ("jules", False),
    ("sam", False),
    ("kev", True),
    ("rico", False),
    ("lou", False),
    ("nate", False),
    ("bo", True),
    ("cj", False),
    ("ray", False),
]


async def main(check_in: bool = False):
    """Create seed players and make sure a game set is active."""
    print("\n🏀 Seeding players...\n")
    await init_database()
    registry = get_game_set_registry()

    async with AsyncSessionLocal() as session:
        for username, autoup in SEED_PLAYERS:
            existing = await user_service.get_user_by_username(session, username)
            if existing:
                print(f"  ⏭️  {username} already exists (user #{existing.id})")
                continue
            user = await user_service.create_user(session, username, autoup=autoup)
            print(f"  ✅ Created {username} (user #{user['id']}, autoup={autoup})")

        game_set = await registry.get_active(session)
        if game_set is None:
            game_set = await registry.create_game_set(session)
            print(f"\n  ✅ Created game set #{game_set.id}")
        else:
            print(f"\n  ⏭️  Game set #{game_set.id} already active")

        if check_in:
            summary = await queue_service.check_in_all(session, registry)
            print(f"  ✅ Checked in {len(summary['checked_in'])} player(s)")

    print("\n💡 Queue at http://localhost:8000/api/queue\n")


if __name__ == "__main__":
    asyncio.run(main(check_in="--check-in" in sys.argv[1:]))
