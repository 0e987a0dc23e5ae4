"""
Shared pytest configuration for queue tests.

Each test gets its own in-memory SQLite database (aiosqlite) with the full
schema, plus a fresh GameSetRegistry so per-game-set locks never outlive the
test's event loop.
"""

import os

os.environ.setdefault("ENV", "test")

import pytest_asyncio  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker  # noqa: E402

from hoopqueue.database.db import Base  # noqa: E402
from hoopqueue.database.models import (  # noqa: E402
    Checkin,
    Game,
    GamePlayer,
    GameSet,
    GameState,
    User,
)
from hoopqueue.services import queue_service  # noqa: E402
from hoopqueue.services.game_set_registry import GameSetRegistry  # noqa: E402


@pytest_asyncio.fixture
async def db_session():
    """Create a test database session."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def registry():
    return GameSetRegistry()


async def make_users(session, count, autoup_ids=(), prefix="player"):
    """Create `count` users named player1..playerN; returns their ids in order."""
    users = []
    for i in range(1, count + 1):
        user = User(username=f"{prefix}{i}", autoup=i in autoup_ids)
        session.add(user)
        users.append(user)
    await session.flush()
    await session.commit()
    return [u.id for u in users]


async def make_queue(
    session,
    registry,
    count,
    players_per_team=4,
    number_of_courts=2,
    max_consecutive_games=2,
    autoup_ids=(),
):
    """
    Create a game set and check `count` users in, in order.

    Returns:
        (game_set, user_ids) where user_ids[i] sits at position i + 1
    """
    game_set = await registry.create_game_set(
        session,
        players_per_team=players_per_team,
        number_of_courts=number_of_courts,
        max_consecutive_games=max_consecutive_games,
    )
    user_ids = await make_users(session, count, autoup_ids=autoup_ids)
    for user_id in user_ids:
        await queue_service.check_in(session, registry, user_id)
    return game_set, user_ids


async def assign_game(session, game_set_id, positions_by_team, court="1"):
    """
    Place the rows at the given positions into a new started game without
    moving the window pointer.

    Args:
        positions_by_team: {1: [positions], 2: [positions]}
    """
    game = Game(set_id=game_set_id, court=court, state=GameState.STARTED)
    session.add(game)
    await session.flush()
    for team, positions in positions_by_team.items():
        for position in positions:
            result = await session.execute(
                select(Checkin).where(
                    Checkin.game_set_id == game_set_id,
                    Checkin.is_active.is_(True),
                    Checkin.queue_position == position,
                )
            )
            checkin = result.scalar_one()
            checkin.game_id = game.id
            checkin.team = team
            session.add(
                GamePlayer(
                    game_id=game.id,
                    user_id=checkin.user_id,
                    team=team,
                    relative_position=position,
                )
            )
    await session.commit()
    return game.id


async def active_positions(session, game_set_id):
    """[(user_id, position, game_id, team)] of active rows in queue order."""
    result = await session.execute(
        select(Checkin.user_id, Checkin.queue_position, Checkin.game_id, Checkin.team)
        .where(Checkin.game_set_id == game_set_id, Checkin.is_active.is_(True))
        .order_by(Checkin.queue_position.asc())
    )
    return [tuple(row) for row in result.all()]


async def pointers(session, game_set_id):
    """(current_queue_position, queue_next_up) read straight from the database."""
    result = await session.execute(
        select(GameSet.current_queue_position, GameSet.queue_next_up).where(
            GameSet.id == game_set_id
        )
    )
    return tuple(result.one())
