"""
Game set registry.

Tracks which game set is active and serializes every queue mutation on a
game set. Serialization is two-layered: an asyncio.Lock per game set for
requests handled by this process, and a SELECT ... FOR UPDATE on the game set
row for requests handled by other processes sharing the database.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hoopqueue.database.models import GameSet, Checkin
from hoopqueue.services.errors import NoActiveGameSet, GameSetNotFound, QueueError
from hoopqueue.utils.constants import (
    DEFAULT_GYM,
    DEFAULT_PLAYERS_PER_TEAM,
    DEFAULT_NUMBER_OF_COURTS,
    DEFAULT_MAX_CONSECUTIVE_GAMES,
    MIN_PLAYERS_PER_TEAM,
    MAX_PLAYERS_PER_TEAM,
)

logger = logging.getLogger(__name__)


class GameSetRegistry:
    """Active game set lookup plus per-game-set write serialization."""

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}
        self._registry_lock = asyncio.Lock()

    def _lock_for(self, game_set_id: int) -> asyncio.Lock:
        lock = self._locks.get(game_set_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[game_set_id] = lock
        return lock

    def _discard_lock(self, game_set_id: int) -> None:
        # Only called once the deactivation has been committed
        self._locks.pop(game_set_id, None)

    async def get_active(self, session: AsyncSession) -> Optional[GameSet]:
        """Return the active game set, or None."""
        result = await session.execute(
            select(GameSet)
            .where(GameSet.is_active.is_(True))
            .order_by(GameSet.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def require_active(self, session: AsyncSession) -> GameSet:
        """Return the active game set or raise NoActiveGameSet."""
        game_set = await self.get_active(session)
        if game_set is None:
            raise NoActiveGameSet()
        return game_set

    async def get(
        self, session: AsyncSession, game_set_id: int, for_update: bool = False
    ) -> GameSet:
        """Load a game set by id, optionally row-locking it and re-reading its pointers."""
        query = select(GameSet).where(GameSet.id == game_set_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await session.execute(query)
        game_set = result.scalar_one_or_none()
        if game_set is None:
            raise GameSetNotFound(game_set_id)
        return game_set

    async def list_game_sets(self, session: AsyncSession, limit: int = 50) -> List[GameSet]:
        result = await session.execute(select(GameSet).order_by(GameSet.id.desc()).limit(limit))
        return list(result.scalars().all())

    @asynccontextmanager
    async def ledger_transaction(
        self,
        session: AsyncSession,
        game_set_id: Optional[int] = None,
        require_active: bool = True,
    ) -> AsyncIterator[GameSet]:
        """
        Run one queue mutation atomically against a game set.

        Yields the game set with freshly read pointers. Commits when the block
        completes, rolls back and re-raises on any exception.

        Args:
            session: Database session
            game_set_id: Game set to lock; the active game set when omitted
            require_active: Raise NoActiveGameSet if the set is not active
        """
        if game_set_id is None:
            game_set_id = (await self.require_active(session)).id

        async with self._lock_for(game_set_id):
            try:
                game_set = await self.get(session, game_set_id, for_update=True)
                if require_active and not game_set.is_active:
                    raise NoActiveGameSet(f"Game set {game_set_id} is not active")
                yield game_set
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_game_set(
        self,
        session: AsyncSession,
        gym: str = DEFAULT_GYM,
        players_per_team: int = DEFAULT_PLAYERS_PER_TEAM,
        number_of_courts: int = DEFAULT_NUMBER_OF_COURTS,
        max_consecutive_games: int = DEFAULT_MAX_CONSECUTIVE_GAMES,
        created_by: Optional[int] = None,
    ) -> GameSet:
        """
        Create a new active game set, deactivating any previous one.

        Raises:
            QueueError: If the configuration is out of range
        """
        if not MIN_PLAYERS_PER_TEAM <= players_per_team <= MAX_PLAYERS_PER_TEAM:
            raise QueueError(
                f"players_per_team must be between {MIN_PLAYERS_PER_TEAM} and {MAX_PLAYERS_PER_TEAM}"
            )
        if number_of_courts < 1:
            raise QueueError("number_of_courts must be at least 1")
        if max_consecutive_games < 1:
            raise QueueError("max_consecutive_games must be at least 1")

        async with self._registry_lock:
            try:
                result = await session.execute(
                    select(GameSet.id).where(GameSet.is_active.is_(True))
                )
                previous_ids = list(result.scalars().all())
                for previous_id in previous_ids:
                    await self._deactivate(session, previous_id)

                game_set = GameSet(
                    gym=gym,
                    players_per_team=players_per_team,
                    number_of_courts=number_of_courts,
                    max_consecutive_games=max_consecutive_games,
                    created_by=created_by,
                    current_queue_position=1,
                    queue_next_up=1,
                    is_active=True,
                )
                session.add(game_set)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        for previous_id in previous_ids:
            self._discard_lock(previous_id)

        await session.refresh(game_set)
        logger.info(
            f"Created game set {game_set.id} at {gym} "
            f"({players_per_team} per team, {number_of_courts} court(s))"
        )
        return game_set

    async def deactivate_game_set(self, session: AsyncSession, game_set_id: int) -> GameSet:
        """Deactivate a game set and every active check-in in it."""
        async with self.ledger_transaction(
            session, game_set_id, require_active=False
        ) as game_set:
            await self._deactivate(session, game_set_id)
        self._discard_lock(game_set_id)
        await session.refresh(game_set)
        return game_set

    async def _deactivate(self, session: AsyncSession, game_set_id: int) -> None:
        await session.execute(
            update(Checkin)
            .where(Checkin.game_set_id == game_set_id, Checkin.is_active.is_(True))
            .values(is_active=False)
        )
        await session.execute(
            update(GameSet).where(GameSet.id == game_set_id).values(is_active=False)
        )
        logger.info(f"Deactivated game set {game_set_id}")


# Global registry instance
_registry: Optional[GameSetRegistry] = None


def get_game_set_registry() -> GameSetRegistry:
    """Get the global game set registry instance."""
    global _registry
    if _registry is None:
        _registry = GameSetRegistry()
    return _registry
