"""
Queue cleanup service: repairs duplicate check-ins and closes stale game sets.

Background worker that polls every 5 minutes. A user holding more than one
active check-in in a game set keeps one (the row placed in a game, otherwise
the lowest position) and the others are removed with the rows behind them
closing the gap. Active game sets untouched for longer than the
stale_game_set_hours setting are deactivated.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from hoopqueue.database import db
from hoopqueue.database.models import Checkin, GameSet
from hoopqueue.services import queue_ledger, settings_service
from hoopqueue.services.game_set_registry import GameSetRegistry, get_game_set_registry
from hoopqueue.utils.constants import DEFAULT_STALE_GAME_SET_HOURS, STALE_GAME_SET_HOURS_KEY
from hoopqueue.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

# How often the worker runs (seconds)
POLL_INTERVAL_SECONDS = 300  # 5 minutes


async def remove_duplicate_checkins(
    session: AsyncSession, registry: GameSetRegistry, game_set_id: int
) -> List[Dict]:
    """
    Deactivate extra active check-ins per user in a game set.

    Returns:
        One dict per removed row: user_id, checkin_id, position
    """
    removed = []
    async with registry.ledger_transaction(session, game_set_id, require_active=False) as game_set:
        result = await session.execute(
            select(Checkin.user_id)
            .where(Checkin.game_set_id == game_set.id, Checkin.is_active.is_(True))
            .group_by(Checkin.user_id)
            .having(func.count(Checkin.id) > 1)
        )
        duplicate_user_ids = list(result.scalars().all())

        for user_id in duplicate_user_ids:
            result = await session.execute(
                select(Checkin)
                .where(
                    Checkin.game_set_id == game_set.id,
                    Checkin.user_id == user_id,
                    Checkin.is_active.is_(True),
                )
                .order_by(Checkin.game_id.is_(None), Checkin.queue_position.asc())
            )
            rows = list(result.scalars().all())
            for extra in rows[1:]:
                position = extra.queue_position
                await queue_ledger.deactivate(session, extra)
                await queue_ledger.close_gap(session, game_set, position)
                game_set.queue_next_up -= 1
                removed.append({"user_id": user_id, "checkin_id": extra.id, "position": position})
                logger.info(
                    f"Removed duplicate check-in {extra.id} of user {user_id} at position {position}"
                )
        await session.flush()

    return removed


class QueueCleanupService:
    """Background service that keeps game sets tidy."""

    def __init__(self, registry: Optional[GameSetRegistry] = None):
        self._registry = registry or get_game_set_registry()
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    def start(self) -> None:
        """Start the background cleanup worker."""
        if self._worker_task is None or self._worker_task.done():
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._poll_loop())
            logger.info("Queue cleanup worker started")

    def stop(self) -> None:
        """Stop the background cleanup worker."""
        self._stop_event.set()
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            logger.info("Queue cleanup worker stopped")

    async def _poll_loop(self) -> None:
        """Main loop: run a cleanup pass, then sleep. Repeats until stopped."""
        while not self._stop_event.is_set():
            try:
                async with db.AsyncSessionLocal() as session:
                    await self.run_once(session)
            except Exception as e:
                logger.error(f"Error in queue cleanup worker: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=POLL_INTERVAL_SECONDS)
                break
            except asyncio.TimeoutError:
                pass

    async def run_once(self, session: AsyncSession) -> Dict:
        """
        One cleanup pass over every active game set.

        Returns:
            {"duplicates_removed": [...], "stale_game_sets": [ids]}
        """
        result = await session.execute(select(GameSet.id).where(GameSet.is_active.is_(True)))
        active_ids = list(result.scalars().all())

        duplicates = []
        for game_set_id in active_ids:
            try:
                duplicates.extend(
                    await remove_duplicate_checkins(session, self._registry, game_set_id)
                )
            except Exception as e:
                logger.error(
                    f"Error removing duplicate check-ins in game set {game_set_id}: {e}",
                    exc_info=True,
                )

        stale = await self._deactivate_stale_game_sets(session)
        return {"duplicates_removed": duplicates, "stale_game_sets": stale}

    async def _deactivate_stale_game_sets(self, session: AsyncSession) -> List[int]:
        hours = await settings_service.get_int_setting(
            session,
            STALE_GAME_SET_HOURS_KEY,
            "STALE_GAME_SET_HOURS",
            DEFAULT_STALE_GAME_SET_HOURS,
        )
        cutoff = utcnow() - timedelta(hours=hours)

        result = await session.execute(
            select(GameSet).where(GameSet.is_active.is_(True))
        )
        stale_ids = []
        for game_set in result.scalars().all():
            last_change = await self._last_activity(session, game_set)
            if last_change is not None and last_change < cutoff:
                stale_ids.append(game_set.id)

        for game_set_id in stale_ids:
            try:
                await self._registry.deactivate_game_set(session, game_set_id)
                logger.info(f"Deactivated stale game set {game_set_id}")
            except Exception as e:
                logger.error(f"Error deactivating game set {game_set_id}: {e}", exc_info=True)
        return stale_ids

    async def _last_activity(self, session: AsyncSession, game_set: GameSet):
        """Latest of the game set's creation time and its newest check-in."""
        result = await session.execute(
            select(func.max(Checkin.check_in_time)).where(Checkin.game_set_id == game_set.id)
        )
        candidates = [t for t in (game_set.created_at, result.scalar_one_or_none()) if t is not None]
        if not candidates:
            return None
        return max(_as_utc(t) for t in candidates)


def _as_utc(value):
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=utcnow().tzinfo)
    return value


# Global cleanup service instance
_cleanup_service: Optional[QueueCleanupService] = None


def get_queue_cleanup_service() -> QueueCleanupService:
    """Get the global queue cleanup service instance."""
    global _cleanup_service
    if _cleanup_service is None:
        _cleanup_service = QueueCleanupService()
    return _cleanup_service
