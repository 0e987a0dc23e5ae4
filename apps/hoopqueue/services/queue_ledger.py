"""
Queue position ledger.

The active check-ins of a game set hold distinct integer positions. Every
function here that changes positions keeps them distinct and gap-free apart
from the single slot a caller frees on purpose (and immediately refills or
closes). The caller is expected to hold the game set's ledger transaction.

The session factory runs with autoflush disabled, so mutating functions flush
before returning; bulk UPDATEs depend on earlier changes being in the database.
"""

import logging
from typing import List, Optional, Sequence

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from hoopqueue.database.models import Checkin, CheckinType, GameSet
from hoopqueue.utils.datetime_utils import local_today

logger = logging.getLogger(__name__)


async def active_checkins(session: AsyncSession, game_set_id: int) -> List[Checkin]:
    """All active check-ins of a game set in queue order."""
    result = await session.execute(
        select(Checkin)
        .where(Checkin.game_set_id == game_set_id, Checkin.is_active.is_(True))
        .order_by(Checkin.queue_position.asc())
    )
    return list(result.scalars().all())


async def get_active_checkin_for_user(
    session: AsyncSession, game_set_id: int, user_id: int
) -> Optional[Checkin]:
    result = await session.execute(
        select(Checkin)
        .where(
            Checkin.game_set_id == game_set_id,
            Checkin.user_id == user_id,
            Checkin.is_active.is_(True),
        )
        .order_by(Checkin.queue_position.asc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def max_active_position(session: AsyncSession, game_set_id: int) -> Optional[int]:
    result = await session.execute(
        select(func.max(Checkin.queue_position)).where(
            Checkin.game_set_id == game_set_id, Checkin.is_active.is_(True)
        )
    )
    return result.scalar_one_or_none()


async def first_unassigned(
    session: AsyncSession,
    game_set_id: int,
    min_position: Optional[int] = None,
    exclude_checkin_id: Optional[int] = None,
) -> Optional[Checkin]:
    """
    Earliest active check-in that is not placed in a game.

    Args:
        session: Database session
        game_set_id: Game set to search
        min_position: Only consider positions >= this value
        exclude_checkin_id: Check-in to skip (usually the one leaving)
    """
    query = select(Checkin).where(
        Checkin.game_set_id == game_set_id,
        Checkin.is_active.is_(True),
        Checkin.game_id.is_(None),
    )
    if min_position is not None:
        query = query.where(Checkin.queue_position >= min_position)
    if exclude_checkin_id is not None:
        query = query.where(Checkin.id != exclude_checkin_id)
    result = await session.execute(query.order_by(Checkin.queue_position.asc()).limit(1))
    return result.scalar_one_or_none()


async def append(
    session: AsyncSession,
    game_set: GameSet,
    user_id: int,
    checkin_type: CheckinType = CheckinType.MANUAL,
) -> Checkin:
    """
    Add a check-in at the tail of the queue (queue_next_up) and advance the tail.

    Returns:
        The new Checkin row (flushed, so it has an id)
    """
    position = game_set.queue_next_up
    checkin = Checkin(
        user_id=user_id,
        game_set_id=game_set.id,
        check_in_date=local_today(),
        queue_position=position,
        is_active=True,
        type=checkin_type,
    )
    session.add(checkin)
    game_set.queue_next_up = position + 1
    await session.flush()
    logger.debug(
        f"Appended user {user_id} at position {position} in game set {game_set.id} "
        f"(next up {game_set.queue_next_up})"
    )
    return checkin


async def insert_at(
    session: AsyncSession,
    game_set: GameSet,
    user_id: int,
    position: int,
    checkin_type: CheckinType,
    team: Optional[int] = None,
) -> Checkin:
    """
    Insert a check-in at a position the caller already freed with a shift.

    The queue grows by one, so the tail pointer advances by one.
    """
    checkin = Checkin(
        user_id=user_id,
        game_set_id=game_set.id,
        check_in_date=local_today(),
        queue_position=position,
        is_active=True,
        team=team,
        type=checkin_type,
    )
    session.add(checkin)
    game_set.queue_next_up += 1
    await session.flush()
    logger.debug(f"Inserted user {user_id} at position {position} in game set {game_set.id}")
    return checkin


async def shift_positions_after(
    session: AsyncSession,
    game_set_id: int,
    threshold: int,
    delta: int,
    min_position: Optional[int] = None,
) -> int:
    """
    Add delta to every active position greater than threshold.

    Args:
        session: Database session
        game_set_id: Game set to shift
        threshold: Rows with queue_position > threshold move
        delta: Amount to add (negative to close a gap)
        min_position: Additionally require queue_position >= min_position

    Returns:
        Number of rows moved
    """
    await session.flush()
    query = update(Checkin).where(
        Checkin.game_set_id == game_set_id,
        Checkin.is_active.is_(True),
        Checkin.queue_position > threshold,
    )
    if min_position is not None:
        query = query.where(Checkin.queue_position >= min_position)
    result = await session.execute(
        query.values(queue_position=Checkin.queue_position + delta).execution_options(
            synchronize_session="fetch"
        )
    )
    logger.debug(
        f"Shifted {result.rowcount} position(s) > {threshold} by {delta} in game set {game_set_id}"
    )
    return result.rowcount


async def close_gap(session: AsyncSession, game_set: GameSet, position: int) -> int:
    """
    Close the slot freed at position: rows behind it move down by one.

    When the slot lies below current_queue_position the window pointer moves
    down with them, so the assembling window keeps the same rows.
    """
    moved = await shift_positions_after(session, game_set.id, position, -1)
    if position < game_set.current_queue_position:
        game_set.current_queue_position -= 1
        logger.debug(
            f"Window of game set {game_set.id} moved to {game_set.current_queue_position}"
        )
    return moved


async def deactivate(session: AsyncSession, checkin: Checkin) -> None:
    """Mark a check-in inactive. Positions of other rows are untouched."""
    checkin.is_active = False
    await session.flush()


def is_dense(positions: Sequence[int]) -> bool:
    """True when positions are distinct consecutive integers."""
    if not positions:
        return True
    ordered = sorted(positions)
    return ordered == list(range(ordered[0], ordered[0] + len(ordered)))
