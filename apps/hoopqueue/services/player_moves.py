"""
Organizer moves that reorder players without adding or removing anyone.

Every move permutes positions among existing active rows, so the set of
occupied positions and both game set pointers are unchanged.
"""

import enum
import logging
from typing import Dict, List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hoopqueue.database.models import Checkin, CheckinType, GameSet
from hoopqueue.services import game_roster, queue_ledger
from hoopqueue.services.errors import CheckinNotFound, InvalidMove
from hoopqueue.services.role_classifier import QueueRole, classify_position, resolve_role

logger = logging.getLogger(__name__)


class MoveType(str, enum.Enum):
    BUMP = "bump"
    BOTTOM = "bottom"
    HORIZONTAL_SWAP = "horizontal_swap"
    VERTICAL_SWAP = "vertical_swap"


async def move_player(
    session: AsyncSession, game_set: GameSet, user_id: int, move: MoveType
) -> Dict:
    """
    Apply a move to a user's active check-in.

    Raises:
        CheckinNotFound: If the user is not checked in
        InvalidMove: If the move does not apply to the user's current slot
    """
    checkin = await queue_ledger.get_active_checkin_for_user(session, game_set.id, user_id)
    if checkin is None:
        raise CheckinNotFound(user_id)

    handlers = {
        MoveType.BUMP: bump,
        MoveType.BOTTOM: bottom,
        MoveType.HORIZONTAL_SWAP: horizontal_swap,
        MoveType.VERTICAL_SWAP: vertical_swap,
    }
    moved = await handlers[MoveType(move)](session, game_set, checkin)
    await session.flush()

    logger.info(f"Applied {MoveType(move).value} to user {user_id} in game set {game_set.id}")
    return {
        "move": MoveType(move).value,
        "moved": [
            {
                "user_id": c.user_id,
                "queue_position": c.queue_position,
                "game_id": c.game_id,
                "team": c.team,
            }
            for c in moved
        ],
    }


async def bump(session: AsyncSession, game_set: GameSet, checkin: Checkin) -> List[Checkin]:
    """
    Let the next waiting player go ahead.

    A waiting player trades places with the waiting player right behind them.
    A player already in a game gives their slot to the first waiting player
    and takes that player's place in line.
    """
    if checkin.game_id is None:
        other = await queue_ledger.first_unassigned(
            session, game_set.id, min_position=checkin.queue_position + 1
        )
        if other is None:
            raise InvalidMove(f"No waiting player behind user {checkin.user_id} to bump with")
    else:
        other = await queue_ledger.first_unassigned(session, game_set.id)
        if other is None:
            raise InvalidMove(f"No waiting player to take user {checkin.user_id}'s slot")

    game_id = checkin.game_id
    _swap_slots(checkin, other)
    checkin.type = CheckinType.BUMP

    if game_id is not None:
        entry = await game_roster.get_entry(session, game_id, checkin.user_id)
        if entry is not None:
            await session.delete(entry)
        await game_roster.add_player(session, game_id, other.user_id, other.team, other.queue_position)

    return [checkin, other]


async def bottom(session: AsyncSession, game_set: GameSet, checkin: Checkin) -> List[Checkin]:
    """Send a waiting player to the back of the queue."""
    if checkin.game_id is not None:
        raise InvalidMove(f"User {checkin.user_id} is in game {checkin.game_id}")

    tail = game_set.queue_next_up - 1
    original = checkin.queue_position
    if original >= tail:
        return [checkin]

    await queue_ledger.close_gap(session, game_set, original)
    checkin.queue_position = tail
    checkin.type = CheckinType.BUMP
    return [checkin]


async def horizontal_swap(
    session: AsyncSession, game_set: GameSet, checkin: Checkin
) -> List[Checkin]:
    """Swap a HOME/AWAY player with the player in the same slot of the other team."""
    home, away = await _teams_for(session, game_set, checkin)
    own, other_team = (home, away) if checkin in home else (away, home)
    index = own.index(checkin)
    if index >= len(other_team):
        raise InvalidMove(f"No player opposite user {checkin.user_id}")

    other = other_team[index]
    _swap_slots(checkin, other)
    checkin.type = CheckinType.SWAP
    other.type = CheckinType.SWAP
    await _sync_roster(session, checkin, other)
    return [checkin, other]


async def vertical_swap(
    session: AsyncSession, game_set: GameSet, checkin: Checkin
) -> List[Checkin]:
    """Swap an AWAY player with the next AWAY player, wrapping to the first."""
    home, away = await _teams_for(session, game_set, checkin)
    if checkin not in away:
        raise InvalidMove(f"User {checkin.user_id} is not on the AWAY team")
    if len(away) < 2:
        raise InvalidMove("Need at least two AWAY players to swap")

    index = away.index(checkin)
    other = away[(index + 1) % len(away)]
    _swap_slots(checkin, other)
    checkin.type = CheckinType.SWAP
    other.type = CheckinType.SWAP
    await _sync_roster(session, checkin, other)
    return [checkin, other]


async def _teams_for(
    session: AsyncSession, game_set: GameSet, checkin: Checkin
) -> Tuple[List[Checkin], List[Checkin]]:
    """HOME and AWAY rows of the game the check-in plays in, or of the assembling window."""
    if checkin.game_id is not None:
        result = await session.execute(
            select(Checkin)
            .where(Checkin.game_id == checkin.game_id, Checkin.is_active.is_(True))
            .order_by(Checkin.queue_position.asc())
        )
        rows = list(result.scalars().all())
    else:
        role = resolve_role(checkin, game_set)
        if role == QueueRole.NEXT_UP:
            raise InvalidMove(f"User {checkin.user_id} is not on a team")
        rows = [
            c
            for c in await queue_ledger.active_checkins(session, game_set.id)
            if c.game_id is None
            and classify_position(
                c.queue_position, game_set.current_queue_position, game_set.players_per_team
            )
            != QueueRole.NEXT_UP
        ]

    home = [c for c in rows if resolve_role(c, game_set) == QueueRole.HOME]
    away = [c for c in rows if resolve_role(c, game_set) == QueueRole.AWAY]
    return home, away


def _swap_slots(a: Checkin, b: Checkin) -> None:
    a.queue_position, b.queue_position = b.queue_position, a.queue_position
    a.game_id, b.game_id = b.game_id, a.game_id
    a.team, b.team = b.team, a.team


async def _sync_roster(session: AsyncSession, *checkins: Checkin) -> None:
    for c in checkins:
        if c.game_id is not None:
            await game_roster.add_player(session, c.game_id, c.user_id, c.team, c.queue_position)
