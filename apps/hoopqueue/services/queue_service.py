"""
Queue service: check-in, checkout, moves and read-only views of a game set.

Mutating functions take the GameSetRegistry and run inside its ledger
transaction; read-only functions take no lock.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from hoopqueue.database.models import Checkin, Game, GameSet, GameState, User
from hoopqueue.services import (
    checkout_resolver,
    game_lifecycle,
    game_roster,
    player_moves,
    queue_ledger,
)
from hoopqueue.services.errors import QueueError, UserNotFound
from hoopqueue.services.game_set_registry import GameSetRegistry
from hoopqueue.services.player_moves import MoveType
from hoopqueue.services.role_classifier import QueueRole, resolve_role

logger = logging.getLogger(__name__)


def game_set_to_dict(game_set: GameSet) -> Dict:
    return {
        "id": game_set.id,
        "gym": game_set.gym,
        "players_per_team": game_set.players_per_team,
        "number_of_courts": game_set.number_of_courts,
        "max_consecutive_games": game_set.max_consecutive_games,
        "current_queue_position": game_set.current_queue_position,
        "queue_next_up": game_set.queue_next_up,
        "is_active": game_set.is_active,
        "created_by": game_set.created_by,
        "created_at": game_set.created_at.isoformat() if game_set.created_at else None,
    }


def checkin_to_dict(checkin: Checkin) -> Dict:
    return {
        "id": checkin.id,
        "user_id": checkin.user_id,
        "game_set_id": checkin.game_set_id,
        "check_in_date": checkin.check_in_date,
        "queue_position": checkin.queue_position,
        "is_active": checkin.is_active,
        "game_id": checkin.game_id,
        "team": checkin.team,
        "type": checkin.type.value if checkin.type else None,
    }


async def _usernames(session: AsyncSession, user_ids) -> Dict[int, str]:
    ids = list(set(user_ids))
    if not ids:
        return {}
    result = await session.execute(select(User.id, User.username).where(User.id.in_(ids)))
    return {row.id: row.username for row in result.all()}


async def _resolve_game_set(
    session: AsyncSession, registry: GameSetRegistry, game_set_id: Optional[int]
) -> GameSet:
    if game_set_id is None:
        return await registry.require_active(session)
    return await registry.get(session, game_set_id)


# ---------------------------------------------------------------------------
# Check-in / checkout
# ---------------------------------------------------------------------------


async def check_in(session: AsyncSession, registry: GameSetRegistry, user_id: int) -> Dict:
    """
    Check a user into the active game set.

    Idempotent: a user who already holds an active check-in in the game set
    gets that check-in back unchanged.

    Returns:
        Check-in dict plus "created" (False when it already existed)

    Raises:
        UserNotFound: If the user does not exist
        NoActiveGameSet: If no game set is active
    """
    user = await session.get(User, user_id)
    if user is None:
        raise UserNotFound(user_id)

    async with registry.ledger_transaction(session) as game_set:
        checkin = await queue_ledger.get_active_checkin_for_user(session, game_set.id, user_id)
        created = checkin is None
        if created:
            checkin = await queue_ledger.append(session, game_set, user_id)
            logger.info(
                f"User {user_id} checked into game set {game_set.id} at position "
                f"{checkin.queue_position}"
            )
        else:
            logger.debug(f"User {user_id} already checked in at position {checkin.queue_position}")

    data = checkin_to_dict(checkin)
    data["created"] = created
    return data


async def check_in_all(session: AsyncSession, registry: GameSetRegistry) -> Dict:
    """
    Check in every user flagged as a player, in id order.

    A failure for one user is recorded and does not stop the others.
    """
    result = await session.execute(
        select(User.id).where(User.is_player.is_(True)).order_by(User.id.asc())
    )
    user_ids = list(result.scalars().all())

    checked_in = []
    failed = []
    for user_id in user_ids:
        try:
            data = await check_in(session, registry, user_id)
            if data["created"]:
                checked_in.append(user_id)
        except QueueError as e:
            logger.warning(f"Could not check in user {user_id}: {e}")
            failed.append({"user_id": user_id, "error": str(e)})
        except Exception as e:
            logger.error(f"Error checking in user {user_id}: {e}", exc_info=True)
            await session.rollback()
            failed.append({"user_id": user_id, "error": str(e)})

    logger.info(f"Checked in {len(checked_in)} player(s), {len(failed)} failure(s)")
    return {"checked_in": checked_in, "failed": failed}


async def check_out(session: AsyncSession, registry: GameSetRegistry, user_id: int) -> Dict:
    """Check a user out of the active game set; see checkout_resolver for the variants."""
    async with registry.ledger_transaction(session) as game_set:
        return await checkout_resolver.check_out(session, game_set, user_id)


async def move_player(
    session: AsyncSession, registry: GameSetRegistry, user_id: int, move: MoveType
) -> Dict:
    async with registry.ledger_transaction(session) as game_set:
        return await player_moves.move_player(session, game_set, user_id, move)


# ---------------------------------------------------------------------------
# Read-only views
# ---------------------------------------------------------------------------


async def get_queue_snapshot(
    session: AsyncSession, registry: GameSetRegistry, game_set_id: Optional[int] = None
) -> List[Dict]:
    """
    Active check-ins of a game set in queue order, each labelled with its role.

    Args:
        session: Database session
        registry: Game set registry
        game_set_id: Game set to read; the active one when omitted
    """
    game_set = await _resolve_game_set(session, registry, game_set_id)
    rows = await queue_ledger.active_checkins(session, game_set.id)
    names = await _usernames(session, [c.user_id for c in rows])
    return [
        {
            "user_id": c.user_id,
            "username": names.get(c.user_id),
            "position": c.queue_position,
            "role": resolve_role(c, game_set).value,
            "team": c.team,
            "type": c.type.value if c.type else None,
            "game_id": c.game_id,
        }
        for c in rows
    ]


async def _game_with_usernames(session: AsyncSession, game: Game) -> Dict:
    roster = await game_roster.get_roster(session, game.id)
    data = game_lifecycle.game_to_dict(game, roster)
    names = await _usernames(session, [p["user_id"] for p in data["players"]])
    for player in data["players"]:
        player["username"] = names.get(player["user_id"])
    return data


async def get_game_set_status(
    session: AsyncSession, registry: GameSetRegistry, game_set_id: Optional[int] = None
) -> Dict:
    """Game set pointers, games in progress, the waiting list and completed game count."""
    game_set = await _resolve_game_set(session, registry, game_set_id)

    result = await session.execute(
        select(Game)
        .where(Game.set_id == game_set.id, Game.state == GameState.STARTED)
        .order_by(Game.court.asc())
    )
    active_games = [await _game_with_usernames(session, g) for g in result.scalars().all()]

    result = await session.execute(
        select(func.count(Game.id)).where(
            Game.set_id == game_set.id, Game.state == GameState.FINAL
        )
    )
    completed = result.scalar_one()

    snapshot = await get_queue_snapshot(session, registry, game_set.id)
    waiting = [row for row in snapshot if row["game_id"] is None]

    return {
        "game_set": game_set_to_dict(game_set),
        "active_games": active_games,
        "next_up": [row for row in waiting if row["role"] == QueueRole.NEXT_UP.value],
        "window": [row for row in waiting if row["role"] != QueueRole.NEXT_UP.value],
        "completed_games": completed,
    }


async def get_game_set_log(
    session: AsyncSession, registry: GameSetRegistry, game_set_id: Optional[int] = None
) -> List[Dict]:
    """Every game of a game set, oldest first, with rosters."""
    game_set = await _resolve_game_set(session, registry, game_set_id)
    result = await session.execute(
        select(Game).where(Game.set_id == game_set.id).order_by(Game.id.asc())
    )
    return [await _game_with_usernames(session, g) for g in result.scalars().all()]


async def get_game_details(session: AsyncSession, game_id: int) -> Dict:
    """A single game with its roster; raises GameNotFound."""
    game = await game_lifecycle.get_game(session, game_id)
    return await _game_with_usernames(session, game)
