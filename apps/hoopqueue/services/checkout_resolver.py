"""
Checkout resolution: removing a player from the queue mid-session.

Three variants, chosen by the player's role:

- NEXT_UP (or any row not yet placed in a game): the row is removed and the
  rows behind it close the gap.
- AWAY: the earliest waiting player takes over the vacated slot (game, team
  and position). Without one the game continues short-handed.
- HOME: like AWAY, but the replacement must come from behind the assembling
  window (position >= current_queue_position + 2 * players_per_team), and an
  empty pool is an error.

What happens when no replacement exists is governed per side by the
home_checkout_policy and away_checkout_policy settings.

Every variant removes exactly one active row, so queue_next_up drops by one.
"""

import enum
import logging
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hoopqueue.database.models import Checkin, CheckinType, GameSet
from hoopqueue.services import game_roster, queue_ledger, settings_service
from hoopqueue.services.errors import CheckinNotFound, NoReplacementAvailable
from hoopqueue.services.role_classifier import QueueRole, resolve_role
from hoopqueue.utils.constants import HOME_CHECKOUT_POLICY_KEY, AWAY_CHECKOUT_POLICY_KEY

logger = logging.getLogger(__name__)


class CheckoutPolicy(str, enum.Enum):
    """What a HOME/AWAY checkout does when nobody can replace the player."""

    REQUIRE_REPLACEMENT = "require_replacement"
    ALLOW_SHORT_HANDED = "allow_short_handed"


_POLICY_SETTINGS = {
    QueueRole.HOME: (HOME_CHECKOUT_POLICY_KEY, "HOME_CHECKOUT_POLICY", CheckoutPolicy.REQUIRE_REPLACEMENT),
    QueueRole.AWAY: (AWAY_CHECKOUT_POLICY_KEY, "AWAY_CHECKOUT_POLICY", CheckoutPolicy.ALLOW_SHORT_HANDED),
}


async def get_checkout_policy(session: AsyncSession, role: QueueRole) -> CheckoutPolicy:
    """Resolve the empty-pool policy for a HOME or AWAY checkout."""
    key, env_var, default = _POLICY_SETTINGS[role]
    value = await settings_service.get_setting_with_fallback(session, key, env_var, None)
    if value is None:
        return default
    try:
        return CheckoutPolicy(value.strip().lower())
    except ValueError:
        logger.warning(f"Invalid value for setting {key}: {value}, using {default.value}")
        return default


async def check_out(session: AsyncSession, game_set: GameSet, user_id: int) -> Dict:
    """
    Check a user out of the game set's queue.

    Args:
        session: Database session (inside the game set's ledger transaction)
        game_set: The locked game set
        user_id: User leaving

    Returns:
        Dict describing the checkout: role, vacated position, replacement (if any)

    Raises:
        CheckinNotFound: If the user has no active check-in in this game set
        NoReplacementAvailable: If the policy requires a replacement and none exists
    """
    checkin = await queue_ledger.get_active_checkin_for_user(session, game_set.id, user_id)
    if checkin is None:
        raise CheckinNotFound(user_id)

    role = resolve_role(checkin, game_set)

    # Only rows placed in a game vacate a team slot
    if checkin.game_id is None:
        return await _remove_waiting(session, game_set, checkin, role)

    policy = await get_checkout_policy(session, role)
    return await _vacate_game_slot(session, game_set, checkin, role, policy)


async def _remove_waiting(
    session: AsyncSession, game_set: GameSet, checkin: Checkin, role: QueueRole
) -> Dict:
    vacated = checkin.queue_position
    _mark_checked_out(checkin)
    await queue_ledger.deactivate(session, checkin)
    await queue_ledger.close_gap(session, game_set, vacated)
    game_set.queue_next_up -= 1
    await session.flush()

    logger.info(
        f"User {checkin.user_id} checked out of game set {game_set.id} from "
        f"{role.value} position {vacated}"
    )
    return _result(checkin, role, vacated, game_set, game_id=None, team=None)


async def _vacate_game_slot(
    session: AsyncSession,
    game_set: GameSet,
    checkin: Checkin,
    role: QueueRole,
    policy: CheckoutPolicy,
) -> Dict:
    vacated = checkin.queue_position
    game_id = checkin.game_id
    team = checkin.team

    min_position = None
    if role == QueueRole.HOME:
        min_position = game_set.current_queue_position + 2 * game_set.players_per_team

    replacement = await queue_ledger.first_unassigned(
        session, game_set.id, min_position=min_position, exclude_checkin_id=checkin.id
    )
    if replacement is None and policy == CheckoutPolicy.REQUIRE_REPLACEMENT:
        raise NoReplacementAvailable(checkin.user_id, team)

    _mark_checked_out(checkin)
    await queue_ledger.deactivate(session, checkin)
    await game_roster.mark_checked_out(session, game_id, checkin.user_id)

    replacement_info = None
    if replacement is not None:
        original = replacement.queue_position
        await queue_ledger.close_gap(session, game_set, original)
        # Closing a gap in front of the vacated slot moves that slot down too
        target = vacated - 1 if original < vacated else vacated
        replacement.queue_position = target
        replacement.game_id = game_id
        replacement.team = team
        await game_roster.add_player(session, game_id, replacement.user_id, team, target)
        replacement_info = {
            "user_id": replacement.user_id,
            "checkin_id": replacement.id,
            "from_position": original,
            "to_position": target,
        }
        logger.info(
            f"User {replacement.user_id} moved from position {original} to {target} "
            f"to replace user {checkin.user_id} in game {game_id}"
        )
    else:
        await queue_ledger.close_gap(session, game_set, vacated)
        logger.info(
            f"No replacement for user {checkin.user_id} in game {game_id}; "
            f"team {team} continues short-handed"
        )

    game_set.queue_next_up -= 1
    await session.flush()

    logger.info(
        f"User {checkin.user_id} checked out of game {game_id} ({role.value}, position {vacated})"
    )
    return _result(
        checkin, role, vacated, game_set, game_id=game_id, team=team, replacement=replacement_info
    )


def _mark_checked_out(checkin: Checkin) -> None:
    checkin.queue_position = 0
    checkin.type = CheckinType.CHECKOUT


def _result(
    checkin: Checkin,
    role: QueueRole,
    vacated: int,
    game_set: GameSet,
    game_id: Optional[int],
    team: Optional[int],
    replacement: Optional[Dict] = None,
) -> Dict:
    return {
        "user_id": checkin.user_id,
        "checkin_id": checkin.id,
        "role": role.value,
        "vacated_position": vacated,
        "game_id": game_id,
        "team": team,
        "replacement": replacement,
        "short_handed": game_id is not None and replacement is None,
        "queue_next_up": game_set.queue_next_up,
    }
