"""
Queue role classification.

The two game set pointers split the active queue into a HOME window, an AWAY
window and everyone behind them (NEXT_UP).
"""

import enum
from typing import Optional

from hoopqueue.utils.constants import HOME_TEAM, AWAY_TEAM


class QueueRole(str, enum.Enum):
    """Role of a check-in relative to the assembling window."""

    HOME = "HOME"
    AWAY = "AWAY"
    NEXT_UP = "NEXT_UP"


def classify_position(
    queue_position: int, current_queue_position: int, players_per_team: int
) -> QueueRole:
    """
    Classify a queue position against the window starting at current_queue_position.

    Args:
        queue_position: Position of the check-in
        current_queue_position: First position of the HOME window
        players_per_team: Team size of the game set

    Returns:
        QueueRole.HOME for the first players_per_team slots, QueueRole.AWAY for
        the next players_per_team, QueueRole.NEXT_UP otherwise (including
        positions before the window)
    """
    relative = queue_position - current_queue_position + 1
    if 1 <= relative <= players_per_team:
        return QueueRole.HOME
    if players_per_team < relative <= 2 * players_per_team:
        return QueueRole.AWAY
    return QueueRole.NEXT_UP


def role_for_team(team: Optional[int]) -> Optional[QueueRole]:
    """Map a stored team number to its role, or None when unassigned."""
    if team == HOME_TEAM:
        return QueueRole.HOME
    if team == AWAY_TEAM:
        return QueueRole.AWAY
    return None


def resolve_role(checkin, game_set) -> QueueRole:
    """
    Role of a check-in row.

    Rows already placed in a started game keep their team's role even after
    the window has advanced past them; everyone else is classified by position.
    """
    if checkin.game_id is not None:
        role = role_for_team(checkin.team)
        if role is not None:
            return role
    return classify_position(
        checkin.queue_position,
        game_set.current_queue_position,
        game_set.players_per_team,
    )
