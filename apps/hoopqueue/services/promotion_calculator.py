"""
Promotion calculator.

After a game is finalized one of its teams is put straight back at the head of
the queue. The winners are promoted until they have won max_consecutive_games
in a row on that court; after that the losers are promoted instead and the
winners go to the back like everyone else.
"""

import enum
import logging
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hoopqueue.database.models import CheckinType, Game, GameSet, GameState
from hoopqueue.services import game_roster, settings_service
from hoopqueue.services.errors import GameNotFound
from hoopqueue.utils.constants import HOME_TEAM, AWAY_TEAM, TIE_POLICY_KEY

logger = logging.getLogger(__name__)


class TiePolicy(str, enum.Enum):
    """How a tied final score is resolved."""

    AWAY_WINS = "away_wins"  # team1 must score strictly more to win
    NO_PROMOTION = "no_promotion"


async def get_tie_policy(session: AsyncSession) -> TiePolicy:
    value = await settings_service.get_setting_with_fallback(
        session, TIE_POLICY_KEY, "TIE_POLICY", None
    )
    if value is None:
        return TiePolicy.AWAY_WINS
    try:
        return TiePolicy(value.strip().lower())
    except ValueError:
        logger.warning(f"Invalid value for setting {TIE_POLICY_KEY}: {value}, using away_wins")
        return TiePolicy.AWAY_WINS


def winning_team_for(
    team1_score: int, team2_score: int, tie_policy: TiePolicy = TiePolicy.AWAY_WINS
) -> Optional[int]:
    """Winning team number for a score line, or None for a tie that promotes nobody."""
    if team1_score == team2_score and tie_policy == TiePolicy.NO_PROMOTION:
        return None
    return HOME_TEAM if team1_score > team2_score else AWAY_TEAM


async def count_consecutive_wins(
    session: AsyncSession, game: Game, winning_team: int, tie_policy: TiePolicy
) -> int:
    """
    Length of winning_team's streak on the game's court, counting this game.

    Walks earlier finalized games of the same game set on the same court,
    most recent first, until one was won by the other team.
    """
    result = await session.execute(
        select(Game)
        .where(
            Game.set_id == game.set_id,
            Game.court == game.court,
            Game.state == GameState.FINAL,
            Game.id < game.id,
        )
        .order_by(Game.id.desc())
    )
    streak = 1
    for previous in result.scalars().all():
        if previous.team1_score is None or previous.team2_score is None:
            break
        if winning_team_for(previous.team1_score, previous.team2_score, tie_policy) != winning_team:
            break
        streak += 1
    return streak


async def calculate_promotion(session: AsyncSession, game_id: int) -> Optional[Dict]:
    """
    Decide which team of a finalized game is promoted.

    Args:
        session: Database session
        game_id: ID of the game (scores already recorded)

    Returns:
        {"type": CheckinType, "team": int, "consecutive_wins": int}, or None when
        the game has no players, no scores, or is a tie under the no_promotion policy

    Raises:
        GameNotFound: If the game does not exist
    """
    game = await session.get(Game, game_id)
    if game is None:
        raise GameNotFound(game_id)

    if game.team1_score is None or game.team2_score is None:
        return None

    roster = await game_roster.get_roster(session, game_id)
    if not roster:
        return None

    game_set = await session.get(GameSet, game.set_id)
    tie_policy = await get_tie_policy(session)
    winning_team = winning_team_for(game.team1_score, game.team2_score, tie_policy)
    if winning_team is None:
        logger.info(f"Game {game_id} tied {game.team1_score}-{game.team2_score}; no promotion")
        return None

    consecutive_wins = await count_consecutive_wins(session, game, winning_team, tie_policy)

    if consecutive_wins < game_set.max_consecutive_games:
        promotion = {
            "type": CheckinType.WIN_PROMOTED,
            "team": winning_team,
            "consecutive_wins": consecutive_wins,
        }
    else:
        promotion = {
            "type": CheckinType.LOSS_PROMOTED,
            "team": AWAY_TEAM if winning_team == HOME_TEAM else HOME_TEAM,
            "consecutive_wins": consecutive_wins,
        }

    logger.info(
        f"Game {game_id} on court {game.court}: team {winning_team} won "
        f"({consecutive_wins} in a row), promoting team {promotion['team']} "
        f"as {promotion['type'].value}"
    )
    return promotion
