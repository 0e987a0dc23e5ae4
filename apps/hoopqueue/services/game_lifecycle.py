"""
Game lifecycle: creating games from the head of the queue and finalizing them.

A game moves started -> final and never back. Creating a game advances
current_queue_position past the two teams. Finalizing deactivates the game's
check-ins, re-inserts the promoted team at current_queue_position and
re-queues auto-up players at the tail.

Positions of players in other started games sit below current_queue_position
and are never shifted by a finalize.
"""

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hoopqueue.database.models import (
    Checkin,
    CheckinType,
    Game,
    GamePlayer,
    GameSet,
    GameState,
    User,
)
from hoopqueue.services import game_roster, promotion_calculator, queue_ledger
from hoopqueue.services.errors import (
    AutoUpInsertionFailed,
    CourtInUse,
    GameAlreadyFinal,
    GameNotFound,
    NoCourtAvailable,
    QueueError,
    WindowNotReady,
)
from hoopqueue.services.game_set_registry import GameSetRegistry
from hoopqueue.services.population import GamePopulation, court_names
from hoopqueue.utils.constants import HOME_TEAM, AWAY_TEAM
from hoopqueue.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def game_to_dict(game: Game, roster: Optional[List[GamePlayer]] = None) -> Dict:
    return {
        "id": game.id,
        "set_id": game.set_id,
        "court": game.court,
        "state": game.state.value if game.state else None,
        "team1_score": game.team1_score,
        "team2_score": game.team2_score,
        "start_time": game.start_time.isoformat() if game.start_time else None,
        "end_time": game.end_time.isoformat() if game.end_time else None,
        "players": [
            {
                "user_id": gp.user_id,
                "team": gp.team,
                "relative_position": gp.relative_position,
                "checked_out": gp.checked_out,
            }
            for gp in (roster or [])
        ],
    }


async def get_window(session: AsyncSession, game_set: GameSet) -> List[Checkin]:
    """Unassigned active check-ins in [current_queue_position, current_queue_position + 2*ppt)."""
    start = game_set.current_queue_position
    end = start + 2 * game_set.players_per_team
    result = await session.execute(
        select(Checkin)
        .where(
            Checkin.game_set_id == game_set.id,
            Checkin.is_active.is_(True),
            Checkin.game_id.is_(None),
            Checkin.queue_position >= start,
            Checkin.queue_position < end,
        )
        .order_by(Checkin.queue_position.asc())
    )
    return list(result.scalars().all())


async def get_busy_courts(session: AsyncSession, game_set_id: int) -> Dict[str, int]:
    """Courts with a started game, mapped to the game id."""
    result = await session.execute(
        select(Game).where(Game.set_id == game_set_id, Game.state == GameState.STARTED)
    )
    return {game.court: game.id for game in result.scalars().all()}


async def get_game(session: AsyncSession, game_id: int, for_update: bool = False) -> Game:
    query = select(Game).where(Game.id == game_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    game = result.scalar_one_or_none()
    if game is None:
        raise GameNotFound(game_id)
    return game


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


async def _create_game(session: AsyncSession, game_set: GameSet, court: str) -> Game:
    court = str(court)
    if court not in court_names(game_set.number_of_courts):
        raise QueueError(f"Court {court} does not exist (courts 1-{game_set.number_of_courts})")

    busy = await get_busy_courts(session, game_set.id)
    if court in busy:
        raise CourtInUse(court, busy[court])
    if len(busy) >= game_set.number_of_courts:
        raise NoCourtAvailable(game_set.number_of_courts)

    needed = 2 * game_set.players_per_team
    window = await get_window(session, game_set)
    if len(window) < needed:
        raise WindowNotReady(needed, len(window))

    game = Game(
        set_id=game_set.id,
        court=court,
        state=GameState.STARTED,
        start_time=utcnow(),
    )
    session.add(game)
    game_set.current_queue_position += needed
    await session.flush()

    logger.info(
        f"Created game {game.id} on court {court} in game set {game_set.id}; "
        f"current queue position now {game_set.current_queue_position}"
    )
    return game


async def create_game(
    session: AsyncSession,
    registry: GameSetRegistry,
    court: str,
    game_set_id: Optional[int] = None,
) -> Dict:
    """
    Start a game on a court and advance the window past its two teams.

    Does not assign the window's players; start_game does both.

    Raises:
        NoActiveGameSet: If the game set is not active
        CourtInUse: If the court already has a started game
        NoCourtAvailable: If every court has a started game
        WindowNotReady: If fewer than 2 * players_per_team players are waiting
    """
    async with registry.ledger_transaction(session, game_set_id) as game_set:
        game = await _create_game(session, game_set, court)
    return game_to_dict(game)


async def propose_game(
    session: AsyncSession,
    game_set: GameSet,
    court: Optional[str] = None,
    swap: bool = False,
) -> Dict:
    """
    Propose the next game from the queue window without changing anything.

    Returns:
        {"court": str, "home": [Checkin], "away": [Checkin], "state": PopulationState}
    """
    population = GamePopulation(
        game_set.players_per_team, game_set.number_of_courts, requested_court=court, swap=swap
    )
    window = await get_window(session, game_set)
    busy = await get_busy_courts(session, game_set.id)
    return population.run(window, busy)


async def start_game(
    session: AsyncSession,
    registry: GameSetRegistry,
    court: Optional[str] = None,
    swap: bool = False,
    game_set_id: Optional[int] = None,
) -> Dict:
    """
    Propose, create and populate the next game in one transaction.

    Each window player gets the game id and team on their check-in and a
    roster entry recording their queue position.
    """
    async with registry.ledger_transaction(session, game_set_id) as game_set:
        proposal = await propose_game(session, game_set, court=court, swap=swap)
        game = await _create_game(session, game_set, proposal["court"])

        for team, checkins in ((HOME_TEAM, proposal["home"]), (AWAY_TEAM, proposal["away"])):
            for checkin in checkins:
                checkin.game_id = game.id
                checkin.team = team
                await game_roster.add_player(
                    session, game.id, checkin.user_id, team, checkin.queue_position
                )
        await session.flush()
        roster = await game_roster.get_roster(session, game.id)

    return game_to_dict(game, roster)


# ---------------------------------------------------------------------------
# Finalization
# ---------------------------------------------------------------------------


async def finalize_game(
    session: AsyncSession,
    registry: GameSetRegistry,
    game_id: int,
    team1_score: int,
    team2_score: int,
) -> Dict:
    """
    Record the final score of a game and re-queue its players.

    Steps, all in one transaction:
        1. Deactivate every active check-in of the game
        2. Store scores, mark the game final
        3. Ask the promotion calculator which team goes back to the head
        4. Shift rows >= current_queue_position and insert the promoted team there
        5. Append each remaining auto-up player at the tail, one at a time

    Args:
        session: Database session
        registry: Game set registry (for the ledger transaction)
        game_id: ID of the game
        team1_score: HOME score
        team2_score: AWAY score

    Returns:
        Dict with the game, the promotion applied, and auto-up results

    Raises:
        GameNotFound: If the game does not exist
        GameAlreadyFinal: If the game was already finalized
        NoActiveGameSet: If the game's set is no longer active
    """
    if team1_score is None or team2_score is None or team1_score < 0 or team2_score < 0:
        raise QueueError("Scores must be non-negative integers")

    game = await get_game(session, game_id)

    async with registry.ledger_transaction(session, game.set_id) as game_set:
        game = await get_game(session, game_id, for_update=True)
        if game.state == GameState.FINAL:
            raise GameAlreadyFinal(game_id)

        result = await session.execute(
            select(Checkin).where(Checkin.game_id == game_id, Checkin.is_active.is_(True))
        )
        for checkin in result.scalars().all():
            checkin.is_active = False

        game.team1_score = team1_score
        game.team2_score = team2_score
        game.state = GameState.FINAL
        game.end_time = utcnow()
        await session.flush()

        logger.info(f"Game {game_id} final: {team1_score}-{team2_score}")

        roster = await game_roster.get_roster(session, game_id)
        promotion = await promotion_calculator.calculate_promotion(session, game_id)
        promoted = await _apply_promotion(session, game_set, roster, promotion)
        auto_up, failures = await _apply_auto_up(session, game_set, roster, promoted)

        summary = {
            "game": game_to_dict(game, roster),
            "promotion": None,
            "auto_up": auto_up,
            "auto_up_failures": failures,
        }
        if promotion is not None:
            summary["promotion"] = {
                "type": promotion["type"].value,
                "team": promotion["team"],
                "consecutive_wins": promotion["consecutive_wins"],
                "user_ids": [c.user_id for c in promoted],
            }

    summary["current_queue_position"] = game_set.current_queue_position
    summary["queue_next_up"] = game_set.queue_next_up
    return summary


async def _apply_promotion(
    session: AsyncSession,
    game_set: GameSet,
    roster: List[GamePlayer],
    promotion: Optional[Dict],
) -> List[Checkin]:
    if promotion is None:
        return []

    promoted_players = []
    for gp in roster:
        if gp.team != promotion["team"] or gp.checked_out:
            continue
        # Someone who already re-checked in keeps that spot
        existing = await queue_ledger.get_active_checkin_for_user(session, game_set.id, gp.user_id)
        if existing is not None:
            continue
        promoted_players.append(gp)

    if not promoted_players:
        return []

    head = game_set.current_queue_position
    count = len(promoted_players)
    await queue_ledger.shift_positions_after(session, game_set.id, head - 1, count)

    inserted = []
    for offset, gp in enumerate(promoted_players):
        checkin = await queue_ledger.insert_at(
            session,
            game_set,
            gp.user_id,
            head + offset,
            promotion["type"],
            team=promotion["team"],
        )
        inserted.append(checkin)

    logger.info(
        f"Promoted {count} player(s) of team {promotion['team']} to positions "
        f"{head}-{head + count - 1} in game set {game_set.id}"
    )
    return inserted


async def _apply_auto_up(
    session: AsyncSession,
    game_set: GameSet,
    roster: List[GamePlayer],
    promoted: List[Checkin],
) -> Tuple[List[Dict], List[Dict]]:
    promoted_ids = {c.user_id for c in promoted}
    candidates = [gp for gp in roster if gp.user_id not in promoted_ids and not gp.checked_out]
    if not candidates:
        return [], []

    result = await session.execute(
        select(User.id).where(
            User.id.in_([gp.user_id for gp in candidates]), User.autoup.is_(True)
        )
    )
    autoup_ids = set(result.scalars().all())

    auto_up = []
    failures = []
    for gp in candidates:
        if gp.user_id not in autoup_ids:
            continue
        try:
            async with session.begin_nested():
                existing = await queue_ledger.get_active_checkin_for_user(
                    session, game_set.id, gp.user_id
                )
                if existing is not None:
                    logger.debug(f"User {gp.user_id} already checked in; skipping auto-up")
                    continue
                checkin = await queue_ledger.append(
                    session, game_set, gp.user_id, CheckinType.AUTOUP
                )
            auto_up.append({"user_id": gp.user_id, "queue_position": checkin.queue_position})
            logger.info(f"Auto-up user {gp.user_id} at position {checkin.queue_position}")
        except Exception as e:
            error = AutoUpInsertionFailed(gp.user_id, e)
            logger.error(str(error), exc_info=True)
            failures.append({"user_id": gp.user_id, "error": str(e)})
            await session.refresh(game_set)

    return auto_up, failures
