"""
Tests for the promotion calculator.
"""
import pytest

from hoopqueue.database.models import CheckinType, Game, GamePlayer, GameSet, GameState
from hoopqueue.services import settings_service
from hoopqueue.services.errors import GameNotFound
from hoopqueue.services.promotion_calculator import (
    TiePolicy,
    calculate_promotion,
    count_consecutive_wins,
    winning_team_for,
)

from conftest import make_users


async def _final_game(session, game_set_id, court, score1, score2, user_ids):
    game = Game(
        set_id=game_set_id,
        court=court,
        state=GameState.FINAL,
        team1_score=score1,
        team2_score=score2,
    )
    session.add(game)
    await session.flush()
    half = len(user_ids) // 2
    for index, user_id in enumerate(user_ids):
        session.add(
            GamePlayer(
                game_id=game.id,
                user_id=user_id,
                team=1 if index < half else 2,
                relative_position=index + 1,
            )
        )
    await session.commit()
    return game


@pytest.fixture
def game_set_factory(db_session):
    async def factory(max_consecutive_games=2):
        game_set = GameSet(
            players_per_team=2,
            number_of_courts=2,
            max_consecutive_games=max_consecutive_games,
        )
        db_session.add(game_set)
        await db_session.commit()
        return game_set

    return factory


def test_winning_team_for():
    assert winning_team_for(21, 15) == 1
    assert winning_team_for(15, 21) == 2
    assert winning_team_for(20, 20) == 2
    assert winning_team_for(20, 20, TiePolicy.NO_PROMOTION) is None
    assert winning_team_for(21, 20, TiePolicy.NO_PROMOTION) == 1


@pytest.mark.asyncio
async def test_first_win_promotes_winners(db_session, game_set_factory):
    game_set = await game_set_factory()
    user_ids = await make_users(db_session, 4)
    game = await _final_game(db_session, game_set.id, "1", 21, 15, user_ids)

    promotion = await calculate_promotion(db_session, game.id)

    assert promotion == {"type": CheckinType.WIN_PROMOTED, "team": 1, "consecutive_wins": 1}


@pytest.mark.asyncio
async def test_streak_cap_promotes_losers(db_session, game_set_factory):
    game_set = await game_set_factory(max_consecutive_games=2)
    user_ids = await make_users(db_session, 4)
    await _final_game(db_session, game_set.id, "1", 21, 15, user_ids)
    second = await _final_game(db_session, game_set.id, "1", 21, 18, user_ids)

    promotion = await calculate_promotion(db_session, second.id)

    assert promotion == {"type": CheckinType.LOSS_PROMOTED, "team": 2, "consecutive_wins": 2}


@pytest.mark.asyncio
async def test_streak_is_per_court(db_session, game_set_factory):
    game_set = await game_set_factory(max_consecutive_games=2)
    user_ids = await make_users(db_session, 4)
    await _final_game(db_session, game_set.id, "2", 21, 15, user_ids)
    game = await _final_game(db_session, game_set.id, "1", 21, 15, user_ids)

    promotion = await calculate_promotion(db_session, game.id)

    assert promotion["type"] == CheckinType.WIN_PROMOTED
    assert promotion["consecutive_wins"] == 1


@pytest.mark.asyncio
async def test_streak_broken_by_other_team(db_session, game_set_factory):
    game_set = await game_set_factory(max_consecutive_games=3)
    user_ids = await make_users(db_session, 4)
    await _final_game(db_session, game_set.id, "1", 21, 10, user_ids)
    await _final_game(db_session, game_set.id, "1", 10, 21, user_ids)
    await _final_game(db_session, game_set.id, "1", 21, 10, user_ids)
    latest = await _final_game(db_session, game_set.id, "1", 21, 10, user_ids)

    assert await count_consecutive_wins(db_session, latest, 1, TiePolicy.AWAY_WINS) == 2
    promotion = await calculate_promotion(db_session, latest.id)
    assert promotion["type"] == CheckinType.WIN_PROMOTED


@pytest.mark.asyncio
async def test_away_streak_cap(db_session, game_set_factory):
    game_set = await game_set_factory(max_consecutive_games=1)
    user_ids = await make_users(db_session, 4)
    game = await _final_game(db_session, game_set.id, "1", 12, 21, user_ids)

    promotion = await calculate_promotion(db_session, game.id)

    assert promotion == {"type": CheckinType.LOSS_PROMOTED, "team": 1, "consecutive_wins": 1}


@pytest.mark.asyncio
async def test_tie_policy_no_promotion(db_session, game_set_factory):
    game_set = await game_set_factory()
    user_ids = await make_users(db_session, 4)
    game = await _final_game(db_session, game_set.id, "1", 20, 20, user_ids)

    # Default: a tie counts as an AWAY win
    promotion = await calculate_promotion(db_session, game.id)
    assert promotion["team"] == 2

    await settings_service.set_setting(db_session, "tie_policy", TiePolicy.NO_PROMOTION.value)
    assert await calculate_promotion(db_session, game.id) is None


@pytest.mark.asyncio
async def test_no_players_or_scores_means_no_promotion(db_session, game_set_factory):
    game_set = await game_set_factory()
    empty = await _final_game(db_session, game_set.id, "1", 21, 15, [])
    assert await calculate_promotion(db_session, empty.id) is None

    unscored = Game(set_id=game_set.id, court="2", state=GameState.STARTED)
    db_session.add(unscored)
    await db_session.commit()
    assert await calculate_promotion(db_session, unscored.id) is None


@pytest.mark.asyncio
async def test_unknown_game(db_session):
    with pytest.raises(GameNotFound):
        await calculate_promotion(db_session, 12345)
