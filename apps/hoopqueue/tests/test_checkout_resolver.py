"""
Tests for checkout resolution (HOME / AWAY / NEXT_UP variants).
"""
import pytest
from sqlalchemy import select

from hoopqueue.database.models import Checkin, CheckinType, GamePlayer
from hoopqueue.services import game_lifecycle, queue_ledger, queue_service, settings_service
from hoopqueue.services.checkout_resolver import CheckoutPolicy, get_checkout_policy
from hoopqueue.services.errors import CheckinNotFound, NoActiveGameSet, NoReplacementAvailable
from hoopqueue.services.role_classifier import QueueRole

from conftest import active_positions, assign_game, make_queue, pointers


@pytest.mark.asyncio
async def test_home_checkout_pulls_replacement_from_behind_window(db_session, registry):
    game_set, user_ids = await make_queue(db_session, registry, 12)
    game_id = await assign_game(
        db_session, game_set.id, {1: [1, 2, 3, 4], 2: [5, 6, 7, 8]}
    )

    result = await queue_service.check_out(db_session, registry, user_ids[1])

    assert result["role"] == QueueRole.HOME.value
    assert result["vacated_position"] == 2
    assert result["replacement"]["user_id"] == user_ids[8]
    assert result["replacement"]["from_position"] == 9
    assert result["replacement"]["to_position"] == 2
    assert result["short_handed"] is False

    rows = await active_positions(db_session, game_set.id)
    by_user = {u: (p, g, t) for u, p, g, t in rows}
    assert by_user[user_ids[8]] == (2, game_id, 1)
    assert by_user[user_ids[9]][0] == 9
    assert by_user[user_ids[10]][0] == 10
    assert by_user[user_ids[11]][0] == 11
    assert user_ids[1] not in by_user
    assert queue_ledger.is_dense([p for _, p, _, _ in rows])
    assert await pointers(db_session, game_set.id) == (1, 12)


@pytest.mark.asyncio
async def test_checked_out_row_is_reset_and_roster_updated(db_session, registry):
    game_set, user_ids = await make_queue(db_session, registry, 12)
    game_id = await assign_game(db_session, game_set.id, {1: [1, 2, 3, 4], 2: [5, 6, 7, 8]})

    await queue_service.check_out(db_session, registry, user_ids[1])

    result = await db_session.execute(
        select(Checkin.queue_position, Checkin.is_active, Checkin.type).where(
            Checkin.user_id == user_ids[1]
        )
    )
    assert tuple(result.one()) == (0, False, CheckinType.CHECKOUT)

    result = await db_session.execute(
        select(GamePlayer.user_id, GamePlayer.team, GamePlayer.checked_out).where(
            GamePlayer.game_id == game_id
        )
    )
    roster = {row.user_id: (row.team, row.checked_out) for row in result.all()}
    assert roster[user_ids[1]] == (1, True)
    assert roster[user_ids[8]] == (1, False)


@pytest.mark.asyncio
async def test_home_checkout_without_pool_fails_and_leaves_queue(db_session, registry):
    game_set, user_ids = await make_queue(db_session, registry, 8)
    await assign_game(db_session, game_set.id, {1: [1, 2, 3, 4], 2: [5, 6, 7, 8]})
    before = await active_positions(db_session, game_set.id)

    with pytest.raises(NoReplacementAvailable):
        await queue_service.check_out(db_session, registry, user_ids[1])

    assert await active_positions(db_session, game_set.id) == before
    assert await pointers(db_session, game_set.id) == (1, 9)


@pytest.mark.asyncio
async def test_home_pool_starts_behind_assembling_window(db_session, registry):
    game_set, user_ids = await make_queue(db_session, registry, 17)
    await game_lifecycle.start_game(db_session, registry)
    assert await pointers(db_session, game_set.id) == (9, 18)

    result = await queue_service.check_out(db_session, registry, user_ids[0])

    # Positions 9-16 are the next game being assembled; 17 is the first eligible
    assert result["replacement"]["user_id"] == user_ids[16]
    assert result["replacement"]["from_position"] == 17
    rows = await active_positions(db_session, game_set.id)
    by_user = {u: p for u, p, _, _ in rows}
    assert [by_user[u] for u in user_ids[8:16]] == list(range(9, 17))
    assert await pointers(db_session, game_set.id) == (9, 17)


@pytest.mark.asyncio
async def test_away_checkout_without_replacement_runs_short_handed(db_session, registry):
    game_set, user_ids = await make_queue(db_session, registry, 8)
    game_id = await assign_game(db_session, game_set.id, {1: [1, 2, 3, 4], 2: [5, 6, 7, 8]})

    result = await queue_service.check_out(db_session, registry, user_ids[5])

    assert result["role"] == QueueRole.AWAY.value
    assert result["replacement"] is None
    assert result["short_handed"] is True
    rows = await active_positions(db_session, game_set.id)
    assert [(u, p) for u, p, _, _ in rows][-2:] == [(user_ids[6], 6), (user_ids[7], 7)]
    assert all(g == game_id for _, _, g, _ in rows)
    assert await pointers(db_session, game_set.id) == (1, 8)


@pytest.mark.asyncio
async def test_away_checkout_takes_earliest_waiting_player(db_session, registry):
    game_set, user_ids = await make_queue(db_session, registry, 10)
    game_id = await assign_game(db_session, game_set.id, {1: [1, 2, 3, 4], 2: [5, 6, 7, 8]})

    result = await queue_service.check_out(db_session, registry, user_ids[6])

    assert result["replacement"]["user_id"] == user_ids[8]
    rows = await active_positions(db_session, game_set.id)
    by_user = {u: (p, g, t) for u, p, g, t in rows}
    assert by_user[user_ids[8]] == (7, game_id, 2)
    assert by_user[user_ids[9]][0] == 9
    assert await pointers(db_session, game_set.id) == (1, 10)


@pytest.mark.asyncio
async def test_next_up_checkout_closes_gap(db_session, registry):
    game_set, user_ids = await make_queue(db_session, registry, 10)

    result = await queue_service.check_out(db_session, registry, user_ids[8])

    assert result["role"] == QueueRole.NEXT_UP.value
    assert result["game_id"] is None
    rows = await active_positions(db_session, game_set.id)
    assert [p for _, p, _, _ in rows] == list(range(1, 10))
    assert rows[-1][0] == user_ids[9]
    assert await pointers(db_session, game_set.id) == (1, 10)


@pytest.mark.asyncio
async def test_unassigned_window_player_is_removed_without_replacement(db_session, registry):
    game_set, user_ids = await make_queue(db_session, registry, 9)

    result = await queue_service.check_out(db_session, registry, user_ids[2])

    assert result["role"] == QueueRole.HOME.value
    assert result["replacement"] is None
    assert result["short_handed"] is False
    rows = await active_positions(db_session, game_set.id)
    assert [p for _, p, _, _ in rows] == list(range(1, 9))


@pytest.mark.asyncio
async def test_home_policy_setting_allows_short_handed(db_session, registry):
    game_set, user_ids = await make_queue(db_session, registry, 8)
    await assign_game(db_session, game_set.id, {1: [1, 2, 3, 4], 2: [5, 6, 7, 8]})
    await settings_service.set_setting(
        db_session, "home_checkout_policy", CheckoutPolicy.ALLOW_SHORT_HANDED.value
    )

    result = await queue_service.check_out(db_session, registry, user_ids[0])

    assert result["short_handed"] is True
    assert await pointers(db_session, game_set.id) == (1, 8)


@pytest.mark.asyncio
async def test_away_policy_setting_requires_replacement(db_session, registry):
    game_set, user_ids = await make_queue(db_session, registry, 8)
    await assign_game(db_session, game_set.id, {1: [1, 2, 3, 4], 2: [5, 6, 7, 8]})
    await settings_service.set_setting(
        db_session, "away_checkout_policy", CheckoutPolicy.REQUIRE_REPLACEMENT.value
    )

    with pytest.raises(NoReplacementAvailable):
        await queue_service.check_out(db_session, registry, user_ids[5])


@pytest.mark.asyncio
async def test_checkout_policy_defaults_and_bad_values(db_session, monkeypatch):
    monkeypatch.delenv("HOME_CHECKOUT_POLICY", raising=False)
    monkeypatch.delenv("AWAY_CHECKOUT_POLICY", raising=False)
    assert await get_checkout_policy(db_session, QueueRole.HOME) == CheckoutPolicy.REQUIRE_REPLACEMENT
    assert await get_checkout_policy(db_session, QueueRole.AWAY) == CheckoutPolicy.ALLOW_SHORT_HANDED

    await settings_service.set_setting(db_session, "home_checkout_policy", "sometimes")
    assert await get_checkout_policy(db_session, QueueRole.HOME) == CheckoutPolicy.REQUIRE_REPLACEMENT


@pytest.mark.asyncio
async def test_checkout_unknown_user(db_session, registry):
    await make_queue(db_session, registry, 2)
    with pytest.raises(CheckinNotFound):
        await queue_service.check_out(db_session, registry, 999)


@pytest.mark.asyncio
async def test_checkout_without_active_game_set(db_session, registry):
    with pytest.raises(NoActiveGameSet):
        await queue_service.check_out(db_session, registry, 1)


@pytest.mark.asyncio
async def test_checkout_below_window_pointer_keeps_window(db_session, registry):
    # create_game advances the pointer without placing rows 1-2 in the game
    game_set, user_ids = await make_queue(db_session, registry, 4, players_per_team=1)
    await game_lifecycle.create_game(db_session, registry, "1")
    assert await pointers(db_session, game_set.id) == (3, 5)

    await queue_service.check_out(db_session, registry, user_ids[0])

    assert await pointers(db_session, game_set.id) == (2, 4)
    snapshot = await queue_service.get_queue_snapshot(db_session, registry)
    assert [(row["user_id"], row["position"], row["role"]) for row in snapshot] == [
        (user_ids[1], 1, QueueRole.NEXT_UP.value),
        (user_ids[2], 2, QueueRole.HOME.value),
        (user_ids[3], 3, QueueRole.AWAY.value),
    ]


@pytest.mark.asyncio
async def test_away_replacement_from_below_window_pointer(db_session, registry):
    game_set, user_ids = await make_queue(db_session, registry, 4, players_per_team=1)
    await game_lifecycle.create_game(db_session, registry, "1")
    game_id = await assign_game(db_session, game_set.id, {1: [3], 2: [4]}, court="2")

    result = await queue_service.check_out(db_session, registry, user_ids[3])

    # Earliest waiting row (position 1) fills the AWAY slot, which moved down to 3
    assert result["replacement"]["user_id"] == user_ids[0]
    assert result["replacement"]["from_position"] == 1
    assert result["replacement"]["to_position"] == 3
    rows = await active_positions(db_session, game_set.id)
    assert rows == [
        (user_ids[1], 1, None, None),
        (user_ids[2], 2, game_id, 1),
        (user_ids[0], 3, game_id, 2),
    ]
    assert await pointers(db_session, game_set.id) == (2, 4)
