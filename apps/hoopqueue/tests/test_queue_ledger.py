"""
Tests for the queue position ledger.
"""
import pytest

from hoopqueue.database.models import CheckinType
from hoopqueue.services import queue_ledger

from conftest import active_positions, make_queue, make_users, pointers


@pytest.mark.asyncio
async def test_append_assigns_tail_and_advances_pointer(db_session, registry):
    game_set, user_ids = await make_queue(db_session, registry, 3)

    rows = await active_positions(db_session, game_set.id)
    assert [(u, p) for u, p, _, _ in rows] == [(user_ids[0], 1), (user_ids[1], 2), (user_ids[2], 3)]
    assert await pointers(db_session, game_set.id) == (1, 4)


@pytest.mark.asyncio
async def test_shift_positions_after_moves_only_rows_past_threshold(db_session, registry):
    game_set, user_ids = await make_queue(db_session, registry, 5)

    async with registry.ledger_transaction(db_session) as locked:
        moved = await queue_ledger.shift_positions_after(db_session, locked.id, 2, 3)

    assert moved == 3
    rows = await active_positions(db_session, game_set.id)
    assert [p for _, p, _, _ in rows] == [1, 2, 6, 7, 8]


@pytest.mark.asyncio
async def test_shift_positions_after_respects_min_position(db_session, registry):
    game_set, _ = await make_queue(db_session, registry, 5)

    async with registry.ledger_transaction(db_session) as locked:
        moved = await queue_ledger.shift_positions_after(
            db_session, locked.id, 0, 10, min_position=4
        )

    assert moved == 2
    rows = await active_positions(db_session, game_set.id)
    assert [p for _, p, _, _ in rows] == [1, 2, 3, 14, 15]


@pytest.mark.asyncio
async def test_insert_at_fills_freed_slot(db_session, registry):
    game_set, _ = await make_queue(db_session, registry, 4)
    (newcomer,) = await make_users(db_session, 1, prefix="late")

    async with registry.ledger_transaction(db_session) as locked:
        await queue_ledger.shift_positions_after(db_session, locked.id, 1, 1)
        checkin = await queue_ledger.insert_at(
            db_session, locked, newcomer, 2, CheckinType.WIN_PROMOTED, team=1
        )

    assert checkin.queue_position == 2
    assert checkin.team == 1
    rows = await active_positions(db_session, game_set.id)
    assert [p for _, p, _, _ in rows] == [1, 2, 3, 4, 5]
    assert rows[1][0] == newcomer
    assert await pointers(db_session, game_set.id) == (1, 6)


@pytest.mark.asyncio
async def test_first_unassigned_skips_excluded_and_low_positions(db_session, registry):
    game_set, user_ids = await make_queue(db_session, registry, 4)

    async with registry.ledger_transaction(db_session) as locked:
        first = await queue_ledger.first_unassigned(db_session, locked.id)
        from_three = await queue_ledger.first_unassigned(db_session, locked.id, min_position=3)
        skipping = await queue_ledger.first_unassigned(
            db_session, locked.id, exclude_checkin_id=first.id
        )

    assert first.user_id == user_ids[0]
    assert from_three.user_id == user_ids[2]
    assert skipping.user_id == user_ids[1]


@pytest.mark.asyncio
async def test_deactivate_leaves_other_positions(db_session, registry):
    game_set, user_ids = await make_queue(db_session, registry, 3)

    async with registry.ledger_transaction(db_session) as locked:
        checkin = await queue_ledger.get_active_checkin_for_user(db_session, locked.id, user_ids[1])
        await queue_ledger.deactivate(db_session, checkin)

    rows = await active_positions(db_session, game_set.id)
    assert [(u, p) for u, p, _, _ in rows] == [(user_ids[0], 1), (user_ids[2], 3)]


@pytest.mark.asyncio
async def test_max_active_position(db_session, registry):
    game_set, _ = await make_queue(db_session, registry, 6)
    assert await queue_ledger.max_active_position(db_session, game_set.id) == 6


def test_is_dense():
    assert queue_ledger.is_dense([])
    assert queue_ledger.is_dense([3, 1, 2])
    assert not queue_ledger.is_dense([1, 2, 4])
    assert not queue_ledger.is_dense([1, 1, 2])
