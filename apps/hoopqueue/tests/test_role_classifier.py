"""
Tests for queue role classification.
"""
from types import SimpleNamespace

import pytest

from hoopqueue.services.role_classifier import (
    QueueRole,
    classify_position,
    resolve_role,
    role_for_team,
)


@pytest.mark.parametrize(
    "position,expected",
    [
        (1, QueueRole.HOME),
        (3, QueueRole.HOME),
        (4, QueueRole.HOME),
        (5, QueueRole.AWAY),
        (6, QueueRole.AWAY),
        (8, QueueRole.AWAY),
        (9, QueueRole.NEXT_UP),
        (20, QueueRole.NEXT_UP),
    ],
)
def test_classify_position_window_at_head(position, expected):
    assert classify_position(position, 1, 4) == expected


def test_classify_position_follows_current_queue_position():
    # Window starts at 9 once the first game has been created
    assert classify_position(9, 9, 4) == QueueRole.HOME
    assert classify_position(13, 9, 4) == QueueRole.AWAY
    assert classify_position(17, 9, 4) == QueueRole.NEXT_UP


def test_positions_before_window_are_next_up():
    assert classify_position(3, 9, 4) == QueueRole.NEXT_UP


def test_single_player_teams():
    assert classify_position(5, 5, 1) == QueueRole.HOME
    assert classify_position(6, 5, 1) == QueueRole.AWAY
    assert classify_position(7, 5, 1) == QueueRole.NEXT_UP


def test_role_for_team():
    assert role_for_team(1) == QueueRole.HOME
    assert role_for_team(2) == QueueRole.AWAY
    assert role_for_team(None) is None


def test_resolve_role_prefers_team_of_started_game():
    game_set = SimpleNamespace(current_queue_position=9, players_per_team=4)
    in_game = SimpleNamespace(queue_position=2, game_id=7, team=1)
    away_in_game = SimpleNamespace(queue_position=6, game_id=7, team=2)
    waiting = SimpleNamespace(queue_position=10, game_id=None, team=None)

    assert resolve_role(in_game, game_set) == QueueRole.HOME
    assert resolve_role(away_in_game, game_set) == QueueRole.AWAY
    assert resolve_role(waiting, game_set) == QueueRole.HOME


def test_resolve_role_ignores_team_without_game():
    # Promoted rows carry a team before their game exists
    game_set = SimpleNamespace(current_queue_position=1, players_per_team=4)
    promoted = SimpleNamespace(queue_position=6, game_id=None, team=1)
    assert resolve_role(promoted, game_set) == QueueRole.AWAY
