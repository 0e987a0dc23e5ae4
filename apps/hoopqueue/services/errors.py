"""
Typed errors raised by the queue services.

All of them derive from ValueError so callers that treat a ValueError as
"bad request state" keep working.
"""


class QueueError(ValueError):
    """Base class for queue and game lifecycle errors."""


class NotFoundError(QueueError):
    """Base class for lookups that found nothing."""


class NoActiveGameSet(NotFoundError):
    def __init__(self, message: str = "No active game set"):
        super().__init__(message)


class CheckinNotFound(NotFoundError):
    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"No active check-in found for user {user_id}")


class GameNotFound(NotFoundError):
    def __init__(self, game_id: int):
        self.game_id = game_id
        super().__init__(f"Game {game_id} not found")


class UserNotFound(NotFoundError):
    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class GameSetNotFound(NotFoundError):
    def __init__(self, game_set_id: int):
        self.game_set_id = game_set_id
        super().__init__(f"Game set {game_set_id} not found")


class NoReplacementAvailable(QueueError):
    """A checkout needs a replacement and the queue has none to offer."""

    def __init__(self, user_id: int, team: int):
        self.user_id = user_id
        self.team = team
        super().__init__(
            f"No replacement available for user {user_id} on team {team}; "
            f"at least one NEXT_UP player is required"
        )


class GameAlreadyFinal(QueueError):
    def __init__(self, game_id: int):
        self.game_id = game_id
        super().__init__(f"Game {game_id} is already final")


class CourtInUse(QueueError):
    def __init__(self, court: str, game_id: int):
        self.court = court
        self.game_id = game_id
        super().__init__(f"Court {court} already has game {game_id} in progress")


class NoCourtAvailable(QueueError):
    def __init__(self, number_of_courts: int):
        super().__init__(f"All {number_of_courts} court(s) have a game in progress")


class WindowNotReady(QueueError):
    """Fewer unassigned players than two full teams at the head of the queue."""

    def __init__(self, needed: int, available: int):
        self.needed = needed
        self.available = available
        super().__init__(f"Need {needed} players to start a game, {available} available")


class InvalidMove(QueueError):
    """A player move cannot be applied to the current queue."""


class AutoUpInsertionFailed(QueueError):
    """Re-queueing one auto-up player after a game failed."""

    def __init__(self, user_id: int, cause: Exception):
        self.user_id = user_id
        self.cause = cause
        super().__init__(f"Failed to auto-up user {user_id}: {cause}")
