"""
Pydantic models for API request/response validation.
"""

from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from hoopqueue.services.player_moves import MoveType
from hoopqueue.utils.constants import (
    DEFAULT_GYM,
    DEFAULT_PLAYERS_PER_TEAM,
    DEFAULT_NUMBER_OF_COURTS,
    DEFAULT_MAX_CONSECUTIVE_GAMES,
    MIN_PLAYERS_PER_TEAM,
    MAX_PLAYERS_PER_TEAM,
)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request to create a user."""

    username: str = Field(..., min_length=1, max_length=64)
    autoup: bool = False
    is_player: bool = True
    birth_year: Optional[int] = Field(default=None, ge=1900, le=2100)


class UserResponse(BaseModel):
    id: int
    username: str
    autoup: bool
    is_player: bool
    birth_year: Optional[int] = None


class AutoupUpdate(BaseModel):
    autoup: bool


# ---------------------------------------------------------------------------
# Game sets
# ---------------------------------------------------------------------------


class GameSetCreate(BaseModel):
    """Request to start a new game set; the previous active set is closed."""

    gym: str = DEFAULT_GYM
    players_per_team: int = Field(
        default=DEFAULT_PLAYERS_PER_TEAM, ge=MIN_PLAYERS_PER_TEAM, le=MAX_PLAYERS_PER_TEAM
    )
    number_of_courts: int = Field(default=DEFAULT_NUMBER_OF_COURTS, ge=1)
    max_consecutive_games: int = Field(default=DEFAULT_MAX_CONSECUTIVE_GAMES, ge=1)
    created_by: Optional[int] = None


class GameSetResponse(BaseModel):
    id: int
    gym: str
    players_per_team: int
    number_of_courts: int
    max_consecutive_games: int
    current_queue_position: int
    queue_next_up: int
    is_active: bool
    created_by: Optional[int] = None
    created_at: Optional[str] = None


class QueueEntryResponse(BaseModel):
    """One row of the queue snapshot."""

    user_id: int
    username: Optional[str] = None
    position: int
    role: str
    team: Optional[int] = None
    type: Optional[str] = None
    game_id: Optional[int] = None


# ---------------------------------------------------------------------------
# Check-ins
# ---------------------------------------------------------------------------


class CheckinRequest(BaseModel):
    user_id: int


class CheckinResponse(BaseModel):
    id: int
    user_id: int
    game_set_id: int
    check_in_date: str
    queue_position: int
    is_active: bool
    game_id: Optional[int] = None
    team: Optional[int] = None
    type: Optional[str] = None
    created: bool = True


class ReplacementResponse(BaseModel):
    user_id: int
    checkin_id: int
    from_position: int
    to_position: int


class CheckoutResponse(BaseModel):
    user_id: int
    checkin_id: int
    role: str
    vacated_position: int
    game_id: Optional[int] = None
    team: Optional[int] = None
    replacement: Optional[ReplacementResponse] = None
    short_handed: bool = False
    queue_next_up: int


class CheckInAllResponse(BaseModel):
    checked_in: List[int]
    failed: List[dict]


class PlayerMoveRequest(BaseModel):
    user_id: int
    move: MoveType


class MovedCheckin(BaseModel):
    user_id: int
    queue_position: int
    game_id: Optional[int] = None
    team: Optional[int] = None


class PlayerMoveResponse(BaseModel):
    move: str
    moved: List[MovedCheckin]


# ---------------------------------------------------------------------------
# Games
# ---------------------------------------------------------------------------


class GameStartRequest(BaseModel):
    """Request to start the next game from the head of the queue."""

    court: Optional[str] = None
    swap: bool = False


class GameCreateRequest(BaseModel):
    court: str


class GameFinalizeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    team1_score: int = Field(..., ge=0, alias="team1Score")
    team2_score: int = Field(..., ge=0, alias="team2Score")


class GamePlayerResponse(BaseModel):
    user_id: int
    username: Optional[str] = None
    team: int
    relative_position: int
    checked_out: bool = False


class GameResponse(BaseModel):
    id: int
    set_id: int
    court: str
    state: str
    team1_score: Optional[int] = None
    team2_score: Optional[int] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    players: List[GamePlayerResponse] = []


class ProposedPlayer(BaseModel):
    user_id: int
    queue_position: int


class GameProposalResponse(BaseModel):
    court: str
    home: List[ProposedPlayer]
    away: List[ProposedPlayer]


class PromotionResponse(BaseModel):
    type: str
    team: int
    consecutive_wins: int
    user_ids: List[int]


class AutoUpResponse(BaseModel):
    user_id: int
    queue_position: int


class FinalizeResponse(BaseModel):
    game: GameResponse
    promotion: Optional[PromotionResponse] = None
    auto_up: List[AutoUpResponse] = []
    auto_up_failures: List[dict] = []
    current_queue_position: int
    queue_next_up: int


class GameSetStatusResponse(BaseModel):
    game_set: GameSetResponse
    active_games: List[GameResponse]
    next_up: List[QueueEntryResponse]
    window: List[QueueEntryResponse]
    completed_games: int
