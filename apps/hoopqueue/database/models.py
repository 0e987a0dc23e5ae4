"""
SQLAlchemy ORM models for the pickup basketball queue.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from hoopqueue.database.db import Base


class CheckinType(str, enum.Enum):
    """How a check-in row entered (or last moved within) the queue."""

    MANUAL = "manual"
    AUTOUP = "autoup"
    WIN_PROMOTED = "win_promoted"
    LOSS_PROMOTED = "loss_promoted"
    BUMP = "bump"
    CHECKOUT = "checkout"
    SWAP = "swap"


class GameState(str, enum.Enum):
    """Game state enum."""

    STARTED = "started"
    FINAL = "final"


class User(Base):
    """Players and organizers known to the queue."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, nullable=False, unique=True)
    autoup = Column(Boolean, default=False, nullable=False)  # Re-queue automatically after a game
    is_player = Column(Boolean, default=True, nullable=False)
    birth_year = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    checkins = relationship("Checkin", back_populates="user")


class GameSet(Base):
    """
    A session of pickup games at a gym.

    current_queue_position is the first position of the HOME/AWAY window
    being assembled; queue_next_up is the position the next appended
    check-in receives.
    """

    __tablename__ = "game_sets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    gym = Column(String, nullable=False, default="fonde")
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    players_per_team = Column(Integer, nullable=False, default=4)
    number_of_courts = Column(Integer, nullable=False, default=2)
    max_consecutive_games = Column(Integer, nullable=False, default=2)
    current_queue_position = Column(Integer, nullable=False, default=1)
    queue_next_up = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    creator = relationship("User", foreign_keys=[created_by])
    games = relationship("Game", back_populates="game_set")

    __table_args__ = (
        CheckConstraint(
            "players_per_team >= 1 AND players_per_team <= 5", name="ck_game_sets_players_per_team"
        ),
        CheckConstraint("number_of_courts >= 1", name="ck_game_sets_number_of_courts"),
        CheckConstraint("max_consecutive_games >= 1", name="ck_game_sets_max_consecutive_games"),
        Index("idx_game_sets_is_active", "is_active"),
    )


class Checkin(Base):
    """
    One queue entry of a user in a game set.

    Rows are deactivated, never deleted. Positions of active rows in the same
    game set are unique; that is enforced by the ledger rather than a
    constraint because shifts pass through duplicate states mid-update.
    """

    __tablename__ = "checkins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    game_set_id = Column(Integer, ForeignKey("game_sets.id"), nullable=False)
    check_in_date = Column(String, nullable=False)  # YYYY-MM-DD in the queue's local timezone
    check_in_time = Column(DateTime(timezone=True), server_default=func.now())
    queue_position = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=True)
    team = Column(Integer, nullable=True)  # 1 = HOME, 2 = AWAY
    type = Column(Enum(CheckinType), default=CheckinType.MANUAL, nullable=False)

    # Relationships
    user = relationship("User", back_populates="checkins")
    game = relationship("Game")

    __table_args__ = (
        CheckConstraint("team IS NULL OR team IN (1, 2)", name="ck_checkins_team"),
        Index("idx_checkins_set_active_position", "game_set_id", "is_active", "queue_position"),
        Index("idx_checkins_user_active", "user_id", "is_active"),
        Index("idx_checkins_game_id", "game_id"),
    )


class Game(Base):
    """A game played on one court of a game set."""

    __tablename__ = "games"

    id = Column(Integer, primary_key=True, autoincrement=True)
    set_id = Column(Integer, ForeignKey("game_sets.id"), nullable=False)
    court = Column(String, nullable=False)
    state = Column(Enum(GameState), default=GameState.STARTED, nullable=False)
    team1_score = Column(Integer, nullable=True)
    team2_score = Column(Integer, nullable=True)
    start_time = Column(DateTime(timezone=True), server_default=func.now())
    end_time = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    game_set = relationship("GameSet", back_populates="games")
    players = relationship(
        "GamePlayer", back_populates="game", order_by="GamePlayer.relative_position"
    )

    __table_args__ = (
        Index("idx_games_set_court_state", "set_id", "court", "state"),
    )


class GamePlayer(Base):
    """
    Durable roster entry of a game.

    Survives deactivation of the player's check-in and is what promotion and
    auto-up read after the game finalizes.
    """

    __tablename__ = "game_players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    team = Column(Integer, nullable=False)
    relative_position = Column(Integer, nullable=False)  # Queue position when the game started
    checked_out = Column(Boolean, default=False, nullable=False)

    # Relationships
    game = relationship("Game", back_populates="players")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("game_id", "user_id", name="uq_game_players_game_user"),
        Index("idx_game_players_game_id", "game_id"),
    )


class Setting(Base):
    """Application configuration."""

    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
