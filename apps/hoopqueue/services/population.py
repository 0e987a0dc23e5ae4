"""
Game population state machine.

Turns the head of the queue into a game proposal:

    WAITING_FOR_PLAYERS -> TEAM_ASSIGNMENT -> COURT_SELECTION -> GAME_CREATION -> COMPLETE

Team assignment is positional. Rows that already carry a team (a promoted
team re-inserted at the head of the queue) keep it; the rest fill HOME first,
then AWAY.
"""

import enum
import logging
from typing import Dict, List, Mapping, Optional, Sequence

from hoopqueue.services.errors import (
    CourtInUse,
    NoCourtAvailable,
    QueueError,
    WindowNotReady,
)
from hoopqueue.utils.constants import HOME_TEAM, AWAY_TEAM

logger = logging.getLogger(__name__)


class PopulationState(str, enum.Enum):
    WAITING_FOR_PLAYERS = "WAITING_FOR_PLAYERS"
    TEAM_ASSIGNMENT = "TEAM_ASSIGNMENT"
    COURT_SELECTION = "COURT_SELECTION"
    GAME_CREATION = "GAME_CREATION"
    COMPLETE = "COMPLETE"


def court_names(number_of_courts: int) -> List[str]:
    """Courts of a game set are named "1" .. str(number_of_courts)."""
    return [str(n) for n in range(1, number_of_courts + 1)]


class GamePopulation:
    """
    One pass of assembling a game from the queue window.

    Args:
        players_per_team: Team size
        number_of_courts: Courts available to the game set
        requested_court: Court to use; the first free court when omitted
        swap: Exchange the HOME and AWAY rosters after assignment
    """

    def __init__(
        self,
        players_per_team: int,
        number_of_courts: int,
        requested_court: Optional[str] = None,
        swap: bool = False,
    ):
        self.players_per_team = players_per_team
        self.number_of_courts = number_of_courts
        self.requested_court = requested_court
        self.swap = swap

        self.state = PopulationState.WAITING_FOR_PLAYERS
        self.players: List = []
        self.home: List = []
        self.away: List = []
        self.court: Optional[str] = None

    @property
    def players_needed(self) -> int:
        return 2 * self.players_per_team

    def add_players(self, checkins: Sequence) -> PopulationState:
        """Collect window check-ins; advances once two full teams are present."""
        self._expect(PopulationState.WAITING_FOR_PLAYERS)
        self.players = list(checkins)[: self.players_needed]
        if len(self.players) >= self.players_needed:
            self.state = PopulationState.TEAM_ASSIGNMENT
        return self.state

    def assign_teams(self) -> PopulationState:
        self._expect(PopulationState.TEAM_ASSIGNMENT)
        home: List = []
        away: List = []
        unassigned: List = []

        for checkin in self.players:
            if checkin.team == HOME_TEAM and len(home) < self.players_per_team:
                home.append(checkin)
            elif checkin.team == AWAY_TEAM and len(away) < self.players_per_team:
                away.append(checkin)
            else:
                unassigned.append(checkin)

        for checkin in unassigned:
            if len(home) < self.players_per_team:
                home.append(checkin)
            else:
                away.append(checkin)

        if self.swap:
            home, away = away, home

        self.home = sorted(home, key=lambda c: c.queue_position)
        self.away = sorted(away, key=lambda c: c.queue_position)
        self.state = PopulationState.COURT_SELECTION
        return self.state

    def select_court(self, busy_courts: Mapping[str, int]) -> PopulationState:
        """
        Pick the court for the game.

        Args:
            busy_courts: Courts with a started game, mapped to that game's id
        """
        self._expect(PopulationState.COURT_SELECTION)
        if len(busy_courts) >= self.number_of_courts:
            raise NoCourtAvailable(self.number_of_courts)

        if self.requested_court is not None:
            court = str(self.requested_court)
            if court not in court_names(self.number_of_courts):
                raise QueueError(f"Court {court} does not exist (courts 1-{self.number_of_courts})")
            if court in busy_courts:
                raise CourtInUse(court, busy_courts[court])
            self.court = court
        else:
            self.court = next(c for c in court_names(self.number_of_courts) if c not in busy_courts)

        self.state = PopulationState.GAME_CREATION
        return self.state

    def validate(self) -> PopulationState:
        self._expect(PopulationState.GAME_CREATION)
        if not self.home or len(self.home) != len(self.away):
            raise QueueError(
                f"Teams must be the same non-empty size (home {len(self.home)}, away {len(self.away)})"
            )
        if self.court is None:
            raise QueueError("No court selected")
        self.state = PopulationState.COMPLETE
        return self.state

    def run(self, window: Sequence, busy_courts: Mapping[str, int]) -> Dict:
        """
        Drive the machine from WAITING_FOR_PLAYERS to COMPLETE.

        Raises:
            WindowNotReady: Fewer than two full teams are waiting
            NoCourtAvailable / CourtInUse: No usable court
        """
        if self.add_players(window) == PopulationState.WAITING_FOR_PLAYERS:
            raise WindowNotReady(self.players_needed, len(self.players))
        self.assign_teams()
        self.select_court(busy_courts)
        self.validate()
        logger.debug(
            f"Proposed game on court {self.court}: home {[c.user_id for c in self.home]}, "
            f"away {[c.user_id for c in self.away]}"
        )
        return {"court": self.court, "home": self.home, "away": self.away, "state": self.state}

    def _expect(self, state: PopulationState) -> None:
        if self.state != state:
            raise QueueError(f"Population is in state {self.state.value}, expected {state.value}")
