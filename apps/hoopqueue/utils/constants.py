"""
Constants used across the queue system.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# Game set defaults (overridable per game set at creation)
DEFAULT_PLAYERS_PER_TEAM = int(os.getenv("DEFAULT_PLAYERS_PER_TEAM", "4"))
DEFAULT_NUMBER_OF_COURTS = int(os.getenv("DEFAULT_NUMBER_OF_COURTS", "2"))
DEFAULT_MAX_CONSECUTIVE_GAMES = int(os.getenv("DEFAULT_MAX_CONSECUTIVE_GAMES", "2"))
DEFAULT_GYM = "fonde"

MIN_PLAYERS_PER_TEAM = 1
MAX_PLAYERS_PER_TEAM = 5

# Team numbers as stored on Checkin.team / GamePlayer.team
HOME_TEAM = 1
AWAY_TEAM = 2

# Setting keys (see services/settings_service.py)
HOME_CHECKOUT_POLICY_KEY = "home_checkout_policy"
AWAY_CHECKOUT_POLICY_KEY = "away_checkout_policy"
TIE_POLICY_KEY = "tie_policy"
STALE_GAME_SET_HOURS_KEY = "stale_game_set_hours"
LOG_LEVEL_KEY = "log_level"

DEFAULT_STALE_GAME_SET_HOURS = 12
