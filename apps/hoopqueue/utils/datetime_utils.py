"""
Datetime utility functions.
Provides replacements for deprecated datetime functions.
"""

import os
from datetime import datetime
import pytz
from dotenv import load_dotenv

load_dotenv()

# Check-in dates are recorded in the gym's local day, not UTC
QUEUE_TIMEZONE = os.getenv("QUEUE_TIMEZONE", "America/Chicago")


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def local_now() -> datetime:
    """Current datetime in the queue's configured timezone."""
    return utcnow().astimezone(pytz.timezone(QUEUE_TIMEZONE))


def local_today() -> str:
    """
    Today's date in the queue's timezone, formatted YYYY-MM-DD.

    This is the value stored in Checkin.check_in_date.
    """
    return local_now().strftime("%Y-%m-%d")
