"""
Timezone utilities for the Clean-Hero backend.
Task dates are calendar dates in the community's local timezone (APP_TIMEZONE).
"""

import datetime
import pytz

from dependencies import APP_TIMEZONE

APP_TZ = pytz.timezone(APP_TIMEZONE)


def get_current_local_datetime() -> datetime.datetime:
    return datetime.datetime.now(APP_TZ)


def get_current_local_date() -> datetime.date:
    return get_current_local_datetime().date()


def format_task_date(date: datetime.date = None) -> str:
    """Formats a task date as YYYY-MM-DD, defaulting to today in APP_TIMEZONE."""
    return (date or get_current_local_date()).isoformat()
