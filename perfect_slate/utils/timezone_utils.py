"""
Timezone utility functions for the Perfect Slate application
"""

from datetime import datetime, timezone

import pytz
from flask import current_app, has_app_context


def get_app_timezone():
    """Get the application's configured display timezone"""
    timezone_name = "America/New_York"
    if has_app_context():
        timezone_name = current_app.config.get("TIMEZONE", timezone_name)
    try:
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        return pytz.UTC


def get_utc_time():
    """Get current time in UTC"""
    return datetime.now(timezone.utc)


def ensure_utc(dt):
    """Return an aware UTC datetime; naive values are assumed to be UTC"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso_datetime(value):
    """Parse provider ISO timestamps such as '2025-09-07T17:00:00Z'"""
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def convert_to_app_timezone(dt):
    """Convert a datetime to the application's timezone"""
    if dt is None:
        return None
    return ensure_utc(dt).astimezone(get_app_timezone())


def format_game_time(dt, format_str="%-I:%M %p %Z"):
    """Format a game start time in the display timezone, e.g. '1:05 PM EDT'"""
    if dt is None:
        return "TBD"

    return convert_to_app_timezone(dt).strftime(format_str)
