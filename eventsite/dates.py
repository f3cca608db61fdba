from datetime import datetime, timezone

import pytz

from eventsite.settings import DISPLAY_TIMEZONE

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def to_display_tz(dt: datetime) -> datetime:
    """Convert to the community's display timezone, treating naive values as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(pytz.timezone(DISPLAY_TIMEZONE))


def format_event_start(dt: datetime) -> str:
    """e.g. ``2026/02/06 (Fri) 10:00``"""
    local = to_display_tz(dt)
    return f"{local:%Y/%m/%d} ({_WEEKDAYS[local.weekday()]}) {local:%H:%M}"
