"""Named ride time windows and the form options offered when creating a ride."""

from datetime import datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from ridecrew.config import settings

CREATABLE_PRESETS = ("now", "lunch", "afternoon")
DISTANCE_OPTIONS = (30, 50, 100)
BIKE_TYPES = ("road", "mtb", "hybrid", "gravel", "other")

# preset -> (start hour, end hour), local time
_DAY_WINDOWS = {
    "lunch": (12, 14),
    "afternoon": (14, 18),
}


def now_window() -> timedelta:
    return timedelta(minutes=settings.ride_now_window_minutes)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_now(tz_name: Optional[str] = None) -> datetime:
    """Current time in the rider's IANA zone, or in the server's zone when none is given"""
    if tz_name:
        return utc_now().astimezone(ZoneInfo(tz_name))
    return utc_now().astimezone()


def parse_timestamp(value) -> datetime:
    """Parse a backend timestamp (ISO string or datetime). Naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def time_range_for_preset(preset: str, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    Start/end for a preset.

    "now" is [now, now + 30 min]. "lunch" and "afternoon" are fixed local
    windows today, moved to tomorrow when today's start is already past.
    """
    if preset not in CREATABLE_PRESETS:
        raise ValueError(f"Unsupported preset: {preset}")
    now = now or local_now()

    if preset == "now":
        return now, now + now_window()

    start_hour, end_hour = _DAY_WINDOWS[preset]
    day = now.date()
    if datetime.combine(day, time(start_hour), tzinfo=now.tzinfo) < now:
        day += timedelta(days=1)
    # Built from the wall clock so the offset is the one in force on that day
    start = datetime.combine(day, time(start_hour), tzinfo=now.tzinfo)
    end = datetime.combine(day, time(end_hour), tzinfo=now.tzinfo)
    return start, end
