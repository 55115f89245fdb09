"""Display strings derived from ride rows."""

from datetime import datetime, timedelta
from typing import Optional

from ridecrew.modules.rides.presets import parse_timestamp
from ridecrew.modules.rides.schemas import ProfileSummary


def capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


def format_countdown(seconds: int) -> str:
    minutes, secs = divmod(max(seconds, 0), 60)
    return f"{minutes}:{secs:02d}"


def is_tomorrow(moment: datetime, now: datetime) -> bool:
    local = moment.astimezone(now.tzinfo) if now.tzinfo else moment
    return local.date() == (now + timedelta(days=1)).date()


def scheduled_label(preset: Optional[str], start_time, now: datetime) -> str:
    """Capitalized preset ("Lunch"), or HH:MM for custom times, with a "Tomorrow " prefix when due."""
    try:
        start = parse_timestamp(start_time)
    except (TypeError, ValueError):
        return "Invalid time"
    prefix = "Tomorrow " if is_tomorrow(start, now) else ""
    if preset and preset != "custom":
        return prefix + capitalize(preset)
    local = start.astimezone(now.tzinfo) if now.tzinfo else start
    return prefix + local.strftime("%H:%M")


def relative_time(moment, now: datetime) -> str:
    """"just now", "5 minutes ago", "in 2 hours" ..."""
    try:
        then = parse_timestamp(moment)
    except (TypeError, ValueError):
        return ""
    delta = int((now - then).total_seconds())
    future = delta < 0
    delta = abs(delta)
    if delta < 60:
        return "just now"
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if delta >= size:
            count = delta // size
            label = f"{count} {unit}{'' if count == 1 else 's'}"
            return f"in {label}" if future else f"{label} ago"
    return "just now"


def creator_name(creator: Optional[ProfileSummary]) -> str:
    return (creator.first_name if creator else None) or "Someone"


def initials(name: Optional[str]) -> str:
    return name[:1].upper() if name else "?"
