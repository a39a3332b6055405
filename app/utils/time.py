"""Time utilities for market session handling and backfill intervals."""
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple
import pytz

from app.core.config import settings


def parse_time_label(label: str) -> Tuple[int, int]:
    """
    Parse an HH:MM label.

    Args:
        label: Time of day such as "09:15" or "9:5"

    Returns:
        (hour, minute) tuple

    Raises:
        ValueError: If the label is not a valid time of day
    """
    try:
        hour_str, minute_str = label.strip().split(":")
        hour, minute = int(hour_str), int(minute_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid time label: {label!r}")

    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid time label: {label!r}")
    return hour, minute


def format_time_label(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


def market_now(timezone_str: Optional[str] = None) -> datetime:
    """
    Get current time in the exchange timezone.

    Args:
        timezone_str: Timezone name (default: settings.market_timezone)

    Returns:
        Current timezone-aware datetime
    """
    tz = pytz.timezone(timezone_str or settings.market_timezone)
    return datetime.now(tz)


def market_today(timezone_str: Optional[str] = None) -> date:
    """Get today's date in the exchange timezone."""
    return market_now(timezone_str).date()


def _minutes(label: str) -> int:
    hour, minute = parse_time_label(label)
    return hour * 60 + minute


def is_post_market(now: datetime, close: Optional[str] = None) -> bool:
    """Check whether ``now`` is at or after the market close."""
    return now.hour * 60 + now.minute >= _minutes(close or settings.market_close)


def live_cutoff_time(now: datetime, open_: Optional[str] = None, close: Optional[str] = None) -> str:
    """
    Get the HH:MM cutoff for a live snapshot request.

    Outside the session (after close or before open) the closing snapshot
    is requested, otherwise the current minute.
    """
    close = close or settings.market_close
    current = now.hour * 60 + now.minute
    if current >= _minutes(close) or current < _minutes(open_ or settings.market_open):
        return format_time_label(*parse_time_label(close))
    return format_time_label(now.hour, now.minute)


def backfill_end_time(now: datetime, close: Optional[str] = None) -> str:
    """
    Get the last interval label for a backfill run.

    Post-market this is the close; otherwise the current minute, so that
    no future interval is requested.
    """
    close = close or settings.market_close
    if is_post_market(now, close):
        return format_time_label(*parse_time_label(close))
    return format_time_label(now.hour, now.minute)


def generate_time_intervals(
    start_time: str = "09:15",
    end_time: str = "15:30",
    interval_minutes: int = 15
) -> List[str]:
    """
    Generate HH:MM labels from start to end (inclusive) at a fixed step.

    Args:
        start_time: First label
        end_time: Last allowed label
        interval_minutes: Step between labels

    Returns:
        Labels in ascending order, empty when end precedes start
    """
    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be positive")

    anchor = datetime(2000, 1, 1)
    current = anchor + timedelta(minutes=_minutes(start_time))
    end = anchor + timedelta(minutes=_minutes(end_time))

    times = []
    while current <= end:
        times.append(format_time_label(current.hour, current.minute))
        current += timedelta(minutes=interval_minutes)
    return times
