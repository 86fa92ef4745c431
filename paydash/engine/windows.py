"""
Window resolution for request parameters.

Turns optional date pairs and shorthand ranges ("7d", "30d", "all", "14")
into TimeWindows. All validation raises before any store access.
"""

from datetime import date, datetime
from typing import Optional

from paydash.config import get_settings
from paydash.errors import InvalidParameter, InvalidRange
from paydash.models.analytics import TimeWindow

NAMED_RANGES = {"7d": 7, "30d": 30, "90d": 90, "all": 0}


def check_period_days(days: int, name: str = "period_days") -> int:
    """
    Validate a day count against 1..max_period_days.

    Raises:
        InvalidParameter: days outside the allowed range
    """
    limit = get_settings().max_period_days
    if days < 1 or days > limit:
        raise InvalidParameter(f"{name} must be between 1 and {limit}, got {days}")
    return days


def all_time(now: Optional[datetime] = None) -> TimeWindow:
    """Everything from the configured all-time start up to now."""
    return TimeWindow(start=get_settings().all_time_start, end=now or datetime.utcnow())


def parse_range(range_value: Optional[str], now: Optional[datetime] = None) -> TimeWindow:
    """
    Window for a shorthand range.

    Accepts "7d", "30d", "90d", "all" or a bare day count; "0" and "all"
    mean all time. Defaults to "7d".

    Raises:
        InvalidParameter: unparseable, negative or over-long range
    """
    value = (range_value or "7d").strip().lower()
    if value in NAMED_RANGES:
        days = NAMED_RANGES[value]
    else:
        try:
            days = int(value.rstrip("d"))
        except ValueError:
            raise InvalidParameter(
                f"range must be one of {sorted(NAMED_RANGES)} or a number of days, got {range_value!r}"
            )
        if days < 0:
            raise InvalidParameter(f"range cannot be negative, got {days}")

    if days == 0:
        return all_time(now)
    return TimeWindow.trailing_days(check_period_days(days, "range"), now=now)


def resolve_window(
    start_date: Optional[date],
    end_date: Optional[date],
    default_days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> TimeWindow:
    """
    Window from an optional start/end date pair.

    Both dates given: whole calendar days. Otherwise the trailing
    ``default_days`` (all time when None).

    Raises:
        InvalidRange: start_date after end_date
        InvalidParameter: only one of the two dates given
    """
    if start_date and end_date:
        return TimeWindow.from_dates(start_date, end_date)
    if start_date or end_date:
        raise InvalidParameter("start_date and end_date must be provided together")
    if default_days is None:
        return all_time(now)
    return TimeWindow.trailing_days(default_days, now=now)


def require_dates(start_date: Optional[date], end_date: Optional[date]) -> TimeWindow:
    """Window for endpoints where both dates are mandatory."""
    if not start_date or not end_date:
        raise InvalidParameter("start_date and end_date are required")
    if start_date > end_date:
        raise InvalidRange(
            f"start_date {start_date.isoformat()} is after end_date {end_date.isoformat()}"
        )
    return TimeWindow.from_dates(start_date, end_date)
