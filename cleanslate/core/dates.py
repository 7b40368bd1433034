"""Calendar-day helpers for appointment dates.

Appointment dates are calendar days. They are stored as ISO text at a fixed
time-of-day (noon) so that a timezone shift of a few hours never moves an
appointment to the neighbouring day.
"""

import calendar
from datetime import UTC, date, datetime, timedelta

from dateutil.parser import isoparse

from cleanslate.core.config import constants
from cleanslate.core.errors import InvalidDateError


def parse_calendar_day(value: str | date | datetime) -> date:
    """Parse user input into a calendar day, ignoring any time-of-day.

    Raises:
        InvalidDateError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return isoparse(value.strip()).date()
    except (ValueError, OverflowError, AttributeError) as e:
        msg = f"Invalid date: {value!r}"
        raise InvalidDateError(msg) from e


def to_stored_date(day: date) -> str:
    """Render a calendar day in its stored (noon-normalized) form."""
    return datetime(day.year, day.month, day.day, constants.APPOINTMENT_NORMALIZED_HOUR).isoformat()


def from_stored_date(value: str) -> date:
    """Extract the calendar day from a stored date."""
    return datetime.fromisoformat(value).date()


def day_bounds(start: date, end: date | None = None) -> tuple[str, str]:
    """Return inclusive ISO bounds covering every stored date from `start` through `end`."""
    last = end or start
    return f"{start.isoformat()}T00:00:00", f"{last.isoformat()}T23:59:59"


def week_days(start: date) -> tuple[date, date]:
    """Return the first and last day of the week starting on `start`."""
    return start, start + timedelta(days=constants.WEEK_LENGTH_DAYS - 1)


def month_days(year: int, month: int) -> tuple[date, date]:
    """Return the first and last day of a month.

    Raises:
        InvalidDateError: If year/month do not name a real month
    """
    try:
        _, last = calendar.monthrange(year, month)
        return date(year, month, 1), date(year, month, last)
    except ValueError as e:
        msg = f"Invalid month: {year}-{month}"
        raise InvalidDateError(msg) from e


def utc_now_iso() -> str:
    """Current UTC timestamp in ISO format with a Z suffix."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")
