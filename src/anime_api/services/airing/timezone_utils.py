"""Japan-time helpers and the airing query window.

Storage keeps ``aired``, ``start_date`` and ``end_date`` as naive
``YYYY-MM-DD HH:MM:SS`` strings in Japan local time. These helpers attach the
``Asia/Tokyo`` zone on the way in and strip it on the way out; everything in
between works with aware datetimes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo

JAPAN_TZ = ZoneInfo("Asia/Tokyo")
JAPAN_LOCAL_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_WINDOW_DAYS = 7


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` in UTC, treating naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def start_of_day(value: datetime, tz: tzinfo) -> datetime:
    """Midnight of the calendar day of ``value`` as observed in ``tz``."""
    local = ensure_utc(value).astimezone(tz)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def to_japan_time(value: datetime | None) -> datetime | None:
    """Attach Japan time to a stored wall-clock value.

    Naive values are Japan local time at rest and get the zone attached as-is;
    aware values are converted.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=JAPAN_TZ)
    return value.astimezone(JAPAN_TZ)


def parse_japan_local(value: str | None) -> datetime | None:
    """Parse a stored Japan-local timestamp (or date) string.

    Returns:
        An aware ``Asia/Tokyo`` datetime, or None when the string is empty or unparsable

    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    return to_japan_time(parsed)


def format_japan_local(value: datetime) -> str:
    """Render a datetime as a naive Japan-local storage string."""
    if value.tzinfo is not None:
        value = value.astimezone(JAPAN_TZ)
    return value.strftime(JAPAN_LOCAL_FORMAT)


@dataclass(frozen=True, slots=True)
class AiringWindow:
    """Half-open ``[start, end)`` interval of Japan-local air dates."""

    start: datetime
    end: datetime

    @classmethod
    def from_request(
        cls,
        start: datetime | None = None,
        end: datetime | None = None,
        days: int | None = None,
        now: datetime | None = None,
    ) -> AiringWindow:
        """Build the window for a currently-airing request.

        Args:
            start: Requested start (UTC); defaults to ``now``
            end: Requested end; wins over ``days`` and is used as given (no implicit extra day)
            days: Window length in days from the start of the start day; defaults to 7
            now: Current instant

        Returns:
            Window whose start is midnight Japan time on the start day

        """
        base = start if start is not None else (now or datetime.now(UTC))
        window_start = start_of_day(ensure_utc(base), JAPAN_TZ)
        if end is not None:
            window_end = ensure_utc(end).astimezone(JAPAN_TZ)
        else:
            window_end = window_start + timedelta(days=days if days is not None else DEFAULT_WINDOW_DAYS)
        return cls(window_start, window_end)

    def contains(self, instant: datetime) -> bool:
        return self.start <= ensure_utc(instant) < self.end

    def storage_bounds(self) -> tuple[str, str]:
        """Window bounds as naive Japan-local strings for storage comparisons."""
        return format_japan_local(self.start), format_japan_local(self.end)
