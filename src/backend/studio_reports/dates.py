from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, List, Mapping, Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Europe/Istanbul"
WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
MONTH_WEEK_BUCKETS = 4


def coerce_timezone(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def _localize(dt: datetime, tz: ZoneInfo) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


# ---------------------------------------------------------------------------
# Date values as they arrive from the document store
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Instant:
    value: datetime


@dataclass(frozen=True)
class IsoString:
    value: str


@dataclass(frozen=True)
class EpochMillis:
    value: float


@dataclass(frozen=True)
class LegacyTimestamp:
    """Server timestamp exported by the hosted store (``seconds`` + ``nanoseconds``)."""

    seconds: int
    nanoseconds: int = 0


DateValue = Union[Instant, IsoString, EpochMillis, LegacyTimestamp]


def _legacy_timestamp(raw: Mapping[str, Any]) -> Optional[LegacyTimestamp]:
    for seconds_key, nanos_key in (("seconds", "nanoseconds"), ("_seconds", "_nanoseconds")):
        if seconds_key not in raw:
            continue
        try:
            return LegacyTimestamp(seconds=int(raw[seconds_key]), nanoseconds=int(raw.get(nanos_key) or 0))
        except (TypeError, ValueError, OverflowError):
            return None
    return None


def to_date_value(raw: Any) -> Optional[DateValue]:
    """
    Classify a raw document field into one of the ``DateValue`` variants.

    Returns ``None`` for empty or unrecognised values so the field is treated as
    absent by every aggregator.
    """

    if raw is None or raw == "":
        return None
    if isinstance(raw, (Instant, IsoString, EpochMillis, LegacyTimestamp)):
        return raw
    if isinstance(raw, datetime):
        return Instant(raw)
    if isinstance(raw, date):
        return Instant(datetime(raw.year, raw.month, raw.day))
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        try:
            return EpochMillis(float(raw))
        except OverflowError:
            return None
    if isinstance(raw, str):
        return IsoString(raw.strip())
    if isinstance(raw, Mapping):
        return _legacy_timestamp(raw)
    return None


def _parse_iso(text: str, tz: ZoneInfo) -> Optional[datetime]:
    if not text:
        return None
    candidate = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        try:
            parsed = datetime.combine(date.fromisoformat(candidate[:10]), datetime.min.time())
        except ValueError:
            return None
    return _localize(parsed, tz)


def normalize_date(value: Optional[DateValue], tz: ZoneInfo) -> Optional[datetime]:
    """Convert any ``DateValue`` into an aware datetime in ``tz``."""

    if value is None:
        return None
    try:
        if isinstance(value, Instant):
            return _localize(value.value, tz)
        if isinstance(value, IsoString):
            return _parse_iso(value.value, tz)
        if isinstance(value, EpochMillis):
            return datetime.fromtimestamp(value.value / 1000, tz=timezone.utc).astimezone(tz)
        if isinstance(value, LegacyTimestamp):
            seconds = value.seconds + value.nanoseconds / 1_000_000_000
            return datetime.fromtimestamp(seconds, tz=timezone.utc).astimezone(tz)
    except (OverflowError, OSError, ValueError):
        logger.debug("Discarding out-of-range date value %r", value)
        return None
    return None


def parse_date(raw: Any, tz: ZoneInfo) -> Optional[datetime]:
    return normalize_date(to_date_value(raw), tz)


# ---------------------------------------------------------------------------
# Calendar windows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeWindow:
    """
    Calendar boundaries around a reference instant.

    All ``*_end`` values are exclusive. Weeks start on Monday 00:00 local time.
    """

    now: datetime
    day_start: datetime
    day_end: datetime
    week_start: datetime
    week_end: datetime
    month_start: datetime
    month_end: datetime


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def add_days(dt: datetime, days: int) -> datetime:
    # Calendar arithmetic on wall-clock time so DST shifts never move midnight.
    shifted = dt.replace(tzinfo=None) + timedelta(days=days)
    return shifted.replace(tzinfo=dt.tzinfo)


def weekday_index(dt: datetime) -> int:
    """Monday=0 .. Sunday=6."""

    return dt.weekday()


def weekday_index_from_sunday_based(day: int) -> int:
    """Map a Sunday=0 day number onto the Monday=0 scale."""

    return (day + 6) % 7


def weekday_name(dt: datetime) -> str:
    return WEEKDAY_NAMES[weekday_index(dt)]


def next_month_start(dt: datetime) -> datetime:
    if dt.month == 12:
        return dt.replace(year=dt.year + 1, month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    return dt.replace(month=dt.month + 1, day=1, hour=0, minute=0, second=0, microsecond=0)


def localize_now(now: datetime, tz: Optional[ZoneInfo] = None) -> datetime:
    """Aware reference instant; naive values are read in ``tz`` (or the default zone)."""

    if tz is not None:
        return _localize(now, tz)
    if now.tzinfo is None:
        return now.replace(tzinfo=coerce_timezone(None))
    return now


def compute_time_window(now: datetime, tz: Optional[ZoneInfo] = None) -> TimeWindow:
    local_now = localize_now(now, tz)
    day_start = start_of_day(local_now)
    week_start = add_days(day_start, -weekday_index(day_start))
    month_start = day_start.replace(day=1)
    return TimeWindow(
        now=local_now,
        day_start=day_start,
        day_end=add_days(day_start, 1),
        week_start=week_start,
        week_end=add_days(week_start, 7),
        month_start=month_start,
        month_end=next_month_start(month_start),
    )


def sunday_week_start(now: datetime) -> datetime:
    """Start of the Sunday-based week containing ``now``."""

    day_start = start_of_day(now)
    days_since_sunday = (weekday_index(day_start) + 1) % 7
    return add_days(day_start, -days_since_sunday)


def month_week_buckets(now: datetime) -> List[Tuple[datetime, datetime]]:
    """
    Split the month of ``now`` into exactly four week-of-month ranges.

    Buckets start on days 1, 8, 15 and 22; the last one runs to the end of the
    month so days 29-31 are never lost.
    """

    window = compute_time_window(now)
    buckets: List[Tuple[datetime, datetime]] = []
    for index in range(MONTH_WEEK_BUCKETS):
        start = add_days(window.month_start, index * 7)
        end = add_days(start, 7) if index < MONTH_WEEK_BUCKETS - 1 else window.month_end
        buckets.append((start, end))
    return buckets


def days_between_ceil(target: datetime, reference: datetime) -> int:
    """Ceiling of ``(target - reference)`` measured in whole days."""

    delta = target - reference
    total_micro = (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
    day_micro = 86_400 * 1_000_000
    return -((-total_micro) // day_micro)
