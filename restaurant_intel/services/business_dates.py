"""Date presets and Toast business-date formatting.

Toast filters orders either by a timestamp range (``yyyy-MM-ddTHH:mm:ss.SSS±HHmm``)
or by a compact ``yyyyMMdd`` business date. Both must be computed in the
restaurant's timezone, never in the server's, so every conversion goes through
a ``ZoneInfo`` for the configured location.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import List, Optional, Union
from zoneinfo import ZoneInfo

from restaurant_intel.config.toast_settings import DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)

PRESETS = ("today", "yesterday", "last7days", "lastweek")
BUSINESS_DATE_FORMAT = "%Y%m%d"

DateInput = Union[datetime, date, str]
TimezoneInput = Union[tzinfo, str, None]

_COMPACT_DATE = re.compile(r"^\d{8}$")
_END_OF_DAY = time(23, 59, 59, 999000)


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of aware datetimes in the reference timezone."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError("DateRange start must not be after end.")

    @property
    def is_single_business_day(self) -> bool:
        return is_same_business_day(self.start, self.end, self.start.tzinfo)

    def days(self) -> List[date]:
        """Every local calendar day touched by the range."""

        cursor = self.start.date()
        last = self.end.date()
        days: List[date] = []
        while cursor <= last:
            days.append(cursor)
            cursor += timedelta(days=1)
        return days

    def as_dict(self) -> dict:
        return {
            "start": self.start.date().isoformat(),
            "end": self.end.date().isoformat(),
            "startTimestamp": to_vendor_timestamp(self.start, True, self.start.tzinfo),
            "endTimestamp": to_vendor_timestamp(self.end, False, self.end.tzinfo),
        }


def reference_timezone(tz: TimezoneInput = None) -> tzinfo:
    if isinstance(tz, tzinfo):
        return tz
    return ZoneInfo(tz or DEFAULT_TIMEZONE)


def coerce_datetime(value: DateInput, tz: TimezoneInput = None) -> datetime:
    """Return ``value`` as an aware datetime in the reference timezone.

    Naive datetimes are read as wall-clock time in the reference timezone;
    bare dates become local midnight. Raises ``ValueError`` for anything else.
    """

    zone = reference_timezone(tz)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=zone)
        return value.astimezone(zone)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=zone)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Empty date value.")
        if _COMPACT_DATE.match(text):
            parsed_day = datetime.strptime(text, BUSINESS_DATE_FORMAT).date()
            return datetime.combine(parsed_day, time.min, tzinfo=zone)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        # Toast emits offsets without a colon (-0800).
        text = re.sub(r"([+-]\d{2})(\d{2})$", r"\1:\2", text)
        return coerce_datetime(datetime.fromisoformat(text), zone)
    raise ValueError(f"Unsupported date value: {value!r}")


def parse_date_input(value: Optional[DateInput], tz: TimezoneInput = None) -> Optional[datetime]:
    if value is None or value == "":
        return None
    try:
        return coerce_datetime(value, tz)
    except (TypeError, ValueError):
        return None


def start_of_day(value: DateInput, tz: TimezoneInput = None) -> datetime:
    zone = reference_timezone(tz)
    return datetime.combine(coerce_datetime(value, zone).date(), time.min, tzinfo=zone)


def end_of_day(value: DateInput, tz: TimezoneInput = None) -> datetime:
    zone = reference_timezone(tz)
    return datetime.combine(coerce_datetime(value, zone).date(), _END_OF_DAY, tzinfo=zone)


def current_time(now: Optional[datetime] = None, tz: TimezoneInput = None) -> datetime:
    zone = reference_timezone(tz)
    if now is None:
        return datetime.now(timezone.utc).astimezone(zone)
    return coerce_datetime(now, zone)


def preset_to_range(preset: str, now: Optional[datetime] = None, tz: TimezoneInput = None) -> DateRange:
    """Translate a dashboard preset into a range anchored on ``now``."""

    zone = reference_timezone(tz)
    current = current_time(now, zone)
    today = current.date()
    key = (preset or "").strip().lower()

    if key == "today":
        return DateRange(start_of_day(today, zone), end_of_day(today, zone))
    if key == "yesterday":
        yesterday = today - timedelta(days=1)
        return DateRange(start_of_day(yesterday, zone), end_of_day(yesterday, zone))
    if key == "last7days":
        return DateRange(current - timedelta(days=7), current)
    if key == "lastweek":
        # Sunday-based day of week, as the dashboard computes it.
        day_of_week = (today.weekday() + 1) % 7
        sunday = today - timedelta(days=day_of_week + 7)
        monday = sunday - timedelta(days=6)
        return DateRange(start_of_day(monday, zone), end_of_day(sunday, zone))
    raise ValueError(f"Unknown date preset: {preset!r}")


def resolve_date_range(
    preset: Optional[str] = None,
    start_date: Optional[DateInput] = None,
    end_date: Optional[DateInput] = None,
    *,
    now: Optional[datetime] = None,
    tz: TimezoneInput = None,
) -> DateRange:
    """Resolve caller input into a range; bad input degrades to ``today``."""

    zone = reference_timezone(tz)
    if start_date or end_date:
        start_value = parse_date_input(start_date, zone)
        end_value = parse_date_input(end_date, zone)
        if start_value is None and end_value is None:
            logger.warning("Unparseable date range %r..%r, falling back to today", start_date, end_date)
            return preset_to_range("today", now, zone)
        if start_value is None or end_value is None:
            bad = start_date if start_value is None else end_date
            if bad:
                logger.warning("Unparseable date %r, using a single-day range", bad)
        start_value = start_value or end_value
        end_value = end_value or start_value
        if start_value > end_value:
            start_value, end_value = end_value, start_value
        return DateRange(start_of_day(start_value, zone), end_of_day(end_value, zone))

    if preset:
        try:
            return preset_to_range(preset, now, zone)
        except ValueError:
            logger.warning("Unknown date preset %r, falling back to today", preset)
    return preset_to_range("today", now, zone)


def to_vendor_timestamp(value: DateInput, is_start_of_day: bool = True, tz: TimezoneInput = None) -> str:
    """Format as ``yyyy-MM-ddTHH:mm:ss.SSS±HHmm`` at the start or end of the local day."""

    zone = reference_timezone(tz)
    snapped = start_of_day(value, zone) if is_start_of_day else end_of_day(value, zone)
    offset = snapped.utcoffset() or timedelta(0)
    total_minutes = int(offset.total_seconds() // 60)
    sign = "+" if total_minutes >= 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    millis = snapped.microsecond // 1000
    return f"{snapped.strftime('%Y-%m-%dT%H:%M:%S')}.{millis:03d}{sign}{hours:02d}{minutes:02d}"


def to_business_date(value: DateInput, tz: TimezoneInput = None) -> str:
    return coerce_datetime(value, tz).strftime(BUSINESS_DATE_FORMAT)


def parse_business_date(value: Union[int, str, None]) -> Optional[date]:
    """Read Toast's integer/compact ``businessDate`` field."""

    if value is None:
        return None
    text = str(value).strip()
    if not _COMPACT_DATE.match(text):
        return None
    try:
        return datetime.strptime(text, BUSINESS_DATE_FORMAT).date()
    except ValueError:
        return None


def is_same_business_day(start: DateInput, end: DateInput, tz: TimezoneInput = None) -> bool:
    zone = reference_timezone(tz)
    return coerce_datetime(start, zone).date() == coerce_datetime(end, zone).date()


__all__ = [
    "DateRange",
    "PRESETS",
    "coerce_datetime",
    "is_same_business_day",
    "parse_business_date",
    "parse_date_input",
    "preset_to_range",
    "resolve_date_range",
    "to_business_date",
    "to_vendor_timestamp",
]
