"""Date range presets for the store dashboard."""

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Callable

from .errors import UnknownRangeError, ValidationError
from .models import DateRange

DAY = timedelta(days=1)
# Last representable instant of a day
_END_OF_DAY = DAY - timedelta(microseconds=1)


def _day_start(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def _days_back(days: int, label: str) -> Callable[[datetime], DateRange]:
    def build(now: datetime) -> DateRange:
        today = _day_start(now.date(), now.tzinfo or timezone.utc)
        return DateRange(start=today - days * DAY, end=today + _END_OF_DAY, label=label)

    return build


def _yesterday(now: datetime) -> DateRange:
    yesterday = _day_start(now.date(), now.tzinfo or timezone.utc) - DAY
    return DateRange(start=yesterday, end=yesterday + _END_OF_DAY, label="Ayer")


PRESETS: dict[str, Callable[[datetime], DateRange]] = {
    "today": _days_back(0, "Hoy"),
    "yesterday": _yesterday,
    "last_7_days": _days_back(6, "Últimos 7 días"),
    "last_15_days": _days_back(14, "Últimos 15 días"),
    "last_30_days": _days_back(29, "Últimos 30 días"),
}


def preset_range(name: str, now: datetime | None = None) -> DateRange:
    """
    Resolve a preset name to a concrete range ending today.

    Raises:
        UnknownRangeError: If the name is not a known preset.
    """
    if name not in PRESETS:
        raise UnknownRangeError(name, list(PRESETS))
    return PRESETS[name](now or datetime.now(timezone.utc))


def preset_ranges(now: datetime | None = None) -> dict[str, DateRange]:
    now = now or datetime.now(timezone.utc)
    return {name: build(now) for name, build in PRESETS.items()}


def custom_range(start: date, end: date, tz: tzinfo = timezone.utc) -> DateRange:
    """
    Build a range covering whole days from `start` through `end`.

    Raises:
        ValidationError: If start is after end.
    """
    if start > end:
        raise ValidationError({"range": "start date must not be after end date"})

    return DateRange(
        start=_day_start(start, tz),
        end=_day_start(end, tz) + _END_OF_DAY,
        label=f"{start.strftime('%d/%m/%Y')} - {end.strftime('%d/%m/%Y')}",
    )
