from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date

import config
from models.errors import ValidationError


@dataclass(frozen=True)
class DailyObservation:
    """One calendar day of POWER measurements at a fixed point.

    Every measurement is either a finite float or None (absent).
    """

    date: str  # YYYYMMDD
    temperature_c: float | None = None  # T2M
    relative_humidity_pct: float | None = None  # RH2M
    wind_speed_mps: float | None = None  # WS2M
    precipitation_mm_per_day: float | None = None  # PRECTOTCORR

    def __post_init__(self) -> None:
        if not (isinstance(self.date, str) and len(self.date) == 8 and self.date.isdigit()):
            raise ValidationError(f"not a YYYYMMDD date: {self.date!r}", field="date")
        try:
            self.calendar_date
        except ValueError as exc:
            raise ValidationError(f"not a YYYYMMDD date: {self.date!r}", field="date") from exc

    @property
    def month(self) -> int:
        return int(self.date[4:6])

    @property
    def day(self) -> int:
        return int(self.date[6:8])

    @property
    def calendar_date(self) -> date:
        return date(int(self.date[:4]), self.month, self.day)


@dataclass(frozen=True)
class Location:
    """A point of interest as supplied by geocoding or the map."""

    lat: float
    lng: float
    name: str = ""


@dataclass(frozen=True)
class QueryWindow:
    """A probability request: point location + target date + ±window."""

    latitude: float
    longitude: float
    target_month: int
    target_day: int
    window_days: int = config.DEFAULT_WINDOW_DAYS

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValidationError(f"latitude out of range: {self.latitude}", field="latitude")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValidationError(f"longitude out of range: {self.longitude}", field="longitude")
        validate_target(self.target_month, self.target_day, self.window_days)


def validate_target(month: int, day: int, window_days: int) -> None:
    """Reject impossible calendar dates and negative windows.

    Feb 29 is accepted; every other day must exist in its month.
    """
    if isinstance(month, bool) or not isinstance(month, int) or not 1 <= month <= 12:
        raise ValidationError(f"target month must be 1..12, got {month!r}", field="target_month")
    # 2000 is a leap year so Feb 29 passes
    days_in_month = calendar.monthrange(2000, month)[1]
    if isinstance(day, bool) or not isinstance(day, int) or not 1 <= day <= days_in_month:
        raise ValidationError(
            f"target day must be 1..{days_in_month} for month {month}, got {day!r}",
            field="target_day",
        )
    if isinstance(window_days, bool) or not isinstance(window_days, int) or window_days < 0:
        raise ValidationError(
            f"window days must be a non-negative integer, got {window_days!r}",
            field="window_days",
        )
