"""
Probability Engine — empirical odds of extreme weather around a calendar date.

Pipeline:
  1. Map the target month/day to a day-of-year on a fixed non-leap year
  2. Map every observation the same way (its own year is ignored)
  3. Keep observations whose circular DOY distance is within ±window_days
  4. For each condition, count hits among rows that have the required fields

Pure and synchronous: no I/O, no hidden state, same input → same report.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Callable, Iterable, Mapping, Union

import numpy as np

import config
from models.errors import ValidationError
from models.observation import DailyObservation, validate_target
from models.report import CONDITION_KEYS, ConditionResult, DailyBreakdown, ProbabilityReport

logger = logging.getLogger("power_odds.engine")

Predicate = Callable[[DailyObservation], bool]

# Days before the 1st of each month in the reference year.
# Feb 29 lands on 60, the same ordinal as Mar 1.
_DAYS_IN_MONTH = np.array([31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31])
_MONTH_OFFSETS = np.concatenate(([0], np.cumsum(_DAYS_IN_MONTH)[:-1]))


# ── Day-of-year ring ──────────────────────────────────────────────────────────


def day_of_year(month: int, day: int) -> int:
    """Ordinal 1..365 of month/day in the non-leap reference year."""
    validate_target(month, day, 0)
    return int(_MONTH_OFFSETS[month - 1]) + day


def circular_distance(a: int, b: int, period: int = config.DAYS_IN_REFERENCE_YEAR) -> int:
    """Shortest distance between two ordinals on a ring of *period* days."""
    raw = abs(a - b)
    return min(raw, period - raw)


def window_from_date_range(start: date, end: date) -> tuple[int, int, int]:
    """
    Convert a calendar selection into (target_month, target_day, window_days).

    The midpoint of the selection becomes the target and the window is half
    the selection length, so Jun 13..Jun 17 → (6, 15, 2).
    """
    if end < start:
        raise ValidationError(f"range end {end} is before start {start}", field="end")
    span = (end - start).days
    middle = start + timedelta(days=span // 2)
    return middle.month, middle.day, (span + 1) // 2


# ── Conditions ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Condition:
    """A named weather condition and the fields it needs to be evaluated."""

    key: str
    label: str
    description: str
    fields: tuple[str, ...]
    predicate: Predicate

    def applies_to(self, obs: DailyObservation) -> bool:
        """True when every required field is present on *obs*."""
        return all(getattr(obs, name) is not None for name in self.fields)


DEFAULT_CONDITIONS: dict[str, Condition] = {
    "very_hot": Condition(
        key="very_hot",
        label="Very Hot",
        description=f"T > {config.VERY_HOT_C:g}°C",
        fields=("temperature_c",),
        predicate=lambda r: r.temperature_c > config.VERY_HOT_C,
    ),
    "very_cold": Condition(
        key="very_cold",
        label="Very Cold",
        description=f"T < {config.VERY_COLD_C:g}°C",
        fields=("temperature_c",),
        predicate=lambda r: r.temperature_c < config.VERY_COLD_C,
    ),
    "very_wet": Condition(
        key="very_wet",
        label="Very Wet",
        description=f"Precip ≥ {config.VERY_WET_MM:g} mm/day",
        fields=("precipitation_mm_per_day",),
        predicate=lambda r: r.precipitation_mm_per_day >= config.VERY_WET_MM,
    ),
    "very_windy": Condition(
        key="very_windy",
        label="Very Windy",
        description=f"WS ≥ {config.VERY_WINDY_MPS:g} m/s",
        fields=("wind_speed_mps",),
        predicate=lambda r: r.wind_speed_mps >= config.VERY_WINDY_MPS,
    ),
    "very_uncomfortable": Condition(
        key="very_uncomfortable",
        label="Very Uncomfortable",
        description=(
            f"T ≥ {config.UNCOMFORTABLE_TEMP_C:g}°C & RH ≥ {config.UNCOMFORTABLE_RH_PCT:g}%"
        ),
        fields=("temperature_c", "relative_humidity_pct"),
        predicate=lambda r: (
            r.temperature_c >= config.UNCOMFORTABLE_TEMP_C
            and r.relative_humidity_pct >= config.UNCOMFORTABLE_RH_PCT
        ),
    ),
}

Thresholds = Mapping[str, Union[Condition, Predicate]]


def resolve_conditions(thresholds: Thresholds | None = None) -> dict[str, Condition]:
    """
    Merge caller overrides into the defaults.

    A bare predicate keeps the default condition's required fields, so absent
    values are still excluded before the predicate runs.
    """
    conditions = dict(DEFAULT_CONDITIONS)
    for key, override in (thresholds or {}).items():
        if key not in conditions:
            raise ValidationError(f"unknown condition: {key}", field="thresholds")
        if isinstance(override, Condition):
            conditions[key] = override
        elif callable(override):
            conditions[key] = replace(conditions[key], predicate=override)
        else:
            raise ValidationError(f"threshold for {key} is not callable", field="thresholds")
    return conditions


# ── Engine ────────────────────────────────────────────────────────────────────


def round_percentage(hits: int, sample_size: int) -> int:
    """hits/sample_size as a whole percentage, halves rounded up; 0 for an empty sample."""
    if sample_size == 0:
        return 0
    return int(math.floor(hits / sample_size * 100 + 0.5))


def evaluate_condition(sample: Iterable[DailyObservation], condition: Condition) -> ConditionResult:
    eligible = [obs for obs in sample if condition.applies_to(obs)]
    hits = sum(1 for obs in eligible if condition.predicate(obs))
    return ConditionResult(
        hits=hits,
        sample_size=len(eligible),
        percentage=round_percentage(hits, len(eligible)),
    )


def select_window(
    observations: Iterable[DailyObservation],
    target_month: int,
    target_day: int,
    window_days: int,
) -> tuple[DailyObservation, ...]:
    """Observations within ±window_days of the target on the DOY ring, input order kept."""
    validate_target(target_month, target_day, window_days)
    rows = list(observations)
    if not rows:
        return ()

    target = day_of_year(target_month, target_day)
    months = np.fromiter((obs.month for obs in rows), dtype=np.int64, count=len(rows))
    days = np.fromiter((obs.day for obs in rows), dtype=np.int64, count=len(rows))
    doys = _MONTH_OFFSETS[months - 1] + days
    raw = np.abs(doys - target)
    distance = np.minimum(raw, config.DAYS_IN_REFERENCE_YEAR - raw)
    keep = distance <= window_days
    return tuple(obs for obs, inside in zip(rows, keep) if inside)


def compute_probabilities(
    observations: Iterable[DailyObservation],
    target_month: int,
    target_day: int,
    window_days: int = config.DEFAULT_WINDOW_DAYS,
    thresholds: Thresholds | None = None,
) -> ProbabilityReport:
    """Build a ProbabilityReport for the target date from a multi-year daily series."""
    conditions = resolve_conditions(thresholds)
    sample = select_window(observations, target_month, target_day, window_days)
    results = {key: evaluate_condition(sample, conditions[key]) for key in CONDITION_KEYS}

    logger.debug(
        "Window %02d-%02d ±%dd: %d sample days, hot=%d%% cold=%d%%",
        target_month, target_day, window_days, len(sample),
        results["very_hot"].percentage, results["very_cold"].percentage,
    )
    return ProbabilityReport(
        target_month=target_month,
        target_day=target_day,
        window_days=window_days,
        sample_count=len(sample),
        sample=sample,
        **results,
    )


# ── Per-day breakdown ─────────────────────────────────────────────────────────


def daily_breakdown(
    report: ProbabilityReport,
    condition_key: str,
    thresholds: Thresholds | None = None,
) -> list[DailyBreakdown]:
    """
    Split the report's sample by month/day for one condition.

    Rows missing a required field are left out of that day's total, the same
    way they are left out of the condition's sample size.
    """
    conditions = resolve_conditions(thresholds)
    if condition_key not in conditions:
        raise ValidationError(f"unknown condition: {condition_key}", field="condition_key")
    condition = conditions[condition_key]

    grouped: dict[tuple[int, int], list[DailyObservation]] = {}
    for obs in report.sample:
        grouped.setdefault((obs.month, obs.day), []).append(obs)

    breakdown = []
    for (month, day), rows in sorted(grouped.items()):
        result = evaluate_condition(rows, condition)
        breakdown.append(
            DailyBreakdown(
                month=month,
                day=day,
                total=result.sample_size,
                hits=result.hits,
                percentage=result.percentage,
            )
        )
    return breakdown


def all_daily_breakdowns(
    report: ProbabilityReport, thresholds: Thresholds | None = None
) -> dict[str, list[DailyBreakdown]]:
    return {key: daily_breakdown(report, key, thresholds) for key in CONDITION_KEYS}
