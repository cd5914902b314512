from __future__ import annotations

from dataclasses import dataclass, field

from models.observation import DailyObservation

# Fixed report / export order
CONDITION_KEYS = ("very_hot", "very_cold", "very_wet", "very_windy", "very_uncomfortable")


@dataclass(frozen=True)
class ConditionResult:
    """Empirical frequency of one condition inside the window."""

    hits: int
    sample_size: int  # rows with every required field present
    percentage: int  # 0..100

    @property
    def probability(self) -> float:
        if self.sample_size == 0:
            return 0.0
        return self.hits / self.sample_size


@dataclass(frozen=True)
class ProbabilityReport:
    """Result of one probability query. Built fresh per query, never mutated."""

    target_month: int
    target_day: int
    window_days: int
    sample_count: int  # days in the circular window, before absent filtering
    very_hot: ConditionResult
    very_cold: ConditionResult
    very_wet: ConditionResult
    very_windy: ConditionResult
    very_uncomfortable: ConditionResult
    sample: tuple[DailyObservation, ...] = field(default=(), repr=False)

    def condition(self, key: str) -> ConditionResult:
        if key not in CONDITION_KEYS:
            raise KeyError(f"unknown condition: {key}")
        return getattr(self, key)

    @property
    def percentages(self) -> dict[str, int]:
        return {key: self.condition(key).percentage for key in CONDITION_KEYS}


@dataclass(frozen=True)
class DailyBreakdown:
    """Per month/day slice of a report's sample for one condition."""

    month: int
    day: int
    total: int
    hits: int
    percentage: int

    @property
    def label(self) -> str:
        return f"{self.month}/{self.day}"
