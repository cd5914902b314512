#!/usr/bin/env python3
"""
POWER ODDS — probability engine tests.
Pure computation: no network, no files.
"""
import sys
from datetime import date, timedelta

import pytest

from models.errors import ValidationError
from models.observation import DailyObservation
from services.probability_engine import (
    Condition,
    all_daily_breakdowns,
    circular_distance,
    compute_probabilities,
    daily_breakdown,
    day_of_year,
    resolve_conditions,
    round_percentage,
    select_window,
    window_from_date_range,
)


def _obs(yyyymmdd, t=None, rh=None, ws=None, pr=None):
    return DailyObservation(
        date=yyyymmdd,
        temperature_c=t,
        relative_humidity_pct=rh,
        wind_speed_mps=ws,
        precipitation_mm_per_day=pr,
    )


def _series(first_year, last_year, temp_for):
    """Every day of the given years; temp_for(date) -> °C."""
    rows = []
    d = date(first_year, 1, 1)
    while d.year <= last_year:
        rows.append(_obs(d.strftime("%Y%m%d"), t=temp_for(d), rh=50.0, ws=3.0, pr=1.0))
        d += timedelta(days=1)
    return rows


# ═══════════════════════════════════════════════════════════════════════════════
# 1. Day-of-year ring
# ═══════════════════════════════════════════════════════════════════════════════


def test_day_of_year_reference_values():
    assert day_of_year(1, 1) == 1
    assert day_of_year(3, 1) == 60
    assert day_of_year(6, 15) == 166
    assert day_of_year(12, 31) == 365


def test_feb_29_shares_ordinal_with_mar_1():
    assert day_of_year(2, 29) == day_of_year(3, 1) == 60


def test_day_of_year_rejects_impossible_dates():
    for month, day in [(0, 1), (13, 1), (2, 30), (4, 31), (6, 0)]:
        with pytest.raises(ValidationError):
            day_of_year(month, day)


def test_circular_distance_wraps_year_end():
    assert circular_distance(364, 1) == 2
    assert circular_distance(1, 364) == 2
    assert circular_distance(100, 110) == 10
    assert circular_distance(1, 183) == 182
    assert circular_distance(5, 5) == 0


def test_window_from_date_range_uses_midpoint():
    assert window_from_date_range(date(2025, 6, 13), date(2025, 6, 17)) == (6, 15, 2)
    assert window_from_date_range(date(2025, 7, 4), date(2025, 7, 4)) == (7, 4, 0)
    # Two-day selection keeps the start day as target (half-day midpoint)
    assert window_from_date_range(date(2025, 7, 4), date(2025, 7, 5)) == (7, 4, 1)
    # Across the new year
    assert window_from_date_range(date(2025, 12, 30), date(2026, 1, 3)) == (1, 1, 2)


def test_window_from_date_range_rejects_reversed_range():
    with pytest.raises(ValidationError):
        window_from_date_range(date(2025, 6, 17), date(2025, 6, 13))


# ═══════════════════════════════════════════════════════════════════════════════
# 2. Window selection
# ═══════════════════════════════════════════════════════════════════════════════


def test_dec_30_window_includes_early_january():
    rows = [_obs("20230101", t=5.0), _obs("20230105", t=5.0), _obs("20221228", t=5.0)]
    sample = select_window(rows, 12, 30, 3)
    dates = [o.date for o in sample]
    assert "20230101" in dates, "Jan 1 is 2 days from Dec 30 on the ring"
    assert "20230105" not in dates, "Jan 5 is 6 days from Dec 30"
    assert "20221228" in dates


def test_zero_window_is_exact_month_day():
    rows = [_obs("20200703", t=20.0), _obs("20210704", t=20.0), _obs("20220705", t=20.0),
            _obs("20230704", t=20.0)]
    sample = select_window(rows, 7, 4, 0)
    assert [o.date for o in sample] == ["20210704", "20230704"]


def test_all_years_pool_into_one_sample():
    rows = [_obs(f"{y}0601", t=10.0) for y in range(2000, 2010)]
    report = compute_probabilities(rows, 6, 1, 0)
    assert report.sample_count == 10


def test_sample_keeps_input_order():
    rows = [_obs("20220616", t=1.0), _obs("20200615", t=1.0), _obs("20210614", t=1.0)]
    sample = select_window(rows, 6, 15, 1)
    assert [o.date for o in sample] == ["20220616", "20200615", "20210614"]


def test_negative_window_rejected():
    with pytest.raises(ValidationError):
        compute_probabilities([], 6, 15, -1)


def test_non_integer_window_rejected():
    with pytest.raises(ValidationError):
        compute_probabilities([], 6, 15, 2.5)


# ═══════════════════════════════════════════════════════════════════════════════
# 3. Probabilities
# ═══════════════════════════════════════════════════════════════════════════════


def test_empty_series_is_all_zero():
    report = compute_probabilities([], 6, 15, 3)
    assert report.sample_count == 0
    assert report.sample == ()
    for key, pct in report.percentages.items():
        assert pct == 0, f"{key} should be 0 for an empty sample, got {pct}"
        assert report.condition(key).sample_size == 0


def test_absent_temperature_excluded_from_hot_and_cold():
    rows = [
        _obs("20230615", t=None, rh=90.0, ws=15.0, pr=20.0),
        _obs("20230616", t=35.0, rh=40.0, ws=1.0, pr=0.0),
    ]
    report = compute_probabilities(rows, 6, 15, 2)
    assert report.sample_count == 2
    assert report.very_hot.sample_size == 1
    assert report.very_hot.hits == 1
    assert report.very_hot.percentage == 100
    assert report.very_cold.sample_size == 1
    assert report.very_cold.hits == 0
    # The same row still counts where its fields are present
    assert report.very_windy.sample_size == 2
    assert report.very_windy.hits == 1
    assert report.very_wet.hits == 1


def test_uncomfortable_needs_both_fields():
    rows = [
        _obs("20230615", t=34.0, rh=None),
        _obs("20230616", t=None, rh=80.0),
        _obs("20230617", t=33.0, rh=70.0),
        _obs("20230618", t=33.0, rh=50.0),
    ]
    report = compute_probabilities(rows, 6, 16, 2)
    assert report.very_uncomfortable.sample_size == 2
    assert report.very_uncomfortable.hits == 1
    assert report.very_uncomfortable.percentage == 50


def test_threshold_boundaries():
    rows = [
        _obs("20230101", t=32.0, rh=60.0, ws=10.0, pr=10.0),
        _obs("20230102", t=0.0, rh=59.9, ws=9.9, pr=9.9),
    ]
    report = compute_probabilities(rows, 1, 1, 1)
    assert report.very_hot.hits == 0, "32°C is not strictly above 32"
    assert report.very_cold.hits == 0, "0°C is not strictly below 0"
    assert report.very_wet.hits == 1
    assert report.very_windy.hits == 1
    assert report.very_uncomfortable.hits == 1


def test_identical_inputs_give_identical_reports():
    rows = _series(2020, 2022, lambda d: float(d.day % 40))
    first = compute_probabilities(rows, 3, 10, 5)
    second = compute_probabilities(rows, 3, 10, 5)
    assert first == second
    assert first.sample == second.sample


def test_sibu_june_heat_scenario():
    def temp(d):
        return 33.0 if d.month == 6 and 13 <= d.day <= 17 else 27.0

    rows = _series(2021, 2023, temp)
    report = compute_probabilities(rows, 6, 15, 2)
    assert report.sample_count == 15, f"3 years × 5 days, got {report.sample_count}"
    assert report.very_hot.percentage == 100
    assert report.very_cold.percentage == 0
    assert report.very_uncomfortable.percentage == 0, "RH is 50%, below the 60% bar"


def test_percentage_rounds_half_up():
    assert round_percentage(1, 8) == 13
    assert round_percentage(1, 3) == 33
    assert round_percentage(2, 3) == 67
    assert round_percentage(0, 0) == 0


def test_condition_probability_property():
    rows = [_obs("20230615", t=35.0), _obs("20230616", t=20.0)]
    report = compute_probabilities(rows, 6, 15, 1)
    assert report.very_hot.probability == 0.5


# ═══════════════════════════════════════════════════════════════════════════════
# 4. Threshold overrides
# ═══════════════════════════════════════════════════════════════════════════════


def test_bare_predicate_override_keeps_required_fields():
    rows = [_obs("20230615", t=None), _obs("20230616", t=28.0), _obs("20230617", t=25.0)]
    report = compute_probabilities(rows, 6, 16, 1, {"very_hot": lambda r: r.temperature_c > 27})
    assert report.very_hot.sample_size == 2
    assert report.very_hot.hits == 1


def test_condition_override_replaces_fields():
    windy_and_wet = Condition(
        key="very_windy",
        label="Stormy",
        description="WS ≥ 5 & Precip ≥ 5",
        fields=("wind_speed_mps", "precipitation_mm_per_day"),
        predicate=lambda r: r.wind_speed_mps >= 5 and r.precipitation_mm_per_day >= 5,
    )
    rows = [_obs("20230615", ws=6.0, pr=None), _obs("20230616", ws=6.0, pr=6.0)]
    report = compute_probabilities(rows, 6, 15, 1, {"very_windy": windy_and_wet})
    assert report.very_windy.sample_size == 1
    assert report.very_windy.hits == 1


def test_unknown_threshold_key_rejected():
    with pytest.raises(ValidationError):
        resolve_conditions({"very_snowy": lambda r: True})


def test_non_callable_threshold_rejected():
    with pytest.raises(ValidationError):
        resolve_conditions({"very_hot": 40})


# ═══════════════════════════════════════════════════════════════════════════════
# 5. Per-day breakdown
# ═══════════════════════════════════════════════════════════════════════════════


def test_daily_breakdown_groups_by_month_day():
    rows = [
        _obs("20211231", t=33.0),
        _obs("20220101", t=35.0),
        _obs("20230101", t=20.0),
        _obs("20221231", t=None),
    ]
    report = compute_probabilities(rows, 1, 1, 1)
    breakdown = daily_breakdown(report, "very_hot")
    assert [(b.month, b.day) for b in breakdown] == [(1, 1), (12, 31)]
    jan1, dec31 = breakdown
    assert (jan1.total, jan1.hits, jan1.percentage) == (2, 1, 50)
    assert (dec31.total, dec31.hits, dec31.percentage) == (1, 1, 100)
    assert jan1.label == "1/1"


def test_all_daily_breakdowns_cover_every_condition():
    rows = [_obs("20230615", t=35.0, rh=70.0, ws=1.0, pr=0.0)]
    report = compute_probabilities(rows, 6, 15, 0)
    breakdowns = all_daily_breakdowns(report)
    assert set(breakdowns) == {"very_hot", "very_cold", "very_wet", "very_windy",
                               "very_uncomfortable"}
    assert breakdowns["very_uncomfortable"][0].percentage == 100


def test_daily_breakdown_unknown_condition():
    report = compute_probabilities([], 6, 15, 0)
    with pytest.raises(ValidationError):
        daily_breakdown(report, "very_snowy")


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-q"]))
