"""Tests for src.core.recurrence — cadence arithmetic and anchor deadlines."""

import logging
from datetime import date

import pytest

from src.core.errors import (
    InvalidAnchorError,
    InvalidCadenceError,
    UnsupportedRecurrenceError,
)
from src.core.recurrence import (
    apply_cadence,
    cadence_step_days,
    compute_deadline,
    validate_anchor,
)
from src.data.models import (
    EPOCH_DATE,
    MILLIS_PER_HOUR,
    MILLIS_PER_MINUTE,
    Anchor,
    AnchorKind,
    Cadence,
    DayIndex,
    DurationUnit,
)


class TestApplyCadence:
    def test_two_weeks(self):
        result = apply_cadence(DayIndex.of(10), Cadence(2, DurationUnit.WEEK), 1)
        assert result == DayIndex.of(24)

    def test_days_times_three(self):
        assert apply_cadence(DayIndex.of(0), Cadence(3, DurationUnit.DAY), 3) == DayIndex.of(9)

    def test_negative_times_goes_back(self):
        assert apply_cadence(DayIndex.of(10), Cadence(1, DurationUnit.WEEK), -1) == DayIndex.of(3)

    def test_zero_times_returns_base(self):
        base = DayIndex.of(7)
        assert apply_cadence(base, Cadence(5, DurationUnit.DAY), 0) is base

    def test_zero_times_skips_cadence_checks(self):
        base = DayIndex.of(7)
        assert apply_cadence(base, Cadence(1, DurationUnit.MONTH), 0) is base

    @pytest.mark.parametrize("unit", [DurationUnit.MONTH, DurationUnit.YEAR])
    def test_calendar_units_unsupported(self, unit):
        with pytest.raises(UnsupportedRecurrenceError) as exc_info:
            apply_cadence(DayIndex.of(0), Cadence(1, unit))
        assert unit.value in exc_info.value.feature

    def test_unsupported_is_not_a_value_error(self):
        with pytest.raises(NotImplementedError):
            cadence_step_days(Cadence(1, DurationUnit.YEAR))
        assert not issubclass(UnsupportedRecurrenceError, ValueError)

    def test_missing_amount(self):
        with pytest.raises(InvalidCadenceError):
            apply_cadence(DayIndex.of(0), Cadence(None, DurationUnit.DAY))

    def test_missing_unit(self):
        with pytest.raises(InvalidCadenceError):
            apply_cadence(DayIndex.of(0), Cadence(1, None))

    def test_missing_cadence(self):
        with pytest.raises(InvalidCadenceError):
            apply_cadence(DayIndex.of(0), None)

    def test_missing_base(self):
        with pytest.raises(ValueError):
            apply_cadence(None, Cadence(1, DurationUnit.DAY))


class TestValidateAnchor:
    def test_daily_ok(self):
        validate_anchor(Anchor(AnchorKind.DAILY, hour=0, minute=0))

    def test_weekly_ok(self):
        validate_anchor(Anchor(AnchorKind.WEEKLY, hour=8, minute=0, day_of_week=6))

    @pytest.mark.parametrize("hour,minute", [(None, 0), (0, None), (24, 0), (0, 60), (-1, 0)])
    def test_bad_time(self, hour, minute):
        with pytest.raises(InvalidAnchorError):
            validate_anchor(Anchor(AnchorKind.DAILY, hour=hour, minute=minute))

    @pytest.mark.parametrize("anchor", [
        Anchor(AnchorKind.WEEKLY, hour=8, minute=0),
        Anchor(AnchorKind.WEEKLY, hour=8, minute=0, day_of_week=7),
        Anchor(AnchorKind.MONTHLY, hour=8, minute=0, day_of_month=0),
        Anchor(AnchorKind.YEARLY, hour=8, minute=0, day_of_year=367),
    ])
    def test_missing_or_bad_selector(self, anchor):
        with pytest.raises(InvalidAnchorError):
            validate_anchor(anchor)

    def test_missing_kind(self):
        with pytest.raises(InvalidAnchorError):
            validate_anchor(Anchor(None, hour=1, minute=0))


class TestComputeDeadline:
    def test_daily_offset_from_window_start(self, calculator):
        window = calculator.build_window(DayIndex.of(10))
        deadline = compute_deadline(window, Anchor(AnchorKind.DAILY, hour=9, minute=30))
        assert deadline == window.start_timestamp + 9 * MILLIS_PER_HOUR + 30 * MILLIS_PER_MINUTE

    def test_midnight_anchor_is_window_start(self, calculator):
        window = calculator.build_window(DayIndex.of(10))
        assert compute_deadline(window, Anchor(AnchorKind.DAILY, 0, 0)) == window.start_timestamp

    def test_weekly_unsupported(self, calculator):
        window = calculator.build_window(DayIndex.of(10))
        anchor = Anchor(AnchorKind.WEEKLY, hour=9, minute=0, day_of_week=1)
        with pytest.raises(UnsupportedRecurrenceError):
            compute_deadline(window, anchor)

    def test_invalid_anchor_raised_before_unsupported(self, calculator):
        window = calculator.build_window(DayIndex.of(10))
        with pytest.raises(InvalidAnchorError):
            compute_deadline(window, Anchor(AnchorKind.MONTHLY, hour=9, minute=0))

    def test_deadline_past_short_window_is_logged(self, calculator, caplog):
        spring_forward = DayIndex.of((date(2026, 3, 8) - EPOCH_DATE).days)
        window = calculator.build_window(spring_forward, "America/New_York")
        anchor = Anchor(AnchorKind.DAILY, hour=23, minute=30)
        with caplog.at_level(logging.WARNING, logger="src.core.recurrence"):
            deadline = compute_deadline(window, anchor)
        assert deadline > window.end_timestamp
        assert "falls outside" in caplog.text
