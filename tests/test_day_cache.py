"""Tests for src.core.day_cache — DayWindow memoization."""

from unittest.mock import MagicMock

import pytest

from src.core.day_cache import DayWindowCache
from src.data.models import EPOCH_MILLIS, MILLIS_PER_DAY, DayIndex


class TestGetOrCreate:
    def test_returns_same_object(self, day_cache):
        first = day_cache.get_or_create(DayIndex.of(5))
        second = day_cache.get_or_create(DayIndex.of(5))
        assert first is second
        assert day_cache.size() == 1

    def test_defaults_and_explicit_values_share_entry(self, day_cache):
        implicit = day_cache.get_or_create(DayIndex.of(5))
        explicit = day_cache.get_or_create(DayIndex.of(5), "UTC", 4)
        assert implicit is explicit

    def test_key_includes_timezone_and_hour(self, day_cache):
        utc = day_cache.get_or_create(DayIndex.of(5), "UTC", 4)
        tokyo = day_cache.get_or_create(DayIndex.of(5), "Asia/Tokyo", 4)
        early = day_cache.get_or_create(DayIndex.of(5), "UTC", 0)
        assert utc is not tokyo
        assert utc is not early
        assert day_cache.size() == 3

    def test_computes_once(self, calculator):
        spy = MagicMock(wraps=calculator)
        spy.default_timezone = calculator.default_timezone
        spy.default_rollover_hour = calculator.default_rollover_hour
        cache = DayWindowCache(spy)
        cache.get_or_create(DayIndex.of(1))
        cache.get_or_create(DayIndex.of(1))
        assert spy.build_window.call_count == 1

    def test_for_epoch(self, day_cache):
        window = day_cache.get_or_create_for_epoch(EPOCH_MILLIS + 2 * MILLIS_PER_DAY + 1)
        # 00:00 UTC is before the 04:00 rollover
        assert window.day_num == 1
        assert window is day_cache.get_or_create(DayIndex.of(1))

    def test_today(self, day_cache):
        window = day_cache.today(EPOCH_MILLIS + 3 * MILLIS_PER_DAY + MILLIS_PER_DAY // 2)
        assert window.day_num == 3


class TestClearAndBounds:
    def test_clear(self, day_cache):
        day_cache.get_or_create(DayIndex.of(1))
        day_cache.get_or_create(DayIndex.of(2))
        day_cache.clear()
        assert day_cache.size() == 0

    def test_zero_means_unbounded(self, calculator):
        cache = DayWindowCache(calculator, max_size=0)
        assert cache.max_size is None
        for n in range(50):
            cache.get_or_create(DayIndex.of(n))
        assert cache.size() == 50

    def test_lru_eviction(self, calculator):
        cache = DayWindowCache(calculator, max_size=2)
        day1 = cache.get_or_create(DayIndex.of(1))
        cache.get_or_create(DayIndex.of(2))
        # touch day 1 so day 2 becomes least recently used
        assert cache.get_or_create(DayIndex.of(1)) is day1
        cache.get_or_create(DayIndex.of(3))
        assert cache.size() == 2
        assert cache.get_or_create(DayIndex.of(1)) is day1

    def test_evicted_window_is_recomputed_equal(self, calculator):
        cache = DayWindowCache(calculator, max_size=1)
        first = cache.get_or_create(DayIndex.of(1))
        cache.get_or_create(DayIndex.of(2))
        again = cache.get_or_create(DayIndex.of(1))
        assert again is not first
        assert again == first

    def test_negative_size_rejected(self, calculator):
        with pytest.raises(ValueError):
            DayWindowCache(calculator, max_size=-1)

    def test_requires_calculator(self):
        with pytest.raises(ValueError):
            DayWindowCache(None)
