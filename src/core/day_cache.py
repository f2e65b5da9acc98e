"""
Questline Planner: Day Window Cache.

Get-or-create memoization of DayWindow values keyed by
(day_num, timezone_id, rollover_hour). A window is a pure function of its
key, so a race that computes the same window twice is wasted work and
never a wrong answer.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict

from src.core.day_window import DayWindowCalculator
from src.data.models import DayIndex, DayWindow

logger = logging.getLogger(__name__)

CacheKey = tuple[int, str, int]


class DayWindowCache:
    """DayWindow memo over a DayWindowCalculator.

    max_size None or 0 keeps every window (the windows are tiny and a user
    touches a handful of days). A positive max_size evicts the least
    recently used window once the bound is exceeded.
    """

    def __init__(
        self, calculator: DayWindowCalculator, max_size: int | None = None,
    ) -> None:
        if calculator is None:
            raise ValueError("calculator must not be None")
        if max_size is not None and max_size < 0:
            raise ValueError(f"max_size must be >= 0, got: {max_size}")
        self._calculator = calculator
        self._max_size = max_size or None
        self._windows: OrderedDict[CacheKey, DayWindow] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def calculator(self) -> DayWindowCalculator:
        return self._calculator

    @property
    def max_size(self) -> int | None:
        return self._max_size

    def get_or_create(
        self,
        day: DayIndex,
        timezone: str | None = None,
        rollover_hour: int | None = None,
    ) -> DayWindow:
        """Return the cached window for day, computing it on first request."""
        tz_id = timezone if timezone is not None else self._calculator.default_timezone
        hour = (
            rollover_hour if rollover_hour is not None
            else self._calculator.default_rollover_hour
        )
        key: CacheKey = (day.day_num, tz_id, hour)

        with self._lock:
            window = self._windows.get(key)
            if window is not None:
                self._windows.move_to_end(key)
                return window

        # Computed outside the lock; a concurrent duplicate is identical.
        window = self._calculator.build_window(day, tz_id, hour)

        with self._lock:
            existing = self._windows.get(key)
            if existing is not None:
                return existing
            self._windows[key] = window
            if self._max_size is not None and len(self._windows) > self._max_size:
                evicted, _ = self._windows.popitem(last=False)
                logger.debug("Evicted day window %s", evicted)
        return window

    def get_or_create_for_epoch(
        self,
        epoch_millis: int,
        timezone: str | None = None,
        rollover_hour: int | None = None,
    ) -> DayWindow:
        """Return the window of the logical day containing epoch_millis."""
        day = self._calculator.day_index_for(epoch_millis, timezone, rollover_hour)
        return self.get_or_create(day, timezone, rollover_hour)

    def today(self, now: int | None = None) -> DayWindow:
        """Return today's window under the default configuration."""
        return self.get_or_create(self._calculator.today(now))

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._windows)
