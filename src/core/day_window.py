"""
Questline Planner: Day Window Calculator.

Maps instants to logical days and back, honoring a timezone and a
rollover hour: with rollover_hour=4, 03:59 local still belongs to the
previous day.

No I/O: this module only transforms numbers.

The UTC offset is looked up once per call, at the instant being
converted. On a day that contains a DST change this makes the computed
window longer or shorter than 24h (and may shift its start by the size of
the change). That is accepted behavior, not normalized here.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from zoneinfo import ZoneInfo

from src.config import PlannerConfig
from src.data.models import (
    DAY_NAMES,
    EPOCH_MILLIS,
    MILLIS_PER_DAY,
    MILLIS_PER_HOUR,
    DayIndex,
    DayWindow,
)

logger = logging.getLogger(__name__)


def now_millis() -> int:
    """Current wall-clock time in epoch millis."""
    return time.time_ns() // 1_000_000


def offset_millis_at(epoch_millis: int, zone: ZoneInfo) -> int:
    """UTC offset of zone at the given instant, DST included."""
    instant = datetime.fromtimestamp(epoch_millis // 1000, tz=zone)
    offset = instant.utcoffset()
    if offset is None:
        return 0
    return int(offset.total_seconds() * 1000)


class DayWindowCalculator:
    """Pure day/instant conversions with configured defaults.

    Per-call timezone and rollover_hour arguments override the defaults
    from PlannerConfig; they are validated where user configuration enters
    the system, not here.
    """

    def __init__(self, config: PlannerConfig) -> None:
        if config is None:
            raise ValueError("config must not be None")
        self._config = config

    @property
    def config(self) -> PlannerConfig:
        return self._config

    @property
    def default_timezone(self) -> str:
        return self._config.timezone

    @property
    def default_rollover_hour(self) -> int:
        return self._config.rollover_hour

    def _resolve(
        self, timezone: str | None, rollover_hour: int | None,
    ) -> tuple[str, int]:
        tz_id = timezone if timezone is not None else self._config.timezone
        hour = rollover_hour if rollover_hour is not None else self._config.rollover_hour
        return tz_id, hour

    def day_index_for(
        self,
        epoch_millis: int,
        timezone: str | None = None,
        rollover_hour: int | None = None,
    ) -> DayIndex:
        """Return the logical day containing epoch_millis.

        local = utc + offset(at this instant); the rollover hour is
        subtracted so early-morning times count toward the previous day,
        then the distance from the epoch's local midnight is floor-divided
        into whole days. Days count from local midnight, not from
        EPOCH_MILLIS shifted by the offset, so that
        day_index_for(window_start(d)) == d in every zone.
        """
        tz_id, hour = self._resolve(timezone, rollover_hour)
        local_millis = epoch_millis + offset_millis_at(epoch_millis, ZoneInfo(tz_id))
        adjusted = local_millis - hour * MILLIS_PER_HOUR
        return DayIndex((adjusted - EPOCH_MILLIS) // MILLIS_PER_DAY)

    def window_start(
        self,
        day: DayIndex,
        timezone: str | None = None,
        rollover_hour: int | None = None,
    ) -> int:
        """Return the first millisecond of day (rollover hour, local time).

        Single pass: the offset is taken at the day's nominal midnight, so
        on DST-change days the result may be off by the size of the change.
        """
        tz_id, hour = self._resolve(timezone, rollover_hour)
        target = EPOCH_MILLIS + day.day_num * MILLIS_PER_DAY
        offset = offset_millis_at(target, ZoneInfo(tz_id))
        return target - offset + hour * MILLIS_PER_HOUR

    def window_end(
        self,
        day: DayIndex,
        timezone: str | None = None,
        rollover_hour: int | None = None,
    ) -> int:
        """Return the last millisecond of day (inclusive)."""
        return self.window_start(day.plus_days(1), timezone, rollover_hour) - 1

    def build_window(
        self,
        day: DayIndex,
        timezone: str | None = None,
        rollover_hour: int | None = None,
    ) -> DayWindow:
        """Derive the full DayWindow for day. Uncached; see DayWindowCache."""
        tz_id, hour = self._resolve(timezone, rollover_hour)
        start = self.window_start(day, tz_id, hour)
        end = self.window_end(day, tz_id, hour)

        local_start = datetime.fromtimestamp(start // 1000, tz=ZoneInfo(tz_id))
        day_of_week = local_start.isoweekday() % 7

        window = DayWindow(
            day_num=day.day_num,
            timezone_id=tz_id,
            rollover_hour=hour,
            start_timestamp=start,
            end_timestamp=end,
            duration_millis=end - start + 1,
            day_of_week=day_of_week,
            day_of_month=local_start.day,
            day_of_year=local_start.timetuple().tm_yday,
            day_name=DAY_NAMES[day_of_week],
        )
        if window.duration_millis != MILLIS_PER_DAY:
            logger.debug(
                "Day %d in %s is %d ms long (DST change)",
                day.day_num, tz_id, window.duration_millis,
            )
        return window

    def today(self, now: int | None = None) -> DayIndex:
        """Return the current logical day under the default configuration."""
        return self.day_index_for(now if now is not None else now_millis())
