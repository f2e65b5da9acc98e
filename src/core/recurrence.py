"""Recurrence arithmetic: cadences over day indexes, anchors inside windows.

Pure business logic. Only flat day-count arithmetic is supported: DAY and
WEEK cadences and DAILY anchors. Month/year lengths and weekday/monthday
placement need calendar semantics that are not defined yet, so those
branches raise UnsupportedRecurrenceError instead of guessing.
"""

from __future__ import annotations

import logging

from src.core.errors import (
    InvalidAnchorError,
    InvalidCadenceError,
    UnsupportedRecurrenceError,
)
from src.data.models import (
    MILLIS_PER_MINUTE,
    Anchor,
    AnchorKind,
    Cadence,
    DayIndex,
    DayWindow,
    DurationUnit,
)

logger = logging.getLogger(__name__)

# Selector required by each anchor kind, with its valid range.
_ANCHOR_SELECTORS: dict[AnchorKind, tuple[str, int, int] | None] = {
    AnchorKind.DAILY: None,
    AnchorKind.WEEKLY: ("day_of_week", 0, 6),
    AnchorKind.MONTHLY: ("day_of_month", 1, 31),
    AnchorKind.YEARLY: ("day_of_year", 1, 366),
}


# ---------------------------------------------------------------------------
# Cadence
# ---------------------------------------------------------------------------


def cadence_step_days(cadence: Cadence) -> int:
    """Return how many days one application of cadence spans.

    Raises InvalidCadenceError for a missing amount/unit and
    UnsupportedRecurrenceError for MONTH/YEAR.
    """
    if cadence is None:
        raise InvalidCadenceError("Cadence must not be None")
    if cadence.amount is None:
        raise InvalidCadenceError("Cadence.amount must not be None")
    if cadence.unit is None:
        raise InvalidCadenceError("Cadence.unit must not be None")

    if cadence.unit is DurationUnit.DAY:
        return cadence.amount
    if cadence.unit is DurationUnit.WEEK:
        return cadence.amount * 7
    if cadence.unit in (DurationUnit.MONTH, DurationUnit.YEAR):
        raise UnsupportedRecurrenceError(
            f"cadence unit {cadence.unit.value}",
            f"Cadence unit {cadence.unit.value} is not supported yet; "
            "it needs calendar-based semantics",
        )
    raise InvalidCadenceError(f"Unknown cadence unit: {cadence.unit!r}")


def apply_cadence(base: DayIndex, cadence: Cadence, times: int = 1) -> DayIndex:
    """Advance base by cadence, times times (times may be negative).

    times == 0 returns base unchanged without inspecting the cadence.
    """
    if base is None:
        raise ValueError("base DayIndex must not be None")
    if cadence is None:
        raise InvalidCadenceError("Cadence must not be None")
    if times == 0:
        return base
    return base.plus_days(cadence_step_days(cadence) * times)


# ---------------------------------------------------------------------------
# Anchor
# ---------------------------------------------------------------------------


def _require(value: int | None, name: str, kind: AnchorKind, low: int, high: int) -> None:
    if value is None:
        raise InvalidAnchorError(f"Anchor.{name} must not be None for kind {kind.value}")
    if not low <= value <= high:
        raise InvalidAnchorError(
            f"Anchor.{name} must be {low}-{high} for kind {kind.value}, got: {value}"
        )


def validate_anchor(anchor: Anchor) -> None:
    """Raise InvalidAnchorError unless anchor has every field its kind needs."""
    if anchor is None:
        raise InvalidAnchorError("Anchor must not be None")
    kind = anchor.kind
    if kind is None:
        raise InvalidAnchorError("Anchor.kind must not be None")
    if kind not in _ANCHOR_SELECTORS:
        raise InvalidAnchorError(f"Unknown anchor kind: {kind!r}")

    _require(anchor.hour, "hour", kind, 0, 23)
    _require(anchor.minute, "minute", kind, 0, 59)

    selector = _ANCHOR_SELECTORS[kind]
    if selector is not None:
        name, low, high = selector
        _require(getattr(anchor, name), name, kind, low, high)


def compute_deadline(window: DayWindow, anchor: Anchor) -> int:
    """Return the absolute deadline (epoch millis) of anchor inside window.

    DAILY: hour/minute are an offset from the window start, so 00:00 is the
    start itself. On DST-change days the result can land outside the
    window; that is logged and the value is returned as computed.
    """
    if window is None:
        raise ValueError("DayWindow must not be None")
    validate_anchor(anchor)

    if anchor.kind is not AnchorKind.DAILY:
        raise UnsupportedRecurrenceError(
            f"anchor kind {anchor.kind.value}",
            f"Anchor kind {anchor.kind.value} is not supported yet; "
            "define its calendar semantics before using it",
        )

    offset_minutes = anchor.hour * 60 + anchor.minute
    deadline = window.start_timestamp + offset_minutes * MILLIS_PER_MINUTE

    if not window.contains(deadline):
        logger.warning(
            "Deadline %d for %02d:%02d falls outside day %d window [%d, %d]",
            deadline, anchor.hour, anchor.minute, window.day_num,
            window.start_timestamp, window.end_timestamp,
        )
    return deadline
