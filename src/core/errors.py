"""Errors raised by the planner core.

Invalid input and not-yet-supported features are distinct types so callers
can tell "your rule is malformed" from "this recurrence doesn't exist yet".
"""

from __future__ import annotations


class InvalidAnchorError(ValueError):
    """Raised when an Anchor lacks (or has out-of-range) fields for its kind."""


class InvalidCadenceError(ValueError):
    """Raised when a Cadence is missing its amount or unit."""


class UnsupportedRecurrenceError(NotImplementedError):
    """Raised for recurrence features whose calendar semantics are undefined.

    MONTH/YEAR cadences and WEEKLY/MONTHLY/YEARLY anchors land here.
    """

    def __init__(self, feature: str, message: str | None = None) -> None:
        self.feature = feature
        super().__init__(message or f"{feature} is not supported yet")
