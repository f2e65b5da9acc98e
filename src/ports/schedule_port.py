"""Schedule port: decides whether a materialized quest is excused for a day.

Core modules depend on this protocol, never on a specific template policy.
"""

from __future__ import annotations

from typing import Protocol

from src.data.models import DayWindow, QuestDefinition, RecurrenceRule


class ScheduleTemplateService(Protocol):
    """Workday / off-day / holiday policy."""

    def should_skip(
        self,
        day: DayWindow,
        definition: QuestDefinition,
        rule: RecurrenceRule | None,
    ) -> bool: ...
