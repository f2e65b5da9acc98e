"""Schedule template adapters: decide whether a quest is excused on a day.

A definition names a schedule template by key ("workday", "weekend", ...).
On days the template is off, the instance is still materialized, but as
skipped, so rollover never fails it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from src.data.models import DAY_NAMES, DayWindow, QuestDefinition, RecurrenceRule

logger = logging.getLogger(__name__)


class NeverSkipSchedule:
    """Every day is a working day."""

    def should_skip(
        self,
        day: DayWindow,
        definition: QuestDefinition,
        rule: RecurrenceRule | None,
    ) -> bool:
        return False


@dataclass(frozen=True)
class ScheduleTemplate:
    """Named set of weekdays (0=Sunday .. 6=Saturday) a template is on."""

    name: str
    weekdays_on: frozenset[int]

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("ScheduleTemplate.name must not be empty")
        for weekday in self.weekdays_on:
            if not 0 <= weekday <= 6:
                raise ValueError(f"weekday must be 0-6, got: {weekday}")

    def is_on(self, day: DayWindow) -> bool:
        return day.day_of_week in self.weekdays_on


class WeekdayScheduleService:
    """Skips a definition on days its schedule template is off.

    Definitions without a template key are never skipped. An unknown key
    is logged and treated the same way: a typo in a template name should
    not silently excuse a quest.
    """

    def __init__(self, templates: dict[str, ScheduleTemplate] | None = None) -> None:
        self._templates = dict(templates or {})

    def add_template(self, template: ScheduleTemplate) -> None:
        self._templates[template.name] = template

    def get_template(self, name: str) -> ScheduleTemplate | None:
        return self._templates.get(name)

    def should_skip(
        self,
        day: DayWindow,
        definition: QuestDefinition,
        rule: RecurrenceRule | None,
    ) -> bool:
        key = definition.schedule_template_key
        if not key:
            return False

        template = self._templates.get(key)
        if template is None:
            logger.warning(
                "Unknown schedule template %r on definition %s",
                key, definition.definition_id,
            )
            return False

        if template.is_on(day):
            return False

        logger.debug(
            "Skipping %s on day %d (%s is off for template %s)",
            definition.definition_id, day.day_num,
            DAY_NAMES[day.day_of_week], template.name,
        )
        return True
