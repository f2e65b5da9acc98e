"""
Questline Planner: Day Planner.

Materializes a user's day: every active definition, every active
auto-materializing rule whose active range covers that day, one
LiveQuest each.

This module is storage-agnostic: it depends on the QuestDefinitionSource
and ScheduleTemplateService protocols and on the QuestMaterializer, never
on a specific database.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.config import check_rollover_hour, check_timezone

if TYPE_CHECKING:
    from src.core.day_cache import DayWindowCache
    from src.core.materializer import QuestMaterializer
    from src.data.models import DayWindow, LiveQuest, RecurrenceRule
    from src.ports.quest_store_port import QuestDefinitionSource
    from src.ports.schedule_port import ScheduleTemplateService

logger = logging.getLogger(__name__)


class DayPlanner:
    """Drives the QuestMaterializer over all (definition × rule) pairs."""

    def __init__(
        self,
        day_cache: DayWindowCache,
        definition_source: QuestDefinitionSource,
        schedule_service: ScheduleTemplateService,
        materializer: QuestMaterializer,
    ) -> None:
        if day_cache is None:
            raise ValueError("day_cache must not be None")
        if definition_source is None:
            raise ValueError("definition_source must not be None")
        if schedule_service is None:
            raise ValueError("schedule_service must not be None")
        if materializer is None:
            raise ValueError("materializer must not be None")
        self._day_cache = day_cache
        self._definitions = definition_source
        self._schedule = schedule_service
        self._materializer = materializer

    @property
    def day_cache(self) -> DayWindowCache:
        return self._day_cache

    def ensure_today(self, user_key: str, now: int | None = None) -> list[LiveQuest]:
        """Materialize today using the default timezone and rollover hour."""
        return self.ensure_day(user_key, self._day_cache.today(now))

    def ensure_day_for_epoch(
        self,
        user_key: str,
        epoch_millis: int,
        timezone: str,
        rollover_hour: int,
    ) -> list[LiveQuest]:
        """Materialize the day containing epoch_millis in an explicit zone.

        Useful for "what will my day look like on X in zone Y?". The
        override is user input, so it is validated here.
        """
        check_timezone(timezone)
        check_rollover_hour(rollover_hour)
        day = self._day_cache.get_or_create_for_epoch(epoch_millis, timezone, rollover_hour)
        return self.ensure_day(user_key, day)

    def ensure_day(self, user_key: str, day: DayWindow) -> list[LiveQuest]:
        """Materialize every in-range rule of every active definition on day.

        Definitions without rules are left alone: those are started
        manually. Iteration order is not part of the contract; only the
        set of resulting live keys is.
        """
        if not user_key:
            raise ValueError("user_key must not be empty")
        if day is None:
            raise ValueError("day must not be None")

        definitions = self._definitions.find_definitions_for_user(user_key)
        if definitions is None:
            return []

        results: list[LiveQuest] = []
        for definition in definitions:
            if definition is None or not definition.active:
                continue
            if not definition.rules:
                continue

            for rule in definition.rules:
                if rule is None or not rule.active or not rule.auto_materialize:
                    continue
                if not self.rule_in_range(rule, day):
                    logger.debug(
                        "Rule %s/%s out of range on day %d",
                        definition.definition_id, rule.rule_id, day.day_num,
                    )
                    continue

                skip = self._schedule.should_skip(day, definition, rule)
                live_quest = self._materializer.ensure_instance(day, definition, rule, skip)
                if live_quest is not None:
                    results.append(live_quest)

        logger.info(
            "Day %d ensured for user %s: %d live quests",
            day.day_num, user_key, len(results),
        )
        return results

    def rule_in_range(self, rule: RecurrenceRule, day: DayWindow) -> bool:
        """Check whether rule's optional active range overlaps day.

        Only the range is consulted. The cadence is not: every active,
        auto-materializing rule in range gets an instance every day.
        """
        start = rule.active_range_start_millis
        end = rule.active_range_end_millis
        if start is not None and start > day.end_timestamp:
            return False
        if end is not None and end < day.start_timestamp:
            return False
        return True
