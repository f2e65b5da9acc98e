"""
Questline Planner: Quest Materializer.

Turns one (day, definition, rule) triple into at most one LiveQuest.
Calling it again for the same triple returns the instance that already
exists; it never creates a second one.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.core.recurrence import compute_deadline
from src.data.keys import live_key_for
from src.data.models import QuestStatus

if TYPE_CHECKING:
    from src.data.models import DayWindow, LiveQuest, QuestDefinition, RecurrenceRule
    from src.ports.quest_store_port import LiveQuestStore

logger = logging.getLogger(__name__)


def live_key_of(definition: QuestDefinition, rule: RecurrenceRule | None) -> str:
    """LiveKey of a definition and optional rule: "{definition}[/{rule}]"."""
    if not getattr(definition, "definition_id", None):
        raise ValueError("QuestDefinition.definition_id must not be empty")
    return live_key_for(definition.definition_id, rule.rule_id if rule else None)


class QuestMaterializer:
    """Idempotent create-if-missing of LiveQuest instances."""

    def __init__(self, store: LiveQuestStore) -> None:
        if store is None:
            raise ValueError("store must not be None")
        self._store = store

    def ensure_instance(
        self,
        day: DayWindow,
        definition: QuestDefinition,
        rule: RecurrenceRule | None = None,
        skip: bool = False,
    ) -> LiveQuest | None:
        """Return the LiveQuest for (day, definition, rule), creating it if needed.

        Args:
            day: Window of the logical day.
            definition: Source definition.
            rule: Source rule; None for manual / ad-hoc instances.
            skip: Create the instance as skipped (schedule template decision).

        Returns:
            The existing or newly created instance, or None when the
            definition or rule is inactive, or the rule does not
            auto-materialize.
        """
        if day is None:
            raise ValueError("day must not be None")
        if definition is None:
            raise ValueError("definition must not be None")

        if not definition.active:
            return None
        if rule is not None:
            if not rule.active:
                return None
            if not rule.auto_materialize:
                return None

        live_key = live_key_of(definition, rule)

        existing = self._store.find_by_day_and_live_key(day, live_key)
        if existing is not None:
            logger.debug("Live quest %s already exists for day %d", live_key, day.day_num)
            return existing

        deadline_millis = 0
        if rule is not None and rule.anchor is not None:
            deadline_millis = compute_deadline(day, rule.anchor)

        created = self._store.create_live_quest(day, definition, rule, deadline_millis, skip)

        if created.live_key is None:
            created.live_key = live_key
        if created.day_num is None:
            created.day_num = day.day_num
        if created.parent_day_key is None:
            created.parent_day_key = day.key_prefix()
        if created.status is None:
            created.status = QuestStatus.ACTIVE
        if created.skip is None:
            created.skip = skip
        if created.source_definition_key is None:
            created.source_definition_key = definition.key
        if rule is not None and created.source_rule_key is None:
            created.source_rule_key = rule.key

        saved = self._store.save(created)
        logger.info(
            "Materialized %s for day %d (deadline=%d, skip=%s)",
            live_key, day.day_num, deadline_millis, skip,
        )
        return saved
