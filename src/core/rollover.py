"""
Questline Planner: Rollover Sweeper.

Closes a logical day and opens the next one:

1. Every active LiveQuest of the closing day whose deadline (plus grace)
   has passed is written as a QuestFailed record and deleted.
   Quests without a deadline, or marked skip, are never failed.
2. The opening day is materialized through the DayPlanner.

A run either completes or raises on the first collaborator failure;
there is no partial or resumable state.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from src.core.day_window import now_millis
from src.data.models import MILLIS_PER_MINUTE, RolloverContext

if TYPE_CHECKING:
    from src.core.day_cache import DayWindowCache
    from src.core.planner import DayPlanner
    from src.data.models import DayWindow, LiveQuest, QuestFailed
    from src.ports.quest_store_port import RolloverStore

logger = logging.getLogger(__name__)

FAILURE_REASON = "deadline+grace exceeded during rollover"


def grace_millis_for(quest: LiveQuest) -> int:
    """Grace period of quest in millis.

    Only the per-instance override is consulted; without one there is no
    grace. Non-positive overrides count as no grace.
    """
    minutes = quest.grace_period_minutes
    if minutes is None or minutes <= 0:
        return 0
    return minutes * MILLIS_PER_MINUTE


def is_overdue(quest: LiveQuest, now: int) -> bool:
    """Check whether rollover at now should fail quest."""
    deadline = quest.deadline_millis
    if deadline is None or deadline <= 0:
        return False
    if quest.skip:
        return False
    return now > deadline + grace_millis_for(quest)


class RolloverSweeper:
    """Fails overdue instances of a closing day, then plans the next day."""

    def __init__(
        self,
        day_cache: DayWindowCache,
        store: RolloverStore,
        planner: DayPlanner,
        clock: Callable[[], int] | None = None,
    ) -> None:
        if day_cache is None:
            raise ValueError("day_cache must not be None")
        if store is None:
            raise ValueError("store must not be None")
        if planner is None:
            raise ValueError("planner must not be None")
        self._day_cache = day_cache
        self._store = store
        self._planner = planner
        self._clock = clock or now_millis

    def run_rollover(
        self, user_key: str, from_day: DayWindow, now: int,
    ) -> list[QuestFailed]:
        """Close from_day for user_key and materialize the following day.

        Args:
            user_key: User whose day is rolling over.
            from_day: Window of the day being closed.
            now: Current time in epoch millis, compared against deadlines.

        Returns:
            The QuestFailed records written by this run (possibly empty).
        """
        if not user_key:
            raise ValueError("user_key must not be empty")
        if from_day is None:
            raise ValueError("from_day must not be None")

        to_day = self._day_cache.get_or_create(
            from_day.day_index.plus_days(1),
            from_day.timezone_id,
            from_day.rollover_hour,
        )
        context = RolloverContext(from_day=from_day, to_day=to_day, now_millis=now)

        failures = self._fail_overdue(context)

        self._planner.ensure_day(user_key, to_day)

        logger.info(
            "Rollover %d -> %d for user %s: %d failed",
            from_day.day_num, to_day.day_num, user_key, len(failures),
        )
        return failures

    def run_rollover_for_yesterday(
        self, user_key: str, now: int | None = None,
    ) -> list[QuestFailed]:
        """Close the day before today (default timezone/rollover) at now."""
        if now is None:
            now = self._clock()
        today = self._day_cache.calculator.today(now)
        from_day = self._day_cache.get_or_create(today.minus_days(1))
        return self.run_rollover(user_key, from_day, now)

    def _fail_overdue(self, context: RolloverContext) -> list[QuestFailed]:
        failures: list[QuestFailed] = []
        for quest in self._store.find_active_live_quests(context.from_day):
            if quest is None or not is_overdue(quest, context.now_millis):
                continue

            # A failed write propagates: the quest must not be deleted
            # without its history record.
            failure = self._store.create_failure_record(quest, context, FAILURE_REASON)
            failures.append(failure)
            self._store.delete_live_quest(quest)
            logger.info(
                "Failed %s on day %d (deadline %d)",
                quest.live_key, context.from_day.day_num, quest.deadline_millis,
            )
        return failures
