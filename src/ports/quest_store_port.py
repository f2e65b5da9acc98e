"""Quest storage ports: abstract interfaces the planner core persists through.

Core modules depend on these protocols, never on a specific database.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from src.data.models import (
    DayWindow,
    LiveQuest,
    QuestDefinition,
    QuestFailed,
    RecurrenceRule,
    RolloverContext,
)


class StoreError(Exception):
    """Raised when a storage operation fails."""


class QuestDefinitionSource(Protocol):
    """Supplies the quest definitions to materialize for a user."""

    def find_definitions_for_user(self, user_key: str) -> Iterable[QuestDefinition]: ...


class LiveQuestStore(Protocol):
    """Lookup and creation of live instances.

    Implementations must enforce uniqueness of (day_num, live_key): a
    create that collides with an existing instance returns that instance
    instead of adding a second one.
    """

    def find_by_day_and_live_key(
        self, day: DayWindow, live_key: str
    ) -> LiveQuest | None: ...

    def create_live_quest(
        self,
        day: DayWindow,
        definition: QuestDefinition,
        rule: RecurrenceRule | None,
        deadline_millis: int,
        skip: bool,
    ) -> LiveQuest: ...

    def save(self, quest: LiveQuest) -> LiveQuest: ...


class RolloverStore(Protocol):
    """Enumeration, failure records and deletion used when a day closes."""

    def find_active_live_quests(self, day: DayWindow) -> list[LiveQuest]: ...

    def create_failure_record(
        self, quest: LiveQuest, context: RolloverContext, reason: str
    ) -> QuestFailed: ...

    def delete_live_quest(self, quest: LiveQuest) -> None: ...
