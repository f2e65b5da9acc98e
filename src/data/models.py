"""
Questline Planner: Data Models.

Day identifiers, day windows, recurrence rules and the quest entities the
planner materializes. Quest definitions are templates; a LiveQuest is the
concrete instance of one (definition, rule) pair on one logical day, and
history records are the immutable trail left behind when it ends.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import ClassVar

from src.data.keys import HistoryKind, day_key, history_key, live_quest_key

EPOCH_DATE = date(2025, 10, 10)

MILLIS_PER_MINUTE = 60_000
MILLIS_PER_HOUR = 3_600_000
MILLIS_PER_DAY = 86_400_000

# Midnight of EPOCH_DATE; in UTC for instants, on the local wall clock for
# day counting.
EPOCH_MILLIS = int(
    datetime(EPOCH_DATE.year, EPOCH_DATE.month, EPOCH_DATE.day, tzinfo=timezone.utc)
    .timestamp() * 1000
)

DAY_NAMES = (
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
)


@dataclass(frozen=True, order=True)
class DayIndex:
    """A logical day, counted in whole days from EPOCH_DATE.

    DayIndex(0) is the epoch date; negative values are before it.
    """

    day_num: int

    @classmethod
    def of(cls, day_num: int) -> DayIndex:
        return cls(day_num)

    @classmethod
    def epoch(cls) -> DayIndex:
        return cls(0)

    def plus_days(self, days: int) -> DayIndex:
        return DayIndex(self.day_num + days)

    def minus_days(self, days: int) -> DayIndex:
        return DayIndex(self.day_num - days)

    def days_until(self, other: DayIndex) -> int:
        return other.day_num - self.day_num

    def is_before(self, other: DayIndex) -> bool:
        return self.day_num < other.day_num

    def is_after(self, other: DayIndex) -> bool:
        return self.day_num > other.day_num

    def key_prefix(self) -> str:
        return day_key(self.day_num)


@dataclass(frozen=True)
class DayWindow:
    """Concrete span of one logical day in one timezone/rollover setup.

    end_timestamp is inclusive (one millisecond before the next day starts).
    duration_millis is 24h except on days where a DST change shifts the
    computed boundary.
    """

    day_num: int
    timezone_id: str
    rollover_hour: int
    start_timestamp: int
    end_timestamp: int
    duration_millis: int
    day_of_week: int      # 0=Sunday .. 6=Saturday
    day_of_month: int     # 1-31
    day_of_year: int      # 1-366
    day_name: str         # e.g. "Monday"

    @property
    def day_index(self) -> DayIndex:
        return DayIndex(self.day_num)

    def key_prefix(self) -> str:
        return day_key(self.day_num)

    def contains(self, epoch_millis: int) -> bool:
        return self.start_timestamp <= epoch_millis <= self.end_timestamp


class DurationUnit(str, Enum):
    DAY = "DAY"
    WEEK = "WEEK"
    MONTH = "MONTH"
    YEAR = "YEAR"


@dataclass(frozen=True)
class Cadence:
    """Repeat interval of a recurrence rule, e.g. every 2 WEEK."""

    amount: int | None
    unit: DurationUnit | None


class AnchorKind(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


@dataclass(frozen=True)
class Anchor:
    """Where within its period a recurring item is due.

    hour/minute are always required; the selector that applies depends
    on kind (day_of_week for WEEKLY, day_of_month for MONTHLY,
    day_of_year for YEARLY).
    """

    kind: AnchorKind | None
    hour: int | None = None
    minute: int | None = None
    day_of_week: int | None = None    # 0=Sunday .. 6=Saturday
    day_of_month: int | None = None   # 1-31
    day_of_year: int | None = None    # 1-366


class QuestStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    FINISHED = "FINISHED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"
    ARCHIVED = "ARCHIVED"


@dataclass
class RecurrenceRule:
    """Relative cadence + anchor used to materialize LiveQuest instances.

    Set auto_materialize=False for rules that require a manual start.
    """

    rule_id: str
    cadence: Cadence | None = None
    anchor: Anchor | None = None
    active: bool = True
    auto_materialize: bool = True
    parent_definition_id: str | None = None
    active_range_start_millis: int | None = None
    active_range_end_millis: int | None = None

    def __post_init__(self) -> None:
        if not self.rule_id:
            raise ValueError("RecurrenceRule.rule_id must not be empty")

    @property
    def key(self) -> str:
        return f"qrule/{self.rule_id}"


@dataclass
class QuestDefinition:
    """Canonical quest template: name, tags, rules and per-quest defaults."""

    definition_id: str
    name: str
    description: str = ""
    priority: int = 0
    tags: list[str] = field(default_factory=list)
    rules: list[RecurrenceRule] = field(default_factory=list)
    schedule_template_key: str | None = None
    default_alarm_minutes: int | None = None
    default_grace_period_minutes: int | None = None
    active: bool = True

    def __post_init__(self) -> None:
        if not self.definition_id:
            raise ValueError("QuestDefinition.definition_id must not be empty")
        if "/" in self.definition_id:
            raise ValueError(
                f"QuestDefinition.definition_id must not contain '/': "
                f"{self.definition_id!r}"
            )

    @property
    def key(self) -> str:
        return f"qdef/{self.definition_id}"


@dataclass
class LiveQuest:
    """Active instance of a (definition, rule) pair on one logical day.

    Fields left as None by a store are backfilled by the materializer.
    deadline_millis == 0 means no deadline.
    """

    live_key: str | None = None
    day_num: int | None = None
    parent_day_key: str | None = None
    source_definition_key: str | None = None
    source_rule_key: str | None = None
    deadline_millis: int | None = 0
    status: QuestStatus | None = None
    skip: bool | None = None
    grace_period_minutes: int | None = None
    alarm_minutes: int | None = None
    snooze_until_millis: int | None = None
    effective_priority: int | None = None
    tags: list[str] = field(default_factory=list)
    schedule_template_key: str | None = None
    created_at_millis: int | None = None
    updated_at_millis: int | None = None
    started_at_millis: int | None = None
    finished_at_millis: int | None = None

    @property
    def key(self) -> str:
        return live_quest_key(self.day_num, self.live_key)


@dataclass(frozen=True)
class QuestSnapshot:
    """Definition fields frozen into history so records render stably."""

    name: str
    description: str = ""
    tags: tuple[str, ...] = ()
    priority: int = 0


@dataclass(frozen=True)
class QuestHistoryRecord:
    """Common fields of the completed/failed/cancelled/skipped records."""

    day_num: int
    live_key: str
    occurred_at_millis: int
    instance_key: str | None = None
    source_definition_key: str | None = None
    source_rule_key: str | None = None
    snapshot: QuestSnapshot | None = None
    notes: str = ""

    kind: ClassVar[HistoryKind]

    @property
    def key(self) -> str:
        return history_key(self.kind, self.day_num, self.live_key)


@dataclass(frozen=True)
class QuestCompleted(QuestHistoryRecord):
    deadline_at_millis: int | None = None
    duration_spent_millis: int | None = None

    kind = HistoryKind.COMPLETED


@dataclass(frozen=True)
class QuestFailed(QuestHistoryRecord):
    deadline_at_millis: int | None = None
    duration_spent_millis: int | None = None
    failure_reason: str = ""

    kind = HistoryKind.FAILED


@dataclass(frozen=True)
class QuestCancelled(QuestHistoryRecord):
    kind = HistoryKind.CANCELLED


@dataclass(frozen=True)
class QuestSkipped(QuestHistoryRecord):
    kind = HistoryKind.SKIPPED


@dataclass(frozen=True)
class RolloverContext:
    """One rollover run: the day being closed, the day being opened, now."""

    from_day: DayWindow
    to_day: DayWindow
    now_millis: int
