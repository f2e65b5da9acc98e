"""
Questline Planner: Quest Database.

SQLite-backed storage for quest definitions, live instances and history.
QuestDB implements every storage port the planner core uses
(QuestDefinitionSource, LiveQuestStore, RolloverStore).

live_quests carries UNIQUE(day_num, live_key): two planners racing to
create the same instance end up with one row, and the loser gets the
winner's record back.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Callable

from src.core.day_window import now_millis
from src.data.keys import HistoryKind, history_key, live_key_for
from src.data.models import (
    Anchor,
    AnchorKind,
    Cadence,
    DayWindow,
    DurationUnit,
    LiveQuest,
    QuestCancelled,
    QuestCompleted,
    QuestDefinition,
    QuestFailed,
    QuestHistoryRecord,
    QuestSkipped,
    QuestSnapshot,
    QuestStatus,
    RecurrenceRule,
    RolloverContext,
)
from src.ports.quest_store_port import StoreError

logger = logging.getLogger(__name__)

_HISTORY_TYPES: dict[HistoryKind, type[QuestHistoryRecord]] = {
    HistoryKind.COMPLETED: QuestCompleted,
    HistoryKind.FAILED: QuestFailed,
    HistoryKind.CANCELLED: QuestCancelled,
    HistoryKind.SKIPPED: QuestSkipped,
}


def _rule_to_dict(rule: RecurrenceRule) -> dict:
    cadence = None
    if rule.cadence is not None:
        cadence = {
            "amount": rule.cadence.amount,
            "unit": rule.cadence.unit.value if rule.cadence.unit else None,
        }
    anchor = None
    if rule.anchor is not None:
        anchor = {
            "kind": rule.anchor.kind.value if rule.anchor.kind else None,
            "hour": rule.anchor.hour,
            "minute": rule.anchor.minute,
            "day_of_week": rule.anchor.day_of_week,
            "day_of_month": rule.anchor.day_of_month,
            "day_of_year": rule.anchor.day_of_year,
        }
    return {
        "rule_id": rule.rule_id,
        "parent_definition_id": rule.parent_definition_id,
        "cadence": cadence,
        "anchor": anchor,
        "active": rule.active,
        "auto_materialize": rule.auto_materialize,
        "active_range_start_millis": rule.active_range_start_millis,
        "active_range_end_millis": rule.active_range_end_millis,
    }


def _rule_from_dict(data: dict) -> RecurrenceRule:
    cadence = None
    if data.get("cadence") is not None:
        raw = data["cadence"]
        cadence = Cadence(
            amount=raw.get("amount"),
            unit=DurationUnit(raw["unit"]) if raw.get("unit") else None,
        )
    anchor = None
    if data.get("anchor") is not None:
        raw = data["anchor"]
        anchor = Anchor(
            kind=AnchorKind(raw["kind"]) if raw.get("kind") else None,
            hour=raw.get("hour"),
            minute=raw.get("minute"),
            day_of_week=raw.get("day_of_week"),
            day_of_month=raw.get("day_of_month"),
            day_of_year=raw.get("day_of_year"),
        )
    return RecurrenceRule(
        rule_id=data["rule_id"],
        parent_definition_id=data.get("parent_definition_id"),
        cadence=cadence,
        anchor=anchor,
        active=data.get("active", True),
        auto_materialize=data.get("auto_materialize", True),
        active_range_start_millis=data.get("active_range_start_millis"),
        active_range_end_millis=data.get("active_range_end_millis"),
    )


class QuestDB:
    """SQLite-backed storage for quest definitions, live quests and history."""

    def __init__(
        self,
        db_path: str,
        clock: Callable[[], int] | None = None,
    ) -> None:
        if not db_path:
            raise ValueError("db_path must not be empty")
        self._db_path = db_path
        self._clock = clock or now_millis
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create the tables if they don't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS quest_definitions (
                    definition_id                TEXT    PRIMARY KEY,
                    user_key                     TEXT    NOT NULL,
                    name                         TEXT    NOT NULL,
                    description                  TEXT    NOT NULL DEFAULT '',
                    priority                     INTEGER NOT NULL DEFAULT 0,
                    tags                         TEXT    NOT NULL DEFAULT '[]',
                    rules                        TEXT    NOT NULL DEFAULT '[]',
                    schedule_template_key        TEXT,
                    default_alarm_minutes        INTEGER,
                    default_grace_period_minutes INTEGER,
                    active                       INTEGER NOT NULL DEFAULT 1
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS live_quests (
                    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
                    day_num               INTEGER NOT NULL,
                    live_key              TEXT    NOT NULL,
                    parent_day_key        TEXT,
                    source_definition_key TEXT,
                    source_rule_key       TEXT,
                    deadline_millis       INTEGER NOT NULL DEFAULT 0,
                    status                TEXT,
                    skip                  INTEGER,
                    grace_period_minutes  INTEGER,
                    alarm_minutes         INTEGER,
                    snooze_until_millis   INTEGER,
                    effective_priority    INTEGER,
                    tags                  TEXT    NOT NULL DEFAULT '[]',
                    schedule_template_key TEXT,
                    created_at_millis     INTEGER,
                    updated_at_millis     INTEGER,
                    started_at_millis     INTEGER,
                    finished_at_millis    INTEGER,
                    UNIQUE (day_num, live_key)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS quest_history (
                    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
                    record_key            TEXT    NOT NULL UNIQUE,
                    kind                  TEXT    NOT NULL,
                    day_num               INTEGER NOT NULL,
                    live_key              TEXT    NOT NULL,
                    occurred_at_millis    INTEGER NOT NULL,
                    instance_key          TEXT,
                    source_definition_key TEXT,
                    source_rule_key       TEXT,
                    snapshot              TEXT,
                    notes                 TEXT    NOT NULL DEFAULT '',
                    deadline_at_millis    INTEGER,
                    duration_spent_millis INTEGER,
                    failure_reason        TEXT
                )
            """)
        logger.debug("Quest tables initialized at %s", self._db_path)

    # -- definitions ---------------------------------------------------------

    @staticmethod
    def _row_to_definition(row: sqlite3.Row) -> QuestDefinition:
        return QuestDefinition(
            definition_id=row["definition_id"],
            name=row["name"],
            description=row["description"],
            priority=row["priority"],
            tags=json.loads(row["tags"]),
            rules=[_rule_from_dict(r) for r in json.loads(row["rules"])],
            schedule_template_key=row["schedule_template_key"],
            default_alarm_minutes=row["default_alarm_minutes"],
            default_grace_period_minutes=row["default_grace_period_minutes"],
            active=bool(row["active"]),
        )

    def add_definition(self, user_key: str, definition: QuestDefinition) -> QuestDefinition:
        """Insert or replace a quest definition owned by user_key."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO quest_definitions
                    (definition_id, user_key, name, description, priority, tags,
                     rules, schedule_template_key, default_alarm_minutes,
                     default_grace_period_minutes, active)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    definition.definition_id, user_key, definition.name,
                    definition.description, definition.priority,
                    json.dumps(list(definition.tags)),
                    json.dumps([_rule_to_dict(r) for r in definition.rules]),
                    definition.schedule_template_key,
                    definition.default_alarm_minutes,
                    definition.default_grace_period_minutes,
                    int(definition.active),
                ),
            )
        logger.info(
            "Definition saved: %s '%s' (%d rules)",
            definition.definition_id, definition.name, len(definition.rules),
        )
        return definition

    def get_definition(self, definition_id: str) -> QuestDefinition | None:
        """Fetch a single definition by ID."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM quest_definitions WHERE definition_id = ?",
                (definition_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_definition(row)

    def find_definitions_for_user(self, user_key: str) -> list[QuestDefinition]:
        """Return every definition owned by user_key, active or not."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM quest_definitions WHERE user_key = ? ORDER BY definition_id",
                (user_key,),
            ).fetchall()
        return [self._row_to_definition(r) for r in rows]

    # -- live quests ---------------------------------------------------------

    @staticmethod
    def _row_to_live_quest(row: sqlite3.Row) -> LiveQuest:
        return LiveQuest(
            live_key=row["live_key"],
            day_num=row["day_num"],
            parent_day_key=row["parent_day_key"],
            source_definition_key=row["source_definition_key"],
            source_rule_key=row["source_rule_key"],
            deadline_millis=row["deadline_millis"],
            status=QuestStatus(row["status"]) if row["status"] else None,
            skip=None if row["skip"] is None else bool(row["skip"]),
            grace_period_minutes=row["grace_period_minutes"],
            alarm_minutes=row["alarm_minutes"],
            snooze_until_millis=row["snooze_until_millis"],
            effective_priority=row["effective_priority"],
            tags=json.loads(row["tags"]),
            schedule_template_key=row["schedule_template_key"],
            created_at_millis=row["created_at_millis"],
            updated_at_millis=row["updated_at_millis"],
            started_at_millis=row["started_at_millis"],
            finished_at_millis=row["finished_at_millis"],
        )

    def _get_live_quest(self, day_num: int, live_key: str) -> LiveQuest | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM live_quests WHERE day_num = ? AND live_key = ?",
                (day_num, live_key),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_live_quest(row)

    def find_by_day_and_live_key(self, day: DayWindow, live_key: str) -> LiveQuest | None:
        return self._get_live_quest(day.day_num, live_key)

    def create_live_quest(
        self,
        day: DayWindow,
        definition: QuestDefinition,
        rule: RecurrenceRule | None,
        deadline_millis: int,
        skip: bool,
    ) -> LiveQuest:
        """Insert a new live quest; a duplicate returns the existing row."""
        live_key = live_key_for(definition.definition_id, rule.rule_id if rule else None)
        now = self._clock()
        quest = LiveQuest(
            live_key=live_key,
            day_num=day.day_num,
            parent_day_key=day.key_prefix(),
            source_definition_key=definition.key,
            source_rule_key=rule.key if rule is not None else None,
            deadline_millis=deadline_millis,
            status=QuestStatus.ACTIVE,
            skip=skip,
            grace_period_minutes=None,
            alarm_minutes=definition.default_alarm_minutes,
            effective_priority=definition.priority,
            tags=list(definition.tags),
            schedule_template_key=definition.schedule_template_key,
            created_at_millis=now,
            updated_at_millis=now,
        )
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO live_quests
                        (day_num, live_key, parent_day_key, source_definition_key,
                         source_rule_key, deadline_millis, status, skip,
                         grace_period_minutes, alarm_minutes, effective_priority,
                         tags, schedule_template_key, created_at_millis,
                         updated_at_millis)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        quest.day_num, quest.live_key, quest.parent_day_key,
                        quest.source_definition_key, quest.source_rule_key,
                        quest.deadline_millis, quest.status.value, int(skip),
                        quest.grace_period_minutes, quest.alarm_minutes,
                        quest.effective_priority, json.dumps(quest.tags),
                        quest.schedule_template_key, now, now,
                    ),
                )
        except sqlite3.IntegrityError:
            existing = self._get_live_quest(day.day_num, live_key)
            if existing is None:
                raise
            logger.info("Live quest %s on day %d already exists", live_key, day.day_num)
            return existing

        logger.info("Live quest created: %s", quest.key)
        return quest

    def save(self, quest: LiveQuest) -> LiveQuest:
        """Persist every mutable field of quest and bump updated_at."""
        quest.updated_at_millis = self._clock()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE live_quests SET
                    parent_day_key = ?, source_definition_key = ?,
                    source_rule_key = ?, deadline_millis = ?, status = ?,
                    skip = ?, grace_period_minutes = ?, alarm_minutes = ?,
                    snooze_until_millis = ?, effective_priority = ?, tags = ?,
                    schedule_template_key = ?, updated_at_millis = ?,
                    started_at_millis = ?, finished_at_millis = ?
                WHERE day_num = ? AND live_key = ?
                """,
                (
                    quest.parent_day_key, quest.source_definition_key,
                    quest.source_rule_key, quest.deadline_millis or 0,
                    quest.status.value if quest.status else None,
                    None if quest.skip is None else int(quest.skip),
                    quest.grace_period_minutes, quest.alarm_minutes,
                    quest.snooze_until_millis, quest.effective_priority,
                    json.dumps(list(quest.tags)), quest.schedule_template_key,
                    quest.updated_at_millis, quest.started_at_millis,
                    quest.finished_at_millis, quest.day_num, quest.live_key,
                ),
            )
        if cursor.rowcount == 0:
            raise StoreError(f"Live quest {quest.key} not found")
        logger.debug("Live quest saved: %s", quest.key)
        return quest

    def list_live_quests(self, day_num: int) -> list[LiveQuest]:
        """Return every live quest of a day, whatever its status."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM live_quests WHERE day_num = ? ORDER BY live_key",
                (day_num,),
            ).fetchall()
        return [self._row_to_live_quest(r) for r in rows]

    def find_active_live_quests(self, day: DayWindow) -> list[LiveQuest]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM live_quests WHERE day_num = ? AND status = ? ORDER BY live_key",
                (day.day_num, QuestStatus.ACTIVE.value),
            ).fetchall()
        return [self._row_to_live_quest(r) for r in rows]

    def delete_live_quest(self, quest: LiveQuest) -> None:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM live_quests WHERE day_num = ? AND live_key = ?",
                (quest.day_num, quest.live_key),
            )
        if cursor.rowcount > 0:
            logger.info("Live quest deleted: %s", quest.key)

    # -- history -------------------------------------------------------------

    def _snapshot_for(self, quest: LiveQuest) -> QuestSnapshot | None:
        key = quest.source_definition_key
        if not key or not key.startswith("qdef/"):
            return None
        definition = self.get_definition(key[len("qdef/"):])
        if definition is None:
            return None
        return QuestSnapshot(
            name=definition.name,
            description=definition.description,
            tags=tuple(definition.tags),
            priority=definition.priority,
        )

    def create_failure_record(
        self, quest: LiveQuest, context: RolloverContext, reason: str,
    ) -> QuestFailed:
        """Write the fld record for quest; records are never overwritten."""
        record = QuestFailed(
            day_num=quest.day_num,
            live_key=quest.live_key,
            occurred_at_millis=context.now_millis,
            instance_key=quest.key,
            source_definition_key=quest.source_definition_key,
            source_rule_key=quest.source_rule_key,
            snapshot=self._snapshot_for(quest),
            deadline_at_millis=quest.deadline_millis,
            duration_spent_millis=(
                context.now_millis - quest.started_at_millis
                if quest.started_at_millis else None
            ),
            failure_reason=reason,
        )
        self._insert_history(record)
        logger.info("Failure recorded: %s (%s)", record.key, reason)
        return record

    def _insert_history(self, record: QuestHistoryRecord) -> None:
        snapshot = None
        if record.snapshot is not None:
            snapshot = json.dumps({
                "name": record.snapshot.name,
                "description": record.snapshot.description,
                "tags": list(record.snapshot.tags),
                "priority": record.snapshot.priority,
            })
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO quest_history
                        (record_key, kind, day_num, live_key, occurred_at_millis,
                         instance_key, source_definition_key, source_rule_key,
                         snapshot, notes, deadline_at_millis,
                         duration_spent_millis, failure_reason)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.key, record.kind.value, record.day_num,
                        record.live_key, record.occurred_at_millis,
                        record.instance_key, record.source_definition_key,
                        record.source_rule_key, snapshot, record.notes,
                        getattr(record, "deadline_at_millis", None),
                        getattr(record, "duration_spent_millis", None),
                        getattr(record, "failure_reason", None),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise StoreError(f"History record {record.key} already exists") from exc

    @staticmethod
    def _row_to_history(row: sqlite3.Row) -> QuestHistoryRecord:
        kind = HistoryKind(row["kind"])
        snapshot = None
        if row["snapshot"]:
            raw = json.loads(row["snapshot"])
            snapshot = QuestSnapshot(
                name=raw["name"],
                description=raw.get("description", ""),
                tags=tuple(raw.get("tags", [])),
                priority=raw.get("priority", 0),
            )
        common = dict(
            day_num=row["day_num"],
            live_key=row["live_key"],
            occurred_at_millis=row["occurred_at_millis"],
            instance_key=row["instance_key"],
            source_definition_key=row["source_definition_key"],
            source_rule_key=row["source_rule_key"],
            snapshot=snapshot,
            notes=row["notes"],
        )
        if kind is HistoryKind.FAILED:
            return QuestFailed(
                **common,
                deadline_at_millis=row["deadline_at_millis"],
                duration_spent_millis=row["duration_spent_millis"],
                failure_reason=row["failure_reason"] or "",
            )
        if kind is HistoryKind.COMPLETED:
            return QuestCompleted(
                **common,
                deadline_at_millis=row["deadline_at_millis"],
                duration_spent_millis=row["duration_spent_millis"],
            )
        return _HISTORY_TYPES[kind](**common)

    def list_history(
        self, day_num: int, kind: HistoryKind | None = None,
    ) -> list[QuestHistoryRecord]:
        """Return the history records of a day, optionally of one kind."""
        query = "SELECT * FROM quest_history WHERE day_num = ?"
        params: list = [day_num]
        if kind is not None:
            query += " AND kind = ?"
            params.append(kind.value)
        query += " ORDER BY live_key"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_history(r) for r in rows]

    def get_history(
        self, kind: HistoryKind, day_num: int, live_key: str,
    ) -> QuestHistoryRecord | None:
        """Fetch one history record by its dy/{n}/{kind}/{live_key} key."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM quest_history WHERE record_key = ?",
                (history_key(kind, day_num, live_key),),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_history(row)
