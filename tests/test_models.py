"""Tests for src.data.models and src.data.keys."""

import pytest

from src.data.keys import HistoryKind, day_key, history_key, live_key_for, live_quest_key
from src.data.models import (
    EPOCH_MILLIS,
    DayIndex,
    LiveQuest,
    QuestDefinition,
    QuestFailed,
    QuestSkipped,
    RecurrenceRule,
)


class TestDayIndex:
    def test_epoch_is_zero(self):
        assert DayIndex.epoch() == DayIndex.of(0)

    def test_epoch_millis_is_midnight_utc_of_epoch_date(self):
        # 2025-10-10T00:00:00Z
        assert EPOCH_MILLIS == 1760054400000

    def test_plus_and_minus(self):
        day = DayIndex.of(10)
        assert day.plus_days(5) == DayIndex.of(15)
        assert day.minus_days(12) == DayIndex.of(-2)

    def test_days_until(self):
        assert DayIndex.of(3).days_until(DayIndex.of(10)) == 7
        assert DayIndex.of(10).days_until(DayIndex.of(3)) == -7

    def test_ordering(self):
        assert DayIndex.of(1).is_before(DayIndex.of(2))
        assert DayIndex.of(2).is_after(DayIndex.of(1))
        assert DayIndex.of(1) < DayIndex.of(2)
        assert sorted([DayIndex.of(3), DayIndex.of(-1)]) == [DayIndex.of(-1), DayIndex.of(3)]

    def test_hashable(self):
        assert len({DayIndex.of(1), DayIndex.of(1), DayIndex.of(2)}) == 2

    def test_key_prefix(self):
        assert DayIndex.of(42).key_prefix() == "dy/42"
        assert DayIndex.of(-3).key_prefix() == "dy/-3"


class TestKeys:
    def test_day_key(self):
        assert day_key(7) == "dy/7"

    def test_live_key_with_rule(self):
        assert live_key_for("q1", "r1") == "q1/r1"

    def test_live_key_without_rule(self):
        assert live_key_for("q1") == "q1"

    def test_live_key_requires_definition(self):
        with pytest.raises(ValueError):
            live_key_for("", "r1")

    def test_live_quest_key(self):
        assert live_quest_key(5, "q1/r1") == "dy/5/lv/q1/r1"

    @pytest.mark.parametrize("kind,segment", [
        (HistoryKind.COMPLETED, "dn"),
        (HistoryKind.FAILED, "fld"),
        (HistoryKind.CANCELLED, "cncl"),
        (HistoryKind.SKIPPED, "skp"),
    ])
    def test_history_key(self, kind, segment):
        assert history_key(kind, 5, "q1/r1") == f"dy/5/{segment}/q1/r1"


class TestEntities:
    def test_definition_rejects_empty_id(self):
        with pytest.raises(ValueError):
            QuestDefinition(definition_id="", name="x")

    def test_definition_rejects_slash_in_id(self):
        with pytest.raises(ValueError, match="'/'"):
            QuestDefinition(definition_id="a/b", name="x")

    def test_definition_and_rule_keys(self):
        assert QuestDefinition(definition_id="q1", name="x").key == "qdef/q1"
        assert RecurrenceRule(rule_id="r1").key == "qrule/r1"

    def test_rule_rejects_empty_id(self):
        with pytest.raises(ValueError):
            RecurrenceRule(rule_id="")

    def test_live_quest_defaults(self):
        quest = LiveQuest()
        assert quest.deadline_millis == 0
        assert quest.status is None
        assert quest.tags == []

    def test_live_quest_key(self):
        assert LiveQuest(live_key="q1/r1", day_num=3).key == "dy/3/lv/q1/r1"

    def test_history_record_keys(self):
        failed = QuestFailed(day_num=3, live_key="q1/r1", occurred_at_millis=1)
        skipped = QuestSkipped(day_num=3, live_key="q1", occurred_at_millis=1)
        assert failed.key == "dy/3/fld/q1/r1"
        assert skipped.key == "dy/3/skp/q1"
