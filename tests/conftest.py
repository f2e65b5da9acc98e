"""Shared test fixtures and configuration.

Provides a temp QuestDB, a UTC/rollover-4 calculator and cache, and small
builders for definitions and rules.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "UTC")
os.environ.setdefault("ROLLOVER_HOUR", "4")

import pytest

from src.config import PlannerConfig
from src.core.day_cache import DayWindowCache
from src.core.day_window import DayWindowCalculator
from src.data.models import (
    Anchor,
    AnchorKind,
    Cadence,
    DurationUnit,
    QuestDefinition,
    RecurrenceRule,
)

# 2025-10-20 12:00:00 UTC, day 10 under UTC / rollover 4
NOON_DAY_10 = 1760961600000


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_quests.db")


@pytest.fixture
def quest_db(tmp_db_path):
    """Return a QuestDB instance backed by a temp file."""
    from src.data.db import QuestDB
    return QuestDB(db_path=tmp_db_path, clock=lambda: NOON_DAY_10)


@pytest.fixture
def planner_config():
    return PlannerConfig(timezone="UTC", rollover_hour=4)


@pytest.fixture
def calculator(planner_config):
    return DayWindowCalculator(planner_config)


@pytest.fixture
def day_cache(calculator):
    return DayWindowCache(calculator)


@pytest.fixture
def noon_day_10():
    """2025-10-20 12:00:00 UTC, day 10 under UTC / rollover 4."""
    return NOON_DAY_10


@pytest.fixture
def make_rule():
    """Build a DAILY-anchored rule that repeats every day unless overridden."""
    def _make(rule_id="r1", hour=9, minute=30, **kwargs):
        kwargs.setdefault("anchor", Anchor(AnchorKind.DAILY, hour=hour, minute=minute))
        kwargs.setdefault("cadence", Cadence(1, DurationUnit.DAY))
        return RecurrenceRule(rule_id=rule_id, **kwargs)
    return _make


@pytest.fixture
def make_definition(make_rule):
    """Build a QuestDefinition; one default rule unless rules are given."""
    def _make(definition_id="q1", rules=None, **kwargs):
        kwargs.setdefault("name", f"Quest {definition_id}")
        return QuestDefinition(
            definition_id=definition_id,
            rules=[make_rule()] if rules is None else rules,
            **kwargs,
        )
    return _make
