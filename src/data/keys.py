"""Persisted key scheme for days, live quests and history records.

Everything a day owns is splayed under its prefix:

    dy/{day_num}/lv/{live_key}     live instance
    dy/{day_num}/dn/{live_key}     completed
    dy/{day_num}/fld/{live_key}    failed
    dy/{day_num}/cncl/{live_key}   cancelled
    dy/{day_num}/skp/{live_key}    skipped

where live_key is "{definition_id}[/{rule_id}]".
"""

from __future__ import annotations

from enum import Enum

LIVE_SEGMENT = "lv"


class HistoryKind(str, Enum):
    COMPLETED = "dn"
    FAILED = "fld"
    CANCELLED = "cncl"
    SKIPPED = "skp"


def day_key(day_num: int) -> str:
    return f"dy/{day_num}"


def live_key_for(definition_id: str, rule_id: str | None = None) -> str:
    """Build the stable LiveKey for a definition and optional rule."""
    if not definition_id:
        raise ValueError("definition_id must not be empty")
    if not rule_id:
        return definition_id
    return f"{definition_id}/{rule_id}"


def live_quest_key(day_num: int, live_key: str) -> str:
    return f"{day_key(day_num)}/{LIVE_SEGMENT}/{live_key}"


def history_key(kind: HistoryKind, day_num: int, live_key: str) -> str:
    return f"{day_key(day_num)}/{kind.value}/{live_key}"
