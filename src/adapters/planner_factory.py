"""Planner factory: wires the core services to SQLite and schedule templates."""

from __future__ import annotations

from dataclasses import dataclass

from src.adapters.schedule_templates import (
    NeverSkipSchedule,
    ScheduleTemplate,
    WeekdayScheduleService,
)
from src.config import Settings
from src.core.day_cache import DayWindowCache
from src.core.day_window import DayWindowCalculator
from src.core.materializer import QuestMaterializer
from src.core.planner import DayPlanner
from src.core.rollover import RolloverSweeper
from src.data.db import QuestDB
from src.ports.schedule_port import ScheduleTemplateService

WORKDAY_TEMPLATE = "workday"


@dataclass
class PlannerServices:
    calculator: DayWindowCalculator
    day_cache: DayWindowCache
    db: QuestDB
    schedule: ScheduleTemplateService
    materializer: QuestMaterializer
    planner: DayPlanner
    sweeper: RolloverSweeper


def create_schedule_service(settings: Settings) -> ScheduleTemplateService:
    """Return the schedule service matching the WORKDAYS setting.

    Without WORKDAYS nothing is ever skipped.
    """
    if not settings.WORKDAYS:
        return NeverSkipSchedule()
    workday = ScheduleTemplate(WORKDAY_TEMPLATE, frozenset(settings.WORKDAYS))
    return WeekdayScheduleService({workday.name: workday})


def create_planner_services(settings: Settings, db: QuestDB | None = None) -> PlannerServices:
    """Build the full service graph from settings.

    Args:
        settings: Validated application settings.
        db: Store to use instead of opening settings.DATABASE_PATH.
    """
    config = settings.planner_config()
    calculator = DayWindowCalculator(config)
    day_cache = DayWindowCache(calculator, config.day_cache_max_size)
    store = db if db is not None else QuestDB(settings.DATABASE_PATH)
    schedule = create_schedule_service(settings)
    materializer = QuestMaterializer(store)
    planner = DayPlanner(day_cache, store, schedule, materializer)
    sweeper = RolloverSweeper(day_cache, store, planner)
    return PlannerServices(
        calculator=calculator,
        day_cache=day_cache,
        db=store,
        schedule=schedule,
        materializer=materializer,
        planner=planner,
        sweeper=sweeper,
    )
