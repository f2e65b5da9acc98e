"""
Questline Planner: Entry Point.

`python main.py` runs the daily maintenance for DEFAULT_USER_KEY: closes
yesterday (failing overdue quests) and makes sure today is materialized.
Safe to run repeatedly, e.g. from cron shortly after the rollover hour.
"""

import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from src.adapters.planner_factory import create_planner_services
from src.config import load_settings

logger = logging.getLogger(__name__)


def main() -> None:
    settings = load_settings()
    services = create_planner_services(settings)
    user_key = settings.DEFAULT_USER_KEY

    failures = services.sweeper.run_rollover_for_yesterday(user_key)
    today = services.planner.ensure_today(user_key)

    logger.info(
        "Maintenance done for %s: %d failed yesterday, %d live quests today",
        user_key, len(failures), len(today),
    )


if __name__ == "__main__":
    main()
