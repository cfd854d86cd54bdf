import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import sessionmaker

from config import get_settings
from database import session_scope
from formatting import local_today
from recurrence import RecurringEngine


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# (job id, trigger kwargs, misfire grace seconds)
ADVANCE_JOBS = (
    ("recurring_after_midnight", {"cron": {"hour": 0, "minute": 5}}, 3600),
    ("recurring_hourly_safety", {"interval": {"hours": 1}}, 300),
)


def _trigger(trigger_args: dict, timezone: str):
    if "cron" in trigger_args:
        return CronTrigger(timezone=timezone, **trigger_args["cron"])
    return IntervalTrigger(timezone=timezone, **trigger_args["interval"])


class SchedulerManager:
    """Moves recurring expenses past their due dates without waiting for a request.

    Runs once at startup, shortly after local midnight, and hourly as a safety
    net. Runs are idempotent.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None) -> None:
        settings = get_settings()
        self.enabled = settings.scheduler_enabled
        self.timezone = settings.timezone
        self.session_factory = session_factory
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def run_once(self, source: str = "manual") -> int:
        today = local_today()
        logger.info("recurring_advance: source=%s today=%s", source, today.isoformat())
        with session_scope(self.session_factory) as session:
            count = RecurringEngine(session).advance_due(today)
        logger.info("recurring_advance: source=%s advanced=%d", source, count)
        return count

    def start(self) -> None:
        if not self.enabled:
            logger.info("Recurring scheduler disabled by FINTRACK_SCHEDULER_ENABLED")
            return

        self.run_once("startup")
        for job_id, trigger_args, grace in ADVANCE_JOBS:
            self.scheduler.add_job(
                self.run_once,
                _trigger(trigger_args, self.timezone),
                args=[job_id],
                id=job_id,
                replace_existing=True,
                misfire_grace_time=grace,
                coalesce=True,
            )
        self.scheduler.start()
        logger.info(
            "Recurring scheduler started: %s",
            ", ".join(job_id for job_id, _, _ in ADVANCE_JOBS),
        )

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Recurring scheduler stopped")
