"""
Recurring trigger for the Exam Watcher bot, built on APScheduler.

The watcher cycle is registered as a single cron job that also fires once
immediately at start. ``max_instances=1`` makes a firing that lands while
a cycle is still running get dropped instead of queued.
"""

from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from exam_watcher.utils import get_logger


# Module logger
logger = get_logger("scheduler")

CYCLE_JOB_ID = "watcher::cycle"


def build_trigger(expression: str) -> CronTrigger:
    """
    Build a cron trigger from a 5-field crontab expression.

    Raises:
        ValueError: If the expression is not valid crontab syntax.
    """
    return CronTrigger.from_crontab(expression)


class CycleScheduler:
    """Run a cycle callback on a cron schedule, plus once at startup."""

    def __init__(
        self,
        cycle: Callable[[], object],
        expression: str,
        scheduler: Optional[BlockingScheduler] = None
    ) -> None:
        self.cycle = cycle
        self.expression = expression
        self.trigger = build_trigger(expression)
        self.scheduler = scheduler or BlockingScheduler()
        self.started = False

    def schedule(self, run_now: bool = True) -> None:
        kwargs = {}
        if run_now:
            kwargs["next_run_time"] = datetime.now(self.trigger.timezone)
        self.scheduler.add_job(
            self.cycle,
            trigger=self.trigger,
            id=CYCLE_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            **kwargs
        )
        logger.info(f"Monitoring scheduled with cron expression '{self.expression}'")

    def start(self) -> None:
        """Schedule the job and block until the scheduler is shut down."""
        if self.started:
            return
        self.schedule()
        self.started = True
        logger.info("Scheduler started")
        self.scheduler.start()

    def shutdown(self) -> None:
        if self.started and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            self.started = False
            logger.info("Scheduler stopped")
