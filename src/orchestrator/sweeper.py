"""Periodic maintenance: memory retention, stale circuits, decision cache."""

from datetime import timedelta

import structlog
from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from observability import metrics

logger = structlog.get_logger(source="sweeper")


class MaintenanceSweeper:
    """Runs the sweep job on an APScheduler background thread.

    Every step works on snapshots, so a sweep never blocks requests.
    """

    def __init__(
        self,
        memory=None,
        health=None,
        decision_cache=None,
        grace_period: timedelta = timedelta(hours=24),
        interval_minutes: int = 60,
    ):
        self.memory = memory
        self.health = health
        self.decision_cache = decision_cache
        self.grace_period = grace_period
        self.interval_minutes = interval_minutes
        self.scheduler = BackgroundScheduler()

    def run_once(self) -> dict:
        """Run every maintenance step now and return what each one removed."""
        summary = {"memory_removed": 0, "circuits_reset": [], "decisions_expired": 0}
        with metrics.timer("sweeper.run"):
            if self.memory is not None:
                summary["memory_removed"] = self.memory.sweep(self.grace_period)
            if self.health is not None:
                summary["circuits_reset"] = self.health.reset_stale()
            if self.decision_cache is not None:
                summary["decisions_expired"] = self.decision_cache.clear_expired()
        logger.info("sweeper.complete", **summary)
        return summary

    def _on_error(self, event):
        logger.error(
            "job_error",
            job_id=event.job_id,
            exception=str(event.exception),
            traceback=event.traceback,
        )

    def start(self):
        self.scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="maintenance_sweep",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        self.scheduler.add_listener(self._on_error, EVENT_JOB_ERROR)
        self.scheduler.start()
        logger.info("sweeper.started", interval_minutes=self.interval_minutes)

    def stop(self):
        """Stop scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
