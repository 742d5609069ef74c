from collections.abc import Callable
from datetime import datetime, timedelta
import logging
from zoneinfo import ZoneInfo

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler

from metrics_transfer.config import ExecutionTime, Settings
from metrics_transfer.errors import DatabaseConnectionError
from metrics_transfer.pipeline import TransferPipeline


logger = logging.getLogger(__name__)


def next_due_time(execution_time: ExecutionTime, now: datetime) -> datetime:
    """Return today at the execution time, or tomorrow if that already passed."""
    execution = now.replace(hour=execution_time.hour, minute=execution_time.minute, second=0, microsecond=0)
    if now > execution:
        execution += timedelta(days=1)
    return execution


class DailyScheduler:
    def __init__(
        self,
        settings: Settings,
        pipeline: TransferPipeline,
        *,
        scheduler: BaseScheduler | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings
        self.pipeline = pipeline
        self.tz = ZoneInfo(settings.timezone)
        # A single worker keeps runs strictly sequential.
        self.scheduler = scheduler or BlockingScheduler(
            timezone=self.tz,
            executors={"default": ThreadPoolExecutor(max_workers=1)},
        )
        self._now = now or (lambda: datetime.now(self.tz))
        self.exit_code = 0
        self._stop_requested = False

    def start(self, *, run_now: bool = False) -> int:
        logger.info(
            "scheduler started",
            extra={"execution_time": str(self.settings.execution_time), "timezone": self.settings.timezone},
        )

        if run_now and not self.run_once():
            return self.exit_code
        if self._stop_requested:
            return self.exit_code

        self.schedule_next()
        self.scheduler.start()
        return self.exit_code

    def stop(self) -> None:
        # Honoured by start() when requested before the scheduler is running.
        self._stop_requested = True
        if self.scheduler.running:
            logger.info("scheduler stopping")
            self.scheduler.shutdown(wait=False)

    def schedule_next(self) -> datetime:
        due = next_due_time(self.settings.execution_time, self._now())
        self.scheduler.add_job(
            self._run_scheduled,
            "date",
            run_date=due,
            id=f"metrics_transfer_{due.isoformat()}",
            misfire_grace_time=None,
        )
        logger.info("next metrics transfer scheduled", extra={"due": due.isoformat()})
        return due

    def run_once(self) -> bool:
        """Run one transfer; return False when the process should stop."""
        try:
            report = self.pipeline.run()
        except DatabaseConnectionError:
            logger.exception("metrics transfer aborted, database unreachable")
            self.exit_code = 1
            return False
        except Exception:
            logger.exception("metrics transfer failed unexpectedly")
            return True

        if report.has_failures:
            logger.error(
                "scheduled metrics transfer finished with failures",
                extra={"run_date": report.run_date.isoformat(), "failed": [r.key for r in report.failed]},
            )
        else:
            logger.info(
                "scheduled metrics transfer completed",
                extra={"run_date": report.run_date.isoformat()},
            )
        return True

    def _run_scheduled(self) -> None:
        keep_running = False
        try:
            keep_running = self.run_once()
        finally:
            if keep_running and not self._stop_requested:
                self.schedule_next()
            else:
                self.stop()
