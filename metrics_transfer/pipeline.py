from collections.abc import Callable, Sequence
from datetime import date, datetime
import logging
from zoneinfo import ZoneInfo

from sqlalchemy import Connection

from metrics_transfer.catalog import MetricDefinition
from metrics_transfer.config import Settings
from metrics_transfer.database import open_connection
from metrics_transfer.errors import (
    DestinationConnectionError,
    DuplicateRowError,
    QueryError,
    SourceConnectionError,
    WriteError,
)
from metrics_transfer.metric_store import read_count, write_count
from metrics_transfer.schemas import MetricResult, TransferReport


logger = logging.getLogger(__name__)


class TransferPipeline:
    def __init__(
        self,
        settings: Settings,
        catalog: Sequence[MetricDefinition],
        *,
        today: Callable[[], date] | None = None,
    ) -> None:
        self.settings = settings
        self.catalog = tuple(catalog)
        self._today = today or self._local_today

    def run(self) -> TransferReport:
        """Transfer every catalog metric for today's date.

        Connection failures raise SourceConnectionError or
        DestinationConnectionError; per-metric failures are recorded in the
        report and never stop the remaining metrics.
        """
        # One date for the whole run, even if it crosses midnight.
        run_date = self._today()
        logger.info(
            "metrics transfer started",
            extra={"run_date": run_date.isoformat(), "metrics": len(self.catalog)},
        )

        with open_connection(self.settings.source_database_url, error_cls=SourceConnectionError) as source:
            with open_connection(
                self.settings.destination_database_url,
                error_cls=DestinationConnectionError,
            ) as destination:
                results = tuple(
                    self._transfer_metric(source, destination, definition, run_date)
                    for definition in self.catalog
                )

        report = TransferReport(run_date=run_date, results=results)
        logger.info(
            "metrics transfer completed",
            extra={
                "run_date": run_date.isoformat(),
                "succeeded": len(report.succeeded),
                "failed": len(report.failed),
            },
        )
        return report

    def _transfer_metric(
        self,
        source: Connection,
        destination: Connection,
        definition: MetricDefinition,
        run_date: date,
    ) -> MetricResult:
        try:
            count = read_count(source, definition.query, definition.params)
        except QueryError as exc:
            logger.error("source query failed key=%s date=%s error=%s", definition.key, run_date, exc)
            return MetricResult(definition.key, run_date, None, "source_query_failed", str(exc))

        try:
            write_count(destination, definition.key, run_date, count)
        except DuplicateRowError as exc:
            logger.info("metric already recorded key=%s date=%s count=%d", definition.key, run_date, count)
            return MetricResult(definition.key, run_date, count, "already_recorded", str(exc))
        except WriteError as exc:
            logger.error("destination write failed key=%s date=%s count=%d error=%s", definition.key, run_date, count, exc)
            return MetricResult(definition.key, run_date, count, "destination_write_failed", str(exc))

        logger.info("metric recorded key=%s date=%s count=%d", definition.key, run_date, count)
        return MetricResult(definition.key, run_date, count, "succeeded")

    def _local_today(self) -> date:
        return datetime.now(ZoneInfo(self.settings.timezone)).date()
