import argparse
import logging
import signal

from metrics_transfer.catalog import build_catalog
from metrics_transfer.config import get_settings
from metrics_transfer.errors import ConfigurationError, DatabaseConnectionError
from metrics_transfer.pipeline import TransferPipeline
from metrics_transfer.scheduler import DailyScheduler


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Copy daily metric counts from the analytical to the operational database")
    parser.add_argument("--source-url", help="SQLAlchemy URL of the source database (default: $SOURCE_DATABASE_URL)")
    parser.add_argument(
        "--destination-url",
        help="SQLAlchemy URL of the destination database (default: $DESTINATION_DATABASE_URL)",
    )
    parser.add_argument("--execution-time", help="Daily execution time in HH:MM format (default: $EXECUTION_TIME or 23:00)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run", help="transfer today's metrics once")

    schedule_parser = subparsers.add_parser("schedule", help="start daily scheduler")
    schedule_parser.add_argument("--run-now", action="store_true", help="also run once immediately")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = get_settings(
            source_database_url=args.source_url,
            destination_database_url=args.destination_url,
            execution_time=args.execution_time,
        )
    except ConfigurationError as exc:
        parser.error(str(exc))

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    pipeline = TransferPipeline(settings, build_catalog(settings.tracked_projects))
    if args.command == "schedule":
        scheduler = DailyScheduler(settings, pipeline)
        signal.signal(signal.SIGTERM, lambda signum, frame: scheduler.stop())
        try:
            exit_code = scheduler.start(run_now=args.run_now)
        except KeyboardInterrupt:
            logger.info("scheduler interrupted")
            exit_code = 0
        if exit_code:
            raise SystemExit(exit_code)
        return

    try:
        report = pipeline.run()
    except DatabaseConnectionError as exc:
        logger.error("metrics transfer aborted: %s", exc)
        raise SystemExit(1) from exc

    for result in report.results:
        print(
            "key={key} date={date} count={count} outcome={outcome}".format(
                key=result.key,
                date=result.date.isoformat(),
                count=result.count if result.count is not None else "-",
                outcome=result.outcome,
            )
        )
    if report.has_failures:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
