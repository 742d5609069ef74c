from dataclasses import dataclass
import os
import re
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from metrics_transfer.errors import ConfigurationError


load_dotenv()

_EXECUTION_TIME_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{1,2})\s*$")


@dataclass(frozen=True)
class ExecutionTime:
    hour: int
    minute: int

    def __post_init__(self) -> None:
        if not 0 <= self.hour <= 23:
            raise ConfigurationError(f"execution hour must be between 0 and 23, got {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ConfigurationError(f"execution minute must be between 0 and 59, got {self.minute}")

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class Settings:
    app_name: str
    source_database_url: str
    destination_database_url: str
    execution_time: ExecutionTime
    timezone: str
    tracked_projects: tuple[str, ...]
    log_level: str


def parse_execution_time(value: str) -> ExecutionTime:
    match = _EXECUTION_TIME_PATTERN.match(value)
    if match is None:
        raise ConfigurationError(f"execution time must be in HH:MM format, got {value!r}")
    return ExecutionTime(hour=int(match.group(1)), minute=int(match.group(2)))


def parse_projects(value: str) -> tuple[str, ...]:
    return tuple(project.strip() for project in value.split(",") if project.strip())


def get_settings(
    *,
    source_database_url: str | None = None,
    destination_database_url: str | None = None,
    execution_time: str | None = None,
) -> Settings:
    """Build settings from the environment, letting explicit values win.

    Raises ConfigurationError when either database URL is missing or invalid, the
    execution time is malformed or the time zone is unknown.
    """
    source_url = source_database_url or os.getenv("SOURCE_DATABASE_URL", "")
    destination_url = destination_database_url or os.getenv("DESTINATION_DATABASE_URL", "")
    if not source_url or not destination_url:
        raise ConfigurationError("source and destination database URLs must be provided")
    for label, url in (("source", source_url), ("destination", destination_url)):
        try:
            make_url(url)
        except (ArgumentError, ValueError) as exc:
            raise ConfigurationError(f"invalid {label} database URL: {exc}") from exc

    timezone = os.getenv("SCHEDULE_TIMEZONE", "UTC")
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"unknown time zone {timezone!r}") from exc

    return Settings(
        app_name=os.getenv("APP_NAME", "metrics-transfer"),
        source_database_url=source_url,
        destination_database_url=destination_url,
        execution_time=parse_execution_time(execution_time or os.getenv("EXECUTION_TIME", "23:00")),
        timezone=timezone,
        tracked_projects=parse_projects(os.getenv("TRACKED_PROJECTS", "ALEO,Quai_Garden")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
