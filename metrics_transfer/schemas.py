from dataclasses import dataclass
from datetime import date
from typing import Literal


MetricOutcome = Literal["succeeded", "already_recorded", "source_query_failed", "destination_write_failed"]

FAILED_OUTCOMES = frozenset({"source_query_failed", "destination_write_failed"})


@dataclass(frozen=True)
class MetricResult:
    key: str
    date: date
    count: int | None
    outcome: MetricOutcome
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.outcome in FAILED_OUTCOMES


@dataclass(frozen=True)
class TransferReport:
    run_date: date
    results: tuple[MetricResult, ...]

    @property
    def succeeded(self) -> tuple[MetricResult, ...]:
        return tuple(result for result in self.results if not result.failed)

    @property
    def failed(self) -> tuple[MetricResult, ...]:
        return tuple(result for result in self.results if result.failed)

    @property
    def has_failures(self) -> bool:
        return any(result.failed for result in self.results)
