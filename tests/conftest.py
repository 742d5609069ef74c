from collections.abc import Callable
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy import MetaData, create_engine, text

from metrics_transfer.catalog import MetricDefinition
from metrics_transfer.config import ExecutionTime, Settings
from metrics_transfer.db_models import metric_count_table
from metrics_transfer.pipeline import TransferPipeline


DESTINATION_TABLES = ("active_machines_count", "active_machines_count_aleo", "lost_users_count")


@pytest.fixture()
def source_url(tmp_path: Path) -> str:
    url = f"sqlite:///{tmp_path / 'source.db'}"
    engine = create_engine(url)
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE machine (id INTEGER PRIMARY KEY, project TEXT NOT NULL)"))
        conn.execute(
            text("INSERT INTO machine (project) VALUES (:project)"),
            [{"project": "ALEO"}] * 7 + [{"project": "Quai_Garden"}] * 2,
        )
    engine.dispose()
    return url


@pytest.fixture()
def destination_url(tmp_path: Path) -> str:
    url = f"sqlite:///{tmp_path / 'destination.db'}"
    engine = create_engine(url)
    metadata = MetaData()
    for key in DESTINATION_TABLES:
        metric_count_table(key, metadata)
    metadata.create_all(engine)
    engine.dispose()
    return url


@pytest.fixture()
def test_settings(source_url: str, destination_url: str) -> Settings:
    return Settings(
        app_name="metrics-transfer",
        source_database_url=source_url,
        destination_database_url=destination_url,
        execution_time=ExecutionTime(hour=23, minute=0),
        timezone="UTC",
        tracked_projects=("ALEO",),
        log_level="INFO",
    )


@pytest.fixture()
def sqlite_catalog() -> tuple[MetricDefinition, ...]:
    return (
        MetricDefinition(key="active_machines_count", query="SELECT count(*) FROM machine"),
        MetricDefinition(
            key="active_machines_count_aleo",
            query="SELECT count(*) FROM machine WHERE project = :project",
            params={"project": "ALEO"},
        ),
        MetricDefinition(key="lost_users_count", query="SELECT count(*) FROM machine WHERE project = 'none'"),
    )


@pytest.fixture()
def make_pipeline(test_settings: Settings, sqlite_catalog) -> Callable[..., TransferPipeline]:
    def factory(catalog=None, run_date: date = date(2024, 3, 1), settings: Settings | None = None) -> TransferPipeline:
        return TransferPipeline(
            settings or test_settings,
            sqlite_catalog if catalog is None else catalog,
            today=lambda: run_date,
        )

    return factory


def _read_rows(database_url: str, table_key: str) -> list[tuple[date, int]]:
    engine = create_engine(database_url)
    table = metric_count_table(table_key)
    with engine.connect() as conn:
        rows = conn.execute(table.select().order_by(table.c.date)).all()
    engine.dispose()
    return [(row_date, count) for row_date, count in rows]


@pytest.fixture()
def read_rows() -> Callable[[str, str], list[tuple[date, int]]]:
    return _read_rows

