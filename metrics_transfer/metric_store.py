from collections.abc import Mapping
from datetime import date
from numbers import Integral

from sqlalchemy import Connection, insert, text
from sqlalchemy.exc import IntegrityError, MultipleResultsFound, NoResultFound, SQLAlchemyError

from metrics_transfer.db_models import metric_count_table
from metrics_transfer.errors import DuplicateRowError, QueryError, WriteError


def read_count(connection: Connection, query: str, params: Mapping[str, object] | None = None) -> int:
    """Run a scalar count query and return its value.

    The query must yield exactly one row with one non-negative integer column.
    No row, a NULL value or any other shape raises QueryError; absence is
    never reported as a zero count.
    """
    try:
        with connection.begin():
            row = connection.execute(text(query), dict(params or {})).one()
    except NoResultFound as exc:
        raise QueryError("query returned no rows") from exc
    except MultipleResultsFound as exc:
        raise QueryError("query returned more than one row") from exc
    except SQLAlchemyError as exc:
        raise QueryError(f"query failed: {exc}") from exc

    if len(row) != 1:
        raise QueryError(f"query returned {len(row)} columns, expected 1")

    value = row[0]
    if value is None:
        raise QueryError("query returned NULL")
    # bool is an Integral subclass but never a count.
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise QueryError(f"query returned non-integer value {value!r}")
    if value < 0:
        raise QueryError(f"query returned negative count {value}")
    return int(value)


def write_count(connection: Connection, table_key: str, run_date: date, count: int) -> None:
    table = metric_count_table(table_key)
    try:
        with connection.begin():
            connection.execute(insert(table).values(date=run_date, count=count))
    except IntegrityError as exc:
        # The date primary key is the only constraint a non-null row can break.
        raise DuplicateRowError(f"{table_key} already holds a row for {run_date.isoformat()}") from exc
    except SQLAlchemyError as exc:
        raise WriteError(f"insert into {table_key} failed: {exc}") from exc
