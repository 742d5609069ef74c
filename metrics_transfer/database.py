from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import Connection, Engine, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from metrics_transfer.errors import DatabaseConnectionError


def build_engine(database_url: str) -> Engine:
    # One engine per run; NullPool makes closing a connection close the socket.
    return create_engine(database_url, future=True, poolclass=NullPool)


@contextmanager
def open_connection(
    database_url: str,
    *,
    error_cls: type[DatabaseConnectionError] = DatabaseConnectionError,
) -> Generator[Connection, None, None]:
    try:
        engine = build_engine(database_url)
    except (SQLAlchemyError, ImportError, ValueError) as exc:
        raise error_cls(f"cannot build engine: {exc}") from exc

    try:
        try:
            connection = engine.connect()
        except SQLAlchemyError as exc:
            raise error_cls(f"cannot connect: {exc}") from exc

        try:
            yield connection
        finally:
            connection.close()
    finally:
        engine.dispose()
