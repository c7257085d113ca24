"""
core/database.py -- Scoped access to the SQL database shared by all stores.

Uses SQLAlchemy Core. Stores (auth/store.py, catalog/store.py) own their
tables and row mappers; this module owns the engine and the connection
discipline:

  open()    -- context manager yielding a Connection. The connection is
               returned to the pool on every exit path, including errors.
  begin()   -- same, inside a transaction that commits on success and
               rolls back on error.
  query()   -- run prebuilt driver-level SQL (qmark placeholders + a
               positional parameter list) and return rows as dicts.
  scalar()  -- same, returning the first column of the first row.

Error policy: driver failures are logged with their raw text and re-raised
as DataAccessError, whose client-facing message is generic. IntegrityError
is re-raised unchanged so stores and routes can map constraint violations
(duplicate username, duplicate email) to a 409. Nothing here retries.

Layer rule: core/ is the kernel. No imports from api/, auth/, catalog/, query/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.errors import DataAccessError

logger = logging.getLogger("catalog.database")


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


class Database:
    """Owns one SQLAlchemy engine.

    Usage:
        db = Database("sqlite:///catalog.db")
        rows = db.query("SELECT id, name FROM location_view LIMIT 10 OFFSET 0", [])
        db.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)

    def create_tables(self, metadata: MetaData) -> None:
        with self.begin() as conn:
            metadata.create_all(conn)

    @contextmanager
    def open(self) -> Iterator[Connection]:
        try:
            with self.engine.connect() as conn:
                yield conn
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.error("Database error: %s", exc)
            raise DataAccessError(str(exc)) from exc

    @contextmanager
    def begin(self) -> Iterator[Connection]:
        try:
            with self.engine.begin() as conn:
                yield conn
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.error("Database error: %s", exc)
            raise DataAccessError(str(exc)) from exc

    def query(self, text: str, params: Sequence[Any]) -> list[dict[str, Any]]:
        with self.open() as conn:
            result = conn.exec_driver_sql(text, tuple(params) if params else None)
            return [dict(row._mapping) for row in result]

    def scalar(self, text: str, params: Sequence[Any]) -> Any:
        with self.open() as conn:
            return conn.exec_driver_sql(text, tuple(params) if params else None).scalar()

    def ping(self) -> bool:
        """Return True when a trivial query succeeds. Used by the health endpoint."""
        try:
            self.scalar("SELECT 1", [])
        except DataAccessError:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()
