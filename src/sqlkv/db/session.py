"""
sqlkv.db.session

SQLAlchemy engine and connection scope helpers.

Responsibilities:
- Create the primary engine and optional replica engines from settings.
- Provide a unit-of-work scope (one connection, one transaction) for engine calls.
- Open replica connections, mapping connect failures to `SqlExecutionError`.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine as sa_create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.pool import StaticPool

from sqlkv.errors import SqlExecutionError
from sqlkv.settings import Settings


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") in {"sqlite:", "sqlite+pysqlite:"})


def _engine(url: str, *, echo: bool) -> Engine:
    kwargs: dict[str, Any] = {"echo": echo}
    if _is_memory_sqlite(url):
        # An in-memory database lives in one connection; share it across threads.
        kwargs.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)
    else:
        # pool_pre_ping helps detect stale connections in long-lived processes.
        kwargs["pool_pre_ping"] = True
    return sa_create_engine(url, **kwargs)


def create_engine(settings: Settings) -> Engine:
    return _engine(settings.database_url, echo=settings.echo_sql)


def create_replica_engines(settings: Settings) -> list[Engine]:
    return [_engine(url, echo=settings.echo_sql) for url in settings.replica_urls]


@contextmanager
def unit_of_work(engine: Engine) -> Iterator[Connection]:
    """
    Transaction scope for engine calls: commits on success, rolls back on error.
    Batch writes are only atomic when issued inside one of these.
    """

    with engine.begin() as conn:
        yield conn


@contextmanager
def replica_connection(engine: Engine) -> Iterator[Connection]:
    try:
        conn = engine.connect()
    except DBAPIError as e:
        raise SqlExecutionError("connect", str(e.orig) if e.orig is not None else str(e)) from e
    with conn:
        yield conn


# --- Module Notes -----------------------------------------------------------
# Engines are created once per process by the composition root and disposed by it.
