"""
sqlkv.sql.executor

Statement execution boundary used by the key-value engines.

Responsibilities:
- Define the narrow `SqlExecutor` contract the engines depend on.
- Provide the default SQLAlchemy Core implementation (`SqlAlchemyExecutor`).
- Enforce row-count limits on reads and map DBAPI errors to `sqlkv.errors`.
- Log every statement with its row count and latency at DEBUG.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from typing import Any, Protocol, TypeVar

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.engine import Connection, CursorResult, Row
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.sql.elements import TextClause

from sqlkv.errors import ConstraintViolationError, RowLimitExceededError, SqlExecutionError
from sqlkv.observability.logging import get_logger

log = get_logger(__name__)

NO_LIMIT = -1

T = TypeVar("T")
KT = TypeVar("KT")
VT = TypeVar("VT")

Params = Mapping[str, Any]
RowExtractor = Callable[[Row], T]
ResultExtractor = Callable[[CursorResult], T]


class SqlExecutor(Protocol):
    def execute(self, conn: Connection, sql: str, params: Params) -> int: ...

    def execute_batch(
        self, conn: Connection, sql: str, params_batch: Sequence[Params]
    ) -> list[int]: ...

    def execute_for_generated_keys(
        self, conn: Connection, sql: str, params: Params
    ) -> list[dict[str, Any]]: ...

    def query(
        self,
        conn: Connection,
        sql: str,
        params: Params,
        extractor: RowExtractor[T],
        *,
        limit: int = NO_LIMIT,
        raise_on_limit: bool = False,
    ) -> list[T]: ...

    def query_map(
        self,
        conn: Connection,
        sql: str,
        params: Params,
        key_extractor: RowExtractor[KT],
        value_extractor: RowExtractor[VT],
        *,
        limit: int = NO_LIMIT,
        raise_on_limit: bool = False,
    ) -> dict[KT, VT]: ...

    def query_custom(
        self, conn: Connection, sql: str, params: Params, extractor: ResultExtractor[T]
    ) -> T: ...


def column(index: int, convert: Callable[[Any], T] | None = None) -> RowExtractor[Any]:
    """Row extractor for a single column, optionally coerced by `convert`."""

    if convert is None:
        return lambda row: row[index]
    return lambda row: None if row[index] is None else convert(row[index])


def _statement(sql: str, params: Params) -> TextClause:
    stmt = text(sql)
    # Typed binds let SQLAlchemy render datetimes per dialect (e.g. ISO strings on SQLite).
    typed = [bindparam(k, type_=DateTime()) for k, v in params.items() if isinstance(v, datetime)]
    return stmt.bindparams(*typed) if typed else stmt


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


def _translate(operation: str, sql: str, exc: DBAPIError) -> SqlExecutionError:
    detail = str(exc.orig) if exc.orig is not None else str(exc)
    if isinstance(exc, IntegrityError):
        return ConstraintViolationError(operation, detail, sql=sql)
    return SqlExecutionError(operation, detail, sql=sql)


def _take(rows: Any, limit: int, raise_on_limit: bool) -> list[Row]:
    if limit < 0:
        return list(rows)
    taken: list[Row] = []
    for row in rows:
        if len(taken) >= limit:
            if raise_on_limit:
                raise RowLimitExceededError(limit)
            break
        taken.append(row)
    return taken


class SqlAlchemyExecutor:
    """
    Default executor on SQLAlchemy Core `text()` statements with named parameters.

    Connections are supplied by the caller; transaction boundaries are theirs too.
    Statement logs carry parameter names only; `log_params=True` adds the bound values.
    """

    def __init__(self, *, log_params: bool = False) -> None:
        self.log_params = log_params

    def _describe(self, params: Params) -> dict[str, Any]:
        if self.log_params:
            return {"params": dict(params)}
        return {"param_names": sorted(params)}

    def execute(self, conn: Connection, sql: str, params: Params) -> int:
        started = time.perf_counter()
        try:
            result = conn.execute(_statement(sql, params), dict(params))
        except DBAPIError as e:
            raise _translate("update", sql, e) from e
        rows = result.rowcount
        log.debug(
            "sql.update",
            sql=sql,
            **self._describe(params),
            rows=rows,
            elapsed_ms=_elapsed_ms(started),
        )
        return rows

    def execute_batch(self, conn: Connection, sql: str, params_batch: Sequence[Params]) -> list[int]:
        if not params_batch:
            return []
        started = time.perf_counter()
        stmt = _statement(sql, params_batch[0])
        counts: list[int] = []
        # One execution per element keeps a per-row count; executemany only reports a total.
        for params in params_batch:
            try:
                counts.append(conn.execute(stmt, dict(params)).rowcount)
            except DBAPIError as e:
                raise _translate("batch update", sql, e) from e
        log.debug(
            "sql.batch_update",
            sql=sql,
            batch_size=len(params_batch),
            rows=sum(counts),
            elapsed_ms=_elapsed_ms(started),
        )
        return counts

    def execute_for_generated_keys(
        self, conn: Connection, sql: str, params: Params
    ) -> list[dict[str, Any]]:
        started = time.perf_counter()
        try:
            result = conn.execute(_statement(sql, params), dict(params))
            # RETURNING yields rows; otherwise fall back to the DBAPI lastrowid.
            keys = (
                [dict(row) for row in result.mappings()]
                if result.returns_rows
                else [{"lastrowid": result.lastrowid}]
            )
        except DBAPIError as e:
            raise _translate("genkey", sql, e) from e
        log.debug("sql.genkey", sql=sql, keys=len(keys), elapsed_ms=_elapsed_ms(started))
        return keys

    def query(
        self,
        conn: Connection,
        sql: str,
        params: Params,
        extractor: RowExtractor[T],
        *,
        limit: int = NO_LIMIT,
        raise_on_limit: bool = False,
    ) -> list[T]:
        rows = self._fetch(conn, sql, params, limit, raise_on_limit)
        return [extractor(row) for row in rows]

    def query_map(
        self,
        conn: Connection,
        sql: str,
        params: Params,
        key_extractor: RowExtractor[KT],
        value_extractor: RowExtractor[VT],
        *,
        limit: int = NO_LIMIT,
        raise_on_limit: bool = False,
    ) -> dict[KT, VT]:
        rows = self._fetch(conn, sql, params, limit, raise_on_limit)
        return {key_extractor(row): value_extractor(row) for row in rows}

    def query_custom(
        self, conn: Connection, sql: str, params: Params, extractor: ResultExtractor[T]
    ) -> T:
        started = time.perf_counter()
        try:
            result = conn.execute(_statement(sql, params), dict(params))
            try:
                value = extractor(result)
            finally:
                result.close()
        except DBAPIError as e:
            raise _translate("query", sql, e) from e
        log.debug("sql.query", sql=sql, **self._describe(params), elapsed_ms=_elapsed_ms(started))
        return value

    def _fetch(
        self, conn: Connection, sql: str, params: Params, limit: int, raise_on_limit: bool
    ) -> list[Row]:
        started = time.perf_counter()
        try:
            result = conn.execute(_statement(sql, params), dict(params))
            try:
                rows = _take(result, limit, raise_on_limit)
            finally:
                result.close()
        except DBAPIError as e:
            raise _translate("query", sql, e) from e
        log.debug(
            "sql.query",
            sql=sql,
            **self._describe(params),
            rows=len(rows),
            elapsed_ms=_elapsed_ms(started),
        )
        return rows


# --- Module Notes -----------------------------------------------------------
# Engines only depend on `SqlExecutor`; tests and callers may substitute their own
# implementation (e.g. one that records statements) without touching engine code.
