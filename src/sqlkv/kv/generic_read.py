"""
sqlkv.kv.generic_read

Read engine over the key-value table.

Responsibilities:
- Render single-key read statements once from `TableMetadata`.
- Render batch statements once per batch size (IN lists and key/version predicates).
- Coerce extracted keys and values with optional type callables.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Generic, TypeVar

from sqlalchemy.engine import Connection

from sqlkv.kv.types import TableMetadata, ValueVersion
from sqlkv.sql.executor import SqlAlchemyExecutor, SqlExecutor, column
from sqlkv.sql.template import placeholders, render

K = TypeVar("K")
V = TypeVar("V")

CONTAINS_SQL = "SELECT $version_column FROM $table_name WHERE $key_column = :key"
CONTAINS_VERSION_SQL = (
    "SELECT $version_column FROM $table_name"
    " WHERE $key_column = :key AND $version_column = :version"
)
READ_SQL = "SELECT $value_column FROM $table_name WHERE $key_column = :key"
READ_FOR_VERSION_SQL = (
    "SELECT $value_column FROM $table_name"
    " WHERE $key_column = :key AND $version_column = :version"
)
READ_ALL_SQL = "SELECT $value_column, $version_column FROM $table_name WHERE $key_column = :key"

# Distinct batch sizes whose rendered statements are kept per engine.
CACHED_BATCH_SIZES = 128

BATCH_CONTAINS_SQL = (
    "SELECT $key_column, $version_column FROM $table_name"
    " WHERE $key_column IN ($keys_placeholder)"
)
BATCH_CONTAINS_VERSION_SQL = (
    "SELECT $key_column, $version_column FROM $table_name WHERE $key_version_expression"
)
BATCH_READ_SQL = (
    "SELECT $key_column, $value_column FROM $table_name WHERE $key_column IN ($keys_placeholder)"
)
BATCH_READ_FOR_VERSION_SQL = (
    "SELECT $key_column, $value_column FROM $table_name WHERE $key_version_expression"
)
BATCH_READ_ALL_SQL = (
    "SELECT $key_column, $value_column, $version_column FROM $table_name"
    " WHERE $key_column IN ($keys_placeholder)"
)


def _identity(value: Any) -> Any:
    return value


class _BatchStatement:
    """A batch template with table tokens resolved, rendered again per batch size."""

    def __init__(self, meta: TableMetadata, template: str) -> None:
        self._template = meta.render(template, keep_unmatched=True)
        self._key_column = meta.key_column
        self._version_column = meta.version_column
        self.sql = functools.lru_cache(maxsize=CACHED_BATCH_SIZES)(self._render)

    def _render(self, size: int) -> str:
        keys = placeholders("k", size)
        pairs = [
            f"({self._key_column} = {k} AND {self._version_column} = {v})"
            for k, v in zip(keys, placeholders("v", size))
        ]
        return render(
            self._template,
            {"keys_placeholder": ", ".join(keys), "key_version_expression": " OR ".join(pairs)},
        )


def _key_params(keys: list[Any]) -> dict[str, Any]:
    return {f"k{i}": key for i, key in enumerate(keys)}


def _key_version_params(key_versions: list[tuple[Any, int]]) -> dict[str, Any]:
    params: dict[str, Any] = {}
    for i, (key, version) in enumerate(key_versions):
        params[f"k{i}"] = key
        params[f"v{i}"] = version
    return params


class GenericKeyvalRead(Generic[K, V]):
    def __init__(
        self,
        meta: TableMetadata,
        *,
        executor: SqlExecutor | None = None,
        key_type: Callable[[Any], K] | None = None,
        value_type: Callable[[Any], V] | None = None,
    ) -> None:
        self.meta = meta
        self.executor = executor or SqlAlchemyExecutor()
        self._key = key_type or _identity
        self._value = value_type or _identity

        self.contains_sql = meta.render(CONTAINS_SQL)
        self.contains_version_sql = meta.render(CONTAINS_VERSION_SQL)
        self.read_sql = meta.render(READ_SQL)
        self.read_for_version_sql = meta.render(READ_FOR_VERSION_SQL)
        self.read_all_sql = meta.render(READ_ALL_SQL)

        self._batch_contains = _BatchStatement(meta, BATCH_CONTAINS_SQL)
        self._batch_contains_version = _BatchStatement(meta, BATCH_CONTAINS_VERSION_SQL)
        self._batch_read = _BatchStatement(meta, BATCH_READ_SQL)
        self._batch_read_for_version = _BatchStatement(meta, BATCH_READ_FOR_VERSION_SQL)
        self._batch_read_all = _BatchStatement(meta, BATCH_READ_ALL_SQL)

    def _first(self, conn: Connection, sql: str, params: Mapping[str, Any], extractor: Any) -> Any:
        rows = self.executor.query(conn, sql, params, extractor, limit=1)
        return rows[0] if rows else None

    # Versions

    def contains(self, conn: Connection, key: K) -> int | None:
        return self._first(conn, self.contains_sql, {"key": key}, column(0, int))

    def batch_contains(self, conn: Connection, keys: Iterable[K]) -> dict[K, int | None]:
        keys = list(dict.fromkeys(keys))
        if not keys:
            return {}
        rows = self.executor.query_map(
            conn,
            self._batch_contains.sql(len(keys)),
            _key_params(keys),
            column(0),
            column(1, int),
        )
        found = self._requested(keys, rows)
        return {key: found.get(key) for key in keys}

    def contains_version(self, conn: Connection, key: K, version: int) -> bool:
        params = {"key": key, "version": version}
        return self._first(conn, self.contains_version_sql, params, column(0)) is not None

    def batch_contains_version(
        self, conn: Connection, key_versions: Mapping[K, int]
    ) -> dict[K, bool]:
        if not key_versions:
            return {}
        items = list(key_versions.items())
        rows = self.executor.query_map(
            conn,
            self._batch_contains_version.sql(len(items)),
            _key_version_params(items),
            column(0),
            column(1, int),
        )
        found = self._requested([key for key, _ in items], rows)
        return {key: key in found for key, _ in items}

    # Values

    def read(self, conn: Connection, key: K) -> V | None:
        return self._first(conn, self.read_sql, {"key": key}, column(0, self._value))

    def batch_read(self, conn: Connection, keys: Iterable[K]) -> dict[K, V]:
        keys = list(dict.fromkeys(keys))
        if not keys:
            return {}
        rows = self.executor.query_map(
            conn,
            self._batch_read.sql(len(keys)),
            _key_params(keys),
            column(0),
            column(1, self._value),
        )
        return self._requested(keys, rows)

    def read_for_version(self, conn: Connection, key: K, version: int) -> V | None:
        params = {"key": key, "version": version}
        return self._first(conn, self.read_for_version_sql, params, column(0, self._value))

    def batch_read_for_version(self, conn: Connection, key_versions: Mapping[K, int]) -> dict[K, V]:
        if not key_versions:
            return {}
        items = list(key_versions.items())
        rows = self.executor.query_map(
            conn,
            self._batch_read_for_version.sql(len(items)),
            _key_version_params(items),
            column(0),
            column(1, self._value),
        )
        return self._requested([key for key, _ in items], rows)

    # Values with versions

    def read_all(self, conn: Connection, key: K) -> ValueVersion[V] | None:
        return self._first(conn, self.read_all_sql, {"key": key}, self._value_version)

    def batch_read_all(self, conn: Connection, keys: Iterable[K]) -> dict[K, ValueVersion[V]]:
        keys = list(dict.fromkeys(keys))
        if not keys:
            return {}
        rows = self.executor.query_map(
            conn,
            self._batch_read_all.sql(len(keys)),
            _key_params(keys),
            column(0),
            lambda row: ValueVersion(self._value(row[1]), int(row[2])),
        )
        return self._requested(keys, rows)

    def _value_version(self, row: Any) -> ValueVersion[V]:
        return ValueVersion(self._value(row[0]), int(row[1]))

    def _requested(self, keys: list[K], found: Mapping[Any, Any]) -> dict[K, Any]:
        """
        Re-key rows by the caller's keys, in request order.

        The key column can hand back a different type than was bound (an int bound
        against a VARCHAR column comes back as a string), so each returned key is
        matched after coercion, as is, and by its string form.
        """

        index: dict[Any, K] = {}
        for key in keys:
            index[key] = key
        for key in keys:
            index.setdefault(str(key), key)

        matched: dict[K, Any] = {}
        for raw, value in found.items():
            for candidate in (self._key(raw), raw, str(raw)):
                if candidate in index:
                    matched[index[candidate]] = value
                    break
        return {key: matched[key] for key in keys if key in matched}


# --- Module Notes -----------------------------------------------------------
# Single-key reads ask the executor for at most one row and never fail on extra rows;
# the key column is unique, so a second row would indicate a broken schema.
