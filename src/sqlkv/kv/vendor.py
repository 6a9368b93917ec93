"""
sqlkv.kv.vendor

Native-upsert write engine for dialects that support one.

Responsibilities:
- Map SQLAlchemy dialect names to a supported upsert syntax.
- Implement insert/save (and batch forms) with a single statement per row.
- Delegate every version-checked operation to an embedded `GenericKeyvalWrite`.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any, Generic, TypeVar

from sqlalchemy.engine import Connection

from sqlkv.kv.generic_write import GenericKeyvalWrite
from sqlkv.kv.types import KeyValueVersion, TableMetadata
from sqlkv.kv.versioning import VersionGenerator, utcnow
from sqlkv.sql.executor import SqlAlchemyExecutor, SqlExecutor
from sqlkv.sql.template import render

K = TypeVar("K")
V = TypeVar("V")

SERVER_TIMESTAMP = "CURRENT_TIMESTAMP"
BOUND_TIMESTAMP = ":now"

INSERT_SQL = (
    "INSERT INTO $table_name"
    " ($key_column, $value_column, $version_column, $created_column, $updated_column)"
    " VALUES (:key, :value, :version, $timestamp_placeholder, $timestamp_placeholder)"
)
MYSQL_UPSERT_SQL = (
    INSERT_SQL + " ON DUPLICATE KEY UPDATE"
    " $value_column = VALUES($value_column),"
    " $version_column = VALUES($version_column),"
    " $updated_column = VALUES($updated_column)"
)
ON_CONFLICT_UPSERT_SQL = (
    INSERT_SQL + " ON CONFLICT ($key_column) DO UPDATE SET"
    " $value_column = excluded.$value_column,"
    " $version_column = excluded.$version_column,"
    " $updated_column = excluded.$updated_column"
)


class UpsertDialect(enum.StrEnum):
    MYSQL = "mysql"
    ON_CONFLICT = "on_conflict"

    @property
    def upsert_template(self) -> str:
        if self is UpsertDialect.MYSQL:
            return MYSQL_UPSERT_SQL
        return ON_CONFLICT_UPSERT_SQL

    @classmethod
    def for_sqlalchemy_dialect(cls, name: str) -> UpsertDialect | None:
        # None means no native upsert is known; use the generic engine.
        return _DIALECTS.get(name.lower())


_DIALECTS = {
    "mysql": UpsertDialect.MYSQL,
    "mariadb": UpsertDialect.MYSQL,
    "postgresql": UpsertDialect.ON_CONFLICT,
    "sqlite": UpsertDialect.ON_CONFLICT,
}


class UpsertKeyvalWrite(Generic[K, V]):
    """
    Write engine using `INSERT ... ON DUPLICATE KEY UPDATE` or `INSERT ... ON CONFLICT`.

    Compare-and-swap cannot be expressed inside an upsert, so swap, touch, delete and
    remove (and their batch forms) run on the embedded generic engine unchanged.
    """

    def __init__(
        self,
        meta: TableMetadata,
        *,
        versions: VersionGenerator,
        dialect: UpsertDialect,
        use_server_timestamp: bool = False,
        executor: SqlExecutor | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.meta = meta
        self.versions = versions
        self.dialect = dialect
        self.use_server_timestamp = use_server_timestamp
        self.executor = executor or SqlAlchemyExecutor()
        self.clock = clock
        self.generic: GenericKeyvalWrite[K, V] = GenericKeyvalWrite(
            meta, versions=versions, executor=self.executor, clock=clock
        )

        # Table tokens resolve first; the timestamp token resolves in a second pass.
        timestamp = {
            "timestamp_placeholder": SERVER_TIMESTAMP if use_server_timestamp else BOUND_TIMESTAMP
        }
        self.insert_sql = render(meta.render(INSERT_SQL, keep_unmatched=True), timestamp)
        self.upsert_sql = render(meta.render(dialect.upsert_template, keep_unmatched=True), timestamp)

    def _params(self, key: K, value: V, version: int, now: datetime | None) -> dict[str, Any]:
        params: dict[str, Any] = {"key": key, "value": value, "version": version}
        if now is not None:
            params["now"] = now
        return params

    def _now(self) -> datetime | None:
        return None if self.use_server_timestamp else self.clock()

    # Overridden writes

    def insert(self, conn: Connection, key: K, value: V) -> int:
        version = self.versions.next_version()
        self.executor.execute(conn, self.insert_sql, self._params(key, value, version, self._now()))
        return version

    def batch_insert(self, conn: Connection, pairs: Mapping[K, V]) -> int:
        version = self.versions.next_version()
        now = self._now()
        batch = [self._params(key, value, version, now) for key, value in pairs.items()]
        self.executor.execute_batch(conn, self.insert_sql, batch)
        return version

    def save(self, conn: Connection, key: K, value: V) -> int:
        version = self.versions.next_version()
        self.executor.execute(conn, self.upsert_sql, self._params(key, value, version, self._now()))
        return version

    def batch_save(self, conn: Connection, pairs: Mapping[K, V]) -> int:
        version = self.versions.next_version()
        now = self._now()
        batch = [self._params(key, value, version, now) for key, value in pairs.items()]
        self.executor.execute_batch(conn, self.upsert_sql, batch)
        return version

    # Delegated to the generic engine

    def swap(self, conn: Connection, key: K, value: V, version: int) -> int | None:
        return self.generic.swap(conn, key, value, version)

    def batch_swap(self, conn: Connection, pairs: Mapping[K, V], version: int) -> int | None:
        return self.generic.batch_swap(conn, pairs, version)

    def batch_swap_versions(
        self, conn: Connection, triplets: Iterable[KeyValueVersion[K, V]]
    ) -> dict[K, int | None]:
        return self.generic.batch_swap_versions(conn, triplets)

    def touch(self, conn: Connection, key: K) -> int | None:
        return self.generic.touch(conn, key)

    def batch_touch(self, conn: Connection, keys: Iterable[K]) -> dict[K, int | None]:
        return self.generic.batch_touch(conn, keys)

    def delete(self, conn: Connection, key: K) -> None:
        self.generic.delete(conn, key)

    def batch_delete(self, conn: Connection, keys: Iterable[K]) -> None:
        self.generic.batch_delete(conn, keys)

    def remove(self, conn: Connection, key: K, version: int) -> bool:
        return self.generic.remove(conn, key, version)

    def batch_remove(self, conn: Connection, keys: Iterable[K], version: int) -> dict[K, bool]:
        return self.generic.batch_remove(conn, keys, version)

    def batch_remove_versions(self, conn: Connection, key_versions: Mapping[K, int]) -> dict[K, bool]:
        return self.generic.batch_remove_versions(conn, key_versions)


# --- Module Notes -----------------------------------------------------------
# ON CONFLICT needs SQLite 3.24+ or PostgreSQL 9.5+. MySQL's VALUES() form is kept for
# MariaDB compatibility even though MySQL 8.0.20+ also accepts row aliases.
