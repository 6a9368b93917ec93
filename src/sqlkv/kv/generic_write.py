"""
sqlkv.kv.generic_write

Dialect-neutral write engine with optimistic (versioned) concurrency.

Responsibilities:
- Render every write statement once from `TableMetadata`.
- Stamp each mutation with a fresh version and a single captured timestamp.
- Express compare-and-swap as a `WHERE key = :key AND version = :expected` predicate.
- Report optimistic conflicts as values (current versions, `None`, `False`), never as errors.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Generic, TypeVar

from sqlalchemy.engine import Connection

from sqlkv.errors import ConstraintViolationError
from sqlkv.kv.generic_read import GenericKeyvalRead
from sqlkv.kv.types import KeyValueVersion, TableMetadata
from sqlkv.kv.versioning import VersionGenerator, utcnow
from sqlkv.observability.logging import get_logger
from sqlkv.sql.executor import SqlAlchemyExecutor, SqlExecutor

log = get_logger(__name__)

K = TypeVar("K")
V = TypeVar("V")

INSERT_SQL = (
    "INSERT INTO $table_name"
    " ($key_column, $value_column, $version_column, $created_column, $updated_column)"
    " VALUES (:key, :value, :version, :now, :now)"
)
UPDATE_SQL = (
    "UPDATE $table_name"
    " SET $value_column = :value, $version_column = :version, $updated_column = :now"
    " WHERE $key_column = :key"
)
SWAP_SQL = (
    "UPDATE $table_name"
    " SET $value_column = :value, $version_column = :version, $updated_column = :now"
    " WHERE $key_column = :key AND $version_column = :expected"
)
TOUCH_SQL = (
    "UPDATE $table_name"
    " SET $version_column = :version, $updated_column = :now"
    " WHERE $key_column = :key"
)
DELETE_SQL = "DELETE FROM $table_name WHERE $key_column = :key"
REMOVE_SQL = "DELETE FROM $table_name WHERE $key_column = :key AND $version_column = :expected"


class GenericKeyvalWrite(Generic[K, V]):
    """
    Write engine that works on any SQL dialect.

    `save` is an UPDATE followed by an INSERT for missing keys. Batch operations issue
    one executor batch call per statement kind and share a single new version.
    """

    def __init__(
        self,
        meta: TableMetadata,
        *,
        versions: VersionGenerator,
        executor: SqlExecutor | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.meta = meta
        self.versions = versions
        self.executor = executor or SqlAlchemyExecutor()
        self.clock = clock
        # Current versions of conflicting keys are looked up through a reader on the same executor.
        self._reader: GenericKeyvalRead[K, V] = GenericKeyvalRead(meta, executor=self.executor)

        self.insert_sql = meta.render(INSERT_SQL)
        self.update_sql = meta.render(UPDATE_SQL)
        self.swap_sql = meta.render(SWAP_SQL)
        self.touch_sql = meta.render(TOUCH_SQL)
        self.delete_sql = meta.render(DELETE_SQL)
        self.remove_sql = meta.render(REMOVE_SQL)

    # Inserts

    def insert(self, conn: Connection, key: K, value: V) -> int:
        version = self.versions.next_version()
        params = {"key": key, "value": value, "version": version, "now": self.clock()}
        self.executor.execute(conn, self.insert_sql, params)
        return version

    def batch_insert(self, conn: Connection, pairs: Mapping[K, V]) -> int:
        version = self.versions.next_version()
        now = self.clock()
        batch = [
            {"key": key, "value": value, "version": version, "now": now}
            for key, value in pairs.items()
        ]
        self.executor.execute_batch(conn, self.insert_sql, batch)
        return version

    # Unconditional writes

    def save(self, conn: Connection, key: K, value: V) -> int:
        version = self.versions.next_version()
        params = {"key": key, "value": value, "version": version, "now": self.clock()}
        if self.executor.execute(conn, self.update_sql, params) > 0:
            return version
        try:
            self.executor.execute(conn, self.insert_sql, params)
        except ConstraintViolationError:
            # Another writer inserted the key between our UPDATE and INSERT.
            if self.executor.execute(conn, self.update_sql, params) == 0:
                raise
        return version

    def batch_save(self, conn: Connection, pairs: Mapping[K, V]) -> int:
        version = self.versions.next_version()
        now = self.clock()
        batch = [
            {"key": key, "value": value, "version": version, "now": now}
            for key, value in pairs.items()
        ]
        counts = self.executor.execute_batch(conn, self.update_sql, batch)
        missing = [params for params, count in zip(batch, counts) if count == 0]
        if missing:
            self.executor.execute_batch(conn, self.insert_sql, missing)
        return version

    # Compare-and-swap

    def swap(self, conn: Connection, key: K, value: V, version: int) -> int | None:
        """
        Replace the value only if the stored version equals `version`.

        Returns the new version on success. On a mismatch the stored version is returned
        unchanged (or `None` when the key does not exist); callers detect the conflict by
        comparing the result with the version they passed in.
        """

        new_version = self.versions.next_after(version)
        params = {
            "key": key,
            "value": value,
            "version": new_version,
            "now": self.clock(),
            "expected": version,
        }
        if self.executor.execute(conn, self.swap_sql, params) > 0:
            return new_version
        current = self._reader.contains(conn, key)
        log.debug(
            "kv.swap_conflict",
            table=self.meta.table_name,
            key=key,
            expected=version,
            current=current,
        )
        return current

    def batch_swap(self, conn: Connection, pairs: Mapping[K, V], version: int) -> int | None:
        if not pairs:
            return None
        new_version = self.versions.next_after(version)
        now = self.clock()
        batch = [
            {"key": key, "value": value, "version": new_version, "now": now, "expected": version}
            for key, value in pairs.items()
        ]
        counts = self.executor.execute_batch(conn, self.swap_sql, batch)
        if any(count > 0 for count in counts):
            return new_version
        current = [v for v in self._reader.batch_contains(conn, pairs).values() if v is not None]
        log.debug(
            "kv.batch_swap_conflict",
            table=self.meta.table_name,
            keys=len(batch),
            expected=version,
        )
        return max(current) if current else None

    def batch_swap_versions(
        self, conn: Connection, triplets: Iterable[KeyValueVersion[K, V]]
    ) -> dict[K, int | None]:
        triplets = list(triplets)
        if not triplets:
            return {}
        new_version = self.versions.next_after(max(t.version for t in triplets))
        now = self.clock()
        batch = [
            {"key": t.key, "value": t.value, "version": new_version, "now": now, "expected": t.version}
            for t in triplets
        ]
        counts = self.executor.execute_batch(conn, self.swap_sql, batch)

        outcome: dict[K, int | None] = {}
        conflicts: list[K] = []
        for t, count in zip(triplets, counts):
            if count > 0:
                outcome[t.key] = new_version
            else:
                conflicts.append(t.key)
        if conflicts:
            outcome.update(self._reader.batch_contains(conn, conflicts))
            log.debug(
                "kv.batch_swap_conflict",
                table=self.meta.table_name,
                keys=len(batch),
                conflicts=len(conflicts),
            )
        return outcome

    # Version bumps

    def touch(self, conn: Connection, key: K) -> int | None:
        version = self.versions.next_version()
        params = {"key": key, "version": version, "now": self.clock()}
        if self.executor.execute(conn, self.touch_sql, params) > 0:
            return version
        return None

    def batch_touch(self, conn: Connection, keys: Iterable[K]) -> dict[K, int | None]:
        keys = list(keys)
        if not keys:
            return {}
        version = self.versions.next_version()
        now = self.clock()
        batch = [{"key": key, "version": version, "now": now} for key in keys]
        counts = self.executor.execute_batch(conn, self.touch_sql, batch)
        return {key: version if count > 0 else None for key, count in zip(keys, counts)}

    # Deletes

    def delete(self, conn: Connection, key: K) -> None:
        self.executor.execute(conn, self.delete_sql, {"key": key})

    def batch_delete(self, conn: Connection, keys: Iterable[K]) -> None:
        self.executor.execute_batch(conn, self.delete_sql, [{"key": key} for key in keys])

    def remove(self, conn: Connection, key: K, version: int) -> bool:
        removed = self.executor.execute(conn, self.remove_sql, {"key": key, "expected": version}) > 0
        if not removed:
            log.debug("kv.remove_conflict", table=self.meta.table_name, key=key, expected=version)
        return removed

    def batch_remove(self, conn: Connection, keys: Iterable[K], version: int) -> dict[K, bool]:
        return self.batch_remove_versions(conn, {key: version for key in keys})

    def batch_remove_versions(self, conn: Connection, key_versions: Mapping[K, int]) -> dict[K, bool]:
        if not key_versions:
            return {}
        batch = [{"key": key, "expected": version} for key, version in key_versions.items()]
        counts = self.executor.execute_batch(conn, self.remove_sql, batch)
        return {params["key"]: count > 0 for params, count in zip(batch, counts)}


# --- Module Notes -----------------------------------------------------------
# Nothing here opens or commits a transaction. Wrap batch calls in the caller's unit of
# work (`sqlkv.db.session.unit_of_work`) when all rows must land or fail together.
# `save` retries its UPDATE once when a concurrent first save wins the INSERT. PostgreSQL
# aborts the transaction on that failed INSERT, so use the upsert engine there.
