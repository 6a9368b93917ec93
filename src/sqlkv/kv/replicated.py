"""
sqlkv.kv.replicated

Replica-aware read engine.

Responsibilities:
- Route value reads to read replicas chosen round-robin.
- Pin every read to the version the primary holds, so a lagging replica never serves stale data.
- Fall back to the caller's (primary) connection for keys a replica cannot serve.
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy.engine import Connection, Engine

from sqlkv.db.session import replica_connection
from sqlkv.kv.generic_read import GenericKeyvalRead
from sqlkv.kv.types import TableMetadata, ValueVersion
from sqlkv.observability.logging import get_logger
from sqlkv.sql.executor import SqlExecutor

log = get_logger(__name__)

K = TypeVar("K")
V = TypeVar("V")


class ReplicatedKeyvalRead(Generic[K, V]):
    def __init__(
        self,
        meta: TableMetadata,
        *,
        replicas: Callable[[], Sequence[Engine]],
        executor: SqlExecutor | None = None,
        key_type: Callable[[Any], K] | None = None,
        value_type: Callable[[Any], V] | None = None,
    ) -> None:
        self.meta = meta
        self.replicas = replicas
        self.generic: GenericKeyvalRead[K, V] = GenericKeyvalRead(
            meta, executor=executor, key_type=key_type, value_type=value_type
        )
        self._turn = itertools.count()
        self._lock = threading.Lock()

    def _next_replica(self) -> Engine | None:
        engines = self.replicas()
        if not engines:
            return None
        with self._lock:
            turn = next(self._turn)
        return engines[turn % len(engines)]

    # Versions always come from the primary.

    def contains(self, conn: Connection, key: K) -> int | None:
        return self.generic.contains(conn, key)

    def batch_contains(self, conn: Connection, keys: Iterable[K]) -> dict[K, int | None]:
        return self.generic.batch_contains(conn, keys)

    def contains_version(self, conn: Connection, key: K, version: int) -> bool:
        return self.generic.contains_version(conn, key, version)

    def batch_contains_version(
        self, conn: Connection, key_versions: Mapping[K, int]
    ) -> dict[K, bool]:
        return self.generic.batch_contains_version(conn, key_versions)

    # Values

    def read(self, conn: Connection, key: K) -> V | None:
        version = self.generic.contains(conn, key)
        if version is None:
            return None
        value = self.read_for_version(conn, key, version)
        if value is None:
            # Row changed on the primary between the two reads.
            return self.generic.read(conn, key)
        return value

    def batch_read(self, conn: Connection, keys: Iterable[K]) -> dict[K, V]:
        key_versions = {k: v for k, v in self.generic.batch_contains(conn, keys).items() if v is not None}
        found = self.batch_read_for_version(conn, key_versions)
        missing = [key for key in key_versions if key not in found]
        if missing:
            found.update(self.generic.batch_read(conn, missing))
        return found

    def read_for_version(self, conn: Connection, key: K, version: int) -> V | None:
        replica = self._next_replica()
        if replica is not None:
            with replica_connection(replica) as rconn:
                value = self.generic.read_for_version(rconn, key, version)
            if value is not None:
                return value
            log.debug("kv.replica_miss", table=self.meta.table_name, key=key, version=version)
        return self.generic.read_for_version(conn, key, version)

    def batch_read_for_version(self, conn: Connection, key_versions: Mapping[K, int]) -> dict[K, V]:
        if not key_versions:
            return {}
        found: dict[K, V] = {}
        replica = self._next_replica()
        if replica is not None:
            with replica_connection(replica) as rconn:
                found = self.generic.batch_read_for_version(rconn, key_versions)
        missing = {k: v for k, v in key_versions.items() if k not in found}
        if missing:
            if replica is not None:
                log.debug("kv.replica_miss", table=self.meta.table_name, keys=len(missing))
            found.update(self.generic.batch_read_for_version(conn, missing))
        return found

    def read_all(self, conn: Connection, key: K) -> ValueVersion[V] | None:
        version = self.generic.contains(conn, key)
        if version is None:
            return None
        value = self.read_for_version(conn, key, version)
        if value is None:
            return self.generic.read_all(conn, key)
        return ValueVersion(value, version)

    def batch_read_all(self, conn: Connection, keys: Iterable[K]) -> dict[K, ValueVersion[V]]:
        key_versions = {k: v for k, v in self.generic.batch_contains(conn, keys).items() if v is not None}
        values = self.batch_read_for_version(conn, key_versions)
        result = {key: ValueVersion(value, key_versions[key]) for key, value in values.items()}
        missing = [key for key in key_versions if key not in result]
        if missing:
            result.update(self.generic.batch_read_all(conn, missing))
        return result


# --- Module Notes -----------------------------------------------------------
# Replica connections are opened per read and returned to their pool right away.
# A replica that cannot be reached raises `SqlExecutionError`; there is no failover.
