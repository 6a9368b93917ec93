"""
sqlkv.kv.protocols

Capability contracts implemented by the key-value engines.

Responsibilities:
- Describe the read surface shared by `GenericKeyvalRead` and `ReplicatedKeyvalRead`.
- Describe the write surface shared by `GenericKeyvalWrite` and `UpsertKeyvalWrite`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from sqlalchemy.engine import Connection

from sqlkv.kv.types import KeyValueVersion, ValueVersion


class KeyvalRead(Protocol):
    def contains(self, conn: Connection, key: Any) -> int | None: ...

    def batch_contains(self, conn: Connection, keys: Iterable[Any]) -> dict[Any, int | None]: ...

    def contains_version(self, conn: Connection, key: Any, version: int) -> bool: ...

    def batch_contains_version(
        self, conn: Connection, key_versions: Mapping[Any, int]
    ) -> dict[Any, bool]: ...

    def read(self, conn: Connection, key: Any) -> Any | None: ...

    def batch_read(self, conn: Connection, keys: Iterable[Any]) -> dict[Any, Any]: ...

    def read_for_version(self, conn: Connection, key: Any, version: int) -> Any | None: ...

    def batch_read_for_version(
        self, conn: Connection, key_versions: Mapping[Any, int]
    ) -> dict[Any, Any]: ...

    def read_all(self, conn: Connection, key: Any) -> ValueVersion[Any] | None: ...

    def batch_read_all(
        self, conn: Connection, keys: Iterable[Any]
    ) -> dict[Any, ValueVersion[Any]]: ...


class KeyvalWrite(Protocol):
    def insert(self, conn: Connection, key: Any, value: Any) -> int: ...

    def batch_insert(self, conn: Connection, pairs: Mapping[Any, Any]) -> int: ...

    def save(self, conn: Connection, key: Any, value: Any) -> int: ...

    def batch_save(self, conn: Connection, pairs: Mapping[Any, Any]) -> int: ...

    def swap(self, conn: Connection, key: Any, value: Any, version: int) -> int | None: ...

    def batch_swap(
        self, conn: Connection, pairs: Mapping[Any, Any], version: int
    ) -> int | None: ...

    def batch_swap_versions(
        self, conn: Connection, triplets: Iterable[KeyValueVersion[Any, Any]]
    ) -> dict[Any, int | None]: ...

    def touch(self, conn: Connection, key: Any) -> int | None: ...

    def batch_touch(self, conn: Connection, keys: Iterable[Any]) -> dict[Any, int | None]: ...

    def delete(self, conn: Connection, key: Any) -> None: ...

    def batch_delete(self, conn: Connection, keys: Iterable[Any]) -> None: ...

    def remove(self, conn: Connection, key: Any, version: int) -> bool: ...

    def batch_remove(
        self, conn: Connection, keys: Iterable[Any], version: int
    ) -> dict[Any, bool]: ...

    def batch_remove_versions(
        self, conn: Connection, key_versions: Mapping[Any, int]
    ) -> dict[Any, bool]: ...


# --- Module Notes -----------------------------------------------------------
# Callers should type against these protocols; the factory may hand out either variant.
