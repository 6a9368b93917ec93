"""
sqlkv.kv.types

Value types shared by the read and write engines.

Responsibilities:
- Describe the logical table layout (`TableMetadata`) and render templates against it.
- Hold read snapshots (`ValueVersion`) and per-key CAS expectations (`KeyValueVersion`).
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Generic, TypeVar

from sqlkv.sql.template import render

K = TypeVar("K")
V = TypeVar("V")


@dataclass(frozen=True, slots=True, eq=False)
class TableMetadata:
    table_name: str
    key_column: str
    value_column: str
    version_column: str
    created_column: str
    updated_column: str

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"{f.name} must be a non-empty string")

    @classmethod
    def create(cls, table_name: str) -> TableMetadata:
        return cls(
            table_name=table_name,
            key_column="key",
            value_column="value",
            version_column="version",
            created_column="created",
            updated_column="updated",
        )

    def bindings(self) -> dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def render(self, template: str, *, keep_unmatched: bool = False) -> str:
        return render(template, self.bindings(), keep_unmatched=keep_unmatched)

    def _folded(self) -> tuple[str, ...]:
        return tuple(v.lower() for v in self.bindings().values())

    # SQL identifiers are case-insensitive, so equality is too.
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TableMetadata):
            return NotImplemented
        return self._folded() == other._folded()

    def __hash__(self) -> int:
        return hash(self._folded())


@dataclass(frozen=True, slots=True)
class ValueVersion(Generic[V]):
    value: V
    version: int


@dataclass(frozen=True, slots=True)
class KeyValueVersion(Generic[K, V]):
    key: K
    value: V
    version: int


# --- Module Notes -----------------------------------------------------------
# TableMetadata is built once (see `Settings.table_metadata`) and shared by all engines.
