"""
sqlkv

Versioned key-value store layered on a relational table.

Responsibilities:
- Expose package version metadata.
- Re-export the engine types most callers need.
"""

from sqlkv.errors import (
    ConstraintViolationError,
    RowLimitExceededError,
    SqlExecutionError,
    SqlkvError,
    TemplateError,
)
from sqlkv.kv.generic_read import GenericKeyvalRead
from sqlkv.kv.generic_write import GenericKeyvalWrite
from sqlkv.kv.replicated import ReplicatedKeyvalRead
from sqlkv.kv.types import KeyValueVersion, TableMetadata, ValueVersion
from sqlkv.kv.vendor import UpsertDialect, UpsertKeyvalWrite
from sqlkv.kv.versioning import VersionGenerator

__all__ = [
    "__version__",
    "ConstraintViolationError",
    "GenericKeyvalRead",
    "GenericKeyvalWrite",
    "KeyValueVersion",
    "ReplicatedKeyvalRead",
    "RowLimitExceededError",
    "SqlExecutionError",
    "SqlkvError",
    "TableMetadata",
    "TemplateError",
    "UpsertDialect",
    "UpsertKeyvalWrite",
    "ValueVersion",
    "VersionGenerator",
]

__version__ = "0.1.0"


# --- Module Notes -----------------------------------------------------------
# Keep imports here limited to leaf modules; settings/db wiring is imported explicitly.
