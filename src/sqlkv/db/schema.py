"""
sqlkv.db.schema

SQLAlchemy Core table for a key-value `TableMetadata` (dev/test convenience).

Responsibilities:
- Describe the minimum persisted schema with configurable names.
- Create the table for local development and tests.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Column, DateTime, MetaData, String, Table, Text
from sqlalchemy.engine import Engine
from sqlalchemy.types import TypeEngine

from sqlkv.kv.types import TableMetadata


def build_table(
    meta: TableMetadata,
    metadata: MetaData | None = None,
    *,
    key_type: TypeEngine | type[TypeEngine] = String(255),
    value_type: TypeEngine | type[TypeEngine] = Text,
) -> Table:
    return Table(
        meta.table_name,
        metadata if metadata is not None else MetaData(),
        Column(meta.key_column, key_type, primary_key=True),
        Column(meta.value_column, value_type, nullable=False),
        Column(meta.version_column, BigInteger, nullable=False),
        Column(meta.created_column, DateTime(timezone=True), nullable=False),
        Column(meta.updated_column, DateTime(timezone=True), nullable=False),
    )


def init_db(engine: Engine, meta: TableMetadata, **column_types: TypeEngine) -> Table:
    """
    Dev/test bootstrap: create the table if it doesn't exist.
    Production tables are owned by the application's own migrations.
    """

    table = build_table(meta, **column_types)
    # Use a transactional DDL block when supported by the backend.
    with engine.begin() as conn:
        table.create(conn, checkfirst=True)
    return table


# --- Module Notes -----------------------------------------------------------
# Engines never reference this table object; they only need the names in TableMetadata.
