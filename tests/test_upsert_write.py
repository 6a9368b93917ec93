"""
tests.test_upsert_write

Native-upsert engine: ON CONFLICT on SQLite and rendered MySQL statements.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text
from sqlalchemy.engine import Connection

from sqlkv.errors import ConstraintViolationError
from sqlkv.kv.generic_read import GenericKeyvalRead
from sqlkv.kv.types import TableMetadata
from sqlkv.kv.vendor import UpsertDialect, UpsertKeyvalWrite
from sqlkv.kv.versioning import VersionGenerator


@pytest.fixture(params=[False, True], ids=["bound-timestamp", "server-timestamp"])
def upsert(request: pytest.FixtureRequest, meta: TableMetadata, versions: VersionGenerator) -> UpsertKeyvalWrite[str, str]:
    return UpsertKeyvalWrite(
        meta,
        versions=versions,
        dialect=UpsertDialect.ON_CONFLICT,
        use_server_timestamp=request.param,
    )


def test_save_inserts_then_overwrites(
    conn: Connection, upsert: UpsertKeyvalWrite[str, str], reader: GenericKeyvalRead[str, str]
) -> None:
    v1 = upsert.save(conn, "a", "1")
    v2 = upsert.save(conn, "a", "2")
    assert v2 > v1
    assert reader.read_all(conn, "a") is not None
    assert reader.contains(conn, "a") == v2
    assert reader.read(conn, "a") == "2"
    created, updated = conn.execute(text("SELECT created, updated FROM kv")).one()
    assert created is not None and updated is not None


def test_insert_still_rejects_duplicates(conn: Connection, upsert: UpsertKeyvalWrite[str, str]) -> None:
    upsert.insert(conn, "a", "1")
    with pytest.raises(ConstraintViolationError):
        upsert.insert(conn, "a", "2")


def test_batch_save_shares_one_version(
    conn: Connection, upsert: UpsertKeyvalWrite[str, str], reader: GenericKeyvalRead[str, str]
) -> None:
    upsert.insert(conn, "a", "old")
    version = upsert.batch_save(conn, {"a": "new", "b": "fresh"})
    assert reader.batch_contains(conn, ["a", "b"]) == {"a": version, "b": version}
    assert reader.batch_read(conn, ["a", "b"]) == {"a": "new", "b": "fresh"}


def test_batch_insert_shares_one_version(
    conn: Connection, upsert: UpsertKeyvalWrite[str, str], reader: GenericKeyvalRead[str, str]
) -> None:
    version = upsert.batch_insert(conn, {"x": "1", "y": "2"})
    assert reader.batch_contains(conn, ["x", "y"]) == {"x": version, "y": version}


def test_versioned_operations_delegate_to_generic_engine(
    conn: Connection, upsert: UpsertKeyvalWrite[str, str], reader: GenericKeyvalRead[str, str]
) -> None:
    v1 = upsert.insert(conn, "a", "1")
    v2 = upsert.swap(conn, "a", "2", v1)
    assert v2 is not None and v2 > v1
    assert upsert.swap(conn, "a", "3", v1) == v2
    assert upsert.touch(conn, "ghost") is None
    assert upsert.remove(conn, "a", v1) is False
    assert upsert.remove(conn, "a", v2) is True
    assert reader.read(conn, "a") is None


def test_server_timestamp_is_not_bound(meta: TableMetadata, versions: VersionGenerator) -> None:
    bound = UpsertKeyvalWrite(meta, versions=versions, dialect=UpsertDialect.ON_CONFLICT)
    server = UpsertKeyvalWrite(
        meta, versions=versions, dialect=UpsertDialect.ON_CONFLICT, use_server_timestamp=True
    )
    assert ":now" in bound.upsert_sql and "CURRENT_TIMESTAMP" not in bound.upsert_sql
    assert ":now" not in server.upsert_sql and "CURRENT_TIMESTAMP" in server.upsert_sql
    assert "now" in bound._params("a", "1", 1, bound._now())
    assert "now" not in server._params("a", "1", 1, server._now())


def test_mysql_statement_rendering(meta: TableMetadata, versions: VersionGenerator) -> None:
    upsert: UpsertKeyvalWrite[str, str] = UpsertKeyvalWrite(
        meta, versions=versions, dialect=UpsertDialect.MYSQL, use_server_timestamp=True
    )
    assert upsert.upsert_sql == (
        "INSERT INTO kv (key, value, version, created, updated)"
        " VALUES (:key, :value, :version, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)"
        " ON DUPLICATE KEY UPDATE value = VALUES(value), version = VALUES(version),"
        " updated = VALUES(updated)"
    )


def test_on_conflict_statement_rendering(meta: TableMetadata, versions: VersionGenerator) -> None:
    upsert: UpsertKeyvalWrite[str, str] = UpsertKeyvalWrite(
        meta, versions=versions, dialect=UpsertDialect.ON_CONFLICT
    )
    assert upsert.upsert_sql.endswith(
        "ON CONFLICT (key) DO UPDATE SET value = excluded.value,"
        " version = excluded.version, updated = excluded.updated"
    )
    assert upsert.insert_sql.endswith("VALUES (:key, :value, :version, :now, :now)")


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("mysql", UpsertDialect.MYSQL),
        ("mariadb", UpsertDialect.MYSQL),
        ("postgresql", UpsertDialect.ON_CONFLICT),
        ("SQLite", UpsertDialect.ON_CONFLICT),
        ("oracle", None),
        ("mssql", None),
    ],
)
def test_dialect_mapping(name: str, expected: UpsertDialect | None) -> None:
    assert UpsertDialect.for_sqlalchemy_dialect(name) is expected


def test_dollar_in_table_name_survives_timestamp_pass(versions: VersionGenerator) -> None:
    archive = TableMetadata.create("kv$archive")
    upsert: UpsertKeyvalWrite[str, str] = UpsertKeyvalWrite(
        archive, versions=versions, dialect=UpsertDialect.ON_CONFLICT
    )
    assert upsert.insert_sql.startswith("INSERT INTO kv$archive (key, value, version, ")
    assert upsert.insert_sql.endswith("VALUES (:key, :value, :version, :now, :now)")
    assert "ON CONFLICT (key) DO UPDATE SET" in upsert.upsert_sql
    assert upsert.upsert_sql.startswith("INSERT INTO kv$archive ")
