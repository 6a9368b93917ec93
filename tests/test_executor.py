"""
tests.test_executor

Default SQLAlchemy executor: row counts, limits and error mapping.
"""

from __future__ import annotations

import pytest
from sqlalchemy.engine import Connection

from sqlkv.errors import ConstraintViolationError, RowLimitExceededError, SqlExecutionError
from sqlkv.kv.versioning import utcnow
from sqlkv.sql.executor import NO_LIMIT, SqlAlchemyExecutor, column

INSERT = "INSERT INTO kv (key, value, version, created, updated) VALUES (:key, :value, :version, :now, :now)"


@pytest.fixture
def executor() -> SqlAlchemyExecutor:
    return SqlAlchemyExecutor()


@pytest.fixture
def seeded(conn: Connection, executor: SqlAlchemyExecutor) -> Connection:
    now = utcnow()
    executor.execute_batch(
        conn,
        INSERT,
        [{"key": f"k{i}", "value": f"v{i}", "version": i + 1, "now": now} for i in range(3)],
    )
    return conn


def test_execute_batch_reports_count_per_element(seeded: Connection, executor: SqlAlchemyExecutor) -> None:
    counts = executor.execute_batch(
        seeded,
        "UPDATE kv SET version = version + 1 WHERE key = :key",
        [{"key": "k0"}, {"key": "missing"}, {"key": "k2"}],
    )
    assert counts == [1, 0, 1]


def test_execute_batch_with_no_elements_runs_nothing(conn: Connection, executor: SqlAlchemyExecutor) -> None:
    assert executor.execute_batch(conn, "THIS IS NOT SQL", []) == []


def test_query_without_limit_returns_all_rows(seeded: Connection, executor: SqlAlchemyExecutor) -> None:
    rows = executor.query(seeded, "SELECT key FROM kv ORDER BY key", {}, column(0), limit=NO_LIMIT)
    assert rows == ["k0", "k1", "k2"]


def test_query_limit_truncates_silently(seeded: Connection, executor: SqlAlchemyExecutor) -> None:
    rows = executor.query(seeded, "SELECT key FROM kv ORDER BY key", {}, column(0), limit=2)
    assert rows == ["k0", "k1"]


def test_query_limit_raises_when_asked(seeded: Connection, executor: SqlAlchemyExecutor) -> None:
    with pytest.raises(RowLimitExceededError) as info:
        executor.query(
            seeded, "SELECT key FROM kv", {}, column(0), limit=2, raise_on_limit=True
        )
    assert info.value.limit == 2


def test_query_at_exact_limit_does_not_raise(seeded: Connection, executor: SqlAlchemyExecutor) -> None:
    rows = executor.query(seeded, "SELECT key FROM kv", {}, column(0), limit=3, raise_on_limit=True)
    assert len(rows) == 3


def test_query_map_and_column_conversion(seeded: Connection, executor: SqlAlchemyExecutor) -> None:
    found = executor.query_map(
        seeded, "SELECT key, version FROM kv", {}, column(0), column(1, str)
    )
    assert found == {"k0": "1", "k1": "2", "k2": "3"}


def test_query_custom_receives_result(seeded: Connection, executor: SqlAlchemyExecutor) -> None:
    count = executor.query_custom(seeded, "SELECT COUNT(*) FROM kv", {}, lambda result: result.scalar_one())
    assert count == 3


def test_generated_keys_fall_back_to_lastrowid(conn: Connection, executor: SqlAlchemyExecutor) -> None:
    conn.exec_driver_sql("CREATE TABLE seq (id INTEGER PRIMARY KEY, name TEXT)")
    keys = executor.execute_for_generated_keys(conn, "INSERT INTO seq (name) VALUES (:name)", {"name": "a"})
    assert keys == [{"lastrowid": 1}]


def test_duplicate_key_maps_to_constraint_violation(seeded: Connection, executor: SqlAlchemyExecutor) -> None:
    with pytest.raises(ConstraintViolationError) as info:
        executor.execute(seeded, INSERT, {"key": "k0", "value": "x", "version": 9, "now": utcnow()})
    assert info.value.operation == "update"
    assert info.value.sql == INSERT


def test_other_database_errors_map_to_execution_error(conn: Connection, executor: SqlAlchemyExecutor) -> None:
    with pytest.raises(SqlExecutionError) as info:
        executor.query(conn, "SELECT nope FROM missing_table", {}, column(0))
    assert not isinstance(info.value, ConstraintViolationError)
