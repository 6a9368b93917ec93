"""
tests.conftest

Shared fixtures: an in-memory SQLite database with the default `kv` table.

Responsibilities:
- Provide a fresh engine, table and open transaction per test.
- Provide engines wired to one version generator.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy.engine import Connection, Engine

from sqlkv.db.schema import init_db
from sqlkv.db.session import create_engine
from sqlkv.kv.generic_read import GenericKeyvalRead
from sqlkv.kv.generic_write import GenericKeyvalWrite
from sqlkv.kv.types import TableMetadata
from sqlkv.kv.versioning import VersionGenerator
from sqlkv.settings import Settings


@pytest.fixture
def settings() -> Settings:
    return Settings(env="test", database_url="sqlite://")


@pytest.fixture
def meta() -> TableMetadata:
    return TableMetadata.create("kv")


@pytest.fixture
def engine(settings: Settings, meta: TableMetadata) -> Iterator[Engine]:
    engine = create_engine(settings)
    init_db(engine, meta)
    yield engine
    engine.dispose()


@pytest.fixture
def conn(engine: Engine) -> Iterator[Connection]:
    with engine.begin() as conn:
        yield conn


@pytest.fixture
def versions() -> VersionGenerator:
    return VersionGenerator()


@pytest.fixture
def writer(meta: TableMetadata, versions: VersionGenerator) -> GenericKeyvalWrite[str, str]:
    return GenericKeyvalWrite(meta, versions=versions)


@pytest.fixture
def reader(meta: TableMetadata) -> GenericKeyvalRead[str, str]:
    return GenericKeyvalRead(meta)
