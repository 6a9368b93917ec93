"""
sqlkv.kv.factory

Composition root for the key-value engines.

Responsibilities:
- Choose the write engine (generic or native upsert) from settings and the SQL dialect.
- Choose the read engine (primary only or replica-aware) from configured replicas.
- Share one executor and one version generator across the engines it builds.
- Run process startup (logging, primary engine, dev/test table bootstrap).
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy.engine import Engine, make_url

from sqlkv.db.schema import init_db
from sqlkv.db.session import create_engine, create_replica_engines
from sqlkv.kv.generic_read import GenericKeyvalRead
from sqlkv.kv.generic_write import GenericKeyvalWrite
from sqlkv.kv.protocols import KeyvalRead, KeyvalWrite
from sqlkv.kv.replicated import ReplicatedKeyvalRead
from sqlkv.kv.vendor import UpsertDialect, UpsertKeyvalWrite
from sqlkv.kv.versioning import VersionGenerator
from sqlkv.observability.logging import configure_logging, get_logger
from sqlkv.settings import Settings
from sqlkv.sql.executor import SqlAlchemyExecutor, SqlExecutor

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class KeyvalEngines:
    read: KeyvalRead
    write: KeyvalWrite


def _fixed(engines: list[Engine]) -> Callable[[], Sequence[Engine]]:
    return lambda: engines


def resolve_upsert_dialect(settings: Settings, engine: Engine | None = None) -> UpsertDialect | None:
    if settings.upsert_dialect == "generic":
        return None
    if settings.upsert_dialect != "auto":
        return UpsertDialect(settings.upsert_dialect)
    # "auto": prefer the live engine's dialect, else the backend named in the URL.
    name = engine.dialect.name if engine is not None else make_url(settings.database_url).get_backend_name()
    return UpsertDialect.for_sqlalchemy_dialect(name)


def build_engines(
    settings: Settings,
    *,
    engine: Engine | None = None,
    executor: SqlExecutor | None = None,
    versions: VersionGenerator | None = None,
    replicas: Callable[[], Sequence[Engine]] | None = None,
    key_type: Callable[[Any], Any] | None = None,
    value_type: Callable[[Any], Any] | None = None,
) -> KeyvalEngines:
    """
    `key_type` and `value_type` coerce keys and values coming back from reads, for
    callers whose Python types differ from what the driver returns.
    """

    meta = settings.table_metadata()
    executor = executor or SqlAlchemyExecutor(log_params=settings.log_sql_params)
    versions = versions or VersionGenerator()

    dialect = resolve_upsert_dialect(settings, engine)
    write: KeyvalWrite
    if dialect is None:
        write = GenericKeyvalWrite(meta, versions=versions, executor=executor)
    else:
        write = UpsertKeyvalWrite(
            meta,
            versions=versions,
            dialect=dialect,
            use_server_timestamp=settings.use_server_timestamp,
            executor=executor,
        )

    if replicas is None and settings.replica_urls:
        replicas = _fixed(create_replica_engines(settings))
    read: KeyvalRead
    if replicas is None:
        read = GenericKeyvalRead(meta, executor=executor, key_type=key_type, value_type=value_type)
    else:
        read = ReplicatedKeyvalRead(
            meta,
            replicas=replicas,
            executor=executor,
            key_type=key_type,
            value_type=value_type,
        )

    log.info(
        "kv.engines_built",
        table=meta.table_name,
        write=type(write).__name__,
        upsert_dialect=dialect.value if dialect is not None else None,
        read=type(read).__name__,
    )
    return KeyvalEngines(read=read, write=write)


def bootstrap(settings: Settings) -> tuple[Engine, KeyvalEngines]:
    """
    Process startup: configure logging, create the primary engine and build the engines.
    In dev/test the table is created when missing; prod tables come from migrations.
    """

    configure_logging(service_name=settings.service_name, level=settings.log_level)
    engine = create_engine(settings)
    if settings.env in ("dev", "test"):
        init_db(engine, settings.table_metadata())
    log.info("startup", env=settings.env)
    return engine, build_engines(settings, engine=engine)


# --- Module Notes -----------------------------------------------------------
# Replica engines created here live for the process; dispose them with the primary.
