"""
sqlkv.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide env-driven settings for the database, table layout and write strategy.
- Build the `TableMetadata` used by every engine.
- Offer a cached settings instance for composition roots.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from sqlkv.kv.types import TableMetadata


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SQLKV_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "sqlkv"
    log_level: str = "INFO"
    # Bound values can hold user data; off by default.
    log_sql_params: bool = False

    # Persistence
    database_url: str = "sqlite:///./sqlkv.db"
    echo_sql: bool = False
    # Read replicas are optional; reads fall back to the primary connection.
    replica_urls: list[str] = Field(default_factory=list)

    # Table layout
    table_name: str = "kv"
    key_column: str = "key"
    value_column: str = "value"
    version_column: str = "version"
    created_column: str = "created"
    updated_column: str = "updated"

    # Write strategy. "auto" picks a native upsert from the engine dialect when one exists.
    upsert_dialect: Literal["auto", "generic", "mysql", "on_conflict"] = "auto"
    use_server_timestamp: bool = False

    def table_metadata(self) -> TableMetadata:
        return TableMetadata(
            table_name=self.table_name,
            key_column=self.key_column,
            value_column=self.value_column,
            version_column=self.version_column,
            created_column=self.created_column,
            updated_column=self.updated_column,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each composition.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Column names are configurable so an existing table can be adopted without migration.
