# pyright: reportMissingImports=false

from __future__ import annotations

from functools import lru_cache
import json
from typing import Annotated, ClassVar, cast

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


_DEFAULT_POSTGRES_PASSWORD = "chittybeacon"


class Settings(BaseSettings):
    """Environment-driven settings with local dev defaults."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=None,
        case_sensitive=False,
        extra="ignore",
    )

    api_prefix: str = "/api"
    log_level: str = "INFO"

    env: str = "dev"

    # Beacons arrive from arbitrary client deployments.
    cors_allowed_origins: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])
    cors_allowed_methods: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["GET", "POST", "OPTIONS"])
    cors_allowed_headers: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["Content-Type"])
    trusted_hosts: Annotated[list[str], NoDecode] = Field(default_factory=list)

    default_environment: str = "production"
    recent_events_limit: int = Field(default=50, ge=1)
    recent_items_limit: int = Field(default=10, ge=1)
    chittypm_manager: str = Field(default="chittypm", min_length=1, max_length=100)
    batch_max_items: int = Field(default=500, ge=1)

    # Prefer DATABASE_URL when provided; otherwise construct from POSTGRES_* vars.
    database_url: str | None = None
    postgres_db: str = "chittybeacon"
    postgres_user: str = "chittybeacon"
    postgres_password: str = _DEFAULT_POSTGRES_PASSWORD
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    db_create_all: bool = False

    @field_validator(
        "cors_allowed_origins",
        "cors_allowed_methods",
        "cors_allowed_headers",
        "trusted_hosts",
        mode="before",
    )
    @classmethod
    def _parse_listish_env(cls, v: object) -> list[str]:
        if v is None:
            return []
        if isinstance(v, list):
            v_list = cast(list[object], v)
            return [str(x).strip() for x in v_list if str(x).strip()]
        if isinstance(v, str):
            raw = v.strip()
            if raw == "":
                return []
            if raw.startswith("["):
                try:
                    parsed: object = cast(object, json.loads(raw))
                except ValueError:
                    parsed = None
                if isinstance(parsed, list):
                    parsed_list = cast(list[object], parsed)
                    return [str(x).strip() for x in parsed_list if str(x).strip()]
            parts: list[str] = []
            for chunk in raw.replace("\n", ",").replace("\t", ",").split(","):
                s = chunk.strip()
                if s:
                    parts.append(s)
            return parts
        return [str(v).strip()] if str(v).strip() else []

    @property
    def sqlalchemy_database_uri(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    def _is_prod_env(self) -> bool:
        return self.env.strip().lower() in ("prod", "production")

    @model_validator(mode="after")
    def _validate_prod_config(self) -> "Settings":
        if not self._is_prod_env():
            return self

        problems: list[str] = []

        if self.sqlalchemy_database_uri.startswith("sqlite"):
            problems.append("DATABASE_URL must point at PostgreSQL in production (SQLite is not supported).")

        if not self.database_url and self.postgres_password == _DEFAULT_POSTGRES_PASSWORD:
            problems.append(
                f"POSTGRES_PASSWORD must be set in production (cannot use default {_DEFAULT_POSTGRES_PASSWORD!r})."
            )

        if self.db_create_all:
            problems.append("DB_CREATE_ALL is forbidden in production. Create the schema before deploying.")

        if problems:
            details = "\n".join(f"- {p}" for p in problems)
            raise ValueError(
                f"Production settings validation failed (ENV={self.env!r}). Fix the following before starting the server:\n"
                + details
            )

        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
