from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ticket_relations.config.env_aliases import get_flat_env_settings_source


class _BaseSection(BaseModel):
    model_config = {"extra": "forbid"}


class ServerSettings(_BaseSection):
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)


class StorageSettings(_BaseSection):
    backend: str = "memory"
    # Applied to every store call made by split/merge/relationship operations.
    timeout_seconds: float = Field(default=10.0, gt=0)

    @field_validator("backend")
    @classmethod
    def _validate_backend(cls, value: str) -> str:
        normalized = (value or "").strip().lower()
        if normalized != "memory":
            raise ValueError("storage.backend must be 'memory'")
        return normalized


class LockSettings(_BaseSection):
    backend: str = "memory"  # memory|redis
    redis_url: SecretStr | None = None
    ttl_seconds: int = Field(default=60, ge=1, le=3600)

    @model_validator(mode="after")
    def _redis_required_when_backend_redis(self) -> LockSettings:
        backend = (self.backend or "").strip().lower()
        if backend not in {"memory", "redis"}:
            raise ValueError("locks.backend must be 'memory' or 'redis'")
        redis_url = self.redis_url.get_secret_value().strip() if self.redis_url else ""
        if backend == "redis" and not redis_url:
            raise ValueError("locks.backend is 'redis' but locks.redis_url is not set")
        self.backend = backend
        return self


class RelationsSettings(_BaseSection):
    # Restarts from validation after a compare-and-set conflict before giving up.
    max_conflict_retries: int = Field(default=3, ge=0, le=10)
    # Bound on the parent chain walked when checking for parent/child cycles.
    max_ancestry_depth: int = Field(default=32, ge=1, le=1000)
    audit_replies: bool = True


class ObservabilitySettings(_BaseSection):
    log_level: str = "INFO"
    log_format: str | None = None  # json|human (overrides LOG_FORMAT/env when set)
    json_logs: bool = False
    metrics_enabled: bool = False
    # When set, GET /metrics requires Authorization: Bearer <this token> (constant-time compare).
    metrics_bearer_token: SecretStr | None = None
    # When true, GET /healthz omits version and service name.
    healthz_omit_version: bool = False

    @field_validator("log_format")
    @classmethod
    def _validate_log_format(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized in {"json", "human"}:
            return normalized
        raise ValueError("observability.log_format must be 'json' or 'human'")


class ApiSettings(_BaseSection):
    user_id_header: str = "X-User-Id"
    user_name_header: str = "X-User-Name"
    history_limit: int = Field(default=100, ge=1, le=5000)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="",
        env_nested_delimiter="__",
        extra="forbid",
    )

    server: ServerSettings = Field(default_factory=ServerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    locks: LockSettings = Field(default_factory=LockSettings)
    relations: RelationsSettings = Field(default_factory=RelationsSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    api: ApiSettings = Field(default_factory=ApiSettings)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Settings:
        """
        Construct Settings from a mapping without reading environment variables.

        Useful in tests where we want to pass nested dicts and keep mypy happy.
        """
        class _InitOnlySettings(Settings):
            @classmethod
            def settings_customise_sources(
                cls,
                settings_cls,
                init_settings,
                env_settings,
                dotenv_settings,
                file_secret_settings,
            ):
                return (init_settings,)

        return _InitOnlySettings(**dict(data))

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # .env is loaded into os.environ by config.load, so flat aliases work there too.
        return (
            env_settings,
            get_flat_env_settings_source,
            init_settings,
            file_secret_settings,
        )
