from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from ticket_relations.config.load import ConfigFile, load_settings, locate_config_file
from ticket_relations.config.settings import Settings
from ticket_relations.config.validate import ConfigValidationError, validate_settings

_ENV_KEYS = [
    "CONFIG_PATH",
    "SERVER_HOST",
    "SERVER_PORT",
    "STORAGE_BACKEND",
    "STORAGE_TIMEOUT_SECONDS",
    "LOCKS_BACKEND",
    "LOCKS_TTL_SECONDS",
    "REDIS_URL",
    "RELATIONS_MAX_CONFLICT_RETRIES",
    "RELATIONS_MAX_ANCESTRY_DEPTH",
    "RELATIONS_AUDIT_REPLIES",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_JSON",
    "METRICS_ENABLED",
    "METRICS_BEARER_TOKEN",
    # Deprecated names
    "RELATIONS_REDIS_URL",
    "TICKET_LOCK_TTL_SECONDS",
    "MERGE_CONFLICT_RETRIES",
    # Nested form (supported by pydantic-settings)
    "RELATIONS__MAX_CONFLICT_RETRIES",
    "LOCKS__BACKEND",
]


def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults_load_without_any_configuration(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)

    settings = load_settings()

    assert settings.storage.backend == "memory"
    assert settings.locks.backend == "memory"
    assert settings.relations.max_conflict_retries == 3
    assert settings.relations.max_ancestry_depth == 32
    assert settings.relations.audit_replies is True
    assert settings.api.user_id_header == "X-User-Id"


def test_yaml_loading_works(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)

    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "\n".join(
            [
                "server:",
                "  port: 9090",
                "relations:",
                "  max_conflict_retries: 5",
                "  audit_replies: false",
                "locks:",
                "  backend: redis",
                "  redis_url: redis://:hunter2@cache.internal:6379/0",
                "",
            ]
        ),
        encoding="utf-8",
    )

    settings = load_settings(config_path=config_path)
    assert settings.server.port == 9090
    assert settings.relations.max_conflict_retries == 5
    assert settings.relations.audit_replies is False
    assert settings.locks.backend == "redis"
    assert settings.locks.redis_url is not None


def test_env_overrides_yaml(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)

    config_path = tmp_path / "config.yaml"
    config_path.write_text("relations:\n  max_conflict_retries: 5\n", encoding="utf-8")
    monkeypatch.setenv("RELATIONS_MAX_CONFLICT_RETRIES", "1")
    monkeypatch.setenv("STORAGE_TIMEOUT_SECONDS", "2.5")

    settings = load_settings(config_path=config_path)
    assert settings.relations.max_conflict_retries == 1
    assert settings.storage.timeout_seconds == 2.5


def test_config_path_env_is_honored(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)

    config_path = tmp_path / "custom.yaml"
    config_path.write_text("api:\n  history_limit: 10\n", encoding="utf-8")
    monkeypatch.setenv("CONFIG_PATH", str(config_path))

    assert load_settings().api.history_limit == 10


def test_explicit_config_path_missing_fails(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)

    with pytest.raises(ConfigValidationError) as exc:
        load_settings(config_path=tmp_path / "missing.yaml")

    assert "CONFIG_PATH" in str(exc.value)
    assert "Config file not found" in str(exc.value)


def test_yaml_root_must_be_mapping(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)

    config_path = tmp_path / "config.yaml"
    config_path.write_text("- just\n- a\n- list\n", encoding="utf-8")

    with pytest.raises(ConfigValidationError) as exc:
        load_settings(config_path=config_path)

    assert "YAML root must be a mapping/object" in str(exc.value)


def test_redis_lock_backend_requires_redis_url_with_hint(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)
    monkeypatch.setenv("LOCKS_BACKEND", "redis")

    with pytest.raises(ConfigValidationError) as exc:
        load_settings()

    msg = str(exc.value)
    assert "locks" in msg
    assert "REDIS_URL" in msg


def test_unknown_storage_backend_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings.from_mapping({"storage": {"backend": "postgres"}})


def test_unknown_section_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings.from_mapping({"webhooks": {"url": "https://hooks.example"}})


def test_validate_settings_rejects_invalid_log_level() -> None:
    settings = Settings.from_mapping({"observability": {"log_level": "VERBOSE"}})

    with pytest.raises(ConfigValidationError) as exc:
        validate_settings(settings)

    msg = str(exc.value)
    assert "observability.log_level" in msg
    assert "Unsupported log level" in msg


def test_validate_settings_rejects_bad_redis_scheme() -> None:
    settings = Settings.from_mapping(
        {"locks": {"backend": "redis", "redis_url": "http://cache.internal:6379"}}
    )

    with pytest.raises(ConfigValidationError) as exc:
        validate_settings(settings)

    assert "locks.redis_url" in str(exc.value)


def test_validate_settings_requires_lock_ttl_above_storage_timeout() -> None:
    settings = Settings.from_mapping(
        {"storage": {"timeout_seconds": 30}, "locks": {"ttl_seconds": 30}}
    )

    with pytest.raises(ConfigValidationError) as exc:
        validate_settings(settings)

    assert "locks.ttl_seconds" in str(exc.value)


def test_deprecated_env_names_warn_and_apply(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)
    monkeypatch.setenv("MERGE_CONFLICT_RETRIES", "7")

    with pytest.warns(DeprecationWarning, match="MERGE_CONFLICT_RETRIES"):
        settings = load_settings()

    assert settings.relations.max_conflict_retries == 7


def test_canonical_env_name_wins_over_deprecated(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)
    monkeypatch.setenv("TICKET_LOCK_TTL_SECONDS", "90")
    monkeypatch.setenv("LOCKS_TTL_SECONDS", "120")

    settings = load_settings()
    assert settings.locks.ttl_seconds == 120


def test_config_file_location_precedence(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)

    assert locate_config_file() is None

    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "config.yaml").write_text("{}\n", encoding="utf-8")
    assert locate_config_file() == ConfigFile(Path("config/config.yaml"), required=False)

    monkeypatch.setenv("CONFIG_PATH", str(tmp_path / "from-env.yaml"))
    assert locate_config_file() == ConfigFile(tmp_path / "from-env.yaml", required=True)

    explicit = tmp_path / "explicit.yaml"
    assert locate_config_file(explicit) == ConfigFile(explicit, required=True)


def test_empty_yaml_file_means_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)

    config_path = tmp_path / "config.yaml"
    config_path.write_text("# nothing configured yet\n", encoding="utf-8")

    settings = load_settings(config_path=config_path)
    assert settings.relations.max_conflict_retries == 3


def test_field_error_carries_env_hint(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    _clear_env(monkeypatch)

    config_path = tmp_path / "config.yaml"
    config_path.write_text("storage:\n  timeout_seconds: -1\n", encoding="utf-8")

    with pytest.raises(ConfigValidationError) as exc:
        load_settings(config_path=config_path)

    [issue] = exc.value.issues
    assert issue.path == "storage.timeout_seconds"
    assert "STORAGE_TIMEOUT_SECONDS" in issue.message
