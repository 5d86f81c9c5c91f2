from __future__ import annotations

import os
from pathlib import Path
from typing import Any, NamedTuple

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from ticket_relations.config.settings import Settings
from ticket_relations.config.validate import (
    ConfigValidationError,
    ConfigValidationIssue,
    issues_from_pydantic_error,
    validate_settings,
)

DEFAULT_CONFIG_FILE = Path("config/config.yaml")
DOTENV_FILE = Path(".env")
CONFIG_PATH_ENV = "CONFIG_PATH"


class ConfigFile(NamedTuple):
    path: Path
    # Asked for by argument or CONFIG_PATH: a missing file is then an error.
    required: bool


def locate_config_file(config_path: str | Path | None = None) -> ConfigFile | None:
    """Argument first, then CONFIG_PATH, then config/config.yaml if it exists."""
    requested = config_path if config_path is not None else os.environ.get(CONFIG_PATH_ENV)
    if requested:
        return ConfigFile(Path(requested), required=True)
    if DEFAULT_CONFIG_FILE.exists():
        return ConfigFile(DEFAULT_CONFIG_FILE, required=False)
    return None


def read_config_file(config_file: ConfigFile) -> dict[str, Any]:
    path = config_file.path
    if not path.exists():
        if not config_file.required:
            return {}
        raise ConfigValidationError(
            [ConfigValidationIssue(CONFIG_PATH_ENV, f"Config file not found: {path}")]
        )

    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigValidationError(
            [ConfigValidationIssue(str(path), f"Unable to read config file: {exc}")]
        ) from exc

    if document is None:
        return {}
    if isinstance(document, dict):
        return document
    raise ConfigValidationError(
        [ConfigValidationIssue(str(path), "YAML root must be a mapping/object")]
    )


def load_settings(*, config_path: str | Path | None = None) -> Settings:
    """
    Build validated Settings for the service.

    Precedence, highest first: process environment, `.env` (never overrides the process
    environment), the YAML file, field defaults.
    """
    if DOTENV_FILE.is_file():
        load_dotenv(dotenv_path=DOTENV_FILE, override=False)

    config_file = locate_config_file(config_path)
    overrides = read_config_file(config_file) if config_file is not None else {}

    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        raise ConfigValidationError(
            [_with_hint(issue) for issue in issues_from_pydantic_error(exc)]
        ) from exc

    validate_settings(settings)
    return settings


# Keyed by dotted issue path; the longest matching prefix wins.
_HINTS: dict[str, str] = {
    "locks": "Set `REDIS_URL` (or YAML `locks.redis_url`) when `LOCKS_BACKEND=redis`.",
    "locks.backend": "Use `memory` or `redis`.",
    "locks.ttl_seconds": "Set `LOCKS_TTL_SECONDS` between 1 and 3600.",
    "storage.backend": "Only the `memory` backend ships with this package.",
    "storage.timeout_seconds": "Set `STORAGE_TIMEOUT_SECONDS` to a positive number of seconds.",
    "relations.max_conflict_retries": "Set `RELATIONS_MAX_CONFLICT_RETRIES` between 0 and 10.",
    "observability.log_format": "Set `LOG_FORMAT` to `json` or `human`.",
}


def _hint_for(path: str) -> str | None:
    parts = path.split(".")
    for end in range(len(parts), 0, -1):
        hint = _HINTS.get(".".join(parts[:end]))
        if hint is not None:
            return hint
    return None


def _with_hint(issue: ConfigValidationIssue) -> ConfigValidationIssue:
    hint = _hint_for(issue.path)
    if hint is None or hint in issue.message:
        return issue
    return ConfigValidationIssue(issue.path, f"{issue.message} {hint}")
