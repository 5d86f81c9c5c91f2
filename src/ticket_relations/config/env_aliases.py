"""Flat environment variable names and deprecated aliases.

Nested settings can always be set as SECTION__FIELD; this module adds the short
flat names operators use, and warns when a legacy name is still in use.
"""
from __future__ import annotations

import os
import warnings
from collections.abc import Iterable, Mapping
from typing import Any

# Mapping of deprecated env vars to their canonical names
_DEPRECATED_ALIASES: dict[str, str] = {
    "RELATIONS_REDIS_URL": "REDIS_URL",
    "TICKET_LOCK_TTL_SECONDS": "LOCKS_TTL_SECONDS",
    "MERGE_CONFLICT_RETRIES": "RELATIONS_MAX_CONFLICT_RETRIES",
}


def _warn_deprecated_env_var(old_name: str, new_name: str) -> None:
    warnings.warn(
        f"Environment variable '{old_name}' is deprecated. Use '{new_name}' instead. "
        f"Support for '{old_name}' will be removed in a future version.",
        DeprecationWarning,
        stacklevel=3,
    )


def _set_nested(data: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    node = data
    for part in path[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[path[-1]] = value


def _apply_alias_mappings(
    env: Mapping[str, str],
    data: dict[str, Any],
    mappings: Iterable[tuple[str, tuple[str, ...]]],
) -> None:
    for env_name, path in mappings:
        value = env.get(env_name)
        if value:
            _set_nested(data, path, value)


def _apply_deprecated_aliases(
    env: Mapping[str, str],
    data: dict[str, Any],
    deprecated_mappings: Iterable[tuple[str, str, tuple[str, ...]]],
) -> None:
    for old_name, new_name, path in deprecated_mappings:
        old_value = env.get(old_name)
        if not old_value:
            continue
        if env.get(new_name):
            continue
        _warn_deprecated_env_var(old_name, new_name)
        _set_nested(data, path, old_value)


_CANONICAL_MAPPINGS: tuple[tuple[str, tuple[str, ...]], ...] = (
    # Server
    ("SERVER_HOST", ("server", "host")),
    ("SERVER_PORT", ("server", "port")),
    # Storage
    ("STORAGE_BACKEND", ("storage", "backend")),
    ("STORAGE_TIMEOUT_SECONDS", ("storage", "timeout_seconds")),
    # Locks
    ("LOCKS_BACKEND", ("locks", "backend")),
    ("REDIS_URL", ("locks", "redis_url")),
    ("LOCKS_TTL_SECONDS", ("locks", "ttl_seconds")),
    # Relations
    ("RELATIONS_MAX_CONFLICT_RETRIES", ("relations", "max_conflict_retries")),
    ("RELATIONS_MAX_ANCESTRY_DEPTH", ("relations", "max_ancestry_depth")),
    ("RELATIONS_AUDIT_REPLIES", ("relations", "audit_replies")),
    # Observability
    ("LOG_LEVEL", ("observability", "log_level")),
    ("LOG_FORMAT", ("observability", "log_format")),
    ("LOG_JSON", ("observability", "json_logs")),
    ("METRICS_ENABLED", ("observability", "metrics_enabled")),
    ("METRICS_BEARER_TOKEN", ("observability", "metrics_bearer_token")),
    ("HEALTHZ_OMIT_VERSION", ("observability", "healthz_omit_version")),
    # API
    ("API_USER_ID_HEADER", ("api", "user_id_header")),
    ("API_USER_NAME_HEADER", ("api", "user_name_header")),
    ("API_HISTORY_LIMIT", ("api", "history_limit")),
)

_DEPRECATED_VALUE_MAPPINGS: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("RELATIONS_REDIS_URL", "REDIS_URL", ("locks", "redis_url")),
    ("TICKET_LOCK_TTL_SECONDS", "LOCKS_TTL_SECONDS", ("locks", "ttl_seconds")),
    (
        "MERGE_CONFLICT_RETRIES",
        "RELATIONS_MAX_CONFLICT_RETRIES",
        ("relations", "max_conflict_retries"),
    ),
)


def get_flat_env_settings_source() -> dict[str, Any]:
    env = os.environ
    data: dict[str, Any] = {}

    _apply_alias_mappings(env, data, _CANONICAL_MAPPINGS)
    _apply_deprecated_aliases(env, data, _DEPRECATED_VALUE_MAPPINGS)

    return data
