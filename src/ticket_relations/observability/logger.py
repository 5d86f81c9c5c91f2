from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING, Any

import structlog
from structlog.stdlib import ProcessorFormatter

from ticket_relations._version import SERVICE_NAME
from ticket_relations.config.redact import redact_settings_dict

if TYPE_CHECKING:
    from ticket_relations.config.settings import Settings

_NOISY_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _scrub_event_dict(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    return redact_settings_dict(event_dict)


def _add_service(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _resolve_log_format(json_logs_default: bool) -> str:
    raw = (os.environ.get("LOG_FORMAT") or "").strip().lower()
    if raw in {"json", "human"}:
        return raw
    return "json" if json_logs_default else "human"


def _resolve_log_level(log_level_default: str) -> str:
    raw = (os.environ.get("LOG_LEVEL") or "").strip()
    if raw:
        return raw
    return log_level_default


def _coerce_log_format(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    return normalized if normalized in {"json", "human"} else None


def configure_logging(
    *,
    log_level: str = "INFO",
    json_logs: bool = False,
    log_format: str | None = None,
) -> None:
    """
    structlog + stdlib logging configuration shared by the API, the CLI and library callers.

    LOG_FORMAT=human|json can override `json_logs`.
    """
    resolved_level = _resolve_log_level(log_level).upper()
    configured_format = _coerce_log_format(log_format)
    resolved_format = configured_format or _resolve_log_format(json_logs)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _add_service,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _scrub_event_dict,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    renderer: Any
    if resolved_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    formatter = ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(resolved_level)

    for noisy in _NOISY_LOGGERS:
        logger = logging.getLogger(noisy)
        logger.handlers = []
        logger.propagate = True

    structlog.configure(
        processors=[
            *shared_processors,
            ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def configure_logging_from_settings(settings: Settings) -> None:
    configure_logging(
        log_level=settings.observability.log_level,
        log_format=settings.observability.log_format,
        json_logs=settings.observability.json_logs,
    )
