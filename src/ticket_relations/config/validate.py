from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from urllib.parse import urlsplit

from pydantic import ValidationError

from ticket_relations.config.settings import Settings

_REDIS_SCHEMES = frozenset({"redis", "rediss", "unix"})


@dataclass(frozen=True)
class ConfigValidationIssue:
    path: str
    message: str


class ConfigValidationError(ValueError):
    def __init__(self, issues: Iterable[ConfigValidationIssue]):
        self.issues = list(issues)
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = ["Configuration is invalid:"]
        for issue in self.issues:
            lines.append(f"- {issue.path}: {issue.message}")
        return "\n".join(lines)


def issues_from_pydantic_error(error: ValidationError) -> list[ConfigValidationIssue]:
    issues: list[ConfigValidationIssue] = []
    for item in error.errors(include_url=False):
        loc = ".".join(str(part) for part in item.get("loc", ())) or "<root>"
        msg = item.get("msg", "Invalid value")
        issues.append(ConfigValidationIssue(path=loc, message=msg))
    return issues


def validate_settings(settings: Settings) -> None:
    issues: list[ConfigValidationIssue] = []

    log_level = settings.observability.log_level.upper()
    allowed_levels = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
    if log_level not in allowed_levels:
        issues.append(
            ConfigValidationIssue(
                path="observability.log_level",
                message=(
                    f"Unsupported log level {settings.observability.log_level!r} "
                    f"(allowed: {sorted(allowed_levels)})"
                ),
            )
        )

    if settings.locks.backend == "redis" and settings.locks.redis_url is not None:
        scheme = urlsplit(settings.locks.redis_url.get_secret_value().strip()).scheme.lower()
        if scheme not in _REDIS_SCHEMES:
            issues.append(
                ConfigValidationIssue(
                    path="locks.redis_url",
                    message=(
                        f"Unsupported Redis URL scheme {scheme or '<none>'!r} "
                        f"(allowed: {sorted(_REDIS_SCHEMES)})"
                    ),
                )
            )

    # A lock that can expire while a commit is still pending no longer serializes writers.
    if settings.locks.ttl_seconds <= settings.storage.timeout_seconds:
        issues.append(
            ConfigValidationIssue(
                path="locks.ttl_seconds",
                message=(
                    "locks.ttl_seconds must be greater than storage.timeout_seconds "
                    f"({settings.locks.ttl_seconds} <= {settings.storage.timeout_seconds})."
                ),
            )
        )

    if issues:
        raise ConfigValidationError(issues)
