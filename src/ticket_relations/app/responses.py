"""Centralized API response helpers for consistent JSON error shapes."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from starlette.responses import JSONResponse

from ticket_relations.domain.error_messages import ErrorCodes
from ticket_relations.domain.errors import (
    NotFound,
    PermanentError,
    RelationsError,
    StorageFailure,
    SystemGenerated,
    TenantMismatch,
)

RETRY_AFTER_SECONDS = 1

_HINTS: dict[str, str] = {
    ErrorCodes.CONFLICT: "Another operation touched the same tickets; retry the request.",
    ErrorCodes.STORAGE: "Retry the request with backoff.",
    ErrorCodes.SYSTEM_GENERATED: "Split and merge relationships are part of the audit trail.",
    ErrorCodes.TENANT_MISMATCH: "All tickets in one operation must belong to the same tenant.",
}


def api_error(
    status_code: int,
    detail: str,
    *,
    code: str | None = None,
    hint: str | None = None,
    request_id: str | None = None,
    extra: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    """Return a JSON error response with optional code, hint and structured context."""
    content: dict[str, Any] = {"detail": detail}
    if code is not None:
        content["code"] = code
    if hint is not None:
        content["hint"] = hint
    if request_id is not None:
        content["request_id"] = request_id
    if extra:
        content.update(extra)
    return JSONResponse(status_code=status_code, content=content, headers=dict(headers or {}))


def status_for(error: RelationsError) -> int:
    if error.code == ErrorCodes.INTERNAL:
        return 500
    if isinstance(error, NotFound):
        return 404
    if isinstance(error, SystemGenerated):
        return 409
    if isinstance(error, TenantMismatch):
        return 403
    if isinstance(error, StorageFailure):
        return 503
    if isinstance(error, PermanentError):
        return 422
    return 500


def relations_error_response(
    error: RelationsError,
    *,
    request_id: str | None = None,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    status_code = status_for(error)
    out_headers = dict(headers or {})
    if isinstance(error, StorageFailure):
        out_headers["Retry-After"] = str(RETRY_AFTER_SECONDS)

    context = error.context()
    extra = {key: context[key] for key in ("ticket_id", "field", "rule") if key in context}
    return api_error(
        status_code,
        error.message,
        code=error.code,
        hint=_HINTS.get(error.code),
        request_id=request_id,
        extra=extra,
        headers=out_headers,
    )
