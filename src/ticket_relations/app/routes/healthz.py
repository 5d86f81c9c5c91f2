from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Request

from ticket_relations._version import SERVICE_NAME, __version__

router = APIRouter()


@router.get("/healthz")
def healthz(request: Request) -> dict[str, str]:
    out: dict[str, str] = {"status": "ok", "time": datetime.now(UTC).isoformat()}
    context = getattr(request.app.state, "context", None)
    if context is None or not context.settings.observability.healthz_omit_version:
        out["service"] = SERVICE_NAME
        out["version"] = __version__
    return out
