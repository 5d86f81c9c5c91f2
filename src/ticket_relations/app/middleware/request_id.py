from __future__ import annotations

import re
import uuid
from collections.abc import Awaitable, Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

REQUEST_ID_HEADER = "X-Request-Id"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

CallNext = Callable[[Request], Awaitable[Response]]


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tags every request (and every log line it produces) with a request ID and the caller."""

    def __init__(self, app: ASGIApp, *, user_id_header: str = "X-User-Id") -> None:
        super().__init__(app)
        self._user_id_header = user_id_header

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        request_id = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
        if not _REQUEST_ID_RE.fullmatch(request_id):
            request_id = str(uuid.uuid4())

        request.state.request_id = request_id
        bound: dict[str, object] = {"request_id": request_id}
        actor_id = (request.headers.get(self._user_id_header) or "").strip()
        if actor_id:
            bound["actor_id"] = actor_id

        with structlog.contextvars.bound_contextvars(**bound):
            response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
