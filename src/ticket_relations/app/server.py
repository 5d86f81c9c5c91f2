from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request

from ticket_relations._version import SERVICE_NAME, __version__
from ticket_relations.app.dependencies import CapabilityPredicate, allow_all
from ticket_relations.app.middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware
from ticket_relations.app.operations.context import RelationsContext
from ticket_relations.app.responses import api_error, relations_error_response
from ticket_relations.app.routes.healthz import router as healthz_router
from ticket_relations.app.routes.relationships import router as relationships_router
from ticket_relations.app.routes.tickets import router as tickets_router
from ticket_relations.config.settings import Settings
from ticket_relations.domain.errors import RelationsError

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    context: RelationsContext | None = getattr(app.state, "context", None)
    if context is not None:
        await context.aclose()


def _request_id_headers(request: Request) -> tuple[str | None, dict[str, str] | None]:
    request_id = getattr(request.state, "request_id", None)
    headers = {REQUEST_ID_HEADER: request_id} if request_id else None
    return request_id, headers


async def _relations_error_handler(request: Request, exc: RelationsError):
    request_id, headers = _request_id_headers(request)
    return relations_error_response(exc, request_id=request_id, headers=headers)


async def _global_exception_handler(request: Request, exc: Exception):
    request_id, headers = _request_id_headers(request)
    log.error(
        "server.unhandled_exception",
        path=request.url.path,
        error=f"{exc.__class__.__name__}: {exc}",
    )
    return api_error(
        500,
        "An internal server error occurred.",
        code="internal_error",
        request_id=request_id,
        headers=headers,
    )


def _wire_app(
    app: FastAPI,
    *,
    context: RelationsContext,
    can_manage_relationships: CapabilityPredicate,
) -> None:
    app.state.context = context
    app.state.settings = context.settings
    app.state.can_manage_relationships = can_manage_relationships

    app.add_middleware(
        RequestIdMiddleware,
        user_id_header=context.settings.api.user_id_header,
    )
    app.add_exception_handler(RelationsError, _relations_error_handler)
    app.add_exception_handler(Exception, _global_exception_handler)

    app.include_router(healthz_router)
    app.include_router(tickets_router)
    app.include_router(relationships_router)
    if context.settings.observability.metrics_enabled:
        from ticket_relations.app.routes.metrics import router as metrics_router

        app.include_router(metrics_router)


def create_app(
    settings: Settings | None = None,
    *,
    context: RelationsContext | None = None,
    can_manage_relationships: CapabilityPredicate | None = None,
) -> FastAPI:
    """
    Build the HTTP surface.

    `context` lets an embedding application share its own DocumentStore; without it
    an in-memory store is created from `settings`.
    """
    if context is None:
        context = RelationsContext.build(settings or Settings.from_mapping({}))
    app = FastAPI(title=SERVICE_NAME, version=__version__, lifespan=lifespan)
    _wire_app(
        app,
        context=context,
        can_manage_relationships=can_manage_relationships or allow_all,
    )
    return app
