from __future__ import annotations

from collections.abc import Callable

from fastapi import HTTPException, Request

from ticket_relations.app.operations.context import RelationsContext
from ticket_relations.config.settings import Settings
from ticket_relations.domain.models import Actor

CapabilityPredicate = Callable[[Actor], bool]


def allow_all(actor: Actor) -> bool:
    return True


def get_context(request: Request) -> RelationsContext:
    return request.app.state.context


def get_settings(request: Request) -> Settings:
    return request.app.state.context.settings


def get_actor(request: Request) -> Actor:
    """Actor identity forwarded by the ticket API layer in front of this service."""
    settings = get_settings(request)
    user_id = (request.headers.get(settings.api.user_id_header) or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="missing_actor")
    user_name = (request.headers.get(settings.api.user_name_header) or "").strip()
    return Actor(user_id=user_id, user_name=user_name or user_id)


def require_manager(request: Request) -> Actor:
    actor = get_actor(request)
    predicate: CapabilityPredicate = request.app.state.can_manage_relationships
    if not predicate(actor):
        raise HTTPException(status_code=403, detail="forbidden")
    return actor
