from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from starlette.responses import Response

from ticket_relations.app.dependencies import get_actor, get_context, require_manager
from ticket_relations.app.operations.context import RelationsContext
from ticket_relations.app.operations.relationships import (
    create_relationship,
    list_relationships,
    remove_relationship,
)
from ticket_relations.domain.models import Actor, RelationshipType

router = APIRouter()


class CreateRelationshipRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    target_ticket_id: str
    relationship_type: RelationshipType
    description: str | None = None


@router.get("/tickets/{ticket_id}/relationships")
async def get_relationships(
    ticket_id: str,
    ctx: RelationsContext = Depends(get_context),
    _actor: Actor = Depends(get_actor),
) -> dict[str, Any]:
    relationships = await list_relationships(ctx, ticket_id)
    items = [relationship.to_document() for relationship in relationships]
    return {"status": "ok", "count": len(items), "items": items}


@router.post("/tickets/{ticket_id}/relationships", status_code=201)
async def post_relationship(
    ticket_id: str,
    body: CreateRelationshipRequest,
    ctx: RelationsContext = Depends(get_context),
    actor: Actor = Depends(require_manager),
) -> dict[str, str]:
    relationship_id = await create_relationship(
        ctx,
        ticket_id,
        body.target_ticket_id,
        body.relationship_type,
        actor,
        body.description,
    )
    return {"relationshipId": relationship_id}


@router.delete("/relationships/{relationship_id}", status_code=204)
async def delete_relationship(
    relationship_id: str,
    ctx: RelationsContext = Depends(get_context),
    _actor: Actor = Depends(require_manager),
) -> Response:
    await remove_relationship(ctx, relationship_id)
    return Response(status_code=204)
