from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ticket_relations.app.dependencies import get_actor, get_context, require_manager
from ticket_relations.app.operations.context import RelationsContext
from ticket_relations.app.operations.history import get_merge_history, get_split_history
from ticket_relations.app.operations.merge_tickets import merge_tickets
from ticket_relations.app.operations.relationships import get_related_tickets
from ticket_relations.app.operations.split_ticket import split_ticket
from ticket_relations.domain.models import Actor, NewTicketSpec

router = APIRouter(prefix="/tickets")


class _RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class SplitRequest(_RequestModel):
    reason: str
    new_tickets: list[NewTicketSpec] = Field(default_factory=list)


class MergeRequest(_RequestModel):
    reason: str
    ticket_ids: list[str] = Field(default_factory=list)


def _bounded_limit(ctx: RelationsContext, limit: int | None) -> int:
    maximum = ctx.settings.api.history_limit
    if limit is None:
        return maximum
    return max(1, min(int(limit), maximum))


@router.post("/{ticket_id}/split", status_code=201)
async def post_split(
    ticket_id: str,
    body: SplitRequest,
    ctx: RelationsContext = Depends(get_context),
    actor: Actor = Depends(require_manager),
) -> dict[str, Any]:
    result = await split_ticket(ctx, ticket_id, body.reason, body.new_tickets, actor)
    return {"newTicketIds": result.new_ticket_ids, "splitHistoryId": result.split_history_id}


@router.post("/{ticket_id}/merge", status_code=201)
async def post_merge(
    ticket_id: str,
    body: MergeRequest,
    ctx: RelationsContext = Depends(get_context),
    actor: Actor = Depends(require_manager),
) -> dict[str, Any]:
    merge_history_id = await merge_tickets(ctx, ticket_id, body.ticket_ids, body.reason, actor)
    return {"mergeHistoryId": merge_history_id}


@router.get("/{ticket_id}/related")
async def get_related(
    ticket_id: str,
    ctx: RelationsContext = Depends(get_context),
    _actor: Actor = Depends(get_actor),
) -> dict[str, Any]:
    related = await get_related_tickets(ctx, ticket_id)
    return {
        "parent": related.parent.to_document() if related.parent is not None else None,
        "children": [child.to_document() for child in related.children],
        "related": [
            {
                "relationship": item.relationship.to_document(),
                "ticket": item.ticket.to_document(),
            }
            for item in related.related
        ],
    }


@router.get("/{ticket_id}/split-history")
async def split_history(
    ticket_id: str,
    limit: int | None = None,
    ctx: RelationsContext = Depends(get_context),
    _actor: Actor = Depends(get_actor),
) -> dict[str, Any]:
    records = await get_split_history(ctx, ticket_id)
    items = [record.to_document() for record in records[-_bounded_limit(ctx, limit):]]
    return {"status": "ok", "count": len(items), "items": items}


@router.get("/{ticket_id}/merge-history")
async def merge_history(
    ticket_id: str,
    limit: int | None = None,
    ctx: RelationsContext = Depends(get_context),
    _actor: Actor = Depends(get_actor),
) -> dict[str, Any]:
    records = await get_merge_history(ctx, ticket_id)
    items = [record.to_document() for record in records[-_bounded_limit(ctx, limit):]]
    return {"status": "ok", "count": len(items), "items": items}
