from __future__ import annotations

from time import perf_counter
from typing import cast

import structlog
from pydantic import BaseModel, Field

from ticket_relations.app.operations.context import RelationsContext
from ticket_relations.app.operations.retry_policy import classify
from ticket_relations.domain.error_messages import ErrorMessages, format_not_found
from ticket_relations.domain.errors import NotFound
from ticket_relations.domain.models import (
    Actor,
    RelationshipOrigin,
    RelationshipType,
    Ticket,
    TicketRelationship,
)
from ticket_relations.domain.relationship_types import PARENT_CHILD_TYPES
from ticket_relations.domain.validator import validate_create, validate_removal
from ticket_relations.observability.metrics import (
    failed_total,
    operation_seconds,
    relationship_created_total,
    relationship_removed_total,
)

log = structlog.get_logger(__name__)


class RelatedTicket(BaseModel):
    relationship: TicketRelationship
    ticket: Ticket


class RelatedTickets(BaseModel):
    parent: Ticket | None = None
    children: list[Ticket] = Field(default_factory=list)
    related: list[RelatedTicket] = Field(default_factory=list)


async def parent_ids_of(ctx: RelationsContext, ticket: Ticket) -> list[str]:
    """Direct parents: the `parent_ticket_id` link plus every stored child_of edge."""
    parents = [ticket.parent_ticket_id] if ticket.parent_ticket_id else []
    for edge in await ctx.with_timeout(ctx.relationships.list_by_source(ticket.id)):
        if (
            edge.relationship_type == RelationshipType.CHILD_OF
            and edge.target_ticket_id not in parents
        ):
            parents.append(edge.target_ticket_id)
    return parents


async def ancestors_of(ctx: RelationsContext, ticket: Ticket) -> list[str]:
    """
    Every ancestor of `ticket`, nearest generation first.

    Walks both `parent_ticket_id` and child_of edges, so manually linked parents count
    as much as split parents. Bounded by relations.max_ancestry_depth generations.
    """
    max_depth = ctx.settings.relations.max_ancestry_depth
    chain: list[str] = []
    seen = {ticket.id}
    generation = [ticket]
    depth = 0
    while generation and depth < max_depth:
        next_generation: list[Ticket] = []
        for node in generation:
            for parent_id in await parent_ids_of(ctx, node):
                if parent_id == ticket.id:
                    # Stored data already contains a loop; the chain so far is enough to reject.
                    log.warning(
                        "relationships.ancestry_loop", ticket_id=node.id, parent_id=parent_id
                    )
                if parent_id in seen:
                    continue
                seen.add(parent_id)
                chain.append(parent_id)
                parent = await ctx.with_timeout(ctx.tickets.get_ticket(parent_id))
                if parent is not None:
                    next_generation.append(parent)
        generation = next_generation
        depth += 1
    return chain


async def create_relationship(
    ctx: RelationsContext,
    source_ticket_id: str,
    target_ticket_id: str,
    relationship_type: RelationshipType,
    actor: Actor,
    description: str | None = None,
) -> str:
    """Validate and create a manual edge (plus its inverse row where the type has one)."""
    operation = "create_relationship"
    started = perf_counter()
    with structlog.contextvars.bound_contextvars(
        source_ticket_id=source_ticket_id,
        target_ticket_id=target_ticket_id,
    ):
        try:
            source = await ctx.with_timeout(ctx.tickets.get_ticket(source_ticket_id))
            target = await ctx.with_timeout(ctx.tickets.get_ticket(target_ticket_id))

            source_ancestors: list[str] = []
            target_ancestors: list[str] = []
            if relationship_type in PARENT_CHILD_TYPES and source and target:
                source_ancestors = await ancestors_of(ctx, source)
                target_ancestors = await ancestors_of(ctx, target)

            validate_create(
                source_ticket_id,
                target_ticket_id,
                relationship_type,
                source,
                target,
                source_ancestors=source_ancestors,
                target_ancestors=target_ancestors,
            )
            tenant_id = cast(Ticket, source).tenant_id

            relationship = TicketRelationship(
                tenant_id=tenant_id,
                source_ticket_id=source_ticket_id,
                target_ticket_id=target_ticket_id,
                relationship_type=relationship_type,
                created_by=actor.user_id,
                created_by_name=actor.user_name,
                created_at=ctx.clock(),
                description=description,
                origin=RelationshipOrigin.MANUAL,
            )
            relationship_id = await ctx.with_timeout(ctx.relationships.create(relationship))
        except Exception as exc:
            err = classify(exc)
            failed_total.labels(operation=operation, code=err.code).inc()
            log.info(
                "relationships.create_rejected",
                relationship_type=str(relationship_type),
                **err.context(),
            )
            if err is exc:
                raise
            raise err from exc
        finally:
            operation_seconds.labels(operation=operation).observe(perf_counter() - started)

        relationship_created_total.labels(relationship_type=str(relationship_type)).inc()
        log.info(
            "relationships.created",
            relationship_id=relationship_id,
            relationship_type=str(relationship_type),
            tenant_id=tenant_id,
            actor_id=actor.user_id,
        )
        return relationship_id


async def list_relationships(ctx: RelationsContext, ticket_id: str) -> list[TicketRelationship]:
    return await ctx.with_timeout(ctx.relationships.list_by_source(ticket_id))


async def remove_relationship(ctx: RelationsContext, relationship_id: str) -> None:
    """Remove a manual edge and its inverse row. System-generated split/merge edges are refused."""
    operation = "remove_relationship"
    started = perf_counter()
    with structlog.contextvars.bound_contextvars(relationship_id=relationship_id):
        try:
            relationship = await ctx.with_timeout(ctx.relationships.get(relationship_id))
            if relationship is None:
                raise NotFound(
                    ErrorMessages.RELATIONSHIP_NOT_FOUND.format(relationship_id=relationship_id),
                    rule="relationship_exists",
                )
            validate_removal(relationship)
            await ctx.with_timeout(ctx.relationships.remove(relationship_id))
        except Exception as exc:
            err = classify(exc)
            failed_total.labels(operation=operation, code=err.code).inc()
            log.info("relationships.remove_rejected", **err.context())
            if err is exc:
                raise
            raise err from exc
        finally:
            operation_seconds.labels(operation=operation).observe(perf_counter() - started)

        relationship_removed_total.inc()
        log.info(
            "relationships.removed",
            relationship_type=str(relationship.relationship_type),
            source_ticket_id=relationship.source_ticket_id,
            target_ticket_id=relationship.target_ticket_id,
        )


async def get_related_tickets(ctx: RelationsContext, ticket_id: str) -> RelatedTickets:
    """Parent, children (missing ones skipped) and every other outgoing edge with its target."""
    ticket = await ctx.with_timeout(ctx.tickets.get_ticket(ticket_id))
    if ticket is None:
        raise NotFound(format_not_found(ticket_id), ticket_id=ticket_id, rule="ticket_exists")

    result = RelatedTickets()
    if ticket.parent_ticket_id:
        result.parent = await ctx.with_timeout(ctx.tickets.get_ticket(ticket.parent_ticket_id))

    for child_id in ticket.child_ticket_ids:
        child = await ctx.with_timeout(ctx.tickets.get_ticket(child_id))
        if child is not None:
            result.children.append(child)

    for relationship in await list_relationships(ctx, ticket_id):
        if relationship.relationship_type in PARENT_CHILD_TYPES:
            continue
        target = await ctx.with_timeout(ctx.tickets.get_ticket(relationship.target_ticket_id))
        if target is not None:
            result.related.append(RelatedTicket(relationship=relationship, ticket=target))
    return result
