from __future__ import annotations

from collections.abc import Sequence
from time import perf_counter
from typing import cast

import structlog

from ticket_relations.adapters.store.base import WriteBatch
from ticket_relations.app.operations.context import RelationsContext
from ticket_relations.app.operations.retry_policy import classify, run_with_conflict_retries
from ticket_relations.domain.audit_notes import merge_note, with_merge_provenance
from ticket_relations.domain.models import (
    Actor,
    MergeTicketHistory,
    PreservedData,
    RelationshipOrigin,
    RelationshipType,
    Ticket,
    TicketAttachment,
    TicketRelationship,
    TicketReply,
    TicketStatus,
)
from ticket_relations.domain.relationship_types import MERGE_EDGE_DESCRIPTION
from ticket_relations.domain.validator import validate_merge_members, validate_merge_request
from ticket_relations.observability.metrics import (
    audit_reply_failed_total,
    failed_total,
    merge_total,
    merged_tickets_total,
    operation_seconds,
)

log = structlog.get_logger(__name__)

_OPERATION = "merge_tickets"


def _combine(
    primary: Ticket,
    ticket_ids: Sequence[str],
    members: dict[str, Ticket],
) -> tuple[list[TicketReply], list[TicketAttachment]]:
    replies = list(primary.replies)
    attachments = list(primary.attachments)
    seen_attachment_ids = {attachment.id for attachment in attachments}

    for ticket_id in ticket_ids:
        member = members[ticket_id]
        replies.extend(with_merge_provenance(reply, ticket_id) for reply in member.replies)
        for attachment in member.attachments:
            if attachment.id in seen_attachment_ids:
                continue
            seen_attachment_ids.add(attachment.id)
            attachments.append(attachment)
    return replies, attachments


async def _attempt_merge(
    ctx: RelationsContext,
    primary_ticket_id: str,
    ticket_ids: Sequence[str],
    reason: str,
    actor: Actor,
) -> str:
    primary = await ctx.with_timeout(ctx.tickets.get_ticket(primary_ticket_id))
    validate_merge_request(primary_ticket_id, primary, ticket_ids, reason)
    primary = cast(Ticket, primary)

    fetched = await ctx.with_timeout(ctx.tickets.get_tickets(list(ticket_ids)))
    validate_merge_members(primary, ticket_ids, fetched)
    members = {ticket_id: ticket for ticket_id, ticket in fetched.items() if ticket is not None}

    now = ctx.clock()
    batch = WriteBatch()
    replies, attachments = _combine(primary, ticket_ids, members)

    for ticket_id in ticket_ids:
        ctx.tickets.stage_update(
            batch,
            members[ticket_id],
            {"status": TicketStatus.CLOSED.value, "resolvedAt": now},
        )
        ctx.relationships.stage_create(
            batch,
            TicketRelationship(
                tenant_id=primary.tenant_id,
                source_ticket_id=ticket_id,
                target_ticket_id=primary.id,
                relationship_type=RelationshipType.MERGED_INTO,
                created_by=actor.user_id,
                created_by_name=actor.user_name,
                created_at=now,
                description=MERGE_EDGE_DESCRIPTION.format(reason=reason),
                origin=RelationshipOrigin.SYSTEM,
            ),
        )

    ctx.tickets.stage_update(
        batch,
        primary,
        {
            "replies": [reply.to_document() for reply in replies],
            "attachments": [attachment.to_document() for attachment in attachments],
        },
    )
    merge_history_id = ctx.history.stage_merge(
        batch,
        MergeTicketHistory(
            tenant_id=primary.tenant_id,
            primary_ticket_id=primary.id,
            merged_ticket_ids=list(ticket_ids),
            reason=reason,
            merged_by=actor.user_id,
            merged_by_name=actor.user_name,
            merged_at=now,
            preserved_data=PreservedData(replies=replies, attachments=attachments),
        ),
    )

    await ctx.with_timeout(ctx.store.commit(batch))
    return merge_history_id


async def merge_tickets(
    ctx: RelationsContext,
    primary_ticket_id: str,
    ticket_ids_to_merge: Sequence[str],
    reason: str,
    actor: Actor,
) -> str:
    """
    Absorb up to 20 tickets into `primary_ticket_id` in a single atomic commit.

    Replies move to the primary with a provenance prefix, attachments are unioned,
    absorbed tickets are closed and linked with merged_into edges, and one
    MergeTicketHistory record is written. Returns the history record ID.
    """
    started = perf_counter()
    ticket_ids = list(ticket_ids_to_merge)

    with structlog.contextvars.bound_contextvars(
        operation=_OPERATION,
        ticket_id=primary_ticket_id,
        actor_id=actor.user_id,
    ):
        try:
            async with ctx.locks.hold([primary_ticket_id, *ticket_ids]):
                merge_history_id = await run_with_conflict_retries(
                    _OPERATION,
                    lambda: _attempt_merge(ctx, primary_ticket_id, ticket_ids, reason, actor),
                    max_retries=ctx.settings.relations.max_conflict_retries,
                )
                merge_total.inc()
                merged_tickets_total.inc(len(ticket_ids))
                log.info(
                    "merge_tickets.done",
                    merged_ticket_ids=ticket_ids,
                    merge_history_id=merge_history_id,
                )
                if ctx.settings.relations.audit_replies:
                    await _append_audit_reply(
                        ctx, primary_ticket_id, ticket_ids, reason, actor, merge_history_id
                    )
        except Exception as exc:
            err = classify(exc)
            failed_total.labels(operation=_OPERATION, code=err.code).inc()
            log.info("merge_tickets.failed", **err.context())
            if err is exc:
                raise
            raise err from exc
        finally:
            operation_seconds.labels(operation=_OPERATION).observe(perf_counter() - started)

        return merge_history_id


async def _append_audit_reply(
    ctx: RelationsContext,
    primary_ticket_id: str,
    ticket_ids: Sequence[str],
    reason: str,
    actor: Actor,
    merge_history_id: str,
) -> None:
    try:
        await ctx.with_timeout(
            ctx.tickets.append_reply(
                primary_ticket_id,
                message=merge_note(merged_ticket_ids=ticket_ids, reason=reason),
                is_private=True,
                actor=actor,
            )
        )
    except Exception as exc:
        audit_reply_failed_total.labels(operation=_OPERATION).inc()
        log.warning(
            "merge_tickets.audit_reply_failed",
            error=f"{exc.__class__.__name__}: {exc}",
            merge_history_id=merge_history_id,
        )
