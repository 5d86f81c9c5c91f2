from __future__ import annotations

from collections.abc import Sequence
from time import perf_counter
from typing import Any, cast

import structlog
from pydantic import BaseModel

from ticket_relations.adapters.store.base import WriteBatch
from ticket_relations.app.operations.context import RelationsContext
from ticket_relations.app.operations.retry_policy import classify, run_with_conflict_retries
from ticket_relations.domain.audit_notes import split_note
from ticket_relations.domain.models import (
    Actor,
    FieldsDistribution,
    NewTicketSpec,
    RelationshipOrigin,
    RelationshipType,
    SplitTicketHistory,
    Ticket,
    TicketRelationship,
)
from ticket_relations.domain.relationship_types import SPLIT_EDGE_DESCRIPTION
from ticket_relations.domain.validator import validate_split
from ticket_relations.observability.metrics import (
    audit_reply_failed_total,
    failed_total,
    operation_seconds,
    split_total,
)

log = structlog.get_logger(__name__)

_OPERATION = "split_ticket"

# Document keys a split child copies from the original. Replies, status history,
# child links and relationship arrays are deliberately absent.
INHERITED_FIELDS: tuple[str, ...] = (
    "tenantId",
    "status",
    "submitterId",
    "attachments",
    "participants",
    "location",
    "isOnVpn",
    "computer",
    "name",
    "email",
    "phone",
    "contactMethod",
    "smsUpdates",
    "smsPhoneNumber",
    "smsConsent",
    "smsConsentDate",
    "errorMessage",
    "problemStartDate",
    "isPersonHavingProblem",
    "userName",
    "userPhone",
    "userEmail",
    "userPreferredContact",
    "agreeToTroubleshoot",
    "impact",
    "stepsToReproduce",
    "sla",
    "customFields",
)


class SplitResult(BaseModel):
    new_ticket_ids: list[str]
    split_history_id: str


def _inherited_document(original: Ticket) -> dict[str, Any]:
    document = original.to_document()
    return {key: document[key] for key in INHERITED_FIELDS if key in document}


def _build_child(
    original: Ticket,
    ticket_id: str,
    spec: NewTicketSpec,
    now: int,
) -> Ticket:
    data = _inherited_document(original)
    data.update(
        {
            "id": ticket_id,
            "title": spec.title,
            "description": spec.description,
            "assigneeId": spec.assignee_id or original.assignee_id,
            "priority": spec.priority,
            "parentTicketId": original.id,
            "createdAt": now,
            "updatedAt": now,
        }
    )
    return Ticket.model_validate(data)


async def _attempt_split(
    ctx: RelationsContext,
    original_ticket_id: str,
    reason: str,
    specs: Sequence[NewTicketSpec],
    actor: Actor,
) -> SplitResult:
    original = await ctx.with_timeout(ctx.tickets.get_ticket(original_ticket_id))
    validate_split(original_ticket_id, original, reason, specs)
    original = cast(Ticket, original)

    now = ctx.clock()
    batch = WriteBatch()
    new_ticket_ids: list[str] = []
    distribution: dict[str, FieldsDistribution] = {}

    for spec in specs:
        ticket_id = ctx.tickets.new_id()
        ctx.tickets.stage_create(batch, _build_child(original, ticket_id, spec, now))
        ctx.relationships.stage_create(
            batch,
            TicketRelationship(
                tenant_id=original.tenant_id,
                source_ticket_id=original.id,
                target_ticket_id=ticket_id,
                relationship_type=RelationshipType.PARENT_OF,
                created_by=actor.user_id,
                created_by_name=actor.user_name,
                created_at=now,
                description=SPLIT_EDGE_DESCRIPTION,
                origin=RelationshipOrigin.SYSTEM,
            ),
        )
        new_ticket_ids.append(ticket_id)
        distribution[ticket_id] = FieldsDistribution(
            title=spec.title,
            description=spec.description,
            assignee_id=spec.assignee_id,
            priority=spec.priority,
        )

    ctx.tickets.stage_update(
        batch,
        original,
        {"childTicketIds": new_ticket_ids},
    )
    split_history_id = ctx.history.stage_split(
        batch,
        SplitTicketHistory(
            tenant_id=original.tenant_id,
            original_ticket_id=original.id,
            new_ticket_ids=new_ticket_ids,
            reason=reason,
            split_by=actor.user_id,
            split_by_name=actor.user_name,
            split_at=now,
            fields_distribution=distribution,
        ),
    )

    await ctx.with_timeout(ctx.store.commit(batch))
    return SplitResult(new_ticket_ids=new_ticket_ids, split_history_id=split_history_id)


async def split_ticket(
    ctx: RelationsContext,
    original_ticket_id: str,
    reason: str,
    new_ticket_specs: Sequence[NewTicketSpec],
    actor: Actor,
) -> SplitResult:
    """
    Split one ticket into 2..10 child tickets in a single atomic commit.

    Children, parent_of/child_of edges, the original's child links and the
    SplitTicketHistory record are all written or none are. A private audit reply is
    appended to the original afterwards; its failure is logged, not raised.
    """
    started = perf_counter()
    specs = list(new_ticket_specs)

    with structlog.contextvars.bound_contextvars(
        operation=_OPERATION,
        ticket_id=original_ticket_id,
        actor_id=actor.user_id,
    ):
        try:
            async with ctx.locks.hold([original_ticket_id]):
                result = await run_with_conflict_retries(
                    _OPERATION,
                    lambda: _attempt_split(ctx, original_ticket_id, reason, specs, actor),
                    max_retries=ctx.settings.relations.max_conflict_retries,
                )
                split_total.inc()
                log.info(
                    "split_ticket.done",
                    new_ticket_ids=result.new_ticket_ids,
                    split_history_id=result.split_history_id,
                )
                if ctx.settings.relations.audit_replies:
                    await _append_audit_reply(ctx, original_ticket_id, result, specs, reason, actor)
        except Exception as exc:
            err = classify(exc)
            failed_total.labels(operation=_OPERATION, code=err.code).inc()
            log.info("split_ticket.failed", **err.context())
            if err is exc:
                raise
            raise err from exc
        finally:
            operation_seconds.labels(operation=_OPERATION).observe(perf_counter() - started)

        return result


async def _append_audit_reply(
    ctx: RelationsContext,
    original_ticket_id: str,
    result: SplitResult,
    specs: Sequence[NewTicketSpec],
    reason: str,
    actor: Actor,
) -> None:
    message = split_note(new_ticket_ids=result.new_ticket_ids, specs=specs, reason=reason)
    try:
        await ctx.with_timeout(
            ctx.tickets.append_reply(
                original_ticket_id,
                message=message,
                is_private=True,
                actor=actor,
            )
        )
    except Exception as exc:
        audit_reply_failed_total.labels(operation=_OPERATION).inc()
        log.warning(
            "split_ticket.audit_reply_failed",
            error=f"{exc.__class__.__name__}: {exc}",
            split_history_id=result.split_history_id,
        )
