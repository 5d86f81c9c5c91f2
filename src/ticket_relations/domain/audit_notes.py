from __future__ import annotations

from collections.abc import Sequence

from ticket_relations.domain.models import NewTicketSpec, TicketReply

MERGE_PROVENANCE_PREFIX = "[Merged from ticket {ticket_id}]\n\n"


def split_note(
    *,
    new_ticket_ids: Sequence[str],
    specs: Sequence[NewTicketSpec],
    reason: str,
) -> str:
    lines = [f"- {spec.title} (ID: {ticket_id})" for spec, ticket_id in zip(specs, new_ticket_ids)]
    return (
        f"Ticket split into {len(new_ticket_ids)} child tickets:\n\n"
        + "\n".join(lines)
        + f"\n\nReason: {reason}"
    )


def merge_note(*, merged_ticket_ids: Sequence[str], reason: str) -> str:
    lines = [f"- Ticket {ticket_id}" for ticket_id in merged_ticket_ids]
    return (
        f"Merged {len(merged_ticket_ids)} tickets into this ticket:\n\n"
        + "\n".join(lines)
        + f"\n\nReason: {reason}"
    )


def with_merge_provenance(reply: TicketReply, source_ticket_id: str) -> TicketReply:
    prefix = MERGE_PROVENANCE_PREFIX.format(ticket_id=source_ticket_id)
    return reply.model_copy(update={"message": prefix + reply.message})
