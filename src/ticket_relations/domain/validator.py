"""Structural and status-based rules checked before any relationship, split or merge write.

Every function here is pure: it inspects tickets the caller already fetched and raises a
typed error from ``ticket_relations.domain.errors``. Nothing is written.
"""
from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence

from ticket_relations.domain.error_messages import ErrorMessages, format_not_found
from ticket_relations.domain.errors import (
    CircularRelationship,
    InvalidMergeSpec,
    InvalidSourceState,
    InvalidSplitSpec,
    InvalidTargetState,
    NotFound,
    SelfReference,
    SystemGenerated,
    TenantMismatch,
)
from ticket_relations.domain.models import (
    NewTicketSpec,
    RelationshipType,
    Ticket,
    TicketRelationship,
    TicketStatus,
)
from ticket_relations.domain.relationship_types import PROTECTED_TYPES, is_system_generated

MIN_SPLIT_TICKETS = 2
MAX_SPLIT_TICKETS = 10
MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 5000
MAX_MERGE_TICKETS = 20


def ensure_same_tenant(ticket: Ticket, other: Ticket) -> None:
    if ticket.tenant_id != other.tenant_id:
        raise TenantMismatch(
            ErrorMessages.TENANT_MISMATCH.format(ticket_id=ticket.id, other_ticket_id=other.id),
            ticket_id=other.id,
            field="tenant_id",
            rule="same_tenant",
        )


def validate_create(
    source_ticket_id: str,
    target_ticket_id: str,
    relationship_type: RelationshipType,
    source_ticket: Ticket | None,
    target_ticket: Ticket | None,
    *,
    source_ancestors: Collection[str] = (),
    target_ancestors: Collection[str] = (),
) -> None:
    """
    Check that a new edge source -> target of the given type may be created.

    `source_ancestors` / `target_ancestors` are the parent chains of each ticket
    (nearest first). With empty chains only the immediate two-node cycle is caught.
    """
    if source_ticket is None:
        raise NotFound(
            format_not_found(source_ticket_id, role="source"),
            ticket_id=source_ticket_id,
            rule="source_exists",
        )
    if target_ticket is None:
        raise NotFound(
            format_not_found(target_ticket_id, role="target"),
            ticket_id=target_ticket_id,
            rule="target_exists",
        )

    if source_ticket_id == target_ticket_id:
        raise SelfReference(
            ErrorMessages.SELF_REFERENCE,
            ticket_id=source_ticket_id,
            rule="no_self_loop",
        )

    ensure_same_tenant(source_ticket, target_ticket)

    if relationship_type == RelationshipType.PARENT_OF:
        # source becomes target's parent: target must not already sit above source.
        if source_ticket.parent_ticket_id == target_ticket_id or target_ticket_id in source_ancestors:
            raise CircularRelationship(
                ErrorMessages.CIRCULAR_RELATIONSHIP,
                ticket_id=target_ticket_id,
                rule="parent_child_forest",
            )
    elif relationship_type == RelationshipType.CHILD_OF:
        if target_ticket.parent_ticket_id == source_ticket_id or source_ticket_id in target_ancestors:
            raise CircularRelationship(
                ErrorMessages.CIRCULAR_RELATIONSHIP,
                ticket_id=source_ticket_id,
                rule="parent_child_forest",
            )

    if relationship_type == RelationshipType.MERGED_INTO and target_ticket.is_closed:
        raise InvalidTargetState(
            ErrorMessages.MERGE_INTO_CLOSED,
            ticket_id=target_ticket_id,
            field="status",
            rule="merge_target_open",
        )

    if relationship_type == RelationshipType.DUPLICATE_OF and not source_ticket.is_closed:
        raise InvalidSourceState(
            ErrorMessages.DUPLICATE_NOT_CLOSED,
            ticket_id=source_ticket_id,
            field="status",
            rule="duplicate_source_closed",
        )


def validate_removal(relationship: TicketRelationship) -> None:
    if relationship.relationship_type in PROTECTED_TYPES and is_system_generated(relationship):
        raise SystemGenerated(
            ErrorMessages.SYSTEM_GENERATED,
            ticket_id=relationship.source_ticket_id,
            field="relationship_type",
            rule="audit_edge_immutable",
        )


def validate_split(
    original_ticket_id: str,
    original: Ticket | None,
    reason: str,
    specs: Sequence[NewTicketSpec],
) -> None:
    if original is None:
        raise NotFound(
            format_not_found(original_ticket_id),
            ticket_id=original_ticket_id,
            rule="original_exists",
        )
    if original.status == TicketStatus.CLOSED:
        raise InvalidSourceState(
            ErrorMessages.SPLIT_CLOSED,
            ticket_id=original_ticket_id,
            field="status",
            rule="split_source_open",
        )
    if original.parent_ticket_id:
        raise InvalidSourceState(
            ErrorMessages.SPLIT_CHILD,
            ticket_id=original_ticket_id,
            field="parent_ticket_id",
            rule="split_source_not_child",
        )

    if not (reason or "").strip():
        raise InvalidSplitSpec(
            ErrorMessages.SPLIT_REASON_REQUIRED,
            ticket_id=original_ticket_id,
            field="reason",
            rule="reason_required",
        )

    if len(specs) < MIN_SPLIT_TICKETS:
        raise InvalidSplitSpec(
            ErrorMessages.SPLIT_TOO_FEW.format(minimum=MIN_SPLIT_TICKETS),
            ticket_id=original_ticket_id,
            field="new_tickets",
            rule="split_count_min",
        )
    if len(specs) > MAX_SPLIT_TICKETS:
        raise InvalidSplitSpec(
            ErrorMessages.SPLIT_TOO_MANY.format(maximum=MAX_SPLIT_TICKETS),
            ticket_id=original_ticket_id,
            field="new_tickets",
            rule="split_count_max",
        )

    for index, spec in enumerate(specs):
        number = index + 1
        if not spec.title.strip():
            raise InvalidSplitSpec(
                ErrorMessages.SPLIT_TITLE_REQUIRED.format(index=number),
                ticket_id=original_ticket_id,
                field=f"new_tickets[{index}].title",
                rule="title_required",
            )
        if not spec.description.strip():
            raise InvalidSplitSpec(
                ErrorMessages.SPLIT_DESCRIPTION_REQUIRED.format(index=number),
                ticket_id=original_ticket_id,
                field=f"new_tickets[{index}].description",
                rule="description_required",
            )
        if len(spec.title) > MAX_TITLE_LENGTH:
            raise InvalidSplitSpec(
                ErrorMessages.SPLIT_TITLE_TOO_LONG.format(index=number, maximum=MAX_TITLE_LENGTH),
                ticket_id=original_ticket_id,
                field=f"new_tickets[{index}].title",
                rule="title_max_length",
            )
        if len(spec.description) > MAX_DESCRIPTION_LENGTH:
            raise InvalidSplitSpec(
                ErrorMessages.SPLIT_DESCRIPTION_TOO_LONG.format(
                    index=number, maximum=MAX_DESCRIPTION_LENGTH
                ),
                ticket_id=original_ticket_id,
                field=f"new_tickets[{index}].description",
                rule="description_max_length",
            )


def validate_merge_request(
    primary_ticket_id: str,
    primary: Ticket | None,
    ticket_ids: Sequence[str],
    reason: str,
) -> None:
    """Checks that need only the primary ticket and the raw request."""
    if primary is None:
        raise NotFound(
            format_not_found(primary_ticket_id),
            ticket_id=primary_ticket_id,
            rule="primary_exists",
        )
    if primary.is_closed:
        raise InvalidTargetState(
            ErrorMessages.MERGE_INTO_CLOSED,
            ticket_id=primary_ticket_id,
            field="status",
            rule="merge_target_open",
        )

    if not (reason or "").strip():
        raise InvalidMergeSpec(
            ErrorMessages.MERGE_REASON_REQUIRED,
            ticket_id=primary_ticket_id,
            field="reason",
            rule="reason_required",
        )
    if not ticket_ids:
        raise InvalidMergeSpec(
            ErrorMessages.MERGE_EMPTY,
            ticket_id=primary_ticket_id,
            field="ticket_ids",
            rule="merge_count_min",
        )
    if len(ticket_ids) > MAX_MERGE_TICKETS:
        raise InvalidMergeSpec(
            ErrorMessages.MERGE_TOO_MANY.format(maximum=MAX_MERGE_TICKETS),
            ticket_id=primary_ticket_id,
            field="ticket_ids",
            rule="merge_count_max",
        )
    if primary_ticket_id in ticket_ids:
        raise InvalidMergeSpec(
            ErrorMessages.MERGE_INTO_ITSELF,
            ticket_id=primary_ticket_id,
            field="ticket_ids",
            rule="merge_excludes_primary",
        )
    if len(set(ticket_ids)) != len(ticket_ids):
        raise InvalidMergeSpec(
            ErrorMessages.MERGE_DUPLICATES,
            ticket_id=primary_ticket_id,
            field="ticket_ids",
            rule="merge_unique",
        )


def validate_merge_members(
    primary: Ticket,
    ticket_ids: Sequence[str],
    members: Mapping[str, Ticket | None],
) -> None:
    """Checks every ticket that would be absorbed into `primary`."""
    for ticket_id in ticket_ids:
        ticket = members.get(ticket_id)
        if ticket is None:
            raise NotFound(
                format_not_found(ticket_id),
                ticket_id=ticket_id,
                field="ticket_ids",
                rule="member_exists",
            )
        if ticket.is_closed:
            raise InvalidSourceState(
                ErrorMessages.MERGE_CLOSED_MEMBER.format(ticket_id=ticket_id),
                ticket_id=ticket_id,
                field="status",
                rule="merge_member_open",
            )
        if ticket.has_children:
            raise InvalidSourceState(
                ErrorMessages.MERGE_MEMBER_HAS_CHILDREN.format(ticket_id=ticket_id),
                ticket_id=ticket_id,
                field="child_ticket_ids",
                rule="merge_member_childless",
            )
        ensure_same_tenant(primary, ticket)
