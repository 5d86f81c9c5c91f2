"""Error message constants for consistent error handling.

This module centralizes error messages so that:
- API and UI layers can rely on stable wording and codes
- Validation rules are phrased once and reused by every operation
"""
from __future__ import annotations


class ErrorMessages:
    """Centralized error message constants."""

    # Lookups
    TICKET_NOT_FOUND = "Ticket {ticket_id} not found"
    SOURCE_TICKET_NOT_FOUND = "Source ticket {ticket_id} not found"
    TARGET_TICKET_NOT_FOUND = "Target ticket {ticket_id} not found"
    RELATIONSHIP_NOT_FOUND = "Relationship {relationship_id} not found"

    # Relationship structure
    SELF_REFERENCE = "Cannot create a relationship between a ticket and itself"
    CIRCULAR_RELATIONSHIP = "Circular parent-child relationship detected"
    MERGE_INTO_CLOSED = "Cannot merge into a closed ticket"
    DUPLICATE_NOT_CLOSED = "Only closed tickets can be marked as duplicates"
    SYSTEM_GENERATED = "Cannot remove system-generated relationships from split/merge operations"
    TENANT_MISMATCH = "Tickets {ticket_id} and {other_ticket_id} belong to different tenants"

    # Split
    SPLIT_CLOSED = "Cannot split a closed ticket"
    SPLIT_CHILD = "Cannot split a ticket that is already a child ticket"
    SPLIT_REASON_REQUIRED = "Split reason is required"
    SPLIT_TOO_FEW = "At least {minimum} new tickets are required for a split"
    SPLIT_TOO_MANY = "Cannot split into more than {maximum} tickets"
    SPLIT_TITLE_REQUIRED = "New ticket {index} must have a title"
    SPLIT_DESCRIPTION_REQUIRED = "New ticket {index} must have a description"
    SPLIT_TITLE_TOO_LONG = "New ticket {index} title is too long (max {maximum} characters)"
    SPLIT_DESCRIPTION_TOO_LONG = (
        "New ticket {index} description is too long (max {maximum} characters)"
    )

    # Merge
    MERGE_REASON_REQUIRED = "Merge reason is required"
    MERGE_EMPTY = "At least one ticket must be selected for merging"
    MERGE_TOO_MANY = "Cannot merge more than {maximum} tickets at once"
    MERGE_INTO_ITSELF = "Cannot merge a ticket into itself"
    MERGE_DUPLICATES = "Duplicate tickets detected in merge list"
    MERGE_CLOSED_MEMBER = "Cannot merge closed ticket {ticket_id}"
    MERGE_MEMBER_HAS_CHILDREN = "Cannot merge ticket {ticket_id} because it has child tickets"

    # Storage
    STORAGE_FAILURE = "Storage operation failed"
    STORAGE_TIMEOUT = "Storage operation timed out after {seconds}s"
    VERSION_CONFLICT = "Document {collection}/{doc_id} changed concurrently"
    TICKET_BUSY = "Ticket {ticket_id} is being modified by another operation"
    CONFLICT_RETRIES_EXHAUSTED = "Gave up after {attempts} concurrent modification conflicts"


class ErrorCodes:
    """Error code constants for programmatic handling."""

    NOT_FOUND = "E_NOT_FOUND"
    SELF_REFERENCE = "E_SELF_REFERENCE"
    CIRCULAR = "E_CIRCULAR"
    INVALID_SOURCE_STATE = "E_INVALID_SOURCE_STATE"
    INVALID_TARGET_STATE = "E_INVALID_TARGET_STATE"
    INVALID_SPLIT = "E_INVALID_SPLIT"
    INVALID_MERGE = "E_INVALID_MERGE"
    SYSTEM_GENERATED = "E_SYSTEM_GENERATED"
    TENANT_MISMATCH = "E_TENANT_MISMATCH"
    STORAGE = "E_STORAGE"
    CONFLICT = "E_CONFLICT"
    INTERNAL = "E_INTERNAL"


def format_not_found(ticket_id: str, *, role: str | None = None) -> str:
    """Format a ticket lookup failure.

    Args:
        ticket_id: The ticket that could not be fetched
        role: Optional "source"/"target" qualifier used by relationship checks

    Returns:
        Formatted error message
    """
    if role == "source":
        return ErrorMessages.SOURCE_TICKET_NOT_FOUND.format(ticket_id=ticket_id)
    if role == "target":
        return ErrorMessages.TARGET_TICKET_NOT_FOUND.format(ticket_id=ticket_id)
    return ErrorMessages.TICKET_NOT_FOUND.format(ticket_id=ticket_id)
