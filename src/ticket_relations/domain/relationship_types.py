from __future__ import annotations

from ticket_relations.domain.models import (
    RelationshipOrigin,
    RelationshipType,
    TicketRelationship,
)

SPLIT_EDGE_DESCRIPTION = "Created from ticket split"
MERGE_EDGE_DESCRIPTION = "Merged due to: {reason}"

# Substrings that marked a row as user-created before `origin` was stored.
_LEGACY_MANUAL_MARKERS = ("manual", "user")

_INVERSE: dict[RelationshipType, RelationshipType] = {
    RelationshipType.PARENT_OF: RelationshipType.CHILD_OF,
    RelationshipType.CHILD_OF: RelationshipType.PARENT_OF,
    RelationshipType.BLOCKS: RelationshipType.BLOCKED_BY,
    RelationshipType.BLOCKED_BY: RelationshipType.BLOCKS,
}

PARENT_CHILD_TYPES = frozenset({RelationshipType.PARENT_OF, RelationshipType.CHILD_OF})

# Edges that split/merge write as their audit trail.
PROTECTED_TYPES = frozenset(
    {
        RelationshipType.PARENT_OF,
        RelationshipType.CHILD_OF,
        RelationshipType.MERGED_INTO,
        RelationshipType.SPLIT_FROM,
    }
)


def inverse_of(relationship_type: RelationshipType) -> RelationshipType | None:
    """Return the type of the mirrored row, or None when no second row is written.

    related_to is self-inverse and is stored as a single row.
    """
    return _INVERSE.get(relationship_type)


def is_system_generated(relationship: TicketRelationship) -> bool:
    if relationship.origin is not None:
        return relationship.origin == RelationshipOrigin.SYSTEM
    description = relationship.description or ""
    return not any(marker in description for marker in _LEGACY_MANUAL_MARKERS)
