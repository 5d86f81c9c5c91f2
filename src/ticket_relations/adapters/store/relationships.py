from __future__ import annotations

from ticket_relations.adapters.store.base import RELATIONSHIPS, DocumentStore, WriteBatch
from ticket_relations.domain.models import TicketRelationship
from ticket_relations.domain.relationship_types import inverse_of


def _from_snapshot(doc_id: str, data: dict) -> TicketRelationship:
    return TicketRelationship.model_validate({**data, "id": doc_id})


class RelationshipStore:
    """
    Directed, typed edges between tickets, one row per direction.

    Types with an inverse (parent_of/child_of, blocks/blocked_by) are always written
    and removed as a pair. related_to is self-inverse and is kept as a single row.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def stage_create(self, batch: WriteBatch, relationship: TicketRelationship) -> str:
        relationship_id = relationship.id or self._store.new_id(RELATIONSHIPS)
        row = relationship.model_copy(update={"id": relationship_id})
        batch.create(RELATIONSHIPS, relationship_id, row.to_document())

        inverse_type = inverse_of(relationship.relationship_type)
        if inverse_type is not None:
            inverse_id = self._store.new_id(RELATIONSHIPS)
            inverse = relationship.model_copy(
                update={
                    "id": inverse_id,
                    "source_ticket_id": relationship.target_ticket_id,
                    "target_ticket_id": relationship.source_ticket_id,
                    "relationship_type": inverse_type,
                }
            )
            batch.create(RELATIONSHIPS, inverse_id, inverse.to_document())
        return relationship_id

    async def create(self, relationship: TicketRelationship) -> str:
        batch = WriteBatch()
        relationship_id = self.stage_create(batch, relationship)
        await self._store.commit(batch)
        return relationship_id

    async def get(self, relationship_id: str) -> TicketRelationship | None:
        snapshot = await self._store.get(RELATIONSHIPS, relationship_id)
        if snapshot is None:
            return None
        return _from_snapshot(snapshot.id, snapshot.data)

    async def list_by_source(self, ticket_id: str) -> list[TicketRelationship]:
        snapshots = await self._store.query(RELATIONSHIPS, "sourceTicketId", ticket_id)
        return [_from_snapshot(s.id, s.data) for s in snapshots]

    async def list_by_target(self, ticket_id: str) -> list[TicketRelationship]:
        snapshots = await self._store.query(RELATIONSHIPS, "targetTicketId", ticket_id)
        return [_from_snapshot(s.id, s.data) for s in snapshots]

    async def find_inverse(self, relationship: TicketRelationship) -> TicketRelationship | None:
        inverse_type = inverse_of(relationship.relationship_type)
        if inverse_type is None:
            return None
        for candidate in await self.list_by_source(relationship.target_ticket_id):
            if (
                candidate.relationship_type == inverse_type
                and candidate.target_ticket_id == relationship.source_ticket_id
            ):
                return candidate
        return None

    async def remove(self, relationship_id: str) -> None:
        """Delete an edge and its mirrored row. Callers run validate_removal first."""
        relationship = await self.get(relationship_id)
        if relationship is None:
            return
        batch = WriteBatch()
        batch.delete(RELATIONSHIPS, relationship_id)
        inverse = await self.find_inverse(relationship)
        if inverse is not None:
            batch.delete(RELATIONSHIPS, inverse.id)
        await self._store.commit(batch)
