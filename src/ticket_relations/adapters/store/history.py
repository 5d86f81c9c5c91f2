from __future__ import annotations

from ticket_relations.adapters.store.base import (
    MERGE_HISTORY,
    SPLIT_HISTORY,
    DocumentStore,
    WriteBatch,
)
from ticket_relations.domain.models import MergeTicketHistory, SplitTicketHistory


class HistoryStore:
    """Append-only split/merge audit records. Records are never updated or deleted."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def stage_split(self, batch: WriteBatch, record: SplitTicketHistory) -> str:
        record_id = record.id or self._store.new_id(SPLIT_HISTORY)
        batch.create(
            SPLIT_HISTORY,
            record_id,
            record.model_copy(update={"id": record_id}).to_document(),
        )
        return record_id

    def stage_merge(self, batch: WriteBatch, record: MergeTicketHistory) -> str:
        record_id = record.id or self._store.new_id(MERGE_HISTORY)
        batch.create(
            MERGE_HISTORY,
            record_id,
            record.model_copy(update={"id": record_id}).to_document(),
        )
        return record_id

    async def splits_for(self, original_ticket_id: str) -> list[SplitTicketHistory]:
        snapshots = await self._store.query(SPLIT_HISTORY, "originalTicketId", original_ticket_id)
        records = [
            SplitTicketHistory.model_validate({**s.data, "id": s.id}) for s in snapshots
        ]
        return sorted(records, key=lambda record: record.split_at)

    async def merges_for(self, primary_ticket_id: str) -> list[MergeTicketHistory]:
        snapshots = await self._store.query(MERGE_HISTORY, "primaryTicketId", primary_ticket_id)
        records = [
            MergeTicketHistory.model_validate({**s.data, "id": s.id}) for s in snapshots
        ]
        return sorted(records, key=lambda record: record.merged_at)
