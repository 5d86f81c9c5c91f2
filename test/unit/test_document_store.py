from __future__ import annotations

import asyncio

import pytest

from ticket_relations.adapters.store import InMemoryDocumentStore, WriteBatch
from ticket_relations.domain.errors import VersionConflict


def test_commit_applies_every_write_and_bumps_versions() -> None:
    async def _run() -> None:
        store = InMemoryDocumentStore()
        batch = WriteBatch()
        batch.create("tickets", "A", {"title": "first"})
        batch.create("tickets", "B", {"title": "second"})
        await store.commit(batch)

        snapshot = await store.get("tickets", "A")
        assert snapshot is not None and snapshot.version == 1

        update = WriteBatch()
        update.update("tickets", "A", {"status": "Closed"}, expected_version=1)
        await store.commit(update)

        snapshot = await store.get("tickets", "A")
        assert snapshot is not None
        assert snapshot.version == 2
        assert snapshot.data == {"title": "first", "status": "Closed"}

    asyncio.run(_run())


def test_failed_precondition_applies_nothing() -> None:
    async def _run() -> None:
        store = InMemoryDocumentStore()
        seed = WriteBatch()
        seed.create("tickets", "A", {"title": "first"})
        await store.commit(seed)

        batch = WriteBatch()
        batch.create("tickets", "NEW", {"title": "new"})
        batch.create("ticketRelationships", "R1", {"sourceTicketId": "A"})
        batch.update("tickets", "A", {"title": "changed"}, expected_version=7)
        with pytest.raises(VersionConflict) as exc:
            await store.commit(batch)
        assert exc.value.doc_id == "A"

        assert await store.get("tickets", "NEW") is None
        assert store.count("ticketRelationships") == 0
        snapshot = await store.get("tickets", "A")
        assert snapshot is not None and snapshot.data["title"] == "first"

    asyncio.run(_run())


def test_create_on_existing_and_update_of_missing_conflict() -> None:
    async def _run() -> None:
        store = InMemoryDocumentStore()
        seed = WriteBatch()
        seed.create("tickets", "A", {})
        await store.commit(seed)

        duplicate = WriteBatch()
        duplicate.create("tickets", "A", {})
        with pytest.raises(VersionConflict):
            await store.commit(duplicate)

        missing = WriteBatch()
        missing.delete("tickets", "GONE")
        with pytest.raises(VersionConflict):
            await store.commit(missing)

    asyncio.run(_run())


def test_reads_are_isolated_copies() -> None:
    async def _run() -> None:
        store = InMemoryDocumentStore()
        seed = WriteBatch()
        seed.create("tickets", "A", {"childTicketIds": ["X"]})
        await store.commit(seed)

        snapshot = await store.get("tickets", "A")
        assert snapshot is not None
        snapshot.data["childTicketIds"].append("Y")

        again = await store.get("tickets", "A")
        assert again is not None and again.data["childTicketIds"] == ["X"]

    asyncio.run(_run())


def test_query_filters_on_top_level_field() -> None:
    async def _run() -> None:
        store = InMemoryDocumentStore()
        batch = WriteBatch()
        batch.create("ticketRelationships", "R1", {"sourceTicketId": "A"})
        batch.create("ticketRelationships", "R2", {"sourceTicketId": "B"})
        batch.create("ticketRelationships", "R3", {"sourceTicketId": "A"})
        await store.commit(batch)

        found = await store.query("ticketRelationships", "sourceTicketId", "A")
        assert sorted(s.id for s in found) == ["R1", "R3"]

    asyncio.run(_run())
