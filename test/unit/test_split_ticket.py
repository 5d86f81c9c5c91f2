from __future__ import annotations

import asyncio

import pytest

from support.factories import AGENT, attachment, make_context, reply, seed_ticket, specs
from support.settings_factory import make_settings
from support.stores import ConcurrentWriterStore, FailingCommitStore

from ticket_relations.app.operations.relationships import remove_relationship
from ticket_relations.app.operations.split_ticket import split_ticket
from ticket_relations.domain.errors import (
    ConcurrentModification,
    InvalidSourceState,
    InvalidSplitSpec,
    NotFound,
    StorageFailure,
    SystemGenerated,
)
from ticket_relations.domain.models import NewTicketSpec, RelationshipType, TicketPriority


def test_split_end_to_end() -> None:
    async def _run() -> None:
        ctx = make_context()
        await seed_ticket(
            ctx,
            "T1",
            assigneeId="agent-7",
            replies=[reply("r1", "It is all broken")],
            attachments=[attachment("a1")],
            statusHistory=[{"status": "Open", "changedAt": 1}],
        )

        result = await split_ticket(
            ctx,
            "T1",
            "scope too broad",
            [
                NewTicketSpec(title="Part A", description="desc A", priority=TicketPriority.HIGH),
                NewTicketSpec(title="Part B", description="desc B", priority=TicketPriority.LOW),
            ],
            AGENT,
        )

        t2, t3 = result.new_ticket_ids
        original = await ctx.tickets.get_ticket("T1")
        assert original is not None
        assert original.child_ticket_ids == [t2, t3]

        part_a = await ctx.tickets.get_ticket(t2)
        part_b = await ctx.tickets.get_ticket(t3)
        assert part_a is not None and part_b is not None
        assert part_a.parent_ticket_id == "T1" and part_b.parent_ticket_id == "T1"
        assert (part_a.title, part_a.priority) == ("Part A", TicketPriority.HIGH)
        assert (part_b.title, part_b.priority) == ("Part B", TicketPriority.LOW)
        # Inherited: tenant, contact/location data, attachments, assignee fallback.
        assert part_a.tenant_id == "tenant-a"
        assert part_a.assignee_id == "agent-7"
        assert part_a.model_extra["computer"] == "LAPTOP-7"
        assert [a.id for a in part_a.attachments] == ["a1"]
        # Not inherited: conversation, history and child links.
        assert part_a.replies == []
        assert part_a.status_history == []
        assert part_a.child_ticket_ids == []

        history = await ctx.history.splits_for("T1")
        assert [h.id for h in history] == [result.split_history_id]
        assert history[0].new_ticket_ids == [t2, t3]
        assert history[0].fields_distribution[t2].title == "Part A"
        assert history[0].reason == "scope too broad"
        assert history[0].split_by == AGENT.user_id

        edges = await ctx.relationships.list_by_source("T1")
        assert sorted(e.target_ticket_id for e in edges) == sorted([t2, t3])
        assert {e.relationship_type for e in edges} == {RelationshipType.PARENT_OF}
        assert all(e.description == "Created from ticket split" for e in edges)
        inverse = await ctx.relationships.list_by_source(t2)
        assert [(e.relationship_type, e.target_ticket_id) for e in inverse] == [
            (RelationshipType.CHILD_OF, "T1")
        ]

        note = original.replies[-1]
        assert note.is_private
        assert "Part A" in note.message and "Part B" in note.message
        assert "Reason: scope too broad" in note.message
        assert note.author_id == AGENT.user_id

    asyncio.run(_run())


def test_child_assignee_overrides_original() -> None:
    async def _run() -> None:
        ctx = make_context()
        await seed_ticket(ctx, "T1", assigneeId="agent-7")

        result = await split_ticket(
            ctx,
            "T1",
            "two teams",
            [
                NewTicketSpec(title="Network", description="n", assignee_id="net-1"),
                NewTicketSpec(title="Desktop", description="d"),
            ],
            AGENT,
        )

        first = await ctx.tickets.get_ticket(result.new_ticket_ids[0])
        second = await ctx.tickets.get_ticket(result.new_ticket_ids[1])
        assert first is not None and second is not None
        assert first.assignee_id == "net-1"
        assert second.assignee_id == "agent-7"
        assert first.priority == TicketPriority.MEDIUM

    asyncio.run(_run())


@pytest.mark.parametrize("count", [2, 10])
def test_split_boundary_counts_succeed(count: int) -> None:
    async def _run() -> None:
        ctx = make_context()
        await seed_ticket(ctx, "T1")
        result = await split_ticket(ctx, "T1", "big", specs(count), AGENT)
        assert len(result.new_ticket_ids) == count

    asyncio.run(_run())


@pytest.mark.parametrize("count", [1, 11])
def test_split_out_of_range_counts_write_nothing(count: int) -> None:
    async def _run() -> None:
        ctx = make_context()
        await seed_ticket(ctx, "T1")
        with pytest.raises(InvalidSplitSpec):
            await split_ticket(ctx, "T1", "big", specs(count), AGENT)
        assert ctx.store.count("tickets") == 1
        assert ctx.store.count("ticketSplitHistory") == 0

    asyncio.run(_run())


def test_split_of_missing_closed_or_child_ticket_rejected() -> None:
    async def _run() -> None:
        ctx = make_context()
        await seed_ticket(ctx, "CLOSED", status="Closed")
        await seed_ticket(ctx, "CHILD", parentTicketId="CLOSED")

        with pytest.raises(NotFound):
            await split_ticket(ctx, "NOPE", "r", specs(2), AGENT)
        with pytest.raises(InvalidSourceState):
            await split_ticket(ctx, "CLOSED", "r", specs(2), AGENT)
        with pytest.raises(InvalidSourceState):
            await split_ticket(ctx, "CHILD", "r", specs(2), AGENT)

    asyncio.run(_run())


def test_split_is_atomic_when_commit_fails() -> None:
    async def _run() -> None:
        store = FailingCommitStore()
        ctx = make_context(store=store)
        before = await seed_ticket(ctx, "T1")

        with pytest.raises(StorageFailure):
            await split_ticket(ctx, "T1", "r", specs(3), AGENT)

        assert store.count("tickets") == 1
        assert store.count("ticketRelationships") == 0
        assert store.count("ticketSplitHistory") == 0
        after = await ctx.tickets.get_ticket("T1")
        assert after is not None
        assert after.version == before.version
        assert after.child_ticket_ids == []
        assert after.replies == []

        # The lock is released: a retry from the caller goes through.
        result = await split_ticket(ctx, "T1", "r", specs(3), AGENT)
        assert len(result.new_ticket_ids) == 3

    asyncio.run(_run())


def test_split_restarts_after_concurrent_modification() -> None:
    async def _run() -> None:
        store = ConcurrentWriterStore("T1", times=1)
        ctx = make_context(store=store)
        await seed_ticket(ctx, "T1")

        result = await split_ticket(ctx, "T1", "r", specs(2), AGENT)

        original = await ctx.tickets.get_ticket("T1")
        assert original is not None
        assert original.child_ticket_ids == result.new_ticket_ids
        assert original.assignee_id == "someone-else"
        assert store.count("tickets") == 3
        assert store.count("ticketSplitHistory") == 1

    asyncio.run(_run())


def test_split_gives_up_after_conflict_budget() -> None:
    async def _run() -> None:
        store = ConcurrentWriterStore("T1", times=10)
        ctx = make_context(make_settings(max_conflict_retries=2), store=store)
        await seed_ticket(ctx, "T1")

        with pytest.raises(ConcurrentModification) as exc:
            await split_ticket(ctx, "T1", "r", specs(2), AGENT)

        assert exc.value.ticket_id == "T1"
        assert store.count("tickets") == 1

    asyncio.run(_run())


def test_split_rejected_while_ticket_is_locked() -> None:
    async def _run() -> None:
        ctx = make_context()
        await seed_ticket(ctx, "T1")

        async with ctx.locks.hold(["T1"]):
            with pytest.raises(ConcurrentModification):
                await split_ticket(ctx, "T1", "r", specs(2), AGENT)

        assert not ctx.locks.is_held("T1")

    asyncio.run(_run())


def test_audit_reply_failure_does_not_fail_split(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _run() -> None:
        ctx = make_context()
        await seed_ticket(ctx, "T1")

        async def _broken_append_reply(*_args, **_kwargs):
            raise ConnectionError("reply service down")

        monkeypatch.setattr(ctx.tickets, "append_reply", _broken_append_reply)

        result = await split_ticket(ctx, "T1", "r", specs(2), AGENT)

        original = await ctx.tickets.get_ticket("T1")
        assert original is not None
        assert original.child_ticket_ids == result.new_ticket_ids
        assert original.replies == []

    asyncio.run(_run())


def test_audit_reply_can_be_disabled() -> None:
    async def _run() -> None:
        ctx = make_context(make_settings(audit_replies=False))
        await seed_ticket(ctx, "T1")
        await split_ticket(ctx, "T1", "r", specs(2), AGENT)
        original = await ctx.tickets.get_ticket("T1")
        assert original is not None and original.replies == []

    asyncio.run(_run())


def test_split_edges_cannot_be_removed() -> None:
    async def _run() -> None:
        ctx = make_context()
        await seed_ticket(ctx, "T1")
        await split_ticket(ctx, "T1", "r", specs(2), AGENT)

        for edge in await ctx.relationships.list_by_source("T1"):
            with pytest.raises(SystemGenerated):
                await remove_relationship(ctx, edge.id)
        assert ctx.store.count("ticketRelationships") == 4

    asyncio.run(_run())


def test_second_split_replaces_child_links_with_new_children() -> None:
    async def _run() -> None:
        ctx = make_context()
        await seed_ticket(ctx, "T1")

        first = await split_ticket(ctx, "T1", "first pass", specs(2), AGENT)
        second = await split_ticket(ctx, "T1", "second pass", specs(2), AGENT)

        original = await ctx.tickets.get_ticket("T1")
        assert original is not None
        assert original.child_ticket_ids == second.new_ticket_ids
        assert not set(first.new_ticket_ids) & set(original.child_ticket_ids)

        # Earlier children keep their own parent link and edges.
        earlier = await ctx.tickets.get_ticket(first.new_ticket_ids[0])
        assert earlier is not None
        assert earlier.parent_ticket_id == "T1"

    asyncio.run(_run())
