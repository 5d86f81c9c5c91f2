from __future__ import annotations

from ticket_relations.app.operations.context import RelationsContext
from ticket_relations.domain.models import MergeTicketHistory, SplitTicketHistory


async def get_split_history(ctx: RelationsContext, ticket_id: str) -> list[SplitTicketHistory]:
    """Split records where `ticket_id` was the original, oldest first."""
    return await ctx.with_timeout(ctx.history.splits_for(ticket_id))


async def get_merge_history(ctx: RelationsContext, ticket_id: str) -> list[MergeTicketHistory]:
    """Merge records where `ticket_id` was the primary, oldest first."""
    return await ctx.with_timeout(ctx.history.merges_for(ticket_id))
