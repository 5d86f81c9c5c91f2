from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

import structlog

from ticket_relations.adapters.store.base import TICKETS, DocumentStore, WriteBatch
from ticket_relations.domain.errors import NotFound, VersionConflict
from ticket_relations.domain.error_messages import format_not_found
from ticket_relations.domain.models import Actor, Ticket, TicketReply
from ticket_relations.domain.time_utils import now_millis

log = structlog.get_logger(__name__)

_APPEND_REPLY_ATTEMPTS = 3


class TicketGateway(Protocol):
    """Single-ticket data access consumed by relationship, split and merge operations."""

    async def get_ticket(self, ticket_id: str) -> Ticket | None: ...

    async def create_ticket(self, ticket_data: dict[str, Any]) -> str: ...

    async def update_ticket(self, ticket_id: str, fields: dict[str, Any]) -> None: ...

    async def append_reply(
        self,
        ticket_id: str,
        *,
        message: str,
        is_private: bool,
        actor: Actor,
    ) -> TicketReply: ...


def ticket_from_snapshot(doc_id: str, data: dict[str, Any], version: int) -> Ticket:
    ticket = Ticket.model_validate({**data, "id": doc_id})
    ticket.version = version
    return ticket


class TicketRepository:
    """TicketGateway backed by the `tickets` collection of a DocumentStore."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self._store = store
        self._clock = clock

    @property
    def store(self) -> DocumentStore:
        return self._store

    def new_id(self) -> str:
        return self._store.new_id(TICKETS)

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        snapshot = await self._store.get(TICKETS, ticket_id)
        if snapshot is None:
            return None
        return ticket_from_snapshot(snapshot.id, snapshot.data, snapshot.version)

    async def get_tickets(self, ticket_ids: list[str]) -> dict[str, Ticket | None]:
        return {ticket_id: await self.get_ticket(ticket_id) for ticket_id in ticket_ids}

    async def create_ticket(self, ticket_data: dict[str, Any]) -> str:
        ticket_id = str(ticket_data.get("id") or self.new_id())
        now = self._clock()
        data = {"createdAt": now, "updatedAt": now, **ticket_data, "id": ticket_id}
        ticket = Ticket.model_validate(data)
        batch = WriteBatch()
        self.stage_create(batch, ticket)
        await self._store.commit(batch)
        return ticket_id

    async def update_ticket(self, ticket_id: str, fields: dict[str, Any]) -> None:
        batch = WriteBatch()
        batch.update(TICKETS, ticket_id, {**fields, "updatedAt": self._clock()})
        try:
            await self._store.commit(batch)
        except VersionConflict as exc:
            raise NotFound(format_not_found(ticket_id), ticket_id=ticket_id) from exc

    async def append_reply(
        self,
        ticket_id: str,
        *,
        message: str,
        is_private: bool,
        actor: Actor,
    ) -> TicketReply:
        attempt = 0
        while True:
            attempt += 1
            ticket = await self.get_ticket(ticket_id)
            if ticket is None:
                raise NotFound(format_not_found(ticket_id), ticket_id=ticket_id)

            now = self._clock()
            reply = TicketReply(
                id=self._store.new_id(TICKETS),
                author_id=actor.user_id,
                author_name=actor.user_name,
                message=message,
                created_at=now,
                is_private=is_private,
            )
            replies = [r.to_document() for r in ticket.replies]
            replies.append(reply.to_document())

            batch = WriteBatch()
            batch.update(
                TICKETS,
                ticket_id,
                {"replies": replies, "updatedAt": now},
                expected_version=ticket.version,
            )
            try:
                await self._store.commit(batch)
            except VersionConflict:
                if attempt >= _APPEND_REPLY_ATTEMPTS:
                    raise
                log.info(
                    "tickets.append_reply_conflict_retry", ticket_id=ticket_id, attempt=attempt
                )
                continue
            return reply

    def stage_create(self, batch: WriteBatch, ticket: Ticket) -> None:
        batch.create(TICKETS, ticket.id, ticket.to_document())

    def stage_update(
        self,
        batch: WriteBatch,
        ticket: Ticket,
        fields: dict[str, Any],
    ) -> None:
        """Stage an update that only applies if `ticket` is unchanged since it was read."""
        batch.update(
            TICKETS,
            ticket.id,
            {**fields, "updatedAt": self._clock()},
            expected_version=ticket.version,
        )
