from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from ticket_relations.adapters.store import DocumentStore, InMemoryDocumentStore
from ticket_relations.adapters.store.history import HistoryStore
from ticket_relations.adapters.store.relationships import RelationshipStore
from ticket_relations.adapters.store.tickets import TicketRepository
from ticket_relations.app.operations.ticket_locks import TicketLockRegistry
from ticket_relations.config.settings import Settings
from ticket_relations.domain.error_messages import ErrorMessages
from ticket_relations.domain.errors import StorageFailure
from ticket_relations.domain.time_utils import now_millis

T = TypeVar("T")


@dataclass
class RelationsContext:
    """Everything an operation needs: settings, the stores over one DocumentStore, and locks."""

    settings: Settings
    store: DocumentStore
    tickets: TicketRepository
    relationships: RelationshipStore
    history: HistoryStore
    locks: TicketLockRegistry
    clock: Callable[[], int] = now_millis

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        store: DocumentStore | None = None,
        clock: Callable[[], int] = now_millis,
    ) -> RelationsContext:
        document_store = store if store is not None else InMemoryDocumentStore()
        return cls(
            settings=settings,
            store=document_store,
            tickets=TicketRepository(document_store, clock=clock),
            relationships=RelationshipStore(document_store),
            history=HistoryStore(document_store),
            locks=TicketLockRegistry(settings),
            clock=clock,
        )

    async def with_timeout(self, awaitable: Awaitable[T]) -> T:
        timeout = float(self.settings.storage.timeout_seconds)
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except TimeoutError as exc:
            raise StorageFailure(ErrorMessages.STORAGE_TIMEOUT.format(seconds=timeout)) from exc

    async def aclose(self) -> None:
        await self.locks.aclose()
