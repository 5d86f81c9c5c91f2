from __future__ import annotations

from ticket_relations.adapters.store.base import DocumentStore, WriteBatch
from ticket_relations.adapters.store.memory import InMemoryDocumentStore

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "WriteBatch",
]
