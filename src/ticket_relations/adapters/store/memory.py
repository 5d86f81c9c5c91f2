from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from copy import deepcopy
from typing import Any

from ticket_relations.adapters.store.base import (
    DocumentSnapshot,
    WriteBatch,
    WriteKind,
    WriteOp,
)
from ticket_relations.domain.errors import VersionConflict

_Collection = dict[str, tuple[int, dict[str, Any]]]


class InMemoryDocumentStore:
    """
    Process-local DocumentStore.

    Commits are compare-and-set over every touched document: all preconditions are
    checked against the current state and the new state is built aside, then swapped in
    under one lock. A failed precondition leaves nothing applied.
    """

    def __init__(self, *, id_factory: Callable[[], str] | None = None) -> None:
        self._collections: dict[str, _Collection] = {}
        self._guard = threading.Lock()
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)

    def new_id(self, collection: str) -> str:
        return self._id_factory()

    def count(self, collection: str) -> int:
        with self._guard:
            return len(self._collections.get(collection, {}))

    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot | None:
        with self._guard:
            entry = self._collections.get(collection, {}).get(doc_id)
            if entry is None:
                return None
            version, data = entry
            return DocumentSnapshot(collection, doc_id, deepcopy(data), version)

    async def query(self, collection: str, field_name: str, value: Any) -> list[DocumentSnapshot]:
        with self._guard:
            docs = self._collections.get(collection, {})
            return [
                DocumentSnapshot(collection, doc_id, deepcopy(data), version)
                for doc_id, (version, data) in docs.items()
                if data.get(field_name) == value
            ]

    async def commit(self, batch: WriteBatch) -> None:
        with self._guard:
            staged: dict[str, _Collection] = {}

            def _view(collection: str) -> _Collection:
                if collection not in staged:
                    staged[collection] = dict(self._collections.get(collection, {}))
                return staged[collection]

            for op in batch.ops:
                _apply(_view(op.collection), op)

            # Phase 2: every precondition held, publish the staged collections.
            self._collections.update(staged)


def _apply(docs: _Collection, op: WriteOp) -> None:
    current = docs.get(op.doc_id)

    if op.kind == WriteKind.CREATE:
        if current is not None:
            raise VersionConflict(op.collection, op.doc_id)
        docs[op.doc_id] = (1, deepcopy(op.data))
        return

    if current is None:
        raise VersionConflict(op.collection, op.doc_id)
    version, data = current
    if op.expected_version is not None and op.expected_version != version:
        raise VersionConflict(op.collection, op.doc_id)

    if op.kind == WriteKind.DELETE:
        del docs[op.doc_id]
        return

    merged = deepcopy(data)
    merged.update(deepcopy(op.data))
    docs[op.doc_id] = (version + 1, merged)
