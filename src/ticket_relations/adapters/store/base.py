from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol

TICKETS = "tickets"
RELATIONSHIPS = "ticketRelationships"
SPLIT_HISTORY = "ticketSplitHistory"
MERGE_HISTORY = "ticketMergeHistory"


@dataclass(frozen=True)
class DocumentSnapshot:
    collection: str
    id: str
    data: dict[str, Any]
    version: int


class WriteKind(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class WriteOp:
    kind: WriteKind
    collection: str
    doc_id: str
    data: dict[str, Any] = field(default_factory=dict)
    # None = no precondition beyond existence rules of the kind.
    expected_version: int | None = None


class WriteBatch:
    """
    Ordered set of writes applied as one unit by `DocumentStore.commit`.

    - create: the document must not exist yet.
    - update: the document must exist; `data` is merged into it (top-level keys).
    - delete: the document must exist.
    `expected_version` turns any write into a compare-and-set on that document.
    """

    def __init__(self) -> None:
        self._ops: list[WriteOp] = []

    def __len__(self) -> int:
        return len(self._ops)

    @property
    def ops(self) -> tuple[WriteOp, ...]:
        return tuple(self._ops)

    def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self._ops.append(WriteOp(WriteKind.CREATE, collection, doc_id, dict(data)))

    def update(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> None:
        self._ops.append(
            WriteOp(WriteKind.UPDATE, collection, doc_id, dict(data), expected_version)
        )

    def delete(
        self,
        collection: str,
        doc_id: str,
        *,
        expected_version: int | None = None,
    ) -> None:
        self._ops.append(WriteOp(WriteKind.DELETE, collection, doc_id, {}, expected_version))


class DocumentStore(Protocol):
    """Tenant-partitioned document database with multi-document atomic commits."""

    def new_id(self, collection: str) -> str: ...

    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot | None: ...

    async def query(self, collection: str, field_name: str, value: Any) -> list[DocumentSnapshot]:
        """Equality query on a top-level field."""
        ...

    async def commit(self, batch: WriteBatch) -> None:
        """Apply every write in `batch` or none. Raises VersionConflict on a failed precondition."""
        ...
