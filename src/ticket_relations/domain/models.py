from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TicketStatus(StrEnum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    WAITING = "Waiting"
    RESOLVED = "Resolved"
    CLOSED = "Closed"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    ON_HOLD = "On Hold"
    PAUSED = "Paused"


class TicketPriority(StrEnum):
    URGENT = "Urgent"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    NONE = "None"


class RelationshipType(StrEnum):
    PARENT_OF = "parent_of"
    CHILD_OF = "child_of"
    SPLIT_FROM = "split_from"
    MERGED_INTO = "merged_into"
    RELATED_TO = "related_to"
    DUPLICATE_OF = "duplicate_of"
    BLOCKS = "blocks"
    BLOCKED_BY = "blocked_by"


class RelationshipOrigin(StrEnum):
    SYSTEM = "system"
    MANUAL = "manual"


class _DocumentModel(BaseModel):
    # Documents are persisted in camelCase, the shape the ticket database already uses.
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class Actor(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    user_name: str


class TicketAttachment(_DocumentModel):
    id: str
    filename: str = ""
    file_url: str = ""
    content_type: str = ""
    size: int = 0
    uploaded_at: int = 0


class TicketReply(_DocumentModel):
    id: str
    author_id: str = ""
    author_name: str = ""
    author_email: str | None = None
    message: str = ""
    attachments: list[TicketAttachment] = Field(default_factory=list)
    created_at: int = 0
    is_private: bool = False


class Ticket(_DocumentModel):
    # Unknown ticket fields (contact details, SLA, custom fields) round-trip untouched.
    model_config = ConfigDict(extra="allow")

    id: str
    tenant_id: str
    title: str = ""
    description: str = ""
    priority: TicketPriority = TicketPriority.NONE
    status: TicketStatus = TicketStatus.OPEN
    submitter_id: str | None = None
    assignee_id: str | None = None
    parent_ticket_id: str | None = None
    child_ticket_ids: list[str] = Field(default_factory=list)
    replies: list[TicketReply] = Field(default_factory=list)
    attachments: list[TicketAttachment] = Field(default_factory=list)
    status_history: list[dict[str, Any]] = Field(default_factory=list)
    created_at: int = 0
    updated_at: int = 0
    resolved_at: int | None = None

    # Store revision observed at read time; used for compare-and-set, never persisted.
    version: int = Field(default=0, exclude=True)

    @property
    def is_closed(self) -> bool:
        return self.status == TicketStatus.CLOSED

    @property
    def has_children(self) -> bool:
        return bool(self.child_ticket_ids)


class TicketRelationship(_DocumentModel):
    id: str = ""
    tenant_id: str
    source_ticket_id: str
    target_ticket_id: str
    relationship_type: RelationshipType
    created_by: str
    created_by_name: str
    created_at: int
    description: str | None = None
    # Absent on rows written before origin tracking existed.
    origin: RelationshipOrigin | None = None


class NewTicketSpec(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    title: str
    description: str
    assignee_id: str | None = None
    priority: TicketPriority = TicketPriority.MEDIUM


class FieldsDistribution(_DocumentModel):
    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    assignee_id: str | None = None
    priority: TicketPriority


class SplitTicketHistory(_DocumentModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    tenant_id: str
    original_ticket_id: str
    new_ticket_ids: list[str]
    reason: str
    split_by: str
    split_by_name: str
    split_at: int
    fields_distribution: dict[str, FieldsDistribution]


class PreservedData(_DocumentModel):
    model_config = ConfigDict(frozen=True)

    replies: list[TicketReply] = Field(default_factory=list)
    attachments: list[TicketAttachment] = Field(default_factory=list)
    time_entries: list[dict[str, Any]] = Field(default_factory=list)


class MergeTicketHistory(_DocumentModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    tenant_id: str
    primary_ticket_id: str
    merged_ticket_ids: list[str]
    reason: str
    merged_by: str
    merged_by_name: str
    merged_at: int
    preserved_data: PreservedData
