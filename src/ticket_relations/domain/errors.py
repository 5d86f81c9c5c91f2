from __future__ import annotations

from typing import Any

from ticket_relations.domain.error_messages import ErrorCodes, ErrorMessages


class RelationsError(Exception):
    """Base class for every failure surfaced by relationship, split and merge operations.

    Carries structured context (which ticket, which field, which rule) so API and UI
    layers can render a specific corrective message.
    """

    code: str = ErrorCodes.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        ticket_id: str | None = None,
        field: str | None = None,
        rule: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.ticket_id = ticket_id
        self.field = field
        self.rule = rule

    def context(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.ticket_id is not None:
            out["ticket_id"] = self.ticket_id
        if self.field is not None:
            out["field"] = self.field
        if self.rule is not None:
            out["rule"] = self.rule
        return out


class TransientError(RelationsError):
    """An error that is likely to succeed when the whole operation is retried."""


class PermanentError(RelationsError):
    """An error that should not be retried automatically."""


class NotFound(PermanentError):
    code = ErrorCodes.NOT_FOUND


class SelfReference(PermanentError):
    code = ErrorCodes.SELF_REFERENCE


class CircularRelationship(PermanentError):
    code = ErrorCodes.CIRCULAR


class InvalidSourceState(PermanentError):
    code = ErrorCodes.INVALID_SOURCE_STATE


class InvalidTargetState(PermanentError):
    code = ErrorCodes.INVALID_TARGET_STATE


class InvalidSplitSpec(PermanentError):
    code = ErrorCodes.INVALID_SPLIT


class InvalidMergeSpec(PermanentError):
    code = ErrorCodes.INVALID_MERGE


class SystemGenerated(PermanentError):
    code = ErrorCodes.SYSTEM_GENERATED


class TenantMismatch(PermanentError):
    code = ErrorCodes.TENANT_MISMATCH


class StorageFailure(TransientError):
    """The underlying atomic write did not complete. Retry must restart from validation."""

    code = ErrorCodes.STORAGE


class ConcurrentModification(StorageFailure):
    """A touched ticket was locked or changed by a concurrent operation."""

    code = ErrorCodes.CONFLICT


class VersionConflict(Exception):
    """Raised by a document store when a batch precondition no longer holds.

    Internal signal: operations restart from validation and only surface
    ConcurrentModification once their conflict budget is spent.
    """

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(
            ErrorMessages.VERSION_CONFLICT.format(collection=collection, doc_id=doc_id)
        )
        self.collection = collection
        self.doc_id = doc_id


def wrap_exception(exc: BaseException) -> TransientError | PermanentError:
    """
    Wrap an arbitrary exception in a domain error type.

    If the exception is already a domain error, it is returned as-is.
    Otherwise, it is wrapped as a PermanentError (fail-safe default) with the
    original exception attached as the cause.
    """
    if isinstance(exc, (TransientError, PermanentError)):
        return exc

    message = f"{exc.__class__.__name__}: {exc}".strip()
    wrapped = PermanentError(message or exc.__class__.__name__)
    wrapped.__cause__ = exc
    return wrapped
