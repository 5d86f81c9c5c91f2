from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from ticket_relations.adapters.store.base import TICKETS
from ticket_relations.domain.error_messages import ErrorMessages
from ticket_relations.domain.errors import (
    ConcurrentModification,
    PermanentError,
    StorageFailure,
    TransientError,
    VersionConflict,
    wrap_exception,
)
from ticket_relations.observability.metrics import conflict_retries_total

log = structlog.get_logger(__name__)

T = TypeVar("T")


def _is_redis_error(exc: BaseException) -> bool:
    # redis is an optional dependency; match its exception hierarchy by module.
    return any(cls.__module__.startswith("redis.") for cls in type(exc).__mro__)


def classify(exc: BaseException) -> TransientError | PermanentError:
    """
    Classify an exception into retryable (TransientError) vs non-retryable (PermanentError).

    Callers that see a TransientError retry the whole operation from validation;
    nothing in this package retries storage failures on its own.
    """
    if isinstance(exc, (TransientError, PermanentError)):
        return exc

    if isinstance(exc, VersionConflict):
        ticket_id = exc.doc_id if exc.collection == TICKETS else None
        return ConcurrentModification(str(exc), ticket_id=ticket_id, rule="compare_and_set")

    if isinstance(exc, TimeoutError):
        return StorageFailure(ErrorMessages.STORAGE_FAILURE + " (timeout)")
    if isinstance(exc, (ConnectionError, OSError)) or _is_redis_error(exc):
        return StorageFailure(f"{ErrorMessages.STORAGE_FAILURE}: {exc.__class__.__name__}")

    # Validation/data issues (e.g. a stored document that no longer parses).
    if isinstance(exc, (ValueError, TypeError)):
        return PermanentError(str(exc) or exc.__class__.__name__)

    # Fail-safe default: never retry what was not explicitly classified transient.
    return wrap_exception(exc)


async def run_with_conflict_retries(
    operation: str,
    attempt: Callable[[], Awaitable[T]],
    *,
    max_retries: int,
) -> T:
    """
    Run `attempt` (read, validate, stage, commit) and restart it on a VersionConflict.

    After `max_retries` restarts the conflict surfaces as ConcurrentModification.
    """
    attempt_no = 0
    while True:
        try:
            return await attempt()
        except VersionConflict as exc:
            if attempt_no >= max_retries:
                raise ConcurrentModification(
                    ErrorMessages.CONFLICT_RETRIES_EXHAUSTED.format(attempts=attempt_no + 1),
                    ticket_id=exc.doc_id if exc.collection == TICKETS else None,
                    rule="compare_and_set",
                ) from exc
            conflict_retries_total.labels(operation=operation).inc()
            log.info(
                "retry_policy.version_conflict_restart",
                operation=operation,
                attempt=attempt_no + 1,
                collection=exc.collection,
                doc_id=exc.doc_id,
            )
            attempt_no += 1
