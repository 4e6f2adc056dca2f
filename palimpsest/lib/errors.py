"""Error taxonomy for ledger operations.

Every error carries the operation name, the content item and the actor so a
failure can be reconstructed from a single log line.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID


class LedgerError(Exception):
    """Base class for all revision ledger failures."""

    status_code: int = 500
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        content_item_id: UUID | str | None = None,
        actor_id: str | None = None,
        **details: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.content_item_id = content_item_id
        self.actor_id = actor_id
        self.details = details

    def context(self) -> dict[str, Any]:
        """Structured fields for logs and spans."""
        ctx: dict[str, Any] = {
            "error": type(self).__name__,
            "operation": self.operation,
            "content_item_id": str(self.content_item_id) if self.content_item_id else None,
            "actor_id": self.actor_id,
            "retryable": self.retryable,
        }
        ctx.update({k: str(v) for k, v in self.details.items()})
        return ctx

    def __str__(self) -> str:
        return f"{self.message} (operation={self.operation}, content_item_id={self.content_item_id}, actor_id={self.actor_id})"


class ValidationError(LedgerError):
    """Malformed input. The caller corrects it and retries."""

    status_code = 400


class CooldownError(ValidationError):
    """The proposer suggested a change to this item too recently."""

    status_code = 429


class NotFoundError(LedgerError):
    """Missing content item or change record."""

    status_code = 404


class ConflictError(LedgerError):
    """The requested transition conflicts with current ledger state."""

    status_code = 409


class StaleContentError(ConflictError):
    """Stored content moved between snapshot and commit; recompute against it."""


class ContentDriftError(ConflictError):
    """A rollback target has later edits layered on top of it."""


class ExternalServiceError(LedgerError):
    """The content validator was unreachable, timed out or broke its contract."""

    status_code = 502
    retryable = True


class TransactionError(LedgerError):
    """Storage failed mid-sequence; nothing was persisted."""

    status_code = 503
    retryable = True
