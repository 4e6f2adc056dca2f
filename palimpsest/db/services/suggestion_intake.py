"""Suggestion intake: propose, validate, commit.

The validator call is the only slow step and always runs with no storage
transaction open. Its output is committed in one short transaction through the
content mutator. If the content moved while the validator was thinking, the
suggestion is validated again against the new content instead of being
written over it.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from palimpsest.db.models import ChangeHistoryRecord, ChangeType, Suggestion, SuggestionKind
from palimpsest.db.services import content_mutator, revision_store
from palimpsest.db.services.content_mutator import ContentSnapshot
from palimpsest.db.transaction import atomic
from palimpsest.lib import observability
from palimpsest.lib.errors import (
    CooldownError,
    ExternalServiceError,
    LedgerError,
    StaleContentError,
    ValidationError,
)
from palimpsest.lib.hooks import hooks, AFTER_SUGGESTION_APPLIED, AFTER_SUGGESTION_REJECTED
from palimpsest.lib.validator import ContentValidator, ValidationRequest, ValidationResult

logger = logging.getLogger(__name__)

OPERATION = "apply_suggestion"

DEFAULT_REJECTION_REASON = "The suggestion was not accepted."


@dataclass
class SuggestionOutcome:
    """Result of processing one suggestion."""

    success: bool
    message: str
    suggestion_id: UUID
    diff: str | None = None
    change_id: UUID | None = None
    reason: str | None = None


def _coerce_kind(kind: SuggestionKind | str, content_item_id: UUID, proposer_id: str) -> SuggestionKind:
    try:
        return SuggestionKind(kind)
    except ValueError:
        raise ValidationError(
            f"Unknown suggestion kind: {kind!r}",
            operation=OPERATION,
            content_item_id=content_item_id,
            actor_id=proposer_id,
        ) from None


def default_description(kind: SuggestionKind, details: str) -> str:
    return f"Applied {kind.value}: {details[:100]}..."


async def _check_cooldown(
    db_session: AsyncSession,
    content_item_id: UUID,
    proposer_id: str,
    cooldown: timedelta,
) -> None:
    last = await revision_store.last_processed_at(db_session, content_item_id, proposer_id)
    if last is None:
        return

    remaining = last + cooldown - datetime.now(UTC)
    if remaining > timedelta(0):
        seconds = max(1, math.ceil(remaining.total_seconds()))
        minutes = math.ceil(seconds / 60)
        raise CooldownError(
            f"Please wait {minutes} minutes before making another suggestion for this item",
            operation=OPERATION,
            content_item_id=content_item_id,
            actor_id=proposer_id,
            retry_after_seconds=seconds,
        )


async def _validate(
    validator: ContentValidator,
    snapshot: ContentSnapshot,
    kind: SuggestionKind,
    details: str,
    proposer_id: str,
) -> ValidationResult:
    request = ValidationRequest(
        title=snapshot.title,
        current_content=snapshot.content,
        suggestion_kind=kind,
        suggestion_details=details,
        requester_id=proposer_id,
    )
    try:
        return await validator.validate(request)
    except ExternalServiceError as exc:
        exc.operation = OPERATION
        exc.content_item_id = snapshot.content_item_id
        raise
    except LedgerError:
        raise
    except Exception as exc:
        raise ExternalServiceError(
            "Content validator failed",
            operation=OPERATION,
            content_item_id=snapshot.content_item_id,
            actor_id=proposer_id,
            cause=type(exc).__name__,
        ) from exc


def _require_contract(result: ValidationResult, content_item_id: UUID, proposer_id: str) -> str:
    """Return the updated content of a positive verdict, or reject the verdict."""
    if not result.updated_content or not result.updated_content.strip():
        raise ExternalServiceError(
            "Content validator approved the suggestion without updated content",
            operation=OPERATION,
            content_item_id=content_item_id,
            actor_id=proposer_id,
        )
    if not result.diff or not result.diff.strip():
        raise ExternalServiceError(
            "Content validator approved the suggestion without a diff",
            operation=OPERATION,
            content_item_id=content_item_id,
            actor_id=proposer_id,
        )
    return result.updated_content


async def _record_rejection(
    db_session: AsyncSession,
    content_item_id: UUID,
    proposer_id: str,
    kind: SuggestionKind,
    details: str,
    result: ValidationResult,
) -> Suggestion:
    async with atomic(db_session, operation=OPERATION, content_item_id=content_item_id, actor_id=proposer_id):
        suggestion = await revision_store.add_suggestion(
            db_session,
            Suggestion(
                content_item_id=content_item_id,
                proposer_id=proposer_id,
                kind=kind,
                details=details,
                is_approved=False,
                is_applied=False,
                rejection_reason=result.reason or DEFAULT_REJECTION_REASON,
                validator_response=result.model_dump_json(),
                processed_at=datetime.now(UTC),
            ),
        )
    return suggestion


async def _commit_accepted(
    db_session: AsyncSession,
    snapshot: ContentSnapshot,
    proposer_id: str,
    kind: SuggestionKind,
    details: str,
    result: ValidationResult,
    updated_content: str,
) -> tuple[Suggestion, ChangeHistoryRecord]:
    now = datetime.now(UTC)
    async with atomic(
        db_session, operation=OPERATION, content_item_id=snapshot.content_item_id, actor_id=proposer_id
    ):
        suggestion = await revision_store.add_suggestion(
            db_session,
            Suggestion(
                content_item_id=snapshot.content_item_id,
                proposer_id=proposer_id,
                kind=kind,
                details=details,
                is_approved=True,
                is_applied=True,
                validator_response=result.model_dump_json(),
                processed_at=now,
                applied_at=now,
            ),
        )
        record = await content_mutator.commit_transition(
            db_session,
            content_item_id=snapshot.content_item_id,
            before_content=snapshot.content,
            after_content=updated_content,
            diff=result.diff,
            change_type=ChangeType.SUGGESTION,
            suggestion_id=suggestion.id,
            editor_id=proposer_id,
            description=result.description or default_description(kind, details),
            operation=OPERATION,
        )
    return suggestion, record


async def apply_suggestion(
    db_session: AsyncSession,
    validator: ContentValidator,
    content_item_id: UUID,
    proposer_id: str,
    kind: SuggestionKind | str,
    details: str,
    cooldown: timedelta | None = None,
    stale_retries: int = 2,
) -> SuggestionOutcome:
    """Validate a proposed change and commit it to the content and the ledger.

    Args:
        db_session: Database session, not inside a transaction
        validator: External content validator
        content_item_id: Content item to change
        proposer_id: Identity of the proposer
        kind: Suggestion kind
        details: Free text describing the change
        cooldown: Minimum time between two suggestions by the same proposer on
            the same item (None disables the check)
        stale_retries: How many times to revalidate when the content moves
            between validation and commit

    Returns:
        SuggestionOutcome; ``success`` is False when the validator rejected it

    Raises:
        ValidationError: Malformed input, or CooldownError
        NotFoundError: If the content item does not exist
        ExternalServiceError: Validator failure or contract violation
        StaleContentError: If the content kept moving after every retry
        TransactionError: If the final write failed
    """
    details = (details or "").strip()
    if not proposer_id:
        raise ValidationError("A proposer is required", operation=OPERATION, content_item_id=content_item_id)
    kind = _coerce_kind(kind, content_item_id, proposer_id)
    if not details:
        raise ValidationError(
            "Suggestion details are required",
            operation=OPERATION,
            content_item_id=content_item_id,
            actor_id=proposer_id,
        )

    with observability.span(
        "ledger.apply_suggestion", content_item_id=str(content_item_id), actor_id=proposer_id, kind=kind.value
    ):
        if cooldown:
            async with atomic(db_session, operation=OPERATION, content_item_id=content_item_id, actor_id=proposer_id):
                await _check_cooldown(db_session, content_item_id, proposer_id, cooldown)

        attempt = 0
        while True:
            # The read transaction closes before the long validator call
            async with atomic(db_session, operation=OPERATION, content_item_id=content_item_id, actor_id=proposer_id):
                snapshot = await content_mutator.read_snapshot(db_session, content_item_id, OPERATION, proposer_id)

            result = await _validate(validator, snapshot, kind, details, proposer_id)

            if not result.is_valid:
                suggestion = await _record_rejection(db_session, content_item_id, proposer_id, kind, details, result)
                logger.info(
                    "Suggestion %s for %s rejected by validator: %s",
                    suggestion.id, content_item_id, suggestion.rejection_reason,
                )
                await hooks.do_action_after_commit(AFTER_SUGGESTION_REJECTED, suggestion)
                return SuggestionOutcome(
                    success=False,
                    message="Suggestion was not accepted",
                    suggestion_id=suggestion.id,
                    reason=suggestion.rejection_reason,
                )

            updated_content = _require_contract(result, content_item_id, proposer_id)

            try:
                suggestion, record = await _commit_accepted(
                    db_session, snapshot, proposer_id, kind, details, result, updated_content
                )
            except StaleContentError:
                if attempt >= stale_retries:
                    raise
                attempt += 1
                logger.info(
                    "Content of %s changed during validation, revalidating (attempt %d of %d)",
                    content_item_id, attempt, stale_retries,
                )
                continue

            logger.info("Suggestion %s applied to %s as change %s", suggestion.id, content_item_id, record.id)
            await hooks.do_action_after_commit(AFTER_SUGGESTION_APPLIED, suggestion, record)
            return SuggestionOutcome(
                success=True,
                message="Suggestion applied",
                suggestion_id=suggestion.id,
                diff=record.diff,
                change_id=record.id,
            )
