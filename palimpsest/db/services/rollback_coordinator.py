"""Rollback coordinator: undo a committed change with a compensating one.

A rollback never edits history. It restores the target's ``before_content``
through a brand-new ACTIVE ledger entry and marks the target ROLLED_BACK.
Undoing a rollback is simply rolling back the rollback entry.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import assert_never
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from palimpsest.config import RollbackDriftPolicy
from palimpsest.db.models import ChangeHistoryRecord, ChangeType, Suggestion, SuggestionKind
from palimpsest.db.services import content_mutator, revision_store
from palimpsest.db.transaction import atomic
from palimpsest.lib import observability
from palimpsest.lib.diffing import unified_diff
from palimpsest.lib.errors import ConflictError, ContentDriftError, NotFoundError, ValidationError
from palimpsest.lib.hooks import hooks, AFTER_CHANGE_ROLLED_BACK

logger = logging.getLogger(__name__)

OPERATION = "rollback_change"


@dataclass
class RollbackOutcome:
    """Result of a rollback."""

    success: bool
    rollback_change: ChangeHistoryRecord
    message: str


def _releases_suggestion(change_type: ChangeType) -> bool:
    """Whether rolling back a change of this type un-applies its suggestion.

    A rollback entry's synthetic suggestion stays applied: it anchors a
    compensating transition, not a proposal that can be withdrawn.
    """
    match change_type:
        case ChangeType.SUGGESTION | ChangeType.MANUAL:
            return True
        case ChangeType.ROLLBACK:
            return False
        case _:
            assert_never(change_type)


def _check_drift(
    target: ChangeHistoryRecord,
    live_content: str,
    drift_policy: RollbackDriftPolicy,
    actor_id: str,
) -> None:
    if live_content == target.after_content:
        return

    match drift_policy:
        case RollbackDriftPolicy.OVERWRITE:
            logger.warning(
                "Rolling back change %s of %s discards edits made after it",
                target.id, target.content_item_id,
            )
        case RollbackDriftPolicy.REJECT:
            raise ContentDriftError(
                "Content was edited after this change; roll back the later changes first",
                operation=OPERATION,
                content_item_id=target.content_item_id,
                actor_id=actor_id,
                change_id=target.id,
            )
        case _:
            assert_never(drift_policy)


async def rollback_change(
    db_session: AsyncSession,
    content_item_id: UUID,
    change_id: UUID,
    actor_id: str,
    drift_policy: RollbackDriftPolicy = RollbackDriftPolicy.OVERWRITE,
) -> RollbackOutcome:
    """Restore the content a change replaced, keeping the full audit trail.

    Everything happens in one transaction: the synthetic suggestion, the
    compensating ledger entry, the content restore, the target's rollback
    marking and un-applying the target's suggestion.

    Args:
        db_session: Database session, not inside a transaction
        content_item_id: Content item the change belongs to
        change_id: Ledger entry to roll back
        actor_id: Identity of the operator performing the rollback
        drift_policy: What to do when later edits were layered on the target

    Returns:
        RollbackOutcome carrying the new rollback entry

    Raises:
        NotFoundError: If the change does not exist for this content item
        ConflictError: If the change is already rolled back, or the content
            drifted under the REJECT policy
        TransactionError: If storage failed; nothing was persisted
    """
    if not actor_id:
        raise ValidationError("An actor is required", operation=OPERATION, content_item_id=content_item_id)

    with observability.span(
        "ledger.rollback_change",
        content_item_id=str(content_item_id),
        change_id=str(change_id),
        actor_id=actor_id,
    ):
        async with atomic(db_session, operation=OPERATION, content_item_id=content_item_id, actor_id=actor_id):
            target = await revision_store.get_change_for_item(db_session, content_item_id, change_id, for_update=True)
            if target is None:
                raise NotFoundError(
                    "Change not found",
                    operation=OPERATION,
                    content_item_id=content_item_id,
                    actor_id=actor_id,
                    change_id=change_id,
                )
            if not target.is_active:
                raise ConflictError(
                    "Change is already rolled back",
                    operation=OPERATION,
                    content_item_id=content_item_id,
                    actor_id=actor_id,
                    change_id=change_id,
                )

            live = await content_mutator.read_snapshot(db_session, content_item_id, OPERATION, actor_id)
            _check_drift(target, live.content, drift_policy, actor_id)

            now = datetime.now(UTC)
            synthetic = await revision_store.add_suggestion(
                db_session,
                Suggestion(
                    content_item_id=content_item_id,
                    proposer_id=actor_id,
                    kind=SuggestionKind.OTHER,
                    details=f"Rollback of change: {target.description}",
                    is_approved=True,
                    is_applied=True,
                    processed_at=now,
                    applied_at=now,
                ),
            )

            rollback_record = await content_mutator.commit_transition(
                db_session,
                content_item_id=content_item_id,
                before_content=live.content,
                after_content=target.before_content,
                diff=unified_diff(live.title, live.content, target.before_content, "current", "rollback"),
                change_type=ChangeType.ROLLBACK,
                suggestion_id=synthetic.id,
                editor_id=actor_id,
                description=f"Rolled back change: {target.description}",
                operation=OPERATION,
            )

            if not await revision_store.deactivate(db_session, target.id, actor_id, now):
                # Another rollback won the race after our read
                raise ConflictError(
                    "Change is already rolled back",
                    operation=OPERATION,
                    content_item_id=content_item_id,
                    actor_id=actor_id,
                    change_id=change_id,
                )

            if _releases_suggestion(target.change_type):
                await revision_store.mark_suggestion_unapplied(db_session, target.suggestion_id)

        logger.info(
            "Change %s of %s rolled back by %s as change %s",
            change_id, content_item_id, actor_id, rollback_record.id,
        )
        await hooks.do_action_after_commit(AFTER_CHANGE_ROLLED_BACK, target, rollback_record)

    return RollbackOutcome(
        success=True,
        rollback_change=rollback_record,
        message="Change successfully rolled back",
    )
