"""Content item service: lookup, manual edits and guarded deletion."""

import logging
from datetime import datetime, UTC
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from palimpsest.db.models import ChangeHistoryRecord, ChangeType, ContentItem, Suggestion, SuggestionKind
from palimpsest.db.services import content_mutator, revision_store
from palimpsest.db.transaction import atomic
from palimpsest.lib.diffing import unified_diff
from palimpsest.lib.errors import ConflictError, ValidationError
from palimpsest.lib.hooks import hooks, AFTER_MANUAL_EDIT

logger = logging.getLogger(__name__)


async def create_content_item(
    db_session: AsyncSession,
    title: str,
    content: str = "",
    actor_id: str | None = None,
) -> ContentItem:
    """Create a new content item.

    The initial content is not a ledger transition; history starts with the
    first edit.
    """
    title = title.strip()
    if not title:
        raise ValidationError("A title is required", operation="create_content_item", actor_id=actor_id)

    item = ContentItem(title=title, current_content=content)
    db_session.add(item)
    await db_session.commit()
    await db_session.refresh(item)
    return item


async def get_content_item(db_session: AsyncSession, content_item_id: UUID) -> ContentItem | None:
    result = await db_session.execute(select(ContentItem).where(ContentItem.id == content_item_id))
    return result.scalar_one_or_none()


async def update_content(
    db_session: AsyncSession,
    content_item_id: UUID,
    content: str,
    editor_id: str,
    description: str | None = None,
) -> ChangeHistoryRecord:
    """Apply an administrator's edit as a ``manual`` ledger transition.

    Args:
        db_session: Database session, not inside a transaction
        content_item_id: Content item to edit
        content: Full replacement content
        editor_id: Identity of the administrator
        description: Summary of the edit

    Returns:
        The new ChangeHistoryRecord

    Raises:
        ValidationError: If no editor is given or the content is unchanged
        NotFoundError: If the content item does not exist
    """
    operation = "update_content"
    if not editor_id:
        raise ValidationError("An editor is required", operation=operation, content_item_id=content_item_id)
    description = (description or "").strip() or "Manual edit"

    async with atomic(db_session, operation=operation, content_item_id=content_item_id, actor_id=editor_id):
        live = await content_mutator.read_snapshot(db_session, content_item_id, operation, editor_id)
        if live.content == content:
            raise ValidationError(
                "Content is unchanged",
                operation=operation,
                content_item_id=content_item_id,
                actor_id=editor_id,
            )

        now = datetime.now(UTC)
        suggestion = await revision_store.add_suggestion(
            db_session,
            Suggestion(
                content_item_id=content_item_id,
                proposer_id=editor_id,
                kind=SuggestionKind.OTHER,
                details=f"Manual edit: {description}",
                is_approved=True,
                is_applied=True,
                processed_at=now,
                applied_at=now,
            ),
        )
        record = await content_mutator.commit_transition(
            db_session,
            content_item_id=content_item_id,
            before_content=live.content,
            after_content=content,
            diff=unified_diff(live.title, live.content, content, "current", "edited"),
            change_type=ChangeType.MANUAL,
            suggestion_id=suggestion.id,
            editor_id=editor_id,
            description=description,
            operation=operation,
        )

    logger.info("Manual edit of %s by %s recorded as change %s", content_item_id, editor_id, record.id)
    await hooks.do_action_after_commit(AFTER_MANUAL_EDIT, record)
    return record


async def delete_content_item(
    db_session: AsyncSession,
    content_item_id: UUID,
    actor_id: str | None = None,
) -> bool:
    """Delete a content item that has never been edited.

    Returns:
        True if deleted, False if not found

    Raises:
        ConflictError: If the item has suggestions or change history
    """
    item = await get_content_item(db_session, content_item_id)
    if not item:
        return False

    changes = await revision_store.count_changes(db_session, content_item_id)
    suggestions = await revision_store.count_suggestions(db_session, content_item_id)
    if changes or suggestions:
        raise ConflictError(
            "Content item has change history and cannot be deleted",
            operation="delete_content_item",
            content_item_id=content_item_id,
            actor_id=actor_id,
            changes=changes,
            suggestions=suggestions,
        )

    await db_session.delete(item)
    await db_session.commit()
    return True
