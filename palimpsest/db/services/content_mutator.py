"""The single writer of ``ContentItem.current_content``.

Every content change goes through :func:`commit_transition`, which writes the
new content and its ledger entry inside the caller's transaction. The content
write is conditional on the stored content still being the ``before_content``
the caller computed its transition from, so concurrent writers can never
silently overwrite each other.
"""

from dataclasses import dataclass
from datetime import datetime, UTC
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from palimpsest.db.models import ChangeHistoryRecord, ChangeType, ContentItem
from palimpsest.db.services import revision_store
from palimpsest.lib.errors import NotFoundError, StaleContentError


@dataclass(frozen=True)
class ContentSnapshot:
    """Title and content of an item as read from storage."""

    content_item_id: UUID
    title: str
    content: str


async def read_snapshot(
    db_session: AsyncSession,
    content_item_id: UUID,
    operation: str = "read_snapshot",
    actor_id: str | None = None,
) -> ContentSnapshot:
    """Read the live title and content straight from storage.

    Column selects bypass the identity map, so the result is never a cached
    copy from earlier in the session.

    Raises:
        NotFoundError: If the content item does not exist
    """
    result = await db_session.execute(
        select(ContentItem.title, ContentItem.current_content).where(ContentItem.id == content_item_id)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFoundError(
            "Content item not found",
            operation=operation,
            content_item_id=content_item_id,
            actor_id=actor_id,
        )
    return ContentSnapshot(content_item_id=content_item_id, title=row.title, content=row.current_content)


async def commit_transition(
    db_session: AsyncSession,
    *,
    content_item_id: UUID,
    before_content: str,
    after_content: str,
    diff: str,
    change_type: ChangeType,
    suggestion_id: UUID,
    editor_id: str,
    description: str,
    operation: str = "commit_transition",
) -> ChangeHistoryRecord:
    """Write ``after_content`` and its ledger entry, or neither.

    Runs inside the caller's transaction and never commits.

    Raises:
        NotFoundError: If the content item does not exist
        StaleContentError: If the stored content is no longer ``before_content``
    """
    result = await db_session.execute(
        update(ContentItem)
        .where(ContentItem.id == content_item_id, ContentItem.current_content == before_content)
        .values(current_content=after_content, updated_at=datetime.now(UTC))
        .returning(ContentItem.id)
        .execution_options(synchronize_session="fetch")
    )
    if result.scalar_one_or_none() is None:
        exists = await db_session.scalar(select(ContentItem.id).where(ContentItem.id == content_item_id))
        if exists is None:
            raise NotFoundError(
                "Content item not found",
                operation=operation,
                content_item_id=content_item_id,
                actor_id=editor_id,
            )
        raise StaleContentError(
            "Content changed since it was read; recompute against the current content",
            operation=operation,
            content_item_id=content_item_id,
            actor_id=editor_id,
            change_type=change_type,
        )

    return await revision_store.append_record(
        db_session,
        content_item_id=content_item_id,
        suggestion_id=suggestion_id,
        editor_id=editor_id,
        change_type=change_type,
        description=description,
        diff=diff,
        before_content=before_content,
        after_content=after_content,
    )
