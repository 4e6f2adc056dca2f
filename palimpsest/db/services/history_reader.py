"""Public change history: the ACTIVE part of the ledger, without snapshots."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from palimpsest.db.models import ChangeType, ContentItem, SuggestionKind
from palimpsest.db.services import revision_store
from palimpsest.lib.errors import NotFoundError
from palimpsest.lib.hooks import hooks, HISTORY_ACTOR_DISPLAY


@dataclass
class ContentItemSummary:
    id: UUID
    title: str
    created_at: datetime
    updated_at: datetime


@dataclass
class ChangeSummary:
    id: UUID
    sequence: int
    change_type: ChangeType
    description: str
    created_at: datetime
    suggestion_kind: SuggestionKind | None
    editor: dict[str, Any] = field(default_factory=dict)


@dataclass
class ContentHistory:
    content_item: ContentItemSummary
    changes: list[ChangeSummary]
    total_changes: int


async def get_history(db_session: AsyncSession, content_item_id: UUID) -> ContentHistory:
    """Get the public history of a content item, newest change first.

    Rolled back entries and full before/after snapshots are left out. Editor
    display fields come from the ``history_actor_display`` filter, since
    identity lives outside the ledger.

    Raises:
        NotFoundError: If the content item does not exist
    """
    result = await db_session.execute(
        select(ContentItem.id, ContentItem.title, ContentItem.created_at, ContentItem.updated_at)
        .where(ContentItem.id == content_item_id)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFoundError("Content item not found", operation="get_history", content_item_id=content_item_id)

    records = await revision_store.list_active(db_session, content_item_id)

    editors: dict[str, dict[str, Any]] = {}
    changes = []
    for record in records:
        if record.editor_id not in editors:
            editors[record.editor_id] = await hooks.apply_filters(
                HISTORY_ACTOR_DISPLAY, {"id": record.editor_id}, record.editor_id
            )
        changes.append(
            ChangeSummary(
                id=record.id,
                sequence=record.sequence,
                change_type=record.change_type,
                description=record.description,
                created_at=record.created_at,
                suggestion_kind=record.suggestion.kind if record.suggestion else None,
                editor=editors[record.editor_id],
            )
        )

    return ContentHistory(
        content_item=ContentItemSummary(
            id=row.id, title=row.title, created_at=row.created_at, updated_at=row.updated_at
        ),
        changes=changes,
        total_changes=len(changes),
    )
