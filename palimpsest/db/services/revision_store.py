"""Revision store: the change history ledger and its suggestions.

Writers in this module only add rows or flip rollback-marking fields. None of
them commit; the caller owns the transaction.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from palimpsest.db.models import ChangeHistoryRecord, ChangeType, Suggestion


async def next_sequence(db_session: AsyncSession, content_item_id: UUID) -> int:
    """Get the next ledger ordinal for a content item."""
    result = await db_session.execute(
        select(func.coalesce(func.max(ChangeHistoryRecord.sequence), 0))
        .where(ChangeHistoryRecord.content_item_id == content_item_id)
    )
    return (result.scalar() or 0) + 1


async def append_record(
    db_session: AsyncSession,
    *,
    content_item_id: UUID,
    suggestion_id: UUID,
    editor_id: str,
    change_type: ChangeType,
    description: str,
    diff: str,
    before_content: str,
    after_content: str,
) -> ChangeHistoryRecord:
    """Append an ACTIVE ledger entry.

    Args:
        db_session: Database session, inside the caller's transaction
        content_item_id: Content item the transition applies to
        suggestion_id: Suggestion anchoring the transition
        editor_id: Actor responsible for the transition
        change_type: Origin of the transition
        description: Human readable summary
        diff: Display-only unified diff
        before_content: Full content before the transition
        after_content: Full content after the transition

    Returns:
        The flushed ChangeHistoryRecord
    """
    record = ChangeHistoryRecord(
        content_item_id=content_item_id,
        suggestion_id=suggestion_id,
        editor_id=editor_id,
        sequence=await next_sequence(db_session, content_item_id),
        change_type=change_type,
        description=description,
        diff=diff,
        before_content=before_content,
        after_content=after_content,
        is_active=True,
    )
    db_session.add(record)
    await db_session.flush()
    await db_session.refresh(record, attribute_names=["suggestion"])
    return record


async def get_change(db_session: AsyncSession, change_id: UUID) -> ChangeHistoryRecord | None:
    """Get a ledger entry by ID."""
    result = await db_session.execute(
        select(ChangeHistoryRecord).where(ChangeHistoryRecord.id == change_id)
    )
    return result.scalar_one_or_none()


async def get_change_for_item(
    db_session: AsyncSession,
    content_item_id: UUID,
    change_id: UUID,
    for_update: bool = False,
) -> ChangeHistoryRecord | None:
    """Get a ledger entry only if it belongs to ``content_item_id``.

    With ``for_update`` the row is locked until the transaction ends on
    databases that support it, and any cached instance is refreshed.
    """
    query = select(ChangeHistoryRecord).where(
        ChangeHistoryRecord.id == change_id,
        ChangeHistoryRecord.content_item_id == content_item_id,
    )
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)

    result = await db_session.execute(query)
    return result.scalar_one_or_none()


async def deactivate(
    db_session: AsyncSession,
    change_id: UUID,
    rolled_back_by: str,
    rolled_back_at: datetime,
) -> bool:
    """Move an ACTIVE entry to ROLLED_BACK.

    The update only matches active rows, so a record can leave the ACTIVE
    state exactly once even if two rollbacks race.

    Returns:
        True if the record was active and is now rolled back
    """
    result = await db_session.execute(
        update(ChangeHistoryRecord)
        .where(ChangeHistoryRecord.id == change_id, ChangeHistoryRecord.is_active.is_(True))
        .values(is_active=False, rolled_back_at=rolled_back_at, rolled_back_by=rolled_back_by)
        .returning(ChangeHistoryRecord.id)
        .execution_options(synchronize_session="fetch")
    )
    return result.scalar_one_or_none() is not None


async def list_active(db_session: AsyncSession, content_item_id: UUID) -> list[ChangeHistoryRecord]:
    """List ACTIVE ledger entries for a content item, newest first."""
    result = await db_session.execute(
        select(ChangeHistoryRecord)
        .where(
            ChangeHistoryRecord.content_item_id == content_item_id,
            ChangeHistoryRecord.is_active.is_(True),
        )
        .order_by(ChangeHistoryRecord.sequence.desc())
    )
    return list(result.scalars().all())


async def list_changes(
    db_session: AsyncSession,
    content_item_id: UUID | None = None,
    include_inactive: bool = False,
    change_type: ChangeType | None = None,
    editor_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[ChangeHistoryRecord], int]:
    """List ledger entries with optional filtering, newest first.

    Args:
        db_session: Database session
        content_item_id: Restrict to one content item
        include_inactive: Include rolled back entries
        change_type: Restrict to one change type
        editor_id: Restrict to one editor
        limit: Maximum number of results
        offset: Number of results to skip

    Returns:
        The requested page of records and the total number of matches
    """
    filters = []
    if content_item_id is not None:
        filters.append(ChangeHistoryRecord.content_item_id == content_item_id)
    if not include_inactive:
        filters.append(ChangeHistoryRecord.is_active.is_(True))
    if change_type is not None:
        filters.append(ChangeHistoryRecord.change_type == change_type)
    if editor_id:
        filters.append(ChangeHistoryRecord.editor_id == editor_id)

    total = await db_session.scalar(
        select(func.count(ChangeHistoryRecord.id)).where(*filters)
    )

    query = (
        select(ChangeHistoryRecord)
        .where(*filters)
        .order_by(ChangeHistoryRecord.created_at.desc(), ChangeHistoryRecord.sequence.desc())
    )
    if offset:
        query = query.offset(offset)
    if limit:
        query = query.limit(limit)

    result = await db_session.execute(query)
    return list(result.scalars().all()), total or 0


async def count_by_change_type(
    db_session: AsyncSession,
    include_inactive: bool = False,
    content_item_id: UUID | None = None,
) -> dict[ChangeType, int]:
    """Count ledger entries per change type.

    Types with no entries are reported as zero.
    """
    query = select(ChangeHistoryRecord.change_type, func.count(ChangeHistoryRecord.id))
    if content_item_id is not None:
        query = query.where(ChangeHistoryRecord.content_item_id == content_item_id)
    if not include_inactive:
        query = query.where(ChangeHistoryRecord.is_active.is_(True))

    result = await db_session.execute(query.group_by(ChangeHistoryRecord.change_type))
    counts = {change_type: 0 for change_type in ChangeType}
    counts.update({change_type: count for change_type, count in result.all()})
    return counts


async def count_changes(db_session: AsyncSession, content_item_id: UUID) -> int:
    """Count every ledger entry of a content item, rolled back ones included."""
    result = await db_session.execute(
        select(func.count(ChangeHistoryRecord.id))
        .where(ChangeHistoryRecord.content_item_id == content_item_id)
    )
    return result.scalar() or 0


async def get_suggestion(db_session: AsyncSession, suggestion_id: UUID) -> Suggestion | None:
    result = await db_session.execute(select(Suggestion).where(Suggestion.id == suggestion_id))
    return result.scalar_one_or_none()


async def add_suggestion(db_session: AsyncSession, suggestion: Suggestion) -> Suggestion:
    """Stage a suggestion and flush it so its ID can anchor a ledger entry."""
    db_session.add(suggestion)
    await db_session.flush()
    return suggestion


async def mark_suggestion_unapplied(db_session: AsyncSession, suggestion_id: UUID) -> None:
    await db_session.execute(
        update(Suggestion)
        .where(Suggestion.id == suggestion_id)
        .values(is_applied=False)
        .execution_options(synchronize_session="fetch")
    )


async def list_suggestions(
    db_session: AsyncSession,
    content_item_id: UUID,
    proposer_id: str | None = None,
) -> list[Suggestion]:
    """List suggestions for a content item, newest first."""
    query = select(Suggestion).where(Suggestion.content_item_id == content_item_id)
    if proposer_id:
        query = query.where(Suggestion.proposer_id == proposer_id)

    result = await db_session.execute(query.order_by(Suggestion.created_at.desc()))
    return list(result.scalars().all())


async def count_suggestions(db_session: AsyncSession, content_item_id: UUID) -> int:
    result = await db_session.execute(
        select(func.count(Suggestion.id)).where(Suggestion.content_item_id == content_item_id)
    )
    return result.scalar() or 0


async def last_processed_at(
    db_session: AsyncSession,
    content_item_id: UUID,
    proposer_id: str,
) -> datetime | None:
    """When the proposer's latest suggestion on this item was processed."""
    result = await db_session.execute(
        select(func.max(Suggestion.processed_at)).where(
            Suggestion.content_item_id == content_item_id,
            Suggestion.proposer_id == proposer_id,
        )
    )
    return result.scalar()
