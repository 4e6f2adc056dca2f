"""Tests for the change history ledger storage."""

from datetime import datetime, UTC

import pytest
from sqlalchemy.exc import IntegrityError

from palimpsest.db.models import ChangeType, RecordState, Suggestion, SuggestionKind
from palimpsest.db.services import revision_store


async def _suggestion(db_session, item, proposer="reader-1"):
    return await revision_store.add_suggestion(
        db_session,
        Suggestion(
            content_item_id=item.id,
            proposer_id=proposer,
            kind=SuggestionKind.CORRECTION,
            details="Fix the typo",
            is_approved=True,
            is_applied=True,
            processed_at=datetime.now(UTC),
        ),
    )


async def _append(db_session, item, before, after, editor="reader-1", change_type=ChangeType.SUGGESTION):
    suggestion = await _suggestion(db_session, item, editor)
    return await revision_store.append_record(
        db_session,
        content_item_id=item.id,
        suggestion_id=suggestion.id,
        editor_id=editor,
        change_type=change_type,
        description=f"{before!r} -> {after!r}",
        diff="",
        before_content=before,
        after_content=after,
    )


class TestAppendRecord:
    @pytest.mark.asyncio
    async def test_records_start_active_with_increasing_sequence(self, db_session, content_item):
        first = await _append(db_session, content_item, "a", "b")
        second = await _append(db_session, content_item, "b", "c")
        await db_session.commit()

        assert (first.sequence, second.sequence) == (1, 2)
        assert first.is_active and second.is_active
        assert first.state is RecordState.ACTIVE
        assert first.rolled_back_at is None and first.rolled_back_by is None

    @pytest.mark.asyncio
    async def test_suggestion_is_loaded_on_the_record(self, db_session, content_item):
        record = await _append(db_session, content_item, "a", "b")

        assert record.suggestion.kind is SuggestionKind.CORRECTION

    @pytest.mark.asyncio
    async def test_suggestion_can_anchor_only_one_record(self, db_session, content_item):
        suggestion = await _suggestion(db_session, content_item)
        fields = dict(
            content_item_id=content_item.id,
            suggestion_id=suggestion.id,
            editor_id="reader-1",
            change_type=ChangeType.SUGGESTION,
            description="",
            diff="",
            before_content="a",
            after_content="b",
        )
        await revision_store.append_record(db_session, **fields)

        with pytest.raises(IntegrityError):
            await revision_store.append_record(db_session, **fields)


class TestDeactivate:
    @pytest.mark.asyncio
    async def test_marks_record_rolled_back(self, db_session, content_item):
        record = await _append(db_session, content_item, "a", "b")
        now = datetime.now(UTC)

        assert await revision_store.deactivate(db_session, record.id, "admin-1", now) is True
        await db_session.commit()

        refreshed = await revision_store.get_change(db_session, record.id)
        assert refreshed.is_active is False
        assert refreshed.state is RecordState.ROLLED_BACK
        assert refreshed.rolled_back_by == "admin-1"
        assert refreshed.rolled_back_at is not None

    @pytest.mark.asyncio
    async def test_deactivates_only_once(self, db_session, content_item):
        record = await _append(db_session, content_item, "a", "b")
        first_at = datetime(2026, 1, 1, tzinfo=UTC)

        assert await revision_store.deactivate(db_session, record.id, "admin-1", first_at) is True
        assert await revision_store.deactivate(db_session, record.id, "admin-2", datetime.now(UTC)) is False
        await db_session.commit()

        refreshed = await revision_store.get_change(db_session, record.id)
        assert refreshed.rolled_back_by == "admin-1"


class TestQueries:
    @pytest.mark.asyncio
    async def test_list_active_is_newest_first_and_skips_rolled_back(self, db_session, content_item):
        first = await _append(db_session, content_item, "a", "b")
        second = await _append(db_session, content_item, "b", "c")
        third = await _append(db_session, content_item, "c", "d")
        await revision_store.deactivate(db_session, second.id, "admin-1", datetime.now(UTC))
        await db_session.commit()

        active = await revision_store.list_active(db_session, content_item.id)

        assert [r.id for r in active] == [third.id, first.id]

    @pytest.mark.asyncio
    async def test_get_change_for_item_checks_ownership(self, db_session, content_item):
        from palimpsest.db.models import ContentItem

        other = ContentItem(title="Other", current_content="x")
        db_session.add(other)
        record = await _append(db_session, content_item, "a", "b")
        await db_session.commit()

        assert await revision_store.get_change_for_item(db_session, content_item.id, record.id) is not None
        assert await revision_store.get_change_for_item(db_session, other.id, record.id) is None

    @pytest.mark.asyncio
    async def test_list_changes_filters_and_counts(self, db_session, content_item):
        await _append(db_session, content_item, "a", "b", editor="reader-1")
        rolled = await _append(db_session, content_item, "b", "c", editor="reader-2")
        await _append(db_session, content_item, "c", "b", editor="admin-1", change_type=ChangeType.ROLLBACK)
        await revision_store.deactivate(db_session, rolled.id, "admin-1", datetime.now(UTC))
        await db_session.commit()

        records, total = await revision_store.list_changes(db_session, content_item_id=content_item.id)
        assert total == 2
        assert all(r.is_active for r in records)

        records, total = await revision_store.list_changes(
            db_session, content_item_id=content_item.id, include_inactive=True
        )
        assert total == 3

        records, total = await revision_store.list_changes(
            db_session, include_inactive=True, change_type=ChangeType.ROLLBACK
        )
        assert total == 1
        assert records[0].editor_id == "admin-1"

        records, total = await revision_store.list_changes(db_session, include_inactive=True, editor_id="reader-2")
        assert [r.id for r in records] == [rolled.id]

    @pytest.mark.asyncio
    async def test_count_by_change_type(self, db_session, content_item):
        from palimpsest.db.models import ContentItem

        other = ContentItem(title="Other", current_content="x")
        db_session.add(other)
        await _append(db_session, content_item, "a", "b")
        rolled = await _append(db_session, content_item, "b", "c")
        await _append(db_session, content_item, "c", "b", editor="admin-1", change_type=ChangeType.ROLLBACK)
        await revision_store.deactivate(db_session, rolled.id, "admin-1", datetime.now(UTC))
        await _append(db_session, other, "x", "y", change_type=ChangeType.MANUAL)
        await db_session.commit()

        active = await revision_store.count_by_change_type(db_session)
        assert active == {ChangeType.SUGGESTION: 1, ChangeType.ROLLBACK: 1, ChangeType.MANUAL: 1}

        everything = await revision_store.count_by_change_type(db_session, include_inactive=True)
        assert everything[ChangeType.SUGGESTION] == 2

        scoped = await revision_store.count_by_change_type(
            db_session, include_inactive=True, content_item_id=content_item.id
        )
        assert scoped == {ChangeType.SUGGESTION: 2, ChangeType.ROLLBACK: 1, ChangeType.MANUAL: 0}

    @pytest.mark.asyncio
    async def test_list_changes_paginates(self, db_session, content_item):
        for i in range(5):
            await _append(db_session, content_item, str(i), str(i + 1))
        await db_session.commit()

        page, total = await revision_store.list_changes(db_session, limit=2, offset=2)

        assert total == 5
        assert len(page) == 2

    @pytest.mark.asyncio
    async def test_suggestion_queries(self, db_session, content_item):
        await _suggestion(db_session, content_item, "reader-1")
        await _suggestion(db_session, content_item, "reader-2")
        await db_session.commit()

        assert await revision_store.count_suggestions(db_session, content_item.id) == 2
        mine = await revision_store.list_suggestions(db_session, content_item.id, proposer_id="reader-2")
        assert [s.proposer_id for s in mine] == ["reader-2"]
        assert await revision_store.last_processed_at(db_session, content_item.id, "reader-1") is not None
        assert await revision_store.last_processed_at(db_session, content_item.id, "nobody") is None
