"""Tests for the conditional content write and its ledger entry."""

from uuid import uuid4

import pytest

from palimpsest.db.models import ChangeType, Suggestion, SuggestionKind
from palimpsest.db.services import content_mutator, revision_store
from palimpsest.lib.errors import NotFoundError, StaleContentError


async def _transition(db_session, content_item_id, before, after):
    suggestion = await revision_store.add_suggestion(
        db_session,
        Suggestion(
            content_item_id=content_item_id,
            proposer_id="reader-1",
            kind=SuggestionKind.CLARIFICATION,
            details="Clarify",
            is_approved=True,
            is_applied=True,
        ),
    )
    return await content_mutator.commit_transition(
        db_session,
        content_item_id=content_item_id,
        before_content=before,
        after_content=after,
        diff="-old\n+new\n",
        change_type=ChangeType.SUGGESTION,
        suggestion_id=suggestion.id,
        editor_id="reader-1",
        description="Clarified",
    )


class TestReadSnapshot:
    @pytest.mark.asyncio
    async def test_reads_title_and_content(self, db_session, content_item):
        snapshot = await content_mutator.read_snapshot(db_session, content_item.id)

        assert snapshot.title == "Getting started"
        assert snapshot.content == content_item.current_content

    @pytest.mark.asyncio
    async def test_missing_item(self, db_session):
        with pytest.raises(NotFoundError) as exc_info:
            await content_mutator.read_snapshot(db_session, uuid4(), "apply_suggestion", "reader-1")

        assert exc_info.value.operation == "apply_suggestion"
        assert exc_info.value.actor_id == "reader-1"


class TestCommitTransition:
    @pytest.mark.asyncio
    async def test_writes_content_and_record_together(self, db_session, content_item, read_content):
        before = content_item.current_content

        record = await _transition(db_session, content_item.id, before, "New text\n")
        await db_session.commit()

        assert await read_content(content_item.id) == "New text\n"
        assert record.before_content == before
        assert record.after_content == "New text\n"
        assert record.is_active
        assert record.change_type is ChangeType.SUGGESTION

    @pytest.mark.asyncio
    async def test_stale_before_content_writes_nothing(self, db_session, content_item, read_content):
        with pytest.raises(StaleContentError) as exc_info:
            await _transition(db_session, content_item.id, "not what is stored", "New text\n")
        await db_session.rollback()

        assert exc_info.value.status_code == 409
        assert await read_content(content_item.id) == content_item.current_content
        assert await revision_store.count_changes(db_session, content_item.id) == 0

    @pytest.mark.asyncio
    async def test_missing_item_is_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            await content_mutator.commit_transition(
                db_session,
                content_item_id=uuid4(),
                before_content="a",
                after_content="b",
                diff="",
                change_type=ChangeType.MANUAL,
                suggestion_id=uuid4(),
                editor_id="admin-1",
                description="",
            )

    @pytest.mark.asyncio
    async def test_does_not_commit(self, db_session, content_item, read_content):
        await _transition(db_session, content_item.id, content_item.current_content, "New text\n")
        await db_session.rollback()

        assert await read_content(content_item.id) == content_item.current_content
