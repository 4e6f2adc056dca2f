"""Tests for the public change history."""

from uuid import uuid4

import pytest

from palimpsest.db.models import ChangeType, SuggestionKind
from palimpsest.db.services import history_reader, rollback_coordinator, suggestion_intake
from palimpsest.lib.errors import NotFoundError
from palimpsest.lib.hooks import HISTORY_ACTOR_DISPLAY


async def _apply(db_session, validator, item, proposer, kind="correction"):
    return await suggestion_intake.apply_suggestion(db_session, validator, item.id, proposer, kind, "Details")


class TestGetHistory:
    @pytest.mark.asyncio
    async def test_only_active_changes_newest_first(self, db_session, content_item, appending_validator):
        first = await _apply(db_session, appending_validator, content_item, "reader-1")
        second = await _apply(db_session, appending_validator, content_item, "reader-2", "example")
        third = await _apply(db_session, appending_validator, content_item, "reader-3")
        rollback = await rollback_coordinator.rollback_change(db_session, content_item.id, second.change_id, "admin-1")

        history = await history_reader.get_history(db_session, content_item.id)

        ids = [change.id for change in history.changes]
        assert ids == [rollback.rollback_change.id, third.change_id, first.change_id]
        assert second.change_id not in ids
        assert history.total_changes == 3
        assert history.changes[0].change_type is ChangeType.ROLLBACK
        assert history.changes[0].suggestion_kind is SuggestionKind.OTHER
        assert history.changes[1].suggestion_kind is SuggestionKind.CORRECTION

    @pytest.mark.asyncio
    async def test_excludes_snapshots(self, db_session, content_item, appending_validator):
        await _apply(db_session, appending_validator, content_item, "reader-1")

        history = await history_reader.get_history(db_session, content_item.id)

        change = history.changes[0]
        assert not hasattr(change, "before_content")
        assert not hasattr(change, "after_content")

    @pytest.mark.asyncio
    async def test_item_summary(self, db_session, content_item):
        history = await history_reader.get_history(db_session, content_item.id)

        assert history.content_item.id == content_item.id
        assert history.content_item.title == "Getting started"
        assert history.changes == []
        assert history.total_changes == 0

    @pytest.mark.asyncio
    async def test_missing_item(self, db_session):
        with pytest.raises(NotFoundError):
            await history_reader.get_history(db_session, uuid4())

    @pytest.mark.asyncio
    async def test_editor_display_defaults_to_id(self, db_session, content_item, appending_validator, clean_hooks):
        await _apply(db_session, appending_validator, content_item, "reader-1")

        history = await history_reader.get_history(db_session, content_item.id)

        assert history.changes[0].editor == {"id": "reader-1"}

    @pytest.mark.asyncio
    async def test_editor_display_filter_resolves_once_per_editor(
        self, db_session, content_item, appending_validator, clean_hooks
    ):
        calls = []

        async def add_name(display, editor_id):
            calls.append(editor_id)
            return {**display, "name": editor_id.upper()}

        clean_hooks.add_filter(HISTORY_ACTOR_DISPLAY, add_name)
        await _apply(db_session, appending_validator, content_item, "reader-1")
        await _apply(db_session, appending_validator, content_item, "reader-1")

        history = await history_reader.get_history(db_session, content_item.id)

        assert [c.editor for c in history.changes] == [{"id": "reader-1", "name": "READER-1"}] * 2
        assert calls == ["reader-1"]
