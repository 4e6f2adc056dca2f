"""Tests for the atomic() transaction scope."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from palimpsest.db.models import ContentItem
from palimpsest.db.transaction import atomic
from palimpsest.lib.errors import ConflictError, TransactionError


async def _count_items(session_maker) -> int:
    async with session_maker() as session:
        return await session.scalar(select(func.count(ContentItem.id)))


@pytest.mark.asyncio
async def test_commits_on_success(db_session, session_maker):
    async with atomic(db_session, operation="create_content_item"):
        db_session.add(ContentItem(title="New", current_content="Body"))

    assert await _count_items(session_maker) == 1


@pytest.mark.asyncio
async def test_storage_error_becomes_transaction_error(db_session, session_maker):
    with pytest.raises(TransactionError) as exc_info:
        async with atomic(db_session, operation="create_content_item", actor_id="admin-1"):
            db_session.add(ContentItem(title="New", current_content="Body"))
            await db_session.flush()
            raise IntegrityError("INSERT", {}, Exception("constraint failed"))

    assert exc_info.value.actor_id == "admin-1"
    assert exc_info.value.retryable is True
    assert exc_info.value.details["cause"] == "IntegrityError"
    assert isinstance(exc_info.value.__cause__, IntegrityError)
    assert await _count_items(session_maker) == 0


@pytest.mark.asyncio
async def test_ledger_errors_roll_back_and_propagate(db_session, session_maker):
    with pytest.raises(ConflictError):
        async with atomic(db_session, operation="rollback_change"):
            db_session.add(ContentItem(title="New", current_content="Body"))
            await db_session.flush()
            raise ConflictError("Change is already rolled back", operation="rollback_change")

    assert await _count_items(session_maker) == 0
