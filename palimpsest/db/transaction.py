"""Transaction scoping for ledger writes."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from palimpsest.lib.errors import TransactionError


@asynccontextmanager
async def atomic(
    db_session: AsyncSession,
    *,
    operation: str,
    content_item_id: UUID | None = None,
    actor_id: str | None = None,
) -> AsyncIterator[AsyncSession]:
    """Commit everything done inside the block, or nothing.

    Storage failures are rolled back and re-raised as TransactionError so the
    caller can retry the whole operation. Any other exception (ledger errors
    included) also rolls back and propagates unchanged.
    """
    try:
        yield db_session
        await db_session.commit()
    except SQLAlchemyError as exc:
        await db_session.rollback()
        raise TransactionError(
            "Storage write failed; no changes were persisted",
            operation=operation,
            content_item_id=content_item_id,
            actor_id=actor_id,
            cause=type(exc).__name__,
        ) from exc
    except BaseException:
        await db_session.rollback()
        raise
