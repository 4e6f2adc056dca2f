"""Public content controller: propose changes and read the change history."""

from uuid import UUID

from litestar import Controller, Request, get, post
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from palimpsest.controllers.helpers import (
    get_actor_id,
    get_cooldown,
    get_ledger_config,
    get_validator,
    serialize_history,
    serialize_suggestion,
)
from palimpsest.db.models import SuggestionKind
from palimpsest.db.services import history_reader, revision_store, suggestion_intake
from palimpsest.db.services.content_service import get_content_item
from palimpsest.lib.errors import NotFoundError


class SuggestionPayload(BaseModel):
    kind: SuggestionKind
    details: str = Field(min_length=1, max_length=10_000)


class ContentController(Controller):
    path = "/content"

    @post("/{content_item_id:uuid}/suggestions")
    async def submit_suggestion(
        self,
        request: Request,
        db_session: AsyncSession,
        content_item_id: UUID,
        data: SuggestionPayload,
    ) -> dict:
        """Validate a suggestion and apply it if the validator accepts it."""
        proposer_id = get_actor_id(request)
        ledger = get_ledger_config(request)

        outcome = await suggestion_intake.apply_suggestion(
            db_session,
            get_validator(request),
            content_item_id,
            proposer_id,
            data.kind,
            data.details,
            cooldown=get_cooldown(ledger),
            stale_retries=ledger.stale_retries,
        )
        return {
            "success": outcome.success,
            "message": outcome.message,
            "suggestion_id": str(outcome.suggestion_id),
            "change_id": str(outcome.change_id) if outcome.change_id else None,
            "diff": outcome.diff,
            "reason": outcome.reason,
        }

    @get("/{content_item_id:uuid}/changes")
    async def list_changes(self, db_session: AsyncSession, content_item_id: UUID) -> dict:
        """Public history: active changes only, newest first."""
        history = await history_reader.get_history(db_session, content_item_id)
        return serialize_history(history)

    @get("/{content_item_id:uuid}/suggestions")
    async def my_suggestions(self, request: Request, db_session: AsyncSession, content_item_id: UUID) -> dict:
        """The current user's suggestions for a content item, with outcomes."""
        proposer_id = get_actor_id(request)
        if await get_content_item(db_session, content_item_id) is None:
            raise NotFoundError(
                "Content item not found",
                operation="list_suggestions",
                content_item_id=content_item_id,
                actor_id=proposer_id,
            )

        suggestions = await revision_store.list_suggestions(db_session, content_item_id, proposer_id=proposer_id)
        return {"suggestions": [serialize_suggestion(s) for s in suggestions]}
