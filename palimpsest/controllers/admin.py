"""Admin ledger controller: browse changes, roll back, edit content.

Who may call these routes is decided by the identity layer in front of the
application; handlers only require an authenticated actor.
"""

from typing import Annotated
from uuid import UUID

from litestar import Controller, Request, delete, get, post, put
from litestar.params import Parameter
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from palimpsest.controllers.helpers import get_actor_id, get_ledger_config, serialize_change
from palimpsest.db.models import ChangeType
from palimpsest.db.services import content_service, revision_store, rollback_coordinator
from palimpsest.lib.errors import NotFoundError


class ContentCreatePayload(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    content: str = ""


class ContentUpdatePayload(BaseModel):
    content: str
    description: str | None = Field(default=None, max_length=1000)


def _serialize_item(item) -> dict:
    return {
        "id": str(item.id),
        "title": item.title,
        "current_content": item.current_content,
        "created_at": item.created_at.isoformat(),
        "updated_at": item.updated_at.isoformat(),
    }


class AdminController(Controller):
    path = "/admin"

    async def _list(
        self,
        db_session: AsyncSession,
        content_item_id: UUID | None,
        include_inactive: bool,
        change_type: ChangeType | None,
        editor_id: str | None,
        limit: int,
        offset: int,
    ) -> dict:
        records, total = await revision_store.list_changes(
            db_session,
            content_item_id=content_item_id,
            include_inactive=include_inactive,
            change_type=change_type,
            editor_id=editor_id,
            limit=limit,
            offset=offset,
        )
        stats = await revision_store.count_by_change_type(
            db_session, include_inactive=include_inactive, content_item_id=content_item_id
        )
        return {
            "changes": [serialize_change(r) for r in records],
            "stats": {change_type.value: count for change_type, count in stats.items()},
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + limit < total,
        }

    @get("/changes")
    async def list_changes(
        self,
        request: Request,
        db_session: AsyncSession,
        include_inactive: bool = False,
        change_type: ChangeType | None = None,
        editor_id: str | None = None,
        limit: Annotated[int, Parameter(ge=1, le=200)] = 50,
        offset: Annotated[int, Parameter(ge=0)] = 0,
    ) -> dict:
        """All ledger entries across content items, newest first."""
        get_actor_id(request)
        return await self._list(db_session, None, include_inactive, change_type, editor_id, limit, offset)

    @get("/content/{content_item_id:uuid}/changes")
    async def list_item_changes(
        self,
        request: Request,
        db_session: AsyncSession,
        content_item_id: UUID,
        include_inactive: bool = True,
        change_type: ChangeType | None = None,
        editor_id: str | None = None,
        limit: Annotated[int, Parameter(ge=1, le=200)] = 50,
        offset: Annotated[int, Parameter(ge=0)] = 0,
    ) -> dict:
        """Full ledger of one content item, rolled back entries included by default."""
        actor_id = get_actor_id(request)
        if await content_service.get_content_item(db_session, content_item_id) is None:
            raise NotFoundError(
                "Content item not found",
                operation="list_changes",
                content_item_id=content_item_id,
                actor_id=actor_id,
            )
        return await self._list(
            db_session, content_item_id, include_inactive, change_type, editor_id, limit, offset
        )

    @get("/changes/{change_id:uuid}")
    async def change_detail(self, request: Request, db_session: AsyncSession, change_id: UUID) -> dict:
        """A single ledger entry with its before/after snapshots."""
        actor_id = get_actor_id(request)
        record = await revision_store.get_change(db_session, change_id)
        if record is None:
            raise NotFoundError("Change not found", operation="get_change", actor_id=actor_id, change_id=change_id)
        return serialize_change(record, include_content=True)

    @post("/content/{content_item_id:uuid}/changes/{change_id:uuid}/rollback", status_code=200)
    async def rollback(
        self,
        request: Request,
        db_session: AsyncSession,
        content_item_id: UUID,
        change_id: UUID,
    ) -> dict:
        """Undo a change by committing a compensating one."""
        actor_id = get_actor_id(request)
        outcome = await rollback_coordinator.rollback_change(
            db_session,
            content_item_id,
            change_id,
            actor_id,
            drift_policy=get_ledger_config(request).rollback_drift,
        )
        return {
            "success": outcome.success,
            "message": outcome.message,
            "rollback_change": serialize_change(outcome.rollback_change),
        }

    @post("/content")
    async def create_content(self, request: Request, db_session: AsyncSession, data: ContentCreatePayload) -> dict:
        actor_id = get_actor_id(request)
        item = await content_service.create_content_item(db_session, data.title, data.content, actor_id)
        return _serialize_item(item)

    @put("/content/{content_item_id:uuid}")
    async def update_content(
        self,
        request: Request,
        db_session: AsyncSession,
        content_item_id: UUID,
        data: ContentUpdatePayload,
    ) -> dict:
        """Replace the content directly, recorded as a manual change."""
        editor_id = get_actor_id(request)
        record = await content_service.update_content(
            db_session, content_item_id, data.content, editor_id, data.description
        )
        return serialize_change(record)

    @delete("/content/{content_item_id:uuid}", status_code=200)
    async def delete_content(self, request: Request, db_session: AsyncSession, content_item_id: UUID) -> dict:
        actor_id = get_actor_id(request)
        if not await content_service.delete_content_item(db_session, content_item_id, actor_id):
            raise NotFoundError(
                "Content item not found",
                operation="delete_content_item",
                content_item_id=content_item_id,
                actor_id=actor_id,
            )
        return {"deleted": str(content_item_id)}
