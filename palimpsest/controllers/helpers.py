"""Shared helpers for ledger controllers."""

from datetime import timedelta
from typing import Any

from litestar import Request
from litestar.exceptions import NotAuthorizedException

from palimpsest.config import LedgerConfig
from palimpsest.db.models import ChangeHistoryRecord, Suggestion
from palimpsest.db.services.history_reader import ContentHistory
from palimpsest.lib.validator import ContentValidator

# Written by the identity layer in front of the ledger
SESSION_USER_ID = "user_id"


def get_actor_id(request: Request) -> str:
    """Get the acting user from the session, or refuse the request."""
    actor_id = request.session.get(SESSION_USER_ID)
    if not actor_id:
        raise NotAuthorizedException("Authentication required")
    return str(actor_id)


def get_validator(request: Request) -> ContentValidator:
    return request.app.state.validator


def get_ledger_config(request: Request) -> LedgerConfig:
    return request.app.state.ledger


def get_cooldown(ledger: LedgerConfig) -> timedelta | None:
    if ledger.suggestion_cooldown_minutes <= 0:
        return None
    return timedelta(minutes=ledger.suggestion_cooldown_minutes)


def serialize_suggestion(suggestion: Suggestion) -> dict[str, Any]:
    return {
        "id": str(suggestion.id),
        "content_item_id": str(suggestion.content_item_id),
        "proposer_id": suggestion.proposer_id,
        "kind": suggestion.kind.value,
        "details": suggestion.details,
        "is_approved": suggestion.is_approved,
        "is_applied": suggestion.is_applied,
        "rejection_reason": suggestion.rejection_reason,
        "created_at": suggestion.created_at.isoformat(),
        "processed_at": suggestion.processed_at.isoformat() if suggestion.processed_at else None,
        "applied_at": suggestion.applied_at.isoformat() if suggestion.applied_at else None,
    }


def serialize_change(record: ChangeHistoryRecord, include_content: bool = False) -> dict[str, Any]:
    """Serialize a ledger entry for the admin API.

    Snapshots are large, so they are only included for single-change views.
    """
    data = {
        "id": str(record.id),
        "content_item_id": str(record.content_item_id),
        "sequence": record.sequence,
        "change_type": record.change_type.value,
        "state": record.state.value,
        "description": record.description,
        "editor_id": record.editor_id,
        "diff": record.diff,
        "is_active": record.is_active,
        "created_at": record.created_at.isoformat(),
        "rolled_back_at": record.rolled_back_at.isoformat() if record.rolled_back_at else None,
        "rolled_back_by": record.rolled_back_by,
        "suggestion": serialize_suggestion(record.suggestion) if record.suggestion else None,
    }
    if include_content:
        data["before_content"] = record.before_content
        data["after_content"] = record.after_content
    return data


def serialize_history(history: ContentHistory) -> dict[str, Any]:
    item = history.content_item
    return {
        "content_item": {
            "id": str(item.id),
            "title": item.title,
            "created_at": item.created_at.isoformat(),
            "updated_at": item.updated_at.isoformat(),
        },
        "changes": [
            {
                "id": str(change.id),
                "sequence": change.sequence,
                "change_type": change.change_type.value,
                "description": change.description,
                "created_at": change.created_at.isoformat(),
                "suggestion_kind": change.suggestion_kind.value if change.suggestion_kind else None,
                "editor": change.editor,
            }
            for change in history.changes
        ],
        "total_changes": history.total_changes,
    }
