from datetime import datetime
from uuid import UUID

from advanced_alchemy.types import DateTimeUTC
from sqlalchemy import Boolean, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from palimpsest.db.base import Base
from palimpsest.db.models.enums import SuggestionKind


class Suggestion(Base):
    """A request to change a content item.

    Rollbacks and manual edits create synthetic suggestions of kind ``other``
    so that every ledger entry is anchored to one.
    """

    __tablename__ = "suggestions"

    content_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("content_items.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # External identity of whoever proposed the change
    proposer_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    kind: Mapped[SuggestionKind] = mapped_column(
        Enum(
            SuggestionKind,
            name="suggestion_kind",
            native_enum=False,
            length=32,
            values_callable=lambda kinds: [k.value for k in kinds],
        ),
        nullable=False,
    )
    details: Mapped[str] = mapped_column(Text, nullable=False)

    # Outcome
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    is_applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    validator_response: Mapped[str | None] = mapped_column(Text, nullable=True)

    processed_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True, index=True)
    applied_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
