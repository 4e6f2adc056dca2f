from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from advanced_alchemy.types import DateTimeUTC
from sqlalchemy import Boolean, CheckConstraint, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from palimpsest.db.base import Base
from palimpsest.db.models.enums import ChangeType, RecordState

if TYPE_CHECKING:
    from palimpsest.db.models.suggestion import Suggestion


class ChangeHistoryRecord(Base):
    """Immutable ledger entry for one content transition.

    Only the rollback-marking fields ever change after insert, and only once.
    """

    __tablename__ = "change_history"
    __table_args__ = (
        UniqueConstraint("content_item_id", "sequence", name="uq_change_history_item_sequence"),
        CheckConstraint(
            "is_active OR (rolled_back_at IS NOT NULL AND rolled_back_by IS NOT NULL)",
            name="rollback_marked",
        ),
    )

    content_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("content_items.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Every mutation, rollbacks included, is anchored to exactly one suggestion
    suggestion_id: Mapped[UUID] = mapped_column(
        ForeignKey("suggestions.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    suggestion: Mapped["Suggestion"] = relationship("Suggestion", lazy="selectin")

    editor_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Per-item ordinal, 1 for the first change
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    change_type: Mapped[ChangeType] = mapped_column(
        Enum(
            ChangeType,
            name="change_type",
            native_enum=False,
            length=32,
            values_callable=lambda types: [t.value for t in types],
        ),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Display-only diff; the snapshots are the canonical state
    diff: Mapped[str] = mapped_column(Text, nullable=False, default="")
    before_content: Mapped[str] = mapped_column(Text, nullable=False)
    after_content: Mapped[str] = mapped_column(Text, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    rolled_back_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    rolled_back_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    @property
    def state(self) -> RecordState:
        return RecordState.ACTIVE if self.is_active else RecordState.ROLLED_BACK
