from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from palimpsest.db.base import Base


class ContentItem(Base):
    """Canonical live version of a long-form article.

    ``current_content`` is only written through the content mutator so that
    every change lands in the ledger together with the content itself.
    """

    __tablename__ = "content_items"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    current_content: Mapped[str] = mapped_column(Text, nullable=False, default="")
