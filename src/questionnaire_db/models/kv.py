"""KeyValueEntry ORM model — generic byte-valued key-value rows.

The table is shared by every feature that needs small persisted blobs.
Questionnaire drafts live under their own namespaced keys
(``questionnaire_draft:<user_id>``).
"""

from datetime import datetime, timezone

from sqlalchemy import LargeBinary, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from questionnaire_db.models.base import Base


class KeyValueEntry(Base):
    __tablename__ = "kv_store"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<KeyValueEntry(key={self.key!r}, size={len(self.value or b'')})>"
