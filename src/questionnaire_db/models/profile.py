"""QuestionnaireProfile ORM model — one finalized output record per user.

The whole record is stored as JSONB so downstream consumers can key off
question IDs without a schema change per question.  ``version`` and
``completed_at`` are copied out of the record metadata for filtering.
"""

from datetime import datetime, timezone

from sqlalchemy import Index, Text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from questionnaire_db.models.base import Base


class QuestionnaireProfile(Base):
    """Latest completed questionnaire per user; re-completion overwrites."""

    __tablename__ = "questionnaire_profiles"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    # OutputRecord as JSON: {"answers": {...}, "metadata": {...}, "aggregates": {...}}
    record: Mapped[dict] = mapped_column(JSONB, nullable=False)
    # Catalog version the answers were collected against
    version: Mapped[str] = mapped_column(Text, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        # GIN index for JSONB lookups by answer (e.g. record->'answers'->>'fitness_goal')
        Index("ix_profile_record_gin", "record", postgresql_using="gin"),
    )

    def __repr__(self) -> str:
        return f"<QuestionnaireProfile(user={self.user_id!r}, version={self.version!r})>"
