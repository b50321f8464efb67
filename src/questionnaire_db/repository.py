"""Async CRUD repositories for the key-value and profile tables.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries.  Nothing here commits.

Writes use PostgreSQL ``INSERT ... ON CONFLICT DO UPDATE`` so that a save is
a single round trip regardless of whether the row exists.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from questionnaire_db.models.kv import KeyValueEntry
from questionnaire_db.models.profile import QuestionnaireProfile


class KeyValueRepository:
    """Read/write operations on the ``kv_store`` table."""

    async def get(self, db: AsyncSession, key: str) -> bytes | None:
        """Value stored under ``key``, or None."""
        row = await db.get(KeyValueEntry, key)
        return row.value if row is not None else None

    async def put(self, db: AsyncSession, key: str, value: bytes) -> None:
        """Create or overwrite ``key``.  Only this key's row is touched."""
        now = datetime.now(timezone.utc)
        stmt = (
            pg_insert(KeyValueEntry)
            .values(key=key, value=value, updated_at=now)
            .on_conflict_do_update(
                index_elements=[KeyValueEntry.key],
                set_={"value": value, "updated_at": now},
            )
        )
        await db.execute(stmt)

    async def delete(self, db: AsyncSession, key: str) -> bool:
        """Delete ``key``; returns whether a row was removed."""
        result = await db.execute(delete(KeyValueEntry).where(KeyValueEntry.key == key))
        return result.rowcount > 0


class ProfileRepository:
    """Read/write operations on the ``questionnaire_profiles`` table."""

    async def get(self, db: AsyncSession, user_id: str) -> QuestionnaireProfile | None:
        return await db.get(QuestionnaireProfile, user_id)

    async def upsert(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        record: dict[str, Any],
        version: str,
        completed_at: datetime | None,
    ) -> None:
        """Insert or replace the user's profile record."""
        now = datetime.now(timezone.utc)
        values = {
            "record": record,
            "version": version,
            "completed_at": completed_at,
            "updated_at": now,
        }
        stmt = (
            pg_insert(QuestionnaireProfile)
            .values(user_id=user_id, **values)
            .on_conflict_do_update(
                index_elements=[QuestionnaireProfile.user_id],
                set_=values,
            )
        )
        await db.execute(stmt)
