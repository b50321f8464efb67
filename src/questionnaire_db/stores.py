"""PostgreSQL implementations of the questionnaire_flow storage interfaces.

Each call opens its own short transaction via ``session_scope``: committed on
success, rolled back on error.  Database and connection errors are translated
into the SDK's error types at this boundary so the orchestrator can absorb them.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from questionnaire_flow.errors import FinalizationError, PersistenceError
from questionnaire_flow.interfaces import KeyValueStore, ProfileSink
from questionnaire_flow.models.session import OutputRecord

from questionnaire_db.engine import session_scope
from questionnaire_db.repository import KeyValueRepository, ProfileRepository

logger = logging.getLogger(__name__)

# asyncpg raises plain OSError subclasses (e.g. ConnectionRefusedError) when
# the server is unreachable; SQLAlchemy does not wrap them.
_DB_ERRORS = (SQLAlchemyError, OSError)


class SqlKeyValueStore(KeyValueStore):
    """Key-value store backed by the ``kv_store`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._repo = KeyValueRepository()

    async def get(self, key: str) -> bytes | None:
        try:
            async with self._session_factory() as db:
                return await self._repo.get(db, key)
        except _DB_ERRORS as exc:
            raise PersistenceError(f"Reading key {key!r} failed: {exc}") from exc

    async def set(self, key: str, value: bytes) -> None:
        try:
            async with session_scope(self._session_factory) as db:
                await self._repo.put(db, key, value)
        except _DB_ERRORS as exc:
            raise PersistenceError(f"Writing key {key!r} failed: {exc}") from exc

    async def remove(self, key: str) -> None:
        try:
            async with session_scope(self._session_factory) as db:
                await self._repo.delete(db, key)
        except _DB_ERRORS as exc:
            raise PersistenceError(f"Removing key {key!r} failed: {exc}") from exc


class SqlProfileSink(ProfileSink):
    """Profile sink backed by the ``questionnaire_profiles`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._repo = ProfileRepository()

    async def save_profile(self, user_id: str | None, record: OutputRecord) -> None:
        if not user_id:
            raise FinalizationError("Cannot store a questionnaire profile without a user id")
        try:
            async with session_scope(self._session_factory) as db:
                await self._repo.upsert(
                    db,
                    user_id=user_id,
                    record=record.model_dump(mode="json"),
                    version=record.metadata.version,
                    completed_at=record.metadata.completed_at,
                )
        except _DB_ERRORS as exc:
            raise FinalizationError(
                f"Storing profile for user {user_id} failed: {exc}"
            ) from exc
        logger.info("Stored questionnaire profile for user %s", user_id)
