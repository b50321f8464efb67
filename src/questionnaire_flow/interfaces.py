"""Abstract interfaces for the collaborators of the session orchestrator.

These ABCs define the contract that storage and sync backends must fulfil.
The SDK ships in-memory implementations (:mod:`questionnaire_flow.memory`)
and an HTTP remote sync (:mod:`questionnaire_flow.sync`); the PostgreSQL
backends live in ``questionnaire_db``.

Typical integration flow::

    orchestrator = SessionOrchestrator(
        catalog,
        store=SqlKeyValueStore(session_factory),     # KeyValueStore
        profile_sink=SqlProfileSink(session_factory), # ProfileSink
        remote_sync=HttpRemoteSync(base_url),         # RemoteSync (optional)
        user_id="u-123",
    )
    draft = await orchestrator.start()
    if draft is not None:
        await orchestrator.resume()   # or: await orchestrator.restart()
"""

from abc import ABC, abstractmethod
from typing import Any

from questionnaire_flow.models.session import OutputRecord


class KeyValueStore(ABC):
    """A generic byte-valued key-value store shared with other features.

    Implementations must raise
    :class:`~questionnaire_flow.errors.PersistenceError` on failure and
    must never touch keys other than the one they are given.
    """

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the stored value, or None when the key is absent."""

    @abstractmethod
    async def set(self, key: str, value: bytes) -> None:
        """Create or overwrite ``key``."""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete ``key``.  Removing an absent key is not an error."""


class ProfileSink(ABC):
    """Downstream consumer of finalized questionnaire output records."""

    @abstractmethod
    async def save_profile(self, user_id: str | None, record: OutputRecord) -> None:
        """Persist the record.

        Raises
        ------
        FinalizationError
            If the record is rejected or cannot be stored.  The orchestrator
            keeps the draft so the session stays resumable.
        """


class RemoteSync(ABC):
    """Best-effort upsert of in-progress questionnaire data for a user."""

    @abstractmethod
    async def upsert(self, user_id: str, payload: dict[str, Any]) -> None:
        """Send ``payload`` for ``user_id``.

        Raises
        ------
        SyncError
            On any transport or server failure.  Never surfaced to the user.
        """
