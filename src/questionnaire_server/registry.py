"""SessionRegistry — one live SessionOrchestrator per user.

The orchestrator keeps the session in memory and persists drafts in the
background, so the server holds it between requests.  Opening the
questionnaire again (``POST /questionnaire/start``) closes the previous
orchestrator, flushing its draft and cancelling its remote sync without
waiting on it, and starts a new one that re-reads the stored draft.
"""

from __future__ import annotations

import logging

from questionnaire_flow.catalog import QuestionCatalog
from questionnaire_flow.interfaces import KeyValueStore, ProfileSink, RemoteSync
from questionnaire_flow.orchestrator import SessionOrchestrator

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Creates, tracks and closes per-user orchestrators."""

    def __init__(
        self,
        catalog: QuestionCatalog,
        store: KeyValueStore,
        profile_sink: ProfileSink,
        *,
        remote_sync: RemoteSync | None = None,
        draft_key_prefix: str,
        draft_debounce: float,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._sink = profile_sink
        self._sync = remote_sync
        self._prefix = draft_key_prefix
        self._draft_debounce = draft_debounce
        self._sessions: dict[str, SessionOrchestrator] = {}

    def draft_key(self, user_id: str) -> str:
        return f"{self._prefix}:{user_id}"

    def get(self, user_id: str) -> SessionOrchestrator:
        """The user's live orchestrator.

        Raises:
            ValueError: if the user has not started a session.
        """
        try:
            return self._sessions[user_id]
        except KeyError:
            raise ValueError(f"Questionnaire session not found for user {user_id}") from None

    async def open(self, user_id: str) -> SessionOrchestrator:
        """Replace any live orchestrator for ``user_id`` with a fresh one."""
        previous = self._sessions.pop(user_id, None)
        if previous is not None:
            # Its draft is flushed; the in-flight remote sync is dropped.
            await previous.close(wait_for_sync=False)

        orchestrator = SessionOrchestrator(
            self._catalog,
            self._store,
            self._sink,
            remote_sync=self._sync,
            user_id=user_id,
            draft_key=self.draft_key(user_id),
            draft_debounce=self._draft_debounce,
        )
        self._sessions[user_id] = orchestrator
        return orchestrator

    async def close_all(self) -> None:
        """Flush and close every live orchestrator (app shutdown)."""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for orchestrator in sessions:
            await orchestrator.close()
        logger.info("Closed %d questionnaire sessions", len(sessions))
