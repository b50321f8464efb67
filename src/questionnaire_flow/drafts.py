"""DraftStore — reads and writes the draft snapshot under one namespaced key.

The draft is the JSON document ``{answers, totalAnswered, lastUpdated}``.
All backend and decoding failures surface as
:class:`~questionnaire_flow.errors.PersistenceError`; a corrupt document is
reported the same way so the orchestrator can degrade to a fresh session.
"""

from __future__ import annotations

import logging
from datetime import datetime

from pydantic import ValidationError as PydanticValidationError

from questionnaire_flow.constants import DRAFT_STORAGE_KEY
from questionnaire_flow.errors import PersistenceError
from questionnaire_flow.interfaces import KeyValueStore
from questionnaire_flow.models.session import DraftSnapshot, SessionState

logger = logging.getLogger(__name__)


def build_snapshot(state: SessionState, now: datetime) -> DraftSnapshot:
    """Snapshot of the answers in ``state``, in schedule order.

    The state only holds answers to active questions, so answers to
    questions deactivated by a changed branching answer are never written.
    """
    answers = [state.answers[qid] for qid in state.schedule if qid in state.answers]
    return DraftSnapshot(answers=answers, total_answered=len(answers), last_updated=now)


def encode_snapshot(snapshot: DraftSnapshot) -> bytes:
    return snapshot.model_dump_json(by_alias=True).encode("utf-8")


def decode_snapshot(raw: bytes) -> DraftSnapshot:
    """Parse a stored draft.

    Raises:
        PersistenceError: if the bytes are not a valid draft document.
    """
    try:
        return DraftSnapshot.model_validate_json(raw)
    except PydanticValidationError as exc:
        raise PersistenceError(f"Corrupt questionnaire draft: {exc}") from exc


class DraftStore:
    """Draft persistence on top of a shared :class:`KeyValueStore`."""

    def __init__(self, store: KeyValueStore, key: str = DRAFT_STORAGE_KEY) -> None:
        self._store = store
        self.key = key

    async def load(self) -> DraftSnapshot | None:
        """The stored draft, or None when there is none.

        Raises:
            PersistenceError: if the read fails or the draft is corrupt.
        """
        raw = await self._store.get(self.key)
        if raw is None:
            return None
        return decode_snapshot(raw)

    async def save(self, snapshot: DraftSnapshot) -> None:
        await self._store.set(self.key, encode_snapshot(snapshot))
        logger.debug("Saved draft %s (%d answers)", self.key, snapshot.total_answered)

    async def clear(self) -> None:
        await self._store.remove(self.key)
        logger.debug("Removed draft %s", self.key)
