"""In-process implementations of the storage interfaces.

Used by tests and by the server's ``memory`` storage backend.  Contents do
not survive a restart.
"""

from __future__ import annotations

from questionnaire_flow.interfaces import KeyValueStore, ProfileSink
from questionnaire_flow.models.session import OutputRecord


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed key-value store."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self.data: dict[str, bytes] = dict(initial or {})

    async def get(self, key: str) -> bytes | None:
        return self.data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self.data[key] = value

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)


class InMemoryProfileSink(ProfileSink):
    """Keeps the latest output record per user."""

    def __init__(self) -> None:
        self.records: dict[str | None, OutputRecord] = {}

    async def save_profile(self, user_id: str | None, record: OutputRecord) -> None:
        self.records[user_id] = record
