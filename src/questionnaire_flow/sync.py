"""HttpRemoteSync — best-effort upsert of questionnaire data over HTTP.

Sends ``PUT {base_url}/users/{user_id}/questionnaire`` with the draft JSON.
Transport and HTTP status failures are raised as
:class:`~questionnaire_flow.errors.SyncError`; retrying is the
orchestrator's job.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from questionnaire_flow.errors import SyncError
from questionnaire_flow.interfaces import RemoteSync

logger = logging.getLogger(__name__)


class HttpRemoteSync(RemoteSync):
    """Remote sync backed by an ``httpx.AsyncClient``.

    Pass ``client`` to share a client (or to inject a mock transport in
    tests); otherwise one is created and closed by :meth:`aclose`.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def upsert(self, user_id: str, payload: dict[str, Any]) -> None:
        try:
            resp = await self._client.put(f"/users/{user_id}/questionnaire", json=payload)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise SyncError(f"Remote sync for user {user_id} failed: {exc}") from exc
        logger.debug("Remote sync for user %s: HTTP %d", user_id, resp.status_code)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
