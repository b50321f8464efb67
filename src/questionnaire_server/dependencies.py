"""FastAPI dependencies: shared singletons, caller identity, live session."""

import hmac

from fastapi import Depends, Header, HTTPException, Request

from questionnaire_flow.catalog import QuestionCatalog
from questionnaire_flow.orchestrator import SessionOrchestrator

from questionnaire_server.registry import SessionRegistry


def get_catalog(request: Request) -> QuestionCatalog:
    """The catalog loaded by the lifespan handler."""
    return request.app.state.catalog


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


async def get_user_id(
    request: Request,
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    x_proxy_secret: str | None = Header(None, alias="X-Proxy-Secret"),
) -> str:
    """Caller identity from the gateway-injected ``X-User-ID`` header.

    401 without the header.  With ``TRUSTED_PROXY_SECRET`` configured, the
    request must also present that secret in ``X-Proxy-Secret`` (403
    otherwise).
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-ID header")

    secret = request.app.state.settings.trusted_proxy_secret
    if secret and not (
        x_proxy_secret and hmac.compare_digest(x_proxy_secret, secret)
    ):
        raise HTTPException(status_code=403, detail="Untrusted caller")
    return x_user_id


def get_orchestrator(
    user_id: str = Depends(get_user_id),
    registry: SessionRegistry = Depends(get_registry),
) -> SessionOrchestrator:
    """The caller's live orchestrator; 404 until ``/questionnaire/start``."""
    return registry.get(user_id)
