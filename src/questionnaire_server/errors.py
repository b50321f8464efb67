"""Exception handlers installed on the app by ``create_app()``.

Routes let SDK exceptions propagate; these handlers turn them into JSON
error bodies.  Starlette picks the handler for the most specific class in
the exception's MRO, so ``ValidationError`` and ``FlowStateError`` (both
``ValueError`` subclasses) never reach :func:`value_error_handler`.

Answer validation messages only mention public catalog IDs and are
returned verbatim.  Everything else gets a fixed message per status code;
the original text goes to the log.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from questionnaire_flow.errors import FlowStateError, ValidationError

logger = logging.getLogger(__name__)

# Substring of a ValueError message → status code; first hit wins.
_STATUS_BY_PHRASE: tuple[tuple[str, int], ...] = (
    ("not found", 404),
    ("already exists", 409),
)

_PUBLIC_DETAIL: dict[int, str] = {
    400: "Invalid request",
    404: "Resource not found",
    409: "Resource already exists",
    500: "Internal server error",
}


def _error(status: int, detail: str | None = None, **extra) -> JSONResponse:
    body = {"detail": detail or _PUBLIC_DETAIL[status], **extra}
    return JSONResponse(status_code=status, content=body)


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Rejected answer → 422 with the message and offending question ID."""
    logger.warning("Rejected answer at %s: %s", request.url.path, exc)
    return _error(422, str(exc), question_id=exc.question_id)


async def flow_state_error_handler(request: Request, exc: FlowStateError) -> JSONResponse:
    """Operation not allowed in the session's current status → 409."""
    logger.warning("Lifecycle conflict at %s: %s", request.url.path, exc)
    return _error(409, str(exc))


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    message = str(exc)
    status = next(
        (code for phrase, code in _STATUS_BY_PHRASE if phrase in message.lower()),
        400,
    )
    logger.warning("ValueError -> %d at %s: %s", status, request.url.path, message)
    return _error(status)


async def key_error_handler(request: Request, exc: KeyError) -> JSONResponse:
    """Catalog lookups raise KeyError for unknown question IDs."""
    logger.warning("Lookup miss at %s: %s", request.url.path, exc)
    return _error(404)


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error at %s", request.url.path)
    return _error(500)
