"""Questionnaire endpoints — drive one user's flow through the orchestrator.

Typical client sequence::

    POST /questionnaire/start        → draft? then /resume or /restart
    GET  /questionnaire/step         → render the current question
    POST /questionnaire/answers      → feedback for the selection
    POST /questionnaire/next         → next question (finalizes at the end)
    POST /questionnaire/previous     → back, with the answer pre-selected

Validation errors return 422; calling an operation in the wrong session
status (e.g. answering while a draft decision is pending) returns 409.
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from questionnaire_flow.models.feedback import Feedback
from questionnaire_flow.models.session import OutputRecord, Progress, QuestionPayload
from questionnaire_flow.orchestrator import SessionOrchestrator

from questionnaire_server.dependencies import get_orchestrator, get_registry, get_user_id
from questionnaire_server.registry import SessionRegistry

router = APIRouter(tags=["questionnaire"])


# ------------------------------------------------------------------
# Request / response models
# ------------------------------------------------------------------

class AnswerRequest(BaseModel):
    """Body for POST /questionnaire/answers.

    ``value`` is one option ID for single-select questions and a list of
    option IDs (possibly empty) for multi-select questions.
    """
    question_id: str
    value: Any


class StepView(BaseModel):
    """What the client needs to render the current position."""

    status: str
    question: QuestionPayload | None = None
    progress: Progress
    completed: bool
    can_go_back: bool


class DraftSummary(BaseModel):
    total_answered: int
    last_updated: datetime


class StartResponse(BaseModel):
    # Set when a stored draft awaits a resume/restart decision
    draft: DraftSummary | None = None
    step: StepView


class AnswerResponse(BaseModel):
    feedback: Feedback
    step: StepView


def _step(orchestrator: SessionOrchestrator) -> StepView:
    flow = orchestrator.flow
    return StepView(
        status=orchestrator.status.value,
        question=flow.current_payload(),
        progress=flow.get_progress(),
        completed=flow.is_completed(),
        can_go_back=flow.can_go_back(),
    )


# ------------------------------------------------------------------
# Session lifecycle
# ------------------------------------------------------------------

@router.post("/questionnaire/start")
async def start(
    user_id: str = Depends(get_user_id),
    registry: SessionRegistry = Depends(get_registry),
) -> StartResponse:
    """Open the questionnaire, reporting a stored draft if there is one."""
    orchestrator = await registry.open(user_id)
    draft = await orchestrator.start()
    summary = None
    if draft is not None:
        summary = DraftSummary(
            total_answered=draft.total_answered, last_updated=draft.last_updated,
        )
    return StartResponse(draft=summary, step=_step(orchestrator))


@router.post("/questionnaire/resume")
async def resume(
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> StepView:
    """Continue from the stored draft."""
    await orchestrator.resume()
    return _step(orchestrator)


@router.post("/questionnaire/restart")
async def restart(
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> StepView:
    """Discard the stored draft and start from the first question."""
    await orchestrator.restart()
    return _step(orchestrator)


@router.post("/questionnaire/foreground")
async def foreground(
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> StepView:
    """Retry deferred work (pending finalization, failed draft writes)."""
    await orchestrator.on_foreground()
    return _step(orchestrator)


# ------------------------------------------------------------------
# Flow
# ------------------------------------------------------------------

@router.get("/questionnaire/step")
async def get_step(
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> StepView:
    return _step(orchestrator)


@router.post("/questionnaire/answers")
async def submit_answer(
    body: AnswerRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> AnswerResponse:
    """Record an answer; the cursor does not move."""
    feedback = await orchestrator.answer(body.question_id, body.value)
    return AnswerResponse(feedback=feedback, step=_step(orchestrator))


@router.post("/questionnaire/next")
async def next_question(
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> StepView:
    await orchestrator.next()
    return _step(orchestrator)


@router.post("/questionnaire/previous")
async def previous_question(
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> StepView:
    await orchestrator.previous()
    return _step(orchestrator)


@router.get("/questionnaire/record")
async def preview_record(
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> OutputRecord:
    """The finalized record, or a preview projected from the current answers."""
    return orchestrator.output_record or orchestrator.flow.to_output_record()
