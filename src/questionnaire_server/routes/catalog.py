"""Catalog endpoints — read-only view of the loaded question catalog."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from questionnaire_flow.catalog import QuestionCatalog
from questionnaire_flow.flow import initial_state, question_payload
from questionnaire_flow.models.session import QuestionPayload

from questionnaire_server.dependencies import get_catalog

router = APIRouter(tags=["catalog"])


class CatalogResponse(BaseModel):
    version: str
    # IDs scheduled when a session starts
    initial_schedule: list[str]
    questions: list[QuestionPayload]


@router.get("/catalog/questions")
async def list_questions(
    catalog: QuestionCatalog = Depends(get_catalog),
) -> CatalogResponse:
    """Return every catalog question, flattened for rendering."""
    empty = initial_state(catalog)
    return CatalogResponse(
        version=catalog.version,
        initial_schedule=list(empty.schedule),
        questions=[question_payload(q, empty) for q in catalog],
    )


@router.get("/catalog/questions/{question_id}")
async def get_question(
    question_id: str,
    catalog: QuestionCatalog = Depends(get_catalog),
) -> QuestionPayload:
    """Return one question (404 for unknown IDs)."""
    return question_payload(catalog.get(question_id), initial_state(catalog))
