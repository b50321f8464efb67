"""Route registration — mounts all routers under ``/api/v1``."""

from fastapi import FastAPI

from questionnaire_server.routes.catalog import router as catalog_router
from questionnaire_server.routes.questionnaire import router as questionnaire_router

API_PREFIX = "/api/v1"


def register_routes(app: FastAPI) -> None:
    """Include all sub-routers under the versioned API prefix."""
    app.include_router(questionnaire_router, prefix=API_PREFIX)
    app.include_router(catalog_router, prefix=API_PREFIX)
