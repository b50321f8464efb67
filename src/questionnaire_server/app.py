"""FastAPI application for the questionnaire flow.

``create_app(settings)`` wires the lifespan (catalog, storage backend,
remote sync, session registry), CORS, the exception handlers from
:mod:`questionnaire_server.errors`, the ``/api/v1`` routers and ``/health``.

``app`` is the module-level ASGI export for ``uvicorn
questionnaire_server.app:app``; ``cli()`` backs the ``questionnaire-server``
console script.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from questionnaire_db.engine import dispose_engine, get_engine, get_session_factory
from questionnaire_db.stores import SqlKeyValueStore, SqlProfileSink
from questionnaire_flow.catalog import QuestionCatalog
from questionnaire_flow.errors import FlowStateError, ValidationError
from questionnaire_flow.memory import InMemoryKeyValueStore, InMemoryProfileSink
from questionnaire_flow.sync import HttpRemoteSync

from questionnaire_server.config import ServerSettings, load_settings
from questionnaire_server.errors import (
    flow_state_error_handler,
    generic_error_handler,
    key_error_handler,
    validation_error_handler,
    value_error_handler,
)
from questionnaire_server.registry import SessionRegistry
from questionnaire_server.routes import register_routes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the per-process collaborators and release them on shutdown.

    Startup:
      1. Load the question catalog
      2. Build the draft store and profile sink for the configured backend
      3. Build the optional remote sync client
      4. Stash the catalog and a ``SessionRegistry`` on ``app.state``

    Shutdown:
      1. Flush and close live sessions
      2. Close the sync client and dispose the database engine
    """
    settings: ServerSettings = app.state.settings

    catalog = QuestionCatalog.load(settings.catalog_path)

    if settings.storage_backend == "database":
        factory = get_session_factory()
        store = SqlKeyValueStore(factory)
        sink = SqlProfileSink(factory)
    else:
        store = InMemoryKeyValueStore()
        sink = InMemoryProfileSink()
    logger.info("Using %s storage backend", settings.storage_backend)

    remote_sync = None
    if settings.sync_base_url:
        remote_sync = HttpRemoteSync(
            settings.sync_base_url, timeout=settings.sync_timeout_seconds,
        )
        logger.info("Remote sync enabled: %s", settings.sync_base_url)

    registry = SessionRegistry(
        catalog,
        store,
        sink,
        remote_sync=remote_sync,
        draft_key_prefix=settings.draft_key_prefix,
        draft_debounce=settings.draft_debounce_seconds,
    )

    app.state.catalog = catalog
    app.state.store = store
    app.state.profile_sink = sink
    app.state.registry = registry

    yield

    # --- Shutdown ---
    await registry.close_all()
    if remote_sync is not None:
        await remote_sync.aclose()
    if settings.storage_backend == "database":
        await dispose_engine()


def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """The configured application; settings default to :func:`load_settings`."""
    if settings is None:
        settings = load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Questionnaire Flow API Server",
        description="REST API for the adaptive intake questionnaire",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(FlowStateError, flow_state_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(KeyError, key_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    @app.get("/health")
    async def health() -> dict:
        """Readiness probe — verifies DB connectivity for the database backend."""
        if settings.storage_backend != "database":
            return {"status": "ok", "storage": settings.storage_backend}
        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "ok", "storage": settings.storage_backend}
        except SQLAlchemyError as exc:
            logger.error("Health check failed: %s", exc)
            return {"status": "error", "detail": str(exc)}

    register_routes(app)

    return app


app = create_app()


def cli() -> None:
    """Console-script entry point: ``questionnaire-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "questionnaire_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
