"""questionnaire_db — PostgreSQL persistence for questionnaire drafts and profiles.

This package provides the ORM models, async engine factory, repositories,
and the ``questionnaire_flow`` storage backends built on them.  It is
consumed by the FastAPI server when the ``database`` storage backend is
selected.
"""

from questionnaire_db.engine import dispose_engine, get_engine, get_session_factory, session_scope
from questionnaire_db.models.kv import KeyValueEntry
from questionnaire_db.models.profile import QuestionnaireProfile
from questionnaire_db.repository import KeyValueRepository, ProfileRepository
from questionnaire_db.stores import SqlKeyValueStore, SqlProfileSink

__all__ = [
    "KeyValueEntry",
    "QuestionnaireProfile",
    "KeyValueRepository",
    "ProfileRepository",
    "SqlKeyValueStore",
    "SqlProfileSink",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "session_scope",
]
