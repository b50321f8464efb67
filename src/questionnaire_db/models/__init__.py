"""ORM models for questionnaire_db."""

from questionnaire_db.models.base import Base
from questionnaire_db.models.kv import KeyValueEntry
from questionnaire_db.models.profile import QuestionnaireProfile

__all__ = ["Base", "KeyValueEntry", "QuestionnaireProfile"]
