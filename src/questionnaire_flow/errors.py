"""Exception hierarchy for the questionnaire flow SDK.

Only :class:`ValidationError` (and the lifecycle guard
:class:`FlowStateError`) reach the caller synchronously.  The I/O errors
(:class:`PersistenceError`, :class:`SyncError`, :class:`FinalizationError`)
are raised by adapters and absorbed at the orchestrator boundary.

``ValidationError``, ``CatalogError`` and ``FlowStateError`` subclass
``ValueError`` so that callers already mapping ``ValueError`` to a client
error keep working.
"""

from __future__ import annotations


class QuestionnaireError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(QuestionnaireError, ValueError):
    """An answer referenced an unknown question/option or had the wrong shape.

    The flow state is always left unchanged when this is raised.
    """

    def __init__(self, message: str, question_id: str | None = None) -> None:
        super().__init__(message)
        self.question_id = question_id


class CatalogError(QuestionnaireError, ValueError):
    """The question catalog failed structural validation at load time."""


class FlowStateError(QuestionnaireError, ValueError):
    """An orchestrator operation was called in the wrong lifecycle status."""


class PersistenceError(QuestionnaireError):
    """Reading, writing or removing the draft failed, or the draft is corrupt."""


class SyncError(QuestionnaireError):
    """The best-effort remote upsert failed."""


class FinalizationError(QuestionnaireError):
    """The downstream profile store rejected the completed output record."""
