"""questionnaire_flow — adaptive questionnaire flow SDK.

Public API:
    QuestionCatalog      — loads the YAML question catalog into typed models
    FlowManager          — holds session state and applies flow transitions
    SessionOrchestrator  — drives a FlowManager with draft persistence,
                           remote sync and finalization
    SessionStatus        — lifecycle status of an orchestrated session
    RuleEvaluator        — interprets branching and feedback rules

Storage interfaces and implementations:
    KeyValueStore        — ABC for the shared byte-valued draft store
    ProfileSink          — ABC for the finalized output-record consumer
    RemoteSync           — ABC for best-effort upstream sync
    InMemoryKeyValueStore, InMemoryProfileSink, HttpRemoteSync

Errors:
    ValidationError, CatalogError, FlowStateError, PersistenceError,
    SyncError, FinalizationError
"""

from questionnaire_flow.catalog import QuestionCatalog
from questionnaire_flow.errors import (
    CatalogError,
    FinalizationError,
    FlowStateError,
    PersistenceError,
    QuestionnaireError,
    SyncError,
    ValidationError,
)
from questionnaire_flow.evaluator import RuleEvaluator
from questionnaire_flow.flow import FlowManager
from questionnaire_flow.interfaces import KeyValueStore, ProfileSink, RemoteSync
from questionnaire_flow.memory import InMemoryKeyValueStore, InMemoryProfileSink
from questionnaire_flow.models.feedback import Feedback
from questionnaire_flow.models.session import (
    Answer,
    DraftSnapshot,
    OutputRecord,
    Progress,
    QuestionPayload,
    SessionState,
)
from questionnaire_flow.orchestrator import SessionOrchestrator, SessionStatus
from questionnaire_flow.sync import HttpRemoteSync

__all__ = [
    # Flow
    "FlowManager",
    "QuestionCatalog",
    "RuleEvaluator",
    "SessionOrchestrator",
    "SessionStatus",
    # Models
    "Answer",
    "DraftSnapshot",
    "Feedback",
    "OutputRecord",
    "Progress",
    "QuestionPayload",
    "SessionState",
    # Storage
    "HttpRemoteSync",
    "InMemoryKeyValueStore",
    "InMemoryProfileSink",
    "KeyValueStore",
    "ProfileSink",
    "RemoteSync",
    # Errors
    "CatalogError",
    "FinalizationError",
    "FlowStateError",
    "PersistenceError",
    "QuestionnaireError",
    "SyncError",
    "ValidationError",
]
