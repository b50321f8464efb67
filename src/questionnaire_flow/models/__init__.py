"""Public model re-exports for questionnaire_flow.

Consumers should import from ``questionnaire_flow.models`` rather than
reaching into sub-modules directly.
"""

# --- Events ---
from questionnaire_flow.models.events import (
    AnswerEvent,
    Event,
    NextEvent,
    PreviousEvent,
    ResetEvent,
    Transition,
)

# --- Feedback ---
from questionnaire_flow.models.feedback import Feedback, FeedbackAction, FeedbackKind

# --- Questions ---
from questionnaire_flow.models.question import (
    BranchRule,
    Category,
    FeedbackCase,
    FeedbackRule,
    FeedbackTemplate,
    Predicate,
    Question,
    QuestionOption,
)

# --- Session ---
from questionnaire_flow.models.session import (
    Answer,
    DraftSnapshot,
    OutputMetadata,
    OutputRecord,
    Progress,
    QuestionPayload,
    SessionState,
)

__all__ = [
    # Events
    "AnswerEvent",
    "Event",
    "NextEvent",
    "PreviousEvent",
    "ResetEvent",
    "Transition",
    # Feedback
    "Feedback",
    "FeedbackAction",
    "FeedbackKind",
    # Questions
    "BranchRule",
    "Category",
    "FeedbackCase",
    "FeedbackRule",
    "FeedbackTemplate",
    "Predicate",
    "Question",
    "QuestionOption",
    # Session
    "Answer",
    "DraftSnapshot",
    "OutputMetadata",
    "OutputRecord",
    "Progress",
    "QuestionPayload",
    "SessionState",
]
