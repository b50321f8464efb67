"""Feedback models produced by the rule evaluator.

Feedback is transient: it is returned to the caller of ``answer_question``
and never stored in session state or in the draft.  Only the triggering
answer is persisted.

Feedback kinds:
  - positive: affirming message for a good fit
  - suggestion: nudge towards a better choice
  - warning: the combination of answers may be risky or unrealistic
  - insight: informative message about what the choice implies
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

FeedbackKind = Literal["positive", "suggestion", "warning", "insight"]


class FeedbackAction(BaseModel):
    """Optional call-to-action attached to a feedback message.

    ``token`` is opaque to the engine; the UI maps it to a callback.
    """

    model_config = ConfigDict(frozen=True)

    label: str
    token: str


class Feedback(BaseModel):
    """Rendered feedback for a single answer."""

    model_config = ConfigDict(frozen=True)

    message: str
    kind: FeedbackKind
    icon: str
    action: Optional[FeedbackAction] = None
