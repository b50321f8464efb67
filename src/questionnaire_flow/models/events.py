"""Flow events and the transition result of the pure reducer.

Events drive :func:`questionnaire_flow.flow.reduce`:
  - AnswerEvent: record (or overwrite) an answer, run feedback and branching
  - NextEvent: advance the cursor
  - PreviousEvent: move the cursor back
  - ResetEvent: return to the initial schedule with no answers

The discriminated ``Event`` union uses the ``event`` field as its
discriminator so events can be deserialised from dicts directly.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .feedback import Feedback
from .session import Answer, SessionState


class AnswerEvent(BaseModel):
    """Record ``answer``; the cursor does not move."""

    model_config = ConfigDict(frozen=True)

    event: Literal["answer"] = "answer"
    answer: Answer


class NextEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event: Literal["next"] = "next"


class PreviousEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event: Literal["previous"] = "previous"


class ResetEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event: Literal["reset"] = "reset"


Event = Annotated[
    Union[AnswerEvent, NextEvent, PreviousEvent, ResetEvent],
    Field(discriminator="event"),
]


class Transition(BaseModel):
    """Result of applying one event.

    ``feedback`` is set only for answer events.
    """

    model_config = ConfigDict(frozen=True)

    state: SessionState
    feedback: Optional[Feedback] = None
