"""Session models — the contract between the flow manager and its callers.

These models are intentionally decoupled from the ORM models in
``questionnaire_db`` so that API consumers never see database internals.

  - Answer / SessionState: the immutable state the pure reducer operates on
  - Progress: cursor position relative to the (growing) schedule
  - DraftSnapshot: the JSON form written to the key-value store
  - OutputRecord: the finalized answer set handed to the profile store
  - QuestionPayload: flattened question for UI rendering

Answer values are canonical lists of option IDs, including for
single-select questions (a one-element list).  The output record is the
only place single-select answers are flattened to a bare option ID.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class Answer(BaseModel):
    """One recorded answer: the question ID and the selected option IDs."""

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True,
    )

    question_id: str
    value: tuple[str, ...]


class SessionState(BaseModel):
    """Immutable session state.

    ``schedule`` only ever grows; ``cursor == len(schedule)`` marks
    completion; every answered question ID is in the schedule.  The
    reducer keeps answers only for active questions and parks the cursor
    on an active question or at the end (see
    :func:`questionnaire_flow.flow.active_question_ids`).
    """

    model_config = ConfigDict(frozen=True)

    schedule: tuple[str, ...]
    cursor: int = 0
    answers: dict[str, Answer] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _chk(self):
        if not 0 <= self.cursor <= len(self.schedule):
            raise ValueError(
                f"cursor {self.cursor} out of bounds for schedule of {len(self.schedule)}"
            )
        if len(set(self.schedule)) != len(self.schedule):
            raise ValueError("schedule contains duplicate question ids")
        unscheduled = set(self.answers) - set(self.schedule)
        if unscheduled:
            raise ValueError(f"answers for unscheduled questions: {sorted(unscheduled)}")
        return self


class Progress(BaseModel):
    """Position in the schedule.  ``percentage`` is not monotonic."""

    current: int
    total: int
    percentage: int


class DraftSnapshot(BaseModel):
    """Serialized in-progress session: ``{answers, totalAnswered, lastUpdated}``.

    Answers are listed in schedule order so that replay re-fires branching
    before reaching the questions it injected.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    answers: list[Answer]
    total_answered: int
    last_updated: datetime


class OutputMetadata(BaseModel):
    """Derived summary stamped onto the output record."""

    completed_at: Optional[datetime] = None
    version: str
    questions_answered: int
    total_questions: int
    # Answered questions per category; every category is present.
    category_counts: dict[str, int]


class OutputRecord(BaseModel):
    """Finalized answer set consumed by the profile store.

    ``answers`` is keyed by question ID in schedule order: a bare option ID
    for single-select questions, a list of option IDs for multi-select.
    ``aggregates`` holds, per catalog-declared metadata key, the
    de-duplicated union of the selected options' metadata lists.
    """

    answers: dict[str, str | list[str]]
    metadata: OutputMetadata
    aggregates: dict[str, list[str]] = Field(default_factory=dict)


class QuestionPayload(BaseModel):
    """Flattened question for API consumers.

    ``selected_option_ids`` carries the stored answer so a question revisited
    via "previous" renders pre-selected.
    """

    question_id: str
    category: str
    title: str
    subtitle: str | None = None
    help_text: str | None = None
    multi_select: bool
    # [{id, label, description, exclusive}]
    options: list[dict]
    selected_option_ids: list[str] = Field(default_factory=list)
