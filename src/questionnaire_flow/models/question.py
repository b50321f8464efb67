"""Question catalog models.

A catalog question is pure data.  Its branching and feedback behaviour is
described declaratively and interpreted by
:class:`~questionnaire_flow.evaluator.RuleEvaluator`:

  - **branching**: ``when_selected`` option IDs → ``inject`` question IDs
  - **feedback**: ordered predicate ``cases``, then per-option templates,
    then a ``default`` template

All models are frozen; the catalog is immutable after load.
"""

from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .feedback import FeedbackAction, FeedbackKind

Category = Literal["essential", "optimization", "personalization"]


class QuestionOption(BaseModel):
    """A selectable option.

    ``metadata`` is an opaque bag read only by rules and by output-record
    aggregation (e.g. ``insight`` for feedback, ``equipment`` tags).
    An ``exclusive`` option (e.g. "none of these") cannot be selected
    together with other options of a multi-select question.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    description: Optional[str] = None
    exclusive: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def insight(self) -> str:
        """The option's descriptive insight, or an empty string."""
        return str(self.metadata.get("insight") or "")


# --- Rule models ---

class Predicate(BaseModel):
    """A single condition that references an answer.

    The answer is the flattened value: an option ID for single-select
    questions, a list of option IDs for multi-select questions.  ``field``
    may be ``"count"`` to compare the number of selected options instead.

    Operators:
      - eq, ne: equality / inequality
      - lt, le, gt, ge: numeric comparisons
      - between: value is [min, max] inclusive
      - contains, not_contains: substring / element membership
      - contains_any, contains_all: set membership
      - matches: regex match
    """

    model_config = ConfigDict(frozen=True)

    qid: str
    field: Optional[Literal["count"]] = None
    op: Literal[
        "eq", "ne", "contains", "not_contains", "matches",
        "contains_any", "contains_all",
        "lt", "le", "gt", "ge", "between",
    ]
    value: Any


class FeedbackTemplate(BaseModel):
    """A feedback message template.

    ``message`` may contain the placeholders ``{label}``, ``{labels}``,
    ``{count}`` and ``{insight}``.  ``icon`` falls back to the default
    icon for ``kind``.
    """

    model_config = ConfigDict(frozen=True)

    kind: FeedbackKind
    message: str
    icon: Optional[str] = None
    action: Optional[FeedbackAction] = None


class FeedbackCase(BaseModel):
    """If ALL predicates in ``when`` hold, render ``then``."""

    model_config = ConfigDict(frozen=True)

    when: List[Predicate] = Field(min_length=1)
    then: FeedbackTemplate


class FeedbackRule(BaseModel):
    """Feedback logic for one question.

    Resolution order: first matching case, then the template keyed by the
    selected option (single-select only), then ``default``.
    """

    model_config = ConfigDict(frozen=True)

    cases: List[FeedbackCase] = Field(default_factory=list)
    options: dict[str, FeedbackTemplate] = Field(default_factory=dict)
    default: FeedbackTemplate = FeedbackTemplate(kind="positive", message="{insight}")


class BranchRule(BaseModel):
    """If any option in ``when_selected`` is chosen, schedule ``inject``."""

    model_config = ConfigDict(frozen=True)

    when_selected: List[str] = Field(min_length=1)
    inject: List[str] = Field(min_length=1)


# --- Question ---

class Question(BaseModel):
    """A catalog question."""

    model_config = ConfigDict(frozen=True)

    id: str
    category: Category
    title: str
    subtitle: Optional[str] = None
    help_text: Optional[str] = None
    multi_select: bool = False
    options: List[QuestionOption] = Field(min_length=1)
    branching: List[BranchRule] = Field(default_factory=list)
    feedback: FeedbackRule = Field(default_factory=FeedbackRule)

    @model_validator(mode="after")
    def _chk(self):
        ids = [o.id for o in self.options]
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            raise ValueError(f"duplicate option ids {dupes} in question '{self.id}'")
        known = set(ids)
        for rule in self.branching:
            unknown = [oid for oid in rule.when_selected if oid not in known]
            if unknown:
                raise ValueError(
                    f"branch rule in '{self.id}' references unknown options {unknown}"
                )
        unknown = [oid for oid in self.feedback.options if oid not in known]
        if unknown:
            raise ValueError(
                f"feedback in '{self.id}' references unknown options {unknown}"
            )
        return self

    @property
    def option_ids(self) -> list[str]:
        return [o.id for o in self.options]

    def get_option(self, option_id: str) -> QuestionOption | None:
        """Look up an option by ID, or None if this question has no such option."""
        for opt in self.options:
            if opt.id == option_id:
                return opt
        return None
