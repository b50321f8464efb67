"""Flow manager — pure session-state transitions plus a thin stateful holder.

Session state is an immutable :class:`SessionState`.  Every change goes
through :func:`reduce`, which maps ``(catalog, state, event)`` to a
:class:`Transition` holding the new state (and, for answers, the rendered
feedback).  :class:`FlowManager` owns the single mutable reference to the
current state and exposes the navigation API used by the orchestrator.

Transitions:

  - **answer**: validate, store/overwrite the answer, render feedback, and
    append any branch-injected question IDs that are not yet scheduled.
    The cursor does not move unless the question under it was deactivated.
  - **next**: move to the next active question, or to ``len(schedule)``
  - **previous**: move to the previous active question, if any
  - **reset**: back to the essential questions with no answers

The schedule is append-only: IDs are never removed or reordered, so the
cursor stays valid and earlier questions stay reachable via "previous".

A scheduled question is *active* when it is essential or when the current
answer of another active question injects it.  Changing an answer can
therefore deactivate questions injected by the old answer (and anything
they injected in turn).  Inactive questions keep their place in the
schedule but are skipped by navigation, lose their stored answer and are
left out of progress, the draft and the output record.  Reselecting the
trigger reactivates them in place.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Sequence

from questionnaire_flow.catalog import QuestionCatalog
from questionnaire_flow.constants import CATEGORIES
from questionnaire_flow.errors import ValidationError
from questionnaire_flow.evaluator import RuleEvaluator
from questionnaire_flow.models.events import (
    AnswerEvent,
    Event,
    NextEvent,
    PreviousEvent,
    ResetEvent,
    Transition,
)
from questionnaire_flow.models.feedback import Feedback
from questionnaire_flow.models.question import Question, QuestionOption
from questionnaire_flow.models.session import (
    Answer,
    OutputMetadata,
    OutputRecord,
    Progress,
    QuestionPayload,
    SessionState,
)

logger = logging.getLogger(__name__)

# Stateless; shared by every transition.
_evaluator = RuleEvaluator()


# ======================================================================
# Pure functions over SessionState
# ======================================================================

def initial_state(catalog: QuestionCatalog) -> SessionState:
    """Fresh state: all essential questions scheduled, cursor 0, no answers."""
    return SessionState(schedule=tuple(catalog.essential_ids()))


def make_answer(catalog: QuestionCatalog, question_id: str, value: Any) -> Answer:
    """Convert a caller-supplied value into a canonical :class:`Answer`.

    Single-select questions take one option (an ID or a QuestionOption);
    multi-select questions take a list or tuple of options, which may be
    empty.  A mismatch in shape raises ``ValidationError``.  Option IDs are
    checked later, by the answer transition.
    """
    if question_id not in catalog:
        raise ValidationError(f"Unknown question '{question_id}'", question_id)
    question = catalog.get(question_id)

    if question.multi_select:
        if not isinstance(value, (list, tuple)):
            raise ValidationError(
                f"Question '{question_id}' is multi-select and expects a list of options, "
                f"got {type(value).__name__}",
                question_id,
            )
        items = list(value)
    else:
        if not isinstance(value, (str, QuestionOption)):
            raise ValidationError(
                f"Question '{question_id}' is single-select and expects one option, "
                f"got {type(value).__name__}",
                question_id,
            )
        items = [value]

    ids: list[str] = []
    for item in items:
        oid = item.id if isinstance(item, QuestionOption) else item
        if not isinstance(oid, str):
            raise ValidationError(
                f"Option values for '{question_id}' must be option ids, got {oid!r}",
                question_id,
            )
        ids.append(oid)
    return Answer(question_id=question_id, value=tuple(ids))


def reduce(catalog: QuestionCatalog, state: SessionState, event: Event) -> Transition:
    """Apply one event to ``state`` and return the resulting transition.

    Raises:
        ValidationError: for an answer event that references an unknown or
            unscheduled or inactive question, an unknown or duplicate
            option, an exclusive option combined with others, or a
            single-select answer with other than one option.
    """
    if isinstance(event, AnswerEvent):
        return _apply_answer(catalog, state, event.answer)

    if isinstance(event, NextEvent):
        if state.cursor < len(state.schedule):
            live = set(active_question_ids(catalog, state))
            cursor = _seek_forward(state.schedule, live, state.cursor + 1)
            state = state.model_copy(update={"cursor": cursor})
        return Transition(state=state)

    if isinstance(event, PreviousEvent):
        live = set(active_question_ids(catalog, state))
        cursor = state.cursor - 1
        while cursor >= 0 and state.schedule[cursor] not in live:
            cursor -= 1
        if cursor >= 0:
            state = state.model_copy(update={"cursor": cursor})
        return Transition(state=state)

    if isinstance(event, ResetEvent):
        return Transition(state=initial_state(catalog))

    raise ValueError(f"Unknown flow event: {event!r}")


def _apply_answer(
    catalog: QuestionCatalog, state: SessionState, answer: Answer
) -> Transition:
    question = _validate_answer(catalog, state, answer)

    schedule = list(state.schedule)
    for qid in _evaluator.branch_targets(question, answer.value):
        if qid not in schedule:
            schedule.append(qid)

    grown = SessionState(
        schedule=tuple(schedule),
        cursor=state.cursor,
        answers={**state.answers, answer.question_id: answer},
    )
    active = active_question_ids(catalog, grown)
    live = set(active)
    answers = {qid: a for qid, a in grown.answers.items() if qid in live}
    dropped = sorted(set(grown.answers) - live)
    if dropped:
        logger.debug(
            "Answer to '%s' deactivated %s; their answers were discarded",
            answer.question_id, dropped,
        )

    new_state = SessionState(
        schedule=grown.schedule,
        cursor=_seek_forward(grown.schedule, live, state.cursor),
        answers=answers,
    )
    selected = [question.get_option(oid) for oid in answer.value]
    feedback = _evaluator.feedback(
        question, selected, flatten_answers(catalog, active, answers)
    )
    return Transition(state=new_state, feedback=feedback)


def _validate_answer(
    catalog: QuestionCatalog, state: SessionState, answer: Answer
) -> Question:
    qid = answer.question_id
    if qid not in catalog:
        raise ValidationError(f"Unknown question '{qid}'", qid)
    if qid not in state.schedule:
        raise ValidationError(f"Question '{qid}' is not scheduled in this session", qid)
    if qid not in active_question_ids(catalog, state):
        raise ValidationError(
            f"Question '{qid}' is no longer active: no current answer schedules it", qid
        )

    question = catalog.get(qid)
    if not question.multi_select and len(answer.value) != 1:
        raise ValidationError(
            f"Question '{qid}' is single-select and expects exactly one option, "
            f"got {len(answer.value)}",
            qid,
        )

    seen: set[str] = set()
    exclusive: str | None = None
    for oid in answer.value:
        option = question.get_option(oid)
        if option is None:
            raise ValidationError(f"Unknown option '{oid}' for question '{qid}'", qid)
        if oid in seen:
            raise ValidationError(f"Duplicate option '{oid}' for question '{qid}'", qid)
        if option.exclusive:
            exclusive = oid
        seen.add(oid)
    if exclusive is not None and len(seen) > 1:
        raise ValidationError(
            f"Option '{exclusive}' for question '{qid}' cannot be combined with other options",
            qid,
        )
    return question


def active_question_ids(catalog: QuestionCatalog, state: SessionState) -> tuple[str, ...]:
    """Scheduled question IDs that are currently active, in schedule order.

    Essential questions are always active.  Any other scheduled question is
    active while the current answer of some active question injects it.
    """
    essential = set(catalog.essential_ids())
    live = {qid for qid in state.schedule if qid in essential}
    grew = True
    while grew:
        grew = False
        for qid in state.schedule:
            answer = state.answers.get(qid)
            if qid not in live or answer is None:
                continue
            for target in _evaluator.branch_targets(catalog.get(qid), answer.value):
                if target not in live:
                    live.add(target)
                    grew = True
    return tuple(qid for qid in state.schedule if qid in live)


def _seek_forward(schedule: Sequence[str], live: set[str], start: int) -> int:
    """First index at or after ``start`` holding an active ID, else ``len(schedule)``."""
    index = start
    while index < len(schedule) and schedule[index] not in live:
        index += 1
    return index


def flatten_answers(
    catalog: QuestionCatalog,
    order: Sequence[str],
    answers: dict[str, Answer],
) -> dict[str, str | list[str]]:
    """Answers keyed by question ID, in ``order``.

    Single-select answers become a bare option ID; multi-select answers a
    list of option IDs.
    """
    flat: dict[str, str | list[str]] = {}
    for qid in order:
        answer = answers.get(qid)
        if answer is None:
            continue
        if catalog.get(qid).multi_select:
            flat[qid] = list(answer.value)
        else:
            flat[qid] = answer.value[0]
    return flat


def get_current_question(catalog: QuestionCatalog, state: SessionState) -> Question | None:
    """The question under the cursor, or None once the flow is complete."""
    if state.cursor >= len(state.schedule):
        return None
    return catalog.get(state.schedule[state.cursor])


def get_progress(catalog: QuestionCatalog, state: SessionState) -> Progress:
    """Progress through the active questions of the schedule.

    ``current`` is the 1-based position of the cursor among the active
    questions, clamped to ``total``; ``percentage`` is rounded half up and
    clamped to [0, 100].  An empty schedule counts as complete.
    """
    active = set(active_question_ids(catalog, state))
    total = len(active)
    if total == 0:
        return Progress(current=0, total=0, percentage=100)
    passed = sum(1 for qid in state.schedule[:state.cursor] if qid in active)
    current = min(passed + 1, total)
    # floor(100 * current / total + 0.5) in integer arithmetic
    percentage = (200 * current + total) // (2 * total)
    return Progress(current=current, total=total, percentage=max(0, min(100, percentage)))


def is_completed(state: SessionState) -> bool:
    return state.cursor >= len(state.schedule)


def to_output_record(
    catalog: QuestionCatalog,
    state: SessionState,
    completed_at: datetime | None = None,
) -> OutputRecord:
    """Project the session into the output record.  Does not touch ``state``.

    Only active questions are reported; ``total_questions`` counts them.
    """
    active = active_question_ids(catalog, state)
    answered = [qid for qid in active if qid in state.answers]

    category_counts = {category: 0 for category in CATEGORIES}
    for qid in answered:
        category_counts[catalog.get(qid).category] += 1

    aggregates: dict[str, list[str]] = {}
    for key in catalog.aggregate_keys:
        values: list[str] = []
        for qid in answered:
            question = catalog.get(qid)
            for oid in state.answers[qid].value:
                raw = question.get_option(oid).metadata.get(key)
                items = raw if isinstance(raw, list) else ([] if raw is None else [raw])
                for item in items:
                    if item not in values:
                        values.append(item)
        aggregates[key] = values

    return OutputRecord(
        answers=flatten_answers(catalog, active, state.answers),
        metadata=OutputMetadata(
            completed_at=completed_at,
            version=catalog.version,
            questions_answered=len(answered),
            total_questions=len(active),
            category_counts=category_counts,
        ),
        aggregates=aggregates,
    )


def replay(catalog: QuestionCatalog, answers: Iterable[Answer]) -> SessionState:
    """Rebuild session state from stored answers.

    Each answer goes through the same answer transition used live, so
    branching re-fires and reconstructs the schedule.  Answers whose
    question is not (yet) active are retried after every pass that made
    progress.  Answers that never validate (question no longer reachable,
    option removed from the catalog) are skipped with a warning.  Finally
    the cursor is advanced past every answered question, stopping at the
    first unanswered one.
    """
    state = initial_state(catalog)
    pending = list(answers)

    while pending:
        deferred: list[Answer] = []
        for answer in pending:
            if (
                answer.question_id in catalog
                and answer.question_id not in active_question_ids(catalog, state)
            ):
                deferred.append(answer)
                continue
            try:
                state = reduce(catalog, state, AnswerEvent(answer=answer)).state
            except ValidationError as exc:
                logger.warning("Skipping stored answer for '%s': %s", answer.question_id, exc)
        if len(deferred) == len(pending):
            for answer in deferred:
                logger.warning(
                    "Skipping stored answer for '%s': question is not active",
                    answer.question_id,
                )
            break
        pending = deferred

    while state.cursor < len(state.schedule) and state.schedule[state.cursor] in state.answers:
        state = reduce(catalog, state, NextEvent()).state
    return state


def question_payload(question: Question, state: SessionState) -> QuestionPayload:
    """Flatten a question for UI rendering, with its stored answer pre-selected."""
    answer = state.answers.get(question.id)
    return QuestionPayload(
        question_id=question.id,
        category=question.category,
        title=question.title,
        subtitle=question.subtitle,
        help_text=question.help_text,
        multi_select=question.multi_select,
        options=[
            {
                "id": o.id,
                "label": o.label,
                "description": o.description,
                "exclusive": o.exclusive,
            }
            for o in question.options
        ],
        selected_option_ids=list(answer.value) if answer else [],
    )


# ======================================================================
# FlowManager
# ======================================================================

class FlowManager:
    """Holds the current :class:`SessionState` and applies transitions to it.

    Usage::

        flow = FlowManager(catalog)
        q = flow.get_current_question()
        feedback = flow.answer_question(q.id, "gym")
        flow.next_question()
    """

    def __init__(self, catalog: QuestionCatalog, state: SessionState | None = None) -> None:
        self._catalog = catalog
        self._state = state if state is not None else initial_state(catalog)

    @classmethod
    def restore(cls, catalog: QuestionCatalog, answers: Iterable[Answer]) -> FlowManager:
        """A manager whose state is rebuilt from stored answers via :func:`replay`."""
        return cls(catalog, replay(catalog, answers))

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def catalog(self) -> QuestionCatalog:
        return self._catalog

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def scheduled_question_ids(self) -> list[str]:
        return list(self._state.schedule)

    @property
    def active_question_ids(self) -> list[str]:
        """Scheduled IDs still reachable through the current answers."""
        return list(active_question_ids(self._catalog, self._state))

    @property
    def cursor(self) -> int:
        return self._state.cursor

    @property
    def answers(self) -> dict[str, Answer]:
        return dict(self._state.answers)

    def dispatch(self, event: Event) -> Transition:
        """Apply ``event``; the stored state only changes if it succeeds."""
        transition = reduce(self._catalog, self._state, event)
        self._state = transition.state
        return transition

    # ------------------------------------------------------------------
    # Navigation and answers
    # ------------------------------------------------------------------

    def get_current_question(self) -> Question | None:
        return get_current_question(self._catalog, self._state)

    def answer_question(self, question_id: str, value: Any) -> Feedback:
        """Record an answer and return its feedback.  The cursor does not move."""
        answer = make_answer(self._catalog, question_id, value)
        return self.dispatch(AnswerEvent(answer=answer)).feedback

    def next_question(self) -> bool:
        """Advance the cursor; returns whether a question remains to be shown."""
        self.dispatch(NextEvent())
        return not self.is_completed()

    def previous_question(self) -> bool:
        """Move the cursor back; returns whether it moved."""
        before = self._state.cursor
        self.dispatch(PreviousEvent())
        return self._state.cursor != before

    def can_go_back(self) -> bool:
        return self._state.cursor > 0

    def selected_option_ids(self, question_id: str) -> list[str]:
        """Stored option IDs for ``question_id`` (empty if unanswered)."""
        answer = self._state.answers.get(question_id)
        return list(answer.value) if answer else []

    def reset(self) -> None:
        self.dispatch(ResetEvent())

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    def get_progress(self) -> Progress:
        return get_progress(self._catalog, self._state)

    def is_completed(self) -> bool:
        return is_completed(self._state)

    def current_payload(self) -> QuestionPayload | None:
        question = self.get_current_question()
        if question is None:
            return None
        return question_payload(question, self._state)

    def to_output_record(self, completed_at: datetime | None = None) -> OutputRecord:
        return to_output_record(self._catalog, self._state, completed_at)
