"""RuleEvaluator — interprets the declarative rules attached to questions.

Two kinds of rules are evaluated when an answer is recorded:

  - **branching**: which question IDs the answer schedules
  - **feedback**: which message to show for the answer

Both are pure: given the same question, selection and answers they always
return the same result.  Rules never read the clock, draw random numbers or
perform I/O.

Predicates are evaluated against *flattened* answers: an option ID for
single-select questions and a list of option IDs for multi-select
questions (the same shape as the output record).
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Sequence

from questionnaire_flow.constants import FEEDBACK_ICONS, GENERIC_FEEDBACK_MESSAGE
from questionnaire_flow.models.feedback import Feedback
from questionnaire_flow.models.question import (
    FeedbackTemplate,
    Predicate,
    Question,
    QuestionOption,
)

logger = logging.getLogger(__name__)


class _TemplateContext(dict):
    """Leaves unknown placeholders in place instead of raising KeyError."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


class RuleEvaluator:
    """Evaluates branching and feedback rules for a recorded answer."""

    # ------------------------------------------------------------------
    # Branching
    # ------------------------------------------------------------------

    def branch_targets(
        self, question: Question, selected_ids: Sequence[str]
    ) -> list[str]:
        """Question IDs scheduled by the answer, in rule declaration order.

        Every rule with at least one of its ``when_selected`` options in the
        selection fires.  The result has no duplicates; filtering out IDs
        that are already scheduled is the caller's job.
        """
        chosen = set(selected_ids)
        targets: list[str] = []
        for rule in question.branching:
            if chosen.isdisjoint(rule.when_selected):
                continue
            for qid in rule.inject:
                if qid not in targets:
                    targets.append(qid)
        return targets

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def feedback(
        self,
        question: Question,
        selected: Sequence[QuestionOption],
        answers: dict[str, Any],
    ) -> Feedback:
        """Resolve and render the feedback for an answer.

        Args:
            question: the question that was answered
            selected: the selected options, in selection order
            answers: flattened answers keyed by question ID, already
                     including the answer being evaluated

        Returns:
            The rendered Feedback.  Resolution order is: first ``cases``
            entry whose predicates all hold, then the per-option template
            (when exactly one option is selected), then ``default``.
        """
        rule = question.feedback
        template: FeedbackTemplate | None = None

        for case in rule.cases:
            if all(self._eval_predicate(pred, answers) for pred in case.when):
                template = case.then
                break

        if template is None and len(selected) == 1:
            template = rule.options.get(selected[0].id)

        if template is None:
            template = rule.default

        return self._render(template, selected)

    @staticmethod
    def _render(
        template: FeedbackTemplate, selected: Sequence[QuestionOption]
    ) -> Feedback:
        """Fill the template placeholders from the selected options."""
        labels = ", ".join(opt.label for opt in selected)
        context = _TemplateContext(
            label=labels,
            labels=labels,
            count=len(selected),
            insight=" ".join(opt.insight for opt in selected if opt.insight),
        )
        message = template.message.format_map(context).strip()
        if not message:
            message = GENERIC_FEEDBACK_MESSAGE
        return Feedback(
            message=message,
            kind=template.kind,
            icon=template.icon or FEEDBACK_ICONS[template.kind],
            action=template.action,
        )

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    def _eval_predicate(self, pred: Predicate, answers: dict[str, Any]) -> bool:
        """True when ``pred`` holds for the flattened ``answers``.

        A predicate on an unanswered question never holds.  An empty
        multi-select answer is answered (``[]``) and counts as 0.
        """
        answer = answers.get(pred.qid)
        if answer is None:
            return False
        if pred.field == "count":
            answer = len(answer) if isinstance(answer, list) else 1

        compare = _OPERATORS.get(pred.op)
        if compare is None:
            logger.warning("Unsupported predicate operator %r on %s", pred.op, pred.qid)
            return False
        return compare(answer, pred.value)


# ----------------------------------------------------------------------
# Operator table
# ----------------------------------------------------------------------
#
# Each operator takes (answer, expected).  ``answer`` is an option ID, a
# list of option IDs, or an int for ``field: count``.  Numeric operators
# coerce both sides with float() so YAML strings like "5" compare as
# numbers; a non-numeric answer makes them False.


def _as_number(x: Any) -> float | None:
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


def _numeric(check: Callable[[float, Any], bool]) -> Callable[[Any, Any], bool]:
    def compare(answer: Any, expected: Any) -> bool:
        number = _as_number(answer)
        return number is not None and check(number, expected)

    return compare


def _contains(answer: Any, expected: Any) -> bool:
    # element of a multi-select list, substring of a single value
    if isinstance(answer, list):
        return expected in answer
    return str(expected) in str(answer)


def _contains_any(answer: Any, expected: Sequence[Any]) -> bool:
    selected = answer if isinstance(answer, list) else [answer]
    return any(item in selected for item in expected)


def _contains_all(answer: Any, expected: Sequence[Any]) -> bool:
    selected = answer if isinstance(answer, list) else [answer]
    return all(item in selected for item in expected)


_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "eq": lambda answer, expected: answer == expected,
    "ne": lambda answer, expected: answer != expected,
    "lt": _numeric(lambda n, expected: n < float(expected)),
    "le": _numeric(lambda n, expected: n <= float(expected)),
    "gt": _numeric(lambda n, expected: n > float(expected)),
    "ge": _numeric(lambda n, expected: n >= float(expected)),
    "between": _numeric(lambda n, bounds: float(bounds[0]) <= n <= float(bounds[1])),
    "contains": _contains,
    "not_contains": lambda answer, expected: not _contains(answer, expected),
    "contains_any": _contains_any,
    "contains_all": _contains_all,
    "matches": lambda answer, pattern: re.search(str(pattern), str(answer)) is not None,
}
