"""RuleEvaluator unit tests — predicate operators, branching and feedback.

Operators under test (evaluator._OPERATORS): eq, ne, lt, le, gt, ge,
between, contains, not_contains, contains_any, contains_all, matches.
Single-select answers are bare option IDs, multi-select answers lists;
``field: count`` compares the number of selected options.

Feedback resolution order: first matching case, then the per-option
template (single option selected), then the default template.
"""

import pytest

from helpers.catalogs import opt, question
from questionnaire_flow.constants import FEEDBACK_ICONS, GENERIC_FEEDBACK_MESSAGE
from questionnaire_flow.evaluator import RuleEvaluator
from questionnaire_flow.flow import FlowManager
from questionnaire_flow.models.feedback import FeedbackAction
from questionnaire_flow.models.question import (
    BranchRule,
    FeedbackCase,
    FeedbackRule,
    FeedbackTemplate,
    Predicate,
)


@pytest.fixture
def evaluator():
    """Fresh RuleEvaluator for each test."""
    return RuleEvaluator()


def _tpl(message, kind="positive", **kw):
    """Shorthand to build a FeedbackTemplate."""
    return FeedbackTemplate(kind=kind, message=message, **kw)


# =====================================================================
# Predicate operator tests
# =====================================================================


class TestPredicateOperators:
    """Each operator has at least one positive and one negative case."""

    def test_eq(self, evaluator):
        pred = Predicate(qid="q1", op="eq", value="gym")
        assert evaluator._eval_predicate(pred, {"q1": "gym"}) is True
        assert evaluator._eval_predicate(pred, {"q1": "home"}) is False

    def test_ne(self, evaluator):
        pred = Predicate(qid="q1", op="ne", value="gym")
        assert evaluator._eval_predicate(pred, {"q1": "home"}) is True
        assert evaluator._eval_predicate(pred, {"q1": "gym"}) is False

    def test_numeric_comparisons(self, evaluator):
        """Numeric operators coerce string values from YAML."""
        assert evaluator._eval_predicate(Predicate(qid="n", op="lt", value="5"), {"n": 3}) is True
        assert evaluator._eval_predicate(Predicate(qid="n", op="le", value=3), {"n": 3}) is True
        assert evaluator._eval_predicate(Predicate(qid="n", op="gt", value=3), {"n": 3}) is False
        assert evaluator._eval_predicate(Predicate(qid="n", op="ge", value=3), {"n": 3}) is True

    def test_numeric_on_non_number_is_false(self, evaluator):
        pred = Predicate(qid="q1", op="gt", value=1)
        assert evaluator._eval_predicate(pred, {"q1": "gym"}) is False

    def test_between(self, evaluator):
        pred = Predicate(qid="n", op="between", value=[2, 4])
        assert evaluator._eval_predicate(pred, {"n": 2}) is True, "Lower bound inclusive"
        assert evaluator._eval_predicate(pred, {"n": 4}) is True, "Upper bound inclusive"
        assert evaluator._eval_predicate(pred, {"n": 5}) is False

    def test_contains_list_and_string(self, evaluator):
        pred = Predicate(qid="q1", op="contains", value="b")
        assert evaluator._eval_predicate(pred, {"q1": ["a", "b"]}) is True
        assert evaluator._eval_predicate(pred, {"q1": ["a"]}) is False
        assert evaluator._eval_predicate(pred, {"q1": "abc"}) is True, "Substring on strings"

    def test_not_contains(self, evaluator):
        pred = Predicate(qid="q1", op="not_contains", value="b")
        assert evaluator._eval_predicate(pred, {"q1": ["a"]}) is True
        assert evaluator._eval_predicate(pred, {"q1": ["a", "b"]}) is False

    def test_contains_any(self, evaluator):
        pred = Predicate(qid="q1", op="contains_any", value=["x", "y"])
        assert evaluator._eval_predicate(pred, {"q1": ["a", "y"]}) is True
        assert evaluator._eval_predicate(pred, {"q1": ["a"]}) is False
        assert evaluator._eval_predicate(pred, {"q1": "x"}) is True, "Single-select answer"

    def test_contains_all(self, evaluator):
        pred = Predicate(qid="q1", op="contains_all", value=["x", "y"])
        assert evaluator._eval_predicate(pred, {"q1": ["y", "x", "z"]}) is True
        assert evaluator._eval_predicate(pred, {"q1": ["x"]}) is False
        assert evaluator._eval_predicate(pred, {"q1": "x"}) is False

    def test_matches(self, evaluator):
        pred = Predicate(qid="q1", op="matches", value=r"^home_")
        assert evaluator._eval_predicate(pred, {"q1": "home_bodyweight"}) is True
        assert evaluator._eval_predicate(pred, {"q1": "gym"}) is False

    def test_unanswered_question_is_false(self, evaluator):
        """A predicate on an unanswered question never matches."""
        pred = Predicate(qid="missing", op="ne", value="x")
        assert evaluator._eval_predicate(pred, {}) is False

    def test_count_field(self, evaluator):
        """field=count compares the number of selected options."""
        pred = Predicate(qid="q1", field="count", op="ge", value=2)
        assert evaluator._eval_predicate(pred, {"q1": ["a", "b"]}) is True
        assert evaluator._eval_predicate(pred, {"q1": ["a"]}) is False
        assert evaluator._eval_predicate(
            Predicate(qid="q1", field="count", op="eq", value=0), {"q1": []}
        ) is True, "Empty multi-select counts as 0, not unanswered"
        assert evaluator._eval_predicate(
            Predicate(qid="q1", field="count", op="eq", value=1), {"q1": "a"}
        ) is True, "Single-select counts as 1"


# =====================================================================
# Branching
# =====================================================================


class TestBranchTargets:
    """branch_targets returns injected IDs in rule order without duplicates."""

    @pytest.fixture
    def q(self):
        return question(
            "loc",
            ["home", "gym", "mixed"],
            branching=[
                BranchRule(when_selected=["home", "mixed"], inject=["home_gear", "mobility"]),
                BranchRule(when_selected=["gym", "mixed"], inject=["gym_gear", "mobility"]),
            ],
        )

    def test_single_rule(self, evaluator, q):
        assert evaluator.branch_targets(q, ["gym"]) == ["gym_gear", "mobility"]

    def test_multiple_rules_deduplicated(self, evaluator, q):
        assert evaluator.branch_targets(q, ["mixed"]) == ["home_gear", "mobility", "gym_gear"]

    def test_no_rule_fires(self, evaluator):
        q = question("plain", ["a", "b"])
        assert evaluator.branch_targets(q, ["a"]) == []

    def test_empty_selection(self, evaluator, q):
        assert evaluator.branch_targets(q, []) == []


# =====================================================================
# Feedback resolution and rendering
# =====================================================================


class TestFeedback:
    """Case → per-option → default resolution, placeholder rendering."""

    @pytest.fixture
    def q(self):
        return question(
            "goal",
            [
                opt("cut", "Cut", insight="Deficit first."),
                opt("bulk", "Bulk", insight="Eat more."),
                opt("maintain", "Maintain"),
            ],
            multi=True,
            feedback=FeedbackRule(
                cases=[
                    FeedbackCase(
                        when=[Predicate(qid="goal", op="contains_all", value=["cut", "bulk"])],
                        then=_tpl("Pick one direction.", kind="warning"),
                    ),
                ],
                options={"cut": _tpl("Cutting: {insight}", kind="insight")},
            ),
        )

    def test_case_wins_over_option_template(self, evaluator, q):
        selected = [q.get_option("cut"), q.get_option("bulk")]
        fb = evaluator.feedback(q, selected, {"goal": ["cut", "bulk"]})
        assert fb.kind == "warning"
        assert fb.message == "Pick one direction."

    def test_option_template_for_single_selection(self, evaluator, q):
        fb = evaluator.feedback(q, [q.get_option("cut")], {"goal": ["cut"]})
        assert fb.kind == "insight"
        assert fb.message == "Cutting: Deficit first."
        assert fb.icon == FEEDBACK_ICONS["insight"], "Icon falls back to the kind default"

    def test_default_template_uses_insight(self, evaluator, q):
        fb = evaluator.feedback(q, [q.get_option("bulk")], {"goal": ["bulk"]})
        assert fb.kind == "positive"
        assert fb.message == "Eat more."

    def test_empty_render_falls_back_to_generic_message(self, evaluator, q):
        """An option without insight renders the default template to ''."""
        fb = evaluator.feedback(q, [q.get_option("maintain")], {"goal": ["maintain"]})
        assert fb.message == GENERIC_FEEDBACK_MESSAGE

    def test_label_count_placeholders(self, evaluator):
        q = question(
            "gear",
            [opt("mat", "Mat"), opt("bands", "Bands")],
            multi=True,
            feedback=FeedbackRule(default=_tpl("{count} picked: {labels} {unknown}")),
        )
        fb = evaluator.feedback(q, [q.get_option("mat"), q.get_option("bands")], {})
        assert fb.message == "2 picked: Mat, Bands {unknown}", (
            "Unknown placeholders are left in place"
        )

    def test_custom_icon_and_action(self, evaluator):
        action = FeedbackAction(label="Switch", token="switch_it")
        q = question(
            "days",
            ["3", "5"],
            feedback=FeedbackRule(default=_tpl("Careful.", kind="warning", icon="!", action=action)),
        )
        fb = evaluator.feedback(q, [q.get_option("5")], {"days": "5"})
        assert fb.icon == "!"
        assert fb.action == action

    def test_evaluation_is_deterministic(self, evaluator, q):
        selected = [q.get_option("cut")]
        assert evaluator.feedback(q, selected, {"goal": ["cut"]}) == evaluator.feedback(
            q, selected, {"goal": ["cut"]}
        )


# =====================================================================
# Bundled catalog rules
# =====================================================================


class TestBundledCatalogFeedback:
    """Feedback declared in data/questionnaire.yaml, exercised through the flow."""

    def _flow_at(self, catalog, **answers):
        flow = FlowManager(catalog)
        for qid, value in answers.items():
            flow.answer_question(qid, value)
        return flow

    def test_beginner_with_five_days_warns_with_action(self, catalog):
        flow = self._flow_at(catalog, experience_level="beginner")
        fb = flow.answer_question("availability", "5_days")
        assert fb.kind == "warning"
        assert fb.action is not None
        assert fb.action.token == "set_availability_3_days"

    def test_five_days_when_advanced_uses_insight(self, catalog):
        flow = self._flow_at(catalog, experience_level="advanced")
        fb = flow.answer_question("availability", "5_days")
        assert fb.kind == "positive"
        assert "Five days lets us target" in fb.message

    def test_beginner_with_performance_goal_suggests(self, catalog):
        flow = self._flow_at(catalog, fitness_goal="athletic_performance")
        fb = flow.answer_question("experience_level", "beginner")
        assert fb.kind == "suggestion"

    def test_beginner_alone_is_positive(self, catalog):
        fb = FlowManager(catalog).answer_question("experience_level", "beginner")
        assert fb.kind == "positive"

    def test_health_conditions_cases(self, catalog):
        flow = FlowManager(catalog)
        assert flow.answer_question("health_conditions", ["no_limitations"]).kind == "positive"
        assert flow.answer_question("health_conditions", []).kind == "suggestion"
        assert flow.answer_question("health_conditions", ["heart_condition"]).kind == "warning"
        fb = flow.answer_question("health_conditions", ["back_pain", "knee_issues"])
        assert fb.kind == "insight"
        assert fb.message.endswith("Back pain, Knee issues.")

    def test_workout_location_label(self, catalog):
        fb = FlowManager(catalog).answer_question("workout_location", "gym")
        assert fb.message.startswith("Gym it is!")
