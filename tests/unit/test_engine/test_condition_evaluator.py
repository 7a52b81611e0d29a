"""
Condition Evaluator Tests.

Covers:
    - Built-in strategies (time elapsed, priority threshold, assignment)
    - Registry registration rules
    - Conjunctive evaluation of comma-separated expressions
    - Unknown condition names (skipped, not failed)
"""
from datetime import datetime, timedelta, timezone

import pytest

from taskflow.domain.enums import TaskPriority, TimeReferenceField
from taskflow.domain.models import TaskItem, WorkflowTransition
from taskflow.engine.condition_evaluator import (
    AssignmentCondition,
    ConditionContext,
    ConditionEvaluator,
    ConditionRegistry,
    PredicateCondition,
    PriorityThresholdCondition,
    TimeElapsedCondition,
)

CREATED = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


def _task(**overrides) -> TaskItem:
    fields = dict(
        task_id=1,
        project_id=1,
        title="Task",
        priority=TaskPriority.MEDIUM,
        workflow_state_id=1,
        created_at=CREATED,
        updated_at=CREATED,
    )
    fields.update(overrides)
    return TaskItem(**fields)


def _context(task: TaskItem, now: datetime = CREATED) -> ConditionContext:
    return ConditionContext(task=task, project=None, assignee=None, owner=None, now=now)


def _transition(expression) -> WorkflowTransition:
    return WorkflowTransition(
        transition_id=1, name="Edge", from_state_id=1, to_state_id=2,
        condition_expression=expression
    )


# ═════════════════════════════════════════════════════════════════════════════
# Strategies
# ═════════════════════════════════════════════════════════════════════════════

class TestTimeElapsedCondition:

    def test_passes_exactly_at_threshold(self):
        condition = TimeElapsedCondition(delay=timedelta(hours=24))
        assert condition.evaluate(_context(_task(), now=CREATED + timedelta(hours=24)))

    def test_fails_before_threshold(self):
        condition = TimeElapsedCondition(delay=timedelta(hours=24))
        now = CREATED + timedelta(hours=23, minutes=59)
        assert not condition.evaluate(_context(_task(), now=now))

    def test_measures_from_selected_field(self):
        condition = TimeElapsedCondition(
            delay=timedelta(hours=1), reference_field=TimeReferenceField.UPDATED_AT
        )
        task = _task(updated_at=CREATED + timedelta(hours=5))
        assert not condition.evaluate(_context(task, now=CREATED + timedelta(hours=5, minutes=30)))
        assert condition.evaluate(_context(task, now=CREATED + timedelta(hours=6)))

    def test_missing_field_falls_back_to_created_at(self):
        condition = TimeElapsedCondition(
            delay=timedelta(hours=1), reference_field=TimeReferenceField.DUE_DATE
        )
        task = _task(due_date=None)
        assert condition.evaluate(_context(task, now=CREATED + timedelta(hours=1)))

    def test_naive_timestamps_are_treated_as_utc(self):
        condition = TimeElapsedCondition(delay=timedelta(hours=24))
        task = _task(created_at=datetime(2024, 1, 1, 9, 0))
        assert condition.evaluate(_context(task, now=CREATED + timedelta(days=1)))


@pytest.mark.parametrize("priority,expected", [
    (TaskPriority.LOW, False),
    (TaskPriority.MEDIUM, False),
    (TaskPriority.HIGH, True),
    (TaskPriority.CRITICAL, True),
])
def test_priority_threshold(priority, expected):
    condition = PriorityThresholdCondition(minimum=TaskPriority.HIGH)
    assert condition.evaluate(_context(_task(priority=priority))) is expected


def test_assignment_condition():
    assigned = _context(_task(assignee_id="someone"))
    unassigned = _context(_task(assignee_id=None))

    assert AssignmentCondition().evaluate(assigned)
    assert not AssignmentCondition().evaluate(unassigned)
    assert AssignmentCondition(require_assignee=False).evaluate(unassigned)


# ═════════════════════════════════════════════════════════════════════════════
# Registry
# ═════════════════════════════════════════════════════════════════════════════

class TestConditionRegistry:

    def test_defaults_are_registered(self):
        registry = ConditionRegistry.with_defaults()
        assert registry.names() == ["auto_progress_24h", "high_priority_only", "requires_assignment"]

    def test_plain_callable_is_wrapped(self):
        registry = ConditionRegistry()
        registry.register("has_due_date", lambda ctx: ctx.task.due_date is not None)

        strategy = registry.get("has_due_date")
        assert isinstance(strategy, PredicateCondition)
        assert not strategy.evaluate(_context(_task()))

    @pytest.mark.parametrize("name", ["", "   ", "a,b"])
    def test_rejects_invalid_names(self, name):
        with pytest.raises(ValueError):
            ConditionRegistry().register(name, AssignmentCondition())

    def test_rejects_non_callable(self):
        with pytest.raises(TypeError):
            ConditionRegistry().register("broken", 42)


# ═════════════════════════════════════════════════════════════════════════════
# Evaluator
# ═════════════════════════════════════════════════════════════════════════════

class TestConditionEvaluator:

    @pytest.fixture
    def evaluator(self):
        return ConditionEvaluator()

    def test_no_expression_passes(self, evaluator):
        assert evaluator.is_satisfied(_transition(None), _context(_task()))
        assert evaluator.is_satisfied(_transition(""), _context(_task()))

    def test_all_conditions_must_pass(self, evaluator):
        task = _task(priority=TaskPriority.HIGH, assignee_id=None)
        transition = _transition("high_priority_only,requires_assignment")

        assert not evaluator.is_satisfied(transition, _context(task))
        assert evaluator.failed_conditions(transition.condition_names, _context(task)) == [
            "requires_assignment"
        ]

        assigned = _task(priority=TaskPriority.HIGH, assignee_id="someone")
        assert evaluator.is_satisfied(transition, _context(assigned))

    def test_whitespace_and_empty_segments_are_ignored(self, evaluator):
        transition = _transition(" high_priority_only , ,")
        assert transition.condition_names == ["high_priority_only"]
        assert evaluator.is_satisfied(transition, _context(_task(priority=TaskPriority.CRITICAL)))

    def test_unknown_condition_names_pass(self, evaluator, caplog):
        """Unknown names are skipped with a warning rather than failing the edge."""
        transition = _transition("no_such_condition")

        with caplog.at_level("WARNING", logger="taskflow.engine.condition_evaluator"):
            assert evaluator.is_satisfied(transition, _context(_task()))

        assert "no_such_condition" in caplog.text

    def test_unknown_name_does_not_mask_failing_known_name(self, evaluator):
        transition = _transition("no_such_condition,high_priority_only")
        assert not evaluator.is_satisfied(transition, _context(_task(priority=TaskPriority.LOW)))

    def test_raising_condition_fails_closed(self):
        def explode(ctx):
            raise RuntimeError("boom")

        registry = ConditionRegistry({"explodes": explode})
        evaluator = ConditionEvaluator(registry)

        assert not evaluator.is_satisfied(_transition("explodes"), _context(_task()))
