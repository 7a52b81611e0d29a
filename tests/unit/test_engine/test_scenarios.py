"""End-to-end task lifecycle scenarios on the default workflow."""
from taskflow.domain.enums import (
    AuditSystemInfo, TaskPriority, TransitionErrorKind, WorkflowStateType
)
from tests.conftest import OWNER_ID

START = WorkflowStateType.START
IN_PROGRESS = WorkflowStateType.IN_PROGRESS
REVIEW = WorkflowStateType.REVIEW
COMPLETED = WorkflowStateType.COMPLETED


def _low_priority_task(task_service, project):
    return task_service.create_task(
        project.project_id, OWNER_ID, "Low priority chore", priority=TaskPriority.LOW
    )


def test_start_unconditional_edge(engine, store, task_service, project, states):
    task = _low_priority_task(task_service, project)

    result = engine.transition(task.task_id, states[IN_PROGRESS].state_id, OWNER_ID, "start it")

    assert result.success
    assert result.task.workflow_state_id == states[IN_PROGRESS].state_id
    assert result.task.completed_at is None
    [entry] = store.list_audit_entries(task.task_id)
    assert (entry.from_state_id, entry.to_state_id, entry.comment) == (
        states[START].state_id, states[IN_PROGRESS].state_id, "start it"
    )


def test_gated_completion_blocked_for_low_priority(engine, store, task_service, project, states):
    task = _low_priority_task(task_service, project)
    for target in (IN_PROGRESS, REVIEW):
        assert engine.transition(task.task_id, states[target].state_id, OWNER_ID).success

    # Gate the default Review -> Done edge
    review_to_done = store.get_transition(states[REVIEW].state_id, states[COMPLETED].state_id)
    store._transitions[review_to_done.transition_id] = review_to_done.model_copy(
        update={"condition_expression": "high_priority_only"}
    )
    before = store.get_task(task.task_id)
    audit_count = len(store.list_audit_entries(task.task_id))

    result = engine.transition(task.task_id, states[COMPLETED].state_id, OWNER_ID)

    assert result.error_kind == TransitionErrorKind.CONDITIONS_NOT_MET
    assert store.get_task(task.task_id) == before
    assert len(store.list_audit_entries(task.task_id)) == audit_count


def test_conjunctive_gate_needs_both_conditions(engine, task_service, workflow_service, project, states):
    workflow_service.add_transition(
        project.project_id, OWNER_ID, "Hotfix",
        states[START].state_id, states[COMPLETED].state_id,
        condition_expression="high_priority_only,requires_assignment"
    )
    cases = [
        (TaskPriority.HIGH, "someone", True),
        (TaskPriority.HIGH, None, False),
        (TaskPriority.LOW, "someone", False),
    ]
    for priority, assignee_id, expected in cases:
        task = task_service.create_task(
            project.project_id, OWNER_ID, f"{priority.value} task",
            priority=priority, assignee_id=assignee_id
        )
        result = engine.transition(task.task_id, states[COMPLETED].state_id, OWNER_ID)
        assert result.success is expected, (priority, assignee_id)


def test_stale_in_progress_task_auto_completes(engine, store, task_service, workflow_service, project, states, clock):
    workflow_service.add_transition(
        project.project_id, OWNER_ID, "Auto close",
        states[IN_PROGRESS].state_id, states[COMPLETED].state_id,
        condition_expression="auto_progress_24h", is_automatic=True
    )
    task = _low_priority_task(task_service, project)
    assert engine.transition(task.task_id, states[IN_PROGRESS].state_id, OWNER_ID).success

    clock.advance(hours=25)
    [processed] = engine.process_automatic_transitions(project_id=project.project_id)

    assert processed.task_id == task.task_id
    assert processed.workflow_state_id == states[COMPLETED].state_id
    assert processed.completed_at == clock.now
    entry = store.list_audit_entries(task.task_id)[-1]
    assert entry.system_info == AuditSystemInfo.AUTOMATIC
    assert entry.comment == "Automatic transition"
