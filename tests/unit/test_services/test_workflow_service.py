"""
Workflow Service Tests.

Covers:
    - Default workflow seeded with new projects
    - initialize_default_transitions preconditions and result
    - add_state / add_transition validation
    - Owner-only access
"""
import pytest

from taskflow.domain.enums import TaskPriority, WorkflowStateType
from taskflow.domain.errors import (
    AlreadyExistsError, NotFoundError, ProjectNotFoundError, ValidationError, WorkflowValidationError
)
from tests.conftest import ASSIGNEE_ID, OWNER_ID

START = WorkflowStateType.START
IN_PROGRESS = WorkflowStateType.IN_PROGRESS
REVIEW = WorkflowStateType.REVIEW
COMPLETED = WorkflowStateType.COMPLETED


# ── Default workflow ─────────────────────────────────────────────────────────

def test_new_project_gets_default_states(workflow_service, project):
    states = workflow_service.list_states(project.project_id, OWNER_ID)

    assert [(s.name, s.type, s.order, s.color) for s in states] == [
        ("Todo", START, 1, "#6B7280"),
        ("In Progress", IN_PROGRESS, 2, "#3B82F6"),
        ("Review", REVIEW, 3, "#F59E0B"),
        ("Done", COMPLETED, 4, "#10B981"),
    ]


def test_new_project_gets_default_transitions(workflow_service, project):
    transitions = workflow_service.list_transitions(project.project_id, OWNER_ID)

    assert [(t.name, t.from_state_name, t.to_state_name) for t in transitions] == [
        ("Start Progress", "Todo", "In Progress"),
        ("Send for Review", "In Progress", "Review"),
        ("Complete Task", "Review", "Done"),
        ("Back to Todo", "Review", "Todo"),
        ("Back to Progress", "Review", "In Progress"),
        ("Reopen Task", "Done", "Todo"),
    ]
    assert not any(t.is_automatic for t in transitions)


def test_default_state_is_lowest_ordered_start_state(workflow_service, project, states):
    workflow_service.add_state(project.project_id, OWNER_ID, "Backlog", START, order=10)

    assert workflow_service.get_default_state(project.project_id).state_id == states[START].state_id


def test_default_state_missing(workflow_service, users):
    bare = workflow_service.create_project("Bare", owner_id=OWNER_ID, seed_workflow=False)

    with pytest.raises(NotFoundError):
        workflow_service.get_default_state(bare.project_id)


# ── initialize_default_transitions ───────────────────────────────────────────

@pytest.fixture
def bare_project(workflow_service, users):
    project = workflow_service.create_project("Bare", owner_id=OWNER_ID, seed_workflow=False)
    for name, state_type in [("TODO", START), ("DOING", IN_PROGRESS), ("BLOCKED", REVIEW), ("DONE", COMPLETED)]:
        workflow_service.add_state(project.project_id, OWNER_ID, name, state_type)
    return project


def test_initialize_default_transitions(workflow_service, bare_project):
    created = workflow_service.initialize_default_transitions(bare_project.project_id, OWNER_ID)
    listed = workflow_service.list_transitions(bare_project.project_id, OWNER_ID)

    assert len(created) == 6
    assert [(t.name, t.from_state_name, t.to_state_name) for t in listed] == [
        ("Start Progress", "TODO", "DOING"),
        ("Complete Task", "DOING", "DONE"),
        ("Block Task", "TODO", "BLOCKED"),
        ("Block In Progress", "DOING", "BLOCKED"),
        ("Unblock to TODO", "BLOCKED", "TODO"),
        ("Reopen Task", "DONE", "TODO"),
    ]


def test_initialize_refuses_when_transitions_exist(workflow_service, project):
    with pytest.raises(WorkflowValidationError, match="already has workflow transitions"):
        workflow_service.initialize_default_transitions(project.project_id, OWNER_ID)


def test_initialize_requires_all_state_types(workflow_service, users):
    project = workflow_service.create_project("Partial", owner_id=OWNER_ID, seed_workflow=False)
    workflow_service.add_state(project.project_id, OWNER_ID, "Todo", START)
    workflow_service.add_state(project.project_id, OWNER_ID, "Done", COMPLETED)

    with pytest.raises(WorkflowValidationError) as exc_info:
        workflow_service.initialize_default_transitions(project.project_id, OWNER_ID)

    assert exc_info.value.details["missing_types"] == ["InProgress", "Review"]


def test_initialize_is_owner_only(workflow_service, bare_project):
    with pytest.raises(ProjectNotFoundError):
        workflow_service.initialize_default_transitions(bare_project.project_id, ASSIGNEE_ID)


# ── Definition edits ─────────────────────────────────────────────────────────

def test_add_transition_rejects_foreign_state(workflow_service, project, states):
    other = workflow_service.create_project("Other", owner_id=OWNER_ID)
    foreign_start = workflow_service.get_default_state(other.project_id)

    with pytest.raises(WorkflowValidationError):
        workflow_service.add_transition(
            project.project_id, OWNER_ID, "Leak",
            states[IN_PROGRESS].state_id, foreign_start.state_id
        )


def test_add_transition_rejects_duplicate_pair(workflow_service, project, states):
    with pytest.raises(AlreadyExistsError):
        workflow_service.add_transition(
            project.project_id, OWNER_ID, "Again",
            states[START].state_id, states[IN_PROGRESS].state_id
        )


def test_add_transition_normalizes_conditions(workflow_service, project, states):
    transition = workflow_service.add_transition(
        project.project_id, OWNER_ID, "Fast track",
        states[START].state_id, states[COMPLETED].state_id,
        condition_expression=" high_priority_only ,, requires_assignment "
    )

    assert transition.condition_expression == "high_priority_only,requires_assignment"
    assert transition.order == 7


def test_add_transition_rejects_empty_condition_expression(workflow_service, project, states):
    with pytest.raises(WorkflowValidationError):
        workflow_service.add_transition(
            project.project_id, OWNER_ID, "Blank",
            states[START].state_id, states[COMPLETED].state_id,
            condition_expression=" , "
        )


def test_add_state_is_owner_only(workflow_service, project):
    with pytest.raises(ProjectNotFoundError):
        workflow_service.add_state(project.project_id, ASSIGNEE_ID, "Sneaky", START)


def test_available_conditions(workflow_service):
    assert "auto_progress_24h" in workflow_service.available_conditions()


# ── Tasks ────────────────────────────────────────────────────────────────────

def test_task_created_in_default_state(task_service, project, states):
    task = task_service.create_task(
        project.project_id, OWNER_ID, "  Trim me  ", priority=TaskPriority.HIGH
    )

    assert task.title == "Trim me"
    assert task.workflow_state_id == states[START].state_id
    assert task.completed_at is None
    assert task.version == 1


def test_task_title_required(task_service, project):
    with pytest.raises(ValidationError):
        task_service.create_task(project.project_id, OWNER_ID, "   ")


def test_task_visible_to_assignee_only_among_non_owners(task_service, task):
    assert task_service.get_task(task.task_id, ASSIGNEE_ID).task_id == task.task_id
