"""
Automatic Transition Processor Tests.

Covers:
    - Only Start / InProgress tasks are candidates
    - At most one transition per task per pass
    - First passing edge by order wins
    - Project owner recorded as actor, automatic system info and comment
    - Deadline stops the pass early
    - A failing task does not stop the pass
    - A task moved elsewhere mid-pass is left alone
"""
from datetime import timedelta

import pytest

from taskflow.config.settings import settings
from taskflow.domain.enums import AuditSystemInfo, TaskPriority, TransitionErrorKind, WorkflowStateType
from taskflow.repositories.memory_store import InMemoryWorkflowStore
from tests.conftest import OWNER_ID


@pytest.fixture
def pipeline(workflow_service, users):
    """Project with Todo -> Doing -> Done, both edges automatic and unconditional"""
    project = workflow_service.create_project("Pipeline", owner_id=OWNER_ID, seed_workflow=False)
    pid = project.project_id

    todo = workflow_service.add_state(pid, OWNER_ID, "Todo", WorkflowStateType.START)
    doing = workflow_service.add_state(pid, OWNER_ID, "Doing", WorkflowStateType.IN_PROGRESS)
    review = workflow_service.add_state(pid, OWNER_ID, "Review", WorkflowStateType.REVIEW)
    done = workflow_service.add_state(pid, OWNER_ID, "Done", WorkflowStateType.COMPLETED)

    workflow_service.add_transition(pid, OWNER_ID, "Auto start", todo.state_id, doing.state_id, is_automatic=True)
    workflow_service.add_transition(pid, OWNER_ID, "Auto finish", doing.state_id, done.state_id, is_automatic=True)

    return {"project": project, "todo": todo, "doing": doing, "review": review, "done": done}


def _create(task_service, pipeline, title, **kwargs):
    return task_service.create_task(pipeline["project"].project_id, OWNER_ID, title, **kwargs)


def test_one_transition_per_pass(engine, store, task_service, pipeline):
    task = _create(task_service, pipeline, "Chained")

    first = engine.process_automatic_transitions()
    assert [t.task_id for t in first] == [task.task_id]
    assert first[0].workflow_state_id == pipeline["doing"].state_id

    second = engine.process_automatic_transitions()
    assert second[0].workflow_state_id == pipeline["done"].state_id
    assert second[0].completed_at is not None

    assert engine.process_automatic_transitions() == []


def test_audit_records_owner_and_automatic_marker(engine, store, task_service, pipeline):
    task = _create(task_service, pipeline, "Audited")

    engine.process_automatic_transitions()

    [entry] = store.list_audit_entries(task.task_id)
    assert entry.user_id == OWNER_ID
    assert entry.system_info == AuditSystemInfo.AUTOMATIC
    assert entry.comment == settings.automatic_transition_comment


def test_only_start_and_in_progress_tasks_are_candidates(engine, store, task_service, workflow_service, pipeline):
    pid = pipeline["project"].project_id
    workflow_service.add_transition(
        pid, OWNER_ID, "Auto approve", pipeline["review"].state_id, pipeline["done"].state_id,
        is_automatic=True
    )
    workflow_service.add_transition(
        pid, OWNER_ID, "Send to review", pipeline["todo"].state_id, pipeline["review"].state_id
    )
    task = _create(task_service, pipeline, "In review")
    assert engine.transition(task.task_id, pipeline["review"].state_id, OWNER_ID).success

    assert engine.process_automatic_transitions() == []
    assert store.get_task(task.task_id).workflow_state_id == pipeline["review"].state_id


def test_manual_edges_are_ignored(engine, store, task_service, project, task, states):
    assert engine.process_automatic_transitions(project_id=project.project_id) == []
    assert store.list_audit_entries(task.task_id) == []


def test_first_passing_edge_in_order_wins(engine, store, task_service, workflow_service, users):
    project = workflow_service.create_project("Ordered", owner_id=OWNER_ID, seed_workflow=False)
    pid = project.project_id
    todo = workflow_service.add_state(pid, OWNER_ID, "Todo", WorkflowStateType.START)
    doing = workflow_service.add_state(pid, OWNER_ID, "Doing", WorkflowStateType.IN_PROGRESS)
    review = workflow_service.add_state(pid, OWNER_ID, "Review", WorkflowStateType.REVIEW)

    workflow_service.add_transition(
        pid, OWNER_ID, "Escalate", todo.state_id, review.state_id,
        condition_expression="high_priority_only", is_automatic=True, order=1
    )
    workflow_service.add_transition(
        pid, OWNER_ID, "Start", todo.state_id, doing.state_id, is_automatic=True, order=2
    )

    urgent = task_service.create_task(pid, OWNER_ID, "Urgent", priority=TaskPriority.HIGH)
    routine = task_service.create_task(pid, OWNER_ID, "Routine", priority=TaskPriority.LOW)

    moved = {t.task_id: t.workflow_state_id for t in engine.process_automatic_transitions(project_id=pid)}

    assert moved == {urgent.task_id: review.state_id, routine.task_id: doing.state_id}


def test_time_condition_gates_automatic_edge(engine, task_service, workflow_service, users, clock):
    project = workflow_service.create_project("Timed", owner_id=OWNER_ID, seed_workflow=False)
    pid = project.project_id
    todo = workflow_service.add_state(pid, OWNER_ID, "Todo", WorkflowStateType.START)
    doing = workflow_service.add_state(pid, OWNER_ID, "Doing", WorkflowStateType.IN_PROGRESS)
    workflow_service.add_transition(
        pid, OWNER_ID, "Auto progress", todo.state_id, doing.state_id,
        condition_expression="auto_progress_24h", is_automatic=True
    )
    task = task_service.create_task(pid, OWNER_ID, "Waiting")

    clock.advance(hours=12)
    assert engine.process_automatic_transitions(project_id=pid) == []

    clock.advance(hours=13)
    assert [t.task_id for t in engine.process_automatic_transitions(project_id=pid)] == [task.task_id]


def test_project_filter(engine, task_service, workflow_service, pipeline, project, states):
    in_pipeline = _create(task_service, pipeline, "Pipeline task")

    assert engine.process_automatic_transitions(project_id=project.project_id) == []
    moved = engine.process_automatic_transitions(project_id=pipeline["project"].project_id)
    assert [t.task_id for t in moved] == [in_pipeline.task_id]


def test_deadline_in_the_past_processes_nothing(engine, task_service, pipeline, clock):
    _create(task_service, pipeline, "Never reached")

    assert engine.process_automatic_transitions(deadline=clock.now - timedelta(seconds=1)) == []


def test_deadline_returns_partial_results(store, task_service, pipeline, clock):
    from taskflow.engine.engine import WorkflowEngine

    class TickingClock:
        """Advances one minute every time it is read"""
        def __init__(self, start):
            self.now = start

        def __call__(self):
            self.now += timedelta(minutes=1)
            return self.now

    ticking = TickingClock(clock.now)
    engine = WorkflowEngine(store, clock=ticking)
    tasks = [_create(task_service, pipeline, f"Task {i}") for i in range(5)]

    # Deadline lands after the first task's clock reads but before the last task's
    processed = engine.process_automatic_transitions(deadline=clock.now + timedelta(minutes=4))

    assert 0 < len(processed) < len(tasks)
    assert [t.task_id for t in processed] == [t.task_id for t in tasks[:len(processed)]]


class _BrokenProjectStore(InMemoryWorkflowStore):
    """Raises when loading one specific project"""

    broken_project_id = None

    def get_project(self, project_id):
        if project_id == self.broken_project_id:
            raise RuntimeError("project document is corrupt")
        return super().get_project(project_id)


def test_failing_task_does_not_stop_pass(clock, users):
    from taskflow.engine.engine import WorkflowEngine
    from taskflow.services.task_service import TaskService
    from taskflow.services.workflow_service import WorkflowService

    store = _BrokenProjectStore()
    for user in users.values():
        store.create_user(user)
    workflow_service = WorkflowService(store)
    task_service = TaskService(store, workflow_service)

    def build_project(name):
        project = workflow_service.create_project(name, owner_id=OWNER_ID, seed_workflow=False)
        pid = project.project_id
        todo = workflow_service.add_state(pid, OWNER_ID, "Todo", WorkflowStateType.START)
        doing = workflow_service.add_state(pid, OWNER_ID, "Doing", WorkflowStateType.IN_PROGRESS)
        workflow_service.add_transition(pid, OWNER_ID, "Auto", todo.state_id, doing.state_id, is_automatic=True)
        return pid

    broken_pid = build_project("Broken")
    healthy_pid = build_project("Healthy")
    task_service.create_task(broken_pid, OWNER_ID, "Broken task")
    healthy = task_service.create_task(healthy_pid, OWNER_ID, "Healthy task")

    store.broken_project_id = broken_pid
    processed = WorkflowEngine(store, clock=clock).process_automatic_transitions()

    assert [t.task_id for t in processed] == [healthy.task_id]


# ── Task moved by someone else during the pass ───────────────────────────────

class _InterleavingStore(InMemoryWorkflowStore):
    """Runs ``before_read`` / ``after_read`` once around the engine's task read"""

    def __init__(self):
        super().__init__()
        self.before_read = None
        self.after_read = None

    def get_visible_task(self, task_id, user_id):
        before, self.before_read = self.before_read, None
        if before is not None:
            before()
        task = super().get_visible_task(task_id, user_id)
        after, self.after_read = self.after_read, None
        if after is not None:
            after()
        return task


class TestTaskMovedDuringPass:
    """Manual edges Todo -> Review and Review -> Doing sit beside the automatic Todo -> Doing"""

    @pytest.fixture
    def store(self):
        return _InterleavingStore()

    @pytest.fixture
    def detour(self, workflow_service, pipeline):
        pid = pipeline["project"].project_id
        workflow_service.add_transition(
            pid, OWNER_ID, "Send to review", pipeline["todo"].state_id, pipeline["review"].state_id
        )
        workflow_service.add_transition(
            pid, OWNER_ID, "Back to work", pipeline["review"].state_id, pipeline["doing"].state_id
        )

    def _assert_only_manual_move(self, store, task, pipeline):
        assert store.get_task(task.task_id).workflow_state_id == pipeline["review"].state_id
        entries = store.list_audit_entries(task.task_id)
        assert [e.system_info for e in entries] == [AuditSystemInfo.MANUAL]

    def test_moved_before_engine_reads_task(self, engine, store, task_service, pipeline, detour):
        task = _create(task_service, pipeline, "Detoured")
        review = pipeline["review"].state_id
        store.before_read = lambda: engine.transition(task.task_id, review, OWNER_ID)

        moved = engine.process_automatic_transitions()

        assert moved == []
        self._assert_only_manual_move(store, task, pipeline)

    def test_moved_between_read_and_write(self, engine, store, task_service, pipeline, detour):
        task = _create(task_service, pipeline, "Raced")
        review = pipeline["review"].state_id
        store.after_read = lambda: engine.transition(task.task_id, review, OWNER_ID)

        moved = engine.process_automatic_transitions()

        assert moved == []
        self._assert_only_manual_move(store, task, pipeline)

    def test_detoured_task_stays_put_on_next_pass(self, engine, store, task_service, pipeline, detour):
        task = _create(task_service, pipeline, "Detoured")
        review = pipeline["review"].state_id
        store.before_read = lambda: engine.transition(task.task_id, review, OWNER_ID)
        engine.process_automatic_transitions()

        # Review is not automatable, so nothing more happens
        assert engine.process_automatic_transitions() == []


def test_automatic_execution_refuses_manual_edge(engine, store, task, states):
    result = engine.execute_transition(
        task.task_id,
        states[WorkflowStateType.IN_PROGRESS].state_id,
        OWNER_ID,
        system_info=AuditSystemInfo.AUTOMATIC
    )

    assert not result.success
    assert result.error_kind == TransitionErrorKind.INVALID_TRANSITION
    assert store.list_audit_entries(task.task_id) == []


def test_expected_source_state_must_match(engine, store, task, states):
    result = engine.execute_transition(
        task.task_id,
        states[WorkflowStateType.IN_PROGRESS].state_id,
        OWNER_ID,
        expected_from_state_id=states[WorkflowStateType.REVIEW].state_id
    )

    assert result.error_kind == TransitionErrorKind.INVALID_TRANSITION
    assert store.get_task(task.task_id).workflow_state_id == states[WorkflowStateType.START].state_id
