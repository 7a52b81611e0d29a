"""In-Memory Store - Thread-safe WorkflowStore held in process memory

Used by the test suite and for local runs without MongoDB. Semantics match
the MongoDB store: task updates are version-checked and transactional
writes are staged until the ``transaction()`` block exits cleanly.
"""
import itertools
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Sequence

from .base import StoreTransaction, WorkflowStore
from ..domain.models import (
    Project, User, WorkflowState, WorkflowTransition, TaskItem, WorkflowAuditEntry
)
from ..domain.enums import WorkflowStateType
from ..domain.errors import ConcurrencyError, TaskNotFoundError, AlreadyExistsError


class _InMemoryTransaction(StoreTransaction):
    """Staged writes applied to the store on commit"""
    
    def __init__(self, store: "InMemoryWorkflowStore"):
        self._store = store
        self._task_updates: Dict[int, TaskItem] = {}
        self._audit_entries: List[WorkflowAuditEntry] = []
    
    def update_task(self, task: TaskItem, expected_version: int) -> TaskItem:
        current = self._task_updates.get(task.task_id) or self._store._tasks.get(task.task_id)
        if current is None:
            raise TaskNotFoundError(f"Task {task.task_id} not found")
        if current.version != expected_version:
            raise ConcurrencyError(
                f"Task {task.task_id} was modified. Please refresh and try again.",
                details={"expected_version": expected_version, "actual_version": current.version}
            )
        
        staged = task.model_copy(update={"version": expected_version + 1}, deep=True)
        self._task_updates[task.task_id] = staged
        return staged.model_copy(deep=True)
    
    def insert_audit_entry(self, entry: WorkflowAuditEntry) -> WorkflowAuditEntry:
        self._audit_entries.append(entry)
        return entry
    
    def next_audit_entry_id(self) -> int:
        return self._store._allocate_id("audit_entries")
    
    def commit(self) -> None:
        self._store._tasks.update(self._task_updates)
        self._store._audit_entries.extend(self._audit_entries)


class InMemoryWorkflowStore(WorkflowStore):
    """WorkflowStore backed by dictionaries guarded by a re-entrant lock"""
    
    def __init__(self):
        self._lock = threading.RLock()
        self._counters: Dict[str, Iterator[int]] = {}
        self._users: Dict[str, User] = {}
        self._projects: Dict[int, Project] = {}
        self._states: Dict[int, WorkflowState] = {}
        self._transitions: Dict[int, WorkflowTransition] = {}
        self._tasks: Dict[int, TaskItem] = {}
        self._audit_entries: List[WorkflowAuditEntry] = []
    
    def _allocate_id(self, name: str) -> int:
        with self._lock:
            counter = self._counters.setdefault(name, itertools.count(1))
            return next(counter)
    
    # =========================================================================
    # Read by id
    # =========================================================================
    
    def get_task(self, task_id: int) -> Optional[TaskItem]:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.model_copy(deep=True) if task else None
    
    def get_project(self, project_id: int) -> Optional[Project]:
        with self._lock:
            project = self._projects.get(project_id)
            return project.model_copy() if project else None
    
    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return user.model_copy() if user else None
    
    def get_state(self, state_id: int) -> Optional[WorkflowState]:
        with self._lock:
            state = self._states.get(state_id)
            return state.model_copy() if state else None
    
    # =========================================================================
    # Filtered reads
    # =========================================================================
    
    def get_visible_task(self, task_id: int, user_id: str) -> Optional[TaskItem]:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return None
            project = self._projects.get(task.project_id)
            is_owner = project is not None and project.owner_id == user_id
            if not is_owner and task.assignee_id != user_id:
                return None
            return task.model_copy(deep=True)
    
    def get_transition(self, from_state_id: int, to_state_id: int) -> Optional[WorkflowTransition]:
        with self._lock:
            for transition in self._transitions.values():
                if transition.from_state_id == from_state_id and transition.to_state_id == to_state_id:
                    return transition.model_copy()
            return None
    
    def list_outgoing_transitions(
        self,
        from_state_id: int,
        automatic_only: bool = False
    ) -> List[WorkflowTransition]:
        with self._lock:
            transitions = [
                t.model_copy() for t in self._transitions.values()
                if t.from_state_id == from_state_id and (t.is_automatic or not automatic_only)
            ]
        return sorted(transitions, key=lambda t: (t.order, t.transition_id))
    
    def list_states(self, project_id: int) -> List[WorkflowState]:
        with self._lock:
            states = [s.model_copy() for s in self._states.values() if s.project_id == project_id]
        return sorted(states, key=lambda s: (s.order, s.state_id))
    
    def list_transitions(self, project_id: int) -> List[WorkflowTransition]:
        with self._lock:
            state_ids = {s.state_id for s in self._states.values() if s.project_id == project_id}
            transitions = [
                t.model_copy() for t in self._transitions.values()
                if t.from_state_id in state_ids
            ]
        return sorted(transitions, key=lambda t: (t.order, t.transition_id))
    
    def list_tasks_in_states(
        self,
        state_types: Sequence[WorkflowStateType],
        project_id: Optional[int] = None
    ) -> List[TaskItem]:
        with self._lock:
            state_ids = {
                s.state_id for s in self._states.values()
                if s.type in state_types and (project_id is None or s.project_id == project_id)
            }
            tasks = [
                t.model_copy(deep=True) for t in self._tasks.values()
                if t.workflow_state_id in state_ids
            ]
        return sorted(tasks, key=lambda t: t.task_id)
    
    def list_projects(self, owner_id: Optional[str] = None) -> List[Project]:
        with self._lock:
            projects = [
                p.model_copy() for p in self._projects.values()
                if owner_id is None or p.owner_id == owner_id
            ]
        return sorted(projects, key=lambda p: p.project_id)
    
    def list_audit_entries(self, task_id: int, descending: bool = False) -> List[WorkflowAuditEntry]:
        with self._lock:
            entries = [e for e in self._audit_entries if e.task_id == task_id]
        return sorted(
            entries,
            key=lambda e: (e.transitioned_at, e.audit_entry_id),
            reverse=descending
        )
    
    # =========================================================================
    # Inserts
    # =========================================================================
    
    def create_user(self, user: User) -> User:
        with self._lock:
            if user.user_id in self._users:
                raise AlreadyExistsError(f"User {user.user_id} already exists")
            self._users[user.user_id] = user.model_copy()
        return user
    
    def create_project(self, project: Project) -> Project:
        with self._lock:
            if not project.project_id:
                project = project.model_copy(update={"project_id": self._allocate_id("projects")})
            self._projects[project.project_id] = project.model_copy()
        return project
    
    def create_state(self, state: WorkflowState) -> WorkflowState:
        with self._lock:
            if not state.state_id:
                state = state.model_copy(update={"state_id": self._allocate_id("workflow_states")})
            self._states[state.state_id] = state.model_copy()
        return state
    
    def create_transition(self, transition: WorkflowTransition) -> WorkflowTransition:
        with self._lock:
            for existing in self._transitions.values():
                if (existing.from_state_id, existing.to_state_id) == (
                    transition.from_state_id, transition.to_state_id
                ):
                    raise AlreadyExistsError(
                        "A transition between these states already exists",
                        details={
                            "from_state_id": transition.from_state_id,
                            "to_state_id": transition.to_state_id,
                        }
                    )
            if not transition.transition_id:
                transition = transition.model_copy(
                    update={"transition_id": self._allocate_id("workflow_transitions")}
                )
            self._transitions[transition.transition_id] = transition.model_copy()
        return transition
    
    def create_task(self, task: TaskItem) -> TaskItem:
        with self._lock:
            if not task.task_id:
                task = task.model_copy(update={"task_id": self._allocate_id("tasks")})
            self._tasks[task.task_id] = task.model_copy(deep=True)
        return task
    
    # =========================================================================
    # Transactions
    # =========================================================================
    
    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        with self._lock:
            txn = _InMemoryTransaction(self)
            yield txn
            txn.commit()
