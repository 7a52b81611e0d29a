"""Store Interface - Persistence contract the workflow engine depends on

The engine never talks to a database directly. It receives a
``WorkflowStore`` at construction and performs every write through the
``StoreTransaction`` handle yielded by ``WorkflowStore.transaction()``, so
a task update and its audit entry are committed together or not at all.
"""
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import List, Optional, Sequence

from ..domain.models import (
    Project, User, WorkflowState, WorkflowTransition, TaskItem, WorkflowAuditEntry
)
from ..domain.enums import WorkflowStateType


class StoreTransaction(ABC):
    """Write handle valid for the lifetime of one transaction"""
    
    @abstractmethod
    def update_task(self, task: TaskItem, expected_version: int) -> TaskItem:
        """
        Persist a mutated task if its stored version still equals
        ``expected_version``; the stored version is incremented.
        
        Raises:
            ConcurrencyError: If the task was modified concurrently
            TaskNotFoundError: If the task no longer exists
        """
    
    @abstractmethod
    def insert_audit_entry(self, entry: WorkflowAuditEntry) -> WorkflowAuditEntry:
        """Append an audit entry"""
    
    @abstractmethod
    def next_audit_entry_id(self) -> int:
        """Allocate an id for a new audit entry"""


class WorkflowStore(ABC):
    """Task, workflow definition and audit data access"""
    
    # =========================================================================
    # Read by id
    # =========================================================================
    
    @abstractmethod
    def get_task(self, task_id: int) -> Optional[TaskItem]:
        """Get task by ID"""
    
    @abstractmethod
    def get_project(self, project_id: int) -> Optional[Project]:
        """Get project by ID"""
    
    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        """Get user by ID"""
    
    @abstractmethod
    def get_state(self, state_id: int) -> Optional[WorkflowState]:
        """Get workflow state by ID"""
    
    # =========================================================================
    # Filtered reads
    # =========================================================================
    
    @abstractmethod
    def get_visible_task(self, task_id: int, user_id: str) -> Optional[TaskItem]:
        """Get task only if ``user_id`` owns its project or is its assignee"""
    
    @abstractmethod
    def get_transition(self, from_state_id: int, to_state_id: int) -> Optional[WorkflowTransition]:
        """Get the unique edge for an ordered state pair"""
    
    @abstractmethod
    def list_outgoing_transitions(
        self,
        from_state_id: int,
        automatic_only: bool = False
    ) -> List[WorkflowTransition]:
        """Edges leaving a state, ascending by ``order``"""
    
    @abstractmethod
    def list_states(self, project_id: int) -> List[WorkflowState]:
        """States of a project, ascending by ``order``"""
    
    @abstractmethod
    def list_transitions(self, project_id: int) -> List[WorkflowTransition]:
        """Edges whose source state belongs to the project, ascending by ``order``"""
    
    @abstractmethod
    def list_tasks_in_states(
        self,
        state_types: Sequence[WorkflowStateType],
        project_id: Optional[int] = None
    ) -> List[TaskItem]:
        """Tasks whose current state has one of ``state_types``, ascending by id"""
    
    @abstractmethod
    def list_projects(self, owner_id: Optional[str] = None) -> List[Project]:
        """Projects, optionally restricted to one owner"""
    
    @abstractmethod
    def list_audit_entries(self, task_id: int, descending: bool = False) -> List[WorkflowAuditEntry]:
        """Audit entries of a task ordered by ``transitioned_at``"""
    
    # =========================================================================
    # Inserts
    # =========================================================================
    
    @abstractmethod
    def create_user(self, user: User) -> User:
        """Insert a user"""
    
    @abstractmethod
    def create_project(self, project: Project) -> Project:
        """Insert a project (``project_id`` allocated when 0)"""
    
    @abstractmethod
    def create_state(self, state: WorkflowState) -> WorkflowState:
        """Insert a workflow state (``state_id`` allocated when 0)"""
    
    @abstractmethod
    def create_transition(self, transition: WorkflowTransition) -> WorkflowTransition:
        """Insert a workflow transition (``transition_id`` allocated when 0)"""
    
    @abstractmethod
    def create_task(self, task: TaskItem) -> TaskItem:
        """Insert a task (``task_id`` allocated when 0)"""
    
    # =========================================================================
    # Transactions
    # =========================================================================
    
    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """
        Open a transactional boundary yielding a ``StoreTransaction``.
        
        Writes made through the handle are committed when the block exits
        normally and discarded when it raises.
        """
