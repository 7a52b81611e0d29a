"""MongoDB Store - WorkflowStore composed from the pymongo repositories"""
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence
from pymongo.client_session import ClientSession
from pymongo.errors import OperationFailure

from .base import StoreTransaction, WorkflowStore
from .mongo_client import get_client, next_sequence
from .task_repo import TaskRepository
from .project_repo import ProjectRepository
from .user_repo import UserRepository
from .workflow_repo import WorkflowRepository
from .audit_repo import AuditRepository
from ..config.settings import settings
from ..domain.models import (
    Project, User, WorkflowState, WorkflowTransition, TaskItem, WorkflowAuditEntry
)
from ..domain.enums import WorkflowStateType
from ..domain.errors import ConcurrencyError
from ..utils.logger import get_logger

logger = get_logger(__name__)

WRITE_CONFLICT_CODE = 112


@contextmanager
def _write_conflicts_as_concurrency_errors(task_id: Optional[int] = None) -> Iterator[None]:
    """Re-raise transaction write conflicts as ConcurrencyError so callers retry"""
    try:
        yield
    except OperationFailure as e:
        if not (e.has_error_label("TransientTransactionError") or e.code == WRITE_CONFLICT_CODE):
            raise
        logger.info(
            f"Transient transaction error: {e}",
            extra={"task_id": task_id, "status": "write_conflict"}
        )
        raise ConcurrencyError(
            "The task was modified by a concurrent transaction",
            details={"task_id": task_id} if task_id is not None else None
        ) from e


class _MongoTransaction(StoreTransaction):
    """Writes bound to a client session (or unbound when transactions are off)"""
    
    def __init__(self, store: "MongoWorkflowStore", session: Optional[ClientSession]):
        self._store = store
        self._session = session
    
    def update_task(self, task: TaskItem, expected_version: int) -> TaskItem:
        with _write_conflicts_as_concurrency_errors(task.task_id):
            return self._store.task_repo.update_task(task, expected_version, session=self._session)
    
    def insert_audit_entry(self, entry: WorkflowAuditEntry) -> WorkflowAuditEntry:
        return self._store.audit_repo.create_entry(entry, session=self._session)
    
    def next_audit_entry_id(self) -> int:
        return next_sequence("workflow_audit_entries")


class MongoWorkflowStore(WorkflowStore):
    """
    WorkflowStore backed by MongoDB
    
    Transactions need a replica set. With ``mongo_transactions_enabled``
    off, the task update is still version-checked but the task and audit
    writes are not atomic.
    """
    
    def __init__(self, transactions_enabled: Optional[bool] = None):
        self.task_repo = TaskRepository()
        self.project_repo = ProjectRepository()
        self.user_repo = UserRepository()
        self.workflow_repo = WorkflowRepository()
        self.audit_repo = AuditRepository()
        if transactions_enabled is None:
            transactions_enabled = settings.mongo_transactions_enabled
        self._transactions_enabled = transactions_enabled
        if not transactions_enabled:
            logger.warning("MongoDB transactions disabled; transition writes are not atomic")
    
    # =========================================================================
    # Read by id
    # =========================================================================
    
    def get_task(self, task_id: int) -> Optional[TaskItem]:
        return self.task_repo.get_task(task_id)
    
    def get_project(self, project_id: int) -> Optional[Project]:
        return self.project_repo.get_project(project_id)
    
    def get_user(self, user_id: str) -> Optional[User]:
        return self.user_repo.get_user(user_id)
    
    def get_state(self, state_id: int) -> Optional[WorkflowState]:
        return self.workflow_repo.get_state(state_id)
    
    # =========================================================================
    # Filtered reads
    # =========================================================================
    
    def get_visible_task(self, task_id: int, user_id: str) -> Optional[TaskItem]:
        owned_project_ids = self.project_repo.get_owned_project_ids(user_id)
        return self.task_repo.get_task_for_user(task_id, user_id, owned_project_ids)
    
    def get_transition(self, from_state_id: int, to_state_id: int) -> Optional[WorkflowTransition]:
        return self.workflow_repo.get_transition(from_state_id, to_state_id)
    
    def list_outgoing_transitions(
        self,
        from_state_id: int,
        automatic_only: bool = False
    ) -> List[WorkflowTransition]:
        return self.workflow_repo.list_outgoing_transitions(from_state_id, automatic_only)
    
    def list_states(self, project_id: int) -> List[WorkflowState]:
        return self.workflow_repo.list_states(project_id)
    
    def list_transitions(self, project_id: int) -> List[WorkflowTransition]:
        return self.workflow_repo.list_transitions(project_id)
    
    def list_tasks_in_states(
        self,
        state_types: Sequence[WorkflowStateType],
        project_id: Optional[int] = None
    ) -> List[TaskItem]:
        state_ids = self.workflow_repo.get_state_ids(state_types, project_id)
        return self.task_repo.list_tasks_in_states(state_ids)
    
    def list_projects(self, owner_id: Optional[str] = None) -> List[Project]:
        return self.project_repo.list_projects(owner_id)
    
    def list_audit_entries(self, task_id: int, descending: bool = False) -> List[WorkflowAuditEntry]:
        return self.audit_repo.get_entries_for_task(task_id, descending)
    
    # =========================================================================
    # Inserts
    # =========================================================================
    
    def create_user(self, user: User) -> User:
        return self.user_repo.create_user(user)
    
    def create_project(self, project: Project) -> Project:
        return self.project_repo.create_project(project)
    
    def create_state(self, state: WorkflowState) -> WorkflowState:
        return self.workflow_repo.create_state(state)
    
    def create_transition(self, transition: WorkflowTransition) -> WorkflowTransition:
        return self.workflow_repo.create_transition(transition)
    
    def create_task(self, task: TaskItem) -> TaskItem:
        return self.task_repo.create_task(task)
    
    # =========================================================================
    # Transactions
    # =========================================================================
    
    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        if not self._transactions_enabled:
            yield _MongoTransaction(self, session=None)
            return
        
        # The commit on exit can also hit a write conflict
        with _write_conflicts_as_concurrency_errors():
            with get_client().start_session() as session:
                with session.start_transaction():
                    yield _MongoTransaction(self, session=session)
