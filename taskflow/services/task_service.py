"""Task Service - Task creation and lookup"""
from datetime import datetime
from typing import Optional

from ..domain.models import TaskItem
from ..domain.enums import TaskPriority
from ..domain.errors import ValidationError, TaskNotFoundError
from ..engine.permission_guard import PermissionGuard
from ..repositories.base import WorkflowStore
from .workflow_service import WorkflowService
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TaskService:
    """Service for task operations outside of state transitions"""
    
    def __init__(self, store: WorkflowStore, workflow_service: Optional[WorkflowService] = None):
        self.store = store
        self.workflow_service = workflow_service or WorkflowService(store)
        self.permission_guard = PermissionGuard(store)
    
    def create_task(
        self,
        project_id: int,
        user_id: str,
        title: str,
        description: str = "",
        priority: TaskPriority = TaskPriority.MEDIUM,
        assignee_id: Optional[str] = None,
        due_date: Optional[datetime] = None
    ) -> TaskItem:
        """Create a task in the project's default (start) state"""
        self.permission_guard.get_owned_project(project_id, user_id)
        
        if not title or not title.strip():
            raise ValidationError("Task title is required")
        
        start_state = self.workflow_service.get_default_state(project_id)
        now = utc_now()
        
        task = self.store.create_task(TaskItem(
            task_id=0,
            project_id=project_id,
            title=title.strip(),
            description=description,
            priority=priority,
            assignee_id=assignee_id,
            workflow_state_id=start_state.state_id,
            created_at=now,
            updated_at=now,
            due_date=due_date
        ))
        
        logger.info(
            f"Created task '{task.title}'",
            extra={"task_id": task.task_id, "project_id": project_id, "user_id": user_id}
        )
        return task
    
    def get_task(self, task_id: int, user_id: str) -> TaskItem:
        """Get a task visible to the user"""
        task = self.store.get_visible_task(task_id, user_id)
        if task is None:
            raise TaskNotFoundError("Task not found", details={"task_id": task_id})
        return task
