"""Permission Guard - Task and project access checks"""
from ..domain.models import Project, TaskItem
from ..domain.errors import TaskAccessError, ProjectNotFoundError
from ..repositories.base import WorkflowStore
from ..utils.logger import get_logger

logger = get_logger(__name__)


class PermissionGuard:
    """
    Access rules
    
    - A task is visible to its project's owner and to its assignee
    - Workflow definitions and batch processing are owner-only
    
    Denials never reveal whether the resource exists.
    """
    
    def __init__(self, store: WorkflowStore):
        self.store = store
    
    def get_task_for_actor(self, task_id: int, user_id: str) -> TaskItem:
        """Load a task visible to ``user_id`` or raise TaskAccessError"""
        task = self.store.get_visible_task(task_id, user_id)
        if task is None:
            logger.info(
                "Task not found or not visible",
                extra={"task_id": task_id, "user_id": user_id}
            )
            raise TaskAccessError(
                "Task not found or access denied",
                details={"task_id": task_id}
            )
        return task
    
    def get_owned_project(self, project_id: int, user_id: str) -> Project:
        """Load a project owned by ``user_id`` or raise ProjectNotFoundError"""
        project = self.store.get_project(project_id)
        if project is None or project.owner_id != user_id:
            raise ProjectNotFoundError(
                "Project not found",
                details={"project_id": project_id}
            )
        return project
