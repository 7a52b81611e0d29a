"""Service modules - Business logic layer"""
from .workflow_service import WorkflowService
from .task_service import TaskService

__all__ = [
    "WorkflowService",
    "TaskService",
]
