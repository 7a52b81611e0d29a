"""Task Repository - Data access for tasks"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo.client_session import ClientSession
from pymongo import ASCENDING, ReturnDocument

from .mongo_client import get_collection, next_sequence
from ..domain.models import TaskItem
from ..domain.errors import TaskNotFoundError, ConcurrencyError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TaskRepository:
    """Repository for task operations"""
    
    def __init__(self):
        self._tasks: Collection = get_collection("tasks")
    
    def _to_model(self, doc: Dict[str, Any]) -> TaskItem:
        doc.pop("_id", None)
        return TaskItem.model_validate(doc)
    
    def create_task(self, task: TaskItem) -> TaskItem:
        """Create a new task"""
        if not task.task_id:
            task = task.model_copy(update={"task_id": next_sequence("tasks")})
        # Don't use mode="json" - it converts datetime to strings, breaking MongoDB sorting
        doc = task.model_dump()
        doc["_id"] = task.task_id
        
        self._tasks.insert_one(doc)
        logger.info(f"Created task: {task.task_id}", extra={"task_id": task.task_id})
        return task
    
    def get_task(self, task_id: int) -> Optional[TaskItem]:
        """Get task by ID"""
        doc = self._tasks.find_one({"task_id": task_id})
        return self._to_model(doc) if doc else None
    
    def get_task_for_user(
        self,
        task_id: int,
        user_id: str,
        owned_project_ids: List[int]
    ) -> Optional[TaskItem]:
        """Get task if the user is its assignee or owns its project"""
        doc = self._tasks.find_one({
            "task_id": task_id,
            "$or": [
                {"assignee_id": user_id},
                {"project_id": {"$in": owned_project_ids}},
            ]
        })
        return self._to_model(doc) if doc else None
    
    def update_task(
        self,
        task: TaskItem,
        expected_version: int,
        session: Optional[ClientSession] = None
    ) -> TaskItem:
        """Replace mutable task fields with optimistic concurrency"""
        updates = task.model_dump(exclude={"task_id", "project_id", "created_at", "version"})
        updates["version"] = expected_version + 1
        
        result = self._tasks.find_one_and_update(
            {"task_id": task.task_id, "version": expected_version},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
            session=session
        )
        
        if result is None:
            exists = self._tasks.find_one({"task_id": task.task_id}, session=session)
            if exists:
                raise ConcurrencyError(
                    f"Task {task.task_id} was modified. Please refresh and try again.",
                    details={"expected_version": expected_version}
                )
            raise TaskNotFoundError(f"Task {task.task_id} not found")
        
        logger.info(f"Updated task: {task.task_id}", extra={"task_id": task.task_id})
        return self._to_model(result)
    
    def list_tasks_in_states(self, state_ids: List[int]) -> List[TaskItem]:
        """List tasks whose current state is one of ``state_ids``"""
        if not state_ids:
            return []
        cursor = self._tasks.find({"workflow_state_id": {"$in": state_ids}}).sort("task_id", ASCENDING)
        return [self._to_model(doc) for doc in cursor]
