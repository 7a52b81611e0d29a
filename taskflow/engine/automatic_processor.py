"""Automatic Processor - Batch pass over automatic transitions"""
from datetime import datetime
from typing import List, Optional, TYPE_CHECKING

from ..config.settings import settings
from ..domain.models import TaskItem
from ..domain.enums import AUTOMATABLE_STATE_TYPES, AuditSystemInfo
from ..utils.time import ensure_utc
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from .engine import WorkflowEngine

logger = get_logger(__name__)


class AutomaticTransitionProcessor:
    """
    Fire automatic transitions whose conditions hold
    
    Each task takes at most one transition per pass, acting as the project
    owner. A failure on one task is logged and the pass moves on.
    """
    
    def __init__(self, engine: "WorkflowEngine"):
        self.engine = engine
    
    def run(
        self,
        project_id: Optional[int] = None,
        deadline: Optional[datetime] = None
    ) -> List[TaskItem]:
        store = self.engine.store
        tasks = store.list_tasks_in_states(AUTOMATABLE_STATE_TYPES, project_id=project_id)
        processed: List[TaskItem] = []
        
        logger.info(
            f"Automatic transition pass over {len(tasks)} candidate tasks",
            extra={"project_id": project_id}
        )
        
        for index, task in enumerate(tasks):
            if deadline is not None and ensure_utc(self.engine.clock()) >= ensure_utc(deadline):
                logger.warning(
                    f"Automatic transition pass stopped at deadline, "
                    f"{len(tasks) - index} tasks not examined",
                    extra={"project_id": project_id}
                )
                break
            
            try:
                transitioned = self._process_task(task)
            except Exception as e:
                logger.error(
                    f"Automatic transition failed for task {task.task_id}: {e}",
                    exc_info=True,
                    extra={"task_id": task.task_id, "project_id": task.project_id}
                )
                continue
            
            if transitioned is not None:
                processed.append(transitioned)
        
        logger.info(
            f"Processed {len(processed)} automatic transitions",
            extra={"project_id": project_id}
        )
        return processed
    
    def _process_task(self, task: TaskItem) -> Optional[TaskItem]:
        """Execute the first automatic edge whose conditions pass, if any"""
        engine = self.engine
        project = engine.store.get_project(task.project_id)
        if project is None:
            logger.warning(
                f"Task {task.task_id} references missing project",
                extra={"task_id": task.task_id, "project_id": task.project_id}
            )
            return None
        
        context = engine.build_condition_context(task, engine.clock())
        
        for transition in engine.transition_resolver.get_automatic_transitions(task):
            if not engine.condition_evaluator.is_satisfied(transition, context):
                continue
            
            result = engine.execute_transition(
                task.task_id,
                transition.to_state_id,
                project.owner_id,
                comment=settings.automatic_transition_comment,
                system_info=AuditSystemInfo.AUTOMATIC,
                expected_from_state_id=transition.from_state_id
            )
            if result.success:
                return result.task
            
            logger.warning(
                f"Automatic transition {transition.transition_id} not applied: {result.error_message}",
                extra={
                    "task_id": task.task_id,
                    "error_kind": result.error_kind.value if result.error_kind else None,
                }
            )
            return None
        
        return None
