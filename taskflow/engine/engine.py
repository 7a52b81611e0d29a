"""
Workflow Engine - The Brain of the System

Executes task state transitions against a project's workflow graph.

=============================================================================
TRANSITION PIPELINE
=============================================================================

1. Load the task if the acting user may see it (owner or assignee)
2. Find the edge (current state -> target state) in the same project
3. Evaluate every condition named on the edge
4. Resolve the target state
5. Apply the state change (completed_at follows the target state type)
6. Persist the task and append the audit entry in one transaction

Validation failures are reported as a TransitionResult with an error kind,
never raised. A concurrent modification restarts the pipeline from step 1.

=============================================================================
DEPENDENCIES
=============================================================================

Store:
    - WorkflowStore: Tasks, definitions and audit entries

Guards & Resolvers:
    - PermissionGuard: Visibility checks
    - TransitionResolver: Edge lookup
    - ConditionEvaluator: Named conditions
    - AuditWriter: Audit trail

=============================================================================
"""
from datetime import datetime
from typing import Callable, List, Optional

from ..config.settings import settings
from ..domain.models import TaskItem, WorkflowState, TransitionResult, AuditHistoryItem
from ..domain.enums import WorkflowStateType, TransitionErrorKind, AuditSystemInfo
from ..domain.errors import (
    ConcurrencyError, TransitionError, ConditionsNotMetError, TargetStateNotFoundError,
    InvalidTransitionError
)
from ..repositories.base import WorkflowStore
from .permission_guard import PermissionGuard
from .transition_resolver import TransitionResolver
from .condition_evaluator import ConditionEvaluator, ConditionRegistry, ConditionContext
from .audit_writer import AuditWriter
from .automatic_processor import AutomaticTransitionProcessor
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "An internal error occurred while transitioning the task"


class WorkflowEngine:
    """
    Main workflow engine - orchestrates task transitions
    
    Stateless between calls: every request re-reads the task and the
    workflow definition from the store.
    """
    
    def __init__(
        self,
        store: WorkflowStore,
        condition_registry: Optional[ConditionRegistry] = None,
        max_retries: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.store = store
        self.clock = clock
        self.max_retries = settings.transition_max_retries if max_retries is None else max_retries
        self.permission_guard = PermissionGuard(store)
        self.transition_resolver = TransitionResolver(store)
        self.condition_evaluator = ConditionEvaluator(condition_registry)
        self.audit_writer = AuditWriter(store)
        self.automatic_processor = AutomaticTransitionProcessor(self)
    
    # =========================================================================
    # MANUAL TRANSITIONS
    # =========================================================================
    
    def transition(
        self,
        task_id: int,
        to_state_id: int,
        user_id: str,
        comment: Optional[str] = None
    ) -> TransitionResult:
        """
        Move a task to ``to_state_id`` on behalf of ``user_id``
        
        Returns:
            TransitionResult; on failure only ``error_kind`` and
            ``error_message`` are set and nothing was written
        """
        return self.execute_transition(
            task_id, to_state_id, user_id,
            comment=comment,
            system_info=AuditSystemInfo.MANUAL
        )
    
    def execute_transition(
        self,
        task_id: int,
        to_state_id: int,
        user_id: str,
        comment: Optional[str] = None,
        system_info: AuditSystemInfo = AuditSystemInfo.MANUAL,
        expected_from_state_id: Optional[int] = None
    ) -> TransitionResult:
        """
        Run the transition pipeline, retrying on concurrent modification

        ``expected_from_state_id`` pins the source state: if the task is found
        anywhere else (including on a retry) the request is INVALID_TRANSITION.
        Automatic executions must also resolve to an automatic edge.
        """
        log_extra = {"task_id": task_id, "to_state_id": to_state_id, "user_id": user_id}

        try:
            for attempt in range(self.max_retries + 1):
                try:
                    return self._attempt_transition(
                        task_id, to_state_id, user_id, comment, system_info,
                        expected_from_state_id
                    )
                except ConcurrencyError:
                    logger.info(
                        f"Task {task_id} modified concurrently, retrying "
                        f"({attempt + 1}/{self.max_retries + 1})",
                        extra=log_extra
                    )
            
            logger.error(
                f"Task {task_id} transition abandoned after {self.max_retries + 1} attempts",
                extra={**log_extra, "error_kind": TransitionErrorKind.INTERNAL_ERROR.value}
            )
            return TransitionResult.failure(
                TransitionErrorKind.INTERNAL_ERROR,
                "The task was modified concurrently. Please refresh and try again."
            )
        
        except TransitionError as e:
            logger.info(
                f"Transition refused: {e.message}",
                extra={**log_extra, "error_kind": e.kind.value}
            )
            return TransitionResult.failure(e.kind, e.message)
        
        except Exception as e:
            logger.error(
                f"Transition failed: {e}",
                exc_info=True,
                extra={**log_extra, "error_kind": TransitionErrorKind.INTERNAL_ERROR.value}
            )
            return TransitionResult.failure(TransitionErrorKind.INTERNAL_ERROR, INTERNAL_ERROR_MESSAGE)
    
    def _attempt_transition(
        self,
        task_id: int,
        to_state_id: int,
        user_id: str,
        comment: Optional[str],
        system_info: AuditSystemInfo,
        expected_from_state_id: Optional[int] = None
    ) -> TransitionResult:
        now = self.clock()

        task = self.permission_guard.get_task_for_actor(task_id, user_id)
        if expected_from_state_id is not None and task.workflow_state_id != expected_from_state_id:
            raise InvalidTransitionError(
                f"Task {task_id} is no longer in state {expected_from_state_id}",
                details={
                    "expected_from_state_id": expected_from_state_id,
                    "current_state_id": task.workflow_state_id,
                }
            )

        resolved = self.transition_resolver.resolve(task, to_state_id)
        if system_info == AuditSystemInfo.AUTOMATIC and not resolved.transition.is_automatic:
            raise InvalidTransitionError(
                f"Transition {resolved.transition.transition_id} is not automatic",
                details={"transition_id": resolved.transition.transition_id}
            )

        context = self.build_condition_context(task, now)
        failed = self.condition_evaluator.failed_conditions(
            resolved.transition.condition_names, context
        )
        if failed:
            raise ConditionsNotMetError(
                "Transition conditions not met: " + ", ".join(failed),
                details={"failed_conditions": failed}
            )
        
        if resolved.target_state is None:
            raise TargetStateNotFoundError(
                f"Target state {to_state_id} not found",
                details={"to_state_id": to_state_id}
            )
        
        return self._apply_transition(
            task, resolved.target_state, user_id, comment, system_info, now
        )
    
    def _apply_transition(
        self,
        task: TaskItem,
        target_state: WorkflowState,
        user_id: str,
        comment: Optional[str],
        system_info: AuditSystemInfo,
        now: datetime
    ) -> TransitionResult:
        """Mutate the task and append the audit entry atomically"""
        from_state_id = task.workflow_state_id
        is_completed = target_state.type == WorkflowStateType.COMPLETED
        
        updated = task.model_copy(update={
            "workflow_state_id": target_state.state_id,
            "updated_at": now,
            "completed_at": now if is_completed else None,
        })
        
        with self.store.transaction() as txn:
            saved = txn.update_task(updated, expected_version=task.version)
            entry = self.audit_writer.write_transition(
                txn,
                task_id=task.task_id,
                from_state_id=from_state_id,
                to_state_id=target_state.state_id,
                user_id=user_id,
                transitioned_at=now,
                comment=comment,
                system_info=system_info
            )
        
        logger.info(
            f"Task {task.task_id} moved to '{target_state.name}'",
            extra={
                "task_id": task.task_id,
                "project_id": task.project_id,
                "from_state_id": from_state_id,
                "to_state_id": target_state.state_id,
                "user_id": user_id,
                "action": system_info.value,
            }
        )
        return TransitionResult.ok(saved, target_state, entry)
    
    # =========================================================================
    # AUTOMATIC TRANSITIONS
    # =========================================================================
    
    def process_automatic_transitions(
        self,
        project_id: Optional[int] = None,
        deadline: Optional[datetime] = None
    ) -> List[TaskItem]:
        """
        One pass of automatic transitions over tasks in Start or
        InProgress states
        
        Args:
            project_id: Restrict the pass to one project
            deadline: Stop picking up tasks once the clock passes it
        
        Returns:
            Tasks that were transitioned, in their post-transition state
        """
        return self.automatic_processor.run(project_id=project_id, deadline=deadline)
    
    # =========================================================================
    # HISTORY
    # =========================================================================
    
    def get_audit_history(
        self,
        task_id: int,
        descending: bool = False,
        user_id: Optional[str] = None
    ) -> List[AuditHistoryItem]:
        """
        Audit trail of a task
        
        When ``user_id`` is given the task must be visible to that user,
        otherwise TaskAccessError is raised.
        """
        if user_id is not None:
            self.permission_guard.get_task_for_actor(task_id, user_id)
        return self.audit_writer.get_history(task_id, descending=descending)
    
    # =========================================================================
    # HELPERS
    # =========================================================================
    
    def build_condition_context(self, task: TaskItem, now: datetime) -> ConditionContext:
        project = self.store.get_project(task.project_id)
        owner = self.store.get_user(project.owner_id) if project else None
        assignee = self.store.get_user(task.assignee_id) if task.assignee_id else None
        return ConditionContext(
            task=task,
            project=project,
            assignee=assignee,
            owner=owner,
            now=now
        )
