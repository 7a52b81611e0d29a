"""Transition Resolver - Find the workflow edge a task may take"""
from dataclasses import dataclass
from typing import List, Optional

from ..domain.models import TaskItem, WorkflowState, WorkflowTransition
from ..domain.errors import InvalidTransitionError
from ..repositories.base import WorkflowStore
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResolvedTransition:
    """An edge leaving the task's current state and its (possibly missing) target"""
    transition: WorkflowTransition
    target_state: Optional[WorkflowState]


class TransitionResolver:
    """
    Resolve transitions for a task against its project's current graph
    
    Definitions are re-read on every call since a project can reconfigure
    its workflow between calls.
    """
    
    def __init__(self, store: WorkflowStore):
        self.store = store
    
    def resolve(self, task: TaskItem, to_state_id: int) -> ResolvedTransition:
        """
        Find the unique edge (task's current state -> ``to_state_id``)
        
        Raises:
            InvalidTransitionError: If no edge exists, or either endpoint
                belongs to another project
        """
        from_state_id = task.workflow_state_id
        transition = self.store.get_transition(from_state_id, to_state_id)
        
        if transition is None:
            raise InvalidTransitionError(
                f"No transition from state {from_state_id} to state {to_state_id}",
                details={"from_state_id": from_state_id, "to_state_id": to_state_id}
            )
        
        source_state = self.store.get_state(from_state_id)
        target_state = self.store.get_state(to_state_id)
        for state in (source_state, target_state):
            if state is not None and state.project_id != task.project_id:
                logger.warning(
                    f"Transition {transition.transition_id} crosses project boundary",
                    extra={"task_id": task.task_id, "project_id": task.project_id}
                )
                raise InvalidTransitionError(
                    f"State {state.state_id} does not belong to the task's project",
                    details={"from_state_id": from_state_id, "to_state_id": to_state_id}
                )
        
        return ResolvedTransition(transition=transition, target_state=target_state)
    
    def get_automatic_transitions(self, task: TaskItem) -> List[WorkflowTransition]:
        """Automatic edges leaving the task's current state, in ``order``"""
        return self.store.list_outgoing_transitions(task.workflow_state_id, automatic_only=True)
