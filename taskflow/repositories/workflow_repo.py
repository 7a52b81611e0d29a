"""Workflow Repository - Data access for workflow states and transitions"""
from typing import Any, Dict, List, Optional, Sequence
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError
from pymongo import ASCENDING

from .mongo_client import get_collection, next_sequence
from ..domain.models import WorkflowState, WorkflowTransition
from ..domain.enums import WorkflowStateType
from ..domain.errors import AlreadyExistsError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WorkflowRepository:
    """Repository for workflow definition operations"""
    
    def __init__(self):
        self._states: Collection = get_collection("workflow_states")
        self._transitions: Collection = get_collection("workflow_transitions")
    
    # =========================================================================
    # States
    # =========================================================================
    
    def create_state(self, state: WorkflowState) -> WorkflowState:
        """Create a workflow state"""
        if not state.state_id:
            state = state.model_copy(update={"state_id": next_sequence("workflow_states")})
        doc = state.model_dump()
        doc["_id"] = state.state_id
        
        self._states.insert_one(doc)
        logger.info(
            f"Created workflow state: {state.name}",
            extra={"project_id": state.project_id}
        )
        return state
    
    def get_state(self, state_id: int) -> Optional[WorkflowState]:
        """Get workflow state by ID"""
        doc = self._states.find_one({"state_id": state_id})
        if doc:
            doc.pop("_id", None)
            return WorkflowState.model_validate(doc)
        return None
    
    def list_states(self, project_id: int) -> List[WorkflowState]:
        """List a project's states in display order"""
        cursor = self._states.find({"project_id": project_id}).sort(
            [("order", ASCENDING), ("state_id", ASCENDING)]
        )
        states = []
        for doc in cursor:
            doc.pop("_id", None)
            states.append(WorkflowState.model_validate(doc))
        return states
    
    def get_state_ids(
        self,
        state_types: Sequence[WorkflowStateType],
        project_id: Optional[int] = None
    ) -> List[int]:
        """IDs of states with one of the given types"""
        query: Dict[str, Any] = {"type": {"$in": [t.value for t in state_types]}}
        if project_id is not None:
            query["project_id"] = project_id
        return [doc["state_id"] for doc in self._states.find(query, {"state_id": 1})]
    
    # =========================================================================
    # Transitions
    # =========================================================================
    
    def create_transition(self, transition: WorkflowTransition) -> WorkflowTransition:
        """Create a workflow transition"""
        if not transition.transition_id:
            transition = transition.model_copy(
                update={"transition_id": next_sequence("workflow_transitions")}
            )
        doc = transition.model_dump()
        doc["_id"] = transition.transition_id
        
        try:
            self._transitions.insert_one(doc)
        except DuplicateKeyError:
            raise AlreadyExistsError(
                f"A transition from state {transition.from_state_id} "
                f"to state {transition.to_state_id} already exists"
            )
        logger.info(
            f"Created workflow transition: {transition.name}",
            extra={"from_state_id": transition.from_state_id, "to_state_id": transition.to_state_id}
        )
        return transition
    
    def get_transition(self, from_state_id: int, to_state_id: int) -> Optional[WorkflowTransition]:
        """Get the edge for an ordered state pair"""
        doc = self._transitions.find_one({"from_state_id": from_state_id, "to_state_id": to_state_id})
        if doc:
            doc.pop("_id", None)
            return WorkflowTransition.model_validate(doc)
        return None
    
    def list_outgoing_transitions(
        self,
        from_state_id: int,
        automatic_only: bool = False
    ) -> List[WorkflowTransition]:
        """List edges leaving a state in ``order``"""
        query: Dict[str, Any] = {"from_state_id": from_state_id}
        if automatic_only:
            query["is_automatic"] = True
        return self._find_transitions(query)
    
    def list_transitions(self, project_id: int) -> List[WorkflowTransition]:
        """List edges whose source state belongs to the project"""
        state_ids = [s.state_id for s in self.list_states(project_id)]
        if not state_ids:
            return []
        return self._find_transitions({"from_state_id": {"$in": state_ids}})
    
    def _find_transitions(self, query: Dict[str, Any]) -> List[WorkflowTransition]:
        cursor = self._transitions.find(query).sort(
            [("order", ASCENDING), ("transition_id", ASCENDING)]
        )
        transitions = []
        for doc in cursor:
            doc.pop("_id", None)
            transitions.append(WorkflowTransition.model_validate(doc))
        return transitions
