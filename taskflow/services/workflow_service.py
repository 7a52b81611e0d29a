"""Workflow Service - Workflow definition business logic"""
from typing import Dict, List, Optional, Tuple

from ..domain.models import Project, WorkflowState, WorkflowTransition, TransitionDetail
from ..domain.enums import WorkflowStateType
from ..domain.errors import WorkflowValidationError, NotFoundError
from ..engine.condition_evaluator import ConditionRegistry
from ..engine.permission_guard import PermissionGuard
from ..repositories.base import WorkflowStore
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


# (name, type, color) in display order
DEFAULT_STATES: List[Tuple[str, WorkflowStateType, str]] = [
    ("Todo", WorkflowStateType.START, "#6B7280"),
    ("In Progress", WorkflowStateType.IN_PROGRESS, "#3B82F6"),
    ("Review", WorkflowStateType.REVIEW, "#F59E0B"),
    ("Done", WorkflowStateType.COMPLETED, "#10B981"),
]

# (name, from type, to type) created with a new project
DEFAULT_TRANSITIONS: List[Tuple[str, WorkflowStateType, WorkflowStateType]] = [
    ("Start Progress", WorkflowStateType.START, WorkflowStateType.IN_PROGRESS),
    ("Send for Review", WorkflowStateType.IN_PROGRESS, WorkflowStateType.REVIEW),
    ("Complete Task", WorkflowStateType.REVIEW, WorkflowStateType.COMPLETED),
    ("Back to Todo", WorkflowStateType.REVIEW, WorkflowStateType.START),
    ("Back to Progress", WorkflowStateType.REVIEW, WorkflowStateType.IN_PROGRESS),
    ("Reopen Task", WorkflowStateType.COMPLETED, WorkflowStateType.START),
]

# Transitions added to an existing project that has states but no edges.
# The Review-typed state plays the "blocked" role.
INITIAL_TRANSITIONS: List[Tuple[str, WorkflowStateType, WorkflowStateType]] = [
    ("Start Progress", WorkflowStateType.START, WorkflowStateType.IN_PROGRESS),
    ("Complete Task", WorkflowStateType.IN_PROGRESS, WorkflowStateType.COMPLETED),
    ("Block Task", WorkflowStateType.START, WorkflowStateType.REVIEW),
    ("Block In Progress", WorkflowStateType.IN_PROGRESS, WorkflowStateType.REVIEW),
    ("Unblock to TODO", WorkflowStateType.REVIEW, WorkflowStateType.START),
    ("Reopen Task", WorkflowStateType.COMPLETED, WorkflowStateType.START),
]

REQUIRED_STATE_TYPES = (
    WorkflowStateType.START,
    WorkflowStateType.IN_PROGRESS,
    WorkflowStateType.REVIEW,
    WorkflowStateType.COMPLETED,
)


class WorkflowService:
    """Service for project workflow definitions (owner-only)"""

    def __init__(
        self,
        store: WorkflowStore,
        condition_registry: Optional[ConditionRegistry] = None
    ):
        self.store = store
        self.condition_registry = condition_registry or ConditionRegistry.with_defaults()
        self.permission_guard = PermissionGuard(store)

    # =========================================================================
    # Projects
    # =========================================================================

    def create_project(
        self,
        name: str,
        owner_id: str,
        description: str = "",
        seed_workflow: bool = True
    ) -> Project:
        """Create a project, with the default workflow unless told otherwise"""
        if not name or not name.strip():
            raise WorkflowValidationError("Project name is required")

        now = utc_now()
        project = self.store.create_project(Project(
            project_id=0,
            name=name.strip(),
            description=description,
            owner_id=owner_id,
            created_at=now,
            updated_at=now
        ))

        if seed_workflow:
            self.seed_default_workflow(project.project_id)

        logger.info(
            f"Created project '{project.name}'",
            extra={"project_id": project.project_id, "user_id": owner_id}
        )
        return project

    def seed_default_workflow(
        self,
        project_id: int
    ) -> Tuple[List[WorkflowState], List[WorkflowTransition]]:
        """Create the four default states and six default manual transitions"""
        now = utc_now()
        by_type: Dict[WorkflowStateType, WorkflowState] = {}
        states = []

        for order, (name, state_type, color) in enumerate(DEFAULT_STATES, start=1):
            state = self.store.create_state(WorkflowState(
                state_id=0,
                project_id=project_id,
                name=name,
                type=state_type,
                order=order,
                color=color,
                created_at=now
            ))
            by_type[state_type] = state
            states.append(state)

        transitions = self._create_typed_transitions(DEFAULT_TRANSITIONS, by_type)
        logger.info(
            f"Seeded default workflow ({len(states)} states, {len(transitions)} transitions)",
            extra={"project_id": project_id}
        )
        return states, transitions

    def initialize_default_transitions(
        self,
        project_id: int,
        user_id: str
    ) -> List[WorkflowTransition]:
        """
        Create the standard transitions for a project that has states but no
        transitions yet

        Raises:
            ProjectNotFoundError: If the project is absent or not owned by the user
            WorkflowValidationError: If transitions exist or state types are missing
        """
        self.permission_guard.get_owned_project(project_id, user_id)

        if self.store.list_transitions(project_id):
            raise WorkflowValidationError(
                "Project already has workflow transitions configured",
                details={"project_id": project_id}
            )

        by_type: Dict[WorkflowStateType, WorkflowState] = {}
        for state in self.store.list_states(project_id):
            by_type.setdefault(state.type, state)

        missing = [t.value for t in REQUIRED_STATE_TYPES if t not in by_type]
        if missing:
            raise WorkflowValidationError(
                "Project is missing required workflow state types",
                details={"missing_types": missing}
            )

        transitions = self._create_typed_transitions(INITIAL_TRANSITIONS, by_type)
        logger.info(
            f"Initialized {len(transitions)} default transitions",
            extra={"project_id": project_id, "user_id": user_id}
        )
        return transitions

    def _create_typed_transitions(
        self,
        templates: List[Tuple[str, WorkflowStateType, WorkflowStateType]],
        by_type: Dict[WorkflowStateType, WorkflowState]
    ) -> List[WorkflowTransition]:
        now = utc_now()
        return [
            self.store.create_transition(WorkflowTransition(
                transition_id=0,
                name=name,
                from_state_id=by_type[from_type].state_id,
                to_state_id=by_type[to_type].state_id,
                order=order,
                is_automatic=False,
                created_at=now
            ))
            for order, (name, from_type, to_type) in enumerate(templates, start=1)
        ]

    # =========================================================================
    # Definition edits
    # =========================================================================

    def add_state(
        self,
        project_id: int,
        user_id: str,
        name: str,
        state_type: WorkflowStateType,
        order: Optional[int] = None,
        color: str = "#6B7280",
        description: str = ""
    ) -> WorkflowState:
        """Add a state to a project's workflow"""
        self.permission_guard.get_owned_project(project_id, user_id)

        if not name or not name.strip():
            raise WorkflowValidationError("State name is required")

        if order is None:
            existing = self.store.list_states(project_id)
            order = max((s.order for s in existing), default=0) + 1

        state = self.store.create_state(WorkflowState(
            state_id=0,
            project_id=project_id,
            name=name.strip(),
            description=description,
            type=state_type,
            order=order,
            color=color,
            created_at=utc_now()
        ))
        logger.info(
            f"Added state '{state.name}'",
            extra={"project_id": project_id, "user_id": user_id}
        )
        return state

    def add_transition(
        self,
        project_id: int,
        user_id: str,
        name: str,
        from_state_id: int,
        to_state_id: int,
        condition_expression: Optional[str] = None,
        is_automatic: bool = False,
        order: Optional[int] = None,
        description: str = ""
    ) -> WorkflowTransition:
        """
        Add a transition between two states of the project

        Raises:
            WorkflowValidationError: If an endpoint is outside the project or
                the condition expression names nothing
            AlreadyExistsError: If the ordered state pair already has an edge
        """
        self.permission_guard.get_owned_project(project_id, user_id)

        if not name or not name.strip():
            raise WorkflowValidationError("Transition name is required")

        for state_id in (from_state_id, to_state_id):
            state = self.store.get_state(state_id)
            if state is None or state.project_id != project_id:
                raise WorkflowValidationError(
                    f"State {state_id} does not belong to project {project_id}",
                    details={"state_id": state_id, "project_id": project_id}
                )

        if condition_expression is not None:
            names = [n.strip() for n in condition_expression.split(",") if n.strip()]
            if not names:
                raise WorkflowValidationError("Condition expression contains no condition names")
            unknown = [n for n in names if n not in self.condition_registry]
            if unknown:
                logger.warning(
                    f"Transition references unregistered conditions: {', '.join(unknown)}",
                    extra={"project_id": project_id}
                )
            condition_expression = ",".join(names)

        if order is None:
            existing = self.store.list_transitions(project_id)
            order = max((t.order for t in existing), default=0) + 1

        transition = self.store.create_transition(WorkflowTransition(
            transition_id=0,
            name=name.strip(),
            description=description,
            from_state_id=from_state_id,
            to_state_id=to_state_id,
            condition_expression=condition_expression,
            is_automatic=is_automatic,
            order=order,
            created_at=utc_now()
        ))
        logger.info(
            f"Added transition '{transition.name}'",
            extra={
                "project_id": project_id,
                "from_state_id": from_state_id,
                "to_state_id": to_state_id,
                "user_id": user_id,
            }
        )
        return transition

    # =========================================================================
    # Queries
    # =========================================================================

    def list_states(self, project_id: int, user_id: str) -> List[WorkflowState]:
        """States of a project ordered by ``order``"""
        self.permission_guard.get_owned_project(project_id, user_id)
        return self.store.list_states(project_id)

    def list_transitions(self, project_id: int, user_id: str) -> List[TransitionDetail]:
        """Transitions of a project with state names resolved"""
        self.permission_guard.get_owned_project(project_id, user_id)
        names = {s.state_id: s.name for s in self.store.list_states(project_id)}

        return [
            TransitionDetail(
                transition_id=t.transition_id,
                name=t.name,
                description=t.description,
                from_state_id=t.from_state_id,
                from_state_name=names.get(t.from_state_id, "Unknown"),
                to_state_id=t.to_state_id,
                to_state_name=names.get(t.to_state_id, "Unknown"),
                condition_expression=t.condition_expression,
                is_automatic=t.is_automatic,
                order=t.order
            )
            for t in self.store.list_transitions(project_id)
        ]

    def get_default_state(self, project_id: int) -> WorkflowState:
        """The Start-typed state with the lowest order"""
        for state in self.store.list_states(project_id):
            if state.type == WorkflowStateType.START:
                return state
        raise NotFoundError(
            "Project has no start state",
            details={"project_id": project_id}
        )

    def available_conditions(self) -> List[str]:
        """Registered condition names usable in condition expressions"""
        return self.condition_registry.names()
