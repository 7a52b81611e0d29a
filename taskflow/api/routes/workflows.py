"""Workflow API Routes - States, transitions, audit and automation"""
from datetime import timedelta
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ..deps import (
    get_current_user_dep, get_correlation_id_dep, get_engine, get_workflow_service
)
from ..middleware.error_handlers import transition_error_response
from ...config.settings import settings
from ...domain.models import ActorContext
from ...domain.enums import AuditSortOrder
from ...domain.errors import DomainError
from ...engine.engine import WorkflowEngine
from ...services.workflow_service import WorkflowService
from ...utils.time import utc_now
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================

class TransitionRequest(BaseModel):
    """Request to move a task to another state"""
    to_state_id: int
    comment: Optional[str] = Field(None, max_length=1000)


class TransitionResponse(BaseModel):
    """Outcome of a transition request"""
    success: bool
    message: str
    error_code: Optional[str] = None


class ProcessedTask(BaseModel):
    id: int
    title: str


class ProcessAutomaticResponse(BaseModel):
    """Result of an automatic transition pass"""
    success: bool
    message: str
    processed_count: int
    processed_tasks: List[ProcessedTask]


class InitializeTransitionsResponse(BaseModel):
    message: str
    transitions_count: int


# ============================================================================
# Definitions
# ============================================================================

@router.get("/states/{project_id}")
async def list_states(
    project_id: int,
    actor: ActorContext = Depends(get_current_user_dep),
    service: WorkflowService = Depends(get_workflow_service)
) -> List[Dict[str, Any]]:
    """Workflow states of a project in display order"""
    try:
        states = service.list_states(project_id, actor.user_id)
        return [s.model_dump(mode="json") for s in states]
    
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/transitions/{project_id}")
async def list_transitions(
    project_id: int,
    actor: ActorContext = Depends(get_current_user_dep),
    service: WorkflowService = Depends(get_workflow_service)
) -> List[Dict[str, Any]]:
    """Workflow transitions of a project with state names"""
    try:
        transitions = service.list_transitions(project_id, actor.user_id)
        return [t.model_dump(mode="json") for t in transitions]
    
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/conditions")
async def list_conditions(
    actor: ActorContext = Depends(get_current_user_dep),
    service: WorkflowService = Depends(get_workflow_service)
):
    """Condition names usable in transition condition expressions"""
    return {"conditions": service.available_conditions()}


@router.post("/initialize-transitions/{project_id}", response_model=InitializeTransitionsResponse)
async def initialize_transitions(
    project_id: int,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: WorkflowService = Depends(get_workflow_service)
):
    """
    Create the standard transitions for a project without any
    
    Requires Start, InProgress, Review and Completed states.
    """
    try:
        transitions = service.initialize_default_transitions(project_id, actor.user_id)
        return InitializeTransitionsResponse(
            message="Default workflow transitions initialized successfully",
            transitions_count=len(transitions)
        )
    
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


# ============================================================================
# Transitions
# ============================================================================

@router.post("/transition/{task_id}", response_model=TransitionResponse)
async def transition_task(
    task_id: int,
    request: TransitionRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: WorkflowEngine = Depends(get_engine)
):
    """
    Move a task to another workflow state
    
    Allowed for the project owner and the task assignee.
    """
    result = engine.transition(
        task_id=task_id,
        to_state_id=request.to_state_id,
        user_id=actor.user_id,
        comment=request.comment
    )
    
    if result.success:
        return TransitionResponse(success=True, message="Task transitioned successfully")
    
    logger.warning(
        f"Task transition failed: {result.error_message}",
        extra={"task_id": task_id, "error_kind": result.error_kind.value}
    )
    return transition_error_response(result.error_kind, result.error_message or "Transition failed")


@router.get("/audit/{task_id}")
async def get_audit_history(
    task_id: int,
    order: AuditSortOrder = Query(AuditSortOrder.DESC),
    actor: ActorContext = Depends(get_current_user_dep),
    engine: WorkflowEngine = Depends(get_engine)
) -> List[Dict[str, Any]]:
    """
    Transition history of a task (newest first unless order=asc)
    
    A task the caller cannot see is reported like a refused transition.
    """
    history = engine.get_audit_history(
        task_id,
        descending=order == AuditSortOrder.DESC,
        user_id=actor.user_id
    )
    return [item.model_dump(mode="json") for item in history]


@router.post("/process-automatic/{project_id}", response_model=ProcessAutomaticResponse)
async def process_automatic_transitions(
    project_id: int,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: WorkflowEngine = Depends(get_engine)
):
    """Run one automatic transition pass over the project's tasks (owner only)"""
    engine.permission_guard.get_owned_project(project_id, actor.user_id)
    deadline = utc_now() + timedelta(seconds=settings.automation_batch_timeout_seconds)
    processed = engine.process_automatic_transitions(project_id=project_id, deadline=deadline)
    
    return ProcessAutomaticResponse(
        success=True,
        message=f"Processed {len(processed)} automatic transitions",
        processed_count=len(processed),
        processed_tasks=[ProcessedTask(id=t.task_id, title=t.title) for t in processed]
    )
