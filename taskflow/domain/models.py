"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict

from .enums import (
    WorkflowStateType, TaskPriority, TransitionErrorKind, AuditSystemInfo
)


# ============================================================================
# Users & Identity
# ============================================================================

class User(BaseModel):
    """Registered user"""
    model_config = ConfigDict(extra="ignore")
    
    user_id: str = Field(..., description="Identity provider user ID")
    email: Optional[EmailStr] = Field(None, description="User email")
    first_name: str = ""
    last_name: str = ""
    created_at: Optional[datetime] = None
    
    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
    
    @property
    def display_name(self) -> str:
        """Identity shown in audit history (email first, then name)"""
        return self.email or self.full_name or "Unknown"


class ActorContext(BaseModel):
    """Current actor context from JWT token"""
    model_config = ConfigDict(extra="forbid")
    
    user_id: str = Field(..., description="Acting user ID (token subject)")
    email: Optional[str] = Field(None, description="User email")
    display_name: Optional[str] = Field(None, description="User display name")
    roles: List[str] = Field(default_factory=list, description="Assigned roles")


# ============================================================================
# Projects & Workflow Definition
# ============================================================================

class Project(BaseModel):
    """Project owning a workflow graph and its tasks"""
    model_config = ConfigDict(extra="ignore")
    
    project_id: int
    name: str
    description: str = ""
    owner_id: str = Field(..., description="User ID of the project owner")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WorkflowState(BaseModel):
    """A typed, ordered node in a project's workflow graph"""
    model_config = ConfigDict(extra="ignore")
    
    state_id: int
    project_id: int
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    type: WorkflowStateType
    order: int = Field(default=0, description="Display order within the project")
    color: str = Field(default="#6B7280", max_length=7)
    is_active: bool = True
    created_at: Optional[datetime] = None


class WorkflowTransition(BaseModel):
    """Directed edge between two states of the same project"""
    model_config = ConfigDict(extra="ignore")
    
    transition_id: int
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    from_state_id: int
    to_state_id: int
    condition_expression: Optional[str] = Field(
        None, max_length=500,
        description="Comma-separated condition names, all of which must pass"
    )
    is_automatic: bool = False
    order: int = 0
    created_at: Optional[datetime] = None
    
    @property
    def condition_names(self) -> List[str]:
        """Condition names referenced by the expression (blank entries dropped)"""
        if not self.condition_expression:
            return []
        return [
            name.strip()
            for name in self.condition_expression.split(",")
            if name.strip()
        ]


class TransitionDetail(BaseModel):
    """Transition with its endpoint state names resolved"""
    transition_id: int
    name: str
    description: str = ""
    from_state_id: int
    from_state_name: str
    to_state_id: int
    to_state_name: str
    condition_expression: Optional[str] = None
    is_automatic: bool = False
    order: int = 0


# ============================================================================
# Tasks & Audit
# ============================================================================

class TaskItem(BaseModel):
    """Task moving through its project's workflow"""
    model_config = ConfigDict(extra="ignore")
    
    task_id: int
    project_id: int
    title: str = Field(..., max_length=200)
    description: str = Field(default="", max_length=2000)
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_id: Optional[str] = None
    workflow_state_id: int
    created_at: datetime
    updated_at: datetime
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    version: int = Field(default=1, description="Optimistic concurrency version")


class WorkflowAuditEntry(BaseModel):
    """Immutable record of one executed transition"""
    model_config = ConfigDict(extra="ignore", frozen=True)
    
    audit_entry_id: int
    task_id: int
    from_state_id: int
    to_state_id: int
    user_id: str
    comment: Optional[str] = None
    transitioned_at: datetime
    system_info: Optional[AuditSystemInfo] = None


class AuditHistoryItem(BaseModel):
    """Read projection of an audit entry with resolved names"""
    audit_entry_id: int
    task_id: int
    from_state_id: int
    from_state_name: str
    to_state_id: int
    to_state_name: str
    user_id: str
    user_display_name: str
    comment: Optional[str] = None
    transitioned_at: datetime
    system_info: Optional[str] = None


# ============================================================================
# Engine Results
# ============================================================================

class TransitionResult(BaseModel):
    """Outcome of a transition request"""
    success: bool
    error_kind: Optional[TransitionErrorKind] = None
    error_message: Optional[str] = None
    task: Optional[TaskItem] = None
    new_state: Optional[WorkflowState] = None
    audit_entry: Optional[WorkflowAuditEntry] = None
    
    @classmethod
    def ok(
        cls,
        task: TaskItem,
        new_state: WorkflowState,
        audit_entry: WorkflowAuditEntry
    ) -> "TransitionResult":
        return cls(success=True, task=task, new_state=new_state, audit_entry=audit_entry)
    
    @classmethod
    def failure(cls, kind: TransitionErrorKind, message: str) -> "TransitionResult":
        return cls(success=False, error_kind=kind, error_message=message)
