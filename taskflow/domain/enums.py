"""Domain Enumerations - Workflow state types, priorities and error kinds"""
from enum import Enum


class WorkflowStateType(str, Enum):
    """Semantic type of a workflow state"""
    START = "Start"
    IN_PROGRESS = "InProgress"
    REVIEW = "Review"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class TaskPriority(str, Enum):
    """Task priority (ordinal: Low < Medium < High < Critical)"""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        """Ordinal position used for threshold comparisons"""
        return _PRIORITY_RANKS[self]

    def at_least(self, other: "TaskPriority") -> bool:
        return self.rank >= other.rank


_PRIORITY_RANKS = {
    TaskPriority.LOW: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.HIGH: 3,
    TaskPriority.CRITICAL: 4,
}


class TimeReferenceField(str, Enum):
    """Task timestamp a time-based condition measures from"""
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    DUE_DATE = "due_date"


class TransitionErrorKind(str, Enum):
    """Why a transition request was refused"""
    NOT_FOUND_OR_ACCESS_DENIED = "NOT_FOUND_OR_ACCESS_DENIED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CONDITIONS_NOT_MET = "CONDITIONS_NOT_MET"
    TARGET_STATE_NOT_FOUND = "TARGET_STATE_NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AuditSystemInfo(str, Enum):
    """Tag distinguishing manual from automatic transitions in the audit log"""
    MANUAL = "Manual transition"
    AUTOMATIC = "Automatic transition"


class AuditSortOrder(str, Enum):
    """Ordering of audit history by transitioned_at"""
    ASC = "asc"
    DESC = "desc"


# States whose tasks are considered by the automatic transition processor
AUTOMATABLE_STATE_TYPES = (WorkflowStateType.START, WorkflowStateType.IN_PROGRESS)
