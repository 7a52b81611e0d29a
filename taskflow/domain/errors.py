"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, Optional

from .enums import TransitionErrorKind


class DomainError(Exception):
    """Base domain error - all errors extend this"""
    
    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400
    
    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# Authentication & Authorization Errors
class AuthenticationError(DomainError):
    """Token missing, invalid, or expired"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401


class AuthorizationError(DomainError):
    """User lacks permission for action"""
    error_code = "AUTHORIZATION_ERROR"
    http_status = 403


# Validation Errors
class ValidationError(DomainError):
    """Input validation failed"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


class WorkflowValidationError(ValidationError):
    """Workflow definition validation failed"""
    error_code = "WORKFLOW_VALIDATION_ERROR"


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class ProjectNotFoundError(NotFoundError):
    """Project not found (or not owned by the caller)"""
    error_code = "PROJECT_NOT_FOUND"


class TaskNotFoundError(NotFoundError):
    """Task not found"""
    error_code = "TASK_NOT_FOUND"


# Conflict Errors
class ConflictError(DomainError):
    """Resource conflict (e.g., concurrent modification)"""
    error_code = "CONFLICT"
    http_status = 409


class ConcurrencyError(ConflictError):
    """Optimistic concurrency conflict"""
    error_code = "CONCURRENCY_CONFLICT"


class AlreadyExistsError(ConflictError):
    """Resource already exists"""
    error_code = "ALREADY_EXISTS"


# Engine Errors
class EngineError(DomainError):
    """Workflow engine error"""
    error_code = "ENGINE_ERROR"
    http_status = 500


class TransitionError(EngineError):
    """A transition request was refused; `kind` is reported to the caller"""
    kind: TransitionErrorKind = TransitionErrorKind.INTERNAL_ERROR
    http_status = 400
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details, error_code=self.kind.value)


class TaskAccessError(TransitionError):
    """Task absent or not visible to the acting user (causes not distinguished)"""
    kind = TransitionErrorKind.NOT_FOUND_OR_ACCESS_DENIED
    http_status = 404


class InvalidTransitionError(TransitionError):
    """No edge from the task's current state to the requested state"""
    kind = TransitionErrorKind.INVALID_TRANSITION


class ConditionsNotMetError(TransitionError):
    """Edge exists but one of its conditions evaluated false"""
    kind = TransitionErrorKind.CONDITIONS_NOT_MET


class TargetStateNotFoundError(TransitionError):
    """Target state of an existing edge could not be resolved"""
    kind = TransitionErrorKind.TARGET_STATE_NOT_FOUND
