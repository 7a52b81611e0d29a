"""API Dependencies - Common dependencies for routes"""
from functools import lru_cache
from typing import Optional
from fastapi import Depends, Header, HTTPException, Request, status

from ..domain.models import ActorContext
from ..domain.errors import AuthenticationError
from ..engine.engine import WorkflowEngine
from ..engine.condition_evaluator import ConditionRegistry, get_condition_registry
from ..repositories.base import WorkflowStore
from ..repositories.mongo_store import MongoWorkflowStore
from ..services.workflow_service import WorkflowService
from ..utils.jwt import get_current_user as _jwt_get_current_user
from ..utils.logger import set_correlation_id
from .middleware.correlation import CORRELATION_HEADER, resolve_correlation_id


async def get_correlation_id_dep(request: Request) -> str:
    """Correlation id bound by the middleware, or one resolved from the header"""
    correlation_id = getattr(request.state, "correlation_id", None)
    if correlation_id is None:
        correlation_id = resolve_correlation_id(request.headers.get(CORRELATION_HEADER))
        set_correlation_id(correlation_id)
    return correlation_id


async def get_current_user_dep(
    authorization: Optional[str] = Header(None)
) -> ActorContext:
    """
    Acting user from the bearer token
    
    Raises:
        HTTPException: 401 if the header is missing or the token is invalid
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": {"code": "AUTHENTICATION_ERROR", "message": "Authorization header is missing"}},
            headers={"WWW-Authenticate": "Bearer"}
        )
    
    try:
        return _jwt_get_current_user(authorization)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.to_dict(),
            headers={"WWW-Authenticate": "Bearer"}
        )


# ============================================================================
# Store, conditions, engine and services
# ============================================================================

@lru_cache()
def _default_store() -> WorkflowStore:
    return MongoWorkflowStore()


def get_store() -> WorkflowStore:
    """Workflow store dependency (overridden in tests)"""
    return _default_store()


def get_engine(
    store: WorkflowStore = Depends(get_store),
    registry: ConditionRegistry = Depends(get_condition_registry)
) -> WorkflowEngine:
    return WorkflowEngine(store, condition_registry=registry)


def get_workflow_service(
    store: WorkflowStore = Depends(get_store),
    registry: ConditionRegistry = Depends(get_condition_registry)
) -> WorkflowService:
    return WorkflowService(store, condition_registry=registry)
