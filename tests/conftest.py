"""
Pytest Configuration and Fixtures

Provides:
    - store: Empty in-memory workflow store
    - clock: Frozen, manually advanced clock used by the engine
    - users: Project owner, task assignee and an unrelated user
    - project: Project seeded with the default four-state workflow
    - states: Default states of ``project`` keyed by state type
    - task: Medium priority task in the start state, assigned to the assignee
    - engine / workflow_service / task_service
    - make_token: Bearer token factory for API tests
"""
import os

# Must be set before taskflow.config.settings is imported
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("AUTOMATION_SCHEDULER_ENABLED", "false")
os.environ.setdefault("MONGO_TRANSACTIONS_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "taskflow-test-secret-0123456789abcdef")

from datetime import datetime, timedelta, timezone
from typing import Dict

import jwt
import pytest

from taskflow.config.settings import settings
from taskflow.domain.enums import TaskPriority, WorkflowStateType
from taskflow.domain.models import User, WorkflowState
from taskflow.engine.engine import WorkflowEngine
from taskflow.repositories.memory_store import InMemoryWorkflowStore
from taskflow.services.task_service import TaskService
from taskflow.services.workflow_service import WorkflowService

OWNER_ID = "owner-1"
ASSIGNEE_ID = "assignee-1"
OUTSIDER_ID = "outsider-1"


class FrozenClock:
    """Callable clock that only moves when told to"""
    
    def __init__(self, start: datetime):
        self.now = start
    
    def __call__(self) -> datetime:
        return self.now
    
    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ── Store & clock ────────────────────────────────────────────────────────────

@pytest.fixture
def store():
    return InMemoryWorkflowStore()


@pytest.fixture
def clock():
    return FrozenClock(datetime.now(timezone.utc))


# ── Services & engine ────────────────────────────────────────────────────────

@pytest.fixture
def workflow_service(store):
    return WorkflowService(store)


@pytest.fixture
def task_service(store, workflow_service):
    return TaskService(store, workflow_service)


@pytest.fixture
def engine(store, clock):
    return WorkflowEngine(store, clock=clock)


# ── Domain data ──────────────────────────────────────────────────────────────

@pytest.fixture
def users(store) -> Dict[str, User]:
    created = {}
    for user_id, email, first, last in [
        (OWNER_ID, "owner@example.com", "Olivia", "Owner"),
        (ASSIGNEE_ID, "assignee@example.com", "Arun", "Assignee"),
        (OUTSIDER_ID, None, "Oscar", "Outsider"),
    ]:
        created[user_id] = store.create_user(
            User(user_id=user_id, email=email, first_name=first, last_name=last)
        )
    return created


@pytest.fixture
def project(users, workflow_service):
    return workflow_service.create_project("Test Project", owner_id=OWNER_ID)


@pytest.fixture
def states(store, project) -> Dict[WorkflowStateType, WorkflowState]:
    return {s.type: s for s in store.list_states(project.project_id)}


@pytest.fixture
def task(task_service, project):
    return task_service.create_task(
        project_id=project.project_id,
        user_id=OWNER_ID,
        title="Write release notes",
        priority=TaskPriority.MEDIUM,
        assignee_id=ASSIGNEE_ID
    )


# ── Auth ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def make_token():
    """Return a factory producing ``Authorization`` header values"""
    def _make(user_id: str, expires_in: int = 3600, **claims) -> str:
        payload = {
            "sub": user_id,
            "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            **claims,
        }
        token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
        return f"Bearer {token}"
    return _make
