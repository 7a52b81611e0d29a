"""
Seed Data Script - Creates a demo user, project, workflow and tasks
Run: python -m scripts.seed_data
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import timedelta

from taskflow.repositories.mongo_client import create_indexes
from taskflow.repositories.mongo_store import MongoWorkflowStore
from taskflow.services.workflow_service import WorkflowService
from taskflow.services.task_service import TaskService
from taskflow.domain.models import User
from taskflow.domain.enums import TaskPriority, WorkflowStateType
from taskflow.utils.time import utc_now

DEMO_USER_ID = "demo-user"
DEMO_ASSIGNEE_ID = "demo-assignee"


def seed_demo_project():
    """Create a demo project with the default workflow plus one automatic edge"""
    store = MongoWorkflowStore()
    
    if store.list_projects(owner_id=DEMO_USER_ID):
        print("Demo project already exists. Skipping seed.")
        return
    
    now = utc_now()
    for user_id, email, first, last in [
        (DEMO_USER_ID, "demo@example.com", "Demo", "Owner"),
        (DEMO_ASSIGNEE_ID, "assignee@example.com", "Demo", "Assignee"),
    ]:
        if store.get_user(user_id) is None:
            store.create_user(User(
                user_id=user_id, email=email, first_name=first, last_name=last, created_at=now
            ))
    
    workflow_service = WorkflowService(store)
    task_service = TaskService(store, workflow_service)
    
    project = workflow_service.create_project(
        name="My First Project",
        owner_id=DEMO_USER_ID,
        description="Default project for getting started with task management"
    )
    
    states = {s.type: s for s in workflow_service.list_states(project.project_id, DEMO_USER_ID)}
    workflow_service.add_transition(
        project_id=project.project_id,
        user_id=DEMO_USER_ID,
        name="Escalate Stale High Priority",
        from_state_id=states[WorkflowStateType.START].state_id,
        to_state_id=states[WorkflowStateType.REVIEW].state_id,
        condition_expression="auto_progress_24h,high_priority_only",
        is_automatic=True
    )
    
    samples = [
        ("Set up development environment", TaskPriority.HIGH, DEMO_ASSIGNEE_ID),
        ("Write project README", TaskPriority.LOW, None),
        ("Fix login redirect", TaskPriority.CRITICAL, DEMO_ASSIGNEE_ID),
    ]
    for title, priority, assignee_id in samples:
        task_service.create_task(
            project_id=project.project_id,
            user_id=DEMO_USER_ID,
            title=title,
            priority=priority,
            assignee_id=assignee_id,
            due_date=now + timedelta(days=7)
        )
    
    print(f"Created project {project.project_id} with {len(samples)} tasks")


if __name__ == "__main__":
    print("Creating indexes...")
    create_indexes()
    
    print("Seeding demo data...")
    seed_demo_project()
    
    print("Done!")
