"""Project Repository - Data access for projects"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING

from .mongo_client import get_collection, next_sequence
from ..domain.models import Project
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ProjectRepository:
    """Repository for project operations"""
    
    def __init__(self):
        self._projects: Collection = get_collection("projects")
    
    def create_project(self, project: Project) -> Project:
        """Create a new project"""
        if not project.project_id:
            project = project.model_copy(update={"project_id": next_sequence("projects")})
        doc = project.model_dump()
        doc["_id"] = project.project_id
        
        self._projects.insert_one(doc)
        logger.info(f"Created project: {project.project_id}", extra={"project_id": project.project_id})
        return project
    
    def get_project(self, project_id: int) -> Optional[Project]:
        """Get project by ID"""
        doc = self._projects.find_one({"project_id": project_id})
        if doc:
            doc.pop("_id", None)
            return Project.model_validate(doc)
        return None
    
    def list_projects(self, owner_id: Optional[str] = None) -> List[Project]:
        """List projects, optionally for one owner"""
        query: Dict[str, Any] = {}
        if owner_id is not None:
            query["owner_id"] = owner_id
        
        projects = []
        for doc in self._projects.find(query).sort("project_id", ASCENDING):
            doc.pop("_id", None)
            projects.append(Project.model_validate(doc))
        return projects
    
    def get_owned_project_ids(self, owner_id: str) -> List[int]:
        """IDs of projects owned by a user"""
        return [doc["project_id"] for doc in self._projects.find({"owner_id": owner_id}, {"project_id": 1})]
