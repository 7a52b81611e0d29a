"""Audit Repository - Data access for workflow audit entries"""
from typing import List, Optional
from pymongo.collection import Collection
from pymongo.client_session import ClientSession
from pymongo import ASCENDING, DESCENDING

from .mongo_client import get_collection
from ..domain.models import WorkflowAuditEntry
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AuditRepository:
    """Repository for audit entry operations (append-only)"""
    
    def __init__(self):
        self._audit_entries: Collection = get_collection("workflow_audit_entries")
    
    def create_entry(
        self,
        entry: WorkflowAuditEntry,
        session: Optional[ClientSession] = None
    ) -> WorkflowAuditEntry:
        """Create an audit entry (append-only)"""
        doc = entry.model_dump()
        doc["_id"] = entry.audit_entry_id
        
        self._audit_entries.insert_one(doc, session=session)
        logger.info(
            "Created workflow audit entry",
            extra={
                "task_id": entry.task_id,
                "from_state_id": entry.from_state_id,
                "to_state_id": entry.to_state_id,
                "user_id": entry.user_id
            }
        )
        return entry
    
    def get_entries_for_task(self, task_id: int, descending: bool = False) -> List[WorkflowAuditEntry]:
        """Get audit entries for a task in chronological (or reverse) order"""
        direction = DESCENDING if descending else ASCENDING
        cursor = self._audit_entries.find({"task_id": task_id}).sort(
            [("transitioned_at", direction), ("audit_entry_id", direction)]
        )
        
        entries = []
        for doc in cursor:
            doc.pop("_id", None)
            entries.append(WorkflowAuditEntry.model_validate(doc))
        return entries