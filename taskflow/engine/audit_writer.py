"""Audit Writer - Append-only transition audit and history projection"""
from datetime import datetime
from typing import Dict, List, Optional

from ..domain.models import WorkflowAuditEntry, AuditHistoryItem, WorkflowState, User
from ..domain.enums import AuditSystemInfo
from ..repositories.base import StoreTransaction, WorkflowStore
from ..utils.logger import get_logger

logger = get_logger(__name__)

UNKNOWN_NAME = "Unknown"


class AuditWriter:
    """
    Write audit entries (append-only) and read them back
    
    Entries are only ever written through a store transaction, together
    with the task update they describe.
    """
    
    def __init__(self, store: WorkflowStore):
        self.store = store
    
    def write_transition(
        self,
        txn: StoreTransaction,
        task_id: int,
        from_state_id: int,
        to_state_id: int,
        user_id: str,
        transitioned_at: datetime,
        comment: Optional[str] = None,
        system_info: Optional[AuditSystemInfo] = None
    ) -> WorkflowAuditEntry:
        """Append the audit entry for one executed transition"""
        entry = WorkflowAuditEntry(
            audit_entry_id=txn.next_audit_entry_id(),
            task_id=task_id,
            from_state_id=from_state_id,
            to_state_id=to_state_id,
            user_id=user_id,
            comment=comment,
            transitioned_at=transitioned_at,
            system_info=system_info
        )
        return txn.insert_audit_entry(entry)
    
    def get_history(self, task_id: int, descending: bool = False) -> List[AuditHistoryItem]:
        """Audit entries of a task with state names and user identity resolved"""
        entries = self.store.list_audit_entries(task_id, descending=descending)
        
        states: Dict[int, Optional[WorkflowState]] = {}
        users: Dict[str, Optional[User]] = {}
        
        def state_name(state_id: int) -> str:
            if state_id not in states:
                states[state_id] = self.store.get_state(state_id)
            state = states[state_id]
            return state.name if state else UNKNOWN_NAME
        
        def user_name(user_id: str) -> str:
            if user_id not in users:
                users[user_id] = self.store.get_user(user_id)
            user = users[user_id]
            return user.display_name if user else UNKNOWN_NAME
        
        return [
            AuditHistoryItem(
                audit_entry_id=entry.audit_entry_id,
                task_id=entry.task_id,
                from_state_id=entry.from_state_id,
                from_state_name=state_name(entry.from_state_id),
                to_state_id=entry.to_state_id,
                to_state_name=state_name(entry.to_state_id),
                user_id=entry.user_id,
                user_display_name=user_name(entry.user_id),
                comment=entry.comment,
                transitioned_at=entry.transitioned_at,
                system_info=entry.system_info.value if entry.system_info else None
            )
            for entry in entries
        ]
