"""Repository modules - Data access layer"""
from .base import WorkflowStore, StoreTransaction
from .memory_store import InMemoryWorkflowStore
from .mongo_store import MongoWorkflowStore
from .mongo_client import get_database, get_collection

__all__ = [
    "WorkflowStore",
    "StoreTransaction",
    "InMemoryWorkflowStore",
    "MongoWorkflowStore",
    "get_database",
    "get_collection",
]
