"""MongoDB Client - Connection and Collection Management"""
from typing import Any, Dict, Optional
from pymongo import MongoClient as PyMongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure

from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None


def get_client() -> PyMongoClient:
    """Get or create MongoDB client"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            tz_aware=True,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
        )
        # Test connection
        try:
            _client.admin.command("ping")
            logger.info("MongoDB connection successful")
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise
    return _client


def get_database() -> Database:
    """Get the application database"""
    global _database
    if _database is None:
        client = get_client()
        _database = client[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


def get_collection(name: str) -> Collection:
    """Get a collection from the database"""
    db = get_database()
    return db[name]


def next_sequence(name: str) -> int:
    """Allocate the next integer id for a collection from the counters collection"""
    counter = get_collection("counters").find_one_and_update(
        {"_id": name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER
    )
    return counter["seq"]


def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


def create_indexes() -> None:
    """Create all required indexes"""
    db = get_database()
    logger.info("Creating MongoDB indexes...")
    
    # Users collection
    users = db["users"]
    users.create_index("user_id", unique=True)
    users.create_index("email")
    
    # Projects collection
    projects = db["projects"]
    projects.create_index("project_id", unique=True)
    projects.create_index("owner_id")
    
    # Workflow states collection
    workflow_states = db["workflow_states"]
    workflow_states.create_index("state_id", unique=True)
    workflow_states.create_index([("project_id", ASCENDING), ("order", ASCENDING)])
    workflow_states.create_index([("project_id", ASCENDING), ("type", ASCENDING)])
    
    # Workflow transitions collection - one edge per ordered state pair
    workflow_transitions = db["workflow_transitions"]
    workflow_transitions.create_index("transition_id", unique=True)
    workflow_transitions.create_index(
        [("from_state_id", ASCENDING), ("to_state_id", ASCENDING)],
        unique=True
    )
    workflow_transitions.create_index(
        [("from_state_id", ASCENDING), ("is_automatic", ASCENDING), ("order", ASCENDING)]
    )
    
    # Tasks collection
    tasks = db["tasks"]
    tasks.create_index("task_id", unique=True)
    tasks.create_index("project_id")
    tasks.create_index("assignee_id")
    tasks.create_index("workflow_state_id")
    
    # Audit entries collection
    audit_entries = db["workflow_audit_entries"]
    audit_entries.create_index("audit_entry_id", unique=True)
    audit_entries.create_index([("task_id", ASCENDING), ("transitioned_at", DESCENDING)])
    
    logger.info("MongoDB indexes created successfully")


def health_check() -> Dict[str, Any]:
    """Check MongoDB health"""
    try:
        client = get_client()
        client.admin.command("ping")
        return {
            "status": "healthy",
            "database": settings.mongo_db,
            "connection": "ok"
        }
    except Exception as e:
        logger.error(f"MongoDB health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": settings.mongo_db,
            "error": str(e)
        }
