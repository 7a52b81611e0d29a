"""User Repository - Data access for users"""
from typing import Optional
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection
from ..domain.models import User
from ..domain.errors import AlreadyExistsError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class UserRepository:
    """Repository for user operations"""
    
    def __init__(self):
        self._users: Collection = get_collection("users")
    
    def create_user(self, user: User) -> User:
        """Create a new user"""
        doc = user.model_dump()
        doc["_id"] = user.user_id
        
        try:
            self._users.insert_one(doc)
        except DuplicateKeyError:
            raise AlreadyExistsError(f"User {user.user_id} already exists")
        logger.info(f"Created user: {user.user_id}", extra={"user_id": user.user_id})
        return user
    
    def get_user(self, user_id: str) -> Optional[User]:
        """Get user by ID"""
        doc = self._users.find_one({"user_id": user_id})
        if doc:
            doc.pop("_id", None)
            return User.model_validate(doc)
        return None
