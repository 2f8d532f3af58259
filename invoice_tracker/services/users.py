"""
Placeholder user lookup and login (no sessions, no hashing)
"""
import logging
from typing import Optional

from invoice_tracker.exceptions import NotFound, ValidationFailed
from invoice_tracker.models.schemas import User
from invoice_tracker.storage import Storage

logger = logging.getLogger(__name__)


class UserService:

    def __init__(self, storage: Storage):
        self.storage = storage

    def get(self, user_id: int) -> User:
        user = self.storage.get_user(user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user

    def login(self, username: str, password: str) -> Optional[User]:
        user = self.storage.get_user_by_username(username)
        if user is None or user.password != password:
            logger.info(f"Failed login for {username!r}")
            return None
        return user

    def create(self, username: str, password: str, role: str = "user") -> User:
        if self.storage.get_user_by_username(username) is not None:
            raise ValidationFailed(f"Username {username!r} already exists")
        return self.storage.create_user({"username": username, "password": password, "role": role})
