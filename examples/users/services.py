"""
Users Module - Services

In-memory user store. Singleton: one store per application container.
"""

import logging
from typing import Any, Dict, List

from kestrel import ConfigService, NotFoundException

from .registry import d
from .schemas import CreateUser, UpdateUser


logger = logging.getLogger("examples.users")


@d.injectable()
class UserService:
    def __init__(self, config: ConfigService):
        self.config = config
        self._users: Dict[int, Dict[str, Any]] = {
            1: {"id": 1, "name": "John Doe"},
            2: {"id": 2, "name": "Jane Doe"},
        }
        self._next_id = 3

    def get_users(self) -> List[Dict[str, Any]]:
        return list(self._users.values())

    def get_user(self, user_id: int) -> Dict[str, Any]:
        try:
            return self._users[user_id]
        except KeyError:
            raise NotFoundException(f"User {user_id} not found") from None

    def create_user(self, data: CreateUser) -> Dict[str, Any]:
        user = {"id": self._next_id, **data.model_dump()}
        self._users[self._next_id] = user
        self._next_id += 1
        logger.info(f"Created user {user['id']}")
        return {"message": "User created", "user": user}

    def update_user(self, user_id: int, data: UpdateUser) -> Dict[str, Any]:
        user = self.get_user(user_id)
        updates = data.model_dump(exclude_unset=True)
        user.update(updates)
        return {"message": "User updated", "id": user_id, "updates": updates}

    def delete_user(self, user_id: int) -> Dict[str, Any]:
        self.get_user(user_id)
        del self._users[user_id]
        return {"message": "User deleted", "id": user_id}
