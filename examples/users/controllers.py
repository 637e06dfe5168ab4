"""
Users Module - Controllers

REST endpoints under ``/users``. Every route requires a Bearer token and
HTTP exceptions are rendered by ``HttpExceptionFilter``.
"""

from typing import Annotated, Any, Dict

from kestrel import Body, HttpExceptionFilter, Param, ParseIntPipe, SchemaPipe

from .guards import AuthGuard, timing_interceptor
from .registry import Roles, d
from .schemas import CreateUser, UpdateUser
from .services import UserService


UserId = Annotated[int, Param("id", ParseIntPipe())]


@d.controller("/users")
@d.use_guards(AuthGuard)
@d.use_filters(HttpExceptionFilter)
@d.use_interceptors(timing_interceptor)
@d.injectable()
class UserController:
    def __init__(self, users: UserService):
        self.users = users

    @d.get("/")
    @Roles("admin")
    def get_users(self):
        return self.users.get_users()

    @d.get("/:id")
    def get_user(self, user_id: UserId):
        return self.users.get_user(user_id)

    @d.post("/")
    def create_user(self, data: Annotated[CreateUser, Body(SchemaPipe(CreateUser))]) -> Dict[str, Any]:
        return self.users.create_user(data)

    @d.put("/:id")
    def update_user(
        self,
        user_id: UserId,
        data: Annotated[UpdateUser, Body(SchemaPipe(UpdateUser))],
    ) -> Dict[str, Any]:
        return self.users.update_user(user_id, data)

    @d.delete("/:id")
    def delete_user(self, user_id: UserId) -> Dict[str, Any]:
        return self.users.delete_user(user_id)
