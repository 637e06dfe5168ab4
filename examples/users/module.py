"""
Users Module
"""

from kestrel import ConfigService, HttpExceptionFilter

from .controllers import UserController
from .guards import AuthGuard
from .registry import d
from .services import UserService


@d.module(
    controllers=[UserController],
    providers=[ConfigService, UserService, AuthGuard, HttpExceptionFilter],
)
class UserModule:
    pass
