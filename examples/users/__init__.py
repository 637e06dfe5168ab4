"""
Users example - CRUD over an in-memory store, guarded by a Bearer token.
"""

from .app import create_app
from .module import UserModule

__all__ = ["create_app", "UserModule"]
