"""
Metadata registry shared by every declaration of the users example.
"""

from kestrel import Decorators, MetadataRegistry


registry = MetadataRegistry()
d = Decorators(registry)


def Roles(*roles: str):
    """Attach the roles allowed to call a handler (read back by guards)."""
    return d.set_metadata("roles", roles)
