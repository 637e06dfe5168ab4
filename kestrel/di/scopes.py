"""
Scope definitions.
"""

from enum import Enum


class Scope(str, Enum):
    """Provider lifetime scopes."""

    SINGLETON = "singleton"  # One instance per root container
    TRANSIENT = "transient"  # New instance every resolve
    REQUEST = "request"      # One instance per request child scope

    @classmethod
    def coerce(cls, value: "Scope | str | None") -> "Scope":
        """Accept a Scope, its value in any case, or None (singleton)."""
        if value is None:
            return cls.SINGLETON
        if isinstance(value, cls):
            return value
        return cls(str(value).lower())

