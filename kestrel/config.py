"""
Config system - flat key/value configuration with layered precedence.

Merge order (later overrides earlier):
1. ``.env`` file (read with python-dotenv, ``os.environ`` is not touched)
2. Process environment variables
3. Manual overrides

The application builds one ``ConfigService`` at startup and registers it in
the root container as a value provider, so services declare it as an
ordinary constructor dependency.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import dotenv_values

from .faults import ConfigurationError


# Framework keys and their defaults
DEFAULTS: Dict[str, str] = {
    "KESTREL_HOST": "127.0.0.1",
    "KESTREL_PORT": "3000",
    "KESTREL_LOG_LEVEL": "info",
    "KESTREL_BODY_LIMIT": str(1024 * 1024),
}

_TRUE = frozenset(("1", "true", "yes", "on"))
_FALSE = frozenset(("0", "false", "no", "off", ""))


class ConfigService:
    """
    Read-only view over merged configuration values.

    Example:
        config = ConfigService.load(".env", overrides={"KESTREL_PORT": "8080"})
        port = config.get_int("KESTREL_PORT")
    """

    __slots__ = ("_values",)

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self._values: Dict[str, Any] = dict(DEFAULTS)
        if values:
            self._values.update(values)

    @classmethod
    def load(
        cls,
        env_file: Optional[str] = ".env",
        *,
        environ: Optional[Mapping[str, str]] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> "ConfigService":
        """
        Load configuration from every source.

        Args:
            env_file: Path to a ``.env`` file; skipped when missing or None
            environ: Environment mapping (defaults to ``os.environ``)
            overrides: Manual overrides (highest precedence)
        """
        values: Dict[str, Any] = {}

        if env_file and Path(env_file).is_file():
            values.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})

        values.update(os.environ if environ is None else environ)

        if overrides:
            values.update(overrides)

        return cls(values)

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        """
        Raises:
            ConfigurationError: The value is not an integer
        """
        value = self._values.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"Config key {key} must be an integer, got {value!r}",
                code="INVALID_CONFIG_VALUE",
                key=key,
            ) from None

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._values.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ConfigurationError(
            f"Config key {key} must be a boolean, got {value!r}",
            code="INVALID_CONFIG_VALUE",
            key=key,
        )

    def require(self, key: str) -> Any:
        """
        Raises:
            ConfigurationError: The key is not set
        """
        if key not in self._values:
            raise ConfigurationError(
                f"Missing required config key: {key}",
                code="MISSING_CONFIG_KEY",
                key=key,
            )
        return self._values[key]

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    # Framework settings

    @property
    def host(self) -> str:
        return self.get("KESTREL_HOST")

    @property
    def port(self) -> int:
        return self.get_int("KESTREL_PORT")

    @property
    def log_level(self) -> str:
        return str(self.get("KESTREL_LOG_LEVEL")).lower()

    @property
    def body_limit(self) -> int:
        return self.get_int("KESTREL_BODY_LIMIT")

    def __repr__(self) -> str:
        return f"<ConfigService keys={len(self._values)}>"
