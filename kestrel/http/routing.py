"""
Route table - path compilation and matching.

Path syntax:
    /users/:id        named segment
    /users/{id}       named segment (alternative form)
    /files/*          wildcard, matches the rest of the path

A trailing slash is optional on both the route and the request path.
Routes are matched in registration order; the first match wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Pattern, Sequence, Tuple


_PARAM = re.compile(r"^(?::(?P<colon>[A-Za-z_][A-Za-z0-9_]*)|\{(?P<brace>[A-Za-z_][A-Za-z0-9_]*)\})$")


def normalize_path(path: str) -> str:
    """Collapse duplicate slashes and drop the trailing one."""
    path = re.sub(r"/{2,}", "/", "/" + path.strip())
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def compile_path(path: str) -> Tuple[Pattern[str], List[str]]:
    """
    Compile a route path into a regex and its parameter names.

    Raises:
        ValueError: A parameter name is used twice
    """
    normalized = normalize_path(path)
    names: List[str] = []
    parts: List[str] = []

    segments = normalized.strip("/").split("/") if normalized != "/" else []
    for segment in segments:
        match = _PARAM.match(segment)
        if match:
            name = match.group("colon") or match.group("brace")
            if name in names:
                raise ValueError(f"Duplicate path parameter '{name}' in {path!r}")
            names.append(name)
            parts.append(f"(?P<{name}>[^/]+)")
        elif segment == "*":
            parts.append(".*")
        else:
            parts.append(re.escape(segment))

    pattern = "^/" + "/".join(parts) + "/?$"
    return re.compile(pattern), names


@dataclass
class Route:
    """A registered route: verb, path and its ordered handler list."""

    method: str
    path: str
    handlers: Tuple[Any, ...]
    endpoint: Any = None
    pattern: Pattern[str] = field(init=False, repr=False)
    param_names: List[str] = field(init=False, repr=False)

    def __post_init__(self):
        self.method = self.method.upper()
        self.handlers = tuple(self.handlers)
        self.pattern, self.param_names = compile_path(self.path)

    def match(self, method: str, path: str) -> Optional[Dict[str, str]]:
        if method != self.method:
            return None
        found = self.pattern.match(path)
        if found is None:
            return None
        return found.groupdict()


@dataclass
class RouteMatch:
    route: Route
    params: Dict[str, str]


class Router:
    """Ordered route table."""

    def __init__(self):
        self.routes: List[Route] = []

    def add(
        self,
        method: str,
        path: str,
        handlers: Sequence[Any],
        endpoint: Any = None,
    ) -> Route:
        route = Route(method=method, path=path, handlers=tuple(handlers), endpoint=endpoint)
        self.routes.append(route)
        return route

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        method = method.upper()
        for route in self.routes:
            params = route.match(method, path)
            if params is not None:
                return RouteMatch(route=route, params=params)
        return None

    def __len__(self) -> int:
        return len(self.routes)
