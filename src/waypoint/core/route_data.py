"""Resolved route record."""

import itertools
import time
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from functools import cached_property
from typing import Any, Dict, List, Optional

from waypoint.core.params import RouteParams, TypedParamsResolver
from waypoint.core.parser import parse_segments

_id_counter = itertools.count(1)


def _generate_id() -> str:
    return f"route_{next(_id_counter)}_{int(time.time() * 1000)}"


@dataclass(frozen=True, eq=False)
class RouteData:
    """Information about one resolved navigation.

    Created once per successful resolution and never mutated. Two records
    are equal when pattern, path, name and params are equal; ``id`` and
    ``created_at`` exist for tracing only.

    Attributes:
        pattern: Matched route pattern
        path: Concrete path without the query string
        full_path: Path including the query string
        name: Route name
        params: Raw path, query and body parameters
        is_initial: Whether this is the configured initial route
        parent_pattern: Pattern of the enclosing shell route
        child_patterns: Patterns registered under this route
        metadata: Route metadata
        arguments: Opaque navigation payload
    """

    pattern: str
    path: str
    full_path: str
    name: str
    params: RouteParams = field(default_factory=RouteParams)
    is_initial: bool = False
    parent_pattern: Optional[str] = None
    child_patterns: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    arguments: Any = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    id: str = field(default_factory=_generate_id)

    @cached_property
    def typed_params(self) -> TypedParamsResolver:
        """Typed, cached access to this route's parameters."""
        return TypedParamsResolver(self.params, self.arguments)

    @property
    def has_path_params(self) -> bool:
        return bool(self.params.path_params)

    @property
    def has_query_params(self) -> bool:
        return bool(self.params.query_params)

    @property
    def has_body_params(self) -> bool:
        return bool(self.params.body_params)

    @property
    def has_params(self) -> bool:
        return not self.params.is_empty

    @property
    def depth(self) -> int:
        return len(parse_segments(self.path))

    def copy_with(self, **changes: Any) -> "RouteData":
        """Return a copy with some fields replaced; ``id`` and ``created_at`` are kept."""
        return replace(self, **changes)

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, RouteData):
            return NotImplemented
        return (
            self.pattern == other.pattern
            and self.path == other.path
            and self.name == other.name
            and self.params == other.params
        )

    def __hash__(self) -> int:
        return hash((self.pattern, self.path, self.name, self.params))

    def __repr__(self) -> str:
        return f"RouteData(path={self.path!r}, name={self.name!r}, params={self.params!r})"
