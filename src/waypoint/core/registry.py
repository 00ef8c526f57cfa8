"""Route registry.

Stores route entries keyed by normalized pattern, tracks parent to child
relationships, shell patterns and redirect rules. Registration order is
preserved; the matcher breaks ties with it.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from waypoint.core.exceptions import DuplicateRouteError, InvalidRouteConfigError
from waypoint.core.params import RouteParams
from waypoint.core.parser import normalize_path, validate_pattern
from waypoint.core.route_data import RouteData
from waypoint.core.routing import RouteMatchResult, build_path, find_best_match, match

if TYPE_CHECKING:
    from waypoint.core.guards import Guard
    from waypoint.core.middleware import Middleware

logger = logging.getLogger(__name__)

PageBuilder = Callable[[RouteData], Any]
ShellBuilder = Callable[[RouteData, Any], Any]


@dataclass(frozen=True, eq=False)
class RouteEntry:
    """A registered route.

    Attributes:
        pattern: Route pattern (normalized on registration)
        name: Route name; defaults to the pattern
        builder: Produces the page node for a resolved route
        parent_pattern: Pattern of the enclosing shell route
        guards: Guards that always run for this route
        middleware: Middleware that always runs for this route
        transition_key: Name of a transition known to the rendering layer
        transition: Opaque transition descriptor
        is_shell: Whether this route hosts a nested navigator
        is_initial: Whether this is the initial route
        fullscreen_dialog: Passed through to the page
        maintain_state: Passed through to the page
        metadata: Free-form route metadata
        shell_builder: Wraps a child node in this route's shell
    """

    pattern: str
    name: str = ""
    builder: Optional[PageBuilder] = None
    parent_pattern: Optional[str] = None
    guards: Sequence["Guard"] = ()
    middleware: Sequence["Middleware"] = ()
    transition_key: Optional[str] = None
    transition: Any = None
    is_shell: bool = False
    is_initial: bool = False
    fullscreen_dialog: bool = False
    maintain_state: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)
    shell_builder: Optional[ShellBuilder] = None

    @property
    def is_shell_capable(self) -> bool:
        return self.is_shell or self.shell_builder is not None

    def __repr__(self) -> str:
        return f"RouteEntry(pattern={self.pattern!r}, name={self.name!r})"


@dataclass(frozen=True)
class RedirectEntry:
    """A redirect rule from one pattern to another.

    Parameters captured by ``from_pattern`` are substituted into
    ``to_pattern``. ``condition`` receives a provisional RouteData for the
    matched path; the rule applies only when it returns True.
    """

    from_pattern: str
    to_pattern: str
    permanent: bool = False
    condition: Optional[Callable[[RouteData], bool]] = None

    def should_redirect(self, data: RouteData) -> bool:
        if self.condition is None:
            return True
        return bool(self.condition(data))


class RouteRegistry:
    """Route table of one router."""

    def __init__(self) -> None:
        self._entries: Dict[str, RouteEntry] = {}
        self._children: Dict[str, List[str]] = {}
        self._redirects: List[RedirectEntry] = []
        self._shells: List[str] = []

    def register(self, entry: RouteEntry) -> RouteEntry:
        """Register a route entry.

        Args:
            entry: Route entry

        Returns:
            The stored entry, with normalized patterns and a default name

        Raises:
            InvalidRouteConfigError: If the pattern is malformed
            DuplicateRouteError: If the pattern is already registered
        """
        pattern = validate_pattern(entry.pattern)
        if pattern in self._entries:
            raise DuplicateRouteError(pattern)

        parent = normalize_path(entry.parent_pattern) if entry.parent_pattern else None
        stored = replace(entry, pattern=pattern, name=entry.name or pattern, parent_pattern=parent)
        self._entries[pattern] = stored

        if parent is not None:
            self._children.setdefault(parent, []).append(pattern)
        if stored.is_shell_capable:
            self.register_shell(pattern)

        logger.debug(
            f"Registered route {pattern}",
            extra={"pattern": pattern, "route_name": stored.name, "parent": parent},
        )
        return stored

    def register_all(self, entries: Iterable[RouteEntry]) -> None:
        for entry in entries:
            self.register(entry)

    def unregister(self, pattern: str) -> Optional[RouteEntry]:
        """Remove a route; returns the removed entry or None."""
        normalized = normalize_path(pattern)
        entry = self._entries.pop(normalized, None)
        if entry is None:
            return None
        if entry.parent_pattern is not None:
            siblings = self._children.get(entry.parent_pattern, [])
            if normalized in siblings:
                siblings.remove(normalized)
        self.unregister_shell(normalized)
        return entry

    def register_redirect(self, entry: RedirectEntry) -> None:
        self._redirects.append(
            replace(
                entry,
                from_pattern=normalize_path(entry.from_pattern),
                to_pattern=normalize_path(entry.to_pattern),
            )
        )

    def register_shell(self, pattern: str) -> None:
        """Record a pattern as hosting a nested navigator."""
        normalized = normalize_path(pattern)
        if normalized not in self._shells:
            self._shells.append(normalized)

    def unregister_shell(self, pattern: str) -> None:
        normalized = normalize_path(pattern)
        if normalized in self._shells:
            self._shells.remove(normalized)

    def get(self, pattern: str) -> Optional[RouteEntry]:
        return self._entries.get(normalize_path(pattern))

    def __contains__(self, pattern: object) -> bool:
        return isinstance(pattern, str) and normalize_path(pattern) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def patterns(self) -> List[str]:
        return list(self._entries)

    @property
    def entries(self) -> List[RouteEntry]:
        return list(self._entries.values())

    @property
    def redirects(self) -> List[RedirectEntry]:
        return list(self._redirects)

    @property
    def shell_patterns(self) -> List[str]:
        return list(self._shells)

    def children_of(self, pattern: str) -> List[str]:
        return list(self._children.get(normalize_path(pattern), []))

    def match(self, path: str) -> Optional[Tuple[RouteEntry, RouteMatchResult]]:
        """Find the registered entry that best matches a path."""
        best = find_best_match(self._entries, path)
        if best is None:
            return None
        pattern, result = best
        return self._entries[pattern], result

    def find_redirect(
        self,
        path: str,
        query_params: Optional[Mapping[str, str]] = None,
        arguments: Any = None,
    ) -> Optional[Tuple[RedirectEntry, str]]:
        """Find the first applicable redirect rule for a path.

        Args:
            path: Concrete path without query string
            query_params: Query parameters, passed to conditions
            arguments: Navigation payload, passed to conditions

        Returns:
            Tuple of (rule, target path), or None. A rule whose target equals
            the path itself is skipped.
        """
        normalized = normalize_path(path)
        for redirect in self._redirects:
            result = match(redirect.from_pattern, normalized)
            if not result.is_match:
                continue

            target = build_path(redirect.to_pattern, result.path_params)
            if target == normalized:
                continue

            if redirect.condition is not None:
                provisional = RouteData(
                    pattern=redirect.from_pattern,
                    path=normalized,
                    full_path=normalized,
                    name=redirect.from_pattern,
                    params=RouteParams(
                        path_params=result.path_params, query_params=dict(query_params or {})
                    ),
                    arguments=arguments,
                )
                if not redirect.should_redirect(provisional):
                    continue

            return redirect, target
        return None

    def find_shell_for_path(self, path: str) -> Optional[str]:
        """Return the first shell pattern hosting a path.

        A shell hosts a path when the shell's pattern text prefixes the path
        and one of the shell's registered children matches it.

        Args:
            path: Concrete path

        Returns:
            Shell pattern, or None
        """
        normalized = normalize_path(path)
        for shell in self._shells:
            if not normalized.startswith(shell):
                continue
            for child in self._children.get(shell, []):
                if match(child, normalized).is_match:
                    return shell
        return None

    def parent_chain(self, entry: RouteEntry) -> List[RouteEntry]:
        """Walk the parent chain of an entry, nearest parent first.

        Args:
            entry: Route entry

        Returns:
            Parent entries

        Raises:
            InvalidRouteConfigError: If a parent is unregistered, not
                shell-capable, or the chain cycles
        """
        chain: List[RouteEntry] = []
        visited = {entry.pattern}
        parent_pattern = entry.parent_pattern

        while parent_pattern is not None:
            if parent_pattern in visited:
                raise InvalidRouteConfigError(
                    f"Cyclic parent chain at {parent_pattern} for route {entry.pattern}"
                )
            visited.add(parent_pattern)

            parent = self._entries.get(parent_pattern)
            if parent is None:
                raise InvalidRouteConfigError(
                    f"Parent route {parent_pattern} of {entry.pattern} is not registered"
                )
            if not parent.is_shell_capable:
                raise InvalidRouteConfigError(
                    f"Parent route {parent_pattern} of {entry.pattern} is not a shell"
                )
            chain.append(parent)
            parent_pattern = parent.parent_pattern

        return chain

    def clear(self) -> None:
        self._entries.clear()
        self._children.clear()
        self._redirects.clear()
        self._shells.clear()
