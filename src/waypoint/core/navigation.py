"""Navigation intents.

An intent is a navigation request captured as a value, so it can be built
in one place (a deep-link handler, a menu definition) and executed later
with ``Router.execute``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from waypoint.core.parser import normalize_path
from waypoint.core.route_data import RouteData


class NavigationAction(Enum):
    PUSH = "push"
    REPLACE = "replace"
    POP_AND_PUSH = "pop_and_push"
    PUSH_AND_REMOVE_ALL = "push_and_remove_all"
    POP = "pop"
    POP_UNTIL = "pop_until"


@dataclass(frozen=True)
class NavigationIntent:
    """A navigation request.

    Attributes:
        action: What to do
        path: Target path for push-style actions
        query: Query parameters appended to the path
        body: Navigation arguments
        transition: Per-call transition descriptor
        result: Value handed to the page being popped or replaced
        predicate: Stop condition for ``POP_UNTIL``
    """

    action: NavigationAction
    path: Optional[str] = None
    query: Optional[Dict[str, Any]] = None
    body: Any = None
    transition: Any = None
    result: Any = None
    predicate: Optional[Callable[[RouteData], bool]] = None

    def __post_init__(self) -> None:
        needs_path = self.action not in (NavigationAction.POP, NavigationAction.POP_UNTIL)
        if needs_path and not self.path:
            raise ValueError(f"{self.action.value} intent requires a path")
        if self.action is NavigationAction.POP_UNTIL and self.predicate is None:
            raise ValueError("pop_until intent requires a predicate")

    @classmethod
    def push(
        cls, path: str, query: Optional[Dict[str, Any]] = None, body: Any = None, transition: Any = None
    ) -> "NavigationIntent":
        return cls(NavigationAction.PUSH, path=path, query=query, body=body, transition=transition)

    @classmethod
    def replace(
        cls,
        path: str,
        query: Optional[Dict[str, Any]] = None,
        body: Any = None,
        transition: Any = None,
        result: Any = None,
    ) -> "NavigationIntent":
        return cls(
            NavigationAction.REPLACE,
            path=path,
            query=query,
            body=body,
            transition=transition,
            result=result,
        )

    @classmethod
    def pop_and_push(
        cls,
        path: str,
        query: Optional[Dict[str, Any]] = None,
        body: Any = None,
        transition: Any = None,
        result: Any = None,
    ) -> "NavigationIntent":
        return cls(
            NavigationAction.POP_AND_PUSH,
            path=path,
            query=query,
            body=body,
            transition=transition,
            result=result,
        )

    @classmethod
    def push_and_remove_all(
        cls, path: str, query: Optional[Dict[str, Any]] = None, body: Any = None, transition: Any = None
    ) -> "NavigationIntent":
        return cls(
            NavigationAction.PUSH_AND_REMOVE_ALL,
            path=path,
            query=query,
            body=body,
            transition=transition,
        )

    @classmethod
    def pop(cls, result: Any = None) -> "NavigationIntent":
        return cls(NavigationAction.POP, result=result)

    @classmethod
    def pop_until(
        cls, predicate: Optional[Callable[[RouteData], bool]] = None, path: Optional[str] = None
    ) -> "NavigationIntent":
        """Pop until ``predicate`` holds, or until the route at ``path`` is on top."""
        if predicate is None and path is not None:
            target = normalize_path(path)

            def predicate(data: RouteData) -> bool:
                return data.path == target

        return cls(NavigationAction.POP_UNTIL, path=path, predicate=predicate)
