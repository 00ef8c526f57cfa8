"""Guard pipeline.

Guards are access-control checks that run before a navigation completes.
Each guard returns one of three results:

- ``GuardAllow``: continue with the next guard
- ``GuardDeny``: cancel the navigation
- ``GuardRedirect``: navigate somewhere else instead

Guards run strictly one after another in descending priority; the first
deny or redirect stops the pipeline.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Type, Union

from waypoint.core.route_data import RouteData
from waypoint.core.routing import route_filter_allows

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuardAllow:
    """Let the navigation proceed."""


@dataclass(frozen=True)
class GuardDeny:
    """Cancel the navigation."""

    reason: Optional[str] = None


@dataclass(frozen=True)
class GuardRedirect:
    """Navigate to another path instead.

    ``extra`` replaces the navigation arguments when it is not None.
    """

    redirect_to: str
    query_params: Optional[Dict[str, Any]] = None
    extra: Any = None


GuardResult = Union[GuardAllow, GuardDeny, GuardRedirect]


@dataclass
class GuardContext:
    """Context passed to every guard of one navigation attempt."""

    target_route: RouteData
    current_route: Optional[RouteData] = None
    is_replace: bool = False
    extra: Any = None

    @property
    def target_path(self) -> str:
        return self.target_route.path

    @property
    def target_name(self) -> str:
        return self.target_route.name

    @property
    def current_path(self) -> Optional[str]:
        return self.current_route.path if self.current_route else None

    @property
    def current_name(self) -> Optional[str]:
        return self.current_route.name if self.current_route else None


class Guard(ABC):
    """Abstract base class for guards.

    Subclasses override ``priority``, ``routes`` and ``exclude_routes`` as
    class attributes or set them in ``__init__``. Route filters only apply
    to globally registered guards; guards attached to a route always run
    for it.
    """

    priority: int = 0
    routes: Optional[List[str]] = None
    exclude_routes: Optional[List[str]] = None

    def should_run(self, path: str) -> bool:
        """Check the route filters against a path.

        Args:
            path: Target path

        Returns:
            True if this guard applies to the path
        """
        return route_filter_allows(path, self.routes, self.exclude_routes)

    @abstractmethod
    async def can_activate(self, context: GuardContext) -> GuardResult:
        """Decide whether the navigation may proceed.

        Args:
            context: Guard context

        Returns:
            GuardAllow, GuardDeny or GuardRedirect
        """

    async def on_activated(self, context: GuardContext) -> None:
        """Called after this guard allowed a navigation."""

    async def on_denied(self, context: GuardContext, result: GuardResult) -> None:
        """Called after this guard denied or redirected a navigation."""

    @property
    def name(self) -> str:
        """Get guard name.

        Returns:
            Guard class name
        """
        return self.__class__.__name__


class FunctionalGuard(Guard):
    """Guard backed by an async function."""

    def __init__(
        self,
        can_activate: Callable[[GuardContext], Awaitable[GuardResult]],
        priority: int = 0,
        routes: Optional[List[str]] = None,
        exclude_routes: Optional[List[str]] = None,
        name: Optional[str] = None,
    ):
        self._can_activate = can_activate
        self.priority = priority
        self.routes = routes
        self.exclude_routes = exclude_routes
        self._name = name

    async def can_activate(self, context: GuardContext) -> GuardResult:
        return await self._can_activate(context)

    @property
    def name(self) -> str:
        return self._name or super().name


class ConditionalGuard(Guard):
    """Guard that redirects unless a condition holds.

    The condition may be a plain function or a coroutine function.
    """

    def __init__(
        self,
        condition: Callable[[], Union[bool, Awaitable[bool]]],
        redirect_to: str,
        redirect_params: Optional[Dict[str, Any]] = None,
        priority: int = 0,
        routes: Optional[List[str]] = None,
        exclude_routes: Optional[List[str]] = None,
    ):
        self.condition = condition
        self.redirect_to = redirect_to
        self.redirect_params = redirect_params
        self.priority = priority
        self.routes = routes
        self.exclude_routes = exclude_routes

    async def can_activate(self, context: GuardContext) -> GuardResult:
        result = self.condition()
        if inspect.isawaitable(result):
            result = await result
        if result:
            return GuardAllow()
        return GuardRedirect(self.redirect_to, query_params=self.redirect_params)


def sort_by_priority(items: Iterable[Any]) -> List[Any]:
    """Deduplicate by identity and stable-sort by descending priority."""
    seen = set()
    unique = []
    for item in items:
        if id(item) in seen:
            continue
        seen.add(id(item))
        unique.append(item)
    return sorted(unique, key=lambda item: -item.priority)


def collect_guards(
    own: Sequence[Guard],
    parents: Sequence[Sequence[Guard]],
    global_guards: Iterable[Guard],
    path: str,
) -> List[Guard]:
    """Build the ordered guard list for one navigation target.

    Args:
        own: Guards attached to the target route
        parents: Guard lists of the parent chain, nearest parent first
        global_guards: Globally registered guards, filtered by ``should_run``
        path: Target path

    Returns:
        Deduplicated guards in descending priority; ties keep union order
    """
    union: List[Guard] = list(own)
    for parent_guards in parents:
        union.extend(parent_guards)
    union.extend(guard for guard in global_guards if guard.should_run(path))
    return sort_by_priority(union)


async def evaluate_guards(
    guards: Sequence[Guard], context: GuardContext
) -> Tuple[GuardResult, Optional[Guard]]:
    """Run guards in order until one denies or redirects.

    Args:
        guards: Guards in execution order
        context: Guard context

    Returns:
        Tuple of (result, deciding guard); the guard is None when all allowed
    """
    for guard in guards:
        result = await guard.can_activate(context)
        if not isinstance(result, GuardAllow):
            logger.debug(
                f"Guard {guard.name} stopped navigation to {context.target_path}",
                extra={"guard": guard.name, "path": context.target_path, "result": repr(result)},
            )
            await guard.on_denied(context, result)
            return result, guard
        await guard.on_activated(context)
    return GuardAllow(), None


async def run_guards(guards: Sequence[Guard], context: GuardContext) -> GuardResult:
    """Run guards in order and return the deciding result."""
    result, _ = await evaluate_guards(guards, context)
    return result


class GuardManager:
    """Registry of global guards, kept sorted by descending priority."""

    def __init__(self) -> None:
        self._guards: List[Guard] = []

    def register(self, guard: Guard) -> None:
        self._guards.append(guard)
        self._guards.sort(key=lambda g: -g.priority)

    def register_all(self, guards: Iterable[Guard]) -> None:
        for guard in guards:
            self.register(guard)

    def unregister(self, guard: Guard) -> None:
        if guard in self._guards:
            self._guards.remove(guard)

    def unregister_by_type(self, guard_type: Type[Guard]) -> None:
        self._guards = [g for g in self._guards if not isinstance(g, guard_type)]

    def clear(self) -> None:
        self._guards.clear()

    @property
    def all(self) -> List[Guard]:
        return list(self._guards)

    def guards_for(self, path: str) -> List[Guard]:
        return [g for g in self._guards if g.should_run(path)]

    async def run_guards(self, context: GuardContext) -> GuardResult:
        return await run_guards(self.guards_for(context.target_path), context)

    async def can_navigate(self, context: GuardContext) -> bool:
        return isinstance(await self.run_guards(context), GuardAllow)

    def add_guard(
        self,
        can_activate: Callable[[GuardContext], Awaitable[GuardResult]],
        priority: int = 0,
        routes: Optional[List[str]] = None,
        exclude_routes: Optional[List[str]] = None,
    ) -> Guard:
        guard = FunctionalGuard(
            can_activate, priority=priority, routes=routes, exclude_routes=exclude_routes
        )
        self.register(guard)
        return guard

    def add_condition(
        self,
        condition: Callable[[], Union[bool, Awaitable[bool]]],
        redirect_to: str,
        redirect_params: Optional[Dict[str, Any]] = None,
        priority: int = 0,
        routes: Optional[List[str]] = None,
        exclude_routes: Optional[List[str]] = None,
    ) -> Guard:
        guard = ConditionalGuard(
            condition,
            redirect_to,
            redirect_params=redirect_params,
            priority=priority,
            routes=routes,
            exclude_routes=exclude_routes,
        )
        self.register(guard)
        return guard

    def __len__(self) -> int:
        return len(self._guards)
