"""Middleware framework for Waypoint navigations.

This module implements the navigation middleware pipeline including:
- Middleware interface with pre- and post-navigation hooks
- Priority ordering and glob-based route filters
- Context propagation, including replacement of the context mid-pipeline
- Per-route and global middleware
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Type, Union

from waypoint.core.guards import sort_by_priority
from waypoint.core.route_data import RouteData
from waypoint.core.routing import route_filter_allows

logger = logging.getLogger(__name__)


@dataclass
class MiddlewareContext:
    """Navigation context that flows through the middleware pipeline.

    This context accumulates data as the navigation flows through middleware:
    - Target and current route
    - Caller-supplied navigation arguments
    - Timing information
    - Scratch values shared between middleware of one run
    """

    target_route: RouteData
    current_route: Optional[RouteData] = None
    extra: Any = None
    start_time: float = field(default_factory=time.time)
    data: Dict[str, Any] = field(default_factory=dict)

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

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def has(self, key: str) -> bool:
        return key in self.data

    def remove(self, key: str) -> None:
        self.data.pop(key, None)

    def elapsed_ms(self) -> float:
        """Calculate elapsed time since navigation start in milliseconds.

        Returns:
            Elapsed time in milliseconds
        """
        return (time.time() - self.start_time) * 1000

    def with_target(self, target_route: RouteData) -> "MiddlewareContext":
        """Return a copy aimed at another route; timing and scratch data are shared."""
        return replace(self, target_route=target_route)


@dataclass(frozen=True)
class MiddlewareContinue:
    """Proceed with the next middleware, optionally with a replaced context."""

    modified_context: Optional[MiddlewareContext] = None


@dataclass(frozen=True)
class MiddlewareAbort:
    """Cancel the navigation."""

    reason: Optional[str] = None


@dataclass(frozen=True)
class MiddlewareRedirect:
    """Navigate to another path instead."""

    redirect_to: str
    query_params: Optional[Dict[str, Any]] = None
    extra: Any = None


MiddlewareResult = Union[MiddlewareContinue, MiddlewareAbort, MiddlewareRedirect]


class Middleware(ABC):
    """Abstract base class for navigation middleware.

    Middleware can:
    - Inspect the navigation and replace its context
    - Abort the navigation or redirect it
    - Run follow-up work after a successful navigation
    """

    priority: int = 0
    routes: Optional[List[str]] = None
    exclude_routes: Optional[List[str]] = None

    def should_run(self, path: str) -> bool:
        """Check the route filters against a path.

        Exclusions win over the allow-list; without an allow-list the
        middleware runs for every path.

        Args:
            path: Target path

        Returns:
            True if this middleware applies to the path
        """
        return route_filter_allows(path, self.routes, self.exclude_routes)

    @abstractmethod
    async def handle(self, context: MiddlewareContext) -> MiddlewareResult:
        """Process the navigation.

        Args:
            context: Middleware context

        Returns:
            MiddlewareContinue, MiddlewareAbort or MiddlewareRedirect
        """

    async def after_navigation(self, context: MiddlewareContext) -> None:
        """Called after the navigation completed; not awaited by the router."""

    async def on_aborted(self, context: MiddlewareContext, reason: Optional[str]) -> None:
        """Called on every middleware of a pipeline that was aborted."""

    @property
    def name(self) -> str:
        """Get middleware name.

        Returns:
            Middleware class name
        """
        return self.__class__.__name__


class MiddlewarePipeline:
    """Executes middleware one after another.

    Each middleware sees the context returned by the previous one; the
    first non-continue result stops the run.
    """

    def __init__(self, middleware: Sequence[Middleware]):
        """Initialize the pipeline.

        Args:
            middleware: Middleware in execution order
        """
        self.middleware = list(middleware)
        self.stopped_by: Optional[Middleware] = None

    async def execute(self, context: MiddlewareContext) -> MiddlewareResult:
        """Execute the pipeline.

        Args:
            context: Initial middleware context

        Returns:
            The first abort or redirect, or ``MiddlewareContinue`` carrying
            the final context after a full run
        """
        current = context
        self.stopped_by = None

        for middleware in self.middleware:
            result = await middleware.handle(current)
            if isinstance(result, MiddlewareContinue):
                if result.modified_context is not None:
                    current = result.modified_context
                continue

            self.stopped_by = middleware
            logger.debug(
                f"Middleware {middleware.name} stopped navigation to {current.target_path}",
                extra={"middleware": middleware.name, "path": current.target_path},
            )
            return result

        return MiddlewareContinue(current)

    async def after_navigation(self, context: MiddlewareContext) -> None:
        """Run every middleware's after_navigation hook, logging failures."""
        for middleware in self.middleware:
            try:
                await middleware.after_navigation(context)
            except Exception as e:
                logger.exception(
                    f"after_navigation hook failed for {context.target_path}: {e}",
                    extra={"middleware": middleware.name, "path": context.target_path},
                )

    async def on_aborted(self, context: MiddlewareContext, reason: Optional[str]) -> None:
        """Run every middleware's on_aborted hook, logging failures."""
        for middleware in self.middleware:
            try:
                await middleware.on_aborted(context, reason)
            except Exception as e:
                logger.exception(
                    f"on_aborted hook failed for {context.target_path}: {e}",
                    extra={"middleware": middleware.name, "path": context.target_path},
                )

    def __len__(self) -> int:
        return len(self.middleware)


def collect_middleware(
    own: Sequence[Middleware],
    parents: Sequence[Sequence[Middleware]],
    global_middleware: Iterable[Middleware],
    path: str,
) -> List[Middleware]:
    """Build the ordered middleware list for one navigation target.

    Args:
        own: Middleware attached to the target route
        parents: Middleware lists of the parent chain, nearest parent first
        global_middleware: Globally registered middleware, filtered by ``should_run``
        path: Target path

    Returns:
        Deduplicated middleware in descending priority; ties keep union order
    """
    union: List[Middleware] = list(own)
    for parent_middleware in parents:
        union.extend(parent_middleware)
    union.extend(m for m in global_middleware if m.should_run(path))
    return sort_by_priority(union)


class FunctionalMiddleware(Middleware):
    """Middleware backed by async functions."""

    def __init__(
        self,
        handle: Callable[[MiddlewareContext], Awaitable[MiddlewareResult]],
        after_navigation: Optional[Callable[[MiddlewareContext], Awaitable[None]]] = None,
        priority: int = 0,
        routes: Optional[List[str]] = None,
        exclude_routes: Optional[List[str]] = None,
        name: Optional[str] = None,
    ):
        self._handle = handle
        self._after_navigation = after_navigation
        self.priority = priority
        self.routes = routes
        self.exclude_routes = exclude_routes
        self._name = name

    async def handle(self, context: MiddlewareContext) -> MiddlewareResult:
        return await self._handle(context)

    async def after_navigation(self, context: MiddlewareContext) -> None:
        if self._after_navigation is not None:
            await self._after_navigation(context)

    @property
    def name(self) -> str:
        return self._name or super().name


class DelayMiddleware(Middleware):
    """Holds every navigation for a fixed delay."""

    def __init__(self, delay: timedelta = timedelta(milliseconds=100), priority: int = 0):
        self.delay = delay
        self.priority = priority

    async def handle(self, context: MiddlewareContext) -> MiddlewareResult:
        await asyncio.sleep(self.delay.total_seconds())
        return MiddlewareContinue()


class MiddlewareManager:
    """Registry of global middleware, kept sorted by descending priority."""

    def __init__(self) -> None:
        self._middleware: List[Middleware] = []

    def register(self, middleware: Middleware) -> None:
        self._middleware.append(middleware)
        self._middleware.sort(key=lambda m: -m.priority)

    def register_all(self, middleware: Iterable[Middleware]) -> None:
        for item in middleware:
            self.register(item)

    def unregister(self, middleware: Middleware) -> None:
        if middleware in self._middleware:
            self._middleware.remove(middleware)

    def unregister_by_type(self, middleware_type: Type[Middleware]) -> None:
        self._middleware = [m for m in self._middleware if not isinstance(m, middleware_type)]

    def clear(self) -> None:
        self._middleware.clear()

    @property
    def all(self) -> List[Middleware]:
        return list(self._middleware)

    def middleware_for(self, path: str) -> List[Middleware]:
        return [m for m in self._middleware if m.should_run(path)]

    def pipeline_for(self, path: str) -> MiddlewarePipeline:
        return MiddlewarePipeline(self.middleware_for(path))

    async def execute(self, context: MiddlewareContext) -> MiddlewareResult:
        return await self.pipeline_for(context.target_path).execute(context)

    def add_middleware(
        self,
        handle: Callable[[MiddlewareContext], Awaitable[MiddlewareResult]],
        after_navigation: Optional[Callable[[MiddlewareContext], Awaitable[None]]] = None,
        priority: int = 0,
        routes: Optional[List[str]] = None,
        exclude_routes: Optional[List[str]] = None,
    ) -> Middleware:
        middleware = FunctionalMiddleware(
            handle,
            after_navigation=after_navigation,
            priority=priority,
            routes=routes,
            exclude_routes=exclude_routes,
        )
        self.register(middleware)
        return middleware

    def __len__(self) -> int:
        return len(self._middleware)
