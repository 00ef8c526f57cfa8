"""Navigation orchestrator.

The router ties the engine together:

1. Redirect rules rewrite the requested path, then the registry matches it
2. A candidate RouteData is built for the matched entry
3. Middleware runs (route, parent chain, then matching global middleware)
4. Guards run for the possibly middleware-modified target
5. Every redirect, whichever stage produced it, counts as one hop; more than
   ``max_redirect_depth`` hops raise ``RedirectLoopError``

On success the resulting page is pushed onto the root navigator or onto a
shell's nested navigator, and the history is updated.

Example::

    router = Router(
        RouterConfig(initial_path="/home"),
        routes=[RouteEntry("/home", builder=home_page)],
    )
    await router.start()
    future = await router.push("/home")
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from waypoint.core.config import RouterConfig
from waypoint.core.exceptions import (
    InvalidRouteConfigError,
    RedirectLoopError,
    RouteNotFoundError,
    RouterNotInitializedError,
)
from waypoint.core.guards import (
    Guard,
    GuardAllow,
    GuardContext,
    GuardDeny,
    GuardManager,
    GuardRedirect,
    collect_guards,
    evaluate_guards,
)
from waypoint.core.history import NavigationHistory
from waypoint.core.logging import RouterLogger
from waypoint.core.metrics import RouterMetrics
from waypoint.core.middleware import (
    Middleware,
    MiddlewareAbort,
    MiddlewareContext,
    MiddlewareManager,
    MiddlewarePipeline,
    MiddlewareRedirect,
    collect_middleware,
)
from waypoint.core.navigation import NavigationAction, NavigationIntent
from waypoint.core.navigator import NavigatorStack, Page
from waypoint.core.observers import ObserverManager, RouteObserver
from waypoint.core.params import RouteParams
from waypoint.core.parser import (
    build_query_string,
    normalize_path,
    parse_query_string,
    split_path_and_query,
)
from waypoint.core.registry import (
    PageBuilder,
    RedirectEntry,
    RouteEntry,
    RouteRegistry,
    ShellBuilder,
)
from waypoint.core.route_data import RouteData
from waypoint.core.routing import RouteMatchResult, build_path, match_prefix

logger = logging.getLogger(__name__)

RoutePredicate = Callable[[RouteData], bool]


@dataclass
class RouterState:
    """Snapshot of the router's state."""

    current_route: Optional[RouteData] = None
    is_initialized: bool = False
    pending_navigations: int = 0

    @property
    def is_navigating(self) -> bool:
        return self.pending_navigations > 0


@dataclass
class _Resolution:
    """Result of one pre-navigation run."""

    outcome: str
    full_path: str
    arguments: Any = None
    entry: Optional[RouteEntry] = None
    route: Optional[RouteData] = None


class Router:
    """Resolves paths, runs the navigation pipeline and owns navigator stacks.

    Routers are plain objects: create one at application start and pass it
    to whatever needs to navigate. Several routers can live side by side.
    """

    def __init__(
        self,
        config: Optional[RouterConfig] = None,
        routes: Iterable[RouteEntry] = (),
        redirects: Iterable[RedirectEntry] = (),
        guards: Iterable[Guard] = (),
        middleware: Iterable[Middleware] = (),
        observers: Iterable[RouteObserver] = (),
        not_found_builder: Optional[PageBuilder] = None,
        metrics: Optional[RouterMetrics] = None,
        structured_logger: Optional[RouterLogger] = None,
    ):
        """Initialize the router.

        Args:
            config: Router configuration; its ``routes`` and ``redirects``
                are only registered by ``from_config``
            routes: Route entries
            redirects: Redirect rules
            guards: Global guards
            middleware: Global middleware
            observers: Navigator observers
            not_found_builder: Builds the page for unmatched paths
            metrics: Metrics collector (created from config when omitted)
            structured_logger: Navigation event logger

        Raises:
            DuplicateRouteError: If a pattern is registered twice
            InvalidRouteConfigError: If a pattern is malformed
        """
        self.config = config or RouterConfig()
        self.registry = RouteRegistry()
        self.guards = GuardManager()
        self.middleware = MiddlewareManager()
        self.observers = ObserverManager()
        self.history = NavigationHistory(max_size=self.config.history_max_size)
        self.not_found_builder = not_found_builder
        self.structured_logger = structured_logger or RouterLogger(
            self.config.logging, configure_handlers=False
        )

        if metrics is None and self.config.metrics.enabled:
            metrics = RouterMetrics(self.config.metrics)
        self.metrics = metrics

        self.registry.register_all(routes)
        for redirect in redirects:
            self.registry.register_redirect(redirect)
        self.guards.register_all(guards)
        self.middleware.register_all(middleware)
        self.observers.add_all(observers)

        self._state = RouterState()
        self._root: Optional[NavigatorStack] = None
        self._nested: Dict[str, NavigatorStack] = {}
        self._shell_owners: Dict[str, Page] = {}
        self._background_tasks: Set[asyncio.Task] = set()

        self.history.add_listener(self._on_history_changed)

        logger.info(
            f"Initialized router with {len(self.registry)} routes",
            extra={"route_count": len(self.registry), "environment": self.config.environment},
        )

    @classmethod
    def from_config(
        cls,
        config: RouterConfig,
        builders: Optional[Mapping[str, PageBuilder]] = None,
        shell_builders: Optional[Mapping[str, ShellBuilder]] = None,
        guards: Optional[Mapping[str, Guard]] = None,
        middleware: Optional[Mapping[str, Middleware]] = None,
        global_guards: Iterable[Guard] = (),
        global_middleware: Iterable[Middleware] = (),
        **kwargs: Any,
    ) -> "Router":
        """Build a router from a configuration's route table.

        Builders are looked up by route name first, then by pattern. Guard
        and middleware names in the route table are looked up in
        ``guards`` and ``middleware``.

        Args:
            config: Router configuration
            builders: Page builders by route name or pattern
            shell_builders: Shell builders by route name or pattern
            guards: Guards by name
            middleware: Middleware by name
            global_guards: Guards applied to every matching route
            global_middleware: Middleware applied to every matching route
            **kwargs: Passed to the constructor

        Returns:
            Router instance

        Raises:
            InvalidRouteConfigError: If a route names an unknown guard or middleware
        """
        builders = builders or {}
        shell_builders = shell_builders or {}
        guards = guards or {}
        middleware = middleware or {}

        def lookup(table: Mapping[str, Any], kind: str, name: str, pattern: str) -> Any:
            if name not in table:
                raise InvalidRouteConfigError(f"Unknown {kind} '{name}' on route {pattern}")
            return table[name]

        routes = []
        for route in config.routes:
            name = route.name or route.pattern
            routes.append(
                RouteEntry(
                    pattern=route.pattern,
                    name=name,
                    builder=builders.get(name) or builders.get(route.pattern),
                    shell_builder=shell_builders.get(name) or shell_builders.get(route.pattern),
                    parent_pattern=route.parent,
                    guards=tuple(lookup(guards, "guard", g, route.pattern) for g in route.guards),
                    middleware=tuple(
                        lookup(middleware, "middleware", m, route.pattern)
                        for m in route.middleware
                    ),
                    transition_key=route.transition_key,
                    is_shell=route.is_shell,
                    is_initial=route.is_initial,
                    fullscreen_dialog=route.fullscreen_dialog,
                    maintain_state=route.maintain_state,
                    metadata=dict(route.metadata),
                )
            )

        redirects = [
            RedirectEntry(r.from_pattern, r.to_pattern, permanent=r.permanent)
            for r in config.redirects
        ]

        return cls(
            config,
            routes=routes,
            redirects=[*redirects, *kwargs.pop("redirects", ())],
            guards=global_guards,
            middleware=global_middleware,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Lifecycle and state
    # ------------------------------------------------------------------

    async def start(self, initial_path: Optional[str] = None) -> Optional[RouteData]:
        """Create the root navigator and navigate to the initial path.

        Args:
            initial_path: Overrides ``config.initial_path``

        Returns:
            The initial route, or None if the navigation did not complete
        """
        if self._root is None:
            self._root = NavigatorStack(observers=self.observers, on_removed=self._on_root_removed)
            self._state.is_initialized = True

        await self.push(initial_path or self.config.initial_path)
        return self.current_route

    @property
    def is_started(self) -> bool:
        return self._root is not None

    @property
    def state(self) -> RouterState:
        return self._state

    @property
    def root_navigator(self) -> NavigatorStack:
        return self._require_root()

    @property
    def current_route(self) -> Optional[RouteData]:
        return self.history.current

    @property
    def current_pattern(self) -> Optional[str]:
        current = self.current_route
        return current.pattern if current else None

    @property
    def current_name(self) -> Optional[str]:
        current = self.current_route
        return current.name if current else None

    @property
    def current_full_path(self) -> Optional[str]:
        current = self.current_route
        return current.full_path if current else None

    @property
    def current_params(self) -> Optional[RouteParams]:
        current = self.current_route
        return current.params if current else None

    @property
    def previous_path(self) -> Optional[str]:
        return self.history.previous_path

    @property
    def next_path(self) -> Optional[str]:
        return self.history.next_path

    async def drain(self) -> None:
        """Wait for every pending ``after_navigation`` task."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_route(self, entry: RouteEntry) -> RouteEntry:
        return self.registry.register(entry)

    def register_redirect(self, entry: RedirectEntry) -> None:
        self.registry.register_redirect(entry)

    def register_nested_navigator(
        self, shell_pattern: str, navigator: Optional[NavigatorStack] = None
    ) -> NavigatorStack:
        """Mount a nested navigator for a shell pattern.

        Args:
            shell_pattern: Shell pattern used as the navigator key
            navigator: Existing stack to mount; a new one by default

        Returns:
            The mounted navigator
        """
        pattern = normalize_path(shell_pattern)
        self.registry.register_shell(pattern)
        if navigator is None:
            navigator = NavigatorStack(key=pattern, observers=self.observers)
        self._nested[pattern] = navigator
        logger.debug(f"Mounted nested navigator for {pattern}", extra={"shell": pattern})
        return navigator

    def unregister_nested_navigator(self, shell_pattern: str) -> None:
        """Unmount the nested navigator of a shell pattern."""
        pattern = normalize_path(shell_pattern)
        navigator = self._nested.pop(pattern, None)
        self._shell_owners.pop(pattern, None)
        if navigator is not None:
            navigator.dispose()
            logger.debug(f"Unmounted nested navigator for {pattern}", extra={"shell": pattern})

        entry = self.registry.get(pattern)
        if entry is None or not entry.is_shell_capable:
            self.registry.unregister_shell(pattern)

    def get_nested_navigator(self, shell_pattern: str) -> Optional[NavigatorStack]:
        return self._nested.get(normalize_path(shell_pattern))

    def find_shell_for_path(self, path: str) -> Optional[str]:
        path_only, _ = split_path_and_query(path)
        return self.registry.find_shell_for_path(path_only)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def match_route(self, path: str) -> Optional[Tuple[RouteEntry, RouteMatchResult]]:
        path_only, _ = split_path_and_query(path)
        return self.registry.match(path_only)

    def resolve(self, path: str, arguments: Any = None) -> RouteData:
        """Resolve a path to RouteData without running the pipeline.

        Args:
            path: Path with optional query string
            arguments: Navigation arguments

        Returns:
            RouteData for the best matching route

        Raises:
            RouteNotFoundError: If no route matches
            InvalidRouteConfigError: If the route's parent chain is broken
        """
        path_only, query = split_path_and_query(path)
        normalized = normalize_path(path_only)
        matched = self.registry.match(normalized)
        if matched is None:
            raise RouteNotFoundError(normalized)
        entry, result = matched
        self.registry.parent_chain(entry)
        return self._build_route_data(
            entry, result, normalized, query, parse_query_string(query), arguments
        )

    async def pre_navigate(
        self, full_path: str, arguments: Any = None, is_replace: bool = False
    ) -> Optional[Tuple[str, Any]]:
        """Run redirects, middleware and guards for a path.

        Args:
            full_path: Requested path with optional query string
            arguments: Navigation arguments
            is_replace: Whether the navigation replaces the current route

        Returns:
            Tuple of (final full path, final arguments), or None if the
            navigation was cancelled or nothing matched

        Raises:
            RedirectLoopError: If more than ``max_redirect_depth`` hops happen
        """
        resolution = await self._resolve(full_path, arguments, is_replace)
        if resolution.outcome != "completed":
            return None
        return resolution.full_path, resolution.arguments

    async def _resolve(self, full_path: str, arguments: Any, is_replace: bool) -> _Resolution:
        path_only, query = split_path_and_query(full_path)
        current_full = normalize_path(path_only) + (f"?{query}" if query else "")
        current_args = arguments
        chain = [current_full]

        def hop(source: str, target: str) -> None:
            chain.append(target)
            hops = len(chain) - 1
            self.structured_logger.log_redirect(source, chain[-2], target, hops)
            if self.metrics:
                self.metrics.record_redirect(source)
            if hops > self.config.max_redirect_depth:
                if self.metrics:
                    self.metrics.record_redirect_loop()
                raise RedirectLoopError(chain)

        while True:
            path_only, query = split_path_and_query(current_full)
            path = normalize_path(path_only)
            query_params = parse_query_string(query)

            redirect = self.registry.find_redirect(path, query_params, current_args)
            if redirect is not None:
                _, target = redirect
                next_full = target + (f"?{query}" if query else "")
                hop("rule", next_full)
                current_full = next_full
                continue

            matched = self.registry.match(path)
            if matched is None:
                self._debug(f"No route for {path}")
                return _Resolution("not_found", current_full, current_args)

            entry, result = matched
            parents = self.registry.parent_chain(entry)
            target = self._build_route_data(entry, result, path, query, query_params, current_args)

            # Middleware
            pipeline = MiddlewarePipeline(
                collect_middleware(
                    entry.middleware,
                    [parent.middleware for parent in parents],
                    self.middleware.all,
                    path,
                )
            )
            context = MiddlewareContext(
                target_route=target, current_route=self.current_route, extra=current_args
            )
            self._debug(f"Running {len(pipeline)} middleware for {path}")
            middleware_result = await pipeline.execute(context)

            if isinstance(middleware_result, MiddlewareAbort):
                name = pipeline.stopped_by.name if pipeline.stopped_by else "unknown"
                self.structured_logger.log_middleware_event(
                    name, path, "abort", middleware_result.reason
                )
                if self.metrics:
                    self.metrics.record_middleware_abort(name)
                await pipeline.on_aborted(context, middleware_result.reason)
                return _Resolution("cancelled", current_full, current_args)

            if isinstance(middleware_result, MiddlewareRedirect):
                name = pipeline.stopped_by.name if pipeline.stopped_by else "unknown"
                self.structured_logger.log_middleware_event(
                    name, path, "redirect", middleware_result.redirect_to
                )
                next_full = _with_query(middleware_result.redirect_to, middleware_result.query_params)
                hop("middleware", next_full)
                current_full = next_full
                if middleware_result.extra is not None:
                    current_args = middleware_result.extra
                continue

            final_context = middleware_result.modified_context or context
            self._schedule_after_navigation(pipeline, final_context)

            # Guards
            guard_target = final_context.target_route
            guard_entry = self.registry.get(guard_target.pattern) or entry
            guard_parents = parents if guard_entry is entry else self.registry.parent_chain(guard_entry)
            guards = collect_guards(
                guard_entry.guards,
                [parent.guards for parent in guard_parents],
                self.guards.all,
                guard_target.path,
            )
            guard_context = GuardContext(
                target_route=guard_target,
                current_route=self.current_route,
                is_replace=is_replace,
                extra=final_context.extra,
            )
            self._debug(f"Running {len(guards)} guards for {guard_target.path}")
            guard_result, guard = await evaluate_guards(guards, guard_context)

            if isinstance(guard_result, GuardDeny):
                name = guard.name if guard else "unknown"
                self.structured_logger.log_guard_event(
                    name, guard_target.path, "deny", guard_result.reason
                )
                if self.metrics:
                    self.metrics.record_guard_denial(name)
                return _Resolution("cancelled", current_full, final_context.extra)

            if isinstance(guard_result, GuardRedirect):
                name = guard.name if guard else "unknown"
                self.structured_logger.log_guard_event(
                    name, guard_target.path, "redirect", guard_result.redirect_to
                )
                if self.metrics:
                    self.metrics.record_guard_denial(name)
                next_full = _with_query(guard_result.redirect_to, guard_result.query_params)
                hop("guard", next_full)
                current_full = next_full
                current_args = (
                    guard_result.extra if guard_result.extra is not None else final_context.extra
                )
                continue

            return _Resolution(
                "completed",
                guard_target.full_path,
                final_context.extra,
                entry=guard_entry,
                route=guard_target,
            )

    def _build_route_data(
        self,
        entry: RouteEntry,
        result: RouteMatchResult,
        path: str,
        query: Optional[str],
        query_params: Dict[str, str],
        arguments: Any,
    ) -> RouteData:
        body = dict(arguments) if isinstance(arguments, Mapping) else {}
        return RouteData(
            pattern=entry.pattern,
            path=path,
            full_path=path + (f"?{query}" if query else ""),
            name=entry.name,
            params=RouteParams(
                path_params=result.path_params, query_params=query_params, body_params=body
            ),
            is_initial=entry.is_initial,
            parent_pattern=entry.parent_pattern,
            child_patterns=self.registry.children_of(entry.pattern),
            metadata=dict(entry.metadata),
            arguments=arguments,
        )

    def _parent_route_data(self, parent: RouteEntry, child: RouteData) -> RouteData:
        result = match_prefix(parent.pattern, child.path)
        params = result.path_params if result.is_match else {}
        path = build_path(parent.pattern, params) if result.is_match else parent.pattern
        return RouteData(
            pattern=parent.pattern,
            path=path,
            full_path=path,
            name=parent.name,
            params=RouteParams(path_params=params),
            parent_pattern=parent.parent_pattern,
            child_patterns=self.registry.children_of(parent.pattern),
            metadata=dict(parent.metadata),
        )

    def build_page(self, entry: RouteEntry, data: RouteData, transition: Any = None) -> Page:
        """Build the page for a resolved route.

        The entry's builder output is wrapped by the shell builders of its
        parent chain, nearest parent first. The transition is the first
        that is set of: per call, per route, ``config.default_transition``.

        Args:
            entry: Route entry
            data: Resolved route data
            transition: Per-call transition

        Returns:
            Page
        """
        node = entry.builder(data) if entry.builder else None
        for parent in self.registry.parent_chain(entry):
            if parent.shell_builder is not None:
                node = parent.shell_builder(self._parent_route_data(parent, data), node)

        return Page(
            route=data,
            entry=entry,
            node=node,
            transition=_first_set(
                transition,
                entry.transition,
                entry.transition_key,
                self.config.default_transition,
            ),
            fullscreen_dialog=entry.fullscreen_dialog,
            maintain_state=entry.maintain_state,
        )

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def push(
        self,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        transition: Any = None,
    ) -> Optional[asyncio.Future]:
        """Navigate to a path without waiting for the page to be popped.

        Args:
            path: Target path, optionally with a query string
            query: Extra query parameters
            body: Navigation arguments
            transition: Per-call transition

        Returns:
            Future completed with the value the page is popped with, or None
            if the navigation did not happen

        Raises:
            RouterNotInitializedError: If ``start`` has not been called
            RedirectLoopError: If the redirect bound is exceeded
        """
        page = await self._navigate(NavigationAction.PUSH, _with_query(path, query), body, transition)
        if page is None:
            return None
        return self._place(page, lambda navigator: navigator.push(page))

    async def push_named(
        self,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        transition: Any = None,
    ) -> Any:
        """Navigate to a path and wait for the value it is popped with.

        Returns:
            The popped value, or None if the navigation did not happen
        """
        return await _settle(await self.push(path, query=query, body=body, transition=transition))

    async def replace(
        self,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        transition: Any = None,
        result: Any = None,
    ) -> Optional[asyncio.Future]:
        """Replace the current page.

        Args:
            result: Value delivered to the replaced page's caller

        Returns:
            Future for the new page, or None
        """
        page = await self._navigate(
            NavigationAction.REPLACE, _with_query(path, query), body, transition, is_replace=True
        )
        if page is None:
            return None
        return self._place(
            page,
            lambda navigator: navigator.push_replacement(page, result),
            record=self.history.replace_current,
        )

    async def push_replacement_named(
        self,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        transition: Any = None,
        result: Any = None,
    ) -> Any:
        """Replace the current page and wait for the new one to be popped."""
        return await _settle(
            await self.replace(path, query=query, body=body, transition=transition, result=result)
        )

    async def pop_and_push(
        self,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        transition: Any = None,
        result: Any = None,
    ) -> Optional[asyncio.Future]:
        """Pop the current page with ``result`` and push a new one.

        The pop only happens once the pipeline has allowed the new page.
        """
        page = await self._navigate(
            NavigationAction.POP_AND_PUSH, _with_query(path, query), body, transition
        )
        if page is None:
            return None
        self._pop_active(result)
        return self._place(page, lambda navigator: navigator.push(page))

    async def pop_and_push_named(
        self,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        transition: Any = None,
        result: Any = None,
    ) -> Any:
        return await _settle(
            await self.pop_and_push(
                path, query=query, body=body, transition=transition, result=result
            )
        )

    async def push_and_remove_until(
        self,
        path: str,
        predicate: RoutePredicate,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        transition: Any = None,
    ) -> Optional[asyncio.Future]:
        """Push a page after removing pages until ``predicate`` holds.

        A predicate that never holds empties the navigator first.
        """
        page = await self._navigate(
            NavigationAction.PUSH_AND_REMOVE_ALL, _with_query(path, query), body, transition
        )
        if page is None:
            return None

        def place(navigator: NavigatorStack) -> asyncio.Future:
            future = navigator.push_and_remove_until(page, lambda p: predicate(p.route))
            self._trim_history(predicate)
            return future

        return self._place(page, place)

    async def push_named_and_remove_until(
        self,
        path: str,
        predicate: RoutePredicate,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        transition: Any = None,
    ) -> Any:
        return await _settle(
            await self.push_and_remove_until(
                path, predicate, query=query, body=body, transition=transition
            )
        )

    async def reset_to(
        self,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        transition: Any = None,
    ) -> Optional[RouteData]:
        """Clear every navigator and the history, then show ``path``.

        Returns:
            The new current route, or None if the navigation did not happen
        """
        page = await self._navigate(
            NavigationAction.PUSH_AND_REMOVE_ALL, _with_query(path, query), body, transition
        )
        if page is None:
            return None

        root = self._require_root()
        root.reset(page)
        self.history.clear()
        self.history.push(page.route)
        self._mount_shells(page)
        return page.route

    async def go_to_initial(self) -> Optional[RouteData]:
        return await self.reset_to(self.config.initial_path)

    def can_pop(self) -> bool:
        root = self._require_root()
        return self._active_navigator().can_pop() or root.can_pop()

    def pop(self, result: Any = None) -> bool:
        """Pop the current page.

        The nested navigator of the current shell is tried first, then the
        root navigator.

        Args:
            result: Value delivered to the popped page's caller

        Returns:
            True if a page was popped
        """
        self._require_root()
        return self._pop_active(result)

    def maybe_pop(self, result: Any = None) -> bool:
        if not self.can_pop():
            return False
        return self.pop(result)

    def pop_until(self, predicate: RoutePredicate) -> List[RouteData]:
        """Pop pages until ``predicate`` holds for the current route.

        Returns:
            Routes that were popped, most recent first
        """
        self._require_root()
        popped: List[RouteData] = []
        while True:
            current = self.current_route
            if current is None or predicate(current):
                break
            if not self._pop_active(None):
                break
            popped.append(current)
        return popped

    def pop_until_named(self, path: str) -> List[RouteData]:
        target = normalize_path(split_path_and_query(path)[0])
        return self.pop_until(lambda data: data.path == target)

    async def execute(self, intent: NavigationIntent) -> Any:
        """Execute a navigation intent.

        Push-style actions return the future of the new page, or None if
        the navigation did not happen. ``POP`` returns whether a page was
        popped and ``POP_UNTIL`` the popped routes.
        """
        action = intent.action
        if action is NavigationAction.POP:
            return self.pop(intent.result)
        if action is NavigationAction.POP_UNTIL:
            if intent.predicate is None:
                raise ValueError("pop_until intent requires a predicate")
            return self.pop_until(intent.predicate)

        if not intent.path:
            raise ValueError(f"{action.value} intent requires a path")
        options: Dict[str, Any] = {
            "query": intent.query,
            "body": intent.body,
            "transition": intent.transition,
        }
        if action is NavigationAction.PUSH:
            return await self.push(intent.path, **options)
        if action is NavigationAction.REPLACE:
            return await self.replace(intent.path, result=intent.result, **options)
        if action is NavigationAction.POP_AND_PUSH:
            return await self.pop_and_push(intent.path, result=intent.result, **options)
        return await self.push_and_remove_until(intent.path, lambda _: False, **options)

    async def _navigate(
        self,
        action: NavigationAction,
        full_path: str,
        arguments: Any,
        transition: Any,
        is_replace: bool = False,
    ) -> Optional[Page]:
        """Run the pipeline and build the resulting page.

        Returns:
            Page for the final route, a not-found page, or None
        """
        self._require_root()
        token = self.structured_logger.navigation_filter.set_navigation_id(
            self.structured_logger.generate_navigation_id()
        )
        from_path = self.current_route.path if self.current_route else None
        start = time.perf_counter()
        self._state.pending_navigations += 1
        outcome = "error"

        try:
            resolution = await self._resolve(full_path, arguments, is_replace)
            outcome = resolution.outcome

            entry, route = resolution.entry, resolution.route
            if resolution.outcome == "completed" and entry is not None and route is not None:
                return self.build_page(entry, route, transition)

            if resolution.outcome == "not_found":
                if self.metrics:
                    self.metrics.record_not_found()
                if self.not_found_builder is not None:
                    return self._not_found_page(resolution.full_path, resolution.arguments)
            return None
        except RedirectLoopError:
            outcome = "redirect_loop"
            raise
        finally:
            self._state.pending_navigations -= 1
            duration = time.perf_counter() - start
            self.structured_logger.log_navigation(
                action.value, full_path, outcome, duration_ms=duration * 1000, from_path=from_path
            )
            if self.metrics:
                self.metrics.record_navigation(action.value, outcome, duration)
            self.structured_logger.navigation_filter.clear_navigation_id(token)

    def _not_found_page(self, full_path: str, arguments: Any) -> Page:
        path_only, query = split_path_and_query(full_path)
        path = normalize_path(path_only)
        entry = RouteEntry(pattern=path, name="not_found", builder=self.not_found_builder)
        data = RouteData(
            pattern=path,
            path=path,
            full_path=full_path,
            name="not_found",
            params=RouteParams(query_params=parse_query_string(query)),
            arguments=arguments,
        )
        node = self.not_found_builder(data) if self.not_found_builder else None
        return Page(
            route=data, entry=entry, node=node, transition=self.config.default_transition
        )

    # ------------------------------------------------------------------
    # Navigator bookkeeping
    # ------------------------------------------------------------------

    def _require_root(self) -> NavigatorStack:
        if self._root is None:
            raise RouterNotInitializedError()
        return self._root

    def _navigator_for(self, path: str) -> NavigatorStack:
        """Pick the navigator that hosts a path."""
        root = self._require_root()
        shell = self.registry.find_shell_for_path(path)
        if shell is not None:
            nested = self._nested.get(shell)
            if nested is not None:
                return nested
        return root

    def _place(
        self,
        page: Page,
        operation: Callable[[NavigatorStack], asyncio.Future],
        record: Optional[Callable[[RouteData], None]] = None,
    ) -> asyncio.Future:
        """Apply a stack operation on the navigator hosting ``page`` and record it."""
        navigator = self._navigator_for(page.path)
        future = operation(navigator)
        (record or self.history.push)(page.route)
        if navigator is self._root:
            self._mount_shells(page)
        return future

    def _active_navigator(self) -> NavigatorStack:
        current = self.current_route
        if current is None:
            return self._require_root()
        return self._navigator_for(current.path)

    def _pop_active(self, result: Any) -> bool:
        root = self._require_root()
        navigator = self._active_navigator()
        if not navigator.can_pop():
            navigator = root
        if navigator.pop(result) is None:
            return False
        self.history.pop()
        return True

    def _trim_history(self, predicate: RoutePredicate) -> None:
        self.history.pop_until_where(predicate)
        current = self.history.current
        if current is not None and not predicate(current):
            self.history.clear()

    def _mount_shells(self, page: Page) -> None:
        """Mount nested navigators for the shells enclosing a root page."""
        if page.entry.parent_pattern is None:
            return
        for parent in self.registry.parent_chain(page.entry):
            if parent.pattern in self._nested:
                continue
            navigator = self.register_nested_navigator(parent.pattern)
            navigator.push(page)
            self._shell_owners[parent.pattern] = page

    def _on_root_removed(self, navigator: NavigatorStack, page: Page) -> None:
        for pattern, owner in list(self._shell_owners.items()):
            if owner is page:
                self.unregister_nested_navigator(pattern)

    def _on_history_changed(self, history: NavigationHistory) -> None:
        self._state.current_route = history.current
        if self.metrics:
            self.metrics.update_history_size(len(history))

    # ------------------------------------------------------------------
    # After-navigation hooks
    # ------------------------------------------------------------------

    def _schedule_after_navigation(
        self, pipeline: MiddlewarePipeline, context: MiddlewareContext
    ) -> None:
        if not len(pipeline):
            return
        task = asyncio.create_task(self._run_after_navigation(pipeline, context))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _run_after_navigation(
        self, pipeline: MiddlewarePipeline, context: MiddlewareContext
    ) -> None:
        await pipeline.after_navigation(context)

    def _debug(self, message: str) -> None:
        if self.config.debug_log:
            logger.debug(message)


def _with_query(path: str, query: Optional[Mapping[str, Any]]) -> str:
    """Append query parameters to a path that may already carry a query string."""
    if not query:
        return path
    query_string = build_query_string(query)
    if not query_string:
        return path
    if "?" in path:
        return path + "&" + query_string[1:]
    return path + query_string


async def _settle(future: Optional[asyncio.Future]) -> Any:
    if future is None:
        return None
    return await future


def _first_set(*values: Any) -> Any:
    return next((value for value in values if value is not None), None)
