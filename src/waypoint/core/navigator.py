"""Navigator stacks.

A navigator is an in-memory stack of pages. The router owns one root stack
and mounts one nested stack per active shell. Every page carries a future
that completes with the value it is popped with, so ``push`` callers can
await a result::

    future = stack.push(page)
    ...
    stack.pop("saved")
    await future  # "saved"

Pages that leave the stack any other way complete with None.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from waypoint.core.observers import ObserverManager, RouteEvent, RouteEventType
from waypoint.core.registry import RouteEntry
from waypoint.core.route_data import RouteData

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Page:
    """A resolved route ready for the rendering layer.

    Attributes:
        route: Resolved route data
        entry: Registered route entry
        node: Output of the route builder, wrapped by enclosing shells
        transition: Opaque transition descriptor
        fullscreen_dialog: Passed through from the entry
        maintain_state: Passed through from the entry
    """

    route: RouteData
    entry: RouteEntry
    node: Any = None
    transition: Any = None
    fullscreen_dialog: bool = False
    maintain_state: bool = True

    @property
    def path(self) -> str:
        return self.route.path

    @property
    def name(self) -> str:
        return self.route.name

    @property
    def pattern(self) -> str:
        return self.route.pattern


PagePredicate = Callable[[Page], bool]
PageRemovedCallback = Callable[["NavigatorStack", Page], None]


class NavigatorStack:
    """Stack of pages with result futures.

    Observers hear about every change; ``on_removed`` is called for every
    page that leaves the stack, whatever the reason.
    """

    def __init__(
        self,
        key: Optional[str] = None,
        observers: Optional[ObserverManager] = None,
        on_removed: Optional[PageRemovedCallback] = None,
    ):
        """Initialize a navigator stack.

        Args:
            key: Shell pattern of a nested navigator, None for the root
            observers: Receives push, pop, replace and remove events
            on_removed: Called with each page that leaves the stack
        """
        self.key = key
        self._observers = observers
        self._on_removed = on_removed
        self._stack: List[Tuple[Page, asyncio.Future]] = []

    @property
    def pages(self) -> List[Page]:
        return [page for page, _ in self._stack]

    @property
    def top(self) -> Optional[Page]:
        return self._stack[-1][0] if self._stack else None

    def __len__(self) -> int:
        return len(self._stack)

    def __contains__(self, page: object) -> bool:
        return any(p is page for p, _ in self._stack)

    def can_pop(self) -> bool:
        return len(self._stack) > 1

    def push(self, page: Page) -> asyncio.Future:
        """Push a page.

        Args:
            page: Page to push

        Returns:
            Future completed with the value the page is popped with
        """
        previous = self.top
        future = asyncio.get_running_loop().create_future()
        self._stack.append((page, future))
        self._emit(RouteEventType.PUSH, page, previous)
        return future

    def pop(self, result: Any = None) -> Optional[Page]:
        """Pop the top page, unless it is the last one.

        Args:
            result: Value delivered to the page's future

        Returns:
            The popped page, or None if nothing could be popped
        """
        if not self.can_pop():
            return None
        page, future = self._stack.pop()
        self._complete(future, result)
        self._emit(RouteEventType.POP, page, self.top)
        self._removed(page)
        return page

    def push_replacement(self, page: Page, result: Any = None) -> asyncio.Future:
        """Replace the top page.

        Args:
            page: New top page
            result: Value delivered to the replaced page's future

        Returns:
            Future for the new page
        """
        if not self._stack:
            return self.push(page)

        old_page, old_future = self._stack.pop()
        future = asyncio.get_running_loop().create_future()
        self._stack.append((page, future))
        self._complete(old_future, result)
        self._emit(RouteEventType.REPLACE, page, old_page)
        self._removed(old_page)
        return future

    def push_and_remove_until(self, page: Page, predicate: PagePredicate) -> asyncio.Future:
        """Remove pages from the top until ``predicate`` holds, then push.

        Args:
            page: Page to push
            predicate: Stop condition; a predicate that never holds clears the stack

        Returns:
            Future for the pushed page
        """
        while self._stack and not predicate(self._stack[-1][0]):
            self._remove_top()
        return self.push(page)

    def pop_until(self, predicate: PagePredicate) -> List[Page]:
        """Pop pages until ``predicate`` holds for the top page.

        The last page is never popped.

        Args:
            predicate: Stop condition

        Returns:
            Popped pages, most recent first
        """
        popped = []
        while self.can_pop() and not predicate(self._stack[-1][0]):
            page = self.pop()
            if page is not None:
                popped.append(page)
        return popped

    def reset(self, page: Page) -> asyncio.Future:
        """Remove every page and push ``page``."""
        return self.push_and_remove_until(page, lambda _: False)

    def remove(self, page: Page) -> bool:
        """Remove a specific page from anywhere in the stack."""
        for index, (candidate, future) in enumerate(self._stack):
            if candidate is page:
                del self._stack[index]
                self._complete(future, None)
                below = self._stack[index - 1][0] if index > 0 else None
                self._emit(RouteEventType.REMOVE, page, below)
                self._removed(page)
                return True
        return False

    def dispose(self) -> None:
        """Complete every pending future with None and empty the stack."""
        while self._stack:
            _, future = self._stack.pop()
            self._complete(future, None)

    def _remove_top(self) -> None:
        page, future = self._stack.pop()
        self._complete(future, None)
        self._emit(RouteEventType.REMOVE, page, self.top)
        self._removed(page)

    @staticmethod
    def _complete(future: asyncio.Future, result: Any) -> None:
        if not future.done():
            future.set_result(result)

    def _emit(self, event_type: RouteEventType, page: Page, previous: Optional[Page]) -> None:
        if self._observers is None:
            return
        self._observers.notify(
            RouteEvent(
                type=event_type,
                route=page.route,
                previous_route=previous.route if previous else None,
                navigator=self.key,
            )
        )

    def _removed(self, page: Page) -> None:
        if self._on_removed is not None:
            self._on_removed(self, page)

    def __repr__(self) -> str:
        return f"NavigatorStack(key={self.key!r}, pages={[p.path for p in self.pages]})"
