"""Route event observers.

Navigator stacks report every push, pop, replace and remove to an
``ObserverManager``, which fans the event out to registered observers and
keeps a bounded record of recent events.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Callable, Iterable, List, Optional

from waypoint.core.route_data import RouteData

logger = logging.getLogger(__name__)


class RouteEventType(Enum):
    PUSH = "push"
    POP = "pop"
    REPLACE = "replace"
    REMOVE = "remove"


@dataclass(frozen=True)
class RouteEvent:
    """One change to a navigator stack.

    Attributes:
        type: Kind of change
        route: Route that was pushed, popped, removed, or the replacement
        previous_route: Route below it (or the replaced route)
        navigator: Key of the navigator stack (``None`` for the root)
        timestamp: When the change happened
    """

    type: RouteEventType
    route: Optional[RouteData]
    previous_route: Optional[RouteData] = None
    navigator: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def path(self) -> Optional[str]:
        return self.route.path if self.route else None

    @property
    def previous_path(self) -> Optional[str]:
        return self.previous_route.path if self.previous_route else None


RouteEventCallback = Callable[[RouteEvent], None]


class RouteObserver:
    """Receives navigator stack changes.

    Subclass and override the ``did_*`` methods, or pass callbacks. The
    last ``max_history_size`` events are kept in ``history``.
    """

    def __init__(
        self,
        on_push: Optional[RouteEventCallback] = None,
        on_pop: Optional[RouteEventCallback] = None,
        on_replace: Optional[RouteEventCallback] = None,
        on_remove: Optional[RouteEventCallback] = None,
        on_route_event: Optional[RouteEventCallback] = None,
        max_history_size: int = 100,
        enable_logging: bool = False,
    ):
        self.on_push = on_push
        self.on_pop = on_pop
        self.on_replace = on_replace
        self.on_remove = on_remove
        self.on_route_event = on_route_event
        self.max_history_size = max_history_size
        self.enable_logging = enable_logging
        self._history: List[RouteEvent] = []

    @property
    def history(self) -> List[RouteEvent]:
        return list(self._history)

    @property
    def last_event(self) -> Optional[RouteEvent]:
        return self._history[-1] if self._history else None

    def clear_history(self) -> None:
        self._history.clear()

    def did_push(self, event: RouteEvent) -> None:
        self._record(event)
        if self.on_push:
            self.on_push(event)
        if self.enable_logging:
            logger.info(f"Push: {event.previous_path} -> {event.path}")

    def did_pop(self, event: RouteEvent) -> None:
        self._record(event)
        if self.on_pop:
            self.on_pop(event)
        if self.enable_logging:
            logger.info(f"Pop: {event.path} -> {event.previous_path}")

    def did_replace(self, event: RouteEvent) -> None:
        self._record(event)
        if self.on_replace:
            self.on_replace(event)
        if self.enable_logging:
            logger.info(f"Replace: {event.previous_path} -> {event.path}")

    def did_remove(self, event: RouteEvent) -> None:
        self._record(event)
        if self.on_remove:
            self.on_remove(event)
        if self.enable_logging:
            logger.info(f"Remove: {event.path}")

    def notify(self, event: RouteEvent) -> None:
        """Dispatch an event to the matching ``did_*`` method."""
        handler = {
            RouteEventType.PUSH: self.did_push,
            RouteEventType.POP: self.did_pop,
            RouteEventType.REPLACE: self.did_replace,
            RouteEventType.REMOVE: self.did_remove,
        }[event.type]
        handler(event)

    def _record(self, event: RouteEvent) -> None:
        self._history.append(event)
        overflow = len(self._history) - self.max_history_size
        if overflow > 0:
            del self._history[:overflow]
        if self.on_route_event:
            self.on_route_event(event)


class ObserverManager:
    """Fans route events out to observers and event listeners.

    An internal observer records every event so ``history`` is always
    available, and forwards each one to the event listeners.
    """

    def __init__(self) -> None:
        self._internal = RouteObserver(on_route_event=self._notify_event_listeners)
        self._observers: List[RouteObserver] = [self._internal]
        self._event_listeners: List[RouteEventCallback] = []

    @property
    def all(self) -> List[RouteObserver]:
        return list(self._observers)

    @property
    def history(self) -> List[RouteEvent]:
        return self._internal.history

    def add(self, observer: RouteObserver) -> None:
        self._observers.append(observer)

    def add_all(self, observers: Iterable[RouteObserver]) -> None:
        self._observers.extend(observers)

    def remove(self, observer: RouteObserver) -> None:
        if observer is not self._internal and observer in self._observers:
            self._observers.remove(observer)

    def clear(self) -> None:
        self._observers = [self._internal]

    def add_simple(
        self,
        on_push: Optional[RouteEventCallback] = None,
        on_pop: Optional[RouteEventCallback] = None,
        on_replace: Optional[RouteEventCallback] = None,
        on_remove: Optional[RouteEventCallback] = None,
    ) -> RouteObserver:
        observer = RouteObserver(
            on_push=on_push, on_pop=on_pop, on_replace=on_replace, on_remove=on_remove
        )
        self.add(observer)
        return observer

    def add_event_listener(self, listener: RouteEventCallback) -> None:
        self._event_listeners.append(listener)

    def remove_event_listener(self, listener: RouteEventCallback) -> None:
        if listener in self._event_listeners:
            self._event_listeners.remove(listener)

    def notify(self, event: RouteEvent) -> None:
        for observer in list(self._observers):
            observer.notify(event)

    def _notify_event_listeners(self, event: RouteEvent) -> None:
        for listener in list(self._event_listeners):
            listener(event)
