"""Navigation history.

A bounded, indexable list of visited routes with browser-style semantics:
pushing after going back discards the abandoned forward branch. Every
mutation notifies listeners synchronously once the list and index are
consistent again.
"""

from typing import Callable, List, Optional

from waypoint.core.route_data import RouteData


HistoryListener = Callable[["NavigationHistory"], None]


class NavigationHistory:
    """Bounded back/forward history of RouteData entries."""

    def __init__(self, max_size: int = 100):
        """Initialize history.

        Args:
            max_size: Maximum number of entries; the oldest are evicted first
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._entries: List[RouteData] = []
        self._current_index = -1
        self._listeners: List[HistoryListener] = []

    @property
    def entries(self) -> List[RouteData]:
        return list(self._entries)

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current(self) -> Optional[RouteData]:
        if 0 <= self._current_index < len(self._entries):
            return self._entries[self._current_index]
        return None

    @property
    def previous(self) -> Optional[RouteData]:
        if self._current_index > 0:
            return self._entries[self._current_index - 1]
        return None

    @property
    def next(self) -> Optional[RouteData]:
        if self._current_index < len(self._entries) - 1:
            return self._entries[self._current_index + 1]
        return None

    @property
    def can_go_back(self) -> bool:
        return self._current_index > 0

    @property
    def can_go_forward(self) -> bool:
        return self._current_index < len(self._entries) - 1

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def push(self, data: RouteData) -> None:
        """Append an entry after the current one.

        Entries after the current position are discarded first. When the
        history grows past ``max_size`` the oldest entries are evicted and
        the index shifts so it still points at the pushed entry.

        Args:
            data: Route to append
        """
        if self._current_index < len(self._entries) - 1:
            del self._entries[self._current_index + 1 :]

        self._entries.append(data)
        self._current_index = len(self._entries) - 1

        overflow = len(self._entries) - self.max_size
        if overflow > 0:
            del self._entries[:overflow]
            self._current_index -= overflow

        self._notify_listeners()

    def pop(self) -> Optional[RouteData]:
        """Step back one entry; returns the new current entry or None."""
        if not self.can_go_back:
            return None
        self._current_index -= 1
        self._notify_listeners()
        return self.current

    def forward(self) -> Optional[RouteData]:
        """Step forward one entry; returns the new current entry or None."""
        if not self.can_go_forward:
            return None
        self._current_index += 1
        self._notify_listeners()
        return self.current

    def go_to_index(self, index: int) -> Optional[RouteData]:
        if index < 0 or index >= len(self._entries):
            return None
        self._current_index = index
        self._notify_listeners()
        return self.current

    def replace_current(self, data: RouteData) -> None:
        """Replace the current entry, or push when the history is empty."""
        if 0 <= self._current_index < len(self._entries):
            self._entries[self._current_index] = data
            self._notify_listeners()
        else:
            self.push(data)

    def pop_until(self, path: str) -> List[RouteData]:
        """Remove entries until the current one has ``path``.

        Args:
            path: Path to stop at

        Returns:
            Removed entries, most recent first
        """
        return self.pop_until_where(lambda data: data.path == path)

    def pop_until_where(self, predicate: Callable[[RouteData], bool]) -> List[RouteData]:
        """Remove entries until the predicate holds for the current one.

        The first entry is never removed.

        Args:
            predicate: Stop condition

        Returns:
            Removed entries, most recent first
        """
        popped = []
        while self.can_go_back and not predicate(self._entries[self._current_index]):
            popped.append(self._entries.pop(self._current_index))
            self._current_index -= 1
        self._notify_listeners()
        return popped

    def clear(self) -> None:
        self._entries.clear()
        self._current_index = -1
        self._notify_listeners()

    def find_by_path(self, path: str) -> Optional[RouteData]:
        return next((e for e in self._entries if e.path == path), None)

    def find_by_name(self, name: str) -> Optional[RouteData]:
        return next((e for e in self._entries if e.name == name), None)

    def contains_path(self, path: str) -> bool:
        return any(e.path == path for e in self._entries)

    def path_at(self, index: int) -> Optional[str]:
        if index < 0 or index >= len(self._entries):
            return None
        return self._entries[index].path

    def add_listener(self, listener: HistoryListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: HistoryListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify_listeners(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    @property
    def path_stack(self) -> List[str]:
        return [e.path for e in self._entries]

    @property
    def current_path(self) -> Optional[str]:
        current = self.current
        return current.path if current else None

    @property
    def previous_path(self) -> Optional[str]:
        previous = self.previous
        return previous.path if previous else None

    @property
    def next_path(self) -> Optional[str]:
        following = self.next
        return following.path if following else None

    def __repr__(self) -> str:
        return f"NavigationHistory(length={len(self)}, current_index={self._current_index})"
