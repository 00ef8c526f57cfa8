"""Unit tests for navigation history."""

from typing import List

import pytest

from waypoint.core.history import NavigationHistory
from waypoint.core.params import RouteParams
from waypoint.core.route_data import RouteData


def route(path: str) -> RouteData:
    return RouteData(pattern=path, path=path, full_path=path, name=path.strip("/") or "root", params=RouteParams())


@pytest.fixture
def history():
    """Create a history holding /a, /b and /c."""
    history = NavigationHistory(max_size=10)
    for path in ("/a", "/b", "/c"):
        history.push(route(path))
    return history


def test_rejects_invalid_size():
    """Test max_size must be positive."""
    with pytest.raises(ValueError):
        NavigationHistory(max_size=0)


def test_push_sets_current(history):
    """Test the pushed entry becomes current."""
    assert history.path_stack == ["/a", "/b", "/c"]
    assert history.current_index == 2
    assert history.current_path == "/c"
    assert history.previous_path == "/b"
    assert history.next_path is None
    assert len(history) == 3


def test_pop_then_push_discards_forward_branch(history):
    """Test pushing after going back drops the abandoned entries."""
    assert history.pop().path == "/b"
    assert history.can_go_forward
    assert history.next_path == "/c"

    history.push(route("/d"))

    assert history.path_stack == ["/a", "/b", "/d"]
    assert history.current_path == "/d"
    assert not history.can_go_forward


def test_back_and_forward(history):
    """Test stepping through the history."""
    history.pop()
    history.pop()
    assert history.pop() is None
    assert history.current_path == "/a"
    assert not history.can_go_back

    assert history.forward().path == "/b"
    assert history.go_to_index(2).path == "/c"
    assert history.forward() is None
    assert history.go_to_index(5) is None


def test_eviction_keeps_index_on_pushed_entry():
    """Test the oldest entries are evicted past max_size."""
    history = NavigationHistory(max_size=3)
    for path in ("/1", "/2", "/3", "/4", "/5"):
        history.push(route(path))

    assert history.path_stack == ["/3", "/4", "/5"]
    assert history.current_path == "/5"
    assert history.current_index == 2


def test_replace_current(history):
    """Test replacing the current entry, or pushing into an empty history."""
    history.replace_current(route("/x"))
    assert history.path_stack == ["/a", "/b", "/x"]

    empty = NavigationHistory()
    empty.replace_current(route("/y"))
    assert empty.path_stack == ["/y"]
    assert empty.current_index == 0


def test_pop_until(history):
    """Test popping back to a path never removes the first entry."""
    removed = history.pop_until("/a")
    assert [r.path for r in removed] == ["/c", "/b"]
    assert history.path_stack == ["/a"]

    history.push(route("/b"))
    removed = history.pop_until("/missing")
    assert [r.path for r in removed] == ["/b"]
    assert history.path_stack == ["/a"]


def test_pop_until_where(history):
    """Test predicate-based popping."""
    removed = history.pop_until_where(lambda data: data.name == "b")
    assert [r.path for r in removed] == ["/c"]
    assert history.current_path == "/b"


def test_lookups(history):
    """Test search helpers."""
    assert history.find_by_path("/b").name == "b"
    assert history.find_by_name("c").path == "/c"
    assert history.find_by_path("/zzz") is None
    assert history.contains_path("/a")
    assert history.path_at(0) == "/a"
    assert history.path_at(9) is None


def test_clear(history):
    """Test clearing the history."""
    history.clear()
    assert history.is_empty
    assert history.current is None
    assert history.current_index == -1


def test_listeners_see_consistent_state(history):
    """Test listeners are notified after each mutation."""
    seen: List[str] = []

    def listener(h: NavigationHistory) -> None:
        seen.append(h.current_path)

    history.add_listener(listener)
    history.push(route("/d"))
    history.pop()
    history.replace_current(route("/e"))
    history.remove_listener(listener)
    history.push(route("/f"))

    assert seen == ["/d", "/c", "/e"]
