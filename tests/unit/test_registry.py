"""Unit tests for the route registry."""

import pytest

from waypoint.core.exceptions import DuplicateRouteError, InvalidRouteConfigError
from waypoint.core.registry import RedirectEntry, RouteEntry, RouteRegistry


@pytest.fixture
def registry() -> RouteRegistry:
    """Create a registry with a shell and nested routes."""
    registry = RouteRegistry()
    registry.register_all(
        [
            RouteEntry("/app", name="app", is_shell=True),
            RouteEntry("/app/home", parent_pattern="/app/"),
            RouteEntry("/app/user/:id", name="user", parent_pattern="/app"),
            RouteEntry("/app/search", parent_pattern="/app"),
            RouteEntry("/app/search/:query", parent_pattern="/app"),
            RouteEntry("/about/"),
        ]
    )
    return registry


class TestRegistration:
    """Tests for registering routes."""

    def test_normalizes_and_defaults_name(self, registry: RouteRegistry) -> None:
        """Test patterns are normalized and names default to the pattern."""
        entry = registry.get("/about")
        assert entry is not None
        assert entry.pattern == "/about"
        assert entry.name == "/about"
        assert registry.get("/app/user/:id").name == "user"  # type: ignore[union-attr]

    def test_tracks_children_and_shells(self, registry: RouteRegistry) -> None:
        """Test parent links and shell bookkeeping."""
        assert registry.children_of("/app") == [
            "/app/home",
            "/app/user/:id",
            "/app/search",
            "/app/search/:query",
        ]
        assert registry.get("/app/home").parent_pattern == "/app"  # type: ignore[union-attr]
        assert registry.shell_patterns == ["/app"]

    def test_shell_builder_makes_shell(self) -> None:
        """Test a shell builder alone makes a route shell-capable."""
        registry = RouteRegistry()
        entry = registry.register(RouteEntry("/tabs", shell_builder=lambda data, child: child))
        assert entry.is_shell_capable
        assert registry.shell_patterns == ["/tabs"]

    def test_duplicate_rejected(self, registry: RouteRegistry) -> None:
        """Test registering a pattern twice raises."""
        with pytest.raises(DuplicateRouteError) as exc_info:
            registry.register(RouteEntry("/app/home/"))
        assert exc_info.value.pattern == "/app/home"

    def test_invalid_pattern_rejected(self, registry: RouteRegistry) -> None:
        """Test repeated parameter names are rejected at registration."""
        with pytest.raises(InvalidRouteConfigError):
            registry.register(RouteEntry("/x/:id/:id"))

    def test_unregister(self, registry: RouteRegistry) -> None:
        """Test removing a route."""
        removed = registry.unregister("/app/home")
        assert removed is not None
        assert "/app/home" not in registry
        assert "/app/home" not in registry.children_of("/app")
        assert registry.unregister("/missing") is None

    def test_container_protocol(self, registry: RouteRegistry) -> None:
        """Test len, membership and listing."""
        assert len(registry) == 6
        assert "/app/" in registry
        assert 42 not in registry
        assert registry.patterns[0] == "/app"
        assert len(registry.entries) == 6


class TestMatching:
    """Tests for resolving paths."""

    def test_static_over_dynamic(self, registry: RouteRegistry) -> None:
        """Test static and dynamic siblings resolve correctly."""
        entry, result = registry.match("/app/search")  # type: ignore[misc]
        assert entry.pattern == "/app/search"

        entry, result = registry.match("/app/search/foo")  # type: ignore[misc]
        assert entry.pattern == "/app/search/:query"
        assert result.path_params == {"query": "foo"}

    def test_no_match(self, registry: RouteRegistry) -> None:
        """Test unknown paths return None."""
        assert registry.match("/nowhere") is None

    def test_find_shell_for_path(self, registry: RouteRegistry) -> None:
        """Test shell lookup for child paths."""
        assert registry.find_shell_for_path("/app/user/42") == "/app"
        assert registry.find_shell_for_path("/app/unknown") is None
        assert registry.find_shell_for_path("/about") is None


class TestRedirects:
    """Tests for redirect rules."""

    def test_parameters_carry_over(self, registry: RouteRegistry) -> None:
        """Test captured parameters are substituted into the target."""
        registry.register_redirect(RedirectEntry("/u/:id", "/app/user/:id"))

        redirect = registry.find_redirect("/u/7")
        assert redirect is not None
        rule, target = redirect
        assert target == "/app/user/7"
        assert rule.from_pattern == "/u/:id"

    def test_first_applicable_wins(self, registry: RouteRegistry) -> None:
        """Test rules are evaluated in registration order."""
        registry.register_redirect(RedirectEntry("/old", "/first"))
        registry.register_redirect(RedirectEntry("/old", "/second"))
        assert registry.find_redirect("/old")[1] == "/first"  # type: ignore[index]

    def test_condition(self, registry: RouteRegistry) -> None:
        """Test conditions see the provisional route data."""
        registry.register_redirect(
            RedirectEntry(
                "/beta",
                "/app/home",
                condition=lambda data: data.params.query_params.get("enabled") == "1",
            )
        )
        registry.register_redirect(RedirectEntry("/beta", "/about"))

        assert registry.find_redirect("/beta", {"enabled": "1"})[1] == "/app/home"  # type: ignore[index]
        assert registry.find_redirect("/beta", {"enabled": "0"})[1] == "/about"  # type: ignore[index]

    def test_self_redirect_skipped(self, registry: RouteRegistry) -> None:
        """Test a rule pointing at the path itself is ignored."""
        registry.register_redirect(RedirectEntry("/same", "/same/"))
        assert registry.find_redirect("/same") is None


class TestParentChain:
    """Tests for walking parent chains."""

    def test_chain(self) -> None:
        """Test nearest parent comes first."""
        registry = RouteRegistry()
        registry.register(RouteEntry("/a", is_shell=True))
        registry.register(RouteEntry("/a/b", is_shell=True, parent_pattern="/a"))
        leaf = registry.register(RouteEntry("/a/b/c", parent_pattern="/a/b"))

        assert [p.pattern for p in registry.parent_chain(leaf)] == ["/a/b", "/a"]

    def test_missing_parent(self) -> None:
        """Test unregistered parents are reported."""
        registry = RouteRegistry()
        leaf = registry.register(RouteEntry("/x/y", parent_pattern="/x"))
        with pytest.raises(InvalidRouteConfigError, match="not registered"):
            registry.parent_chain(leaf)

    def test_non_shell_parent(self) -> None:
        """Test parents must be shell-capable."""
        registry = RouteRegistry()
        registry.register(RouteEntry("/x"))
        leaf = registry.register(RouteEntry("/x/y", parent_pattern="/x"))
        with pytest.raises(InvalidRouteConfigError, match="not a shell"):
            registry.parent_chain(leaf)

    def test_cycle_detected(self) -> None:
        """Test cyclic parent chains terminate with an error."""
        registry = RouteRegistry()
        registry.register(RouteEntry("/p", is_shell=True, parent_pattern="/q"))
        registry.register(RouteEntry("/q", is_shell=True, parent_pattern="/p"))
        leaf = registry.register(RouteEntry("/p/leaf", parent_pattern="/p"))
        with pytest.raises(InvalidRouteConfigError, match="Cyclic parent chain"):
            registry.parent_chain(leaf)


def test_clear(registry: RouteRegistry) -> None:
    """Test clearing the registry."""
    registry.register_redirect(RedirectEntry("/a", "/b"))
    registry.clear()
    assert len(registry) == 0
    assert registry.redirects == []
    assert registry.shell_patterns == []
