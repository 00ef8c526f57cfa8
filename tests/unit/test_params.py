"""Unit tests for route parameters and typed access."""

from datetime import timedelta

import pytest

from waypoint.core.decoders import ParamKind
from waypoint.core.exceptions import DecodeError, MissingParameterError
from waypoint.core.params import RouteParams, TypedParamsResolver
from waypoint.core.route_data import RouteData


@pytest.fixture
def params() -> RouteParams:
    """Create parameters covering all three sources."""
    return RouteParams(
        path_params={"id": "42", "slug": "intro"},
        query_params={"page": "2", "debug": "yes", "tags": "a,b,c", "empty": ""},
        body_params={"count": 3, "flag": True, "ttl": "1500", "user": {"name": "ada"}},
    )


@pytest.fixture
def resolver(params: RouteParams) -> TypedParamsResolver:
    """Create a resolver with an opaque payload."""
    return TypedParamsResolver(params, arguments={"source": "test"})


class TestRouteParams:
    """Tests for RouteParams."""

    def test_all_merges_with_precedence(self) -> None:
        """Test body wins over query, query wins over path."""
        params = RouteParams(
            path_params={"a": "path", "b": "path"},
            query_params={"b": "query", "c": "query"},
            body_params={"c": "body"},
        )
        assert params.all == {"a": "path", "b": "query", "c": "body"}

    def test_equality_and_hash(self) -> None:
        """Test deep equality and hashing."""
        first = RouteParams(path_params={"id": "1"}, query_params={"q": "x"})
        second = RouteParams(path_params={"id": "1"}, query_params={"q": "x"})
        assert first == second
        assert hash(first) == hash(second)
        assert first != RouteParams(path_params={"id": "2"})

    def test_inputs_are_copied(self) -> None:
        """Test mutating the source dict does not leak in."""
        source = {"id": "1"}
        params = RouteParams(path_params=source)
        source["id"] = "2"
        assert params.path_params == {"id": "1"}

    def test_is_empty_and_with_path_params(self) -> None:
        """Test helpers."""
        assert RouteParams().is_empty
        replaced = RouteParams(query_params={"q": "x"}).with_path_params({"id": "9"})
        assert replaced.path_params == {"id": "9"}
        assert replaced.query_params == {"q": "x"}


class TestPathAccess:
    """Tests for typed path parameters."""

    def test_get_decodes(self, resolver: TypedParamsResolver) -> None:
        """Test decoding a path parameter."""
        assert resolver.path.get("id", ParamKind.INT) == 42
        assert resolver.path.get("slug") == "intro"
        assert resolver.path.has("id")
        assert resolver.path.get_raw("id") == "42"

    def test_missing_raises(self, resolver: TypedParamsResolver) -> None:
        """Test absent path parameters raise."""
        with pytest.raises(MissingParameterError) as exc_info:
            resolver.path.get("nope", int)
        assert exc_info.value.name == "nope"

    def test_bad_value_raises(self, resolver: TypedParamsResolver) -> None:
        """Test undecodable path parameters raise."""
        with pytest.raises(DecodeError):
            resolver.path.get("slug", ParamKind.INT)


class TestQueryAccess:
    """Tests for typed query parameters."""

    def test_get_decodes(self, resolver: TypedParamsResolver) -> None:
        """Test decoding query parameters."""
        assert resolver.query.get("page", int) == 2
        assert resolver.query.get("debug", ParamKind.BOOL) is True

    def test_defaults_and_nullable(self, resolver: TypedParamsResolver) -> None:
        """Test missing and empty values."""
        assert resolver.query.get("missing", int, default=10) == 10
        assert resolver.query.get("missing", int, nullable=True) is None
        assert resolver.query.get("empty", int, nullable=True) is None
        assert resolver.query.get("debug", int, default=-1) == -1

    def test_missing_without_default_raises(self, resolver: TypedParamsResolver) -> None:
        """Test absent required query parameters raise."""
        with pytest.raises(MissingParameterError):
            resolver.query.get("missing", int)

    def test_get_list(self, resolver: TypedParamsResolver) -> None:
        """Test list query parameters."""
        assert resolver.query.get_list("tags") == ["a", "b", "c"]
        assert resolver.query.get_list("absent", int) == []


class TestBodyAccess:
    """Tests for body parameters."""

    def test_typed_values_pass_through(self, resolver: TypedParamsResolver) -> None:
        """Test values that already have the right type."""
        assert resolver.body.get("count", int) == 3
        assert resolver.body.get("flag", bool) is True
        assert resolver.body.get("user", dict) == {"name": "ada"}

    def test_strings_are_decoded(self, resolver: TypedParamsResolver) -> None:
        """Test string values decode to the requested kind."""
        assert resolver.body.get("ttl", ParamKind.DURATION) == timedelta(milliseconds=1500)

    def test_never_raises(self, resolver: TypedParamsResolver) -> None:
        """Test mismatches yield None."""
        assert resolver.body.get("flag", int) is None
        assert resolver.body.get("user", int) is None
        assert resolver.body.get("missing") is None

    def test_arguments(self, resolver: TypedParamsResolver) -> None:
        """Test the opaque payload is exposed untouched."""
        assert resolver.body.arguments == {"source": "test"}
        assert resolver.arguments == {"source": "test"}


class TestCache:
    """Tests for the resolver's memoization."""

    def test_results_are_cached(self, resolver: TypedParamsResolver) -> None:
        """Test repeated lookups return the cached object."""
        first = resolver.query.get_list("tags")
        first.append("mutated")
        assert resolver.query.get_list("tags") == ["a", "b", "c"]

        resolver.body.get("user", dict)
        assert any(key.startswith("body:user:") for key in resolver._cache)

    def test_cache_keys_include_kind_and_default(self, resolver: TypedParamsResolver) -> None:
        """Test different kinds and defaults do not collide."""
        assert resolver.query.get("page") == "2"
        assert resolver.query.get("page", int) == 2
        assert resolver.query.get("missing", int, default=1) == 1
        assert resolver.query.get("missing", int, default=2) == 2

    def test_cache_not_shared(self, params: RouteParams) -> None:
        """Test each resolver owns its cache."""
        first = TypedParamsResolver(params)
        second = TypedParamsResolver(params)
        first.path.get("id", int)
        assert first._cache
        assert not second._cache

    def test_with_path_params_and_clear(self, resolver: TypedParamsResolver) -> None:
        """Test derived resolvers start empty and caches can be cleared."""
        resolver.path.get("id", int)
        derived = resolver.with_path_params({"id": "7"})
        assert derived.path.get("id", int) == 7
        assert resolver.path.get("id", int) == 42

        resolver.clear_cache()
        assert not resolver._cache


class TestRouteData:
    """Tests for RouteData."""

    def test_equality_ignores_id(self) -> None:
        """Test id and created_at are excluded from equality."""
        first = RouteData("/u/:id", "/u/1", "/u/1", "user", RouteParams(path_params={"id": "1"}))
        second = RouteData("/u/:id", "/u/1", "/u/1", "user", RouteParams(path_params={"id": "1"}))
        assert first.id != second.id
        assert first.id.startswith("route_")
        assert first == second
        assert hash(first) == hash(second)

    def test_typed_params_are_lazy_and_owned(self) -> None:
        """Test each record creates its resolver once."""
        data = RouteData(
            pattern="/u/:id",
            path="/u/1",
            full_path="/u/1?x=2",
            name="user",
            params=RouteParams(path_params={"id": "1"}, query_params={"x": "2"}),
        )
        assert data.typed_params is data.typed_params
        assert data.typed_params.path.get("id", int) == 1
        assert data.typed_params.query.get("x", int) == 2

    def test_properties(self) -> None:
        """Test derived properties."""
        data = RouteData(
            pattern="/app/user/:id",
            path="/app/user/1",
            full_path="/app/user/1",
            name="user",
            params=RouteParams(path_params={"id": "1"}),
        )
        assert data.has_path_params
        assert not data.has_query_params
        assert data.depth == 3

        copy = data.copy_with(name="other")
        assert copy.name == "other"
        assert copy != data
