"""Unit tests for path parsing utilities."""

import pytest

from waypoint.core.exceptions import InvalidRouteConfigError
from waypoint.core.parser import (
    build_query_string,
    has_path_params,
    is_path_param,
    is_wildcard,
    join_paths,
    normalize_path,
    param_names,
    parent_path,
    parse_query_string,
    parse_segments,
    split_path_and_query,
    validate_pattern,
)


class TestNormalizePath:
    """Tests for normalize_path."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("", "/"),
            ("/", "/"),
            ("user", "/user"),
            ("/user/", "/user"),
            ("user//profile/", "/user/profile"),
            ("///a///b///", "/a/b"),
            ("  /trimmed  ", "/trimmed"),
        ],
    )
    def test_normalization(self, raw: str, expected: str) -> None:
        """Test leading slash, trailing slash and repeated slash handling."""
        assert normalize_path(raw) == expected

    def test_idempotent(self) -> None:
        """Test normalizing twice changes nothing."""
        once = normalize_path("a//b/c/")
        assert normalize_path(once) == once


def test_split_path_and_query() -> None:
    """Test splitting on the first question mark."""
    assert split_path_and_query("/u/1?tab=posts") == ("/u/1", "tab=posts")
    assert split_path_and_query("/u/1") == ("/u/1", None)
    assert split_path_and_query("/u/1?") == ("/u/1", "")
    assert split_path_and_query("/a?b=1?c=2") == ("/a", "b=1?c=2")


def test_parse_query_string() -> None:
    """Test decoding of query strings."""
    assert parse_query_string("?q=a%20b&page=2") == {"q": "a b", "page": "2"}
    assert parse_query_string("q=a+b") == {"q": "a b"}
    assert parse_query_string("flag=") == {"flag": ""}
    assert parse_query_string("k=1&k=2") == {"k": "2"}
    assert parse_query_string(None) == {}
    assert parse_query_string("") == {}


def test_build_query_string() -> None:
    """Test encoding of query parameters."""
    assert build_query_string({"q": "a b", "x": None}) == "?q=a%20b"
    assert build_query_string({"flag": True, "n": 3}) == "?flag=true&n=3"
    assert build_query_string({"path": "/a/b"}) == "?path=%2Fa%2Fb"
    assert build_query_string({}) == ""
    assert build_query_string({"x": None}) == ""


def test_query_string_round_trip() -> None:
    """Test that built query strings parse back to the same values."""
    params = {"q": "hello world & more", "tab": "profile"}
    assert parse_query_string(build_query_string(params)) == params


def test_parse_segments() -> None:
    """Test splitting paths into segments."""
    assert parse_segments("/") == []
    assert parse_segments("/app/user/:id") == ["app", "user", ":id"]
    assert parse_segments("app//user/") == ["app", "user"]


def test_join_and_parent_paths() -> None:
    """Test path joining and parent computation."""
    assert join_paths("/app", "user/1") == "/app/user/1"
    assert join_paths("/", "/home") == "/home"
    assert join_paths("/app", "/") == "/app"
    assert parent_path("/app/user/1") == "/app/user"
    assert parent_path("/app") == "/"
    assert parent_path("/") is None


def test_segment_predicates() -> None:
    """Test parameter and wildcard detection."""
    assert is_path_param(":id")
    assert not is_path_param("id")
    assert is_wildcard("*")
    assert is_wildcard("**")
    assert not is_wildcard("user-*")
    assert param_names("/a/:x/b/:y") == ["x", "y"]
    assert has_path_params("/a/:x")
    assert not has_path_params("/a/b")


class TestValidatePattern:
    """Tests for validate_pattern."""

    def test_returns_normalized_pattern(self) -> None:
        """Test the pattern comes back normalized."""
        assert validate_pattern("app/user/:id/") == "/app/user/:id"

    def test_rejects_duplicate_parameter(self) -> None:
        """Test repeated parameter names are rejected."""
        with pytest.raises(InvalidRouteConfigError, match="Duplicate parameter 'id'"):
            validate_pattern("/a/:id/b/:id")

    def test_rejects_empty_parameter_name(self) -> None:
        """Test a bare colon segment is rejected."""
        with pytest.raises(InvalidRouteConfigError, match="Empty parameter name"):
            validate_pattern("/a/:")
