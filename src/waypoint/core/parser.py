"""Path parsing utilities.

Pure functions that normalize raw path strings, split off and parse query
strings, and break paths and patterns into segments. None of them fail on
malformed input: anything path-like normalizes to a best-effort canonical
form.

Example::

    normalize_path("user//profile/")        # "/user/profile"
    split_path_and_query("/u/1?tab=posts")  # ("/u/1", "tab=posts")
    parse_query_string("?q=a%20b&page=2")   # {"q": "a b", "page": "2"}
    build_query_string({"q": "a b", "x": None})  # "?q=a%20b"
"""

import re
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, quote

from waypoint.core.decoders import encode
from waypoint.core.exceptions import InvalidRouteConfigError

PARAM_PREFIX = ":"

_REPEATED_SLASHES = re.compile(r"/{2,}")


def normalize_path(path: str) -> str:
    """Normalize a path string.

    - Exactly one leading slash
    - No trailing slash, except for the root ``/``
    - Repeated slashes collapsed

    Args:
        path: Raw path (may be empty)

    Returns:
        Normalized path
    """
    normalized = _REPEATED_SLASHES.sub("/", path.strip())

    if not normalized.startswith("/"):
        normalized = "/" + normalized

    if len(normalized) > 1 and normalized.endswith("/"):
        normalized = normalized.rstrip("/") or "/"

    return normalized


def split_path_and_query(raw: str) -> Tuple[str, Optional[str]]:
    """Split a full path on the first ``?``.

    Args:
        raw: Path with an optional query string

    Returns:
        Tuple of (path, query); query is None when there is no ``?``
    """
    path, sep, query = raw.partition("?")
    if not sep:
        return raw, None
    return path, query


def parse_query_string(query: Optional[str]) -> Dict[str, str]:
    """Parse a query string into a dictionary.

    Keys and values are percent-decoded (``+`` decodes to a space). A leading
    ``?`` is accepted. When a key repeats, the last value wins.

    Args:
        query: Query string, with or without the leading ``?``

    Returns:
        Dictionary of decoded query parameters
    """
    if not query:
        return {}
    if query.startswith("?"):
        query = query[1:]
    return dict(parse_qsl(query, keep_blank_values=True))


def build_query_string(params: Mapping[str, Any]) -> str:
    """Build a query string from a mapping.

    ``None`` values are skipped. Every other value goes through the
    parameter encoder (so booleans become ``true``/``false``) and is
    percent-encoded together with its key.

    Args:
        params: Query parameters

    Returns:
        Query string with a leading ``?``, or an empty string
    """
    pairs = [
        f"{quote(str(key), safe='')}={quote(encode(value), safe='')}"
        for key, value in params.items()
        if value is not None
    ]
    if not pairs:
        return ""
    return "?" + "&".join(pairs)


def parse_segments(path: str) -> List[str]:
    """Split a path into its non-empty segments.

    Args:
        path: Path or pattern

    Returns:
        List of segments; the root yields an empty list
    """
    return [segment for segment in normalize_path(path).split("/") if segment]


def join_paths(base: str, sub: str) -> str:
    """Join two paths into one normalized path."""
    normalized_base = normalize_path(base)
    normalized_sub = normalize_path(sub)
    if normalized_sub == "/":
        return normalized_base
    if normalized_base == "/":
        return normalized_sub
    return normalized_base + normalized_sub


def parent_path(path: str) -> Optional[str]:
    """Return the path without its last segment, or None for the root."""
    segments = parse_segments(path)
    if not segments:
        return None
    if len(segments) == 1:
        return "/"
    return "/" + "/".join(segments[:-1])


def is_path_param(segment: str) -> bool:
    """Check whether a pattern segment is a named parameter (``:name``)."""
    return segment.startswith(PARAM_PREFIX)


def is_wildcard(segment: str) -> bool:
    """Check whether a segment is a glob wildcard (``*`` or ``**``)."""
    return segment in ("*", "**")


def param_name(segment: str) -> str:
    """Strip the leading ``:`` from a parameter segment."""
    if is_path_param(segment):
        return segment[len(PARAM_PREFIX):]
    return segment


def param_names(pattern: str) -> List[str]:
    """Return the parameter names of a pattern in segment order."""
    return [param_name(segment) for segment in parse_segments(pattern) if is_path_param(segment)]


def has_path_params(path: str) -> bool:
    """Check whether a pattern contains at least one parameter segment."""
    return any(is_path_param(segment) for segment in parse_segments(path))


def validate_pattern(pattern: str) -> str:
    """Normalize a route pattern and check its parameter names.

    Args:
        pattern: Route pattern

    Returns:
        The normalized pattern

    Raises:
        InvalidRouteConfigError: If a parameter name is empty or repeated
    """
    normalized = normalize_path(pattern)
    seen: set[str] = set()
    for name in param_names(normalized):
        if not name:
            raise InvalidRouteConfigError(f"Empty parameter name in pattern: {normalized}")
        if name in seen:
            raise InvalidRouteConfigError(
                f"Duplicate parameter '{name}' in pattern: {normalized}"
            )
        seen.add(name)
    return normalized
