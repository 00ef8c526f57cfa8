"""Route matching for Waypoint.

This module implements the pattern matcher used by the registry and the
router:
- Exact matching of concrete paths against ``:param`` patterns
- Prefix matching, used to recover a shell's parameters from a child path
- Best-match selection with static-over-dynamic priority
- Path building from a pattern and parameter values
- Glob matching for guard and middleware route filters
"""

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote, unquote

from waypoint.core.decoders import encode
from waypoint.core.exceptions import MissingParameterError
from waypoint.core.parser import is_path_param, normalize_path, param_name, parse_segments

logger = logging.getLogger(__name__)

# RFC 3986 sub-delims plus ":" and "@" may appear unescaped in a segment
_SEGMENT_SAFE = "!$&'()*+,;=:@"

_LITERAL_SCORE = 100
_PARAM_SCORE = 10


@dataclass(frozen=True)
class RouteMatchResult:
    """Outcome of matching one pattern against one path."""

    is_match: bool
    path_params: Dict[str, str] = field(default_factory=dict)
    remaining_segments: List[str] = field(default_factory=list)
    score: int = 0

    @classmethod
    def no_match(cls) -> "RouteMatchResult":
        return cls(is_match=False)


class PathMatcher:
    """Matches paths against a single route pattern.

    Supports:
    - Literal segments: /users
    - Parameter extraction: /users/:user_id
    - Prefix matching: /users/:user_id also prefixes /users/5/posts
    """

    def __init__(self, pattern: str):
        """Initialize path matcher.

        Args:
            pattern: Route pattern (e.g., /users/:user_id)
        """
        self.pattern = normalize_path(pattern)
        self.segments = parse_segments(self.pattern)
        self.param_names = [param_name(s) for s in self.segments if is_path_param(s)]
        self.dynamic_count = len(self.param_names)
        self.score = (
            (len(self.segments) - self.dynamic_count) * _LITERAL_SCORE
            + self.dynamic_count * _PARAM_SCORE
        )
        self._regex, self._prefix_regex = self._compile_pattern(self.segments)

    @staticmethod
    def _compile_pattern(segments: List[str]) -> Tuple[re.Pattern, re.Pattern]:
        """Compile pattern segments into exact and prefix regexes.

        Args:
            segments: Pattern segments

        Returns:
            Tuple of (exact regex, prefix regex); the prefix regex captures
            the unmatched tail in its last group
        """
        if not segments:
            return re.compile(r"^/$"), re.compile(r"^/(.*)$")

        regex_parts = []
        for segment in segments:
            if is_path_param(segment):
                # Match any non-empty, non-slash segment
                regex_parts.append(r"([^/]+)")
            else:
                regex_parts.append(re.escape(segment))

        body = "^/" + "/".join(regex_parts)
        return re.compile(body + "$"), re.compile(body + r"(?:/(.*))?$")

    def _bind(self, groups: Sequence[str]) -> Dict[str, str]:
        return {name: unquote(value) for name, value in zip(self.param_names, groups)}

    def match(self, path: str) -> Optional[Dict[str, str]]:
        """Match a normalized path against this pattern.

        Args:
            path: Normalized path

        Returns:
            Dictionary of decoded parameters if matched, None otherwise
        """
        match = self._regex.match(path)
        if not match:
            return None
        return self._bind(match.groups())

    def match_prefix(self, path: str) -> Optional[Tuple[Dict[str, str], List[str]]]:
        """Match the leading segments of a normalized path.

        Args:
            path: Normalized path

        Returns:
            Tuple of (parameters, remaining segments) if matched, None otherwise
        """
        match = self._prefix_regex.match(path)
        if not match:
            return None
        groups = match.groups()
        rest = groups[-1] or ""
        remaining = [segment for segment in rest.split("/") if segment]
        return self._bind(groups[:-1]), remaining

    def build(self, params: Mapping[str, Any]) -> str:
        """Substitute parameter values into the pattern.

        Args:
            params: Parameter values, encoded with the parameter encoder

        Returns:
            Concrete path

        Raises:
            MissingParameterError: If a pattern parameter has no value
        """
        parts = []
        for segment in self.segments:
            if not is_path_param(segment):
                parts.append(segment)
                continue
            name = param_name(segment)
            value = params.get(name)
            if value is None:
                raise MissingParameterError(name, "path")
            parts.append(quote(encode(value), safe=_SEGMENT_SAFE))
        return "/" + "/".join(parts)


@lru_cache(maxsize=512)
def get_matcher(pattern: str) -> PathMatcher:
    """Return a compiled matcher for a pattern (cached)."""
    return PathMatcher(pattern)


def match(pattern: str, path: str) -> RouteMatchResult:
    """Match a path against a pattern, segment count included.

    Args:
        pattern: Route pattern
        path: Concrete path (normalized before matching)

    Returns:
        RouteMatchResult
    """
    matcher = get_matcher(pattern)
    params = matcher.match(normalize_path(path))
    if params is None:
        return RouteMatchResult.no_match()
    return RouteMatchResult(is_match=True, path_params=params, score=matcher.score)


def match_prefix(pattern: str, path: str) -> RouteMatchResult:
    """Match a pattern against the leading segments of a path.

    Args:
        pattern: Route pattern (typically a shell or parent)
        path: Concrete path that may target a descendant

    Returns:
        RouteMatchResult with the unmatched tail in ``remaining_segments``
    """
    matcher = get_matcher(pattern)
    matched = matcher.match_prefix(normalize_path(path))
    if matched is None:
        return RouteMatchResult.no_match()
    params, remaining = matched
    return RouteMatchResult(
        is_match=True,
        path_params=params,
        remaining_segments=remaining,
        score=matcher.score,
    )


def find_best_match(
    patterns: Iterable[str], path: str
) -> Optional[Tuple[str, RouteMatchResult]]:
    """Find the best pattern for a path.

    The match with the fewest dynamic segments wins; ties go to the pattern
    that comes first in ``patterns``.

    Args:
        patterns: Candidate patterns in registration order
        path: Concrete path

    Returns:
        Tuple of (pattern, result), or None when nothing matches
    """
    normalized = normalize_path(path)
    best: Optional[Tuple[str, RouteMatchResult]] = None
    best_dynamic = 0

    for pattern in patterns:
        matcher = get_matcher(pattern)
        params = matcher.match(normalized)
        if params is None:
            continue
        if best is None or matcher.dynamic_count < best_dynamic:
            best = (
                pattern,
                RouteMatchResult(is_match=True, path_params=params, score=matcher.score),
            )
            best_dynamic = matcher.dynamic_count

    if best is None:
        logger.debug(f"No route matched for {normalized}", extra={"path": normalized})
    else:
        logger.debug(
            f"Route matched: {best[0]}",
            extra={"pattern": best[0], "path": normalized, "params": best[1].path_params},
        )
    return best


def matches_any(patterns: Iterable[str], path: str) -> bool:
    """Check whether any pattern matches the path exactly."""
    return any(match(pattern, path).is_match for pattern in patterns)


def build_path(pattern: str, params: Mapping[str, Any]) -> str:
    """Build a concrete path from a pattern.

    Args:
        pattern: Route pattern
        params: Values for the pattern's parameters

    Returns:
        Concrete path with percent-encoded parameter values

    Raises:
        MissingParameterError: If a pattern parameter has no value
    """
    return get_matcher(pattern).build(params)


def missing_path_params(pattern: str, params: Mapping[str, Any]) -> List[str]:
    """Return the pattern parameters that have no value in ``params``."""
    return [name for name in get_matcher(pattern).param_names if params.get(name) is None]


def match_route_glob(glob: str, path: str) -> bool:
    """Match a path against a route filter glob.

    ``*`` matches exactly one segment and ``**`` zero or more. A ``:name``
    segment matches any single segment, and a segment such as ``user-*``
    matches one segment by wildcard. A bare ``*`` or ``**`` matches every
    path.

    Args:
        glob: Route filter
        path: Concrete path

    Returns:
        True if the path matches
    """
    if glob in ("*", "**"):
        return True
    return _match_glob_segments(tuple(parse_segments(glob)), tuple(parse_segments(path)))


def route_filter_allows(
    path: str,
    routes: Optional[Sequence[str]] = None,
    exclude_routes: Optional[Sequence[str]] = None,
) -> bool:
    """Evaluate an allow-list and deny-list of route globs for a path.

    Exclusions are checked first. With no allow-list every remaining path is
    allowed.

    Args:
        path: Concrete path
        routes: Allow-list globs, or None
        exclude_routes: Deny-list globs, or None

    Returns:
        True if the path passes the filter
    """
    if exclude_routes and any(match_route_glob(glob, path) for glob in exclude_routes):
        return False
    if routes is None:
        return True
    return any(match_route_glob(glob, path) for glob in routes)


@lru_cache(maxsize=1024)
def _match_glob_segments(globs: Tuple[str, ...], segments: Tuple[str, ...]) -> bool:
    if not globs:
        return not segments

    head, rest = globs[0], globs[1:]
    if head == "**":
        return any(_match_glob_segments(rest, segments[i:]) for i in range(len(segments) + 1))

    if not segments or not _match_glob_segment(head, segments[0]):
        return False
    return _match_glob_segments(rest, segments[1:])


def _match_glob_segment(glob: str, segment: str) -> bool:
    if glob == "*" or is_path_param(glob):
        return True
    if "*" not in glob:
        return glob == segment
    regex = ".*".join(re.escape(part) for part in glob.split("*"))
    return re.fullmatch(regex, segment) is not None
