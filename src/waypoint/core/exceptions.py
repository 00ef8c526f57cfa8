"""Exceptions for the Waypoint routing engine.

Route errors are raised by the registry and the router; parameter errors are
raised by the decoders and the typed parameter accessors. Guard and
middleware outcomes (deny, abort, redirect) are plain values and never show
up here.
"""

from typing import Any, List, Optional

__all__ = [
    "WaypointError",
    "RouteNotFoundError",
    "DuplicateRouteError",
    "InvalidRouteConfigError",
    "RedirectLoopError",
    "RouterNotInitializedError",
    "ParamsError",
    "MissingParameterError",
    "DecodeError",
    "TypeMismatchError",
    "ParamValidationError",
]


class WaypointError(Exception):
    """Base class for every error raised by Waypoint.

    Attributes:
        message: Human readable description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class RouteNotFoundError(WaypointError):
    """Raised when no registered pattern matches a path."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Route not found: {path}")


class DuplicateRouteError(WaypointError):
    """Raised when a pattern is registered twice.

    This is a programming error in the route table and should abort startup.
    """

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        super().__init__(f"Duplicate route registered: {pattern}")


class InvalidRouteConfigError(WaypointError):
    """Raised for malformed patterns or broken parent/shell relationships."""


class RedirectLoopError(WaypointError):
    """Raised when a navigation exceeds the redirect hop bound.

    Attributes:
        chain: Every path attempted by the navigation, in order.
    """

    def __init__(self, chain: List[str]) -> None:
        self.chain = list(chain)
        super().__init__(f"Redirect loop detected: {' -> '.join(self.chain)}")

    @property
    def hops(self) -> int:
        """Number of redirects performed before giving up."""
        return len(self.chain) - 1


class RouterNotInitializedError(WaypointError):
    """Raised when navigating before the root navigator exists."""

    def __init__(self) -> None:
        super().__init__(
            "Router has not been started. Call `await router.start()` before navigating."
        )


class ParamsError(WaypointError):
    """Base class for parameter access and conversion errors."""


class MissingParameterError(ParamsError):
    """Raised when a required parameter is absent."""

    def __init__(self, name: str, param_type: str = "unknown") -> None:
        self.name = name
        self.param_type = param_type
        super().__init__(f"Missing required parameter: {name} ({param_type})")


class DecodeError(ParamsError):
    """Raised when a raw string cannot be decoded to the requested kind."""

    def __init__(
        self,
        name: str,
        message: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        self.name = name
        self.original_error = original_error
        super().__init__(message or f"Failed to decode parameter: {name}")


class TypeMismatchError(DecodeError):
    """Raised when a value is not a valid representation of the target kind."""

    def __init__(self, name: str, expected_type: str, actual_value: Any) -> None:
        self.expected_type = expected_type
        self.actual_value = actual_value
        super().__init__(
            name,
            message=f'Cannot convert parameter "{name}" to {expected_type}: {actual_value}',
        )


class ParamValidationError(ParamsError):
    """Raised when a parameter value breaks a validation rule."""

    def __init__(
        self, name: str, rule: Optional[str] = None, message: Optional[str] = None
    ) -> None:
        self.name = name
        self.rule = rule
        default = f'Validation failed for parameter "{name}"'
        if rule:
            default += f" (rule: {rule})"
        super().__init__(message or default)
