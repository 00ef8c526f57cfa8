"""Ready-made guards for common navigation checks."""

from waypoint.guards.auth import AuthGuard, RoleGuard
from waypoint.guards.params import ParamRequiredGuard, ParamValidationGuard

__all__ = [
    "AuthGuard",
    "ParamRequiredGuard",
    "ParamValidationGuard",
    "RoleGuard",
]
