"""Middleware components for the navigation pipeline."""

from waypoint.middleware.analytics import AnalyticsMiddleware
from waypoint.middleware.logging import NavigationLoggingMiddleware
from waypoint.middleware.ratelimit import NavigationRateLimitMiddleware, RateLimitState

__all__ = [
    "AnalyticsMiddleware",
    "NavigationLoggingMiddleware",
    "NavigationRateLimitMiddleware",
    "RateLimitState",
]
