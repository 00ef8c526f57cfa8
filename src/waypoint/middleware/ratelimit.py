"""Navigation rate limiting middleware.

This module implements:
- Rate limiting key generation (global, per route, per path)
- Fixed-window counting with a cooldown once the limit is hit
- A middleware that aborts navigations while a key is limited
"""

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Dict, List, Optional, Tuple

from waypoint.core.middleware import (
    Middleware,
    MiddlewareAbort,
    MiddlewareContext,
    MiddlewareContinue,
    MiddlewareResult,
)

logger = logging.getLogger(__name__)

_KEY_TYPES = ("global", "route", "path")


@dataclass
class RateLimitState:
    """Rate limiting state information.

    Attributes:
        allowed: Whether the navigation is allowed
        remaining: Navigations remaining in the current window
        limit: Navigation limit per window
        reset_at: Clock value when the window or cooldown ends
        retry_after: Seconds to wait before retrying (if denied)
    """

    allowed: bool
    remaining: int
    limit: int
    reset_at: float
    retry_after: Optional[float] = None


class NavigationRateLimitMiddleware(Middleware):
    """Aborts navigations that come in faster than a limit.

    Navigations are counted in fixed windows per key. Once a key exceeds
    ``limit`` navigations in a window, every navigation for that key is
    aborted until ``cooldown`` has passed.
    """

    def __init__(
        self,
        limit: int = 10,
        window: timedelta = timedelta(seconds=1),
        cooldown: timedelta = timedelta(seconds=1),
        key_type: str = "global",
        priority: int = 900,
        routes: Optional[List[str]] = None,
        exclude_routes: Optional[List[str]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize rate limiting middleware.

        Args:
            limit: Navigations allowed per window
            window: Window length
            cooldown: How long a key stays limited after exceeding the limit
            key_type: global, route (by pattern) or path (by concrete path)
            priority: Middleware priority
            routes: Allow-list of route globs
            exclude_routes: Deny-list of route globs
            clock: Monotonic clock in seconds
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if key_type not in _KEY_TYPES:
            raise ValueError(f"Invalid key type: {key_type}. Must be one of {_KEY_TYPES}")

        self.limit = limit
        self.window = window.total_seconds()
        self.cooldown = cooldown.total_seconds()
        self.key_type = key_type
        self.priority = priority
        self.routes = routes
        self.exclude_routes = exclude_routes
        self.clock = clock

        # key -> (window start, count)
        self._windows: Dict[str, Tuple[float, int]] = {}
        # key -> cooldown end
        self._cooldowns: Dict[str, float] = {}

    def generate_key(self, context: MiddlewareContext) -> str:
        """Generate the rate limiting key for a navigation.

        Args:
            context: Middleware context

        Returns:
            Rate limiting key
        """
        if self.key_type == "route":
            return f"route:{context.target_route.pattern}"
        if self.key_type == "path":
            return f"path:{context.target_path}"
        return "global"

    def check_limit(self, key: str) -> RateLimitState:
        """Count one navigation for a key and decide whether it may proceed.

        Args:
            key: Rate limiting key

        Returns:
            RateLimitState with decision
        """
        now = self.clock()
        self._evict_expired(now, key)

        cooldown_end = self._cooldowns.get(key)
        if cooldown_end is not None:
            if now < cooldown_end:
                return RateLimitState(
                    allowed=False,
                    remaining=0,
                    limit=self.limit,
                    reset_at=cooldown_end,
                    retry_after=cooldown_end - now,
                )
            del self._cooldowns[key]
            self._windows.pop(key, None)

        window_start, count = self._windows.get(key, (now, 0))
        if now - window_start >= self.window:
            window_start, count = now, 0

        count += 1
        self._windows[key] = (window_start, count)

        if count > self.limit:
            cooldown_end = now + self.cooldown
            self._cooldowns[key] = cooldown_end
            return RateLimitState(
                allowed=False,
                remaining=0,
                limit=self.limit,
                reset_at=cooldown_end,
                retry_after=self.cooldown,
            )

        return RateLimitState(
            allowed=True,
            remaining=self.limit - count,
            limit=self.limit,
            reset_at=window_start + self.window,
        )

    def _evict_expired(self, now: float, current_key: str) -> None:
        """Drop state of other keys whose window and cooldown have both ended."""
        for key in [k for k, end in self._cooldowns.items() if now >= end and k != current_key]:
            del self._cooldowns[key]
            self._windows.pop(key, None)
        for key in [
            k
            for k, (start, _) in self._windows.items()
            if now - start >= self.window and k != current_key and k not in self._cooldowns
        ]:
            del self._windows[key]

    @property
    def tracked_keys(self) -> int:
        """Number of keys currently holding window or cooldown state."""
        return len(self._windows.keys() | self._cooldowns.keys())

    def reset(self, key: Optional[str] = None) -> None:
        """Forget the counters of one key, or of every key."""
        if key is None:
            self._windows.clear()
            self._cooldowns.clear()
        else:
            self._windows.pop(key, None)
            self._cooldowns.pop(key, None)

    async def handle(self, context: MiddlewareContext) -> MiddlewareResult:
        key = self.generate_key(context)
        state = self.check_limit(key)
        context.set("rate_limit", state)

        if not state.allowed:
            logger.info(
                f"Rate limit exceeded for key {key}",
                extra={"key": key, "limit": self.limit, "retry_after": state.retry_after},
            )
            return MiddlewareAbort(f"Rate limit exceeded, retry in {state.retry_after:.2f}s")

        logger.debug(
            f"Rate limit check passed for key {key}",
            extra={"key": key, "remaining": state.remaining},
        )
        return MiddlewareContinue()
