"""Navigation logging middleware."""

import logging
from typing import List, Optional

from waypoint.core.middleware import Middleware, MiddlewareContext, MiddlewareContinue, MiddlewareResult

logger = logging.getLogger(__name__)


class NavigationLoggingMiddleware(Middleware):
    """Logs every navigation and, optionally, its completion time.

    Output example::

        Navigation /home -> /users/123
        Navigation complete /users/123 (45.12ms)
    """

    def __init__(
        self,
        log: Optional[logging.Logger] = None,
        level: int = logging.INFO,
        log_after_navigation: bool = True,
        log_timing: bool = True,
        priority: int = 1000,
        exclude_routes: Optional[List[str]] = None,
    ):
        """Initialize logging middleware.

        Args:
            log: Logger to write to (module logger by default)
            level: Log level for navigation messages
            log_after_navigation: Log again once the navigation completed
            log_timing: Include elapsed time in the completion message
            priority: Middleware priority; high so it runs first
            exclude_routes: Route globs that are not logged
        """
        self.log = log or logger
        self.level = level
        self.log_after_navigation = log_after_navigation
        self.log_timing = log_timing
        self.priority = priority
        self.exclude_routes = exclude_routes

    async def handle(self, context: MiddlewareContext) -> MiddlewareResult:
        self.log.log(
            self.level,
            f"Navigation {context.current_path} -> {context.target_path}",
            extra={"from_path": context.current_path, "path": context.target_path},
        )
        return MiddlewareContinue()

    async def after_navigation(self, context: MiddlewareContext) -> None:
        if not self.log_after_navigation:
            return

        message = f"Navigation complete {context.target_path}"
        extra = {"path": context.target_path}
        if self.log_timing:
            elapsed = context.elapsed_ms()
            message += f" ({elapsed:.2f}ms)"
            extra["duration_ms"] = elapsed
        self.log.log(self.level, message, extra=extra)

    async def on_aborted(self, context: MiddlewareContext, reason: Optional[str]) -> None:
        self.log.log(
            self.level,
            f"Navigation to {context.target_path} aborted: {reason}",
            extra={"path": context.target_path, "reason": reason},
        )
