"""Analytics middleware.

Reports screen views when a navigation starts and the time it took once it
completed. Events go to a callback so any analytics backend can be plugged
in::

    async def track(event: str, properties: dict) -> None:
        await analytics.send(event, properties)

    router.middleware.register(AnalyticsMiddleware(track, exclude_routes=["/debug/**"]))
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional

from waypoint.core.middleware import Middleware, MiddlewareContext, MiddlewareContinue, MiddlewareResult

TrackCallback = Callable[[str, Dict[str, Any]], Awaitable[None]]

SCREEN_VIEW = "screen_view"
NAVIGATION_TIMING = "navigation_timing"


class AnalyticsMiddleware(Middleware):
    """Sends screen view and timing events to a tracking callback."""

    def __init__(
        self,
        track: TrackCallback,
        track_timing: bool = True,
        priority: int = 100,
        routes: Optional[List[str]] = None,
        exclude_routes: Optional[List[str]] = None,
    ):
        self.track = track
        self.track_timing = track_timing
        self.priority = priority
        self.routes = routes
        self.exclude_routes = exclude_routes

    async def handle(self, context: MiddlewareContext) -> MiddlewareResult:
        await self.track(
            SCREEN_VIEW,
            {
                "path": context.target_path,
                "name": context.target_name,
                "pattern": context.target_route.pattern,
                "previous_path": context.current_path,
            },
        )
        return MiddlewareContinue()

    async def after_navigation(self, context: MiddlewareContext) -> None:
        if not self.track_timing:
            return
        await self.track(
            NAVIGATION_TIMING,
            {"path": context.target_path, "duration_ms": context.elapsed_ms()},
        )
