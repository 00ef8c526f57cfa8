"""Shared pytest fixtures and configuration."""

from typing import Any, Dict, List

import pytest

from waypoint.core.config import RouterConfig
from waypoint.core.registry import RouteEntry
from waypoint.core.route_data import RouteData
from waypoint.core.router import Router


def page_builder(data: RouteData) -> Dict[str, Any]:
    """Stand-in for a rendering layer page."""
    return {"page": data.name, "path": data.path}


def shell_builder(data: RouteData, child: Any) -> Dict[str, Any]:
    """Stand-in for a rendering layer shell."""
    return {"shell": data.pattern, "child": child}


@pytest.fixture
def router_config() -> RouterConfig:
    """Create a test router configuration."""
    return RouterConfig(environment="test", initial_path="/home")


@pytest.fixture
def app_routes() -> List[RouteEntry]:
    """Route table with a shell and static/dynamic siblings."""
    return [
        RouteEntry("/home", name="home", builder=page_builder, is_initial=True),
        RouteEntry("/login", name="login", builder=page_builder),
        RouteEntry("/settings", name="settings", builder=page_builder),
        RouteEntry("/app", name="app", is_shell=True, shell_builder=shell_builder),
        RouteEntry("/app/home", name="app_home", builder=page_builder, parent_pattern="/app"),
        RouteEntry("/app/user/:id", name="user", builder=page_builder, parent_pattern="/app"),
        RouteEntry("/app/search", name="search", builder=page_builder, parent_pattern="/app"),
        RouteEntry(
            "/app/search/:query",
            name="search_results",
            builder=page_builder,
            parent_pattern="/app",
        ),
    ]


@pytest.fixture
def router(router_config: RouterConfig, app_routes: List[RouteEntry]) -> Router:
    """Create a router that has not been started."""
    return Router(router_config, routes=app_routes)


@pytest.fixture
async def started_router(router: Router) -> Router:
    """Create a router showing its initial route."""
    await router.start()
    return router
