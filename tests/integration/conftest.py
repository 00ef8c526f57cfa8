"""Shared fixtures for integration tests."""

from typing import List

import pytest

from waypoint.core.guards import FunctionalGuard, GuardAllow, GuardContext, GuardDeny, GuardResult
from waypoint.core.observers import RouteEvent, RouteObserver


class AuthState:
    """Mutable sign-in state shared with guards."""

    def __init__(self) -> None:
        self.signed_in = False
        self.roles: List[str] = []

    def is_authenticated(self) -> bool:
        return self.signed_in


@pytest.fixture
def auth_state() -> AuthState:
    """Create a signed-out auth state."""
    return AuthState()


@pytest.fixture
def recorded_events() -> List[RouteEvent]:
    """Collect route events."""
    return []


@pytest.fixture
def recording_observer(recorded_events: List[RouteEvent]) -> RouteObserver:
    """Create an observer that records every event."""
    return RouteObserver(on_route_event=recorded_events.append)


@pytest.fixture
def deny_guard() -> FunctionalGuard:
    """Create a guard that denies /settings."""

    async def deny_settings(context: GuardContext) -> GuardResult:
        if context.target_path == "/settings":
            return GuardDeny("settings locked")
        return GuardAllow()

    return FunctionalGuard(deny_settings, name="SettingsLock")
