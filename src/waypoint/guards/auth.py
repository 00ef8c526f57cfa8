"""Authentication and authorization guards.

This module implements:
- Sign-in enforcement with a return path back to the requested route
- Role checks against the roles declared on the guard or on the route
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Union

from waypoint.core.guards import (
    Guard,
    GuardAllow,
    GuardContext,
    GuardDeny,
    GuardRedirect,
    GuardResult,
)
from waypoint.core.parser import normalize_path

logger = logging.getLogger(__name__)

AuthCheck = Callable[[], Union[bool, Awaitable[bool]]]
RolesProvider = Callable[[], Union[Iterable[str], Awaitable[Iterable[str]]]]


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class AuthGuard(Guard):
    """Sends signed-out users to the login route.

    The requested full path is passed to the login route in the
    ``return_param`` query parameter so it can send the user back after
    signing in. The login route itself is never guarded.
    """

    def __init__(
        self,
        is_authenticated: AuthCheck,
        login_path: str = "/login",
        return_param: Optional[str] = "redirect",
        priority: int = 100,
        routes: Optional[List[str]] = None,
        exclude_routes: Optional[List[str]] = None,
    ):
        """Initialize the guard.

        Args:
            is_authenticated: Plain or async function reporting the sign-in state
            login_path: Route to redirect signed-out users to
            return_param: Query parameter carrying the requested path; None to omit it
            priority: Guard priority
            routes: Allow-list of route globs
            exclude_routes: Deny-list of route globs
        """
        self.is_authenticated = is_authenticated
        self.login_path = normalize_path(login_path)
        self.return_param = return_param
        self.priority = priority
        self.routes = routes
        self.exclude_routes = exclude_routes

    async def can_activate(self, context: GuardContext) -> GuardResult:
        if context.target_path == self.login_path:
            return GuardAllow()

        if await _resolve(self.is_authenticated()):
            return GuardAllow()

        logger.debug(
            f"Unauthenticated navigation to {context.target_path}",
            extra={"path": context.target_path},
        )
        query = None
        if self.return_param:
            query = {self.return_param: context.target_route.full_path}
        return GuardRedirect(self.login_path, query_params=query)


class RoleGuard(Guard):
    """Requires the user to hold roles.

    Required roles come from the ``required_roles`` argument or, when that
    is empty, from the ``roles`` entry of the target route's metadata. A
    route with no required roles is always allowed.
    """

    def __init__(
        self,
        get_roles: RolesProvider,
        required_roles: Optional[Iterable[str]] = None,
        match_all: bool = False,
        redirect_to: Optional[str] = None,
        priority: int = 90,
        routes: Optional[List[str]] = None,
        exclude_routes: Optional[List[str]] = None,
    ):
        """Initialize the guard.

        Args:
            get_roles: Plain or async function returning the user's roles
            required_roles: Roles to require on every guarded route
            match_all: Require every role instead of any one of them
            redirect_to: Redirect target on failure; denies when None
            priority: Guard priority
            routes: Allow-list of route globs
            exclude_routes: Deny-list of route globs
        """
        self.get_roles = get_roles
        self.required_roles = list(required_roles or [])
        self.match_all = match_all
        self.redirect_to = redirect_to
        self.priority = priority
        self.routes = routes
        self.exclude_routes = exclude_routes

    def required_for(self, context: GuardContext) -> List[str]:
        """Return the roles required for the navigation target."""
        if self.required_roles:
            return list(self.required_roles)
        declared = context.target_route.metadata.get("roles") or []
        if isinstance(declared, str):
            return [declared]
        return list(declared)

    def authorize(self, user_roles: Iterable[str], required: Iterable[str]) -> bool:
        """Check user roles against required roles.

        Args:
            user_roles: Roles held by the user
            required: Roles required by the route

        Returns:
            True if authorized
        """
        required = set(required)
        if not required:
            return True

        held = set(user_roles)
        if self.match_all:
            return required.issubset(held)
        return bool(held & required)

    async def can_activate(self, context: GuardContext) -> GuardResult:
        required = self.required_for(context)
        if not required:
            return GuardAllow()

        user_roles = await _resolve(self.get_roles())
        if self.authorize(user_roles or [], required):
            return GuardAllow()

        logger.info(
            f"Missing roles for {context.target_path}",
            extra={"path": context.target_path, "required_roles": sorted(required)},
        )
        if self.redirect_to is not None:
            return GuardRedirect(self.redirect_to)
        return GuardDeny(f"Requires role: {', '.join(sorted(required))}")
