"""Unit tests for the authentication, role and parameter guards."""

import pytest

from waypoint.core.guards import GuardAllow, GuardContext, GuardDeny, GuardRedirect
from waypoint.core.params import RouteParams
from waypoint.core.route_data import RouteData
from waypoint.core.validation import integer, one_of
from waypoint.guards import AuthGuard, ParamRequiredGuard, ParamValidationGuard, RoleGuard


def context_for(
    path: str,
    full_path: str = None,
    path_params=None,
    query_params=None,
    body_params=None,
    metadata=None,
) -> GuardContext:
    route = RouteData(
        pattern=path,
        path=path,
        full_path=full_path or path,
        name=path,
        params=RouteParams(
            path_params=path_params or {},
            query_params=query_params or {},
            body_params=body_params or {},
        ),
        metadata=metadata or {},
    )
    return GuardContext(target_route=route)


class TestAuthGuard:
    """Tests for AuthGuard."""

    @pytest.mark.asyncio
    async def test_signed_in_allowed(self):
        """Test authenticated users pass."""
        guard = AuthGuard(lambda: True)
        assert isinstance(await guard.can_activate(context_for("/settings")), GuardAllow)

    @pytest.mark.asyncio
    async def test_signed_out_redirected_with_return_path(self):
        """Test the requested full path is handed to the login route."""
        guard = AuthGuard(lambda: False)
        result = await guard.can_activate(context_for("/settings", "/settings?tab=privacy"))

        assert result == GuardRedirect("/login", query_params={"redirect": "/settings?tab=privacy"})

    @pytest.mark.asyncio
    async def test_async_check_and_custom_login(self):
        """Test async checks and a custom login route without return path."""

        async def signed_in() -> bool:
            return False

        guard = AuthGuard(signed_in, login_path="/sign-in/", return_param=None)
        assert await guard.can_activate(context_for("/x")) == GuardRedirect("/sign-in")

    @pytest.mark.asyncio
    async def test_login_route_never_guarded(self):
        """Test the login route itself is allowed."""
        guard = AuthGuard(lambda: False)
        assert isinstance(await guard.can_activate(context_for("/login")), GuardAllow)

    def test_route_filters(self):
        """Test route filters are honored."""
        guard = AuthGuard(lambda: False, exclude_routes=["/public/**"])
        assert guard.priority == 100
        assert not guard.should_run("/public/about")
        assert guard.should_run("/settings")


class TestRoleGuard:
    """Tests for RoleGuard."""

    def test_authorize_any_and_all(self):
        """Test any-of and all-of role matching."""
        any_guard = RoleGuard(lambda: [])
        all_guard = RoleGuard(lambda: [], match_all=True)

        assert any_guard.authorize(["user"], ["admin", "user"])
        assert not all_guard.authorize(["user"], ["admin", "user"])
        assert all_guard.authorize(["admin", "user", "x"], ["admin", "user"])
        assert any_guard.authorize([], [])

    @pytest.mark.asyncio
    async def test_roles_from_metadata(self):
        """Test required roles are read from route metadata."""
        guard = RoleGuard(lambda: ["user"])

        denied = await guard.can_activate(context_for("/admin", metadata={"roles": ["admin"]}))
        assert denied == GuardDeny("Requires role: admin")

        allowed = await guard.can_activate(context_for("/profile", metadata={"roles": "user"}))
        assert isinstance(allowed, GuardAllow)

        assert isinstance(await guard.can_activate(context_for("/open")), GuardAllow)

    @pytest.mark.asyncio
    async def test_explicit_roles_and_redirect(self):
        """Test guard-level roles, async providers and redirects."""

        async def roles():
            return {"viewer"}

        guard = RoleGuard(roles, required_roles=["editor", "admin"], redirect_to="/forbidden")
        assert await guard.can_activate(context_for("/edit")) == GuardRedirect("/forbidden")

        deny = RoleGuard(roles, required_roles=["editor", "admin"])
        assert await deny.can_activate(context_for("/edit")) == GuardDeny(
            "Requires role: admin, editor"
        )


class TestParamRequiredGuard:
    """Tests for ParamRequiredGuard."""

    @pytest.mark.asyncio
    async def test_missing_params_denied(self):
        """Test missing and empty parameters are reported."""
        guard = ParamRequiredGuard(path_params=["id"], query_params=["tab", "sort"])
        context = context_for("/u/1", path_params={"id": "1"}, query_params={"tab": ""})

        assert guard.missing(context) == ["tab", "sort"]
        assert await guard.can_activate(context) == GuardDeny(
            "Missing required parameters: tab, sort"
        )

    @pytest.mark.asyncio
    async def test_present_params_allowed(self):
        """Test complete parameters pass."""
        guard = ParamRequiredGuard(query_params=["q"], redirect_to="/search")
        assert isinstance(
            await guard.can_activate(context_for("/s", query_params={"q": "x"})), GuardAllow
        )
        assert await guard.can_activate(context_for("/s")) == GuardRedirect("/search")


class TestParamValidationGuard:
    """Tests for ParamValidationGuard."""

    def test_invalid_source(self):
        """Test unknown sources are rejected."""
        with pytest.raises(ValueError, match="Invalid parameter source"):
            ParamValidationGuard({}, source="body")

    @pytest.mark.asyncio
    async def test_all_sources(self):
        """Test rules see path and query values."""
        guard = ParamValidationGuard(
            {"id": [integer()], "tab": [one_of(["info", "posts"])]},
        )
        good = context_for("/u/1", path_params={"id": "1"}, query_params={"tab": "info"})
        bad = context_for("/u/x", path_params={"id": "x"}, query_params={"tab": "likes"})

        assert isinstance(await guard.can_activate(good), GuardAllow)
        assert await guard.can_activate(bad) == GuardDeny(
            "id: Value must be an integer; tab: Value is not in allowed values: ['info', 'posts']"
        )

    @pytest.mark.asyncio
    async def test_single_source(self):
        """Test restricting validation to one source."""
        guard = ParamValidationGuard({"id": [integer()]}, source="query", redirect_to="/404")
        context = context_for("/u/1", path_params={"id": "1"})

        assert await guard.can_activate(context) == GuardRedirect("/404")

        path_guard = ParamValidationGuard({"id": [integer()]}, source="path")
        assert isinstance(await path_guard.can_activate(context), GuardAllow)
