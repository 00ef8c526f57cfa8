"""Guards that check route parameters before a page is built."""

import logging
from typing import Iterable, List, Mapping, Optional, Sequence

from waypoint.core.guards import (
    Guard,
    GuardAllow,
    GuardContext,
    GuardDeny,
    GuardRedirect,
    GuardResult,
)
from waypoint.core.validation import ValidationRule, check

logger = logging.getLogger(__name__)

_SOURCES = ("all", "path", "query")


def _fail(reason: str, redirect_to: Optional[str]) -> GuardResult:
    if redirect_to is not None:
        return GuardRedirect(redirect_to)
    return GuardDeny(reason)


class ParamRequiredGuard(Guard):
    """Rejects navigations that lack required path or query parameters.

    Attach it to the routes that need it; empty values count as missing.
    """

    def __init__(
        self,
        path_params: Iterable[str] = (),
        query_params: Iterable[str] = (),
        redirect_to: Optional[str] = None,
        priority: int = 50,
    ):
        self.path_params = list(path_params)
        self.query_params = list(query_params)
        self.redirect_to = redirect_to
        self.priority = priority

    def missing(self, context: GuardContext) -> List[str]:
        params = context.target_route.params
        missing = [name for name in self.path_params if not params.path_params.get(name)]
        missing.extend(name for name in self.query_params if not params.query_params.get(name))
        return missing

    async def can_activate(self, context: GuardContext) -> GuardResult:
        missing = self.missing(context)
        if not missing:
            return GuardAllow()
        logger.debug(
            f"Missing parameters for {context.target_path}: {missing}",
            extra={"path": context.target_path, "missing": missing},
        )
        return _fail(f"Missing required parameters: {', '.join(missing)}", self.redirect_to)


class ParamValidationGuard(Guard):
    """Validates route parameters with validation rules.

    Example::

        ParamValidationGuard({"id": [integer()], "tab": [one_of(["info", "posts"])]})
    """

    def __init__(
        self,
        rules: Mapping[str, Sequence[ValidationRule]],
        source: str = "all",
        redirect_to: Optional[str] = None,
        priority: int = 40,
    ):
        """Initialize the guard.

        Args:
            rules: Rules by parameter name
            source: Where to read values from: all, path or query
            redirect_to: Redirect target on failure; denies when None
            priority: Guard priority
        """
        if source not in _SOURCES:
            raise ValueError(f"Invalid parameter source: {source}. Must be one of {_SOURCES}")
        self.rules = dict(rules)
        self.source = source
        self.redirect_to = redirect_to
        self.priority = priority

    async def can_activate(self, context: GuardContext) -> GuardResult:
        params = context.target_route.params
        if self.source == "path":
            values = params.path_params
        elif self.source == "query":
            values = params.query_params
        else:
            values = {
                key: value for key, value in params.all.items() if isinstance(value, str)
            }

        result = check(values, self.rules)
        if result.is_valid:
            return GuardAllow()
        logger.debug(
            f"Invalid parameters for {context.target_path}",
            extra={"path": context.target_path, "errors": result.errors},
        )
        return _fail("; ".join(result.errors), self.redirect_to)
