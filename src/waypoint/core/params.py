"""Route parameters and typed access to them.

``RouteParams`` is the raw, string-keyed view of a navigation's path,
query and body parameters. ``TypedParamsResolver`` decodes those values on
demand and memoizes every decoded value for the lifetime of the resolver::

    resolver = TypedParamsResolver(RouteParams(path_params={"id": "42"}))
    resolver.path.get("id", ParamKind.INT)            # 42
    resolver.query.get("page", ParamKind.INT, default=1)
    resolver.body.get("user", User)                   # isinstance check
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import ParseResult, SplitResult

from waypoint.core.decoders import KindLike, ParamKind, decode, decode_list
from waypoint.core.exceptions import MissingParameterError, ParamsError

_MISSING = object()

_PYTHON_TYPES: Dict[ParamKind, Tuple[type, ...]] = {
    ParamKind.STRING: (str,),
    ParamKind.INT: (int,),
    ParamKind.FLOAT: (float,),
    ParamKind.NUMBER: (int, float),
    ParamKind.BOOL: (bool,),
    ParamKind.DATETIME: (datetime,),
    ParamKind.DURATION: (timedelta,),
    ParamKind.URI: (SplitResult, ParseResult),
    ParamKind.ANY: (object,),
}


@dataclass(frozen=True)
class RouteParams:
    """Raw parameters of one navigation.

    Attributes:
        path_params: Decoded path segment values by parameter name
        query_params: Decoded query string values
        body_params: Already-typed values passed in-process
    """

    path_params: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, str] = field(default_factory=dict)
    body_params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "path_params", dict(self.path_params))
        object.__setattr__(self, "query_params", dict(self.query_params))
        object.__setattr__(self, "body_params", dict(self.body_params))

    def __hash__(self) -> int:
        return hash(
            (
                frozenset(self.path_params.items()),
                frozenset(self.query_params.items()),
                frozenset(self.body_params),
            )
        )

    @property
    def all(self) -> Dict[str, Any]:
        """Merged view; query values override path values, body overrides both."""
        return {**self.path_params, **self.query_params, **self.body_params}

    @property
    def is_empty(self) -> bool:
        return not (self.path_params or self.query_params or self.body_params)

    def with_path_params(self, path_params: Mapping[str, str]) -> "RouteParams":
        return replace(self, path_params=dict(path_params))


class _Accessor:
    """Shared behavior of the path, query and body accessors."""

    namespace = ""

    def __init__(self, values: Mapping[str, Any], cache: Dict[str, Any]):
        self._values = values
        self._cache = cache

    def has(self, name: str) -> bool:
        return name in self._values

    def get_raw(self, name: str) -> Any:
        return self._values.get(name)

    @property
    def all(self) -> Dict[str, Any]:
        return dict(self._values)

    def _cache_key(
        self, name: str, kind: Union[ParamKind, type], nullable: bool = False, default: Any = None
    ) -> str:
        kind_name = kind.value if isinstance(kind, ParamKind) else kind.__qualname__
        marker = "?" if nullable else ""
        return f"{self.namespace}:{name}:{kind_name}{marker}:{default!r}"

    def _cached(self, key: str) -> Any:
        return self._cache.get(key, _MISSING)


class PathParamsAccessor(_Accessor):
    """Typed access to path parameters."""

    namespace = "path"

    def get(self, name: str, kind: KindLike = ParamKind.STRING) -> Any:
        """Decode a path parameter.

        Args:
            name: Parameter name
            kind: Target kind

        Returns:
            Decoded value

        Raises:
            MissingParameterError: If the parameter is absent
            DecodeError: If the value cannot be decoded
        """
        target = ParamKind.of(kind)
        key = self._cache_key(name, target)
        cached = self._cached(key)
        if cached is not _MISSING:
            return cached

        raw = self._values.get(name)
        if raw is None:
            raise MissingParameterError(name, target.value)

        value = decode(raw, target, name=name)
        self._cache[key] = value
        return value


class QueryParamsAccessor(_Accessor):
    """Typed access to query parameters."""

    namespace = "query"

    def get(
        self,
        name: str,
        kind: KindLike = ParamKind.STRING,
        default: Any = None,
        nullable: bool = False,
    ) -> Any:
        """Decode a query parameter.

        Args:
            name: Parameter name
            kind: Target kind
            default: Value used when the parameter is absent or undecodable
            nullable: Whether an absent or empty value may yield None

        Returns:
            Decoded value, the default, or None

        Raises:
            MissingParameterError: If absent with no default and not nullable
            DecodeError: If the value cannot be decoded and there is no default
        """
        target = ParamKind.of(kind)
        key = self._cache_key(name, target, nullable, default)
        cached = self._cached(key)
        if cached is not _MISSING:
            return cached

        raw = self._values.get(name)
        if raw is None:
            if default is not None:
                value = default
            elif nullable:
                value = None
            else:
                raise MissingParameterError(name, target.value)
        else:
            value = decode(raw, target, default=default, nullable=nullable, name=name)

        self._cache[key] = value
        return value

    def get_list(
        self, name: str, kind: KindLike = ParamKind.STRING, separator: str = ","
    ) -> List[Any]:
        """Decode a separated list; an absent parameter yields an empty list."""
        target = ParamKind.of(kind)
        key = self._cache_key(name, target, default=f"list{separator}")
        cached = self._cached(key)
        if cached is not _MISSING:
            return list(cached)

        value = decode_list(self._values.get(name) or "", target, separator)
        self._cache[key] = value
        return list(value)


class BodyParamsAccessor(_Accessor):
    """Access to in-process body parameters and the opaque arguments payload."""

    namespace = "body"

    def __init__(self, values: Mapping[str, Any], cache: Dict[str, Any], arguments: Any = None):
        super().__init__(values, cache)
        self._arguments = arguments

    @property
    def arguments(self) -> Any:
        """The payload passed at navigation time, untouched."""
        return self._arguments

    def get(self, name: str, kind: Union[ParamKind, type] = ParamKind.ANY) -> Optional[Any]:
        """Look up a body parameter without ever raising.

        Values that already have the requested type are returned as-is.
        Strings are decoded to the requested kind. Anything else yields None.

        Args:
            name: Parameter name
            kind: ParamKind or any Python type (checked with isinstance)

        Returns:
            The value, or None
        """
        key = self._cache_key(name, kind)
        cached = self._cached(key)
        if cached is not _MISSING:
            return cached

        value = self._resolve(self._values.get(name), kind)
        self._cache[key] = value
        return value

    @staticmethod
    def _resolve(raw: Any, kind: Union[ParamKind, type]) -> Optional[Any]:
        if raw is None:
            return None

        try:
            target = ParamKind.of(kind)
        except TypeError:
            return raw if isinstance(raw, kind) else None

        expected = _PYTHON_TYPES[target]
        # bool is an int subclass
        if isinstance(raw, expected) and not (
            isinstance(raw, bool) and target in (ParamKind.INT, ParamKind.FLOAT, ParamKind.NUMBER)
        ):
            return raw

        if isinstance(raw, str):
            try:
                return decode(raw, target, nullable=True)
            except ParamsError:
                return None
        return None


class TypedParamsResolver:
    """Cached, typed view over a RouteParams instance.

    The memoization table is private; it never changes the value returned
    for a given call, only how fast it comes back.
    """

    def __init__(self, params: RouteParams, arguments: Any = None):
        """Initialize resolver.

        Args:
            params: Raw route parameters
            arguments: Opaque navigation payload
        """
        self._params = params
        self._arguments = arguments
        self._cache: Dict[str, Any] = {}
        self._path = PathParamsAccessor(params.path_params, self._cache)
        self._query = QueryParamsAccessor(params.query_params, self._cache)
        self._body = BodyParamsAccessor(params.body_params, self._cache, arguments)

    @property
    def path(self) -> PathParamsAccessor:
        return self._path

    @property
    def query(self) -> QueryParamsAccessor:
        return self._query

    @property
    def body(self) -> BodyParamsAccessor:
        return self._body

    @property
    def all(self) -> Dict[str, Any]:
        return self._params.all

    @property
    def raw(self) -> RouteParams:
        return self._params

    @property
    def arguments(self) -> Any:
        return self._arguments

    def with_path_params(self, path_params: Mapping[str, str]) -> "TypedParamsResolver":
        """Return a new resolver with replaced path parameters and an empty cache."""
        return TypedParamsResolver(self._params.with_path_params(path_params), self._arguments)

    def clear_cache(self) -> None:
        self._cache.clear()

    def __repr__(self) -> str:
        return f"TypedParamsResolver({self._params!r})"
