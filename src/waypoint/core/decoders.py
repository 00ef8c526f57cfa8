"""Parameter decoders and encoders.

Route parameters travel as strings (path segments, query values). This
module converts them to and from typed values. The target type is chosen by
the caller through a :class:`ParamKind` tag instead of being inferred, so a
decode call always states exactly what it expects::

    decode("42", ParamKind.INT)                 # 42
    decode("", ParamKind.INT, nullable=True)    # None
    decode("oops", ParamKind.INT, default=0)    # 0
    decode_list("1,2,3", ParamKind.INT)         # [1, 2, 3]
    encode(True)                                # "true"

String representations (these must round-trip through deep links):

- numbers: ASCII digits with an optional sign; floats may add a decimal
  point and an exponent (no underscores or surrounding whitespace)
- booleans: ``true``/``false``; decoding also accepts ``1/yes/on`` and
  ``0/no/off`` in any case
- date-times: ISO-8601
- durations: whole milliseconds
- lists: elements joined by a separator (``,`` by default)
"""

import re
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, List, Optional, Sequence, Union
from urllib.parse import ParseResult, SplitResult, urlsplit

from waypoint.core.exceptions import DecodeError, ParamsError, TypeMismatchError

_TRUE_VALUES = frozenset({"true", "1", "yes", "on"})
_FALSE_VALUES = frozenset({"false", "0", "no", "off"})

# ASCII only, no underscores or surrounding whitespace.
_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_FLOAT_PATTERN = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|Infinity|nan|NaN)"
)

_MILLISECOND = timedelta(milliseconds=1)


class ParamKind(Enum):
    """Closed set of value kinds a parameter can be decoded to."""

    STRING = "str"
    INT = "int"
    FLOAT = "float"
    NUMBER = "number"
    BOOL = "bool"
    DATETIME = "datetime"
    DURATION = "duration"
    URI = "uri"
    ANY = "any"

    @classmethod
    def of(cls, kind: Union["ParamKind", type]) -> "ParamKind":
        """Resolve a kind from a ParamKind or a Python type.

        Args:
            kind: ParamKind member or one of ``str``, ``int``, ``float``,
                ``bool``, ``datetime``, ``timedelta``, ``SplitResult``,
                ``ParseResult``, ``object``

        Returns:
            The matching ParamKind

        Raises:
            TypeError: If the type has no string representation
        """
        if isinstance(kind, ParamKind):
            return kind
        try:
            return _KINDS_BY_TYPE[kind]
        except (KeyError, TypeError):
            raise TypeError(f"Unsupported parameter type: {kind!r}") from None

    @classmethod
    def for_value(cls, value: Any) -> "ParamKind":
        """Return the kind that ``encode(value)`` decodes back to."""
        return cls.of(type(value))


_KINDS_BY_TYPE = {
    str: ParamKind.STRING,
    int: ParamKind.INT,
    float: ParamKind.FLOAT,
    bool: ParamKind.BOOL,
    datetime: ParamKind.DATETIME,
    timedelta: ParamKind.DURATION,
    SplitResult: ParamKind.URI,
    ParseResult: ParamKind.URI,
    object: ParamKind.ANY,
}

KindLike = Union[ParamKind, type]


def decode(
    value: str,
    kind: KindLike = ParamKind.STRING,
    default: Any = None,
    nullable: bool = False,
    name: str = "value",
) -> Any:
    """Decode a raw string to the requested kind.

    An empty string decodes to None before any kind-specific logic runs;
    that is only acceptable when ``nullable`` is set.

    Args:
        value: Raw string
        kind: Target kind (ParamKind or Python type)
        default: Returned instead of raising on any failure (None means no default)
        nullable: Whether None is an acceptable result
        name: Parameter name used in error messages

    Returns:
        Decoded value

    Raises:
        DecodeError: On any failure when no default is supplied
        TypeMismatchError: When a boolean is not a recognized literal
    """
    target = ParamKind.of(kind)
    try:
        result = _decode_value(value, target, name)
    except ParamsError:
        if default is not None:
            return default
        raise
    except (ValueError, TypeError, OverflowError) as e:
        if default is not None:
            return default
        raise DecodeError(
            name,
            message=f'Failed to decode "{value}" to {target.value}',
            original_error=e,
        ) from e

    if result is None and not nullable:
        if default is not None:
            return default
        raise DecodeError(
            name, message=f"Failed to decode empty value to non-nullable {target.value}"
        )
    return result


def _decode_value(value: str, kind: ParamKind, name: str) -> Any:
    if value == "":
        return None

    if kind in (ParamKind.STRING, ParamKind.ANY):
        return value
    if kind is ParamKind.INT:
        return _parse_int(value)
    if kind is ParamKind.FLOAT:
        return _parse_float(value)
    if kind is ParamKind.NUMBER:
        if _INT_PATTERN.fullmatch(value):
            return int(value)
        return _parse_float(value)
    if kind is ParamKind.BOOL:
        return _decode_bool(value, name)
    if kind is ParamKind.DATETIME:
        return datetime.fromisoformat(value)
    if kind is ParamKind.DURATION:
        return timedelta(milliseconds=_parse_int(value))
    if kind is ParamKind.URI:
        return urlsplit(value)

    raise TypeMismatchError(name, expected_type=kind.value, actual_value=value)


def _parse_int(value: str) -> int:
    if not _INT_PATTERN.fullmatch(value):
        raise ValueError(f"invalid integer literal: {value!r}")
    return int(value)


def _parse_float(value: str) -> float:
    if not _FLOAT_PATTERN.fullmatch(value):
        raise ValueError(f"invalid number literal: {value!r}")
    return float(value)


def _decode_bool(value: str, name: str) -> bool:
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise TypeMismatchError(name, expected_type="bool", actual_value=value)


def decode_list(value: str, kind: KindLike = ParamKind.STRING, separator: str = ",") -> List[Any]:
    """Split a string and decode every element.

    Args:
        value: Raw string
        kind: Element kind
        separator: Element separator

    Returns:
        Decoded elements; an empty string yields an empty list
    """
    if not value:
        return []
    return [decode(part.strip(), kind) for part in value.split(separator)]


def try_decode(value: str, kind: KindLike = ParamKind.STRING) -> Optional[Any]:
    """Decode a value, returning None instead of raising."""
    try:
        return decode(value, kind, nullable=True)
    except ParamsError:
        return None


def encode(value: Any) -> str:
    """Encode a typed value to its string representation.

    Args:
        value: Value to encode

    Returns:
        String form; None encodes to an empty string
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value // _MILLISECOND)
    if isinstance(value, (SplitResult, ParseResult)):
        return value.geturl()
    return str(value)


def encode_list(values: Sequence[Any], separator: str = ",") -> str:
    """Encode every element and join them with ``separator``."""
    return separator.join(encode(value) for value in values)
