"""Validation rules for raw parameter values.

Rules operate on the string form of a parameter, before decoding::

    validate("id", "42", [not_empty(), integer(), in_range(1, 100)])
    result = check({"email": "x"}, {"email": [email()]})
    result.is_valid  # False
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Mapping, Optional, Sequence
from urllib.parse import urlsplit

from waypoint.core.exceptions import ParamValidationError

_EMAIL_PATTERN = re.compile(r"^[\w.-]+@([\w-]+\.)+[\w-]{2,}$")
_UUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)


@dataclass(frozen=True)
class ValidationRule:
    """A named predicate over a raw string value."""

    name: str
    predicate: Callable[[str], bool]
    message: str

    def __call__(self, value: str) -> bool:
        return self.predicate(value)


@dataclass(frozen=True)
class ValidationResult:
    """Aggregated outcome of validating several parameters."""

    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def not_empty(message: Optional[str] = None) -> ValidationRule:
    return ValidationRule("not_empty", lambda v: v != "", message or "Value cannot be empty")


def matches(pattern: str, message: Optional[str] = None) -> ValidationRule:
    regex = re.compile(pattern)
    return ValidationRule(
        f"pattern: {pattern}",
        lambda v: regex.search(v) is not None,
        message or f'Value does not match pattern "{pattern}"',
    )


def length(
    min_length: Optional[int] = None,
    max_length: Optional[int] = None,
    message: Optional[str] = None,
) -> ValidationRule:
    def predicate(value: str) -> bool:
        if min_length is not None and len(value) < min_length:
            return False
        return max_length is None or len(value) <= max_length

    return ValidationRule(
        f"length: {min_length}..{max_length}",
        predicate,
        message or f"Value length must be between {min_length} and {max_length}",
    )


def in_range(
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
    message: Optional[str] = None,
) -> ValidationRule:
    def predicate(value: str) -> bool:
        try:
            number = float(value)
        except ValueError:
            return False
        if minimum is not None and number < minimum:
            return False
        return maximum is None or number <= maximum

    return ValidationRule(
        f"range: {minimum}..{maximum}",
        predicate,
        message or f"Value must be between {minimum} and {maximum}",
    )


def one_of(allowed: Sequence[str], message: Optional[str] = None) -> ValidationRule:
    choices = list(allowed)
    return ValidationRule(
        f"in: {', '.join(choices)}",
        lambda v: v in choices,
        message or f"Value is not in allowed values: {choices}",
    )


def email(message: Optional[str] = None) -> ValidationRule:
    return ValidationRule(
        "email", lambda v: _EMAIL_PATTERN.match(v) is not None, message or "Invalid email format"
    )


def url(message: Optional[str] = None) -> ValidationRule:
    def predicate(value: str) -> bool:
        try:
            parts = urlsplit(value)
        except ValueError:
            return False
        return bool(parts.scheme and parts.netloc)

    return ValidationRule("url", predicate, message or "Invalid URL format")


def uuid(message: Optional[str] = None) -> ValidationRule:
    return ValidationRule(
        "uuid", lambda v: _UUID_PATTERN.match(v) is not None, message or "Invalid UUID format"
    )


def numeric(message: Optional[str] = None) -> ValidationRule:
    def predicate(value: str) -> bool:
        try:
            float(value)
        except ValueError:
            return False
        return True

    return ValidationRule("numeric", predicate, message or "Value must be numeric")


def integer(message: Optional[str] = None) -> ValidationRule:
    def predicate(value: str) -> bool:
        try:
            int(value)
        except ValueError:
            return False
        return True

    return ValidationRule("integer", predicate, message or "Value must be an integer")


def validate(name: str, value: str, rules: Iterable[ValidationRule]) -> None:
    """Apply rules in order and raise on the first failure.

    Args:
        name: Parameter name
        value: Raw value
        rules: Rules to apply

    Raises:
        ParamValidationError: On the first rule that does not hold
    """
    for rule in rules:
        if not rule(value):
            raise ParamValidationError(name, rule=rule.name, message=f"{name}: {rule.message}")


def check(
    values: Mapping[str, Optional[str]], rules_by_name: Mapping[str, Iterable[ValidationRule]]
) -> ValidationResult:
    """Validate several parameters and collect every failure.

    A parameter with rules but no value is validated as an empty string.

    Args:
        values: Raw values by parameter name
        rules_by_name: Rules by parameter name

    Returns:
        ValidationResult listing one message per failing parameter
    """
    errors = []
    for name, rules in rules_by_name.items():
        try:
            validate(name, values.get(name) or "", rules)
        except ParamValidationError as e:
            errors.append(e.message)
    return ValidationResult(errors=errors)
