"""Unit tests for parameter decoders and encoders."""

from datetime import UTC, datetime, timedelta
from urllib.parse import urlsplit

import pytest

from waypoint.core.decoders import (
    ParamKind,
    decode,
    decode_list,
    encode,
    encode_list,
    try_decode,
)
from waypoint.core.exceptions import DecodeError, TypeMismatchError


class TestDecode:
    """Tests for decode."""

    def test_primitive_kinds(self) -> None:
        """Test decoding each primitive kind."""
        assert decode("42", ParamKind.INT) == 42
        assert decode("3.5", ParamKind.FLOAT) == 3.5
        assert decode("7", ParamKind.NUMBER) == 7
        assert decode("7.25", ParamKind.NUMBER) == 7.25
        assert decode("hello", ParamKind.STRING) == "hello"
        assert decode("1500", ParamKind.DURATION) == timedelta(milliseconds=1500)
        assert decode("2024-03-01T12:00:00", ParamKind.DATETIME) == datetime(2024, 3, 1, 12)
        assert decode("https://example.com/a?b=1", ParamKind.URI).netloc == "example.com"

    def test_python_types_select_kind(self) -> None:
        """Test Python types are accepted in place of kinds."""
        assert decode("42", int) == 42
        assert decode("true", bool) is True
        assert decode("x", str) == "x"

    def test_unsupported_type(self) -> None:
        """Test types without a string form are rejected."""
        with pytest.raises(TypeError, match="Unsupported parameter type"):
            decode("1", list)

    @pytest.mark.parametrize("raw", ["true", "TRUE", "1", "yes", "On"])
    def test_bool_true_literals(self, raw: str) -> None:
        """Test truthy boolean literals."""
        assert decode(raw, ParamKind.BOOL) is True

    @pytest.mark.parametrize("raw", ["false", "False", "0", "no", "OFF"])
    def test_bool_false_literals(self, raw: str) -> None:
        """Test falsy boolean literals."""
        assert decode(raw, ParamKind.BOOL) is False

    def test_bool_rejects_other_values(self) -> None:
        """Test unknown boolean literals raise TypeMismatchError."""
        with pytest.raises(TypeMismatchError) as exc_info:
            decode("maybe", ParamKind.BOOL, name="flag")
        assert exc_info.value.name == "flag"
        assert exc_info.value.expected_type == "bool"
        assert exc_info.value.actual_value == "maybe"

    def test_invalid_int_raises_decode_error(self) -> None:
        """Test conversion failures are wrapped in DecodeError."""
        with pytest.raises(DecodeError) as exc_info:
            decode("abc", ParamKind.INT, name="page")
        assert exc_info.value.name == "page"
        assert isinstance(exc_info.value.original_error, ValueError)

    @pytest.mark.parametrize("raw", ["1_000", " 42 ", "42 ", "١٢", "0x1f", "1.5"])
    def test_non_canonical_integers_rejected(self, raw: str) -> None:
        """Test integers must be plain ASCII digits with an optional sign."""
        assert decode(raw, ParamKind.INT, default=-1) == -1
        with pytest.raises(DecodeError):
            decode(raw, ParamKind.INT)
        with pytest.raises(DecodeError):
            decode(raw, ParamKind.DURATION)

    @pytest.mark.parametrize("raw", ["1_000.5", " 2.5", "١.٥", "1e", "."])
    def test_non_canonical_floats_rejected(self, raw: str) -> None:
        """Test floats and numbers reject what float() alone would accept."""
        assert decode(raw, ParamKind.FLOAT, default=-1.0) == -1.0
        assert decode(raw, ParamKind.NUMBER, default=-1) == -1

    def test_signed_and_exponent_forms(self) -> None:
        """Test the accepted ASCII numeric forms."""
        assert decode("-7", ParamKind.INT) == -7
        assert decode("+7", ParamKind.NUMBER) == 7
        assert decode("1e3", ParamKind.FLOAT) == 1000.0
        assert decode("-.5", ParamKind.NUMBER) == -0.5
        assert decode("inf", ParamKind.FLOAT) == float("inf")

    def test_default_swallows_failures(self) -> None:
        """Test a default is returned instead of raising."""
        assert decode("abc", ParamKind.INT, default=0) == 0
        assert decode("maybe", ParamKind.BOOL, default=False) is False
        assert decode("", ParamKind.INT, default=5) == 5

    @pytest.mark.parametrize("kind", list(ParamKind))
    def test_empty_string_nullable_is_none(self, kind: ParamKind) -> None:
        """Test empty strings decode to None for every nullable kind."""
        assert decode("", kind, nullable=True) is None

    def test_empty_string_non_nullable_raises(self) -> None:
        """Test empty strings are rejected without nullable or default."""
        with pytest.raises(DecodeError, match="non-nullable int"):
            decode("", ParamKind.INT)


class TestEncode:
    """Tests for encode."""

    def test_encodings(self) -> None:
        """Test string forms of each kind."""
        assert encode(None) == ""
        assert encode(True) == "true"
        assert encode(False) == "false"
        assert encode(42) == "42"
        assert encode(2.5) == "2.5"
        assert encode(timedelta(seconds=2)) == "2000"
        assert encode(datetime(2024, 3, 1, 12, 30)) == "2024-03-01T12:30:00"
        assert encode(urlsplit("https://example.com/x")) == "https://example.com/x"

    def test_inverse_law(self) -> None:
        """Test decode(encode(v)) == v for every primitive kind."""
        values = [
            True,
            False,
            0,
            42,
            -17,
            3.25,
            "text with spaces",
            timedelta(milliseconds=1234),
            datetime(2024, 3, 1, 12, 30, 15, tzinfo=UTC),
            urlsplit("https://example.com/path?q=1#frag"),
        ]
        for value in values:
            kind = ParamKind.for_value(value)
            assert decode(encode(value), kind) == value


def test_list_helpers() -> None:
    """Test list decoding and encoding."""
    assert decode_list("1, 2,3", ParamKind.INT) == [1, 2, 3]
    assert decode_list("", ParamKind.INT) == []
    assert decode_list("a|b", separator="|") == ["a", "b"]
    assert encode_list([1, True, "x"]) == "1,true,x"


def test_try_decode() -> None:
    """Test try_decode never raises."""
    assert try_decode("12", ParamKind.INT) == 12
    assert try_decode("twelve", ParamKind.INT) is None
    assert try_decode("", ParamKind.INT) is None
