"""
S-expression decoding functionality tests.

Validates the grammar, the number algorithm, error positions, the recursion
limit and the different source types accepted by the decoder.
"""

import io
from typing import Any

import pytest

import sexpr
from sexpr import END
from sexpr import NIL
from sexpr import Decoder
from sexpr import ErrorCode
from sexpr import ImproperList
from sexpr import IoRead
from sexpr import Number
from sexpr import NumberKind
from sexpr import SexpList
from sexpr import Visitor
from sexpr import keyword
from sexpr import string
from sexpr import symbol

from .conftest import SexpTestCase


def test_basic_values(basic_sexp_values: list[SexpTestCase]) -> None:
    """
    Validates decoding of every value kind into its tree node.
    """
    for case in basic_sexp_values:
        assert sexpr.decode_value(case.input_data) == case.expected_output


def test_nil_literal_is_nil() -> None:
    """
    Validates that #nil decodes to the Nil value, not to a boolean.
    """
    result = sexpr.decode_value("#nil")
    assert result is NIL
    assert not result
    assert sexpr.decode_value("(#nil)") == SexpList((NIL,))


@pytest.mark.parametrize(
    "text,kind,value",
    [
        ("0", NumberKind.POS_INT, 0),
        ("-0", NumberKind.POS_INT, 0),
        ("7", NumberKind.POS_INT, 7),
        ("18446744073709551615", NumberKind.POS_INT, 2**64 - 1),
        ("-1", NumberKind.NEG_INT, -1),
        ("-9223372036854775808", NumberKind.NEG_INT, -(2**63)),
        ("0.5", NumberKind.FLOAT, 0.5),
        ("3.14", NumberKind.FLOAT, 3.14),
        ("-9876.543210", NumberKind.FLOAT, -9876.54321),
        ("100.000", NumberKind.FLOAT, 100.0),
    ],
)
def test_number_parsing(text: str, kind: NumberKind, value: Any) -> None:
    """
    Validates integer and decimal parsing and the variant chosen.
    """
    result = sexpr.decode_value(text)
    assert isinstance(result, Number)
    assert result.kind is kind
    assert result.value == value


def test_integer_past_u64_becomes_float() -> None:
    """
    Validates that one past the largest u64 is read as a float.
    """
    result = sexpr.decode_value("18446744073709551616")
    assert result.kind is NumberKind.FLOAT
    assert result.value == pytest.approx(1.8446744073709552e19)


def test_negative_integer_past_i64_becomes_float() -> None:
    """
    Validates that negative integers below -2**63 are read as floats.
    """
    result = sexpr.decode_value("-9223372036854775809")
    assert result.kind is NumberKind.FLOAT
    assert result.value == pytest.approx(-9.223372036854775809e18)


def test_long_fraction_is_truncated() -> None:
    """
    Validates that fraction digits past u64 room do not break parsing.
    """
    result = sexpr.decode_value("0." + "3" * 40)
    assert result.value == pytest.approx(1 / 3)


def test_tiny_decimal_underflows_to_zero() -> None:
    """
    Validates that decimals below the float range scale down to zero.
    """
    result = sexpr.decode_value("0." + "0" * 400 + "1")
    assert result.kind is NumberKind.FLOAT
    assert result.value == 0.0


@pytest.mark.parametrize("text", ["00", "01", "-01", "1.", "-", "-x"])
def test_invalid_numbers(text: str) -> None:
    """
    Validates that malformed numbers are syntax errors.
    """
    with pytest.raises(sexpr.SexpSyntaxError) as exc_info:
        sexpr.decode_value(text)
    assert exc_info.value.code is ErrorCode.INVALID_NUMBER


def test_string_escapes() -> None:
    """
    Validates every simple escape and hex escapes with surrogate pairs.
    """
    text = r'"\"\\\/\b\f\n\r\t\u00e9\ud83d\ude00"'
    result = sexpr.decode_value(text)
    assert result == string('"\\/\b\f\n\r\té\U0001f600')


def test_raw_control_bytes_are_kept() -> None:
    """
    Validates that unescaped control bytes inside strings are copied as is.
    """
    assert sexpr.decode_value('"a\tb\nc"') == string("a\tb\nc")


def test_invalid_utf8_is_rejected() -> None:
    """
    Validates that strings must hold valid UTF-8.
    """
    with pytest.raises(sexpr.SexpError) as exc_info:
        sexpr.decode_value(b'"\xff"')
    assert exc_info.value.code is ErrorCode.INVALID_UNICODE_CODE_POINT


def test_symbols_and_keywords() -> None:
    """
    Validates bare symbols up to a delimiter and #: keywords.
    """
    result = sexpr.decode_value('(foo-bar héllo a.b #:key "y")')
    assert result == SexpList(
        (
            symbol("foo-bar"),
            symbol("héllo"),
            symbol("a.b"),
            keyword("key"),
            string("y"),
        )
    )


def test_improper_lists() -> None:
    """
    Validates dotted tails, including tails that are lists themselves.
    """
    assert sexpr.decode_value("(a . b)") == ImproperList(
        (symbol("a"),), symbol("b")
    )
    assert sexpr.decode_value("(1 2 . 3)") == ImproperList(
        (Number.from_int(1), Number.from_int(2)), Number.from_int(3)
    )
    # A list tail splices into the head.
    assert sexpr.decode_value("(a . (b c))") == SexpList(
        (symbol("a"), symbol("b"), symbol("c"))
    )
    assert sexpr.decode_value("(a . #nil)") == SexpList((symbol("a"),))


def test_whitespace_is_required_between_elements() -> None:
    """
    Validates that list elements need a separator after the first one.
    """
    assert sexpr.decode_value('("a" "b")') == SexpList(
        (string("a"), string("b"))
    )
    with pytest.raises(sexpr.SexpSyntaxError) as exc_info:
        sexpr.decode_value('("a""b")')
    assert exc_info.value.code is ErrorCode.EXPECTED_LIST_ELT_OR_END


def test_error_positions_are_one_based() -> None:
    """
    Validates that line and column point at the offending byte.
    """
    with pytest.raises(sexpr.SexpError) as exc_info:
        sexpr.decode_value("00")
    assert (exc_info.value.line, exc_info.value.column) == (1, 2)

    with pytest.raises(sexpr.SexpError) as exc_info:
        sexpr.decode_value("(a\n  b))")
    err = exc_info.value
    assert err.code is ErrorCode.TRAILING_CHARACTERS
    assert (err.lineno, err.colno) == (2, 5)
    assert str(err) == "trailing characters at line 2 column 5"


def test_io_read_positions_match_slice_read() -> None:
    """
    Validates that streamed sources report the same positions.
    """
    reader = IoRead(io.BytesIO(b"(a\n  b))"), chunk_size=3)
    with pytest.raises(sexpr.SexpError) as exc_info:
        sexpr.decode_value(reader)
    assert (exc_info.value.line, exc_info.value.column) == (2, 5)


def test_recursion_limit() -> None:
    """
    Validates that deep nesting fails cleanly instead of overflowing.
    """
    nested = "(" * 127 + ")" * 127
    assert isinstance(sexpr.decode_value(nested), SexpList)

    with pytest.raises(sexpr.SexpSyntaxError) as exc_info:
        sexpr.decode_value("(" * 129)
    assert exc_info.value.code is ErrorCode.RECURSION_LIMIT_EXCEEDED
    assert exc_info.value.is_syntax()


def test_recursion_limit_is_configurable() -> None:
    """
    Validates recursion_limit passed through loads and DecodeConfig.
    """
    assert sexpr.loads("(())", recursion_limit=3) == SexpList((SexpList(),))
    with pytest.raises(sexpr.SexpError) as exc_info:
        sexpr.loads("((()))", recursion_limit=3)
    assert exc_info.value.code is ErrorCode.RECURSION_LIMIT_EXCEEDED

    config = sexpr.DecodeConfig(recursion_limit=2)
    with pytest.raises(sexpr.SexpError):
        sexpr.decode_value("((a))", config)


@pytest.mark.parametrize(
    "source",
    [
        "(a 1)",
        b"(a 1)",
        bytearray(b"(a 1)"),
        memoryview(b"(a 1)"),
        io.BytesIO(b"(a 1)"),
    ],
)
def test_source_types(source: Any) -> None:
    """
    Validates every accepted source type decodes the same document.
    """
    expected = SexpList((symbol("a"), Number.from_int(1)))
    assert sexpr.decode_value(source) == expected


def test_io_read_small_chunks() -> None:
    """
    Validates that values spanning chunk boundaries are read whole.
    """
    data = '(("name" . "a long string value") (n . 12345.678))'
    reader = IoRead(io.BytesIO(data.encode()), chunk_size=1)
    assert sexpr.decode_value(reader) == sexpr.decode_value(data)


def test_io_read_error_is_wrapped() -> None:
    """
    Validates that a failing reader surfaces as an I/O error.
    """

    class BrokenReader:
        def read(self, size: int) -> bytes:
            raise OSError("disk on fire")

    with pytest.raises(sexpr.SexpIoError) as exc_info:
        sexpr.decode_value(BrokenReader())
    assert exc_info.value.is_io()
    assert isinstance(exc_info.value.__cause__, OSError)


def test_invalid_source_type() -> None:
    """
    Validates that unsupported sources raise TypeError.
    """
    with pytest.raises(TypeError, match="must be str, bytes"):
        sexpr.decode_value(42)  # type: ignore[arg-type]


def test_loads_and_load() -> None:
    """
    Validates the loads/load entry points and their argument checks.
    """
    assert sexpr.loads("(1 2)") == sexpr.loads(b"(1 2)")
    assert sexpr.loads("(1 2)", list[int]) == [1, 2]
    assert sexpr.load(io.StringIO("(1 2)"), list[int]) == [1, 2]
    assert sexpr.load(io.BytesIO(b"#t")) == sexpr.TRUE

    with pytest.raises(TypeError):
        sexpr.loads(42)  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        sexpr.load("(1 2)")  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        sexpr.loads("1", unknown_option=True)


def test_custom_visitor() -> None:
    """
    Validates driving the decoder directly with a Visitor subclass.
    """

    class SymbolCounter(Visitor):
        expecting = "symbols"

        def visit_symbol(self, value: str) -> int:
            return 1

        def visit_seq(self, access: Any) -> int:
            total = 0

            def seed(de: Any) -> int:
                return de.decode_any(self)

            while (count := access.next_element(seed)) is not END:
                total += count
            return total

    de = Decoder.from_str("(a (b c) d)")
    assert de.decode_any(SymbolCounter()) == 4
    de.end()

    de = Decoder.from_bytes(b"(a 1)")
    with pytest.raises(sexpr.SexpDataError, match="expected symbols"):
        de.decode_any(SymbolCounter())

    de = Decoder.from_reader(io.BytesIO(b"(x (y)) \n"))
    assert de.decode_any(SymbolCounter()) == 2
    de.end()

    de = Decoder.from_reader(io.BytesIO(b"(x) y"))
    assert de.decode_any(SymbolCounter()) == 1
    with pytest.raises(sexpr.SexpSyntaxError) as exc_info:
        de.end()
    assert exc_info.value.code is ErrorCode.TRAILING_CHARACTERS


@pytest.mark.parametrize(
    "text,line,column",
    [
        ("\ud800", 1, 1),
        ('("a" \udc00)', 1, 6),
        ("(a\n  \"b\ud83d\")", 2, 5),
    ],
)
def test_lone_surrogate_in_text_source(
    text: str, line: int, column: int
) -> None:
    """
    Validates that text with an unpaired surrogate is a positioned error.
    """
    with pytest.raises(sexpr.SexpSyntaxError) as exc_info:
        sexpr.decode_value(text)
    assert exc_info.value.code is ErrorCode.INVALID_UNICODE_CODE_POINT
    assert (exc_info.value.line, exc_info.value.column) == (line, column)


def test_lone_surrogate_in_text_reader() -> None:
    """
    Validates that a text reader yielding an unpaired surrogate fails cleanly.
    """
    with pytest.raises(sexpr.SexpSyntaxError) as exc_info:
        sexpr.load(io.StringIO('("ok" "bad\udc00")'))
    assert exc_info.value.code is ErrorCode.INVALID_UNICODE_CODE_POINT


def test_hot_path_profiling() -> None:
    """
    Validates the profiling counters, which stay empty unless enabled.
    """
    sexpr.clear_hot_path_stats()
    sexpr.decode_value('("a" 1 2)')
    stats = sexpr.get_hot_path_stats()
    if sexpr._config.PROFILE_HOT_PATHS:
        assert stats["parse_string"].call_count == 1
        assert stats["parse_number"].call_count == 2
        assert stats["parse_list"].call_count == 1
    else:
        assert stats == {}
    sexpr.clear_hot_path_stats()
