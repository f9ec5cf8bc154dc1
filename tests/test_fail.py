"""
Failure tests for malformed S-expression input and unencodable values.

Validates that invalid documents raise the right SexpError subclass with
the expected code, a category and position information.
"""

import sys

import pytest

import sexpr
from sexpr import Category
from sexpr import ErrorCode
from sexpr import SexpError

from .conftest import SexpTestCase

_CATEGORY_TYPES = {
    Category.SYNTAX: sexpr.SexpSyntaxError,
    Category.EOF: sexpr.SexpEofError,
    Category.DATA: sexpr.SexpDataError,
    Category.IO: sexpr.SexpIoError,
}


def test_malformed_documents(sexp_fail_cases: list[SexpTestCase]) -> None:
    """
    Validates documents that must fail to decode.

    Each failure carries the expected code, is raised as the subclass for
    its category and knows where in the input it happened.
    """
    for case in sexp_fail_cases:
        with pytest.raises(SexpError) as exc_info:
            sexpr.decode_value(case.input_data)

        err = exc_info.value
        assert err.code is case.expected_code, case.description
        assert isinstance(err, _CATEGORY_TYPES[err.category])
        assert err.lineno >= 1


@pytest.mark.parametrize(
    "text,category",
    [
        ("(a b", Category.EOF),
        ('"abc', Category.EOF),
        ("(a))", Category.SYNTAX),
        ("#x", Category.SYNTAX),
    ],
)
def test_error_classification(text: str, category: Category) -> None:
    """
    Validates classify() and the is_* predicates agree.
    """
    with pytest.raises(SexpError) as exc_info:
        sexpr.decode_value(text)

    err = exc_info.value
    assert err.classify() is category
    assert err.is_eof() == (category is Category.EOF)
    assert err.is_syntax() == (category is Category.SYNTAX)
    assert not err.is_data()
    assert not err.is_io()


def test_truncated_input_is_eof_everywhere() -> None:
    """
    Validates that every prefix of a document fails with an EOF error.

    Callers reading from a stream rely on this to know more data may help.
    """
    document = '(("name" . "value") (list 1 2.5 #t) (key . #:kw))'
    for end in range(1, len(document)):
        prefix = document[:end]
        if prefix.endswith(("#:", "2.")):
            # Cut inside a token that is invalid on its own.
            continue
        with pytest.raises(SexpError) as exc_info:
            sexpr.decode_value(prefix)
        assert exc_info.value.is_eof(), prefix


def test_error_code_categories() -> None:
    """
    Validates the category assigned to each error code.
    """
    assert ErrorCode.IO.category is Category.IO
    assert ErrorCode.MESSAGE.category is Category.DATA
    assert ErrorCode.KEY_MUST_BE_A_STRING.category is Category.DATA
    assert ErrorCode.EOF_WHILE_PARSING_ALIST.category is Category.EOF
    assert ErrorCode.RECURSION_LIMIT_EXCEEDED.category is Category.SYNTAX
    assert ErrorCode.INVALID_NUMBER.category is Category.SYNTAX


def test_every_input_error_code_is_reachable(
    sexp_fail_cases: list[SexpTestCase],
) -> None:
    """
    Validates that each syntax and EOF code is raised by some input.
    """
    typed_cases = [
        ("((a . 1)", dict[str, int], ErrorCode.EOF_WHILE_PARSING_ALIST),
        ("(1)", dict[str, int], ErrorCode.EXPECTED_LIST),
        (b'"\xff"', str, ErrorCode.INVALID_UNICODE_CODE_POINT),
        ("(" * 200, sexpr.Sexp, ErrorCode.RECURSION_LIMIT_EXCEEDED),
    ]
    for text, cls, code in typed_cases:
        with pytest.raises(SexpError) as exc_info:
            sexpr.decode_typed(text, cls)
        assert exc_info.value.code is code

    reached = {case.expected_code for case in sexp_fail_cases}
    reached |= {code for _, _, code in typed_cases}
    input_codes = {
        code
        for code in ErrorCode
        if code.category in (Category.SYNTAX, Category.EOF)
    }
    assert reached == input_codes


def test_error_position_is_set_once() -> None:
    """
    Validates that a recorded position is never overwritten.
    """
    err = SexpError(ErrorCode.INVALID_ESCAPE, line=3, column=7)
    err.fix_position(9, 9)
    assert (err.line, err.column) == (3, 7)

    err = SexpError.custom("boom")
    assert str(err) == "boom"
    err.fix_position(2, 4)
    assert str(err) == "boom at line 2 column 4"


def test_error_constructor_validation() -> None:
    """
    Validates SexpError argument checks.
    """
    with pytest.raises(TypeError):
        SexpError("not a code")  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        SexpError(ErrorCode.IO, line=-1)


@pytest.mark.parametrize("key", [True, 1.5, None, b"k", (1, 2)])
@pytest.mark.parametrize("indent", [None, "  "])
def test_non_string_keys_rejected(key: object, indent: str | None) -> None:
    """
    Validates that keys which are not string-like fail for every layout.
    """
    with pytest.raises(sexpr.SexpDataError) as exc_info:
        sexpr.dumps({key: 1}, indent=indent)
    assert exc_info.value.code is ErrorCode.KEY_MUST_BE_A_STRING
    assert exc_info.value.is_data()


def test_non_string_keys_rejected_in_tree() -> None:
    """
    Validates that to_value applies the same key restriction.
    """
    with pytest.raises(sexpr.SexpDataError) as exc_info:
        sexpr.to_value({2.5: "x"})
    assert exc_info.value.code is ErrorCode.KEY_MUST_BE_A_STRING


def test_module_not_serializable() -> None:
    """
    Validates unsupported objects raise TypeError during encoding.
    """
    with pytest.raises(
        TypeError, match=r"Object of type module is not S-expression"
    ):
        sexpr.encode(sys)

    with pytest.raises(TypeError):
        sexpr.encode([1, [2, {"a": sys}]])


def test_integer_out_of_range_on_encode() -> None:
    """
    Validates that integers outside 64 bits cannot be encoded.
    """
    with pytest.raises(sexpr.SexpDataError, match="does not fit"):
        sexpr.encode(2**64)
    with pytest.raises(sexpr.SexpDataError, match="does not fit"):
        sexpr.encode([-(2**63) - 1])
    with pytest.raises(sexpr.SexpDataError):
        sexpr.to_value(2**70)
