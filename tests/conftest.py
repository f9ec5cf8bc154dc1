"""
Pytest configuration and shared fixtures for sexpr tests.

Provides immutable test case fixtures shared by the decode, failure and
pass suites.
"""

from dataclasses import dataclass
from typing import Any

import pytest

from sexpr import FALSE
from sexpr import NIL
from sexpr import TRUE
from sexpr import ErrorCode
from sexpr import ImproperList
from sexpr import Number
from sexpr import SexpList
from sexpr import keyword
from sexpr import string
from sexpr import symbol


@dataclass(frozen=True)
class SexpTestCase:
    """
    Immutable container for S-expression test case data.

    Holds test input and expected behavior for consistent test execution.
    """

    description: str
    input_data: str
    should_fail: bool = False
    expected_output: Any = None
    expected_code: ErrorCode | None = None


@pytest.fixture
def sexp_fail_cases() -> list[SexpTestCase]:
    """
    Provides documents that must fail to decode, with the expected code.
    """
    cases = [
        ("empty input", "", ErrorCode.EOF_WHILE_PARSING_VALUE),
        ("whitespace only", "  \n\t", ErrorCode.EOF_WHILE_PARSING_VALUE),
        ("unclosed list", "(a b", ErrorCode.EOF_WHILE_PARSING_LIST),
        ("unclosed nested list", "((a)", ErrorCode.EOF_WHILE_PARSING_LIST),
        ("unclosed string", '"abc', ErrorCode.EOF_WHILE_PARSING_STRING),
        ("extra close", "(a))", ErrorCode.TRAILING_CHARACTERS),
        ("two top-level values", "(a) (b)", ErrorCode.TRAILING_CHARACTERS),
        ("trailing symbol", "12a", ErrorCode.TRAILING_CHARACTERS),
        ("double leading zero", "00", ErrorCode.INVALID_NUMBER),
        ("leading zero", "01", ErrorCode.INVALID_NUMBER),
        ("negative leading zero", "-01", ErrorCode.INVALID_NUMBER),
        ("missing fraction", "1.", ErrorCode.INVALID_NUMBER),
        ("lone minus", "-", ErrorCode.INVALID_NUMBER),
        ("minus letter", "-a", ErrorCode.INVALID_NUMBER),
        ("number overflow", "1" + "0" * 400, ErrorCode.NUMBER_OUT_OF_RANGE),
        ("bad escape", '"\\x15"', ErrorCode.INVALID_ESCAPE),
        ("octal escape", '"\\017"', ErrorCode.INVALID_ESCAPE),
        ("bad hex escape", '"\\u12g4"', ErrorCode.INVALID_ESCAPE),
        (
            "lone trailing surrogate",
            '"\\udc00"',
            ErrorCode.LONE_LEADING_SURROGATE_IN_HEX_ESCAPE,
        ),
        (
            "unpaired leading surrogate",
            '"\\ud800x"',
            ErrorCode.UNEXPECTED_END_OF_HEX_ESCAPE,
        ),
        ("unknown literal", "#x", ErrorCode.EXPECTED_SOME_IDENT),
        ("misspelled nil", "#nul", ErrorCode.EXPECTED_SOME_IDENT),
        ("empty keyword", "#:", ErrorCode.EXPECTED_SOME_IDENT),
        ("truncated literal", "#", ErrorCode.EOF_WHILE_PARSING_VALUE),
        ("stray close", ")", ErrorCode.EXPECTED_SOME_VALUE),
        ("leading dot", "(. a)", ErrorCode.EXPECTED_SOME_VALUE),
        ("two tails", "(a . b c)", ErrorCode.TRAILING_CHARACTERS),
        ("missing separator", '(a"b")', ErrorCode.EXPECTED_LIST_ELT_OR_END),
        (
            "nested without space",
            "((a)(b))",
            ErrorCode.EXPECTED_LIST_ELT_OR_END,
        ),
        ("dot at eof", "(a .", ErrorCode.EOF_WHILE_PARSING_VALUE),
        ("underscore symbol", "_a", ErrorCode.EXPECTED_SOME_VALUE),
    ]
    return [
        SexpTestCase(
            description=description,
            input_data=doc,
            should_fail=True,
            expected_code=code,
        )
        for description, doc, code in cases
    ]


@pytest.fixture
def sexp_pass_cases() -> list[SexpTestCase]:
    """
    Provides larger documents that must decode successfully.
    """
    return [
        SexpTestCase(
            description="mixed document",
            input_data="""(
    "sexpr test pattern pass1"
    (object-with-one-member ("array with 1 element"))
    ()
    -42
    #t
    #f
    #nil
    ((integer . 1234567890)
     (real . -9876.543210)
     (zero . 0)
     (space . " ")
     (quote . "\\"")
     (backslash . "\\\\")
     (controls . "\\b\\f\\n\\r\\t")
     (slash . "/ & \\/")
     (hex . "\\u0123\\u4567\\u89AB\\uCDEF\\uabcd\\uef4A")
     (keyword . #:kw)
     (compact 1 2 3 4 5 6 7))
)""",
        ),
        SexpTestCase(
            description="deep nesting",
            input_data="(" * 19 + '"Not too deep"' + ")" * 19,
        ),
        SexpTestCase(
            description="improper lists",
            input_data="((a . b) (1 2 . 3) (x . (y z)))",
        ),
        SexpTestCase(
            description="whitespace everywhere",
            input_data=" \t\r\n( a\n\tb\r\n c )\n ",
        ),
    ]


@pytest.fixture
def basic_sexp_values() -> list[SexpTestCase]:
    """
    Provides basic documents with their decoded value trees.
    """
    return [
        SexpTestCase("nil", "#nil", False, NIL),
        SexpTestCase("true", "#t", False, TRUE),
        SexpTestCase("false", "#f", False, FALSE),
        SexpTestCase("integer", "42", False, Number.from_int(42)),
        SexpTestCase("negative integer", "-17", False, Number.from_int(-17)),
        SexpTestCase("float", "3.14", False, Number.from_float(3.14)),
        SexpTestCase("empty string", '""', False, string("")),
        SexpTestCase("string", '"hello"', False, string("hello")),
        SexpTestCase("symbol", "hello", False, symbol("hello")),
        SexpTestCase("keyword", "#:key", False, keyword("key")),
        SexpTestCase("empty list", "()", False, SexpList()),
        SexpTestCase(
            "list",
            "(1 2 3)",
            False,
            SexpList(Number.from_int(n) for n in (1, 2, 3)),
        ),
        SexpTestCase(
            "pair",
            "(a . b)",
            False,
            ImproperList((symbol("a"),), symbol("b")),
        ),
    ]
