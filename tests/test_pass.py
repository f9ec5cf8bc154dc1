"""
Compliance tests for valid S-expression documents.

Validates that well-formed documents decode successfully, survive a trip
through both layouts and produce the expected trees.
"""

import sexpr
from sexpr import NIL
from sexpr import TRUE
from sexpr import Number
from sexpr import SexpList
from sexpr import keyword
from sexpr import string

from .conftest import SexpTestCase


def test_valid_documents(sexp_pass_cases: list[SexpTestCase]) -> None:
    """
    Validates documents that must decode successfully.

    Each one is re-encoded in both layouts and must decode to the same
    tree again.
    """
    for case in sexp_pass_cases:
        tree = sexpr.decode_value(case.input_data)
        assert sexpr.decode_value(sexpr.encode(tree)) == tree
        assert sexpr.decode_value(sexpr.encode_pretty(tree)) == tree
        assert sexpr.decode_value(case.input_data.encode()) == tree


def test_mixed_document_contents(sexp_pass_cases: list[SexpTestCase]) -> None:
    """
    Validates the values read from the mixed document.
    """
    tree = sexpr.decode_value(sexp_pass_cases[0].input_data)
    assert isinstance(tree, SexpList)
    assert tree[0] == string("sexpr test pattern pass1")
    assert tree[2] == SexpList()
    assert tree[3] == Number.from_int(-42)
    assert tree[4] == TRUE
    assert tree[6] is NIL

    alist = tree[7]
    assert alist.get("integer") == Number.from_int(1234567890)
    assert alist.get("real") == Number.from_float(-9876.54321)
    assert alist.get("quote") == string('"')
    assert alist.get("backslash") == string("\\")
    assert alist.get("controls") == string("\b\f\n\r\t")
    assert alist.get("slash") == string("/ & /")
    assert alist.get("hex") == string(
        "\u0123\u4567\u89ab\ucdef\uabcd\uef4a"
    )
    assert alist.get("keyword") == keyword("kw")
    assert alist.get("compact") == SexpList(
        Number.from_int(n) for n in range(1, 8)
    )


def test_deep_nesting(sexp_pass_cases: list[SexpTestCase]) -> None:
    """
    Validates nesting well under the recursion limit.
    """
    tree = sexpr.decode_value(sexp_pass_cases[1].input_data)
    for _ in range(18):
        assert isinstance(tree, SexpList)
        assert len(tree) == 1
        tree = tree[0]
    assert tree == SexpList((string("Not too deep"),))


def test_empty_containers() -> None:
    """
    Validates empty lists with and without surrounding whitespace.
    """
    assert sexpr.decode_value("()") == SexpList()
    assert sexpr.decode_value(" ( ) ") == SexpList()
    assert sexpr.decode_value("(\n)") == SexpList()
    assert sexpr.decode_typed("()", list[int]) == []


def test_whitespace_handling() -> None:
    """
    Validates the four whitespace bytes around and inside values.
    """
    for ws in (" ", "\t", "\n", "\r"):
        text = f"{ws}({ws}1{ws}2{ws}){ws}"
        assert sexpr.decode_typed(text, list[int]) == [1, 2]
