"""
Test data generators for S-expression benchmarks.

Documents are built the way S-expression data usually looks: association
lists with symbol values, keyword flags, dotted pairs and nested code-like
forms. Each one is also flattened into its closest JSON equivalent so the
JSON libraries can be measured on the same content:
- Small and large records (alists)
- A flat list of mixed atoms
- A deeply nested expression tree
- String-heavy content with characters that need escaping
"""

import json
import random
import string
from typing import Any

import sexpr
from sexpr import Atom
from sexpr import Boolean
from sexpr import ImproperList
from sexpr import Nil
from sexpr import Number
from sexpr import SexpList
from sexpr import keyword
from sexpr import symbol

_ESCAPE_PROBABILITY = 0.25
_ESCAPED_CHARS = '"\\\b\f\n\r\t\x01'
_OPERATORS = ["add", "sub", "mul", "lt", "eq", "if", "let"]

DATA_TYPES = [
    "small_object",
    "large_object",
    "mixed_array",
    "nested_structure",
    "string_heavy",
]


def generate_test_data(data_type: str) -> Any:
    """Generates a document of the given type as Python data and trees."""
    generators = {
        "small_object": _small_record,
        "large_object": _large_record,
        "mixed_array": _mixed_atoms,
        "nested_structure": _expression_tree,
        "string_heavy": _string_heavy,
    }

    if data_type not in generators:
        raise ValueError(f"Unknown data type: {data_type}")

    return generators[data_type]()


def paired_texts(data_type: str) -> tuple[str, str]:
    """Encodes one generated document both ways: (sexpr, json)."""
    data = generate_test_data(data_type)
    return sexpr.encode(data), json.dumps(to_jsonable(data))


def to_jsonable(value: Any) -> Any:
    """
    Flattens trees into JSON-ready data.

    Atoms become their text, keywords keep a leading colon and an improper
    list becomes a plain list ending with its tail.
    """
    if isinstance(value, Atom):
        return f":{value.text}" if value.is_keyword() else value.text
    if isinstance(value, Number):
        return value.value
    if isinstance(value, Boolean):
        return value.value
    if isinstance(value, Nil):
        return None
    if isinstance(value, SexpList):
        return [to_jsonable(item) for item in value]
    if isinstance(value, ImproperList):
        return [to_jsonable(item) for item in value.items] + [
            to_jsonable(value.tail)
        ]
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, list):
        return [to_jsonable(item) for item in value]
    return value


def _symbol() -> Atom:
    return symbol(random.choice(string.ascii_lowercase) + _word(7))


def _version() -> ImproperList:
    return ImproperList(
        (Number.from_int(random.randint(0, 9)),),
        Number.from_int(random.randint(0, 40)),
    )


def _pair() -> ImproperList:
    return ImproperList((_symbol(),), Number.from_int(random.randint(0, 99)))


def _small_record() -> dict[str, Any]:
    """A package description, well under 1KB."""
    return {
        "name": symbol("sexpr"),
        "version": _version(),
        "license": "MIT",
        "flags": [keyword("pure"), keyword("typed")],
        "checksum": 3735928559,
        "ratio": 0.75,
    }


def _large_record() -> dict[str, Any]:
    """A lock file: many packages with dependencies and build options."""
    return {
        "format": 3,
        "packages": [
            {
                "name": _symbol(),
                "version": _version(),
                "source": f"https://example.org/{_word(12)}.tar.gz",
                "depends": [_symbol() for _ in range(random.randint(0, 6))],
                "features": [keyword(_word(5)) for _ in range(3)],
                "optional": random.choice([True, False]),
                "size": random.randint(1_000, 5_000_000),
                "score": round(random.uniform(0, 1), 4),
            }
            for _ in range(80)
        ],
    }


def _mixed_atoms() -> list[Any]:
    """A flat list holding every kind of leaf and some dotted pairs."""
    makers = [
        lambda: random.randint(-(2**63), 2**63 - 1),
        lambda: round(random.uniform(-1e6, 1e6), 3),
        lambda: _word(random.randint(3, 20)),
        _symbol,
        lambda: keyword(_word(6)),
        lambda: random.choice([True, False, None]),
        _pair,
    ]
    return [random.choice(makers)() for _ in range(400)]


def _expression_tree() -> SexpList:
    """A nested program form, like a parsed Lisp function body."""

    def expression(depth: int) -> Any:
        if depth <= 0:
            return random.choice(
                [_symbol(), Number.from_int(random.randint(0, 100))]
            )
        head = symbol(random.choice(_OPERATORS))
        args = [expression(depth - 1) for _ in range(random.randint(1, 3))]
        return SexpList((head, *args))

    return SexpList(
        (
            symbol("define"),
            SexpList((symbol("main"), symbol("x"), symbol("y"))),
            *(expression(9) for _ in range(4)),
        )
    )


def _string_heavy() -> dict[str, Any]:
    """Docstrings and messages full of characters that must be escaped."""
    return {
        "docs": {_word(10): _escaped_text(60) for _ in range(40)},
        "messages": [_escaped_text(40) for _ in range(100)],
        "unicode": [
            "".join(chr(random.randint(0x00A0, 0x2FFF)) for _ in range(12))
            for _ in range(30)
        ],
    }


def _escaped_text(length: int) -> str:
    plain = string.ascii_letters + string.digits + " "
    return "".join(
        random.choice(_ESCAPED_CHARS)
        if random.random() < _ESCAPE_PROBABILITY
        else random.choice(plain)
        for _ in range(length)
    )


def _word(length: int) -> str:
    return "".join(random.choices(string.ascii_lowercase, k=length))
