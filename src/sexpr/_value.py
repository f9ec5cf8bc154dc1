"""
Value model: the in-memory tree every document decodes to and encodes from.

A Sexp is one of Nil, Atom, Number, Boolean, SexpList or ImproperList. All
variants are immutable; transformations build new trees.
"""

import math
import re
from collections.abc import Iterable
from collections.abc import Iterator
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

U64_MAX = 2**64 - 1
I64_MIN = -(2**63)
I64_MAX = 2**63 - 1

KEYWORD_MARKER = "#:"

_SYMBOL_TEXT = re.compile(r'[A-Za-z][^ \t\n\r()"]*')
_KEYWORD_TEXT = re.compile(r'[^ \t\n\r()"]+')


class AtomKind(Enum):
    SYMBOL = "symbol"
    KEYWORD = "keyword"
    STRING = "string"


@dataclass(frozen=True, slots=True)
class Atom:
    """
    A symbol, keyword or string leaf.

    Two atoms are equal when both the kind and the text match, so the symbol
    `a` and the string "a" are different values.
    """

    kind: AtomKind
    text: str

    def __post_init__(self) -> None:
        if not isinstance(self.kind, AtomKind):
            raise TypeError("kind must be an AtomKind")
        if not isinstance(self.text, str):
            raise TypeError("atom text must be a string")

    @classmethod
    def symbol(cls, text: str) -> "Atom":
        return cls(AtomKind.SYMBOL, text)

    @classmethod
    def keyword(cls, text: str) -> "Atom":
        return cls(AtomKind.KEYWORD, text)

    @classmethod
    def string(cls, text: str) -> "Atom":
        return cls(AtomKind.STRING, text)

    @classmethod
    def discriminate(cls, text: str) -> "Atom":
        """
        Picks the atom kind from the shape of a bare token.

        `#:name` is a keyword, text wrapped in matching double or single
        quotes is a string, anything else is a symbol.
        """
        if text.startswith(KEYWORD_MARKER):
            return cls.keyword(text[len(KEYWORD_MARKER) :])
        if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
            return cls.string(text[1:-1])
        return cls.symbol(text)

    def is_symbol(self) -> bool:
        return self.kind is AtomKind.SYMBOL

    def is_keyword(self) -> bool:
        return self.kind is AtomKind.KEYWORD

    def is_string(self) -> bool:
        return self.kind is AtomKind.STRING

    def as_str(self) -> str:
        return self.text

    def is_readable(self) -> bool:
        """
        Whether the atom reads back as itself when written out.

        Strings always do. A symbol needs a leading ASCII letter and a
        keyword at least one character; neither may hold whitespace, a
        parenthesis or a double quote.
        """
        if self.kind is AtomKind.SYMBOL:
            return _SYMBOL_TEXT.fullmatch(self.text) is not None
        if self.kind is AtomKind.KEYWORD:
            return _KEYWORD_TEXT.fullmatch(self.text) is not None
        return True

    def __str__(self) -> str:
        return self.text


class NumberKind(Enum):
    POS_INT = "pos_int"
    NEG_INT = "neg_int"
    FLOAT = "float"


@dataclass(frozen=True, slots=True)
class Number:
    """
    An integer that fits 64 bits, or a finite float.

    POS_INT holds 0..2**64-1, NEG_INT holds -2**63..-1 and FLOAT is always
    finite. Use from_int and from_float rather than the raw constructor.
    """

    kind: NumberKind
    value: int | float

    def __post_init__(self) -> None:
        if self.kind is NumberKind.FLOAT:
            if not isinstance(self.value, float) or not math.isfinite(
                self.value
            ):
                raise ValueError("FLOAT numbers must hold a finite float")
        elif self.kind is NumberKind.POS_INT:
            if not _is_plain_int(self.value) or not 0 <= self.value <= U64_MAX:
                raise ValueError("POS_INT numbers must be in 0..2**64-1")
        elif self.kind is NumberKind.NEG_INT:
            if not _is_plain_int(self.value) or not I64_MIN <= self.value < 0:
                raise ValueError("NEG_INT numbers must be in -2**63..-1")
        else:
            raise TypeError("kind must be a NumberKind")

    @classmethod
    def from_int(cls, value: int) -> "Number":
        """Wraps an integer, picking the signed or unsigned variant."""
        if not _is_plain_int(value):
            raise TypeError(f"expected int, not {type(value).__name__}")
        if value < 0:
            if value < I64_MIN:
                raise OverflowError(f"{value} does not fit in 64 bits")
            return cls(NumberKind.NEG_INT, value)
        if value > U64_MAX:
            raise OverflowError(f"{value} does not fit in 64 bits")
        return cls(NumberKind.POS_INT, value)

    @classmethod
    def from_float(cls, value: float) -> "Number | None":
        """Wraps a float; NaN and infinities have no Number form."""
        value = float(value)
        if not math.isfinite(value):
            return None
        return cls(NumberKind.FLOAT, value)

    def is_u64(self) -> bool:
        return self.kind is NumberKind.POS_INT

    def is_i64(self) -> bool:
        if self.kind is NumberKind.POS_INT:
            return self.value <= I64_MAX
        return self.kind is NumberKind.NEG_INT

    def is_f64(self) -> bool:
        return self.kind is NumberKind.FLOAT

    def as_u64(self) -> int | None:
        return int(self.value) if self.kind is NumberKind.POS_INT else None

    def as_i64(self) -> int | None:
        return int(self.value) if self.is_i64() else None

    def as_f64(self) -> float:
        return float(self.value)

    def __str__(self) -> str:
        if self.kind is NumberKind.FLOAT:
            return format_float(float(self.value))
        return str(self.value)


def _is_plain_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def format_float(value: float) -> str:
    """
    Renders a finite float with the shortest digits that read back exactly.

    The grammar has no exponent syntax, so the digits are laid out
    positionally and a fraction is always present.
    """
    text = repr(value)
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    if "." not in text:
        text += ".0"
    return text


@dataclass(frozen=True, slots=True)
class Nil:
    """The empty value, written `#nil`."""

    def __bool__(self) -> bool:
        return False


NIL = Nil()


@dataclass(frozen=True, slots=True)
class Boolean:
    value: bool

    def __bool__(self) -> bool:
        return self.value


TRUE = Boolean(True)
FALSE = Boolean(False)


@dataclass(frozen=True, slots=True)
class SexpList:
    """
    A proper list. Also the shape of an association list.

    Elements are stored as a tuple, so a SexpList is hashable when all of
    its elements are.
    """

    items: tuple["Sexp", ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.items, tuple):
            object.__setattr__(self, "items", tuple(self.items))

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator["Sexp"]:
        return iter(self.items)

    def __getitem__(self, index: int) -> "Sexp":
        return self.items[index]

    def get(self, index: "int | str") -> "Sexp | None":
        """
        Looks up an element by position, or an alist value by key text.

        A str index matches entries `(key . value)` and `(key value...)`
        whose key atom has that text. Returns None when nothing matches.
        """
        if isinstance(index, int) and not isinstance(index, bool):
            if -len(self.items) <= index < len(self.items):
                return self.items[index]
            return None
        for entry in self.items:
            if isinstance(entry, ImproperList) and len(entry.items) == 1:
                key, value = entry.items[0], entry.tail
            elif isinstance(entry, SexpList) and entry.items:
                key, value = entry.items[0], SexpList(entry.items[1:])
            else:
                continue
            if isinstance(key, Atom) and key.text == index:
                return value
        return None


@dataclass(frozen=True, slots=True)
class ImproperList:
    """
    A list whose final tail is an explicit non-nil, non-list value.

    A pair `(a . b)` is the one-element case. Build instances with make()
    when the tail might itself be a list or Nil.
    """

    items: tuple["Sexp", ...]
    tail: "Sexp"

    def __post_init__(self) -> None:
        if not isinstance(self.items, tuple):
            object.__setattr__(self, "items", tuple(self.items))
        if not self.items:
            raise ValueError("an improper list needs at least one element")
        if isinstance(self.tail, Nil | SexpList | ImproperList):
            raise ValueError(
                "an improper list tail cannot be Nil or a list; use make()"
            )

    @classmethod
    def make(cls, items: Iterable["Sexp"], tail: "Sexp") -> "Sexp":
        """Builds the canonical tree for `(items... . tail)`."""
        items = tuple(items)
        if isinstance(tail, Nil):
            return SexpList(items)
        if isinstance(tail, SexpList):
            return SexpList(items + tail.items)
        if isinstance(tail, ImproperList):
            return cls(items + tail.items, tail.tail)
        if not items:
            return tail
        return cls(items, tail)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator["Sexp"]:
        return iter(self.items)


type Sexp = Nil | Atom | Number | Boolean | SexpList | ImproperList

SEXP_TYPES = (Nil, Atom, Number, Boolean, SexpList, ImproperList)


def symbol(text: str) -> Atom:
    return Atom.symbol(text)


def keyword(text: str) -> Atom:
    return Atom.keyword(text)


def string(text: str) -> Atom:
    return Atom.string(text)


def pair(key: Any, value: Any) -> Sexp:
    """Builds the alist entry `(key . value)` from plain Python data."""
    return ImproperList.make((from_python(key),), from_python(value))


def from_python(obj: Any) -> Sexp:  # noqa: PLR0911
    """
    Converts plain Python data into a tree.

    Strings go through Atom.discriminate, dicts become alists of pairs and a
    NaN or infinite float becomes Nil.
    """
    if isinstance(obj, SEXP_TYPES):
        return obj
    if obj is None:
        return NIL
    if isinstance(obj, bool):
        return Boolean(obj)
    if isinstance(obj, int):
        return Number.from_int(obj)
    if isinstance(obj, float):
        number = Number.from_float(obj)
        return NIL if number is None else number
    if isinstance(obj, str):
        return Atom.discriminate(obj)
    if isinstance(obj, dict):
        return SexpList(pair(key, value) for key, value in obj.items())
    if isinstance(obj, list | tuple):
        return SexpList(from_python(item) for item in obj)
    raise TypeError(f"cannot convert {type(obj).__name__} to a Sexp")
