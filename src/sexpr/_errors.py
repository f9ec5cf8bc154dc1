"""
Error model shared by the decoder, the encoder and the typed binding.

Every failure surfaces as a SexpError subclass chosen by category, carrying
a one-based line and column once the position is known.
"""

from enum import Enum
from typing import Self


class Category(Enum):
    """Coarse classification of a SexpError."""

    IO = "io"
    SYNTAX = "syntax"
    DATA = "data"
    EOF = "eof"


class ErrorCode(Enum):
    """
    Precise reason for a failure.

    The value is the human-readable message used in str(error).
    """

    MESSAGE = "custom message"
    IO = "io error"
    EOF_WHILE_PARSING_LIST = "EOF while parsing a list"
    EOF_WHILE_PARSING_ALIST = "EOF while parsing an alist"
    EOF_WHILE_PARSING_STRING = "EOF while parsing a string"
    EOF_WHILE_PARSING_VALUE = "EOF while parsing a value"
    EXPECTED_LIST_ELT_OR_END = "expected ` ` or `)`"
    EXPECTED_LIST = "expected `(`"
    EXPECTED_SOME_IDENT = "expected ident"
    EXPECTED_SOME_VALUE = "expected value"
    INVALID_ESCAPE = "invalid escape"
    INVALID_NUMBER = "invalid number"
    NUMBER_OUT_OF_RANGE = "number out of range"
    INVALID_UNICODE_CODE_POINT = "invalid unicode code point"
    KEY_MUST_BE_A_STRING = "key must be a string"
    LONE_LEADING_SURROGATE_IN_HEX_ESCAPE = (
        "lone leading surrogate in hex escape"
    )
    TRAILING_CHARACTERS = "trailing characters"
    UNEXPECTED_END_OF_HEX_ESCAPE = "unexpected end of hex escape"
    RECURSION_LIMIT_EXCEEDED = "recursion limit exceeded"

    @property
    def category(self) -> Category:
        """Returns the category this code is reported under."""
        if self in (ErrorCode.MESSAGE, ErrorCode.KEY_MUST_BE_A_STRING):
            return Category.DATA
        if self is ErrorCode.IO:
            return Category.IO
        if self in _EOF_CODES:
            return Category.EOF
        return Category.SYNTAX


_EOF_CODES = frozenset(
    {
        ErrorCode.EOF_WHILE_PARSING_LIST,
        ErrorCode.EOF_WHILE_PARSING_ALIST,
        ErrorCode.EOF_WHILE_PARSING_STRING,
        ErrorCode.EOF_WHILE_PARSING_VALUE,
    }
)


class SexpError(ValueError):
    """
    Reports a failure to decode or encode S-expression data.

    Line and column are one-based; zero means the position is not known yet.
    The decoder fills the position in on the way out, and a position that is
    already set is never overwritten.
    """

    def __init__(
        self,
        code: ErrorCode,
        msg: str | None = None,
        line: int = 0,
        column: int = 0,
    ) -> None:
        if not isinstance(code, ErrorCode):
            raise TypeError("code must be an ErrorCode")
        if line < 0 or column < 0:
            raise ValueError("line and column must be non-negative")

        self.code = code
        self.msg = msg if msg is not None else code.value
        self.line = line
        self.column = column
        super().__init__(self._render())

    def _render(self) -> str:
        if self.line == 0:
            return self.msg
        return f"{self.msg} at line {self.line} column {self.column}"

    def __str__(self) -> str:
        return self._render()

    @property
    def lineno(self) -> int:
        return self.line

    @property
    def colno(self) -> int:
        return self.column

    @property
    def category(self) -> Category:
        return self.code.category

    def classify(self) -> Category:
        """Categorizes the cause of this error."""
        return self.code.category

    def is_io(self) -> bool:
        return self.classify() is Category.IO

    def is_syntax(self) -> bool:
        return self.classify() is Category.SYNTAX

    def is_data(self) -> bool:
        """
        Whether the input was well formed but did not fit the requested type.

        For example a number where the target field holds a str.
        """
        return self.classify() is Category.DATA

    def is_eof(self) -> bool:
        """
        Whether the input ended early.

        Callers reading a stream may retry once more data has arrived.
        """
        return self.classify() is Category.EOF

    def fix_position(self, line: int, column: int) -> Self:
        """Fills in the position unless one is already recorded."""
        if self.line == 0:
            self.line = line
            self.column = column
            self.args = (self._render(),)
        return self

    @classmethod
    def syntax(cls, code: ErrorCode, line: int, column: int) -> "SexpError":
        """Builds the error subclass matching the category of code."""
        return _CATEGORY_TYPES[code.category](code, line=line, column=column)

    @classmethod
    def io(cls, error: OSError) -> "SexpIoError":
        """Wraps an I/O failure of the underlying source or sink."""
        wrapped = SexpIoError(ErrorCode.IO, str(error))
        wrapped.__cause__ = error
        return wrapped

    @classmethod
    def custom(cls, msg: str) -> "SexpDataError":
        """Builds a positionless data error with a free-form message."""
        return SexpDataError(ErrorCode.MESSAGE, msg)


class SexpIoError(SexpError):
    """Reading from the source or writing to the sink failed."""


class SexpSyntaxError(SexpError):
    """The input is not syntactically valid S-expression text."""


class SexpEofError(SexpError):
    """The input ended while a value was still incomplete."""


class SexpDataError(SexpError):
    """The input is well formed but does not match the requested shape."""


_CATEGORY_TYPES: dict[Category, type[SexpError]] = {
    Category.IO: SexpIoError,
    Category.SYNTAX: SexpSyntaxError,
    Category.DATA: SexpDataError,
    Category.EOF: SexpEofError,
}


def invalid_type(unexpected: str, expected: str) -> SexpDataError:
    return SexpError.custom(f"invalid type: {unexpected}, expected {expected}")


def invalid_value(unexpected: str, expected: str) -> SexpDataError:
    return SexpError.custom(
        f"invalid value: {unexpected}, expected {expected}"
    )


def invalid_length(length: int, expected: str) -> SexpDataError:
    return SexpError.custom(f"invalid length {length}, expected {expected}")


def missing_field(name: str) -> SexpDataError:
    return SexpError.custom(f"missing field `{name}`")


def duplicate_field(name: str) -> SexpDataError:
    return SexpError.custom(f"duplicate field `{name}`")


def unknown_variant(name: str, expected: list[str]) -> SexpDataError:
    names = ", ".join(f"`{variant}`" for variant in expected)
    return SexpError.custom(
        f"unknown variant `{name}`, expected one of {names}"
    )


def key_must_be_a_string() -> SexpDataError:
    return SexpDataError(ErrorCode.KEY_MUST_BE_A_STRING)
