"""
Recursive-descent decoder.

The Decoder never builds values itself: every token is handed to a visitor
(see sexpr._binding.Visitor), and the visitor decides what to construct.
Consumers that know the shape they expect ask for it with decode_struct,
decode_enum and friends; everything else goes through decode_any.

A seed is any callable taking a decoder and returning a value. Access
objects take seeds for nested values so that the caller keeps control of
which decode_* method runs for each element.
"""

import logging
import math
from collections.abc import Callable
from collections.abc import Iterator
from typing import Any
from typing import Final

from ._config import DecodeConfig
from ._config import ProfileContext
from ._errors import ErrorCode
from ._errors import SexpError
from ._errors import invalid_type
from ._read import QUOTE
from ._read import IoRead
from ._read import Read
from ._read import SliceRead
from ._read import StrRead
from ._value import U64_MAX

logger = logging.getLogger(__name__)

type Seed = Callable[[Any], Any]

WHITESPACE: Final = frozenset(b" \t\n\r")
LPAREN: Final = ord("(")
RPAREN: Final = ord(")")
HASH: Final = ord("#")
MINUS: Final = ord("-")
DOT: Final = ord(".")
ZERO: Final = ord("0")
NINE: Final = ord("9")

# 10**0 through 10**308, the full range of finite float powers of ten.
POW10: Final = tuple(float(f"1e{exp}") for exp in range(309))

_U64_MAX_DIV_10: Final = U64_MAX // 10
_U64_MAX_MOD_10: Final = U64_MAX % 10
_I64_NEG_LIMIT: Final = 2**63


class _End:
    def __repr__(self) -> str:
        return "END"


# Returned by next_element once a sequence has no more elements.
END: Final = _End()


def _is_digit(byte: int | None) -> bool:
    return byte is not None and ZERO <= byte <= NINE


def _is_letter(byte: int) -> bool:
    return 0x41 <= byte <= 0x5A or 0x61 <= byte <= 0x7A


def _overflows(acc: int, digit: int) -> bool:
    return acc >= _U64_MAX_DIV_10 and (
        acc > _U64_MAX_DIV_10 or digit > _U64_MAX_MOD_10
    )


class Decoder:
    """
    Decodes one S-expression document from a Read source.

    The decoder owns a scratch buffer that string scanning reuses, and a
    recursion budget that every nested aggregate draws from.
    """

    def __init__(self, read: Read, config: DecodeConfig | None = None) -> None:
        if config is None:
            config = DecodeConfig()
        self.read = read
        self.scratch = bytearray()
        self.remaining_depth = config.recursion_limit
        # Set when decode_option consumed a `#` that did not start `#nil`.
        self._pending_hash = False

    @classmethod
    def from_str(
        cls, text: str, config: DecodeConfig | None = None
    ) -> "Decoder":
        return cls(StrRead(text), config)

    @classmethod
    def from_bytes(
        cls,
        data: bytes | bytearray | memoryview,
        config: DecodeConfig | None = None,
    ) -> "Decoder":
        return cls(SliceRead(data), config)

    @classmethod
    def from_reader(
        cls, reader: Any, config: DecodeConfig | None = None
    ) -> "Decoder":
        return cls(IoRead(reader), config)

    def end(self) -> None:
        """Checks that only whitespace remains after the decoded value."""
        if self.parse_whitespace() is not None:
            raise self.peek_error(ErrorCode.TRAILING_CHARACTERS)

    def into_iter(self, seed: Seed) -> "StreamDecoder":
        return StreamDecoder(self, seed)

    # Cursor helpers

    def peek(self) -> int | None:
        return self.read.peek()

    def error(self, code: ErrorCode) -> SexpError:
        return self.read.error(code)

    def peek_error(self, code: ErrorCode) -> SexpError:
        return self.read.peek_error(code)

    def parse_whitespace(self) -> int | None:
        """Skips whitespace and returns the next byte without consuming it."""
        read = self.read
        while True:
            byte = read.peek()
            if byte is None or byte not in WHITESPACE:
                return byte
            read.discard()

    def _parse_ident(self, ident: bytes) -> None:
        for expected in ident:
            byte = self.read.next()
            if byte is None:
                raise self.error(ErrorCode.EOF_WHILE_PARSING_VALUE)
            if byte != expected:
                raise self.error(ErrorCode.EXPECTED_SOME_IDENT)

    def parse_key(self, eof_code: ErrorCode) -> str:
        """Reads an alist key or variant name: a string or a bare symbol."""
        byte = self.parse_whitespace()
        if byte is None:
            raise self.peek_error(eof_code)
        self.scratch.clear()
        if byte == QUOTE:
            self.read.discard()
            return self.read.parse_str(self.scratch)
        if _is_letter(byte):
            return self.read.parse_symbol(self.scratch)
        raise self.peek_error(ErrorCode.EXPECTED_SOME_IDENT)

    def _enter(self) -> None:
        self.remaining_depth -= 1
        if self.remaining_depth == 0:
            self.remaining_depth += 1
            logger.debug(
                "recursion limit reached at byte %d", self.read.byte_offset()
            )
            raise self.peek_error(ErrorCode.RECURSION_LIMIT_EXCEEDED)

    def _leave(self) -> None:
        self.remaining_depth += 1

    def _end_seq(self) -> None:
        byte = self.parse_whitespace()
        if byte == RPAREN:
            self.read.discard()
            return
        if byte is None:
            raise self.peek_error(ErrorCode.EOF_WHILE_PARSING_LIST)
        raise self.peek_error(ErrorCode.TRAILING_CHARACTERS)

    # Numbers

    def _parse_integer(self, positive: bool) -> int | float:
        byte = self.read.next()
        if byte == ZERO:
            # A leading zero must be the whole integer part.
            if _is_digit(self.peek()):
                raise self.peek_error(ErrorCode.INVALID_NUMBER)
            return self._parse_number(positive, 0)
        if byte is None or not _is_digit(byte):
            raise self.error(ErrorCode.INVALID_NUMBER)

        significand = byte - ZERO
        while True:
            byte = self.peek()
            if byte is None or not _is_digit(byte):
                return self._parse_number(positive, significand)
            self.read.discard()
            digit = byte - ZERO
            if _overflows(significand, digit):
                return self._parse_long_integer(positive, significand, 1)
            significand = significand * 10 + digit

    def _parse_long_integer(
        self, positive: bool, significand: int, exponent: int
    ) -> float:
        while True:
            byte = self.peek()
            if _is_digit(byte):
                # Digits past u64 range only shift the magnitude.
                self.read.discard()
                exponent += 1
            elif byte == DOT:
                return self._parse_decimal(positive, significand, exponent)
            else:
                return self._f64_from_parts(positive, significand, exponent)

    def _parse_number(self, positive: bool, significand: int) -> int | float:
        if self.peek() == DOT:
            return self._parse_decimal(positive, significand, 0)
        if positive:
            return significand
        if significand <= _I64_NEG_LIMIT:
            return -significand
        return -float(significand)

    def _parse_decimal(
        self, positive: bool, significand: int, exponent: int
    ) -> float:
        self.read.discard()

        at_least_one_digit = False
        while True:
            byte = self.peek()
            if byte is None or not _is_digit(byte):
                break
            self.read.discard()
            at_least_one_digit = True
            digit = byte - ZERO
            if _overflows(significand, digit):
                # The significand is full; drop the remaining fraction.
                while _is_digit(self.peek()):
                    self.read.discard()
                break
            significand = significand * 10 + digit
            exponent -= 1

        if not at_least_one_digit:
            raise self.peek_error(ErrorCode.INVALID_NUMBER)
        return self._f64_from_parts(positive, significand, exponent)

    def _f64_from_parts(
        self, positive: bool, significand: int, exponent: int
    ) -> float:
        value = float(significand)
        while True:
            if abs(exponent) < len(POW10):
                power = POW10[abs(exponent)]
                if exponent >= 0:
                    value *= power
                    if math.isinf(value):
                        raise self.error(ErrorCode.NUMBER_OUT_OF_RANGE)
                else:
                    value /= power
                break
            if value == 0.0:
                break
            if exponent >= 0:
                raise self.error(ErrorCode.NUMBER_OUT_OF_RANGE)
            value /= 1e308
            exponent += 308
        return value if positive else -value

    # Values

    def _parse_hash(self, visitor: Any) -> Any:
        byte = self.read.next()
        if byte == ord("t"):
            return visitor.visit_bool(True)
        if byte == ord("f"):
            return visitor.visit_bool(False)
        if byte == ord("n"):
            self._parse_ident(b"il")
            return visitor.visit_nil()
        if byte == ord(":"):
            self.scratch.clear()
            name = self.read.parse_symbol(self.scratch)
            if not name:
                raise self.peek_error(ErrorCode.EXPECTED_SOME_IDENT)
            return visitor.visit_keyword(name)
        if byte is None:
            raise self.error(ErrorCode.EOF_WHILE_PARSING_VALUE)
        raise self.error(ErrorCode.EXPECTED_SOME_IDENT)

    def _visit_number(self, positive: bool, visitor: Any) -> Any:
        with ProfileContext("parse_number"):
            number = self._parse_integer(positive)
        if isinstance(number, float):
            return visitor.visit_float(number)
        return visitor.visit_int(number)

    def _parse_list(self, visitor: Any) -> Any:
        self._enter()
        self.read.discard()
        try:
            access = SeqAccess(self)
            value = visitor.visit_seq(access)
            access.finish()
        finally:
            self._leave()
        self._end_seq()
        return value

    def _parse_value(self, visitor: Any) -> Any:  # noqa: PLR0911
        if self._pending_hash:
            self._pending_hash = False
            return self._parse_hash(visitor)

        byte = self.parse_whitespace()
        if byte is None:
            raise self.peek_error(ErrorCode.EOF_WHILE_PARSING_VALUE)

        if byte == HASH:
            self.read.discard()
            return self._parse_hash(visitor)
        if byte == MINUS:
            self.read.discard()
            return self._visit_number(False, visitor)
        if _is_digit(byte):
            return self._visit_number(True, visitor)
        if byte == QUOTE:
            self.read.discard()
            self.scratch.clear()
            with ProfileContext("parse_string"):
                text = self.read.parse_str(self.scratch)
            return visitor.visit_str(text)
        if byte == LPAREN:
            with ProfileContext("parse_list"):
                return self._parse_list(visitor)
        if _is_letter(byte):
            self.scratch.clear()
            return visitor.visit_symbol(self.read.parse_symbol(self.scratch))
        raise self.peek_error(ErrorCode.EXPECTED_SOME_VALUE)

    # Entry points for visitors

    def decode_any(self, visitor: Any) -> Any:
        """Decodes the next value, letting its first byte pick the event."""
        try:
            return self._parse_value(visitor)
        except SexpError as err:
            err.fix_position(*self.read.position())
            raise

    decode_seq = decode_any

    def decode_option(self, visitor: Any) -> Any:
        """Calls visit_none for `#nil` and visit_some otherwise."""
        if self._pending_hash:
            return visitor.visit_some(self)
        try:
            byte = self.parse_whitespace()
            if byte != HASH:
                return visitor.visit_some(self)
            self.read.discard()
            if self.peek() == ord("n"):
                self.read.discard()
                self._parse_ident(b"il")
                return visitor.visit_none()
            self._pending_hash = True
            return visitor.visit_some(self)
        except SexpError as err:
            err.fix_position(*self.read.position())
            raise

    def decode_bytes(self, visitor: Any) -> Any:
        """Hands a string's raw UTF-8 bytes to visit_bytes."""
        if self._pending_hash:
            return self.decode_any(visitor)
        try:
            if self.parse_whitespace() != QUOTE:
                return self._parse_value(visitor)
            self.read.discard()
            self.scratch.clear()
            return visitor.visit_bytes(self.read.parse_str_raw(self.scratch))
        except SexpError as err:
            err.fix_position(*self.read.position())
            raise

    def decode_struct(self, visitor: Any) -> Any:
        """Decodes an association list and hands it to visit_map."""
        if self._pending_hash:
            return self.decode_any(visitor)
        try:
            byte = self.parse_whitespace()
            if byte is None:
                raise self.peek_error(ErrorCode.EOF_WHILE_PARSING_VALUE)
            if byte != LPAREN:
                raise self.peek_error(ErrorCode.EXPECTED_LIST)
            self._enter()
            self.read.discard()
            try:
                value = visitor.visit_map(MapAccess(self))
            finally:
                self._leave()
            self._end_seq()
            return value
        except SexpError as err:
            err.fix_position(*self.read.position())
            raise

    decode_map = decode_struct

    def decode_enum(self, visitor: Any) -> Any:
        """
        Decodes an enum variant and hands it to visit_enum.

        A bare string or symbol names a unit variant; a list whose head is
        the variant name carries the payload.
        """
        if self._pending_hash:
            return self.decode_any(visitor)
        try:
            byte = self.parse_whitespace()
            if byte is None:
                raise self.peek_error(ErrorCode.EOF_WHILE_PARSING_VALUE)
            if byte == QUOTE or _is_letter(byte):
                return visitor.visit_enum(UnitVariantAccess(self))
            if byte != LPAREN:
                raise self.peek_error(ErrorCode.EXPECTED_SOME_VALUE)
            self._enter()
            self.read.discard()
            try:
                value = visitor.visit_enum(VariantAccess(self))
            finally:
                self._leave()
            self._end_seq()
            return value
        except SexpError as err:
            err.fix_position(*self.read.position())
            raise


class SeqAccess:
    """
    Yields the elements of a list whose `(` is already consumed.

    Elements after the first must be separated by whitespace. A lone `.`
    ends the elements; the value after it is read with tail().
    """

    def __init__(self, de: Any, first: bool = True) -> None:
        self.de = de
        self.first = first
        self.has_tail = False
        self.tail_read = False

    def _next_byte(self) -> int:
        de = self.de
        byte = de.peek()
        if byte is None:
            raise de.peek_error(ErrorCode.EOF_WHILE_PARSING_LIST)
        if byte in WHITESPACE:
            byte = de.parse_whitespace()
            if byte is None:
                raise de.peek_error(ErrorCode.EOF_WHILE_PARSING_LIST)
        elif not self.first and byte != RPAREN:
            raise de.peek_error(ErrorCode.EXPECTED_LIST_ELT_OR_END)
        return byte

    def next_element(self, seed: Seed) -> Any:
        """Decodes the next element with seed, or returns END."""
        if self.has_tail:
            return END
        byte = self._next_byte()
        if byte == RPAREN:
            return END
        if byte == DOT:
            if self.first:
                raise self.de.peek_error(ErrorCode.EXPECTED_SOME_VALUE)
            self.has_tail = True
            return END
        self.first = False
        return seed(self.de)

    def tail(self, seed: Seed) -> Any:
        """Decodes the value after `.` once next_element has returned END."""
        if not self.has_tail or self.tail_read:
            raise ValueError("no improper tail to read")
        self.de.read.discard()
        self.tail_read = True
        return seed(self.de)

    def finish(self) -> None:
        if self.has_tail and not self.tail_read:
            raise invalid_type("improper list", "a proper list")


class MapAccess:
    """
    Yields the entries of an association list whose `(` is already consumed.

    Each entry is `(key . value)` or `(key v1 v2 ...)`, the latter standing
    for `(key . (v1 v2 ...))`. An aggregate whose first token is a key
    rather than `(` is itself a single entry, so `(a . b)` reads as one
    mapping from a to b.
    """

    def __init__(self, de: Any) -> None:
        self.de = de
        self.single: bool | None = None
        self.done = False

    def next_key(self) -> str | None:
        """Returns the next key, or None after the last entry."""
        if self.done:
            return None
        de = self.de
        byte = de.parse_whitespace()
        if byte is None:
            raise de.peek_error(ErrorCode.EOF_WHILE_PARSING_ALIST)
        if byte == RPAREN:
            return None
        if byte == LPAREN:
            de.read.discard()
            self.single = False
            return de.parse_key(ErrorCode.EOF_WHILE_PARSING_ALIST)
        if self.single is None and (byte == QUOTE or _is_letter(byte)):
            self.single = True
            self.done = True
            return de.parse_key(ErrorCode.EOF_WHILE_PARSING_ALIST)
        raise de.peek_error(ErrorCode.EXPECTED_LIST)

    def next_value(self, seed: Seed) -> Any:
        """Decodes the value of the entry whose key was just returned."""
        de = self.de
        byte = de.parse_whitespace()
        if byte is None:
            raise de.peek_error(ErrorCode.EOF_WHILE_PARSING_ALIST)
        if byte == DOT:
            de.read.discard()
            value = seed(de)
        else:
            value = seed(_EntryRest(de))

        if not self.single:
            byte = de.parse_whitespace()
            if byte == RPAREN:
                de.read.discard()
            elif byte is None:
                raise de.peek_error(ErrorCode.EOF_WHILE_PARSING_ALIST)
            else:
                raise de.peek_error(ErrorCode.TRAILING_CHARACTERS)
        return value


class _EntryRest:
    """
    Decodes the rest of an open list as one sequence value.

    Stands in for the decoder when an entry or variant uses the
    `(key v1 v2 ...)` form; the closing `)` is left to the caller.
    """

    def __init__(self, de: Decoder) -> None:
        self.de = de

    def decode_any(self, visitor: Any) -> Any:
        access = SeqAccess(self.de)
        value = visitor.visit_seq(access)
        access.finish()
        return value

    decode_seq = decode_any
    decode_bytes = decode_any

    def decode_option(self, visitor: Any) -> Any:
        if self.de.parse_whitespace() == RPAREN:
            return visitor.visit_none()
        return visitor.visit_some(self)

    def decode_struct(self, visitor: Any) -> Any:
        return visitor.visit_map(MapAccess(self.de))

    decode_map = decode_struct

    def decode_enum(self, visitor: Any) -> Any:
        return visitor.visit_enum(VariantAccess(self.de))


class VariantAccess:
    """
    Reads a data variant `(name . payload)` or `(name payload...)`.

    The surrounding `(` is consumed by the decoder, which also checks the
    closing `)` once the payload has been read.
    """

    def __init__(self, de: Any) -> None:
        self.de = de

    def variant(self) -> str:
        return self.de.parse_key(ErrorCode.EOF_WHILE_PARSING_LIST)

    def _dotted(self) -> bool:
        de = self.de
        byte = de.parse_whitespace()
        if byte is None:
            raise de.peek_error(ErrorCode.EOF_WHILE_PARSING_LIST)
        if byte == DOT:
            de.read.discard()
            return True
        return False

    def unit_variant(self) -> None:
        if self.de.parse_whitespace() not in (RPAREN, None):
            raise invalid_type("data variant", "unit variant")

    def newtype_variant(self, seed: Seed) -> Any:
        self._dotted()
        if self.de.peek() == RPAREN:
            raise invalid_type("unit variant", "newtype variant")
        return seed(self.de)

    def tuple_variant(self, visitor: Any) -> Any:
        if self._dotted():
            return self.de.decode_seq(visitor)
        return _EntryRest(self.de).decode_seq(visitor)

    def struct_variant(self, visitor: Any) -> Any:
        if self._dotted():
            return self.de.decode_struct(visitor)
        return visitor.visit_map(MapAccess(self.de))


class UnitVariantAccess:
    """Reads a unit variant written as a bare string or symbol."""

    def __init__(self, de: Any) -> None:
        self.de = de

    def variant(self) -> str:
        return self.de.parse_key(ErrorCode.EOF_WHILE_PARSING_VALUE)

    def unit_variant(self) -> None:
        return None

    def newtype_variant(self, seed: Seed) -> Any:
        raise invalid_type("unit variant", "newtype variant")

    def tuple_variant(self, visitor: Any) -> Any:
        raise invalid_type("unit variant", "tuple variant")

    def struct_variant(self, visitor: Any) -> Any:
        raise invalid_type("unit variant", "struct variant")


class StreamDecoder(Iterator[Any]):
    """
    Iterates over a whitespace-separated sequence of top-level lists.

    byte_offset() reports how far the source has been consumed after the
    last item, so a caller that hits an EOF error on truncated input can
    restart from data[byte_offset():] once more bytes have arrived.
    Errors are raised from __next__; iteration may not continue afterwards.
    """

    def __init__(self, de: Decoder, seed: Seed) -> None:
        self.de = de
        self.seed = seed
        self._offset = de.read.byte_offset()

    def byte_offset(self) -> int:
        return self._offset

    def __iter__(self) -> "StreamDecoder":
        return self

    def __next__(self) -> Any:
        de = self.de
        byte = de.parse_whitespace()
        if byte is None:
            self._offset = de.read.byte_offset()
            raise StopIteration
        if byte != LPAREN:
            raise de.peek_error(ErrorCode.EXPECTED_LIST)

        with ProfileContext("stream_item"):
            value = self.seed(de)
        self._offset = de.read.byte_offset()
        logger.debug("decoded stream item ending at byte %d", self._offset)
        return value


def make_read(source: Any) -> Read:
    """Wraps a str, a bytes-like object or a binary reader in a Read."""
    if isinstance(source, Read):
        return source
    if isinstance(source, str):
        return StrRead(source)
    if isinstance(source, bytes | bytearray | memoryview):
        return SliceRead(source)
    if hasattr(source, "read"):
        return IoRead(source)
    msg = (
        "the S-expression source must be str, bytes or a readable object, "
        f"not {type(source).__name__}"
    )
    raise TypeError(msg)


def decode_from(
    read: Read, seed: Seed, config: DecodeConfig | None = None
) -> Any:
    """Decodes exactly one document from read, rejecting trailing input."""
    de = Decoder(read, config)
    value = seed(de)
    de.end()
    return value
