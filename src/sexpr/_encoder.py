"""
Encoder and layout strategies.

The Encoder receives primitive events from sexpr._binding.produce and turns
each one into calls on a Formatter, which decides what text to write.
CompactFormatter writes single spaces only; PrettyFormatter puts every
element and entry on its own indented line.
"""

import io
import logging
import math
import re
from typing import IO
from typing import Any
from typing import Final
from typing import Protocol

from ._binding import produce
from ._config import DEFAULT_PRETTY_INDENT
from ._config import ProfileContext
from ._errors import SexpError
from ._errors import invalid_value
from ._errors import key_must_be_a_string
from ._value import I64_MIN
from ._value import KEYWORD_MARKER
from ._value import U64_MAX
from ._value import Atom
from ._value import format_float

logger = logging.getLogger(__name__)


class Writer(Protocol):
    def write(self, text: str, /) -> Any: ...


BB: Final = "b"  # \x08
TT: Final = "t"  # \x09
NN: Final = "n"  # \x0A
FF: Final = "f"  # \x0C
RR: Final = "r"  # \x0D
QU: Final = '"'  # \x22
BS: Final = "\\"  # \x5C
UU: Final = "u"  # \x00...\x1F except the ones above
__: Final = ""

# Escape to write for each byte value, or "" when it is written as is.
ESCAPE: Final = (
    #   1   2   3   4   5   6   7   8   9   A   B   C   D   E   F
    UU, UU, UU, UU, UU, UU, UU, UU, BB, TT, NN, UU, FF, RR, UU, UU,  # 0
    UU, UU, UU, UU, UU, UU, UU, UU, UU, UU, UU, UU, UU, UU, UU, UU,  # 1
    __, __, QU, __, __, __, __, __, __, __, __, __, __, __, __, __,  # 2
    __, __, __, __, __, __, __, __, __, __, __, __, __, __, __, __,  # 3
    __, __, __, __, __, __, __, __, __, __, __, __, __, __, __, __,  # 4
    __, __, __, __, __, __, __, __, __, __, __, __, BS, __, __, __,  # 5
    __, __, __, __, __, __, __, __, __, __, __, __, __, __, __, __,  # 6
    __, __, __, __, __, __, __, __, __, __, __, __, __, __, __, __,  # 7
    __, __, __, __, __, __, __, __, __, __, __, __, __, __, __, __,  # 8
    __, __, __, __, __, __, __, __, __, __, __, __, __, __, __, __,  # 9
    __, __, __, __, __, __, __, __, __, __, __, __, __, __, __, __,  # A
    __, __, __, __, __, __, __, __, __, __, __, __, __, __, __, __,  # B
    __, __, __, __, __, __, __, __, __, __, __, __, __, __, __, __,  # C
    __, __, __, __, __, __, __, __, __, __, __, __, __, __, __, __,  # D
    __, __, __, __, __, __, __, __, __, __, __, __, __, __, __, __,  # E
    __, __, __, __, __, __, __, __, __, __, __, __, __, __, __, __,  # F
)  # fmt: skip

_NEEDS_ESCAPE: Final = re.compile(r'["\\\x00-\x1f]')


class Formatter:
    """
    Writes the text for each lexical event.

    The defaults produce compact output. Subclasses override the layout
    hooks (the begin_*/end_* methods) to change whitespace; the value
    renderings rarely need to change.
    """

    def write_null(self, writer: Writer) -> None:
        writer.write("#nil")

    def write_bool(self, writer: Writer, value: bool) -> None:
        writer.write("#t" if value else "#f")

    def write_int(self, writer: Writer, value: int) -> None:
        writer.write(str(value))

    def write_float(self, writer: Writer, value: float) -> None:
        writer.write(format_float(value))

    def begin_string(self, writer: Writer) -> None:
        writer.write('"')

    def end_string(self, writer: Writer) -> None:
        writer.write('"')

    def write_string_fragment(self, writer: Writer, fragment: str) -> None:
        writer.write(fragment)

    def write_char_escape(
        self, writer: Writer, escape: str, byte: int
    ) -> None:
        if escape == UU:
            writer.write(f"\\u{byte:04x}")
        else:
            writer.write("\\" + escape)

    def write_symbol(self, writer: Writer, text: str) -> None:
        writer.write(text)

    def write_keyword(self, writer: Writer, text: str) -> None:
        writer.write(KEYWORD_MARKER + text)

    def begin_array(self, writer: Writer) -> None:
        writer.write("(")

    def end_array(self, writer: Writer) -> None:
        writer.write(")")

    def begin_array_value(self, writer: Writer, first: bool) -> None:
        if not first:
            writer.write(" ")

    def end_array_value(self, writer: Writer) -> None:
        pass

    def begin_tail(self, writer: Writer) -> None:
        writer.write(" . ")

    def begin_object(self, writer: Writer) -> None:
        writer.write("(")

    def end_object(self, writer: Writer) -> None:
        writer.write(")")

    def begin_object_key(self, writer: Writer, first: bool) -> None:
        if not first:
            writer.write(" ")
        writer.write("(")

    def end_object_key(self, writer: Writer) -> None:
        pass

    def begin_object_value(self, writer: Writer) -> None:
        writer.write(" . ")

    def end_object_value(self, writer: Writer) -> None:
        writer.write(")")

    def begin_variant(self, writer: Writer) -> None:
        writer.write("(")

    def begin_variant_value(self, writer: Writer) -> None:
        writer.write(" . ")

    def end_variant(self, writer: Writer) -> None:
        writer.write(")")


class CompactFormatter(Formatter):
    """Writes everything on one line with single spaces."""


class PrettyFormatter(Formatter):
    """
    Writes each element and entry on its own line.

    Tracks the current depth and whether the aggregate being closed held
    anything, so empty aggregates stay `()`.
    """

    def __init__(self, indent: str = DEFAULT_PRETTY_INDENT) -> None:
        if not isinstance(indent, str):
            raise TypeError("indent must be a string")
        self.indent = indent
        self.current_indent = 0
        self.has_value = False

    def _newline(self, writer: Writer) -> None:
        writer.write("\n" + self.indent * self.current_indent)

    def begin_array(self, writer: Writer) -> None:
        self.current_indent += 1
        self.has_value = False
        writer.write("(")

    def end_array(self, writer: Writer) -> None:
        self.current_indent -= 1
        if self.has_value:
            self._newline(writer)
        writer.write(")")

    def begin_array_value(self, writer: Writer, first: bool) -> None:
        self._newline(writer)

    def end_array_value(self, writer: Writer) -> None:
        self.has_value = True

    def begin_tail(self, writer: Writer) -> None:
        self._newline(writer)
        writer.write(". ")

    begin_object = begin_array
    end_object = end_array

    def begin_object_key(self, writer: Writer, first: bool) -> None:
        self._newline(writer)
        writer.write("(")

    def end_object_value(self, writer: Writer) -> None:
        writer.write(")")
        self.has_value = True


class Compound:
    """
    Receives the parts of one list, alist or data variant.

    Returned by the Encoder's serialize_seq, serialize_improper,
    serialize_map and the tuple/struct variant methods. Call end() once
    every part has been written.
    """

    def __init__(
        self, ser: "Encoder", is_map: bool, in_variant: bool = False
    ) -> None:
        self.ser = ser
        self.is_map = is_map
        self.in_variant = in_variant
        self.first = True

    def element(self, value: Any) -> None:
        ser = self.ser
        ser.formatter.begin_array_value(ser.writer, self.first)
        self.first = False
        ser.serialize(value)
        ser.formatter.end_array_value(ser.writer)

    def tail(self, value: Any) -> None:
        """Writes the final `. value` of an improper list."""
        ser = self.ser
        ser.formatter.begin_tail(ser.writer)
        ser.serialize(value)

    def key(self, key: Any) -> None:
        ser = self.ser
        ser.formatter.begin_object_key(ser.writer, self.first)
        self.first = False
        produce(key, MapKeySerializer(ser))
        ser.formatter.end_object_key(ser.writer)

    def value(self, value: Any) -> None:
        ser = self.ser
        ser.formatter.begin_object_value(ser.writer)
        ser.serialize(value)
        ser.formatter.end_object_value(ser.writer)

    def entry(self, key: Any, value: Any) -> None:
        self.key(key)
        self.value(value)

    def end(self) -> None:
        ser = self.ser
        if self.is_map:
            ser.formatter.end_object(ser.writer)
        else:
            ser.formatter.end_array(ser.writer)
        if self.in_variant:
            ser.formatter.end_variant(ser.writer)


class Encoder:
    """
    Writes S-expression text for the events produced by the binding.

    Integers must fit in 64 bits; a NaN or infinite float is written as
    `#nil`.
    """

    def __init__(
        self, writer: Writer, formatter: Formatter | None = None
    ) -> None:
        self.writer = writer
        self.formatter = formatter if formatter is not None else Formatter()

    def serialize(self, value: Any) -> None:
        produce(value, self)

    def serialize_bool(self, value: bool) -> None:
        self.formatter.write_bool(self.writer, value)

    def serialize_int(self, value: int) -> None:
        if not I64_MIN <= value <= U64_MAX:
            raise SexpError.custom(f"integer {value} does not fit in 64 bits")
        self.formatter.write_int(self.writer, value)

    def serialize_float(self, value: float) -> None:
        if not math.isfinite(value):
            self.formatter.write_null(self.writer)
        else:
            self.formatter.write_float(self.writer, value)

    def serialize_str(self, value: str) -> None:
        with ProfileContext("encode_string"):
            _write_escaped_str(self.writer, self.formatter, value)

    def serialize_bytes(self, value: bytes) -> None:
        seq = self.serialize_seq(len(value))
        for byte in value:
            seq.element(byte)
        seq.end()

    def serialize_none(self) -> None:
        self.formatter.write_null(self.writer)

    def serialize_symbol(self, text: str) -> None:
        if not Atom.symbol(text).is_readable():
            raise invalid_value(f"symbol `{text}`", "a readable symbol")
        self.formatter.write_symbol(self.writer, text)

    def serialize_keyword(self, text: str) -> None:
        if not Atom.keyword(text).is_readable():
            raise invalid_value(f"keyword `{text}`", "a readable keyword")
        self.formatter.write_keyword(self.writer, text)

    def serialize_seq(self, length: int | None = None) -> Compound:
        self.formatter.begin_array(self.writer)
        return Compound(self, is_map=False)

    serialize_improper = serialize_seq

    def serialize_map(self, length: int | None = None) -> Compound:
        self.formatter.begin_object(self.writer)
        return Compound(self, is_map=True)

    def serialize_unit_variant(self, name: str) -> None:
        self.serialize_str(name)

    def _begin_variant(self, name: str) -> None:
        self.formatter.begin_variant(self.writer)
        self.serialize_str(name)
        self.formatter.begin_variant_value(self.writer)

    def serialize_newtype_variant(self, name: str, value: Any) -> None:
        self._begin_variant(name)
        self.serialize(value)
        self.formatter.end_variant(self.writer)

    def serialize_tuple_variant(self, name: str, length: int) -> Compound:
        self._begin_variant(name)
        self.formatter.begin_array(self.writer)
        return Compound(self, is_map=False, in_variant=True)

    def serialize_struct_variant(self, name: str, length: int) -> Compound:
        self._begin_variant(name)
        self.formatter.begin_object(self.writer)
        return Compound(self, is_map=True, in_variant=True)


def _write_escaped_str(
    writer: Writer, formatter: Formatter, value: str
) -> None:
    formatter.begin_string(writer)
    start = 0
    for match in _NEEDS_ESCAPE.finditer(value):
        index = match.start()
        if start < index:
            formatter.write_string_fragment(writer, value[start:index])
        byte = ord(value[index])
        formatter.write_char_escape(writer, ESCAPE[byte], byte)
        start = index + 1
    if start < len(value):
        formatter.write_string_fragment(writer, value[start:])
    formatter.end_string(writer)


class MapKeySerializer:
    """
    Serializes alist keys, which must be string-like.

    Wraps any serializer and forwards keys to its serialize_str.

    Strings, integers, symbols, keywords and unit variants are written as
    quoted strings; anything else fails with KeyMustBeAString.
    """

    def __init__(self, ser: Any) -> None:
        self.ser = ser

    def serialize_str(self, value: str) -> Any:
        return self.ser.serialize_str(value)

    def serialize_int(self, value: int) -> Any:
        if not I64_MIN <= value <= U64_MAX:
            raise SexpError.custom(f"integer {value} does not fit in 64 bits")
        return self.ser.serialize_str(str(value))

    serialize_symbol = serialize_str
    serialize_keyword = serialize_str
    serialize_unit_variant = serialize_str

    def _reject(self, *args: Any) -> Any:
        raise key_must_be_a_string()

    serialize_bool = _reject
    serialize_float = _reject
    serialize_bytes = _reject
    serialize_none = _reject
    serialize_seq = _reject
    serialize_improper = _reject
    serialize_map = _reject
    serialize_newtype_variant = _reject
    serialize_tuple_variant = _reject
    serialize_struct_variant = _reject


def make_formatter(indent: str | int | None) -> Formatter:
    """Picks the compact layout for None and the pretty one otherwise."""
    if indent is None:
        return CompactFormatter()
    if isinstance(indent, bool) or not isinstance(indent, str | int):
        raise TypeError("indent must be a string, an integer or None")
    if isinstance(indent, int):
        indent = " " * indent
    return PrettyFormatter(indent)


def encode_to_string(value: Any, formatter: Formatter) -> str:
    buffer = io.StringIO()
    Encoder(buffer, formatter).serialize(value)
    return buffer.getvalue()


def encode_utf8(text: str) -> bytes:
    """Encodes output text, reporting lone surrogates as a data error."""
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise _unencodable(e) from e


def _unencodable(error: UnicodeEncodeError) -> SexpError:
    bad = error.object[error.start : error.end]
    return SexpError.custom(f"cannot encode {bad!r} as {error.encoding}")


class SinkWriter:
    """Forwards text to a text or binary file object, wrapping OSError."""

    def __init__(self, sink: IO[Any]) -> None:
        if not hasattr(sink, "write"):
            raise TypeError("fp must have a write() method")
        self.sink = sink
        self.binary = _is_binary(sink)

    def write(self, text: str) -> None:
        data = encode_utf8(text) if self.binary else text
        try:
            self.sink.write(data)
        except UnicodeEncodeError as e:
            # A text sink with its own encoding.
            raise _unencodable(e) from e
        except OSError as e:
            logger.debug("write to %r failed: %s", self.sink, e)
            raise SexpError.io(e) from e


def _is_binary(sink: IO[Any]) -> bool:
    if isinstance(sink, io.TextIOBase):
        return False
    if isinstance(sink, io.RawIOBase | io.BufferedIOBase):
        return True
    return "b" in getattr(sink, "mode", "")
