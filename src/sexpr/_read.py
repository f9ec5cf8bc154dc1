"""
Byte sources for the decoder.

SliceRead works over an in-memory buffer and computes positions lazily;
IoRead pulls fixed-size chunks from a blocking reader and tracks positions
as it goes. Both expose the same small cursor interface.
"""

import logging
import re
from typing import IO
from typing import Final

from ._errors import ErrorCode
from ._errors import SexpError

logger = logging.getLogger(__name__)

type Position = tuple[int, int]

# Bytes that end a bare symbol or keyword.
_DELIMITER: Final = re.compile(rb'[ \t\n\r()"]')
_QUOTE_OR_ESCAPE: Final = re.compile(rb'["\\]')
_DELIMITER_BYTES: Final = frozenset(b' \t\n\r()"')
_HEX_DIGITS: Final = frozenset(b"0123456789abcdefABCDEF")

_SIMPLE_ESCAPES: Final = {
    ord('"'): b'"',
    ord("\\"): b"\\",
    ord("/"): b"/",
    ord("b"): b"\b",
    ord("f"): b"\f",
    ord("n"): b"\n",
    ord("r"): b"\r",
    ord("t"): b"\t",
}

QUOTE: Final = ord('"')
BACKSLASH: Final = ord("\\")
NEWLINE: Final = ord("\n")


def _is_char_start(byte: int) -> bool:
    # UTF-8 continuation bytes do not start a column.
    return byte & 0xC0 != 0x80


def _decode_utf8(raw: bytes, read: "Read") -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise read.error(ErrorCode.INVALID_UNICODE_CODE_POINT) from e


class Read:
    """
    Cursor interface shared by every source.

    Subclasses provide peek/next/discard, positions and the byte offset; the
    string, escape and symbol scanners here are written against that
    interface and serve sources without a faster path.
    """

    def peek(self) -> int | None:
        """Returns the next byte without consuming it, or None at EOF."""
        raise NotImplementedError

    def next(self) -> int | None:
        """Consumes and returns the next byte, or None at EOF."""
        raise NotImplementedError

    def discard(self) -> None:
        """Consumes the byte returned by the last peek."""
        raise NotImplementedError

    def position(self) -> Position:
        """Line and column of the most recently consumed byte."""
        raise NotImplementedError

    def peek_position(self) -> Position:
        """Line and column of the byte peek() would return."""
        raise NotImplementedError

    def byte_offset(self) -> int:
        """Number of bytes consumed so far."""
        raise NotImplementedError

    def error(self, code: ErrorCode) -> SexpError:
        return SexpError.syntax(code, *self.position())

    def peek_error(self, code: ErrorCode) -> SexpError:
        return SexpError.syntax(code, *self.peek_position())

    def parse_str(self, scratch: bytearray) -> str:
        """Reads a string body; the opening quote is already consumed."""
        return _decode_utf8(self.parse_str_raw(scratch), self)

    def parse_str_raw(self, scratch: bytearray) -> bytes:
        """Reads a string body with escapes resolved, without UTF-8 checks."""
        while True:
            byte = self.next()
            if byte is None:
                raise self.error(ErrorCode.EOF_WHILE_PARSING_STRING)
            if byte == QUOTE:
                return bytes(scratch)
            if byte == BACKSLASH:
                parse_escape(self, scratch)
            else:
                scratch.append(byte)

    def parse_symbol(self, scratch: bytearray) -> str:
        """Reads bytes up to the next delimiter, starting at peek()."""
        while True:
            byte = self.peek()
            if byte is None or byte in _DELIMITER_BYTES:
                return _decode_utf8(bytes(scratch), self)
            self.discard()
            scratch.append(byte)


def _decode_hex_escape(read: Read) -> int:
    value = 0
    for _ in range(4):
        byte = read.next()
        if byte is None:
            raise read.error(ErrorCode.EOF_WHILE_PARSING_STRING)
        if byte not in _HEX_DIGITS:
            raise read.error(ErrorCode.INVALID_ESCAPE)
        value = value * 16 + int(chr(byte), 16)
    return value


def parse_escape(read: Read, scratch: bytearray) -> None:
    """Resolves one escape sequence; the backslash is already consumed."""
    byte = read.next()
    if byte is None:
        raise read.error(ErrorCode.EOF_WHILE_PARSING_STRING)

    simple = _SIMPLE_ESCAPES.get(byte)
    if simple is not None:
        scratch += simple
        return
    if byte != ord("u"):
        raise read.error(ErrorCode.INVALID_ESCAPE)

    code_point = _decode_hex_escape(read)
    if 0xDC00 <= code_point <= 0xDFFF:
        raise read.error(ErrorCode.LONE_LEADING_SURROGATE_IN_HEX_ESCAPE)
    if 0xD800 <= code_point <= 0xDBFF:
        if read.next() != BACKSLASH:
            raise read.error(ErrorCode.UNEXPECTED_END_OF_HEX_ESCAPE)
        if read.next() != ord("u"):
            raise read.error(ErrorCode.UNEXPECTED_END_OF_HEX_ESCAPE)
        low = _decode_hex_escape(read)
        if not 0xDC00 <= low <= 0xDFFF:
            raise read.error(ErrorCode.LONE_LEADING_SURROGATE_IN_HEX_ESCAPE)
        code_point = 0x10000 + ((code_point - 0xD800) << 10) + (low - 0xDC00)

    scratch += chr(code_point).encode("utf-8")


class SliceRead(Read):
    """
    Reads from an in-memory byte buffer.

    Positions are derived from the index only when an error needs one, and
    strings without escapes are sliced straight out of the buffer instead of
    being copied through the scratch buffer.
    """

    def __init__(self, data: bytes | bytearray | memoryview) -> None:
        self.data: Final = bytes(data)
        self.index = 0

    def peek(self) -> int | None:
        if self.index < len(self.data):
            return self.data[self.index]
        return None

    def next(self) -> int | None:
        if self.index < len(self.data):
            byte = self.data[self.index]
            self.index += 1
            return byte
        return None

    def discard(self) -> None:
        self.index += 1

    def position_of_index(self, index: int) -> Position:
        line_start = self.data.rfind(b"\n", 0, index) + 1
        line = self.data.count(b"\n", 0, index) + 1
        column = sum(
            1 for byte in self.data[line_start:index] if _is_char_start(byte)
        )
        return line, column

    def position(self) -> Position:
        return self.position_of_index(self.index)

    def peek_position(self) -> Position:
        return self.position_of_index(min(self.index + 1, len(self.data)))

    def byte_offset(self) -> int:
        return self.index

    def parse_str_raw(self, scratch: bytearray) -> bytes:
        start = self.index
        while True:
            match = _QUOTE_OR_ESCAPE.search(self.data, self.index)
            if match is None:
                self.index = len(self.data)
                raise self.error(ErrorCode.EOF_WHILE_PARSING_STRING)

            self.index = match.start()
            if self.data[self.index] == QUOTE:
                if not scratch:
                    # Nothing was unescaped: borrow the slice directly.
                    raw = self.data[start : self.index]
                    self.index += 1
                    return raw
                scratch += self.data[start : self.index]
                self.index += 1
                return bytes(scratch)

            scratch += self.data[start : self.index]
            self.index += 1
            parse_escape(self, scratch)
            start = self.index

    def parse_symbol(self, scratch: bytearray) -> str:
        match = _DELIMITER.search(self.data, self.index)
        end = len(self.data) if match is None else match.start()
        raw = self.data[self.index : end]
        self.index = end
        return _decode_utf8(raw, self)


class StrRead(SliceRead):
    """Reads from a str by way of its UTF-8 encoding."""

    def __init__(self, text: str) -> None:
        try:
            data = text.encode("utf-8")
        except UnicodeEncodeError as e:
            # A lone surrogate has no UTF-8 form; report where it sits.
            line = text.count("\n", 0, e.start) + 1
            column = e.start - text.rfind("\n", 0, e.start)
            raise SexpError.syntax(
                ErrorCode.INVALID_UNICODE_CODE_POINT, line, column
            ) from e
        super().__init__(data)


class IoRead(Read):
    """
    Reads from a blocking file-like object, one chunk at a time.

    Only as many bytes as the decoder needs are pulled from the reader, so a
    stream can be decoded while it is still being written.
    """

    def __init__(self, reader: IO[bytes], chunk_size: int = 8192) -> None:
        if not hasattr(reader, "read"):
            raise TypeError("reader must have a read() method")
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.reader = reader
        self.chunk_size = chunk_size
        self._buffer = b""
        self._pos = 0
        self._consumed_before = 0
        self._eof = False
        self.line = 1
        self.column = 0

    def _fill(self) -> bool:
        if self._eof:
            return False
        try:
            chunk = self.reader.read(self.chunk_size)
        except OSError as e:
            logger.debug("read from %r failed: %s", self.reader, e)
            raise SexpError.io(e) from e
        if isinstance(chunk, str):
            # Lone surrogates reach the UTF-8 checks as invalid bytes.
            chunk = chunk.encode("utf-8", "surrogatepass")
        if not chunk:
            self._eof = True
            return False
        self._consumed_before += len(self._buffer)
        self._buffer = chunk
        self._pos = 0
        return True

    def peek(self) -> int | None:
        if self._pos >= len(self._buffer) and not self._fill():
            return None
        return self._buffer[self._pos]

    def next(self) -> int | None:
        byte = self.peek()
        if byte is not None:
            self._advance(byte)
        return byte

    def discard(self) -> None:
        self._advance(self._buffer[self._pos])

    def _advance(self, byte: int) -> None:
        self._pos += 1
        if byte == NEWLINE:
            self.line += 1
            self.column = 0
        elif _is_char_start(byte):
            self.column += 1

    def position(self) -> Position:
        return self.line, self.column

    def peek_position(self) -> Position:
        return self.line, self.column + 1

    def byte_offset(self) -> int:
        return self._consumed_before + self._pos
