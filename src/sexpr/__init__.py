"""
S-expression encoding and decoding.

Decodes S-expression text into a generic value tree or into typed Python
values (dataclasses, enums, Tagged variants, containers), and encodes them
back in compact or indented form.

    tree = decode_value('(a "b" 1 2.5 #t #nil)')
    record = decode_typed('((fingerprint . "ABC") (location . "X"))', Record)
    encode({"a": [1, 2]})  # '(("a" . (1 2)))'
"""

from typing import IO
from typing import Any

from ._binding import Tagged
from ._binding import Visitor
from ._binding import decode_sexp
from ._binding import deserializer_for
from ._config import DecodeConfig
from ._config import EncodeConfig
from ._config import HotPathStats
from ._config import ProfileContext
from ._config import clear_hot_path_stats
from ._config import get_hot_path_stats
from ._decoder import END
from ._decoder import Decoder
from ._decoder import MapAccess
from ._decoder import SeqAccess
from ._decoder import StreamDecoder
from ._decoder import decode_from
from ._decoder import make_read
from ._encoder import CompactFormatter
from ._encoder import Encoder
from ._encoder import Formatter
from ._encoder import PrettyFormatter
from ._encoder import SinkWriter
from ._encoder import encode_to_string
from ._encoder import encode_utf8
from ._encoder import make_formatter
from ._errors import Category
from ._errors import ErrorCode
from ._errors import SexpDataError
from ._errors import SexpEofError
from ._errors import SexpError
from ._errors import SexpIoError
from ._errors import SexpSyntaxError
from ._read import IoRead
from ._read import SliceRead
from ._read import StrRead
from ._tree import from_value
from ._tree import to_value
from ._value import FALSE
from ._value import NIL
from ._value import TRUE
from ._value import Atom
from ._value import AtomKind
from ._value import Boolean
from ._value import ImproperList
from ._value import Nil
from ._value import Number
from ._value import NumberKind
from ._value import Sexp
from ._value import SexpList
from ._value import from_python
from ._value import keyword
from ._value import pair
from ._value import string
from ._value import symbol

__version__ = "0.1.0"

type Source = str | bytes | bytearray | memoryview | IO[bytes]


def _seed_for(cls: Any) -> Any:
    return decode_sexp if cls is None else deserializer_for(cls)


def decode_value(source: Source, config: DecodeConfig | None = None) -> Sexp:
    """
    Decodes one document into a value tree.

    Only whitespace may follow the value.
    """
    return decode_from(make_read(source), decode_sexp, config)


def decode_typed(
    source: Source, cls: Any, config: DecodeConfig | None = None
) -> Any:
    """
    Decodes one document into a value of type cls.

    The target type decides how the text is read: a dataclass expects an
    alist, a Tagged base expects a variant, list[int] expects a list of
    integers, and so on. Shape mismatches raise SexpDataError.
    """
    return decode_from(make_read(source), deserializer_for(cls), config)


def decode_stream(
    source: Source, cls: Any = None, config: DecodeConfig | None = None
) -> StreamDecoder:
    """
    Decodes a whitespace-separated sequence of top-level lists lazily.

    Items are value trees, or values of type cls when it is given.
    """
    return Decoder(make_read(source), config).into_iter(_seed_for(cls))


def loads(s: str | bytes | bytearray, cls: Any = None, **kwargs: Any) -> Any:
    """
    Parses S-expression text into a tree, or into cls when given.

    Keyword arguments configure the decoder (see DecodeConfig).
    """
    if not isinstance(s, str | bytes | bytearray):
        msg = (
            "the S-expression object must be str, bytes or bytearray, "
            f"not {type(s).__name__}"
        )
        raise TypeError(msg)

    config = DecodeConfig(**kwargs)
    return decode_from(make_read(s), _seed_for(cls), config)


def load(fp: IO[Any], cls: Any = None, **kwargs: Any) -> Any:
    """
    Parses S-expression text from a file-like object, reading it in chunks.
    """
    if not hasattr(fp, "read"):
        raise TypeError("fp must have a read() method")

    config = DecodeConfig(**kwargs)
    return decode_from(IoRead(fp), _seed_for(cls), config)


def encode(value: Any) -> str:
    """Encodes a value as compact S-expression text."""
    return encode_to_string(value, CompactFormatter())


def encode_pretty(value: Any, indent: str | int = "  ") -> str:
    """Encodes a value with one element or entry per indented line."""
    return encode_to_string(value, make_formatter(indent))


def encode_bytes(value: Any, indent: str | int | None = None) -> bytes:
    """Encodes a value as UTF-8, compact unless indent is given."""
    return encode_utf8(encode_to_string(value, make_formatter(indent)))


def dumps(value: Any, **kwargs: Any) -> str:
    """
    Serializes a value to S-expression text.

    Keyword arguments configure the encoder (see EncodeConfig).
    """
    config = EncodeConfig(**kwargs)
    return encode_to_string(value, make_formatter(config.indent_unit))


def dump(value: Any, fp: IO[Any], **kwargs: Any) -> None:
    """
    Serializes a value to a text or binary file-like object.
    """
    config = EncodeConfig(**kwargs)
    writer = SinkWriter(fp)
    Encoder(writer, make_formatter(config.indent_unit)).serialize(value)


__all__ = [
    "END",
    "FALSE",
    "NIL",
    "TRUE",
    "Atom",
    "AtomKind",
    "Boolean",
    "Category",
    "CompactFormatter",
    "DecodeConfig",
    "Decoder",
    "EncodeConfig",
    "Encoder",
    "ErrorCode",
    "Formatter",
    "HotPathStats",
    "ImproperList",
    "IoRead",
    "MapAccess",
    "Nil",
    "Number",
    "NumberKind",
    "PrettyFormatter",
    "ProfileContext",
    "SeqAccess",
    "Sexp",
    "SexpDataError",
    "SexpEofError",
    "SexpError",
    "SexpIoError",
    "SexpList",
    "SexpSyntaxError",
    "SliceRead",
    "StrRead",
    "StreamDecoder",
    "Tagged",
    "Visitor",
    "clear_hot_path_stats",
    "decode_stream",
    "decode_typed",
    "decode_value",
    "dump",
    "dumps",
    "encode",
    "encode_bytes",
    "encode_pretty",
    "from_python",
    "from_value",
    "get_hot_path_stats",
    "keyword",
    "load",
    "loads",
    "pair",
    "string",
    "symbol",
    "to_value",
]
