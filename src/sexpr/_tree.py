"""
Conversions between application values and the value tree, without text.

to_value runs the binding against a serializer that builds Sexp nodes, and
from_value runs it against a decoder that walks an existing tree. The tree
to_value builds is the one decode_value would return for encode's output.

In a tree, a data variant is a list whose head atom names the variant and
whose rest (the cdr) is the payload, and an alist entry is a list whose
head atom is the key and whose rest is the value.
"""

from typing import Any

from ._binding import decode_sexp
from ._binding import deserializer_for
from ._binding import produce
from ._decoder import END
from ._encoder import MapKeySerializer
from ._errors import SexpError
from ._errors import invalid_type
from ._value import NIL
from ._value import SEXP_TYPES
from ._value import Atom
from ._value import AtomKind
from ._value import Boolean
from ._value import ImproperList
from ._value import Nil
from ._value import Number
from ._value import NumberKind
from ._value import Sexp
from ._value import SexpList


class _TreeCompound:
    def __init__(self, ser: "TreeSerializer", head: tuple[Sexp, ...] = ()):
        self.ser = ser
        self.head = head
        self.items: list[Sexp] = []
        self.tail_value: Sexp = NIL
        self.pending_key: Sexp | None = None

    def element(self, value: Any) -> None:
        self.items.append(self.ser.serialize(value))

    def tail(self, value: Any) -> None:
        self.tail_value = self.ser.serialize(value)

    def key(self, key: Any) -> None:
        self.pending_key = produce(key, MapKeySerializer(self.ser))

    def value(self, value: Any) -> None:
        if self.pending_key is None:
            raise ValueError("value() called before key()")
        encoded = self.ser.serialize(value)
        entry = ImproperList.make((self.pending_key,), encoded)
        self.items.append(entry)
        self.pending_key = None

    def entry(self, key: Any, value: Any) -> None:
        self.key(key)
        self.value(value)

    def end(self) -> Sexp:
        body = ImproperList.make(self.items, self.tail_value)
        if self.head:
            return ImproperList.make(self.head, body)
        return body


class TreeSerializer:
    """Serializer whose every call returns the Sexp node for its event."""

    def serialize(self, value: Any) -> Sexp:
        return produce(value, self)

    def serialize_bool(self, value: bool) -> Sexp:
        return Boolean(value)

    def serialize_int(self, value: int) -> Sexp:
        try:
            return Number.from_int(value)
        except OverflowError as e:
            raise SexpError.custom(str(e)) from e

    def serialize_float(self, value: float) -> Sexp:
        number = Number.from_float(value)
        return NIL if number is None else number

    def serialize_str(self, value: str) -> Sexp:
        return Atom.string(value)

    def serialize_bytes(self, value: bytes) -> Sexp:
        return SexpList(Number.from_int(byte) for byte in value)

    def serialize_none(self) -> Sexp:
        return NIL

    def serialize_symbol(self, text: str) -> Sexp:
        return Atom.symbol(text)

    def serialize_keyword(self, text: str) -> Sexp:
        return Atom.keyword(text)

    def serialize_seq(self, length: int | None = None) -> _TreeCompound:
        return _TreeCompound(self)

    serialize_improper = serialize_seq
    serialize_map = serialize_seq

    def serialize_unit_variant(self, name: str) -> Sexp:
        return Atom.string(name)

    def serialize_newtype_variant(self, name: str, value: Any) -> Sexp:
        return ImproperList.make((Atom.string(name),), self.serialize(value))

    def serialize_tuple_variant(self, name: str, length: int) -> _TreeCompound:
        return _TreeCompound(self, (Atom.string(name),))

    serialize_struct_variant = serialize_tuple_variant


def _describe(node: Sexp) -> str:
    if isinstance(node, Atom):
        return f"{node.kind.value} `{node.text}`"
    if isinstance(node, SexpList | ImproperList):
        return "list"
    return type(node).__name__.lower()


def _key_text(key: Sexp) -> str:
    if isinstance(key, Atom) and key.kind is not AtomKind.KEYWORD:
        return key.text
    raise invalid_type(_describe(key), "an alist key")


def _split(node: Sexp, expected: str) -> tuple[Sexp, Sexp]:
    """Splits a non-empty list into its head and its rest."""
    if isinstance(node, SexpList) and node.items:
        return node.items[0], SexpList(node.items[1:])
    if isinstance(node, ImproperList):
        return node.items[0], ImproperList.make(node.items[1:], node.tail)
    raise invalid_type(_describe(node), expected)


class _TreeSeqAccess:
    def __init__(self, items: tuple[Sexp, ...], tail: Sexp | None) -> None:
        self.items = items
        self.index = 0
        self.tail_value = tail
        self.has_tail = False
        self.tail_read = False

    def next_element(self, seed: Any) -> Any:
        if self.index < len(self.items):
            item = self.items[self.index]
            self.index += 1
            return seed(TreeDecoder(item))
        self.has_tail = self.tail_value is not None
        return END

    def tail(self, seed: Any) -> Any:
        if not self.has_tail or self.tail_read:
            raise ValueError("no improper tail to read")
        self.tail_read = True
        return seed(TreeDecoder(self.tail_value))

    def finish(self) -> None:
        if self.tail_value is not None and not self.tail_read:
            raise invalid_type("improper list", "a proper list")


class _TreeMapAccess:
    def __init__(self, entries: list[tuple[str, Sexp]]) -> None:
        self.entries = entries
        self.index = 0

    def next_key(self) -> str | None:
        if self.index >= len(self.entries):
            return None
        return self.entries[self.index][0]

    def next_value(self, seed: Any) -> Any:
        value = self.entries[self.index][1]
        self.index += 1
        return seed(TreeDecoder(value))


class _TreeVariantAccess:
    def __init__(self, name: str, payload: Sexp | None) -> None:
        self.name = name
        self.payload = payload

    def variant(self) -> str:
        return self.name

    def unit_variant(self) -> None:
        if self.payload is not None and self.payload != SexpList():
            raise invalid_type("data variant", "unit variant")

    def _payload(self, expected: str) -> "TreeDecoder":
        if self.payload is None:
            raise invalid_type("unit variant", expected)
        return TreeDecoder(self.payload)

    def newtype_variant(self, seed: Any) -> Any:
        return seed(self._payload("newtype variant"))

    def tuple_variant(self, visitor: Any) -> Any:
        return self._payload("tuple variant").decode_seq(visitor)

    def struct_variant(self, visitor: Any) -> Any:
        return self._payload("struct variant").decode_struct(visitor)


class TreeDecoder:
    """Hands the nodes of an existing tree to visitors."""

    def __init__(self, value: Sexp) -> None:
        self.value = value

    def decode_any(self, visitor: Any) -> Any:  # noqa: PLR0911
        node = self.value
        if isinstance(node, Nil):
            return visitor.visit_nil()
        if isinstance(node, Boolean):
            return visitor.visit_bool(node.value)
        if isinstance(node, Number):
            if node.kind is NumberKind.FLOAT:
                return visitor.visit_float(node.value)
            return visitor.visit_int(node.value)
        if isinstance(node, Atom):
            if node.kind is AtomKind.SYMBOL:
                return visitor.visit_symbol(node.text)
            if node.kind is AtomKind.KEYWORD:
                return visitor.visit_keyword(node.text)
            return visitor.visit_str(node.text)
        if isinstance(node, SexpList):
            access = _TreeSeqAccess(node.items, None)
        else:
            access = _TreeSeqAccess(node.items, node.tail)
        value = visitor.visit_seq(access)
        access.finish()
        return value

    decode_seq = decode_any

    def decode_option(self, visitor: Any) -> Any:
        # `(key . #nil)` and `(key)` are the same tree.
        if isinstance(self.value, Nil) or self.value == SexpList():
            return visitor.visit_none()
        return visitor.visit_some(self)

    def decode_bytes(self, visitor: Any) -> Any:
        node = self.value
        if isinstance(node, Atom) and node.kind is AtomKind.STRING:
            return visitor.visit_bytes(node.text.encode("utf-8"))
        return self.decode_any(visitor)

    def decode_struct(self, visitor: Any) -> Any:
        node = self.value
        is_list = isinstance(node, SexpList | ImproperList)
        if is_list and node.items and isinstance(node.items[0], Atom):
            # A list headed by a key is a single entry.
            key, value = _split(node, "an alist entry")
            entry = (_key_text(key), value)
            return visitor.visit_map(_TreeMapAccess([entry]))
        if not isinstance(node, SexpList):
            raise invalid_type(_describe(node), "an alist")

        entries = []
        for entry in node.items:
            key, value = _split(entry, "an alist entry")
            entries.append((_key_text(key), value))
        return visitor.visit_map(_TreeMapAccess(entries))

    decode_map = decode_struct

    def decode_enum(self, visitor: Any) -> Any:
        node = self.value
        if isinstance(node, Atom):
            return visitor.visit_enum(
                _TreeVariantAccess(_key_text(node), None)
            )
        name, payload = _split(node, "an enum variant")
        return visitor.visit_enum(_TreeVariantAccess(_key_text(name), payload))


def to_value(obj: Any) -> Sexp:
    """
    Converts an application value into a tree.

    Accepts everything encode accepts; Sexp nodes are returned unchanged.
    """
    return TreeSerializer().serialize(obj)


def from_value(tree: Sexp, cls: Any = None) -> Any:
    """
    Builds a value of type cls from a tree.

    With cls omitted the tree is returned as is.
    """
    if not isinstance(tree, SEXP_TYPES):
        msg = f"tree must be a Sexp value, not {type(tree).__name__}"
        raise TypeError(msg)
    if cls is None:
        return decode_sexp(TreeDecoder(tree))
    return deserializer_for(cls)(TreeDecoder(tree))
