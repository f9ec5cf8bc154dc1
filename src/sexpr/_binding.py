"""
Typed binding between application types and the codec.

Decoding is driven by the target type: deserializer_for(tp) returns a seed,
a callable that asks a decoder for the shape tp needs and hands a Visitor
to it. Encoding is driven by the runtime value: produce(value, ser) picks
the serializer call for each value it meets.

Both directions use the same mapping:

    None / Nil            #nil
    bool / Boolean        #t, #f
    int, float / Number   integers and decimals
    str / Atom            strings, symbols, keywords
    bytes                 a list of byte values
    list, tuple, set      lists
    dict, dataclass       association lists ((key . value) ...)
    Enum member           its name, as a string
    Tagged subclass       ("Name" . payload)
"""

import dataclasses
import enum
import functools
import types
import typing
from collections.abc import Callable
from collections.abc import Iterable
from collections.abc import Mapping
from collections.abc import Sequence
from typing import Any
from typing import ClassVar

from ._decoder import END
from ._errors import SexpError
from ._errors import duplicate_field
from ._errors import invalid_length
from ._errors import invalid_type
from ._errors import invalid_value
from ._errors import missing_field
from ._errors import unknown_variant
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
from ._value import format_float

type Seed = Callable[[Any], Any]

SHAPES = frozenset({"unit", "newtype", "tuple", "struct"})


class Visitor:
    """
    Receives one decoded event and builds a value from it.

    Every method rejects its event with a Data error by default, naming
    `expecting` in the message; subclasses override the events they accept.
    visit_some gets a decoder for the wrapped value, visit_seq a SeqAccess,
    visit_map a MapAccess and visit_enum a variant access.
    """

    expecting = "any value"

    def _reject(self, unexpected: str) -> SexpError:
        return invalid_type(unexpected, self.expecting)

    def visit_nil(self) -> Any:
        raise self._reject("nil")

    def visit_bool(self, value: bool) -> Any:
        raise self._reject(f"boolean `{'#t' if value else '#f'}`")

    def visit_int(self, value: int) -> Any:
        raise self._reject(f"integer `{value}`")

    def visit_float(self, value: float) -> Any:
        raise self._reject(f"floating point `{format_float(value)}`")

    def visit_str(self, value: str) -> Any:
        raise self._reject(f'string "{value}"')

    def visit_symbol(self, value: str) -> Any:
        raise self._reject(f"symbol `{value}`")

    def visit_keyword(self, value: str) -> Any:
        raise self._reject(f"keyword `#:{value}`")

    def visit_bytes(self, value: bytes) -> Any:
        raise self._reject("byte array")

    def visit_none(self) -> Any:
        return self.visit_nil()

    def visit_some(self, de: Any) -> Any:
        raise self._reject("option")

    def visit_seq(self, access: Any) -> Any:
        raise self._reject("sequence")

    def visit_map(self, access: Any) -> Any:
        raise self._reject("alist")

    def visit_enum(self, access: Any) -> Any:
        raise self._reject("enum")


class SexpVisitor(Visitor):
    """Builds the value tree for whatever the decoder reads."""

    expecting = "any S-expression"

    def visit_nil(self) -> Sexp:
        return NIL

    def visit_bool(self, value: bool) -> Sexp:
        return Boolean(value)

    def visit_int(self, value: int) -> Sexp:
        return Number.from_int(value)

    def visit_float(self, value: float) -> Sexp:
        number = Number.from_float(value)
        return NIL if number is None else number

    def visit_str(self, value: str) -> Sexp:
        return Atom.string(value)

    def visit_symbol(self, value: str) -> Sexp:
        return Atom.symbol(value)

    def visit_keyword(self, value: str) -> Sexp:
        return Atom.keyword(value)

    def visit_bytes(self, value: bytes) -> Sexp:
        return SexpList(Number.from_int(byte) for byte in value)

    def visit_some(self, de: Any) -> Sexp:
        return decode_sexp(de)

    def visit_seq(self, access: Any) -> Sexp:
        items = []
        while (item := access.next_element(decode_sexp)) is not END:
            items.append(item)
        if access.has_tail:
            return ImproperList.make(items, access.tail(decode_sexp))
        return SexpList(items)

    def visit_map(self, access: Any) -> Sexp:
        entries = []
        while (key := access.next_key()) is not None:
            value = access.next_value(decode_sexp)
            entries.append(ImproperList.make((Atom.symbol(key),), value))
        return SexpList(entries)


_SEXP_VISITOR = SexpVisitor()


def decode_sexp(de: Any) -> Sexp:
    return de.decode_any(_SEXP_VISITOR)


class IgnoredVisitor(Visitor):
    """Reads and discards one value of any shape."""

    def visit_nil(self) -> None:
        return None

    def visit_bool(self, value: bool) -> None:
        return None

    def visit_int(self, value: int) -> None:
        return None

    def visit_float(self, value: float) -> None:
        return None

    def visit_str(self, value: str) -> None:
        return None

    visit_symbol = visit_str
    visit_keyword = visit_str

    def visit_bytes(self, value: bytes) -> None:
        return None

    def visit_some(self, de: Any) -> None:
        return ignore(de)

    def visit_seq(self, access: Any) -> None:
        while access.next_element(ignore) is not END:
            pass
        if access.has_tail:
            access.tail(ignore)

    def visit_map(self, access: Any) -> None:
        while access.next_key() is not None:
            access.next_value(ignore)


_IGNORED_VISITOR = IgnoredVisitor()


def ignore(de: Any) -> None:
    return de.decode_any(_IGNORED_VISITOR)


class _NoneVisitor(Visitor):
    expecting = "nil"

    def visit_nil(self) -> None:
        return None


class _BoolVisitor(Visitor):
    expecting = "a boolean"

    def visit_bool(self, value: bool) -> bool:
        return value


class _IntVisitor(Visitor):
    expecting = "an integer"

    def visit_int(self, value: int) -> int:
        return value


class _FloatVisitor(Visitor):
    expecting = "a float"

    def visit_int(self, value: int) -> float:
        return float(value)

    def visit_float(self, value: float) -> float:
        return value


class _StrVisitor(Visitor):
    expecting = "a string"

    def visit_str(self, value: str) -> str:
        return value

    visit_symbol = visit_str


class _BytesVisitor(Visitor):
    expecting = "a byte array"

    def visit_bytes(self, value: bytes) -> bytes:
        return value

    def visit_str(self, value: str) -> bytes:
        return value.encode("utf-8")

    def visit_seq(self, access: Any) -> bytes:
        data = bytearray()
        int_seed = deserializer_for(int)
        while (byte := access.next_element(int_seed)) is not END:
            if not 0 <= byte <= 0xFF:
                raise invalid_value(f"integer `{byte}`", "a byte")
            data.append(byte)
        return bytes(data)


class _ScalarUnionVisitor(Visitor):
    """Accepts any scalar type named in a union like int | str."""

    def __init__(self, members: tuple[type, ...]) -> None:
        self.members = members
        self.expecting = " or ".join(member.__name__ for member in members)

    def visit_nil(self) -> Any:
        if type(None) in self.members:
            return None
        return super().visit_nil()

    def visit_bool(self, value: bool) -> Any:
        if bool in self.members:
            return value
        return super().visit_bool(value)

    def visit_int(self, value: int) -> Any:
        if int in self.members:
            return value
        if float in self.members:
            return float(value)
        return super().visit_int(value)

    def visit_float(self, value: float) -> Any:
        if float in self.members:
            return value
        return super().visit_float(value)

    def visit_str(self, value: str) -> Any:
        if str in self.members:
            return value
        return super().visit_str(value)

    def visit_symbol(self, value: str) -> Any:
        if str in self.members:
            return value
        return super().visit_symbol(value)


class _OptionVisitor(Visitor):
    def __init__(self, seed: Seed, expecting: str) -> None:
        self.seed = seed
        self.expecting = expecting

    def visit_nil(self) -> None:
        return None

    def visit_some(self, de: Any) -> Any:
        return self.seed(de)


class _ListVisitor(Visitor):
    def __init__(self, seed: Seed, build: Callable[[list], Any]) -> None:
        self.seed = seed
        self.build = build
        self.expecting = "a sequence"

    def visit_seq(self, access: Any) -> Any:
        items = []
        while (item := access.next_element(self.seed)) is not END:
            items.append(item)
        return self.build(items)


class _TupleVisitor(Visitor):
    """Reads exactly len(seeds) elements."""

    def __init__(
        self,
        seeds: list[Seed],
        build: Callable[[list], Any] = tuple,
        expecting: str | None = None,
    ) -> None:
        self.seeds = seeds
        self.build = build
        self.expecting = expecting or f"a tuple of size {len(seeds)}"

    def visit_seq(self, access: Any) -> Any:
        items = []
        for index, seed in enumerate(self.seeds):
            item = access.next_element(seed)
            if item is END:
                raise invalid_length(index, self.expecting)
            items.append(item)
        if access.next_element(ignore) is not END:
            raise invalid_length(len(self.seeds) + 1, self.expecting)
        return self.build(items)


class _DictVisitor(Visitor):
    expecting = "an alist"

    def __init__(self, key: Callable[[str], Any], seed: Seed) -> None:
        self.key = key
        self.seed = seed

    def visit_map(self, access: Any) -> dict:
        result = {}
        while (key := access.next_key()) is not None:
            result[self.key(key)] = access.next_value(self.seed)
        return result


class _DataclassVisitor(Visitor):
    """
    Builds a dataclass from an alist of its fields.

    Unknown keys are skipped. A missing field falls back to its default,
    or to None when its type is optional.
    """

    def __init__(self, cls: type) -> None:
        self.cls = cls
        self.expecting = f"struct {cls.__name__}"

    def visit_map(self, access: Any) -> Any:
        hints = _type_hints(self.cls)
        fields = _init_fields(self.cls)
        values: dict[str, Any] = {}
        while (key := access.next_key()) is not None:
            if key not in fields:
                access.next_value(ignore)
                continue
            if key in values:
                raise duplicate_field(key)
            values[key] = access.next_value(deserializer_for(hints[key]))

        for name, field in fields.items():
            if name in values or _has_default(field):
                continue
            if not _is_optional(hints[name]):
                raise missing_field(name)
            values[name] = None
        return self.cls(**values)


class _EnumVisitor(Visitor):
    def __init__(self, cls: type[enum.Enum]) -> None:
        self.cls = cls
        self.expecting = f"enum {cls.__name__}"

    def visit_enum(self, access: Any) -> enum.Enum:
        name = access.variant()
        member = self.cls.__members__.get(name)
        if member is None:
            raise unknown_variant(name, list(self.cls.__members__))
        access.unit_variant()
        return member


class Tagged:
    """
    Base class for data-carrying enums.

    Subclass it once for the enum itself, then once per variant. Variants
    are usually dataclasses and name their payload shape with a class
    keyword; the variant name on the wire is the class name:

        class Shape(Tagged):
            pass

        @dataclass
        class Circle(Shape, shape="newtype"):
            radius: float

        @dataclass
        class Rect(Shape):
            width: float
            height: float

    Without a shape keyword a variant with no fields is a unit variant and
    any other variant is a struct variant.
    """

    __variant_shape__: ClassVar[str | None] = None

    def __init_subclass__(
        cls, shape: str | None = None, **kwargs: Any
    ) -> None:
        super().__init_subclass__(**kwargs)
        if shape is not None and shape not in SHAPES:
            raise TypeError(f"shape must be one of {sorted(SHAPES)}")
        cls.__variant_shape__ = shape


def variant_shape(cls: type) -> str:
    """Returns the payload shape of a Tagged variant class."""
    shape = cls.__dict__.get("__variant_shape__")
    if shape is None:
        shape = "struct" if _init_fields(cls) else "unit"
    if shape == "newtype" and len(_init_fields(cls)) != 1:
        msg = f"newtype variant {cls.__name__} needs exactly one field"
        raise TypeError(msg)
    return shape


def _variants_of(cls: type) -> dict[str, type]:
    descendants = []
    pending = list(cls.__subclasses__())
    while pending:
        sub = pending.pop(0)
        descendants.append(sub)
        pending.extend(sub.__subclasses__())
    # An enum root with variants is not a variant itself.
    if descendants and Tagged in cls.__bases__:
        candidates = descendants
    else:
        candidates = [cls, *descendants]
    return {variant.__name__: variant for variant in candidates}


class _TaggedVisitor(Visitor):
    def __init__(self, variants: dict[str, type], name: str) -> None:
        self.variants = variants
        self.expecting = f"enum {name}"

    def visit_enum(self, access: Any) -> Any:
        name = access.variant()
        variant = self.variants.get(name)
        if variant is None:
            raise unknown_variant(name, list(self.variants))

        shape = variant_shape(variant)
        if shape == "unit":
            access.unit_variant()
            return variant()
        if shape == "struct":
            return access.struct_variant(_DataclassVisitor(variant))

        hints = _type_hints(variant)
        seeds = [
            deserializer_for(hints[field]) for field in _init_fields(variant)
        ]
        if shape == "newtype":
            return variant(access.newtype_variant(seeds[0]))
        values = access.tuple_variant(
            _TupleVisitor(seeds, expecting=f"tuple variant {name}")
        )
        return variant(*values)


def _tagged_deserializer(roots: tuple[type, ...], name: str) -> Seed:
    def seed(de: Any) -> Any:
        variants: dict[str, type] = {}
        for root in roots:
            variants.update(_variants_of(root))
        return de.decode_enum(_TaggedVisitor(variants, name))

    return seed


def _type_hints(cls: type) -> dict[str, Any]:
    return _cached_type_hints(cls)


@functools.cache
def _cached_type_hints(cls: type) -> dict[str, Any]:
    return typing.get_type_hints(cls)


def _init_fields(cls: type) -> dict[str, dataclasses.Field]:
    if not dataclasses.is_dataclass(cls):
        return {}
    return {
        field.name: field for field in dataclasses.fields(cls) if field.init
    }


def _has_default(field: dataclasses.Field) -> bool:
    return (
        field.default is not dataclasses.MISSING
        or field.default_factory is not dataclasses.MISSING
    )


def _union_args(tp: Any) -> tuple[Any, ...] | None:
    origin = typing.get_origin(tp)
    if origin is typing.Union or origin is types.UnionType:
        return typing.get_args(tp)
    return None


def _is_optional(tp: Any) -> bool:
    args = _union_args(tp)
    return tp is type(None) or tp is Any or (
        args is not None and type(None) in args
    )


def _is_tagged(tp: Any) -> bool:
    return isinstance(tp, type) and issubclass(tp, Tagged) and tp is not Tagged


def _is_namedtuple(tp: Any) -> bool:
    return (
        isinstance(tp, type)
        and issubclass(tp, tuple)
        and hasattr(tp, "_fields")
    )


def _key_converter(tp: Any) -> Callable[[str], Any]:
    if tp is str or tp is Any:
        return str
    if tp is int:

        def to_int(key: str) -> int:
            try:
                return int(key)
            except ValueError:
                raise invalid_value(
                    f'string "{key}"', "an integer key"
                ) from None

        return to_int
    if isinstance(tp, type) and issubclass(tp, enum.Enum):

        def to_member(key: str) -> enum.Enum:
            member = tp.__members__.get(key)
            if member is None:
                raise unknown_variant(key, list(tp.__members__))
            return member

        return to_member
    raise TypeError(f"unsupported alist key type: {tp!r}")


def _tree_seed(cls: type) -> Seed:
    def seed(de: Any) -> Any:
        value = decode_sexp(de)
        if not isinstance(value, cls):
            raise invalid_type(type(value).__name__, cls.__name__)
        return value

    return seed


@functools.cache
def deserializer_for(tp: Any) -> Seed:  # noqa: PLR0911, PLR0912
    """
    Returns the seed that decodes one value of type tp.

    Raises TypeError for types the binding does not know how to build.
    """
    if tp is Any or tp is object or tp is Sexp:
        return decode_sexp
    if tp in SEXP_TYPES:
        return _tree_seed(tp)
    custom = getattr(tp, "__sexpr_deserialize__", None)
    if custom is not None:
        return custom
    if tp is None or tp is type(None):
        return lambda de: de.decode_any(_NoneVisitor())
    if tp is bool:
        return lambda de: de.decode_any(_BoolVisitor())
    if tp is int:
        return lambda de: de.decode_any(_IntVisitor())
    if tp is float:
        return lambda de: de.decode_any(_FloatVisitor())
    if tp is str:
        return lambda de: de.decode_any(_StrVisitor())
    if tp is bytes:
        return lambda de: de.decode_bytes(_BytesVisitor())

    union = _union_args(tp)
    if union is not None:
        return _union_deserializer(tp, union)

    origin = typing.get_origin(tp) or tp
    args = typing.get_args(tp)

    if origin is tuple and args and args[-1] is not Ellipsis:
        seeds = [deserializer_for(arg) for arg in args]
        return lambda de: de.decode_seq(_TupleVisitor(seeds))
    if origin in (list, tuple, set, frozenset, Sequence, Iterable):
        seed = deserializer_for(args[0] if args else Any)
        build = origin if origin in (tuple, set, frozenset) else list
        return lambda de: de.decode_seq(_ListVisitor(seed, build))
    if origin in (dict, Mapping):
        key = _key_converter(args[0] if args else str)
        value_seed = deserializer_for(args[1] if args else Any)
        return lambda de: de.decode_map(_DictVisitor(key, value_seed))

    if not isinstance(origin, type):
        raise TypeError(f"unsupported target type: {tp!r}")
    if _is_tagged(origin):
        return _tagged_deserializer((origin,), origin.__name__)
    if issubclass(origin, enum.Enum):
        return lambda de: de.decode_enum(_EnumVisitor(origin))
    if dataclasses.is_dataclass(origin):
        return lambda de: de.decode_struct(_DataclassVisitor(origin))
    if _is_namedtuple(origin):
        return _namedtuple_deserializer(origin)
    raise TypeError(f"unsupported target type: {tp!r}")


def _union_deserializer(tp: Any, members: tuple[Any, ...]) -> Seed:
    rest = tuple(member for member in members if member is not type(None))
    if len(rest) < len(members):
        inner_type = rest[0] if len(rest) == 1 else typing.Union[rest]
        inner = deserializer_for(inner_type)
        expecting = f"option of {_type_name(tp)}"
        return lambda de: de.decode_option(_OptionVisitor(inner, expecting))

    if all(_is_tagged(member) for member in members):
        return _tagged_deserializer(members, _type_name(tp))

    if all(member in (bool, int, float, str) for member in members):
        return lambda de: de.decode_any(_ScalarUnionVisitor(members))
    raise TypeError(f"unsupported union: {tp!r}")


def _namedtuple_deserializer(cls: type) -> Seed:
    def seed(de: Any) -> Any:
        hints = _type_hints(cls)
        seeds = [
            deserializer_for(hints.get(name, Any)) for name in cls._fields
        ]
        visitor = _TupleVisitor(
            seeds, lambda items: cls(*items), f"tuple {cls.__name__}"
        )
        return de.decode_seq(visitor)

    return seed


def _type_name(tp: Any) -> str:
    return getattr(tp, "__name__", None) or repr(tp)


def produce(value: Any, ser: Any) -> Any:  # noqa: PLR0911, PLR0912
    """
    Emits the serializer calls for one value and returns what the
    serializer returns.

    Raises TypeError for values the binding does not know how to write.
    """
    if value is None or isinstance(value, Nil):
        return ser.serialize_none()
    if isinstance(value, Boolean):
        return ser.serialize_bool(value.value)
    if isinstance(value, Number):
        if value.kind is NumberKind.FLOAT:
            return ser.serialize_float(value.value)
        return ser.serialize_int(value.value)
    if isinstance(value, Atom):
        if value.kind is AtomKind.SYMBOL:
            return ser.serialize_symbol(value.text)
        if value.kind is AtomKind.KEYWORD:
            return ser.serialize_keyword(value.text)
        return ser.serialize_str(value.text)
    if isinstance(value, SexpList):
        return _produce_seq(value.items, ser)
    if isinstance(value, ImproperList):
        seq = ser.serialize_improper(len(value.items))
        for item in value.items:
            seq.element(item)
        seq.tail(value.tail)
        return seq.end()

    custom = getattr(value, "__sexpr_serialize__", None)
    if custom is not None:
        return custom(ser)
    if isinstance(value, Tagged):
        return _produce_variant(value, ser)
    if isinstance(value, enum.Enum):
        return ser.serialize_unit_variant(value.name)
    if isinstance(value, bool):
        return ser.serialize_bool(value)
    if isinstance(value, int):
        return ser.serialize_int(value)
    if isinstance(value, float):
        return ser.serialize_float(value)
    if isinstance(value, str):
        return ser.serialize_str(value)
    if isinstance(value, bytes | bytearray | memoryview):
        return ser.serialize_bytes(bytes(value))
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = dataclasses.fields(value)
        record = ser.serialize_map(len(fields))
        for field in fields:
            record.entry(field.name, getattr(value, field.name))
        return record.end()
    if isinstance(value, Mapping):
        record = ser.serialize_map(len(value))
        for key, item in value.items():
            record.entry(key, item)
        return record.end()
    if isinstance(value, list | tuple | set | frozenset):
        return _produce_seq(value, ser)
    msg = (
        f"Object of type {type(value).__name__} "
        "is not S-expression serializable"
    )
    raise TypeError(msg)


def _produce_seq(items: Iterable[Any], ser: Any) -> Any:
    items = list(items)
    seq = ser.serialize_seq(len(items))
    for item in items:
        seq.element(item)
    return seq.end()


def _produce_variant(value: Tagged, ser: Any) -> Any:
    cls = type(value)
    name = cls.__name__
    shape = variant_shape(cls)
    if shape == "unit":
        return ser.serialize_unit_variant(name)

    fields = list(_init_fields(cls))
    if shape == "newtype":
        return ser.serialize_newtype_variant(name, getattr(value, fields[0]))
    if shape == "tuple":
        compound = ser.serialize_tuple_variant(name, len(fields))
        for field in fields:
            compound.element(getattr(value, field))
        return compound.end()
    compound = ser.serialize_struct_variant(name, len(fields))
    for field in fields:
        compound.entry(field, getattr(value, field))
    return compound.end()
