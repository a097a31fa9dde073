"""Runtime codecs -- the ``TypeDescriptor`` algebra produced by the compiler.

Every schema node of an OpenAPI document compiles to a :class:`Codec`: a
structural type description paired with a validator. Calling
:meth:`Codec.decode` on an untyped value (usually something that came out of
:func:`json.loads`) returns either :class:`Decoded` holding the validated
value or :class:`DecodeFailure` holding the path and a message. Decoding
never raises.

Codecs also know how to describe themselves:

* :meth:`Codec.describe` returns a canonical textual representation. Two
  codecs with the same representation are structurally identical, which is
  what the operation builder uses to deduplicate response types.
* :meth:`Codec.to_schema` serialises the codec back to an OpenAPI schema, so
  compiling the result again yields a codec with the same representation.

Building blocks::

    from codecapi import codec

    pet = codec.interface({
        "id": codec.number,
        "tag": codec.optional(codec.string),
    })
    pet.decode({"id": 1})           # Decoded(value={'id': 1})
    pet.decode({"id": "1"})         # DecodeFailure(path=('id',), ...)
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, Union


# --------------------------------------------------------------------------- #
# Decode results
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class Decoded:
    """Successful decode result."""

    value: Any

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class DecodeFailure:
    """Failed decode result.

    Attributes:
        path: Location of the offending value, as a tuple of property names
            and list indices starting at the decoded root.
        message: What was expected at that location.
    """

    path: tuple[Union[str, int], ...]
    message: str

    @property
    def ok(self) -> bool:
        return False

    def prefixed(self, segment: Union[str, int]) -> DecodeFailure:
        return DecodeFailure((segment, *self.path), self.message)

    def __str__(self) -> str:
        location = "$"
        for segment in self.path:
            location += f"[{segment}]" if isinstance(segment, int) else f".{segment}"
        return f"{location}: {self.message}"


DecodeResult = Union[Decoded, DecodeFailure]


def _type_name(raw: Any) -> str:
    if raw is None:
        return "null"
    return type(raw).__name__


def _is_object(value: Any) -> bool:
    return isinstance(value, dict)


# --------------------------------------------------------------------------- #
# Base class
# --------------------------------------------------------------------------- #


class Codec:
    """Base class for all codecs.

    Equality and hashing follow :meth:`describe`, so codecs can be compared
    structurally and collected in sets.
    """

    def decode(self, raw: Any) -> DecodeResult:
        raise NotImplementedError

    def describe(self) -> str:
        raise NotImplementedError

    def to_schema(self) -> dict[str, Any]:
        raise NotImplementedError

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Codec):
            return NotImplemented
        return self.describe() == other.describe()

    def __hash__(self) -> int:
        return hash(self.describe())

    def __repr__(self) -> str:
        return self.describe()


class _Primitive(Codec):
    def __init__(
        self,
        name: str,
        check: Callable[[Any], bool],
        schema: dict[str, Any],
    ) -> None:
        self._name = name
        self._check = check
        self._schema = schema

    def decode(self, raw: Any) -> DecodeResult:
        if self._check(raw):
            return Decoded(raw)
        return DecodeFailure((), f"expected {self._name}, got {_type_name(raw)}")

    def describe(self) -> str:
        return self._name

    def to_schema(self) -> dict[str, Any]:
        return dict(self._schema)


class _Date(Codec):
    """ISO 8601 timestamps, decoded to :class:`datetime.datetime`."""

    def decode(self, raw: Any) -> DecodeResult:
        if isinstance(raw, datetime):
            return Decoded(raw)
        if isinstance(raw, str):
            text = raw[:-1] + "+00:00" if raw.endswith(("Z", "z")) else raw
            try:
                return Decoded(datetime.fromisoformat(text))
            except ValueError:
                return DecodeFailure((), f"expected date-time string, got {raw!r}")
        return DecodeFailure((), f"expected date-time string, got {_type_name(raw)}")

    def describe(self) -> str:
        return "date"

    def to_schema(self) -> dict[str, Any]:
        return {"type": "string", "format": "date-time"}


unknown: Codec = _Primitive("unknown", lambda raw: True, {})
string: Codec = _Primitive("string", lambda raw: isinstance(raw, str), {"type": "string"})
number: Codec = _Primitive(
    "number",
    lambda raw: isinstance(raw, (int, float)) and not isinstance(raw, bool),
    {"type": "number"},
)
boolean: Codec = _Primitive("boolean", lambda raw: isinstance(raw, bool), {"type": "boolean"})
null_type: Codec = _Primitive("nullType", lambda raw: raw is None, {"type": "null"})
date: Codec = _Date()


# --------------------------------------------------------------------------- #
# Combinators
# --------------------------------------------------------------------------- #


class Exactly(Codec):
    """A single literal value (one member of an ``enum``)."""

    def __init__(self, value: Any) -> None:
        self.value = value

    def decode(self, raw: Any) -> DecodeResult:
        # bool is a subclass of int; True must not match the literal 1.
        if type(raw) is type(self.value) and raw == self.value:
            return Decoded(raw)
        return DecodeFailure((), f"expected {json.dumps(self.value)}, got {raw!r}")

    def describe(self) -> str:
        return f"exactly({json.dumps(self.value)})"

    def to_schema(self) -> dict[str, Any]:
        return {"enum": [self.value]}


class Array(Codec):
    def __init__(self, item: Codec) -> None:
        self.item = item

    def decode(self, raw: Any) -> DecodeResult:
        if not isinstance(raw, list):
            return DecodeFailure((), f"expected array, got {_type_name(raw)}")
        values = []
        for index, element in enumerate(raw):
            result = self.item.decode(element)
            if isinstance(result, DecodeFailure):
                return result.prefixed(index)
            values.append(result.value)
        return Decoded(values)

    def describe(self) -> str:
        return f"array({self.item.describe()})"

    def to_schema(self) -> dict[str, Any]:
        return {"type": "array", "items": self.item.to_schema()}


class Optional_(Codec):
    """Marks an object field as optional; standalone it also accepts ``None``."""

    def __init__(self, inner: Codec) -> None:
        self.inner = inner

    def decode(self, raw: Any) -> DecodeResult:
        if raw is None:
            return Decoded(None)
        return self.inner.decode(raw)

    def describe(self) -> str:
        return f"optional({self.inner.describe()})"

    def to_schema(self) -> dict[str, Any]:
        return self.inner.to_schema()


class Maybe(Codec):
    """Nullable wrapper produced by ``nullable: true`` and null enum members."""

    def __init__(self, inner: Codec) -> None:
        self.inner = inner

    def decode(self, raw: Any) -> DecodeResult:
        if raw is None:
            return Decoded(None)
        return self.inner.decode(raw)

    def describe(self) -> str:
        return f"maybe({self.inner.describe()})"

    def to_schema(self) -> dict[str, Any]:
        return {**self.inner.to_schema(), "nullable": True}


class Interface(Codec):
    """An object with declared fields.

    Fields are validated in declaration order and the first failure wins.
    Fields wrapped in :func:`optional` may be absent. Undeclared keys are
    passed through untouched.
    """

    def __init__(self, fields: dict[str, Codec]) -> None:
        self.fields = dict(fields)

    def decode(self, raw: Any) -> DecodeResult:
        if not _is_object(raw):
            return DecodeFailure((), f"expected object, got {_type_name(raw)}")
        value = dict(raw)
        for name, field in self.fields.items():
            if name not in raw:
                if isinstance(field, Optional_):
                    continue
                return DecodeFailure((name,), "missing required property")
            result = field.decode(raw[name])
            if isinstance(result, DecodeFailure):
                return result.prefixed(name)
            value[name] = result.value
        return Decoded(value)

    def describe(self) -> str:
        members = ", ".join(
            f"{name}?: {field.inner.describe()}"
            if isinstance(field, Optional_)
            else f"{name}: {field.describe()}"
            for name, field in self.fields.items()
        )
        return f"interface({{{members}}})"

    def to_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {name: field.to_schema() for name, field in self.fields.items()},
        }
        required = [
            name for name, field in self.fields.items() if not isinstance(field, Optional_)
        ]
        if required:
            schema["required"] = required
        return schema


class Record(Codec):
    """A string-keyed map with homogeneous values (``additionalProperties``)."""

    def __init__(self, value: Codec) -> None:
        self.value = value

    def decode(self, raw: Any) -> DecodeResult:
        if not _is_object(raw):
            return DecodeFailure((), f"expected object, got {_type_name(raw)}")
        decoded = {}
        for key, element in raw.items():
            if not isinstance(key, str):
                return DecodeFailure((), f"expected string key, got {_type_name(key)}")
            result = self.value.decode(element)
            if isinstance(result, DecodeFailure):
                return result.prefixed(key)
            decoded[key] = result.value
        return Decoded(decoded)

    def describe(self) -> str:
        return f"record(string, {self.value.describe()})"

    def to_schema(self) -> dict[str, Any]:
        if self.value is unknown:
            return {"type": "object", "additionalProperties": True}
        return {"type": "object", "additionalProperties": self.value.to_schema()}


class OneOf(Codec):
    """Structural union; members are tried in order and the first match wins."""

    def __init__(self, members: list[Codec]) -> None:
        self.members = list(members)

    def decode(self, raw: Any) -> DecodeResult:
        failures = []
        for member in self.members:
            result = member.decode(raw)
            if isinstance(result, Decoded):
                return result
            failures.append(str(result))
        return DecodeFailure((), "no union member matched: " + "; ".join(failures))

    def describe(self) -> str:
        return "oneOf([" + ", ".join(m.describe() for m in self.members) + "])"

    def to_schema(self) -> dict[str, Any]:
        return {"oneOf": [m.to_schema() for m in self.members]}


class Intersect(Codec):
    """Both sides must validate; object results are merged, right side wins otherwise."""

    def __init__(self, left: Codec, right: Codec) -> None:
        self.left = left
        self.right = right

    def decode(self, raw: Any) -> DecodeResult:
        left = self.left.decode(raw)
        if isinstance(left, DecodeFailure):
            return left
        right = self.right.decode(raw)
        if isinstance(right, DecodeFailure):
            return right
        if _is_object(left.value) and _is_object(right.value):
            return Decoded({**left.value, **right.value})
        return right

    def describe(self) -> str:
        return f"intersect({self.left.describe()}, {self.right.describe()})"

    def to_schema(self) -> dict[str, Any]:
        return {"allOf": [self.left.to_schema(), self.right.to_schema()]}


class NamedType(Codec):
    """A named model alias, shared by every use site of the same ``$ref``.

    The target codec is attached once the referenced schema has been
    compiled; until then the alias cannot decode.
    """

    def __init__(self, name: str, ref: str) -> None:
        self.name = name
        self.ref = ref
        self.target: Optional[Codec] = None

    def decode(self, raw: Any) -> DecodeResult:
        if self.target is None:
            return DecodeFailure((), f"model {self.name} is not defined")
        return self.target.decode(raw)

    def describe(self) -> str:
        return f"Models.{self.name}"

    def to_schema(self) -> dict[str, Any]:
        return {"$ref": self.ref}


# --------------------------------------------------------------------------- #
# Factory helpers
# --------------------------------------------------------------------------- #


def exactly(value: Any) -> Codec:
    return Exactly(value)


def array(item: Codec) -> Codec:
    return Array(item)


def optional(inner: Codec) -> Codec:
    return Optional_(inner)


def maybe(inner: Codec) -> Codec:
    return Maybe(inner)


def interface(fields: dict[str, Codec]) -> Codec:
    return Interface(fields)


def record(value: Codec) -> Codec:
    return Record(value)


def one_of(members: list[Codec]) -> Codec:
    return OneOf(members)


def intersect(left: Codec, right: Codec) -> Codec:
    return Intersect(left, right)
