"""Compile schema nodes into codecs.

This is the core of the OpenAPI-to-type conversion. :class:`TypeSynthesizer`
walks a schema and returns the matching :class:`~codecapi.codec.Codec`,
applying the first rule that matches:

1. ``$ref`` -- a shared named model (see below).
2. ``oneOf`` / ``anyOf`` -- a union of the members.
3. ``allOf`` -- a left-folded intersection of the members.
4. ``items`` -- an array.
5. ``properties`` / ``additionalProperties`` -- an object, intersected with
   a string-keyed record when additional properties are allowed.
6. ``enum`` -- a union of literals; null members make it nullable.
7. ``format: binary`` -- a string.
8. ``type`` -- the matching primitive (``date-time`` strings become dates).
9. anything else -- ``unknown``.

Every result is wrapped in ``maybe`` when the schema says ``nullable``.

Named models are memoised per ``$ref`` in the
:class:`CompilationContext`. A reference met again while its own schema is
still being compiled (a cycle) compiles to ``unknown`` so recursion stays
finite; the alias itself is only marked defined once its schema is done.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Mapping, Optional

from codecapi import codec
from codecapi.codec import Codec
from codecapi.compiler.naming import NameRegistry, name_for
from codecapi.exceptions import EmptyAllOf, EmptyEnum
from codecapi.parser.resolver import ReferenceResolver, is_reference

logger = logging.getLogger(__name__)


class CompilationContext:
    """State of one compilation run, threaded through the synthesizer.

    Args:
        resolver: Resolver over the document being compiled.
        registry: Model-name registry; a fresh one is created when omitted.
    """

    def __init__(
        self,
        resolver: ReferenceResolver,
        registry: Optional[NameRegistry] = None,
    ) -> None:
        self.resolver = resolver
        self.registry = registry or NameRegistry()
        self._frozen: Optional[Mapping[str, Codec]] = None

    def freeze(self) -> Mapping[str, Codec]:
        """Return the compiled models as a read-only mapping.

        Further calls return the same mapping; models registered after the
        first call are not visible through it.
        """
        if self._frozen is None:
            self._frozen = MappingProxyType(self.registry.models())
        return self._frozen


class TypeSynthesizer:
    """Turn schema nodes into codecs within one :class:`CompilationContext`."""

    def __init__(self, context: CompilationContext) -> None:
        self.context = context

    def synthesize(self, schema: Any) -> Codec:
        base = self._base_type(schema)
        if isinstance(schema, dict) and schema.get("nullable"):
            return codec.maybe(base)
        return base

    def _base_type(self, schema: Any) -> Codec:
        if not isinstance(schema, dict):
            return codec.unknown
        if is_reference(schema):
            return self._named(schema["$ref"])

        if schema.get("oneOf") is not None:
            return codec.one_of([self.synthesize(s) for s in schema["oneOf"]])
        if schema.get("anyOf") is not None:
            return codec.one_of([self.synthesize(s) for s in schema["anyOf"]])
        if schema.get("allOf") is not None:
            return self._intersection(schema["allOf"])
        if "items" in schema:
            return codec.array(self.synthesize(schema["items"]))

        additional = schema.get("additionalProperties")
        if additional is False:
            additional = None
        if schema.get("properties") is not None or additional is not None:
            return self._object(schema.get("properties") or {}, schema.get("required"), additional)

        if schema.get("enum") is not None:
            return self._enum(schema["enum"])
        if schema.get("format") == "binary":
            return codec.string

        schema_type = schema.get("type")
        if schema_type in ("integer", "number"):
            return codec.number
        if schema_type == "string":
            return codec.date if schema.get("format") == "date-time" else codec.string
        if schema_type == "null":
            return codec.null_type
        if schema_type == "boolean":
            return codec.boolean
        return codec.unknown

    def _named(self, ref: str) -> Codec:
        registry = self.context.registry
        target = self.context.resolver.resolve(ref)
        name = name_for(ref, target)

        alias = registry.lookup(ref)
        if alias is None:
            alias = registry.claim(name, ref)
            logger.debug("Compiling model %s from %s", name, ref)
            registry.define(alias, self.synthesize(target))
        elif not registry.is_defined(alias.name):
            # Self-reference while the model is still being compiled.
            return codec.unknown
        return alias

    def _intersection(self, members: list[Any]) -> Codec:
        if not members:
            raise EmptyAllOf("allOf must list at least one schema")
        result = self.synthesize(members[0])
        for member in members[1:]:
            result = codec.intersect(result, self.synthesize(member))
        return result

    def _object(
        self,
        properties: dict[str, Any],
        required: Optional[list[str]],
        additional: Any,
    ) -> Codec:
        required_names = set(required or [])
        fields: dict[str, Codec] = {}
        for name, prop in properties.items():
            field = self.synthesize(prop)
            fields[name] = field if name in required_names else codec.optional(field)

        record = None
        if additional is not None:
            value = codec.unknown if additional is True else self.synthesize(additional)
            record = codec.record(value)

        if fields and record is not None:
            return codec.intersect(codec.interface(fields), record)
        return record or codec.interface(fields)

    def _enum(self, values: list[Any]) -> Codec:
        literals = [codec.exactly(v) for v in values if v is not None]
        has_null = len(literals) != len(values)
        if not literals:
            if not has_null:
                raise EmptyEnum("Found empty enum")
            return codec.null_type
        inner = literals[0] if len(literals) == 1 else codec.one_of(literals)
        return codec.maybe(inner) if has_null else inner
