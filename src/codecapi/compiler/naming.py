"""Derive stable, collision-free identifiers for models, operations and arguments.

Naming rules:

* **Models** (:func:`name_for`) -- the schema's ``title`` if present, else the
  last segment of its ``$ref``. The first letter is upper-cased, dots are
  removed and remaining separators are folded into PascalCase.
* **Operations** (:func:`operation_name`) -- the ``operationId`` when it
  yields a valid identifier (after dropping one leading ``prefix_`` segment
  and camel-casing), otherwise the camel-cased verb and path, with path
  parameters turned into ``by``/``and`` connectors::

      GET /pets/{petId}/toys/{toyId}  ->  getPetsByPetIdToysAndToyId

* **Arguments** (:func:`argument_names`) -- camel-cased parameter names with
  a namespace prefix (``user.id``) stripped, unless the short form is
  already taken by a shorter parameter name.

The :class:`NameRegistry` tracks which model names are claimed by which
``$ref`` and which of them are fully compiled.
"""

from __future__ import annotations

import keyword
import re
from typing import Any, Iterable, Optional

from codecapi.codec import Codec, NamedType
from codecapi.exceptions import DuplicateNameDetected
from codecapi.parser.resolver import pointer_segments

# Words are runs of lower-case letters (optionally led by one capital),
# all-caps acronyms, or digits -- the same split lodash's camelCase uses.
_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|[0-9]+")
_SEPARATOR_RE = re.compile(r"[^A-Za-z0-9_]+")
_NON_IDENTIFIER_RE = re.compile(r"[^\w\s]", re.ASCII)
_PATH_PARAM_RE = re.compile(r"\{(.+?)\}")


def camel_case(text: str) -> str:
    """Convert *text* to camelCase (``"get /pets"`` -> ``"getPets"``)."""
    words = _WORD_RE.findall(text)
    if not words:
        return ""
    first, *rest = words
    return first.lower() + "".join(word[0].upper() + word[1:].lower() for word in rest)


def upper_first(text: str) -> str:
    return text[:1].upper() + text[1:]


def is_valid_identifier(name: str) -> bool:
    return name.isidentifier() and not keyword.iskeyword(name)


def name_for(ref: str, schema: Any) -> str:
    """Return the model name for the schema behind *ref*."""
    title = schema.get("title") if isinstance(schema, dict) else None
    base = title or pointer_segments(ref)[-1]
    base = upper_first(str(base)).replace(".", "")
    return "".join(upper_first(part) for part in _SEPARATOR_RE.split(base) if part)


def _operation_identifier(operation_id: Optional[str]) -> Optional[str]:
    if not operation_id:
        return None
    if _NON_IDENTIFIER_RE.search(operation_id):
        return None
    name = camel_case(re.sub(r"[^_]+_", "", operation_id, count=1))
    if is_valid_identifier(name):
        return name
    return None


def operation_name(verb: str, path: str, operation_id: Optional[str] = None) -> str:
    """Return the function name for an operation.

    Example::

        >>> operation_name("get", "/pets/{petId}")
        'getPetsByPetId'
        >>> operation_name("get", "/pets", "pets_listAll")
        'listAll'
    """
    identifier = _operation_identifier(operation_id)
    if identifier:
        return identifier
    path = _PATH_PARAM_RE.sub(r"by \1", path, count=1)
    path = _PATH_PARAM_RE.sub(r"and \1", path, count=1)
    return camel_case(f"{verb} {path}")


def namespace_name(tag: str) -> str:
    """Return the namespace identifier for a tag (``"pet store"`` -> ``"petStore"``)."""
    return re.sub(r" (.)", lambda m: m.group(1).upper(), tag)


def argument_names(names: Iterable[str]) -> dict[str, str]:
    """Map raw parameter names to argument names.

    Shorter names are assigned first, so a plain ``id`` keeps the short
    argument name and ``user.id`` falls back to the qualified ``userId``.
    Names that still collide (``id`` and ``ID``) get a numeric suffix.
    """
    result: dict[str, str] = {}
    taken: set[str] = set()
    for name in sorted(names, key=len):
        if name in result:
            continue
        stripped = camel_case(name.rsplit(".", 1)[-1])
        arg = camel_case(name) if stripped in taken else stripped
        if arg in taken:
            suffix = 2
            while f"{arg}{suffix}" in taken:
                suffix += 1
            arg = f"{arg}{suffix}"
        result[name] = arg
        taken.add(arg)
    return result


class NameRegistry:
    """Model names claimed during one compilation run.

    A ``$ref`` claims its name the first time it is seen and keeps it for
    the rest of the run. The name is *defined* once the referenced schema
    has been compiled and attached to the alias.
    """

    def __init__(self) -> None:
        self._by_ref: dict[str, NamedType] = {}
        self._owners: dict[str, str] = {}
        self._defined: dict[str, Codec] = {}

    def lookup(self, ref: str) -> Optional[NamedType]:
        return self._by_ref.get(ref)

    def claim(self, name: str, ref: str) -> NamedType:
        """Reserve *name* for *ref* and return its (not yet defined) alias.

        Raises:
            DuplicateNameDetected: If *name* already belongs to another ref.
        """
        owner = self._owners.get(name)
        if owner is not None and owner != ref:
            raise DuplicateNameDetected(
                f"Duplicate name detected: {name} ({owner} and {ref})"
            )
        alias = NamedType(name, ref)
        self._by_ref[ref] = alias
        self._owners[name] = ref
        return alias

    def define(self, alias: NamedType, target: Codec) -> None:
        alias.target = target
        self._defined[alias.name] = target

    def is_defined(self, name: str) -> bool:
        return name in self._defined

    def models(self) -> dict[str, Codec]:
        """Defined models in definition order."""
        return dict(self._defined)
