"""Turn OpenAPI parameter objects into :class:`~codecapi.models.ParameterDescriptor` lists.

Three steps happen here:

* **Deep-object merging** -- OpenAPI's ``deepObject`` style cannot express
  nested objects, so APIs commonly declare a flat list of bracketed
  parameters instead (``filter[name]``, ``filter[status]``).
  :func:`merge_deep_objects` folds such siblings back into one synthetic
  ``deepObject`` parameter whose schema has one property per bracket.
* **Formatter selection** -- :func:`formatter_for` picks the query-string
  serializer from ``style`` and ``explode``.
* **Descriptor building** -- :func:`build_parameters` compiles each schema
  and assigns argument names; :func:`partition` splits the result into the
  required argument list and the optional bag.
"""

from __future__ import annotations

import re
from typing import Any

from codecapi.compiler.naming import argument_names
from codecapi.compiler.synthesizer import TypeSynthesizer
from codecapi.models import ParameterDescriptor, ParameterLocation

_BRACKET_RE = re.compile(r"^(.+?)\[(.*?)\]")

_STYLE_FORMATTERS = {
    "spaceDelimited": "space",
    "pipeDelimited": "pipe",
    "deepObject": "deep",
}


def merge_deep_objects(params: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Merge bracket-named parameters into synthetic ``deepObject`` parameters.

    The merged parameter takes the position of its first bracketed sibling.
    Parameters without brackets pass through unchanged.

    Example::

        >>> merged = merge_deep_objects([
        ...     {"name": "filter[a]", "in": "query", "schema": {"type": "string"}},
        ...     {"name": "filter[b]", "in": "query", "schema": {"type": "number"}},
        ... ])
        >>> merged[0]["name"], list(merged[0]["schema"]["properties"])
        ('filter', ['a', 'b'])
    """
    result: list[dict[str, Any]] = []
    merged: dict[str, dict[str, Any]] = {}
    for param in params:
        match = _BRACKET_RE.match(param.get("name", ""))
        if not match:
            result.append(param)
            continue
        name, prop = match.groups()
        obj = merged.get(name)
        if obj is None:
            obj = merged[name] = {
                "name": name,
                "in": param.get("in", "query"),
                "style": "deepObject",
                "schema": {"type": "object", "properties": {}},
            }
            result.append(obj)
        obj["schema"]["properties"][prop] = param.get("schema")
    return result


def formatter_for(param: dict[str, Any]) -> str:
    """Return the name of the query formatter for *param*."""
    formatter = _STYLE_FORMATTERS.get(param.get("style", ""))
    if formatter:
        return formatter
    return "explode" if param.get("explode") else "form"


def build_parameters(
    params: list[dict[str, Any]],
    synthesizer: TypeSynthesizer,
) -> list[ParameterDescriptor]:
    """Compile resolved parameter objects into descriptors.

    Path parameters are always required, regardless of their ``required``
    flag. Parameters with an unknown ``in`` location are skipped.
    """
    arg_names = argument_names(p.get("name", "") for p in params)
    descriptors: list[ParameterDescriptor] = []
    for param in params:
        try:
            location = ParameterLocation(param.get("in", "query"))
        except ValueError:
            continue
        name = param.get("name", "")
        descriptors.append(
            ParameterDescriptor(
                name=name,
                arg_name=arg_names[name],
                location=location,
                required=bool(param.get("required")) or location == ParameterLocation.PATH,
                style=param.get("style"),
                explode=bool(param.get("explode")),
                formatter=formatter_for(param),
                description=param.get("description"),
                codec=synthesizer.synthesize(param.get("schema")),
            )
        )
    return descriptors


def partition(
    descriptors: list[ParameterDescriptor],
) -> tuple[list[ParameterDescriptor], list[ParameterDescriptor]]:
    """Split into required (by ascending name length) and optional parameters."""
    required = sorted((d for d in descriptors if d.required), key=lambda d: len(d.name))
    optional = [d for d in descriptors if not d.required]
    return required, optional
