"""Resolve ``$ref`` JSON Reference pointers inside a single OpenAPI document.

OpenAPI documents use ``$ref`` pointers (e.g.,
``{"$ref": "#/components/schemas/Pet"}``) to share schemas, parameters and
responses. The compiler never inlines those pointers: it asks the
:class:`ReferenceResolver` for the target node whenever it needs to look
inside one, and keeps the pointer itself as the identity of the shared model.

Only **internal** references (those starting with ``#/``) are supported.
External file or URL references raise
:class:`~codecapi.exceptions.UnsupportedReference`; bundle multi-file
documents into one before compiling.

The resolver performs no cycle detection. Self-referencing schemas are
handled by the type synthesizer, which memoises named models by pointer.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import unquote

from codecapi.exceptions import ReferenceNotFound, UnsupportedReference


def is_reference(obj: Any) -> bool:
    """Return ``True`` when *obj* is a Reference Object (a dict with ``$ref``)."""
    return isinstance(obj, dict) and "$ref" in obj


def pointer_segments(ref: str) -> list[str]:
    """Split an internal ``$ref`` into decoded path segments.

    Each segment is JSON-Pointer-unescaped (RFC 6901: ``~1`` for ``/``,
    ``~0`` for ``~``) and then percent-decoded.

    Raises:
        UnsupportedReference: If *ref* does not start with ``#/``.
    """
    if not ref.startswith("#/"):
        raise UnsupportedReference(
            f"External refs are not supported ({ref}). "
            "Bundle the document into a single file first."
        )
    return [
        unquote(segment.replace("~1", "/").replace("~0", "~"))
        for segment in ref[2:].split("/")
    ]


class ReferenceResolver:
    """Look up ``$ref`` targets in one in-memory document.

    Args:
        document: The loaded OpenAPI document. It is never modified.

    Example::

        resolver = ReferenceResolver(raw)
        pet = resolver.resolve("#/components/schemas/Pet")
        params = [resolver.resolve_node(p) for p in operation["parameters"]]
    """

    def __init__(self, document: dict[str, Any]) -> None:
        self._document = document

    @property
    def document(self) -> dict[str, Any]:
        return self._document

    def resolve(self, ref: str) -> Any:
        """Return the node that *ref* points to.

        Raises:
            UnsupportedReference: If the reference is external.
            ReferenceNotFound: If any segment in the pointer does not exist.
        """
        current: Any = self._document
        for segment in pointer_segments(ref):
            if isinstance(current, dict):
                if segment not in current:
                    raise ReferenceNotFound(
                        f"Cannot resolve $ref '{ref}': key '{segment}' not found"
                    )
                current = current[segment]
            elif isinstance(current, list):
                try:
                    current = current[int(segment)]
                except (ValueError, IndexError) as exc:
                    raise ReferenceNotFound(
                        f"Cannot resolve $ref '{ref}': invalid array index '{segment}'"
                    ) from exc
            else:
                raise ReferenceNotFound(
                    f"Cannot resolve $ref '{ref}': "
                    f"cannot navigate into {type(current).__name__}"
                )
        return current

    def resolve_node(self, obj: Any) -> Any:
        """Return *obj* itself, or its target when it is a Reference Object."""
        if is_reference(obj):
            return self.resolve(obj["$ref"])
        return obj

    def resolve_list(self, items: list[Any] | None) -> list[Any]:
        return [self.resolve_node(item) for item in items or []]
