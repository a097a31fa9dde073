"""OpenAPI document input -- load documents and resolve ``$ref`` pointers.

Typical usage::

    from codecapi.parser import ReferenceResolver, load_document, validate_openapi_version

    raw = load_document("openapi.yaml")
    validate_openapi_version(raw)
    pet = ReferenceResolver(raw).resolve("#/components/schemas/Pet")

Sub-modules:

* :mod:`~codecapi.parser.loader` -- I/O layer (URL, file, stdin) plus format
  detection and OpenAPI version validation.
* :mod:`~codecapi.parser.resolver` -- ``$ref`` pointer lookup inside one
  document.
"""

from codecapi.parser.loader import load_document, parse_document, validate_openapi_version
from codecapi.parser.resolver import ReferenceResolver, is_reference

__all__ = [
    "load_document",
    "parse_document",
    "validate_openapi_version",
    "ReferenceResolver",
    "is_reference",
]
