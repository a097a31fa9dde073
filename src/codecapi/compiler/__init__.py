"""OpenAPI compiler -- turn a document into operation descriptors and model codecs.

Typical usage::

    from codecapi.compiler import compile_spec
    from codecapi.models import CompileOptions

    compiled = compile_spec(raw, CompileOptions(exclude=["internal"]))
    for tag, operations in compiled.operations_by_tag().items():
        print(tag, [op.name for op in operations])

Sub-modules:

* :mod:`~codecapi.compiler.naming` -- identifiers for models, operations and
  arguments, plus the model-name registry.
* :mod:`~codecapi.compiler.synthesizer` -- schema to codec conversion.
* :mod:`~codecapi.compiler.parameters` -- deep-object merging, query
  formatter selection and parameter descriptors.
* :mod:`~codecapi.compiler.operations` -- per path/verb operation building
  and response classification.

Compilation is synchronous, performs no I/O, and raises a
:class:`~codecapi.exceptions.CompileError` on the first fatal problem; no
partial result is returned.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from codecapi.compiler.operations import build_operations
from codecapi.compiler.synthesizer import CompilationContext, TypeSynthesizer
from codecapi.exceptions import StubShapeError
from codecapi.models import CompiledApi, CompileOptions
from codecapi.parser.loader import validate_openapi_version
from codecapi.parser.resolver import ReferenceResolver

logger = logging.getLogger(__name__)


def compile_spec(
    document: dict[str, Any],
    options: Optional[CompileOptions] = None,
    defaults: Optional[Mapping[str, Any]] = None,
) -> CompiledApi:
    """Compile an OpenAPI 3.x document.

    Args:
        document: The loaded (and bundled) OpenAPI document.
        options: Tag filters and the optimistic flag.
        defaults: Optional request defaults baked into the compiled API. Must
            be a mapping with a ``base_url`` key.

    Returns:
        The frozen :class:`~codecapi.models.CompiledApi`.

    Raises:
        SpecParseError: If the document is not OpenAPI 3.x.
        CompileError: On the first fatal compilation problem.
    """
    options = options or CompileOptions()
    version = validate_openapi_version(document)
    base_url = _stub_base_url(defaults)

    context = CompilationContext(ReferenceResolver(document))
    operations = build_operations(document, TypeSynthesizer(context), options)
    models = context.freeze()
    logger.debug("Compiled %d operations and %d models", len(operations), len(models))

    return CompiledApi(
        title=(document.get("info") or {}).get("title") or "API",
        openapi_version=version,
        options=options,
        operations=operations,
        models=dict(models),
        base_url=base_url,
    )


def _stub_base_url(defaults: Optional[Mapping[str, Any]]) -> Optional[str]:
    if defaults is None:
        return None
    if not isinstance(defaults, Mapping) or "base_url" not in defaults:
        raise StubShapeError("Request defaults must be a mapping with a 'base_url' key")
    return defaults["base_url"]


__all__ = ["compile_spec", "CompilationContext", "TypeSynthesizer"]
