"""Build :class:`~codecapi.models.OperationDescriptor` objects from the ``paths`` object.

For every path item the builder considers the eight HTTP verbs only; other
keys (``summary``, ``parameters``, ...) are path-level metadata. Each
operation goes through:

1. **Tag checks** -- an operation without tags is a fatal error; tags decide
   include/exclude filtering and the namespace the operation lives in.
2. **Naming** -- :func:`~codecapi.compiler.naming.operation_name`, unique per
   first tag.
3. **Parameters** -- path-item parameters followed by operation parameters
   (no de-duplication), bracket names merged into deep objects, then split
   into required arguments and an optional bag.
4. **URL template** -- literal spans and ``{name}`` parameter spans.
5. **Request body** -- schema and wire encoding picked by content type.
6. **Responses** -- sorted into an ok bucket (``default`` and ``2xx``) and an
   err bucket (everything else); ``204`` contributes to neither.

Content types are matched in this priority order: ``*/*``,
``application/json``, ``application/x-www-form-urlencoded``,
``multipart/form-data``.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from codecapi import codec
from codecapi.codec import Codec
from codecapi.compiler.naming import operation_name
from codecapi.compiler.parameters import build_parameters, merge_deep_objects, partition
from codecapi.compiler.synthesizer import TypeSynthesizer
from codecapi.exceptions import DuplicateOperationName, MissingTags
from codecapi.models import (
    BodyEncoding,
    CompileOptions,
    HTTPMethod,
    OperationDescriptor,
    RequestBodyDescriptor,
    UrlSegment,
)

logger = logging.getLogger(__name__)

VERBS: tuple[str, ...] = tuple(m.value for m in HTTPMethod)

CONTENT_TYPES: dict[str, BodyEncoding] = {
    "*/*": BodyEncoding.JSON,
    "application/json": BodyEncoding.JSON,
    "application/x-www-form-urlencoded": BodyEncoding.FORM,
    "multipart/form-data": BodyEncoding.MULTIPART,
}

_PATH_PARAM_RE = re.compile(r"\{(.+?)\}")


# --------------------------------------------------------------------------- #
# URL templates
# --------------------------------------------------------------------------- #


def parse_url_template(path: str) -> list[UrlSegment]:
    """Split *path* into literal and ``{parameter}`` segments.

    Example::

        >>> [(s.literal, s.parameter) for s in parse_url_template("/a/{id}/b")]
        [('/a/', None), ('', 'id'), ('/b', None)]
    """
    segments: list[UrlSegment] = []
    position = 0
    for match in _PATH_PARAM_RE.finditer(path):
        if match.start() > position:
            segments.append(UrlSegment(literal=path[position:match.start()]))
        segments.append(UrlSegment(parameter=match.group(1)))
        position = match.end()
    if position < len(path):
        segments.append(UrlSegment(literal=path[position:]))
    return segments


# --------------------------------------------------------------------------- #
# Content and responses
# --------------------------------------------------------------------------- #


def preferred_content_type(content: Optional[dict[str, Any]]) -> Optional[str]:
    """Return the highest-priority recognised content type declared in *content*."""
    if not content:
        return None
    return next((t for t in CONTENT_TYPES if t in content), None)


def schema_from_content(content: Optional[dict[str, Any]]) -> Any:
    """Return the schema of the preferred content type, or a string schema."""
    content_type = preferred_content_type(content)
    schema = None
    if content_type is not None:
        media = content[content_type] or {}
        schema = media.get("schema")
    return schema or {"type": "string"}


def has_json_content(responses: dict[str, Any], synthesizer: TypeSynthesizer) -> bool:
    resolver = synthesizer.context.resolver
    for response in responses.values():
        content = (resolver.resolve_node(response) or {}).get("content") or {}
        if "application/json" in content or "*/*" in content:
            return True
    return False


def _collapse(types: list[Codec]) -> Codec:
    if not types:
        return codec.optional(codec.null_type)
    if len(types) == 1:
        return types[0]
    return codec.one_of(types)


def classify_responses(
    responses: dict[str, Any],
    synthesizer: TypeSynthesizer,
) -> tuple[Codec, Codec]:
    """Return the ``(ok, err)`` codecs for an operation's responses.

    Within each bucket the types are de-duplicated by structure and sorted by
    the length of their representation, shortest first.
    """
    resolver = synthesizer.context.resolver
    oks: list[Codec] = []
    errs: list[Codec] = []
    for code, response in responses.items():
        code = str(code)
        if code == "204":
            continue
        response = resolver.resolve_node(response) or {}
        content = response.get("content")
        data_type = synthesizer.synthesize(schema_from_content(content)) if content else codec.unknown

        bucket = oks if code == "default" or code.startswith("2") else errs
        if data_type not in bucket:
            bucket.append(data_type)

    oks.sort(key=lambda c: len(c.describe()))
    errs.sort(key=lambda c: len(c.describe()))
    return _collapse(oks), _collapse(errs)


def build_request_body(
    request_body: Any,
    synthesizer: TypeSynthesizer,
) -> Optional[RequestBodyDescriptor]:
    if request_body is None:
        return None
    body = synthesizer.context.resolver.resolve_node(request_body) or {}
    content = body.get("content") or {}
    content_type = preferred_content_type(content)
    return RequestBodyDescriptor(
        encoding=CONTENT_TYPES[content_type] if content_type else None,
        content_type=content_type or next(iter(content), None),
        required=bool(body.get("required")),
        codec=synthesizer.synthesize(schema_from_content(content)),
    )


# --------------------------------------------------------------------------- #
# Operations
# --------------------------------------------------------------------------- #


def build_operations(
    document: dict[str, Any],
    synthesizer: TypeSynthesizer,
    options: Optional[CompileOptions] = None,
) -> list[OperationDescriptor]:
    """Compile every operation of *document* that passes the tag filter.

    Raises:
        MissingTags: If an operation declares no tags.
        DuplicateOperationName: If two operations of one tag share a name.
    """
    options = options or CompileOptions()
    resolver = synthesizer.context.resolver
    names: dict[str, set[str]] = {}
    operations: list[OperationDescriptor] = []

    for path, path_item in (document.get("paths") or {}).items():
        item = resolver.resolve_node(path_item)
        if not isinstance(item, dict):
            continue
        for verb, operation in item.items():
            if verb.lower() not in VERBS or not isinstance(operation, dict):
                continue
            tags = operation.get("tags")
            if not tags:
                raise MissingTags(f"No tags found for {verb.upper()} {path}")
            if options.skips(tags):
                logger.debug("Skipping %s %s (tags %s)", verb.upper(), path, tags)
                continue

            name = operation_name(verb, path, operation.get("operationId"))
            taken = names.setdefault(tags[0], set())
            if name in taken:
                raise DuplicateOperationName(
                    f"Duplicate name detected: {name} in tag {tags[0]!r}"
                )
            taken.add(name)

            operations.append(
                _build_operation(name, verb, path, item, operation, synthesizer)
            )
            logger.debug("Compiled %s %s as %s.%s", verb.upper(), path, tags[0], name)

    return operations


def _build_operation(
    name: str,
    verb: str,
    path: str,
    item: dict[str, Any],
    operation: dict[str, Any],
    synthesizer: TypeSynthesizer,
) -> OperationDescriptor:
    resolver = synthesizer.context.resolver
    raw_params = merge_deep_objects([
        *resolver.resolve_list(item.get("parameters")),
        *resolver.resolve_list(operation.get("parameters")),
    ])
    required, optional = partition(build_parameters(raw_params, synthesizer))

    responses = operation.get("responses") or {}
    ok_codec, err_codec = classify_responses(responses, synthesizer)
    tags = list(operation["tags"])

    return OperationDescriptor(
        name=name,
        tag=tags[0],
        tags=tags,
        method=HTTPMethod(verb.lower()),
        path=path,
        url_template=parse_url_template(path),
        required=required,
        optional=optional,
        body=build_request_body(operation.get("requestBody"), synthesizer),
        ok_codec=ok_codec,
        err_codec=err_codec,
        returns_json=has_json_content(responses, synthesizer),
        summary=operation.get("summary"),
        description=operation.get("description"),
        deprecated=bool(operation.get("deprecated")),
    )
