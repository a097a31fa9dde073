"""Load OpenAPI documents from a local file, a URL, or stdin.

The compiler works on one in-memory document. This module turns a *source*
(a path, an ``http(s)://`` URL, or ``-`` for stdin) into that document,
detecting JSON versus YAML from the file extension, the response
content type, or finally the content itself.

:func:`validate_openapi_version` rejects Swagger 2.x documents; the
compiler only understands OpenAPI 3.x.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

import httpx
import yaml

from codecapi.exceptions import SpecParseError

logger = logging.getLogger(__name__)


def load_document(source: str) -> dict[str, Any]:
    """Load an OpenAPI document from URL, file path, or stdin (``-``).

    Raises:
        SpecParseError: If the source cannot be read or parsed.
    """
    logger.debug("Loading OpenAPI document from %s", source)
    if source == "-":
        content = sys.stdin.read()
        if not content.strip():
            raise SpecParseError("No input received from stdin")
        return parse_document(content)
    if source.startswith(("http://", "https://")):
        return _load_from_url(source)
    return _load_from_file(Path(source))


def _load_from_url(url: str) -> dict[str, Any]:
    try:
        response = httpx.get(url, timeout=30.0, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise SpecParseError(
            f"HTTP {exc.response.status_code} fetching document from {url}"
        ) from exc
    except httpx.RequestError as exc:
        raise SpecParseError(f"Failed to fetch document from {url}: {exc}") from exc

    content_type = response.headers.get("content-type", "")
    hint = ""
    if "json" in content_type:
        hint = "json"
    elif "yaml" in content_type or "yml" in content_type:
        hint = "yaml"
    return parse_document(response.text, hint=hint)


def _load_from_file(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise SpecParseError(f"Document not found: {path}")
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SpecParseError(f"Failed to read {path}: {exc}") from exc
    if not content.strip():
        raise SpecParseError(f"Document is empty: {path}")

    suffix = path.suffix.lower()
    hint = "json" if suffix == ".json" else "yaml" if suffix in (".yaml", ".yml") else ""
    return parse_document(content, hint=hint)


def parse_document(content: str, hint: str = "") -> dict[str, Any]:
    """Parse *content* as JSON or YAML.

    JSON is tried first unless *hint* is ``"yaml"``; a ``"json"`` hint
    disables the YAML fallback.

    Raises:
        SpecParseError: If the content is not a JSON/YAML mapping.
    """
    if hint != "yaml":
        try:
            result = json.loads(content)
        except json.JSONDecodeError as exc:
            if hint == "json":
                raise SpecParseError(f"Invalid JSON: {exc}") from exc
        else:
            return _expect_mapping(result)

    try:
        result = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise SpecParseError(f"Failed to parse document as JSON or YAML: {exc}") from exc
    return _expect_mapping(result)


def _expect_mapping(result: Any) -> dict[str, Any]:
    if not isinstance(result, dict):
        kind = type(result).__name__ if result is not None else "empty document"
        raise SpecParseError(f"Document must be a JSON/YAML object (got {kind})")
    return result


def validate_openapi_version(document: dict[str, Any]) -> str:
    """Return the ``openapi`` version string of a 3.x document.

    Raises:
        SpecParseError: For Swagger 2.x, a missing version, or non-3.x versions.
    """
    if "swagger" in document:
        raise SpecParseError(
            f"Swagger {document['swagger']} is not supported. "
            "Convert the document to OpenAPI 3.x first."
        )
    version = document.get("openapi")
    if version is None:
        raise SpecParseError("Missing 'openapi' field. Is this an OpenAPI 3.x document?")
    version_str = str(version)
    if not version_str.startswith("3."):
        raise SpecParseError(f"Unsupported OpenAPI version: {version_str}")
    return version_str
