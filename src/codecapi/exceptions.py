"""Exception hierarchy for codecapi.

All exceptions inherit from :class:`CodecApiError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`codecapi.exit_codes`.
The command line entry point catches ``CodecApiError`` and exits with the
matching code.

Compile-time problems are always fatal: the compiler raises one of the
:class:`CompileError` subclasses and produces no partial output. At call time
API errors and type mismatches are *values* (see
:mod:`codecapi.runtime.executor`); only transport failures raise, plus the
optimistic unwrapping helper :func:`~codecapi.runtime.executor.ok`.

Subclass hierarchy::

    CodecApiError (exit 1)
    +-- InvalidUsageError        (exit 2)
    +-- HttpError                (exit 5)
    +-- ConnectionError_         (exit 6)
    +-- SpecParseError           (exit 7)
    +-- CompileError             (exit 8)
    |   +-- UnsupportedReference
    |   +-- ReferenceNotFound
    |   +-- DuplicateNameDetected
    |   +-- DuplicateOperationName
    |   +-- EmptyAllOf
    |   +-- EmptyEnum
    |   +-- MissingTags
    |   +-- StubShapeError
    +-- DecodeError              (exit 9)
    +-- ConfigError              (exit 1)
"""

from __future__ import annotations

from typing import Any

from codecapi.exit_codes import (
    EXIT_COMPILE_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_DECODE_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_HTTP_ERROR,
    EXIT_INVALID_USAGE,
    EXIT_SPEC_PARSE_ERROR,
)


class CodecApiError(Exception):
    """Base exception for all codecapi errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(CodecApiError):
    """Raised when a bound operation is called with missing or unknown arguments."""

    exit_code = EXIT_INVALID_USAGE


class HttpError(CodecApiError):
    """Raised by optimistic unwrapping when the API answered with an error status.

    Args:
        status: The HTTP status code of the response.
        data: The best-effort decoded error body, or ``None``.
    """

    exit_code = EXIT_HTTP_ERROR

    def __init__(self, status: int, data: Any = None):
        super().__init__(f"Error: {status}")
        self.status = status
        self.data = data


class ConnectionError_(CodecApiError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class SpecParseError(CodecApiError):
    """Raised when the OpenAPI document cannot be loaded or fails validation."""

    exit_code = EXIT_SPEC_PARSE_ERROR


class CompileError(CodecApiError):
    """Base class for fatal errors raised while compiling a document."""

    exit_code = EXIT_COMPILE_ERROR


class UnsupportedReference(CompileError):
    """Raised for a ``$ref`` that does not point into the same document."""


class ReferenceNotFound(CompileError):
    """Raised when a ``$ref`` pointer segment does not exist in the document."""


class DuplicateNameDetected(CompileError):
    """Raised when two different references derive the same model name."""


class DuplicateOperationName(CompileError):
    """Raised when two operations of the same tag derive the same name."""


class EmptyAllOf(CompileError):
    """Raised for a schema with an empty ``allOf`` list."""


class EmptyEnum(CompileError):
    """Raised for a schema whose ``enum`` has no usable values."""


class MissingTags(CompileError):
    """Raised for an operation that declares no tags."""


class StubShapeError(CompileError):
    """Raised when the runtime defaults do not have the expected shape."""


class DecodeError(CodecApiError):
    """Raised by optimistic unwrapping when a response body failed validation."""

    exit_code = EXIT_DECODE_ERROR


class ConfigError(CodecApiError):
    """Raised for configuration problems (invalid JSON, bad environment values)."""

    exit_code = EXIT_GENERIC_FAILURE
