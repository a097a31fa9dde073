"""Canonical Pydantic models shared across codecapi.

The models fall into two groups:

**Configuration models**:
    :class:`CompileOptions` (tag filtering, optimistic results) and
    :class:`RuntimeDefaults` (base URL, default headers, bearer token,
    default query flags).

**Compiler output models** -- produced by the operation builder and consumed
by the client binding:
    :class:`HTTPMethod`, :class:`ParameterLocation`, :class:`BodyEncoding`,
    :class:`ParameterDescriptor`, :class:`RequestBodyDescriptor`,
    :class:`UrlSegment`, :class:`OperationDescriptor` and
    :class:`CompiledApi`.

Compiler output models are frozen once built. Fields holding a
:class:`~codecapi.codec.Codec` use ``arbitrary_types_allowed``.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from codecapi.codec import Codec


# --- Configuration ---


DEFAULT_QUERY_FLAGS: dict[str, Any] = {
    "extended": True,
    "no_role_name": True,
    "no_course_in_assignment": True,
}


class CompileOptions(BaseModel):
    """Options for one compilation run.

    ``exclude`` always wins; ``include``, when given, is an allow-list.
    Both match an operation if *any* of its tags is listed.
    """

    include: Optional[list[str]] = Field(
        default=None, description="Only compile operations carrying one of these tags"
    )
    exclude: list[str] = Field(
        default_factory=list, description="Skip operations carrying one of these tags"
    )
    optimistic: bool = Field(
        default=False,
        description="Unwrap successful results and raise on errors instead of returning envelopes",
    )

    def skips(self, tags: list[str]) -> bool:
        if any(tag in self.exclude for tag in tags):
            return True
        if self.include is not None:
            return not any(tag in self.include for tag in tags)
        return False


class RuntimeDefaults(BaseModel):
    """Process-wide request defaults used by every bound operation.

    Managed through :func:`~codecapi.config.get_defaults` and friends. The
    bearer ``token`` is attached as an ``Authorization`` header when set.
    """

    base_url: str = Field(default="/", description="Prefix joined with every operation URL")
    headers: dict[str, str] = Field(default_factory=dict)
    token: Optional[str] = Field(default=None, description="Bearer token")
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    default_query: dict[str, Any] = Field(
        default_factory=lambda: dict(DEFAULT_QUERY_FLAGS),
        description="Query flags merged underneath caller-supplied query values",
    )


# --- Compiler output ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods recognised as operations on a path item."""

    GET = "get"
    PUT = "put"
    POST = "post"
    DELETE = "delete"
    OPTIONS = "options"
    HEAD = "head"
    PATCH = "patch"
    TRACE = "trace"


class ParameterLocation(str, enum.Enum):
    """Locations where an API parameter can appear, per OpenAPI ``in`` field."""

    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    COOKIE = "cookie"


class BodyEncoding(str, enum.Enum):
    """Wire encoding of a request body, derived from its content type."""

    JSON = "json"
    FORM = "form"
    MULTIPART = "multipart"


class ParameterDescriptor(BaseModel):
    """A single operation parameter.

    ``formatter`` names the query serializer in
    :mod:`codecapi.runtime.query` (``form``, ``explode``, ``space``,
    ``pipe`` or ``deep``).
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    arg_name: str
    location: ParameterLocation
    required: bool = False
    style: Optional[str] = None
    explode: bool = False
    formatter: str = "form"
    description: Optional[str] = None
    codec: Codec


class RequestBodyDescriptor(BaseModel):
    """The request body of an operation.

    ``encoding`` is ``None`` when the body's content type is none of the
    recognised ones; the body is then sent as-is.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    encoding: Optional[BodyEncoding] = None
    content_type: Optional[str] = None
    required: bool = False
    codec: Codec


class UrlSegment(BaseModel):
    """One span of a URL template: a literal, or a reference to a path parameter."""

    model_config = ConfigDict(frozen=True)

    literal: str = ""
    parameter: Optional[str] = None


class OperationDescriptor(BaseModel):
    """A compiled operation (one path + HTTP verb pair)."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    tag: str
    tags: list[str] = Field(default_factory=list)
    method: HTTPMethod
    path: str
    url_template: list[UrlSegment]
    required: list[ParameterDescriptor] = Field(default_factory=list)
    optional: list[ParameterDescriptor] = Field(default_factory=list)
    body: Optional[RequestBodyDescriptor] = None
    ok_codec: Codec
    err_codec: Codec
    returns_json: bool = False
    summary: Optional[str] = None
    description: Optional[str] = None
    deprecated: bool = False

    @property
    def parameters(self) -> list[ParameterDescriptor]:
        return [*self.required, *self.optional]


class CompiledApi(BaseModel):
    """Everything a compilation run produced.

    ``models`` holds the named codecs (the ``Models`` namespace) in
    definition order; ``operations`` is in document order.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    title: str = "API"
    openapi_version: str = "3.0.0"
    options: CompileOptions = Field(default_factory=CompileOptions)
    operations: list[OperationDescriptor] = Field(default_factory=list)
    models: dict[str, Codec] = Field(default_factory=dict)
    base_url: Optional[str] = Field(
        default=None, description="Base URL baked in at compile time; overrides the process-wide one"
    )

    def operations_by_tag(self) -> dict[str, list[OperationDescriptor]]:
        """Group operations by their first tag, tags sorted alphabetically."""
        grouped: dict[str, list[OperationDescriptor]] = {}
        for operation in self.operations:
            grouped.setdefault(operation.tag, []).append(operation)
        return dict(sorted(grouped.items()))
