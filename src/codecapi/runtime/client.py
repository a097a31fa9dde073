"""Bind a :class:`~codecapi.models.CompiledApi` to callable operations.

:class:`ApiClient` exposes one attribute per tag namespace plus ``Models``::

    client = ApiClient(compile_spec(document))
    result = client.pet.getPetById(petId=1)
    if not result.error:
        print(result.data["name"])

Every operation is a :class:`BoundOperation` whose ``__signature__`` mirrors
the compiled parameters, so :func:`inspect.signature` and ``help()`` show
the real argument list:

1. Required parameters, positional or keyword, shortest name first.
2. ``body`` when the operation declares a request body (no default when
   the body is required).
3. Optional parameters, keyword-only, defaulting to ``None``.
4. ``query`` -- free-form query values merged on top of the default flags.
5. ``opts`` -- a :class:`~codecapi.runtime.executor.RequestOptions` with
   per-call headers, base URL or timeout.

Calling an operation with a missing required argument or an unknown keyword
raises :class:`~codecapi.exceptions.InvalidUsageError`. Operations compiled
with ``optimistic=True`` return the unwrapped data (see
:func:`~codecapi.runtime.executor.ok`).

:class:`AsyncApiClient` binds the same operations to an
:class:`~codecapi.runtime.executor.AsyncExecutor`; calling them returns
coroutines.
"""

from __future__ import annotations

import inspect
import keyword
import logging
from dataclasses import replace
from types import SimpleNamespace
from typing import Any, Iterator, Mapping, Optional, Union
from urllib.parse import quote

from codecapi.compiler.naming import namespace_name
from codecapi.exceptions import CompileError, DuplicateOperationName, InvalidUsageError
from codecapi.models import (
    BodyEncoding,
    CompiledApi,
    OperationDescriptor,
    ParameterDescriptor,
    ParameterLocation,
    RuntimeDefaults,
    UrlSegment,
)
from codecapi.runtime.executor import (
    JSON_CONTENT_TYPE,
    AsyncExecutor,
    RequestOptions,
    RequestResult,
    SyncExecutor,
    form_body,
    json_body,
    multipart_body,
    ok,
)
from codecapi.runtime.query import FORMATTERS, coerce_to_string, maybe_add_query, query

logger = logging.getLogger(__name__)

_RESERVED_ARGUMENTS = frozenset({"body", "query", "opts"})


def render_url(template: list[UrlSegment], values: Mapping[str, Any]) -> str:
    """Substitute percent-encoded *values* into a parsed URL template."""
    return "".join(
        quote(coerce_to_string(values.get(segment.parameter)), safe="!'()*")
        if segment.parameter is not None
        else segment.literal
        for segment in template
    )


def python_name(arg_name: str) -> str:
    """Return a usable Python parameter name for a compiled argument name."""
    name = arg_name if arg_name.isidentifier() else f"_{arg_name}"
    if keyword.iskeyword(name) or name in _RESERVED_ARGUMENTS:
        name = f"{name}_"
    return name


# --------------------------------------------------------------------------- #
# Bound operations
# --------------------------------------------------------------------------- #


class BoundOperation:
    """A compiled operation bound to an executor.

    Args:
        descriptor: The compiled operation.
        executor: The executor that sends the request.
        optimistic: Unwrap results with :func:`~codecapi.runtime.executor.ok`.
        base_url: Base URL baked in at compile time, if any.
    """

    def __init__(
        self,
        descriptor: OperationDescriptor,
        executor: Union[SyncExecutor, AsyncExecutor],
        optimistic: bool = False,
        base_url: Optional[str] = None,
    ) -> None:
        self.descriptor = descriptor
        self._executor = executor
        self._optimistic = optimistic
        self._base_url = base_url
        self._arguments: dict[str, ParameterDescriptor] = {
            python_name(p.arg_name): p for p in descriptor.parameters
        }
        self.__signature__ = self._build_signature()
        self.__name__ = descriptor.name
        self.__qualname__ = f"{namespace_name(descriptor.tag)}.{descriptor.name}"
        self.__doc__ = _help_text(descriptor)

    def __repr__(self) -> str:
        return f"<operation {self.__qualname__}{self.__signature__}>"

    def _build_signature(self) -> inspect.Signature:
        descriptor = self.descriptor
        positional = inspect.Parameter.POSITIONAL_OR_KEYWORD
        keyword_only = inspect.Parameter.KEYWORD_ONLY
        params: list[inspect.Parameter] = []

        for name, param in self._arguments.items():
            if param.required:
                params.append(inspect.Parameter(name, positional))
        if descriptor.body is not None:
            if descriptor.body.required:
                params.append(inspect.Parameter("body", positional))
            else:
                params.append(inspect.Parameter("body", positional, default=None))
        for name, param in self._arguments.items():
            if not param.required:
                params.append(inspect.Parameter(name, keyword_only, default=None))
        params.append(inspect.Parameter("query", keyword_only, default=None))
        params.append(inspect.Parameter("opts", keyword_only, default=None))
        return inspect.Signature(params)

    def _bind(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> dict[str, Any]:
        try:
            bound = self.__signature__.bind(*args, **kwargs)
        except TypeError as exc:
            raise InvalidUsageError(f"{self.__qualname__}(): {exc}") from exc
        bound.apply_defaults()
        return dict(bound.arguments)

    def prepare(self, *args: Any, **kwargs: Any) -> tuple[str, RequestOptions, str]:
        """Build the URL, request options and ``Accept`` value for one call.

        Raises:
            InvalidUsageError: On a missing required argument or an unknown
                keyword.
        """
        arguments = self._bind(args, kwargs)
        descriptor = self.descriptor

        path_values: dict[str, Any] = {}
        fragments: list[str] = []
        headers: dict[str, Optional[str]] = {}
        cookies: list[str] = []
        for name, param in self._arguments.items():
            value = arguments.get(name)
            if param.location == ParameterLocation.PATH:
                path_values[param.name] = value
            elif value is None:
                continue
            elif param.location == ParameterLocation.QUERY:
                fragments.append(FORMATTERS[param.formatter]({param.name: value}))
            elif param.location == ParameterLocation.HEADER:
                headers[param.name] = coerce_to_string(value)
            elif param.location == ParameterLocation.COOKIE:
                cookies.append(f"{param.name}={coerce_to_string(value)}")
        if cookies:
            headers["Cookie"] = "; ".join(cookies)

        url = render_url(descriptor.url_template, path_values) + query(*fragments)
        url = maybe_add_query(url, arguments.get("query"), self._executor.defaults.default_query)

        opts: RequestOptions = arguments.get("opts") or RequestOptions()
        options = replace(
            opts,
            method=descriptor.method.value.upper(),
            headers={**headers, **opts.headers},
            base_url=opts.base_url if opts.base_url is not None else self._base_url,
        )
        if descriptor.body is not None:
            options = _encode_body(descriptor, arguments.get("body"), options)

        accept = JSON_CONTENT_TYPE if descriptor.returns_json else "*/*"
        return url, options, accept

    def _finish(self, result: RequestResult) -> Any:
        return ok(result) if self._optimistic else result

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        url, options, accept = self.prepare(*args, **kwargs)
        logger.debug("Calling %s as %s %s", self.__qualname__, options.method, url)
        result = self._executor.fetch_json(
            url, self.descriptor.ok_codec, self.descriptor.err_codec, options, accept
        )
        return self._finish(result)


class AsyncBoundOperation(BoundOperation):
    """Async variant of :class:`BoundOperation`; calling it returns a coroutine."""

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        url, options, accept = self.prepare(*args, **kwargs)
        logger.debug("Calling %s as %s %s", self.__qualname__, options.method, url)
        result = await self._executor.fetch_json(
            url, self.descriptor.ok_codec, self.descriptor.err_codec, options, accept
        )
        return self._finish(result)


def _encode_body(
    descriptor: OperationDescriptor,
    body: Any,
    options: RequestOptions,
) -> RequestOptions:
    if body is None:
        return options
    encoding = descriptor.body.encoding
    if encoding == BodyEncoding.JSON:
        return json_body(body, options)
    if encoding == BodyEncoding.FORM:
        return form_body(body, options)
    if encoding == BodyEncoding.MULTIPART:
        return multipart_body(body, options)
    headers = dict(options.headers)
    if descriptor.body.content_type:
        headers.setdefault("Content-Type", descriptor.body.content_type)
    return replace(options, body=body, headers=headers)


def _help_text(descriptor: OperationDescriptor) -> str:
    lines = [f"{descriptor.method.value.upper()} {descriptor.path}"]
    if descriptor.summary:
        lines.append(descriptor.summary)
    if descriptor.description and descriptor.description != descriptor.summary:
        lines.append(descriptor.description)
    if descriptor.deprecated:
        lines.append("Deprecated.")
    return "\n\n".join(lines)


# --------------------------------------------------------------------------- #
# Clients
# --------------------------------------------------------------------------- #


class TagNamespace:
    """The operations of one tag, as attributes.

    Operations live in a private mapping and are looked up by name, so an
    operation may be called ``add``, ``tag`` or anything else.
    """

    def __init__(self, tag: str) -> None:
        self.__name__ = tag
        self._operations: dict[str, BoundOperation] = {}

    def _add(self, operation: BoundOperation) -> None:
        name = operation.descriptor.name
        if name in self._operations:
            raise DuplicateOperationName(f"Duplicate name detected: {name} in namespace {self.__name__!r}")
        self._operations[name] = operation

    def __getattr__(self, name: str) -> BoundOperation:
        try:
            return self.__dict__["_operations"][name]
        except KeyError:
            raise AttributeError(f"Namespace {self.__dict__.get('__name__')!r} has no operation {name!r}") from None

    def __dir__(self) -> list[str]:
        return [*super().__dir__(), *self._operations]

    def __iter__(self) -> Iterator[BoundOperation]:
        return iter(self._operations.values())

    def __len__(self) -> int:
        return len(self._operations)

    def __repr__(self) -> str:
        return f"<namespace {self.__name__} ({len(self)} operations)>"


class ApiClient:
    """Synchronous client exposing every compiled operation.

    Tag namespaces are looked up by attribute; ``Models`` holds the compiled
    model codecs. Everything else on the client is private, so any tag name
    except ``Models`` or one starting with an underscore can be used.

    Args:
        compiled: The output of :func:`~codecapi.compiler.compile_spec`.
        executor: The executor to send requests with. Defaults to a
            :class:`~codecapi.runtime.executor.SyncExecutor` over *defaults*.
        defaults: Request defaults for the default executor; ``None`` means
            the process-wide defaults.

    Raises:
        CompileError: If a tag maps to a reserved namespace name.

    Example::

        with ApiClient(compiled, SyncExecutor(transport=transport)) as client:
            pets = client.pet.findPetsByStatus(status="available")
    """

    _operation_class: type[BoundOperation] = BoundOperation

    def __init__(
        self,
        compiled: CompiledApi,
        executor: Optional[Union[SyncExecutor, AsyncExecutor]] = None,
        defaults: Optional[RuntimeDefaults] = None,
    ) -> None:
        self._compiled = compiled
        self._executor = executor if executor is not None else self._default_executor(defaults)
        self._namespaces: dict[str, TagNamespace] = {}
        self.Models = SimpleNamespace(**compiled.models)

        for descriptor in compiled.operations:
            attr = namespace_name(descriptor.tag)
            namespace = self._namespaces.get(attr)
            if namespace is None:
                if attr == "Models" or attr.startswith("_"):
                    raise CompileError(f"Tag {descriptor.tag!r} maps to the reserved client attribute {attr!r}")
                namespace = self._namespaces[attr] = TagNamespace(attr)
            namespace._add(
                self._operation_class(
                    descriptor,
                    self._executor,
                    optimistic=compiled.options.optimistic,
                    base_url=compiled.base_url,
                )
            )

    def __getattr__(self, name: str) -> TagNamespace:
        try:
            return self.__dict__["_namespaces"][name]
        except KeyError:
            raise AttributeError(f"{type(self).__name__} has no namespace {name!r}") from None

    def __dir__(self) -> list[str]:
        return [*super().__dir__(), *self._namespaces]

    def __iter__(self) -> Iterator[TagNamespace]:
        return iter(self._namespaces.values())

    def _default_executor(self, defaults: Optional[RuntimeDefaults]) -> Union[SyncExecutor, AsyncExecutor]:
        return SyncExecutor(defaults)

    def __enter__(self) -> ApiClient:
        self._executor.__enter__()
        return self

    def __exit__(self, *args: object) -> None:
        self._executor.__exit__(*args)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._compiled.title!r} namespaces={sorted(self._namespaces)}>"


class AsyncApiClient(ApiClient):
    """Asynchronous client; operations return coroutines.

    Example::

        async with AsyncApiClient(compiled) as client:
            result = await client.pet.getPetById(petId=1)
    """

    _operation_class = AsyncBoundOperation

    def _default_executor(self, defaults: Optional[RuntimeDefaults]) -> AsyncExecutor:
        return AsyncExecutor(defaults)

    async def __aenter__(self) -> AsyncApiClient:
        await self._executor.__aenter__()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self._executor.__aexit__(*args)
