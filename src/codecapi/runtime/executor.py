"""Request executors -- send a request and turn the response into a result value.

This module provides :class:`SyncExecutor` and :class:`AsyncExecutor`, thin
wrappers around :class:`httpx.Client` and :class:`httpx.AsyncClient`. Bound
operations build a URL and a :class:`RequestOptions` and hand both to one of
two methods:

- :meth:`~SyncExecutor.fetch_text` -- sends the request and returns the raw
  status, content type, headers and body text. A failure while reading the
  body is logged and swallowed; only the transport itself can raise.
- :meth:`~SyncExecutor.fetch_json` -- additionally classifies the response
  with the operation's ok and err codecs into exactly one of
  :class:`ApiResponse`, :class:`ApiError` or :class:`Failure`.

API errors and type mismatches are values, not exceptions. Use :func:`ok`
to unwrap a result optimistically.

Request defaults (base URL, headers, bearer token, timeout) are read from
:func:`codecapi.config.get_defaults` at call time unless the executor was
given its own :class:`~codecapi.models.RuntimeDefaults`.

Example::

    with SyncExecutor(transport=httpx.MockTransport(handler)) as executor:
        result = executor.fetch_json("/pets", codec.array(pet), codec.unknown)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional, Union

import httpx

from codecapi.codec import Codec, DecodeResult
from codecapi.config import get_defaults
from codecapi.exceptions import ConfigError, ConnectionError_, DecodeError, HttpError
from codecapi.models import RuntimeDefaults
from codecapi.runtime.query import coerce_to_string, form, join_url

logger = logging.getLogger(__name__)

ACCEPTED_STATUSES = frozenset({200, 201, 202, 203, 204})

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
BINARY_CONTENT_TYPE = "application/octet-stream"


# --------------------------------------------------------------------------- #
# Request side
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class Blob:
    """Binary payload with an optional declared content type and file name."""

    data: bytes
    content_type: Optional[str] = None
    filename: Optional[str] = None


@dataclass(frozen=True)
class RequestOptions:
    """Per-call request settings.

    ``headers`` with a ``None`` value are dropped. ``multipart`` holds the
    parts of a ``multipart/form-data`` body and takes precedence over
    ``body``.
    """

    method: str = "GET"
    headers: Mapping[str, Optional[str]] = field(default_factory=dict)
    body: Any = None
    multipart: Optional[Mapping[str, Any]] = None
    base_url: Optional[str] = None
    timeout: Optional[float] = None


def _with_header(options: RequestOptions, name: str, value: str) -> dict[str, Optional[str]]:
    return {**options.headers, name: value}


def json_body(body: Any, options: Optional[RequestOptions] = None) -> RequestOptions:
    """Serialise *body* as JSON and set the matching ``Content-Type``."""
    options = options or RequestOptions()
    return replace(
        options,
        body=json.dumps(body, default=coerce_to_string) if body is not None else None,
        headers=_with_header(options, "Content-Type", JSON_CONTENT_TYPE),
    )


def form_body(body: Mapping[str, Any], options: Optional[RequestOptions] = None) -> RequestOptions:
    """Encode *body* as ``application/x-www-form-urlencoded``."""
    options = options or RequestOptions()
    return replace(
        options,
        body=form(body or {}),
        headers=_with_header(options, "Content-Type", FORM_CONTENT_TYPE),
    )


def multipart_body(body: Mapping[str, Any], options: Optional[RequestOptions] = None) -> RequestOptions:
    """Send *body* as ``multipart/form-data``; httpx supplies the boundary header."""
    options = options or RequestOptions()
    return replace(options, body=None, multipart=dict(body or {}))


def infer_content_type(body: Any) -> str:
    if isinstance(body, Blob):
        return body.content_type or BINARY_CONTENT_TYPE
    if isinstance(body, (bytes, bytearray)):
        return BINARY_CONTENT_TYPE
    if isinstance(body, str):
        return "text/plain"
    return JSON_CONTENT_TYPE


def build_headers(
    options: RequestOptions,
    defaults: RuntimeDefaults,
    accept: str = JSON_CONTENT_TYPE,
) -> dict[str, str]:
    """Merge default and per-call headers for one request.

    Per-call headers override defaults, both override ``Accept``. A bearer
    ``Authorization`` header is added when a token is configured and none
    was given. ``Content-Type`` is inferred from the body when missing.
    """
    merged: dict[str, Optional[str]] = {"Accept": accept}
    for source in (defaults.headers, options.headers):
        for name, value in source.items():
            # Names are case-insensitive; the last spelling wins.
            for existing in [key for key in merged if key.lower() == name.lower()]:
                del merged[existing]
            merged[name] = value
    headers = {name: value for name, value in merged.items() if value is not None}

    lowered = {name.lower() for name in headers}
    if defaults.token and "authorization" not in lowered:
        headers["Authorization"] = f"Bearer {defaults.token}"
    if options.multipart is None and options.body is not None and "content-type" not in lowered:
        headers["Content-Type"] = infer_content_type(options.body)
    return headers


def _encode_content(body: Any) -> Union[bytes, str]:
    if isinstance(body, Blob):
        return body.data
    if isinstance(body, (bytes, bytearray)):
        return bytes(body)
    if isinstance(body, str):
        return body
    return json.dumps(body, default=coerce_to_string)


def _encode_multipart(parts: Mapping[str, Any]) -> list[tuple[str, Any]]:
    # Text parts are sent as file fields without a file name so httpx
    # always produces multipart/form-data, even when no binary part exists.
    files: list[tuple[str, Any]] = []
    for name, value in parts.items():
        if value is None:
            continue
        if isinstance(value, Blob):
            files.append((name, (value.filename or name, value.data, value.content_type or BINARY_CONTENT_TYPE)))
        elif isinstance(value, (bytes, bytearray)):
            files.append((name, (name, bytes(value), BINARY_CONTENT_TYPE)))
        elif isinstance(value, (dict, list)):
            files.append((name, (None, json.dumps(value, default=coerce_to_string))))
        elif isinstance(value, bool):
            files.append((name, (None, "true" if value else "false")))
        else:
            files.append((name, (None, coerce_to_string(value))))
    return files


def build_request_kwargs(
    url: str,
    options: RequestOptions,
    defaults: RuntimeDefaults,
    accept: str = JSON_CONTENT_TYPE,
) -> dict[str, Any]:
    """Return the keyword arguments for :meth:`httpx.Client.build_request`.

    Raises:
        ConfigError: If the joined URL has no scheme (no base URL configured).
    """
    full_url = join_url(options.base_url if options.base_url is not None else defaults.base_url, url)
    if not httpx.URL(full_url).is_absolute_url:
        raise ConfigError(
            f"Request URL {full_url!r} is not absolute; set a base URL such as 'https://api.example.com'"
        )
    kwargs: dict[str, Any] = {
        "method": options.method.upper(),
        "url": full_url,
        "headers": build_headers(options, defaults, accept),
        "timeout": options.timeout if options.timeout is not None else defaults.timeout,
    }
    if options.multipart is not None:
        kwargs["files"] = _encode_multipart(options.multipart)
    elif options.body is not None:
        kwargs["content"] = _encode_content(options.body)
    return kwargs


# --------------------------------------------------------------------------- #
# Response side
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class RawResponse:
    """An unclassified response. ``text`` is ``None`` if reading the body failed."""

    status: int
    content_type: Optional[str]
    headers: httpx.Headers
    text: Optional[str]


@dataclass(frozen=True)
class ApiResponse:
    """Accepted status with a body that matched the ok codec."""

    status: int
    data: Any
    headers: httpx.Headers = field(default_factory=httpx.Headers, repr=False)
    error: bool = False


@dataclass(frozen=True)
class ApiError:
    """Any status outside the accepted set. ``data`` is ``None`` if the body did not decode."""

    status: int
    data: Any = None
    headers: httpx.Headers = field(default_factory=httpx.Headers, repr=False)
    error: bool = True


@dataclass(frozen=True)
class Failure:
    """Accepted status whose body could not be parsed or did not match the ok codec."""

    reason: str
    status: Optional[int] = None
    error: bool = True


RequestResult = Union[ApiResponse, ApiError, Failure]


def _is_json(content_type: Optional[str]) -> bool:
    return bool(content_type) and "application/json" in content_type.lower()


def _decode_text(codec: Codec, text: Optional[str]) -> DecodeResult:
    # An empty body reads as absent, falling back to the empty string.
    if not text:
        result = codec.decode(None)
        if result.ok or text is None:
            return result
    return codec.decode(text)


def _decode_body(codec: Codec, raw: RawResponse) -> DecodeResult:
    if _is_json(raw.content_type) and raw.text:
        return codec.decode(json.loads(raw.text))
    return _decode_text(codec, raw.text)


def classify(raw: RawResponse, ok_codec: Codec, err_codec: Codec) -> RequestResult:
    """Turn a :class:`RawResponse` into exactly one result value."""
    if raw.status not in ACCEPTED_STATUSES:
        try:
            decoded = _decode_body(err_codec, raw)
        except ValueError:
            decoded = None
        data = decoded.value if decoded is not None and decoded.ok else None
        return ApiError(status=raw.status, data=data, headers=raw.headers)

    try:
        decoded = _decode_body(ok_codec, raw)
    except ValueError as exc:
        return Failure(reason=f"Invalid JSON body: {exc}", status=raw.status)
    if not decoded.ok:
        return Failure(reason=str(decoded), status=raw.status)
    return ApiResponse(status=raw.status, data=decoded.value, headers=raw.headers)


def ok(result: RequestResult) -> Any:
    """Unwrap a result optimistically.

    Returns:
        The decoded data of an :class:`ApiResponse`.

    Raises:
        HttpError: For an :class:`ApiError`, carrying its status and data.
        DecodeError: For a :class:`Failure`.
    """
    if isinstance(result, ApiResponse):
        return result.data
    if isinstance(result, ApiError):
        raise HttpError(result.status, result.data)
    raise DecodeError(result.reason)


# --------------------------------------------------------------------------- #
# Executors
# --------------------------------------------------------------------------- #


class _BaseExecutor:
    def __init__(
        self,
        defaults: Optional[RuntimeDefaults] = None,
        transport: Optional[httpx.BaseTransport | httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._defaults = defaults
        self._transport = transport

    @property
    def defaults(self) -> RuntimeDefaults:
        return self._defaults if self._defaults is not None else get_defaults()

    def _read_failed(self, request: httpx.Request, exc: Exception) -> None:
        logger.warning("Could not read response body of %s %s: %s", request.method, request.url, exc)


class SyncExecutor(_BaseExecutor):
    """Blocking executor over :class:`httpx.Client`.

    Used as a context manager the executor keeps one client open for all
    calls; otherwise each call opens and closes its own client.

    Args:
        defaults: Request defaults for this executor. ``None`` means the
            process-wide defaults, read at call time.
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        defaults: Optional[RuntimeDefaults] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        super().__init__(defaults, transport)
        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> SyncExecutor:
        self._client = self._open()
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def _open(self) -> httpx.Client:
        return httpx.Client(transport=self._transport, follow_redirects=True)

    def fetch_text(
        self,
        url: str,
        options: Optional[RequestOptions] = None,
        accept: str = JSON_CONTENT_TYPE,
    ) -> RawResponse:
        """Send a request and return the unclassified response.

        Raises:
            ConnectionError_: On network or timeout errors.
        """
        options = options or RequestOptions()
        client = self._client or self._open()
        try:
            request = client.build_request(**build_request_kwargs(url, options, self.defaults, accept))
            try:
                response = client.send(request, stream=True)
            except httpx.TransportError as exc:
                raise ConnectionError_(f"Request to {request.url} failed: {exc}") from exc
            try:
                response.read()
                text: Optional[str] = response.text
            except (httpx.HTTPError, httpx.StreamError, UnicodeDecodeError) as exc:
                self._read_failed(request, exc)
                text = None
            finally:
                response.close()
        finally:
            if client is not self._client:
                client.close()

        logger.debug("%s %s -> %d", request.method, request.url, response.status_code)
        return RawResponse(
            status=response.status_code,
            content_type=response.headers.get("content-type"),
            headers=response.headers,
            text=text,
        )

    def fetch_json(
        self,
        url: str,
        ok_codec: Codec,
        err_codec: Codec,
        options: Optional[RequestOptions] = None,
        accept: str = JSON_CONTENT_TYPE,
    ) -> RequestResult:
        """Send a request and classify the response with the given codecs."""
        return classify(self.fetch_text(url, options, accept), ok_codec, err_codec)


class AsyncExecutor(_BaseExecutor):
    """Non-blocking executor over :class:`httpx.AsyncClient`.

    Mirrors :class:`SyncExecutor`; use it as an async context manager to
    share one client between calls.
    """

    def __init__(
        self,
        defaults: Optional[RuntimeDefaults] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(defaults, transport)
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> AsyncExecutor:
        self._client = self._open()
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _open(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, follow_redirects=True)

    async def fetch_text(
        self,
        url: str,
        options: Optional[RequestOptions] = None,
        accept: str = JSON_CONTENT_TYPE,
    ) -> RawResponse:
        options = options or RequestOptions()
        client = self._client or self._open()
        try:
            request = client.build_request(**build_request_kwargs(url, options, self.defaults, accept))
            try:
                response = await client.send(request, stream=True)
            except httpx.TransportError as exc:
                raise ConnectionError_(f"Request to {request.url} failed: {exc}") from exc
            try:
                await response.aread()
                text: Optional[str] = response.text
            except (httpx.HTTPError, httpx.StreamError, UnicodeDecodeError) as exc:
                self._read_failed(request, exc)
                text = None
            finally:
                await response.aclose()
        finally:
            if client is not self._client:
                await client.aclose()

        logger.debug("%s %s -> %d", request.method, request.url, response.status_code)
        return RawResponse(
            status=response.status_code,
            content_type=response.headers.get("content-type"),
            headers=response.headers,
            text=text,
        )

    async def fetch_json(
        self,
        url: str,
        ok_codec: Codec,
        err_codec: Codec,
        options: Optional[RequestOptions] = None,
        accept: str = JSON_CONTENT_TYPE,
    ) -> RequestResult:
        return classify(await self.fetch_text(url, options, accept), ok_codec, err_codec)
