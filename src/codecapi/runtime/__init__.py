"""Call-time support for compiled APIs.

Provides the request executors, the query-string codec and the client
binding that turns a :class:`~codecapi.models.CompiledApi` into callables.

Classes:
    :class:`ApiClient` -- blocking client over a :class:`SyncExecutor`.
    :class:`AsyncApiClient` -- non-blocking client over an :class:`AsyncExecutor`.

Example::

    from codecapi.runtime import ApiClient

    client = ApiClient(compiled)
    result = client.pet.getPetById(petId=1)
"""

from codecapi.runtime.client import ApiClient, AsyncApiClient
from codecapi.runtime.executor import (
    ApiError,
    ApiResponse,
    AsyncExecutor,
    Blob,
    Failure,
    RawResponse,
    RequestOptions,
    SyncExecutor,
    ok,
)

__all__ = [
    "ApiClient",
    "AsyncApiClient",
    "ApiError",
    "ApiResponse",
    "AsyncExecutor",
    "Blob",
    "Failure",
    "RawResponse",
    "RequestOptions",
    "SyncExecutor",
    "ok",
]
