"""Tests for codecapi.runtime.executor."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable

import httpx
import pytest

from codecapi import codec
from codecapi.config import set_defaults
from codecapi.exceptions import ConfigError, ConnectionError_, DecodeError, HttpError
from codecapi.models import RuntimeDefaults
from codecapi.runtime.executor import (
    ApiError,
    ApiResponse,
    AsyncExecutor,
    Blob,
    Failure,
    RawResponse,
    RequestOptions,
    SyncExecutor,
    build_headers,
    classify,
    form_body,
    json_body,
    multipart_body,
    ok,
)

BASE_URL = "https://api.test"
POINT = codec.interface({"x": codec.number})
ERROR = codec.interface({"message": codec.string})


def _executor(handler: Callable[[httpx.Request], httpx.Response], **defaults: Any) -> SyncExecutor:
    return SyncExecutor(
        RuntimeDefaults(base_url=BASE_URL, **defaults),
        transport=httpx.MockTransport(handler),
    )


def _json_response(data: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, headers={"content-type": "application/json"}, json=data)


class _BrokenStream(httpx.SyncByteStream):
    def __iter__(self):
        yield b'{"x":'
        raise httpx.ReadError("connection reset")


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class TestFetchJson:
    def test_success_decodes_body(self) -> None:
        executor = _executor(lambda request: _json_response({"x": 1}))
        result = executor.fetch_json("/point", POINT, ERROR)
        assert isinstance(result, ApiResponse)
        assert result.status == 200
        assert result.data == {"x": 1}
        assert result.error is False

    def test_error_status_with_unparseable_body(self) -> None:
        executor = _executor(
            lambda request: httpx.Response(404, headers={"content-type": "application/json"}, text="not json")
        )
        result = executor.fetch_json("/point", POINT, ERROR)
        assert isinstance(result, ApiError)
        assert result.status == 404
        assert result.data is None
        assert result.error is True

    def test_error_status_with_matching_body(self) -> None:
        executor = _executor(lambda request: _json_response({"message": "nope"}, 400))
        result = executor.fetch_json("/point", POINT, ERROR)
        assert result == ApiError(status=400, data={"message": "nope"}, headers=result.headers)

    def test_error_status_with_mismatching_body(self) -> None:
        executor = _executor(lambda request: _json_response({"code": 1}, 500))
        result = executor.fetch_json("/point", POINT, ERROR)
        assert isinstance(result, ApiError)
        assert result.data is None

    def test_body_not_matching_ok_codec_is_failure(self) -> None:
        executor = _executor(lambda request: _json_response({"x": "1"}))
        result = executor.fetch_json("/point", POINT, ERROR)
        assert isinstance(result, Failure)
        assert result.reason == "$.x: expected number, got str"
        assert result.error is True

    def test_invalid_json_with_accepted_status_is_failure(self) -> None:
        executor = _executor(
            lambda request: httpx.Response(200, headers={"content-type": "application/json"}, text="{")
        )
        result = executor.fetch_json("/point", POINT, ERROR)
        assert isinstance(result, Failure)
        assert result.reason.startswith("Invalid JSON body")

    def test_empty_204_body_is_absent(self) -> None:
        executor = _executor(lambda request: httpx.Response(204))
        result = executor.fetch_json("/point", codec.optional(codec.null_type), codec.unknown)
        assert result == ApiResponse(status=204, data=None, headers=result.headers)

    def test_text_body_decoded_raw(self) -> None:
        executor = _executor(
            lambda request: httpx.Response(200, headers={"content-type": "text/plain"}, text="stored")
        )
        result = executor.fetch_json("/photo", codec.string, codec.unknown)
        assert result.data == "stored"

    def test_empty_text_body_falls_back_to_empty_string(self) -> None:
        executor = _executor(lambda request: httpx.Response(200, headers={"content-type": "text/plain"}))
        assert executor.fetch_json("/photo", codec.string, codec.unknown).data == ""

    def test_206_is_not_accepted(self) -> None:
        executor = _executor(lambda request: _json_response({"x": 1}, 206))
        assert isinstance(executor.fetch_json("/point", POINT, ERROR), ApiError)


class TestClassify:
    def test_missing_body_on_error(self) -> None:
        raw = RawResponse(status=502, content_type=None, headers=httpx.Headers(), text=None)
        assert classify(raw, POINT, codec.unknown) == ApiError(status=502, data=None, headers=raw.headers)

    def test_missing_body_on_success_fails_decode(self) -> None:
        raw = RawResponse(status=200, content_type="application/json", headers=httpx.Headers(), text=None)
        assert isinstance(classify(raw, POINT, codec.unknown), Failure)


# ---------------------------------------------------------------------------
# Transport behaviour
# ---------------------------------------------------------------------------


class TestFetchText:
    def test_returns_raw_response(self) -> None:
        executor = _executor(lambda request: httpx.Response(201, headers={"content-type": "text/csv"}, text="a,b"))
        raw = executor.fetch_text("/export")
        assert (raw.status, raw.content_type, raw.text) == (201, "text/csv", "a,b")

    def test_body_read_failure_is_swallowed(self, caplog: pytest.LogCaptureFixture) -> None:
        executor = _executor(lambda request: httpx.Response(200, stream=_BrokenStream()))
        with caplog.at_level(logging.WARNING, logger="codecapi.runtime.executor"):
            raw = executor.fetch_text("/point")
        assert raw.status == 200
        assert raw.text is None
        assert "Could not read response body" in caplog.text

    def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ConnectionError_, match="refused"):
            _executor(handler).fetch_text("/point")

    def test_context_manager_reuses_client(self) -> None:
        calls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(str(request.url))
            return _json_response({"x": 1})

        with _executor(handler) as executor:
            executor.fetch_json("/a", POINT, ERROR)
            executor.fetch_json("/b", POINT, ERROR)
        assert calls == [f"{BASE_URL}/a", f"{BASE_URL}/b"]

    def test_process_wide_defaults_read_at_call_time(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json_response({"x": 1})

        executor = SyncExecutor(transport=httpx.MockTransport(handler))
        set_defaults(base_url="https://one.test")
        executor.fetch_text("/a")
        set_defaults(base_url="https://two.test", token="secret")
        executor.fetch_text("/a")

        assert [str(r.url) for r in seen] == ["https://one.test/a", "https://two.test/a"]
        assert seen[1].headers["authorization"] == "Bearer secret"

    def test_per_call_base_url(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(204)

        _executor(handler).fetch_text("/a", RequestOptions(base_url="https://other.test/v2"))
        assert seen == ["https://other.test/v2/a"]


class TestAsyncExecutor:
    def test_fetch_json(self) -> None:
        transport = httpx.MockTransport(lambda request: _json_response({"x": 2}))
        executor = AsyncExecutor(RuntimeDefaults(base_url=BASE_URL), transport=transport)

        async def run():
            async with executor:
                return await executor.fetch_json("/point", POINT, ERROR)

        result = asyncio.run(run())
        assert isinstance(result, ApiResponse)
        assert result.data == {"x": 2}

    def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        executor = AsyncExecutor(RuntimeDefaults(base_url=BASE_URL), transport=httpx.MockTransport(handler))
        with pytest.raises(ConnectionError_):
            asyncio.run(executor.fetch_text("/point"))


# ---------------------------------------------------------------------------
# Request building
# ---------------------------------------------------------------------------


class TestHeaders:
    def test_accept_default_and_override(self) -> None:
        defaults = RuntimeDefaults()
        assert build_headers(RequestOptions(), defaults)["Accept"] == "application/json"
        overridden = build_headers(RequestOptions(headers={"Accept": "text/csv"}), defaults)
        assert overridden["Accept"] == "text/csv"

    def test_accept_override_is_case_insensitive(self) -> None:
        headers = build_headers(RequestOptions(headers={"accept": "text/csv"}), RuntimeDefaults())
        assert headers == {"accept": "text/csv"}
        from_defaults = build_headers(RequestOptions(), RuntimeDefaults(headers={"ACCEPT": "text/plain"}))
        assert from_defaults == {"ACCEPT": "text/plain"}

    def test_single_accept_header_on_the_wire(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        _executor(handler).fetch_text("/report", RequestOptions(headers={"accept": "text/csv"}))
        assert seen[0].headers.get_list("accept") == ["text/csv"]

    def test_per_call_headers_override_defaults(self) -> None:
        defaults = RuntimeDefaults(headers={"X-Client": "a", "X-Trace": "1"})
        headers = build_headers(RequestOptions(headers={"X-Client": "b", "X-Trace": None}), defaults)
        assert headers["X-Client"] == "b"
        assert "X-Trace" not in headers

    def test_bearer_token(self) -> None:
        headers = build_headers(RequestOptions(), RuntimeDefaults(token="abc"))
        assert headers["Authorization"] == "Bearer abc"

    def test_explicit_authorization_kept(self) -> None:
        options = RequestOptions(headers={"authorization": "Basic x"})
        headers = build_headers(options, RuntimeDefaults(token="abc"))
        assert headers == {"Accept": "application/json", "authorization": "Basic x"}

    @pytest.mark.parametrize(
        "body,expected",
        [
            (Blob(b"\x89PNG", "image/png"), "image/png"),
            (Blob(b"raw"), "application/octet-stream"),
            (b"raw", "application/octet-stream"),
            ("hello", "text/plain"),
            ({"a": 1}, "application/json"),
        ],
    )
    def test_content_type_inferred(self, body: Any, expected: str) -> None:
        headers = build_headers(RequestOptions(body=body), RuntimeDefaults())
        assert headers["Content-Type"] == expected

    def test_no_content_type_without_body(self) -> None:
        assert "Content-Type" not in build_headers(RequestOptions(), RuntimeDefaults())


class TestBodies:
    def _capture(self) -> tuple[SyncExecutor, list[httpx.Request]]:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            request.read()
            seen.append(request)
            return httpx.Response(204)

        return _executor(handler), seen

    def test_json_body(self) -> None:
        executor, seen = self._capture()
        executor.fetch_text("/pets", json_body({"name": "rex"}, RequestOptions(method="POST")))
        assert seen[0].method == "POST"
        assert seen[0].headers["content-type"] == "application/json"
        assert json.loads(seen[0].content) == {"name": "rex"}

    def test_json_body_sends_dates_as_iso_8601(self) -> None:
        executor, seen = self._capture()
        at = codec.date.decode("2024-01-02T03:04:05Z").value
        executor.fetch_text("/events", json_body({"at": at}, RequestOptions(method="POST")))
        sent = json.loads(seen[0].content)["at"]
        assert sent == "2024-01-02T03:04:05+00:00"
        assert codec.date.decode(sent).value == at

    def test_form_body(self) -> None:
        executor, seen = self._capture()
        executor.fetch_text("/login", form_body({"user": "a b", "roles": ["x", "y"]}, RequestOptions(method="POST")))
        assert seen[0].headers["content-type"] == "application/x-www-form-urlencoded"
        assert seen[0].content == b"user=a%20b&roles=x,y"

    def test_multipart_body(self) -> None:
        executor, seen = self._capture()
        options = multipart_body(
            {"file": Blob(b"PNGDATA", "image/png", "rex.png"), "caption": "Rex", "skip": None},
            RequestOptions(method="POST"),
        )
        executor.fetch_text("/pets/1/photo", options)
        content_type = seen[0].headers["content-type"]
        assert content_type.startswith("multipart/form-data; boundary=")
        body = seen[0].content
        assert b'name="file"; filename="rex.png"' in body
        assert b"PNGDATA" in body
        assert b'name="caption"' in body
        assert b"Rex" in body
        assert b'name="skip"' not in body

    def test_raw_bytes_body(self) -> None:
        executor, seen = self._capture()
        executor.fetch_text("/upload", RequestOptions(method="PUT", body=b"\x00\x01"))
        assert seen[0].content == b"\x00\x01"
        assert seen[0].headers["content-type"] == "application/octet-stream"


class TestBaseUrl:
    def test_relative_url_without_base_raises_config_error(self) -> None:
        executor = SyncExecutor(RuntimeDefaults(), transport=httpx.MockTransport(lambda r: httpx.Response(204)))
        with pytest.raises(ConfigError, match="/pets"):
            executor.fetch_text("/pets")

    def test_absolute_operation_url_needs_no_base(self) -> None:
        executor = SyncExecutor(RuntimeDefaults(), transport=httpx.MockTransport(lambda r: httpx.Response(204)))
        assert executor.fetch_text("https://api.test/pets").status == 204


class TestOk:
    def test_unwraps_success(self) -> None:
        assert ok(ApiResponse(status=200, data={"x": 1})) == {"x": 1}

    def test_raises_for_api_error(self) -> None:
        with pytest.raises(HttpError) as exc_info:
            ok(ApiError(status=404, data={"message": "gone"}))
        assert exc_info.value.status == 404
        assert exc_info.value.data == {"message": "gone"}
        assert str(exc_info.value) == "Error: 404"

    def test_raises_for_failure(self) -> None:
        with pytest.raises(DecodeError, match="expected number"):
            ok(Failure(reason="$.x: expected number, got str", status=200))
