import contextvars
from concurrent.futures import Future

import pytest
from inline_snapshot import snapshot

import courier
from courier import (
    AbortReason,
    Aborted,
    BaseTransport,
    CallbackError,
    ConnectError,
    CurlTransport,
    DecodeError,
    EmptyResponseError,
    Exchange,
    FilterError,
    Handle,
    Headers,
    HTTPError,
    MockTransport,
    RequestTimeout,
    Response,
    TransportUnavailable,
    configure,
    normalize_request,
)


URL = "https://example.com/ip"


def json_response(content: bytes = b'{"origin": "127.0.0.1"}', status_code: int = 200) -> Response:
    return Response(status_code=status_code, headers=Headers("json"), content=content)


class Recorder:
    """Collects every callback invocation of a call."""

    def __init__(self) -> None:
        self.events = []

    def done(self, response):
        self.events.append(("done", response))

    def fail(self, error):
        self.events.append(("fail", error))

    def fine(self, response):
        self.events.append(("fine", response))

    @property
    def names(self):
        return [name for name, _ in self.events]


class SilentTransport(BaseTransport):
    """Finishes every exchange without reporting an outcome."""

    kind = "silent"

    async def exchange(self, request, emit):
        raise AssertionError("never called")

    def execute(self, request, **kwargs):
        exchange = Exchange(self, request)
        exchange._future = Future()
        exchange._future.set_result(None)
        return exchange


def test_normalize_infers_method():
    assert normalize_request(URL).method == "GET"
    assert normalize_request(URL, data={"a": 1}).method == "POST"
    assert normalize_request(URL, data=b"").method == "POST"
    assert normalize_request(URL, method="put", data="x").method == "PUT"


def test_normalize_rejects_unknown_method_and_negative_retry():
    with pytest.raises(ValueError, match="Unsupported HTTP method: FETCH"):
        normalize_request(URL, method="fetch")
    with pytest.raises(ValueError):
        normalize_request(URL, retry=-1)


def test_normalize_encodes_and_merges():
    request = normalize_request(URL, params={"q": "a b"}, headers="json", data={"a": 1})

    assert request.url == "https://example.com/ip?q=a%20b"
    assert request.body == b'{"a": 1}'
    assert request.is_binary is True
    assert request.headers["content-type"] == "application/json"
    assert request.data == {"a": 1}


def test_normalize_sync_resolution():
    assert normalize_request(URL).sync is True
    assert normalize_request(URL, done=print).sync is False
    assert normalize_request(URL, done=print, sync=True).sync is True

    configure(sync=False)
    assert normalize_request(URL).sync is False


def test_normalize_defaults_from_settings():
    configure(retry=3, timeout=2.5, cache=60)
    request = normalize_request(URL)

    assert request.retry == 3
    assert request.timeout == 2.5
    assert request.cache is not None
    assert request.cache.ttl == 60.0
    assert normalize_request(URL, cache=False).cache is None


def test_sync_request_returns_decoded_response():
    transport = MockTransport()
    transport.add_responses([json_response()])

    response = courier.request(URL, transport=transport)

    assert response.status_code == 200
    assert response.data == {"origin": "127.0.0.1"}
    assert response.ok
    assert response.request is not None
    assert response.from_cache is False
    assert transport.requests[0].method == "GET"


def test_custom_decoder():
    transport = MockTransport()
    transport.add_responses([Response(status_code=200, content=b"abc")])

    response = courier.request(URL, resp=lambda response: response.content.upper(), transport=transport)

    assert response.data == b"ABC"


def test_async_request_callbacks_fire_once():
    transport = MockTransport()
    transport.add_responses([json_response()])
    recorder = Recorder()

    handle = courier.request(URL, done=recorder.done, fail=recorder.fail, fine=recorder.fine, transport=transport)

    assert isinstance(handle, Handle)
    assert handle.wait(5)
    assert recorder.names == ["done", "fine"]
    assert recorder.events[0][1] is handle.response
    assert handle.error is None
    assert handle.result().data == {"origin": "127.0.0.1"}


def test_failure_callbacks_fire_once():
    transport = MockTransport()
    transport.add_responses([ConnectError("connection refused")])
    recorder = Recorder()

    handle = courier.request(URL, done=recorder.done, fail=recorder.fail, fine=recorder.fine, transport=transport)

    assert handle.wait(5)
    assert recorder.names == ["fail", "fine"]
    error = recorder.events[0][1]
    assert isinstance(error, ConnectError)
    assert error.response is recorder.events[1][1]
    assert error.response.abort_reason is AbortReason.CONNECTION
    assert error.response.status_code is None


def test_sync_request_raises_normalized_error():
    transport = MockTransport()
    transport.add_responses([OSError("network is unreachable")])

    with pytest.raises(ConnectError, match="network is unreachable") as exc_info:
        courier.request(URL, transport=transport)

    assert exc_info.value.response is not None
    assert exc_info.value.response.error is exc_info.value


def test_http_error_uses_reason_phrase_table():
    transport = MockTransport()
    transport.add_responses([Response(status_code=404, content=b"missing")])

    with pytest.raises(HTTPError) as exc_info:
        courier.request(URL, transport=transport)

    assert exc_info.value.status_code == 404
    assert exc_info.value.reason == "Not Found"
    assert exc_info.value.kind == "http-error"
    assert exc_info.value.response is not None
    assert exc_info.value.response.content == b"missing"


def test_empty_response():
    transport = MockTransport()
    transport.add_responses([Response()])

    with pytest.raises(EmptyResponseError):
        courier.request(URL, transport=transport)


def test_decode_error_sets_abort_reason():
    transport = MockTransport()
    transport.add_responses([json_response(b"{not json")])
    recorder = Recorder()

    handle = courier.request(URL, done=recorder.done, fail=recorder.fail, fine=recorder.fine, transport=transport)

    assert handle.wait(5)
    assert recorder.names == ["fail", "fine"]
    assert isinstance(handle.error, DecodeError)
    assert handle.response.abort_reason is AbortReason.DECODE


def test_timeout_retry_consumes_budget():
    transport = MockTransport()
    transport.add_responses([MockTransport.HANG] * 3)
    recorder = Recorder()

    with pytest.raises(RequestTimeout) as exc_info:
        courier.request(URL, timeout=0.01, retry=2, fail=recorder.fail, fine=recorder.fine, transport=transport)

    assert transport.call_count == 3
    assert recorder.names == ["fail", "fine"]
    assert exc_info.value.response.retries == 2
    assert exc_info.value.response.abort_reason is AbortReason.TIMEOUT


def test_timeout_then_success():
    transport = MockTransport()
    transport.add_responses([MockTransport.HANG, json_response()])
    recorder = Recorder()

    response = courier.request(
        URL, timeout=0.01, retry=1, done=recorder.done, fine=recorder.fine, sync=True, transport=transport
    )

    assert transport.call_count == 2
    assert response.retries == 1
    assert recorder.names == ["done", "fine"]


def test_gateway_timeout_is_retried():
    transport = MockTransport()
    transport.add_responses([Response(status_code=504), json_response()])

    response = courier.request(URL, retry=1, transport=transport)

    assert transport.call_count == 2
    assert response.status_code == 200


def test_timeout_message_is_retried():
    transport = MockTransport()
    transport.add_responses([ConnectError("read timed out"), json_response()])

    response = courier.request(URL, retry=1, transport=transport)

    assert response.retries == 1


def test_other_errors_are_not_retried():
    transport = MockTransport()
    transport.add_responses([Response(status_code=500), json_response()])

    with pytest.raises(HTTPError):
        courier.request(URL, retry=3, transport=transport)

    assert transport.call_count == 1


def test_retry_default_from_settings():
    configure(retry=1)
    transport = MockTransport()
    transport.add_responses([RequestTimeout("slow"), json_response()])

    assert courier.request(URL, transport=transport).retries == 1


def test_streaming_filter_sees_every_chunk():
    transport = MockTransport(chunk_size=2)
    transport.add_responses([Response(status_code=200, content=b"abcdef")])
    chunks = []

    def record(chunk, partial):
        chunks.append((chunk, partial.status_code))

    response = courier.request(URL, filter=record, transport=transport)

    assert chunks == [(b"ab", 200), (b"cd", 200), (b"ef", 200)]
    assert response.content == b"abcdef"


def test_streaming_filter_abort():
    transport = MockTransport(chunk_size=2)
    transport.add_responses([Response(status_code=200, content=b"abcdef")])
    recorder = Recorder()
    chunks = []

    def only_two_chunks(chunk, partial):
        chunks.append(chunk)
        if len(chunks) == 2:
            raise ValueError("enough")

    with pytest.raises(FilterError, match="ValueError: enough") as exc_info:
        courier.request(
            URL, filter=only_two_chunks, done=recorder.done, fail=recorder.fail, sync=True, transport=transport
        )

    assert chunks == [b"ab", b"cd"]
    assert recorder.names == ["fail"]
    assert exc_info.value.response.abort_reason is AbortReason.FILTER
    assert isinstance(exc_info.value.__cause__, ValueError)


def test_user_abort():
    transport = MockTransport()
    transport.add_responses([MockTransport.HANG])
    recorder = Recorder()

    handle = courier.request(URL, done=recorder.done, fail=recorder.fail, fine=recorder.fine, transport=transport)
    handle.abort()
    handle.abort()

    assert handle.done()
    assert recorder.names == ["fail", "fine"]
    assert isinstance(handle.error, Aborted)
    assert handle.response.abort_reason is AbortReason.USER
    with pytest.raises(Aborted):
        handle.result()


def test_liveness_check_settles_silent_exchange():
    with pytest.raises(ConnectError, match="without reporting an outcome"):
        courier.request(URL, transport=SilentTransport())


def test_transport_unavailable_is_raised_before_dispatch():
    recorder = Recorder()
    transport = CurlTransport(executable="courier-test-missing-curl")

    with pytest.raises(TransportUnavailable):
        courier.request(URL, done=recorder.done, fail=recorder.fail, transport=transport, retry=3, cache=60)

    assert recorder.names == []


def test_success_callback_error():
    transport = MockTransport()
    transport.add_responses([json_response()])
    recorder = Recorder()
    reported = []
    configure(error_handler=reported.append)

    def broken(response):
        raise KeyError("origin")

    with pytest.raises(CallbackError) as exc_info:
        courier.request(URL, done=broken, fail=recorder.fail, fine=recorder.fine, sync=True, transport=transport)

    assert reported == [exc_info.value]
    assert recorder.names == ["fine"]
    assert isinstance(exc_info.value.__cause__, KeyError)


def test_default_error_handler_for_async_calls():
    transport = MockTransport()
    transport.add_responses([ConnectError("refused"), ConnectError("refused")])
    reported = []
    configure(error_handler=reported.append)

    handle = courier.request(URL, sync=False, transport=transport)
    assert handle.wait(5)
    assert [type(error) for error in reported] == [ConnectError]

    with pytest.raises(ConnectError):
        courier.request(URL, transport=transport)
    assert len(reported) == 1


def test_default_error_handler_logs(caplog: pytest.LogCaptureFixture):
    transport = MockTransport()
    transport.add_responses([ConnectError("refused")])

    with caplog.at_level("DEBUG", logger="courier"):
        handle = courier.request(URL, sync=False, transport=transport)
        assert handle.wait(5)

    errors = [record.getMessage() for record in caplog.records if record.levelname == "ERROR"]
    assert errors == ["GET https://example.com/ip failed with connection-error: refused"]


def test_raising_finally_is_logged(caplog: pytest.LogCaptureFixture):
    transport = MockTransport()
    transport.add_responses([json_response()])

    def broken(response):
        raise RuntimeError("boom")

    with caplog.at_level("DEBUG", logger="courier"):
        response = courier.request(URL, fine=broken, transport=transport)

    assert response.status_code == 200
    assert "Finally callback of GET https://example.com/ip raised" in caplog.messages


def test_callbacks_run_in_callers_context():
    request_id = contextvars.ContextVar("request_id", default=None)
    transport = MockTransport()
    transport.add_responses([json_response()])
    seen = []

    request_id.set("abc-123")
    courier.request(URL, done=lambda response: seen.append(request_id.get()), sync=True, transport=transport)

    assert seen == ["abc-123"]


def test_callback_may_issue_a_sync_request():
    outer = MockTransport()
    outer.add_responses([json_response()])
    inner = MockTransport()
    inner.add_responses([json_response(b'{"nested": true}')])
    results = []

    handle = courier.request(
        URL, done=lambda response: results.append(courier.request(URL + "/nested", transport=inner).data), transport=outer
    )

    assert handle.wait(5)
    assert results == [{"nested": True}]


def test_cache_short_circuits_transport():
    transport = MockTransport()
    transport.add_responses([json_response()])
    recorder = Recorder()
    table: dict = {}

    first = courier.request(URL, cache=(60, "url", table), transport=transport)
    second = courier.request(
        URL, cache=(60, "url", table), done=recorder.done, fine=recorder.fine, sync=True, transport=transport
    )

    assert transport.call_count == 1
    assert first.from_cache is False
    assert second.from_cache is True
    assert second.data == first.data
    assert second.content == first.content
    assert recorder.names == ["done", "fine"]


def test_headers_are_excluded_from_url_key():
    transport = MockTransport()
    transport.add_responses([json_response(), json_response()])

    courier.request(URL, headers={"X-Trace": "1"}, cache=(60, "url"), transport=transport)
    courier.request(URL, headers={"X-Trace": "2"}, cache=(60, "url"), transport=transport)

    assert transport.call_count == 1


def test_default_keys_include_headers():
    transport = MockTransport()
    transport.add_responses([json_response(), json_response()])

    courier.request(URL, headers={"X-Trace": "1"}, cache=60, transport=transport)
    courier.request(URL, headers={"X-Trace": "2"}, cache=60, transport=transport)

    assert transport.call_count == 2


def test_failures_are_not_cached():
    transport = MockTransport()
    transport.add_responses([Response(status_code=503), json_response()])

    with pytest.raises(HTTPError):
        courier.request(URL, cache=60, transport=transport)
    response = courier.request(URL, cache=60, transport=transport)

    assert response.from_cache is False
    assert transport.call_count == 2


def test_cache_hit_bypasses_filter():
    transport = MockTransport()
    transport.add_responses([json_response()])
    chunks = []

    courier.request(URL, cache=60, transport=transport)
    courier.request(URL, cache=60, filter=lambda chunk, partial: chunks.append(chunk), transport=transport)

    assert chunks == []


def test_configured_default_cache_and_opt_out():
    configure(cache=(60, "url"))
    transport = MockTransport()
    transport.add_responses([json_response(), json_response()])

    courier.request(URL, transport=transport)
    courier.request(URL, transport=transport)
    courier.request(URL, cache=False, transport=transport)

    assert transport.call_count == 2


def test_cache_logging(caplog: pytest.LogCaptureFixture, courier_messages):
    transport = MockTransport()
    transport.add_responses([json_response()])

    with caplog.at_level("DEBUG", logger="courier"):
        courier.request(URL, cache=(60, "url"), transport=transport)
        courier.request(URL, cache=(60, "url"), transport=transport)

    assert courier_messages() == snapshot(
        [
            "Cache miss",
            "Starting attempt 1 for GET https://example.com/ip",
            "GET https://example.com/ip succeeded with status 200",
            "Storing response in cache",
            "Cache hit",
            "Serving GET https://example.com/ip from cache",
        ]
    )


def test_retry_logging(caplog: pytest.LogCaptureFixture, courier_messages):
    transport = MockTransport()
    transport.add_responses([RequestTimeout("slow"), json_response()])

    with caplog.at_level("DEBUG", logger="courier"):
        courier.request(URL, retry=1, transport=transport)

    assert courier_messages() == snapshot(
        [
            "Starting attempt 1 for GET https://example.com/ip",
            "Retrying GET https://example.com/ip after timeout-error (0 retries left)",
            "Starting attempt 2 for GET https://example.com/ip",
            "GET https://example.com/ip succeeded with status 200",
        ]
    )


@pytest.mark.anyio
async def test_arequest():
    transport = MockTransport()
    transport.add_responses([json_response()])

    response = await courier.arequest(URL, transport=transport)

    assert response.data == {"origin": "127.0.0.1"}


@pytest.mark.anyio
async def test_arequest_raises():
    transport = MockTransport()
    transport.add_responses([ConnectError("refused")])

    with pytest.raises(ConnectError):
        await courier.arequest(URL, done=print, transport=transport)
