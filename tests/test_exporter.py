"""Tests for Tracer: buffering, flush and signals."""

import threading
from datetime import datetime, timezone

import httpx
import pytest
from loguru import logger

from agentbill.config import AgentBillConfig
from agentbill.telemetry.exporter import ExportErrorKind, ExportResult
from agentbill.telemetry.spans import StatusCode
from conftest import BASE_URL, respond_with


@pytest.fixture
def log_messages():
    messages: list[str] = []
    sink_id = logger.add(lambda message: messages.append(str(message)), level="INFO")
    yield messages
    logger.remove(sink_id)


def _spans_in(body: dict) -> list[dict]:
    return body["resourceSpans"][0]["scopeSpans"][0]["scope"]["spans"]


# -- buffering ---------------------------------------------------------------


def test_buffer_grows_with_every_started_span(make_tracer) -> None:
    tracer, _ = make_tracer()

    for i in range(5):
        tracer.start_span(f"op-{i}")
        assert tracer.pending_count == i + 1


def test_start_span_adds_service_identity(make_tracer) -> None:
    tracer, _ = make_tracer()
    span = tracer.start_span("op", {"model": "gpt-4o-mini"})

    assert span.attributes["service.name"] == "agentbill-python-sdk"
    assert span.attributes["customer.id"] == "customer-123"


def test_tracers_keep_separate_buffers(make_tracer) -> None:
    first, _ = make_tracer()
    second, _ = make_tracer(tracer_config=AgentBillConfig(api_key="other", base_url=BASE_URL))
    first.start_span("a")

    assert first.pending_count == 1
    assert second.pending_count == 0
    assert "customer.id" not in second.start_span("b").attributes


# -- flush -------------------------------------------------------------------


def test_flush_empty_buffer_is_noop(make_tracer) -> None:
    tracer, transport = make_tracer()

    result = tracer.flush()

    assert result == ExportResult(exported=0)
    assert result.ok
    assert transport.requests == []


def test_flush_success_clears_buffer(make_tracer) -> None:
    """A tracked chat call ends up in the collector request and leaves the buffer."""
    tracer, transport = make_tracer()
    span = tracer.start_span("openai.chat.completion", {"model": "gpt-4o-mini"})
    span.set_attribute("response.total_tokens", 42)
    span.set_status(StatusCode.OK)
    span.end()

    result = tracer.flush()

    assert result.ok
    assert result.exported == 1
    assert tracer.pending_count == 0

    request = transport.requests[0]
    assert request.method == "POST"
    assert str(request.url) == f"{BASE_URL}/functions/v1/otel-collector"
    assert request.headers["Authorization"] == "Bearer test-key"
    assert request.headers["Content-Type"] == "application/json"

    spans = _spans_in(transport.bodies()[0])
    assert len(spans) == 1
    assert spans[0]["name"] == "openai.chat.completion"
    assert {"key": "response.total_tokens", "value": {"intValue": 42}} in spans[0]["attributes"]
    assert spans[0]["status"]["code"] == 0


def test_flush_failure_keeps_buffer(make_tracer) -> None:
    tracer, _ = make_tracer(respond_with(500))
    span = tracer.start_span("openai.chat.completion", {"model": "gpt-4o-mini"})
    span.end()
    before = tracer.pending_spans()

    result = tracer.flush()

    assert not result.ok
    assert result.exported == 0
    assert result.error.kind == ExportErrorKind.HTTP_STATUS
    assert result.error.status_code == 500
    assert tracer.pending_spans() == before
    assert tracer.pending_count == 1


@pytest.mark.parametrize("status_code", [201, 202, 204, 400, 401, 503])
def test_only_http_200_counts_as_delivered(make_tracer, status_code) -> None:
    tracer, _ = make_tracer(respond_with(status_code))
    tracer.start_span("op").end()

    result = tracer.flush()

    assert result.error.status_code == status_code
    assert tracer.pending_count == 1


def test_timeout_keeps_buffer(make_tracer) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    tracer, _ = make_tracer(handler)
    tracer.start_span("op").end()

    result = tracer.flush()

    assert result.error.kind == ExportErrorKind.TIMEOUT
    assert tracer.pending_count == 1


def test_network_error_keeps_buffer(make_tracer) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    tracer, _ = make_tracer(handler)
    tracer.start_span("op").end()

    result = tracer.flush()

    assert result.error.kind == ExportErrorKind.NETWORK
    assert "connection refused" in result.error.message
    assert tracer.pending_count == 1


def test_failed_spans_are_resent_on_next_flush(make_tracer) -> None:
    statuses = iter([500, 200])
    tracer, transport = make_tracer(lambda request: httpx.Response(next(statuses)))
    span = tracer.start_span("op")
    span.end()

    assert not tracer.flush().ok
    assert tracer.flush().ok

    first, second = transport.bodies()
    assert _spans_in(first) == _spans_in(second)
    assert _spans_in(second)[0]["spanId"] == span.span_id
    assert tracer.pending_count == 0


def test_spans_started_during_flush_survive(make_tracer) -> None:
    late = []

    def handler(request: httpx.Request) -> httpx.Response:
        late.append(tracer.start_span("started-during-flush"))
        return httpx.Response(200)

    tracer, transport = make_tracer(handler)
    tracer.start_span("op").end()

    assert tracer.flush().exported == 1
    assert tracer.pending_spans() == late
    assert [s["name"] for s in _spans_in(transport.bodies()[0])] == ["op"]


def test_unended_spans_are_sent_with_current_time(make_tracer) -> None:
    tracer, transport = make_tracer()
    span = tracer.start_span("still-running")

    tracer.flush()

    sent = _spans_in(transport.bodies()[0])[0]
    assert int(sent["endTimeUnixNano"]) >= int(sent["startTimeUnixNano"])
    assert not span.is_ended


def test_concurrent_start_span_and_flush(make_tracer) -> None:
    tracer, transport = make_tracer()
    threads_count, per_thread = 8, 50
    stop = threading.Event()

    def produce() -> None:
        for i in range(per_thread):
            tracer.start_span(f"op-{i}").end()

    def flush_loop() -> None:
        while not stop.is_set():
            tracer.flush()

    flusher = threading.Thread(target=flush_loop)
    flusher.start()
    producers = [threading.Thread(target=produce) for _ in range(threads_count)]
    for thread in producers:
        thread.start()
    for thread in producers:
        thread.join()
    stop.set()
    flusher.join()
    tracer.flush()

    sent_ids = [s["spanId"] for body in transport.bodies() for s in _spans_in(body)]
    assert len(sent_ids) == threads_count * per_thread
    assert len(set(sent_ids)) == len(sent_ids)
    assert tracer.pending_count == 0


# -- debug logging -----------------------------------------------------------


def test_debug_mode_logs_failures(make_tracer, log_messages) -> None:
    debug_config = AgentBillConfig(api_key="k", base_url=BASE_URL, debug=True)
    tracer, _ = make_tracer(respond_with(500), tracer_config=debug_config)
    tracer.start_span("op").end()

    tracer.flush()

    assert any("flush failed" in message for message in log_messages)


def test_quiet_without_debug(make_tracer, log_messages) -> None:
    tracer, _ = make_tracer(respond_with(500))
    tracer.start_span("op").end()

    tracer.flush()
    tracer.track_signal("purchase", 1.0)

    assert log_messages == []


# -- signals -----------------------------------------------------------------


def test_track_signal_posts_event(make_tracer) -> None:
    tracer, transport = make_tracer()
    tracer.start_span("op")

    result = tracer.track_signal("purchase", 19.99, {"plan": "pro"})

    assert result == ExportResult(exported=1)
    request = transport.requests[0]
    assert str(request.url) == f"{BASE_URL}/functions/v1/record-signals"
    assert request.headers["Authorization"] == "Bearer test-key"
    body = transport.bodies()[0]
    assert body["event_name"] == "purchase"
    assert body["revenue"] == 19.99
    assert body["customer_id"] == "customer-123"
    assert isinstance(body["timestamp"], int)
    assert body["data"] == {"plan": "pro"}
    assert tracer.pending_count == 1


def test_track_signal_defaults(make_tracer) -> None:
    tracer, transport = make_tracer()

    tracer.track_signal("signup")

    body = transport.bodies()[0]
    assert body["revenue"] == 0.0
    assert body["data"] == {}


def test_track_signal_stringifies_unserializable_data(make_tracer) -> None:
    tracer, transport = make_tracer()
    when = datetime(2024, 1, 2, tzinfo=timezone.utc)

    tracer.track_signal("renewal", 5, {"at": when})

    assert transport.bodies()[0]["data"] == {"at": str(when)}


def test_track_signal_failure_is_reported_not_raised(make_tracer) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    tracer, _ = make_tracer(handler)

    result = tracer.track_signal("purchase", 10)

    assert not result.ok
    assert result.error.kind == ExportErrorKind.NETWORK


def test_flush_with_lone_surrogate_delivers_everything(make_tracer) -> None:
    tracer, transport = make_tracer()
    tracer.start_span("op", {"path": "bad\udcff"}).end()
    tracer.start_span("good").end()

    result = tracer.flush()

    assert result.exported == 2
    assert tracer.pending_count == 0
    spans = _spans_in(transport.bodies()[0])
    assert {"key": "path", "value": {"stringValue": "bad\udcff"}} in spans[0]["attributes"]


def _circular() -> dict:
    data: dict = {}
    data["self"] = data
    return data


@pytest.mark.parametrize("data", [{("a", "b"): 1}, _circular()], ids=["tuple-key", "circular"])
def test_unserializable_signal_is_reported_not_raised(make_tracer, data) -> None:
    tracer, transport = make_tracer()

    result = tracer.track_signal("purchase", 1.0, data)

    assert not result.ok
    assert result.error.kind == ExportErrorKind.ENCODING
    assert transport.requests == []


def test_unserializable_signal_logged_in_debug(make_tracer, log_messages) -> None:
    debug_config = AgentBillConfig(api_key="k", base_url=BASE_URL, debug=True)
    tracer, _ = make_tracer(tracer_config=debug_config)

    tracer.track_signal("purchase", 1.0, {("a", "b"): 1})

    assert any("failed to track signal purchase" in message for message in log_messages)
