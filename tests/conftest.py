"""Shared fixtures: configs, tracers wired to an in-memory HTTP transport."""

import json
from typing import Callable

import httpx
import pytest
from opentelemetry.sdk.trace.id_generator import IdGenerator

from agentbill.config import AgentBillConfig
from agentbill.telemetry.exporter import Tracer

BASE_URL = "https://collector.test"

Handler = Callable[[httpx.Request], httpx.Response]


class SequentialIdGenerator(IdGenerator):
    """Predictable ids so encoded payloads can be compared."""

    def __init__(self) -> None:
        self._next = 0

    def generate_span_id(self) -> int:
        self._next += 1
        return self._next

    def generate_trace_id(self) -> int:
        self._next += 1
        return self._next


class RecordingTransport(httpx.MockTransport):
    """Mock transport that keeps every request it handled."""

    def __init__(self, handler: Handler) -> None:
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)

    def bodies(self) -> list[dict]:
        return [json.loads(request.content) for request in self.requests]


def respond_with(status_code: int) -> Handler:
    return lambda request: httpx.Response(status_code)


@pytest.fixture
def config() -> AgentBillConfig:
    return AgentBillConfig(api_key="test-key", base_url=BASE_URL, customer_id="customer-123")


@pytest.fixture
def make_tracer(config: AgentBillConfig) -> Callable[..., tuple[Tracer, RecordingTransport]]:
    """Build a tracer whose deliveries go to ``handler`` (HTTP 200 by default)."""

    def factory(
        handler: Handler | None = None,
        tracer_config: AgentBillConfig | None = None,
    ) -> tuple[Tracer, RecordingTransport]:
        transport = RecordingTransport(handler or respond_with(200))
        tracer = Tracer(
            tracer_config or config,
            http_client=httpx.Client(transport=transport),
            id_generator=SequentialIdGenerator(),
        )
        return tracer, transport

    return factory
