"""AgentBill client: entry point tying configuration, tracer and wrappers together."""

from typing import Any, Mapping

import httpx
from loguru import logger
from opentelemetry.metrics import MeterProvider

from agentbill.config import AgentBillConfig
from agentbill.providers.litellm_provider import LiteLLMWrapper
from agentbill.providers.openai import OpenAIWrapper
from agentbill.telemetry.exporter import ExportResult, Tracer
from agentbill.telemetry.metrics import OperationMetrics


class AgentBill:
    """
    Tracks AI usage for one AgentBill account.

    Flushing is left to the application: call ``flush()`` when convenient
    (e.g. after a batch of requests or on a timer). ``shutdown()`` and leaving
    a ``with`` block flush once more before closing the HTTP client.

    Example:
        with AgentBill.init(AgentBillConfig.from_env(customer_id="customer-123")) as agentbill:
            openai = agentbill.wrap_openai()
            response = openai.chat_completion("gpt-4o-mini", messages)
    """

    def __init__(
        self,
        config: AgentBillConfig,
        http_client: httpx.Client | None = None,
        meter_provider: MeterProvider | None = None,
    ):
        self.config = config
        self.tracer = Tracer(config, http_client=http_client)
        self.metrics = OperationMetrics(meter_provider)
        self._openai_wrappers: list[OpenAIWrapper] = []
        self._closed = False

    @classmethod
    def init(cls, config: AgentBillConfig | None = None, **kwargs: Any) -> "AgentBill":
        """Create a client from ``config``, or from the environment when omitted."""
        client = cls(config or AgentBillConfig.from_env(), **kwargs)
        if client.config.debug:
            logger.info(f"AgentBill initialized: {client.config.otel_collector_url}")
        return client

    def wrap_openai(self, **kwargs: Any) -> OpenAIWrapper:
        """Return an OpenAI wrapper that reports to this client.

        The wrapper's HTTP client is closed by ``shutdown()``.
        """
        wrapper = OpenAIWrapper(self.tracer, self.metrics, **kwargs)
        self._openai_wrappers.append(wrapper)
        return wrapper

    def wrap_litellm(self, **kwargs: Any) -> LiteLLMWrapper:
        """Return a LiteLLM wrapper that reports to this client."""
        return LiteLLMWrapper(self.tracer, self.metrics, **kwargs)

    def track_signal(
        self,
        event_name: str,
        revenue: float = 0.0,
        data: Mapping[str, Any] | None = None,
    ) -> ExportResult:
        return self.tracer.track_signal(event_name, revenue, data)

    def flush(self) -> ExportResult:
        return self.tracer.flush()

    def shutdown(self) -> ExportResult:
        """Flush pending spans and release HTTP clients. Safe to call twice."""
        if self._closed:
            return ExportResult()
        result = self.tracer.flush()
        self.tracer.close()
        for wrapper in self._openai_wrappers:
            wrapper.close()
        self._openai_wrappers.clear()
        self._closed = True
        return result

    def __enter__(self) -> "AgentBill":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
