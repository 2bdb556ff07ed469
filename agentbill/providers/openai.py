"""Tracked OpenAI chat completions over plain HTTPS."""

import os
import time
from typing import Any

import httpx
from loguru import logger

from agentbill.providers.base import ProviderError, apply_usage
from agentbill.telemetry.attributes import OperationName, SpanAttributes
from agentbill.telemetry.exporter import Tracer
from agentbill.telemetry.metrics import OperationMetrics
from agentbill.telemetry.spans import StatusCode, instrumented_span

OPENAI_API_BASE = "https://api.openai.com/v1"


class OpenAIWrapper:
    """
    Calls the OpenAI chat completions API and records one span per call.

    Each call produces an ``openai.chat.completion`` span carrying the model,
    token usage and latency. Provider errors are recorded on the span and
    raised to the caller unchanged.
    """

    def __init__(
        self,
        tracer: Tracer,
        metrics: OperationMetrics | None = None,
        api_key: str | None = None,
        api_base: str = OPENAI_API_BASE,
        http_client: httpx.Client | None = None,
        timeout: float = 60.0,
    ):
        self.tracer = tracer
        self.metrics = metrics or OperationMetrics()
        self.api_key = api_key or os.getenv("OPENAI_API_KEY", "")
        self.api_base = api_base.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)

    def chat_completion(
        self,
        model: str,
        messages: list[dict[str, Any]],
        **params: Any,
    ) -> dict[str, Any]:
        """
        Send a chat completion request.

        Args:
            model: Model identifier (e.g. "gpt-4o-mini").
            messages: List of message dicts with 'role' and 'content'.
            **params: Extra request fields (temperature, max_tokens, ...).

        Returns:
            The decoded JSON response.

        Raises:
            ProviderError: The API answered with a non-200 status.
            httpx.HTTPError: The request could not be sent.
        """
        attributes = {
            SpanAttributes.MODEL: model,
            SpanAttributes.PROVIDER: "openai",
        }
        start_time = time.monotonic()
        error_type = None
        usage: dict[str, Any] = {}

        try:
            with instrumented_span(self.tracer, OperationName.OPENAI_CHAT_COMPLETION, attributes) as span:
                response = self._http.post(
                    f"{self.api_base}/chat/completions",
                    json={"model": model, "messages": messages, **params},
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                if response.status_code != 200:
                    raise ProviderError(
                        f"OpenAI API returned status: {response.status_code}",
                        status_code=response.status_code,
                    )
                body = response.json()

                usage = body.get("usage") or {}
                try:
                    apply_usage(span, usage)
                    span.set_attribute(SpanAttributes.LATENCY_MS, int((time.monotonic() - start_time) * 1000))
                except Exception as e:
                    logger.debug(f"Failed to set response attributes: {e}")
                span.set_status(StatusCode.OK)
                return body
        except Exception as e:
            error_type = type(e).__name__
            raise
        finally:
            self.metrics.record(
                duration=time.monotonic() - start_time,
                operation_name=OperationName.CHAT,
                provider="openai",
                model=model,
                input_tokens=usage.get("prompt_tokens"),
                output_tokens=usage.get("completion_tokens"),
                error_type=error_type,
            )

    def close(self) -> None:
        if self._owns_client:
            self._http.close()
