"""Tracked chat completions for any provider supported by LiteLLM."""

import time
from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from agentbill.providers.base import apply_usage
from agentbill.telemetry.attributes import OperationName, SpanAttributes
from agentbill.telemetry.exporter import Tracer
from agentbill.telemetry.metrics import OperationMetrics
from agentbill.telemetry.spans import StatusCode, instrumented_span


class LiteLLMWrapper:
    """
    Chat completions through LiteLLM, one span per call.

    The span is named ``<provider>.chat.completion`` and carries the same
    attributes as the OpenAI wrapper, so both report identically.
    """

    def __init__(
        self,
        tracer: Tracer,
        metrics: OperationMetrics | None = None,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "gpt-4o-mini",
        extra_headers: dict[str, str] | None = None,
    ):
        self.tracer = tracer
        self.metrics = metrics or OperationMetrics()
        self.api_key = api_key
        self.api_base = api_base
        self.default_model = default_model
        self.extra_headers = extra_headers or {}

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True
        litellm.drop_params = True

    def _extract_provider(self, model: str) -> str:
        """Provider name for telemetry ("openai", "anthropic", ...)."""
        if "/" in model:
            return model.split("/", 1)[0]
        try:
            _, provider, _, _ = litellm.get_llm_provider(model)
        except Exception:
            return "unknown"
        return provider

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        tools: list[dict[str, Any]] | None = None,
    ) -> Any:
        """
        Send a chat completion request via LiteLLM.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            model: Model identifier (e.g., 'anthropic/claude-sonnet-4-5').
            max_tokens: Maximum tokens in response.
            temperature: Sampling temperature.
            tools: Optional list of tool definitions in OpenAI format.

        Returns:
            The LiteLLM ``ModelResponse``.
        """
        model = model or self.default_model
        provider = self._extract_provider(model)

        attributes: dict[str, Any] = {
            SpanAttributes.MODEL: model,
            SpanAttributes.PROVIDER: provider,
        }
        kwargs: dict[str, Any] = {"model": model, "messages": messages}
        if max_tokens is not None:
            attributes[SpanAttributes.REQUEST_MAX_TOKENS] = max_tokens
            kwargs["max_tokens"] = max_tokens
        if temperature is not None:
            attributes[SpanAttributes.REQUEST_TEMPERATURE] = temperature
            kwargs["temperature"] = temperature
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.extra_headers:
            kwargs["extra_headers"] = self.extra_headers
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        start_time = time.monotonic()
        error_type = None
        usage: dict[str, Any] = {}

        try:
            with instrumented_span(self.tracer, OperationName.chat_completion(provider), attributes) as span:
                response = await acompletion(**kwargs)

                usage = self._usage(response)
                try:
                    span.set_attribute(SpanAttributes.RESPONSE_MODEL, getattr(response, "model", None) or model)
                    span.set_attribute(SpanAttributes.RESPONSE_ID, getattr(response, "id", None) or "")
                    apply_usage(span, usage)
                    span.set_attribute(SpanAttributes.LATENCY_MS, int((time.monotonic() - start_time) * 1000))
                except Exception as e:
                    logger.debug(f"Failed to set response attributes: {e}")
                span.set_status(StatusCode.OK)
                return response
        except Exception as e:
            error_type = type(e).__name__
            raise
        finally:
            self.metrics.record(
                duration=time.monotonic() - start_time,
                operation_name=OperationName.CHAT,
                provider=provider,
                model=model,
                input_tokens=usage.get("prompt_tokens"),
                output_tokens=usage.get("completion_tokens"),
                error_type=error_type,
            )

    @staticmethod
    def _usage(response: Any) -> dict[str, Any]:
        usage = getattr(response, "usage", None)
        if not usage:
            return {}
        return {
            "prompt_tokens": getattr(usage, "prompt_tokens", None),
            "completion_tokens": getattr(usage, "completion_tokens", None),
            "total_tokens": getattr(usage, "total_tokens", None),
        }
