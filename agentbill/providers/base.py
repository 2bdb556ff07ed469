"""Pieces shared by the provider wrappers."""

from typing import Any, Mapping

from agentbill.telemetry.attributes import SpanAttributes
from agentbill.telemetry.spans import Span


class ProviderError(Exception):
    """The model provider answered a request with an error status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


_USAGE_ATTRIBUTES = (
    ("prompt_tokens", SpanAttributes.PROMPT_TOKENS),
    ("completion_tokens", SpanAttributes.COMPLETION_TOKENS),
    ("total_tokens", SpanAttributes.TOTAL_TOKENS),
)


def apply_usage(span: Span, usage: Mapping[str, Any]) -> None:
    """Copy OpenAI-style token counters from a response onto ``span``."""
    for field, attribute in _USAGE_ATTRIBUTES:
        value = usage.get(field)
        if value is not None:
            span.set_attribute(attribute, int(value))
