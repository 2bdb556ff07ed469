"""Attribute names used on agentbill spans, resources and signals.

Span keys follow the names the AgentBill collector expects; the metric
attributes follow the OpenTelemetry GenAI semantic conventions:
https://github.com/open-telemetry/semantic-conventions/blob/main/docs/gen-ai/gen-ai-metrics.md
"""

from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION


class SpanAttributes:
    """Attribute names set on exported spans."""

    # Service identity, merged into every span
    SERVICE_NAME = SERVICE_NAME
    CUSTOMER_ID = "customer.id"

    # Request attributes
    MODEL = "model"
    PROVIDER = "provider"
    REQUEST_MAX_TOKENS = "request.max_tokens"
    REQUEST_TEMPERATURE = "request.temperature"

    # Response attributes
    RESPONSE_MODEL = "response.model"
    RESPONSE_ID = "response.id"
    PROMPT_TOKENS = "response.prompt_tokens"
    COMPLETION_TOKENS = "response.completion_tokens"
    TOTAL_TOKENS = "response.total_tokens"
    LATENCY_MS = "latency_ms"

    # Error attributes
    ERROR_TYPE = "error.type"


class ResourceAttributes:
    """Attribute names on the exported resource."""

    SERVICE_NAME = SERVICE_NAME
    SERVICE_VERSION = SERVICE_VERSION


class MetricAttributes:
    """GenAI semantic convention attributes used on recorded metrics."""

    OPERATION_NAME = "gen_ai.operation.name"
    PROVIDER_NAME = "gen_ai.provider.name"
    REQUEST_MODEL = "gen_ai.request.model"
    TOKEN_TYPE = "gen_ai.token.type"
    ERROR_TYPE = "error.type"


class TokenType:
    """Token type values for gen_ai.token.type attribute."""

    INPUT = "input"
    OUTPUT = "output"


class OperationName:
    """Span names of instrumented provider calls."""

    CHAT = "chat"
    OPENAI_CHAT_COMPLETION = "openai.chat.completion"

    @staticmethod
    def chat_completion(provider: str) -> str:
        return f"{provider}.chat.completion"


class SignalFields:
    """Body fields of a business signal sent to the record-signals endpoint."""

    EVENT_NAME = "event_name"
    REVENUE = "revenue"
    CUSTOMER_ID = "customer_id"
    TIMESTAMP = "timestamp"
    DATA = "data"
