"""GenAI metrics instrumentation."""

from opentelemetry import metrics
from opentelemetry.metrics import MeterProvider
from loguru import logger

from agentbill.telemetry.attributes import MetricAttributes, TokenType
from agentbill.version import __version__


class OperationMetrics:
    """
    Duration and token-usage histograms for provider calls.

    Uses the given meter provider, or the global one. The global provider
    records nothing until the host application installs an SDK provider.
    """

    def __init__(self, meter_provider: MeterProvider | None = None):
        meter = metrics.get_meter("agentbill.genai", __version__, meter_provider=meter_provider)
        self._operation_duration = meter.create_histogram(
            name="gen_ai.client.operation.duration",
            unit="s",
            description="Duration of GenAI client operations",
        )
        self._token_usage = meter.create_histogram(
            name="gen_ai.client.token.usage",
            unit="{token}",
            description="Number of tokens used in GenAI operations",
        )

    def record(
        self,
        duration: float,
        operation_name: str,
        provider: str,
        model: str,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
        error_type: str | None = None,
    ) -> None:
        """
        Record metrics for a GenAI operation.

        Args:
            duration: Operation duration in seconds.
            operation_name: Operation name (e.g., "chat").
            provider: Provider name (e.g., "openai").
            model: Model identifier.
            input_tokens: Number of input tokens used.
            output_tokens: Number of output tokens generated.
            error_type: Error type if operation failed.
        """
        attrs = {
            MetricAttributes.OPERATION_NAME: operation_name,
            MetricAttributes.PROVIDER_NAME: provider,
            MetricAttributes.REQUEST_MODEL: model,
        }
        if error_type:
            attrs[MetricAttributes.ERROR_TYPE] = error_type

        try:
            self._operation_duration.record(duration, attributes=attrs)
        except Exception as e:
            logger.debug(f"Failed to record operation duration: {e}")

        for token_type, count in ((TokenType.INPUT, input_tokens), (TokenType.OUTPUT, output_tokens)):
            if count is None:
                continue
            try:
                self._token_usage.record(
                    count,
                    attributes={**attrs, MetricAttributes.TOKEN_TYPE: token_type},
                )
            except Exception as e:
                logger.debug(f"Failed to record {token_type} token usage: {e}")
