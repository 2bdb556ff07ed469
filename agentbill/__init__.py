"""agentbill - usage tracking for AI agents, exported as OpenTelemetry spans."""

from agentbill.version import __version__
from agentbill.client import AgentBill
from agentbill.config import AgentBillConfig
from agentbill.providers import LiteLLMWrapper, OpenAIWrapper, ProviderError
from agentbill.telemetry import ExportError, ExportErrorKind, ExportResult, Span, StatusCode, Tracer

__all__ = [
    "__version__",
    "AgentBill",
    "AgentBillConfig",
    "ExportError",
    "ExportErrorKind",
    "ExportResult",
    "LiteLLMWrapper",
    "OpenAIWrapper",
    "ProviderError",
    "Span",
    "StatusCode",
    "Tracer",
]
