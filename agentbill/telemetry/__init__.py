"""Span model, payload encoding and export for agentbill.

Spans are encoded as a subset of OTLP/JSON:
https://opentelemetry.io/docs/specs/otlp/#json-protobuf-encoding
"""

from agentbill.telemetry.attributes import OperationName, SpanAttributes
from agentbill.telemetry.encoder import ResourceIdentity, encode_spans
from agentbill.telemetry.exporter import ExportError, ExportErrorKind, ExportResult, Tracer
from agentbill.telemetry.metrics import OperationMetrics
from agentbill.telemetry.spans import Span, SpanStatus, StatusCode, instrumented_span

__all__ = [
    "ExportError",
    "ExportErrorKind",
    "ExportResult",
    "OperationMetrics",
    "OperationName",
    "ResourceIdentity",
    "Span",
    "SpanAttributes",
    "SpanStatus",
    "StatusCode",
    "Tracer",
    "encode_spans",
    "instrumented_span",
]
