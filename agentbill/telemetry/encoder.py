"""Encode spans into the OTLP/JSON subset accepted by the AgentBill collector.

Only what is needed to describe one span kind is produced::

    {"resourceSpans": [{
        "resource": {"attributes": [{"key": ..., "value": {...}}]},
        "scopeSpans": [{"scope": {"name": ..., "version": ..., "spans": [...]}}]
    }]}
"""

import json
from dataclasses import dataclass
from typing import Any, Sequence

from agentbill.telemetry.attributes import ResourceAttributes
from agentbill.telemetry.spans import Span

# OTLP SPAN_KIND_INTERNAL
SPAN_KIND = 1

# intValue is an int64 on the wire
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


@dataclass(frozen=True)
class ResourceIdentity:
    """Resource and instrumentation scope the spans are reported under."""

    service_name: str
    service_version: str
    scope_name: str = "agentbill"
    scope_version: str = ""

    def __post_init__(self) -> None:
        if not self.scope_version:
            object.__setattr__(self, "scope_version", self.service_version)


def encode_attribute_value(value: Any) -> dict[str, Any]:
    """Wrap a value in its OTLP ``AnyValue`` discriminant."""
    # bool first: bool is a subclass of int
    if isinstance(value, bool):
        return {"boolValue": value}
    if isinstance(value, int):
        if _INT64_MIN <= value <= _INT64_MAX:
            return {"intValue": int(value)}
        return {"stringValue": str(int(value))}
    if isinstance(value, str):
        return {"stringValue": value}
    return {"stringValue": str(value)}


def encode_attribute(key: str, value: Any) -> dict[str, Any]:
    return {"key": key, "value": encode_attribute_value(value)}


def encode_span(span: Span) -> dict[str, Any]:
    """Convert one span to its wire structure.

    Timestamps are decimal strings to keep full nanosecond precision in JSON
    consumers that parse numbers as doubles.
    """
    return {
        "traceId": span.trace_id,
        "spanId": span.span_id,
        "name": span.name,
        "kind": SPAN_KIND,
        "startTimeUnixNano": str(span.start_time),
        "endTimeUnixNano": str(span.end_time),
        "attributes": [encode_attribute(key, value) for key, value in span.attributes.items()],
        "status": {"code": int(span.status.code), "message": span.status.message},
    }


def encode_spans(spans: Sequence[Span], identity: ResourceIdentity) -> dict[str, Any]:
    """
    Group spans under one resource and one instrumentation scope.

    Args:
        spans: Spans in the order they should appear in the payload.
        identity: Resource and scope description.

    Returns:
        The payload as plain dicts and lists, ready for JSON serialization.
    """
    resource = {
        "attributes": [
            encode_attribute(ResourceAttributes.SERVICE_NAME, identity.service_name),
            encode_attribute(ResourceAttributes.SERVICE_VERSION, identity.service_version),
        ]
    }
    scope = {
        "name": identity.scope_name,
        "version": identity.scope_version,
        "spans": [encode_span(span) for span in spans],
    }
    return {"resourceSpans": [{"resource": resource, "scopeSpans": [{"scope": scope}]}]}


def dumps_payload(payload: dict[str, Any]) -> bytes:
    """Serialize a payload to compact JSON. Same input, same bytes.

    Non-ASCII characters are escaped, so strings holding lone surrogates
    still serialize.
    """
    return json.dumps(payload, separators=(",", ":")).encode("ascii")
