"""Span model and the span helper used around instrumented calls."""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import IntEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Iterator, Mapping

from loguru import logger
from opentelemetry.sdk.trace.id_generator import IdGenerator, RandomIdGenerator
from opentelemetry.trace import format_span_id, format_trace_id

from agentbill.telemetry.attributes import SpanAttributes

if TYPE_CHECKING:
    from agentbill.telemetry.exporter import Tracer


AttributeValue = str | int | bool

_id_generator = RandomIdGenerator()


class StatusCode(IntEnum):
    """Span status codes as sent on the wire."""

    OK = 0
    ERROR = 1


@dataclass(frozen=True)
class SpanStatus:
    """Status of a span; replaced as a whole by ``Span.set_status``."""

    code: StatusCode = StatusCode.OK
    message: str = ""


def coerce_attribute_value(value: Any) -> AttributeValue:
    """Return ``value`` unchanged if it is a str, int or bool, else ``str(value)``."""
    if isinstance(value, (str, bool, int)):
        return value
    return str(value)


class Span:
    """One timed unit of work.

    Identifiers and the start timestamp are fixed at creation. Attributes and
    status may change until ``end()`` is called; afterwards every mutation is
    ignored.

    Timestamps are Unix-epoch nanoseconds. The wall clock is read once at
    creation and the end timestamp is derived from the monotonic clock, so
    durations never go backwards.
    """

    def __init__(
        self,
        name: str,
        trace_id: str,
        span_id: str,
        attributes: Mapping[str, Any] | None = None,
    ):
        self._name = name
        self._trace_id = trace_id
        self._span_id = span_id
        self._attributes: dict[str, AttributeValue] = {
            key: coerce_attribute_value(value) for key, value in (attributes or {}).items()
        }
        self._status = SpanStatus()
        self._start_time = time.time_ns()
        self._start_monotonic = time.monotonic_ns()
        self._end_monotonic: int | None = None

    @classmethod
    def create(
        cls,
        name: str,
        attributes: Mapping[str, Any] | None = None,
        *,
        service_name: str,
        customer_id: str | None = None,
        id_generator: IdGenerator | None = None,
    ) -> "Span":
        """
        Create a span with fresh identifiers and the service identity merged in.

        Args:
            name: Operation label (e.g. "openai.chat.completion").
            attributes: Initial attributes supplied by the caller.
            service_name: Value for ``service.name``; overrides a caller value.
            customer_id: Value for ``customer.id``, added only when set.
            id_generator: Source of trace and span ids (random by default).

        Returns:
            The new span, started now with status OK.
        """
        generator = id_generator or _id_generator
        merged = dict(attributes or {})
        merged[SpanAttributes.SERVICE_NAME] = service_name
        if customer_id is not None:
            merged[SpanAttributes.CUSTOMER_ID] = customer_id
        return cls(
            name,
            trace_id=format_trace_id(generator.generate_trace_id()),
            span_id=format_span_id(generator.generate_span_id()),
            attributes=merged,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def trace_id(self) -> str:
        return self._trace_id

    @property
    def span_id(self) -> str:
        return self._span_id

    @property
    def attributes(self) -> Mapping[str, AttributeValue]:
        return MappingProxyType(self._attributes)

    @property
    def status(self) -> SpanStatus:
        return self._status

    @property
    def start_time(self) -> int:
        return self._start_time

    @property
    def end_time(self) -> int:
        """End timestamp, or the current time if the span has not ended."""
        end_monotonic = self._end_monotonic
        if end_monotonic is None:
            end_monotonic = time.monotonic_ns()
        return self._start_time + (end_monotonic - self._start_monotonic)

    @property
    def duration_ns(self) -> int:
        return self.end_time - self._start_time

    @property
    def is_ended(self) -> bool:
        return self._end_monotonic is not None

    def set_attribute(self, key: str, value: Any) -> None:
        """Insert or replace an attribute. Unsupported value types are stored as strings."""
        if self.is_ended:
            logger.debug(f"Ignoring attribute {key} on ended span {self._name}")
            return
        self._attributes[key] = coerce_attribute_value(value)

    def set_status(self, code: StatusCode | int, message: str = "") -> None:
        """Replace the span status. Last write before ``end()`` wins.

        Codes other than 0 and 1 are recorded as ERROR.
        """
        if self.is_ended:
            logger.debug(f"Ignoring status on ended span {self._name}")
            return
        try:
            status_code = StatusCode(code)
        except ValueError:
            status_code = StatusCode.ERROR
        self._status = SpanStatus(status_code, message or "")

    def end(self) -> None:
        """Record the end time. Calling again has no effect."""
        if self._end_monotonic is None:
            self._end_monotonic = time.monotonic_ns()

    def __repr__(self) -> str:
        return (
            f"Span(name={self._name!r}, trace_id={self._trace_id}, "
            f"span_id={self._span_id}, ended={self.is_ended})"
        )


@contextmanager
def instrumented_span(
    tracer: "Tracer",
    name: str,
    attributes: Mapping[str, Any] | None = None,
) -> Iterator[Span]:
    """
    Start a span on ``tracer`` around one external call.

    The span keeps whatever status the body sets. If the body raises, the
    span is marked ERROR with the exception message and the exception is
    re-raised. The span is ended in every case.

    Example:
        with instrumented_span(tracer, "openai.chat.completion", {"model": model}) as span:
            response = call_provider(...)
            span.set_attribute("response.total_tokens", response["usage"]["total_tokens"])
    """
    span = tracer.start_span(name, attributes)
    try:
        yield span
    except Exception as e:
        span.set_status(StatusCode.ERROR, str(e))
        span.set_attribute(SpanAttributes.ERROR_TYPE, type(e).__name__)
        raise
    finally:
        span.end()
