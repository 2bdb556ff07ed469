"""Span buffering and best-effort delivery to the AgentBill collector."""

import json
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

import httpx
from loguru import logger
from opentelemetry.sdk.trace.id_generator import IdGenerator

from agentbill.config import AgentBillConfig
from agentbill.telemetry.attributes import SignalFields
from agentbill.telemetry.encoder import ResourceIdentity, dumps_payload, encode_spans
from agentbill.telemetry.spans import Span
from agentbill.version import __version__


class ExportErrorKind(str, Enum):
    """Why a delivery attempt failed."""

    HTTP_STATUS = "http_status"
    TIMEOUT = "timeout"
    NETWORK = "network"
    ENCODING = "encoding"


@dataclass(frozen=True)
class ExportError:
    kind: ExportErrorKind
    message: str
    status_code: int | None = None


@dataclass(frozen=True)
class ExportResult:
    """Outcome of a flush or a signal.

    ``exported`` counts the items delivered; it is 0 when ``error`` is set.
    Callers may ignore the result, nothing in the export path raises.
    """

    exported: int = 0
    error: ExportError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Tracer:
    """
    Creates spans, buffers them and flushes them to the collector.

    Each tracer owns its buffer and configuration, so several tracers with
    different settings can live in one process. ``start_span`` and ``flush``
    may be called from any thread.

    Args:
        config: SDK configuration.
        http_client: Client used for deliveries. A client with the configured
            timeout is created (and closed by ``close()``) when omitted.
        id_generator: Source of trace and span ids.
    """

    def __init__(
        self,
        config: AgentBillConfig,
        http_client: httpx.Client | None = None,
        id_generator: IdGenerator | None = None,
    ):
        self.config = config
        self.identity = ResourceIdentity(
            service_name=config.service_name,
            service_version=__version__,
        )
        self._id_generator = id_generator
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=config.timeout)
        self._spans: list[Span] = []
        self._lock = threading.Lock()
        # One delivery at a time, so two flushes never send the same snapshot.
        self._flush_lock = threading.Lock()

    def start_span(self, name: str, attributes: Mapping[str, Any] | None = None) -> Span:
        """
        Create a span and add it to the buffer.

        The caller owns the returned span: it sets attributes and status on
        it and calls ``end()``.
        """
        span = Span.create(
            name,
            attributes,
            service_name=self.config.service_name,
            customer_id=self.config.customer_id,
            id_generator=self._id_generator,
        )
        with self._lock:
            self._spans.append(span)
        return span

    def pending_spans(self) -> list[Span]:
        """Copy of the buffer, in creation order."""
        with self._lock:
            return list(self._spans)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._spans)

    def flush(self) -> ExportResult:
        """
        Send every buffered span in one request.

        Spans that have not ended are sent with the current time as their end.
        On HTTP 200 the sent spans are removed from the buffer; spans started
        while the request was in flight stay for the next flush. On any
        failure the buffer is left as it was.
        """
        with self._flush_lock:
            with self._lock:
                snapshot = list(self._spans)
            if not snapshot:
                return ExportResult()

            body = dumps_payload(encode_spans(snapshot, self.identity))
            error = self._post(self.config.otel_collector_url, body)
            if error is not None:
                if self.config.debug:
                    logger.warning(
                        f"AgentBill flush failed ({error.kind.value}): {error.message}; "
                        f"{len(snapshot)} spans kept for retry"
                    )
                return ExportResult(error=error)

            sent = {id(span) for span in snapshot}
            with self._lock:
                self._spans = [span for span in self._spans if id(span) not in sent]

        if self.config.debug:
            logger.info(f"AgentBill flush: exported {len(snapshot)} spans")
        return ExportResult(exported=len(snapshot))

    def track_signal(
        self,
        event_name: str,
        revenue: float = 0.0,
        data: Mapping[str, Any] | None = None,
    ) -> ExportResult:
        """
        Record a business event (e.g. a purchase) with its revenue.

        Sent immediately in its own request; the span buffer is not touched
        and failures are only reported through the result.
        """
        try:
            payload = {
                SignalFields.EVENT_NAME: event_name,
                SignalFields.REVENUE: float(revenue),
                SignalFields.CUSTOMER_ID: self.config.customer_id,
                SignalFields.TIMESTAMP: int(time.time()),
                SignalFields.DATA: dict(data or {}),
            }
            body = json.dumps(payload, default=str).encode("ascii")
        except (TypeError, ValueError) as e:
            error = ExportError(ExportErrorKind.ENCODING, f"signal not serializable: {e}")
        else:
            error = self._post(self.config.signals_url, body)
        if error is not None:
            if self.config.debug:
                logger.warning(f"AgentBill failed to track signal {event_name}: {error.message}")
            return ExportResult(error=error)

        if self.config.debug:
            revenue = payload[SignalFields.REVENUE]
            logger.info(f"AgentBill signal tracked: {event_name}, revenue: ${revenue:.2f}")
        return ExportResult(exported=1)

    def close(self) -> None:
        """Close the HTTP client if this tracer created it."""
        if self._owns_client:
            self._http.close()

    def _post(self, url: str, body: bytes) -> ExportError | None:
        try:
            response = self._http.post(
                url,
                content=body,
                headers=self.config.headers,
                timeout=self.config.timeout,
            )
        except httpx.TimeoutException as e:
            return ExportError(ExportErrorKind.TIMEOUT, str(e) or "request timed out")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return ExportError(ExportErrorKind.NETWORK, str(e) or type(e).__name__)

        if response.status_code != 200:
            return ExportError(
                ExportErrorKind.HTTP_STATUS,
                f"collector returned status {response.status_code}",
                status_code=response.status_code,
            )
        return None
