"""Centralised observability utilities for tracing, metrics and logging context.

Spans and instruments come from the OpenTelemetry API; they are no-ops
unless the deployment installs and configures an SDK.
"""

from __future__ import annotations

import contextlib
import contextvars
import logging
import time
import uuid
from typing import Dict, Iterator, Optional

from opentelemetry import metrics, trace
from opentelemetry.trace import Span, Status, StatusCode

_logger = logging.getLogger(__name__)

_TRACER_NAME = "contact_relay"
_METER_NAME = "contact_relay"

_request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)

_meter = metrics.get_meter(_METER_NAME)
_request_counter = _meter.create_counter(
    "http.server.requests", description="Inbound HTTP requests by route and status"
)
_delivery_counter = _meter.create_counter(
    "outbound.deliveries", description="Dispatched outbound calls by kind and outcome"
)
_latency_histogram = _meter.create_histogram(
    "http.server.duration", unit="ms", description="Inbound request latency"
)


class RequestIdFilter(logging.Filter):
    """Ensure every log record carries the current request identifier."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_current_request_id() or "n/a"
        return True


def generate_request_id() -> str:
    """Generate a unique, log-friendly request identifier."""

    return f"req-{uuid.uuid4().hex[:12]}"


def get_current_request_id() -> Optional[str]:
    return _request_id_var.get()


@contextlib.contextmanager
def request_context(request_id: Optional[str] = None) -> Iterator[str]:
    """Bind *request_id* (or a fresh one) to the current task's log records."""

    resolved = request_id or generate_request_id()
    token = _request_id_var.set(resolved)
    try:
        yield resolved
    finally:
        _request_id_var.reset(token)


@contextlib.contextmanager
def request_span(
    name: str, attributes: Optional[Dict[str, object]] = None
) -> Iterator[Span]:
    """Trace one inbound request and record its latency."""

    span_attributes: Dict[str, object] = {"http.route": name}
    request_id = get_current_request_id()
    if request_id:
        span_attributes["request.id"] = request_id
    if attributes:
        span_attributes.update(attributes)

    tracer = trace.get_tracer(_TRACER_NAME)
    start = time.perf_counter()
    with tracer.start_as_current_span(f"http {name}", attributes=span_attributes) as span:
        try:
            yield span
        except Exception as exc:
            span.record_exception(exc)
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            raise
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            span.set_attribute("http.duration_ms", duration_ms)
            _latency_histogram.record(duration_ms, {"http.route": name})


def record_request(route: str, status: int) -> None:
    _request_counter.add(1, {"http.route": route, "http.status_code": status})


def record_delivery(kind: str, ok: bool, attempts: int) -> None:
    """Count one dispatched outbound call (email, chat, ping)."""

    _delivery_counter.add(
        1, {"delivery.kind": kind, "delivery.ok": ok, "delivery.attempts": attempts}
    )
    _logger.debug("delivery kind=%s ok=%s attempts=%d", kind, ok, attempts)


_LOG_FORMAT = "%(asctime)s %(levelname)s [request_id=%(request_id)s] %(name)s %(message)s"
_request_id_filter = RequestIdFilter()


def configure_logging(level: str | int = logging.INFO) -> None:
    """Configure root logging once per process; safe to call repeatedly."""

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        root_logger.addHandler(logging.StreamHandler())

    for handler in root_logger.handlers:
        formatter = handler.formatter
        if formatter is None or "%(request_id)" not in getattr(formatter, "_fmt", ""):
            handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        if _request_id_filter not in handler.filters:
            handler.addFilter(_request_id_filter)

    if _request_id_filter not in root_logger.filters:
        root_logger.addFilter(_request_id_filter)

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    root_logger.setLevel(level)
