"""Observability utilities: optional OpenTelemetry spans around pipeline steps.

span() wraps a block in an OpenTelemetry span when the SDK is installed (the
"otel" extra) and degrades to timing-only debug logging otherwise. A console
exporter is configured on first use; deployments can install their own tracer
provider before the app starts and it will be respected.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

logger = logging.getLogger(__name__)

# Optional OpenTelemetry
try:
    from opentelemetry import trace
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
except ImportError:  # pragma: no cover
    trace = None  # type: ignore
    TracerProvider = None  # type: ignore
    BatchSpanProcessor = None  # type: ignore
    ConsoleSpanExporter = None  # type: ignore


_otel_inited: bool = False


def _init_otel() -> None:
    """Install a console-exporting tracer provider once, unless one is already set."""
    global _otel_inited
    if _otel_inited or trace is None or TracerProvider is None:
        return
    _otel_inited = True
    if isinstance(trace.get_tracer_provider(), TracerProvider):
        return
    tp = TracerProvider()
    tp.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(tp)


@contextmanager
def span(name: str, attributes: Optional[Dict[str, Any]] = None) -> Iterator[None]:
    """Trace a pipeline step; exceptions inside the block propagate unchanged."""
    start = time.perf_counter()
    if trace is None:
        try:
            yield
        finally:
            logger.debug("%s took %.1f ms", name, (time.perf_counter() - start) * 1000)
        return

    _init_otel()
    tracer = trace.get_tracer("docintel")
    with tracer.start_as_current_span(name) as otel_span:
        for k, v in (attributes or {}).items():
            if v is not None:
                otel_span.set_attribute(k, v)
        yield
    logger.debug("%s took %.1f ms", name, (time.perf_counter() - start) * 1000)
