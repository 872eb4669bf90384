"""OpenTelemetry helpers shared by the planner, coordinator and executors.

Instrumented modules only depend on the OpenTelemetry *API*.  Until
:func:`configure_telemetry` installs an SDK tracer provider every span is a
no-op, so planning and execution pay nothing for tracing by default.

Usage::

    from hyplan.utils.telemetry import ATTR_PLAN_ID, get_tracer

    _tracer = get_tracer(__name__)

    with _tracer.start_as_current_span("hyplan.planner.decompose") as span:
        span.set_attribute(ATTR_PLAN_ID, plan.id)

Exporting spans needs the ``otel`` extra (``pip install hyplan[otel]``).
"""

from __future__ import annotations

from typing import Any

from opentelemetry import trace

# ---------------------------------------------------------------------------
# Span attribute keys
# ---------------------------------------------------------------------------

ATTR_PLAN_ID = "hyplan.plan.id"
ATTR_PLAN_STATUS = "hyplan.plan.status"
ATTR_GOALS = "hyplan.plan.goals"
ATTR_NODES = "hyplan.plan.nodes"
ATTR_REPLANS = "hyplan.plan.replans"
ATTR_NODE_ID = "hyplan.node.id"
ATTR_INTENT_ID = "hyplan.intent.id"
ATTR_ACTION = "hyplan.intent.action"
ATTR_ATTEMPT = "hyplan.intent.attempt"
ATTR_RESULT = "hyplan.intent.result"
ATTR_REASON = "hyplan.reason"
ATTR_EXPANSIONS = "hyplan.planner.expansions"
ATTR_BACKTRACKS = "hyplan.planner.backtracks"
ATTR_BLACKLIST_SIZE = "hyplan.planner.blacklist_size"

_INSTRUMENTATION_NAME = "hyplan"


def get_tracer(name: str | None = None) -> trace.Tracer:
    """Return the tracer for module *name* (``"hyplan"`` when omitted)."""
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def add_span_event(name: str, attributes: dict[str, Any] | None = None) -> None:
    """Attach an event to the currently active span (no-op without one).

    ``None`` values are dropped since span attributes cannot hold them.
    """
    clean = {k: v for k, v in (attributes or {}).items() if v is not None}
    trace.get_current_span().add_event(name, clean)


def configure_telemetry(
    *,
    service_name: str = "hyplan",
    export_to_console: bool = True,
    otlp_endpoint: str | None = None,
) -> None:
    """Install an SDK tracer provider with the requested exporters.

    Args:
        service_name: Value of the ``service.name`` resource attribute.
        export_to_console: Print finished spans as JSON on stdout.
        otlp_endpoint: Also ship spans over OTLP/gRPC to this endpoint.

    Raises:
        ImportError: If ``opentelemetry-sdk`` (or, with *otlp_endpoint*,
            ``opentelemetry-exporter-otlp``) is not installed.
    """
    # opentelemetry-sdk ships in the otel extra.
    try:
        from opentelemetry.sdk.resources import Resource  # pyright: ignore[reportMissingImports,reportUnknownVariableType]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports,reportUnknownVariableType]
        from opentelemetry.sdk.trace.export import (  # pyright: ignore[reportMissingImports,reportUnknownVariableType]
            BatchSpanProcessor,
            ConsoleSpanExporter,
            SimpleSpanProcessor,
        )
    except ImportError as exc:
        msg = (
            "opentelemetry-sdk is required for configure_telemetry(). "
            "Install it with: pip install hyplan[otel]"
        )
        raise ImportError(msg) from exc

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))  # pyright: ignore[reportUnknownVariableType,reportUnknownMemberType]

    if export_to_console:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))  # pyright: ignore[reportUnknownMemberType]
    if otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(_otlp_exporter(otlp_endpoint)))  # pyright: ignore[reportUnknownMemberType]

    trace.set_tracer_provider(provider)  # pyright: ignore[reportUnknownArgumentType]


def _otlp_exporter(endpoint: str) -> Any:
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter  # pyright: ignore[reportMissingImports,reportUnknownVariableType]
    except ImportError as exc:
        msg = (
            "opentelemetry-exporter-otlp is required for OTLP export. "
            "Install it with: pip install hyplan[otel]"
        )
        raise ImportError(msg) from exc
    return OTLPSpanExporter(endpoint=endpoint)
