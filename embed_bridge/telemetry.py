"""OpenTelemetry wiring for boundary calls."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Protocol

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from embed_bridge.config import Settings, TelemetryConfig

Signal = Literal["traces", "metrics"]

INSTRUMENTATION_NAME = "embed_bridge"


class EngineMetrics(Protocol):
    """Recorder for one embed or rerank call."""

    def record(
        self,
        *,
        operation: str,
        modality: str,
        model: str,
        status: str,
        input_count: int,
        duration_ms: float,
    ) -> None:
        """Record a finished boundary call."""


@dataclass(slots=True)
class NoopEngineMetrics:
    def record(
        self,
        *,
        operation: str,
        modality: str,
        model: str,
        status: str,
        input_count: int,
        duration_ms: float,
    ) -> None:
        del operation, modality, model, status, input_count, duration_ms


@dataclass(slots=True)
class OTelEngineMetrics:
    """Per-modality call counts, failures, batch sizes and latency."""

    calls: object
    failures: object
    batch_inputs: object
    duration: object

    def record(
        self,
        *,
        operation: str,
        modality: str,
        model: str,
        status: str,
        input_count: int,
        duration_ms: float,
    ) -> None:
        attributes = {"operation": operation, "modality": modality, "model": model}
        self.calls.add(1, attributes={**attributes, "status": status})
        if status != "ok":
            self.failures.add(1, attributes={**attributes, "status": status})
        self.batch_inputs.record(max(0, input_count), attributes=attributes)
        self.duration.record(max(0.0, duration_ms), attributes={**attributes, "status": status})


def resolve_otlp_endpoint(endpoint: str, signal: Signal) -> str:
    """Append ``/v1/<signal>`` to a collector base URL unless already present."""
    suffix = f"/v1/{signal}"
    cleaned = endpoint.rstrip("/")
    return cleaned if cleaned.endswith(suffix) else cleaned + suffix


def _exporter_options(config: TelemetryConfig, signal: Signal) -> dict:
    return {
        "endpoint": resolve_otlp_endpoint(config.otlp_endpoint, signal),
        "headers": config.otlp_headers or None,
        "timeout": config.otlp_timeout_seconds,
    }


@dataclass(slots=True)
class TelemetryRuntime:
    """Process telemetry state; the defaults are a working no-op runtime."""

    enabled: bool = False
    tracer_provider: TracerProvider | None = None
    meter_provider: MeterProvider | None = None
    tracer: trace.Tracer = field(default_factory=trace.NoOpTracer)
    engine_metrics: EngineMetrics = field(default_factory=NoopEngineMetrics)


def _build_tracer_provider(config: TelemetryConfig, resource: Resource) -> TracerProvider:
    provider = TracerProvider(resource=resource, sampler=TraceIdRatioBased(config.sample_ratio))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**_exporter_options(config, "traces"))))
    return provider


def _build_meter_provider(config: TelemetryConfig, resource: Resource) -> MeterProvider:
    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(**_exporter_options(config, "metrics")),
        export_interval_millis=config.metrics_export_interval_ms,
    )
    return MeterProvider(resource=resource, metric_readers=[reader])


def _build_engine_metrics(meter_provider: MeterProvider) -> OTelEngineMetrics:
    meter = meter_provider.get_meter(INSTRUMENTATION_NAME)
    return OTelEngineMetrics(
        calls=meter.create_counter(
            name="embed_bridge.calls",
            unit="{call}",
            description="Embed and rerank calls by operation, modality, model and status.",
        ),
        failures=meter.create_counter(
            name="embed_bridge.failures",
            unit="{call}",
            description="Calls that returned an error object, by error status.",
        ),
        batch_inputs=meter.create_histogram(
            name="embed_bridge.call.inputs",
            unit="{input}",
            description="Texts, images or documents passed in one call.",
        ),
        duration=meter.create_histogram(
            name="embed_bridge.call.duration",
            unit="ms",
            description="Wall time of one call, including marshaling.",
        ),
    )


def setup_telemetry(settings: Settings) -> TelemetryRuntime:
    """Create tracer and meter providers when telemetry is enabled."""
    config = settings.telemetry
    if not config.enabled:
        return TelemetryRuntime()

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "service.version": settings.service_version,
        }
    )
    tracer_provider = _build_tracer_provider(config, resource)
    meter_provider = _build_meter_provider(config, resource)
    return TelemetryRuntime(
        enabled=True,
        tracer_provider=tracer_provider,
        meter_provider=meter_provider,
        tracer=tracer_provider.get_tracer(INSTRUMENTATION_NAME),
        engine_metrics=_build_engine_metrics(meter_provider),
    )


def shutdown_telemetry(runtime: TelemetryRuntime) -> None:
    """Flush and stop the providers of an enabled runtime."""
    if not runtime.enabled:
        return
    for provider in (runtime.meter_provider, runtime.tracer_provider):
        if provider is not None:
            provider.shutdown()
