from __future__ import annotations

from embed_bridge.abi import functions as abi
from embed_bridge.abi.structs import new_error_slot
from embed_bridge.config import get_settings, reset_settings
from embed_bridge.runtime import get_runtime, set_runtime, shutdown_runtime
from embed_bridge.telemetry import (
    OTelEngineMetrics,
    TelemetryRuntime,
    resolve_otlp_endpoint,
    setup_telemetry,
    shutdown_telemetry,
)


class FakeEngineMetrics:
    def __init__(self) -> None:
        self.records: list[dict[str, object]] = []

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
        self.records.append(
            {
                "operation": operation,
                "modality": modality,
                "model": model,
                "status": status,
                "input_count": input_count,
                "duration_ms": duration_ms,
            }
        )


def test_resolve_otlp_endpoint_appends_signal_path():
    assert resolve_otlp_endpoint("http://127.0.0.1:4318", "traces") == "http://127.0.0.1:4318/v1/traces"
    assert resolve_otlp_endpoint("http://127.0.0.1:4318/", "metrics") == "http://127.0.0.1:4318/v1/metrics"


def test_resolve_otlp_endpoint_passthrough():
    assert resolve_otlp_endpoint("http://collector:4318/v1/traces", "traces") == "http://collector:4318/v1/traces"
    assert resolve_otlp_endpoint("http://collector:4318/v1/metrics/", "metrics") == "http://collector:4318/v1/metrics"


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("EMBED_BRIDGE_TELEMETRY__ENABLED", "true")
    monkeypatch.setenv("EMBED_BRIDGE_TELEMETRY__SAMPLE_RATIO", "0.25")
    monkeypatch.setenv("EMBED_BRIDGE_SCHEDULER__MAX_WORKERS", "4")
    monkeypatch.setenv("EMBED_BRIDGE_EXECUTOR__CACHE_DIR", "/tmp/models")
    reset_settings()

    settings = get_settings()
    assert settings.telemetry.enabled is True
    assert settings.telemetry.sample_ratio == 0.25
    assert settings.scheduler.max_workers == 4
    assert settings.executor.cache_dir == "/tmp/models"
    assert settings.executor.backend == "deterministic"


def test_disabled_telemetry_is_noop():
    runtime = setup_telemetry(get_settings())
    assert runtime.enabled is False
    assert runtime.meter_provider is None
    shutdown_telemetry(runtime)


def test_runtime_starts_with_telemetry_enabled(monkeypatch):
    monkeypatch.setenv("EMBED_BRIDGE_TELEMETRY__ENABLED", "true")
    monkeypatch.setenv("EMBED_BRIDGE_TELEMETRY__OTLP_ENDPOINT", "http://127.0.0.1:65535")
    monkeypatch.setenv("EMBED_BRIDGE_TELEMETRY__OTLP_TIMEOUT_SECONDS", "0.1")
    reset_settings()
    shutdown_runtime()

    runtime = get_runtime()
    assert runtime.enabled is True
    assert runtime.meter_provider is not None
    assert get_runtime() is runtime

    handle = abi.text_embedding_new(None)
    vec = abi.text_embedding_embed(handle, ["hello"], 1, 1)
    abi.float_array_vec_free(vec)
    abi.text_embedding_free(handle)

    shutdown_runtime()


def test_metrics_recorded_for_success():
    fake = FakeEngineMetrics()
    set_runtime(TelemetryRuntime(engine_metrics=fake))

    handle = abi.text_embedding_new(None)
    vec = abi.text_embedding_embed(handle, ["hello", "world"], 2, 1)
    abi.float_array_vec_free(vec)
    abi.text_embedding_free(handle)

    assert len(fake.records) == 1
    record = fake.records[0]
    assert record["operation"] == "text_embedding_embed"
    assert record["modality"] == "text embedding"
    assert record["model"] == "BAAI/bge-small-en-v1.5"
    assert record["status"] == "ok"
    assert record["input_count"] == 2
    assert isinstance(record["duration_ms"], float)
    assert record["duration_ms"] >= 0.0


def test_metrics_recorded_for_failure():
    fake = FakeEngineMetrics()
    set_runtime(TelemetryRuntime(engine_metrics=fake))

    handle = abi.text_rerank_new(None)
    slot, out = new_error_slot()
    assert abi.text_rerank_rerank(handle, "q", ["d"], 1, False, 0, out) is None
    abi.error_free(slot)
    abi.text_rerank_free(handle)

    (record,) = fake.records
    assert record["modality"] == "text reranker"
    assert record["status"] == "invalid_argument"
    assert record["input_count"] == 1


def test_metrics_model_unknown_for_bad_handle():
    fake = FakeEngineMetrics()
    set_runtime(TelemetryRuntime(engine_metrics=fake))

    assert abi.image_embedding_embed(12345, ["x.png"], 1, 1) is None
    assert fake.records[0]["model"] == "unknown"
    assert fake.records[0]["status"] == "invalid_argument"


class FakeInstrument:
    def __init__(self) -> None:
        self.points: list[tuple[float, dict[str, str]]] = []

    def add(self, amount, attributes=None) -> None:
        self.points.append((amount, attributes))

    record = add


def test_otel_metrics_count_failures_separately():
    metrics = OTelEngineMetrics(
        calls=FakeInstrument(),
        failures=FakeInstrument(),
        batch_inputs=FakeInstrument(),
        duration=FakeInstrument(),
    )

    common = {"operation": "text_rerank_rerank", "modality": "text reranker", "model": "m"}
    metrics.record(status="ok", input_count=3, duration_ms=1.5, **common)
    metrics.record(status="executor_failure", input_count=2, duration_ms=-1.0, **common)

    assert [attrs["status"] for _, attrs in metrics.calls.points] == ["ok", "executor_failure"]
    assert metrics.failures.points == [(1, {**common, "status": "executor_failure"})]
    assert [amount for amount, _ in metrics.batch_inputs.points] == [3, 2]
    assert metrics.duration.points[1][0] == 0.0
