"""Process-level runtime: logging and telemetry lifecycle."""

from __future__ import annotations

import logging
import threading

from embed_bridge.config import get_settings
from embed_bridge.telemetry import TelemetryRuntime, setup_telemetry, shutdown_telemetry

_runtime: TelemetryRuntime | None = None
_lock = threading.Lock()


def configure_logging() -> None:
    """Configure process logging."""
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


def get_runtime() -> TelemetryRuntime:
    """Telemetry runtime, created on first use."""
    global _runtime
    with _lock:
        if _runtime is None:
            configure_logging()
            try:
                _runtime = setup_telemetry(get_settings())
            except Exception:
                logging.exception("OpenTelemetry initialization failed; continuing without telemetry")
                _runtime = TelemetryRuntime()
        return _runtime


def set_runtime(runtime: TelemetryRuntime) -> None:
    """Install a runtime explicitly (tests inject fake metrics this way)."""
    global _runtime
    with _lock:
        _runtime = runtime


def shutdown_runtime() -> None:
    """Flush and drop the telemetry runtime."""
    global _runtime
    with _lock:
        runtime, _runtime = _runtime, None
    if runtime is None:
        return
    try:
        shutdown_telemetry(runtime)
    except Exception:
        logging.exception("OpenTelemetry shutdown failed")
