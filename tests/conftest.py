from __future__ import annotations

import os

import pytest

from embed_bridge.abi.allocator import Allocator, set_allocator
from embed_bridge.config import reset_settings
from embed_bridge.handles import handles
from embed_bridge.runtime import set_runtime
from embed_bridge.telemetry import TelemetryRuntime


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("EMBED_BRIDGE_"):
            monkeypatch.delenv(key, raising=False)
    reset_settings()
    set_runtime(TelemetryRuntime())
    yield
    handles.clear()
    set_runtime(TelemetryRuntime())
    reset_settings()


@pytest.fixture
def allocator():
    fresh = Allocator()
    previous = set_allocator(fresh)
    yield fresh
    set_allocator(previous)
