"""Runtime settings for embed-bridge."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExecutorConfig(BaseModel):
    """Inference executor settings."""

    backend: Literal["deterministic", "sentence_transformers"] = Field(default="deterministic")
    cache_dir: str | None = Field(default=None)
    device: str | None = Field(default=None)
    normalize: bool = Field(default=True)
    trust_remote_code: bool = Field(default=True)


class SchedulerConfig(BaseModel):
    """Batch scheduler settings."""

    max_workers: int = Field(default=1, ge=1, le=64)


class TelemetryConfig(BaseModel):
    """OpenTelemetry configuration."""

    enabled: bool = Field(default=False)
    otlp_endpoint: str = Field(default="http://127.0.0.1:4318")
    otlp_timeout_seconds: float = Field(default=10.0, gt=0.0, le=120.0)
    metrics_export_interval_ms: int = Field(default=5000, ge=250, le=60000)
    sample_ratio: float = Field(default=1.0, ge=0.0, le=1.0)
    otlp_headers: dict[str, str] = Field(default_factory=dict)


class Settings(BaseSettings):
    """Engine settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="EMBED_BRIDGE_",
        env_nested_delimiter="__",
    )

    service_name: str = Field(default="embed-bridge")
    service_version: str = Field(default="0.1.0")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings cache (test helper)."""
    global _settings
    _settings = None
