"""
devswarm configuration settings using Pydantic.

This module provides type-safe configuration management with validation,
environment variable support, and nested configuration structures.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from devswarm.quality.config import QualityConfig


class ModelTier(str, Enum):
    """Cost/capability classes of inference backends."""

    LOCAL = "local"  # Free, runs on the developer machine
    CLOUD = "cloud"  # Metered, cheap
    PREMIUM = "premium"  # Metered, expensive, highest capability


class QueueConfig(BaseModel):
    """Task queue configuration."""

    retention_seconds: float = Field(
        default=3600.0,
        ge=0.0,
        description="How long terminal tasks are kept before cleanup",
    )


class BusConfig(BaseModel):
    """Message bus configuration."""

    max_history: int = Field(
        default=1000,
        ge=1,
        le=100_000,
        description="Maximum messages kept in the bus history",
    )


class WorkerSettings(BaseModel):
    """Worker loop timing shared by all workers."""

    poll_interval_seconds: float = Field(
        default=1.0,
        gt=0.0,
        le=300.0,
        description="Wait between claim attempts when the queue has nothing eligible",
    )


class WorkerConfig(BaseModel):
    """Configuration for a single agent worker."""

    worker_id: str = Field(min_length=1, description="Unique worker identifier")
    specialization: str = Field(
        default="backend",
        min_length=1,
        description="Name of the agent specialization the worker runs",
    )
    capabilities: list[str] = Field(
        default_factory=list,
        description="Capability tags matched against task requirements",
    )

    @field_validator("capabilities")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        """Lower-case and de-duplicate tags, keeping order."""
        seen: list[str] = []
        for tag in v:
            tag = tag.strip().lower()
            if tag and tag not in seen:
                seen.append(tag)
        return seen


DEFAULT_WORKERS: list[WorkerConfig] = [
    WorkerConfig(
        worker_id="backend",
        specialization="backend",
        capabilities=["backend", "api", "database", "server"],
    ),
    WorkerConfig(
        worker_id="frontend",
        specialization="frontend",
        capabilities=["frontend", "ui", "ux", "components"],
    ),
    WorkerConfig(
        worker_id="architect",
        specialization="architect",
        capabilities=["architecture", "design", "planning", "refactoring"],
    ),
    WorkerConfig(
        worker_id="qa",
        specialization="qa",
        capabilities=["qa", "testing", "quality"],
    ),
]


class OrchestratorConfig(BaseModel):
    """Swarm orchestrator configuration."""

    monitor_interval_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=3600.0,
        description="Interval between worker health checks",
    )
    heartbeat_timeout_multiplier: float = Field(
        default=3.0,
        ge=1.0,
        le=1000.0,
        description="Silence longer than this many poll intervals marks a worker unhealthy",
    )
    min_heartbeat_timeout_seconds: float = Field(
        default=300.0,
        ge=0.0,
        description=(
            "Lower bound for the heartbeat timeout regardless of poll interval; "
            "a worker only heartbeats between model calls"
        ),
    )
    restart_unhealthy_workers: bool = Field(
        default=True,
        description="Replace unhealthy workers with a fresh loop",
    )
    max_worker_restarts: int | None = Field(
        default=3,
        ge=0,
        description=(
            "Consecutive restarts of a worker slot without a finished task "
            "before it is left down (None = unbounded)"
        ),
    )
    max_task_releases: int | None = Field(
        default=None,
        ge=1,
        description="Fail a task after this many health releases (None = unbounded)",
    )
    status_interval_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Interval between status snapshots pushed to sinks",
    )
    workers: list[WorkerConfig] = Field(
        default_factory=lambda: [w.model_copy() for w in DEFAULT_WORKERS],
        description="Workers started by the orchestrator",
    )

    @model_validator(mode="after")
    def unique_worker_ids(self) -> "OrchestratorConfig":
        """Reject duplicate worker identifiers."""
        ids = [w.worker_id for w in self.workers]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate worker ids: {', '.join(duplicates)}")
        return self


class TierPricing(BaseModel):
    """Cost model per tier, in USD."""

    local_cost_per_call: float = Field(default=0.0, ge=0.0)
    cloud_cost_per_1k_tokens: float = Field(
        default=0.004,
        ge=0.0,
        description="Input plus output cost per 1K prompt tokens",
    )
    premium_cost_per_call: float = Field(
        default=0.05,
        ge=0.0,
        description="Flat estimate for a premium request",
    )
    chars_per_token: int = Field(default=4, ge=1)


class RouterConfig(BaseModel):
    """Cost-aware model routing configuration."""

    monthly_budget_usd: float = Field(
        default=50.0,
        ge=0.0,
        description="Monthly spend limit across metered tiers",
    )
    max_premium_calls_per_day: int = Field(
        default=100,
        ge=0,
        description="Daily cap on premium-tier calls",
    )
    prefer_local: bool = Field(
        default=True,
        description="Allow the local tier for simple prompts",
    )
    low_stakes_task_types: list[str] = Field(
        default_factory=lambda: ["quality-check", "analysis"],
        description="Task types always served by the local tier",
    )
    local_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    premium_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    pricing: TierPricing = Field(default_factory=TierPricing)
    availability_ttl_seconds: float = Field(
        default=60.0,
        ge=0.0,
        description="How long a tier availability check result is trusted",
    )

    @model_validator(mode="after")
    def ordered_thresholds(self) -> "RouterConfig":
        """Ensure the local threshold does not exceed the premium threshold."""
        if self.local_threshold > self.premium_threshold:
            raise ValueError("local_threshold must not exceed premium_threshold")
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    json_logs: bool = Field(
        default=False,
        description="Render log events as JSON lines",
    )


class SwarmSettings(BaseSettings):
    """
    Main devswarm configuration.

    Settings are loaded from environment variables with the DEVSWARM_ prefix,
    or from a .env file in the current directory. Nested values use a double
    underscore, e.g. DEVSWARM_ROUTER__MONTHLY_BUDGET_USD=20.
    """

    model_config = SettingsConfigDict(
        env_prefix="DEVSWARM_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    queue: QueueConfig = Field(default_factory=QueueConfig)
    bus: BusConfig = Field(default_factory=BusConfig)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    router: RouterConfig = Field(default_factory=RouterConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def heartbeat_timeout_seconds(self) -> float:
        """Silence after which a worker is considered unhealthy."""
        timeout = self.worker.poll_interval_seconds * self.orchestrator.heartbeat_timeout_multiplier
        return max(timeout, self.orchestrator.min_heartbeat_timeout_seconds)
