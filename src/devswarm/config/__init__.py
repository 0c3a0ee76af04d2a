"""
devswarm configuration module.

This module provides centralized settings handling for the swarm, its
workers, the model router and the quality gate.
"""

from devswarm.config.manager import load_settings
from devswarm.config.settings import (
    DEFAULT_WORKERS,
    BusConfig,
    LoggingConfig,
    ModelTier,
    OrchestratorConfig,
    QueueConfig,
    RouterConfig,
    SwarmSettings,
    TierPricing,
    WorkerConfig,
    WorkerSettings,
)

__all__ = [
    # Settings
    "SwarmSettings",
    "QueueConfig",
    "BusConfig",
    "WorkerSettings",
    "WorkerConfig",
    "OrchestratorConfig",
    "RouterConfig",
    "TierPricing",
    "LoggingConfig",
    # Enums
    "ModelTier",
    # Constants
    "DEFAULT_WORKERS",
    # Functions
    "load_settings",
]
