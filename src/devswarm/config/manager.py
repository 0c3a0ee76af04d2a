"""
Settings loading for devswarm.

Settings are built once by the caller and passed down explicitly; nothing
in the swarm reads process-wide configuration state.
"""

from __future__ import annotations

from pathlib import Path

import structlog
from pydantic import ValidationError

from devswarm.config.settings import SwarmSettings
from devswarm.errors import ConfigurationError

logger = structlog.get_logger(__name__)


def load_settings(
    env_file: Path | None = None,
    **overrides: object,
) -> SwarmSettings:
    """
    Load settings from the environment and an optional .env file.

    Args:
        env_file: Optional path to a .env file (defaults to ./.env).
        **overrides: Override specific top-level settings.

    Returns:
        Loaded SwarmSettings object.

    Raises:
        ConfigurationError: If the settings fail validation.
    """
    kwargs: dict[str, object] = dict(overrides)
    if env_file is not None:
        if not env_file.exists():
            raise ConfigurationError(f"Settings file not found: {env_file}")
        kwargs["_env_file"] = env_file

    try:
        settings = SwarmSettings(**kwargs)
    except ValidationError as e:
        raise ConfigurationError(f"Failed to load settings: {e}") from e

    logger.debug(
        "settings_loaded",
        workers=[w.worker_id for w in settings.orchestrator.workers],
        monthly_budget_usd=settings.router.monthly_budget_usd,
        min_acceptable_score=settings.quality.min_acceptable_score,
    )
    return settings
