"""
Quality checks run by the quality gate.
"""

from devswarm.quality.checks.base import QualityCheck
from devswarm.quality.checks.completeness import (
    FileContentCompletenessCheck,
    IncompleteMarkerCheck,
)
from devswarm.quality.checks.dependencies import DependencyManifestCheck
from devswarm.quality.checks.security import SecurityPatternCheck
from devswarm.quality.checks.standards import ChangeSizeCheck, EscapeHatchCheck
from devswarm.quality.config import QualityConfig


def default_checks(config: QualityConfig | None = None) -> list[QualityCheck]:
    """
    Build the standard check list, in report order.

    Args:
        config: Quality configuration shared by all checks

    Returns:
        Fresh check instances
    """
    config = config or QualityConfig()
    return [
        IncompleteMarkerCheck(config),
        FileContentCompletenessCheck(config),
        ChangeSizeCheck(config),
        EscapeHatchCheck(config),
        SecurityPatternCheck(config),
        DependencyManifestCheck(config),
    ]


__all__ = [
    "QualityCheck",
    "IncompleteMarkerCheck",
    "FileContentCompletenessCheck",
    "ChangeSizeCheck",
    "EscapeHatchCheck",
    "SecurityPatternCheck",
    "DependencyManifestCheck",
    "default_checks",
]
