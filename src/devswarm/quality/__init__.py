"""
Solution quality gate.

Scores agent solutions against completeness, standards, dependency and
security checks before the swarm accepts them.
"""

from devswarm.quality.checks import QualityCheck, default_checks
from devswarm.quality.config import QualityConfig
from devswarm.quality.gate import (
    RECOMMEND_FINISH,
    RECOMMEND_OK,
    RECOMMEND_REWORK,
    RECOMMEND_SECURITY,
    QualityGate,
)
from devswarm.quality.models import IssueSeverity, IssueType, QualityIssue, QualityReport

__all__ = [
    "QualityGate",
    "RECOMMEND_REWORK",
    "RECOMMEND_SECURITY",
    "RECOMMEND_FINISH",
    "RECOMMEND_OK",
    "QualityConfig",
    "QualityCheck",
    "QualityIssue",
    "QualityReport",
    "IssueSeverity",
    "IssueType",
    "default_checks",
]
