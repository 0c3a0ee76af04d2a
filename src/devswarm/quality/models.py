"""
Quality report models.

Reports are immutable; the gate builds a new one per validation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class IssueSeverity(str, Enum):
    """Severity of a quality issue."""

    LOW = "low"
    MEDIUM = "medium"
    CRITICAL = "critical"


class IssueType(str, Enum):
    """Category of a quality issue."""

    INCOMPLETE = "incomplete"
    STANDARDS = "standards"
    DEPENDENCIES = "dependencies"
    SECURITY = "security"


@dataclass(frozen=True)
class QualityIssue:
    """A single problem found in a solution."""

    issue_type: IssueType
    severity: IssueSeverity
    message: str
    penalty: float
    file: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": self.issue_type.value,
            "severity": self.severity.value,
            "message": self.message,
            "penalty": self.penalty,
            "file": self.file,
        }


@dataclass(frozen=True)
class QualityReport:
    """Outcome of running the quality gate over a solution."""

    score: float
    passed: bool
    threshold: float
    issues: tuple[QualityIssue, ...] = field(default_factory=tuple)
    recommendations: tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_critical(self) -> bool:
        return any(i.severity == IssueSeverity.CRITICAL for i in self.issues)

    def issues_of(self, issue_type: IssueType) -> list[QualityIssue]:
        """Issues of one category, in report order."""
        return [i for i in self.issues if i.issue_type == issue_type]

    def summary(self) -> str:
        """One-line description, used as the failure reason for a rejected task."""
        verdict = "passed" if self.passed else "failed"
        text = f"Quality gate {verdict}: score {self.score:.0f}/{self.threshold:.0f}"
        if self.issues:
            text += f", {len(self.issues)} issue(s): " + "; ".join(
                i.message for i in self.issues[:3]
            )
        return text

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "score": self.score,
            "passed": self.passed,
            "threshold": self.threshold,
            "issues": [i.to_dict() for i in self.issues],
            "recommendations": list(self.recommendations),
        }
