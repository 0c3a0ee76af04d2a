"""
Quality gate configuration settings.

This module defines the scoring threshold, per-check penalties and the
pattern lists the quality checks match against.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class QualityConfig(BaseModel):
    """Configuration for the solution quality gate."""

    min_acceptable_score: float = Field(
        default=70.0,
        description="Score a solution needs to pass (clamped to 0-100)",
    )

    # Penalties per issue
    incomplete_penalty: float = Field(
        default=15.0,
        ge=0.0,
        description="Penalty for incomplete markers in a change description",
    )
    line_limit_penalty: float = Field(
        default=10.0,
        ge=0.0,
        description="Penalty for a change over the line limit",
    )
    escape_hatch_penalty: float = Field(
        default=10.0,
        ge=0.0,
        description="Penalty for an untyped escape hatch",
    )
    dependency_penalty: float = Field(
        default=5.0,
        ge=0.0,
        description="Penalty for a wide change with no dependency manifest",
    )
    file_incomplete_penalty: float = Field(
        default=10.0,
        ge=0.0,
        description="Penalty for incomplete markers found in workspace file content",
    )
    security_penalty: float = Field(
        default=20.0,
        ge=0.0,
        description="Penalty for a security pattern found in workspace file content",
    )

    # Thresholds
    max_lines_per_change: int = Field(
        default=200,
        ge=1,
        description="Estimated lines above which a change is flagged",
    )
    file_count_threshold: int = Field(
        default=4,
        ge=1,
        description="Files touched at or above which a dependency manifest is expected",
    )

    dependency_manifests: list[str] = Field(
        default_factory=lambda: [
            "package.json",
            "requirements.txt",
            "pyproject.toml",
            "setup.py",
            "composer.json",
            "Gemfile",
            "go.mod",
            "Cargo.toml",
        ],
        description="File names that count as dependency manifests",
    )

    incomplete_markers: list[str] = Field(
        default_factory=lambda: [
            "TODO",
            "FIXME",
            "XXX",
            "HACK",
            "stub",
            "placeholder",
            "not implemented",
            "coming soon",
        ],
        description="Case-insensitive words marking unfinished work",
    )

    # Regex, matched against file content
    security_patterns: dict[str, str] = Field(
        default_factory=lambda: {
            r"\beval\s*\(": "critical",
            r"\.innerHTML\s*=": "medium",
            r"document\.write\s*\(": "medium",
            r"(?i)\b(password|passwd|secret|api[_-]?key|token)\b\s*[:=]\s*['\"][^'\"]{4,}['\"]": "critical",
        },
        description="Regex patterns mapped to the issue severity they raise",
    )

    @field_validator("min_acceptable_score")
    @classmethod
    def clamp_score(cls, v: float) -> float:
        """Clamp the pass threshold into [0, 100]."""
        return max(0.0, min(100.0, v))
