"""
Prompt complexity estimation.

The score in [0, 1] is a sum of independent signals: prompt length,
complexity keywords, project-wide scope and the number of enumerated
requirements.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

# Keyword -> weight added when the (lower-cased) prompt mentions it
COMPLEXITY_KEYWORDS: dict[str, float] = {
    "refactor": 0.25,
    "architecture": 0.3,
    "design": 0.2,
    "multiple files": 0.25,
    "consolidate": 0.2,
    "integrate": 0.2,
    "optimize": 0.15,
    "complex": 0.2,
}

PROJECT_WIDE_TERMS = ("project", "codebase", "entire")

LONG_PROMPT_CHARS = 5000
MEDIUM_PROMPT_CHARS = 2000

_REQUIREMENT = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s+", re.MULTILINE)


@dataclass(frozen=True)
class ComplexityFactors:
    """Which structural signals a prompt carries."""

    prompt_length: int = 0
    requirement_count: int = 0
    requires_context: bool = False
    requires_multiple_files: bool = False
    requires_refactoring: bool = False
    requires_architecture: bool = False


@dataclass(frozen=True)
class ComplexityEstimate:
    """Complexity score with the keywords that contributed to it."""

    score: float
    factors: ComplexityFactors = field(default_factory=ComplexityFactors)
    keywords: tuple[str, ...] = ()


def count_requirements(prompt: str) -> int:
    """Count enumerated lines (``1.``, ``2)``, ``-``, ``*``, bullets)."""
    return len(_REQUIREMENT.findall(prompt))


def estimate_complexity(prompt: str) -> ComplexityEstimate:
    """
    Estimate how demanding a prompt is.

    Args:
        prompt: Prompt text

    Returns:
        Estimate with a score clamped to [0, 1]
    """
    score = 0.0
    lowered = prompt.lower()

    if len(prompt) > LONG_PROMPT_CHARS:
        score += 0.3
    elif len(prompt) > MEDIUM_PROMPT_CHARS:
        score += 0.15

    keywords = tuple(k for k in COMPLEXITY_KEYWORDS if k in lowered)
    score += sum(COMPLEXITY_KEYWORDS[k] for k in keywords)

    requires_context = any(term in lowered for term in PROJECT_WIDE_TERMS)
    if requires_context:
        score += 0.2

    requirements = count_requirements(prompt)
    if requirements > 5:
        score += 0.3
    elif requirements > 3:
        score += 0.15

    factors = ComplexityFactors(
        prompt_length=len(prompt),
        requirement_count=requirements,
        requires_context=requires_context,
        requires_multiple_files="multiple files" in keywords,
        requires_refactoring="refactor" in keywords,
        requires_architecture="architecture" in keywords or "design" in keywords,
    )
    return ComplexityEstimate(score=min(1.0, score), factors=factors, keywords=keywords)
