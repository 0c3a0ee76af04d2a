"""
Base quality check infrastructure.

A check inspects a solution (and optionally the workspace) and reports
issues. The gate sums the penalties carried by the issues.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod

from devswarm.agents.models import AgentSolution, ChangeType
from devswarm.quality.config import QualityConfig
from devswarm.quality.models import QualityIssue
from devswarm.workspace import WorkspaceReader


def marker_pattern(markers: list[str]) -> re.Pattern[str]:
    """Case-insensitive whole-word regex matching any of the markers."""
    alternatives = "|".join(re.escape(m) for m in sorted(markers, key=len, reverse=True))
    return re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)


def touched_files(solution: AgentSolution) -> list[str]:
    """Files named by the option or by a planned change, in first-seen order."""
    files: list[str] = []
    for path in [*solution.option.files_to_modify, *(c.file for c in solution.code_changes)]:
        if path not in files:
            files.append(path)
    return files


def readable_changes(solution: AgentSolution) -> list[str]:
    """Files whose content can be inspected (planned changes that are not deletes)."""
    return [c.file for c in solution.code_changes if c.change_type != ChangeType.DELETE]


class QualityCheck(ABC):
    """
    Abstract base class for quality checks.

    Checks must not raise for ordinary content problems; they return issues.
    """

    #: True when the check needs a workspace reader to do anything
    needs_workspace: bool = False

    def __init__(self, name: str, config: QualityConfig | None = None) -> None:
        """
        Initialize quality check.

        Args:
            name: Unique name for this check
            config: Quality configuration (uses default if None)
        """
        self.name = name
        self.config = config or QualityConfig()

    @abstractmethod
    async def run(
        self, solution: AgentSolution, workspace: WorkspaceReader | None = None
    ) -> list[QualityIssue]:
        """
        Inspect a solution.

        Args:
            solution: Solution to inspect
            workspace: Optional reader for files the solution touches

        Returns:
            Issues found, in a stable order
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"
