"""
Coding standards checks declared by the planned changes.
"""

from __future__ import annotations

import re

from devswarm.agents.models import AgentSolution
from devswarm.quality.checks.base import QualityCheck
from devswarm.quality.config import QualityConfig
from devswarm.quality.models import IssueSeverity, IssueType, QualityIssue
from devswarm.workspace import WorkspaceReader

_TS_ANY = re.compile(r"\bany\b")
_PY_ANY = re.compile(r"\bAny\b|type:\s*ignore")


class ChangeSizeCheck(QualityCheck):
    """Changes estimated above the per-change line limit."""

    def __init__(self, config: QualityConfig | None = None) -> None:
        super().__init__(name="change_size", config=config)

    async def run(
        self, solution: AgentSolution, workspace: WorkspaceReader | None = None
    ) -> list[QualityIssue]:
        limit = self.config.max_lines_per_change
        return [
            QualityIssue(
                issue_type=IssueType.STANDARDS,
                severity=IssueSeverity.MEDIUM,
                message=(
                    f"{change.file} is estimated at {change.estimated_lines} lines "
                    f"(limit {limit}); split it into smaller modules"
                ),
                penalty=self.config.line_limit_penalty,
                file=change.file,
            )
            for change in solution.code_changes
            if change.estimated_lines is not None and change.estimated_lines > limit
        ]


class EscapeHatchCheck(QualityCheck):
    """Changes that declare an untyped escape hatch."""

    def __init__(self, config: QualityConfig | None = None) -> None:
        super().__init__(name="escape_hatch", config=config)

    async def run(
        self, solution: AgentSolution, workspace: WorkspaceReader | None = None
    ) -> list[QualityIssue]:
        issues: list[QualityIssue] = []
        for change in solution.code_changes:
            if change.file.endswith((".ts", ".tsx")):
                pattern, hint = _TS_ANY, "'any'"
            elif change.file.endswith(".py"):
                pattern, hint = _PY_ANY, "'Any' or 'type: ignore'"
            else:
                continue
            if pattern.search(change.description):
                issues.append(
                    QualityIssue(
                        issue_type=IssueType.STANDARDS,
                        severity=IssueSeverity.LOW,
                        message=f"{change.file} may introduce {hint}; use concrete types",
                        penalty=self.config.escape_hatch_penalty,
                        file=change.file,
                    )
                )
        return issues
