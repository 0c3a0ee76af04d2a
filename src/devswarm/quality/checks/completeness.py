"""
Completeness checks.

Flags unfinished work: incomplete markers in planned change descriptions,
and (when a workspace is available) in the content of the touched files.
"""

from __future__ import annotations

import structlog

from devswarm.agents.models import AgentSolution
from devswarm.quality.checks.base import QualityCheck, marker_pattern, readable_changes
from devswarm.quality.config import QualityConfig
from devswarm.quality.models import IssueSeverity, IssueType, QualityIssue
from devswarm.workspace import WorkspaceReader

logger = structlog.get_logger(__name__)


class IncompleteMarkerCheck(QualityCheck):
    """Incomplete markers (TODO, stub, ...) in change descriptions."""

    def __init__(self, config: QualityConfig | None = None) -> None:
        super().__init__(name="incomplete_markers", config=config)
        self._pattern = marker_pattern(self.config.incomplete_markers)

    async def run(
        self, solution: AgentSolution, workspace: WorkspaceReader | None = None
    ) -> list[QualityIssue]:
        issues: list[QualityIssue] = []
        for change in solution.code_changes:
            found = self._pattern.findall(change.description)
            if not found:
                continue
            markers = ", ".join(dict.fromkeys(m.lower() for m in found))
            issues.append(
                QualityIssue(
                    issue_type=IssueType.INCOMPLETE,
                    severity=IssueSeverity.CRITICAL,
                    message=f"Change to {change.file} is described as unfinished ({markers})",
                    penalty=self.config.incomplete_penalty,
                    file=change.file,
                )
            )
        return issues


class FileContentCompletenessCheck(QualityCheck):
    """Incomplete markers in the current content of touched files."""

    needs_workspace = True

    def __init__(self, config: QualityConfig | None = None) -> None:
        super().__init__(name="file_content_completeness", config=config)
        self._pattern = marker_pattern(self.config.incomplete_markers)

    async def run(
        self, solution: AgentSolution, workspace: WorkspaceReader | None = None
    ) -> list[QualityIssue]:
        if workspace is None:
            return []

        issues: list[QualityIssue] = []
        for path in readable_changes(solution):
            try:
                if not await workspace.exists(path):
                    continue
                content = await workspace.read_text(path)
            except (OSError, ValueError) as e:
                logger.debug("quality_file_unreadable", file=path, check=self.name, error=str(e))
                continue

            match = self._pattern.search(content)
            if match:
                issues.append(
                    QualityIssue(
                        issue_type=IssueType.INCOMPLETE,
                        severity=IssueSeverity.MEDIUM,
                        message=f"{path} contains unfinished code ({match.group(0)!r})",
                        penalty=self.config.file_incomplete_penalty,
                        file=path,
                    )
                )
        return issues
