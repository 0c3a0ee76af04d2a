"""
Security pattern check over workspace file content.
"""

from __future__ import annotations

import re

import structlog

from devswarm.agents.models import AgentSolution
from devswarm.quality.checks.base import QualityCheck, readable_changes
from devswarm.quality.config import QualityConfig
from devswarm.quality.models import IssueSeverity, IssueType, QualityIssue
from devswarm.workspace import WorkspaceReader

logger = structlog.get_logger(__name__)

_DESCRIPTIONS = {
    "eval": "use of eval() allows arbitrary code execution",
    "innerHTML": "assigning innerHTML can lead to XSS",
    "document": "document.write() is unsafe",
}


class SecurityPatternCheck(QualityCheck):
    """Dangerous constructs and hard-coded secrets in touched files."""

    needs_workspace = True

    def __init__(self, config: QualityConfig | None = None) -> None:
        super().__init__(name="security_patterns", config=config)
        self._patterns = [
            (re.compile(pattern), IssueSeverity(severity))
            for pattern, severity in self.config.security_patterns.items()
        ]

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

            for pattern, severity in self._patterns:
                match = pattern.search(content)
                if match is None:
                    continue
                issues.append(
                    QualityIssue(
                        issue_type=IssueType.SECURITY,
                        severity=severity,
                        message=f"{path}: {_describe(match.group(0))}",
                        penalty=self.config.security_penalty,
                        file=path,
                    )
                )
        return issues


def _describe(snippet: str) -> str:
    for key, text in _DESCRIPTIONS.items():
        if key in snippet:
            return text
    return "possible hard-coded secret"
