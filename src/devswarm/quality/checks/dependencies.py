"""
Dependency manifest check.
"""

from __future__ import annotations

from pathlib import PurePosixPath

from devswarm.agents.models import AgentSolution
from devswarm.quality.checks.base import QualityCheck, touched_files
from devswarm.quality.config import QualityConfig
from devswarm.quality.models import IssueSeverity, IssueType, QualityIssue
from devswarm.workspace import WorkspaceReader


class DependencyManifestCheck(QualityCheck):
    """Wide changes that do not touch any dependency manifest."""

    def __init__(self, config: QualityConfig | None = None) -> None:
        super().__init__(name="dependency_manifest", config=config)

    async def run(
        self, solution: AgentSolution, workspace: WorkspaceReader | None = None
    ) -> list[QualityIssue]:
        files = touched_files(solution)
        if len(files) < self.config.file_count_threshold:
            return []

        manifests = set(self.config.dependency_manifests)
        if any(PurePosixPath(f).name in manifests for f in files):
            return []

        return [
            QualityIssue(
                issue_type=IssueType.DEPENDENCIES,
                severity=IssueSeverity.LOW,
                message=(
                    f"{len(files)} files touched but no dependency manifest updated; "
                    "make sure required packages are declared"
                ),
                penalty=self.config.dependency_penalty,
            )
        ]
