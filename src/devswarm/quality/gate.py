"""
Quality gate for agent solutions.

The gate runs every registered check over a solution, subtracts the
penalties of the issues found from a perfect score of 100 and compares the
result with the configured threshold.
"""

from __future__ import annotations

import structlog

from devswarm.agents.models import AgentSolution
from devswarm.quality.checks import QualityCheck, default_checks
from devswarm.quality.config import QualityConfig
from devswarm.quality.models import IssueSeverity, IssueType, QualityIssue, QualityReport
from devswarm.workspace import WorkspaceReader

logger = structlog.get_logger(__name__)

MAX_SCORE = 100.0

RECOMMEND_REWORK = "{count} critical issue(s) found; fix them before applying the solution"
RECOMMEND_SECURITY = "Security issues found; review the code against security best practices"
RECOMMEND_FINISH = "The solution contains unfinished work; complete every function before applying"
RECOMMEND_OK = "Solution quality meets the project standards"


class QualityGate:
    """
    Scores solutions and decides whether they are accepted.

    Checks are evaluated in registration order; the report lists their
    issues in the same order.
    """

    def __init__(
        self,
        config: QualityConfig | None = None,
        workspace: WorkspaceReader | None = None,
        checks: list[QualityCheck] | None = None,
    ) -> None:
        """
        Initialize quality gate.

        Args:
            config: Quality configuration (uses defaults if not provided)
            workspace: Reader for file-level checks; those checks are skipped without one
            checks: Checks to run (uses the standard set if not provided)
        """
        self.config = config or QualityConfig()
        self.workspace = workspace
        self._checks = checks if checks is not None else default_checks(self.config)
        self._log = logger.bind(component="quality_gate")

    @property
    def min_acceptable_score(self) -> float:
        return self.config.min_acceptable_score

    def set_min_acceptable_score(self, score: float) -> None:
        """Change the pass threshold, clamped to [0, 100]."""
        self.config = self.config.model_copy(
            update={"min_acceptable_score": max(0.0, min(MAX_SCORE, score))}
        )
        self._log.info("quality_threshold_changed", threshold=self.config.min_acceptable_score)

    def register_check(self, check: QualityCheck) -> None:
        """
        Add a check to the end of the check list.

        Raises:
            ValueError: If a check with the same name is already registered
        """
        if any(c.name == check.name for c in self._checks):
            raise ValueError(f"Check '{check.name}' already registered")
        self._checks.append(check)

    @property
    def checks(self) -> list[QualityCheck]:
        return list(self._checks)

    async def validate(self, solution: AgentSolution) -> QualityReport:
        """
        Run all checks and build the report.

        Args:
            solution: Solution to validate

        Returns:
            Immutable quality report
        """
        issues: list[QualityIssue] = []
        for check in self._checks:
            if check.needs_workspace and self.workspace is None:
                continue
            try:
                issues.extend(await check.run(solution, self.workspace))
            except Exception as e:
                self._log.error(
                    "quality_check_error",
                    check=check.name,
                    task_id=solution.task_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        score = MAX_SCORE - sum(issue.penalty for issue in issues)
        score = max(0.0, min(MAX_SCORE, score))
        threshold = self.config.min_acceptable_score
        passed = score >= threshold

        report = QualityReport(
            score=score,
            passed=passed,
            threshold=threshold,
            issues=tuple(issues),
            recommendations=tuple(self._recommend(issues, passed)),
        )

        self._log.info(
            "solution_validated",
            solution_id=solution.solution_id,
            task_id=solution.task_id,
            score=score,
            passed=passed,
            issue_count=len(issues),
        )
        return report

    @staticmethod
    def _recommend(issues: list[QualityIssue], passed: bool) -> list[str]:
        recommendations: list[str] = []

        critical = [i for i in issues if i.severity == IssueSeverity.CRITICAL]
        if critical:
            recommendations.append(RECOMMEND_REWORK.format(count=len(critical)))
        if any(i.issue_type == IssueType.SECURITY for i in issues):
            recommendations.append(RECOMMEND_SECURITY)
        if any(i.issue_type == IssueType.INCOMPLETE for i in issues):
            recommendations.append(RECOMMEND_FINISH)
        if not recommendations and passed:
            recommendations.append(RECOMMEND_OK)

        return recommendations
