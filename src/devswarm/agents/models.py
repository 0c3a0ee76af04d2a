"""
Data models for the agent cognitive pipeline.

These are the values passed between the pipeline stages, the quality gate
and the worker loop. Options and thoughts are ephemeral; a solution is
handed to the quality gate and then attached to the completed task.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class Complexity(str, Enum):
    """Declared complexity of a solution option."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Any, default: Complexity | None = None) -> Complexity:
        """Parse a loose complexity value, falling back to ``default`` (medium)."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default or cls.MEDIUM


class ThinkingPhase(str, Enum):
    """Phases of the cognitive pipeline, in order."""

    ANALYZING = "analyzing"
    BRAINSTORMING = "brainstorming"
    EVALUATING = "evaluating"
    IMPLEMENTING = "implementing"


class ChangeType(str, Enum):
    """Kind of file change a solution plans."""

    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"


class ImpactLevel(str, Enum):
    """Blast radius of a solution."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp a value into [low, high]."""
    return max(low, min(high, value))


@dataclass
class SolutionOption:
    """One candidate approach to a task."""

    option_id: str
    title: str
    description: str = ""
    approach: str = ""
    pros: list[str] = field(default_factory=list)
    cons: list[str] = field(default_factory=list)
    estimated_duration_seconds: float = 3600.0
    complexity: Complexity = Complexity.MEDIUM
    confidence: float = 0.5
    files_to_modify: list[str] = field(default_factory=list)
    risks: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.confidence = clamp(float(self.confidence))
        self.complexity = Complexity.parse(self.complexity)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "option_id": self.option_id,
            "title": self.title,
            "description": self.description,
            "approach": self.approach,
            "pros": list(self.pros),
            "cons": list(self.cons),
            "estimated_duration_seconds": self.estimated_duration_seconds,
            "complexity": self.complexity.value,
            "confidence": self.confidence,
            "files_to_modify": list(self.files_to_modify),
            "risks": list(self.risks),
        }


@dataclass
class TaskAnalysis:
    """Outcome of the analyze stage."""

    problem: str
    context: str = ""
    constraints: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Evaluation:
    """Scores in [0, 1] describing a chosen option."""

    quality: float
    performance: float
    security: float
    maintainability: float
    compliance: float
    overall: float

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary."""
        return {
            "quality": round(self.quality, 3),
            "performance": round(self.performance, 3),
            "security": round(self.security, 3),
            "maintainability": round(self.maintainability, 3),
            "compliance": round(self.compliance, 3),
            "overall": round(self.overall, 3),
        }


@dataclass
class CodeChange:
    """A single planned file change."""

    file: str
    change_type: ChangeType = ChangeType.MODIFY
    description: str = ""
    estimated_lines: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "file": self.file,
            "change_type": self.change_type.value,
            "description": self.description,
            "estimated_lines": self.estimated_lines,
        }


@dataclass
class DependencyImpact:
    """Files affected by a solution and the overall impact."""

    files: list[str] = field(default_factory=list)
    impact: ImpactLevel = ImpactLevel.LOW


@dataclass
class AgentSolution:
    """An evaluated proposal for a task, ready for the quality gate."""

    agent_id: str
    task_id: str
    option: SolutionOption
    justification: str
    evaluation: Evaluation
    specialization: str = ""
    solution_id: str = field(default_factory=lambda: f"solution-{uuid.uuid4().hex[:12]}")
    code_changes: list[CodeChange] = field(default_factory=list)
    dependencies: DependencyImpact = field(default_factory=DependencyImpact)
    implementation_plan: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def confidence(self) -> float:
        return self.option.confidence

    @property
    def estimated_duration_seconds(self) -> float:
        return self.option.estimated_duration_seconds

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "solution_id": self.solution_id,
            "agent_id": self.agent_id,
            "specialization": self.specialization,
            "task_id": self.task_id,
            "option": self.option.to_dict(),
            "justification": self.justification,
            "evaluation": self.evaluation.to_dict(),
            "confidence": self.confidence,
            "estimated_duration_seconds": self.estimated_duration_seconds,
            "code_changes": [c.to_dict() for c in self.code_changes],
            "dependencies": {
                "files": list(self.dependencies.files),
                "impact": self.dependencies.impact.value,
            },
            "implementation_plan": list(self.implementation_plan),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentSolution:
        """
        Rebuild a solution from its dictionary form.

        Missing evaluation scores default to 0.5 so hand-written solution
        files can be validated.
        """
        option_data = dict(data.get("option", {}))
        option = SolutionOption(
            option_id=option_data.get("option_id", "option-0"),
            title=option_data.get("title", data.get("title", "Untitled")),
            description=option_data.get("description", ""),
            approach=option_data.get("approach", ""),
            pros=list(option_data.get("pros", [])),
            cons=list(option_data.get("cons", [])),
            estimated_duration_seconds=float(
                option_data.get("estimated_duration_seconds", 3600.0)
            ),
            complexity=Complexity.parse(option_data.get("complexity", "medium")),
            confidence=float(option_data.get("confidence", 0.5)),
            files_to_modify=list(option_data.get("files_to_modify", [])),
            risks=list(option_data.get("risks", [])),
        )

        scores = dict(data.get("evaluation", {}))
        evaluation = Evaluation(
            quality=float(scores.get("quality", 0.5)),
            performance=float(scores.get("performance", 0.5)),
            security=float(scores.get("security", 0.5)),
            maintainability=float(scores.get("maintainability", 0.5)),
            compliance=float(scores.get("compliance", 0.5)),
            overall=float(scores.get("overall", 0.5)),
        )

        changes = []
        for raw in data.get("code_changes", []):
            lines = raw.get("estimated_lines")
            changes.append(
                CodeChange(
                    file=raw["file"],
                    change_type=ChangeType(raw.get("change_type", raw.get("type", "modify"))),
                    description=raw.get("description", ""),
                    estimated_lines=int(lines) if lines is not None else None,
                )
            )

        deps = dict(data.get("dependencies", {}))
        return cls(
            agent_id=data.get("agent_id", "unknown"),
            task_id=data.get("task_id", "unknown"),
            option=option,
            justification=data.get("justification", ""),
            evaluation=evaluation,
            specialization=data.get("specialization", ""),
            code_changes=changes,
            dependencies=DependencyImpact(
                files=list(deps.get("files", [])),
                impact=ImpactLevel(deps.get("impact", "low")),
            ),
            implementation_plan=list(data.get("implementation_plan", [])),
        )


@dataclass
class ThinkingProgress:
    """Step counters reported while a pipeline runs."""

    current_step: int = 0
    total_steps: int = 4


@dataclass
class AgentThoughts:
    """Everything the pipeline has worked out about a task so far."""

    agent_id: str
    task_id: str
    phase: ThinkingPhase = ThinkingPhase.ANALYZING
    analysis: TaskAnalysis | None = None
    options: list[SolutionOption] = field(default_factory=list)
    selected_option: SolutionOption | None = None
    reasoning: str = ""
    implementation_plan: list[str] = field(default_factory=list)
    progress: ThinkingProgress = field(default_factory=ThinkingProgress)
    degraded: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "agent_id": self.agent_id,
            "task_id": self.task_id,
            "phase": self.phase.value,
            "analysis": (
                {
                    "problem": self.analysis.problem,
                    "context": self.analysis.context,
                    "constraints": list(self.analysis.constraints),
                }
                if self.analysis
                else None
            ),
            "options": [o.to_dict() for o in self.options],
            "selected_option": self.selected_option.option_id if self.selected_option else None,
            "reasoning": self.reasoning,
            "implementation_plan": list(self.implementation_plan),
            "progress": {
                "current_step": self.progress.current_step,
                "total_steps": self.progress.total_steps,
            },
            "degraded": self.degraded,
        }
