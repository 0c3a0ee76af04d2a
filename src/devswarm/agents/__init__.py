"""
Agent reasoning: data models, specializations and progress events.

The pipeline itself lives in ``devswarm.agents.pipeline``.
"""

from devswarm.agents.models import (
    AgentSolution,
    AgentThoughts,
    ChangeType,
    CodeChange,
    Complexity,
    DependencyImpact,
    Evaluation,
    ImpactLevel,
    SolutionOption,
    TaskAnalysis,
    ThinkingPhase,
)
from devswarm.agents.progress import ProgressChannel, ThoughtEvent
from devswarm.agents.specializations import (
    SPECIALIZATIONS,
    AgentSpecialization,
    EvaluationWeights,
    get_specialization,
    list_specializations,
)

__all__ = [
    # Models
    "AgentSolution",
    "AgentThoughts",
    "ChangeType",
    "CodeChange",
    "Complexity",
    "DependencyImpact",
    "Evaluation",
    "ImpactLevel",
    "SolutionOption",
    "TaskAnalysis",
    "ThinkingPhase",
    # Progress
    "ProgressChannel",
    "ThoughtEvent",
    # Specializations
    "AgentSpecialization",
    "EvaluationWeights",
    "SPECIALIZATIONS",
    "get_specialization",
    "list_specializations",
]
