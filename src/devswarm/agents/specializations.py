"""
Agent specializations.

A specialization is a descriptor, not a subclass: it supplies the role
used in prompts, the keywords that make an option attractive to the role,
and the weights used to aggregate an evaluation.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from devswarm.agents.models import Complexity
from devswarm.errors import ConfigurationError


@dataclass(frozen=True)
class EvaluationWeights:
    """Weights of the evaluation aspects in the overall score."""

    quality: float = 0.25
    performance: float = 0.20
    security: float = 0.20
    maintainability: float = 0.20
    compliance: float = 0.15

    @property
    def total(self) -> float:
        return (
            self.quality + self.performance + self.security + self.maintainability + self.compliance
        )


# Lower complexity preferred
SIMPLICITY_PREFERENCE: Mapping[Complexity, float] = MappingProxyType(
    {Complexity.LOW: 1.2, Complexity.MEDIUM: 1.0, Complexity.HIGH: 0.8}
)


@dataclass(frozen=True)
class AgentSpecialization:
    """Describes how one kind of agent reasons about tasks."""

    name: str
    role: str
    description: str
    focus_areas: tuple[str, ...] = ()
    # (substring of a lower-cased pro, score multiplier)
    keyword_boosts: tuple[tuple[str, float], ...] = ()
    complexity_multipliers: Mapping[Complexity, float] = field(
        default_factory=lambda: MappingProxyType({})
    )
    evaluation_weights: EvaluationWeights = field(default_factory=EvaluationWeights)
    option_count: int = 3

    def option_score(self, pros: list[str], confidence: float, complexity: Complexity) -> float:
        """Selection score of an option for this specialization."""
        lowered = [p.lower() for p in pros]
        score = confidence
        for keyword, multiplier in self.keyword_boosts:
            if any(keyword in pro for pro in lowered):
                score *= multiplier
        return score * self.complexity_multipliers.get(complexity, 1.0)


BACKEND = AgentSpecialization(
    name="backend",
    role="Backend Developer",
    description="Designs and implements server-side logic, APIs and data access.",
    focus_areas=("project standards", "security", "performance", "maintainability"),
    complexity_multipliers=SIMPLICITY_PREFERENCE,
    evaluation_weights=EvaluationWeights(),
)

FRONTEND = AgentSpecialization(
    name="frontend",
    role="Frontend Developer",
    description="Builds user interfaces, components and client-side behaviour.",
    focus_areas=("accessibility", "performance", "user experience"),
    keyword_boosts=(("accessib", 1.2), ("performan", 1.1)),
    complexity_multipliers=SIMPLICITY_PREFERENCE,
    evaluation_weights=EvaluationWeights(
        quality=0.30, performance=0.25, security=0.10, maintainability=0.20, compliance=0.15
    ),
)

ARCHITECT = AgentSpecialization(
    name="architect",
    role="Software Architect",
    description="Shapes system structure, module boundaries and long-term evolution.",
    focus_areas=("scalability", "maintainability", "architectural consistency"),
    keyword_boosts=(("scalab", 1.3), ("maintainab", 1.2)),
    evaluation_weights=EvaluationWeights(
        quality=0.20, performance=0.15, security=0.15, maintainability=0.30, compliance=0.20
    ),
)

QA = AgentSpecialization(
    name="qa",
    role="QA Engineer",
    description="Designs tests, finds defects and guards release quality.",
    focus_areas=("test coverage", "quality", "regression risk"),
    keyword_boosts=(("coverage", 1.3), ("quality", 1.2)),
    evaluation_weights=EvaluationWeights(
        quality=0.35, performance=0.10, security=0.15, maintainability=0.20, compliance=0.20
    ),
)

DEVOPS = AgentSpecialization(
    name="devops",
    role="DevOps Engineer",
    description="Owns build, deployment, infrastructure and operations.",
    focus_areas=("reliability", "security", "automation"),
    keyword_boosts=(("reliab", 1.3), ("secur", 1.2)),
    evaluation_weights=EvaluationWeights(
        quality=0.20, performance=0.20, security=0.30, maintainability=0.15, compliance=0.15
    ),
)

ANALYST = AgentSpecialization(
    name="analyst",
    role="Data Analyst",
    description="Analyzes performance and data flows and proposes optimizations.",
    focus_areas=("performance", "measurability", "optimization"),
    keyword_boosts=(("performan", 1.3),),
    evaluation_weights=EvaluationWeights(
        quality=0.20, performance=0.35, security=0.15, maintainability=0.15, compliance=0.15
    ),
)

SPECIALIZATIONS: dict[str, AgentSpecialization] = {
    s.name: s for s in (BACKEND, FRONTEND, ARCHITECT, QA, DEVOPS, ANALYST)
}


def get_specialization(name: str) -> AgentSpecialization:
    """
    Look up a built-in specialization.

    Raises:
        ConfigurationError: If the name is unknown
    """
    try:
        return SPECIALIZATIONS[name.strip().lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown specialization '{name}'; expected one of {', '.join(sorted(SPECIALIZATIONS))}"
        ) from None


def list_specializations() -> list[str]:
    """Names of the built-in specializations."""
    return sorted(SPECIALIZATIONS)
