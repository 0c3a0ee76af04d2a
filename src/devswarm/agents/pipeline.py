"""
Cognitive pipeline: analyze, generate options, select, justify.

One ``CognitivePipeline`` serves every kind of agent; the
``AgentSpecialization`` it is given decides the role in prompts, how
options are ranked and how the evaluation is weighted.

Inference failures never escape the pipeline. Each stage has a fallback,
and a run that used one is marked ``degraded``.
"""

from __future__ import annotations

from typing import Any

import structlog

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
    clamp,
)
from devswarm.agents.parsing import (
    extract_json_array,
    option_from_dict,
    parse_analysis,
    parse_numbered_steps,
)
from devswarm.agents.progress import ProgressChannel, ThoughtEvent
from devswarm.agents.specializations import AgentSpecialization
from devswarm.providers.base import InferenceProvider
from devswarm.tasks.models import Task
from devswarm.workspace import (
    KnowledgeSearcher,
    NullKnowledgeSearcher,
    ProjectContext,
    ProjectContextProvider,
    StaticProjectContext,
)

logger = structlog.get_logger(__name__)

TOTAL_STEPS = 4

# Estimated lines per planned file, by option complexity
ESTIMATED_LINES = {Complexity.LOW: 50, Complexity.MEDIUM: 100, Complexity.HIGH: 200}
COMPLEXITY_FACTOR = {Complexity.LOW: 1.0, Complexity.MEDIUM: 0.9, Complexity.HIGH: 0.75}


def select_option(options: list[SolutionOption], specialization: AgentSpecialization) -> SolutionOption:
    """
    Pick the best option for a specialization.

    Deterministic: the highest specialization score wins and ties keep the
    earlier option.

    Raises:
        ValueError: If ``options`` is empty
    """
    if not options:
        raise ValueError("No options to select from")

    best = options[0]
    best_score = specialization.option_score(best.pros, best.confidence, best.complexity)
    for option in options[1:]:
        score = specialization.option_score(option.pros, option.confidence, option.complexity)
        if score > best_score:
            best, best_score = option, score
    return best


def _mentions(texts: list[str], *fragments: str) -> bool:
    lowered = [t.lower() for t in texts]
    return any(fragment in text for text in lowered for fragment in fragments)


def evaluate_option(option: SolutionOption, specialization: AgentSpecialization) -> Evaluation:
    """
    Score an option from its declared properties.

    Args:
        option: Selected option
        specialization: Supplies the aggregation weights

    Returns:
        Evaluation with every aspect in [0, 1]
    """
    confidence = option.confidence
    factor = COMPLEXITY_FACTOR[option.complexity]
    risk_penalty = min(0.3, 0.05 * len(option.risks))
    pro_bonus = min(0.1, 0.02 * len(option.pros))
    con_penalty = min(0.15, 0.03 * len(option.cons))

    quality = clamp(confidence * factor + pro_bonus - con_penalty)

    performance = confidence - (0.1 if option.complexity == Complexity.HIGH else 0.0)
    if _mentions(option.pros, "perform", "fast", "efficien"):
        performance += 0.1
    performance = clamp(performance)

    security = 0.9 - risk_penalty
    if _mentions(option.risks, "secur", "vulnerab", "injection"):
        security -= 0.15
    if _mentions(option.pros, "secur"):
        security += 0.05
    security = clamp(security)

    maintainability = factor * (0.6 + 0.4 * confidence) - con_penalty
    if _mentions(option.pros, "maintain", "simple", "readab", "clean"):
        maintainability += 0.1
    maintainability = clamp(maintainability)

    compliance = clamp(0.6 + 0.3 * confidence - risk_penalty / 2)

    weights = specialization.evaluation_weights
    overall = (
        quality * weights.quality
        + performance * weights.performance
        + security * weights.security
        + maintainability * weights.maintainability
        + compliance * weights.compliance
    ) / (weights.total or 1.0)

    return Evaluation(
        quality=quality,
        performance=performance,
        security=security,
        maintainability=maintainability,
        compliance=compliance,
        overall=clamp(overall),
    )


class CognitivePipeline:
    """
    Turns a task into an evaluated solution.

    Usage:
        pipeline = CognitivePipeline("backend-1", BACKEND, provider)
        thoughts = await pipeline.think(task)
        solution = await pipeline.propose(task, thoughts)
    """

    def __init__(
        self,
        agent_id: str,
        specialization: AgentSpecialization,
        provider: InferenceProvider,
        context_provider: ProjectContextProvider | None = None,
        knowledge: KnowledgeSearcher | None = None,
        model_hint: str | None = None,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            agent_id: Identity of the agent running the pipeline
            specialization: Role descriptor
            provider: Inference capability (bound to each task before use)
            context_provider: Source of project snapshots
            knowledge: Optional knowledge searcher for extra analysis context
            model_hint: Backend-specific model name passed to the provider
        """
        self.agent_id = agent_id
        self.specialization = specialization
        self.provider = provider
        self.context_provider = context_provider or StaticProjectContext()
        self.knowledge = knowledge or NullKnowledgeSearcher()
        self.model_hint = model_hint
        self._log = logger.bind(agent_id=agent_id, specialization=specialization.name)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def think(
        self,
        task: Task,
        progress: ProgressChannel | None = None,
        context: ProjectContext | None = None,
    ) -> AgentThoughts:
        """
        Run analyze, generate options, select and justify.

        Args:
            task: Task to reason about
            progress: Channel receiving one event per phase
            context: Project snapshot (taken from the context provider if None)

        Returns:
            Thoughts with a selected option, reasoning and implementation plan
        """
        context = context or await self.context_provider.snapshot()
        provider = self.provider.bind(task)
        thoughts = AgentThoughts(agent_id=self.agent_id, task_id=task.task_id)
        thoughts.progress.total_steps = TOTAL_STEPS

        self._advance(thoughts, ThinkingPhase.ANALYZING, "Analyzing task", progress)
        thoughts.analysis = await self._analyze(task, context, provider, thoughts)

        self._advance(thoughts, ThinkingPhase.BRAINSTORMING, "Generating solution options", progress)
        thoughts.options = await self._generate_options(task, thoughts.analysis, provider, thoughts)

        thoughts.selected_option = select_option(thoughts.options, self.specialization)
        self._advance(
            thoughts,
            ThinkingPhase.EVALUATING,
            f"Selected '{thoughts.selected_option.title}'",
            progress,
            option_count=len(thoughts.options),
            selected=thoughts.selected_option.option_id,
        )

        self._advance(thoughts, ThinkingPhase.IMPLEMENTING, "Planning implementation", progress)
        thoughts.reasoning = await self._justify(task, thoughts.selected_option, provider, thoughts)
        thoughts.implementation_plan = await self._plan(
            task, thoughts.selected_option, provider, thoughts
        )

        self._log.info(
            "thinking_completed",
            task_id=task.task_id,
            options=len(thoughts.options),
            selected=thoughts.selected_option.option_id,
            confidence=thoughts.selected_option.confidence,
            degraded=thoughts.degraded,
        )
        return thoughts

    async def propose(
        self,
        task: Task,
        thoughts: AgentThoughts,
        context: ProjectContext | None = None,
    ) -> AgentSolution:
        """
        Assemble a solution from finished thoughts.

        Raises:
            ValueError: If the thoughts have no selected option
        """
        option = thoughts.selected_option
        if option is None:
            raise ValueError(f"No selected option for task {task.task_id}")

        context = context or await self.context_provider.snapshot()
        return AgentSolution(
            agent_id=self.agent_id,
            specialization=self.specialization.name,
            task_id=task.task_id,
            option=option,
            justification=thoughts.reasoning,
            evaluation=evaluate_option(option, self.specialization),
            code_changes=self._plan_code_changes(option, context),
            dependencies=self._analyze_dependencies(option, context),
            implementation_plan=list(thoughts.implementation_plan),
        )

    async def run(
        self, task: Task, progress: ProgressChannel | None = None
    ) -> tuple[AgentThoughts, AgentSolution]:
        """Think and propose with a single project snapshot."""
        context = await self.context_provider.snapshot()
        thoughts = await self.think(task, progress, context)
        return thoughts, await self.propose(task, thoughts, context)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _ask(
        self, provider: InferenceProvider, prompt: str, stage: str, thoughts: AgentThoughts
    ) -> str | None:
        try:
            return await provider.complete(prompt, self.model_hint)
        except Exception as e:
            thoughts.degraded = True
            self._log.warning(
                "inference_failed",
                task_id=thoughts.task_id,
                stage=stage,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

    async def _analyze(
        self,
        task: Task,
        context: ProjectContext,
        provider: InferenceProvider,
        thoughts: AgentThoughts,
    ) -> TaskAnalysis:
        spec = self.specialization
        prompt = (
            f"You are an experienced {spec.role}. {spec.description}\n"
            "Analyze the following task.\n\n"
            f"Task: {task.description or '(no description)'}\n"
            f"Type: {task.task_type}\n"
            f"Priority: {task.priority.value}\n\n"
            f"Project context:\n{context.summary()}\n\n"
            "Determine the core problem, the context needed to solve it, and the "
            "constraints and requirements.\n\n"
            "Answer in the format:\n"
            "PROBLEM: <problem statement>\n"
            "CONTEXT: <relevant context>\n"
            "CONSTRAINTS:\n- <one constraint per line>"
        )

        response = await self._ask(provider, prompt, "analyze", thoughts)
        analysis = parse_analysis(response) if response else TaskAnalysis(problem="")
        analysis.problem = (
            analysis.problem or task.description.strip() or f"Unspecified {task.task_type} task"
        )

        snippets = await self._knowledge(task)
        if snippets:
            extra = "Relevant knowledge:\n" + "\n".join(f"- {s}" for s in snippets)
            analysis.context = f"{analysis.context}\n\n{extra}".strip()
        return analysis

    async def _knowledge(self, task: Task) -> list[str]:
        if not task.description.strip():
            return []
        try:
            return await self.knowledge.search(task.description, limit=3)
        except Exception as e:
            self._log.warning("knowledge_search_failed", task_id=task.task_id, error=str(e))
            return []

    async def _generate_options(
        self,
        task: Task,
        analysis: TaskAnalysis,
        provider: InferenceProvider,
        thoughts: AgentThoughts,
    ) -> list[SolutionOption]:
        spec = self.specialization
        constraints = "\n".join(f"- {c}" for c in analysis.constraints) or "- none stated"
        prompt = (
            f"You are an experienced {spec.role}. "
            f"Propose {spec.option_count} options for solving the following task.\n\n"
            f"Task: {task.description or analysis.problem}\n"
            f"PROBLEM: {analysis.problem}\n"
            f"CONTEXT: {analysis.context}\n"
            f"CONSTRAINTS:\n{constraints}\n\n"
            f"Task type: {task.task_type}\n"
            f"Priority: {task.priority.value}\n\n"
            "Return ONLY a valid JSON array, with no text before or after it:\n"
            "[\n"
            "  {\n"
            '    "title": "Approach name",\n'
            '    "description": "What the solution does",\n'
            '    "approach": "How to implement it",\n'
            '    "pros": ["advantage"],\n'
            '    "cons": ["drawback"],\n'
            '    "complexity": "low | medium | high",\n'
            '    "confidence": 0.8,\n'
            '    "estimated_duration_seconds": 3600,\n'
            '    "files_to_modify": ["path/to/file"],\n'
            '    "risks": ["risk"]\n'
            "  }\n"
            "]"
        )

        response = await self._ask(provider, prompt, "generate_options", thoughts)
        raw_options = extract_json_array(response) if response else []
        options = [
            option_from_dict(raw, f"option-{task.task_id}-{n}") for n, raw in enumerate(raw_options)
        ]
        if options:
            return options

        if response is not None:
            self._log.warning("options_unparseable", task_id=task.task_id, chars=len(response))
            thoughts.degraded = True
        return [self._fallback_option(task, confidence=0.5 if response is not None else 0.0)]

    def _fallback_option(self, task: Task, confidence: float) -> SolutionOption:
        return SolutionOption(
            option_id=f"option-{task.task_id}-0",
            title="Baseline solution",
            description=f"Baseline {self.specialization.role.lower()} approach to the task",
            approach="Standard approach following existing project conventions",
            pros=["Simple to implement"],
            cons=["May need refinement"],
            complexity=Complexity.MEDIUM,
            confidence=confidence,
        )

    async def _justify(
        self,
        task: Task,
        option: SolutionOption,
        provider: InferenceProvider,
        thoughts: AgentThoughts,
    ) -> str:
        spec = self.specialization
        pros = "\n".join(f"- {p}" for p in option.pros) or "- none"
        cons = "\n".join(f"- {c}" for c in option.cons) or "- none"
        prompt = (
            f"You are an experienced {spec.role}. Explain why the following option was chosen.\n\n"
            f"Task: {task.description}\n"
            f"Chosen option: {option.title}\n"
            f"Description: {option.description}\n"
            f"Approach: {option.approach}\n\n"
            f"Pros:\n{pros}\n\nCons:\n{cons}\n\n"
            f"Complexity: {option.complexity.value}\n"
            f"Confidence: {option.confidence:.2f}\n\n"
            f"Consider: {', '.join(spec.focus_areas) or 'overall fit'}."
        )

        response = await self._ask(provider, prompt, "justify", thoughts)
        if response and response.strip():
            return response.strip()
        return self._template_justification(option)

    def _template_justification(self, option: SolutionOption) -> str:
        spec = self.specialization
        text = (
            f"Selected '{option.title}' as the {spec.role} option with "
            f"{option.complexity.value} complexity and confidence {option.confidence:.2f}."
        )
        if option.pros:
            text += f" Main advantages: {', '.join(option.pros[:3])}."
        if option.risks:
            text += f" Risks to watch: {', '.join(option.risks[:3])}."
        return text

    async def _plan(
        self,
        task: Task,
        option: SolutionOption,
        provider: InferenceProvider,
        thoughts: AgentThoughts,
    ) -> list[str]:
        files = ", ".join(option.files_to_modify) or "to be determined"
        prompt = (
            f"You are an experienced {self.specialization.role}. "
            "Write an implementation plan as numbered steps (1., 2., ...).\n\n"
            f"Task: {task.description}\n"
            f"Solution: {option.title}\n"
            f"Approach: {option.approach}\n"
            f"Files: {files}"
        )

        response = await self._ask(provider, prompt, "plan", thoughts)
        steps = parse_numbered_steps(response) if response else []
        if steps:
            return steps
        return [option.approach or option.description or option.title]

    # ------------------------------------------------------------------
    # Solution assembly
    # ------------------------------------------------------------------

    @staticmethod
    def _plan_code_changes(option: SolutionOption, context: ProjectContext) -> list[CodeChange]:
        existing = set(context.files)
        return [
            CodeChange(
                file=path,
                change_type=ChangeType.MODIFY if path in existing else ChangeType.CREATE,
                description=f"Changes in {path} to implement {option.title}",
                estimated_lines=ESTIMATED_LINES[option.complexity],
            )
            for path in option.files_to_modify
        ]

    @staticmethod
    def _analyze_dependencies(option: SolutionOption, context: ProjectContext) -> DependencyImpact:
        affected: list[str] = []
        for path in option.files_to_modify:
            for candidate in [path, *context.dependencies.get(path, [])]:
                if candidate not in affected:
                    affected.append(candidate)

        if len(affected) > 10:
            impact = ImpactLevel.HIGH
        elif len(affected) > 5:
            impact = ImpactLevel.MEDIUM
        else:
            impact = ImpactLevel.LOW
        return DependencyImpact(files=affected, impact=impact)

    def _advance(
        self,
        thoughts: AgentThoughts,
        phase: ThinkingPhase,
        message: str,
        progress: ProgressChannel | None,
        **detail: Any,
    ) -> None:
        thoughts.phase = phase
        thoughts.progress.current_step += 1
        self._log.debug("thinking_phase", task_id=thoughts.task_id, phase=phase.value)
        if progress is not None:
            progress.emit(
                ThoughtEvent(
                    agent_id=self.agent_id,
                    task_id=thoughts.task_id,
                    phase=phase,
                    message=message,
                    current_step=thoughts.progress.current_step,
                    total_steps=thoughts.progress.total_steps,
                    detail=detail,
                )
            )
