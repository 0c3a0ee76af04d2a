"""
Pytest fixtures and configuration for the devswarm test suite.
"""

from datetime import UTC, datetime, timedelta

import pytest

from devswarm.agents.models import (
    AgentSolution,
    ChangeType,
    CodeChange,
    Complexity,
    Evaluation,
    SolutionOption,
)
from devswarm.providers.base import InferenceProvider
from devswarm.providers.echo import EchoInferenceProvider
from devswarm.swarm.message_bus import MessageBus
from devswarm.tasks.task_queue import TaskQueue

# ============================================================================
# Clocks
# ============================================================================


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 14, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    """Fake clock starting at a fixed instant."""
    return FakeClock()


# ============================================================================
# Providers
# ============================================================================


class FailingProvider(InferenceProvider):
    """Provider whose every call raises."""

    name = "failing"

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or RuntimeError("backend exploded")
        self.calls = 0

    async def complete(self, prompt, model_hint=None):
        self.calls += 1
        raise self.error


class ScriptedProvider(InferenceProvider):
    """Provider answering from a list of canned responses, in order."""

    name = "scripted"

    def __init__(self, responses: list[str]) -> None:
        self.responses = list(responses)
        self.prompts: list[str] = []

    async def complete(self, prompt, model_hint=None):
        self.prompts.append(prompt)
        if not self.responses:
            return ""
        return self.responses.pop(0)


@pytest.fixture
def echo_provider():
    """Deterministic offline provider."""
    return EchoInferenceProvider()


@pytest.fixture
def failing_provider():
    """Provider that always fails."""
    return FailingProvider()


# ============================================================================
# Core components
# ============================================================================


@pytest.fixture
def task_queue(clock):
    """Task queue on the fake clock."""
    return TaskQueue(clock=clock)


@pytest.fixture
async def message_bus():
    """Message bus closed after the test."""
    bus = MessageBus(max_history=100)
    yield bus
    await bus.close()


# ============================================================================
# Solutions
# ============================================================================


def make_solution(
    changes: list[CodeChange] | None = None,
    files: list[str] | None = None,
    confidence: float = 0.8,
) -> AgentSolution:
    """Build a solution with the given planned changes."""
    option = SolutionOption(
        option_id="option-task-1-0",
        title="Add endpoint",
        description="Adds the endpoint",
        approach="Incremental",
        complexity=Complexity.LOW,
        confidence=confidence,
        files_to_modify=files or [],
    )
    return AgentSolution(
        agent_id="backend",
        task_id="task-1",
        option=option,
        justification="Smallest change",
        evaluation=Evaluation(
            quality=0.8,
            performance=0.8,
            security=0.8,
            maintainability=0.8,
            compliance=0.8,
            overall=0.8,
        ),
        code_changes=changes or [],
    )


def change(
    file: str,
    description: str = "Implement handler",
    lines: int | None = 50,
    change_type: ChangeType = ChangeType.MODIFY,
) -> CodeChange:
    """Shorthand for a planned change."""
    return CodeChange(
        file=file, change_type=change_type, description=description, estimated_lines=lines
    )


# ============================================================================
# Markers
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow running")
