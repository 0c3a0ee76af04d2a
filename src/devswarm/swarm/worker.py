"""
Agent worker loop.

A worker repeatedly claims a task from the queue, runs the cognitive
pipeline over it, validates the solution through the quality gate and
reports the outcome back to the queue and the message bus.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import Any

import structlog

from devswarm.agents.models import AgentSolution
from devswarm.agents.pipeline import CognitivePipeline
from devswarm.agents.progress import ProgressChannel
from devswarm.agents.specializations import AgentSpecialization, get_specialization
from devswarm.config.settings import WorkerConfig
from devswarm.providers.base import InferenceProvider
from devswarm.quality.gate import QualityGate
from devswarm.quality.models import QualityReport
from devswarm.swarm.message_bus import Message, MessageBus, MessageType
from devswarm.tasks.models import Task, utcnow
from devswarm.tasks.task_queue import TaskQueue
from devswarm.workspace import KnowledgeSearcher, ProjectContextProvider

logger = structlog.get_logger(__name__)


class WorkerState(str, Enum):
    """Lifecycle state of a worker."""

    CREATED = "created"
    IDLE = "idle"
    THINKING = "thinking"
    VALIDATING = "validating"
    STOPPED = "stopped"
    CRASHED = "crashed"


class AgentWorker:
    """
    Runs one agent against the shared task queue.

    Usage:
        worker = AgentWorker(config, queue, bus, provider, gate)
        loop = worker.start()
        ...
        worker.stop()
        await loop
    """

    def __init__(
        self,
        config: WorkerConfig,
        queue: TaskQueue,
        bus: MessageBus,
        provider: InferenceProvider,
        gate: QualityGate,
        context_provider: ProjectContextProvider | None = None,
        knowledge: KnowledgeSearcher | None = None,
        poll_interval: float = 1.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Initialize the worker.

        Args:
            config: Worker identity, specialization and capabilities
            queue: Shared task queue
            bus: Message bus for task and progress events
            provider: Inference capability used by the pipeline
            gate: Quality gate applied to every solution
            context_provider: Project snapshot source for the pipeline
            knowledge: Optional knowledge searcher for the pipeline
            poll_interval: Wait between claim attempts when idle
            clock: Source of heartbeat timestamps
        """
        self.config = config
        self.worker_id = config.worker_id
        self.queue = queue
        self.bus = bus
        self.provider = provider
        self.gate = gate
        self.context_provider = context_provider
        self.knowledge = knowledge
        self.poll_interval = poll_interval
        self._clock = clock

        self.state = WorkerState.CREATED
        self.current_task_id: str | None = None
        self.last_heartbeat: datetime = clock()
        self.completed_count = 0
        self.failed_count = 0
        self.messages_received = 0

        self._pipeline: CognitivePipeline | None = None
        self._stop_event = asyncio.Event()
        self._log = logger.bind(worker_id=self.worker_id)

    @property
    def capabilities(self) -> list[str]:
        return list(self.config.capabilities)

    @property
    def specialization(self) -> AgentSpecialization:
        return get_specialization(self.config.specialization)

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def heartbeat(self) -> None:
        """Record that the worker is alive."""
        self.last_heartbeat = self._clock()

    def seconds_since_heartbeat(self, now: datetime | None = None) -> float:
        return ((now or self._clock()) - self.last_heartbeat).total_seconds()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def prepare(self) -> CognitivePipeline:
        """
        Build the worker's pipeline.

        Raises:
            ConfigurationError: If the configured specialization is unknown
        """
        if self._pipeline is None:
            self._pipeline = CognitivePipeline(
                agent_id=self.worker_id,
                specialization=self.specialization,
                provider=self.provider,
                context_provider=self.context_provider,
                knowledge=self.knowledge,
            )
        return self._pipeline

    def start(self) -> asyncio.Task[None]:
        """
        Start the worker loop as a background task.

        Raises:
            ConfigurationError: If the configured specialization is unknown
        """
        self.prepare()
        self._stop_event.clear()
        self.heartbeat()
        return asyncio.create_task(self.run(), name=f"worker-{self.worker_id}")

    def stop(self) -> None:
        """Ask the loop to exit after the current iteration."""
        self._stop_event.set()

    async def run(self) -> None:
        """Claim and process tasks until stopped."""
        self.prepare()
        self.state = WorkerState.IDLE
        self._log.info(
            "worker_started",
            specialization=self.config.specialization,
            capabilities=self.capabilities,
        )
        try:
            while not self._stop_event.is_set():
                self.heartbeat()
                processed = await self.run_once()
                if not processed:
                    await self._idle_wait()
        except asyncio.CancelledError:
            self.state = WorkerState.STOPPED
            self._log.info("worker_cancelled", task_id=self.current_task_id)
            raise
        except Exception as e:
            self.state = WorkerState.CRASHED
            self._log.error("worker_crashed", error=str(e), error_type=type(e).__name__)
            raise

        self.state = WorkerState.STOPPED
        self._log.info(
            "worker_stopped",
            completed=self.completed_count,
            failed=self.failed_count,
        )

    async def _idle_wait(self) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
        except TimeoutError:
            pass

    # ------------------------------------------------------------------
    # One iteration
    # ------------------------------------------------------------------

    async def run_once(self) -> bool:
        """
        Claim and process at most one task.

        Returns:
            True if a task was processed, False if nothing was eligible
        """
        task = await self.queue.claim_next(self.worker_id, self.capabilities)
        if task is None:
            return False

        self.current_task_id = task.task_id
        await self.bus.publish(
            self.worker_id,
            MessageType.TASK_CLAIMED,
            {"task_id": task.task_id, "worker_id": self.worker_id, "attempt": task.attempts},
        )
        try:
            await self._process(task)
        finally:
            self.current_task_id = None
            self.state = WorkerState.IDLE
            self.heartbeat()
            await self._report_status()
        return True

    async def _process(self, task: Task) -> None:
        pipeline = self.prepare()
        self.state = WorkerState.THINKING

        progress = ProgressChannel()
        forwarder = asyncio.create_task(self._forward_progress(progress))
        try:
            _, solution = await pipeline.run(task, progress)
        except Exception as e:
            self._log.error(
                "task_processing_error",
                task_id=task.task_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            await self._fail(task, f"Worker error: {e}")
            return
        finally:
            progress.close()
            await forwarder

        self.state = WorkerState.VALIDATING
        self.heartbeat()
        report = await self.gate.validate(solution)

        if report.passed:
            await self._complete(task, solution, report)
        else:
            await self.bus.publish(
                self.worker_id,
                MessageType.SOLUTION_REJECTED,
                {"task_id": task.task_id, "report": report.to_dict()},
            )
            await self._fail(task, report.summary())

    async def _forward_progress(self, progress: ProgressChannel) -> None:
        async for event in progress:
            self.heartbeat()
            await self.bus.publish(self.worker_id, MessageType.AGENT_THOUGHTS, event.to_dict())

    async def _complete(self, task: Task, solution: AgentSolution, report: QualityReport) -> None:
        result = {"solution": solution.to_dict(), "quality": report.to_dict()}
        if not await self.queue.complete(task.task_id, result, worker_id=self.worker_id):
            return
        self.completed_count += 1
        await self.bus.publish(
            self.worker_id,
            MessageType.SOLUTION_PROPOSED,
            {"task_id": task.task_id, "solution": solution.to_dict()},
        )
        await self.bus.publish(
            self.worker_id,
            MessageType.TASK_COMPLETED,
            {
                "task_id": task.task_id,
                "worker_id": self.worker_id,
                "score": report.score,
                "confidence": solution.confidence,
            },
        )

    async def _fail(self, task: Task, error: str) -> None:
        if not await self.queue.fail(task.task_id, error, worker_id=self.worker_id):
            return
        self.failed_count += 1
        await self.bus.publish(
            self.worker_id,
            MessageType.TASK_FAILED,
            {"task_id": task.task_id, "worker_id": self.worker_id, "error": error},
        )

    async def _report_status(self) -> None:
        await self.bus.publish(self.worker_id, MessageType.WORKER_STATUS, self.status())

    def status(self) -> dict[str, Any]:
        """Snapshot of the worker for status reports."""
        return {
            "worker_id": self.worker_id,
            "specialization": self.config.specialization,
            "state": self.state.value,
            "current_task": self.current_task_id,
            "last_heartbeat": self.last_heartbeat.isoformat(),
            "completed": self.completed_count,
            "failed": self.failed_count,
        }

    # ------------------------------------------------------------------
    # Inbox
    # ------------------------------------------------------------------

    async def handle_message(self, message: Message) -> None:
        """Inbox handler for direct messages, requests and broadcasts."""
        self.messages_received += 1
        self._log.debug("message_received", topic=message.topic, sender=message.sender)
        if message.correlation_id is not None:
            await self.bus.respond(message, self.worker_id, self.answer(message.payload))

    def answer(self, question: dict[str, Any]) -> dict[str, Any]:
        """
        Answer a question from another agent.

        The answer is the worker's status plus whether it could take a
        task needing the ``capabilities`` listed in the question.
        """
        required = {str(c).strip().lower() for c in question.get("capabilities", [])} - {""}
        return {
            **self.status(),
            "capabilities": self.capabilities,
            "can_handle": required <= set(self.capabilities),
        }
