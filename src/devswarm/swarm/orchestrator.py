"""
Swarm orchestrator.

Owns the worker loops, watches their heartbeats and recovers from
unresponsive workers: the task a silent worker holds goes back to the
queue and a fresh worker takes its place.

Architecture:
    submit_task ──> TaskQueue <── claim_next ── AgentWorker x N
                                                  │
                        MessageBus <── events ────┘
                            │
    monitor loop ── check_health ── release + restart
    status loop ──> StatusSink(s)
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog

from devswarm.config.settings import SwarmSettings, WorkerConfig
from devswarm.errors import ConfigurationError
from devswarm.providers.base import InferenceProvider
from devswarm.quality.gate import QualityGate
from devswarm.routing.router import ModelRouter
from devswarm.swarm.message_bus import Message, MessageBus, MessageType
from devswarm.swarm.worker import AgentWorker, WorkerState
from devswarm.tasks.models import Task, TaskStatus, utcnow
from devswarm.tasks.task_queue import TaskQueue
from devswarm.workspace import KnowledgeSearcher, ProjectContextProvider

logger = structlog.get_logger(__name__)

ORCHESTRATOR_ID = "orchestrator"


@dataclass
class WorkerRecord:
    """Orchestrator view of one worker slot."""

    worker_id: str
    specialization: str
    capabilities: list[str]
    state: WorkerState
    current_task: str | None
    last_heartbeat: datetime
    completed: int = 0
    failed: int = 0
    restarts: int = 0
    healthy: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "worker_id": self.worker_id,
            "specialization": self.specialization,
            "capabilities": list(self.capabilities),
            "state": self.state.value,
            "current_task": self.current_task,
            "last_heartbeat": self.last_heartbeat.isoformat(),
            "completed": self.completed,
            "failed": self.failed,
            "restarts": self.restarts,
            "healthy": self.healthy,
        }


@dataclass(frozen=True)
class WorkerStatus:
    """Per-worker entry of a status snapshot."""

    status: str
    current_task: str | None
    last_activity: datetime


@dataclass(frozen=True)
class SwarmStatus:
    """Status snapshot pushed to status sinks."""

    total_tasks: int
    completed_tasks: int
    failed_tasks: int
    active_workers: int
    workers: dict[str, WorkerStatus] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_tasks": self.total_tasks,
            "completed_tasks": self.completed_tasks,
            "failed_tasks": self.failed_tasks,
            "active_workers": self.active_workers,
            "workers": {
                worker_id: {
                    "status": w.status,
                    "current_task": w.current_task,
                    "last_activity": w.last_activity.isoformat(),
                }
                for worker_id, w in self.workers.items()
            },
        }


class StatusSink(ABC):
    """Receives periodic swarm status snapshots."""

    @abstractmethod
    async def update(self, status: SwarmStatus) -> None:
        """Handle one snapshot."""


class LoggingStatusSink(StatusSink):
    """Writes status snapshots to the log."""

    async def update(self, status: SwarmStatus) -> None:
        logger.info(
            "swarm_status",
            total_tasks=status.total_tasks,
            completed_tasks=status.completed_tasks,
            failed_tasks=status.failed_tasks,
            active_workers=status.active_workers,
        )


class SwarmOrchestrator:
    """
    Runs a pool of agent workers over a shared task queue.

    Usage:
        orchestrator = SwarmOrchestrator(provider, settings=settings)
        await orchestrator.start()
        await orchestrator.submit_task(Task(description="Add login endpoint"))
        await orchestrator.wait_until_idle(timeout=60)
        await orchestrator.stop()
    """

    def __init__(
        self,
        provider: InferenceProvider,
        settings: SwarmSettings | None = None,
        queue: TaskQueue | None = None,
        bus: MessageBus | None = None,
        gate: QualityGate | None = None,
        router: ModelRouter | None = None,
        context_provider: ProjectContextProvider | None = None,
        knowledge: KnowledgeSearcher | None = None,
        status_sinks: list[StatusSink] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            provider: Inference capability shared by all workers
            settings: Swarm settings (uses defaults if not provided)
            queue: Task queue (created from settings if not provided)
            bus: Message bus (created from settings if not provided)
            gate: Quality gate (created from settings if not provided)
            router: Model router, only used for statistics
            context_provider: Project snapshot source for the workers
            knowledge: Optional knowledge searcher for the workers
            status_sinks: Receivers of status snapshots (logging by default)
            clock: Source of timestamps for heartbeats and health checks
        """
        self.settings = settings or SwarmSettings()
        self.provider = provider
        if queue is None:
            queue = TaskQueue(retention_seconds=self.settings.queue.retention_seconds, clock=clock)
        self.queue = queue
        self.bus = bus or MessageBus(max_history=self.settings.bus.max_history)
        self.gate = gate or QualityGate(self.settings.quality)
        self.router = router
        self.context_provider = context_provider
        self.knowledge = knowledge
        self.status_sinks = status_sinks if status_sinks is not None else [LoggingStatusSink()]
        self._clock = clock

        self._workers: dict[str, AgentWorker] = {}
        self._loops: dict[str, asyncio.Task[None]] = {}
        self._records: dict[str, WorkerRecord] = {}
        self._retired: set[asyncio.Task[None]] = set()
        # Consecutive restarts per slot, and finished-task count when each worker launched
        self._restart_streaks: dict[str, int] = {}
        self._launch_progress: dict[str, int] = {}
        self._monitor_task: asyncio.Task[None] | None = None
        self._status_task: asyncio.Task[None] | None = None
        self._running = False
        self._log = logger.bind(component="orchestrator")

    @property
    def running(self) -> bool:
        return self._running

    @property
    def workers(self) -> dict[str, AgentWorker]:
        return dict(self._workers)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _new_worker(self, config: WorkerConfig) -> AgentWorker:
        return AgentWorker(
            config=config,
            queue=self.queue,
            bus=self.bus,
            provider=self.provider,
            gate=self.gate,
            context_provider=self.context_provider,
            knowledge=self.knowledge,
            poll_interval=self.settings.worker.poll_interval_seconds,
            clock=self._clock,
        )

    async def start(self) -> None:
        """
        Reconcile the queue and start every configured worker.

        Raises:
            ConfigurationError: If no workers are configured or a worker
                configuration is invalid; nothing is started in that case
        """
        if self._running:
            return

        configs = self.settings.orchestrator.workers
        if not configs:
            raise ConfigurationError("No workers configured")
        workers = [self._new_worker(c) for c in configs]
        for worker in workers:
            worker.prepare()

        released = await self.queue.release_all_in_progress()
        for task_id in released:
            await self.bus.publish(
                ORCHESTRATOR_ID, MessageType.TASK_RELEASED, {"task_id": task_id, "reason": "startup"}
            )

        await self.bus.register_agent(ORCHESTRATOR_ID)
        for worker in workers:
            await self._launch(worker)

        self._running = True
        self._monitor_task = asyncio.create_task(self._monitor_loop(), name="swarm-monitor")
        self._status_task = asyncio.create_task(self._status_loop(), name="swarm-status")
        self._log.info(
            "swarm_started",
            workers=[w.worker_id for w in workers],
            reconciled_tasks=len(released),
        )

    async def _launch(self, worker: AgentWorker, restarts: int = 0) -> None:
        await self.bus.register_agent(worker.worker_id, inbox=worker.handle_message)
        self._launch_progress[worker.worker_id] = worker.completed_count + worker.failed_count
        self._workers[worker.worker_id] = worker
        self._loops[worker.worker_id] = worker.start()
        self._records[worker.worker_id] = WorkerRecord(
            worker_id=worker.worker_id,
            specialization=worker.config.specialization,
            capabilities=worker.capabilities,
            state=worker.state,
            current_task=None,
            last_heartbeat=worker.last_heartbeat,
            restarts=restarts,
        )
        await self.bus.publish(
            ORCHESTRATOR_ID,
            MessageType.WORKER_STARTED,
            {"worker_id": worker.worker_id, "specialization": worker.config.specialization},
        )

    async def stop(self, timeout: float | None = None) -> None:
        """
        Stop monitoring and let every worker finish its current iteration.

        Tasks still in progress afterwards are recovered by the next ``start()``.

        Args:
            timeout: Seconds to wait for the workers before cancelling them
        """
        if not self._running:
            return
        self._running = False

        for background in (self._monitor_task, self._status_task):
            if background is not None:
                background.cancel()
        await asyncio.gather(
            *(t for t in (self._monitor_task, self._status_task) if t is not None),
            return_exceptions=True,
        )
        self._monitor_task = None
        self._status_task = None

        for worker in self._workers.values():
            worker.stop()
        loops = [*self._loops.values(), *self._retired]
        if loops:
            _, pending = await asyncio.wait(loops, timeout=timeout)
            for loop in pending:
                loop.cancel()
        results = await asyncio.gather(
            *self._loops.values(), *self._retired, return_exceptions=True
        )
        for worker_id, result in zip(self._loops, results):
            if isinstance(result, Exception):
                self._log.warning("worker_exit_error", worker_id=worker_id, error=str(result))

        for worker in self._workers.values():
            self._sync_record(worker)
            await self.bus.publish(
                ORCHESTRATOR_ID, MessageType.WORKER_STOPPED, {"worker_id": worker.worker_id}
            )
            await self.bus.unregister_agent(worker.worker_id)
        self._loops.clear()
        self._retired.clear()
        await self.bus.drain()
        self._log.info("swarm_stopped", **self._task_counts())

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def submit_task(self, task: Task) -> Task:
        """
        Queue a task for the workers.

        Raises:
            DuplicateTaskError: If the task id is already queued
        """
        queued = await self.queue.enqueue(task)
        await self.bus.publish(
            ORCHESTRATOR_ID,
            MessageType.TASK_CREATED,
            {
                "task_id": queued.task_id,
                "priority": queued.priority.value,
                "task_type": queued.task_type,
            },
        )
        return queued

    async def wait_until_idle(self, timeout: float | None = None, interval: float = 0.05) -> bool:
        """
        Wait until no task is pending or in progress.

        Returns:
            True if the queue went idle, False on timeout
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self.queue.pending() or self.queue.in_progress():
            if deadline is not None and loop.time() >= deadline:
                return False
            await asyncio.sleep(interval)
        return True

    async def ask_worker(
        self, worker_id: str, question: dict[str, Any], timeout: float = 5.0
    ) -> dict[str, Any]:
        """
        Ask a running worker a question over the bus.

        Raises:
            MessageUndeliverable: If no running worker has that id
            TimeoutError: If the worker does not answer in time
        """
        return await self.bus.request(ORCHESTRATOR_ID, worker_id, question, timeout=timeout)

    async def broadcast(self, payload: dict[str, Any]) -> Message:
        """Send a notice to the inbox of every running worker."""
        return await self.bus.broadcast(ORCHESTRATOR_ID, payload)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def _monitor_loop(self) -> None:
        interval = self.settings.orchestrator.monitor_interval_seconds
        while True:
            await asyncio.sleep(interval)
            try:
                await self.check_health()
            except Exception as e:
                self._log.error("health_check_error", error=str(e))

    async def check_health(self) -> list[str]:
        """
        Detect and recover unhealthy workers.

        A worker is unhealthy when its heartbeat is older than the timeout
        or its loop ended while the swarm is running.

        Returns:
            Ids of the workers found unhealthy
        """
        now = self._clock()
        timeout = self.settings.heartbeat_timeout_seconds()
        unhealthy = []

        for worker_id, worker in list(self._workers.items()):
            loop = self._loops.get(worker_id)
            if loop is None:
                continue
            silence = worker.seconds_since_heartbeat(now)
            crashed = loop.done() and not worker.stopping
            if silence <= timeout and not crashed:
                self._records[worker_id].healthy = True
                continue
            unhealthy.append(worker_id)
            await self._recover(worker, silence, crashed)

        return unhealthy

    async def _recover(self, worker: AgentWorker, silence: float, crashed: bool) -> None:
        worker_id = worker.worker_id
        record = self._records[worker_id]
        record.healthy = False
        # A crashed loop has already cleared current_task_id
        owned = [t.task_id for t in self.queue.in_progress() if t.assigned_worker == worker_id]
        task_id = worker.current_task_id or (owned[0] if owned else None)

        self._log.warning(
            "worker_unhealthy",
            worker_id=worker_id,
            seconds_since_heartbeat=round(silence, 2),
            crashed=crashed,
            task_id=task_id,
        )

        worker.stop()
        loop = self._loops.pop(worker_id, None)
        if loop is not None and loop.done():
            error = None if loop.cancelled() else loop.exception()
            if error is not None:
                self._log.warning("worker_loop_error", worker_id=worker_id, error=str(error))
        elif loop is not None:
            loop.cancel()
            self._retired.add(loop)
            loop.add_done_callback(self._retired.discard)
        await self.bus.unregister_agent(worker_id)

        for owned_id in owned:
            await self._recover_task(owned_id, worker_id)

        await self.bus.publish(
            ORCHESTRATOR_ID,
            MessageType.WORKER_UNHEALTHY,
            {
                "worker_id": worker_id,
                "task_id": task_id,
                "seconds_since_heartbeat": silence,
                "crashed": crashed,
            },
        )

        if not self.settings.orchestrator.restart_unhealthy_workers:
            self._sync_record(worker)
            return

        finished = worker.completed_count + worker.failed_count
        if finished > self._launch_progress.get(worker_id, 0):
            self._restart_streaks[worker_id] = 0
        streak = self._restart_streaks.get(worker_id, 0)
        limit = self.settings.orchestrator.max_worker_restarts
        if limit is not None and streak >= limit:
            self._log.error(
                "worker_restart_limit_reached", worker_id=worker_id, consecutive_restarts=streak
            )
            self._sync_record(worker)
            return
        self._restart_streaks[worker_id] = streak + 1

        replacement = self._new_worker(worker.config)
        replacement.completed_count = worker.completed_count
        replacement.failed_count = worker.failed_count
        await self._launch(replacement, restarts=record.restarts + 1)
        await self.bus.publish(
            ORCHESTRATOR_ID,
            MessageType.WORKER_RESTARTED,
            {"worker_id": worker_id, "restarts": record.restarts + 1},
        )
        self._log.info("worker_restarted", worker_id=worker_id, restarts=record.restarts + 1)

    async def _recover_task(self, task_id: str, worker_id: str) -> None:
        task = self.queue.get(task_id)
        if task is None or task.status != TaskStatus.IN_PROGRESS:
            return

        limit = self.settings.orchestrator.max_task_releases
        if limit is not None and task.release_count >= limit:
            error = f"Abandoned by unresponsive workers {task.release_count + 1} times"
            if await self.queue.fail(task_id, error, worker_id=worker_id):
                await self.bus.publish(
                    ORCHESTRATOR_ID,
                    MessageType.TASK_FAILED,
                    {"task_id": task_id, "worker_id": worker_id, "error": error},
                )
            return

        if await self.queue.release(task_id, worker_id=worker_id):
            await self.bus.publish(
                ORCHESTRATOR_ID,
                MessageType.TASK_RELEASED,
                {"task_id": task_id, "worker_id": worker_id, "reason": "unhealthy_worker"},
            )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def _sync_record(self, worker: AgentWorker) -> WorkerRecord:
        record = self._records[worker.worker_id]
        record.state = worker.state
        record.current_task = worker.current_task_id
        record.last_heartbeat = worker.last_heartbeat
        record.completed = worker.completed_count
        record.failed = worker.failed_count
        return record

    def worker_records(self) -> list[WorkerRecord]:
        """Current record of every worker slot."""
        return [self._sync_record(w) for w in self._workers.values()]

    def _task_counts(self) -> dict[str, int]:
        by_status = self.queue.get_statistics()["by_status"]
        return {
            "total_tasks": len(self.queue),
            "completed_tasks": by_status[TaskStatus.COMPLETED.value],
            "failed_tasks": by_status[TaskStatus.FAILED.value],
        }

    def status(self) -> SwarmStatus:
        """Build a status snapshot."""
        records = self.worker_records()
        active = [
            r
            for r in records
            if r.healthy and r.state not in (WorkerState.STOPPED, WorkerState.CRASHED)
        ]
        return SwarmStatus(
            **self._task_counts(),
            active_workers=len(active),
            workers={
                r.worker_id: WorkerStatus(
                    status=r.state.value if r.healthy else "unhealthy",
                    current_task=r.current_task,
                    last_activity=r.last_heartbeat,
                )
                for r in records
            },
        )

    async def publish_status(self) -> SwarmStatus:
        """Push a snapshot to every status sink."""
        snapshot = self.status()
        for sink in self.status_sinks:
            try:
                await sink.update(snapshot)
            except Exception as e:
                self._log.warning("status_sink_error", sink=type(sink).__name__, error=str(e))
        return snapshot

    async def _status_loop(self) -> None:
        interval = self.settings.orchestrator.status_interval_seconds
        while True:
            await asyncio.sleep(interval)
            await self.publish_status()

    def get_statistics(self) -> dict[str, Any]:
        """Aggregated queue, bus, router and worker statistics."""
        stats: dict[str, Any] = {
            "running": self._running,
            "queue": self.queue.get_statistics(),
            "bus": self.bus.get_statistics(),
            "workers": [r.to_dict() for r in self.worker_records()],
        }
        if self.router is not None:
            stats["router"] = self.router.get_statistics()
        return stats
