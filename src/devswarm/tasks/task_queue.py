"""
Priority task queue with exactly-once claim.

Workers compete for tasks through ``claim_next``; the find-and-mark step
runs under a single asyncio lock, so a pending task is handed to at most
one caller. Every other state change also goes through the queue.
"""

from __future__ import annotations

import asyncio
import bisect
import itertools
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Any

import structlog

from devswarm.errors import DuplicateTaskError
from devswarm.tasks.models import PRIORITY_ORDER, Task, TaskPriority, TaskStatus, utcnow

logger = structlog.get_logger(__name__)


class TaskQueue:
    """
    In-memory priority queue of tasks.

    Pending tasks are kept per priority band, ordered by the sequence
    number assigned when they were (re)queued. A released task keeps its
    original sequence number and therefore its FIFO position.
    """

    def __init__(
        self,
        retention_seconds: float = 3600.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Initialize the queue.

        Args:
            retention_seconds: Default age after which terminal tasks are cleaned up
            clock: Source of timestamps (injectable for tests)
        """
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._lock = asyncio.Lock()
        self._tasks: dict[str, Task] = {}
        self._sequence: dict[str, int] = {}
        self._pending: dict[TaskPriority, list[tuple[int, str]]] = {p: [] for p in PRIORITY_ORDER}
        self._counter = itertools.count()

    # ------------------------------------------------------------------
    # Internal helpers (caller holds the lock)
    # ------------------------------------------------------------------

    def _push_pending(self, task: Task) -> None:
        bisect.insort(self._pending[task.priority], (self._sequence[task.task_id], task.task_id))

    def _drop_pending(self, task: Task) -> None:
        band = self._pending[task.priority]
        entry = (self._sequence[task.task_id], task.task_id)
        index = bisect.bisect_left(band, entry)
        if index < len(band) and band[index] == entry:
            del band[index]

    def _take_eligible(self, capabilities: frozenset[str] | None) -> Task | None:
        for priority in PRIORITY_ORDER:
            band = self._pending[priority]
            for index, (_, task_id) in enumerate(band):
                task = self._tasks[task_id]
                if task.matches(capabilities):
                    del band[index]
                    return task
        return None

    def _lookup(self, task_id: str, operation: str) -> Task | None:
        task = self._tasks.get(task_id)
        if task is None:
            logger.warning("task_not_found", task_id=task_id, operation=operation)
        return task

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    async def enqueue(self, task: Task) -> Task:
        """
        Add a pending task at its priority.

        Args:
            task: Task to add; its status is reset to pending

        Returns:
            The queued task

        Raises:
            DuplicateTaskError: If a task with the same id is already known
        """
        async with self._lock:
            if task.task_id in self._tasks:
                raise DuplicateTaskError(task.task_id)

            now = self._clock()
            task.assigned_worker = None
            task.queued_at = now
            task._transition(TaskStatus.PENDING, now)

            self._tasks[task.task_id] = task
            self._sequence[task.task_id] = next(self._counter)
            self._push_pending(task)

        logger.info(
            "task_enqueued",
            task_id=task.task_id,
            priority=task.priority.value,
            task_type=task.task_type,
        )
        return task

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    async def claim_next(
        self, worker_id: str, capabilities: Iterable[str] | None = None
    ) -> Task | None:
        """
        Claim the highest-priority pending task the worker may take.

        Args:
            worker_id: Claiming worker
            capabilities: Worker capability tags; None claims regardless of requirements

        Returns:
            The claimed task (now in progress), or None when nothing is eligible
        """
        caps = frozenset(c.lower() for c in capabilities) if capabilities is not None else None

        async with self._lock:
            task = self._take_eligible(caps)
            if task is None:
                return None

            now = self._clock()
            task.assigned_worker = worker_id
            task.started_at = now
            task.attempts += 1
            task._transition(TaskStatus.IN_PROGRESS, now)

        logger.info(
            "task_claimed",
            task_id=task.task_id,
            worker_id=worker_id,
            priority=task.priority.value,
            attempt=task.attempts,
        )
        return task

    async def complete(
        self, task_id: str, result: dict[str, Any] | None = None, worker_id: str | None = None
    ) -> bool:
        """
        Mark an in-progress task completed.

        Args:
            task_id: Task to complete
            result: Result payload stored on the task
            worker_id: Reporting worker; reports from a non-owner are ignored

        Returns:
            True if the transition happened
        """
        return await self._finish(task_id, TaskStatus.COMPLETED, worker_id, result=result)

    async def fail(self, task_id: str, error: str, worker_id: str | None = None) -> bool:
        """
        Mark an in-progress task failed.

        Args:
            task_id: Task to fail
            error: Failure reason stored on the task
            worker_id: Reporting worker; reports from a non-owner are ignored

        Returns:
            True if the transition happened
        """
        return await self._finish(task_id, TaskStatus.FAILED, worker_id, error=error)

    async def _finish(
        self,
        task_id: str,
        status: TaskStatus,
        worker_id: str | None,
        result: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> bool:
        operation = status.value
        async with self._lock:
            task = self._lookup(task_id, operation)
            if task is None:
                return False
            if task.status != TaskStatus.IN_PROGRESS:
                logger.warning(
                    "task_transition_ignored",
                    task_id=task_id,
                    operation=operation,
                    status=task.status.value,
                )
                return False
            if worker_id is not None and task.assigned_worker != worker_id:
                logger.warning(
                    "task_report_from_non_owner",
                    task_id=task_id,
                    operation=operation,
                    worker_id=worker_id,
                    owner=task.assigned_worker,
                )
                return False

            now = self._clock()
            task.completed_at = now
            if status == TaskStatus.COMPLETED:
                task.result = result
            else:
                task.error = error
            task._transition(status, now)

        logger.info(
            f"task_{operation}",
            task_id=task_id,
            worker_id=task.assigned_worker,
            duration_seconds=task.duration_seconds,
            error=error,
        )
        return True

    async def release(self, task_id: str, worker_id: str | None = None) -> bool:
        """
        Return an in-progress task to pending at its original queue position.

        Args:
            task_id: Task to release
            worker_id: Only release if this worker still holds the task

        Returns:
            True if the task was released
        """
        async with self._lock:
            task = self._lookup(task_id, "release")
            if task is None:
                return False
            if task.status != TaskStatus.IN_PROGRESS:
                logger.debug("task_release_ignored", task_id=task_id, status=task.status.value)
                return False
            if worker_id is not None and task.assigned_worker != worker_id:
                logger.debug(
                    "task_release_ignored",
                    task_id=task_id,
                    worker_id=worker_id,
                    owner=task.assigned_worker,
                )
                return False
            previous = self._release_locked(task)

        logger.info("task_released", task_id=task_id, worker_id=previous)
        return True

    def _release_locked(self, task: Task) -> str | None:
        previous = task.assigned_worker
        task.assigned_worker = None
        task.started_at = None
        task.release_count += 1
        task._transition(TaskStatus.PENDING, self._clock())
        self._push_pending(task)
        return previous

    async def release_all_in_progress(self) -> list[str]:
        """
        Release every in-progress task.

        Used when a swarm starts, to recover tasks claimed by workers of a
        previous run.

        Returns:
            Ids of the released tasks
        """
        async with self._lock:
            released = [
                t.task_id for t in self._tasks.values() if t.status == TaskStatus.IN_PROGRESS
            ]
            for task_id in released:
                self._release_locked(self._tasks[task_id])

        if released:
            logger.info("tasks_reconciled", count=len(released))
        return released

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def cancel(self, task_id: str, reason: str = "cancelled") -> bool:
        """
        Cancel a pending or in-progress task.

        Returns:
            True if the task was cancelled
        """
        async with self._lock:
            task = self._lookup(task_id, "cancel")
            if task is None:
                return False
            if task.status.is_terminal:
                logger.warning(
                    "task_transition_ignored",
                    task_id=task_id,
                    operation="cancel",
                    status=task.status.value,
                )
                return False
            if task.status == TaskStatus.PENDING:
                self._drop_pending(task)

            now = self._clock()
            task.error = reason
            task.completed_at = now
            task._transition(TaskStatus.CANCELLED, now)

        logger.info("task_cancelled", task_id=task_id, reason=reason)
        return True

    async def requeue(self, task_id: str) -> bool:
        """
        Explicitly return a terminal task to pending, at the back of its band.

        Returns:
            True if the task was requeued
        """
        async with self._lock:
            task = self._lookup(task_id, "requeue")
            if task is None:
                return False
            if not task.status.is_terminal:
                logger.warning(
                    "task_transition_ignored",
                    task_id=task_id,
                    operation="requeue",
                    status=task.status.value,
                )
                return False

            now = self._clock()
            task.assigned_worker = None
            task.result = None
            task.error = None
            task.started_at = None
            task.completed_at = None
            task.queued_at = now
            task._transition(TaskStatus.PENDING, now)
            self._sequence[task_id] = next(self._counter)
            self._push_pending(task)

        logger.info("task_requeued", task_id=task_id)
        return True

    async def cleanup(self, max_age_seconds: float | None = None) -> int:
        """
        Forget terminal tasks older than the retention period.

        Args:
            max_age_seconds: Age threshold (defaults to ``retention_seconds``)

        Returns:
            Number of tasks removed
        """
        max_age = self.retention_seconds if max_age_seconds is None else max_age_seconds
        cutoff = self._clock() - timedelta(seconds=max_age)

        async with self._lock:
            expired = [
                t.task_id
                for t in self._tasks.values()
                if t.status.is_terminal and t.completed_at is not None and t.completed_at <= cutoff
            ]
            for task_id in expired:
                del self._tasks[task_id]
                del self._sequence[task_id]

        if expired:
            logger.info("tasks_cleaned_up", count=len(expired))
        return len(expired)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, task_id: str) -> Task | None:
        """Get a task by id."""
        return self._tasks.get(task_id)

    def pending(self) -> list[Task]:
        """Pending tasks in claim order (ignoring capabilities)."""
        return [self._tasks[task_id] for p in PRIORITY_ORDER for _, task_id in self._pending[p]]

    def in_progress(self) -> list[Task]:
        """Tasks currently claimed by a worker."""
        return [t for t in self._tasks.values() if t.status == TaskStatus.IN_PROGRESS]

    def all_tasks(self) -> list[Task]:
        """Every known task, in insertion order."""
        return list(self._tasks.values())

    def __len__(self) -> int:
        return len(self._tasks)

    def get_statistics(self) -> dict[str, Any]:
        """
        Queue statistics.

        Returns:
            Counts by status and pending counts by priority
        """
        by_status = {status.value: 0 for status in TaskStatus}
        for task in self._tasks.values():
            by_status[task.status.value] += 1

        return {
            "total": len(self._tasks),
            "by_status": by_status,
            "pending_by_priority": {p.value: len(self._pending[p]) for p in PRIORITY_ORDER},
        }
