"""
Task model for the swarm work queue.

A Task is only ever mutated through TaskQueue operations; workers and the
orchestrator receive references but report back through the queue.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(UTC)


class TaskPriority(str, Enum):
    """Task priority bands, highest first."""

    IMMEDIATE = "immediate"  # Jumps ahead of everything already queued
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Lower rank is claimed first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    TaskPriority.IMMEDIATE: 0,
    TaskPriority.HIGH: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 3,
}

PRIORITY_ORDER: tuple[TaskPriority, ...] = tuple(sorted(TaskPriority, key=lambda p: p.rank))


class TaskStatus(str, Enum):
    """Task lifecycle states."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Completed, failed and cancelled tasks are terminal."""
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED)


@dataclass
class Task:
    """A unit of work for the swarm."""

    description: str
    task_id: str = field(default_factory=lambda: f"task-{uuid.uuid4().hex[:12]}")
    priority: TaskPriority = TaskPriority.MEDIUM
    task_type: str = "feature"
    required_capabilities: frozenset[str] = field(default_factory=frozenset)
    metadata: dict[str, Any] = field(default_factory=dict)

    # Lifecycle, owned by the queue
    status: TaskStatus = TaskStatus.PENDING
    assigned_worker: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    queued_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    result: dict[str, Any] | None = None
    error: str | None = None
    attempts: int = 0
    release_count: int = 0
    transitions: list[tuple[TaskStatus, datetime]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if isinstance(self.priority, str) and not isinstance(self.priority, TaskPriority):
            self.priority = TaskPriority(self.priority.lower())
        self.required_capabilities = frozenset(
            c.strip().lower() for c in self.required_capabilities if c.strip()
        )

    def matches(self, capabilities: frozenset[str] | None) -> bool:
        """Check whether a worker with these capabilities may claim the task."""
        if capabilities is None or not self.required_capabilities:
            return True
        return self.required_capabilities <= capabilities

    def _transition(self, status: TaskStatus, now: datetime) -> None:
        self.status = status
        self.updated_at = now
        self.transitions.append((status, now))

    @property
    def duration_seconds(self) -> float | None:
        """Time from the latest claim to the terminal transition."""
        if self.started_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "task_id": self.task_id,
            "description": self.description,
            "priority": self.priority.value,
            "task_type": self.task_type,
            "required_capabilities": sorted(self.required_capabilities),
            "status": self.status.value,
            "assigned_worker": self.assigned_worker,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "result": self.result,
            "error": self.error,
            "attempts": self.attempts,
            "release_count": self.release_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        """Create a pending task from a dictionary (e.g. a JSON task file)."""
        kwargs: dict[str, Any] = {
            "description": data.get("description", ""),
            "priority": TaskPriority(str(data.get("priority", "medium")).lower()),
            "task_type": data.get("task_type", data.get("type", "feature")),
            "required_capabilities": frozenset(data.get("required_capabilities", [])),
            "metadata": dict(data.get("metadata", {})),
        }
        if data.get("task_id") or data.get("id"):
            kwargs["task_id"] = str(data.get("task_id") or data.get("id"))
        return cls(**kwargs)
