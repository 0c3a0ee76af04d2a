"""
Progress events emitted while an agent thinks.

A ``ProgressChannel`` is an async stream: the pipeline emits events
without blocking, and a single consumer iterates them until the channel is
closed.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from devswarm.agents.models import ThinkingPhase


@dataclass(frozen=True)
class ThoughtEvent:
    """A step of the cognitive pipeline."""

    agent_id: str
    task_id: str
    phase: ThinkingPhase
    message: str
    current_step: int
    total_steps: int
    detail: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "agent_id": self.agent_id,
            "task_id": self.task_id,
            "phase": self.phase.value,
            "message": self.message,
            "current_step": self.current_step,
            "total_steps": self.total_steps,
            "detail": self.detail,
            "timestamp": self.timestamp.isoformat(),
        }


class ProgressChannel:
    """Unbounded single-consumer stream of ``ThoughtEvent``."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[ThoughtEvent | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: ThoughtEvent) -> None:
        """Queue an event; ignored once the channel is closed."""
        if not self._closed:
            self._queue.put_nowait(event)

    def close(self) -> None:
        """End the stream after the events already queued."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def __aiter__(self) -> AsyncIterator[ThoughtEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event
