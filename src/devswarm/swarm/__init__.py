"""
Swarm runtime: message bus, agent workers and the orchestrator.
"""

from devswarm.swarm.message_bus import (
    BROADCAST_TOPIC,
    DIRECT_TOPIC,
    Message,
    MessageBus,
    MessageHandler,
    MessageType,
)
from devswarm.swarm.orchestrator import (
    LoggingStatusSink,
    StatusSink,
    SwarmOrchestrator,
    SwarmStatus,
    WorkerRecord,
    WorkerStatus,
)
from devswarm.swarm.worker import AgentWorker, WorkerState

__all__ = [
    # Message bus
    "Message",
    "MessageBus",
    "MessageHandler",
    "MessageType",
    "DIRECT_TOPIC",
    "BROADCAST_TOPIC",
    # Workers
    "AgentWorker",
    "WorkerState",
    # Orchestrator
    "SwarmOrchestrator",
    "SwarmStatus",
    "WorkerRecord",
    "WorkerStatus",
    "StatusSink",
    "LoggingStatusSink",
]
