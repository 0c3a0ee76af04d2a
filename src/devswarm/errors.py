"""
Exception hierarchy for devswarm.

Only a few conditions are raised to callers: invalid configuration,
duplicate task identifiers, inference provider failures and requests
that cannot reach their recipient. Everything task-scoped is absorbed by
the component that owns it.
"""

from __future__ import annotations


class DevSwarmError(Exception):
    """Base class for all devswarm errors."""

    pass


class ConfigurationError(DevSwarmError):
    """Raised when configuration is invalid or missing."""

    pass


class DuplicateTaskError(DevSwarmError):
    """Raised when a task identifier is already present in the queue."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task '{task_id}' is already queued")
        self.task_id = task_id


class ProviderError(DevSwarmError):
    """Raised when an inference provider call fails."""

    def __init__(self, message: str, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider


class ProviderUnavailable(ProviderError):
    """Raised when an inference provider cannot be reached at all."""

    pass


class MessageUndeliverable(DevSwarmError):
    """Raised when a request cannot reach its recipient's inbox."""

    def __init__(self, recipient: str, reason: str = "no inbox registered") -> None:
        super().__init__(f"Cannot deliver to '{recipient}': {reason}")
        self.recipient = recipient
