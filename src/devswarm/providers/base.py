"""
Inference provider interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from devswarm.tasks.models import Task


class InferenceProvider(ABC):
    """
    Turns a prompt into text.

    Implementations raise ``ProviderUnavailable`` when the backend cannot be
    reached and ``ProviderError`` for any other failure.
    """

    name: str = "provider"

    @abstractmethod
    async def complete(self, prompt: str, model_hint: str | None = None) -> str:
        """
        Complete a prompt.

        Args:
            prompt: Prompt text
            model_hint: Optional backend-specific model name

        Returns:
            Generated text
        """

    async def is_available(self) -> bool:
        """Cheap reachability check."""
        return True

    def bind(self, task: Task) -> InferenceProvider:
        """Provider to use for prompts belonging to ``task``."""
        return self

    async def aclose(self) -> None:
        """Release network resources."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"
