"""
Inference providers.

The swarm talks to models only through ``InferenceProvider``; these
adapters cover offline use, a local Ollama server, the Anthropic API and
router-driven tier selection.
"""

from devswarm.providers.anthropic_provider import AnthropicInferenceProvider
from devswarm.providers.base import InferenceProvider
from devswarm.providers.cache import ModelAvailabilityCache
from devswarm.providers.echo import EchoInferenceProvider
from devswarm.providers.ollama import OllamaInferenceProvider
from devswarm.providers.routed import RoutedInferenceProvider, fallback_order

__all__ = [
    "InferenceProvider",
    "EchoInferenceProvider",
    "OllamaInferenceProvider",
    "AnthropicInferenceProvider",
    "RoutedInferenceProvider",
    "ModelAvailabilityCache",
    "fallback_order",
]
