"""
Premium-tier provider backed by the Anthropic Messages API.
"""

from __future__ import annotations

import anthropic
import httpx
import structlog
from anthropic import AsyncAnthropic

from devswarm.errors import ProviderError, ProviderUnavailable
from devswarm.providers.base import InferenceProvider

logger = structlog.get_logger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5"


class AnthropicInferenceProvider(InferenceProvider):
    """Single-turn completions through ``AsyncAnthropic``."""

    name = "anthropic"

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 4096,
        system: str | None = None,
        client: AsyncAnthropic | None = None,
        api_key: str | None = None,
        timeout: float = 300.0,
        max_retries: int = 2,
    ) -> None:
        """
        Initialize the provider.

        Args:
            model: Claude model name
            max_tokens: Maximum response tokens
            system: Optional system prompt
            client: Preconfigured client (created from the environment if None)
            api_key: API key (defaults to ANTHROPIC_API_KEY)
            timeout: Request timeout in seconds
            max_retries: SDK-level retries
        """
        self.model = model
        self.max_tokens = max_tokens
        self.system = system
        self._client = client or AsyncAnthropic(
            api_key=api_key,
            max_retries=max_retries,
            timeout=httpx.Timeout(timeout, connect=60.0),
        )

    async def complete(self, prompt: str, model_hint: str | None = None) -> str:
        kwargs = {
            "model": model_hint or self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if self.system:
            kwargs["system"] = self.system

        try:
            response = await self._client.messages.create(**kwargs)
        except (anthropic.APIConnectionError, anthropic.RateLimitError) as e:
            raise ProviderUnavailable(f"Anthropic unavailable: {e}", provider=self.name) from e
        except anthropic.APIStatusError as e:
            if e.status_code >= 500:
                raise ProviderUnavailable(
                    f"Anthropic returned {e.status_code}", provider=self.name
                ) from e
            raise ProviderError(f"Anthropic returned {e.status_code}", provider=self.name) from e
        except anthropic.APIError as e:
            raise ProviderError(f"Anthropic request failed: {e}", provider=self.name) from e

        # Extract text from response
        text = "".join(block.text for block in response.content if hasattr(block, "text"))

        usage = getattr(response, "usage", None)
        logger.debug(
            "anthropic_completion",
            model=kwargs["model"],
            input_tokens=getattr(usage, "input_tokens", None),
            output_tokens=getattr(usage, "output_tokens", None),
        )
        return text

    async def aclose(self) -> None:
        await self._client.close()
