"""
Local-tier provider backed by an Ollama server.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from devswarm.errors import ProviderError, ProviderUnavailable
from devswarm.providers.base import InferenceProvider

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama3.1"


class OllamaInferenceProvider(InferenceProvider):
    """Calls ``/api/generate`` on an Ollama server."""

    name = "ollama"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        timeout: float = 120.0,
        max_attempts: int = 3,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the provider.

        Args:
            base_url: Ollama server URL
            model: Default model name
            timeout: Request timeout in seconds
            max_attempts: Attempts for transient connection failures
            client: Preconfigured HTTP client (e.g. with a mock transport)
        """
        self.model = model
        self.max_attempts = max_attempts
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout, connect=10.0),
        )

    async def complete(self, prompt: str, model_hint: str | None = None) -> str:
        payload = {"model": model_hint or self.model, "prompt": prompt, "stream": False}

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
                reraise=True,
            ):
                with attempt:
                    response = await self._client.post("/api/generate", json=payload)
                    response.raise_for_status()
        except (httpx.TimeoutException, httpx.ConnectError) as e:
            raise ProviderUnavailable(f"Ollama unreachable: {e}", provider=self.name) from e
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (404, 503):
                raise ProviderUnavailable(
                    f"Ollama model unavailable: {e.response.status_code}", provider=self.name
                ) from e
            raise ProviderError(
                f"Ollama returned {e.response.status_code}", provider=self.name
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Ollama request failed: {e}", provider=self.name) from e

        data: dict[str, Any] = response.json()
        text = data.get("response")
        if not isinstance(text, str):
            raise ProviderError("Ollama response has no text", provider=self.name)

        logger.debug(
            "ollama_completion",
            model=payload["model"],
            prompt_chars=len(prompt),
            response_chars=len(text),
        )
        return text

    async def is_available(self) -> bool:
        try:
            response = await self._client.get("/api/tags")
        except httpx.HTTPError as e:
            logger.debug("ollama_availability_check_failed", error=str(e))
            return False
        return response.status_code == 200

    async def aclose(self) -> None:
        await self._client.aclose()
