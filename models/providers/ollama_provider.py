import logging
from typing import TYPE_CHECKING, Any

import httpx
from openai import AsyncOpenAI

from .openai_provider import OpenAIProvider

if TYPE_CHECKING:
    from config.settings import SystemConfig

logger = logging.getLogger(__name__)


class OllamaProvider(OpenAIProvider):
    """Ollama model provider via its OpenAI-compatible endpoint."""

    def __init__(self, system_config: "SystemConfig", client: AsyncOpenAI | None = None):
        self._ollama_base_url = system_config.ollama_base_url
        super().__init__(system_config, client)

    @property
    def provider_name(self) -> str:
        return "ollama"

    def _create_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(
            base_url=f"{self._ollama_base_url}/v1",
            api_key="ollama",  # Ollama doesn't require real API key
            timeout=120.0,  # Allow for model loading and generation
            max_retries=0,
        )

    def _extra_body(self) -> dict[str, Any]:
        ollama_config = self.system_config.ollama
        extra_body: dict[str, Any] = {}
        if ollama_config.keep_alive is not None:
            extra_body["keep_alive"] = ollama_config.keep_alive
        if ollama_config.repeat_penalty is not None:
            extra_body["repeat_penalty"] = ollama_config.repeat_penalty
        return extra_body

    async def is_running(self) -> bool:
        """Fast health check to see if Ollama server is running."""
        try:
            async with httpx.AsyncClient(timeout=1.0) as client:
                response = await client.get(f"{self._ollama_base_url}/api/tags")
                response.raise_for_status()
                return True
        except httpx.HTTPError as e:
            logger.debug(f"Ollama health check failed: {e}")
            return False
