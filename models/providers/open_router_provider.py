import asyncio
import logging
import os
import time
from typing import TYPE_CHECKING, ClassVar

import httpx

from .base_model_provider import BaseModelProvider

if TYPE_CHECKING:
    from config.settings import SystemConfig, ModelConfig

logger = logging.getLogger(__name__)


class OpenRouterProvider(BaseModelProvider):
    """OpenRouter model provider implementation."""

    # Class-level rate limiting shared by every instance
    _last_request_time: ClassVar[float | None] = None
    _request_lock: ClassVar[asyncio.Lock | None] = None

    def __init__(self, system_config: "SystemConfig"):
        super().__init__(system_config)
        self._api_key = system_config.openrouter.api_key or os.getenv("OPENROUTER_API_KEY")
        if not self._api_key:
            logger.warning(
                "No OpenRouter API key found. Set OPENROUTER_API_KEY or configure in system settings."
            )

    @property
    def provider_name(self) -> str:
        return "openrouter"

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if self.system_config.openrouter.site_url:
            headers["HTTP-Referer"] = self.system_config.openrouter.site_url
        if self.system_config.openrouter.app_name:
            headers["X-Title"] = self.system_config.openrouter.app_name
        return headers

    async def _rate_limit_request(self) -> None:
        """Ensure minimum time between requests to avoid 429 errors."""
        if OpenRouterProvider._request_lock is None:
            OpenRouterProvider._request_lock = asyncio.Lock()

        async with OpenRouterProvider._request_lock:
            interval = self.system_config.openrouter.min_request_interval
            last = OpenRouterProvider._last_request_time
            if last is not None:
                time_since_last = time.time() - last
                if time_since_last < interval:
                    sleep_time = interval - time_since_last
                    logger.debug(
                        f"Rate limiting: waiting {sleep_time:.2f}s before next OpenRouter request"
                    )
                    await asyncio.sleep(sleep_time)

            OpenRouterProvider._last_request_time = time.time()

    async def generate_response(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> str:
        """Generate a response using OpenRouter."""
        if not self._api_key:
            raise RuntimeError("OpenRouter client not initialized - check API key")

        payload = self.build_request(model_config, messages, overrides)
        payload["reasoning"] = {"exclude": True}

        await self._rate_limit_request()

        try:
            async with httpx.AsyncClient() as client:
                http_response = await client.post(
                    f"{self.system_config.openrouter.base_url}/chat/completions",
                    json=payload,
                    headers=self._headers(),
                    timeout=self.system_config.openrouter.timeout,
                )
                http_response.raise_for_status()
                response_data = http_response.json()
            content = response_data["choices"][0]["message"]["content"]
        except (httpx.HTTPError, KeyError, IndexError) as e:
            logger.error(f"OpenRouter generation failed for {model_config.name}: {e}")
            raise

        return self.finish(model_config, content)
