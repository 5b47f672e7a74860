import logging
import os
from typing import TYPE_CHECKING, Any

from openai import AsyncOpenAI

from .base_model_provider import BaseModelProvider

if TYPE_CHECKING:
    from openai.types.chat import ChatCompletion
    from config.settings import SystemConfig, ModelConfig

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseModelProvider):
    """OpenAI chat-completions provider."""

    def __init__(self, system_config: "SystemConfig", client: AsyncOpenAI | None = None):
        super().__init__(system_config)
        self._client = client or self._create_client()

    @property
    def provider_name(self) -> str:
        return "openai"

    def _create_client(self) -> AsyncOpenAI | None:
        openai_config = self.system_config.openai
        api_key = openai_config.api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            logger.warning(
                "No OpenAI API key found. Set OPENAI_API_KEY or configure in system settings."
            )
            return None
        return AsyncOpenAI(
            api_key=api_key,
            base_url=openai_config.base_url,
            timeout=openai_config.timeout,
            max_retries=0,  # retries are owned by the debate engine
        )

    def _extra_body(self) -> dict[str, Any]:
        return {}

    async def generate_response(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> str:
        """Generate a chat completion and return its text."""
        if not self._client:
            raise RuntimeError(f"{self.provider_name} client not initialized - check API key")

        params = self.build_request(model_config, messages, overrides)
        extra_body = self._extra_body()
        if extra_body:
            params["extra_body"] = extra_body

        try:
            response: "ChatCompletion" = await self._client.chat.completions.create(**params)
            content = response.choices[0].message.content
        except Exception as e:
            logger.error(f"{self.provider_name} generation failed for {model_config.name}: {e}")
            raise

        return self.finish(model_config, content)
