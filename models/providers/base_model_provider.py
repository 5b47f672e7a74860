import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from config.settings import SystemConfig, ModelConfig

logger = logging.getLogger(__name__)


class BaseModelProvider(ABC):
    """Chat backend used by the debate capabilities.

    Subclasses send one chat request and return the stripped reply text.
    ``json_mode`` asks the backend for a JSON object; ``max_tokens`` and
    ``temperature`` override the model configuration per call.
    """

    def __init__(self, system_config: "SystemConfig"):
        self.system_config = system_config

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of this provider."""

    @abstractmethod
    async def generate_response(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> str:
        """Generate a response using this provider."""

    def validate_model_config(self, model_config: "ModelConfig") -> bool:
        """A model belongs to this provider and names a model."""
        return model_config.provider == self.provider_name and bool(model_config.name.strip())

    def build_request(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], overrides: dict[str, Any]
    ) -> dict[str, Any]:
        """Chat-completions request body shared by OpenAI-compatible backends."""
        request: dict[str, Any] = {
            "model": model_config.name,
            "messages": messages,
            "max_tokens": overrides.get("max_tokens", model_config.max_tokens),
            "temperature": overrides.get("temperature", model_config.temperature),
        }
        if overrides.get("json_mode"):
            request["response_format"] = {"type": "json_object"}
        return request

    def finish(self, model_config: "ModelConfig", content: str | None) -> str:
        text = (content or "").strip()
        if not text:
            logger.warning(f"{self.provider_name} model {model_config.name} returned empty content")
        else:
            logger.debug(
                f"Generated {len(text)} chars from {self.provider_name} model {model_config.name}"
            )
        return text
