"""Chat providers for debate models."""

from .base_model_provider import BaseModelProvider
from .ollama_provider import OllamaProvider
from .open_router_provider import OpenRouterProvider
from .openai_provider import OpenAIProvider
from .providers import ProviderFactory

__all__ = [
    "BaseModelProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "ProviderFactory",
]
