"""Routes debate roles to configured chat models."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TypeAlias

from config.settings import ModelConfig, SystemConfig

from .providers.base_model_provider import BaseModelProvider
from .providers.providers import ProviderFactory

MessageDict: TypeAlias = dict[str, str]
MessageList: TypeAlias = list[MessageDict]

logger = logging.getLogger(__name__)


@dataclass
class ModelUsage:
    """Request counters for one registered role."""

    requests: int = 0
    failures: int = 0
    characters: int = 0


class ModelManager:
    """Maps roles such as ``debater``, ``moderator`` and ``judge`` to models.

    Providers are created lazily, one per provider name, and shared by every
    role that uses them.
    """

    def __init__(
        self,
        system_config: SystemConfig,
        providers: dict[str, BaseModelProvider] | None = None,
    ):
        self._system_config = system_config
        self._model_configs: dict[str, ModelConfig] = {}
        self._providers: dict[str, BaseModelProvider] = dict(providers or {})
        self._usage: dict[str, ModelUsage] = {}

    @classmethod
    def from_models(
        cls, system_config: SystemConfig, models: dict[str, ModelConfig]
    ) -> ModelManager:
        manager = cls(system_config)
        for role, config in models.items():
            manager.register_model(role, config)
        return manager

    def _get_provider(self, provider_name: str) -> BaseModelProvider:
        if provider_name not in self._providers:
            self._providers[provider_name] = ProviderFactory.create_provider(
                provider_name, self._system_config
            )
        return self._providers[provider_name]

    def register_model(self, role: str, config: ModelConfig) -> None:
        """Bind a role to a model; raises ValueError for unusable configs."""
        try:
            provider = self._get_provider(config.provider)
            if not provider.validate_model_config(config):
                raise ValueError(f"Invalid model config for provider {config.provider}")
        except ValueError as exc:
            logger.error("Failed to register model for role %s: %s", role, exc)
            raise

        self._model_configs[role] = config
        self._usage.setdefault(role, ModelUsage())
        logger.info("Role %s uses %s (%s)", role, config.name, config.provider)

    def is_registered(self, role: str) -> bool:
        return role in self._model_configs

    def resolve(self, role: str, fallback: str) -> str:
        """The role itself when registered, otherwise ``fallback``."""
        return role if role in self._model_configs else fallback

    def usage(self) -> dict[str, ModelUsage]:
        return {role: ModelUsage(**vars(stats)) for role, stats in self._usage.items()}

    async def generate_response(
        self, role: str, messages: MessageList, **overrides: object
    ) -> str:
        """Generate a reply from the model bound to ``role``."""
        if role not in self._model_configs:
            raise ValueError(f"Model {role} not registered")

        config = self._model_configs[role]
        provider = self._get_provider(config.provider)
        stats = self._usage[role]
        stats.requests += 1

        try:
            response = await provider.generate_response(config, messages, **overrides)
        except Exception:
            stats.failures += 1
            raise

        stats.characters += len(response)
        return response
