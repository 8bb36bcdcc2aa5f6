"""Provider abstraction for text-to-speech services.

This module provides a registry pattern for managing TTS providers,
allowing runtime selection of different TTS backends.
"""

from typing import TYPE_CHECKING, ClassVar

from .base import (
    DEFAULT_FALLBACK_ORDER,
    CacheableProvider,
    DirectPlayProvider,
    ProviderId,
    TTSProvider,
)
from .elevenlabs import ElevenLabsProvider
from .gemini import GeminiProvider
from .groq import GroqProvider
from .openai import OpenAIProvider
from .system import SystemTTSProvider

if TYPE_CHECKING:
    from ..config import OrchestratorConfig

__all__ = [
    "DEFAULT_FALLBACK_ORDER",
    "CacheableProvider",
    "DirectPlayProvider",
    "ElevenLabsProvider",
    "GeminiProvider",
    "GroqProvider",
    "OpenAIProvider",
    "ProviderId",
    "ProviderRegistry",
    "SystemTTSProvider",
    "TTSProvider",
]


class ProviderRegistry:
    """Registry for managing TTS providers.

    This class maintains a registry of available TTS providers,
    allowing registration and retrieval by id.
    """

    _providers: ClassVar[dict[ProviderId, type[TTSProvider]]] = {}

    @classmethod
    def register(cls, provider_id: ProviderId | str, provider_class: type[TTSProvider]) -> None:
        """Register a TTS provider.

        Args:
            provider_id: Id to register the provider under
            provider_class: Provider class that implements TTSProvider
        """
        cls._providers[ProviderId(provider_id)] = provider_class

    @classmethod
    def get(cls, provider_id: ProviderId | str) -> type[TTSProvider]:
        """Get a provider class by id.

        Raises:
            KeyError: If provider id not found
        """
        try:
            return cls._providers[ProviderId(provider_id)]
        except (KeyError, ValueError):
            available = ", ".join(p.value for p in cls._providers) or "none"
            raise KeyError(
                f"Provider '{provider_id}' not found. Available providers: {available}"
            ) from None

    @classmethod
    def available(cls) -> list[ProviderId]:
        return list(cls._providers)

    @classmethod
    def create(cls, provider_id: ProviderId | str, config: "OrchestratorConfig") -> TTSProvider:
        """Instantiate a provider from its settings block in config.

        Construction never fails for a missing key; use validate_config().
        """
        pid = ProviderId(provider_id)
        provider_class = cls.get(pid)
        settings = config.for_provider(pid)

        if pid is ProviderId.SYSTEM:
            return provider_class(voice=settings.voice)
        if pid is ProviderId.OPENAI:
            return provider_class(
                api_key=settings.api_key,
                voice=settings.voice,
                model=settings.model,
                instructions=settings.instructions,
            )
        return provider_class(
            api_key=settings.api_key, voice=settings.voice, model=settings.model
        )

    @classmethod
    def create_all(cls, config: "OrchestratorConfig") -> dict[ProviderId, TTSProvider]:
        return {pid: cls.create(pid, config) for pid in cls._providers}


# Register providers
ProviderRegistry.register(ProviderId.SYSTEM, SystemTTSProvider)
ProviderRegistry.register(ProviderId.OPENAI, OpenAIProvider)
ProviderRegistry.register(ProviderId.ELEVENLABS, ElevenLabsProvider)
ProviderRegistry.register(ProviderId.GROQ, GroqProvider)
ProviderRegistry.register(ProviderId.GEMINI, GeminiProvider)
