"""Abstract base classes for text-to-speech providers.

Providers come in two capabilities. Cacheable providers return audio bytes
that the orchestrator stores and plays itself. Direct-play providers (the
local OS voice) speak on their own and can only be stopped.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import ClassVar

from ..tts.errors import PlatformError


class ProviderId(str, Enum):
    """The fixed set of supported providers."""

    SYSTEM = "system"
    OPENAI = "openai"
    ELEVENLABS = "elevenlabs"
    GROQ = "groq"
    GEMINI = "gemini"


DEFAULT_FALLBACK_ORDER: tuple[ProviderId, ...] = (
    ProviderId.SYSTEM,
    ProviderId.OPENAI,
    ProviderId.ELEVENLABS,
    ProviderId.GROQ,
    ProviderId.GEMINI,
)


class TTSProvider(ABC):
    """Abstract base class for text-to-speech providers.

    Voice Dictionary Structure:
        Each voice returned by list_voices() should follow this structure:
        {
            "id": str,       # Unique identifier for the voice
            "name": str,     # Human-readable name for the voice
            "provider": str  # Name of the provider (e.g., "openai", "system")
        }
    """

    provider_id: ClassVar[ProviderId]

    def __init__(self, voice: str, model: str | None = None) -> None:
        self.voice = voice
        self.model = model

    @property
    def name(self) -> str:
        return self.provider_id.value

    @abstractmethod
    def validate_config(self) -> bool:
        """Return True when the provider has what it needs to run.

        Must not perform network calls.
        """

    async def list_voices(self) -> list[dict]:
        """Return available voices for this provider.

        Providers without a voice listing API report their configured voice.
        """
        return [{"id": self.voice, "name": self.voice, "provider": self.name}]


class CacheableProvider(TTSProvider):
    """Provider that returns audio bytes suitable for caching."""

    @abstractmethod
    async def generate_audio(self, text: str, voice: str, rate: int) -> bytes:
        """Convert text to audio bytes.

        Args:
            text: The text to convert to speech
            voice: Voice ID or name to use for synthesis
            rate: Speaking rate in words per minute

        Returns:
            Audio data as bytes (MP3 or WAV format)

        Raises:
            ConfigurationError: If credentials are missing or rejected
            ProviderError: If the API call fails
        """


class DirectPlayProvider(TTSProvider):
    """Provider that plays speech itself (e.g. the OS voice command)."""

    @abstractmethod
    async def speak(self, text: str, voice: str, rate: int) -> None:
        """Speak text, returning once speech has finished or been stopped.

        Raises:
            PlatformError: If the OS voice is unavailable or fails
        """

    @abstractmethod
    def stop(self) -> None:
        """Stop speech in progress. Never raises."""

    async def render_audio(self, text: str, voice: str, rate: int) -> bytes:
        """Render speech to audio bytes instead of playing it.

        Raises:
            PlatformError: If the provider cannot write audio
        """
        raise PlatformError(f"Provider '{self.name}' cannot render audio to a file")


def rate_to_speed(rate: int, base: int = 200) -> float:
    """Convert words per minute into an OpenAI-style speed multiplier."""
    return max(0.25, min(4.0, rate / base))
