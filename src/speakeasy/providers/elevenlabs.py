"""ElevenLabs text-to-speech provider implementation."""

import asyncio
import logging

from elevenlabs.client import ElevenLabs
from elevenlabs.core.api_error import ApiError

from ..tts.errors import ConfigurationError, ProviderError
from .base import CacheableProvider, ProviderId

logger = logging.getLogger(__name__)

MIN_API_KEY_LENGTH = 11
VOICE_SETTINGS = {"stability": 0.5, "similarity_boost": 0.5}


def _map_api_error(e: ApiError, action: str) -> Exception:
    status = e.status_code
    if status in (401, 403):
        return ConfigurationError(f"ElevenLabs authentication failed: {e.body}", e)
    if status == 429:
        return ProviderError(f"ElevenLabs rate limit exceeded: {e.body}", 429, e)
    return ProviderError(f"ElevenLabs {action} failed: {e.body}", status, e)


class ElevenLabsProvider(CacheableProvider):
    """ElevenLabs TTS provider implementation.

    Provides methods to synthesize speech from text and manage voices
    using the ElevenLabs API. The SDK client is synchronous, so calls run
    in a worker thread.
    """

    provider_id = ProviderId.ELEVENLABS

    def __init__(
        self,
        api_key: str = "",
        voice: str = "EXAVITQu4vr4xnSDxMaL",
        model: str = "eleven_multilingual_v2",
    ) -> None:
        """Initialize ElevenLabs provider.

        A missing key is not an error here; validate_config() reports it
        and generate_audio() raises ConfigurationError.

        Args:
            api_key: ElevenLabs API key
            voice: Default voice ID
            model: ElevenLabs model ID
        """
        super().__init__(voice=voice, model=model)
        self._api_key = api_key or ""
        self._client: ElevenLabs | None = None

        # Cache for voices to avoid repeated API calls
        self._voices_cache: list[dict] | None = None

    def validate_config(self) -> bool:
        return len(self._api_key) >= MIN_API_KEY_LENGTH

    def _get_client(self) -> ElevenLabs:
        if not self.validate_config():
            raise ConfigurationError(
                "ElevenLabs API key not found. Set ELEVENLABS_API_KEY or "
                "providers.elevenlabs.api_key in the config file."
            )
        if self._client is None:
            self._client = ElevenLabs(api_key=self._api_key)
        return self._client

    async def generate_audio(self, text: str, voice: str, rate: int) -> bytes:
        """Convert text to speech audio bytes.

        ElevenLabs has no words-per-minute control, so rate only takes
        part in the cache key.

        Returns:
            Audio data as bytes (MP3 format)

        Raises:
            ConfigurationError: If the key is missing or rejected
            ProviderError: If the API call fails
        """
        client = self._get_client()
        voice_id = voice or self.voice

        # Run synchronous ElevenLabs client in thread to avoid blocking event loop
        def _sync_convert() -> bytes:
            audio_generator = client.text_to_speech.convert(
                text=text,
                voice_id=voice_id,
                model_id=self.model,
                voice_settings=VOICE_SETTINGS,
            )
            # Collect all audio chunks
            return b"".join(audio_generator)

        try:
            audio_bytes = await asyncio.to_thread(_sync_convert)
        except ApiError as e:
            raise _map_api_error(e, "synthesis") from e
        except Exception as e:
            raise ProviderError(f"ElevenLabs request failed: {e}", original_error=e) from e

        if not audio_bytes:
            raise ProviderError("No audio data received from ElevenLabs")

        logger.debug(f"ElevenLabs returned {len(audio_bytes)} bytes for voice {voice_id}")
        return audio_bytes

    async def list_voices(self) -> list[dict]:
        """Get list of available voices.

        Results are cached after first call to avoid repeated API requests.

        Returns:
            List of voice dictionaries with id, name, and provider fields

        Raises:
            ConfigurationError: If the key is missing or rejected
            ProviderError: If API call fails
        """
        if self._voices_cache is not None:
            return self._voices_cache

        client = self._get_client()

        def _sync_get_voices() -> list[dict]:
            response = client.voices.get_all()
            return [
                {"id": voice.voice_id, "name": voice.name, "provider": self.name}
                for voice in response.voices
            ]

        try:
            voices = await asyncio.to_thread(_sync_get_voices)
        except ApiError as e:
            raise _map_api_error(e, "voice listing") from e
        except Exception as e:
            raise ProviderError(f"Failed to list voices: {e}", original_error=e) from e

        self._voices_cache = voices
        return voices
