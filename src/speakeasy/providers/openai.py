"""OpenAI text-to-speech provider implementation."""

import asyncio
import logging
from typing import Any

from openai import (
    APIConnectionError,
    APIStatusError,
    AuthenticationError,
    OpenAI,
    PermissionDeniedError,
    RateLimitError,
)

from ..tts.errors import ConfigurationError, ProviderError
from .base import CacheableProvider, ProviderId, rate_to_speed

logger = logging.getLogger(__name__)

MIN_API_KEY_LENGTH = 11


class OpenAIProvider(CacheableProvider):
    """OpenAI speech endpoint (tts-1, tts-1-hd, gpt-4o-mini-tts).

    Speaking rate is sent as a speed multiplier where 200 wpm is 1.0.
    """

    provider_id = ProviderId.OPENAI
    display_name = "OpenAI"
    env_var = "OPENAI_API_KEY"
    base_url: str | None = None
    response_format = "mp3"

    def __init__(
        self,
        api_key: str = "",
        voice: str = "nova",
        model: str = "tts-1",
        instructions: str | None = None,
    ) -> None:
        super().__init__(voice=voice, model=model)
        self._api_key = api_key or ""
        self.instructions = instructions
        self._client: OpenAI | None = None

    def validate_config(self) -> bool:
        return len(self._api_key) >= MIN_API_KEY_LENGTH

    def _get_client(self) -> OpenAI:
        if not self.validate_config():
            raise ConfigurationError(
                f"{self.display_name} API key not found. Set {self.env_var} or "
                f"providers.{self.name}.api_key in the config file."
            )
        if self._client is None:
            self._client = OpenAI(api_key=self._api_key, base_url=self.base_url)
        return self._client

    def _request_args(self, text: str, voice: str, rate: int) -> dict[str, Any]:
        args: dict[str, Any] = {
            "model": self.model,
            "voice": voice,
            "input": text,
            "speed": rate_to_speed(rate),
            "response_format": self.response_format,
        }
        if self.instructions:
            args["instructions"] = self.instructions
        return args

    async def generate_audio(self, text: str, voice: str, rate: int) -> bytes:
        """Convert text to speech audio bytes.

        Raises:
            ConfigurationError: If the key is missing or rejected
            ProviderError: On rate limits, server errors or network failures
        """
        client = self._get_client()
        args = self._request_args(text, voice or self.voice, rate)

        def _sync_create() -> bytes:
            response = client.audio.speech.create(**args)
            return response.content

        try:
            audio_bytes = await asyncio.to_thread(_sync_create)
        except (AuthenticationError, PermissionDeniedError) as e:
            raise ConfigurationError(
                f"{self.display_name} authentication failed: {e.message}", e
            ) from e
        except RateLimitError as e:
            raise ProviderError(
                f"{self.display_name} rate limit exceeded: {e.message}", 429, e
            ) from e
        except APIStatusError as e:
            raise ProviderError(
                f"{self.display_name} API error: {e.message}", e.status_code, e
            ) from e
        except APIConnectionError as e:
            raise ProviderError(
                f"Could not reach {self.display_name}: {e}", original_error=e
            ) from e

        if not audio_bytes:
            raise ProviderError(f"No audio data received from {self.display_name}")

        logger.debug(
            f"{self.display_name} returned {len(audio_bytes)} bytes "
            f"(model={self.model}, voice={args['voice']})"
        )
        return audio_bytes
