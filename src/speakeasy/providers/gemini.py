"""Google Gemini text-to-speech provider implementation.

Gemini returns raw PCM (e.g. ``audio/L16;codec=pcm;rate=24000``) as base64
inline data. It is wrapped in a WAV container before being returned.
"""

import base64
import io
import logging
import wave

import httpx

from ..tts.errors import ConfigurationError, ProviderError
from .base import CacheableProvider, ProviderId

logger = logging.getLogger(__name__)

API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
MIN_API_KEY_LENGTH = 11
DEFAULT_SAMPLE_RATE = 24000
DEFAULT_SAMPLE_WIDTH = 2  # bytes


def parse_pcm_mime_type(mime_type: str) -> tuple[int, int]:
    """Extract (sample_rate, sample_width_bytes) from a PCM mime type."""
    sample_rate = DEFAULT_SAMPLE_RATE
    sample_width = DEFAULT_SAMPLE_WIDTH

    file_type, *params = [part.strip() for part in mime_type.split(";")]
    _, _, fmt = file_type.partition("/")
    # L16 means 16-bit linear PCM
    if fmt.upper().startswith("L") and fmt[1:].isdigit():
        sample_width = int(fmt[1:]) // 8

    for param in params:
        key, _, value = param.partition("=")
        if key.strip() == "rate" and value.strip().isdigit():
            sample_rate = int(value.strip())

    return sample_rate, sample_width


def pcm_to_wav(pcm: bytes, sample_rate: int, sample_width: int, channels: int = 1) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(sample_width)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)
    return buffer.getvalue()


class GeminiProvider(CacheableProvider):
    """Gemini TTS via the generateContent REST endpoint."""

    provider_id = ProviderId.GEMINI

    def __init__(
        self,
        api_key: str = "",
        voice: str = "Kore",
        model: str = "gemini-2.5-flash-preview-tts",
        timeout: float = 60.0,
    ) -> None:
        super().__init__(voice=voice, model=model)
        self._api_key = api_key or ""
        self.timeout = timeout

    def validate_config(self) -> bool:
        return len(self._api_key) >= MIN_API_KEY_LENGTH

    def _payload(self, text: str, voice: str) -> dict:
        return {
            "contents": [{"role": "user", "parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice}}
                },
            },
        }

    async def generate_audio(self, text: str, voice: str, rate: int) -> bytes:
        """Convert text to WAV audio bytes.

        Gemini has no speaking rate parameter; rate only affects the cache key.

        Raises:
            ConfigurationError: If the key is missing or rejected
            ProviderError: If the request fails or returns no audio
        """
        if not self.validate_config():
            raise ConfigurationError(
                "Gemini API key not found. Set GEMINI_API_KEY or "
                "providers.gemini.api_key in the config file."
            )

        url = API_URL.format(model=self.model)
        headers = {"x-goog-api-key": self._api_key, "Content-Type": "application/json"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    url, headers=headers, json=self._payload(text, voice or self.voice)
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in (401, 403):
                raise ConfigurationError(f"Gemini rejected the API key ({status})", e) from e
            if status == 429:
                raise ProviderError("Gemini rate limit exceeded", 429, e) from e
            if status == 404:
                raise ProviderError(
                    f"Gemini model '{self.model}' not found or does not support audio",
                    404,
                    e,
                ) from e
            raise ProviderError(f"Gemini API error ({status}): {e.response.text}", status, e) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Gemini request failed: {e}", original_error=e) from e
        except ValueError as e:
            raise ProviderError(f"Gemini returned invalid JSON: {e}", original_error=e) from e

        try:
            inline = data["candidates"][0]["content"]["parts"][0]["inlineData"]
            pcm = base64.b64decode(inline["data"])
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderError("No audio content received from Gemini", original_error=e) from e

        if not pcm:
            raise ProviderError("No audio content received from Gemini")

        mime_type = inline.get("mimeType", "audio/L16;rate=24000")
        if "wav" in mime_type:
            return pcm

        sample_rate, sample_width = parse_pcm_mime_type(mime_type)
        logger.debug(f"Gemini returned {len(pcm)} bytes of PCM ({mime_type})")
        return pcm_to_wav(pcm, sample_rate, sample_width)
