"""Groq text-to-speech provider.

Groq serves PlayAI voices behind an OpenAI-compatible endpoint, so this
reuses the OpenAI client with Groq's base URL.
"""

from .base import ProviderId
from .openai import OpenAIProvider


class GroqProvider(OpenAIProvider):
    """Groq PlayAI voices (WAV output)."""

    provider_id = ProviderId.GROQ
    display_name = "Groq"
    env_var = "GROQ_API_KEY"
    base_url = "https://api.groq.com/openai/v1"
    response_format = "wav"

    def __init__(
        self,
        api_key: str = "",
        voice: str = "Celeste-PlayAI",
        model: str = "playai-tts",
    ) -> None:
        super().__init__(api_key=api_key, voice=voice, model=model)
