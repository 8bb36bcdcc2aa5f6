"""High-level API for speakeasy library usage."""

from pathlib import Path
from typing import Any

from .config import OrchestratorConfig, load_config
from .history import NotificationHistory
from .providers.base import ProviderId
from .tts.models import SpeakResult, SpeechOptions
from .tts.orchestrator import SpeechOrchestrator


def resolve_config(
    provider: str | None = None,
    voice: str | None = None,
    rate: int | None = None,
    cache: bool = True,
    config_path: Path | None = None,
) -> OrchestratorConfig:
    """Load configuration with per-call overrides applied on top.

    Raises:
        ConfigurationError: If the config or an override is invalid
    """
    overrides: dict[str, Any] = {"defaults": {"provider": provider, "rate": rate}}
    if not cache:
        overrides["cache"] = {"enabled": False}

    config = load_config(overrides, path=config_path)
    if voice:
        # ElevenLabs names its voice setting voice_id in the config file
        key = "voice_id" if config.provider is ProviderId.ELEVENLABS else "voice"
        overrides["providers"] = {config.provider.value: {key: voice}}
        config = load_config(overrides, path=config_path)
    return config


async def speak(
    text: str,
    provider: str | None = None,
    voice: str | None = None,
    rate: int | None = None,
    output: str | Path | None = None,
    cache: bool = True,
    priority: str = "normal",
    interrupt: bool = False,
    history: bool = True,
    config_path: Path | None = None,
) -> SpeakResult:
    """Speak text once, with provider fallback and caching.

    Args:
        text: Text to speak
        provider: Provider to try first (from config if omitted)
        voice: Voice for that provider (from config if omitted)
        rate: Words per minute (from config if omitted)
        output: Save audio to this path instead of playing it
        cache: Whether to use the audio cache
        priority: "high", "normal" or "low"
        interrupt: Stop whatever this process is already speaking
        history: Record the request in the notification history
        config_path: Config file to read instead of the default

    Returns:
        Which provider spoke and whether audio came from the cache

    Raises:
        ValueError: If text is empty
        ConfigurationError: If the configuration is invalid
        PlatformError: If every provider, including the system voice, failed
    """
    if not text or not text.strip():
        raise ValueError("Text cannot be empty")

    config = resolve_config(provider, voice, rate, cache, config_path)
    orchestrator = SpeechOrchestrator(
        config, history=NotificationHistory() if history else None
    )

    if output:
        return await orchestrator.save(text, output)

    request = await orchestrator.speak(
        text, SpeechOptions(priority=priority, interrupt=interrupt)
    )
    if request.error is not None:
        raise request.error
    return request.result


async def say(text: str, provider: str | None = None) -> SpeakResult:
    """Shortest way to speak: speak(text) with an optional provider."""
    return await speak(text, provider=provider)
