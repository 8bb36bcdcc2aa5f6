"""Speech orchestrator for speakeasy.

Queues speech requests, walks the provider fallback chain, consults the
audio cache and sequences playback so only one request speaks at a time.
"""

import asyncio
import logging
import tempfile
import time
from collections import deque
from pathlib import Path
from typing import Any

from ..audio.player import AudioPlayer
from ..cache.manager import CacheStore, generate_fingerprint
from ..cache.models import CacheStats, RequestContext, SynthesisMetadata
from ..config import OrchestratorConfig, load_config
from ..history import NotificationHistory
from ..hud import HUDNotifier
from ..providers import ProviderRegistry
from ..providers.base import (
    CacheableProvider,
    DirectPlayProvider,
    ProviderId,
    TTSProvider,
)
from .errors import (
    AllProvidersFailedError,
    CacheError,
    ConfigurationError,
    PlatformError,
    ProviderError,
    TTSError,
)
from .models import Priority, RequestState, SpeakResult, SpeechOptions, SpeechRequest
from .text import clean_text_for_speech

logger = logging.getLogger(__name__)

# Failures that move the fallback walk on to the next provider
FALLBACK_ERRORS = (TTSError, RuntimeError, OSError)


class SpeechOrchestrator:
    """Single-consumer speech queue with provider fallback and caching.

    Example:
        orchestrator = SpeechOrchestrator()
        await orchestrator.speak("Build finished")
        await orchestrator.speak("Deploy failed", SpeechOptions(priority="high"))

    Requests are spoken strictly one at a time. High priority requests go
    ahead of every waiting normal or low request but never cut off the one
    playing, unless the new request asks to interrupt.
    """

    def __init__(
        self,
        config: OrchestratorConfig | None = None,
        cache: CacheStore | None = None,
        player: AudioPlayer | None = None,
        providers: dict[ProviderId, TTSProvider] | None = None,
        notifier: HUDNotifier | None = None,
        history: NotificationHistory | None = None,
        source: str = "library",
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Resolved configuration (defaults to load_config())
            cache: Audio cache. Built from config when omitted and the cache
                is enabled; an unusable cache directory disables caching.
            player: Audio player, created on first playback when omitted
            providers: Provider instances by id (defaults to the registry)
            notifier: HUD notifier (defaults to the configured pipe)
            history: Where spoken requests are recorded, if anywhere
            source: Label stored with cache entries ("cli", "library", ...)
        """
        self.config = config or load_config()
        self._own_providers = providers is None
        self.providers = (
            providers if providers is not None else ProviderRegistry.create_all(self.config)
        )
        self.cache = cache if cache is not None else self._create_cache()
        self._player = player
        self.notifier = notifier or HUDNotifier(
            self.config.hud.pipe_path, enabled=self.config.hud.enabled
        )
        self.history = history
        self.source = source

        self._high: deque[SpeechRequest] = deque()
        self._normal: deque[SpeechRequest] = deque()
        self._current: SpeechRequest | None = None
        self._draining = False

        logger.debug(
            f"SpeechOrchestrator initialized (provider={self.config.provider.value}, "
            f"cache={'on' if self.cache else 'off'})"
        )

    def _create_cache(self) -> CacheStore | None:
        if not self.config.cache.enabled:
            return None
        try:
            return CacheStore(
                cache_dir=self.config.cache.dir,
                ttl=self.config.cache.ttl,
                max_size=self.config.cache.max_size,
            )
        except CacheError as e:
            logger.warning(f"Audio cache unavailable, continuing without it: {e}")
            return None

    @property
    def player(self) -> AudioPlayer:
        if self._player is None:
            self._player = AudioPlayer(volume=self.config.volume)
        return self._player

    @property
    def is_playing(self) -> bool:
        """True while a request is being spoken."""
        return self._current is not None

    def reload_config(self) -> OrchestratorConfig:
        """Re-read configuration and use it for subsequent requests."""
        self.config = self.config.reload()
        if self._own_providers:
            self.providers = ProviderRegistry.create_all(self.config)
        return self.config

    # === QUEUE ===

    def enqueue(self, text: str, options: SpeechOptions | None = None) -> SpeechRequest:
        """Clean text and add a request to the queue without draining it.

        Raises:
            ValueError: If nothing speakable is left after cleaning
        """
        options = options or SpeechOptions()
        request = SpeechRequest.from_options(clean_text_for_speech(text), options)

        if request.interrupt and self.is_playing:
            logger.debug("Interrupting current speech")
            self.stop_speaking()

        if request.priority is Priority.HIGH:
            self._high.append(request)
        else:
            self._normal.append(request)

        logger.debug(
            f"Queued request {request.id} ({request.priority.value}), "
            f"{len(self._high) + len(self._normal)} waiting"
        )
        return request

    async def speak(self, text: str, options: SpeechOptions | None = None) -> SpeechRequest:
        """Queue text and, if nothing else is draining the queue, speak it.

        When another call is already draining, this returns right after
        enqueueing and the request is spoken by that call.

        Raises:
            ValueError: If nothing speakable is left after cleaning
        """
        request = self.enqueue(text, options)
        if not self._draining:
            await self.process_queue()
        return request

    async def save(self, text: str, output: str | Path) -> SpeakResult:
        """Synthesize text to a file instead of playing it, bypassing the queue.

        Raises:
            ValueError: If nothing speakable is left after cleaning
        """
        request = SpeechRequest(text=clean_text_for_speech(text))
        return await self.speak_text(request.text, output=output, request=request)

    def _next_request(self) -> SpeechRequest | None:
        if self._high:
            return self._high.popleft()
        if self._normal:
            return self._normal.popleft()
        return None

    async def process_queue(self) -> None:
        """Speak queued requests serially until the queue is empty.

        A failing request is logged and recorded on the request; later
        requests still run.
        """
        if self._draining:
            return

        self._draining = True
        try:
            while (request := self._next_request()) is not None:
                self._current = request
                try:
                    request.result = await self.speak_text(
                        request.text, silent=request.silent, request=request
                    )
                except Exception as e:
                    logger.error(f"Error processing speech request {request.id}: {e}")
                    request.error = e
                finally:
                    request.state = RequestState.DONE
                    self._current = None
        finally:
            self._draining = False

    def clear_queue(self) -> int:
        """Drop every waiting request. Returns how many were dropped."""
        dropped = len(self._high) + len(self._normal)
        self._high.clear()
        self._normal.clear()
        return dropped

    def stop_speaking(self) -> None:
        """Stop current playback, best-effort. The queue is kept."""
        if self._player is not None:
            self._player.stop()
        for provider in self.providers.values():
            if isinstance(provider, DirectPlayProvider):
                provider.stop()

    def queue_status(self) -> dict[str, Any]:
        """Return current queue status information."""
        return {
            "queue_size": len(self._high) + len(self._normal),
            "current": self._format_request(self._current) if self._current else None,
            "waiting": [
                self._format_request(request)
                for request in (*self._high, *self._normal)
            ],
        }

    def _format_request(self, request: SpeechRequest) -> dict[str, Any]:
        text = request.text
        truncated = text[:50] + "..." if len(text) > 50 else text
        return {
            "id": request.id,
            "text": truncated,
            "priority": request.priority.value,
            "state": request.state.value,
            "timestamp": request.timestamp.isoformat(),
        }

    # === FALLBACK CHAIN ===

    def _provider_chain(self, requested: ProviderId) -> list[ProviderId]:
        order = list(self.config.fallback_order)
        if requested in order:
            return order[order.index(requested):]
        return [requested, *order]

    async def speak_text(
        self,
        text: str,
        *,
        provider: ProviderId | str | None = None,
        output: str | Path | None = None,
        silent: bool = False,
        request: SpeechRequest | None = None,
    ) -> SpeakResult:
        """Speak one piece of text immediately, bypassing the queue.

        Tries the requested provider, then each later provider in the
        fallback order, then the system voice as a last resort.

        Args:
            text: Text to speak (already cleaned)
            provider: Provider to try first (defaults to config.provider)
            output: Save audio to this path instead of playing it
            silent: Synthesize and cache without playing
            request: Queue request whose state should be tracked

        Returns:
            Which provider spoke and whether the cache was used

        Raises:
            ConfigurationError: If the requested provider is not configured
                and strict validation is enabled
            PlatformError: If the final system voice fallback also failed
            AllProvidersFailedError: If no system voice is available to
                fall back to
        """
        request = request or SpeechRequest(text=text)
        requested = ProviderId(provider or self.config.provider)
        attempted: list[str] = []
        last_error: Exception | None = None

        for pid in self._provider_chain(requested):
            adapter = self.providers.get(pid)
            if adapter is None:
                continue

            request.state = RequestState.VALIDATING
            if not adapter.validate_config():
                error = ConfigurationError(f"Provider '{pid.value}' is not configured")
                if pid is requested and pid is not ProviderId.SYSTEM:
                    if self.config.strict_validation:
                        raise error
                    logger.error(f"{error}, falling back to the next provider")
                else:
                    logger.warning(f"Skipping provider '{pid.value}': not configured")
                last_error = error
                request.state = RequestState.FALLBACK_NEXT
                continue

            attempted.append(pid.value)
            try:
                return await self._speak_with(adapter, text, request, output, silent)
            except FALLBACK_ERRORS as e:
                logger.warning(f"Provider '{pid.value}' failed: {e}")
                last_error = e
                request.state = RequestState.FALLBACK_NEXT

        request.state = RequestState.ALL_PROVIDERS_FAILED
        failure = AllProvidersFailedError(attempted, last_error)
        logger.error(str(failure))

        system = self.providers.get(ProviderId.SYSTEM)
        if system is None:
            raise failure
        if ProviderId.SYSTEM.value in attempted:
            raise PlatformError(
                f"System voice unavailable, confirm OS support. {failure}", last_error
            ) from failure

        logger.info("Falling back to the system voice")
        try:
            return await self._speak_with(system, text, request, output, silent)
        except FALLBACK_ERRORS as e:
            raise PlatformError(
                f"System voice unavailable, confirm OS support: {e}", e
            ) from failure

    async def _speak_with(
        self,
        adapter: TTSProvider,
        text: str,
        request: SpeechRequest,
        output: str | Path | None,
        silent: bool,
    ) -> SpeakResult:
        rate = self.config.rate

        if isinstance(adapter, DirectPlayProvider):
            if output:
                audio = await adapter.render_audio(text, adapter.voice, rate)
                saved = self.player.save_to_file(audio, output)
                return SpeakResult(adapter.name, cached=False, played=False, audio_path=str(saved))

            request.state = RequestState.PLAYING
            self._announce(text, adapter.name, cached=False)
            if not silent:
                await adapter.speak(text, adapter.voice, rate)
            return SpeakResult(adapter.name, cached=False, played=not silent)

        if isinstance(adapter, CacheableProvider):
            return await self._speak_cacheable(adapter, text, request, output, silent)

        raise TypeError(f"Unknown provider capability: {type(adapter).__name__}")

    async def _speak_cacheable(
        self,
        adapter: CacheableProvider,
        text: str,
        request: SpeechRequest,
        output: str | Path | None,
        silent: bool,
    ) -> SpeakResult:
        rate = self.config.rate
        voice = adapter.voice

        # === CACHE LOOKUP PHASE ===
        request.state = RequestState.CACHE_CHECK
        fingerprint = generate_fingerprint(text, adapter.name, voice, rate)
        entry = None
        if self.cache is not None:
            entry = await asyncio.to_thread(self.cache.get, fingerprint)

        if entry is not None:
            request.state = RequestState.HIT
            logger.debug(f"Cache hit for '{text[:50]}' via {adapter.name}")
            try:
                return await self._deliver(
                    adapter.name, entry.audio_file_path, None, text, request, output, silent,
                    cached=True,
                )
            except FileNotFoundError:
                # Evicted by another process after the lookup
                logger.warning(
                    f"Cached audio vanished before playback, re-synthesizing: "
                    f"{entry.audio_file_path}"
                )

        # === SYNTHESIS PHASE ===
        request.state = RequestState.MISS
        logger.debug(f"Cache miss for '{text[:50]}' via {adapter.name}")
        request.state = RequestState.SYNTHESIZING
        started = time.monotonic()
        audio = await adapter.generate_audio(text, voice, rate)
        if not audio:
            raise ProviderError(f"No audio data received from {adapter.name}")
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.debug(f"{adapter.name} synthesized {len(audio)} bytes in {duration_ms}ms")

        # === CACHE PERSIST PHASE ===
        request.state = RequestState.CACHE_PERSIST
        audio_path = None
        if self.cache is not None:
            metadata = SynthesisMetadata(text, adapter.name, voice, rate, adapter.model)
            context = RequestContext.capture(self.source, duration_ms)
            try:
                entry = await asyncio.to_thread(
                    self.cache.set, fingerprint, metadata, audio, context
                )
                audio_path = entry.audio_file_path
            except CacheError as e:
                logger.warning(f"Failed to cache audio, playing without caching: {e}")

        return await self._deliver(
            adapter.name, audio_path, audio, text, request, output, silent, cached=False
        )

    async def _deliver(
        self,
        provider: str,
        audio_path: Path | None,
        audio: bytes | None,
        text: str,
        request: SpeechRequest,
        output: str | Path | None,
        silent: bool,
        cached: bool,
    ) -> SpeakResult:
        """Save, skip or play audio that is either cached on disk or in memory."""
        if output:
            data = audio if audio is not None else audio_path.read_bytes()
            saved = self.player.save_to_file(data, output)
            return SpeakResult(provider, cached=cached, played=False, audio_path=str(saved))

        if silent:
            return SpeakResult(
                provider,
                cached=cached,
                played=False,
                audio_path=str(audio_path) if audio_path else None,
            )

        request.state = RequestState.PLAYING
        self._announce(text, provider, cached)

        if audio_path is not None:
            await self.player.play_file_async(audio_path)
            return SpeakResult(provider, cached=cached, played=True, audio_path=str(audio_path))

        # No cache: play from a temp file
        suffix = ".wav" if audio[:4] == b"RIFF" else ".mp3"
        self.config.temp_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            dir=self.config.temp_dir, prefix="speakeasy-", suffix=suffix, delete=False
        ) as tmp:
            tmp.write(audio)
            temp_path = Path(tmp.name)
        try:
            await self.player.play_file_async(temp_path)
        finally:
            if request.cleanup:
                temp_path.unlink(missing_ok=True)
        return SpeakResult(
            provider,
            cached=False,
            played=True,
            audio_path=None if request.cleanup else str(temp_path),
        )

    def _announce(self, text: str, provider: str, cached: bool) -> None:
        self.notifier.notify(text, provider, cached)
        if self.history is not None:
            self.history.add(text, provider, cached)

    # === CACHE ADMINISTRATION ===

    def get_cache_stats(self) -> CacheStats | None:
        """Cache statistics, or None when caching is disabled."""
        if self.cache is None:
            return None
        return self.cache.get_stats()

    def clear_cache(self) -> None:
        if self.cache is not None:
            self.cache.clear()

    def cleanup_cache(self, max_age_ms: int | None = None) -> int:
        """Remove entries older than max_age_ms (default 7 days)."""
        if self.cache is None:
            return 0
        return self.cache.cleanup(max_age_ms)
