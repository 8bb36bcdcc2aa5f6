"""Data models for cache storage."""

import getpass
import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class SynthesisMetadata:
    """What was synthesized: the inputs that produced one audio file.

    Attributes:
        text: Original (normalized) input text
        provider: Provider that produced the audio
        voice: Voice identifier used for synthesis
        rate: Speaking rate in words per minute
        model: Provider model identifier, if any
    """

    text: str
    provider: str
    voice: str
    rate: int
    model: str | None = None


@dataclass(frozen=True)
class RequestContext:
    """Where a cached request came from, stored alongside the audio."""

    source: str = "library"
    session_id: str | None = None
    working_directory: str | None = None
    user: str | None = None
    duration_ms: int | None = None
    success: bool = True
    error_message: str | None = None

    @classmethod
    def capture(
        cls, source: str = "library", duration_ms: int | None = None
    ) -> "RequestContext":
        """Build a context describing the current process."""
        try:
            user = getpass.getuser()
        except (KeyError, OSError):
            user = None
        try:
            cwd = os.getcwd()
        except OSError:
            cwd = None
        return cls(
            source=source,
            session_id=os.getenv("SPEAKEASY_SESSION_ID"),
            working_directory=cwd,
            user=user,
            duration_ms=duration_ms,
        )


@dataclass(frozen=True)
class CacheEntry:
    """Cache entry containing TTS metadata and audio file reference.

    Entries are immutable; replacing one means writing a new entry under the
    same fingerprint.

    Attributes:
        fingerprint: Deterministic key derived from text/provider/voice/rate
        audio_file_path: Path to the cached audio file owned by this entry
        provider: TTS provider name (e.g., "openai", "elevenlabs")
        voice: Voice identifier used for synthesis
        rate_wpm: Speaking rate in words per minute
        original_text: Text that was synthesized
        model: Provider model identifier
        file_size_bytes: Size of the audio file
        created_at_ms: Creation time in milliseconds since the epoch
    """

    fingerprint: str
    audio_file_path: Path
    provider: str
    voice: str
    rate_wpm: int
    original_text: str
    file_size_bytes: int
    created_at_ms: int
    model: str | None = None
    duration_ms: int | None = None
    success: bool = True
    error_message: str | None = None
    source: str = "library"
    session_id: str | None = None
    working_directory: str | None = None
    user: str | None = None


@dataclass
class CacheStats:
    """Cache statistics recomputed on demand."""

    total_entries: int = 0
    total_size: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    hit_rate: float = 0.0
    avg_file_size: float = 0.0
    providers: dict[str, int] = field(default_factory=dict)
    models: dict[str, int] = field(default_factory=dict)
    sources: dict[str, int] = field(default_factory=dict)
    earliest_ms: int | None = None
    latest_ms: int | None = None
    cache_dir: Path | None = None
