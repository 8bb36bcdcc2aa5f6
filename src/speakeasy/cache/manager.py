"""Audio cache manager for TTS results.

Maps each (text, provider, voice, rate) request to a deterministic
fingerprint, stores the synthesized audio under that fingerprint, and keeps
the store bounded by age (TTL checked on read) and by total size (oldest
entries evicted first).
"""

import hashlib
import logging
import os
import sqlite3
import tempfile
import time
from collections import Counter
from collections.abc import Callable
from pathlib import Path

from ..tts.errors import CacheError
from . import get_cache_dir
from .models import CacheEntry, CacheStats, RequestContext, SynthesisMetadata
from .storage import CacheStorage
from .units import parse_size, parse_ttl

logger = logging.getLogger(__name__)

FINGERPRINT_LENGTH = 32  # hex characters, 128 bits
DEFAULT_CLEANUP_AGE_MS = 7 * 24 * 60 * 60 * 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_fingerprint(text: str, provider: str, voice: str, rate: int | float) -> str:
    """Generate the cache key for a speech request.

    Text is trimmed and lowercased so trivially different spellings share one
    entry. The result depends only on the four inputs, never on the machine
    or process.

    Args:
        text: Text to be spoken
        provider: Provider name
        voice: Voice identifier
        rate: Speaking rate in words per minute

    Returns:
        32-character hex digest

    Raises:
        ValueError: If any input is None
    """
    if text is None or provider is None or voice is None or rate is None:
        raise ValueError(
            "All parameters (text, provider, voice, rate) must be non-None"
        )

    normalized_text = text.strip().lower()
    # 180 and 180.0 must agree
    rate_str = format(float(rate), "g")
    key_data = f"{normalized_text}|{provider}|{voice}|{rate_str}"

    return hashlib.sha256(key_data.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def _audio_suffix(audio_bytes: bytes) -> str:
    if audio_bytes[:4] == b"RIFF":
        return ".wav"
    return ".mp3"


class CacheStore:
    """Content-addressable store of synthesized audio.

    Coordinates CacheStorage (SQLite metadata) with the audio files kept in
    ``<cache_dir>/audio``. Metadata writes are SQLite transactions and audio
    files are written to a temp file then renamed, so several processes can
    share one cache directory.

    Example:
        cache = CacheStore(ttl="7d", max_size="100mb")
        key = cache.fingerprint("Deploy complete", "openai", "nova", 180)

        entry = cache.get(key)
        if entry is None:
            audio = await provider.generate_audio("Deploy complete", "nova", 180)
            entry = cache.set(
                key,
                SynthesisMetadata("Deploy complete", "openai", "nova", 180),
                audio,
            )
        play(entry.audio_file_path)
    """

    def __init__(
        self,
        cache_dir: Path | None = None,
        ttl: str | int = "7d",
        max_size: str | int | None = None,
        clock: Callable[[], int] | None = None,
    ):
        """Initialize the cache store.

        Args:
            cache_dir: Directory for cache storage (defaults to ~/.cache/speakeasy)
            ttl: Entry lifetime, e.g. "7d", "1h", or milliseconds
            max_size: Byte budget, e.g. "100mb", or bytes. None means unbounded
            clock: Returns the current time in milliseconds (for tests)

        Raises:
            ValueError: If ttl or max_size cannot be parsed
            CacheError: If the cache directory or database cannot be created
        """
        self.ttl_ms = parse_ttl(ttl)
        self.max_size = parse_size(max_size) if max_size else None
        self._clock = clock or _now_ms

        # Cumulative for the lifetime of this process
        self.hits = 0
        self.misses = 0

        try:
            self.cache_dir = Path(cache_dir) if cache_dir else get_cache_dir()
            self.cache_dir.mkdir(parents=True, exist_ok=True)

            self.audio_dir = self.cache_dir / "audio"
            self.audio_dir.mkdir(exist_ok=True)

            self.storage = CacheStorage(self.cache_dir)
        except (OSError, sqlite3.Error) as e:
            raise CacheError(f"Failed to initialize audio cache: {e}", e) from e

        logger.debug(
            f"CacheStore initialized at {self.cache_dir} "
            f"(ttl={self.ttl_ms}ms, max_size={self.max_size})"
        )

    fingerprint = staticmethod(generate_fingerprint)

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.created_at_ms > self.ttl_ms

    def _discard(self, entry: CacheEntry) -> None:
        """Drop a stale entry's row (if unchanged) and then its file."""
        removed = self.storage.delete(entry.fingerprint, entry.created_at_ms)
        if removed is not None:
            removed.audio_file_path.unlink(missing_ok=True)

    def get(self, fingerprint: str) -> CacheEntry | None:
        """Look up a fingerprint, counting the result as a hit or miss.

        Expired entries and entries whose audio file has disappeared are
        dropped and reported as misses. Storage errors are logged and also
        reported as misses.

        Returns:
            The entry on a hit, None on a miss
        """
        try:
            entry = self.storage.get(fingerprint)

            if entry is None:
                logger.debug(f"Cache miss: {fingerprint} not found")
            elif self._is_expired(entry):
                logger.debug(f"Cache miss: {fingerprint} expired")
                self._discard(entry)
                entry = None
            elif not entry.audio_file_path.exists():
                logger.warning(
                    f"Cache corruption: metadata exists but audio file missing: "
                    f"{entry.audio_file_path}"
                )
                self._discard(entry)
                entry = None
        except (OSError, sqlite3.Error) as e:
            logger.error(f"Error during cache lookup: {e}")
            entry = None

        if entry is None:
            self.misses += 1
            return None

        self.hits += 1
        logger.debug(f"Cache hit: {fingerprint} -> {entry.audio_file_path}")
        return entry

    def set(
        self,
        fingerprint: str,
        metadata: SynthesisMetadata,
        audio_bytes: bytes,
        context: RequestContext | None = None,
    ) -> CacheEntry:
        """Store audio under a fingerprint and enforce the size budget.

        Args:
            fingerprint: Key from fingerprint()
            metadata: Inputs that produced the audio
            audio_bytes: Audio data to cache
            context: Optional request provenance

        Returns:
            The stored entry

        Raises:
            ValueError: If audio_bytes is empty
            CacheError: If the file or metadata cannot be written
        """
        if not audio_bytes:
            raise ValueError("No audio data provided")

        context = context or RequestContext()
        audio_path = self.audio_dir / f"{fingerprint}{_audio_suffix(audio_bytes)}"
        tmp_path: Path | None = None

        try:
            previous = self.storage.get(fingerprint)

            with tempfile.NamedTemporaryFile(
                dir=self.audio_dir, prefix=f".{fingerprint}.", suffix=".tmp", delete=False
            ) as tmp:
                tmp.write(audio_bytes)
                tmp_path = Path(tmp.name)
            os.replace(tmp_path, audio_path)
            tmp_path = None

            entry = CacheEntry(
                fingerprint=fingerprint,
                audio_file_path=audio_path,
                provider=metadata.provider,
                voice=metadata.voice,
                rate_wpm=int(metadata.rate),
                original_text=metadata.text,
                model=metadata.model,
                file_size_bytes=len(audio_bytes),
                created_at_ms=self._clock(),
                duration_ms=context.duration_ms,
                success=context.success,
                error_message=context.error_message,
                source=context.source,
                session_id=context.session_id,
                working_directory=context.working_directory,
                user=context.user,
            )
            self.storage.save(entry)

            if previous is not None and previous.audio_file_path != audio_path:
                previous.audio_file_path.unlink(missing_ok=True)

            logger.debug(
                f"Cached {len(audio_bytes)} bytes for '{metadata.text[:50]}' "
                f"({metadata.provider}/{metadata.voice}) as {audio_path.name}"
            )

            if self.max_size is not None:
                self._evict(keep=entry)

            return entry

        except (OSError, sqlite3.Error) as e:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise CacheError(f"Failed to cache audio: {e}", e) from e

    def _evict(self, keep: CacheEntry) -> None:
        evicted = self.storage.evict_to_budget(self.max_size, keep=keep.fingerprint)
        for entry in evicted:
            if entry.audio_file_path != keep.audio_file_path:
                entry.audio_file_path.unlink(missing_ok=True)
        if evicted:
            logger.info(
                f"Evicted {len(evicted)} cache entries to stay under "
                f"{self.max_size} bytes"
            )

    def delete(self, fingerprint: str) -> bool:
        """Remove one entry and its audio file.

        Returns:
            True if an entry was removed
        """
        try:
            removed = self.storage.delete(fingerprint)
            if removed is None:
                return False
            removed.audio_file_path.unlink(missing_ok=True)
            return True
        except (OSError, sqlite3.Error) as e:
            raise CacheError(f"Failed to delete cache entry: {e}", e) from e

    def clear(self) -> None:
        """Remove every audio file and all metadata."""
        try:
            self.storage.clear()
            for path in self.audio_dir.iterdir():
                if path.is_file():
                    path.unlink(missing_ok=True)
        except (OSError, sqlite3.Error) as e:
            raise CacheError(f"Failed to clear cache: {e}", e) from e
        logger.info(f"Cleared audio cache at {self.cache_dir}")

    def cleanup(self, max_age_ms: int | None = None) -> int:
        """Delete entries older than max_age_ms regardless of TTL.

        Also removes audio files no entry refers to (including abandoned
        temp files) once they are older than the same cutoff.

        Args:
            max_age_ms: Maximum age to keep, defaults to 7 days

        Returns:
            Number of entries removed
        """
        max_age = DEFAULT_CLEANUP_AGE_MS if max_age_ms is None else max_age_ms
        cutoff = self._clock() - max_age

        try:
            removed = self.storage.delete_older_than(cutoff)
            for entry in removed:
                entry.audio_file_path.unlink(missing_ok=True)

            known = self.storage.fingerprints()
            for path in self.audio_dir.iterdir():
                if not path.is_file():
                    continue
                fingerprint = path.name.lstrip(".").split(".", 1)[0]
                if path.suffix != ".tmp" and fingerprint in known:
                    continue
                if path.stat().st_mtime * 1000 < cutoff:
                    path.unlink(missing_ok=True)
        except (OSError, sqlite3.Error) as e:
            raise CacheError(f"Failed to clean up cache: {e}", e) from e

        if removed:
            logger.info(f"Cache cleanup removed {len(removed)} entries")
        return len(removed)

    def list_entries(self) -> list[CacheEntry]:
        """Every entry, newest first."""
        return self.storage.all_entries()

    def get_recent(self, limit: int) -> list[CacheEntry]:
        """The most recently created entries, newest first."""
        if limit <= 0:
            return []
        return self.storage.recent(limit)

    def find_by_text(self, text: str) -> list[CacheEntry]:
        """Entries whose original text contains `text`, ignoring case."""
        needle = text.casefold()
        return [
            entry
            for entry in self.storage.all_entries()
            if needle in entry.original_text.casefold()
        ]

    def find_by_provider(self, provider: str) -> list[CacheEntry]:
        return self.storage.by_provider(provider)

    def get_stats(self) -> CacheStats:
        """Compute statistics over current entries and lifetime counters."""
        entries = self.storage.all_entries()
        lookups = self.hits + self.misses
        total_size = sum(entry.file_size_bytes for entry in entries)

        stats = CacheStats(
            total_entries=len(entries),
            total_size=total_size,
            cache_hits=self.hits,
            cache_misses=self.misses,
            hit_rate=self.hits / lookups if lookups else 0.0,
            avg_file_size=total_size / len(entries) if entries else 0.0,
            providers=dict(Counter(entry.provider for entry in entries)),
            models=dict(Counter(entry.model or "unknown" for entry in entries)),
            sources=dict(Counter(entry.source for entry in entries)),
            cache_dir=self.cache_dir,
        )
        if entries:
            stats.earliest_ms = min(entry.created_at_ms for entry in entries)
            stats.latest_ms = max(entry.created_at_ms for entry in entries)
        return stats
