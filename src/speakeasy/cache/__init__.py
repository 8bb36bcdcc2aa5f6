"""Cache management for speakeasy TTS system."""

from pathlib import Path

from ..paths import get_cache_home


def get_cache_dir() -> Path:
    """Get or create the speakeasy cache directory.

    Creates ~/.cache/speakeasy/ and ~/.cache/speakeasy/audio/ directories
    if they don't exist.

    Returns:
        Path to the cache directory
    """
    cache_dir = get_cache_home()
    cache_dir.mkdir(parents=True, exist_ok=True)

    # Create audio subdirectory for audio files
    audio_dir = cache_dir / "audio"
    audio_dir.mkdir(exist_ok=True)

    return cache_dir
