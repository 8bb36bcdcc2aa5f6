"""Audio player for cross-platform audio playback using pygame."""

# ruff: noqa: E402
import os

# Suppress pygame's annoying welcome message BEFORE any pygame import
os.environ["PYGAME_HIDE_SUPPORT_PROMPT"] = "1"

import warnings

# Suppress pygame's pkg_resources deprecation warning spam
warnings.filterwarnings("ignore", category=UserWarning, module="pygame.pkgdata")

import asyncio
import logging
import threading
from pathlib import Path

import pygame

logger = logging.getLogger(__name__)


class AudioPlayer:
    """Cross-platform audio player using pygame.

    Plays one clip at a time. The mixer is initialized on first playback so
    that creating a player never touches the audio device.
    """

    def __init__(self, volume: float = 0.7) -> None:
        self.volume = volume
        self._stop_requested = threading.Event()

    @property
    def volume(self) -> float:
        return self._volume

    @volume.setter
    def volume(self, value: float) -> None:
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"volume must be between 0.0 and 1.0, got {value}")
        self._volume = value

    def _ensure_mixer(self) -> None:
        """Initialize pygame mixer if needed.

        Raises:
            RuntimeError: If pygame mixer fails to initialize.
        """
        if pygame.mixer.get_init():
            return
        try:
            pygame.mixer.init()
        except pygame.error as e:
            raise RuntimeError(f"Failed to initialize pygame audio mixer: {e}") from e

    def _play_blocking(self, source: str) -> None:
        self._ensure_mixer()
        self._stop_requested.clear()
        try:
            pygame.mixer.music.load(source)
            pygame.mixer.music.set_volume(self._volume)
            pygame.mixer.music.play()

            # Wait for playback to complete or stop()
            clock = pygame.time.Clock()
            while pygame.mixer.music.get_busy() and not self._stop_requested.is_set():
                clock.tick(10)
        except pygame.error as e:
            raise RuntimeError(f"Failed to play audio: {e}") from e

    async def play_file_async(self, path: str | Path) -> None:
        """Play an audio file through system speakers.

        Returns when playback finishes or stop() is called.

        Raises:
            FileNotFoundError: If the file does not exist.
            RuntimeError: If audio playback fails.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Audio file not found: {path}")

        # Run pygame operations in thread to avoid blocking event loop
        await asyncio.to_thread(self._play_blocking, str(path))

    def stop(self) -> None:
        """Stop current playback. Safe to call when nothing is playing."""
        self._stop_requested.set()
        if not pygame.mixer.get_init():
            return
        try:
            pygame.mixer.music.stop()
        except pygame.error as e:
            logger.debug(f"Ignoring error while stopping playback: {e}")

    def save_to_file(self, audio_data: bytes, filepath: str | Path) -> Path:
        """Save audio bytes to a file.

        Args:
            audio_data: Audio data to save.
            filepath: Path where the audio file should be saved.

        Returns:
            The path written.

        Raises:
            ValueError: If no audio data provided.
            OSError: If file cannot be written.
        """
        if not audio_data:
            raise ValueError("No audio data provided")

        # Convert to Path object if string
        filepath = Path(filepath)

        try:
            # Create parent directories if they don't exist
            filepath.parent.mkdir(parents=True, exist_ok=True)
            filepath.write_bytes(audio_data)
        except OSError as e:
            raise OSError(f"Failed to save audio to {filepath}: {e}") from e

        return filepath
