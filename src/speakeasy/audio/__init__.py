"""Audio playback package for speakeasy.

This package provides cross-platform audio playback functionality using pygame.
"""

from .player import AudioPlayer

__all__ = ["AudioPlayer"]
