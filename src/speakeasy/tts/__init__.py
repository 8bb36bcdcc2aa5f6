"""TTS (Text-to-Speech) package for speakeasy.

This package holds the speech queue, fallback orchestration and the error
types shared by providers and the cache.
"""

from .errors import (
    AllProvidersFailedError,
    CacheError,
    ConfigurationError,
    PlatformError,
    ProviderError,
    TTSAPIError,
    TTSAuthError,
    TTSError,
)
from .models import Priority, RequestState, SpeakResult, SpeechOptions, SpeechRequest
from .text import clean_text_for_speech

__all__ = [
    "AllProvidersFailedError",
    "CacheError",
    "ConfigurationError",
    "PlatformError",
    "Priority",
    "ProviderError",
    "RequestState",
    "SpeakResult",
    "SpeechOptions",
    "SpeechRequest",
    "TTSAPIError",
    "TTSAuthError",
    "TTSError",
    "clean_text_for_speech",
]
