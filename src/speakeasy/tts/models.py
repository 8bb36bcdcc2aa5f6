"""Speech request data models with validation."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Priority(str, Enum):
    """Queue priority for a speech request."""

    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class RequestState(str, Enum):
    """Lifecycle states a request passes through while being spoken."""

    QUEUED = "queued"
    VALIDATING = "validating"
    FALLBACK_NEXT = "fallback_next"
    CACHE_CHECK = "cache_check"
    HIT = "hit"
    MISS = "miss"
    SYNTHESIZING = "synthesizing"
    CACHE_PERSIST = "cache_persist"
    PLAYING = "playing"
    ALL_PROVIDERS_FAILED = "all_providers_failed"
    DONE = "done"


@dataclass(frozen=True)
class SpeechOptions:
    """Per-call options for SpeechOrchestrator.speak().

    Args:
        priority: "high" jumps ahead of waiting requests, others queue FIFO
        interrupt: Stop whatever is playing right now before queueing
        cleanup: Remove temporary audio files after playback
        silent: Synthesize (and cache) without playing
    """

    priority: Priority = Priority.NORMAL
    interrupt: bool = False
    cleanup: bool = True
    silent: bool = False

    def __post_init__(self) -> None:
        """Coerce priority strings into Priority."""
        if not isinstance(self.priority, Priority):
            try:
                object.__setattr__(self, "priority", Priority(self.priority))
            except ValueError:
                raise ValueError(
                    f"priority must be one of high, normal, low, got {self.priority!r}"
                ) from None


@dataclass
class SpeechRequest:
    """A normalized request waiting in, or taken from, the speech queue."""

    text: str
    priority: Priority = Priority.NORMAL
    interrupt: bool = False
    cleanup: bool = True
    silent: bool = False
    state: RequestState = RequestState.QUEUED
    timestamp: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    result: "SpeakResult | None" = field(default=None, repr=False)
    error: Exception | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        """Validate request text."""
        if not self.text or not self.text.strip():
            raise ValueError("Text cannot be empty")

    @classmethod
    def from_options(cls, text: str, options: SpeechOptions) -> "SpeechRequest":
        return cls(
            text=text,
            priority=options.priority,
            interrupt=options.interrupt,
            cleanup=options.cleanup,
            silent=options.silent,
        )


@dataclass(frozen=True)
class SpeakResult:
    """Outcome of speaking one request."""

    provider: str
    cached: bool
    played: bool
    audio_path: str | None = None
