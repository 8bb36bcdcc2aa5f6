"""Pytest configuration and fixtures for speakeasy tests."""

import asyncio
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from speakeasy.config import ENV_VARS, OrchestratorConfig, load_config
from speakeasy.providers.base import (
    CacheableProvider,
    DirectPlayProvider,
    ProviderId,
)
from speakeasy.tts.errors import PlatformError, ProviderError

VALID_KEY = "sk-test-0123456789abcdef"


@pytest.fixture(autouse=True)
def isolate_user_dirs(monkeypatch, tmp_path: Path) -> None:
    """Point XDG dirs at a temp location and drop real credentials."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("SPEAKEASY_SESSION_ID", raising=False)


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., OrchestratorConfig]:
    """Build a config that ignores the real environment and config file."""

    def _make(**sections) -> OrchestratorConfig:
        overrides = {
            "cache": {"dir": str(tmp_path / "cache")},
            "hud": {"enabled": False},
            "global": {"temp_dir": str(tmp_path / "tmp")},
        }
        for section, values in sections.items():
            overrides.setdefault(section, {}).update(values)
        return load_config(overrides, path=tmp_path / "missing.toml", environ={})

    return _make


class FakeCacheableProvider(CacheableProvider):
    """Cacheable provider that returns canned audio and records calls."""

    def __init__(
        self,
        provider_id: ProviderId,
        configured: bool = True,
        audio: bytes = b"ID3-fake-mp3-audio",
        error: Exception | None = None,
        voice: str = "test-voice",
    ) -> None:
        super().__init__(voice=voice, model="test-model")
        self.provider_id = provider_id
        self.configured = configured
        self.audio = audio
        self.error = error
        self.calls: list[tuple[str, str, int]] = []

    def validate_config(self) -> bool:
        return self.configured

    async def generate_audio(self, text: str, voice: str, rate: int) -> bytes:
        self.calls.append((text, voice, rate))
        if self.error is not None:
            raise self.error
        return self.audio


class FakeSystemProvider(DirectPlayProvider):
    """Direct-play provider that records what it was asked to say."""

    provider_id = ProviderId.SYSTEM

    def __init__(self, fail: bool = False) -> None:
        super().__init__(voice="Samantha")
        self.fail = fail
        self.spoken: list[str] = []
        self.stop_calls = 0

    def validate_config(self) -> bool:
        return True

    async def speak(self, text: str, voice: str, rate: int) -> None:
        if self.fail:
            raise PlatformError("say: command not found")
        self.spoken.append(text)

    def stop(self) -> None:
        self.stop_calls += 1


class FakePlayer:
    """Audio player stand-in that records playback instead of making sound."""

    def __init__(self) -> None:
        self.played: list[Path] = []
        self.played_bytes: list[bytes] = []
        self.stop_calls = 0
        self.gate: asyncio.Event | None = None
        self.started = asyncio.Event()

    async def play_file_async(self, path: str | Path) -> None:
        path = Path(path)
        self.played.append(path)
        self.played_bytes.append(path.read_bytes())
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()

    def stop(self) -> None:
        self.stop_calls += 1
        if self.gate is not None:
            self.gate.set()

    def save_to_file(self, audio_data: bytes, filepath: str | Path) -> Path:
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        filepath.write_bytes(audio_data)
        return filepath


@pytest.fixture
def fake_player() -> FakePlayer:
    return FakePlayer()


@pytest.fixture
def failing_provider_error() -> ProviderError:
    return ProviderError("Service unavailable", 503)
