"""Integration tests for SpeechOrchestrator with a real cache and fake providers."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from speakeasy.history import NotificationHistory
from speakeasy.providers.base import ProviderId
from speakeasy.tts.errors import (
    AllProvidersFailedError,
    ConfigurationError,
    PlatformError,
    ProviderError,
)
from speakeasy.tts.models import RequestState, SpeechOptions
from speakeasy.tts.orchestrator import SpeechOrchestrator

from conftest import FakeCacheableProvider, FakePlayer, FakeSystemProvider


def openai_config(make_config, **sections):
    sections.setdefault("defaults", {})["provider"] = "openai"
    return make_config(**sections)


class TestQueueOrdering:
    """Test priority handling in the speech queue."""

    @pytest.mark.asyncio
    async def test_high_priority_spoken_before_waiting_normal(
        self, make_config, fake_player: FakePlayer
    ) -> None:
        """Test that a high request jumps ahead of queued normal requests."""
        openai = FakeCacheableProvider(ProviderId.OPENAI)
        orchestrator = SpeechOrchestrator(
            openai_config(make_config), player=fake_player, providers={ProviderId.OPENAI: openai}
        )

        orchestrator.enqueue("first normal")
        orchestrator.enqueue("second normal", SpeechOptions(priority="low"))
        urgent = orchestrator.enqueue("urgent", SpeechOptions(priority="high"))

        assert orchestrator.queue_status()["queue_size"] == 3
        await orchestrator.process_queue()

        assert [call[0] for call in openai.calls] == ["urgent", "first normal", "second normal"]
        assert urgent.state is RequestState.DONE
        assert urgent.result.provider == "openai"
        assert orchestrator.queue_status() == {"queue_size": 0, "current": None, "waiting": []}

    @pytest.mark.asyncio
    async def test_failed_request_does_not_stop_queue(
        self, make_config, fake_player: FakePlayer
    ) -> None:
        """Test that later requests still run after one fails."""
        openai = FakeCacheableProvider(ProviderId.OPENAI, error=ProviderError("down", 503))
        orchestrator = SpeechOrchestrator(
            openai_config(make_config), player=fake_player, providers={ProviderId.OPENAI: openai}
        )

        first = orchestrator.enqueue("one")
        second = orchestrator.enqueue("two")
        await orchestrator.process_queue()

        assert isinstance(first.error, AllProvidersFailedError)
        assert isinstance(second.error, AllProvidersFailedError)
        assert len(openai.calls) == 2

    def test_blank_text_rejected(self, make_config, fake_player: FakePlayer) -> None:
        """Test that text with nothing speakable is refused at enqueue."""
        orchestrator = SpeechOrchestrator(make_config(), player=fake_player, providers={})

        with pytest.raises(ValueError, match="Text cannot be empty"):
            orchestrator.enqueue("\U0001f680 ***")

    def test_clear_queue(self, make_config, fake_player: FakePlayer) -> None:
        orchestrator = SpeechOrchestrator(make_config(), player=fake_player, providers={})
        orchestrator.enqueue("a")
        orchestrator.enqueue("b", SpeechOptions(priority="high"))

        status = orchestrator.queue_status()
        assert [item["text"] for item in status["waiting"]] == ["b", "a"]
        assert orchestrator.clear_queue() == 2
        assert orchestrator.queue_status()["queue_size"] == 0


class TestInterrupt:
    """Test stopping the request that is playing."""

    @pytest.mark.asyncio
    async def test_interrupt_stops_playback_and_keeps_queue(
        self, make_config, fake_player: FakePlayer
    ) -> None:
        """Test that an interrupting request stops playback but drops nothing."""
        openai = FakeCacheableProvider(ProviderId.OPENAI)
        system = FakeSystemProvider()
        orchestrator = SpeechOrchestrator(
            openai_config(make_config),
            player=fake_player,
            providers={ProviderId.OPENAI: openai, ProviderId.SYSTEM: system},
        )
        fake_player.gate = asyncio.Event()

        first_task = asyncio.create_task(orchestrator.speak("long announcement"))
        await asyncio.wait_for(fake_player.started.wait(), timeout=5)
        assert orchestrator.is_playing

        # Returns at once; the running drain will speak it
        waiting = await orchestrator.speak("queued meanwhile")
        assert waiting.result is None

        orchestrator.enqueue("stop that", SpeechOptions(interrupt=True))
        assert fake_player.stop_calls == 1
        assert system.stop_calls == 1
        assert orchestrator.queue_status()["queue_size"] == 2

        first = await asyncio.wait_for(first_task, timeout=5)

        assert first.result.played is True
        assert [call[0] for call in openai.calls] == [
            "long announcement",
            "queued meanwhile",
            "stop that",
        ]
        assert waiting.state is RequestState.DONE
        assert not orchestrator.is_playing

    @pytest.mark.asyncio
    async def test_stop_when_idle_is_harmless(self, make_config, fake_player: FakePlayer) -> None:
        orchestrator = SpeechOrchestrator(make_config(), player=fake_player, providers={})

        orchestrator.stop_speaking()

        assert fake_player.stop_calls == 1


class TestFallback:
    """Test the provider fallback walk."""

    @pytest.mark.asyncio
    async def test_falls_through_to_next_provider_in_order(
        self, make_config, fake_player: FakePlayer, failing_provider_error
    ) -> None:
        """Test failed and unconfigured providers are passed over in order."""
        openai = FakeCacheableProvider(ProviderId.OPENAI, error=failing_provider_error)
        elevenlabs = FakeCacheableProvider(ProviderId.ELEVENLABS, configured=False)
        groq = FakeCacheableProvider(ProviderId.GROQ, audio=b"RIFFgroq-wav")
        gemini = FakeCacheableProvider(ProviderId.GEMINI)
        system = FakeSystemProvider()
        orchestrator = SpeechOrchestrator(
            openai_config(make_config),
            player=fake_player,
            providers={
                ProviderId.OPENAI: openai,
                ProviderId.ELEVENLABS: elevenlabs,
                ProviderId.GROQ: groq,
                ProviderId.GEMINI: gemini,
                ProviderId.SYSTEM: system,
            },
        )

        request = await orchestrator.speak("Deploy finished")

        assert request.error is None
        assert request.result.provider == "groq"
        assert len(openai.calls) == 1
        assert elevenlabs.calls == []
        assert gemini.calls == []
        assert system.spoken == []
        assert fake_player.played_bytes == [b"RIFFgroq-wav"]
        assert fake_player.played[0].suffix == ".wav"

    @pytest.mark.asyncio
    async def test_unconfigured_requested_provider_falls_back_to_system(
        self, make_config, fake_player: FakePlayer
    ) -> None:
        """Test a missing key on a high priority request ends in the system voice."""
        openai = FakeCacheableProvider(ProviderId.OPENAI, configured=False)
        system = FakeSystemProvider()
        orchestrator = SpeechOrchestrator(
            openai_config(make_config),
            player=fake_player,
            providers={ProviderId.OPENAI: openai, ProviderId.SYSTEM: system},
        )

        request = await orchestrator.speak("Tests passed", SpeechOptions(priority="high"))

        assert request.error is None
        assert request.result.provider == "system"
        assert system.spoken == ["Tests passed"]
        assert openai.calls == []

    @pytest.mark.asyncio
    async def test_empty_audio_falls_back_to_system(
        self, make_config, fake_player: FakePlayer
    ) -> None:
        """Test that a provider returning no audio is treated as a failure."""
        openai = FakeCacheableProvider(ProviderId.OPENAI, audio=b"")
        system = FakeSystemProvider()
        orchestrator = SpeechOrchestrator(
            openai_config(make_config),
            player=fake_player,
            providers={ProviderId.OPENAI: openai, ProviderId.SYSTEM: system},
        )

        request = await orchestrator.speak("hello there")

        assert request.error is None
        assert request.result.provider == "system"
        assert system.spoken == ["hello there"]
        assert len(openai.calls) == 1
        assert fake_player.played == []
        assert orchestrator.get_cache_stats().total_entries == 0

    @pytest.mark.asyncio
    async def test_strict_validation_raises(self, make_config, fake_player: FakePlayer) -> None:
        """Test that strict validation fails fast on an unconfigured provider."""
        openai = FakeCacheableProvider(ProviderId.OPENAI, configured=False)
        system = FakeSystemProvider()
        orchestrator = SpeechOrchestrator(
            openai_config(make_config, **{"global": {"strict_validation": True}}),
            player=fake_player,
            providers={ProviderId.OPENAI: openai, ProviderId.SYSTEM: system},
        )

        with pytest.raises(ConfigurationError, match="'openai' is not configured"):
            await orchestrator.speak_text("hello")

        request = await orchestrator.speak("hello")
        assert isinstance(request.error, ConfigurationError)
        assert system.spoken == []

    @pytest.mark.asyncio
    async def test_all_providers_failed_without_system_voice(
        self, make_config, fake_player: FakePlayer, failing_provider_error
    ) -> None:
        openai = FakeCacheableProvider(ProviderId.OPENAI, error=failing_provider_error)
        orchestrator = SpeechOrchestrator(
            openai_config(make_config), player=fake_player, providers={ProviderId.OPENAI: openai}
        )

        with pytest.raises(AllProvidersFailedError) as exc_info:
            await orchestrator.speak_text("hello")

        assert exc_info.value.attempted == ["openai"]
        assert exc_info.value.last_error is failing_provider_error
        assert "Service unavailable" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_last_resort_system_failure_is_platform_error(
        self, make_config, fake_player: FakePlayer, failing_provider_error
    ) -> None:
        openai = FakeCacheableProvider(ProviderId.OPENAI, error=failing_provider_error)
        system = FakeSystemProvider(fail=True)
        orchestrator = SpeechOrchestrator(
            openai_config(make_config),
            player=fake_player,
            providers={ProviderId.OPENAI: openai, ProviderId.SYSTEM: system},
        )

        with pytest.raises(PlatformError, match="System voice unavailable"):
            await orchestrator.speak_text("hello")

    @pytest.mark.asyncio
    async def test_system_already_tried_is_platform_error(
        self, make_config, fake_player: FakePlayer, failing_provider_error
    ) -> None:
        """Test that the system voice is not retried when it led the chain."""
        openai = FakeCacheableProvider(ProviderId.OPENAI, error=failing_provider_error)
        system = FakeSystemProvider(fail=True)
        orchestrator = SpeechOrchestrator(
            make_config(),
            player=fake_player,
            providers={ProviderId.OPENAI: openai, ProviderId.SYSTEM: system},
        )

        with pytest.raises(PlatformError, match="confirm OS support"):
            await orchestrator.speak_text("hello")

        assert len(openai.calls) == 1

    @pytest.mark.asyncio
    async def test_explicit_provider_argument(self, make_config, fake_player: FakePlayer) -> None:
        """Test that speak_text can start from a provider other than the default."""
        gemini = FakeCacheableProvider(ProviderId.GEMINI, audio=b"RIFFgemini")
        orchestrator = SpeechOrchestrator(
            make_config(), player=fake_player, providers={ProviderId.GEMINI: gemini}
        )

        result = await orchestrator.speak_text("hello", provider="gemini")

        assert result.provider == "gemini"


class TestCaching:
    """Test cache integration in the speak path."""

    @pytest.mark.asyncio
    async def test_second_request_is_served_from_cache(
        self, make_config, fake_player: FakePlayer
    ) -> None:
        openai = FakeCacheableProvider(ProviderId.OPENAI)
        orchestrator = SpeechOrchestrator(
            openai_config(make_config), player=fake_player, providers={ProviderId.OPENAI: openai}
        )

        first = await orchestrator.speak("Build complete")
        second = await orchestrator.speak("  Build complete  ")

        assert first.result.cached is False
        assert second.result.cached is True
        assert len(openai.calls) == 1
        assert fake_player.played[0] == fake_player.played[1]
        assert fake_player.played[0].parent == orchestrator.cache.audio_dir

        stats = orchestrator.get_cache_stats()
        assert stats.total_entries == 1
        assert stats.cache_hits == 1
        assert stats.cache_misses == 1
        assert stats.sources == {"library": 1}

    @pytest.mark.asyncio
    async def test_rate_change_misses_cache(self, make_config, fake_player: FakePlayer) -> None:
        openai = FakeCacheableProvider(ProviderId.OPENAI)
        slow = SpeechOrchestrator(
            openai_config(make_config, defaults={"rate": 150}),
            player=fake_player,
            providers={ProviderId.OPENAI: openai},
        )
        fast = SpeechOrchestrator(
            openai_config(make_config, defaults={"rate": 250}),
            player=fake_player,
            providers={ProviderId.OPENAI: openai},
        )

        await slow.speak("same text")
        await fast.speak("same text")

        assert [call[2] for call in openai.calls] == [150, 250]

    @pytest.mark.asyncio
    async def test_cache_disabled_plays_temp_file_and_removes_it(
        self, make_config, fake_player: FakePlayer
    ) -> None:
        openai = FakeCacheableProvider(ProviderId.OPENAI)
        config = openai_config(make_config, cache={"enabled": False})
        orchestrator = SpeechOrchestrator(
            config, player=fake_player, providers={ProviderId.OPENAI: openai}
        )

        request = await orchestrator.speak("no cache please")
        await orchestrator.speak("no cache please")

        assert orchestrator.cache is None
        assert orchestrator.get_cache_stats() is None
        assert orchestrator.cleanup_cache() == 0
        assert len(openai.calls) == 2
        assert request.result.audio_path is None
        played = fake_player.played[0]
        assert played.parent == config.temp_dir
        assert played.suffix == ".mp3"
        assert not played.exists()
        assert fake_player.played_bytes[0] == openai.audio

    @pytest.mark.asyncio
    async def test_cleanup_false_keeps_temp_file(self, make_config, fake_player: FakePlayer) -> None:
        openai = FakeCacheableProvider(ProviderId.OPENAI)
        orchestrator = SpeechOrchestrator(
            openai_config(make_config, cache={"enabled": False}),
            player=fake_player,
            providers={ProviderId.OPENAI: openai},
        )

        request = await orchestrator.speak("keep it", SpeechOptions(cleanup=False))

        assert Path(request.result.audio_path).exists()

    @pytest.mark.asyncio
    async def test_silent_request_caches_without_playing(
        self, make_config, fake_player: FakePlayer
    ) -> None:
        """Test pre-warming the cache."""
        openai = FakeCacheableProvider(ProviderId.OPENAI)
        orchestrator = SpeechOrchestrator(
            openai_config(make_config), player=fake_player, providers={ProviderId.OPENAI: openai}
        )

        request = await orchestrator.speak("warm up", SpeechOptions(silent=True))

        assert request.result.played is False
        assert fake_player.played == []
        assert Path(request.result.audio_path).exists()

        again = await orchestrator.speak("warm up")
        assert again.result.cached is True
        assert len(openai.calls) == 1

    @pytest.mark.asyncio
    async def test_corrupt_cache_index_plays_uncached(
        self, make_config, fake_player: FakePlayer
    ) -> None:
        """Test that a broken cache database degrades to uncached playback."""
        openai = FakeCacheableProvider(ProviderId.OPENAI)
        orchestrator = SpeechOrchestrator(
            openai_config(make_config), player=fake_player, providers={ProviderId.OPENAI: openai}
        )
        db_path = orchestrator.cache.storage.db_path
        for suffix in ("-wal", "-shm"):
            db_path.with_name(db_path.name + suffix).unlink(missing_ok=True)
        db_path.write_bytes(b"this is not a sqlite database" * 64)

        request = await orchestrator.speak("Build complete")

        assert request.error is None
        assert request.result.provider == "openai"
        assert request.result.cached is False
        assert request.result.played is True
        assert fake_player.played_bytes == [openai.audio]
        assert not fake_player.played[0].exists()
        assert orchestrator.cache.misses == 1

    @pytest.mark.asyncio
    async def test_cached_file_removed_before_playback_is_resynthesized(
        self, make_config, fake_player: FakePlayer
    ) -> None:
        """Test a hit whose audio disappears after lookup re-synthesizes with the same provider."""
        openai = FakeCacheableProvider(ProviderId.OPENAI)
        groq = FakeCacheableProvider(ProviderId.GROQ)
        orchestrator = SpeechOrchestrator(
            openai_config(make_config),
            player=fake_player,
            providers={ProviderId.OPENAI: openai, ProviderId.GROQ: groq},
        )
        await orchestrator.speak("Deploy finished")
        stale = orchestrator.cache.list_entries()[0]
        stale.audio_file_path.unlink()

        with patch.object(orchestrator.cache, "get", return_value=stale):
            request = await orchestrator.speak("Deploy finished")

        assert request.error is None
        assert request.result.provider == "openai"
        assert request.result.cached is False
        assert len(openai.calls) == 2
        assert groq.calls == []
        assert stale.audio_file_path.exists()
        assert fake_player.played_bytes == [openai.audio, openai.audio]

    @pytest.mark.asyncio
    async def test_clear_cache(self, make_config, fake_player: FakePlayer) -> None:
        openai = FakeCacheableProvider(ProviderId.OPENAI)
        orchestrator = SpeechOrchestrator(
            openai_config(make_config), player=fake_player, providers={ProviderId.OPENAI: openai}
        )
        await orchestrator.speak("cached")

        orchestrator.clear_cache()
        await orchestrator.speak("cached")

        assert len(openai.calls) == 2


class TestSaveAndAnnounce:
    """Test saving to a file, history and source labels."""

    @pytest.mark.asyncio
    async def test_save_writes_file_without_playing(
        self, make_config, fake_player: FakePlayer, tmp_path: Path
    ) -> None:
        openai = FakeCacheableProvider(ProviderId.OPENAI)
        orchestrator = SpeechOrchestrator(
            openai_config(make_config), player=fake_player, providers={ProviderId.OPENAI: openai}
        )
        output = tmp_path / "out" / "speech.mp3"

        result = await orchestrator.save("Save me \U0001f4be", output)

        assert result.played is False
        assert result.audio_path == str(output)
        assert output.read_bytes() == openai.audio
        assert fake_player.played == []
        assert openai.calls[0][0] == "Save me"
        assert orchestrator.queue_status()["queue_size"] == 0

    @pytest.mark.asyncio
    async def test_save_with_speak_only_system_voice_raises(
        self, make_config, fake_player: FakePlayer, tmp_path: Path
    ) -> None:
        """Test that a direct-play provider that cannot render never speaks aloud."""
        system = FakeSystemProvider()
        orchestrator = SpeechOrchestrator(
            make_config(), player=fake_player, providers={ProviderId.SYSTEM: system}
        )

        with pytest.raises(PlatformError):
            await orchestrator.save("hello", tmp_path / "speech.wav")

        assert system.spoken == []

    @pytest.mark.asyncio
    async def test_history_records_spoken_requests(
        self, make_config, fake_player: FakePlayer, tmp_path: Path
    ) -> None:
        openai = FakeCacheableProvider(ProviderId.OPENAI)
        history = NotificationHistory(tmp_path / "history")
        orchestrator = SpeechOrchestrator(
            openai_config(make_config),
            player=fake_player,
            providers={ProviderId.OPENAI: openai},
            history=history,
        )

        await orchestrator.speak("first")
        await orchestrator.speak("first")

        entries = history.get_recent(10)
        assert [entry.cached for entry in entries] == [True, False]
        assert {entry.provider for entry in entries} == {"openai"}

    @pytest.mark.asyncio
    async def test_source_label_stored_in_cache(
        self, make_config, fake_player: FakePlayer
    ) -> None:
        openai = FakeCacheableProvider(ProviderId.OPENAI)
        orchestrator = SpeechOrchestrator(
            openai_config(make_config),
            player=fake_player,
            providers={ProviderId.OPENAI: openai},
            source="cli",
        )

        await orchestrator.speak("labelled")

        assert orchestrator.cache.list_entries()[0].source == "cli"

    def test_unusable_cache_dir_disables_cache(
        self, make_config, fake_player: FakePlayer, tmp_path: Path
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        config = make_config(cache={"dir": str(blocker / "cache")})

        orchestrator = SpeechOrchestrator(config, player=fake_player, providers={})

        assert orchestrator.cache is None
