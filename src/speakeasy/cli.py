"""Typer CLI definition for speakeasy."""

import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

import typer

from .api import resolve_config
from .audio.player import AudioPlayer
from .cache.manager import CacheStore
from .cache.models import CacheEntry
from .config import OrchestratorConfig, generate_config
from .doctor import run_doctor
from .history import NotificationHistory
from .paths import get_config_path
from .providers import ProviderRegistry
from .tts.errors import (
    AllProvidersFailedError,
    CacheError,
    ConfigurationError,
    PlatformError,
    ProviderError,
)
from .tts.models import SpeechOptions
from .tts.orchestrator import SpeechOrchestrator

app = typer.Typer(help="Speak text with system or AI voices, with fallback and caching")


def process_text_input(text: str | None) -> str:
    """Process text input and return the text to speak.

    Raises:
        ValueError: If no text is provided
    """
    if text is None or not text.strip():
        raise ValueError("No text provided")

    return text


def _fail(message: str, error: Exception, debug: bool) -> None:
    if debug:
        typer.echo(f"Debug - {message}: {error!r}", err=True)
    else:
        typer.echo(f"Error: {message}: {error}", err=True)
    raise typer.Exit(1) from None


def _format_size(num_bytes: float) -> str:
    for unit in ("B", "KB", "MB"):
        if num_bytes < 1024:
            return f"{num_bytes:.0f}{unit}" if unit == "B" else f"{num_bytes:.1f}{unit}"
        num_bytes /= 1024
    return f"{num_bytes:.1f}GB"


def _format_time(ms: int | None) -> str:
    if ms is None:
        return "-"
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _format_entry(entry: CacheEntry) -> str:
    text = entry.original_text
    truncated = text[:60] + "..." if len(text) > 60 else text
    return (
        f"{entry.fingerprint}  {_format_time(entry.created_at_ms)}  "
        f"{entry.provider}/{entry.voice}  {_format_size(entry.file_size_bytes)}  "
        f'"{truncated}"'
    )


def _echo_entries(entries: list[CacheEntry], empty: str) -> None:
    if not entries:
        typer.echo(empty)
        return
    for entry in entries:
        typer.echo(_format_entry(entry))


def _open_cache(config: OrchestratorConfig) -> CacheStore:
    return CacheStore(
        cache_dir=config.cache.dir, ttl=config.cache.ttl, max_size=config.cache.max_size
    )


def _show_stats(cache: CacheStore) -> None:
    stats = cache.get_stats()
    typer.echo("=== Cache Statistics ===")
    typer.echo(f"Directory: {stats.cache_dir}")
    typer.echo(f"Entries: {stats.total_entries}")
    typer.echo(f"Total size: {_format_size(stats.total_size)}")
    typer.echo(f"Average file size: {_format_size(stats.avg_file_size)}")
    typer.echo(f"Oldest: {_format_time(stats.earliest_ms)}")
    typer.echo(f"Newest: {_format_time(stats.latest_ms)}")
    for label, counts in (
        ("Providers", stats.providers),
        ("Models", stats.models),
        ("Sources", stats.sources),
    ):
        if counts:
            summary = ", ".join(f"{name}: {count}" for name, count in sorted(counts.items()))
            typer.echo(f"{label}: {summary}")


def _show_entry(entry: CacheEntry) -> None:
    typer.echo(f"Fingerprint: {entry.fingerprint}")
    typer.echo(f"Text: {entry.original_text}")
    typer.echo(f"Provider: {entry.provider}")
    typer.echo(f"Voice: {entry.voice}")
    typer.echo(f"Model: {entry.model or 'unknown'}")
    typer.echo(f"Rate: {entry.rate_wpm} wpm")
    typer.echo(f"Size: {_format_size(entry.file_size_bytes)}")
    typer.echo(f"Created: {_format_time(entry.created_at_ms)}")
    if entry.duration_ms is not None:
        typer.echo(f"Synthesis time: {entry.duration_ms}ms")
    typer.echo(f"Source: {entry.source}")
    if entry.working_directory:
        typer.echo(f"Working directory: {entry.working_directory}")
    typer.echo(f"File: {entry.audio_file_path}")


def _run_doctor() -> None:
    report = run_doctor()
    section = None
    for check in report.checks:
        if check.section != section:
            section = check.section
            typer.echo(f"\n{section}:")
        mark = "✓" if check.ok else ("!" if check.warning else "✗")
        detail = f" ({check.detail})" if check.detail else ""
        typer.echo(f"  {mark} {check.name}{detail}")

    typer.echo("")
    if report.issues == 0 and report.warnings == 0:
        typer.echo("All checks passed.")
    else:
        typer.echo(f"{report.issues} issues, {report.warnings} warnings found")
    raise typer.Exit(0 if report.healthy else 1)


async def list_available_voices(config: OrchestratorConfig) -> None:
    """Print voices of the configured provider in "Name: voice_id" format."""
    provider = ProviderRegistry.create(config.provider, config)
    for voice in await provider.list_voices():
        typer.echo(f"{voice['name']}: {voice['id']}")


@app.command()
def speak(
    text: str | None = typer.Argument(None, help="Text to convert to speech"),
    file: Path | None = typer.Option(None, "-f", "--file", help="Read text from file"),
    output: Path | None = typer.Option(
        None, "-o", "--out", help="Save audio to file instead of playing"
    ),
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="TTS provider (from config if omitted)"
    ),
    voice: str | None = typer.Option(
        None, "-v", "--voice", help="Voice for the provider (from config if omitted)"
    ),
    rate: int | None = typer.Option(
        None, "-r", "--rate", help="Speaking rate in words per minute"
    ),
    priority: str = typer.Option(
        "normal", "--priority", help="Queue priority: high, normal or low"
    ),
    interrupt: bool = typer.Option(
        False, "--interrupt", help="Stop current speech before speaking"
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Disable the audio cache"),
    debug: bool = typer.Option(
        False, "--debug", help="Show verbose error messages and cache activity"
    ),
    list_voices: bool = typer.Option(
        False, "--list-voices", help="List available voices and exit"
    ),
    clear_cache: bool = typer.Option(False, "--clear-cache", help="Delete all cached audio"),
    cache_stats: bool = typer.Option(False, "--cache-stats", help="Show cache statistics"),
    recent: int | None = typer.Option(None, "--recent", help="List the N newest cache entries"),
    find: str | None = typer.Option(None, "--find", help="Search cached entries by text"),
    entry_id: str | None = typer.Option(None, "--id", help="Show one cache entry"),
    play: str | None = typer.Option(None, "--play", help="Play a cache entry by fingerprint"),
    cleanup_cache: bool = typer.Option(
        False, "--cleanup-cache", help="Remove cache entries older than --max-age-days"
    ),
    max_age_days: int = typer.Option(7, "--max-age-days", help="Age limit for --cleanup-cache"),
    history: int | None = typer.Option(None, "--history", help="Show the N latest notifications"),
    doctor: bool = typer.Option(False, "--doctor", help="Run health checks and exit"),
    init_config: bool = typer.Option(
        False, "--init-config", help="Write a default config file and exit"
    ),
) -> None:
    """Speak text with system or AI voices."""
    # Configure logging for debug mode
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

    if init_config:
        config_path = get_config_path()
        if config_path.exists():
            typer.echo(f"Config already exists at {config_path}")
        else:
            typer.echo(f"Config written to {generate_config(config_path)}")
        raise typer.Exit(0)

    if doctor:
        _run_doctor()

    if history is not None:
        entries = NotificationHistory().get_recent(history)
        if not entries:
            typer.echo("No notification history")
        for item in entries:
            cached = " (cached)" if item.cached else ""
            typer.echo(f"{_format_time(item.timestamp)}  {item.provider}{cached}  {item.text}")
        raise typer.Exit(0)

    try:
        config = resolve_config(provider, voice, rate, not no_cache)
    except (ConfigurationError, ValueError) as e:
        _fail("Invalid configuration", e, debug)

    # === CACHE COMMANDS ===
    if clear_cache or cache_stats or recent is not None or find or entry_id or play or cleanup_cache:
        missing = None
        try:
            cache = _open_cache(config)
            if clear_cache:
                cache.clear()
                typer.echo("Cache cleared")
            if cleanup_cache:
                removed = cache.cleanup(max_age_days * 24 * 60 * 60 * 1000)
                typer.echo(f"Removed {removed} entries older than {max_age_days} days")
            if cache_stats:
                _show_stats(cache)
            if recent is not None:
                _echo_entries(cache.get_recent(recent), "Cache is empty")
            if find:
                _echo_entries(cache.find_by_text(find), f"No cached entries match '{find}'")
            found = {key: cache.get(key) for key in (entry_id, play) if key}
            missing = next((key for key, entry in found.items() if entry is None), None)
            if entry_id and not missing:
                _show_entry(found[entry_id])
            if play and not missing:
                player = AudioPlayer(volume=config.volume)
                asyncio.run(player.play_file_async(found[play].audio_file_path))
        except CacheError as e:
            _fail("Cache error", e, debug)
        except RuntimeError as e:
            _fail("Failed to play audio", e, debug)
        if missing:
            typer.echo(f"No cache entry {missing}", err=True)
            raise typer.Exit(1)
        raise typer.Exit(0)

    if list_voices:
        try:
            asyncio.run(list_available_voices(config))
        except (ConfigurationError, ProviderError) as e:
            _fail("Failed to list voices", e, debug)
        raise typer.Exit(0)

    # Get text from argument, file, or stdin (in priority order)
    if text is None:
        if file:
            try:
                text = file.read_text()
            except FileNotFoundError as e:
                _fail(f"File not found: {file}", e, debug)
            except PermissionError as e:
                _fail(f"Permission denied reading file: {file}", e, debug)
            except UnicodeDecodeError as e:
                _fail(f"Unable to decode file as text: {file}", e, debug)
        elif not sys.stdin.isatty():
            text = sys.stdin.read().strip()

    try:
        text = process_text_input(text)
        options = SpeechOptions(priority=priority, interrupt=interrupt)
    except ValueError as e:
        _fail("Invalid input", e, debug)

    orchestrator = SpeechOrchestrator(config, history=NotificationHistory(), source="cli")

    async def _run():
        if output:
            return await orchestrator.save(text, output)
        request = await orchestrator.speak(text, options)
        if request.error is not None:
            raise request.error
        return request.result

    try:
        result = asyncio.run(_run())
    except ConfigurationError as e:
        _fail("Configuration error", e, debug)
    except PlatformError as e:
        _fail("System voice unavailable", e, debug)
    except AllProvidersFailedError as e:
        _fail("Speech failed", e, debug)
    except ValueError as e:
        _fail("Invalid input", e, debug)
    except OSError as e:
        _fail("File system error", e, debug)

    if output:
        typer.echo(f"Audio saved to {result.audio_path}")
    elif debug:
        source = "cache" if result.cached else "synthesis"
        typer.echo(f"Spoke via {result.provider} ({source})", err=True)
