"""Configuration management for speakeasy.

Loads configuration from ~/.config/speakeasy/config.toml.
Priority chain: explicit overrides > config file > env vars > defaults.

The result is an immutable OrchestratorConfig. Nothing is cached at module
level; call reload() (or load_config() again) to pick up changes.
"""

import os
import tempfile
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .cache.units import parse_size, parse_ttl
from .paths import DEFAULT_HUD_PIPE, get_cache_home, get_config_path
from .providers.base import DEFAULT_FALLBACK_ORDER, ProviderId
from .tts.errors import ConfigurationError

MIN_RATE = 60
MAX_RATE = 480
MIN_API_KEY_LENGTH = 11

DEFAULT_CONFIG = """\
# speakeasy configuration

[defaults]
# Provider: "system" (OS voice), "openai", "elevenlabs", "groq", "gemini"
provider = "system"

# Providers tried, in order, once the requested provider fails
fallback_order = ["system", "openai", "elevenlabs", "groq", "gemini"]

# Speaking rate in words per minute (60-480)
rate = 180

# Playback volume (0.0-1.0)
volume = 0.7

[providers.system]
voice = "Samantha"

[providers.openai]
voice = "nova"
model = "tts-1"
# instructions = "Speak in a calm, friendly tone"

[providers.elevenlabs]
voice_id = "EXAVITQu4vr4xnSDxMaL"
model_id = "eleven_multilingual_v2"

[providers.groq]
voice = "Celeste-PlayAI"
model = "playai-tts"

[providers.gemini]
voice = "Kore"
model = "gemini-2.5-flash-preview-tts"

[cache]
enabled = true

# Entries older than this are treated as misses ("30m", "1h", "7d", "1M")
ttl = "7d"

# Oldest entries are evicted once the cache grows past this ("500mb", "1gb")
max_size = "100mb"

# dir = "~/.cache/speakeasy"

[hud]
enabled = true
pipe_path = "/tmp/speakeasy-hud.fifo"

[global]
# temp_dir = "/tmp"
debug = false

# Raise immediately when the requested provider is not configured
# instead of falling back to the next provider
strict_validation = false

# API keys are read from environment variables when not set here:
#   OPENAI_API_KEY, ELEVENLABS_API_KEY, GROQ_API_KEY, GEMINI_API_KEY
"""


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"not a boolean: {value!r}")


DEFAULTS: dict[str, Any] = {
    "defaults": {
        "provider": ProviderId.SYSTEM.value,
        "fallback_order": [p.value for p in DEFAULT_FALLBACK_ORDER],
        "rate": 180,
        "volume": 0.7,
    },
    "providers": {
        "system": {"voice": "Samantha"},
        "openai": {"voice": "nova", "model": "tts-1", "api_key": ""},
        "elevenlabs": {
            "voice_id": "EXAVITQu4vr4xnSDxMaL",
            "model_id": "eleven_multilingual_v2",
            "api_key": "",
        },
        "groq": {"voice": "Celeste-PlayAI", "model": "playai-tts", "api_key": ""},
        "gemini": {
            "voice": "Kore",
            "model": "gemini-2.5-flash-preview-tts",
            "api_key": "",
        },
    },
    "cache": {"enabled": True, "ttl": "7d", "max_size": "100mb", "dir": None},
    "hud": {"enabled": True, "pipe_path": str(DEFAULT_HUD_PIPE)},
    "global": {"temp_dir": None, "debug": False, "strict_validation": False},
}

# env var -> (section path, key, converter)
ENV_VARS: dict[str, tuple[tuple[str, ...], str, Any]] = {
    "SPEAKEASY_PROVIDER": (("defaults",), "provider", str),
    "SPEAKEASY_FALLBACK_ORDER": (
        ("defaults",),
        "fallback_order",
        lambda v: [p.strip() for p in v.split(",") if p.strip()],
    ),
    "SPEAKEASY_RATE": (("defaults",), "rate", int),
    "SPEAKEASY_VOLUME": (("defaults",), "volume", float),
    "SPEAKEASY_CACHE_ENABLED": (("cache",), "enabled", _parse_bool),
    "SPEAKEASY_CACHE_DIR": (("cache",), "dir", str),
    "SPEAKEASY_CACHE_TTL": (("cache",), "ttl", str),
    "SPEAKEASY_CACHE_MAX_SIZE": (("cache",), "max_size", str),
    "SPEAKEASY_HUD_PIPE": (("hud",), "pipe_path", str),
    "SPEAKEASY_TEMP_DIR": (("global",), "temp_dir", str),
    "SPEAKEASY_DEBUG": (("global",), "debug", _parse_bool),
    "OPENAI_API_KEY": (("providers", "openai"), "api_key", str),
    "ELEVENLABS_API_KEY": (("providers", "elevenlabs"), "api_key", str),
    "GROQ_API_KEY": (("providers", "groq"), "api_key", str),
    "GEMINI_API_KEY": (("providers", "gemini"), "api_key", str),
}


@dataclass(frozen=True)
class ProviderSettings:
    """Per-provider voice, model and credentials."""

    voice: str
    model: str | None = None
    api_key: str = ""
    instructions: str | None = None

    @property
    def has_api_key(self) -> bool:
        return len(self.api_key) >= MIN_API_KEY_LENGTH


@dataclass(frozen=True)
class CacheConfig:
    """Audio cache configuration."""

    enabled: bool
    ttl: str | int
    max_size: str | int | None
    dir: Path


@dataclass(frozen=True)
class HUDConfig:
    """HUD notifier configuration."""

    enabled: bool
    pipe_path: Path


@dataclass(frozen=True)
class OrchestratorConfig:
    """Top-level speakeasy configuration."""

    provider: ProviderId
    fallback_order: tuple[ProviderId, ...]
    rate: int
    volume: float
    system: ProviderSettings
    openai: ProviderSettings
    elevenlabs: ProviderSettings
    groq: ProviderSettings
    gemini: ProviderSettings
    cache: CacheConfig
    hud: HUDConfig
    temp_dir: Path
    debug: bool = False
    strict_validation: bool = False
    source_path: Path | None = None
    overrides: Mapping[str, Any] = field(
        default_factory=dict, compare=False, repr=False
    )

    def for_provider(self, provider: ProviderId | str) -> ProviderSettings:
        """Settings block for one provider."""
        return getattr(self, ProviderId(provider).value)

    def reload(self) -> "OrchestratorConfig":
        """Re-read every layer and return a new config; self is unchanged."""
        return load_config(self.overrides, path=self.source_path)


def generate_config(path: Path | None = None) -> Path:
    """Generate default config file at ~/.config/speakeasy/config.toml."""
    path = path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG)
    return path


def _merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge override into a copy of base, ignoring None values."""
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _env_layer(environ: Mapping[str, str]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for name, (section, key, convert) in ENV_VARS.items():
        raw = environ.get(name)
        if raw is None or raw == "":
            continue
        try:
            value = convert(raw)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {name}: {e}") from e
        target = layer
        for part in section:
            target = target.setdefault(part, {})
        target[key] = value
    return layer


def _file_layer(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}", e) from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}", e) from e


def _provider_id(value: Any, field_name: str) -> ProviderId:
    try:
        return ProviderId(value)
    except ValueError:
        valid = ", ".join(p.value for p in ProviderId)
        raise ConfigurationError(
            f"Invalid {field_name} {value!r}. Valid providers: {valid}"
        ) from None


def _build(data: dict[str, Any], source_path: Path | None, overrides: Mapping[str, Any]) -> OrchestratorConfig:
    defaults = data["defaults"]
    providers = data["providers"]
    cache = data["cache"]
    hud = data["hud"]
    global_cfg = data["global"]

    provider = _provider_id(defaults["provider"], "provider")
    fallback_order = tuple(
        _provider_id(name, "fallback_order entry") for name in defaults["fallback_order"]
    )
    if not fallback_order:
        raise ConfigurationError("fallback_order cannot be empty")

    try:
        rate = int(defaults["rate"])
        volume = float(defaults["volume"])
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid rate or volume: {e}") from e
    if not MIN_RATE <= rate <= MAX_RATE:
        raise ConfigurationError(
            f"rate must be between {MIN_RATE} and {MAX_RATE}, got {rate}"
        )
    if not 0.0 <= volume <= 1.0:
        raise ConfigurationError(f"volume must be between 0.0 and 1.0, got {volume}")

    try:
        parse_ttl(cache["ttl"])
        if cache["max_size"]:
            parse_size(cache["max_size"])
    except ValueError as e:
        raise ConfigurationError(f"Invalid cache setting: {e}") from e

    openai = providers["openai"]
    elevenlabs = providers["elevenlabs"]
    groq = providers["groq"]
    gemini = providers["gemini"]

    return OrchestratorConfig(
        provider=provider,
        fallback_order=fallback_order,
        rate=rate,
        volume=volume,
        system=ProviderSettings(voice=providers["system"]["voice"]),
        openai=ProviderSettings(
            voice=openai["voice"],
            model=openai.get("model"),
            api_key=openai.get("api_key", ""),
            instructions=openai.get("instructions"),
        ),
        elevenlabs=ProviderSettings(
            voice=elevenlabs["voice_id"],
            model=elevenlabs.get("model_id"),
            api_key=elevenlabs.get("api_key", ""),
        ),
        groq=ProviderSettings(
            voice=groq["voice"],
            model=groq.get("model"),
            api_key=groq.get("api_key", ""),
        ),
        gemini=ProviderSettings(
            voice=gemini["voice"],
            model=gemini.get("model"),
            api_key=gemini.get("api_key", ""),
        ),
        cache=CacheConfig(
            enabled=bool(cache["enabled"]),
            ttl=cache["ttl"],
            max_size=cache["max_size"] or None,
            dir=Path(cache["dir"]).expanduser() if cache["dir"] else get_cache_home(),
        ),
        hud=HUDConfig(
            enabled=bool(hud["enabled"]),
            pipe_path=Path(hud["pipe_path"]).expanduser(),
        ),
        temp_dir=Path(global_cfg["temp_dir"]).expanduser()
        if global_cfg["temp_dir"]
        else Path(tempfile.gettempdir()),
        debug=bool(global_cfg["debug"]),
        strict_validation=bool(global_cfg["strict_validation"]),
        source_path=source_path,
        overrides=overrides,
    )


def load_config(
    overrides: Mapping[str, Any] | None = None,
    *,
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> OrchestratorConfig:
    """Resolve configuration from every layer.

    Args:
        overrides: Explicit values shaped like the TOML file, e.g.
            {"defaults": {"provider": "openai"}}. Highest precedence.
        path: Config file to read (defaults to ~/.config/speakeasy/config.toml).
            A missing file is not an error.
        environ: Environment mapping (defaults to os.environ)

    Returns:
        A new immutable OrchestratorConfig.

    Raises:
        ConfigurationError: If the file is unreadable or a value is invalid.
    """
    path = path or get_config_path()
    overrides = dict(overrides or {})
    environ = os.environ if environ is None else environ

    data = _merge(DEFAULTS, _env_layer(environ))
    data = _merge(data, _file_layer(path))
    data = _merge(data, overrides)

    return _build(data, path, overrides)
