"""XDG-compliant directory paths for config, cache and history."""

import os
from pathlib import Path

APP_NAME = "speakeasy"

# Well-known FIFO read by the optional HUD overlay
DEFAULT_HUD_PIPE = Path("/tmp/speakeasy-hud.fifo")


def get_config_dir() -> Path:
    """Get XDG-compliant configuration directory (not created).

    Priority:
    1. $XDG_CONFIG_HOME/speakeasy/
    2. ~/.config/speakeasy/

    Returns:
        Path to configuration directory
    """
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / APP_NAME
    return Path.home() / ".config" / APP_NAME


def get_config_path() -> Path:
    """Get the path of the global TOML config file."""
    return get_config_dir() / "config.toml"


def get_cache_home() -> Path:
    """Get XDG-compliant cache directory (not created).

    Priority:
    1. $XDG_CACHE_HOME/speakeasy/
    2. ~/.cache/speakeasy/
    """
    cache_home = os.environ.get("XDG_CACHE_HOME")
    if cache_home:
        return Path(cache_home) / APP_NAME
    return Path.home() / ".cache" / APP_NAME


def get_data_dir() -> Path:
    """Get XDG-compliant data directory.

    Priority:
    1. $XDG_DATA_HOME/speakeasy/
    2. ~/.local/share/speakeasy/

    Returns:
        Path to data directory
    """
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        path = Path(data_home) / APP_NAME
    else:
        path = Path.home() / ".local" / "share" / APP_NAME

    path.mkdir(parents=True, exist_ok=True, mode=0o700)
    return path


def get_history_dir() -> Path:
    """Get the directory holding weekly history files."""
    path = get_data_dir() / "history"
    path.mkdir(parents=True, exist_ok=True, mode=0o700)
    return path
