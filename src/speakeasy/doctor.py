"""Health checks behind ``speakeasy --doctor``."""

import os
import platform
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from .config import load_config
from .paths import get_config_path
from .providers.base import ProviderId
from .tts.errors import ConfigurationError

API_KEY_URLS = {
    ProviderId.OPENAI: "https://platform.openai.com/api-keys",
    ProviderId.ELEVENLABS: "https://elevenlabs.io/app/settings/api-keys",
    ProviderId.GROQ: "https://console.groq.com/keys",
    ProviderId.GEMINI: "https://aistudio.google.com/apikey",
}
API_KEY_ENV_VARS = {
    ProviderId.OPENAI: "OPENAI_API_KEY",
    ProviderId.ELEVENLABS: "ELEVENLABS_API_KEY",
    ProviderId.GROQ: "GROQ_API_KEY",
    ProviderId.GEMINI: "GEMINI_API_KEY",
}
SYSTEM_COMMANDS = {"Darwin": ["say", "afconvert"], "Linux": ["espeak"], "Windows": ["powershell"]}


@dataclass(frozen=True)
class Check:
    section: str
    name: str
    ok: bool
    detail: str = ""
    warning: bool = False  # not fatal when failed


@dataclass
class DoctorReport:
    checks: list[Check] = field(default_factory=list)

    def add(self, section: str, name: str, ok: bool, detail: str = "", warning: bool = False) -> None:
        self.checks.append(Check(section, name, ok, detail, warning))

    @property
    def issues(self) -> int:
        return sum(1 for check in self.checks if not check.ok and not check.warning)

    @property
    def warnings(self) -> int:
        return sum(1 for check in self.checks if not check.ok and check.warning)

    @property
    def healthy(self) -> bool:
        return self.issues == 0


def _writable(path: Path) -> bool:
    return os.access(path, os.R_OK | os.W_OK)


def run_doctor(config_path: Path | None = None) -> DoctorReport:
    """Inspect the platform voice, config file, API keys and cache directory."""
    report = DoctorReport()
    config_path = config_path or get_config_path()

    # System voice
    system = platform.system()
    commands = SYSTEM_COMMANDS.get(system)
    if commands is None:
        report.add("System", f"{system} platform", False, "no system voice support")
    else:
        for command in commands:
            found = shutil.which(command) is not None
            report.add(
                "System",
                f"`{command}` command",
                found,
                "available" if found else "not found",
                warning=system != "Darwin",
            )

    # Config file
    config = None
    if config_path.exists():
        report.add("Configuration", "Config file", True, str(config_path))
    else:
        report.add(
            "Configuration",
            "Config file",
            False,
            "not found, run `speakeasy --init-config` to create one",
            warning=True,
        )
    try:
        config = load_config(path=config_path)
        report.add("Configuration", "Config values", True, "valid")
    except ConfigurationError as e:
        report.add("Configuration", "Config values", False, str(e))

    if config is None:
        return report

    # API keys
    configured = 0
    for pid, env_var in API_KEY_ENV_VARS.items():
        settings = config.for_provider(pid)
        if settings.has_api_key:
            configured += 1
            report.add("API keys", pid.value, True, "configured")
        else:
            report.add(
                "API keys",
                pid.value,
                False,
                f"not configured, set {env_var} (get a key at {API_KEY_URLS[pid]})",
                warning=True,
            )
    if configured == 0 and system != "Darwin":
        report.add("API keys", "Any provider", False, "limited to the system voice", warning=True)

    # Cache
    if config.cache.enabled:
        cache_dir = config.cache.dir
        if cache_dir.exists():
            report.add("Cache", "Cache directory", _writable(cache_dir), str(cache_dir))
        else:
            report.add(
                "Cache", "Cache directory", True, f"{cache_dir} (created on first use)"
            )
    else:
        report.add("Cache", "Cache", True, "disabled")

    return report
