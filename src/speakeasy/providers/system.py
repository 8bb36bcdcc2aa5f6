"""System TTS provider using native OS text-to-speech commands.

This module provides text-to-speech functionality using the built-in
TTS capabilities of the operating system (say on macOS, espeak on Linux,
SAPI on Windows).
"""

import asyncio
import logging
import platform
import shutil
import subprocess
import tempfile
from pathlib import Path

from ..tts.errors import PlatformError
from .base import DirectPlayProvider, ProviderId

logger = logging.getLogger(__name__)

SUPPORTED_PLATFORMS = ("Darwin", "Linux", "Windows")
VOICE_COMMANDS = {"Darwin": "say", "Linux": "espeak", "Windows": "powershell"}


def _ps_quote(value: str) -> str:
    """Quote a value for a single-quoted PowerShell string."""
    return "'" + value.replace("'", "''") + "'"


def _sapi_rate(rate: int) -> int:
    """Map words per minute onto SAPI's -10..10 rate scale (180 wpm = 0)."""
    return max(-10, min(10, round((rate - 180) / 20)))


class SystemTTSProvider(DirectPlayProvider):
    """System TTS provider using native OS commands.

    Speaks through the OS voice command directly; output is never cached.
    The running voice process is tracked so an interrupt can kill it.

    Note: Audio quality will be robotic compared to AI-powered voices.
    """

    provider_id = ProviderId.SYSTEM

    def __init__(self, voice: str = "Samantha") -> None:
        """Initialize system TTS provider and detect platform."""
        super().__init__(voice=voice)
        self.platform = platform.system()
        self._process: asyncio.subprocess.Process | None = None

    def validate_config(self) -> bool:
        return self.platform in SUPPORTED_PLATFORMS

    def _command_available(self) -> bool:
        command = VOICE_COMMANDS.get(self.platform)
        return command is not None and shutil.which(command) is not None

    def _speak_command(self, text: str, voice: str, rate: int) -> list[str]:
        if self.platform == "Darwin":  # macOS
            cmd = ["say", "-r", str(rate)]
            if voice:
                cmd.extend(["-v", voice])
            return [*cmd, "--", text]

        if self.platform == "Linux":
            # espeak's -s is already words per minute; macOS voice names
            # like "Samantha" are not espeak voices, so only pass simple ids
            cmd = ["espeak", "-s", str(rate)]
            if voice and voice.islower():
                cmd.extend(["-v", voice])
            return [*cmd, "--", text]

        # Windows: PowerShell with SAPI
        ps_script = (
            "Add-Type -AssemblyName System.Speech;"
            "$speak = New-Object System.Speech.Synthesis.SpeechSynthesizer;"
            f"$speak.Rate = {_sapi_rate(rate)};"
        )
        if voice:
            ps_script += f"try {{ $speak.SelectVoice({_ps_quote(voice)}) }} catch {{}};"
        ps_script += f"$speak.Speak({_ps_quote(text)});$speak.Dispose()"
        return ["powershell", "-NoProfile", "-Command", ps_script]

    async def speak(self, text: str, voice: str, rate: int) -> None:
        """Speak text through the OS voice command.

        Raises:
            PlatformError: If the platform or voice command is unavailable,
                or the command exits with an error
        """
        if not self.validate_config():
            raise PlatformError(f"Unsupported platform: {self.platform}")
        if not self._command_available():
            raise PlatformError(
                f"System voice command '{VOICE_COMMANDS[self.platform]}' not found"
            )

        cmd = self._speak_command(text, voice or self.voice, rate)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise PlatformError(f"System TTS failed to start: {e}", e) from e

        self._process = proc
        try:
            _, stderr = await proc.communicate()
        finally:
            self._process = None

        # Negative return codes mean we were killed by stop()
        if proc.returncode is not None and proc.returncode > 0:
            raise PlatformError(
                f"System TTS failed with code {proc.returncode}: "
                f"{stderr.decode(errors='replace').strip()}"
            )

    def stop(self) -> None:
        proc = self._process
        if proc is None or proc.returncode is not None:
            return
        try:
            proc.kill()
        except ProcessLookupError:
            logger.debug("System voice process already exited")

    async def render_audio(self, text: str, voice: str, rate: int) -> bytes:
        """Render speech to WAV bytes instead of playing it.

        Used when audio must be saved to a file. Not cached.

        Raises:
            PlatformError: If the TTS command fails
        """
        if not self._command_available():
            raise PlatformError(f"System voice unavailable on {self.platform}")

        voice = voice or self.voice
        with tempfile.TemporaryDirectory(prefix="speakeasy-") as tmp_dir:
            output_path = Path(tmp_dir) / "speech.wav"

            if self.platform == "Darwin":
                aiff_path = Path(tmp_dir) / "speech.aiff"
                await self._run(
                    ["say", "-r", str(rate), "-v", voice, "-o", str(aiff_path), "--", text]
                )
                # Convert AIFF to WAV for player compatibility
                await self._run(
                    ["afconvert", "-f", "WAVE", "-d", "LEI16", str(aiff_path), str(output_path)]
                )
            elif self.platform == "Linux":
                cmd = ["espeak", "-s", str(rate), "-w", str(output_path)]
                if voice and voice.islower():
                    cmd.extend(["-v", voice])
                await self._run([*cmd, "--", text])
            else:
                ps_script = (
                    "Add-Type -AssemblyName System.Speech;"
                    "$speak = New-Object System.Speech.Synthesis.SpeechSynthesizer;"
                    f"$speak.Rate = {_sapi_rate(rate)};"
                    f"$speak.SetOutputToWaveFile({_ps_quote(str(output_path))});"
                    f"$speak.Speak({_ps_quote(text)});$speak.Dispose()"
                )
                await self._run(["powershell", "-NoProfile", "-Command", ps_script])

            return output_path.read_bytes()

    async def _run(self, cmd: list[str]) -> None:
        proc = await asyncio.create_subprocess_exec(
            *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
        )
        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise PlatformError(
                f"System TTS failed with code {proc.returncode}: "
                f"{stderr.decode(errors='replace').strip()}"
            )

    async def list_voices(self) -> list[dict]:
        """List available system voices.

        Returns:
            List of voice dictionaries with id, name, and provider fields
        """
        voices = []

        if self.platform == "Darwin":  # macOS
            try:
                result = subprocess.run(
                    ["say", "-v", "?"], capture_output=True, text=True, check=True
                )

                # Format: "Voice Name     Language  # Description"
                for line in result.stdout.strip().split("\n"):
                    if line and not line.startswith("#"):
                        parts = line.split()
                        if parts:
                            voices.append(
                                {"id": parts[0], "name": parts[0], "provider": "system"}
                            )

            except (OSError, subprocess.CalledProcessError) as e:
                logger.error(f"Failed to list macOS voices: {e}")

        elif self.platform == "Linux":
            try:
                result = subprocess.run(
                    ["espeak", "--voices"], capture_output=True, text=True, check=True
                )

                lines = result.stdout.strip().split("\n")
                for line in lines[1:]:  # Skip header
                    parts = line.split()
                    if len(parts) >= 2:
                        # Voice ID is in the second column
                        voices.append(
                            {"id": parts[1], "name": parts[1], "provider": "system"}
                        )

            except (OSError, subprocess.CalledProcessError):
                logger.warning("espeak not found - no voices available")

        elif self.platform == "Windows":
            ps_script = (
                "Add-Type -AssemblyName System.Speech;"
                "$speak = New-Object System.Speech.Synthesis.SpeechSynthesizer;"
                "$speak.GetInstalledVoices() | ForEach-Object { $_.VoiceInfo.Name }"
            )

            try:
                result = subprocess.run(
                    ["powershell", "-NoProfile", "-Command", ps_script],
                    capture_output=True,
                    text=True,
                    check=True,
                )

                for line in result.stdout.strip().split("\n"):
                    if line:
                        voices.append({"id": line, "name": line, "provider": "system"})

            except (OSError, subprocess.CalledProcessError) as e:
                logger.error(f"Failed to list Windows voices: {e}")

        # If no voices found, add a default
        if not voices:
            voices.append(
                {"id": "default", "name": "Default System Voice", "provider": "system"}
            )

        return voices
