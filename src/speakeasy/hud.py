"""Best-effort status publisher for the optional HUD overlay.

Messages are newline-delimited JSON written to a named pipe. The pipe is
opened non-blocking for every message, so a missing pipe or a HUD that is
not running costs nothing and never raises.
"""

import errno
import json
import logging
import os
import stat
import time
from pathlib import Path
from typing import Any

from .paths import DEFAULT_HUD_PIPE

logger = logging.getLogger(__name__)


class HUDNotifier:
    """Writes speech status messages to the HUD FIFO."""

    def __init__(self, pipe_path: Path | str = DEFAULT_HUD_PIPE, enabled: bool = True) -> None:
        self.pipe_path = Path(pipe_path)
        self.enabled = enabled

    def _write(self, message: dict[str, Any]) -> bool:
        if not self.enabled:
            return False

        try:
            if not stat.S_ISFIFO(os.stat(self.pipe_path).st_mode):
                return False
            fd = os.open(self.pipe_path, os.O_WRONLY | os.O_NONBLOCK)
        except OSError as e:
            # ENXIO: FIFO exists but nobody is reading
            if e.errno not in (errno.ENOENT, errno.ENXIO):
                logger.debug(f"HUD pipe unavailable: {e}")
            return False

        try:
            os.write(fd, (json.dumps(message) + "\n").encode("utf-8"))
            return True
        except OSError as e:
            logger.debug(f"HUD write failed: {e}")
            return False
        finally:
            os.close(fd)

    def notify(self, text: str, provider: str, cached: bool) -> bool:
        """Announce that text is being spoken.

        Returns:
            True if a reader received the message
        """
        return self._write(
            {
                "text": text,
                "provider": provider,
                "cached": cached,
                "timestamp": int(time.time() * 1000),
            }
        )

    def update_audio_level(self, level: float) -> bool:
        """Send a waveform amplitude update, clamped to 0.0-1.0."""
        return self._write({"audioLevel": max(0.0, min(1.0, float(level)))})
