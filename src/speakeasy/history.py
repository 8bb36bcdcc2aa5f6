"""Weekly notification history.

Every spoken request is recorded in ``history-YYYY-Www.json`` under the data
directory, newest first. A new file is started each ISO week.
"""

import json
import logging
import os
import tempfile
import time
import uuid
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path

from .paths import get_history_dir

logger = logging.getLogger(__name__)

MAX_ENTRIES = 1000


@dataclass(frozen=True)
class HistoryEntry:
    id: str
    text: str
    provider: str
    timestamp: int  # ms since epoch
    cached: bool


def history_filename(moment: datetime) -> str:
    year, week, _ = moment.isocalendar()
    return f"history-{year}-W{week:02d}.json"


class NotificationHistory:
    """Append-only log of spoken notifications, one JSON file per week."""

    def __init__(
        self,
        history_dir: Path | None = None,
        max_entries: int = MAX_ENTRIES,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.history_dir = Path(history_dir) if history_dir else get_history_dir()
        self.history_dir.mkdir(parents=True, exist_ok=True)
        self.max_entries = max_entries
        self._clock = clock or datetime.now

    @property
    def current_file(self) -> Path:
        return self.history_dir / history_filename(self._clock())

    def _load(self, path: Path) -> list[HistoryEntry]:
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return [HistoryEntry(**item) for item in data]
        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"Failed to load history from {path}: {e}")
            return []

    def _save(self, path: Path, entries: list[HistoryEntry]) -> None:
        payload = json.dumps([asdict(entry) for entry in entries], indent=2)
        with tempfile.NamedTemporaryFile(
            "w", dir=self.history_dir, suffix=".tmp", delete=False, encoding="utf-8"
        ) as tmp:
            tmp.write(payload)
        os.replace(tmp.name, path)

    def add(self, text: str, provider: str, cached: bool) -> HistoryEntry:
        """Record a spoken notification in the current week's file.

        Write failures are logged, never raised.
        """
        entry = HistoryEntry(
            id=str(uuid.uuid4()),
            text=text,
            provider=provider,
            timestamp=int(time.time() * 1000),
            cached=cached,
        )
        path = self.current_file
        entries = [entry, *self._load(path)][: self.max_entries]
        try:
            self._save(path, entries)
        except OSError as e:
            logger.warning(f"Failed to save history: {e}")
        return entry

    def get_recent(self, limit: int = 20) -> list[HistoryEntry]:
        """Most recent entries across every week, newest first."""
        if limit <= 0:
            return []
        return self.get_all_history()[:limit]

    def get_all_history(self) -> list[HistoryEntry]:
        entries: list[HistoryEntry] = []
        for path in sorted(self.history_dir.glob("history-*.json"), reverse=True):
            entries.extend(self._load(path))
        return sorted(entries, key=lambda entry: entry.timestamp, reverse=True)

    def clear(self) -> None:
        """Remove every weekly history file."""
        for path in self.history_dir.glob("history-*.json"):
            path.unlink(missing_ok=True)
