"""SQLite cache storage implementation."""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from .models import CacheEntry

_COLUMNS = (
    "fingerprint",
    "audio_file_path",
    "provider",
    "voice",
    "rate_wpm",
    "original_text",
    "model",
    "file_size_bytes",
    "created_at_ms",
    "duration_ms",
    "success",
    "error_message",
    "source",
    "session_id",
    "working_directory",
    "user",
)
_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM entries"


class CacheStorage:
    """SQLite-based cache storage for TTS metadata.

    Stores one metadata row per fingerprint while audio files are stored
    separately on the filesystem. Every write runs in its own IMMEDIATE
    transaction so several processes can share one cache directory.
    """

    def __init__(self, cache_dir: Path, db_name: str = "tts-cache.sqlite"):
        """Initialize cache storage with database in given directory.

        Args:
            cache_dir: Directory containing cache database
            db_name: Database file name inside cache_dir
        """
        self.cache_dir = cache_dir

        # Create cache directory if it doesn't exist
        cache_dir.mkdir(parents=True, exist_ok=True)

        self.db_path = cache_dir / db_name

        # Initialize DB with WAL mode for concurrency
        self._init_db_with_wal()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection with WAL mode for concurrency."""
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=30.0,  # 30 second timeout if locked
            isolation_level=None,  # explicit BEGIN/COMMIT below
            check_same_thread=False,  # Allow use across threads
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=30000")  # 30s retry on lock
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block inside BEGIN IMMEDIATE, committing on success."""
        conn = self._get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    @contextmanager
    def _reader(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_connection()
        try:
            yield conn
        finally:
            conn.close()

    def _init_db_with_wal(self) -> None:
        """Initialize database with WAL mode and schema."""
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS entries (
                    fingerprint TEXT PRIMARY KEY,
                    audio_file_path TEXT NOT NULL,
                    provider TEXT NOT NULL,
                    voice TEXT NOT NULL,
                    rate_wpm INTEGER NOT NULL,
                    original_text TEXT NOT NULL,
                    model TEXT,
                    file_size_bytes INTEGER NOT NULL,
                    created_at_ms INTEGER NOT NULL,
                    duration_ms INTEGER,
                    success INTEGER NOT NULL DEFAULT 1,
                    error_message TEXT,
                    source TEXT NOT NULL,
                    session_id TEXT,
                    working_directory TEXT,
                    user TEXT
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_entries_created
                ON entries(created_at_ms)
            """)

    @staticmethod
    def _to_row(entry: CacheEntry) -> tuple:
        return (
            entry.fingerprint,
            str(entry.audio_file_path),
            entry.provider,
            entry.voice,
            entry.rate_wpm,
            entry.original_text,
            entry.model,
            entry.file_size_bytes,
            entry.created_at_ms,
            entry.duration_ms,
            int(entry.success),
            entry.error_message,
            entry.source,
            entry.session_id,
            entry.working_directory,
            entry.user,
        )

    @staticmethod
    def _from_row(row: sqlite3.Row) -> CacheEntry:
        return CacheEntry(
            fingerprint=row["fingerprint"],
            audio_file_path=Path(row["audio_file_path"]),
            provider=row["provider"],
            voice=row["voice"],
            rate_wpm=row["rate_wpm"],
            original_text=row["original_text"],
            model=row["model"],
            file_size_bytes=row["file_size_bytes"],
            created_at_ms=row["created_at_ms"],
            duration_ms=row["duration_ms"],
            success=bool(row["success"]),
            error_message=row["error_message"],
            source=row["source"],
            session_id=row["session_id"],
            working_directory=row["working_directory"],
            user=row["user"],
        )

    def save(self, entry: CacheEntry) -> None:
        """Insert or replace the row for entry.fingerprint."""
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._transaction() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO entries ({', '.join(_COLUMNS)}) "
                f"VALUES ({placeholders})",
                self._to_row(entry),
            )

    def get(self, fingerprint: str) -> CacheEntry | None:
        """Retrieve cache entry by fingerprint.

        Returns:
            Cache entry if found, None otherwise
        """
        with self._reader() as conn:
            row = conn.execute(
                f"{_SELECT} WHERE fingerprint = ?", (fingerprint,)
            ).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def delete(
        self, fingerprint: str, created_at_ms: int | None = None
    ) -> CacheEntry | None:
        """Delete one row, returning it so the caller can remove its file.

        When created_at_ms is given the row is only deleted if it still has
        that timestamp, so a fresh entry written by another process under the
        same fingerprint is left alone.
        """
        with self._transaction() as conn:
            row = conn.execute(
                f"{_SELECT} WHERE fingerprint = ?", (fingerprint,)
            ).fetchone()
            if row is None:
                return None
            if created_at_ms is not None and row["created_at_ms"] != created_at_ms:
                return None
            conn.execute("DELETE FROM entries WHERE fingerprint = ?", (fingerprint,))
        return self._from_row(row)

    def delete_older_than(self, cutoff_ms: int) -> list[CacheEntry]:
        """Delete every row created before cutoff_ms."""
        with self._transaction() as conn:
            rows = conn.execute(
                f"{_SELECT} WHERE created_at_ms < ?", (cutoff_ms,)
            ).fetchall()
            conn.execute("DELETE FROM entries WHERE created_at_ms < ?", (cutoff_ms,))
        return [self._from_row(row) for row in rows]

    def evict_to_budget(self, max_bytes: int, keep: str) -> list[CacheEntry]:
        """Delete oldest-created rows until the total size fits max_bytes.

        Selection and deletion happen in one transaction. The row named by
        keep is never selected.

        Returns:
            Entries whose rows were deleted, oldest first
        """
        evicted: list[sqlite3.Row] = []
        with self._transaction() as conn:
            total = conn.execute(
                "SELECT COALESCE(SUM(file_size_bytes), 0) FROM entries"
            ).fetchone()[0]
            if total <= max_bytes:
                return []
            candidates = conn.execute(
                f"{_SELECT} WHERE fingerprint != ? ORDER BY created_at_ms ASC, rowid ASC",
                (keep,),
            ).fetchall()
            for row in candidates:
                if total <= max_bytes:
                    break
                evicted.append(row)
                total -= row["file_size_bytes"]
            conn.executemany(
                "DELETE FROM entries WHERE fingerprint = ?",
                [(row["fingerprint"],) for row in evicted],
            )
        return [self._from_row(row) for row in evicted]

    def clear(self) -> list[CacheEntry]:
        """Delete every row."""
        with self._transaction() as conn:
            rows = conn.execute(_SELECT).fetchall()
            conn.execute("DELETE FROM entries")
        return [self._from_row(row) for row in rows]

    def all_entries(self) -> list[CacheEntry]:
        """Every entry, newest first."""
        with self._reader() as conn:
            rows = conn.execute(
                f"{_SELECT} ORDER BY created_at_ms DESC, rowid DESC"
            ).fetchall()
        return [self._from_row(row) for row in rows]

    def recent(self, limit: int) -> list[CacheEntry]:
        """The newest `limit` entries, newest first."""
        with self._reader() as conn:
            rows = conn.execute(
                f"{_SELECT} ORDER BY created_at_ms DESC, rowid DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [self._from_row(row) for row in rows]

    def by_provider(self, provider: str) -> list[CacheEntry]:
        with self._reader() as conn:
            rows = conn.execute(
                f"{_SELECT} WHERE provider = ? ORDER BY created_at_ms DESC",
                (provider,),
            ).fetchall()
        return [self._from_row(row) for row in rows]

    def fingerprints(self) -> set[str]:
        with self._reader() as conn:
            rows = conn.execute("SELECT fingerprint FROM entries").fetchall()
        return {row[0] for row in rows}
