"""Unit tests for CacheStorage SQLite operations."""

import sqlite3
import sys
from pathlib import Path
from tempfile import TemporaryDirectory

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from speakeasy.cache.models import CacheEntry
from speakeasy.cache.storage import CacheStorage


def make_entry(fingerprint: str, created_at_ms: int, size: int = 100, provider: str = "openai") -> CacheEntry:
    return CacheEntry(
        fingerprint=fingerprint,
        audio_file_path=Path(f"/tmp/{fingerprint}.mp3"),
        provider=provider,
        voice="nova",
        rate_wpm=180,
        original_text=f"text for {fingerprint}",
        file_size_bytes=size,
        created_at_ms=created_at_ms,
        model="tts-1",
    )


class TestCacheStorage:
    """Test metadata persistence."""

    def test_database_uses_wal_mode(self) -> None:
        """Test that the database is created in WAL mode."""
        with TemporaryDirectory() as temp_dir:
            storage = CacheStorage(Path(temp_dir))

            conn = sqlite3.connect(storage.db_path)
            try:
                mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
            finally:
                conn.close()

            assert mode.lower() == "wal"

    def test_save_and_get(self) -> None:
        """Test that every field survives a save/get cycle."""
        with TemporaryDirectory() as temp_dir:
            storage = CacheStorage(Path(temp_dir))
            entry = make_entry("fp1", 1000)

            storage.save(entry)

            assert storage.get("fp1") == entry
            assert storage.get("missing") is None

    def test_save_replaces_existing_row(self) -> None:
        """Test that one fingerprint maps to one row."""
        with TemporaryDirectory() as temp_dir:
            storage = CacheStorage(Path(temp_dir))
            storage.save(make_entry("fp1", 1000))
            storage.save(make_entry("fp1", 2000, size=200))

            entries = storage.all_entries()
            assert len(entries) == 1
            assert entries[0].created_at_ms == 2000
            assert entries[0].file_size_bytes == 200

    def test_conditional_delete_skips_newer_row(self) -> None:
        """Test that a stale timestamp does not delete a fresh entry."""
        with TemporaryDirectory() as temp_dir:
            storage = CacheStorage(Path(temp_dir))
            storage.save(make_entry("fp1", 2000))

            assert storage.delete("fp1", created_at_ms=1000) is None
            assert storage.get("fp1") is not None

            removed = storage.delete("fp1", created_at_ms=2000)
            assert removed is not None
            assert storage.get("fp1") is None

    def test_delete_older_than(self) -> None:
        """Test age-based deletion returns the removed rows."""
        with TemporaryDirectory() as temp_dir:
            storage = CacheStorage(Path(temp_dir))
            for i, created in enumerate((100, 200, 300)):
                storage.save(make_entry(f"fp{i}", created))

            removed = storage.delete_older_than(250)

            assert {entry.fingerprint for entry in removed} == {"fp0", "fp1"}
            assert storage.fingerprints() == {"fp2"}

    def test_evict_to_budget_oldest_first_and_keeps_named_row(self) -> None:
        """Test that eviction removes oldest rows but never the kept one."""
        with TemporaryDirectory() as temp_dir:
            storage = CacheStorage(Path(temp_dir))
            storage.save(make_entry("old", 100, size=400))
            storage.save(make_entry("keep", 50, size=400))  # oldest, but protected
            storage.save(make_entry("new", 300, size=400))

            evicted = storage.evict_to_budget(800, keep="keep")

            assert [entry.fingerprint for entry in evicted] == ["old"]
            assert storage.fingerprints() == {"keep", "new"}

    def test_evict_to_budget_noop_under_budget(self) -> None:
        """Test that nothing is evicted when the total fits."""
        with TemporaryDirectory() as temp_dir:
            storage = CacheStorage(Path(temp_dir))
            storage.save(make_entry("a", 100, size=10))

            assert storage.evict_to_budget(100, keep="a") == []

    def test_recent_and_by_provider(self) -> None:
        """Test ordering and filtering queries."""
        with TemporaryDirectory() as temp_dir:
            storage = CacheStorage(Path(temp_dir))
            storage.save(make_entry("a", 100, provider="openai"))
            storage.save(make_entry("b", 300, provider="groq"))
            storage.save(make_entry("c", 200, provider="openai"))

            assert [e.fingerprint for e in storage.recent(2)] == ["b", "c"]
            assert [e.fingerprint for e in storage.by_provider("openai")] == ["c", "a"]
            assert [e.fingerprint for e in storage.all_entries()] == ["b", "c", "a"]

    def test_clear_returns_removed_rows(self) -> None:
        """Test clearing all rows."""
        with TemporaryDirectory() as temp_dir:
            storage = CacheStorage(Path(temp_dir))
            storage.save(make_entry("a", 100))
            storage.save(make_entry("b", 200))

            removed = storage.clear()

            assert len(removed) == 2
            assert storage.all_entries() == []

    def test_second_instance_sees_rows(self) -> None:
        """Test that two storages on one directory share state."""
        with TemporaryDirectory() as temp_dir:
            first = CacheStorage(Path(temp_dir))
            second = CacheStorage(Path(temp_dir))

            first.save(make_entry("a", 100))
            second.save(make_entry("b", 200))

            assert first.fingerprints() == {"a", "b"}
            assert second.fingerprints() == {"a", "b"}
