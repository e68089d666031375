# tests/storage/test_summary_store.py
"""
Tests for DiskSessionSummaryStore.

These tests verify:
- Summary persistence and strictly increasing updated_at
- Bounded caching of message logs with transparent reload after eviction
- One live log per session, shared by every caller holding it
- Session deletion and id validation
- Corruption handling of summary files
- Concurrent access across many sessions with a small cache
"""

import gc
import threading
import weakref

import pytest

from agentstate.exceptions import CorruptedStoreError, MessageStorageError, SessionStorageError
from agentstate.models import SessionSummary
from agentstate.storage import summary_store as summary_store_module
from agentstate.storage.summary_store import SUMMARY_FILE_NAME, DiskSessionSummaryStore
from conftest import make_text, make_texts


@pytest.fixture
def store(tmp_path):
    return DiskSessionSummaryStore(tmp_path / "sessions", cache_size=2)


# =============================================================================
# SUMMARIES
# =============================================================================


class TestSummaries:
    """Tests for saving and loading session summaries."""

    def test_save_and_reload(self, tmp_path, store):
        """Test that a saved summary is visible to a fresh store."""
        store.save_summary(SessionSummary(session_id="s1", title="Trip", keywords=["travel"], updated_at=10))

        reopened = DiskSessionSummaryStore(tmp_path / "sessions")
        summary = reopened.session_summary("s1")

        assert summary.title == "Trip"
        assert summary.keywords == ["travel"]
        assert summary.updated_at == 10

    def test_updated_at_strictly_increases(self, store):
        """Test that a stale or equal updated_at is bumped past the stored one."""
        first = store.save_summary(SessionSummary(session_id="s1", updated_at=100))
        second = store.save_summary(SessionSummary(session_id="s1", updated_at=100))
        third = store.save_summary(SessionSummary(session_id="s1", updated_at=50))
        fourth = store.save_summary(SessionSummary(session_id="s1", updated_at=500))

        assert [first.updated_at, second.updated_at, third.updated_at, fourth.updated_at] == [100, 101, 102, 500]
        assert store.session_summary("s1").updated_at == 500

    def test_updated_at_checked_against_disk_after_restart(self, tmp_path, store):
        store.save_summary(SessionSummary(session_id="s1", updated_at=100))

        reopened = DiskSessionSummaryStore(tmp_path / "sessions")
        stored = reopened.save_summary(SessionSummary(session_id="s1", updated_at=1))

        assert stored.updated_at == 101

    def test_unknown_session(self, store):
        assert store.session_summary("nope") is None

    def test_list_session_summaries(self, store):
        """Test that only sessions with a summary are listed."""
        store.save_summary(SessionSummary(session_id="s1"))
        store.save_summary(SessionSummary(session_id="s2"))
        store.get_or_open_log("no-summary")

        ids = sorted(s.session_id for s in store.list_session_summaries())

        assert ids == ["s1", "s2"]

    def test_listing_does_not_evict_open_logs(self, tmp_path):
        """Test that listing summaries of more sessions than the cache holds leaves the cache alone."""
        writer = DiskSessionSummaryStore(tmp_path, cache_size=4)
        for session_id in ("s1", "s2", "s3"):
            writer.save_summary(SessionSummary(session_id=session_id, title=session_id))

        store = DiskSessionSummaryStore(tmp_path, cache_size=1)
        store.get_or_open_log("open")
        before = store.cache_stats()

        titles = [s.title for s in store.list_session_summaries()]

        assert titles == ["s1", "s2", "s3"]
        assert store.cache_stats() == before

    def test_corrupted_summary(self, store):
        """Test that an unparseable summary raises CorruptedStoreError."""
        store.save_summary(SessionSummary(session_id="s1"))
        (store.root / "s1" / SUMMARY_FILE_NAME).write_text("{broken")
        fresh = DiskSessionSummaryStore(store.root)

        with pytest.raises(CorruptedStoreError):
            fresh.session_summary("s1")

    def test_failed_write_keeps_previous_summary(self, store, monkeypatch):
        store.save_summary(SessionSummary(session_id="s1", title="old", updated_at=1))

        def broken_write(path, data, append=False):
            raise OSError("read-only filesystem")

        monkeypatch.setattr(summary_store_module, "write_bytes", broken_write)
        with pytest.raises(SessionStorageError):
            store.save_summary(SessionSummary(session_id="s1", title="new", updated_at=2))
        monkeypatch.undo()

        assert store.session_summary("s1").title == "old"
        assert DiskSessionSummaryStore(store.root).session_summary("s1").title == "old"


# =============================================================================
# MESSAGE LOG CACHE
# =============================================================================


class TestLogCache:
    """Tests for the bounded cache of open message logs."""

    def test_unknown_session_has_no_log(self, store):
        assert store.get_message_log("nope") is None
        assert not store.session_exists("nope")

    def test_get_or_open_creates_session(self, store):
        log = store.get_or_open_log("s1")

        assert store.session_exists("s1")
        assert store.get_message_log("s1") is log

    def test_eviction_and_reload(self, store):
        """Test that a released, evicted log is reloaded from disk with its messages."""
        first = store.get_or_open_log("s1")
        first.append(make_texts(3, session_id="s1"))
        released = weakref.ref(first)
        del first
        store.get_or_open_log("s2")
        store.get_or_open_log("s3")

        stats = store.cache_stats()
        assert stats["size"] == 2
        assert stats["evictions"] == 1

        gc.collect()
        assert released() is None
        reloaded = store.get_message_log("s1")
        assert [m.message_id for m in reloaded.read(10).items] == ["m000", "m001", "m002"]

    def test_evicted_log_still_held_is_reused(self, tmp_path):
        """Test that reopening a session whose evicted log is still held returns that same log."""
        store = DiskSessionSummaryStore(tmp_path, cache_size=1)
        held = store.get_or_open_log("s1")
        store.get_or_open_log("s2")
        assert store.cache_stats()["evictions"] == 1

        reopened = store.get_or_open_log("s1")
        held.append(make_texts(3, session_id="s1"))

        assert reopened is held
        assert len(reopened) == 3
        assert DiskSessionSummaryStore(tmp_path).get_message_log("s1").read(10).items == held.read(10).items

    def test_recently_used_session_survives(self, store):
        """Test that access refreshes recency."""
        s1 = store.get_or_open_log("s1")
        store.get_or_open_log("s2")
        store.get_message_log("s1")
        store.get_or_open_log("s3")

        assert store.get_message_log("s1") is s1

    def test_summary_survives_log_eviction(self, store):
        store.save_summary(SessionSummary(session_id="s1", title="kept"))
        store.get_or_open_log("s2")
        store.get_or_open_log("s3")

        assert store.session_summary("s1").title == "kept"

    def test_cache_size_validation(self, tmp_path):
        with pytest.raises(ValueError):
            DiskSessionSummaryStore(tmp_path, cache_size=0)


# =============================================================================
# DELETION AND VALIDATION
# =============================================================================


class TestDeletion:
    """Tests for deleting sessions."""

    def test_delete_session(self, store):
        store.save_summary(SessionSummary(session_id="s1"))
        store.get_or_open_log("s1").append([make_text(0, session_id="s1")])

        assert store.delete_session("s1") is True
        assert not store.session_exists("s1")
        assert store.session_summary("s1") is None
        assert store.get_message_log("s1") is None

    def test_delete_uncached_session(self, tmp_path, store):
        """Test that a session on disk is deleted even if it was never cached."""
        store.save_summary(SessionSummary(session_id="s1"))
        fresh = DiskSessionSummaryStore(tmp_path / "sessions")

        assert fresh.delete_session("s1") is True

    def test_delete_missing_session(self, store):
        assert store.delete_session("nope") is False

    def test_delete_clears_held_log(self, store):
        """Test that a log handle held across deletion no longer serves or accepts messages."""
        held = store.get_or_open_log("s1")
        held.append(make_texts(2, session_id="s1"))

        store.delete_session("s1")

        assert len(held) == 0
        assert held.read(10).items == []
        with pytest.raises(MessageStorageError):
            held.append([make_text(5, session_id="s1")])

    @pytest.mark.parametrize("session_id", ["", ".", "..", "../escape", "a/b", "with space"])
    def test_invalid_session_ids(self, store, session_id):
        with pytest.raises(ValueError):
            store.get_message_log(session_id)


# =============================================================================
# CONCURRENCY
# =============================================================================


class TestConcurrency:
    """Tests for concurrent use across sessions."""

    def test_many_sessions_small_cache(self, tmp_path):
        """Test that eviction under contention loses no acknowledged message."""
        store = DiskSessionSummaryStore(tmp_path / "sessions", cache_size=2)
        errors = []

        def worker(n: int):
            session_id = f"s{n}"
            try:
                for j in range(15):
                    store.get_or_open_log(session_id).append([make_text(j, session_id=session_id)])
                    store.get_message_log(session_id).read(5)
            except Exception as e:  # pragma: no cover - reported below
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        for n in range(6):
            assert len(store.get_message_log(f"s{n}")) == 15
