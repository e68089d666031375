# tests/storage/test_locks.py
"""
Tests for ReadWriteLock.
"""

import threading
import time

import pytest

from agentstate.storage.locks import ReadWriteLock


class TestReadWriteLock:
    """Tests for shared and exclusive locking."""

    def test_readers_share(self):
        """Test that two readers hold the lock at the same time."""
        lock = ReadWriteLock()
        inside = threading.Barrier(2, timeout=5)

        def reader():
            with lock.read_locked():
                inside.wait()

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert not any(t.is_alive() for t in threads)

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        events = []
        lock.acquire_write()

        def reader():
            with lock.read_locked():
                events.append("read")

        t = threading.Thread(target=reader)
        t.start()
        time.sleep(0.05)
        events.append("write-done")
        lock.release_write()
        t.join(timeout=5)

        assert events == ["write-done", "read"]

    def test_upgrade_as_sole_reader(self):
        """Test that the only reader can upgrade in place."""
        lock = ReadWriteLock()
        lock.acquire_read()

        assert lock.try_upgrade() is True
        lock.release_write()

        with lock.write_locked():
            pass

    def test_upgrade_fails_with_other_readers(self):
        """Test that upgrade is refused while another reader is active."""
        lock = ReadWriteLock()
        lock.acquire_read()
        lock.acquire_read()

        assert lock.try_upgrade() is False

        lock.release_read()
        lock.release_read()

    def test_unbalanced_release(self):
        lock = ReadWriteLock()

        with pytest.raises(RuntimeError):
            lock.release_read()
        with pytest.raises(RuntimeError):
            lock.release_write()
