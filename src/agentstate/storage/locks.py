# src/agentstate/storage/locks.py
"""
A writer-preferring read/write lock for synchronous, thread-based callers.

Readers share the lock; a writer excludes everyone. A reader that discovers
it needs to write may attempt an in-place upgrade, which only succeeds when
it is the sole reader. Otherwise it must release and reacquire exclusively,
then re-check whatever it observed under the shared section.
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class ReadWriteLock:
    """Non-reentrant read/write lock built on a single condition variable."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("release_read() called without a matching acquire_read()")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_write() called without a matching acquire_write()")
            self._writer = False
            self._cond.notify_all()

    def try_upgrade(self) -> bool:
        """
        Convert a held read lock into the write lock without releasing it.

        Returns:
            True if the caller now holds the write lock; False if other readers
            are active, in which case the caller still holds its read lock.
        """
        with self._cond:
            if self._readers == 1 and not self._writer:
                self._readers = 0
                self._writer = True
                return True
            return False

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()
