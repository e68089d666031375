# src/agentstate/storage/summary_store.py
"""
Disk-backed session index with a bounded cache of open message logs.

Layout under the store root::

    <root>/<session_id>/summary.json     # SessionSummary, replaced atomically
    <root>/<session_id>/messages.jsonl   # FileMessageLog

At most ``cache_size`` sessions are cached. Evicting a session only drops its
in-memory state (summary and loaded message index); everything is already
durable, so the next access transparently reloads it from disk.

A log that was evicted while a caller still holds it is handed out again on
the next access instead of being loaded a second time, so every session has
at most one live log and one writer.

The cache lock guards cache bookkeeping only. Log contents are protected by
each log's own read/write lock, so independent sessions never contend beyond
the short insert/evict critical section.
"""

import logging
import re
import threading
import weakref
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..exceptions import CorruptedStoreError, SessionStorageError
from ..models import SessionSummary
from .file_utils import delete_tree, ensure_path, write_bytes
from .locks import ReadWriteLock
from .message_log import FileMessageLog

logger = logging.getLogger(__name__)

SUMMARY_FILE_NAME = "summary.json"
DEFAULT_CACHE_SIZE = 20

_SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.:@+=-]+$")


@dataclass
class SessionContainer:
    """Cached state of one session. Either part may be absent."""
    summary: Optional[SessionSummary] = None
    message_log: Optional[FileMessageLog] = None


class DiskSessionSummaryStore:
    """
    Session index over one directory, caching up to ``cache_size`` sessions.

    Example:
        >>> store = DiskSessionSummaryStore("/var/lib/agent/sessions", cache_size=20)
        >>> log = store.get_or_open_log("session-1")
        >>> store.save_summary(SessionSummary(session_id="session-1", title="Trip planning"))
    """

    def __init__(self, root: Union[str, Path], cache_size: int = DEFAULT_CACHE_SIZE):
        """
        Args:
            root: Directory holding one sub-directory per session; created if missing.
            cache_size: Maximum number of cached sessions.

        Raises:
            ConfigError: If the root cannot be created or is not writable.
            ValueError: If cache_size is smaller than 1.
        """
        if cache_size < 1:
            raise ValueError("cache_size must be at least 1")
        self._root = ensure_path(root, create=True, write_check=True)
        self._cache_size = cache_size
        self._cache: "OrderedDict[str, SessionContainer]" = OrderedDict()
        self._live_logs: "weakref.WeakValueDictionary[str, FileMessageLog]" = weakref.WeakValueDictionary()
        self._cache_lock = ReadWriteLock()
        # Recency updates happen under the shared section, so they get their own mutex.
        self._recency_lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0, "evictions": 0}
        logger.info(f"Session store initialized at {self._root} (cache size {cache_size})")

    @property
    def root(self) -> Path:
        return self._root

    def _session_dir(self, session_id: str) -> Path:
        if not session_id or session_id in (".", "..") or not _SESSION_ID_PATTERN.match(session_id):
            raise ValueError(f"Invalid session id: '{session_id}'")
        return self._root / session_id

    def _touch(self, session_id: str) -> None:
        with self._recency_lock:
            if session_id in self._cache:
                self._cache.move_to_end(session_id)
            self._stats["hits"] += 1

    def _put_unsafe(self, session_id: str, container: SessionContainer) -> None:
        """Insert or refresh a cache entry; caller holds the exclusive cache lock."""
        self._cache[session_id] = container
        self._cache.move_to_end(session_id)
        while len(self._cache) > self._cache_size:
            evicted_id, evicted = self._cache.popitem(last=False)
            evicted.message_log = None
            self._stats["evictions"] += 1
            logger.debug(f"Evicted session '{evicted_id}' from cache")

    # ------------------------------------------------------------------
    # Message logs
    # ------------------------------------------------------------------

    def get_message_log(self, session_id: str, create: bool = False) -> Optional[FileMessageLog]:
        """
        Return the message log of a session, opening it if it is not cached.

        Args:
            session_id: The session whose log is wanted.
            create: Create the session directory when it does not exist yet.

        Returns:
            The open log, or None if the session does not exist and ``create`` is False.

        Raises:
            ConfigError: If the session directory is not writable.
            CorruptedStoreError: If the stored log cannot be parsed.
        """
        session_dir = self._session_dir(session_id)
        self._cache_lock.acquire_read()
        held = "read"
        try:
            container = self._cache.get(session_id)
            if container is not None and container.message_log is not None:
                self._touch(session_id)
                return container.message_log

            if not self._cache_lock.try_upgrade():
                self._cache_lock.release_read()
                held = None
                self._cache_lock.acquire_write()
            held = "write"
            return self._open_log_unsafe(session_id, session_dir, create)
        finally:
            if held == "read":
                self._cache_lock.release_read()
            elif held == "write":
                self._cache_lock.release_write()

    def get_or_open_log(self, session_id: str) -> FileMessageLog:
        """Return the session's log, creating the session if needed."""
        log = self.get_message_log(session_id, create=True)
        if log is None:
            raise SessionStorageError(f"Could not open message log for session '{session_id}'")
        return log

    def _open_log_unsafe(self, session_id: str, session_dir: Path, create: bool) -> Optional[FileMessageLog]:
        # Another thread may have opened the log while the lock was released.
        container = self._cache.get(session_id)
        if container is not None and container.message_log is not None:
            self._cache.move_to_end(session_id)
            self._stats["hits"] += 1
            return container.message_log

        if not session_dir.is_dir():
            if not create:
                return None
            ensure_path(session_dir, create=True, write_check=True)

        log = self._live_logs.get(session_id)
        if log is None:
            self._stats["misses"] += 1
            logger.debug(f"Opening message log for session '{session_id}' at {session_dir}")
            log = FileMessageLog(session_dir)
            self._live_logs[session_id] = log
        else:
            logger.debug(f"Re-caching message log of session '{session_id}' still held by a caller")
        container = container or SessionContainer()
        container.message_log = log
        self._put_unsafe(session_id, container)
        return log

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def _read_summary_file(self, session_id: str) -> Optional[SessionSummary]:
        path = self._session_dir(session_id) / SUMMARY_FILE_NAME
        if not path.exists():
            return None
        try:
            return SessionSummary.model_validate_json(path.read_bytes())
        except ValidationError as e:
            logger.error(f"Corrupted session summary at {path}: {e}")
            raise CorruptedStoreError(str(path), "Unparseable session summary.") from e
        except OSError as e:
            logger.error(f"Failed to read session summary {path}: {e}", exc_info=True)
            raise SessionStorageError(f"Failed to read session summary {path}: {e}") from e

    def save_summary(self, summary: SessionSummary) -> SessionSummary:
        """
        Durably write a session summary and cache it.

        ``updated_at`` is bumped past the previously stored value when needed,
        so it strictly increases across saves.

        Returns:
            The summary as stored.

        Raises:
            SessionStorageError: If the summary cannot be written; the cache is unchanged.
        """
        session_id = summary.session_id
        session_dir = self._session_dir(session_id)
        with self._cache_lock.write_locked():
            ensure_path(session_dir, create=True, write_check=True)
            container = self._cache.get(session_id)
            previous = container.summary if container and container.summary else self._read_summary_file(session_id)

            update = {}
            if previous is not None and summary.updated_at <= previous.updated_at:
                update["updated_at"] = previous.updated_at + 1
            stored = summary.model_copy(update=update, deep=True)

            path = session_dir / SUMMARY_FILE_NAME
            try:
                write_bytes(path, stored.model_dump_json(by_alias=True).encode("utf-8"))
            except OSError as e:
                logger.error(f"Failed to write session summary {path}: {e}", exc_info=True)
                raise SessionStorageError(f"Failed to write session summary for '{session_id}': {e}") from e

            container = container or SessionContainer()
            container.summary = stored
            self._put_unsafe(session_id, container)
        logger.debug(f"Saved summary for session '{session_id}' (updated_at={stored.updated_at})")
        return stored.model_copy(deep=True)

    def session_summary(self, session_id: str) -> Optional[SessionSummary]:
        """
        Return a session's summary from cache, loading it from disk on a miss.

        Raises:
            CorruptedStoreError: If the stored summary cannot be parsed.
        """
        self._session_dir(session_id)
        with self._cache_lock.read_locked():
            container = self._cache.get(session_id)
            if container is not None and container.summary is not None:
                self._touch(session_id)
                return container.summary.model_copy(deep=True)

        with self._cache_lock.write_locked():
            container = self._cache.get(session_id)
            if container is not None and container.summary is not None:
                return container.summary.model_copy(deep=True)
            summary = self._read_summary_file(session_id)
            if summary is None:
                return None
            self._stats["misses"] += 1
            container = container or SessionContainer()
            container.summary = summary
            self._put_unsafe(session_id, container)
            return summary.model_copy(deep=True)

    def list_session_summaries(self) -> List[SessionSummary]:
        """
        Load the summary of every session directory that has one.

        Cached summaries are reused, but listing neither inserts into the cache
        nor refreshes recency, so it never evicts open message logs.
        """
        summaries: List[SessionSummary] = []
        for path in sorted(self._root.iterdir()):
            if not path.is_dir() or not _SESSION_ID_PATTERN.match(path.name):
                continue
            with self._cache_lock.read_locked():
                container = self._cache.get(path.name)
                cached = container.summary if container is not None else None
            if cached is not None:
                summaries.append(cached.model_copy(deep=True))
                continue
            summary = self._read_summary_file(path.name)
            if summary is not None:
                summaries.append(summary)
        return summaries

    def session_exists(self, session_id: str) -> bool:
        return self._session_dir(session_id).is_dir()

    def delete_session(self, session_id: str) -> bool:
        """
        Remove a session directory and evict it from the cache.

        Returns:
            True if the session existed on disk.

        Raises:
            SessionStorageError: If the directory cannot be removed.
        """
        session_dir = self._session_dir(session_id)
        with self._cache_lock.write_locked():
            live_log = self._live_logs.pop(session_id, None)
            container = self._cache.pop(session_id, None)
            if container is not None:
                container.message_log = None
            if live_log is not None:
                # Handles still held by callers must not keep serving deleted messages.
                live_log.purge()
            try:
                deleted = delete_tree(session_dir)
            except OSError as e:
                logger.error(f"Failed to delete session '{session_id}': {e}", exc_info=True)
                raise SessionStorageError(f"Failed to delete session '{session_id}': {e}") from e
        if deleted:
            logger.info(f"Deleted session '{session_id}'")
        return deleted

    def cache_stats(self) -> Dict[str, Any]:
        with self._recency_lock:
            return {
                "size": len(self._cache),
                "capacity": self._cache_size,
                **self._stats,
            }
