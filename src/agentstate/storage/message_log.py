# src/agentstate/storage/message_log.py
"""
Append-only, file-backed message log for a single session.

Each session directory holds one ``messages.jsonl`` file with one serialised
message per line. The whole file is loaded when the log is opened into an
in-memory index ordered by ``(timestamp, message_id)``; reads are served from
that index and never touch the disk.

Appends write the whole batch with a single fsynced write, and only then
update the index, so the index can never run ahead of what is durable.
"""

import bisect
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from ..exceptions import ConfigError, CorruptedStoreError, MessageStorageError
from ..models import (AgentMessage, AgentMessageType, BiScrollable, DataPointer, QueryDirection,
                      parse_message, serialize_message)
from .file_utils import ensure_path, truncate, write_bytes
from .locks import ReadWriteLock
from .pagination import MessageKey, MessagePredicate, page_messages

logger = logging.getLogger(__name__)

MESSAGES_FILE_NAME = "messages.jsonl"


class FileMessageLog:
    """
    Message log of one session, persisted as JSON lines.

    A malformed final line is treated as a torn write from a crash: it is
    dropped from the index and cut off before the next append. A malformed
    line anywhere else raises :class:`CorruptedStoreError`.

    Readers run concurrently; an append excludes readers and other appends.
    """

    def __init__(self, session_dir: Path):
        """
        Args:
            session_dir: Existing, writable directory of the session.

        Raises:
            ConfigError: If the directory or an existing log file is missing or not writable.
            CorruptedStoreError: If a line other than the last cannot be parsed.
        """
        self._dir = ensure_path(session_dir, create=False, write_check=True)
        self._path = self._dir / MESSAGES_FILE_NAME
        if self._path.exists() and not os.access(self._path, os.W_OK):
            raise ConfigError(f"Message log is not writable: {self._path}")

        self._lock = ReadWriteLock()
        self._keys: List[MessageKey] = []
        self._messages: Dict[MessageKey, AgentMessage] = {}
        self._truncate_to: Optional[int] = None
        self._needs_newline = False
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._keys)

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            data = self._path.read_bytes()
        except OSError as e:
            logger.error(f"Failed to read message log {self._path}: {e}", exc_info=True)
            raise MessageStorageError(f"Failed to read message log {self._path}: {e}") from e

        lines = data.split(b"\n")
        offset = 0
        last_index = max((i for i, line in enumerate(lines) if line.strip()), default=-1)
        for i, line in enumerate(lines):
            line_start = offset
            offset += len(line) + 1
            if not line.strip():
                continue
            try:
                message = parse_message(line)
            except ValidationError as e:
                if i == last_index:
                    logger.warning(f"Dropping incomplete trailing record in {self._path} "
                                   f"at byte {line_start}: {e.errors()[0].get('msg', e)}")
                    self._truncate_to = line_start
                    break
                logger.error(f"Corrupted record on line {i + 1} of {self._path}: {e}")
                raise CorruptedStoreError(str(self._path), f"Unparseable message on line {i + 1}.") from e
            self._insert(message)

        if self._truncate_to is None and data and not data.endswith(b"\n"):
            self._needs_newline = True
        logger.debug(f"Loaded {len(self._keys)} messages from {self._path}")

    def _insert(self, message: AgentMessage) -> None:
        key = message.ordering_key
        if key not in self._messages:
            bisect.insort(self._keys, key)
        self._messages[key] = message

    def append(self, messages: List[AgentMessage]) -> None:
        """
        Durably append a batch of messages.

        Raises:
            MessageStorageError: If serialisation or the write fails. The
                                 in-memory index is left unchanged.
        """
        if not messages:
            return
        try:
            payload = b"".join(serialize_message(m).encode("utf-8") + b"\n" for m in messages)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialise messages for {self._path}: {e}", exc_info=True)
            raise MessageStorageError(f"Failed to serialise messages: {e}") from e

        with self._lock.write_locked():
            if self._truncate_to is not None:
                restore_size = self._truncate_to
            else:
                restore_size = self._path.stat().st_size if self._path.exists() else 0
            try:
                if self._truncate_to is not None:
                    truncate(self._path, self._truncate_to)
                    self._truncate_to = None
                if self._needs_newline:
                    payload = b"\n" + payload
                write_bytes(self._path, payload, append=True)
                self._needs_newline = False
            except OSError as e:
                # A partial write may have reached the file; cut it off before the next append.
                self._truncate_to = restore_size if self._path.exists() else None
                logger.error(f"Failed to append {len(messages)} messages to {self._path}: {e}", exc_info=True)
                raise MessageStorageError(f"Failed to append messages to {self._path}: {e}") from e

            for message in messages:
                self._insert(message)
        logger.debug(f"Appended {len(messages)} messages to {self._path}")

    def read(
        self,
        count: int,
        skip_system_prompt: bool = False,
        pointer: Optional[DataPointer] = None,
        direction: QueryDirection = QueryDirection.OLDER,
        message_filter: Optional[MessagePredicate] = None,
    ) -> BiScrollable:
        """
        Read one page of messages.

        Args:
            count: Maximum number of messages to return after filtering.
            skip_system_prompt: Exclude system prompt messages.
            pointer: Edges already seen by the caller, or None for the first page.
            direction: OLDER pages backwards from ``pointer.older``; NEWER pages
                       forwards from ``pointer.newer``.
            message_filter: Extra predicate; messages failing it are skipped.

        Returns:
            A BiScrollable with messages in chronological order.

        Raises:
            InvalidPointerError: If the relevant cursor cannot be decoded.
        """
        predicate = message_filter
        if skip_system_prompt:
            def predicate(message: AgentMessage) -> bool:
                if message.message_type == AgentMessageType.SYSTEM_PROMPT_REQUEST_MESSAGE:
                    return False
                return message_filter is None or message_filter(message)

        with self._lock.read_locked():
            return page_messages(self._keys, self._messages, count, pointer, direction, predicate)

    def purge(self) -> bool:
        """Delete the log file and clear the index. Returns whether a file existed."""
        with self._lock.write_locked():
            existed = self._path.exists()
            if existed:
                try:
                    self._path.unlink()
                except OSError as e:
                    logger.error(f"Failed to delete message log {self._path}: {e}", exc_info=True)
                    raise MessageStorageError(f"Failed to delete message log {self._path}: {e}") from e
            self._keys.clear()
            self._messages.clear()
            self._truncate_to = None
            self._needs_newline = False
        return existed
