# src/agentstate/storage/file_session.py
"""
Filesystem-backed session store.

Composes :class:`DiskSessionSummaryStore` (session index and bounded cache)
with one :class:`FileMessageLog` per session, exposing the
:class:`BaseSessionStore` facade used by the orchestration layer.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from ..exceptions import SessionNotFoundError
from ..models import AgentMessage, BiScrollable, DataPointer, QueryDirection, SessionSummary
from .base_session import BaseSessionStore
from .pagination import page_sessions
from .summary_store import DEFAULT_CACHE_SIZE, DiskSessionSummaryStore

logger = logging.getLogger(__name__)


class FileSystemSessionStore(BaseSessionStore):
    """
    Stores each session in its own directory below ``root``.

    Only ``cache_size`` message logs are held in memory at once; evicted logs
    are reloaded from disk on their next access.
    """

    def __init__(self, root: Union[str, Path], cache_size: int = DEFAULT_CACHE_SIZE):
        self._summaries = DiskSessionSummaryStore(root, cache_size=cache_size)

    @property
    def summary_store(self) -> DiskSessionSummaryStore:
        return self._summaries

    def delete_session(self, session_id: str) -> bool:
        return self._summaries.delete_session(session_id)

    def open_session(self, session_id: str) -> None:
        self._summaries.get_or_open_log(session_id)

    def read_messages(
        self,
        session_id: str,
        count: int,
        skip_system_prompt: bool = False,
        pointer: Optional[DataPointer] = None,
        direction: QueryDirection = QueryDirection.OLDER,
    ) -> BiScrollable:
        log = self._summaries.get_message_log(session_id)
        if log is None:
            logger.debug(f"read_messages: session '{session_id}' not found, returning empty page")
            return BiScrollable(items=[], pointer=DataPointer())
        return log.read(count, skip_system_prompt=skip_system_prompt, pointer=pointer, direction=direction)

    def save_messages(self, session_id: str, run_id: str, messages: List[AgentMessage]) -> None:
        log = self._summaries.get_message_log(session_id)
        if log is None:
            logger.error(f"Cannot save messages for run '{run_id}': session '{session_id}' does not exist")
            raise SessionNotFoundError(session_id, "Message storage not found.")
        log.append(messages)
        logger.debug(f"Saved {len(messages)} messages of run '{run_id}' to session '{session_id}'")

    def save_session(self, summary: SessionSummary) -> Optional[SessionSummary]:
        return self._summaries.save_summary(summary)

    def session(self, session_id: str) -> Optional[SessionSummary]:
        return self._summaries.session_summary(session_id)

    def sessions(
        self,
        count: int,
        pointer: Optional[str] = None,
        direction: QueryDirection = QueryDirection.NEWER,
    ) -> BiScrollable:
        return page_sessions(self._summaries.list_session_summaries(), count, pointer, direction)
