# src/agentstate/storage/volatile_session.py
"""
In-memory session store.

Implements the same facade and pagination semantics as
:class:`FileSystemSessionStore` without any durability. Intended for tests,
short-lived agents, and as a reference for new backends.
"""

import bisect
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..exceptions import SessionNotFoundError
from ..models import AgentMessage, AgentMessageType, BiScrollable, DataPointer, QueryDirection, SessionSummary
from .base_session import BaseSessionStore
from .pagination import MessageKey, page_messages, page_sessions

logger = logging.getLogger(__name__)


@dataclass
class _VolatileSession:
    summary: Optional[SessionSummary] = None
    keys: List[MessageKey] = field(default_factory=list)
    messages: Dict[MessageKey, AgentMessage] = field(default_factory=dict)


class InMemorySessionStore(BaseSessionStore):
    """Thread-safe session store keeping everything in process memory."""

    def __init__(self) -> None:
        self._sessions: Dict[str, _VolatileSession] = {}
        self._lock = threading.RLock()

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def open_session(self, session_id: str) -> None:
        with self._lock:
            self._sessions.setdefault(session_id, _VolatileSession())

    def read_messages(
        self,
        session_id: str,
        count: int,
        skip_system_prompt: bool = False,
        pointer: Optional[DataPointer] = None,
        direction: QueryDirection = QueryDirection.OLDER,
    ) -> BiScrollable:
        predicate = None
        if skip_system_prompt:
            def predicate(message: AgentMessage) -> bool:
                return message.message_type != AgentMessageType.SYSTEM_PROMPT_REQUEST_MESSAGE

        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return BiScrollable(items=[], pointer=DataPointer())
            return page_messages(session.keys, session.messages, count, pointer, direction, predicate)

    def save_messages(self, session_id: str, run_id: str, messages: List[AgentMessage]) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id, "Message storage not found.")
            for message in messages:
                key = message.ordering_key
                if key not in session.messages:
                    bisect.insort(session.keys, key)
                session.messages[key] = message
        logger.debug(f"Stored {len(messages)} messages of run '{run_id}' for session '{session_id}'")

    def save_session(self, summary: SessionSummary) -> Optional[SessionSummary]:
        with self._lock:
            session = self._sessions.setdefault(summary.session_id, _VolatileSession())
            previous = session.summary
            update = {}
            if previous is not None and summary.updated_at <= previous.updated_at:
                update["updated_at"] = previous.updated_at + 1
            session.summary = summary.model_copy(update=update, deep=True)
            return session.summary.model_copy(deep=True)

    def session(self, session_id: str) -> Optional[SessionSummary]:
        with self._lock:
            session = self._sessions.get(session_id)
            return session.summary.model_copy(deep=True) if session and session.summary else None

    def sessions(
        self,
        count: int,
        pointer: Optional[str] = None,
        direction: QueryDirection = QueryDirection.NEWER,
    ) -> BiScrollable:
        with self._lock:
            summaries = [s.summary.model_copy(deep=True) for s in self._sessions.values() if s.summary is not None]
        return page_sessions(summaries, count, pointer, direction)
