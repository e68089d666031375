# src/agentstate/storage/base_session.py
"""
Abstract Base Class for session stores.

This module defines the interface the agent orchestration layer uses to
persist session summaries and per-session message history. Implementations
differ in durability (disk vs. process memory) but must paginate identically.
"""

import abc
from typing import List, Optional

from ..models import AgentMessage, BiScrollable, DataPointer, QueryDirection, SessionSummary


class BaseSessionStore(abc.ABC):
    """
    Abstract Base Class for session storage.

    A session becomes known to a store when its summary is saved or its
    message log is explicitly opened. Reading an unknown session yields an
    empty result; writing messages to one is a usage error.
    """

    @abc.abstractmethod
    def delete_session(self, session_id: str) -> bool:
        """
        Delete a session, its summary and all of its messages.

        Args:
            session_id: The ID of the session to delete.

        Returns:
            True if the session existed and was deleted, False otherwise.
        """
        pass

    @abc.abstractmethod
    def open_session(self, session_id: str) -> None:
        """
        Make a session known to the store without saving a summary.

        Opening an already known session is a no-op.
        """
        pass

    @abc.abstractmethod
    def read_messages(
        self,
        session_id: str,
        count: int,
        skip_system_prompt: bool = False,
        pointer: Optional[DataPointer] = None,
        direction: QueryDirection = QueryDirection.OLDER,
    ) -> BiScrollable:
        """
        Read one page of a session's messages.

        Args:
            session_id: The session to read.
            count: Maximum number of messages to return (after filtering).
            skip_system_prompt: Exclude system prompt messages.
            pointer: Edges returned by a previous call, or None for the first page.
            direction: Which edge to advance.

        Returns:
            Messages in chronological order plus the updated pointer. An
            unknown session yields no items and an empty pointer.
        """
        pass

    @abc.abstractmethod
    def save_messages(self, session_id: str, run_id: str, messages: List[AgentMessage]) -> None:
        """
        Durably append messages produced by one run.

        Raises:
            SessionNotFoundError: If the session is not known to the store.
            MessageStorageError: If the append fails; nothing becomes visible.
        """
        pass

    @abc.abstractmethod
    def save_session(self, summary: SessionSummary) -> Optional[SessionSummary]:
        """
        Create or update a session summary.

        Returns:
            The stored summary. Its ``updated_at`` is strictly greater than that
            of any previously stored summary of the same session.
        """
        pass

    @abc.abstractmethod
    def session(self, session_id: str) -> Optional[SessionSummary]:
        """Return the summary of a session, or None if it has none."""
        pass

    @abc.abstractmethod
    def sessions(
        self,
        count: int,
        pointer: Optional[str] = None,
        direction: QueryDirection = QueryDirection.NEWER,
    ) -> BiScrollable:
        """
        List session summaries ordered by ``updated_at`` then ``session_id``.

        Args:
            count: Page size.
            pointer: ``pointer.newer`` (for NEWER) or ``pointer.older`` (for
                     OLDER) from a previous page, or None for the first page.
            direction: NEWER returns ascending pages, OLDER descending ones.
        """
        pass

    def close(self) -> None:
        """Release resources. The default implementation does nothing."""
        return None
