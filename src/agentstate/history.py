# src/agentstate/history.py
"""
Helpers for turning a stored message log into prompt history.

- :func:`read_messages_since_id` pages backwards through a session until it
  reaches the last message covered by the session summary, then applies a
  chain of message selectors to the chronological result.
- :func:`rearrange_messages` places each tool call request directly before
  its response.
- Selectors are plain callables ``(session_id, messages) -> messages``; the
  classes below are the stock ones.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from .models import (AgentMessage, AgentMessageType, BiScrollable, DataPointer, QueryDirection, SystemPrompt, ToolCall,
                     ToolCallResponse)
from .storage.base_session import BaseSessionStore

logger = logging.getLogger(__name__)

MAX_HISTORICAL_MESSAGES_FETCH_COUNT = 100
DEFAULT_HISTORICAL_MESSAGES_FETCH_SIZE = 30

MessageSelector = Callable[[str, List[AgentMessage]], List[AgentMessage]]


def tool_call_id(message: AgentMessage) -> Optional[str]:
    """Tool call id of a tool call request or response, None for anything else."""
    match message:
        case ToolCall(tool_call_id=call_id) | ToolCallResponse(tool_call_id=call_id):
            return call_id
        case _:
            return None


def read_messages_since_id(
    store: BaseSessionStore,
    session_id: str,
    last_summarized_message_id: Optional[str],
    fetch_size: int = DEFAULT_HISTORICAL_MESSAGES_FETCH_SIZE,
    skip_system_prompt: bool = True,
    selectors: Sequence[MessageSelector] = (),
) -> BiScrollable:
    """
    Read every message newer than ``last_summarized_message_id``.

    The session is paged in the OLDER direction until the marker message is
    found or history runs out. Selectors see the complete chronological list,
    so they can reason about whole runs.

    Args:
        store: Session store to read from.
        session_id: Session to read.
        last_summarized_message_id: Newest message already covered by the
            summary; None reads the full history.
        fetch_size: Page size, clamped to [1, MAX_HISTORICAL_MESSAGES_FETCH_COUNT].
        skip_system_prompt: Exclude system prompts.
        selectors: Applied in order to the chronological messages.

    Returns:
        Messages in chronological order. The pointer's ``older`` edge is where
        reading stopped and its ``newer`` edge the newest message seen.
    """
    fetch_count = min(MAX_HISTORICAL_MESSAGES_FETCH_COUNT, max(1, fetch_size))
    logger.debug(f"Reading messages since id {last_summarized_message_id} for session {session_id}, "
                 f"{fetch_count} messages per page")

    collected: List[AgentMessage] = []
    pointer: Optional[DataPointer] = None
    newest_edge: Optional[str] = None
    while True:
        response = store.read_messages(session_id, fetch_count, skip_system_prompt, pointer, QueryDirection.OLDER)
        pointer = response.pointer
        newest_edge = newest_edge or pointer.newer
        batch = response.items
        if not batch:
            break

        if last_summarized_message_id is not None:
            found = next((i for i, m in enumerate(batch) if m.message_id == last_summarized_message_id), None)
            if found is not None:
                collected.extend(batch[found + 1:])
                break
        collected.extend(batch)
        if len(batch) < fetch_count or not pointer.older:
            break

    chronological = sorted(collected, key=lambda m: m.ordering_key)
    for selector in selectors:
        chronological = selector(session_id, chronological)

    return BiScrollable(items=chronological, pointer=DataPointer(older=pointer.older if pointer else None,
                                                                 newer=newest_edge))


def rearrange_messages(messages: List[AgentMessage]) -> List[AgentMessage]:
    """
    Reorder messages so that every tool call request is immediately followed
    by its response. Tool calls missing either half are dropped.
    """
    grouped: Dict[str, Dict[AgentMessageType, AgentMessage]] = defaultdict(dict)
    for message in messages:
        call_id = tool_call_id(message)
        if call_id is None:
            continue
        if not call_id:
            logger.warning(f"Tool call message with empty tool call id found: {message.message_id}")
            continue
        grouped[call_id][AgentMessageType(message.message_type)] = message

    rearranged: List[AgentMessage] = []
    processed = set()
    for message in messages:
        call_id = tool_call_id(message)
        if call_id is None:
            rearranged.append(message)
            continue
        if call_id in processed or call_id not in grouped:
            continue
        processed.add(call_id)
        pair = grouped[call_id]
        if len(pair) != 2:
            logger.warning(f"Tool call id {call_id} does not have both request and response")
            continue
        rearranged.append(pair[AgentMessageType.TOOL_CALL_REQUEST_MESSAGE])
        rearranged.append(pair[AgentMessageType.TOOL_CALL_RESPONSE_MESSAGE])
    return rearranged


# ---------------------------------------------------------------------------
# Selectors
# ---------------------------------------------------------------------------


class FullRunMessageSelector:
    """
    Keep only messages of runs that completed a request/response round trip:
    a user prompt answered by either text or structured output.
    """

    _TEXT_ROUND_TRIP = frozenset({AgentMessageType.USER_PROMPT_REQUEST_MESSAGE,
                                  AgentMessageType.TEXT_RESPONSE_MESSAGE})
    _STRUCTURED_ROUND_TRIP = frozenset({AgentMessageType.USER_PROMPT_REQUEST_MESSAGE,
                                        AgentMessageType.STRUCTURED_OUTPUT_RESPONSE_MESSAGE})

    def __call__(self, session_id: str, messages: List[AgentMessage]) -> List[AgentMessage]:
        types_by_run: Dict[str, set] = defaultdict(set)
        for message in messages:
            types_by_run[message.run_id].add(AgentMessageType(message.message_type))
        complete_runs = {
            run_id for run_id, types in types_by_run.items()
            if self._TEXT_ROUND_TRIP <= types or self._STRUCTURED_ROUND_TRIP <= types
        }
        return [m for m in messages if m.run_id in complete_runs]


@dataclass
class _ToolCallPairing:
    has_request: bool = False
    has_response: bool = False


class UnpairedToolCallsRemover:
    """Drop tool call requests without a response and responses without a request."""

    def __call__(self, session_id: str, messages: List[AgentMessage]) -> List[AgentMessage]:
        pairings: Dict[str, _ToolCallPairing] = defaultdict(_ToolCallPairing)
        for message in messages:
            match message:
                case ToolCall(tool_call_id=call_id):
                    pairings[call_id].has_request = True
                case ToolCallResponse(tool_call_id=call_id):
                    pairings[call_id].has_response = True

        unpaired = {call_id for call_id, p in pairings.items() if p.has_request != p.has_response}
        if unpaired:
            logger.debug(f"Found unpaired tool call ids in session {session_id}: {sorted(unpaired)}")
        return [m for m in messages if tool_call_id(m) not in unpaired]


class RemoveAllToolCallsSelector:
    """Drop every tool call request and response."""

    def __call__(self, session_id: str, messages: List[AgentMessage]) -> List[AgentMessage]:
        return [m for m in messages if tool_call_id(m) is None]


def remove_failed_tool_calls(session_id: str, messages: List[AgentMessage]) -> List[AgentMessage]:
    """Drop failed tool call responses together with the requests that caused them."""
    failed = set()
    for message in messages:
        match message:
            case ToolCallResponse(tool_call_id=call_id) if not message.success:
                failed.add(call_id)
    return [m for m in messages if tool_call_id(m) not in failed]


def remove_system_prompts(session_id: str, messages: List[AgentMessage]) -> List[AgentMessage]:
    return [m for m in messages if not isinstance(m, SystemPrompt)]
