# src/agentstate/storage/pagination.py
"""
Cursor encoding and page slicing for bidirectional pagination.

A cursor is the base64 encoding of a small JSON object naming one position in
an ordered sequence. Message cursors hold ``{"messageId", "timestamp"}``;
session listing cursors hold ``{"timestamp", "id"}``. Clients treat them as
opaque strings.

Message pages follow a two-edge protocol: every response carries the edge it
just advanced plus the opposite edge, which is only filled in from the page
when the client did not know it yet. Either edge can then be advanced
independently on later calls without losing the other.
"""

import base64
import binascii
import bisect
import json
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..exceptions import InvalidPointerError
from ..models import AgentMessage, BiScrollable, DataPointer, QueryDirection, SessionSummary

MessageKey = Tuple[int, str]
MessagePredicate = Callable[[AgentMessage], bool]


def _encode(payload: dict) -> str:
    return base64.b64encode(json.dumps(payload, separators=(",", ":")).encode("utf-8")).decode("ascii")


def _decode(pointer: str) -> dict:
    try:
        payload = json.loads(base64.b64decode(pointer.encode("ascii"), validate=True))
    except (binascii.Error, ValueError, UnicodeError) as e:
        raise InvalidPointerError(pointer) from e
    if not isinstance(payload, dict):
        raise InvalidPointerError(pointer)
    return payload


def encode_message_pointer(message: AgentMessage) -> str:
    return _encode({"messageId": message.message_id, "timestamp": message.timestamp})


def decode_message_pointer(pointer: str) -> MessageKey:
    """Decode a message cursor into its ``(timestamp, message_id)`` ordering key."""
    payload = _decode(pointer)
    try:
        return int(payload["timestamp"]), str(payload["messageId"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidPointerError(pointer) from e


def encode_session_pointer(summary: SessionSummary) -> str:
    return _encode({"timestamp": summary.updated_at, "id": summary.session_id})


def decode_session_pointer(pointer: str) -> Tuple[int, str]:
    payload = _decode(pointer)
    try:
        return int(payload["timestamp"]), str(payload["id"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidPointerError(pointer) from e


def page_messages(
    keys: Sequence[MessageKey],
    messages: Dict[MessageKey, AgentMessage],
    count: int,
    pointer: Optional[DataPointer],
    direction: QueryDirection,
    predicate: Optional[MessagePredicate] = None,
) -> BiScrollable:
    """
    Slice one page out of an ordered message index.

    Args:
        keys: Ordering keys sorted ascending.
        messages: Message for every key.
        count: Maximum number of messages to return, counted after filtering.
        pointer: Edges the client has already seen; ``None`` starts from the
                 newest (OLDER) or oldest (NEWER) end.
        direction: OLDER scans strictly before ``pointer.older`` in descending
                   order; NEWER scans strictly after ``pointer.newer`` ascending.
        predicate: Messages for which it returns False are skipped before the
                   count cutoff.

    Returns:
        The page in chronological order and the updated pointer.
    """
    older = (pointer.older if pointer else None) or None
    newer = (pointer.newer if pointer else None) or None

    selected: List[AgentMessage] = []
    if count > 0:
        if direction == QueryDirection.NEWER:
            start = bisect.bisect_right(keys, decode_message_pointer(newer)) if newer else 0
            candidates = (messages[keys[i]] for i in range(start, len(keys)))
        else:
            end = bisect.bisect_left(keys, decode_message_pointer(older)) if older else len(keys)
            candidates = (messages[keys[i]] for i in range(end - 1, -1, -1))
        for message in candidates:
            if predicate is not None and not predicate(message):
                continue
            selected.append(message)
            if len(selected) >= count:
                break
        if direction == QueryDirection.OLDER:
            selected.reverse()

    first = selected[0] if selected else None
    last = selected[-1] if selected else None
    if direction == QueryDirection.NEWER:
        new_newer = encode_message_pointer(last) if last else newer
        new_older = encode_message_pointer(first) if (older is None and first) else older
    else:
        new_older = encode_message_pointer(first) if first else older
        new_newer = encode_message_pointer(last) if (newer is None and last) else newer
    return BiScrollable(items=selected, pointer=DataPointer(older=new_older, newer=new_newer))


def page_sessions(
    summaries: Sequence[SessionSummary],
    count: int,
    pointer: Optional[str],
    direction: QueryDirection,
) -> BiScrollable:
    """
    Paginate session summaries ordered by ``(updated_at, session_id)``.

    NEWER pages are ascending and resume strictly after ``pointer``; OLDER
    pages are descending and resume strictly before it. The edge opposite to
    ``direction`` is only reported on the first page (``pointer`` empty), and
    an empty page reports no edges at all.
    """
    position = decode_session_pointer(pointer) if pointer else None

    def sort_key(summary: SessionSummary) -> Tuple[int, str]:
        return summary.updated_at, summary.session_id

    if direction == QueryDirection.NEWER:
        ordered = sorted(summaries, key=sort_key)
        if position is not None:
            ordered = [s for s in ordered if sort_key(s) > position]
    else:
        ordered = sorted(summaries, key=sort_key, reverse=True)
        if position is not None:
            ordered = [s for s in ordered if sort_key(s) < position]

    page = ordered[:max(count, 0)]
    if not page:
        return BiScrollable(items=[], pointer=DataPointer())

    first_ptr = encode_session_pointer(page[0])
    last_ptr = encode_session_pointer(page[-1])
    oldest_ptr, newest_ptr = (first_ptr, last_ptr) if direction == QueryDirection.NEWER else (last_ptr, first_ptr)

    older = oldest_ptr if direction == QueryDirection.OLDER or not pointer else None
    newer = newest_ptr if direction == QueryDirection.NEWER or not pointer else None
    return BiScrollable(items=page, pointer=DataPointer(older=older, newer=newer))
