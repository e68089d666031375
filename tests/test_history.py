# tests/test_history.py
"""
Tests for reading prompt history from a session store and the stock
message selectors.
"""

import pytest

from agentstate.history import (MAX_HISTORICAL_MESSAGES_FETCH_COUNT, FullRunMessageSelector,
                                RemoveAllToolCallsSelector, UnpairedToolCallsRemover, read_messages_since_id,
                                rearrange_messages, remove_failed_tool_calls, remove_system_prompts, tool_call_id)
from agentstate.models import ErrorType, StructuredOutput
from agentstate.storage.volatile_session import InMemorySessionStore
from conftest import (make_system_prompt, make_text, make_texts, make_tool_call, make_tool_response,
                      make_user_prompt)


def _ids(messages):
    return [m.message_id for m in messages]


@pytest.fixture
def store():
    store = InMemorySessionStore()
    store.open_session("session-1")
    return store


# =============================================================================
# READING HISTORY
# =============================================================================


class TestReadMessagesSinceId:
    """Tests for read_messages_since_id."""

    def test_reads_everything_after_marker(self, store):
        """Test that only messages newer than the summarised one are returned."""
        store.save_messages("session-1", "run-1", make_texts(10))

        result = read_messages_since_id(store, "session-1", "m004", fetch_size=3)

        assert _ids(result.items) == ["m005", "m006", "m007", "m008", "m009"]

    def test_no_marker_reads_full_history(self, store):
        store.save_messages("session-1", "run-1", make_texts(7))

        result = read_messages_since_id(store, "session-1", None, fetch_size=2)

        assert _ids(result.items) == [f"m{i:03d}" for i in range(7)]

    def test_unknown_marker_reads_full_history(self, store):
        store.save_messages("session-1", "run-1", make_texts(4))

        result = read_messages_since_id(store, "session-1", "does-not-exist", fetch_size=3)

        assert len(result.items) == 4

    def test_marker_is_newest_message(self, store):
        store.save_messages("session-1", "run-1", make_texts(4))

        assert read_messages_since_id(store, "session-1", "m003").items == []

    def test_system_prompts_skipped_by_default(self, store):
        store.save_messages("session-1", "run-1", [make_system_prompt(0)] + make_texts(2, start=1))

        skipped = read_messages_since_id(store, "session-1", None)
        kept = read_messages_since_id(store, "session-1", None, skip_system_prompt=False)

        assert _ids(skipped.items) == ["m001", "m002"]
        assert _ids(kept.items) == ["m000", "m001", "m002"]

    def test_fetch_size_is_clamped(self, store):
        """Test that oversized and zero fetch sizes still read everything."""
        store.save_messages("session-1", "run-1", make_texts(MAX_HISTORICAL_MESSAGES_FETCH_COUNT + 5))

        big = read_messages_since_id(store, "session-1", None, fetch_size=10_000)
        tiny = read_messages_since_id(store, "session-1", "m100", fetch_size=0)

        assert len(big.items) == MAX_HISTORICAL_MESSAGES_FETCH_COUNT + 5
        assert _ids(tiny.items) == ["m101", "m102", "m103", "m104"]

    def test_unknown_session(self):
        result = read_messages_since_id(InMemorySessionStore(), "missing", None)

        assert result.items == []

    def test_selectors_applied_in_order(self, store):
        store.save_messages("session-1", "run-1", make_texts(4))
        seen = []

        def first(session_id, messages):
            seen.append(("first", _ids(messages)))
            return messages[1:]

        def second(session_id, messages):
            seen.append(("second", _ids(messages)))
            return messages

        result = read_messages_since_id(store, "session-1", None, selectors=[first, second])

        assert seen == [("first", ["m000", "m001", "m002", "m003"]), ("second", ["m001", "m002", "m003"])]
        assert _ids(result.items) == ["m001", "m002", "m003"]

    def test_pointer_edges(self, store):
        """Test that the pointer brackets what was read."""
        store.save_messages("session-1", "run-1", make_texts(5))

        result = read_messages_since_id(store, "session-1", None, fetch_size=2)

        assert result.pointer.newer is not None
        assert result.pointer.older is not None


# =============================================================================
# TOOL CALL HANDLING
# =============================================================================


class TestRearrangeMessages:
    """Tests for rearrange_messages."""

    def test_request_placed_before_response(self):
        """Test that each tool call pair ends up adjacent, request first."""
        messages = [make_user_prompt(0), make_tool_call(1, "t1"), make_tool_call(2, "t2"),
                    make_tool_response(3, "t2"), make_tool_response(4, "t1"), make_text(5)]

        result = rearrange_messages(messages)

        assert _ids(result) == ["m000", "m001", "m004", "m002", "m003", "m005"]

    def test_incomplete_pairs_dropped(self):
        messages = [make_tool_call(0, "t1"), make_text(1), make_tool_response(2, "t2")]

        assert _ids(rearrange_messages(messages)) == ["m001"]

    def test_tool_call_id(self):
        assert tool_call_id(make_tool_call(0, "t9")) == "t9"
        assert tool_call_id(make_tool_response(0, "t9")) == "t9"
        assert tool_call_id(make_text(0)) is None


class TestSelectors:
    """Tests for the stock message selectors."""

    def test_full_run_selector(self):
        """Test that only runs with a prompt and a final answer are kept."""
        complete = [make_user_prompt(0, run_id="a"), make_text(1, run_id="a")]
        structured = [make_user_prompt(2, run_id="b"),
                      StructuredOutput(session_id="session-1", run_id="b", message_id="m003",
                                       timestamp=1_003, content="{}")]
        unanswered = [make_user_prompt(4, run_id="c"), make_tool_call(5, "t1", run_id="c")]

        result = FullRunMessageSelector()("session-1", complete + structured + unanswered)

        assert _ids(result) == ["m000", "m001", "m002", "m003"]

    def test_unpaired_tool_calls_removed(self):
        messages = [make_tool_call(0, "t1"), make_tool_response(1, "t1"), make_tool_call(2, "t2"),
                    make_tool_response(3, "t3"), make_text(4)]

        result = UnpairedToolCallsRemover()("session-1", messages)

        assert _ids(result) == ["m000", "m001", "m004"]

    def test_remove_all_tool_calls(self):
        messages = [make_tool_call(0, "t1"), make_tool_response(1, "t1"), make_text(2)]

        assert _ids(RemoveAllToolCallsSelector()("session-1", messages)) == ["m002"]

    def test_remove_failed_tool_calls(self):
        """Test that a failed response is removed together with its request."""
        messages = [make_tool_call(0, "ok"), make_tool_response(1, "ok", error_type=ErrorType.SUCCESS),
                    make_tool_call(2, "bad"),
                    make_tool_response(3, "bad", error_type=ErrorType.TOOL_CALL_PERMANENT_FAILURE)]

        assert _ids(remove_failed_tool_calls("session-1", messages)) == ["m000", "m001"]

    def test_remove_system_prompts(self):
        messages = [make_system_prompt(0), make_text(1)]

        assert _ids(remove_system_prompts("session-1", messages)) == ["m001"]
