# tests/conftest.py
"""
Shared fixtures for agentstate tests.

Provides message builders, a deterministic embedding model whose vectors are
chosen by the test, and parametrized session and memory store fixtures so
that every backend is held to the same contract.
"""

import uuid
from typing import Dict, List, Optional

import pytest

from agentstate.embedding.base import BaseEmbeddingModel
from agentstate.models import SystemPrompt, Text, ToolCall, ToolCallResponse, UserPrompt
from agentstate.storage.file_session import FileSystemSessionStore
from agentstate.storage.filesystem_memory import FileSystemMemoryStore
from agentstate.storage.inmemory_memory import InMemoryMemoryStore
from agentstate.storage.volatile_session import InMemorySessionStore

# =============================================================================
# EMBEDDING
# =============================================================================


class FakeEmbedding(BaseEmbeddingModel):
    """
    Embedding model returning preset vectors.

    Texts without a preset vector map to a fixed, non-zero fallback so that
    cosine similarity stays defined for every backend.
    """

    model_name = "fake"

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, fallback: Optional[List[float]] = None):
        super().__init__({})
        self.vectors = dict(vectors or {})
        self.fallback = fallback or [0.1, 0.1, 0.1]
        self.calls: List[str] = []

    def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        return list(self.vectors.get(text, self.fallback))


class FailingEmbedding(BaseEmbeddingModel):
    model_name = "failing"

    def embed(self, text: str) -> List[float]:
        raise RuntimeError("model unavailable")


@pytest.fixture
def fake_embedding() -> FakeEmbedding:
    return FakeEmbedding({
        "paris": [1.0, 0.0, 0.0],
        "capital of france is paris": [0.9, 0.1, 0.0],
        "berlin is in germany": [0.1, 0.9, 0.0],
        "the user likes jazz": [0.0, 0.1, 0.9],
    })


# =============================================================================
# MESSAGES
# =============================================================================


def make_text(i: int, session_id: str = "session-1", run_id: str = "run-1", content: Optional[str] = None) -> Text:
    """Text message with a deterministic id and timestamp derived from ``i``."""
    return Text(session_id=session_id, run_id=run_id, message_id=f"m{i:03d}",
                timestamp=1_000 + i, content=content or f"message {i}")


def make_texts(n: int, start: int = 0, **kwargs) -> List[Text]:
    return [make_text(i, **kwargs) for i in range(start, start + n)]


def make_system_prompt(i: int, session_id: str = "session-1", run_id: str = "run-1") -> SystemPrompt:
    return SystemPrompt(session_id=session_id, run_id=run_id, message_id=f"m{i:03d}",
                        timestamp=1_000 + i, content="You are a helpful agent.")


def make_user_prompt(i: int, session_id: str = "session-1", run_id: str = "run-1") -> UserPrompt:
    return UserPrompt(session_id=session_id, run_id=run_id, message_id=f"m{i:03d}",
                      timestamp=1_000 + i, content=f"question {i}")


def make_tool_call(i: int, call_id: str, session_id: str = "session-1", run_id: str = "run-1") -> ToolCall:
    return ToolCall(session_id=session_id, run_id=run_id, message_id=f"m{i:03d}", timestamp=1_000 + i,
                    tool_call_id=call_id, tool_name="search", arguments='{"q": "weather"}')


def make_tool_response(i: int, call_id: str, error_type=None, session_id: str = "session-1",
                       run_id: str = "run-1") -> ToolCallResponse:
    return ToolCallResponse(session_id=session_id, run_id=run_id, message_id=f"m{i:03d}", timestamp=1_000 + i,
                            tool_call_id=call_id, tool_name="search", response="sunny", error_type=error_type)


# =============================================================================
# STORES
# =============================================================================


@pytest.fixture(params=["file", "memory"])
def session_store(request, tmp_path):
    """Every session store backend."""
    if request.param == "file":
        store = FileSystemSessionStore(tmp_path / "sessions", cache_size=4)
    else:
        store = InMemorySessionStore()
    yield store
    store.close()


@pytest.fixture(params=["memory", "file", "chromadb"])
def memory_store(request, tmp_path, fake_embedding):
    """Every memory store backend, sharing the same fake embedding model."""
    if request.param == "memory":
        store = InMemoryMemoryStore(fake_embedding)
    elif request.param == "file":
        store = FileSystemMemoryStore(tmp_path / "memories", fake_embedding)
    else:
        pytest.importorskip("chromadb")
        from agentstate.storage.chromadb_memory import ChromaMemoryStore
        store = ChromaMemoryStore(fake_embedding, collection_prefix=f"t{uuid.uuid4().hex}")
    yield store
    store.close()
