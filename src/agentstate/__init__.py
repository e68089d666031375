# src/agentstate/__init__.py
"""
agentstate: persistence layer for conversational agents.

Provides an append-only per-session message log with bidirectional cursor
pagination, a bounded cache of session handles backed by durable summaries,
and a scoped, similarity-ranked agent memory store with interchangeable
in-memory, filesystem and ChromaDB backends.
"""

from .config import StorageConfig, load_config
from .exceptions import (AgentStateError, ConfigError, CorruptedStoreError, EmbeddingError, InvalidPointerError,
                         MemoryStorageError, MessageStorageError, SessionNotFoundError, SessionStorageError,
                         StorageError)
from .models import (AgentMemory, AgentMessage, AgentMessageType, BiScrollable, DataPointer, ErrorType,
                     GenericResource, GenericText, MemoryScope, MemoryType, QueryDirection, SessionSummary,
                     StructuredOutput, SystemPrompt, Text, ToolCall, ToolCallResponse, UserPrompt)
from .storage import (FileSystemMemoryStore, FileSystemSessionStore, InMemoryMemoryStore, InMemorySessionStore,
                      StorageManager)

__version__ = "0.1.0"

__all__ = [
    "AgentMemory",
    "AgentMessage",
    "AgentMessageType",
    "AgentStateError",
    "BiScrollable",
    "ConfigError",
    "CorruptedStoreError",
    "DataPointer",
    "EmbeddingError",
    "ErrorType",
    "FileSystemMemoryStore",
    "FileSystemSessionStore",
    "GenericResource",
    "GenericText",
    "InMemoryMemoryStore",
    "InMemorySessionStore",
    "InvalidPointerError",
    "MemoryScope",
    "MemoryStorageError",
    "MemoryType",
    "MessageStorageError",
    "QueryDirection",
    "SessionNotFoundError",
    "SessionStorageError",
    "SessionSummary",
    "StorageConfig",
    "StorageError",
    "StructuredOutput",
    "SystemPrompt",
    "Text",
    "ToolCall",
    "ToolCallResponse",
    "UserPrompt",
    "load_config",
]
