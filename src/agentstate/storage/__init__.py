# src/agentstate/storage/__init__.py
"""
Storage backends for session history, session summaries and agent memories.
"""

from .base_memory import BaseMemoryStore, cosine_similarity, memory_id
from .base_session import BaseSessionStore
from .chromadb_memory import ChromaMemoryStore
from .file_session import FileSystemSessionStore
from .filesystem_memory import FileSystemMemoryStore
from .inmemory_memory import InMemoryMemoryStore
from .manager import StorageManager
from .message_log import FileMessageLog
from .summary_store import DiskSessionSummaryStore
from .volatile_session import InMemorySessionStore

__all__ = [
    "BaseMemoryStore",
    "BaseSessionStore",
    "ChromaMemoryStore",
    "DiskSessionSummaryStore",
    "FileMessageLog",
    "FileSystemMemoryStore",
    "FileSystemSessionStore",
    "InMemoryMemoryStore",
    "InMemorySessionStore",
    "StorageManager",
    "cosine_similarity",
    "memory_id",
]
