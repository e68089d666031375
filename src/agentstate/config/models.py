# src/agentstate/config/models.py
"""
Pydantic models for agentstate configuration validation.

The configuration is split into one section per collaborator:

- ``[session]``: where session directories live and how many message logs
  may be open at once.
- ``[memory]``: which memory backend to use and where it keeps its data.
- ``[embedding]``: which embedding model turns memory content into vectors.
- ``[logging]``: handler settings applied by
  :meth:`agentstate.storage.StorageManager.configure_logging`.
"""

import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..logging_config import DEFAULT_LOGGING_CONFIG, FILE_MODES

SESSION_STORE_TYPES = ("file", "memory")
MEMORY_STORE_TYPES = ("memory", "file", "chromadb")
EMBEDDING_TYPES = ("hashing", "sentence_transformer")


def _expand(path: Optional[str]) -> Optional[str]:
    if path is None:
        return None
    return os.path.expandvars(os.path.expanduser(path))


class SessionStoreConfig(BaseModel):
    """Session store configuration."""

    type: str = Field("file", description="Session store backend ('file' or 'memory')")
    path: Optional[str] = Field(
        "~/.local/share/agentstate/sessions",
        description="Root directory holding one sub-directory per session (file backend only)",
    )
    cache_size: int = Field(20, ge=1, description="Maximum number of message logs kept open at once")

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        v = v.lower()
        if v not in SESSION_STORE_TYPES:
            raise ValueError(f"Unsupported session store type '{v}'. Expected one of {SESSION_STORE_TYPES}")
        return v

    @field_validator("path")
    @classmethod
    def expand_path(cls, v: Optional[str]) -> Optional[str]:
        """Expand ~ and environment variables in path."""
        return _expand(v)

    @model_validator(mode="after")
    def check_path(self) -> "SessionStoreConfig":
        if self.type == "file" and not self.path:
            raise ValueError("Session store 'path' is required when type is 'file'.")
        return self


class MemoryStoreConfig(BaseModel):
    """Agent memory store configuration."""

    type: str = Field("file", description="Memory backend ('memory', 'file' or 'chromadb')")
    path: Optional[str] = Field(
        "~/.local/share/agentstate/memories",
        description="Data directory of the file backend, or of a persistent ChromaDB client",
    )
    collection_prefix: Optional[str] = Field(
        None, description="Optional prefix prepended to the ChromaDB collection name"
    )

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        v = v.lower()
        if v not in MEMORY_STORE_TYPES:
            raise ValueError(f"Unsupported memory store type '{v}'. Expected one of {MEMORY_STORE_TYPES}")
        return v

    @field_validator("path")
    @classmethod
    def expand_path(cls, v: Optional[str]) -> Optional[str]:
        """Expand ~ and environment variables in path."""
        return _expand(v)

    @model_validator(mode="after")
    def check_path(self) -> "MemoryStoreConfig":
        if self.type == "file" and not self.path:
            raise ValueError("Memory store 'path' is required when type is 'file'.")
        return self


class EmbeddingConfig(BaseModel):
    """Embedding model configuration."""

    type: str = Field("hashing", description="Embedding model ('hashing' or 'sentence_transformer')")
    dimension: int = Field(256, ge=8, description="Vector size of the hashing embedder")
    model_name_or_path: str = Field(
        "all-MiniLM-L6-v2", description="Model identifier for sentence-transformers"
    )
    device: Optional[str] = Field(None, description="Torch device for sentence-transformers (e.g. 'cpu')")

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        v = v.lower()
        if v not in EMBEDDING_TYPES:
            raise ValueError(f"Unsupported embedding type '{v}'. Expected one of {EMBEDDING_TYPES}")
        return v


class StorageConfig(BaseModel):
    """Top-level agentstate configuration."""

    session: SessionStoreConfig = Field(default_factory=SessionStoreConfig)
    memory: MemoryStoreConfig = Field(default_factory=MemoryStoreConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    logging: Dict[str, Any] = Field(
        default_factory=dict,
        description="Logging section applied by StorageManager.configure_logging, see agentstate.logging_config",
    )

    @field_validator("logging")
    @classmethod
    def validate_logging(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        unknown = sorted(set(v) - set(DEFAULT_LOGGING_CONFIG))
        if unknown:
            raise ValueError(f"Unknown logging settings {unknown}. Expected keys from {sorted(DEFAULT_LOGGING_CONFIG)}")
        if "file_mode" in v and v["file_mode"] not in FILE_MODES:
            raise ValueError(f"Unsupported logging file_mode '{v['file_mode']}'. Expected one of {FILE_MODES}")
        return v
