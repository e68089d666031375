# src/agentstate/config/__init__.py
"""
Configuration package for agentstate.

Environment variables:
    - Prefix: AGENTSTATE_
    - Nested keys use double underscores: AGENTSTATE_SESSION__CACHE_SIZE
"""

from .loader import load_config
from .models import EmbeddingConfig, MemoryStoreConfig, SessionStoreConfig, StorageConfig

__all__ = [
    "EmbeddingConfig",
    "MemoryStoreConfig",
    "SessionStoreConfig",
    "StorageConfig",
    "load_config",
]
