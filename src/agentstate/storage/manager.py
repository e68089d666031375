# src/agentstate/storage/manager.py
"""
Storage Manager for agentstate.

Builds the session store, memory store and embedding model selected by a
:class:`StorageConfig`, and applies its ``[logging]`` section on request.
The manager owns the instances it creates; callers pass the manager (or the
stores it hands out) to whatever needs them.
"""

import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Type

from ..config.models import StorageConfig
from ..embedding.base import BaseEmbeddingModel
from ..embedding.hashing import HashingEmbedding
from ..embedding.sentence_transformer import SentenceTransformerEmbedding
from ..exceptions import ConfigError
from ..logging_config import configure_logging
from .base_memory import BaseMemoryStore
from .base_session import BaseSessionStore
from .chromadb_memory import ChromaMemoryStore
from .file_session import FileSystemSessionStore
from .filesystem_memory import FileSystemMemoryStore
from .inmemory_memory import InMemoryMemoryStore
from .volatile_session import InMemorySessionStore

logger = logging.getLogger(__name__)

# --- Mappings from config type string to class ---
SESSION_STORE_MAP: Dict[str, Type[BaseSessionStore]] = {
    "file": FileSystemSessionStore,
    "memory": InMemorySessionStore,
}

MEMORY_STORE_MAP: Dict[str, Type[BaseMemoryStore]] = {
    "memory": InMemoryMemoryStore,
    "file": FileSystemMemoryStore,
    "chromadb": ChromaMemoryStore,
}

EMBEDDING_MODEL_MAP: Dict[str, Type[BaseEmbeddingModel]] = {
    "hashing": HashingEmbedding,
    "sentence_transformer": SentenceTransformerEmbedding,
}
# --- End Mappings ---


class StorageManager:
    """
    Creates and owns the configured storage backends.

    Backends are created lazily on first access and reused afterwards.
    """

    def __init__(self, config: Optional[StorageConfig] = None):
        self._config = config or StorageConfig()
        self._lock = threading.Lock()
        self._session_store: Optional[BaseSessionStore] = None
        self._memory_store: Optional[BaseMemoryStore] = None
        self._embedding_model: Optional[BaseEmbeddingModel] = None
        logger.info(f"StorageManager initialized (session={self._config.session.type}, "
                    f"memory={self._config.memory.type}, embedding={self._config.embedding.type})")

    @property
    def config(self) -> StorageConfig:
        return self._config

    def configure_logging(self, app_name: str = "agentstate", force_reconfigure: bool = False) -> Optional[Path]:
        """
        Install log handlers as described by the ``[logging]`` config section.

        Returns:
            The log file path, or None when file logging is off or failed.
        """
        return configure_logging(app_name=app_name, config=self._config.logging, force_reconfigure=force_reconfigure)

    def get_session_store(self) -> BaseSessionStore:
        """
        Return the configured session store.

        Raises:
            ConfigError: If the configured type is unknown or the store cannot be created.
        """
        with self._lock:
            if self._session_store is None:
                session_config = self._config.session
                store_cls = SESSION_STORE_MAP.get(session_config.type)
                if store_cls is None:
                    raise ConfigError(f"Unsupported session store type: '{session_config.type}'")
                if store_cls is FileSystemSessionStore:
                    self._session_store = FileSystemSessionStore(session_config.path, cache_size=session_config.cache_size)
                else:
                    self._session_store = store_cls()
                logger.info(f"Session store '{session_config.type}' created.")
            return self._session_store

    def get_embedding_model(self) -> BaseEmbeddingModel:
        with self._lock:
            return self._get_embedding_model_unsafe()

    def _get_embedding_model_unsafe(self) -> BaseEmbeddingModel:
        if self._embedding_model is None:
            embedding_config = self._config.embedding
            model_cls = EMBEDDING_MODEL_MAP.get(embedding_config.type)
            if model_cls is None:
                raise ConfigError(f"Unsupported embedding model type: '{embedding_config.type}'")
            self._embedding_model = model_cls(embedding_config.model_dump())
            logger.info(f"Embedding model '{embedding_config.type}' created.")
        return self._embedding_model

    def get_memory_store(self, embedding_model: Optional[BaseEmbeddingModel] = None) -> BaseMemoryStore:
        """
        Return the configured memory store.

        Args:
            embedding_model: Model to embed memory content with; defaults to
                the configured one.

        Raises:
            ConfigError: If the configured type is unknown or the store cannot be created.
        """
        with self._lock:
            if self._memory_store is None:
                memory_config = self._config.memory
                model = embedding_model or self._get_embedding_model_unsafe()
                if memory_config.type not in MEMORY_STORE_MAP:
                    raise ConfigError(f"Unsupported memory store type: '{memory_config.type}'")
                if memory_config.type == "file":
                    self._memory_store = FileSystemMemoryStore(memory_config.path, model)
                elif memory_config.type == "chromadb":
                    self._memory_store = ChromaMemoryStore(
                        model, path=memory_config.path, collection_prefix=memory_config.collection_prefix
                    )
                else:
                    self._memory_store = InMemoryMemoryStore(model)
                logger.info(f"Memory store '{memory_config.type}' created.")
            return self._memory_store

    def close(self) -> None:
        """Close and forget every backend created so far."""
        with self._lock:
            for store in (self._session_store, self._memory_store):
                if store is not None:
                    store.close()
            self._session_store = None
            self._memory_store = None
            self._embedding_model = None
        logger.info("StorageManager closed.")
