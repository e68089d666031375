# src/agentstate/storage/filesystem_memory.py
"""
Disk-backed agent memory store with brute-force vector scan.

Layout under the store root::

    <root>/<memory_id>/memory.json   # AgentMemory record
    <root>/<memory_id>/vector.json   # {"contentSha256": ..., "vector": [...]}

A save writes both files (each replaced atomically, vector first) before the
record is registered in the in-memory catalog. The content hash in
``vector.json`` ties the vector to the exact content it was computed from:
if a crash lands between the two writes, startup notices the mismatch and
recomputes the vector from the stored content.

Writes are serialised by one lock. Reads work on the catalog reference they
picked up, which is never mutated in place, so they need no lock at all.
Records leave the catalog as copies only.
"""

import hashlib
import json
import logging
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from ..embedding.base import BaseEmbeddingModel
from ..exceptions import CorruptedStoreError, MemoryStorageError
from ..models import AgentMemory, MemoryScope, MemoryType
from .base_memory import DEFAULT_FIND_COUNT, BaseMemoryStore, Vector, matches_filters, memory_id_of, rank_memories
from .file_utils import ensure_path, write_bytes
from .inmemory_memory import StoredMemory

logger = logging.getLogger(__name__)

MEMORY_FILE_NAME = "memory.json"
VECTOR_FILE_NAME = "vector.json"


def _content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class FileSystemMemoryStore(BaseMemoryStore):
    """
    Memory store persisting one directory per memory.

    Raises:
        ConfigError: If the root directory cannot be created or is not writable.
        CorruptedStoreError: At startup, if a stored record cannot be parsed.
    """

    def __init__(self, root: Union[str, Path], embedding_model: BaseEmbeddingModel):
        super().__init__(embedding_model)
        self._root = ensure_path(root, create=True, write_check=True)
        self._write_lock = threading.Lock()
        self._catalog: Dict[str, StoredMemory] = {}
        self._load_catalog()

    @property
    def root(self) -> Path:
        return self._root

    def __len__(self) -> int:
        return len(self._catalog)

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def _load_catalog(self) -> None:
        catalog: Dict[str, StoredMemory] = {}
        for record_dir in sorted(p for p in self._root.iterdir() if p.is_dir()):
            memory_file = record_dir / MEMORY_FILE_NAME
            vector_file = record_dir / VECTOR_FILE_NAME
            if not memory_file.exists() or not vector_file.exists():
                logger.warning(f"Skipping incomplete memory record at {record_dir}")
                continue
            try:
                catalog[record_dir.name] = self._load_record(record_dir, memory_file, vector_file)
            except OSError as e:
                logger.error(f"Failed to read memory record at {record_dir}: {e}", exc_info=True)
                raise MemoryStorageError(f"Failed to read memory record at {record_dir}: {e}") from e
        self._catalog = catalog
        logger.info(f"Loaded {len(catalog)} memories from {self._root}")

    def _load_record(self, record_dir: Path, memory_file: Path, vector_file: Path) -> StoredMemory:
        try:
            memory = AgentMemory.model_validate_json(memory_file.read_bytes())
        except ValidationError as e:
            logger.error(f"Corrupted memory record at {memory_file}: {e}")
            raise CorruptedStoreError(str(memory_file), "Unparseable memory record.") from e

        try:
            stored_vector = json.loads(vector_file.read_bytes())
            vector = [float(v) for v in stored_vector["vector"]]
            content_hash = stored_vector["contentSha256"]
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Corrupted memory vector at {vector_file}: {e}")
            raise CorruptedStoreError(str(vector_file), "Unparseable memory vector.") from e

        if content_hash != _content_hash(memory.content):
            logger.warning(f"Vector at {vector_file} does not match stored content; recomputing it")
            vector = self._embed(memory.content)
            self._write_vector(record_dir, memory.content, vector)
        return StoredMemory(memory, vector)

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def find(
        self,
        scope_id: Optional[str],
        scope: Optional[MemoryScope],
        memory_types: Optional[Iterable[MemoryType]] = None,
        topics: Optional[Iterable[str]] = None,
        query: Optional[str] = None,
        min_reusability_score: int = 0,
        count: int = DEFAULT_FIND_COUNT,
    ) -> List[AgentMemory]:
        query_vector = self._embed(query) if query else None
        snapshot = self._catalog
        candidates = (
            (r.memory, r.vector) for r in snapshot.values()
            if matches_filters(r.memory, scope_id, scope, memory_types, topics, min_reusability_score)
        )
        return [m.model_copy(deep=True) for m in rank_memories(candidates, query_vector, count)]

    def save(self, memory: AgentMemory) -> Optional[AgentMemory]:
        record_id = memory_id_of(memory)
        with self._write_lock:
            existing = self._catalog.get(record_id)
            stored, vector = self._prepare(memory, existing.memory if existing else None)

            record_dir = self._root / record_id
            try:
                record_dir.mkdir(exist_ok=True)
                self._write_vector(record_dir, stored.content, vector)
                write_bytes(record_dir / MEMORY_FILE_NAME, stored.model_dump_json(by_alias=True).encode("utf-8"))
            except OSError as e:
                logger.error(f"Failed to persist memory '{stored.name}' at {record_dir}: {e}", exc_info=True)
                raise MemoryStorageError(f"Failed to persist memory '{stored.name}': {e}") from e

            catalog = dict(self._catalog)
            catalog[record_id] = StoredMemory(stored.model_copy(deep=True), vector)
            self._catalog = catalog
        logger.debug(f"Saved memory '{stored.name}' ({record_id}) for agent '{stored.agent_name}'")
        return stored

    def _write_vector(self, record_dir: Path, content: str, vector: Vector) -> None:
        payload = {"contentSha256": _content_hash(content), "vector": vector}
        write_bytes(record_dir / VECTOR_FILE_NAME, json.dumps(payload).encode("utf-8"))

    def reload(self) -> None:
        """Rebuild the catalog from disk."""
        with self._write_lock:
            self._load_catalog()
