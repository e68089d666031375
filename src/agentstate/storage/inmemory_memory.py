# src/agentstate/storage/inmemory_memory.py
"""
In-memory agent memory store.

Keeps records and their vectors in a dictionary; nothing survives the
process. Useful for tests and ephemeral agents. Callers only ever receive
copies of the stored records, so a stored record and its vector change
together or not at all.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..embedding.base import BaseEmbeddingModel
from ..models import AgentMemory, MemoryScope, MemoryType
from .base_memory import DEFAULT_FIND_COUNT, BaseMemoryStore, Vector, matches_filters, memory_id_of, rank_memories

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredMemory:
    memory: AgentMemory
    vector: Optional[Vector]


class InMemoryMemoryStore(BaseMemoryStore):
    """Thread-safe, non-durable memory store."""

    def __init__(self, embedding_model: BaseEmbeddingModel):
        super().__init__(embedding_model)
        self._records: Dict[str, StoredMemory] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

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
        with self._lock:
            records = list(self._records.values())
        candidates = (
            (r.memory, r.vector) for r in records
            if matches_filters(r.memory, scope_id, scope, memory_types, topics, min_reusability_score)
        )
        return [m.model_copy(deep=True) for m in rank_memories(candidates, query_vector, count)]

    def save(self, memory: AgentMemory) -> Optional[AgentMemory]:
        record_id = memory_id_of(memory)
        with self._lock:
            existing = self._records.get(record_id)
            stored, vector = self._prepare(memory, existing.memory if existing else None)
            self._records[record_id] = StoredMemory(stored.model_copy(deep=True), vector)
        logger.debug(f"Saved memory '{stored.name}' ({record_id}) for agent '{stored.agent_name}'")
        return stored
