# src/agentstate/storage/base_memory.py
"""
Abstract Base Class for agent memory stores, plus the filtering and ranking
rules every backend must follow.

Contract of :meth:`BaseMemoryStore.find`:

- ``scope=AGENT`` matches on scope alone; ``scope=ENTITY`` matches scope and
  ``scope_id``. ``scope=None`` disables the scope filter.
- ``memory_types`` and ``topics`` match any of the given values; empty or
  None disables the filter.
- ``min_reusability_score`` keeps memories with ``reusability_score >=``
  the threshold; 0 disables it.
- A non-empty ``query`` ranks survivors by descending cosine similarity to the
  query embedding; otherwise by descending ``updated_at`` with missing
  timestamps last.

:meth:`BaseMemoryStore.save` is an upsert keyed by :func:`memory_id`.
"""

import abc
import hashlib
import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from ..embedding.base import BaseEmbeddingModel
from ..exceptions import EmbeddingError
from ..models import AgentMemory, MemoryScope, MemoryType

logger = logging.getLogger(__name__)

Vector = List[float]
DEFAULT_FIND_COUNT = 10


def memory_id(agent_name: str, scope: MemoryScope, scope_id: Optional[str], name: str) -> str:
    """
    Deterministic identity of a memory.

    A version 3 (MD5, name based) UUID of ``"{agent}-{scope}-{scope_id}-{name}"``,
    so saving the same named memory again updates it in place.
    """
    scope_value = scope.value if isinstance(scope, MemoryScope) else str(scope)
    key = f"{agent_name}-{scope_value}-{scope_id}-{name}"
    return str(uuid.UUID(bytes=hashlib.md5(key.encode("utf-8")).digest(), version=3))


def memory_id_of(memory: AgentMemory) -> str:
    return memory_id(memory.agent_name, memory.scope, memory.scope_id, memory.name)


def cosine_similarity(vec1: Optional[Sequence[float]], vec2: Optional[Sequence[float]]) -> float:
    """
    Cosine similarity between two vectors.

    Returns 0.0 when either vector is missing, the lengths differ, or either
    has zero magnitude.
    """
    if not vec1 or not vec2 or len(vec1) != len(vec2):
        return 0.0

    dot_product = sum(a * b for a, b in zip(vec1, vec2))
    magnitude1 = math.sqrt(sum(a * a for a in vec1))
    magnitude2 = math.sqrt(sum(b * b for b in vec2))

    if magnitude1 == 0 or magnitude2 == 0:
        return 0.0

    return dot_product / (magnitude1 * magnitude2)


def matches_filters(
    memory: AgentMemory,
    scope_id: Optional[str],
    scope: Optional[MemoryScope],
    memory_types: Optional[Iterable[MemoryType]] = None,
    topics: Optional[Iterable[str]] = None,
    min_reusability_score: int = 0,
) -> bool:
    """Whether a memory passes the structural filters of :meth:`BaseMemoryStore.find`."""
    if scope is not None:
        if memory.scope != scope:
            return False
        if scope == MemoryScope.ENTITY and memory.scope_id != scope_id:
            return False
    wanted_types = set(memory_types or ())
    if wanted_types and memory.memory_type not in wanted_types:
        return False
    wanted_topics = set(topics or ())
    if wanted_topics and not wanted_topics.intersection(memory.topics or ()):
        return False
    return min_reusability_score <= 0 or memory.reusability_score >= min_reusability_score


def rank_memories(
    candidates: Iterable[Tuple[AgentMemory, Optional[Vector]]],
    query_vector: Optional[Vector],
    count: int,
) -> List[AgentMemory]:
    """
    Order filtered candidates and keep the top ``count``.

    With a query vector candidates are sorted by descending cosine similarity;
    without one by descending ``updated_at``, undated memories last.
    """
    if count <= 0:
        return []
    pairs = list(candidates)
    if query_vector is not None:
        pairs.sort(key=lambda pair: cosine_similarity(pair[1], query_vector), reverse=True)
        return [memory for memory, _ in pairs[:count]]

    dated = [memory for memory, _ in pairs if memory.updated_at is not None]
    undated = [memory for memory, _ in pairs if memory.updated_at is None]
    dated.sort(key=lambda memory: memory.updated_at, reverse=True)
    return (dated + undated)[:count]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BaseMemoryStore(abc.ABC):
    """
    Abstract Base Class for scoped, optionally similarity ranked memory storage.

    All backends share one contract (see module docstring) so callers never
    need to know which backend they talk to.
    """

    def __init__(self, embedding_model: BaseEmbeddingModel):
        self._embedding_model = embedding_model

    @property
    def embedding_model(self) -> BaseEmbeddingModel:
        return self._embedding_model

    def _embed(self, text: str) -> Vector:
        """Embed text, surfacing any model failure as an EmbeddingError."""
        model_name = getattr(self._embedding_model, "model_name", type(self._embedding_model).__name__)
        try:
            vector = self._embedding_model.embed(text)
        except EmbeddingError:
            raise
        except Exception as e:
            logger.error(f"Embedding model '{model_name}' failed: {e}", exc_info=True)
            raise EmbeddingError(model_name=model_name, message=str(e)) from e
        return [float(v) for v in vector]

    def _prepare(self, memory: AgentMemory, existing: Optional[AgentMemory]) -> Tuple[AgentMemory, Vector]:
        """Stamp timestamps for an upsert and compute the content embedding."""
        now = utc_now()
        created_at = existing.created_at if existing is not None and existing.created_at else (memory.created_at or now)
        prepared = memory.model_copy(update={"created_at": created_at, "updated_at": now})
        return prepared, self._embed(prepared.content)

    @abc.abstractmethod
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
        """
        Find memories matching the structural filters, ranked.

        Args:
            scope_id: Agent name or entity id the memories are scoped to.
            scope: AGENT or ENTITY, or None to search every scope.
            memory_types: Accept any of these types; empty means all.
            topics: Accept memories sharing at least one topic; empty means all.
            query: Free text to rank by semantic similarity; empty ranks by recency.
            min_reusability_score: Inclusive lower bound; 0 disables it.
            count: Maximum number of memories to return.

        Returns:
            Up to ``count`` memories, best first. No match is not an error.
        """
        pass

    @abc.abstractmethod
    def save(self, memory: AgentMemory) -> Optional[AgentMemory]:
        """
        Insert or update a memory.

        The ``created_at`` of an existing record is preserved,
        ``updated_at`` is set to now, and the embedding is recomputed from
        ``content`` and stored together with the record.

        Returns:
            The stored memory.

        Raises:
            EmbeddingError: If the content cannot be embedded.
            MemoryStorageError: If the record cannot be persisted.
        """
        pass

    def close(self) -> None:
        return None
