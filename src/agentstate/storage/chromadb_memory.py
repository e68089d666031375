# src/agentstate/storage/chromadb_memory.py
"""
ChromaDB-backed agent memory store.

Filters are compiled into a ChromaDB ``where`` clause and similarity ranking
is delegated to the collection's nearest-neighbour search, using a cosine
space collection. Metadata values cannot be lists, so every topic is stored
as its own boolean key (``topic::<name>``) and topic filters become ``$or``
clauses over those keys. The full topic list is kept as a JSON string.

Writes go through ``collection.upsert`` on a local client, which is visible
to the next query as soon as it returns.
"""

import json
import logging
import os
import pathlib
import threading
from typing import Any, Dict, Iterable, List, Optional

try:
    import chromadb
    chromadb_available = True
except ImportError:
    chromadb_available = False
    chromadb = None  # type: ignore

from ..embedding.base import BaseEmbeddingModel
from ..exceptions import MemoryStorageError
from ..models import AgentMemory, MemoryScope, MemoryType
from .base_memory import DEFAULT_FIND_COUNT, BaseMemoryStore, Vector, memory_id_of, rank_memories

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION_NAME = "agent-memories"
TOPIC_KEY_PREFIX = "topic::"


def topic_key(topic: str) -> str:
    return f"{TOPIC_KEY_PREFIX}{topic}"


def build_where_clause(
    scope_id: Optional[str],
    scope: Optional[MemoryScope],
    memory_types: Optional[Iterable[MemoryType]] = None,
    topics: Optional[Iterable[str]] = None,
    min_reusability_score: int = 0,
) -> Optional[Dict[str, Any]]:
    """Translate ``find`` filters into a ChromaDB ``where`` clause (None when unfiltered)."""
    conditions: List[Dict[str, Any]] = []
    if scope is not None:
        conditions.append({"scope": {"$eq": scope.value}})
        if scope == MemoryScope.ENTITY:
            conditions.append({"scopeId": {"$eq": scope_id or ""}})

    type_values = sorted({MemoryType(t).value for t in (memory_types or ())})
    if type_values:
        conditions.append({"memoryType": {"$in": type_values}})

    topic_conditions = [{topic_key(t): {"$eq": True}} for t in sorted(set(topics or ()))]
    if len(topic_conditions) == 1:
        conditions.append(topic_conditions[0])
    elif topic_conditions:
        conditions.append({"$or": topic_conditions})

    if min_reusability_score > 0:
        conditions.append({"reusabilityScore": {"$gte": min_reusability_score}})

    if not conditions:
        return None
    if len(conditions) == 1:
        return conditions[0]
    return {"$and": conditions}


def memory_to_metadata(memory: AgentMemory) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {
        "agentName": memory.agent_name,
        "scope": memory.scope.value,
        "scopeId": memory.scope_id or "",
        "memoryType": memory.memory_type.value,
        "name": memory.name,
        "topics": json.dumps(memory.topics),
        "reusabilityScore": memory.reusability_score,
    }
    if memory.created_at is not None:
        metadata["createdAt"] = memory.created_at.isoformat()
    if memory.updated_at is not None:
        metadata["updatedAt"] = memory.updated_at.isoformat()
    for topic in memory.topics:
        metadata[topic_key(topic)] = True
    return metadata


def metadata_to_memory(metadata: Dict[str, Any], content: Optional[str]) -> AgentMemory:
    return AgentMemory(
        agent_name=metadata["agentName"],
        scope=metadata["scope"],
        scope_id=metadata.get("scopeId") or None,
        memory_type=metadata["memoryType"],
        name=metadata["name"],
        content=content or "",
        topics=json.loads(metadata.get("topics") or "[]"),
        reusability_score=int(metadata.get("reusabilityScore", 0)),
        created_at=metadata.get("createdAt"),
        updated_at=metadata.get("updatedAt"),
    )


class ChromaMemoryStore(BaseMemoryStore):
    """
    Memory store on top of a ChromaDB collection.

    Connects to a persistent ChromaDB instance when ``path`` is given, to an
    in-memory instance otherwise, or uses the supplied ``client``.
    """

    def __init__(
        self,
        embedding_model: BaseEmbeddingModel,
        path: Optional[str] = None,
        collection_prefix: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        if not chromadb_available and client is None:
            raise ImportError("ChromaDB client library not installed. Please install `chromadb` or `agentstate[chromadb]`.")
        super().__init__(embedding_model)
        self._collection_name = f"{collection_prefix}-{DEFAULT_COLLECTION_NAME}" if collection_prefix else DEFAULT_COLLECTION_NAME
        self._save_lock = threading.Lock()

        try:
            if client is not None:
                self._client = client
            elif path:
                expanded_path = os.path.expanduser(path)
                pathlib.Path(expanded_path).mkdir(parents=True, exist_ok=True)
                self._client = chromadb.PersistentClient(path=expanded_path)
                logger.info(f"ChromaDB persistent client initialized at: {expanded_path}")
            else:
                self._client = chromadb.Client()
                logger.info("ChromaDB in-memory client initialized.")
            self._collection = self._client.get_or_create_collection(
                name=self._collection_name,
                embedding_function=None,
                metadata={"hnsw:space": "cosine"},
            )
        except Exception as e:
            logger.error(f"Failed to initialize ChromaDB memory collection '{self._collection_name}': {e}", exc_info=True)
            raise MemoryStorageError(f"Could not initialize ChromaDB memory collection: {e}") from e
        logger.debug(f"Accessed ChromaDB collection: '{self._collection_name}'")

    @property
    def collection_name(self) -> str:
        return self._collection_name

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
        if count <= 0:
            return []
        where = build_where_clause(scope_id, scope, memory_types, topics, min_reusability_score)
        if query:
            return self._similarity_search(self._embed(query), where, count)

        try:
            results = self._collection.get(where=where, include=["metadatas", "documents"])
        except Exception as e:
            logger.error(f"ChromaDB get failed on '{self._collection_name}': {e}", exc_info=True)
            raise MemoryStorageError(f"ChromaDB find failed: {e}") from e
        memories = [
            metadata_to_memory(metadata, document)
            for metadata, document in zip(results.get("metadatas") or [], results.get("documents") or [])
        ]
        return rank_memories(((m, None) for m in memories), None, count)

    def _similarity_search(self, query_vector: Vector, where: Optional[Dict[str, Any]], count: int) -> List[AgentMemory]:
        try:
            results = self._collection.query(
                query_embeddings=[query_vector],
                n_results=count,
                where=where,
                include=["metadatas", "documents", "distances"],
            )
        except Exception as e:
            logger.error(f"ChromaDB query failed on '{self._collection_name}': {e}", exc_info=True)
            raise MemoryStorageError(f"ChromaDB similarity search failed: {e}") from e

        ids_list = results.get("ids")
        if not ids_list or not ids_list[0]:
            return []
        metadatas = (results.get("metadatas") or [[]])[0] or []
        documents = (results.get("documents") or [[]])[0] or []
        logger.debug(f"ChromaDB query returned {len(ids_list[0])} memories from '{self._collection_name}'")
        return [metadata_to_memory(metadata, document) for metadata, document in zip(metadatas, documents)]

    def _get_by_id(self, record_id: str) -> Optional[AgentMemory]:
        results = self._collection.get(ids=[record_id], include=["metadatas", "documents"])
        metadatas = results.get("metadatas") or []
        if not metadatas:
            return None
        documents = results.get("documents") or [None]
        return metadata_to_memory(metadatas[0], documents[0])

    def save(self, memory: AgentMemory) -> Optional[AgentMemory]:
        record_id = memory_id_of(memory)
        with self._save_lock:
            try:
                existing = self._get_by_id(record_id)
            except Exception as e:
                logger.error(f"ChromaDB lookup of memory '{record_id}' failed: {e}", exc_info=True)
                raise MemoryStorageError(f"ChromaDB save failed: {e}") from e

            stored, vector = self._prepare(memory, existing)
            metadata = memory_to_metadata(stored)
            if existing is not None:
                # Upserts merge metadata keys, so dropped topics must be switched off.
                for topic in set(existing.topics) - set(stored.topics):
                    metadata[topic_key(topic)] = False
            try:
                self._collection.upsert(
                    ids=[record_id],
                    embeddings=[vector],
                    metadatas=[metadata],
                    documents=[stored.content],
                )
                persisted = self._get_by_id(record_id)
            except Exception as e:
                logger.error(f"Failed to upsert memory '{stored.name}' into '{self._collection_name}': {e}", exc_info=True)
                raise MemoryStorageError(f"ChromaDB save failed: {e}") from e
        logger.debug(f"Upserted memory '{stored.name}' ({record_id}) into '{self._collection_name}'")
        return persisted or stored
