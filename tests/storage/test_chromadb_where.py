# tests/storage/test_chromadb_where.py
"""
Tests for the ChromaDB metadata mapping and where-clause construction.

These run without a ChromaDB installation.
"""

import json
from datetime import datetime, timezone

from agentstate.models import AgentMemory, MemoryScope, MemoryType
from agentstate.storage.chromadb_memory import build_where_clause, memory_to_metadata, metadata_to_memory


class TestBuildWhereClause:
    """Tests for build_where_clause."""

    def test_no_filters(self):
        assert build_where_clause(None, None) is None

    def test_single_condition_is_not_wrapped(self):
        assert build_where_clause("x", MemoryScope.AGENT) == {"scope": {"$eq": "AGENT"}}

    def test_entity_scope_adds_scope_id(self):
        assert build_where_clause("user-1", MemoryScope.ENTITY) == {
            "$and": [{"scope": {"$eq": "ENTITY"}}, {"scopeId": {"$eq": "user-1"}}]
        }

    def test_full_clause(self):
        """Test types, topics and score combined under $and."""
        where = build_where_clause(None, None, memory_types=[MemoryType.SEMANTIC, MemoryType.EPISODIC],
                                   topics=["music", "geo"], min_reusability_score=4)

        assert where == {"$and": [
            {"memoryType": {"$in": ["EPISODIC", "SEMANTIC"]}},
            {"$or": [{"topic::geo": {"$eq": True}}, {"topic::music": {"$eq": True}}]},
            {"reusabilityScore": {"$gte": 4}},
        ]}

    def test_single_topic(self):
        assert build_where_clause(None, None, topics=["geo"]) == {"topic::geo": {"$eq": True}}

    def test_zero_score_omitted(self):
        assert build_where_clause(None, None, min_reusability_score=0) is None


class TestMetadataMapping:
    """Tests for the metadata round trip."""

    def test_round_trip(self):
        memory = AgentMemory(agent_name="planner", scope=MemoryScope.ENTITY, scope_id="user-1",
                             memory_type=MemoryType.EPISODIC, name="pref", content="likes jazz",
                             topics=["music"], reusability_score=6,
                             created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
                             updated_at=datetime(2024, 1, 2, tzinfo=timezone.utc))

        metadata = memory_to_metadata(memory)

        assert metadata["topic::music"] is True
        assert json.loads(metadata["topics"]) == ["music"]
        assert all(value is not None for value in metadata.values())
        assert metadata_to_memory(metadata, "likes jazz") == memory

    def test_missing_scope_id_and_timestamps(self):
        memory = AgentMemory(agent_name="planner", scope=MemoryScope.AGENT, memory_type=MemoryType.SEMANTIC,
                             name="fact", content="c")

        metadata = memory_to_metadata(memory)

        assert metadata["scopeId"] == ""
        assert "createdAt" not in metadata
        assert metadata_to_memory(metadata, "c") == memory
