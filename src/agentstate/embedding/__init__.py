# src/agentstate/embedding/__init__.py
"""
Embedding models turning memory content into vectors.
"""

from .base import BaseEmbeddingModel
from .hashing import HashingEmbedding

__all__ = ["BaseEmbeddingModel", "HashingEmbedding"]
