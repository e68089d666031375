# src/agentstate/embedding/hashing.py
"""
Dependency-free embedding model based on character n-gram hashing.

Vectors are produced by hashing every character n-gram of the lower-cased
text into a fixed number of buckets and L2-normalising the counts. The hash
is ``blake2b`` rather than the builtin ``hash`` so that vectors written by one
process stay comparable with queries embedded by another.
"""

import hashlib
import logging
import math
from typing import Any, Dict, List, Optional

from .base import BaseEmbeddingModel

logger = logging.getLogger(__name__)


class HashingEmbedding(BaseEmbeddingModel):
    """Deterministic n-gram hashing embedder; useful offline and in tests."""

    model_name = "hashing"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.dimension: int = int(self._config.get("dimension", 256))
        self.ngram: int = int(self._config.get("ngram", 3))
        if self.dimension < 1 or self.ngram < 1:
            raise ValueError("HashingEmbedding requires positive 'dimension' and 'ngram'.")
        logger.debug(f"HashingEmbedding configured (dimension={self.dimension}, ngram={self.ngram})")

    def _bucket(self, token: str) -> int:
        digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
        return int.from_bytes(digest, "big") % self.dimension

    def embed(self, text: str) -> List[float]:
        vector = [0.0] * self.dimension
        normalized = " ".join(text.lower().split())
        if not normalized:
            return vector

        padded = f" {normalized} "
        if len(padded) <= self.ngram:
            vector[self._bucket(padded)] += 1.0
        else:
            for i in range(len(padded) - self.ngram + 1):
                vector[self._bucket(padded[i:i + self.ngram])] += 1.0

        magnitude = math.sqrt(sum(v * v for v in vector))
        if magnitude > 0:
            vector = [v / magnitude for v in vector]
        return vector
