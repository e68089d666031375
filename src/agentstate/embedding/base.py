# src/agentstate/embedding/base.py
"""
Abstract base class for embedding models used by the memory stores.

Memory stores only ever need ``embed(text) -> vector``; they treat the model
as a pure function and let its failures propagate as store failures.
"""

import abc
from typing import Any, Dict, List, Optional


class BaseEmbeddingModel(abc.ABC):
    """
    Abstract base class for text embedding models.

    Implementations are synchronous and must be safe to call from several
    threads at once.
    """

    model_name: str = "unknown"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self._config = config or {}

    @abc.abstractmethod
    def embed(self, text: str) -> List[float]:
        """
        Generate a vector embedding for a single text string.

        Args:
            text: The input text string to embed.

        Returns:
            A list of floats representing the vector embedding.

        Raises:
            EmbeddingError: If the embedding generation fails.
        """
        raise NotImplementedError

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Generate vector embeddings for a batch of text strings.

        The default implementation embeds texts one by one; models with native
        batching override it.
        """
        return [self.embed(text) for text in texts]
