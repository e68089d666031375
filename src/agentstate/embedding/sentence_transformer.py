# src/agentstate/embedding/sentence_transformer.py
"""
Sentence Transformer embedding model implementation.

Uses the sentence-transformers library to generate embeddings locally.
"""

import logging
import threading
from typing import Any, Dict, List, Optional

try:
    from sentence_transformers import SentenceTransformer
    sentence_transformers_available = True
except ImportError:
    sentence_transformers_available = False
    SentenceTransformer = None  # type: ignore

from ..exceptions import ConfigError, EmbeddingError
from .base import BaseEmbeddingModel

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedding(BaseEmbeddingModel):
    """
    Generates text embeddings using local Sentence Transformer models.

    Requires the `sentence-transformers` library to be installed. The model is
    loaded lazily on first use.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Args:
            config: Configuration dictionary. Expected keys:
                    'model_name_or_path': HuggingFace Hub name or local path of the model.
                    'device' (optional): 'cpu', 'cuda', 'mps'. Defaults to the library default.
        """
        if not sentence_transformers_available:
            raise ImportError(
                "Sentence Transformers library not found. "
                "Please install `sentence-transformers` (e.g., `pip install agentstate[sentence_transformers]`)."
            )
        super().__init__(config)
        self.model_name = self._config.get("model_name_or_path") or ""
        self._device: Optional[str] = self._config.get("device")
        self._model: Optional[SentenceTransformer] = None
        self._load_lock = threading.Lock()

        if not self.model_name:
            raise ConfigError("SentenceTransformerEmbedding requires 'model_name_or_path' in its configuration.")

        logger.info(f"SentenceTransformerEmbedding configured with model '{self.model_name}' "
                    f"(Device: {self._device or 'default'}).")

    def _get_model(self) -> "SentenceTransformer":
        with self._load_lock:
            if self._model is None:
                logger.info(f"Loading Sentence Transformer model: {self.model_name}...")
                try:
                    self._model = SentenceTransformer(self.model_name, device=self._device)
                except Exception as e:
                    logger.error(f"Failed to load Sentence Transformer model '{self.model_name}': {e}", exc_info=True)
                    raise EmbeddingError(model_name=self.model_name, message=f"Failed to load model: {e}") from e
            return self._model

    def embed(self, text: str) -> List[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        model = self._get_model()
        logger.debug(f"Generating embeddings for batch of {len(texts)} texts...")
        try:
            embeddings = model.encode(texts, convert_to_numpy=False)
            return [[float(val) for val in emb] for emb in embeddings]
        except Exception as e:
            logger.error(f"Error during Sentence Transformer encoding: {e}", exc_info=True)
            raise EmbeddingError(model_name=self.model_name, message=f"Encoding failed: {e}") from e
