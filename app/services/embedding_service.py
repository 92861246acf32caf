# app/services/embedding_service.py
import logging
from typing import Dict, List, Optional, Protocol

import numpy as np
import torch
from sentence_transformers import SentenceTransformer
from tenacity import retry, stop_after_attempt, wait_exponential, before_sleep_log

from app.config import EMBEDDING_DIMENSION, EMBEDDING_MODEL_NAME
from app.recommender.errors import BackendUnavailable

logger = logging.getLogger(__name__)

# Loaded models keyed by name, so every request reuses the same weights.
_model_cache: Dict[str, SentenceTransformer] = {}


class Embedder(Protocol):
    def embed(self, text: str) -> List[float]:
        ...


def select_device() -> torch.device:
    if torch.backends.mps.is_available() and torch.backends.mps.is_built():
        logger.info("MPS device is available. Using MPS for SentenceTransformer.")
        return torch.device("mps")
    logger.info("MPS device not available or not built with PyTorch. Using CPU for SentenceTransformer.")
    return torch.device("cpu")


def get_embedding_model(model_name: Optional[str] = None) -> SentenceTransformer:
    """Loads the SentenceTransformer model once per process and checks its dimension."""
    effective_model_name = model_name or EMBEDDING_MODEL_NAME
    if effective_model_name in _model_cache:
        return _model_cache[effective_model_name]

    device = select_device()
    logger.info(f"Loading SentenceTransformer model: '{effective_model_name}' onto device: {device}")
    model = SentenceTransformer(effective_model_name, device=str(device))

    model_dim = model.get_sentence_embedding_dimension()
    if model_dim != EMBEDDING_DIMENSION:
        error_msg = (
            f"Model '{effective_model_name}' output dimension ({model_dim}) does not match the configured "
            f"EMBEDDING_DIMENSION ({EMBEDDING_DIMENSION}). Vector columns would reject its embeddings."
        )
        logger.error(error_msg)
        raise ValueError(error_msg)

    _model_cache[effective_model_name] = model
    return model


class SentenceTransformerEmbedder:
    """Embedding capability backed by a sentence-transformers model.

    The model is loaded lazily on the first embed() call.
    """

    def __init__(self, model_name: Optional[str] = None):
        self.model_name = model_name or EMBEDDING_MODEL_NAME
        self._model: Optional[SentenceTransformer] = None

    @property
    def model(self) -> SentenceTransformer:
        if self._model is None:
            self._model = get_embedding_model(self.model_name)
        return self._model

    @retry(
        wait=wait_exponential(multiplier=1, min=1, max=5),
        stop=stop_after_attempt(3),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def _encode(self, text: str) -> np.ndarray:
        return self.model.encode(text, convert_to_numpy=True, normalize_embeddings=True)

    def embed(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text.")
        try:
            vector = np.asarray(self._encode(text), dtype=np.float32).flatten()
        except Exception as e:
            logger.error(f"Embedding failed for text snippet '{text[:50]}...': {e}", exc_info=True)
            raise BackendUnavailable("Embedding service is temporarily unavailable.") from e

        if vector.shape[0] != EMBEDDING_DIMENSION:
            raise BackendUnavailable(
                f"Embedding has dimension {vector.shape[0]}, expected {EMBEDDING_DIMENSION}."
            )
        logger.debug(f"Generated embedding of dimension {vector.shape[0]} for text snippet '{text[:50]}...'.")
        return vector.tolist()
