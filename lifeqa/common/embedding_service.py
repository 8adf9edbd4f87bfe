"""
Embedding Service

Generates query embeddings through the OpenAI embeddings API.
Vectors are L2 normalized so the vector store can use dot products as
cosine similarity.
"""

import logging
from typing import List, Optional
import numpy as np

logger = logging.getLogger("lifeqa.common.embedding_service")


class EmbeddingService:
    """
    Embedding service for query text.

    Constructed explicitly and handed to QueryEngine; holds no global state.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "text-embedding-3-small",
        dimensions: Optional[int] = 1024,
        client=None,
    ):
        """
        Initialize embedding service.

        Args:
            api_key: OpenAI API key (ignored when client is given)
            model: Embedding model name
            dimensions: Requested output dimension (None = model default)
            client: Pre-built AsyncOpenAI-compatible client
        """
        self._model = model
        self._dimensions = dimensions
        self._client = client

        if self._client is None and api_key:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=api_key)
            logger.info("Initialized embedding service with model=%s", model)
        elif self._client is None:
            logger.info("OpenAI API key not provided, embedding service unavailable")

    @property
    def is_available(self) -> bool:
        """Check if embedding service is available"""
        return self._client is not None

    @property
    def model(self) -> str:
        return self._model

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: List of strings to embed

        Returns:
            List of embedding vectors (L2 normalized)
        """
        if not self.is_available:
            raise RuntimeError("Embedding service is not available")

        if not texts:
            return []

        kwargs = {"model": self._model, "input": texts}
        if self._dimensions:
            kwargs["dimensions"] = self._dimensions
        response = await self._client.embeddings.create(**kwargs)

        matrix = np.array([item.embedding for item in response.data], dtype=float)
        return normalize(matrix).tolist()

    async def embed(self, text: str, user_id: str, purpose: str) -> List[float]:
        """
        Generate embedding for a single query.

        Args:
            text: String to embed
            user_id: User on whose behalf the call is made
            purpose: Call-site tag (e.g. "rag_query_embedding")

        Returns:
            Embedding vector (L2 normalized)
        """
        if not text:
            raise ValueError("Cannot embed empty text")

        logger.debug("Embedding %d chars for user %s (%s)", len(text), user_id, purpose)
        embeddings = await self.embed_batch([text])
        return embeddings[0]


def normalize(vectors: np.ndarray) -> np.ndarray:
    """L2 normalize rows of a matrix (or a single vector); zero rows stay zero."""
    norms = np.linalg.norm(vectors, axis=-1, keepdims=True)
    norms[norms == 0] = 1.0
    return vectors / norms


def cosine_similarity(vec1: List[float], vec2: List[float]) -> float:
    """
    Compute cosine similarity between two vectors, clamped to [0, 1].
    """
    v1 = np.array(vec1, dtype=float)
    v2 = np.array(vec2, dtype=float)

    if v1.shape != v2.shape:
        raise ValueError(f"Vector dimension mismatch: {v1.shape} vs {v2.shape}")

    similarity = float(np.dot(normalize(v1), normalize(v2)))
    return max(0.0, min(1.0, similarity))


def batch_cosine_similarity(query_vec: List[float], vectors: List[List[float]]) -> List[float]:
    """
    Compute cosine similarity between a query and multiple vectors.

    Returns:
        List of similarity scores clamped to [0, 1]
    """
    if not vectors:
        return []

    query = normalize(np.array(query_vec, dtype=float))
    matrix = normalize(np.array(vectors, dtype=float))

    if matrix.shape[1] != query.shape[0]:
        raise ValueError(f"Vector dimension mismatch: {matrix.shape[1]} vs {query.shape[0]}")

    similarities = np.clip(np.dot(matrix, query), 0.0, 1.0)
    return similarities.tolist()
