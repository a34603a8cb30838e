"""Embedding service module."""

from ev_oracle.embeddings.models import EmbeddingResult
from ev_oracle.embeddings.service import (
    EmbeddingService,
    HTTPEmbeddingService,
    OllamaEmbeddingService,
    OpenAIEmbeddingService,
    create_embedding_service,
)

__all__ = [
    "EmbeddingResult",
    "EmbeddingService",
    "HTTPEmbeddingService",
    "OllamaEmbeddingService",
    "OpenAIEmbeddingService",
    "create_embedding_service",
]
