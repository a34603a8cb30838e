"""Observability module for metrics and monitoring."""

from ev_oracle.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    track_embedding_request,
    track_llm_request,
    track_resolution,
    track_similarity_search,
    track_store_operation,
)

__all__ = [
    "MetricsMiddleware",
    "get_metrics",
    "track_embedding_request",
    "track_llm_request",
    "track_resolution",
    "track_similarity_search",
    "track_store_operation",
]
