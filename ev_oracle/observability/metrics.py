"""Prometheus metrics for EV Oracle.

All series live under the ``ev_oracle_`` namespace. Besides HTTP traffic,
they answer the operational questions of the resolver: which tier answers
queries, how close the nearest stored vehicle usually is, and what each
collaborator round-trip costs.
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware

NAMESPACE = "ev_oracle"

_FAST_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)
_SLOW_BUCKETS = (0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 40.0, 80.0, 120.0)


def _status(success: bool) -> str:
    return "success" if success else "error"


# HTTP
HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "Time spent serving HTTP requests",
    ["method", "route", "status_code"],
    namespace=NAMESPACE,
    buckets=_FAST_BUCKETS + (5.0, 10.0, 30.0),
)

HTTP_REQUESTS = Counter(
    "http_requests",
    "HTTP requests served",
    ["method", "route", "status_code"],
    namespace=NAMESPACE,
)

# Resolution; "source" is exact, similarity, llm, or none on failure
RESOLUTION_DURATION = Histogram(
    "resolution_duration_seconds",
    "End-to-end time to resolve one vehicle query",
    ["source", "status"],
    namespace=NAMESPACE,
    buckets=_FAST_BUCKETS + _SLOW_BUCKETS[3:],
)

RESOLUTIONS = Counter(
    "resolutions",
    "Vehicle queries resolved, by answering tier",
    ["source", "status"],
    namespace=NAMESPACE,
)

SIMILARITY_TOP_SCORE = Histogram(
    "similarity_top_score",
    "Cosine similarity of the nearest stored vehicle",
    namespace=NAMESPACE,
    buckets=(0.5, 0.6, 0.7, 0.75, 0.8, 0.85, 0.9, 0.95, 0.99, 1.0),
)

SIMILARITY_EMPTY = Counter(
    "similarity_empty_searches",
    "Similarity searches against an empty knowledge store",
    namespace=NAMESPACE,
)

# Collaborators
LLM_DURATION = Histogram(
    "llm_duration_seconds",
    "Generative fallback round-trip time",
    ["provider", "model", "status"],
    namespace=NAMESPACE,
    buckets=_SLOW_BUCKETS,
)

LLM_TOKENS = Counter(
    "llm_tokens",
    "Tokens consumed by the generative fallback",
    ["provider", "model", "kind"],
    namespace=NAMESPACE,
)

EMBEDDING_DURATION = Histogram(
    "embedding_duration_seconds",
    "Embedding round-trip time",
    ["provider", "model", "status"],
    namespace=NAMESPACE,
    buckets=_FAST_BUCKETS,
)

EMBEDDING_TEXTS = Counter(
    "embedding_texts",
    "Texts sent for embedding",
    ["provider", "model"],
    namespace=NAMESPACE,
)

STORE_DURATION = Histogram(
    "knowledge_store_duration_seconds",
    "Knowledge store round-trip time",
    ["operation", "status"],
    namespace=NAMESPACE,
    buckets=_FAST_BUCKETS,
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Records latency and count of every HTTP request except scrapes."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Time the request and label it by its route template."""
        if request.url.path == "/metrics":
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        labels = {
            "method": request.method,
            "route": self._route_label(request),
            "status_code": str(response.status_code),
        }
        HTTP_REQUEST_DURATION.labels(**labels).observe(elapsed)
        HTTP_REQUESTS.labels(**labels).inc()
        return response

    @staticmethod
    def _route_label(request: Request) -> str:
        """Matched route template, so labels stay bounded."""
        route = request.scope.get("route")
        template = getattr(route, "path", None)
        if template:
            return template
        # Unmatched paths (404s) would otherwise create a series each
        return "unmatched"


def get_metrics() -> bytes:
    """Render the default registry in the Prometheus text format."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST


def track_resolution(source: str, duration: float, success: bool = True) -> None:
    """Record one call to the resolver.

    Args:
        source: Tier that produced the answer (exact, similarity, llm),
            or "none" when resolution failed.
        duration: Total resolution time in seconds.
        success: Whether a record was returned.
    """
    status = _status(success)
    RESOLUTION_DURATION.labels(source=source, status=status).observe(duration)
    RESOLUTIONS.labels(source=source, status=status).inc()


def track_similarity_search(top_score: float | None) -> None:
    """Record the best score of a similarity search; None means no candidates."""
    if top_score is None:
        SIMILARITY_EMPTY.inc()
    else:
        SIMILARITY_TOP_SCORE.observe(top_score)


def track_llm_request(
    provider: str,
    model: str,
    duration: float,
    prompt_tokens: int = 0,
    completion_tokens: int = 0,
    success: bool = True,
) -> None:
    """Record one generative fallback call.

    Token counts are only added for successful calls.
    """
    LLM_DURATION.labels(provider=provider, model=model, status=_status(success)).observe(duration)
    if success:
        LLM_TOKENS.labels(provider=provider, model=model, kind="prompt").inc(prompt_tokens)
        LLM_TOKENS.labels(provider=provider, model=model, kind="completion").inc(completion_tokens)


def track_embedding_request(
    provider: str,
    model: str,
    duration: float,
    batch_size: int,
    success: bool = True,
) -> None:
    """Record one embedding request covering ``batch_size`` texts."""
    EMBEDDING_DURATION.labels(provider=provider, model=model, status=_status(success)).observe(
        duration
    )
    EMBEDDING_TEXTS.labels(provider=provider, model=model).inc(batch_size)


def track_store_operation(operation: str, duration: float, success: bool = True) -> None:
    """Record a knowledge store round-trip (find_exact, find_nearest, upsert, ...)."""
    STORE_DURATION.labels(operation=operation, status=_status(success)).observe(duration)
