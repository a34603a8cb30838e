"""Tests for observability module."""

from httpx import AsyncClient
from prometheus_client import REGISTRY

from ev_oracle.observability.metrics import (
    get_metrics,
    track_embedding_request,
    track_llm_request,
    track_resolution,
    track_similarity_search,
    track_store_operation,
)


def _sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(f"ev_oracle_{name}", labels or {}) or 0.0


class TestMetricsEndpoint:
    """Tests for /metrics endpoint."""

    async def test_metrics_endpoint_returns_prometheus_format(self, client: AsyncClient) -> None:
        """Metrics endpoint returns Prometheus format."""
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert b"ev_oracle_resolutions_total" in response.content


class TestMetricsFunctions:
    """Tests for metrics tracking functions."""

    def test_get_metrics_returns_bytes(self) -> None:
        """get_metrics returns bytes."""
        assert isinstance(get_metrics(), bytes)

    def test_track_resolution_by_source(self) -> None:
        """Resolutions are counted per source and status."""
        labels = {"source": "similarity", "status": "success"}
        before = _sample("resolutions_total", labels)

        track_resolution("similarity", 0.2)

        assert _sample("resolutions_total", labels) == before + 1

    def test_track_resolution_failure(self) -> None:
        """Failed resolutions are counted under source none."""
        labels = {"source": "none", "status": "error"}
        before = _sample("resolutions_total", labels)

        track_resolution("none", 0.1, success=False)

        assert _sample("resolutions_total", labels) == before + 1

    def test_track_llm_request_tokens(self) -> None:
        """Token counters grow on success only."""
        labels = {"provider": "ollama", "model": "obs-model", "kind": "prompt"}
        before = _sample("llm_tokens_total", labels)

        track_llm_request("ollama", "obs-model", 1.5, prompt_tokens=100, completion_tokens=50)
        track_llm_request("ollama", "obs-model", 0.5, prompt_tokens=7, success=False)

        assert _sample("llm_tokens_total", labels) == before + 100

    def test_track_llm_failure_duration(self) -> None:
        """Failed calls are timed under the error status."""
        labels = {"provider": "claude", "model": "obs-model", "status": "error"}
        before = _sample("llm_duration_seconds_count", labels)

        track_llm_request("claude", "obs-model", 0.5, success=False)

        assert _sample("llm_duration_seconds_count", labels) == before + 1

    def test_track_embedding_request(self) -> None:
        """Embedded texts are counted per provider."""
        labels = {"provider": "ollama", "model": "nomic-embed-text"}
        before = _sample("embedding_texts_total", labels)

        track_embedding_request("ollama", "nomic-embed-text", duration=0.1, batch_size=3)

        assert _sample("embedding_texts_total", labels) == before + 3

    def test_track_similarity_search(self) -> None:
        """Scores are observed and empty searches counted."""
        empty_before = _sample("similarity_empty_searches_total")
        count_before = _sample("similarity_top_score_count")

        track_similarity_search(0.91)
        track_similarity_search(None)

        assert _sample("similarity_empty_searches_total") == empty_before + 1
        assert _sample("similarity_top_score_count") == count_before + 1

    def test_track_store_operation(self) -> None:
        """Store operations are timed per operation."""
        labels = {"operation": "find_exact", "status": "success"}
        before = _sample("knowledge_store_duration_seconds_count", labels)

        track_store_operation("find_exact", 0.01)

        assert _sample("knowledge_store_duration_seconds_count", labels) == before + 1


class TestMetricsMiddleware:
    """Tests for MetricsMiddleware."""

    async def test_labels_by_route_template(self, client: AsyncClient) -> None:
        """Requests are labelled with the matched route."""
        labels = {"method": "GET", "route": "/health/live", "status_code": "200"}
        before = _sample("http_requests_total", labels)

        await client.get("/health/live")

        assert _sample("http_requests_total", labels) == before + 1

    async def test_unmatched_paths_share_a_label(self, client: AsyncClient) -> None:
        """404s do not create a series per path."""
        labels = {"method": "GET", "route": "unmatched", "status_code": "404"}
        before = _sample("http_requests_total", labels)

        await client.get("/no/such/path/12345")

        assert _sample("http_requests_total", labels) == before + 1

    async def test_scrapes_not_counted(self, client: AsyncClient) -> None:
        """The metrics endpoint itself is not recorded."""
        await client.get("/metrics")

        assert REGISTRY.get_sample_value(
            "ev_oracle_http_requests_total",
            {"method": "GET", "route": "/metrics", "status_code": "200"},
        ) is None
