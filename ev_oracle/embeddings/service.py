"""Embedding service interface and provider implementations."""

import time
from abc import ABC, abstractmethod
from typing import Any

import httpx

from ev_oracle.config import EmbeddingProvider, EmbeddingSettings, get_settings
from ev_oracle.embeddings.models import EmbeddingResult
from ev_oracle.exceptions import EmbeddingError, ErrorCode
from ev_oracle.logging_config import get_logger
from ev_oracle.observability.metrics import track_embedding_request

logger = get_logger(__name__)


class EmbeddingService(ABC):
    """Abstract base class for embedding services.

    Defines the interface for generating text embeddings.
    """

    @abstractmethod
    async def embed(self, text: str) -> EmbeddingResult:
        """Generate embedding for a single text.

        Args:
            text: Text to embed.

        Returns:
            EmbeddingResult with vector.

        Raises:
            EmbeddingError: If embedding fails.
        """
        ...

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """Generate embeddings for multiple texts.

        Args:
            texts: List of texts to embed.

        Returns:
            List of EmbeddingResult objects, in input order.

        Raises:
            EmbeddingError: If embedding fails.
        """
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name used for embeddings."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Get the embedding dimensions."""
        ...

    async def close(self) -> None:
        """Release any held connections."""


class HTTPEmbeddingService(EmbeddingService):
    """Shared HTTP plumbing for embedding providers.

    Subclasses supply the endpoint, the request payload and the
    response decoding.
    """

    provider_label = "embedding"

    def __init__(
        self,
        settings: EmbeddingSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the HTTP embedding service.

        Args:
            settings: Embedding configuration. Uses defaults if not provided.
            client: HTTP client. Creates new one if not provided.
        """
        self._settings = settings or get_settings().embedding
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def dimensions(self) -> int:
        """Configured embedding dimensions."""
        return self._settings.dimensions

    @property
    @abstractmethod
    def endpoint(self) -> str:
        """Full URL of the embedding endpoint."""
        ...

    def _headers(self) -> dict[str, str]:
        return {}

    @abstractmethod
    def _payload(self, texts: list[str]) -> dict[str, Any]:
        """Build the request body for a batch."""
        ...

    @abstractmethod
    def _vectors(self, data: dict[str, Any]) -> list[list[float]]:
        """Extract one vector per input text from the response body."""
        ...

    async def embed(self, text: str) -> EmbeddingResult:
        """Generate embedding for a single text."""
        results = await self.embed_batch([text])
        return results[0]

    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """Generate embeddings for multiple texts, chunked by batch size."""
        if not texts:
            return []

        client = await self._get_client()

        all_results: list[EmbeddingResult] = []
        batch_size = self._settings.batch_size

        for i in range(0, len(texts), batch_size):
            batch = texts[i : i + batch_size]
            batch_results = await self._embed_batch_request(client, batch)
            all_results.extend(batch_results)

        return all_results

    async def _embed_batch_request(
        self,
        client: httpx.AsyncClient,
        texts: list[str],
    ) -> list[EmbeddingResult]:
        """Make embedding request for a batch.

        Raises:
            EmbeddingError: If the request fails or the response is malformed.
        """
        url = self.endpoint
        start = time.perf_counter()

        try:
            response = await client.post(
                url,
                json=self._payload(texts),
                headers=self._headers(),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self._track(start, len(texts), success=False)
            logger.error(
                f"Embedding request failed: {e.response.status_code}",
                extra={"url": url, "status": e.response.status_code},
            )
            raise EmbeddingError(
                f"{self.provider_label} embedding service returned {e.response.status_code}",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                details={"status_code": e.response.status_code, "provider": self.provider_label},
            ) from e
        except httpx.RequestError as e:
            self._track(start, len(texts), success=False)
            logger.error(f"Embedding request error: {e}", extra={"url": url})
            raise EmbeddingError(
                f"Failed to connect to {self.provider_label} embedding service: {e}",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                details={"url": url, "provider": self.provider_label},
            ) from e

        try:
            vectors = self._vectors(response.json())
            if len(vectors) != len(texts):
                raise ValueError(f"expected {len(texts)} embeddings, got {len(vectors)}")

            results = [
                EmbeddingResult(
                    text=text,
                    embedding=vector,
                    model=self.model_name,
                    dimensions=len(vector),
                )
                for text, vector in zip(texts, vectors)
            ]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            self._track(start, len(texts), success=False)
            raise EmbeddingError(
                f"Invalid response from {self.provider_label} embedding service: {e}",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                details={"error": str(e), "provider": self.provider_label},
            ) from e

        self._track(start, len(texts))
        return results

    def _track(self, start: float, batch_size: int, success: bool = True) -> None:
        track_embedding_request(
            provider=self.provider_label,
            model=self.model_name,
            duration=time.perf_counter() - start,
            batch_size=batch_size,
            success=success,
        )


class OpenAIEmbeddingService(HTTPEmbeddingService):
    """Embedding service for OpenAI-style ``/embeddings`` APIs.

    Compatible with the OpenAI API and text-embeddings-inference (TEI)
    servers.
    """

    provider_label = "openai"

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._settings.model

    @property
    def endpoint(self) -> str:
        return f"{self._settings.base_url.rstrip('/')}/embeddings"

    def _headers(self) -> dict[str, str]:
        if self._settings.api_key is None:
            return {}
        return {"Authorization": f"Bearer {self._settings.api_key.get_secret_value()}"}

    def _payload(self, texts: list[str]) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "input": texts,
            "model": self._settings.model,
        }
        # text-embedding-3 models can be shortened to the collection's size
        if self._settings.model.startswith("text-embedding-3"):
            payload["dimensions"] = self._settings.dimensions
        return payload

    def _vectors(self, data: dict[str, Any]) -> list[list[float]]:
        items = sorted(data["data"], key=lambda item: item.get("index", 0))
        return [item["embedding"] for item in items]


class OllamaEmbeddingService(HTTPEmbeddingService):
    """Embedding service for a local Ollama server (``/api/embed``)."""

    provider_label = "ollama"

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._settings.ollama_model

    @property
    def endpoint(self) -> str:
        return f"{self._settings.ollama_url.rstrip('/')}/api/embed"

    def _payload(self, texts: list[str]) -> dict[str, Any]:
        return {
            "model": self._settings.ollama_model,
            "input": texts,
        }

    def _vectors(self, data: dict[str, Any]) -> list[list[float]]:
        embeddings = data["embeddings"]
        if not embeddings or not embeddings[0]:
            raise ValueError("no embedding data in response")
        return [[float(v) for v in vector] for vector in embeddings]


def create_embedding_service(
    settings: EmbeddingSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> EmbeddingService:
    """Build the embedding service selected by configuration.

    Args:
        settings: Embedding configuration.
        client: Optional shared HTTP client.

    Returns:
        The provider implementation for ``settings.provider``.
    """
    settings = settings or get_settings().embedding
    if settings.provider == EmbeddingProvider.OLLAMA:
        return OllamaEmbeddingService(settings=settings, client=client)
    return OpenAIEmbeddingService(settings=settings, client=client)
