"""Tests for embedding services."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from ev_oracle.config import EmbeddingProvider, EmbeddingSettings
from ev_oracle.embeddings.models import EmbeddingResult
from ev_oracle.embeddings.service import (
    OllamaEmbeddingService,
    OpenAIEmbeddingService,
    create_embedding_service,
)
from ev_oracle.exceptions import EmbeddingError


def _response(body: dict) -> MagicMock:
    mock_response = MagicMock()
    mock_response.json.return_value = body
    mock_response.raise_for_status = MagicMock()
    return mock_response


class TestEmbeddingResult:
    """Tests for EmbeddingResult model."""

    def test_valid_result(self) -> None:
        """Valid embedding result is created."""
        result = EmbeddingResult(
            text="test",
            embedding=[0.1, 0.2, 0.3],
            model="test-model",
            dimensions=3,
        )
        assert result.text == "test"
        assert len(result.embedding) == 3

    def test_dimensions_mismatch(self) -> None:
        """Mismatched dimensions raise error."""
        with pytest.raises(ValueError, match="dimensions"):
            EmbeddingResult(
                text="test",
                embedding=[0.1, 0.2, 0.3],
                model="test-model",
                dimensions=5,  # Wrong!
            )


class TestOpenAIEmbeddingService:
    """Tests for OpenAIEmbeddingService."""

    def test_model_name_and_dimensions(self) -> None:
        """Service reports configured model and dimensions."""
        settings = EmbeddingSettings(model="text-embedding-3-small", dimensions=512)
        service = OpenAIEmbeddingService(settings=settings)
        assert service.model_name == "text-embedding-3-small"
        assert service.dimensions == 512

    @pytest.mark.asyncio
    async def test_embed_single(self) -> None:
        """Single text embedding posts to /embeddings with auth."""
        settings = EmbeddingSettings(
            base_url="http://test:8080/v1/",
            model="text-embedding-3-small",
            api_key="sk-test",
            dimensions=3,
        )

        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = _response(
            {"data": [{"index": 0, "embedding": [0.1, 0.2, 0.3]}]}
        )

        service = OpenAIEmbeddingService(settings=settings, client=mock_client)
        result = await service.embed("tesla model 3 2023 battery specifications")

        assert result.embedding == [0.1, 0.2, 0.3]
        assert result.model == "text-embedding-3-small"

        call = mock_client.post.call_args
        assert call.args[0] == "http://test:8080/v1/embeddings"
        assert call.kwargs["headers"] == {"Authorization": "Bearer sk-test"}
        assert call.kwargs["json"] == {
            "input": ["tesla model 3 2023 battery specifications"],
            "model": "text-embedding-3-small",
            "dimensions": 3,
        }

    @pytest.mark.asyncio
    async def test_dimensions_omitted_for_fixed_size_models(self) -> None:
        """Only text-embedding-3 models are asked for a size."""
        settings = EmbeddingSettings(
            base_url="http://test:8080",
            model="BAAI/bge-large-en-v1.5",
            api_key=None,
        )

        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = _response({"data": [{"embedding": [0.5]}]})

        service = OpenAIEmbeddingService(settings=settings, client=mock_client)
        await service.embed("text")

        payload = mock_client.post.call_args.kwargs["json"]
        assert "dimensions" not in payload
        assert mock_client.post.call_args.kwargs["headers"] == {}

    @pytest.mark.asyncio
    async def test_embed_batch_orders_by_index(self) -> None:
        """Results follow the index field, not response order."""
        settings = EmbeddingSettings(base_url="http://test:8080", batch_size=10)

        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = _response(
            {
                "data": [
                    {"index": 1, "embedding": [0.3, 0.4]},
                    {"index": 0, "embedding": [0.1, 0.2]},
                ]
            }
        )

        service = OpenAIEmbeddingService(settings=settings, client=mock_client)
        results = await service.embed_batch(["text1", "text2"])

        assert results[0].text == "text1"
        assert results[0].embedding == [0.1, 0.2]
        assert results[1].embedding == [0.3, 0.4]

    @pytest.mark.asyncio
    async def test_embed_empty_list(self) -> None:
        """Empty list returns empty results."""
        service = OpenAIEmbeddingService(settings=EmbeddingSettings())
        assert await service.embed_batch([]) == []

    @pytest.mark.asyncio
    async def test_embed_http_error(self) -> None:
        """HTTP error raises EmbeddingError."""
        mock_response = MagicMock()
        mock_response.status_code = 500
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Server error",
            request=MagicMock(),
            response=mock_response,
        )

        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = mock_response

        service = OpenAIEmbeddingService(settings=EmbeddingSettings(), client=mock_client)

        with pytest.raises(EmbeddingError) as exc_info:
            await service.embed("test")

        assert exc_info.value.details["status_code"] == 500
        assert exc_info.value.details["provider"] == "openai"

    @pytest.mark.asyncio
    async def test_embed_connection_error(self) -> None:
        """Connection error raises EmbeddingError."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.side_effect = httpx.RequestError("Connection failed")

        service = OpenAIEmbeddingService(settings=EmbeddingSettings(), client=mock_client)

        with pytest.raises(EmbeddingError):
            await service.embed("test")

    @pytest.mark.asyncio
    async def test_count_mismatch_is_error(self) -> None:
        """A response with the wrong number of vectors is rejected."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = _response({"data": [{"embedding": [0.1]}]})

        service = OpenAIEmbeddingService(settings=EmbeddingSettings(), client=mock_client)

        with pytest.raises(EmbeddingError, match="Invalid response"):
            await service.embed_batch(["a", "b"])

    @pytest.mark.asyncio
    async def test_batch_chunking(self) -> None:
        """Large batches are chunked correctly."""
        settings = EmbeddingSettings(base_url="http://test:8080", batch_size=2)

        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = _response(
            {"data": [{"embedding": [0.1]}, {"embedding": [0.2]}]}
        )

        service = OpenAIEmbeddingService(settings=settings, client=mock_client)
        # 4 texts with batch_size=2 should make 2 requests
        results = await service.embed_batch(["t1", "t2", "t3", "t4"])

        assert len(results) == 4
        assert mock_client.post.call_count == 2

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        """Service closes owned client."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        service = OpenAIEmbeddingService(settings=EmbeddingSettings(), client=mock_client)
        service._owns_client = True  # Simulate owning the client

        await service.close()
        mock_client.aclose.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_leaves_shared_client(self) -> None:
        """A client passed in is not closed by the service."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        service = OpenAIEmbeddingService(settings=EmbeddingSettings(), client=mock_client)

        await service.close()
        mock_client.aclose.assert_not_called()


class TestOllamaEmbeddingService:
    """Tests for OllamaEmbeddingService."""

    @pytest.mark.asyncio
    async def test_embed_single(self) -> None:
        """Posts to /api/embed and reads the embeddings list."""
        settings = EmbeddingSettings(
            provider=EmbeddingProvider.OLLAMA,
            ollama_url="http://ollama:11434",
            ollama_model="nomic-embed-text",
        )

        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = _response({"embeddings": [[1, 0.5, 0]]})

        service = OllamaEmbeddingService(settings=settings, client=mock_client)
        result = await service.embed("rivian r1t 2023 battery specifications")

        assert result.embedding == [1.0, 0.5, 0.0]
        assert result.model == "nomic-embed-text"

        call = mock_client.post.call_args
        assert call.args[0] == "http://ollama:11434/api/embed"
        assert call.kwargs["json"] == {
            "model": "nomic-embed-text",
            "input": ["rivian r1t 2023 battery specifications"],
        }

    @pytest.mark.asyncio
    async def test_empty_embeddings_is_error(self) -> None:
        """An empty embeddings list is an invalid response."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = _response({"embeddings": []})

        service = OllamaEmbeddingService(settings=EmbeddingSettings(), client=mock_client)

        with pytest.raises(EmbeddingError) as exc_info:
            await service.embed("text")

        assert exc_info.value.details["provider"] == "ollama"

    @pytest.mark.asyncio
    async def test_missing_field_is_error(self) -> None:
        """A body without embeddings is an invalid response."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = _response({"error": "model not found"})

        service = OllamaEmbeddingService(settings=EmbeddingSettings(), client=mock_client)

        with pytest.raises(EmbeddingError):
            await service.embed("text")


class TestCreateEmbeddingService:
    """Tests for the provider factory."""

    def test_openai(self) -> None:
        """OpenAI provider builds the OpenAI service."""
        settings = EmbeddingSettings(provider=EmbeddingProvider.OPENAI)
        assert isinstance(create_embedding_service(settings), OpenAIEmbeddingService)

    def test_ollama(self) -> None:
        """Ollama provider builds the Ollama service."""
        settings = EmbeddingSettings(provider=EmbeddingProvider.OLLAMA)
        assert isinstance(create_embedding_service(settings), OllamaEmbeddingService)
