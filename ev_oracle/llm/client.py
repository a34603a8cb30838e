"""LLM client interface and provider implementations."""

import time
from abc import ABC, abstractmethod
from typing import Any

import httpx

from ev_oracle.config import LLMProvider, LLMSettings, get_settings
from ev_oracle.exceptions import ErrorCode, LLMError
from ev_oracle.llm.models import GenerationResult, Message, Role
from ev_oracle.logging_config import get_logger
from ev_oracle.observability.metrics import track_llm_request

logger = get_logger(__name__)


class LLMClient(ABC):
    """Abstract base class for LLM clients.

    Defines the interface for generating text with LLMs.
    """

    @abstractmethod
    async def generate(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        """Generate text from messages.

        Args:
            messages: Conversation messages.
            temperature: Sampling temperature override.
            max_tokens: Maximum tokens override.

        Returns:
            GenerationResult with generated text.

        Raises:
            LLMError: If generation fails.
        """
        ...

    async def generate_text(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        """Generate text from a simple prompt.

        Args:
            prompt: User prompt.
            system_prompt: Optional system prompt.
            temperature: Sampling temperature override.
            max_tokens: Maximum tokens override.

        Returns:
            GenerationResult with generated text.

        Raises:
            LLMError: If generation fails.
        """
        messages: list[Message] = []

        if system_prompt:
            messages.append(Message(role=Role.SYSTEM, content=system_prompt))

        messages.append(Message(role=Role.USER, content=prompt))

        return await self.generate(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name."""
        ...

    async def close(self) -> None:
        """Release any held connections."""


class HTTPLLMClient(LLMClient):
    """Shared HTTP plumbing and error mapping for LLM providers.

    Subclasses supply the endpoint, the request payload and the
    response decoding.
    """

    provider_label = "llm"

    def __init__(
        self,
        settings: LLMSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: LLM configuration.
            client: HTTP client (for testing).
        """
        self._settings = settings or get_settings().llm
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    @abstractmethod
    def endpoint(self) -> str:
        """Full URL of the generation endpoint."""
        ...

    def _headers(self) -> dict[str, str]:
        return {}

    @abstractmethod
    def _payload(
        self,
        messages: list[Message],
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        """Build the request body."""
        ...

    @abstractmethod
    def _decode(self, data: dict[str, Any]) -> GenerationResult:
        """Turn the response body into a GenerationResult."""
        ...

    async def generate(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        """Send the messages to the provider and decode its answer."""
        client = await self._get_client()
        url = self.endpoint
        payload = self._payload(
            messages,
            temperature if temperature is not None else self._settings.temperature,
            max_tokens or self._settings.max_tokens,
        )
        start = time.perf_counter()

        try:
            response = await client.post(url, json=payload, headers=self._headers())
            response.raise_for_status()

        except httpx.TimeoutException as e:
            self._track_failure(start)
            logger.error(f"LLM request timed out: {e}", extra={"provider": self.provider_label})
            raise LLMError(
                "LLM request timed out",
                code=ErrorCode.LLM_TIMEOUT,
                details={"timeout": self._settings.timeout, "provider": self.provider_label},
            ) from e

        except httpx.HTTPStatusError as e:
            self._track_failure(start)
            status = e.response.status_code
            logger.error(f"LLM request failed: {status}", extra={"provider": self.provider_label})

            if status == 429:
                raise LLMError(
                    "Rate limit exceeded",
                    code=ErrorCode.LLM_RATE_LIMIT,
                    details={"status_code": status, "provider": self.provider_label},
                ) from e

            raise LLMError(
                f"{self.provider_label} API returned {status}",
                code=ErrorCode.LLM_SERVICE_ERROR,
                details={"status_code": status, "provider": self.provider_label},
            ) from e

        except httpx.RequestError as e:
            self._track_failure(start)
            logger.error(f"LLM connection error: {e}", extra={"provider": self.provider_label})
            raise LLMError(
                f"Failed to connect to {self.provider_label} API: {e}",
                code=ErrorCode.LLM_SERVICE_ERROR,
                details={"url": url, "provider": self.provider_label},
            ) from e

        try:
            result = self._decode(response.json())
        except (KeyError, IndexError, TypeError, ValueError) as e:
            self._track_failure(start)
            raise LLMError(
                f"Invalid response from {self.provider_label} API: {e}",
                code=ErrorCode.LLM_SERVICE_ERROR,
                details={"error": str(e), "provider": self.provider_label},
            ) from e

        if not result.content.strip():
            self._track_failure(start)
            raise LLMError(
                f"No content in {self.provider_label} response",
                code=ErrorCode.LLM_EMPTY_RESPONSE,
                details={"provider": self.provider_label},
            )

        track_llm_request(
            provider=self.provider_label,
            model=result.model,
            duration=time.perf_counter() - start,
            prompt_tokens=result.prompt_tokens,
            completion_tokens=result.completion_tokens,
        )
        return result

    def _track_failure(self, start: float) -> None:
        track_llm_request(
            provider=self.provider_label,
            model=self.model_name,
            duration=time.perf_counter() - start,
            success=False,
        )


class OpenAICompatibleClient(HTTPLLMClient):
    """LLM client for OpenAI-compatible chat completions APIs.

    Works with:
    - Ollama (localhost:11434/v1)
    - vLLM
    - OpenAI API
    """

    provider_label = "openai"

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._settings.model

    @property
    def endpoint(self) -> str:
        return f"{self._settings.base_url.rstrip('/')}/chat/completions"

    def _headers(self) -> dict[str, str]:
        api_key = self._settings.api_key.get_secret_value()
        if api_key and api_key != "not-required":
            return {"Authorization": f"Bearer {api_key}"}
        return {}

    def _payload(
        self,
        messages: list[Message],
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        return {
            "model": self._settings.model,
            "messages": [
                {"role": msg.role.value, "content": msg.content} for msg in messages
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

    def _decode(self, data: dict[str, Any]) -> GenerationResult:
        usage = data.get("usage") or {}
        return GenerationResult(
            content=data["choices"][0]["message"]["content"] or "",
            model=data.get("model", self._settings.model),
            provider=self.provider_label,
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
        )


class ClaudeClient(HTTPLLMClient):
    """LLM client for the Anthropic Messages API."""

    provider_label = "claude"

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._settings.anthropic_model

    @property
    def endpoint(self) -> str:
        return f"{self._settings.anthropic_url.rstrip('/')}/messages"

    def _headers(self) -> dict[str, str]:
        headers = {"anthropic-version": self._settings.anthropic_version}
        if self._settings.anthropic_api_key is not None:
            headers["x-api-key"] = self._settings.anthropic_api_key.get_secret_value()
        return headers

    def _payload(
        self,
        messages: list[Message],
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        # The Messages API takes the system prompt as a top-level field
        system = "\n\n".join(m.content for m in messages if m.role == Role.SYSTEM)
        payload: dict[str, Any] = {
            "model": self._settings.anthropic_model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [
                {"role": m.role.value, "content": m.content}
                for m in messages
                if m.role != Role.SYSTEM
            ],
        }
        if system:
            payload["system"] = system
        return payload

    def _decode(self, data: dict[str, Any]) -> GenerationResult:
        text = "".join(
            block.get("text", "")
            for block in data["content"]
            if block.get("type", "text") == "text"
        )
        usage = data.get("usage") or {}
        return GenerationResult(
            content=text,
            model=data.get("model", self._settings.anthropic_model),
            provider=self.provider_label,
            prompt_tokens=usage.get("input_tokens", 0),
            completion_tokens=usage.get("output_tokens", 0),
        )


class OllamaClient(HTTPLLMClient):
    """LLM client for a local Ollama server (``/api/chat``)."""

    provider_label = "ollama"

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._settings.ollama_model

    @property
    def endpoint(self) -> str:
        return f"{self._settings.ollama_url.rstrip('/')}/api/chat"

    def _payload(
        self,
        messages: list[Message],
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        return {
            "model": self._settings.ollama_model,
            "messages": [
                {"role": msg.role.value, "content": msg.content} for msg in messages
            ],
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }

    def _decode(self, data: dict[str, Any]) -> GenerationResult:
        return GenerationResult(
            content=data["message"]["content"] or "",
            model=data.get("model", self._settings.ollama_model),
            provider=self.provider_label,
            prompt_tokens=data.get("prompt_eval_count", 0),
            completion_tokens=data.get("eval_count", 0),
        )


def create_llm_client(
    settings: LLMSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> LLMClient:
    """Build the LLM client selected by configuration.

    Args:
        settings: LLM configuration.
        client: Optional shared HTTP client.

    Returns:
        The provider implementation for ``settings.provider``.
    """
    settings = settings or get_settings().llm
    if settings.provider == LLMProvider.CLAUDE:
        return ClaudeClient(settings=settings, client=client)
    if settings.provider == LLMProvider.OPENAI:
        return OpenAICompatibleClient(settings=settings, client=client)
    return OllamaClient(settings=settings, client=client)
