"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables (or a local .env file).
No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from ev_oracle.exceptions import ConfigurationError


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class EmbeddingProvider(str, Enum):
    """Backend used to turn query text into vectors."""

    OPENAI = "openai"
    OLLAMA = "ollama"


class LLMProvider(str, Enum):
    """Backend used for the generative fallback."""

    CLAUDE = "claude"
    OLLAMA = "ollama"
    OPENAI = "openai"


class EmbeddingSettings(BaseSettings):
    """Embedding service configuration.

    The OpenAI variant talks to any OpenAI-style ``/embeddings`` endpoint,
    the Ollama variant to a local ``/api/embed`` endpoint.
    """

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_", populate_by_name=True)

    provider: EmbeddingProvider = Field(
        default=EmbeddingProvider.OPENAI,
        description="Embedding backend (openai or ollama)",
    )
    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI-style embedding API base URL",
    )
    model: str = Field(
        default="text-embedding-3-small",
        description="OpenAI embedding model name",
    )
    api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("EMBEDDING_API_KEY", "OPENAI_API_KEY", "api_key"),
        description="API key for the OpenAI embedding endpoint",
    )
    ollama_url: str = Field(
        default="http://localhost:11434",
        description="Ollama server URL",
    )
    ollama_model: str = Field(
        default="nomic-embed-text",
        description="Ollama embedding model name",
    )
    dimensions: int = Field(
        default=768,
        gt=0,
        description="Vector dimensions; must match the knowledge store collection",
    )
    batch_size: int = Field(
        default=32,
        description="Batch size for embedding requests",
    )
    timeout: float = Field(
        default=60.0,
        description="Request timeout in seconds",
    )


class LLMSettings(BaseSettings):
    """Generative fallback configuration.

    Supports Anthropic Claude, a local Ollama server, and any
    OpenAI-compatible chat completions endpoint.
    """

    model_config = SettingsConfigDict(env_prefix="LLM_", populate_by_name=True)

    provider: LLMProvider = Field(
        default=LLMProvider.OLLAMA,
        description="Fallback backend (claude, ollama or openai)",
    )

    # Anthropic
    anthropic_url: str = Field(
        default="https://api.anthropic.com/v1",
        description="Anthropic API base URL",
    )
    anthropic_model: str = Field(
        default="claude-3-5-sonnet-20241022",
        description="Claude model name",
    )
    anthropic_version: str = Field(
        default="2023-06-01",
        description="Value of the anthropic-version header",
    )
    anthropic_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "LLM_ANTHROPIC_API_KEY", "ANTHROPIC_API_KEY", "anthropic_api_key"
        ),
        description="Anthropic API key",
    )

    # Ollama
    ollama_url: str = Field(
        default="http://localhost:11434",
        description="Ollama server URL",
    )
    ollama_model: str = Field(
        default="gemma3",
        description="Ollama model name",
    )

    # OpenAI-compatible
    base_url: str = Field(
        default="http://localhost:11434/v1",
        description="OpenAI-compatible API base URL",
    )
    model: str = Field(
        default="llama3:8b",
        description="OpenAI-compatible model name",
    )
    api_key: SecretStr = Field(
        default=SecretStr("not-required"),
        description="API key for the OpenAI-compatible endpoint",
    )

    timeout: float = Field(
        default=120.0,
        description="Request timeout in seconds",
    )
    max_tokens: int = Field(
        default=1024,
        description="Maximum tokens in response",
    )
    temperature: float = Field(
        default=0.1,
        description="Sampling temperature (lower = more deterministic)",
    )


class QdrantSettings(BaseSettings):
    """Qdrant knowledge store configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_")

    url: str = Field(
        default="http://localhost:6333",
        description="Qdrant server URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Qdrant API key (optional for local)",
    )
    collection_name: str = Field(
        default="ev_specs",
        description="Collection holding the EV specification records",
    )


class ResolutionSettings(BaseSettings):
    """Resolution pipeline tuning."""

    model_config = SettingsConfigDict(env_prefix="RESOLUTION_")

    confidence_threshold: float = Field(
        default=0.8,
        description="Minimum similarity accepted from the knowledge store",
    )
    fallback_confidence: float = Field(
        default=0.5,
        description="Confidence assigned to LLM-generated records",
    )
    cache_fallback: bool = Field(
        default=False,
        description="Store LLM-generated records back into the knowledge store",
    )


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # API settings
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        description="API server port",
    )

    # Nested settings
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)
    resolution: ResolutionSettings = Field(default_factory=ResolutionSettings)


def validate_settings(settings: Settings) -> Settings:
    """Check the fields each selected provider requires.

    Args:
        settings: Settings to validate.

    Returns:
        The same settings instance.

    Raises:
        ConfigurationError: Listing every missing or invalid field.
    """
    problems: list[str] = []

    if settings.embedding.provider == EmbeddingProvider.OPENAI and not settings.embedding.api_key:
        problems.append("OPENAI_API_KEY is required when using OpenAI embeddings")
    if settings.llm.provider == LLMProvider.CLAUDE and not settings.llm.anthropic_api_key:
        problems.append("ANTHROPIC_API_KEY is required when using Claude")
    if not 0.0 <= settings.resolution.confidence_threshold <= 1.0:
        problems.append("RESOLUTION_CONFIDENCE_THRESHOLD must be between 0 and 1")
    if not 0.0 <= settings.resolution.fallback_confidence <= 1.0:
        problems.append("RESOLUTION_FALLBACK_CONFIDENCE must be between 0 and 1")

    if problems:
        raise ConfigurationError(
            "; ".join(problems),
            details={"problems": problems},
        )
    return settings


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
