"""Application exception hierarchy.

All custom exceptions inherit from EVOracleError.
Each exception has an error code for structured error handling.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "EVO-1000"
    CONFIGURATION_ERROR = "EVO-1001"
    VALIDATION_ERROR = "EVO-1002"

    # Embedding errors (3xxx)
    EMBEDDING_SERVICE_ERROR = "EVO-3000"

    # Knowledge store errors (4xxx)
    KNOWLEDGE_STORE_ERROR = "EVO-4000"

    # LLM errors (5xxx)
    LLM_SERVICE_ERROR = "EVO-5000"
    LLM_TIMEOUT = "EVO-5001"
    LLM_RATE_LIMIT = "EVO-5002"
    LLM_EMPTY_RESPONSE = "EVO-5003"

    # Resolution errors (6xxx)
    SPEC_PARSE_ERROR = "EVO-6000"


class EVOracleError(Exception):
    """Base exception for all EV Oracle errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def step(self) -> str | None:
        """Resolution step that raised the error, if known."""
        return self.details.get("step")

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigurationError(EVOracleError):
    """Configuration or environment error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class ValidationError(EVOracleError):
    """Input validation error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details)


class EmbeddingError(EVOracleError):
    """Embedding service error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.EMBEDDING_SERVICE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class KnowledgeStoreError(EVOracleError):
    """Knowledge store operation error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.KNOWLEDGE_STORE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class LLMError(EVOracleError):
    """LLM service error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.LLM_SERVICE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class ParseError(EVOracleError):
    """Fallback response contained no recognizable specification."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.SPEC_PARSE_ERROR, details)
