"""LLM client module."""

from ev_oracle.llm.client import (
    ClaudeClient,
    HTTPLLMClient,
    LLMClient,
    OllamaClient,
    OpenAICompatibleClient,
    create_llm_client,
)
from ev_oracle.llm.models import GenerationResult, Message, Role
from ev_oracle.llm.prompts import PromptTemplate, SpecPromptTemplate

__all__ = [
    "ClaudeClient",
    "GenerationResult",
    "HTTPLLMClient",
    "LLMClient",
    "Message",
    "OllamaClient",
    "OpenAICompatibleClient",
    "PromptTemplate",
    "Role",
    "SpecPromptTemplate",
    "create_llm_client",
]
