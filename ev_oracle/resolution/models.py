"""Resolution pipeline data models."""

from enum import Enum


class ResolutionStep(str, Enum):
    """Stage of the resolution pipeline, attached to errors raised in it."""

    VALIDATION = "validation"
    EXACT_LOOKUP = "exact_lookup"
    EMBEDDING = "embedding"
    SIMILARITY_SEARCH = "similarity_search"
    FALLBACK_GENERATION = "fallback_generation"
    PARSE = "parse"
    CACHE_BACK = "cache_back"
    UPSERT = "upsert"


class ResolutionPath(str, Enum):
    """Strategy that produced a resolved record."""

    EXACT = "exact"
    SIMILARITY = "similarity"
    LLM = "llm"
    NONE = "none"
