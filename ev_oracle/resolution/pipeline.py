"""Three-tier specification resolution.

A query is answered by the first strategy that succeeds:

1. exact lookup of (make, model, year) in the knowledge store;
2. similarity search on the embedded canonical query text, accepted when
   the best match's confidence reaches the configured threshold;
3. the generative fallback, whose answer is parsed into a record.

Transport failures at any step end the resolution; only a semantic miss
moves on to the next step.
"""

import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TypeVar

import pydantic

from ev_oracle.config import ResolutionSettings, Settings, get_settings, validate_settings
from ev_oracle.embeddings.service import EmbeddingService, create_embedding_service
from ev_oracle.exceptions import EVOracleError, ValidationError
from ev_oracle.knowledge.store import KnowledgeStore, QdrantKnowledgeStore
from ev_oracle.llm.client import LLMClient, create_llm_client
from ev_oracle.llm.prompts import SpecPromptTemplate
from ev_oracle.logging_config import get_logger
from ev_oracle.observability.metrics import track_resolution, track_similarity_search
from ev_oracle.resolution.models import ResolutionPath, ResolutionStep
from ev_oracle.resolution.parser import parse_spec_response
from ev_oracle.specs.models import (
    AddSpecRequest,
    SpecQuery,
    SpecRecord,
    SpecSource,
    build_query_text,
)

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


@contextmanager
def _step(step: ResolutionStep) -> Iterator[None]:
    """Tag errors raised inside the block with the pipeline step."""
    try:
        yield
    except EVOracleError as e:
        e.details.setdefault("step", step.value)
        raise


def _validated(model_cls: type[ModelT], **fields: object) -> ModelT:
    try:
        return model_cls(**fields)
    except pydantic.ValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise ValidationError(
            "Invalid vehicle query",
            details={"step": ResolutionStep.VALIDATION.value, "errors": errors},
        ) from e


class ResolutionPipeline:
    """Resolves vehicle queries to battery specification records.

    Steps run strictly in order and each collaborator call is awaited
    before the next decision; nothing is retried or cached in process.
    """

    def __init__(
        self,
        knowledge_store: KnowledgeStore,
        embedding_service: EmbeddingService,
        llm_client: LLMClient,
        prompt_template: SpecPromptTemplate | None = None,
        settings: ResolutionSettings | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            knowledge_store: Store for exact and similarity lookups.
            embedding_service: Embeds canonical query text.
            llm_client: Generative fallback.
            prompt_template: Prompt used for the fallback.
            settings: Threshold and fallback tuning.
        """
        self._store = knowledge_store
        self._embedding_service = embedding_service
        self._llm_client = llm_client
        self._prompt_template = prompt_template or SpecPromptTemplate()
        self._settings = settings or get_settings().resolution

    @property
    def confidence_threshold(self) -> float:
        """Minimum similarity confidence accepted from the store."""
        return self._settings.confidence_threshold

    async def resolve(self, make: str, model: str, year: int) -> SpecRecord:
        """Resolve battery specifications for a vehicle.

        Args:
            make: Vehicle make.
            model: Vehicle model.
            year: Model year.

        Returns:
            The resolved record with its confidence and source.

        Raises:
            ValidationError: If the query is malformed; no collaborator is
                contacted.
            EmbeddingError, KnowledgeStoreError, LLMError: On transport
                failure, with ``details["step"]`` naming the step.
            ParseError: If the fallback answer contains no specification.
        """
        query = _validated(SpecQuery, make=make, model=model, year=year)
        start = time.perf_counter()

        try:
            record, path = await self._resolve(query)
        except EVOracleError as e:
            track_resolution(ResolutionPath.NONE.value, time.perf_counter() - start, success=False)
            logger.error(
                f"Resolution failed: {e.message}",
                extra={"make": query.make, "model": query.model, "year": query.year, "step": e.step},
            )
            raise

        track_resolution(path.value, time.perf_counter() - start)
        logger.info(
            "Resolved specification",
            extra={
                "make": query.make,
                "model": query.model,
                "year": query.year,
                "path": path.value,
                "confidence": record.confidence,
            },
        )
        return record

    async def _resolve(self, query: SpecQuery) -> tuple[SpecRecord, ResolutionPath]:
        with _step(ResolutionStep.EXACT_LOOKUP):
            record = await self._store.find_exact(query.make, query.model, query.year)
        if record is not None:
            return record, ResolutionPath.EXACT

        query_text = build_query_text(query.make, query.model, query.year)
        with _step(ResolutionStep.EMBEDDING):
            embedding = await self._embedding_service.embed(query_text)

        with _step(ResolutionStep.SIMILARITY_SEARCH):
            matches = await self._store.find_nearest(embedding.embedding, limit=1)

        best = matches[0] if matches else None
        track_similarity_search(best.similarity if best else None)

        if best is not None and best.record.confidence >= self._settings.confidence_threshold:
            return best.record, ResolutionPath.SIMILARITY

        logger.info(
            "Falling back to LLM",
            extra={
                "make": query.make,
                "model": query.model,
                "year": query.year,
                "best_confidence": best.record.confidence if best else None,
                "threshold": self._settings.confidence_threshold,
            },
        )
        record = await self._fallback(query, embedding.embedding)
        return record, ResolutionPath.LLM

    async def _fallback(self, query: SpecQuery, vector: list[float]) -> SpecRecord:
        system_prompt, user_prompt = self._prompt_template.build_prompt(
            make=query.make,
            model=query.model,
            year=query.year,
        )

        with _step(ResolutionStep.FALLBACK_GENERATION):
            generation = await self._llm_client.generate_text(
                prompt=user_prompt,
                system_prompt=system_prompt,
            )
        logger.debug(
            "LLM response received",
            extra={"model": generation.model, "tokens": generation.total_tokens},
        )

        with _step(ResolutionStep.PARSE):
            record = parse_spec_response(
                generation.content,
                query.make,
                query.model,
                query.year,
                confidence=self._settings.fallback_confidence,
            )

        if self._settings.cache_fallback:
            with _step(ResolutionStep.CACHE_BACK):
                await self._store.upsert(record, vector)
            logger.info("Cached LLM result", extra={"key": record.identity_key})

        return record

    async def add(
        self,
        make: str,
        model: str,
        year: int,
        capacity_kwh: float,
        power_kw: float,
        chemistry: str,
    ) -> SpecRecord:
        """Store a known specification, replacing any with the same identity.

        Returns:
            The stored record as an exact lookup would return it.

        Raises:
            ValidationError: If any field is malformed.
            EmbeddingError, KnowledgeStoreError: On transport failure.
        """
        request = _validated(
            AddSpecRequest,
            make=make,
            model=model,
            year=year,
            capacity_kwh=capacity_kwh,
            power_kw=power_kw,
            chemistry=chemistry,
        )
        record = SpecRecord(
            make=request.make,
            model=request.model,
            year=request.year,
            capacity_kwh=request.capacity_kwh,
            power_kw=request.power_kw,
            chemistry=request.chemistry,
            confidence=1.0,
            source=SpecSource.DATABASE,
        )

        with _step(ResolutionStep.EMBEDDING):
            embedding = await self._embedding_service.embed(
                build_query_text(record.make, record.model, record.year)
            )
        with _step(ResolutionStep.UPSERT):
            await self._store.upsert(record, embedding.embedding)

        logger.info("Added specification", extra={"key": record.identity_key})
        return record

    async def initialize(self) -> bool:
        """Create the knowledge store collection if needed.

        Returns:
            True if the collection was created.
        """
        return await self._store.ensure_collection(self._embedding_service.dimensions)

    async def close(self) -> None:
        """Close all collaborator clients."""
        await self._store.close()
        await self._embedding_service.close()
        await self._llm_client.close()


def build_pipeline(settings: Settings | None = None) -> ResolutionPipeline:
    """Assemble a pipeline from configuration.

    Providers are chosen once here; the pipeline never branches on them.

    Raises:
        ConfigurationError: If required settings are missing.
    """
    settings = validate_settings(settings or get_settings())
    return ResolutionPipeline(
        knowledge_store=QdrantKnowledgeStore(settings=settings.qdrant),
        embedding_service=create_embedding_service(settings.embedding),
        llm_client=create_llm_client(settings.llm),
        settings=settings.resolution,
    )
