"""Knowledge store interface and Qdrant implementation."""

import time
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from uuid import UUID, uuid5

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import Distance, PointStruct, VectorParams

from ev_oracle.config import QdrantSettings, get_settings
from ev_oracle.exceptions import ErrorCode, KnowledgeStoreError
from ev_oracle.knowledge.models import NearestMatch
from ev_oracle.logging_config import get_logger
from ev_oracle.observability.metrics import track_store_operation
from ev_oracle.specs.models import SpecRecord, SpecSource, identity_key

logger = get_logger(__name__)

# Namespace for deterministic point ids derived from the identity key.
SPEC_NAMESPACE = UUID("6f1c9a52-3b0e-4d8f-9a61-2c7d5e4b8f10")


def point_id(make: str, model: str, year: int) -> str:
    """Qdrant point id for a vehicle; equal for case variants of make/model."""
    return str(uuid5(SPEC_NAMESPACE, identity_key(make, model, year)))


class KnowledgeStore(ABC):
    """Abstract base class for the specification knowledge store.

    Stores one record per (make, model, year) together with the embedding
    of its canonical query text.
    """

    @abstractmethod
    async def ensure_collection(self, dimensions: int) -> bool:
        """Create the backing collection if it is missing.

        Args:
            dimensions: Vector dimensions of stored embeddings.

        Returns:
            True if the collection was created, False if it already existed.

        Raises:
            KnowledgeStoreError: If the store cannot be reached.
        """
        ...

    @abstractmethod
    async def find_exact(self, make: str, model: str, year: int) -> SpecRecord | None:
        """Look up a record by identity.

        Make and model are compared case-insensitively, year exactly.

        Returns:
            The record with confidence 1.0 and source ``database``, or
            None when no record has that identity.

        Raises:
            KnowledgeStoreError: If the lookup fails.
        """
        ...

    @abstractmethod
    async def find_nearest(self, vector: list[float], limit: int = 1) -> list[NearestMatch]:
        """Find the stored records closest to a vector.

        Args:
            vector: Query embedding.
            limit: Maximum matches to return.

        Returns:
            Matches ordered by descending cosine similarity; empty when
            nothing is stored.

        Raises:
            KnowledgeStoreError: If the search fails.
        """
        ...

    @abstractmethod
    async def upsert(self, record: SpecRecord, vector: list[float]) -> None:
        """Insert a record or overwrite the one with the same identity.

        Raises:
            KnowledgeStoreError: If the write fails.
        """
        ...

    async def close(self) -> None:
        """Release any held connections."""


@contextmanager
def _timed(operation: str) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    except Exception:
        track_store_operation(operation, time.perf_counter() - start, success=False)
        raise
    track_store_operation(operation, time.perf_counter() - start)


def _record_from_payload(payload: dict[str, Any], confidence: float) -> SpecRecord:
    return SpecRecord(
        make=payload["make"],
        model=payload["model"],
        year=payload["year"],
        capacity_kwh=payload.get("capacity_kwh", 0.0),
        power_kw=payload.get("power_kw", 0.0),
        chemistry=payload.get("chemistry", ""),
        confidence=confidence,
        source=SpecSource.DATABASE,
    )


class QdrantKnowledgeStore(KnowledgeStore):
    """Qdrant-backed knowledge store.

    Point ids are derived from the case-folded identity key, so an upsert
    of an existing vehicle overwrites its point and an exact lookup is a
    point retrieval. The collection uses cosine distance, so Qdrant's score
    is the cosine similarity used as confidence.
    """

    def __init__(
        self,
        settings: QdrantSettings | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """Initialize Qdrant knowledge store.

        Args:
            settings: Qdrant configuration.
            client: Existing client (for testing).
        """
        self._settings = settings or get_settings().qdrant
        self._client = client
        self._owns_client = client is None

    @property
    def collection(self) -> str:
        """Name of the backing collection."""
        return self._settings.collection_name

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create Qdrant client."""
        if self._client is None:
            api_key = None
            if self._settings.api_key:
                api_key = self._settings.api_key.get_secret_value()

            self._client = AsyncQdrantClient(
                url=self._settings.url,
                api_key=api_key,
            )
        return self._client

    async def close(self) -> None:
        """Close the Qdrant client."""
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    async def ensure_collection(self, dimensions: int) -> bool:
        """Create the collection with cosine distance if missing."""
        client = await self._get_client()

        try:
            with _timed("ensure_collection"):
                if await client.collection_exists(self.collection):
                    logger.debug(f"Collection already exists: {self.collection}")
                    return False

                await client.create_collection(
                    collection_name=self.collection,
                    vectors_config=VectorParams(
                        size=dimensions,
                        distance=Distance.COSINE,
                    ),
                )
            logger.info(
                f"Created collection: {self.collection}",
                extra={"dimensions": dimensions},
            )
            return True

        except Exception as e:
            raise KnowledgeStoreError(
                f"Failed to create collection: {e}",
                code=ErrorCode.KNOWLEDGE_STORE_ERROR,
                details={"collection": self.collection, "error": str(e)},
            ) from e

    async def find_exact(self, make: str, model: str, year: int) -> SpecRecord | None:
        """Retrieve the point whose id matches the identity key."""
        client = await self._get_client()

        try:
            with _timed("find_exact"):
                points = await client.retrieve(
                    collection_name=self.collection,
                    ids=[point_id(make, model, year)],
                    with_payload=True,
                    with_vectors=False,
                )
        except Exception as e:
            raise KnowledgeStoreError(
                f"Failed to look up specification: {e}",
                code=ErrorCode.KNOWLEDGE_STORE_ERROR,
                details={"collection": self.collection, "error": str(e)},
            ) from e

        if not points or not points[0].payload:
            return None
        return _record_from_payload(dict(points[0].payload), confidence=1.0)

    async def find_nearest(self, vector: list[float], limit: int = 1) -> list[NearestMatch]:
        """Query the collection for the closest stored vectors."""
        client = await self._get_client()

        try:
            with _timed("find_nearest"):
                results = await client.query_points(
                    collection_name=self.collection,
                    query=vector,
                    limit=limit,
                    with_payload=True,
                )
        except Exception as e:
            raise KnowledgeStoreError(
                f"Failed to search: {e}",
                code=ErrorCode.KNOWLEDGE_STORE_ERROR,
                details={"collection": self.collection, "error": str(e)},
            ) from e

        matches: list[NearestMatch] = []
        for point in results.points:
            if not point.payload:
                continue
            score = point.score if point.score is not None else 0.0
            matches.append(
                NearestMatch(
                    record=_record_from_payload(dict(point.payload), confidence=score),
                    similarity=score,
                )
            )
        return matches

    async def upsert(self, record: SpecRecord, vector: list[float]) -> None:
        """Write the record under its identity-derived point id."""
        client = await self._get_client()

        point = PointStruct(
            id=point_id(record.make, record.model, record.year),
            vector=vector,
            payload={
                "make": record.make,
                "model": record.model,
                "year": record.year,
                "capacity_kwh": record.capacity_kwh,
                "power_kw": record.power_kw,
                "chemistry": record.chemistry,
            },
        )

        try:
            with _timed("upsert"):
                await client.upsert(collection_name=self.collection, points=[point])
        except Exception as e:
            raise KnowledgeStoreError(
                f"Failed to upsert specification: {e}",
                code=ErrorCode.KNOWLEDGE_STORE_ERROR,
                details={"collection": self.collection, "error": str(e)},
            ) from e

        logger.debug(
            "Upserted specification",
            extra={"collection": self.collection, "key": record.identity_key},
        )
