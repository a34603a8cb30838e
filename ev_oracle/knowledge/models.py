"""Knowledge store data models."""

from pydantic import BaseModel, Field

from ev_oracle.specs.models import SpecRecord


class NearestMatch(BaseModel):
    """A stored record returned by similarity search.

    Attributes:
        record: The stored specification, with confidence set to the
            similarity score.
        similarity: Cosine similarity to the query vector (1 - distance).
    """

    record: SpecRecord = Field(description="Matched specification record")
    similarity: float = Field(description="Cosine similarity to the query")
