"""Embedding data models."""

from pydantic import BaseModel, Field, model_validator


class EmbeddingResult(BaseModel):
    """Vector for one input text.

    ``dimensions`` must equal ``len(embedding)``; the knowledge store
    collection is created with the configured size and rejects vectors of
    any other length.
    """

    text: str = Field(description="Text that was embedded")
    embedding: list[float] = Field(description="Embedding vector")
    model: str = Field(description="Embedding model that produced the vector")
    dimensions: int = Field(description="Length of the vector")

    @model_validator(mode="after")
    def _check_dimensions(self) -> "EmbeddingResult":
        if len(self.embedding) != self.dimensions:
            raise ValueError(
                f"dimensions is {self.dimensions} but the embedding has "
                f"{len(self.embedding)} values"
            )
        return self
