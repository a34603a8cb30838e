"""Knowledge store module."""

from ev_oracle.knowledge.models import NearestMatch
from ev_oracle.knowledge.store import KnowledgeStore, QdrantKnowledgeStore, point_id

__all__ = [
    "KnowledgeStore",
    "NearestMatch",
    "QdrantKnowledgeStore",
    "point_id",
]
