"""EV specification data model."""

from ev_oracle.specs.models import (
    AddSpecRequest,
    SpecQuery,
    SpecRecord,
    SpecSource,
    build_query_text,
    identity_key,
)

__all__ = [
    "AddSpecRequest",
    "SpecQuery",
    "SpecRecord",
    "SpecSource",
    "build_query_text",
    "identity_key",
]
