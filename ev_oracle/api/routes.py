"""API routes for specification lookups."""

from functools import lru_cache

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from ev_oracle.logging_config import get_logger
from ev_oracle.resolution.pipeline import ResolutionPipeline, build_pipeline
from ev_oracle.specs.models import SpecRecord

logger = get_logger(__name__)


router = APIRouter(prefix="/api/v1/specs", tags=["Specifications"])


class ResolveRequest(BaseModel):
    """Request body for a specification lookup."""

    make: str = Field(description="Vehicle manufacturer")
    model: str = Field(description="Vehicle model")
    year: int = Field(description="Model year")


class AddRequest(ResolveRequest):
    """Request body for seeding a known specification."""

    capacity_kwh: float = Field(description="Battery capacity in kWh")
    power_kw: float = Field(description="Power output in kW")
    chemistry: str = Field(description="Battery chemistry type")


@lru_cache
def get_pipeline() -> ResolutionPipeline:
    """Build the process-wide pipeline from settings on first use."""
    return build_pipeline()


@router.post("/resolve", response_model=SpecRecord)
async def resolve_endpoint(
    request: ResolveRequest,
    pipeline: ResolutionPipeline = Depends(get_pipeline),
) -> SpecRecord:
    """Resolve battery specifications for a vehicle.

    Tries the knowledge base first and falls back to the LLM.
    """
    return await pipeline.resolve(request.make, request.model, request.year)


@router.post("", response_model=SpecRecord, status_code=status.HTTP_201_CREATED)
async def add_endpoint(
    request: AddRequest,
    pipeline: ResolutionPipeline = Depends(get_pipeline),
) -> SpecRecord:
    """Add or replace a known specification in the knowledge base."""
    record = await pipeline.add(
        make=request.make,
        model=request.model,
        year=request.year,
        capacity_kwh=request.capacity_kwh,
        power_kw=request.power_kw,
        chemistry=request.chemistry,
    )
    logger.info("Specification added via API", extra={"key": record.identity_key})
    return record
