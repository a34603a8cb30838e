"""Specification resolution pipeline."""

from ev_oracle.resolution.models import ResolutionPath, ResolutionStep
from ev_oracle.resolution.parser import parse_spec_response
from ev_oracle.resolution.pipeline import ResolutionPipeline, build_pipeline

__all__ = [
    "ResolutionPath",
    "ResolutionPipeline",
    "ResolutionStep",
    "build_pipeline",
    "parse_spec_response",
]
