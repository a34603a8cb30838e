"""Extraction of battery specifications from free-form LLM output.

The parse is best-effort: each field is searched for independently and a
response is accepted as long as one of them is found. Values are passed
through without range checks.
"""

import re

from ev_oracle.exceptions import ParseError
from ev_oracle.specs.models import SpecRecord, SpecSource

DEFAULT_FALLBACK_CONFIDENCE = 0.5

# Compiled once at import; never mutated.
CAPACITY_PATTERN = re.compile(r"capacity:\s*([0-9.]+)\s*kWh", re.IGNORECASE)
POWER_PATTERN = re.compile(r"power:\s*([0-9.]+)\s*kW", re.IGNORECASE)
CHEMISTRY_PATTERN = re.compile(r"chemistry:\s*([^\n]+)", re.IGNORECASE)


def _extract_number(pattern: re.Pattern[str], text: str) -> float:
    match = pattern.search(text)
    if match is None:
        return 0.0
    try:
        return float(match.group(1))
    except ValueError:
        # e.g. "1.2.3" matched the character class but is not a number
        return 0.0


def _extract_chemistry(text: str) -> str:
    match = CHEMISTRY_PATTERN.search(text)
    if match is None:
        return ""
    return match.group(1).strip()


def parse_spec_response(
    text: str,
    make: str,
    model: str,
    year: int,
    confidence: float = DEFAULT_FALLBACK_CONFIDENCE,
) -> SpecRecord:
    """Parse an LLM answer into a specification record.

    Args:
        text: Raw model output, possibly with preamble or trailing notes.
        make: Vehicle make the answer refers to.
        model: Vehicle model.
        year: Model year.
        confidence: Confidence to attach to the record.

    Returns:
        SpecRecord with source ``llm``; unrecognized fields are left at
        0 / "".

    Raises:
        ParseError: If none of capacity, power or chemistry is found.
    """
    capacity = _extract_number(CAPACITY_PATTERN, text)
    power = _extract_number(POWER_PATTERN, text)
    chemistry = _extract_chemistry(text)

    if capacity == 0 and power == 0 and chemistry == "":
        raise ParseError(
            "Failed to extract any specifications from response",
            details={
                "make": make,
                "model": model,
                "year": year,
                "response_excerpt": text[:200],
            },
        )

    return SpecRecord(
        make=make,
        model=model,
        year=year,
        capacity_kwh=capacity,
        power_kw=power,
        chemistry=chemistry,
        confidence=confidence,
        source=SpecSource.LLM,
    )
