"""Prompt templates for the generative fallback."""

from abc import ABC, abstractmethod
from typing import Any


class PromptTemplate(ABC):
    """Abstract base class for prompt templates."""

    @abstractmethod
    def format(self, **kwargs: Any) -> str:
        """Format the template with provided variables.

        Args:
            **kwargs: Template variables.

        Returns:
            Formatted prompt string.
        """
        ...


class SpecPromptTemplate(PromptTemplate):
    """Prompt asking for a vehicle's battery specifications.

    The requested answer layout matches what
    :func:`ev_oracle.resolution.parser.parse_spec_response` extracts.
    """

    DEFAULT_SYSTEM_PROMPT = """You are an automotive data assistant specialising in electric vehicle batteries.

Rules:
- Answer with the requested fields only, no commentary
- Use kWh for battery capacity and kW for power
- If you are unsure, give your best estimate based on similar models instead of refusing"""

    DEFAULT_USER_TEMPLATE = """Please provide the battery specifications for the {year} {make} {model} electric vehicle.

Return ONLY the following information in this exact format:
Capacity: [number] kWh
Power: [number] kW
Chemistry: [chemistry type]

If you don't have exact information, provide your best estimate based on similar models."""

    def __init__(
        self,
        system_prompt: str | None = None,
        user_template: str | None = None,
    ) -> None:
        """Initialize the specification prompt template.

        Args:
            system_prompt: Custom system prompt.
            user_template: Custom user template with {make}, {model}, {year}.
        """
        self.system_prompt = system_prompt or self.DEFAULT_SYSTEM_PROMPT
        self.user_template = user_template or self.DEFAULT_USER_TEMPLATE

    def format(self, **kwargs: Any) -> str:
        """Format the user template.

        Args:
            **kwargs: Must include 'make', 'model' and 'year'.

        Returns:
            Formatted user prompt.
        """
        return self.user_template.format(**kwargs)

    def build_prompt(self, make: str, model: str, year: int) -> tuple[str, str]:
        """Build the complete prompt for a vehicle.

        Returns:
            Tuple of (system_prompt, user_prompt).
        """
        return self.system_prompt, self.format(make=make, model=model, year=year)
