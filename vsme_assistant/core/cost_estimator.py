"""Pre-flight cost projection.

Lets a caller gate the paid call on user consent. Pure computation: no
network, no credentials, safe to call before a key has been validated.
"""

import math
from dataclasses import dataclass
from typing import Iterable

from vsme_assistant.core.config import CostConfig
from vsme_assistant.core.cost_tracker import token_cost
from vsme_assistant.prompts.extraction_prompt import EXTRACTION_SYSTEM_PROMPT


@dataclass(frozen=True)
class CostEstimate:
    """Projected token usage and cost band for one analysis run.

    Attributes:
        model: Model the estimate was made for.
        input_tokens: Estimated prompt tokens (documents + system prompt + schema).
        output_tokens: Central estimate of completion tokens.
        estimated_tokens: input_tokens + output_tokens.
        min_cost: Cost with output at the low end of the band (USD).
        max_cost: Cost with output at the high end of the band (USD).
    """

    model: str
    input_tokens: int
    output_tokens: int
    estimated_tokens: int
    min_cost: float
    max_cost: float

    def to_dict(self) -> dict:
        return {
            "model": self.model,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "estimated_tokens": self.estimated_tokens,
            "min_cost_usd": self.min_cost,
            "max_cost_usd": self.max_cost,
        }


def estimate_tokens(char_count: int) -> int:
    """Approximate token count for a number of characters."""
    return math.ceil(max(char_count, 0) / CostConfig.CHARS_PER_TOKEN)


def estimate_cost(
    model: str,
    document_lengths: Iterable[int],
    field_count: int = CostConfig.DEFAULT_FIELD_COUNT,
) -> CostEstimate:
    """Project token usage and a [min, max] cost band before calling a backend.

    Args:
        model: Model identifier (local models are free).
        document_lengths: Byte (or character) length of each document.
        field_count: Number of schema fields to extract.

    Returns:
        CostEstimate. Never a single point: output verbosity is unknowable
        before the call, so output tokens are varied by the configured factors.

    Examples:
        >>> e = estimate_cost("gpt-4o", [4000], field_count=10)
        >>> e.min_cost <= e.max_cost
        True
    """
    if field_count < 0:
        raise ValueError(f"field_count must be >= 0, got {field_count}")

    document_tokens = sum(estimate_tokens(length) for length in document_lengths)
    system_tokens = estimate_tokens(len(EXTRACTION_SYSTEM_PROMPT))
    schema_tokens = field_count * CostConfig.SCHEMA_TOKENS_PER_FIELD
    input_tokens = document_tokens + system_tokens + schema_tokens
    output_tokens = field_count * CostConfig.OUTPUT_TOKENS_PER_FIELD

    min_cost = token_cost(model, input_tokens, output_tokens * CostConfig.OUTPUT_LOW_FACTOR)
    max_cost = token_cost(model, input_tokens, output_tokens * CostConfig.OUTPUT_HIGH_FACTOR)

    return CostEstimate(
        model=model,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        estimated_tokens=input_tokens + output_tokens,
        min_cost=round(min_cost, 4),
        max_cost=round(max_cost, 4),
    )
