"""Token and cost tracking for generation calls.

Tracks usage across a run and calculates costs based on model pricing.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from litellm import model_cost

logger = logging.getLogger(__name__)

# Published pricing per 1M tokens (USD) for the remote models offered in the
# model picker. (input_cost_per_1M, output_cost_per_1M)
MODEL_PRICING: dict[str, tuple[float, float]] = {
    "gpt-4-turbo-preview": (10.00, 30.00),
    "gpt-4o": (5.00, 15.00),
    "gpt-3.5-turbo": (0.50, 1.50),
}

LOCAL_PREFIX = "local/"
"""Models served by the local backend are tracked as local/<registry name>."""

_warned_models: set[str] = set()


def normalize_model_name(model: str) -> str:
    """Strip provider routing prefixes for pricing lookup.

    litellm accepts 'openai/gpt-4o' or 'openrouter/openai/gpt-4o'; the pricing
    table uses the bare 'gpt-4o'.
    """
    for prefix in ("openrouter/", "openai/"):
        if model.startswith(prefix):
            model = model[len(prefix):]
    return model


def is_local_model(model: str) -> bool:
    return model.startswith(LOCAL_PREFIX)


def get_pricing(model: str) -> tuple[float, float]:
    """Per-1M-token (input, output) rates for a model.

    Resolution order: local models are free; the published table; litellm's
    bundled model_cost table (no network); otherwise zero with a one-time
    warning.
    """
    if is_local_model(model):
        return (0.0, 0.0)

    normalized = normalize_model_name(model)
    if normalized in MODEL_PRICING:
        return MODEL_PRICING[normalized]

    info = model_cost.get(normalized) or model_cost.get(model)
    if info and info.get("input_cost_per_token") is not None:
        return (
            info["input_cost_per_token"] * 1_000_000,
            (info.get("output_cost_per_token") or 0.0) * 1_000_000,
        )

    if model not in _warned_models:
        _warned_models.add(model)
        logger.warning(f"No pricing available for model '{model}', cost will show as $0")
    return (0.0, 0.0)


def token_cost(model: str, prompt_tokens: float, completion_tokens: float) -> float:
    """Cost in USD for a token count at the model's published rates."""
    input_rate, output_rate = get_pricing(model)
    return (prompt_tokens * input_rate + completion_tokens * output_rate) / 1_000_000


@dataclass
class CallUsage:
    """Usage for a single generation call."""

    model: str
    prompt_tokens: int
    completion_tokens: int
    label: str = ""  # Which document or run the call served

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    @property
    def cost(self) -> float:
        """Cost in USD."""
        return token_cost(self.model, self.prompt_tokens, self.completion_tokens)


@dataclass
class CostTracker:
    """Accumulates token usage and costs across a run."""

    calls: list[CallUsage] = field(default_factory=list)

    def record(self, model: str, usage: Any, label: str = "") -> CallUsage:
        """Record usage from a backend response.

        Args:
            model: Model identifier (e.g., "gpt-4o", "local/qwen2.5:7b")
            usage: Object or dict with prompt_tokens / completion_tokens
            label: Which document or run the call served

        Returns:
            The recorded CallUsage
        """
        if usage is None:
            return CallUsage(model=model, prompt_tokens=0, completion_tokens=0, label=label)

        if isinstance(usage, dict):
            prompt_tokens = usage.get("prompt_tokens", 0) or 0
            completion_tokens = usage.get("completion_tokens", 0) or 0
        else:
            prompt_tokens = getattr(usage, "prompt_tokens", 0) or 0
            completion_tokens = getattr(usage, "completion_tokens", 0) or 0

        call = CallUsage(
            model=model,
            prompt_tokens=int(prompt_tokens),
            completion_tokens=int(completion_tokens),
            label=label,
        )
        self.calls.append(call)
        return call

    @property
    def total_prompt_tokens(self) -> int:
        return sum(c.prompt_tokens for c in self.calls)

    @property
    def total_completion_tokens(self) -> int:
        return sum(c.completion_tokens for c in self.calls)

    @property
    def total_tokens(self) -> int:
        return self.total_prompt_tokens + self.total_completion_tokens

    @property
    def total_cost(self) -> float:
        """Total cost in USD."""
        return sum(c.cost for c in self.calls)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def summary(self) -> str:
        """Return a formatted summary of usage and costs."""
        lines = [
            "=" * 50,
            "COST SUMMARY",
            "=" * 50,
            f"Total calls: {self.call_count}",
            f"Total tokens: {self.total_tokens:,}",
            f"  - Prompt: {self.total_prompt_tokens:,}",
            f"  - Completion: {self.total_completion_tokens:,}",
            f"Total cost: ${self.total_cost:.4f}",
            "=" * 50,
        ]
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Export as dict for JSON serialization."""
        return {
            "total_calls": self.call_count,
            "total_tokens": self.total_tokens,
            "prompt_tokens": self.total_prompt_tokens,
            "completion_tokens": self.total_completion_tokens,
            "total_cost_usd": round(self.total_cost, 6),
        }
