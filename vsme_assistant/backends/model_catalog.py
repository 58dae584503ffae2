"""Catalog of the models the assistant offers.

Remote models carry pricing-relevant metadata (context window); local models
are grouped by hardware tier so the CLI can recommend one that fits the
machine's memory.
"""

import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import Final


class ModelTier(str, Enum):
    ULTRA_LIGHT = "ultra_light"            # 4-8 GB RAM
    BALANCED = "balanced"                  # 8-16 GB RAM
    HIGH_PERFORMANCE = "high_performance"  # 16 GB+ RAM

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class LocalModel:
    display_name: str
    registry_name: str
    size_gb: float
    description: str


@dataclass(frozen=True)
class RemoteModel:
    model_id: str
    display_name: str
    description: str
    context_window: int


# Display name -> registry tag on the local server
_REGISTRY_NAMES: Final[dict[str, str]] = {
    "Qwen 2.5 3B": "qwen2.5:3b",
    "Qwen 2.5 7B": "qwen2.5:7b",
    "Qwen 2.5 14B": "qwen2.5:14b",
    "Gemma 2B": "gemma:2b",
    "Mistral 7B": "mistral:7b",
    "Mistral Nemo 12B": "mistral-nemo:12b",
}


def to_registry_name(display_name: str) -> str:
    """Translate a friendly model name to the local server's registry tag.

    Known names use the lookup table; anything else is lowercased with
    whitespace runs replaced by "-".

    Examples:
        >>> to_registry_name("Qwen 2.5 3B")
        'qwen2.5:3b'
        >>> to_registry_name("Llama 3  8B")
        'llama-3-8b'
    """
    if display_name in _REGISTRY_NAMES:
        return _REGISTRY_NAMES[display_name]
    return re.sub(r"\s+", "-", display_name.strip().lower())


RECOMMENDED_MODELS: Final[dict[ModelTier, tuple[LocalModel, ...]]] = {
    ModelTier.ULTRA_LIGHT: (
        LocalModel("Qwen 2.5 3B", "qwen2.5:3b", 1.9, "Fast, good structured output for its size"),
        LocalModel("Gemma 2B", "gemma:2b", 1.7, "Smallest footprint, simple documents only"),
    ),
    ModelTier.BALANCED: (
        LocalModel("Qwen 2.5 7B", "qwen2.5:7b", 4.7, "Best accuracy per GB for extraction"),
        LocalModel("Mistral 7B", "mistral:7b", 4.1, "Solid general-purpose alternative"),
    ),
    ModelTier.HIGH_PERFORMANCE: (
        LocalModel("Qwen 2.5 14B", "qwen2.5:14b", 9.0, "Highest accuracy on long reports"),
        LocalModel("Mistral Nemo 12B", "mistral-nemo:12b", 7.1, "Large context, multilingual documents"),
    ),
}


def recommend_model_tier(total_ram_gb: float, available_ram_gb: float) -> ModelTier:
    """Pick the largest tier the machine can run with headroom for the OS.

    Available memory is weighed first; total memory is the fallback when the
    machine is temporarily busy.
    """
    if available_ram_gb >= 12 or total_ram_gb >= 16:
        return ModelTier.HIGH_PERFORMANCE
    if available_ram_gb >= 6 or total_ram_gb >= 10:
        return ModelTier.BALANCED
    return ModelTier.ULTRA_LIGHT


_GB = 1024 ** 3


def detect_memory_gb() -> tuple[float, float] | None:
    """Total and currently available physical memory in GB.

    Returns None where the platform exposes no page counts (Windows).
    """
    try:
        page_size = os.sysconf("SC_PAGE_SIZE")
        total_pages = os.sysconf("SC_PHYS_PAGES")
    except (AttributeError, ValueError, OSError):
        return None
    if page_size <= 0 or total_pages <= 0:
        return None
    try:
        available_pages = os.sysconf("SC_AVPHYS_PAGES")
    except (ValueError, OSError):
        # macOS has no available-page count; total memory decides alone
        available_pages = 0
    return (
        round(total_pages * page_size / _GB, 1),
        round(max(available_pages, 0) * page_size / _GB, 1),
    )


REMOTE_MODELS: Final[dict[str, RemoteModel]] = {
    "gpt-4-turbo-preview": RemoteModel(
        "gpt-4-turbo-preview", "GPT-4 Turbo",
        "Best for complex document analysis. 128K context window.", 128_000,
    ),
    "gpt-4o": RemoteModel(
        "gpt-4o", "GPT-4o",
        "Faster and cheaper. Excellent for structured data extraction.", 128_000,
    ),
    "gpt-3.5-turbo": RemoteModel(
        "gpt-3.5-turbo", "GPT-3.5 Turbo",
        "Lower cost option for simpler documents.", 16_000,
    ),
}
