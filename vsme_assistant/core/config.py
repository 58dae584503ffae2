"""Centralized configuration for the VSME extraction assistant.

All magic numbers, thresholds, and configuration constants are documented here.
Each constant includes:
- What it controls
- Why this value was chosen
- What changing it affects
"""

import os
from dataclasses import dataclass
from typing import Final


# =============================================================================
# Backend Configuration
# =============================================================================
#
# Two interchangeable generation backends are supported:
#   - "remote" (default): hosted chat-completion API, pay-per-token
#   - "local": Ollama-compatible inference server on this machine
#
# For the remote backend set OPENAI_API_KEY (or pass --api-key to the CLI).
# For the local backend set VSME_LOCAL_URL if the server is not on the default
# port, and VSME_LOCAL_MODEL to pick a model from the catalog.
#
# =============================================================================

BACKEND: Final[str] = os.environ.get("VSME_BACKEND", "remote")
"""Backend to use when none is given explicitly. Set via VSME_BACKEND.

Supported values:
- "remote": hosted chat-completion API (default)
- "local": local inference server
"""

API_KEY_ENV_VAR: Final[str] = "OPENAI_API_KEY"
"""Environment variable holding the remote backend API key."""

REMOTE_MODEL: Final[str] = os.environ.get("VSME_REMOTE_MODEL", "gpt-4o")
"""Default remote model. GPT-4o is cheaper than GPT-4 Turbo with the same
128K context window, which is what matters for whole-document prompts.
"""

LOCAL_URL: Final[str] = os.environ.get("VSME_LOCAL_URL", "http://localhost:11434")
"""Base URL of the local inference server (Ollama default port)."""

LOCAL_MODEL: Final[str] = os.environ.get("VSME_LOCAL_MODEL", "Qwen 2.5 7B")
"""Default local model (display name, translated by the model catalog)."""


# Confidence Thresholds

class ConfidenceThresholds:
    """Thresholds for mapping and judging extraction confidence.

    The local backend reports a continuous score in [0, 1]; the remote backend
    reports HIGH/MEDIUM/LOW. Scores are mapped onto the categorical tiers at
    the parser boundary so nothing downstream branches on backend identity:
    - HIGH (>= 0.8): trusted, eligible for auto-accept
    - MEDIUM (0.5-0.8): usable but routed to human review
    - LOW (< 0.5): routed to human review

    Used by: response_parser.py, classifier.py
    """

    HIGH: Final[float] = 0.8
    """Scores >= this map to HIGH.

    Only HIGH fields are auto-accepted, so this is the review cutoff for
    local models. Override it per run with AnalysisSettings.high_threshold.
    """

    MEDIUM: Final[float] = 0.5
    """Scores >= this (and below HIGH) map to MEDIUM."""

    SUSPICIOUS: Final[float] = 0.3
    """A non-null value with a score below this is flagged as suspicious.

    The model is effectively saying it guessed. The field is kept for review
    but never trusted.
    """

    FUZZY_SOURCE_MATCH: Final[int] = 90
    """Minimum rapidfuzz partial_ratio for attributing a citation to a filename.

    Citations often abbreviate or reformat filenames ("annual report.pdf p.3"
    for "Annual_Report.pdf"). 90 tolerates separators and case but rejects
    unrelated files that share a common word.

    Used by: classifier.py:build_source_summary()
    """


# Prompt Configuration

class PromptLimits:
    """Limits on how much document text goes into one prompt.

    Truncation is always explicit: the builder appends TRUNCATION_MARKER and
    reports the affected filenames.
    """

    MAX_CHARS_PER_DOCUMENT: Final[int] = 50_000
    """Per-document cap, matching the local backend's practical budget.
    Used by: extraction_prompt.py
    """

    OUTPUT_RESERVE_TOKENS: Final[int] = 4_000
    """Tokens kept free for the model's answer when sizing the prompt."""

    PROMPT_OVERHEAD_TOKENS: Final[int] = 3_000
    """Tokens reserved for the system prompt and field descriptions."""

    LOCAL_CONTEXT_CHARS: Final[int] = 50_000
    """Total document budget for local models (typically 8K-32K contexts)."""

    TRUNCATION_MARKER: Final[str] = "[Content truncated due to length]"


# Cost Estimation

class CostConfig:
    """Constants for pre-flight cost estimation.

    The estimate is deliberately a band, not a point: output verbosity is not
    knowable before the call.
    """

    CHARS_PER_TOKEN: Final[int] = 4
    """Approximate characters per token (actual is ~3.5 for English text)."""

    SCHEMA_TOKENS_PER_FIELD: Final[int] = 50
    """Prompt tokens spent describing one form field."""

    OUTPUT_TOKENS_PER_FIELD: Final[int] = 100
    """Completion tokens for one structured field record."""

    OUTPUT_LOW_FACTOR: Final[float] = 0.5
    """Lower bound multiplier on the output estimate."""

    OUTPUT_HIGH_FACTOR: Final[float] = 1.5
    """Upper bound multiplier on the output estimate."""

    DEFAULT_FIELD_COUNT: Final[int] = 40
    """Field count assumed when the caller does not pass a schema."""


# LLM Call Configuration

class LLMConfig:
    """Default parameters for generation calls."""

    TEMPERATURE: Final[float] = 0.1
    """Low temperature for factual extraction. Not 0.0 because some local
    models degenerate into repetition at exactly zero.
    """

    TOP_P: Final[float] = 0.9
    """Nucleus sampling for the local backend."""

    MAX_TOKENS: Final[int] = 4_000
    """Completion cap for the remote backend. ~40 field records fit easily."""

    REQUEST_TIMEOUT_SECONDS: Final[float] = 300.0
    """Generation can take minutes on a laptop-class local model."""


class LocalServerConfig:
    """Timeouts and endpoints for the local inference server."""

    CONNECT_TIMEOUT_SECONDS: Final[float] = 5.0
    """Connection refused should surface fast as a setup problem."""

    PULL_TIMEOUT_SECONDS: Final[float] = 3_600.0
    """Model downloads are several GB."""

    TAGS_PATH: Final[str] = "/api/tags"
    PULL_PATH: Final[str] = "/api/pull"
    GENERATE_PATH: Final[str] = "/api/generate"


# Document Ingestion

class DocumentLimits:
    """Allow-list and size cap enforced before any content reaches the core."""

    MAX_FILE_BYTES: Final[int] = 10 * 1024 * 1024
    """10 MB per file."""

    ALLOWED_EXTENSIONS: Final[tuple[str, ...]] = (
        ".pdf", ".docx", ".xlsx", ".xls", ".csv", ".txt", ".json",
    )

    ALLOWED_MIME_TYPES: Final[tuple[str, ...]] = (
        "application/pdf",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-excel",
        "text/plain",
        "text/csv",
        "application/json",
    )


@dataclass
class AnalysisSettings:
    """Per-run tunables for DocumentAnalyzer.

    Attributes:
        high_threshold: Numeric score at or above which a field counts as HIGH.
        medium_threshold: Numeric score at or above which a field counts as MEDIUM.
        per_document: Extract each document in its own call and merge results.
        max_concurrent: Max concurrent calls in per-document mode.
        max_document_chars: Override for the prompt's document budget.
    """

    high_threshold: float = ConfidenceThresholds.HIGH
    medium_threshold: float = ConfidenceThresholds.MEDIUM
    per_document: bool = False
    max_concurrent: int = 3
    max_document_chars: int | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.medium_threshold <= self.high_threshold <= 1.0:
            raise ValueError(
                "thresholds must satisfy 0 <= medium_threshold <= high_threshold <= 1, "
                f"got medium={self.medium_threshold}, high={self.high_threshold}"
            )
        if self.max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {self.max_concurrent}")
