"""Tests for vsme_assistant.core.cost_tracker and cost_estimator modules.

Tests cost accounting:
- Pricing resolution (table, local, prefixes)
- Usage recording from dicts and response objects
- Pre-flight estimate band
"""

from types import SimpleNamespace

import pytest

from vsme_assistant.core.config import CostConfig
from vsme_assistant.core.cost_estimator import estimate_cost, estimate_tokens
from vsme_assistant.core.cost_tracker import (
    CostTracker,
    get_pricing,
    normalize_model_name,
    token_cost,
)
from vsme_assistant.prompts.extraction_prompt import EXTRACTION_SYSTEM_PROMPT


# =============================================================================
# Pricing tests
# =============================================================================


class TestPricing:
    """Tests for per-model rates."""

    def test_normalize_strips_prefixes(self):
        assert normalize_model_name("openai/gpt-4o") == "gpt-4o"
        assert normalize_model_name("openrouter/openai/gpt-4o") == "gpt-4o"
        assert normalize_model_name("gpt-4o") == "gpt-4o"

    def test_published_rates(self):
        assert get_pricing("gpt-4o") == (5.00, 15.00)
        assert get_pricing("openai/gpt-3.5-turbo") == (0.50, 1.50)

    def test_local_models_are_free(self):
        assert get_pricing("local/qwen2.5:7b") == (0.0, 0.0)
        assert token_cost("local/qwen2.5:7b", 1_000_000, 1_000_000) == 0.0

    def test_token_cost(self):
        assert token_cost("gpt-4o", 1_000_000, 0) == pytest.approx(5.0)
        assert token_cost("gpt-4o", 1_000, 200) == pytest.approx(0.008)


# =============================================================================
# CostTracker tests
# =============================================================================


class TestCostTracker:
    """Tests for run-level accumulation."""

    def test_record_from_dict(self):
        tracker = CostTracker()
        call = tracker.record("gpt-4o", {"prompt_tokens": 1000, "completion_tokens": 200}, "report.pdf")

        assert call.total_tokens == 1200
        assert call.label == "report.pdf"
        assert tracker.call_count == 1

    def test_record_from_object(self):
        tracker = CostTracker()
        tracker.record("gpt-4o", SimpleNamespace(prompt_tokens=500, completion_tokens=None))
        assert tracker.total_prompt_tokens == 500
        assert tracker.total_completion_tokens == 0

    def test_record_none_is_not_counted(self):
        tracker = CostTracker()
        tracker.record("gpt-4o", None)
        assert tracker.call_count == 0

    def test_totals(self):
        tracker = CostTracker()
        tracker.record("gpt-4o", {"prompt_tokens": 1000, "completion_tokens": 200})
        tracker.record("gpt-4o", {"prompt_tokens": 1000, "completion_tokens": 200})

        assert tracker.total_tokens == 2400
        assert tracker.total_cost == pytest.approx(0.016)
        assert tracker.to_dict()["total_calls"] == 2
        assert "Total calls: 2" in tracker.summary()


# =============================================================================
# estimate_cost tests
# =============================================================================


class TestEstimateCost:
    """Tests for the pre-flight band."""

    def test_exact_figures(self):
        estimate = estimate_cost("gpt-4o", [4000, 2000], field_count=10)

        system_tokens = estimate_tokens(len(EXTRACTION_SYSTEM_PROMPT))
        expected_input = 1000 + 500 + system_tokens + 10 * CostConfig.SCHEMA_TOKENS_PER_FIELD
        assert estimate.input_tokens == expected_input
        assert estimate.output_tokens == 1000
        assert estimate.estimated_tokens == expected_input + 1000
        assert estimate.min_cost == round(token_cost("gpt-4o", expected_input, 500), 4)
        assert estimate.max_cost == round(token_cost("gpt-4o", expected_input, 1500), 4)

    def test_band_is_ordered(self):
        estimate = estimate_cost("gpt-4-turbo-preview", [100_000])
        assert estimate.min_cost <= estimate.max_cost

    def test_local_model_is_free(self):
        estimate = estimate_cost("local/qwen2.5:7b", [100_000])
        assert estimate.min_cost == 0.0
        assert estimate.max_cost == 0.0
        assert estimate.input_tokens > 0

    def test_monotonic_in_document_size(self):
        small = estimate_cost("gpt-4o", [1_000])
        large = estimate_cost("gpt-4o", [400_000])
        assert large.max_cost > small.max_cost

    def test_no_documents(self):
        estimate = estimate_cost("gpt-4o", [], field_count=0)
        assert estimate.input_tokens == estimate_tokens(len(EXTRACTION_SYSTEM_PROMPT))
        assert estimate.output_tokens == 0

    def test_negative_field_count_rejected(self):
        with pytest.raises(ValueError):
            estimate_cost("gpt-4o", [100], field_count=-1)

    def test_estimate_tokens_rounds_up(self):
        assert estimate_tokens(0) == 0
        assert estimate_tokens(1) == 1
        assert estimate_tokens(8) == 2
        assert estimate_tokens(9) == 3
