"""Pytest configuration and shared fixtures.

Provides reusable test fixtures for:
- Sample documents
- Model-output records and responses
- A scripted in-memory generation backend
"""

import inspect
import json

import pytest

from vsme_assistant.backends.base import BackendKind, BackendSession, GenerationBackend
from vsme_assistant.core.pipeline_logger import reset_logger
from vsme_assistant.pydantic_models.documents import Document


@pytest.fixture(autouse=True)
def _fresh_logger():
    """Each test gets its own shared run logger."""
    reset_logger()
    yield
    reset_logger()


# =============================================================================
# Documents
# =============================================================================


@pytest.fixture
def sample_documents():
    return [
        Document(
            filename="report.pdf",
            content="=== PAGE 1 ===\nAcme Ltd annual sustainability report 2024.\n"
                    "Turnover: EUR 12,500,000. Employees: 85.",
        ),
        Document(
            filename="energy.xlsx",
            content="=== Sheet: Energy ===\nMetric,Value\nElectricity (MWh),1200\n",
        ),
    ]


# =============================================================================
# Model output
# =============================================================================


@pytest.fixture
def make_record():
    """Factory for one model-output field record (wire format)."""

    def _make(field_name="entityName", value="Acme Ltd", **overrides):
        record = {
            "fieldName": field_name,
            "value": value,
            "found": value is not None,
            "source": "report.pdf p.1" if value is not None else "",
            "quote": str(value) if value is not None else "",
            "confidence": "HIGH",
        }
        record.update(overrides)
        return record

    return _make


@pytest.fixture
def make_response():
    """Factory for a raw model response wrapping records in a ```json fence."""

    def _make(*records, fenced=True):
        body = json.dumps(list(records), indent=2)
        return f"```json\n{body}\n```" if fenced else body

    return _make


# =============================================================================
# Scripted backend
# =============================================================================


class FakeBackend(GenerationBackend):
    """In-memory backend that answers from a script.

    responses may be a string (same answer every call), a list (one answer per
    call, in order), or a callable taking the prompt (sync or async). An
    Exception in place of an answer is raised from the call.
    """

    kind = BackendKind.REMOTE

    def __init__(self, responses="[]", model="gpt-4o", context_chars=100_000, numeric=False):
        super().__init__(BackendSession(BackendKind.REMOTE, model, api_key="sk-test"))
        self.responses = responses
        self.calls: list[tuple[str, str | None]] = []
        self.connect_calls = 0
        self._context_chars = context_chars
        self._numeric = numeric

    @property
    def context_chars(self) -> int:
        return self._context_chars

    @property
    def numeric_confidence(self) -> bool:
        return self._numeric

    async def connect(self) -> None:
        self.connect_calls += 1
        self._connected = True

    async def _generate(self, prompt, system_prompt):
        self.calls.append((prompt, system_prompt))
        if callable(self.responses):
            answer = self.responses(prompt)
            if inspect.isawaitable(answer):
                answer = await answer
        elif isinstance(self.responses, list):
            answer = self.responses[len(self.calls) - 1]
        else:
            answer = self.responses
        if isinstance(answer, Exception):
            raise answer
        return answer, {"prompt_tokens": 1_000, "completion_tokens": 200}


@pytest.fixture
def fake_backend():
    """Factory for FakeBackend instances."""
    return FakeBackend
