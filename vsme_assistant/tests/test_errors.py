"""Tests for vsme_assistant.core.errors and run settings."""

import pytest

from vsme_assistant.core.config import AnalysisSettings
from vsme_assistant.core.errors import (
    AuthenticationFailedError,
    BackendError,
    ErrorCategory,
    ErrorSeverity,
    PipelineErrors,
    RateLimitedError,
    UnsupportedDocumentError,
    backend_error,
    document_error,
    validation_error,
)


class TestExceptions:
    """Tests for user-facing messages."""

    def test_default_message(self):
        error = RateLimitedError()
        assert str(error) == RateLimitedError.user_message
        assert isinstance(error, BackendError)

    def test_custom_message_replaces_default(self):
        error = AuthenticationFailedError("No API key provided.")
        assert error.user_message == "No API key provided."
        assert AuthenticationFailedError.user_message.startswith("Invalid API key")

    def test_unsupported_document_fields(self):
        error = UnsupportedDocumentError("run.exe", "unsupported file type")
        assert error.filename == "run.exe"
        assert str(error) == "run.exe: unsupported file type"


class TestPipelineErrors:
    """Tests for run diagnostics aggregation."""

    def test_warnings_and_errors_separated(self):
        errors = PipelineErrors()
        errors.add(validation_error("no quote", phase="parse", field_name="entityName"))
        errors.add(validation_error(
            "no source", phase="parse", field_name="turnover", severity=ErrorSeverity.ERROR,
        ))
        errors.add(validation_error(
            "no source", phase="parse", field_name="turnover", severity=ErrorSeverity.ERROR,
        ))

        assert errors.warning_count == 1
        assert errors.error_count == 2
        assert errors.failed_fields == ["turnover"]
        assert errors.summary()["by_category"] == {"validation": 3}

    def test_backend_error_record(self):
        record = backend_error("Rate limit exceeded.", phase="extract")
        assert record.category == ErrorCategory.BACKEND
        assert record.severity == ErrorSeverity.CRITICAL
        assert "phase=extract" in str(record)
        assert record.to_dict()["category"] == "backend"

    def test_document_error_record(self):
        errors = PipelineErrors()
        errors.add(document_error("file too large", phase="load", filename="big.pdf"))

        assert errors.error_count == 1
        assert errors.failed_fields == []
        assert errors.to_dict()["errors"][0]["filename"] == "big.pdf"


class TestAnalysisSettings:
    """Tests for per-run tunables."""

    def test_defaults(self):
        settings = AnalysisSettings()
        assert settings.high_threshold == 0.8
        assert settings.medium_threshold == 0.5
        assert settings.per_document is False

    def test_inverted_thresholds_rejected(self):
        with pytest.raises(ValueError):
            AnalysisSettings(high_threshold=0.4, medium_threshold=0.6)

    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValueError):
            AnalysisSettings(max_concurrent=0)
