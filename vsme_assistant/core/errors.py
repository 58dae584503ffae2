"""Structured error types for the extraction assistant.

Two kinds of error live here:
- Exceptions that abort a run (transport, authentication, malformed output,
  bad input). Each carries a user-facing message.
- Structured records (ExtractionError, PipelineErrors) for non-fatal
  diagnostics collected during a run, such as per-field validation issues.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class VSMEAssistantError(Exception):
    """Base class for every error raised by this package."""

    user_message: str = "The AI assistant failed. Please try again."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)
        if message:
            self.user_message = message


# Backend errors

class BackendError(VSMEAssistantError):
    """A generation backend could not produce a response."""

    user_message = "AI analysis failed."


class BackendUnavailableError(BackendError):
    """Backend not reachable (connection refused, server not running)."""

    user_message = (
        "Cannot connect to the AI backend. Make sure it is installed and running."
    )


class AuthenticationFailedError(BackendError):
    """API key missing, invalid, or revoked. Terminal for the run."""

    user_message = "Invalid API key. Please check your API key and enter it again."


class RateLimitedError(BackendError):
    """Backend is throttling requests. The user can try again shortly."""

    user_message = "Rate limit exceeded. Please try again in a moment."


class BackendServerError(BackendError):
    """Backend returned a server-side error (5xx)."""

    user_message = "The AI service had a server error. Please try again later."


class NotConnectedError(BackendError):
    """Generation attempted before connect(). No network call was made."""

    user_message = "Not connected to the AI backend."


class ModelPullError(BackendError):
    """Local model download failed."""

    user_message = "Failed to download the model."


# Pipeline errors

class MalformedResponseError(VSMEAssistantError):
    """Model output contained no parseable JSON.

    Never treated as "no fields found": that would present missing data as a
    confident negative result.
    """

    user_message = "Failed to parse AI response. Please try again."

    def __init__(self, message: str | None = None, raw_response: str | None = None) -> None:
        super().__init__(message)
        self.raw_response = raw_response


class UnsupportedDocumentError(VSMEAssistantError):
    """File rejected before extraction (type not allowed, too large, unreadable)."""

    user_message = "Unsupported document."

    def __init__(self, filename: str, reason: str) -> None:
        super().__init__(f"{filename}: {reason}")
        self.filename = filename
        self.reason = reason


class EmptyDocumentSetError(VSMEAssistantError):
    """Analysis requested with no usable documents."""

    user_message = "Please upload at least one document."


class AnalysisInProgressError(VSMEAssistantError):
    """A second run was started while one is still in flight."""

    user_message = "An analysis is already running."


class ReviewStateError(VSMEAssistantError):
    """Review decision on a field that already has one."""

    user_message = "This field has already been reviewed."


class InvalidReviewError(ReviewStateError):
    """Review decision that cannot be recorded (unknown field or candidate, bad value)."""

    user_message = "This review decision is not valid."


# Structured diagnostics

class ErrorSeverity(Enum):
    """Severity levels for extraction errors."""
    WARNING = "warning"   # Non-fatal, field downgraded or flagged
    ERROR = "error"       # Fatal for this field, run continued
    CRITICAL = "critical" # Run halted


class ErrorCategory(Enum):
    """Categories of extraction errors."""
    BACKEND = "backend"           # Remote API / local server errors
    LLM_PARSE = "llm_parse"       # JSON parsing errors from model output
    DOCUMENT = "document"         # Document reading / ingestion errors
    VALIDATION = "validation"     # Per-field contract violations


@dataclass
class ExtractionError:
    """Structured extraction error with context."""

    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    phase: str                       # Run phase where the error occurred
    field_name: str | None = None    # Form field the error concerns
    filename: str | None = None      # Document the error concerns
    original_error: Exception | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        parts = [f"[{self.severity.value.upper()}] {self.category.value}: {self.message}"]
        if self.field_name:
            parts.append(f"field={self.field_name}")
        if self.filename:
            parts.append(f"file={self.filename}")
        if self.phase:
            parts.append(f"phase={self.phase}")
        return " | ".join(parts)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message,
            "phase": self.phase,
            "field_name": self.field_name,
            "filename": self.filename,
            "context": self.context,
        }


@dataclass
class PipelineErrors:
    """Aggregate diagnostics across one analysis run."""

    errors: list[ExtractionError] = field(default_factory=list)
    warnings: list[ExtractionError] = field(default_factory=list)
    failed_fields: list[str] = field(default_factory=list)

    def add(self, error: ExtractionError):
        """Add an error or warning."""
        if error.severity == ErrorSeverity.WARNING:
            self.warnings.append(error)
        else:
            self.errors.append(error)
            if error.field_name and error.field_name not in self.failed_fields:
                self.failed_fields.append(error.field_name)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def summary(self) -> dict:
        """Get summary statistics."""
        by_category = {}
        for error in self.errors + self.warnings:
            cat = error.category.value
            by_category[cat] = by_category.get(cat, 0) + 1

        return {
            "total_errors": self.error_count,
            "total_warnings": self.warning_count,
            "failed_fields": len(self.failed_fields),
            "by_category": by_category,
        }

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "failed_fields": self.failed_fields,
            "summary": self.summary(),
        }


# Factory functions for common error types

def llm_parse_error(
    message: str,
    phase: str,
    raw_response: str | None = None,
) -> ExtractionError:
    """Create a parse error record."""
    return ExtractionError(
        category=ErrorCategory.LLM_PARSE,
        severity=ErrorSeverity.ERROR,
        message=message,
        phase=phase,
        context={"raw_response": raw_response[:500] if raw_response else None},
    )


def validation_error(
    message: str,
    phase: str,
    field_name: str | None = None,
    severity: ErrorSeverity = ErrorSeverity.WARNING,
    raw: dict | None = None,
) -> ExtractionError:
    """Create a per-field validation record."""
    return ExtractionError(
        category=ErrorCategory.VALIDATION,
        severity=severity,
        message=message,
        phase=phase,
        field_name=field_name,
        context={"raw": raw} if raw else {},
    )


def document_error(
    message: str,
    phase: str,
    filename: str,
    original: Exception | None = None,
) -> ExtractionError:
    """Create a document ingestion error record."""
    return ExtractionError(
        category=ErrorCategory.DOCUMENT,
        severity=ErrorSeverity.ERROR,
        message=message,
        phase=phase,
        filename=filename,
        original_error=original,
    )


def backend_error(
    message: str,
    phase: str,
    original: Exception | None = None,
) -> ExtractionError:
    """Create a backend error record."""
    return ExtractionError(
        category=ErrorCategory.BACKEND,
        severity=ErrorSeverity.CRITICAL,
        message=message,
        phase=phase,
        original_error=original,
    )
