"""Pydantic models for the extraction assistant.

Modules:
- extraction_models: ExtractedField, Confidence, AnalysisResult, FieldIssue
- review_models: FieldReview, ReviewAction
- form_schema: VSMEFormField and the VSME core field list
- documents: Document, DocumentRejection
"""

from vsme_assistant.pydantic_models.extraction_models import (
    AnalysisResult,
    Confidence,
    ExtractedField,
    FieldIssue,
    FieldValue,
    IssueSeverity,
    SourceSummary,
    Usefulness,
)
from vsme_assistant.pydantic_models.review_models import FieldReview, ReviewAction
from vsme_assistant.pydantic_models.form_schema import (
    VSME_CORE_FIELDS,
    VSME_FIELD_NAMES,
    VSMEFormField,
    get_field,
)
from vsme_assistant.pydantic_models.documents import Document, DocumentRejection

__all__ = [
    # Extraction
    "AnalysisResult",
    "Confidence",
    "ExtractedField",
    "FieldIssue",
    "FieldValue",
    "IssueSeverity",
    "SourceSummary",
    "Usefulness",
    # Review
    "FieldReview",
    "ReviewAction",
    # Schema
    "VSME_CORE_FIELDS",
    "VSME_FIELD_NAMES",
    "VSMEFormField",
    "get_field",
    # Documents
    "Document",
    "DocumentRejection",
]
