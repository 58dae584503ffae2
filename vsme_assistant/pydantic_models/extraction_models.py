"""Provenance-carrying models for extracted form values.

Every candidate value produced by a backend is wrapped in ExtractedField to
provide:
- Where the value came from (source citation, verbatim quote)
- How confident the model was (categorical tier, raw score if any)
- Caveats the pipeline attached (conflicts, validation downgrades)

Wire names are camelCase (fieldName) because that is what the form state and
the prompts use; Python attributes are snake_case.
"""

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

FieldValue = str | int | float | bool | None
"""Typed scalar a form field can hold. None means not found."""


class Confidence(str, Enum):
    """Categorical trust level, the single representation used after parsing.

    Numeric scores from the local backend are mapped onto these tiers using
    ConfidenceThresholds (>= 0.8 HIGH, >= 0.5 MEDIUM, else LOW).
    """

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    def __str__(self) -> str:
        return self.value

    @property
    def rank(self) -> int:
        """Ordering for tie-breaks: HIGH > MEDIUM > LOW."""
        return {"HIGH": 2, "MEDIUM": 1, "LOW": 0}[self.value]


class Usefulness(str, Enum):
    """How much a document contributed to an analysis run."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    def __str__(self) -> str:
        return self.value


class IssueSeverity(str, Enum):
    """Severity of a per-field validation issue. Never aborts a run."""

    WARNING = "warning"  # field kept, routed to verification
    ERROR = "error"      # field kept out of the found set

    def __str__(self) -> str:
        return self.value


class ExtractedField(BaseModel):
    """One candidate value for one form field.

    Example:
        {
            "fieldName": "entityName",
            "value": "Acme Ltd",
            "found": true,
            "source": "report.pdf p.1",
            "quote": "Acme Ltd",
            "confidence": "HIGH"
        }

    Invariants (enforced at construction):
    - found is False iff value is None
    - a found field carries a non-empty source
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    field_name: str = Field(
        min_length=1,
        alias="fieldName",
        validation_alias=AliasChoices("fieldName", "field_name"),
        description="Key into the form schema",
    )
    value: FieldValue = Field(
        default=None,
        description="Extracted value exactly as written in the document, or null",
    )
    found: bool = Field(
        default=False,
        description="True iff value is not null",
    )
    source: str = Field(
        default="",
        description="Citation: filename and page/section",
    )
    quote: str = Field(
        default="",
        description="Verbatim text from the document supporting the value",
    )
    confidence: Confidence = Field(
        default=Confidence.LOW,
        description="Categorical confidence tier",
    )
    confidence_score: float | None = Field(
        default=None,
        alias="confidenceScore",
        validation_alias=AliasChoices("confidenceScore", "confidence_score"),
        description="Raw continuous score when the backend reported one",
    )
    notes: str | None = Field(
        default=None,
        description="Conflicts, caveats, unit or format mismatches",
    )
    document: str | None = Field(
        default=None,
        description="Filename this candidate was extracted from (per-document mode)",
    )

    @model_validator(mode="after")
    def _check_found_contract(self) -> "ExtractedField":
        if self.found != (self.value is not None):
            raise ValueError(
                f"{self.field_name}: found must be false iff value is null "
                f"(found={self.found}, value={self.value!r})"
            )
        if self.found and not self.source.strip():
            raise ValueError(f"{self.field_name}: found value has no source citation")
        return self

    @classmethod
    def not_found(cls, field_name: str, notes: str | None = None) -> "ExtractedField":
        """Create an explicit not-found record."""
        return cls(field_name=field_name, value=None, found=False, notes=notes)

    def with_notes(self, note: str) -> "ExtractedField":
        """Return a copy with note appended to the existing notes."""
        notes = f"{self.notes}; {note}" if self.notes else note
        return self.model_copy(update={"notes": notes})

    def with_confidence(self, confidence: Confidence) -> "ExtractedField":
        """Return a copy with a different confidence tier."""
        return self.model_copy(update={"confidence": confidence})


class FieldIssue(BaseModel):
    """Per-field validation diagnostic. Absorbed into classification."""

    field_name: str | None = Field(
        default=None,
        description="Field concerned, None when the record had no fieldName",
    )
    message: str
    severity: IssueSeverity = IssueSeverity.WARNING
    raw: dict[str, Any] | None = Field(
        default=None,
        description="The offending record as returned by the model (for audit)",
    )


class SourceSummary(BaseModel):
    """Per-document attribution counts."""

    filename: str
    fields_extracted: int = Field(ge=0)
    usefulness: Usefulness

    @classmethod
    def from_count(cls, filename: str, count: int) -> "SourceSummary":
        if count > 5:
            usefulness = Usefulness.HIGH
        elif count > 2:
            usefulness = Usefulness.MEDIUM
        else:
            usefulness = Usefulness.LOW
        return cls(filename=filename, fields_extracted=count, usefulness=usefulness)


class AnalysisResult(BaseModel):
    """Aggregate output of one extraction run over one document set.

    fields_successfully_filled and fields_requiring_verification partition the
    found results; fields_not_found is schema fields minus found fields.
    """

    fields_successfully_filled: list[ExtractedField] = Field(default_factory=list)
    fields_not_found: list[str] = Field(default_factory=list)
    fields_requiring_verification: list[ExtractedField] = Field(default_factory=list)
    source_summary: list[SourceSummary] = Field(default_factory=list)
    validation_issues: list[FieldIssue] = Field(default_factory=list)
    truncated_documents: list[str] = Field(default_factory=list)
    total_tokens_used: int = 0
    estimated_cost: float = 0.0
    processing_time: float = Field(default=0.0, description="Seconds")
    model: str = ""

    @property
    def found_fields(self) -> list[ExtractedField]:
        return self.fields_successfully_filled + self.fields_requiring_verification

    @property
    def found_field_names(self) -> set[str]:
        return {f.field_name for f in self.found_fields}

    def to_dict(self) -> dict:
        """Export as dict for JSON serialization (camelCase field records)."""
        return self.model_dump(mode="json", by_alias=True)
