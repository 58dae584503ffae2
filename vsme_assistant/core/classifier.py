"""Classification of parsed fields into filled / needs verification / not found.

Also merges candidates for the same field (several documents, or several
records from one response) and detects conflicts:
- Agreeing values (ignoring case and whitespace) merge into one field. The
  survivor is picked by tie-break: higher tier, then higher numeric score,
  then longer quote.
- Disagreeing values are never merged into one number. Every distinct value
  is kept with a conflict note and routed to human verification.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from rapidfuzz import fuzz

from vsme_assistant.core.config import ConfidenceThresholds
from vsme_assistant.core.value_helpers import comparison_key, truncate
from vsme_assistant.pydantic_models.documents import Document
from vsme_assistant.pydantic_models.extraction_models import (
    Confidence,
    ExtractedField,
    FieldIssue,
    SourceSummary,
)
from vsme_assistant.pydantic_models.form_schema import VSME_CORE_FIELDS, VSMEFormField

logger = logging.getLogger(__name__)


@dataclass
class Classification:
    """Partition of the found fields plus the schema fields nobody found."""

    filled: list[ExtractedField] = field(default_factory=list)
    verification: list[ExtractedField] = field(default_factory=list)
    not_found: list[str] = field(default_factory=list)
    issues: list[FieldIssue] = field(default_factory=list)
    conflicts: dict[str, list] = field(default_factory=dict)  # field name -> competing values


def _rank(candidate: ExtractedField) -> tuple[int, float, int]:
    score = candidate.confidence_score if candidate.confidence_score is not None else -1.0
    return (candidate.confidence.rank, score, len(candidate.quote))


def _describe(candidate: ExtractedField) -> str:
    return f"{truncate(str(candidate.value), 60)!r} ({candidate.source})"


def merge_candidates(candidates: Sequence[ExtractedField]) -> tuple[list[ExtractedField], bool]:
    """Merge found candidates for one field.

    Args:
        candidates: Found records for the same field name, in encounter order.

    Returns:
        (fields, conflict). One field when all values agree, else one field
        per distinct value (best first), each carrying a conflict note.
    """
    groups: dict[str, list[ExtractedField]] = {}
    for candidate in candidates:
        groups.setdefault(comparison_key(candidate.value), []).append(candidate)

    merged: list[ExtractedField] = []
    for group in groups.values():
        # sorted() is stable, so equal ranks keep encounter order
        best, *others = sorted(group, key=_rank, reverse=True)
        other_sources = sorted({c.source for c in others if c.source != best.source})
        if other_sources:
            best = best.with_notes(f"Also found in: {', '.join(other_sources)}")
        merged.append(best)

    if len(merged) == 1:
        return merged, False

    merged.sort(key=_rank, reverse=True)
    listing = ", ".join(_describe(c) for c in merged)
    return [c.with_notes(f"Conflicting values found: {listing}") for c in merged], True


def classify_fields(
    fields: Iterable[ExtractedField],
    schema: Sequence[VSMEFormField] = VSME_CORE_FIELDS,
) -> Classification:
    """Route parsed fields into the three result sets.

    - filled: HIGH confidence, single agreed value
    - verification: every other found field (MEDIUM/LOW, downgraded by the
      parser, or conflicting)
    - not_found: schema fields with no found candidate

    Unknown field names are reported as issues and ignored. Output follows
    schema order, so the same input always classifies the same way.
    """
    schema_names = [f.name for f in schema]
    known = set(schema_names)
    result = Classification()

    by_name: dict[str, list[ExtractedField]] = {}
    for extracted in fields:
        if extracted.field_name not in known:
            if extracted.found:
                result.issues.append(FieldIssue(
                    field_name=extracted.field_name,
                    message="Unknown field name; ignored",
                    raw=extracted.model_dump(mode="json", by_alias=True),
                ))
            continue
        if extracted.found:
            by_name.setdefault(extracted.field_name, []).append(extracted)

    for name in schema_names:
        candidates = by_name.get(name)
        if not candidates:
            result.not_found.append(name)
            continue

        merged, conflict = merge_candidates(candidates)
        if conflict:
            result.conflicts[name] = [c.value for c in merged]
            result.verification.extend(merged)
        elif merged[0].confidence == Confidence.HIGH:
            result.filled.append(merged[0])
        else:
            result.verification.append(merged[0])

    if result.conflicts:
        logger.info(f"Conflicting values for: {', '.join(result.conflicts)}")
    return result


def cites_document(source: str, filename: str) -> bool:
    """Check if a citation names a document (case-insensitive, fuzzy)."""
    if not source:
        return False
    source_l = source.lower()
    filename_l = filename.lower()
    if filename_l in source_l:
        return True
    return fuzz.partial_ratio(filename_l, source_l) >= ConfidenceThresholds.FUZZY_SOURCE_MATCH


def build_source_summary(
    fields: Iterable[ExtractedField],
    documents: Sequence[Document],
) -> list[SourceSummary]:
    """Count, per document, the distinct fields attributed to it.

    A field counts for a document if it was extracted from it (per-document
    mode) or its citation names the file.
    """
    found = [f for f in fields if f.found]
    summary = []
    for doc in documents:
        names = {
            f.field_name
            for f in found
            if f.document == doc.filename or cites_document(f.source, doc.filename)
        }
        summary.append(SourceSummary.from_count(doc.filename, len(names)))
    return summary
