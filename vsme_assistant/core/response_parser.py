"""Response parser and per-field validator.

Turns free-form model output into ExtractedField records plus diagnostics.
The backend cannot be trusted to police itself, so the zero-hallucination
contract is enforced here:
- a found value needs a source citation (else: error, value discarded)
- a found value needs a verbatim quote (else: warning, field downgraded)
- confidence must be a known tier or a score in [0, 1] (else: treated as LOW)
- a low score on a non-null value is suspicious (warning, field downgraded)

Values are never converted. "1,200 tCO2e" stays "1,200 tCO2e".

A downgraded field keeps its record but its confidence is capped at MEDIUM,
with the reason in notes, so classification routes it to human review.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from json_repair import repair_json
from pydantic import ValidationError

from vsme_assistant.core.config import AnalysisSettings, ConfidenceThresholds
from vsme_assistant.core.errors import MalformedResponseError
from vsme_assistant.core.value_helpers import is_null_value, is_scalar, truncate
from vsme_assistant.pydantic_models.extraction_models import (
    Confidence,
    ExtractedField,
    FieldIssue,
    IssueSeverity,
)

logger = logging.getLogger(__name__)

_FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL | re.IGNORECASE)

# Keys a model may use to wrap the field list in an object
_WRAPPER_KEYS = ("extracted_fields", "extractedFields", "fields", "results", "data")


@dataclass
class ParsedResponse:
    """Parser output: field records (found and not found) and diagnostics."""

    fields: list[ExtractedField] = field(default_factory=list)
    issues: list[FieldIssue] = field(default_factory=list)

    @property
    def found_fields(self) -> list[ExtractedField]:
        return [f for f in self.fields if f.found]


def extract_json_payload(raw: str) -> Any:
    """Locate and decode the JSON payload inside model output.

    Tries, in order: the whole text; the first ```json fenced block; the span
    from the first opening bracket to the last closing one. Only when such a
    bracketed candidate exists is json_repair allowed to fix syntax damage
    (trailing commas, a truncated tail).

    Raises:
        MalformedResponseError: If no JSON array or object can be recovered.
    """
    if not raw or not raw.strip():
        raise MalformedResponseError("The model returned an empty response.", raw_response=raw)

    text = raw.strip()
    fenced = _FENCED_BLOCK_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()

    try:
        payload = json.loads(text)
        if isinstance(payload, (list, dict)):
            return payload
    except json.JSONDecodeError:
        pass

    starts = [i for i in (text.find("["), text.find("{")) if i != -1]
    if not starts:
        raise MalformedResponseError(
            "No JSON found in the model response.", raw_response=truncate(raw, 500)
        )
    start = min(starts)
    end = max(text.rfind("]"), text.rfind("}"))
    candidate = text[start:end + 1] if end > start else text[start:]

    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        logger.warning("JSON parse failed, attempting repair")

    repaired = repair_json(candidate, return_objects=True)
    if not isinstance(repaired, (list, dict)) or not repaired:
        raise MalformedResponseError(
            "The model response contained unparseable JSON.", raw_response=truncate(raw, 500)
        )
    return repaired


def _records_from_payload(payload: Any, raw: str) -> list[Any]:
    """Pick the field-record list out of the decoded payload.

    A literal [] is a valid "nothing found" answer. A non-empty list without a
    single object in it is prose that happened to contain brackets, never an
    answer.
    """
    if isinstance(payload, list):
        if payload and not any(isinstance(r, dict) for r in payload):
            raise MalformedResponseError(
                "The model response holds a list but no field records.",
                raw_response=truncate(raw, 500),
            )
        return payload
    if isinstance(payload, dict):
        for key in _WRAPPER_KEYS:
            if isinstance(payload.get(key), list):
                return _records_from_payload(payload[key], raw)
        if any(k in payload for k in ("fieldName", "field_name")):
            return [payload]
    raise MalformedResponseError(
        "The model response is JSON but not a list of field records.",
        raw_response=truncate(raw, 500),
    )


def map_confidence(
    raw_confidence: Any,
    high_threshold: float = ConfidenceThresholds.HIGH,
    medium_threshold: float = ConfidenceThresholds.MEDIUM,
) -> tuple[Confidence | None, float | None]:
    """Map a reported confidence onto a tier.

    Returns:
        (tier, numeric score). tier is None when the value is not a known tier
        and not a score in [0, 1]; score is None for categorical input.

    Examples:
        >>> map_confidence("high")
        (<Confidence.HIGH: 'HIGH'>, None)
        >>> map_confidence(0.6)
        (<Confidence.MEDIUM: 'MEDIUM'>, 0.6)
    """
    if isinstance(raw_confidence, bool) or raw_confidence is None:
        return None, None

    if isinstance(raw_confidence, str):
        label = raw_confidence.strip().upper()
        if label in Confidence.__members__:
            return Confidence[label], None
        try:
            raw_confidence = float(label)
        except ValueError:
            return None, None

    if isinstance(raw_confidence, (int, float)):
        score = float(raw_confidence)
        if not 0.0 <= score <= 1.0:
            return None, score
        if score >= high_threshold:
            return Confidence.HIGH, score
        if score >= medium_threshold:
            return Confidence.MEDIUM, score
        return Confidence.LOW, score

    return None, None


def _coerce_value(value: Any) -> tuple[Any, str | None]:
    """Fit a raw JSON value into a scalar field value.

    Lists of scalars (multiselect answers) are joined with ", ". Anything else
    that is not a scalar cannot be represented and is reported.
    """
    if value is None or is_scalar(value):
        return value, None
    if isinstance(value, list) and all(is_scalar(v) for v in value):
        return ", ".join(str(v) for v in value), "list value joined into text"
    return None, f"value of type {type(value).__name__} cannot fill a form field"


def _parse_record(
    record: dict,
    settings: AnalysisSettings,
    document: str | None,
    issues: list[FieldIssue],
) -> ExtractedField | None:
    name = record.get("fieldName") or record.get("field_name") or record.get("field")
    if not isinstance(name, str) or not name.strip():
        issues.append(FieldIssue(
            message="Record has no fieldName and was dropped",
            severity=IssueSeverity.ERROR,
            raw=record,
        ))
        return None
    name = name.strip()

    def issue(message: str, severity: IssueSeverity = IssueSeverity.WARNING) -> None:
        issues.append(FieldIssue(field_name=name, message=message, severity=severity, raw=record))

    downgrades: list[str] = []

    value, coerce_problem = _coerce_value(record.get("value"))
    if coerce_problem:
        if value is None:
            issue(coerce_problem, IssueSeverity.ERROR)
        else:
            issue(coerce_problem)
            downgrades.append(coerce_problem)
    if is_null_value(value):
        value = None
    has_value = value is not None

    reported_found = record.get("found")
    if isinstance(reported_found, str):
        reported_found = reported_found.strip().lower() == "true"
    if reported_found is not None and bool(reported_found) != has_value:
        message = f"found={reported_found} disagrees with value {value!r}"
        issue(message)
        if has_value:
            downgrades.append(message)

    raw_confidence = record.get("confidence", record.get("confidenceScore"))
    confidence, score = map_confidence(
        raw_confidence, settings.high_threshold, settings.medium_threshold
    )
    if confidence is None:
        if raw_confidence is not None:
            issue(f"Confidence {raw_confidence!r} is not a tier or a score in [0, 1]; treated as LOW")
        confidence, score = Confidence.LOW, None

    notes = record.get("notes")
    notes = str(notes).strip() if notes not in (None, "") else None
    source = str(record.get("source") or "").strip()
    quote = str(record.get("quote") or "").strip()

    if not has_value:
        return ExtractedField(
            field_name=name, value=None, found=False, source=source, quote=quote,
            confidence=confidence, confidence_score=score, notes=notes, document=document,
        )

    if not source:
        issue("Value has no source citation; discarded", IssueSeverity.ERROR)
        return ExtractedField.not_found(
            name, notes=f"Discarded unsourced value {truncate(str(value), 80)!r}"
        )

    if not quote:
        issue("Value has no supporting quote")
        downgrades.append("no supporting quote")

    if score is not None and score < ConfidenceThresholds.SUSPICIOUS:
        issue(f"Suspiciously low confidence {score} for a non-null value")
        downgrades.append(f"suspicious confidence {score}")

    try:
        extracted = ExtractedField(
            field_name=name, value=value, found=True, source=source, quote=quote,
            confidence=confidence, confidence_score=score, notes=notes, document=document,
        )
    except ValidationError as e:
        issue(f"Invalid field record: {e.errors()[0]['msg']}", IssueSeverity.ERROR)
        return None

    if downgrades and extracted.confidence == Confidence.HIGH:
        extracted = extracted.with_confidence(Confidence.MEDIUM)
    if downgrades:
        extracted = extracted.with_notes("Needs verification: " + ", ".join(downgrades))
    return extracted


def parse_extraction_response(
    raw: str,
    settings: AnalysisSettings | None = None,
    document: str | None = None,
) -> ParsedResponse:
    """Parse one backend response into field records and issues.

    Pure: the same raw string always yields the same result.

    Args:
        raw: Model output text.
        settings: Thresholds for mapping numeric confidence. Defaults apply if None.
        document: Filename to attribute records to (per-document mode).

    Returns:
        ParsedResponse. Per-field problems are reported in issues and never
        raise.

    Raises:
        MalformedResponseError: If the response holds no usable JSON.
    """
    settings = settings or AnalysisSettings()
    payload = extract_json_payload(raw)
    records = _records_from_payload(payload, raw)

    parsed = ParsedResponse()
    for record in records:
        if not isinstance(record, dict):
            parsed.issues.append(FieldIssue(
                message=f"Ignored non-object entry {truncate(repr(record), 80)}",
                severity=IssueSeverity.ERROR,
            ))
            continue
        extracted = _parse_record(record, settings, document, parsed.issues)
        if extracted is not None:
            parsed.fields.append(extracted)

    logger.debug(
        f"Parsed {len(parsed.fields)} records ({len(parsed.found_fields)} found), "
        f"{len(parsed.issues)} issues"
    )
    return parsed
