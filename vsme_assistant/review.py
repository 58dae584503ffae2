"""Human review of an analysis result.

Each candidate field moves once from UNREVIEWED to ACCEPTED, REJECTED or
MODIFIED; a second decision on the same field is an error. A new analysis run
gets a new ReviewSession.

apply() turns the decisions into the flat field -> value map handed to the
form. The only fields applied without an explicit decision are those picked
by select_auto_accepted(); everything else the reviewer skipped is left out
("no decision means not applied"). ApplyOutcome lists which fields were
auto-applied and which were explicitly reviewed so the caller can show both.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Mapping, Protocol

from pydantic import ValidationError

from vsme_assistant.core.errors import InvalidReviewError, ReviewStateError
from vsme_assistant.pydantic_models.extraction_models import (
    AnalysisResult,
    Confidence,
    ExtractedField,
    FieldValue,
)
from vsme_assistant.pydantic_models.review_models import FieldReview, ReviewAction

logger = logging.getLogger(__name__)


class ReviewState(str, Enum):
    UNREVIEWED = "unreviewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    MODIFIED = "modified"

    def __str__(self) -> str:
        return self.value


# Index into ReviewSession.candidates(), or a source citation / document filename
CandidateSelector = int | str | None

_STATE_BY_ACTION = {
    ReviewAction.ACCEPT: ReviewState.ACCEPTED,
    ReviewAction.REJECT: ReviewState.REJECTED,
    ReviewAction.MODIFY: ReviewState.MODIFIED,
}


def select_auto_accepted(
    result: AnalysisResult, reviews: Mapping[str, FieldReview]
) -> list[ExtractedField]:
    """Fields applied without a reviewer decision.

    The rule: a field the reviewer never touched, that landed in
    fields_successfully_filled, with HIGH confidence. Nothing else is ever
    merged silently.
    """
    return [
        f for f in result.fields_successfully_filled
        if f.field_name not in reviews and f.confidence == Confidence.HIGH
    ]


@dataclass
class ApplyOutcome:
    """Result of apply().

    Attributes:
        values: field name -> value to merge into the form.
        auto_applied: Fields applied by select_auto_accepted().
        reviewed: Fields applied from an accept or modify decision.
        rejected: Fields the reviewer rejected (never in values).
    """

    values: dict[str, FieldValue] = field(default_factory=dict)
    auto_applied: list[str] = field(default_factory=list)
    reviewed: list[str] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)


class FormStateSink(Protocol):
    """External form state the applied values are merged into."""

    def merge(self, values: Mapping[str, FieldValue]) -> None:
        ...


class JsonFormState:
    """Form state stored as a flat JSON object on disk."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> dict[str, FieldValue]:
        if not self.path.exists():
            return {}
        return json.loads(self.path.read_text(encoding="utf-8"))

    def merge(self, values: Mapping[str, FieldValue]) -> None:
        state = self.load()
        state.update(values)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(state, indent=2, ensure_ascii=False), encoding="utf-8")


class ReviewSession:
    """Reviewer decisions for one AnalysisResult.

    Usage:
        session = ReviewSession(result)
        session.accept("entityName")
        session.modify("turnover", "12500000")
        session.reject("currentScope1")
        session.accept("electricityConsumption", candidate="energy.xlsx")
        outcome = session.apply()
    """

    def __init__(self, result: AnalysisResult):
        self.result = result
        self._reviews: dict[str, FieldReview] = {}

    @property
    def reviews(self) -> dict[str, FieldReview]:
        return dict(self._reviews)

    def state(self, field_name: str) -> ReviewState:
        review = self._reviews.get(field_name)
        if review is None:
            return ReviewState.UNREVIEWED
        return _STATE_BY_ACTION[review.user_action]

    def candidates(self, field_name: str) -> list[ExtractedField]:
        """Every extracted value for a field, best-ranked first.

        More than one means the documents disagree and the reviewer picks.
        """
        return [f for f in self.result.found_fields if f.field_name == field_name]

    def _candidate(self, field_name: str, selector: CandidateSelector) -> ExtractedField:
        candidates = self.candidates(field_name)
        if not candidates:
            raise InvalidReviewError(f"No extracted value for field '{field_name}'.")
        if selector is None:
            return candidates[0]
        if isinstance(selector, int):
            if 0 <= selector < len(candidates):
                return candidates[selector]
        else:
            for candidate in candidates:
                if selector in (candidate.source, candidate.document):
                    return candidate
        raise InvalidReviewError(
            f"Field '{field_name}' has no candidate {selector!r} "
            f"({len(candidates)} candidate(s))."
        )

    def _record(
        self,
        field_name: str,
        action: ReviewAction,
        modified_value: FieldValue = None,
        selector: CandidateSelector = None,
    ) -> FieldReview:
        current = self.state(field_name)
        if current != ReviewState.UNREVIEWED:
            raise ReviewStateError(f"Field '{field_name}' is already {current}.")
        try:
            review = FieldReview(
                field=self._candidate(field_name, selector),
                user_action=action,
                modified_value=modified_value,
            )
        except ValidationError as e:
            raise InvalidReviewError(
                f"Invalid {action} for field '{field_name}': {e.errors()[0]['msg']}"
            ) from e
        self._reviews[field_name] = review
        logger.debug(f"Review {field_name}: {action} ({review.field.source})")
        return review

    def accept(self, field_name: str, candidate: CandidateSelector = None) -> FieldReview:
        """Keep an extracted value.

        Args:
            field_name: Field to decide on.
            candidate: For conflicting fields, which value to keep: an index
                into candidates(), or a source citation or document filename.
                Defaults to the best-ranked candidate.
        """
        return self._record(field_name, ReviewAction.ACCEPT, selector=candidate)

    def reject(self, field_name: str) -> FieldReview:
        """Exclude the field from the merge, whatever its confidence."""
        return self._record(field_name, ReviewAction.REJECT)

    def modify(
        self, field_name: str, new_value: FieldValue, candidate: CandidateSelector = None
    ) -> FieldReview:
        """Apply a replacement value.

        The candidate it replaces stays in the review for audit; candidate
        selects it the same way as in accept().
        """
        if new_value is None:
            raise InvalidReviewError(f"modify needs a new value for field '{field_name}'.")
        return self._record(field_name, ReviewAction.MODIFY, new_value, selector=candidate)

    def apply(self) -> ApplyOutcome:
        """Reduce the decisions to the field -> value map for the form."""
        outcome = ApplyOutcome()

        for name, review in self._reviews.items():
            if review.user_action == ReviewAction.REJECT:
                outcome.rejected.append(name)
                continue
            outcome.values[name] = review.applied_value
            outcome.reviewed.append(name)

        for extracted in select_auto_accepted(self.result, self._reviews):
            outcome.values[extracted.field_name] = extracted.value
            outcome.auto_applied.append(extracted.field_name)

        logger.info(
            f"Applied {len(outcome.values)} fields "
            f"({len(outcome.reviewed)} reviewed, {len(outcome.auto_applied)} auto-accepted, "
            f"{len(outcome.rejected)} rejected)"
        )
        return outcome

    def apply_to(self, sink: FormStateSink) -> ApplyOutcome:
        """apply() and merge the values into a form state."""
        outcome = self.apply()
        sink.merge(outcome.values)
        return outcome
