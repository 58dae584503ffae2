"""Pydantic schemas for reviewer decisions."""

from enum import Enum

from pydantic import BaseModel, Field, model_validator

from vsme_assistant.pydantic_models.extraction_models import ExtractedField, FieldValue


class ReviewAction(str, Enum):
    """What the reviewer did with a candidate field."""

    ACCEPT = "accept"
    REJECT = "reject"
    MODIFY = "modify"

    def __str__(self) -> str:
        return self.value


class FieldReview(BaseModel):
    """One reviewer decision.

    Attributes:
        field: The candidate under review (kept as-is for audit, also on modify)
        user_action: accept, reject or modify
        modified_value: Replacement value, present iff user_action is modify
    """

    field: ExtractedField
    user_action: ReviewAction
    modified_value: FieldValue = Field(default=None)

    @model_validator(mode="after")
    def _modified_value_iff_modify(self) -> "FieldReview":
        if self.user_action == ReviewAction.MODIFY and self.modified_value is None:
            raise ValueError("modify requires a modified_value")
        if self.user_action != ReviewAction.MODIFY and self.modified_value is not None:
            raise ValueError(f"{self.user_action} must not carry a modified_value")
        return self

    @property
    def applied_value(self) -> FieldValue:
        """Value this review contributes to the form, None when rejected."""
        if self.user_action == ReviewAction.MODIFY:
            return self.modified_value
        if self.user_action == ReviewAction.ACCEPT:
            return self.field.value
        return None
