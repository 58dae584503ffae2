"""Prompt templates for the extraction backends."""

from vsme_assistant.prompts.extraction_prompt import (
    EXTRACTION_SYSTEM_PROMPT,
    LOCAL_CONFIDENCE_ADDENDUM,
    ExtractionPrompt,
    build_extraction_prompt,
    build_user_prompt,
    fit_documents,
)

__all__ = [
    "EXTRACTION_SYSTEM_PROMPT",
    "LOCAL_CONFIDENCE_ADDENDUM",
    "ExtractionPrompt",
    "build_extraction_prompt",
    "build_user_prompt",
    "fit_documents",
]
