"""Extraction prompts: the zero-hallucination policy and the user prompt builder.

Every extracted value must carry PROVENANCE:
- value: the data exactly as written, or null
- source: filename and page/section
- quote: verbatim text supporting the value
- confidence: HIGH / MEDIUM / LOW

The builder is a pure function of (schema, documents, instructions, budget):
the same inputs always render the same prompt pair.
"""

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from vsme_assistant.core.config import PromptLimits
from vsme_assistant.pydantic_models.documents import Document
from vsme_assistant.pydantic_models.form_schema import VSMEFormField

EXTRACTION_SYSTEM_PROMPT = """You are a data extraction assistant for EFRAG VSME (Voluntary Sustainability Reporting Standard for Medium-sized Entities) sustainability reporting.

CRITICAL RULES - ZERO HALLUCINATION POLICY:
1. Extract ONLY facts explicitly stated in the provided documents
2. NEVER infer, calculate, estimate, or guess any values
3. If data is not found, set "value" to null and "found" to false
4. Always cite the exact source (filename and page/section) and an exact quote
5. Mark confidence honestly: HIGH (exact match), MEDIUM (needs verification), LOW (uncertain)
6. If you find conflicting values for the same field, report EVERY value found as a separate record and explain the conflict in "notes". Never pick one silently.

EXTRACTION GUIDELINES:
- For numeric values: copy the number exactly as written. Do NOT convert units; if the unit differs from the requested unit, say so in "notes"
- For dates: copy the date as written; if it is not YYYY-MM-DD, say so in "notes"
- For text: use the exact wording from the source
- For selections: match to the provided options exactly; if nothing matches, say so in "notes"

RESPONSE FORMAT:
Return ONLY a JSON array. One record per field (more than one if values conflict):
{
  "fieldName": "string",
  "value": "exact value" | null,
  "found": true | false,
  "source": "filename, page/section",
  "quote": "exact quote from document",
  "confidence": "HIGH" | "MEDIUM" | "LOW",
  "notes": "any warnings or additional context"
}

SUSTAINABILITY REPORTING CONTEXT:
- Scope 1 emissions: Direct GHG emissions from owned/controlled sources
- Scope 2 emissions: Indirect GHG emissions from purchased electricity/heat/steam
- Scope 3 emissions: All other indirect emissions in value chain
- GHG emissions measured in tonnes CO2e (carbon dioxide equivalent)
- Energy consumption measured in MWh (megawatt hours)
- Water consumption measured in m³ (cubic meters)"""

LOCAL_CONFIDENCE_ADDENDUM = """

For "confidence" give a number from 0.0 to 1.0 instead of HIGH/MEDIUM/LOW:
1.0 = exact match in the text, 0.5 = needs verification, below 0.3 = uncertain."""
"""Appended for backends that report continuous confidence."""

USER_PROMPT_HEADER = "Extract sustainability reporting data from the following documents for EFRAG VSME form filling."
USER_PROMPT_FOOTER = "Please extract all available data and return it as a JSON array following the specified format."


@dataclass(frozen=True)
class ExtractionPrompt:
    """A rendered system/user prompt pair.

    Attributes:
        system_prompt: The immutable extraction policy.
        user_prompt: Field descriptions plus document text.
        truncated_documents: Filenames whose content was cut to fit the budget.
    """

    system_prompt: str
    user_prompt: str
    truncated_documents: tuple[str, ...] = field(default_factory=tuple)

    @property
    def was_truncated(self) -> bool:
        return bool(self.truncated_documents)


def fit_documents(
    documents: Sequence[Document],
    max_total_chars: int,
    max_chars_per_document: int = PromptLimits.MAX_CHARS_PER_DOCUMENT,
) -> tuple[list[Document], list[str]]:
    """Cut documents down to a character budget, in input order.

    Each document is capped at max_chars_per_document and at whatever is left
    of max_total_chars. A cut document gets the truncation marker appended.
    A document with no budget left keeps only the marker, so it stays visible.

    Returns:
        (fitted documents, filenames that were truncated)
    """
    fitted: list[Document] = []
    truncated: list[str] = []
    remaining = max(max_total_chars, 0)

    for doc in documents:
        allowance = min(remaining, max_chars_per_document)
        if len(doc.content) > allowance:
            content = PromptLimits.TRUNCATION_MARKER
            if allowance:
                content = doc.content[:allowance] + f"\n\n{content}"
            truncated.append(doc.filename)
            remaining -= allowance
        else:
            content = doc.content
            remaining -= len(content)
        fitted.append(Document(filename=doc.filename, content=content))

    return fitted, truncated


def build_user_prompt(
    schema: Iterable[VSMEFormField],
    documents: Sequence[Document],
    instructions: str | None = None,
) -> str:
    """Render the user prompt: instructions, field list, then documents."""
    parts = [USER_PROMPT_HEADER, ""]

    if instructions and instructions.strip():
        parts += ["**User Instructions:**", instructions.strip(), ""]

    parts.append("**Form Fields to Extract:**")
    parts += [entry.describe() for entry in schema]

    parts += ["", "**Documents:**"]
    for index, doc in enumerate(documents, start=1):
        parts += ["", f"--- Document {index}: {doc.filename} ---", doc.content]

    parts += ["", "", USER_PROMPT_FOOTER]
    return "\n".join(parts)


def build_extraction_prompt(
    schema: Iterable[VSMEFormField],
    documents: Sequence[Document],
    instructions: str | None = None,
    max_document_chars: int = PromptLimits.LOCAL_CONTEXT_CHARS,
    numeric_confidence: bool = False,
) -> ExtractionPrompt:
    """Build the prompt pair for one extraction call.

    Args:
        schema: Form fields to extract.
        documents: Decoded documents, in upload order.
        instructions: Optional free-text context from the user.
        max_document_chars: Total document budget for the target backend.
        numeric_confidence: Ask for 0.0-1.0 scores instead of tiers.

    Returns:
        ExtractionPrompt. Check was_truncated before trusting that every page
        was seen by the model.
    """
    fitted, truncated = fit_documents(documents, max_document_chars)
    system_prompt = EXTRACTION_SYSTEM_PROMPT
    if numeric_confidence:
        system_prompt += LOCAL_CONFIDENCE_ADDENDUM

    return ExtractionPrompt(
        system_prompt=system_prompt,
        user_prompt=build_user_prompt(list(schema), fitted, instructions),
        truncated_documents=tuple(truncated),
    )
