"""Document models at the ingestion seam.

The core only ever sees Document: text already decoded from the uploaded file.
"""

from pydantic import BaseModel, ConfigDict, Field


class Document(BaseModel):
    """One uploaded document, decoded to UTF-8 text."""

    model_config = ConfigDict(frozen=True)

    filename: str = Field(min_length=1)
    content: str

    @property
    def is_blank(self) -> bool:
        return not self.content.strip()


class DocumentRejection(BaseModel):
    """A file refused before extraction, reported per file."""

    filename: str
    reason: str
