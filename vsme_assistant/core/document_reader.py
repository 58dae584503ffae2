"""Document reader: uploaded files to UTF-8 text.

Pure Python + PyMuPDF, python-docx, openpyxl and xlrd.

Files are checked against the extension/MIME allow-list and the size cap
before they are opened. A file that fails any check is rejected on its own;
the rest of the batch still loads.
"""

import csv
import io
import logging
import mimetypes
from pathlib import Path
from typing import Iterable

import fitz  # PyMuPDF

from vsme_assistant.core.config import DocumentLimits
from vsme_assistant.core.errors import UnsupportedDocumentError
from vsme_assistant.pydantic_models.documents import Document, DocumentRejection

logger = logging.getLogger(__name__)

# Built-in table only, so the answer does not depend on the host's mime.types
_MIME_TYPES = mimetypes.MimeTypes()


def validate_file(path: str | Path) -> Path:
    """Check a file against the allow-list and size cap without reading it.

    Raises:
        UnsupportedDocumentError: Missing file, disallowed type, or too large.
    """
    path = Path(path)
    if not path.is_file():
        raise UnsupportedDocumentError(path.name, "file not found")

    ext = path.suffix.lower()
    if ext not in DocumentLimits.ALLOWED_EXTENSIONS:
        raise UnsupportedDocumentError(
            path.name,
            f"unsupported file type '{ext or 'none'}' "
            f"(allowed: {', '.join(DocumentLimits.ALLOWED_EXTENSIONS)})",
        )

    mime, _ = _MIME_TYPES.guess_type(path.name)
    if mime is not None and mime not in DocumentLimits.ALLOWED_MIME_TYPES:
        raise UnsupportedDocumentError(path.name, f"unsupported MIME type '{mime}'")

    size = path.stat().st_size
    if size > DocumentLimits.MAX_FILE_BYTES:
        limit_mb = DocumentLimits.MAX_FILE_BYTES // (1024 * 1024)
        raise UnsupportedDocumentError(
            path.name, f"file too large ({size / (1024 * 1024):.1f} MB, maximum {limit_mb} MB)"
        )
    return path


def _read_pdf(path: Path) -> str:
    with fitz.open(str(path)) as doc:
        pages = [
            f"=== PAGE {number} ===\n{page.get_text()}"
            for number, page in enumerate(doc, start=1)
        ]
    return "\n\n".join(pages)


def _read_docx(path: Path) -> str:
    from docx import Document as DocxDocument

    doc = DocxDocument(str(path))
    parts = [p.text.strip() for p in doc.paragraphs if p.text and p.text.strip()]
    for index, table in enumerate(doc.tables, start=1):
        parts.append(f"\n=== Table {index} ===")
        for row in table.rows:
            cells = [c.text.strip() for c in row.cells]
            if any(cells):
                parts.append(" | ".join(cells))
    return "\n".join(parts).strip()


def _rows_to_csv(rows: Iterable[Iterable]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    for row in rows:
        values = ["" if v is None else str(v) for v in row]
        if any(v.strip() for v in values):
            writer.writerow(values)
    return buffer.getvalue().strip()


def _read_xlsx(path: Path) -> str:
    import openpyxl

    wb = openpyxl.load_workbook(str(path), data_only=True, read_only=True)
    try:
        sheets = [
            f"=== Sheet: {ws.title} ===\n{_rows_to_csv(ws.iter_rows(values_only=True))}"
            for ws in wb.worksheets
        ]
    finally:
        wb.close()
    return "\n\n".join(sheets)


def _read_xls(path: Path) -> str:
    import xlrd

    wb = xlrd.open_workbook(str(path))
    sheets = []
    for index in range(wb.nsheets):
        ws = wb.sheet_by_index(index)
        rows = (ws.row_values(r) for r in range(ws.nrows))
        sheets.append(f"=== Sheet: {ws.name} ===\n{_rows_to_csv(rows)}")
    return "\n\n".join(sheets)


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise UnsupportedDocumentError(path.name, "text file is not valid UTF-8") from e


_READERS = {
    ".pdf": _read_pdf,
    ".docx": _read_docx,
    ".xlsx": _read_xlsx,
    ".xls": _read_xls,
    ".csv": _read_text,
    ".txt": _read_text,
    ".json": _read_text,
}


def read_document(path: str | Path) -> Document:
    """Validate and decode one file.

    Args:
        path: Path to the uploaded file.

    Returns:
        Document with the file name and its text. PDF text carries
        "=== PAGE n ===" headers so citations can name pages.

    Raises:
        UnsupportedDocumentError: If the file is rejected or cannot be decoded.
    """
    path = validate_file(path)
    reader = _READERS[path.suffix.lower()]
    try:
        content = reader(path)
    except UnsupportedDocumentError:
        raise
    except Exception as e:
        raise UnsupportedDocumentError(path.name, f"could not read file: {e}") from e

    logger.debug(f"Read {path.name}: {len(content):,} chars")
    return Document(filename=path.name, content=content)


def load_documents(paths: Iterable[str | Path]) -> tuple[list[Document], list[DocumentRejection]]:
    """Read a batch of files, rejecting bad ones individually.

    Returns:
        (documents in input order, rejections)
    """
    documents: list[Document] = []
    rejections: list[DocumentRejection] = []
    for path in paths:
        try:
            documents.append(read_document(path))
        except UnsupportedDocumentError as e:
            logger.warning(f"Rejected {e.filename}: {e.reason}")
            rejections.append(DocumentRejection(filename=e.filename, reason=e.reason))
    return documents, rejections
