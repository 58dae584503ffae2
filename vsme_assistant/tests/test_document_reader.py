"""Tests for vsme_assistant.core.document_reader module.

Tests file ingestion:
- Text, CSV, JSON, DOCX, XLSX and PDF decoding
- Allow-list, size cap and unreadable files rejected per file
"""

import json

import fitz
import openpyxl
import pytest
from docx import Document as DocxDocument

from vsme_assistant.core.config import DocumentLimits
from vsme_assistant.core.document_reader import load_documents, read_document, validate_file
from vsme_assistant.core.errors import UnsupportedDocumentError


# =============================================================================
# Decoding tests
# =============================================================================


class TestReadDocument:
    """Tests for per-format text extraction."""

    def test_text_file(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("Acme Ltd employs 85 people.", encoding="utf-8")

        doc = read_document(path)
        assert doc.filename == "notes.txt"
        assert doc.content == "Acme Ltd employs 85 people."

    def test_bom_is_stripped(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_bytes("﻿Hello".encode("utf-8"))
        assert read_document(path).content == "Hello"

    def test_csv_kept_verbatim(self, tmp_path):
        path = tmp_path / "energy.csv"
        path.write_text("Metric,Value\nElectricity (MWh),1200\n", encoding="utf-8")
        assert "Electricity (MWh),1200" in read_document(path).content

    def test_json_file(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text(json.dumps({"employees": 85}), encoding="utf-8")
        assert '"employees": 85' in read_document(path).content

    def test_docx_paragraphs_and_tables(self, tmp_path):
        path = tmp_path / "letter.docx"
        docx = DocxDocument()
        docx.add_paragraph("Acme Ltd sustainability statement")
        table = docx.add_table(rows=2, cols=2)
        table.cell(0, 0).text = "Metric"
        table.cell(0, 1).text = "Value"
        table.cell(1, 0).text = "Employees"
        table.cell(1, 1).text = "85"
        docx.save(str(path))

        content = read_document(path).content
        assert "Acme Ltd sustainability statement" in content
        assert "=== Table 1 ===" in content
        assert "Employees | 85" in content

    def test_xlsx_sheets(self, tmp_path):
        path = tmp_path / "energy.xlsx"
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = "Energy"
        ws.append(["Metric", "Value"])
        ws.append(["Electricity (MWh)", 1200])
        water = wb.create_sheet("Water")
        water.append(["Consumption (m3)", 300])
        wb.save(str(path))

        content = read_document(path).content
        assert "=== Sheet: Energy ===\nMetric,Value\nElectricity (MWh),1200" in content
        assert "=== Sheet: Water ===" in content
        assert content.index("Energy") < content.index("Water")

    def test_pdf_pages(self, tmp_path):
        path = tmp_path / "report.pdf"
        pdf = fitz.open()
        pdf.new_page().insert_text((72, 72), "Turnover EUR 12500000")
        pdf.new_page().insert_text((72, 72), "Employees 85")
        pdf.save(str(path))
        pdf.close()

        content = read_document(path).content
        assert "=== PAGE 1 ===" in content
        assert "=== PAGE 2 ===" in content
        assert "Turnover EUR 12500000" in content
        assert content.index("Turnover") < content.index("Employees")


# =============================================================================
# Rejection tests
# =============================================================================


class TestRejections:
    """Tests for the allow-list and size cap."""

    def test_disallowed_extension(self, tmp_path):
        path = tmp_path / "run.exe"
        path.write_bytes(b"MZ")
        with pytest.raises(UnsupportedDocumentError, match="unsupported file type"):
            validate_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(UnsupportedDocumentError) as exc_info:
            read_document(tmp_path / "gone.pdf")
        assert exc_info.value.filename == "gone.pdf"

    def test_oversize_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr(DocumentLimits, "MAX_FILE_BYTES", 10)
        path = tmp_path / "big.txt"
        path.write_text("x" * 11)
        with pytest.raises(UnsupportedDocumentError, match="too large"):
            read_document(path)

    def test_invalid_utf8(self, tmp_path):
        path = tmp_path / "latin.txt"
        path.write_bytes(b"caf\xe9 \xff")
        with pytest.raises(UnsupportedDocumentError, match="not valid UTF-8"):
            read_document(path)

    def test_corrupt_docx(self, tmp_path):
        path = tmp_path / "broken.docx"
        path.write_bytes(b"this is not a zip archive")
        with pytest.raises(UnsupportedDocumentError, match="could not read file"):
            read_document(path)


class TestLoadDocuments:
    """Tests for batch loading."""

    def test_mixed_batch(self, tmp_path):
        good = tmp_path / "a.txt"
        good.write_text("alpha")
        bad = tmp_path / "b.exe"
        bad.write_bytes(b"MZ")
        other = tmp_path / "c.csv"
        other.write_text("x,y")

        documents, rejections = load_documents([good, bad, other])

        assert [d.filename for d in documents] == ["a.txt", "c.csv"]
        assert [r.filename for r in rejections] == ["b.exe"]
        assert "unsupported file type" in rejections[0].reason

    def test_empty_batch(self):
        assert load_documents([]) == ([], [])
