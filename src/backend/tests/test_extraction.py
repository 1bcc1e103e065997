"""Tests for document text extraction and file storage."""

import io

import fitz
import pytest
from docx import Document

from resumeopt.core.errors import ExtractionError
from resumeopt.services.extraction_service import DOC, DOCX, PDF, TextExtractor
from resumeopt.services.storage_service import FileStorage


def _pdf(text: str) -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


def _docx(paragraphs: list[str], cell: str | None = None) -> bytes:
    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    if cell is not None:
        doc.add_table(rows=1, cols=1).cell(0, 0).text = cell
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


class TestTextExtractor:
    def test_pdf(self):
        text = TextExtractor().extract(_pdf("Jane Smith Python Engineer"), PDF)
        assert "Jane Smith Python Engineer" in text

    def test_docx_paragraphs_and_tables(self):
        data = _docx(["Jane Smith", "", "Experience"], cell="Skills: Python")
        text = TextExtractor().extract(data, DOCX)
        assert text.splitlines() == ["Jane Smith", "Experience", "Skills: Python"]

    def test_legacy_doc_unsupported(self):
        with pytest.raises(ExtractionError):
            TextExtractor().extract(b"\xd0\xcf\x11\xe0", DOC)

    def test_corrupt_pdf(self):
        with pytest.raises(ExtractionError) as exc_info:
            TextExtractor().extract(b"not a pdf at all", PDF)
        assert exc_info.value.message == "Failed to extract text from the document"
        assert exc_info.value.__cause__ is not None

    def test_blank_document(self):
        with pytest.raises(ExtractionError):
            TextExtractor().extract(_docx([" "]), DOCX)


class TestFileStorage:
    def test_round_trip(self, tmp_path):
        storage = FileStorage(tmp_path / "files")
        ref = storage.save(b"resume bytes", "CV.PDF")

        assert ref.endswith(".pdf")
        assert storage.read(ref) == b"resume bytes"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ExtractionError):
            FileStorage(tmp_path).read("0123456789abcdef.pdf")

    def test_delete_is_idempotent(self, tmp_path):
        storage = FileStorage(tmp_path)
        ref = storage.save(b"x", "a.docx")
        storage.delete(ref)
        storage.delete(ref)
        with pytest.raises(ExtractionError):
            storage.read(ref)

    def test_rejects_path_traversal(self, tmp_path):
        storage = FileStorage(tmp_path / "files")
        with pytest.raises(ValueError):
            storage.read("../secrets.txt")
