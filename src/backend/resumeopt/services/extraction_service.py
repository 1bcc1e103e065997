"""Resume text extraction: PDF via PyMuPDF, DOCX via python-docx."""

import io
import logging

import fitz  # PyMuPDF
from docx import Document

from resumeopt.core.errors import ExtractionError

logger = logging.getLogger(__name__)

PDF = "application/pdf"
DOC = "application/msword"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

ACCEPTED_MIME_TYPES = frozenset({PDF, DOC, DOCX})


def extract_text_from_pdf(pdf_bytes: bytes) -> str:
    """Extract all text from a PDF file's bytes."""
    doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    pages = [page.get_text() for page in doc]
    doc.close()
    return "\n".join(pages).strip()


def extract_text_from_docx(docx_bytes: bytes) -> str:
    doc = Document(io.BytesIO(docx_bytes))
    lines = [p.text for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            for cell in row.cells:
                if cell.text.strip():
                    lines.append(cell.text.strip())
    return "\n".join(lines).strip()


class TextExtractor:
    """Turns stored resume bytes into plain text, or raises ExtractionError."""

    def extract(self, data: bytes, mime_type: str) -> str:
        if mime_type == PDF:
            parse = extract_text_from_pdf
        elif mime_type == DOCX:
            parse = extract_text_from_docx
        else:
            # Legacy binary .doc has no parser in our stack
            raise ExtractionError(f"Unsupported file type for text extraction: {mime_type}")

        try:
            text = parse(data)
        except Exception as exc:
            logger.warning("Text extraction failed for %s: %s", mime_type, exc)
            raise ExtractionError("Failed to extract text from the document") from exc

        if not text:
            raise ExtractionError("No text could be extracted from the document")
        return text
