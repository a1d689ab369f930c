"""Text extraction for synced files.

Supports: plain text, PDF, DOCX, and Google Docs API documents.
"""

import re
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Any

from docx import Document
from pypdf import PdfReader

from content_rag.core.exceptions import SourceReadError


class ExtractionError(SourceReadError):
    """Raised when text extraction fails."""


class TextExtractor(ABC):
    """Base class for text extractors."""

    @abstractmethod
    def extract(self, content: bytes) -> str:
        """Extract text from document content."""

    @abstractmethod
    def supported_types(self) -> list[str]:
        """Return list of supported MIME types."""


class PlainTextExtractor(TextExtractor):
    """Extract text from plain text and markdown files."""

    def extract(self, content: bytes) -> str:
        """Decode bytes to text."""
        for encoding in ["utf-8", "utf-16", "cp1252"]:
            try:
                return content.decode(encoding)
            except UnicodeDecodeError:
                continue

        # latin-1 maps every byte, so this never fails
        return content.decode("latin-1")

    def supported_types(self) -> list[str]:
        return ["text/plain", "text/markdown", "text/x-markdown", "text/html", "text/csv"]


class PDFExtractor(TextExtractor):
    """Extract text from PDF files using pypdf."""

    def extract(self, content: bytes) -> str:
        """Extract text from all pages of a PDF."""
        try:
            reader = PdfReader(BytesIO(content))
            pages = [page.extract_text() or "" for page in reader.pages]
        except Exception as e:
            raise ExtractionError(f"PDF extraction failed: {e}") from e

        return "\n\n".join(page for page in pages if page.strip())

    def supported_types(self) -> list[str]:
        return ["application/pdf"]


class DOCXExtractor(TextExtractor):
    """Extract text from Word documents using python-docx."""

    def extract(self, content: bytes) -> str:
        """Extract text from DOCX, keeping headings as markdown."""
        try:
            doc = Document(BytesIO(content))
        except Exception as e:
            raise ExtractionError(f"DOCX extraction failed: {e}") from e

        text_parts = []

        for para in doc.paragraphs:
            text = para.text.strip()
            if not text:
                continue
            style_name = para.style.name if para.style is not None else ""
            if style_name.startswith("Heading"):
                level = style_name.replace("Heading ", "")
                prefix = "#" * int(level) + " " if level.isdigit() else "# "
                text_parts.append(f"{prefix}{text}")
            else:
                text_parts.append(text)

        for table in doc.tables:
            for row in table.rows:
                row_text = " | ".join(cell.text.strip() for cell in row.cells)
                if row_text.replace("|", "").strip():
                    text_parts.append(row_text)

        return "\n\n".join(text_parts)

    def supported_types(self) -> list[str]:
        return ["application/vnd.openxmlformats-officedocument.wordprocessingml.document"]


class DocumentExtractor:
    """Unified document extractor that delegates to specific extractors."""

    def __init__(self):
        self.extractors: list[TextExtractor] = [
            PlainTextExtractor(),
            PDFExtractor(),
            DOCXExtractor(),
        ]

        self._mime_map: dict[str, TextExtractor] = {}
        for extractor in self.extractors:
            for mime_type in extractor.supported_types():
                self._mime_map[mime_type] = extractor

    def supports(self, mime_type: str) -> bool:
        """Check if a MIME type is supported."""
        return mime_type in self._mime_map

    def extract(self, content: bytes, mime_type: str) -> str:
        """Extract text from document based on MIME type.

        Args:
            content: Raw document bytes
            mime_type: Document MIME type

        Returns:
            Extracted text

        Raises:
            ExtractionError: If extraction fails or type not supported
        """
        extractor = self._mime_map.get(mime_type)

        if not extractor:
            raise ExtractionError(f"Unsupported file type: {mime_type}")

        return clean_text(extractor.extract(content))


def clean_text(text: str) -> str:
    """Normalize line endings and excess whitespace in extracted text."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    lines = [line.strip() for line in text.split("\n")]
    return "\n".join(lines).strip()


def flatten_google_doc(document: dict[str, Any]) -> str:
    """Concatenate every text run of a Google Docs API document.

    Walks paragraphs, tables (rows and cells, recursively) and tables of
    contents in document order. Layout is not preserved.
    """
    body = document.get("body") or {}
    parts: list[str] = []
    _collect_text(body.get("content") or [], parts)
    return "".join(parts)


def _collect_text(elements: list[dict[str, Any]], parts: list[str]) -> None:
    for element in elements:
        paragraph = element.get("paragraph")
        if paragraph:
            for run in paragraph.get("elements") or []:
                text_run = run.get("textRun")
                if text_run and text_run.get("content"):
                    parts.append(text_run["content"])
            continue

        table = element.get("table")
        if table:
            for row in table.get("tableRows") or []:
                for cell in row.get("tableCells") or []:
                    _collect_text(cell.get("content") or [], parts)
            continue

        toc = element.get("tableOfContents")
        if toc:
            _collect_text(toc.get("content") or [], parts)
