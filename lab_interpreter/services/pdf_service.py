"""PDF processing service using PyMuPDF and pdfplumber."""

import re
from typing import Optional

import fitz  # PyMuPDF
import pdfplumber
from pydantic import BaseModel

from lab_interpreter.core.logging import logger


PDF_SIGNATURE = b"%PDF"


class PDFMetadata(BaseModel):
    pages: int = 0
    version: Optional[str] = None   # e.g. "PDF 1.7"
    title: Optional[str] = None
    producer: Optional[str] = None


class PDFService:
    """Service for PDF validation, metadata and text extraction."""

    @staticmethod
    def is_valid_pdf(pdf_path: str) -> bool:
        """
        Check the file exists and starts with the PDF signature.
        Never raises: unreadable files are simply not valid PDFs.
        """
        try:
            with open(pdf_path, "rb") as f:
                return f.read(len(PDF_SIGNATURE)) == PDF_SIGNATURE
        except OSError:
            return False

    @staticmethod
    def get_metadata(pdf_path: str) -> Optional[PDFMetadata]:
        """Get page count and format version, or None if the file can't be opened."""
        try:
            with fitz.open(pdf_path) as doc:
                info = doc.metadata or {}
                return PDFMetadata(
                    pages=doc.page_count,
                    version=info.get("format") or None,
                    title=info.get("title") or None,
                    producer=info.get("producer") or None,
                )
        except Exception as e:
            logger.error(f"Error reading PDF metadata: {e}")
            return None

    @staticmethod
    def extract_text(pdf_path: str) -> str:
        """
        Extract text from PDF using PyMuPDF.
        Raises on I/O or parse errors so callers can tell them apart from empty documents.
        """
        with fitz.open(pdf_path) as doc:
            return "\n".join(page.get_text() for page in doc)

    @staticmethod
    def extract_text_fallback(pdf_path: str) -> str:
        """
        Extract text with pdfplumber, page by page.
        Used when the primary extraction yields nothing.
        """
        pages = []
        with pdfplumber.open(pdf_path) as pdf:
            for page in pdf.pages:
                pages.append(page.extract_text() or "")
        return "\n".join(pages).strip()

    @staticmethod
    def clean_text(text: str) -> str:
        """Collapse whitespace runs and repeated blank lines."""
        if not text:
            return ""
        text = re.sub(r"[ \t\r\f\v]+", " ", text)
        text = re.sub(r" ?\n ?", "\n", text)
        text = re.sub(r"\n{3,}", "\n\n", text)
        return text.strip()
