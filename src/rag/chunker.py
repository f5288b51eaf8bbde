"""
Pustaka Document Chunker Module

Page-by-page PDF text extraction and boundary-aware character chunking.
Uses PyPDF2 as the primary reader with pdfplumber as fallback when a file
cannot be opened by PyPDF2.
"""

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import pdfplumber
from pydantic import BaseModel, ConfigDict, Field
from PyPDF2 import PdfReader

from src.config import DEFAULT_CHUNK_OVERLAP, DEFAULT_CHUNK_SIZE, Settings
from src.errors import PDFParseError

logger = logging.getLogger(__name__)

# ============================================
# Text Cleaning
# ============================================

_HORIZONTAL_WS = re.compile(r"[ \t]+")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

# A snapped boundary must lie past this fraction of the window
BOUNDARY_MIN_RATIO = 0.5


def clean_text(text: str) -> str:
    """Normalize extracted page text.

    Collapses runs of spaces/tabs, limits blank lines to one, removes
    control characters other than tab and newline, and trims the result.
    """
    text = _HORIZONTAL_WS.sub(" ", text)
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    text = _CONTROL_CHARS.sub("", text)
    return text.strip()


# ============================================
# Data Models
# ============================================


class Chunk(BaseModel):
    """A bounded slice of document text with its position.

    Attributes:
        text: Trimmed, non-empty chunk content.
        page: One-based page number the chunk was taken from.
        chunk_index: Document-wide index, continued across pages.
        source_filename: Original filename of the document.
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., min_length=1)
    page: int = Field(..., ge=1)
    chunk_index: int = Field(..., ge=0)
    source_filename: str


@dataclass(frozen=True)
class PageText:
    """Raw text of a single PDF page."""

    number: int
    text: str


# ============================================
# PDF Parser
# ============================================


class PDFParser:
    """Extracts text from a PDF one page at a time.

    Pages are yielded lazily so a large document is never held in memory
    as one string.
    """

    def iter_pages(self, file_path: str | Path) -> Iterator[PageText]:
        """Yield the text of each page in order.

        Raises:
            PDFParseError: If the file is missing or unreadable by both readers.
        """
        path = Path(file_path)
        if not path.exists():
            raise PDFParseError(f"PDF file not found: {file_path}")

        try:
            reader = PdfReader(str(path))
            pages = reader.pages
        except Exception as e:
            logger.warning("PyPDF2 could not open %s, trying pdfplumber: %s", path, e)
            yield from self._iter_with_pdfplumber(path)
            return

        for number, page in enumerate(pages, start=1):
            yield PageText(number=number, text=page.extract_text() or "")

    def _iter_with_pdfplumber(self, path: Path) -> Iterator[PageText]:
        try:
            pdf = pdfplumber.open(str(path))
        except Exception as e:
            raise PDFParseError(f"Failed to open PDF: {e}") from e

        with pdf:
            for number, page in enumerate(pdf.pages, start=1):
                yield PageText(number=number, text=page.extract_text() or "")


# ============================================
# Text Chunker
# ============================================


class TextChunker:
    """Sliding-window character chunker with sentence/newline snapping.

    Every window that does not reach the end of the text is cut back to
    its last ``.`` or newline, provided that boundary lies past half the
    window. Consecutive windows share ``chunk_overlap`` characters.

    Attributes:
        chunk_size: Maximum characters per window.
        chunk_overlap: Characters repeated at the start of the next window.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0:
            raise ValueError("chunk_overlap must not be negative")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    @classmethod
    def from_settings(cls, settings: Settings) -> "TextChunker":
        return cls(chunk_size=settings.chunk_size, chunk_overlap=settings.chunk_overlap)

    def chunk(
        self,
        text: str,
        page_number: int,
        source_name: str,
        start_index: int = 0,
    ) -> list[Chunk]:
        """Split one page of cleaned text into chunks.

        Args:
            text: Page text, already passed through ``clean_text``.
            page_number: One-based page number stored on each chunk.
            source_name: Filename stored on each chunk.
            start_index: Index given to the first chunk of this page.

        Returns:
            Chunks in reading order with consecutive ``chunk_index`` values.
        """
        chunks: list[Chunk] = []
        index = start_index

        for window in self._windows(text):
            content = window.strip()
            if not content:
                continue
            chunks.append(
                Chunk(
                    text=content,
                    page=page_number,
                    chunk_index=index,
                    source_filename=source_name,
                )
            )
            index += 1

        return chunks

    def _windows(self, text: str) -> Iterator[str]:
        length = len(text)
        if length <= self.chunk_size:
            yield text
            return

        offset = 0
        while offset < length:
            window = text[offset : offset + self.chunk_size]
            is_last = offset + self.chunk_size >= length

            if not is_last:
                boundary = max(window.rfind("."), window.rfind("\n"))
                if boundary > self.chunk_size * BOUNDARY_MIN_RATIO:
                    window = window[: boundary + 1]

            yield window

            if is_last:
                return

            step = len(window) - self.chunk_overlap
            if step <= 0:
                # overlap >= window: force progress
                step = 1
            offset += step
