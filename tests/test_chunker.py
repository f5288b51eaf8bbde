"""
Tests for text cleaning, chunking and PDF page extraction.
"""

import math
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from src.errors import PDFParseError
from src.rag.chunker import Chunk, PDFParser, TextChunker, clean_text


def _sentences(count: int) -> str:
    return " ".join(f"Kalimat nomor {i} membahas koleksi perpustakaan." for i in range(count))


# ============================================
# clean_text
# ============================================


class TestCleanText:
    """Tests for page text normalization."""

    @pytest.mark.unit
    def test_collapses_horizontal_whitespace(self):
        assert clean_text("Clean  \t Code   book") == "Clean Code book"

    @pytest.mark.unit
    def test_limits_blank_lines(self):
        assert clean_text("Bab 1\n\n\n\n\nBab 2") == "Bab 1\n\nBab 2"

    @pytest.mark.unit
    def test_keeps_single_and_double_newlines(self):
        assert clean_text("a\nb\n\nc") == "a\nb\n\nc"

    @pytest.mark.unit
    def test_strips_control_characters(self):
        assert clean_text("Dune\x00\x07 by\x1f Frank\x7f Herbert") == "Dune by Frank Herbert"

    @pytest.mark.unit
    def test_trims_surrounding_whitespace(self):
        assert clean_text("   \n  isi halaman \n ") == "isi halaman"

    @pytest.mark.unit
    def test_whitespace_only_becomes_empty(self):
        assert clean_text(" \t\n\n\n \x0c ") == ""


# ============================================
# TextChunker
# ============================================


class TestTextChunkerConfig:
    """Tests for TextChunker construction and validation."""

    @pytest.mark.unit
    def test_default_sizes(self):
        chunker = TextChunker()
        assert chunker.chunk_size == 1000
        assert chunker.chunk_overlap == 100

    @pytest.mark.unit
    def test_from_settings(self, settings):
        chunker = TextChunker.from_settings(settings.model_copy(update={"chunk_size": 300, "chunk_overlap": 20}))
        assert chunker.chunk_size == 300
        assert chunker.chunk_overlap == 20

    @pytest.mark.unit
    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            TextChunker(chunk_size=0)

    @pytest.mark.unit
    def test_rejects_negative_overlap(self):
        with pytest.raises(ValueError):
            TextChunker(chunk_overlap=-1)


class TestTextChunkerShortText:
    """Tests for text that fits a single window."""

    @pytest.mark.unit
    @pytest.mark.parametrize("length", [1, 50, 999, 1000])
    def test_short_text_is_single_chunk(self, length):
        text = "x" * length
        chunks = TextChunker().chunk(text, page_number=3, source_name="a.pdf", start_index=7)

        assert len(chunks) == 1
        assert chunks[0].text == text
        assert chunks[0].page == 3
        assert chunks[0].chunk_index == 7
        assert chunks[0].source_filename == "a.pdf"

    @pytest.mark.unit
    def test_short_text_is_trimmed(self):
        chunks = TextChunker().chunk("  Sapiens  ", page_number=1, source_name="a.pdf")
        assert [c.text for c in chunks] == ["Sapiens"]

    @pytest.mark.unit
    def test_empty_text_yields_no_chunks(self):
        assert TextChunker().chunk("", page_number=1, source_name="a.pdf") == []

    @pytest.mark.unit
    def test_unicode_length_counts_characters(self):
        # 1000 multi-byte characters still fit one chunk
        text = "é" * 1000
        chunks = TextChunker().chunk(text, page_number=1, source_name="a.pdf")
        assert len(chunks) == 1


class TestTextChunkerWindows:
    """Tests for window overlap and boundary snapping."""

    @pytest.mark.unit
    def test_unbroken_text_overlaps_exactly(self):
        text = "".join(chr(ord("a") + i % 26) for i in range(2500))
        chunker = TextChunker(chunk_size=1000, chunk_overlap=100)
        chunks = chunker.chunk(text, page_number=1, source_name="a.pdf")

        # windows start at 0, 900, 1800
        assert [len(c.text) for c in chunks] == [1000, 1000, 700]
        assert chunks[0].text[-100:] == chunks[1].text[:100]
        assert chunks[1].text[-100:] == chunks[2].text[:100]
        assert chunks[2].text == text[1800:]

    @pytest.mark.unit
    def test_windows_cover_text_without_gaps(self):
        text = "".join(chr(ord("a") + i % 26) for i in range(3333))
        chunker = TextChunker(chunk_size=500, chunk_overlap=50)
        chunks = chunker.chunk(text, page_number=1, source_name="a.pdf")

        covered_to = 0
        for chunk in chunks:
            start = text.index(chunk.text, max(covered_to - 50, 0))
            assert start <= covered_to
            covered_to = start + len(chunk.text)
        assert covered_to == len(text)

    @pytest.mark.unit
    def test_snaps_to_last_sentence_end(self):
        text = _sentences(60)
        chunker = TextChunker(chunk_size=400, chunk_overlap=40)
        chunks = chunker.chunk(text, page_number=1, source_name="a.pdf")

        assert len(chunks) > 1
        for chunk in chunks[:-1]:
            assert chunk.text.endswith(".")
            assert len(chunk.text) <= 400

    @pytest.mark.unit
    def test_snaps_to_newline(self):
        line = "y" * 79
        text = "\n".join([line] * 20)
        chunker = TextChunker(chunk_size=500, chunk_overlap=0)
        chunks = chunker.chunk(text, page_number=1, source_name="a.pdf")

        # each non-final window is cut after its last newline
        for chunk in chunks[:-1]:
            assert len(chunk.text) % 80 == 79

    @pytest.mark.unit
    def test_boundary_in_first_half_is_ignored(self):
        text = "Awal." + "z" * 2000
        chunker = TextChunker(chunk_size=1000, chunk_overlap=100)
        chunks = chunker.chunk(text, page_number=1, source_name="a.pdf")

        assert len(chunks[0].text) == 1000

    @pytest.mark.unit
    def test_chunk_indices_continue_from_start_index(self):
        text = _sentences(80)
        chunks = TextChunker(chunk_size=300, chunk_overlap=30).chunk(
            text, page_number=2, source_name="a.pdf", start_index=5
        )
        assert [c.chunk_index for c in chunks] == list(range(5, 5 + len(chunks)))
        assert all(c.page == 2 for c in chunks)

    @pytest.mark.unit
    def test_non_final_chunks_respect_max_size(self):
        text = _sentences(200)
        chunks = TextChunker(chunk_size=700, chunk_overlap=70).chunk(
            text, page_number=1, source_name="a.pdf"
        )
        assert all(len(c.text) <= 700 for c in chunks)
        assert all(c.text == c.text.strip() and c.text for c in chunks)


class TestTextChunkerTermination:
    """Tests for bounded window counts."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "length,size,overlap",
        [(1001, 1000, 100), (5000, 1000, 100), (12345, 700, 699), (300, 10, 9), (999, 50, 0)],
    )
    def test_window_count_is_bounded(self, length, size, overlap):
        text = "q" * length
        chunker = TextChunker(chunk_size=size, chunk_overlap=overlap)
        chunks = chunker.chunk(text, page_number=1, source_name="a.pdf")

        assert len(chunks) <= math.ceil(length / (size - overlap)) + 1
        assert chunks[-1].text.endswith("q")

    @pytest.mark.unit
    @pytest.mark.parametrize("overlap", [1000, 1500])
    def test_overlap_not_smaller_than_window_still_terminates(self, overlap):
        text = "w" * 1010
        chunker = TextChunker(chunk_size=1000, chunk_overlap=overlap)
        chunks = chunker.chunk(text, page_number=1, source_name="a.pdf")

        # step is forced to 1 character
        assert len(chunks) == 11
        assert chunks[-1].text == "w" * 1000


class TestChunkModel:
    """Tests for the Chunk model constraints."""

    @pytest.mark.unit
    def test_chunk_is_immutable(self):
        chunk = Chunk(text="isi", page=1, chunk_index=0, source_filename="a.pdf")
        with pytest.raises(ValidationError):
            chunk.text = "lain"

    @pytest.mark.unit
    def test_chunk_rejects_empty_text(self):
        with pytest.raises(ValidationError):
            Chunk(text="", page=1, chunk_index=0, source_filename="a.pdf")


# ============================================
# PDFParser
# ============================================


class TestPDFParser:
    """Tests for page-by-page PDF extraction."""

    @pytest.mark.unit
    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(PDFParseError):
            list(PDFParser().iter_pages(tmp_path / "missing.pdf"))

    @pytest.mark.unit
    def test_yields_pages_in_order(self, tmp_path):
        pdf_file = tmp_path / "doc.pdf"
        pdf_file.write_bytes(b"%PDF-1.4 fake")

        pages = []
        for content in ["Halaman satu", None, "Halaman tiga"]:
            page = MagicMock()
            page.extract_text.return_value = content
            pages.append(page)

        with patch("src.rag.chunker.PdfReader") as mock_reader:
            mock_reader.return_value.pages = pages
            result = list(PDFParser().iter_pages(pdf_file))

        assert [(p.number, p.text) for p in result] == [
            (1, "Halaman satu"),
            (2, ""),
            (3, "Halaman tiga"),
        ]

    @pytest.mark.unit
    def test_falls_back_to_pdfplumber(self, tmp_path):
        pdf_file = tmp_path / "doc.pdf"
        pdf_file.write_bytes(b"%PDF-1.4 fake")

        plumber_page = MagicMock()
        plumber_page.extract_text.return_value = "Dari pdfplumber"
        plumber_pdf = MagicMock()
        plumber_pdf.pages = [plumber_page]
        plumber_pdf.__enter__.return_value = plumber_pdf

        with patch("src.rag.chunker.PdfReader", side_effect=ValueError("broken xref")):
            with patch("src.rag.chunker.pdfplumber.open", return_value=plumber_pdf):
                result = list(PDFParser().iter_pages(pdf_file))

        assert [(p.number, p.text) for p in result] == [(1, "Dari pdfplumber")]

    @pytest.mark.unit
    def test_both_readers_failing_raises(self, tmp_path):
        pdf_file = tmp_path / "doc.pdf"
        pdf_file.write_bytes(b"not a pdf")

        with patch("src.rag.chunker.PdfReader", side_effect=ValueError("bad")):
            with patch("src.rag.chunker.pdfplumber.open", side_effect=ValueError("bad")):
                with pytest.raises(PDFParseError):
                    list(PDFParser().iter_pages(pdf_file))
