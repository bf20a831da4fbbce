"""
Tests for text extraction with fallback.
"""

import pytest

from anonymiseur.config import ExtractionConfig
from anonymiseur.errors import ExtractionError
from anonymiseur.extraction import TextExtractor, available_methods


def failing_engine(pdf_bytes):
    raise RuntimeError("engine down")


class TestTextExtractor:
    """Test extraction methods and fallback."""

    def test_available_methods(self):
        assert "pymupdf" in available_methods()

    def test_primary_method(self, sample_pdf):
        result = TextExtractor().extract(sample_pdf)

        assert result.method == "pymupdf"
        assert result.page_count == 1
        assert result.has_text
        assert "jean.dupont@example.com" in result.text

    def test_fallback_when_primary_fails(self, sample_pdf):
        extractor = TextExtractor()
        extractor._engines["pymupdf"] = failing_engine

        result = extractor.extract(sample_pdf)
        assert result.method == "pdfplumber"
        assert "jean.dupont@example.com" in result.text

    def test_pdfplumber_as_primary(self, two_page_pdf):
        extractor = TextExtractor(ExtractionConfig(primary_method="pdfplumber", fallback_method=None))
        result = extractor.extract(two_page_pdf)
        assert result.page_count == 2
        assert "Page deux" in result.text

    def test_image_only_document_is_not_an_error(self, blank_pdf):
        result = TextExtractor().extract(blank_pdf)
        assert not result.has_text
        assert result.page_count == 1
        assert result.to_dict()["has_text"] is False

    def test_all_methods_fail(self, sample_pdf):
        extractor = TextExtractor()
        extractor._engines["pymupdf"] = failing_engine
        extractor._engines["pdfplumber"] = failing_engine

        with pytest.raises(ExtractionError) as excinfo:
            extractor.extract(sample_pdf)
        assert excinfo.value.code == "EXTRACTION_FAILED"
        assert "engine down" in str(excinfo.value)

    def test_unreadable_bytes(self):
        with pytest.raises(ExtractionError):
            TextExtractor().extract(b"not a pdf at all")

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            TextExtractor(ExtractionConfig(primary_method="ocr"))

    def test_methods_are_deduplicated(self):
        extractor = TextExtractor(ExtractionConfig(primary_method="pdfplumber", fallback_method="pdfplumber"))
        assert extractor.methods == ["pdfplumber"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
