"""
Tests for overlay redaction and the audit page.
"""

from datetime import datetime

import fitz  # PyMuPDF
import pytest

from anonymiseur.config import CorrespondenceEntry, EntityType, RedactionConfig
from anonymiseur.locator import TextPosition
from anonymiseur.pdf_utils import open_pdf
from anonymiseur.redactor import CoordinateOrigin, Redactor


def position(x=72.0, y=60.0, width=120.0, height=11.0, page=0, replacement="[EMAIL_1]",
             start=0, end=10, original="valeur"):
    return TextPosition(
        matched_text=original,
        x=x, y=y, width=width, height=height,
        page_index=page,
        original=original,
        replacement=replacement,
        start=start, end=end, match_start=start,
    )


def entries(count):
    return [
        CorrespondenceEntry(
            original=f"valeur {i}",
            replacement=f"[ELEMENT_{i + 1}]",
            entity_type=EntityType.CUSTOM,
            located=i % 2 == 0,
            occurrences=1 if i % 2 == 0 else 0,
        )
        for i in range(count)
    ]


@pytest.fixture
def redactor():
    return Redactor(RedactionConfig())


@pytest.fixture
def page_doc():
    doc = fitz.open()
    doc.new_page(width=595, height=842)
    yield doc
    doc.close()


class TestGeometry:
    """Test rectangle and label sizing."""

    def test_occlusion_rect_is_padded(self, redactor, page_doc):
        rect = redactor.occlusion_rect(page_doc[0], position())
        assert rect == fitz.Rect(70, 58, 194, 73)

    def test_bottom_left_origin_is_converted(self, page_doc):
        redactor = Redactor(RedactionConfig(padding=0.0), origin=CoordinateOrigin.BOTTOM_LEFT)
        rect = redactor.occlusion_rect(page_doc[0], position(y=100.0, height=10.0))
        assert rect.y0 == pytest.approx(842 - 100 - 10)
        assert rect.y1 == pytest.approx(842 - 100)

    def test_label_fontsize_capped(self, redactor):
        assert redactor.label_fontsize("[X]", position(height=40.0, width=200.0)) == 12.0
        assert redactor.label_fontsize("[X]", position(height=10.0, width=200.0)) == pytest.approx(9.0)

    def test_label_fontsize_shrinks_to_width(self, redactor):
        narrow = position(height=11.0, width=20.0)
        size = redactor.label_fontsize("[EMAIL_1]", narrow)
        assert size < 11.0 * 0.9
        assert size >= 4.0

    def test_label_fontsize_never_exceeds_short_box(self, redactor):
        short = position(height=3.0, width=50.0)
        assert redactor.label_fontsize("[TEL_1]", short) == pytest.approx(2.7)
        assert redactor.label_fontsize("[TEL_1]", short) <= short.height


class TestRedaction:
    """Test drawing on pages."""

    def test_redact_page_draws_rects_and_labels(self, redactor, page_doc):
        page = page_doc[0]
        count = redactor.redact_page(page, [
            position(replacement="[EMAIL_1]", start=0, end=10),
            position(y=90.0, replacement="[TEL_1]", start=20, end=34),
        ])

        assert count == 2
        assert len(page.get_drawings()) == 2
        text = page.get_text()
        assert "[EMAIL_1]" in text
        assert "[TEL_1]" in text

    def test_nested_span_label_suppressed(self, redactor, page_doc):
        page = page_doc[0]
        redactor.redact_page(page, [
            position(width=66.0, replacement="[ELEMENT_1]", start=10, end=21),
            position(width=24.0, replacement="[ELEMENT_2]", start=10, end=14),
        ])
        text = page.get_text()
        assert "[ELEMENT_1]" in text
        assert "[ELEMENT_2]" not in text

    def test_redact_document_ignores_missing_pages(self, redactor, page_doc):
        drawn = redactor.redact_document(page_doc, [position(page=0), position(page=5)])
        assert drawn == 1

    def test_redact_returns_pdf_bytes(self, redactor, sample_pdf):
        output = redactor.redact(
            sample_pdf,
            [position(y=60.0)],
            correspondence=entries(2),
            source_name="contrat.pdf",
            statistics={"manual": 1, "auto": 1, "ai": 0},
        )
        doc = open_pdf(output)
        try:
            assert doc.page_count == 2
            assert "TABLEAU DE CORRESPONDANCE" in doc[0].get_text()
            assert "[EMAIL_1]" in doc[1].get_text()
        finally:
            doc.close()

    def test_audit_page_last(self, sample_pdf):
        redactor = Redactor(RedactionConfig(audit_page_position="last"))
        output = redactor.redact(sample_pdf, [], correspondence=entries(1))
        doc = open_pdf(output)
        try:
            assert "TABLEAU DE CORRESPONDANCE" in doc[doc.page_count - 1].get_text()
            assert "CONTRAT" in doc[0].get_text()
        finally:
            doc.close()

    def test_no_audit_page(self, sample_pdf):
        redactor = Redactor(RedactionConfig(include_audit_page=False))
        doc = open_pdf(redactor.redact(sample_pdf, [], correspondence=entries(1)))
        try:
            assert doc.page_count == 1
        finally:
            doc.close()


class TestAuditDocument:
    """Test the correspondence table."""

    def test_contents(self, redactor):
        audit = redactor.build_audit_document(
            entries(2),
            "contrat.pdf",
            {"manual": 2, "auto": 0, "ai": 0},
            timestamp=datetime(2024, 3, 15, 10, 30, 0),
        )
        try:
            assert audit.page_count == 1
            text = audit[0].get_text()
            assert "contrat.pdf" in text
            assert "15/03/2024" in text
            assert "valeur 0" in text
            assert "[ELEMENT_2]" in text
            assert "NON" in text
            assert "CONFIDENTIEL" in text
        finally:
            audit.close()

    def test_empty_table(self, redactor):
        audit = redactor.build_audit_document([], "vide.pdf")
        try:
            assert audit.page_count == 1
            assert "Aucun" in audit[0].get_text()
        finally:
            audit.close()

    def test_long_table_flows_onto_more_pages(self, redactor):
        audit = redactor.build_audit_document(entries(60), "long.pdf")
        try:
            assert audit.page_count == 2
            assert "suite" in audit[1].get_text()
            assert "[ELEMENT_60]" in audit[1].get_text()
        finally:
            audit.close()


class TestStatistics:

    def test_empty(self, redactor):
        stats = redactor.get_redaction_statistics([])
        assert stats["total_positions"] == 0
        assert stats["positions_per_page"] == {}

    def test_counts_and_widths(self, redactor):
        stats = redactor.get_redaction_statistics([
            position(width=10.0, height=2.0, page=0),
            position(width=30.0, height=2.0, page=0),
            position(width=20.0, height=2.0, page=2),
        ])
        assert stats["total_positions"] == 3
        assert stats["positions_per_page"] == {1: 2, 3: 1}
        assert stats["total_area"] == pytest.approx(120.0)
        assert stats["width_stats"]["mean"] == pytest.approx(20.0)
        assert stats["width_stats"]["max"] == pytest.approx(30.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
