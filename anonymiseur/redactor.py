"""
PDF redaction by overlay.

Each located match is covered with an opaque rectangle and its replacement
label is written on top. The underlying text objects are NOT removed: the
original value can still be recovered from the file's content stream. Use
this only where a visual redaction is acceptable.
"""

from collections import defaultdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import fitz  # PyMuPDF
import numpy as np

from .config import CorrespondenceEntry, RedactionConfig
from .locator import TextPosition
from .logger import LoggerMixin
from .pdf_utils import open_pdf


A4 = (595.28, 841.89)

CONFIDENTIAL_NOTE = "CONFIDENTIEL - Ce tableau doit être conservé séparément du document anonymisé"


class CoordinateOrigin(Enum):
    """Convention of the incoming TextPosition coordinates."""
    TOP_LEFT = "top_left"  # PyMuPDF text layer
    BOTTOM_LEFT = "bottom_left"  # PDF user space


def _shorten(text: str, limit: int) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit - 3] + "..."


class Redactor(LoggerMixin):
    """Draws occlusions and labels, and assembles the audit page."""

    def __init__(
        self,
        config: Optional[RedactionConfig] = None,
        origin: CoordinateOrigin = CoordinateOrigin.TOP_LEFT,
    ):
        self.config = config or RedactionConfig()
        self.origin = origin

    def _top(self, page: fitz.Page, position: TextPosition) -> float:
        if self.origin is CoordinateOrigin.BOTTOM_LEFT:
            return page.rect.height - position.y - position.height
        return position.y

    def occlusion_rect(self, page: fitz.Page, position: TextPosition) -> fitz.Rect:
        """Padded rectangle covering a position, in drawing coordinates."""
        pad = self.config.padding
        top = self._top(page, position)
        rect = fitz.Rect(
            position.x - pad,
            top - pad,
            position.x + position.width + pad,
            top + position.height + pad,
        )
        if page.rotation:
            rect = (rect * page.derotation_matrix).normalize()
        return rect

    def label_fontsize(self, label: str, position: TextPosition) -> float:
        """min(height * 0.9, cap), shrunk so the label fits the box width."""
        fontsize = min(position.height * 0.9, self.config.label_font_cap)
        available = position.width + 2 * self.config.padding
        length = fitz.get_text_length(label, fontname=self.config.fontname, fontsize=fontsize)
        if length > available > 0:
            fontsize *= available / length
        # The readability floor never lifts the label past the box height
        return min(max(fontsize, self.config.min_label_font), position.height * 0.9)

    def _draw_label(self, page: fitz.Page, position: TextPosition) -> None:
        label = position.replacement
        if not label:
            return
        # Baseline at 90% of the box height, left-aligned on the box origin
        point = fitz.Point(position.x, self._top(page, position) + position.height * 0.9)
        if page.rotation:
            point = point * page.derotation_matrix
        page.insert_text(
            point,
            label,
            fontsize=self.label_fontsize(label, position),
            fontname=self.config.fontname,
            color=self.config.label_color,
            rotate=page.rotation,
            overlay=True,
        )

    def redact_page(self, page: fitz.Page, positions: Sequence[TextPosition]) -> int:
        """
        Occlude every position on a page, then draw the labels.

        A label is skipped when its span lies inside a longer located span, so
        labels never stack. Returns the number of occlusions drawn.
        """
        rects = []
        for position in positions:
            rect = self.occlusion_rect(page, position)
            page.draw_rect(rect, color=None, fill=self.config.occlusion_color, overlay=True)
            rects.append(rect)

        labelled = set()
        for position in positions:
            span = (position.start, position.end)
            if span in labelled:
                continue
            if any(other.contains(position) for other in positions if other is not position):
                continue
            self._draw_label(page, position)
            labelled.add(span)

        return len(rects)

    def redact_document(self, doc: fitz.Document, positions: Sequence[TextPosition]) -> int:
        """Apply positions to an open document, page by page in order."""
        by_page: Dict[int, List[TextPosition]] = defaultdict(list)
        for position in positions:
            by_page[position.page_index].append(position)

        drawn = 0
        for page_index in sorted(by_page):
            if not 0 <= page_index < doc.page_count:
                self.log_warning(f"Position on missing page {page_index + 1} ignored")
                continue
            drawn += self.redact_page(doc[page_index], by_page[page_index])
        self.log_info(f"Drew {drawn} occlusions on {len(by_page)} pages")
        return drawn

    def redact(
        self,
        pdf_bytes: bytes,
        positions: Sequence[TextPosition],
        correspondence: Optional[Sequence[CorrespondenceEntry]] = None,
        source_name: str = "document.pdf",
        statistics: Optional[Dict[str, int]] = None,
    ) -> bytes:
        """
        Redact a PDF and attach the audit page(s).

        Returns:
            The redacted PDF as bytes (same container format as the input)
        """
        doc = open_pdf(pdf_bytes)
        try:
            self.redact_document(doc, positions)
            if self.config.include_audit_page and correspondence is not None:
                self.insert_audit_pages(doc, correspondence, source_name, statistics)
            return doc.tobytes(garbage=3, deflate=True)
        finally:
            doc.close()

    # Audit page

    def insert_audit_pages(
        self,
        doc: fitz.Document,
        correspondence: Sequence[CorrespondenceEntry],
        source_name: str,
        statistics: Optional[Dict[str, int]] = None,
    ) -> int:
        """Insert the correspondence table first (default) or last."""
        audit = self.build_audit_document(correspondence, source_name, statistics)
        try:
            start_at = 0 if self.config.audit_page_position == "first" else -1
            doc.insert_pdf(audit, start_at=start_at)
            return audit.page_count
        finally:
            audit.close()

    def build_audit_document(
        self,
        correspondence: Sequence[CorrespondenceEntry],
        source_name: str,
        statistics: Optional[Dict[str, int]] = None,
        timestamp: Optional[datetime] = None,
    ) -> fitz.Document:
        """
        Build the correspondence table as a standalone PDF.

        Rows that do not fit flow onto further pages.
        """
        stats = statistics or {}
        timestamp = timestamp or datetime.now()
        audit = fitz.open()
        width, height = A4
        bold = self.config.bold_fontname
        regular = self.config.fontname
        row_limit = height - 80

        page = None
        y = 0.0
        rows = list(correspondence) or [None]
        for entry in rows:
            if page is None or y > row_limit:
                page = audit.new_page(width=width, height=height)
                y = self._audit_header(page, audit.page_count, source_name, stats, timestamp)
            if entry is None:
                page.insert_text((50, y), "Aucun élément anonymisé", fontsize=9,
                                 fontname=regular, color=(0.4, 0.4, 0.4))
                break

            type_label = entry.entity_type.label if entry.entity_type else "Autre"
            located = "oui" if entry.located else "NON"
            page.insert_text((50, y), _shorten(type_label, 18), fontsize=9,
                             fontname=regular, color=(0.3, 0.3, 0.3))
            page.insert_text((150, y), _shorten(entry.original, 35), fontsize=9,
                             fontname=regular, color=(0.2, 0.2, 0.2))
            page.insert_text((340, y), entry.replacement, fontsize=9,
                             fontname=bold, color=(0, 0.5, 0))
            page.insert_text((460, y), str(entry.occurrences), fontsize=9,
                             fontname=regular, color=(0.2, 0.2, 0.2))
            page.insert_text((500, y), located, fontsize=9, fontname=bold,
                             color=(0.2, 0.2, 0.2) if entry.located else (0.8, 0, 0))
            y += 16

        for audit_page in audit:
            self._confidential_box(audit_page)
        return audit

    def _audit_header(
        self,
        page: fitz.Page,
        page_number: int,
        source_name: str,
        stats: Dict[str, int],
        timestamp: datetime,
    ) -> float:
        bold = self.config.bold_fontname
        regular = self.config.fontname
        grey = (0.4, 0.4, 0.4)

        title = "TABLEAU DE CORRESPONDANCE"
        if page_number > 1:
            title += f" (suite, page {page_number})"
        page.insert_text((50, 60), title, fontsize=18, fontname=bold, color=(0.1, 0.1, 0.1))
        page.insert_text((50, 85), f"Document source : {_shorten(source_name, 70)}",
                         fontsize=10, fontname=regular, color=grey)
        page.insert_text(
            (50, 100),
            f"Date d'anonymisation : {timestamp:%d/%m/%Y} à {timestamp:%H:%M:%S}",
            fontsize=10, fontname=regular, color=grey,
        )

        y = 130.0
        if page_number == 1:
            page.insert_text((50, y), "STATISTIQUES", fontsize=12, fontname=bold, color=(0.2, 0.2, 0.2))
            line = (
                f"Termes manuels : {stats.get('manual', 0)} | "
                f"Auto-détectés : {stats.get('auto', 0)} | "
                f"Corrections IA : {stats.get('ai', 0)}"
            )
            page.insert_text((50, y + 18), line, fontsize=10, fontname=regular, color=(0.3, 0.3, 0.3))
            y += 50

        page.insert_text((50, y), "CORRESPONDANCES", fontsize=12, fontname=bold, color=(0.2, 0.2, 0.2))
        y += 22
        for x, header in ((50, "Type"), (150, "Texte original"), (340, "Remplacé par"),
                          (460, "Occ."), (500, "Localisé")):
            page.insert_text((x, y), header, fontsize=9, fontname=bold, color=(0.3, 0.3, 0.3))
        page.draw_line((50, y + 5), (545, y + 5), color=(0.7, 0.7, 0.7), width=0.5)
        return y + 20

    def _confidential_box(self, page: fitz.Page) -> None:
        height = page.rect.height
        box = fitz.Rect(45, height - 60, 550, height - 30)
        page.draw_rect(box, color=(0.9, 0.6, 0.4), fill=(1, 0.95, 0.9), width=1)
        page.insert_text((55, height - 41), CONFIDENTIAL_NOTE, fontsize=9,
                         fontname=self.config.bold_fontname, color=(0.7, 0.3, 0.1))

    def get_redaction_statistics(self, positions: Sequence[TextPosition]) -> Dict[str, Any]:
        """
        Calculate statistics about drawn occlusions.

        Args:
            positions: Located positions

        Returns:
            Dictionary with per-page counts, total area and width statistics
        """
        if not positions:
            return {
                "total_positions": 0,
                "positions_per_page": {},
                "total_area": 0.0,
                "width_stats": {},
            }

        pages, counts = np.unique([p.page_index for p in positions], return_counts=True)
        widths = np.array([p.width for p in positions], dtype=float)
        areas = np.array([p.area for p in positions], dtype=float)

        return {
            "total_positions": len(positions),
            "positions_per_page": {int(p) + 1: int(c) for p, c in zip(pages, counts)},
            "total_area": float(areas.sum()),
            "width_stats": {
                "mean": float(np.mean(widths)),
                "min": float(np.min(widths)),
                "max": float(np.max(widths)),
                "std": float(np.std(widths)),
            },
        }
