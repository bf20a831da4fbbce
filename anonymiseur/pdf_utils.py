"""
PDF utilities built on PyMuPDF (fitz).

Opens documents from bytes and reads the text layer of each page as ordered
glyph runs for the position locator.
"""

from typing import List, Optional

import fitz  # PyMuPDF

from .errors import DocumentOpenError
from .locator import GlyphRun
from .logger import LoggerMixin


def open_pdf(pdf_bytes: bytes) -> fitz.Document:
    """
    Open a PDF from memory.

    Raises:
        DocumentOpenError: if the bytes are not a readable PDF
    """
    if not pdf_bytes:
        raise DocumentOpenError("Empty document")
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        # fitz.FileDataError is a RuntimeError
        raise DocumentOpenError(f"Cannot open PDF: {e}") from e
    if doc.needs_pass:
        doc.close()
        raise DocumentOpenError("PDF is encrypted")
    if doc.page_count == 0:
        doc.close()
        raise DocumentOpenError("PDF has no pages")
    return doc


class TextLayerReader(LoggerMixin):
    """
    Converts PyMuPDF text spans into GlyphRuns.

    One run per span, in reading order, with top-left coordinates. A visible
    gap between two spans on the same line becomes a synthetic space run; a
    line or block break becomes a zero-width newline run.
    """

    def __init__(self, gap_ratio: float = 0.15):
        self.gap_ratio = gap_ratio

    def read_page(self, page: fitz.Page) -> List[GlyphRun]:
        runs: List[GlyphRun] = []
        data = page.get_text("dict", flags=fitz.TEXTFLAGS_TEXT)

        for block in data.get("blocks", []):
            if block.get("type", 0) != 0:
                continue
            for line in block.get("lines", []):
                previous: Optional[dict] = None
                for span in line.get("spans", []):
                    text = span.get("text", "")
                    if not text:
                        continue
                    x0, y0, x1, _ = span["bbox"]
                    size = span.get("size", 0.0)

                    if previous is not None:
                        self._append_gap(runs, previous, span)
                    runs.append(GlyphRun(text=text, x=x0, y=y0, width=x1 - x0, font_size=size))
                    previous = span

                if runs and runs[-1].text != "\n":
                    last = runs[-1]
                    runs.append(GlyphRun(
                        text="\n", x=last.x + last.width, y=last.y,
                        width=0.0, font_size=last.font_size,
                    ))

        return runs

    def _append_gap(self, runs: List[GlyphRun], previous: dict, span: dict) -> None:
        gap = span["bbox"][0] - previous["bbox"][2]
        size = previous.get("size", 0.0)
        if gap <= self.gap_ratio * size:
            return
        if previous["text"][-1:].isspace() or span["text"][:1].isspace():
            return
        runs.append(GlyphRun(
            text=" ",
            x=previous["bbox"][2],
            y=previous["bbox"][1],
            width=gap,
            font_size=size,
        ))

    def read_document(self, doc: fitz.Document) -> List[List[GlyphRun]]:
        """Glyph runs for every page, in page order."""
        pages = [self.read_page(page) for page in doc]
        self.log_debug(f"Read text layer of {len(pages)} pages "
                       f"({sum(len(p) for p in pages)} runs)")
        return pages
