"""
Position locator: maps matches of redaction targets onto page geometry.

A page is described by its glyph runs in reading order. The run texts are
concatenated, normalised and searched with each target's flexible pattern;
every match is then mapped back to the runs it covers to estimate a bounding
box. Coordinates stay in the text layer's convention (top-left origin).
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .config import LocatorConfig, RedactionTarget
from .logger import LoggerMixin
from .normalizer import build_flexible_pattern, normalize_text


@dataclass
class GlyphRun:
    """A contiguous text string sharing one position and font."""
    text: str
    x: float
    y: float
    width: float
    font_size: float

    @property
    def char_width(self) -> float:
        return self.width / max(len(self.text), 1)


@dataclass
class TextPosition:
    """Bounding box of one located match, in text-layer coordinates."""
    matched_text: str
    x: float
    y: float
    width: float
    height: float
    page_index: int
    original: str = ""
    replacement: str = ""
    start: int = 0  # Offsets into the flattened page text
    end: int = 0
    match_start: int = 0  # Shared by the line segments of one wrapped match

    @property
    def area(self) -> float:
        return self.width * self.height

    def contains(self, other: "TextPosition") -> bool:
        """True when other's span lies strictly inside this one on the same page."""
        return (
            self.page_index == other.page_index
            and self.start <= other.start
            and other.end <= self.end
            and (self.end - self.start) > (other.end - other.start)
        )

    def to_dict(self) -> dict:
        return {
            "page": self.page_index,
            "x": round(self.x, 2),
            "y": round(self.y, 2),
            "width": round(self.width, 2),
            "height": round(self.height, 2),
            "replacement": self.replacement,
        }


class PageText:
    """Flattened text of one page with the offset range of every run."""

    def __init__(self, runs: Sequence[GlyphRun]):
        self.runs = list(runs)
        self.bounds: List[Tuple[int, int]] = []
        offset = 0
        for run in self.runs:
            self.bounds.append((offset, offset + len(run.text)))
            offset += len(run.text)
        self.text = "".join(run.text for run in self.runs)

    def start_run(self, offset: int) -> Optional[int]:
        for index, (run_start, run_end) in enumerate(self.bounds):
            if run_start <= offset < run_end:
                return index
        return None

    def end_run(self, offset: int, first: int = 0) -> Optional[int]:
        for index in range(first, len(self.bounds)):
            run_start, run_end = self.bounds[index]
            if run_start < offset <= run_end:
                return index
        return None


def _line_segments(text: str, start: int, end: int) -> List[Tuple[int, int]]:
    """Split [start, end) at line breaks, trimming separators at segment ends."""
    segments = []
    seg_start = start
    for offset in range(start, end + 1):
        if offset == end or text[offset] == "\n":
            lo, hi = seg_start, offset
            while lo < hi and text[lo] in " \t-":
                lo += 1
            while hi > lo and text[hi - 1] in " \t-":
                hi -= 1
            if hi > lo:
                segments.append((lo, hi))
            seg_start = offset + 1
    return segments


class PositionLocator(LoggerMixin):
    """Finds every occurrence of each target on each page."""

    def __init__(self, config: Optional[LocatorConfig] = None):
        self.config = config or LocatorConfig()

    def _measure(
        self,
        page: PageText,
        start: int,
        end: int,
    ) -> Optional[Tuple[float, float, float, float]]:
        """Estimate (x, y, width, height) for [start, end), or None."""
        first = page.start_run(start)
        if first is None:
            return None
        last = page.end_run(end, first)
        if last is None:
            return None

        start_run = page.runs[first]
        run_start = page.bounds[first][0]
        offset_in_run = start - run_start
        x = start_run.x + start_run.char_width * offset_in_run

        if first == last:
            width = start_run.char_width * (end - start)
        else:
            width = start_run.width - start_run.char_width * offset_in_run
            for index in range(first + 1, last):
                width += page.runs[index].width
            end_run = page.runs[last]
            width += end_run.char_width * (end - page.bounds[last][0])

        width = max(width, (end - start) * self.config.min_char_width)
        return x, start_run.y, width, start_run.font_size

    def locate_page(
        self,
        targets: Sequence[RedactionTarget],
        runs: Sequence[GlyphRun],
        page_index: int = 0,
    ) -> List[TextPosition]:
        """
        Locate every target on one page.

        A target with no match yields nothing. Matches whose run boundaries
        cannot be resolved are skipped.
        """
        page = PageText(runs)
        normalized = normalize_text(page.text)
        if len(normalized) != len(page.text):
            self.log_warning(f"Page {page_index + 1}: normalisation changed text length, skipping page")
            return []

        positions: List[TextPosition] = []
        for target in targets:
            pattern = build_flexible_pattern(target.original, self.config.case_sensitive)
            if pattern is None:
                continue

            for match in pattern.finditer(normalized):
                for seg_start, seg_end in _line_segments(normalized, match.start(), match.end()):
                    box = self._measure(page, seg_start, seg_end)
                    if box is None:
                        self.log_debug(
                            f"Page {page_index + 1}: unresolved runs for match at {seg_start}-{seg_end}"
                        )
                        continue
                    x, y, width, height = box
                    positions.append(TextPosition(
                        matched_text=page.text[seg_start:seg_end],
                        x=x,
                        y=y,
                        width=width,
                        height=height,
                        page_index=page_index,
                        original=target.original,
                        replacement=target.replacement,
                        start=seg_start,
                        end=seg_end,
                        match_start=match.start(),
                    ))

        self.log_debug(f"Page {page_index + 1}: {len(positions)} positions")
        return positions

    def locate(
        self,
        targets: Sequence[RedactionTarget],
        pages: Sequence[Sequence[GlyphRun]],
    ) -> List[List[TextPosition]]:
        """
        Locate targets on every page.

        Pages are processed in a thread pool; the result list is in page
        order whatever the completion order.
        """
        if self.config.max_workers <= 1 or len(pages) <= 1:
            return [self.locate_page(targets, runs, i) for i, runs in enumerate(pages)]

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            return list(executor.map(
                lambda item: self.locate_page(targets, item[1], item[0]),
                enumerate(pages),
            ))
