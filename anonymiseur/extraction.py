"""
Text extraction from PDF bytes.

PyMuPDF is the primary engine and pdfplumber the fallback. The engines do
not produce identical text (spacing and reading order differ), so callers
must not assume one method's output matches another's.
"""

import io
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .config import ExtractionConfig
from .errors import ExtractionError
from .logger import LoggerMixin


@dataclass
class ExtractionResult:
    """Text extracted from a document."""
    text: str
    page_count: int
    method: str

    @property
    def has_text(self) -> bool:
        return bool(self.text.strip())

    def to_dict(self) -> Dict[str, object]:
        return {
            "page_count": self.page_count,
            "method": self.method,
            "characters": len(self.text),
            "has_text": self.has_text,
        }


def available_methods() -> List[str]:
    """Extraction backends that can be imported in this environment."""
    methods = []
    try:
        import fitz  # noqa: F401
        methods.append("pymupdf")
    except ImportError:
        pass
    try:
        import pdfplumber  # noqa: F401
        methods.append("pdfplumber")
    except ImportError:
        pass
    return methods


class TextExtractor(LoggerMixin):
    """
    Extracts text with a primary method, falling back to a secondary one.

    A method that raises, or returns only whitespace, hands over to the
    next. An image-only document is reported as an empty result; only when
    every method raised is ExtractionError raised.
    """

    def __init__(self, config: Optional[ExtractionConfig] = None):
        self.config = config or ExtractionConfig()
        self._engines: Dict[str, Callable[[bytes], ExtractionResult]] = {
            "pymupdf": self._extract_pymupdf,
            "pdfplumber": self._extract_pdfplumber,
        }
        for method in self.methods:
            if method not in self._engines:
                raise ValueError(f"Unknown extraction method: {method}")

    @property
    def methods(self) -> List[str]:
        methods = [self.config.primary_method]
        fallback = self.config.fallback_method
        if fallback and fallback not in methods:
            methods.append(fallback)
        return methods

    def extract(self, pdf_bytes: bytes) -> ExtractionResult:
        """
        Extract the text of a PDF.

        Raises:
            ExtractionError: if every method failed
        """
        failures = []
        empty: Optional[ExtractionResult] = None

        for method in self.methods:
            try:
                result = self._engines[method](pdf_bytes)
            except ImportError as e:
                self.log_warning(f"Extraction method {method} unavailable: {e}")
                failures.append(f"{method}: {e}")
                continue
            except Exception as e:
                self.log_warning(f"Extraction method {method} failed: {e}")
                failures.append(f"{method}: {e}")
                continue

            if result.has_text:
                self.log_info(
                    f"Extracted {len(result.text)} characters from "
                    f"{result.page_count} pages with {method}"
                )
                return result

            self.log_info(f"Extraction method {method} found no text")
            empty = result

        if empty is not None:
            return ExtractionResult(text="", page_count=empty.page_count, method=empty.method)

        raise ExtractionError("All extraction methods failed: " + "; ".join(failures))

    def _extract_pymupdf(self, pdf_bytes: bytes) -> ExtractionResult:
        import fitz

        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            pages = [page.get_text("text") for page in doc]
        return ExtractionResult(text="\n".join(pages), page_count=len(pages), method="pymupdf")

    def _extract_pdfplumber(self, pdf_bytes: bytes) -> ExtractionResult:
        import pdfplumber

        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
        return ExtractionResult(text="\n".join(pages), page_count=len(pages), method="pdfplumber")
