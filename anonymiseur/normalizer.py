"""
Text normalisation for matching redaction targets against PDF text.

normalize_text is a strict one-for-one character substitution: the output
always has the same length as the input, so offsets found in normalised text
are valid offsets into the original text.
"""

import re
from typing import Dict, Optional


def _chars(*codepoints) -> str:
    return "".join(chr(c) for c in codepoints)


_SPACES = _chars(
    0x00A0, 0x1680, *range(0x2000, 0x200B), 0x202F, 0x205F, 0x3000,
    0x200B, 0x200C, 0x200D, 0xFEFF,  # zero-width
    0x09, 0x0B, 0x0C,
)
_DASHES = _chars(*range(0x2010, 0x2016), 0x2212, 0x00AD)
_QUOTES = _chars(0x2018, 0x2019, 0x201A, 0x201B, 0x2032, 0x2035)


def _build_table() -> Dict[int, str]:
    table = {}
    table.update({ord(c): " " for c in _SPACES})
    table.update({ord(c): "-" for c in _DASHES})
    table.update({ord(c): "'" for c in _QUOTES})
    table[ord("\r")] = "\n"
    return table


_TRANSLATION = _build_table()

# Whitespace and hyphens are interchangeable between words of a target
FLEXIBLE_SEPARATOR = r'[\s\-]+'


def normalize_text(text: str) -> str:
    """Map whitespace, dash and quote variants to their ASCII form."""
    return text.translate(_TRANSLATION)


def build_flexible_pattern(term: str, case_sensitive: bool = False) -> Optional[re.Pattern]:
    """
    Compile a pattern matching term literally, except that each whitespace
    run matches any run of whitespace or hyphens.

    Returns None when the term is empty after normalisation.
    """
    words = normalize_text(term).split()
    if not words:
        return None
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile(FLEXIBLE_SEPARATOR.join(re.escape(w) for w in words), flags)


def normalized_key(term: str) -> str:
    """Comparison key for de-duplicating targets."""
    return " ".join(normalize_text(term).split()).lower()
