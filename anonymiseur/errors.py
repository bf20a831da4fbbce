"""
Error taxonomy for anonymiseur.

Only resource-level failures are raised. "Nothing found" outcomes (no
entity, validator rejection, target not located) are plain results.
"""

from typing import Optional


class AnonymiseurError(Exception):
    """Base class for all fatal anonymiseur errors, carrying a stable code."""

    code = "ANONYMISEUR_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        return f"[{self.code}] {super().__str__()}"


class UnsupportedDocumentError(AnonymiseurError):
    """The document has no usable text layer, or its format is not handled."""

    code = "NO_TEXT_LAYER"


class ExtractionError(AnonymiseurError):
    """Every text-extraction method failed."""

    code = "EXTRACTION_FAILED"


class DocumentOpenError(AnonymiseurError):
    """The bytes could not be opened as a PDF for redaction."""

    code = "INVALID_DOCUMENT"


class VerificationError(AnonymiseurError):
    """AI verification failed. Never escapes the verifier."""

    code = "VERIFICATION_FAILED"
