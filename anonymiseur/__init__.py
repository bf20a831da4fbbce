"""
Anonymiseur - de-identification of French business and legal documents.

This package provides tools for:
- Detecting French identifiers (SIRET, SIREN, NIR, IBAN, TVA...) with
  checksum validation
- Locating targets on PDF pages from their text layer
- Redacting by overlay, with an audit correspondence table
- Optional AI verification of the anonymised text
"""

__version__ = "0.1.0"
__author__ = "Anonymiseur Team"
__license__ = "MIT"

from .config import AnonymiseurConfig, EntityType, RedactionTarget
from .detector import EntityDetector, detect_sensitive_data
from .logger import get_logger
from .pipeline import AnonymizationPipeline, analyze_text

__all__ = [
    "AnonymiseurConfig",
    "EntityType",
    "RedactionTarget",
    "EntityDetector",
    "detect_sensitive_data",
    "AnonymizationPipeline",
    "analyze_text",
    "get_logger",
]
