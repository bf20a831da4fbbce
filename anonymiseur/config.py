"""
Configuration management for the anonymiseur pipeline.

Defines the closed set of entity types, the records exchanged between the
engine stages, and the dataclass configuration tree.
"""

import json
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Dict, Any, Optional, Tuple
from pathlib import Path


class EntityType(Enum):
    """Types of sensitive data the engine knows about."""
    EMAIL = "email"
    PHONE = "phone"
    SIRET = "siret"
    SIREN = "siren"
    NIR = "nir"
    IBAN = "iban"
    BIC = "bic"
    RCS = "rcs"
    TVA = "tva"
    DATE = "date"
    POSTAL_CODE = "postal_code"
    NAME = "name"
    CUSTOM = "custom"

    @property
    def prefix(self) -> str:
        """Prefix used in replacement tokens, e.g. TEL in [TEL_1]."""
        return TYPE_PREFIXES[self]

    @property
    def label(self) -> str:
        """Human readable (French) label."""
        return TYPE_LABELS[self]


TYPE_PREFIXES: Dict[EntityType, str] = {
    EntityType.EMAIL: "EMAIL",
    EntityType.PHONE: "TEL",
    EntityType.SIRET: "SIRET",
    EntityType.SIREN: "SIREN",
    EntityType.NIR: "NIR",
    EntityType.IBAN: "IBAN",
    EntityType.BIC: "BIC",
    EntityType.RCS: "RCS",
    EntityType.TVA: "TVA",
    EntityType.DATE: "DATE",
    EntityType.POSTAL_CODE: "CP",
    EntityType.NAME: "PERSONNE",
    EntityType.CUSTOM: "ELEMENT",
}

TYPE_LABELS: Dict[EntityType, str] = {
    EntityType.EMAIL: "Email",
    EntityType.PHONE: "Téléphone",
    EntityType.SIRET: "SIRET",
    EntityType.SIREN: "SIREN",
    EntityType.NIR: "N° Sécurité Sociale",
    EntityType.IBAN: "IBAN",
    EntityType.BIC: "BIC",
    EntityType.RCS: "RCS",
    EntityType.TVA: "N° TVA",
    EntityType.DATE: "Date",
    EntityType.POSTAL_CODE: "Code Postal",
    EntityType.NAME: "Nom",
    EntityType.CUSTOM: "Autre",
}

TYPE_DESCRIPTIONS: Dict[EntityType, str] = {
    EntityType.EMAIL: "Adresses email",
    EntityType.PHONE: "Numéros de téléphone français",
    EntityType.SIRET: "Numéros SIRET (14 chiffres)",
    EntityType.SIREN: "Numéros SIREN (9 chiffres)",
    EntityType.NIR: "Numéros de Sécurité Sociale",
    EntityType.IBAN: "Numéros de compte bancaire",
    EntityType.BIC: "Codes BIC/SWIFT",
    EntityType.RCS: "Numéros RCS",
    EntityType.TVA: "Numéros TVA intracommunautaire",
    EntityType.DATE: "Dates (naissance, etc.)",
    EntityType.POSTAL_CODE: "Codes postaux français",
    EntityType.NAME: "Prénoms et noms de famille",
    EntityType.CUSTOM: "Termes saisis par l'opérateur",
}


def available_entity_types() -> List[Dict[str, str]]:
    """Catalogue of entity types with their labels, for UIs and the CLI."""
    return [
        {
            "type": entity_type.value,
            "label": entity_type.label,
            "description": TYPE_DESCRIPTIONS[entity_type],
        }
        for entity_type in EntityType
    ]


class ReplacementCounter:
    """
    Per-run replacement numbering.

    One instance belongs to one processing run; never share it between
    documents.
    """

    def __init__(self):
        self._counts: Dict[EntityType, int] = {}

    def next_token(self, entity_type: EntityType) -> str:
        """Advance the counter for entity_type and return its token."""
        count = self._counts.get(entity_type, 0) + 1
        self._counts[entity_type] = count
        return f"[{entity_type.prefix}_{count}]"

    def count(self, entity_type: EntityType) -> int:
        return self._counts.get(entity_type, 0)

    def snapshot(self) -> Dict[str, int]:
        return {t.value: n for t, n in self._counts.items()}


@dataclass(frozen=True)
class Span:
    """Character offsets [start, end) into a source text."""
    start: int
    end: int

    def overlaps(self, other: "Span") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass
class DetectedEntity:
    """A validated match of the pattern library in a source text."""
    id: str
    entity_type: EntityType
    value: str
    replacement: str
    position: Span
    confidence: float
    source: str = "regex"  # "regex" or "spacy"

    @property
    def start(self) -> int:
        return self.position.start

    @property
    def end(self) -> int:
        return self.position.end

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": self.entity_type.value,
            "value": self.value,
            "replacement": self.replacement,
            "position": {"start": self.start, "end": self.end},
            "confidence": self.confidence,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectedEntity":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            entity_type=EntityType(data["type"]),
            value=data["value"],
            replacement=data["replacement"],
            position=Span(data["position"]["start"], data["position"]["end"]),
            confidence=data["confidence"],
            source=data.get("source", "regex"),
        )


@dataclass
class RedactionTarget:
    """A literal string to hide, with the label drawn in its place."""
    original: str
    replacement: str
    entity_type: Optional[EntityType] = None
    source: str = "manual"  # "manual", "detected" or "ai"

    @classmethod
    def from_entity(cls, entity: DetectedEntity) -> "RedactionTarget":
        return cls(
            original=entity.value,
            replacement=entity.replacement,
            entity_type=entity.entity_type,
            source="detected",
        )


@dataclass
class CorrespondenceEntry:
    """One row of the audit correspondence table."""
    original: str
    replacement: str
    entity_type: Optional[EntityType] = None
    source: str = "manual"
    located: bool = False
    occurrences: int = 0
    pages: List[int] = field(default_factory=list)  # 1-based

    @classmethod
    def from_target(cls, target: RedactionTarget) -> "CorrespondenceEntry":
        return cls(
            original=target.original,
            replacement=target.replacement,
            entity_type=target.entity_type,
            source=target.source,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original": self.original,
            "replacement": self.replacement,
            "type": self.entity_type.value if self.entity_type else None,
            "source": self.source,
            "located": self.located,
            "occurrences": self.occurrences,
            "pages": list(self.pages),
        }


@dataclass
class DetectionConfig:
    """Configuration for sensitive data detection."""
    enabled_types: List[EntityType] = field(
        default_factory=lambda: [t for t in EntityType if t is not EntityType.CUSTOM]
    )
    confidence_threshold: float = 0.0
    use_spacy: bool = False  # Optional NER for names
    spacy_model: str = "fr_core_news_sm"
    spacy_confidence: float = 0.75


@dataclass
class ExtractionConfig:
    """Configuration for the text extraction collaborator."""
    primary_method: str = "pymupdf"  # "pymupdf" or "pdfplumber"
    fallback_method: Optional[str] = "pdfplumber"


@dataclass
class LocatorConfig:
    """Configuration for mapping matches onto page geometry."""
    min_char_width: float = 2.5  # Floor, in points per target character
    max_workers: int = 4
    case_sensitive: bool = False
    gap_ratio: float = 0.15  # Inter-span gap (x font size) that counts as a space


@dataclass
class RedactionConfig:
    """Configuration for drawing occlusions and the audit page."""
    padding: float = 2.0
    occlusion_color: Tuple[float, float, float] = (1.0, 1.0, 1.0)  # White
    label_color: Tuple[float, float, float] = (0.8, 0.0, 0.0)  # Dark red
    label_font_cap: float = 12.0
    min_label_font: float = 4.0
    fontname: str = "helv"
    bold_fontname: str = "hebo"
    include_audit_page: bool = True
    audit_page_position: str = "first"  # "first" or "last"


@dataclass
class VerificationConfig:
    """Configuration for the optional AI verification collaborator."""
    enabled: bool = False
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None  # Falls back to $OPENAI_API_KEY
    base_url: Optional[str] = None
    timeout: float = 30.0
    max_retries: int = 0
    max_chars: int = 12000
    temperature: float = 0.1
    max_tokens: int = 2000


@dataclass
class AnonymiseurConfig:
    """Main configuration class for the anonymiseur pipeline."""
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    locator: LocatorConfig = field(default_factory=LocatorConfig)
    redaction: RedactionConfig = field(default_factory=RedactionConfig)
    verification: VerificationConfig = field(default_factory=VerificationConfig)

    # General settings
    output_dir: Path = field(default_factory=lambda: Path.cwd() / "output")
    # None: $ANONYMISEUR_LOG_LEVEL, then INFO
    log_level: Optional[str] = None
    save_metadata: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary (API key omitted)."""
        data = asdict(self)
        data["detection"]["enabled_types"] = [t.value for t in self.detection.enabled_types]
        data["output_dir"] = str(self.output_dir)
        data["verification"].pop("api_key", None)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnonymiseurConfig":
        """
        Build a configuration from a (possibly partial) dictionary.

        Unknown keys raise TypeError, so typos in config files surface early.
        """
        detection = dict(data.get("detection", {}))
        if "enabled_types" in detection:
            detection["enabled_types"] = [EntityType(t) for t in detection["enabled_types"]]

        redaction = dict(data.get("redaction", {}))
        for key in ("occlusion_color", "label_color"):
            if key in redaction:
                redaction[key] = tuple(redaction[key])

        config = cls(
            detection=DetectionConfig(**detection),
            extraction=ExtractionConfig(**data.get("extraction", {})),
            locator=LocatorConfig(**data.get("locator", {})),
            redaction=RedactionConfig(**redaction),
            verification=VerificationConfig(**data.get("verification", {})),
        )
        if "output_dir" in data:
            config.output_dir = Path(data["output_dir"])
        if "log_level" in data:
            config.log_level = data["log_level"]
        if "save_metadata" in data:
            config.save_metadata = bool(data["save_metadata"])
        return config


def load_config(config_path: Optional[Path] = None) -> AnonymiseurConfig:
    """Load configuration from a JSON file, or return defaults."""
    if config_path is None:
        return AnonymiseurConfig()

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        return AnonymiseurConfig.from_dict(json.load(f))
