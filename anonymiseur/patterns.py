"""
Pattern library for French and standard sensitive data.

Patterns are tried in the order of PATTERNS; a more specific pattern must be
listed before a more general one that could claim part of the same span
(IBAN before TVA, RCS before SIREN, SIRET before SIREN, ...).
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

from .config import EntityType
from .validators import (
    validate_french_iban,
    validate_nir,
    validate_siren,
    validate_siret,
)


# Latin-1 letter classes for French names
_UPPER = "A-ZÀ-ÖØ-Þ"
_LOWER = "a-zß-öø-ÿ"

_MONTHS = (
    "janvier|février|fevrier|mars|avril|mai|juin|juillet|août|aout|"
    "septembre|octobre|novembre|décembre|decembre"
)


@dataclass(frozen=True)
class PatternConfig:
    """A typed matcher: compiled regex, confidence and optional validator."""
    entity_type: EntityType
    pattern: re.Pattern
    label: str
    confidence: float
    validate: Optional[Callable[[str], bool]] = None

    @property
    def case_sensitive(self) -> bool:
        return not self.pattern.flags & re.IGNORECASE

    def accepts(self, value: str) -> bool:
        """Run the validator, if any."""
        return self.validate is None or self.validate(value)


def _pattern(
    regex: str,
    entity_type: EntityType,
    label: str,
    confidence: float,
    validate: Optional[Callable[[str], bool]] = None,
    case_sensitive: bool = False,
) -> PatternConfig:
    flags = 0 if case_sensitive else re.IGNORECASE
    return PatternConfig(
        entity_type=entity_type,
        pattern=re.compile(regex, flags),
        label=label,
        confidence=confidence,
        validate=validate,
    )


PATTERNS: Tuple[PatternConfig, ...] = (
    _pattern(
        r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b',
        EntityType.EMAIL, "Email", 0.95,
    ),
    # IBANs and TVA numbers contain digit runs that would otherwise be
    # claimed by SIREN / phone patterns
    _pattern(
        r'\bFR\d{2}\s?(?:[0-9A-Z]{4}\s?){5}[0-9A-Z]{3}\b',
        EntityType.IBAN, "IBAN", 0.95, validate=validate_french_iban,
    ),
    _pattern(
        r'\b[A-Z]{2}\d{2}\s?(?:[A-Z0-9]{4}\s?){3,7}[A-Z0-9]{1,4}\b',
        EntityType.IBAN, "IBAN", 0.85, case_sensitive=True,
    ),
    _pattern(
        r'\bFR\s?\d{2}\s?\d{3}\s?\d{3}\s?\d{3}\b',
        EntityType.TVA, "N° TVA", 0.9,
    ),
    _pattern(
        r'\b(?:RCS|R\.C\.S\.?)[ \t]*[A-ZÀ-Þ][A-Za-zÀ-ÿ \t\'-]{1,40}?[ \t]*'
        r'(?:[AB][ \t]*)?\d{3}[\s.]?\d{3}[\s.]?\d{3}\b',
        EntityType.RCS, "RCS", 0.9,
    ),
    _pattern(
        r'\b[12][\s.]?\d{2}[\s.]?\d{2}[\s.]?(?:\d{2}|2[AB])[\s.]?\d{3}[\s.]?\d{3}[\s.]?\d{2}\b',
        EntityType.NIR, "NIR (Sécurité Sociale)", 0.95, validate=validate_nir,
    ),
    _pattern(
        r'\b\d{3}[\s.]?\d{3}[\s.]?\d{3}[\s.]?\d{5}\b',
        EntityType.SIRET, "SIRET", 0.85, validate=validate_siret,
    ),
    # Not followed by 5 more digits, which would make it a SIRET
    _pattern(
        r'\b\d{3}[\s.]?\d{3}[\s.]?\d{3}\b(?![\s.]?\d{5})',
        EntityType.SIREN, "SIREN", 0.8, validate=validate_siren,
    ),
    _pattern(
        r'\b[A-Z]{4}FR[A-Z0-9]{2}(?:[A-Z0-9]{3})?\b',
        EntityType.BIC, "BIC", 0.9, case_sensitive=True,
    ),
    _pattern(
        r'(?:\+33|0033|\(\+33\))\s*[1-9](?:[\s.-]*\d{2}){4}',
        EntityType.PHONE, "Téléphone (+33)", 0.95,
    ),
    _pattern(
        r'\b0[1-9](?:[\s.-]*\d{2}){4}\b',
        EntityType.PHONE, "Téléphone (0X)", 0.9,
    ),
    _pattern(
        r'\b(?:0?[1-9]|[12]\d|3[01])[\s/.-](?:0?[1-9]|1[0-2])[\s/.-](?:19|20)\d{2}\b',
        EntityType.DATE, "Date", 0.85,
    ),
    _pattern(
        r'\b(?:1er|0?[1-9]|[12]\d|3[01])\s?(?:' + _MONTHS + r')\s?(?:19|20)\d{2}\b',
        EntityType.DATE, "Date", 0.9,
    ),
    _pattern(
        r'\b(?:(?:0[1-9]|[1-8]\d|9[0-5])\d{3}|97[1-6]\d{2})\b',
        EntityType.POSTAL_CODE, "Code Postal", 0.6,
    ),
    _pattern(
        r'(?<!\w)(?:Monsieur|Madame|Mademoiselle|Mme|Mlle|Mr|Me|Dr|Pr|M\.)\.?[ \t]+'
        r'[' + _UPPER + r'][' + _LOWER + _UPPER + r'\'-]+'
        r'(?:[ \t]+[' + _UPPER + r'][' + _LOWER + _UPPER + r'\'-]+)*',
        EntityType.NAME, "Nom (civilité)", 0.8, case_sensitive=True,
    ),
    _pattern(
        r'\b[' + _UPPER + r'][' + _LOWER + r']+(?:-[' + _UPPER + r'][' + _LOWER + r']+)?'
        r'[ \t]+[' + _UPPER + r']{2,}(?:-[' + _UPPER + r']{2,})?\b',
        EntityType.NAME, "Prénom NOM", 0.7, case_sensitive=True,
    ),
)


def patterns_for(types: Optional[Iterable[EntityType]] = None) -> List[PatternConfig]:
    """Patterns restricted to the given types, in priority order."""
    if types is None:
        return list(PATTERNS)
    wanted = set(types)
    return [p for p in PATTERNS if p.entity_type in wanted]


def passes_heuristics(entity_type: EntityType, value: str) -> bool:
    """Per-type false-positive filters applied after validation."""
    if entity_type is EntityType.POSTAL_CODE:
        return len(value) >= 5
    if entity_type is EntityType.NAME:
        return len(value.strip()) > 5
    if entity_type is EntityType.PHONE:
        return sum(c.isdigit() for c in value) >= 10
    return True
