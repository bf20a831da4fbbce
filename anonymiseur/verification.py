"""
Optional AI verification of an anonymised text.

A verifier reads the anonymised text (tokens such as [PERSONNE_1] in place
of the values already hidden) and proposes entities the patterns missed.
Verification is advisory: every failure degrades to "no findings,
confidence 0" and never stops the pipeline.
"""

import json
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .config import EntityType, VerificationConfig
from .errors import VerificationError
from .logger import LoggerMixin


SYSTEM_PROMPT = """Tu es un assistant spécialisé dans l'anonymisation de documents juridiques et commerciaux français. Vérifie qu'un document a été correctement anonymisé et repère toute donnée sensible oubliée.

Catégories à rechercher :
1. Noms de personnes (prénoms, noms, titres M., Mme, Me, Dr)
2. Noms d'entreprises (raisons sociales, SAS, SARL, SA, EURL...)
3. Adresses (rues, villes, codes postaux)
4. Identifiants (SIRET, SIREN, NIR, RCS, TVA)
5. Coordonnées (téléphones, emails)
6. Coordonnées bancaires (IBAN, BIC)
7. Dates permettant l'identification (dates de naissance...)

Les éléments déjà anonymisés apparaissent entre crochets, par exemple [PERSONNE_1] ou [TEL_2]. Ignore-les et concentre-toi sur le texte hors crochets.

Évite les faux positifs : pas de termes juridiques génériques, pas de dates sans contexte personnel, pas de nombres qui ne sont pas des identifiants.

Réponds UNIQUEMENT en JSON valide :
{
  "isComplete": boolean,
  "confidence": nombre entre 0.0 et 1.0,
  "missedEntities": [
    {
      "type": "name|company|address|phone|email|siret|siren|nir|iban|bic|tva|rcs|date|other",
      "value": "texte trouvé, tel qu'il apparaît",
      "suggestion": "[TYPE_X]",
      "context": "phrase où le texte apparaît",
      "reason": "explication courte"
    }
  ],
  "suggestions": ["conseils généraux"]
}"""

TRUNCATION_MARKER = "\n\n[... texte tronqué ...]\n\n"

FALLBACK_ADVICE = "La vérification IA a échoué. Veuillez vérifier manuellement le document."

# Free-form types returned by the model
AI_TYPE_MAP: Dict[str, EntityType] = {
    "name": EntityType.NAME,
    "nom": EntityType.NAME,
    "personne": EntityType.NAME,
    "person": EntityType.NAME,
    "company": EntityType.SIREN,
    "entreprise": EntityType.SIREN,
    "societe": EntityType.SIREN,
    "société": EntityType.SIREN,
    "address": EntityType.CUSTOM,
    "adresse": EntityType.CUSTOM,
    "phone": EntityType.PHONE,
    "telephone": EntityType.PHONE,
    "téléphone": EntityType.PHONE,
    "email": EntityType.EMAIL,
    "siret": EntityType.SIRET,
    "siren": EntityType.SIREN,
    "nir": EntityType.NIR,
    "iban": EntityType.IBAN,
    "bic": EntityType.BIC,
    "tva": EntityType.TVA,
    "rcs": EntityType.RCS,
    "date": EntityType.DATE,
    "postal_code": EntityType.POSTAL_CODE,
    "other": EntityType.CUSTOM,
    "autre": EntityType.CUSTOM,
}

_TOKEN = re.compile(r'\[([A-Z_]+)_\d+\]')


def suggestion_for(entity_type: EntityType) -> str:
    """Placeholder token proposed when the model gave none."""
    return f"[{entity_type.prefix}_X]"


def describe_replacement(replacement: str) -> str:
    """French label of the type encoded in a replacement token."""
    match = _TOKEN.fullmatch(replacement)
    if not match:
        return "inconnu"
    for entity_type in EntityType:
        if entity_type.prefix == match.group(1):
            return entity_type.label.lower()
    return "inconnu"


def truncate_text(text: str, max_chars: int) -> str:
    """Keep the head and tail halves of an over-long text."""
    if len(text) <= max_chars:
        return text
    half = max_chars // 2
    return text[:half] + TRUNCATION_MARKER + text[len(text) - half:]


@dataclass
class MissedEntity:
    """An entity the verifier believes was left in clear text."""
    entity_type: EntityType
    value: str
    suggestion: str
    context: str = ""
    reason: str = ""

    @classmethod
    def from_response(cls, data: Mapping[str, Any]) -> "MissedEntity":
        raw_type = str(data.get("type") or "custom").strip().lower()
        entity_type = AI_TYPE_MAP.get(raw_type, EntityType.CUSTOM)
        return cls(
            entity_type=entity_type,
            value=str(data.get("value") or ""),
            suggestion=str(data.get("suggestion") or suggestion_for(entity_type)),
            context=str(data.get("context") or ""),
            reason=str(data.get("reason") or ""),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "type": self.entity_type.value,
            "value": self.value,
            "suggestion": self.suggestion,
            "context": self.context,
            "reason": self.reason,
        }


@dataclass
class VerificationResult:
    """Outcome of one verification call."""
    is_complete: bool
    confidence: float
    missed: List[MissedEntity] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    available: bool = True
    error: Optional[str] = None

    @classmethod
    def unavailable(cls, error: Optional[str] = None) -> "VerificationResult":
        """Safe default when verification could not run."""
        return cls(
            is_complete=True,
            confidence=0.0,
            missed=[],
            suggestions=[FALLBACK_ADVICE],
            available=False,
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isComplete": self.is_complete,
            "confidence": self.confidence,
            "missedEntities": [m.to_dict() for m in self.missed],
            "suggestions": list(self.suggestions),
            "available": self.available,
        }


class BaseVerifier(ABC, LoggerMixin):
    """Interface of an AI verification collaborator."""

    @abstractmethod
    def verify(
        self,
        anonymized_text: str,
        correspondence: Optional[Mapping[str, str]] = None,
    ) -> VerificationResult:
        """
        Look for sensitive data left in an anonymised text.

        Args:
            anonymized_text: Text with known values already replaced
            correspondence: original -> replacement pairs hidden so far

        Returns:
            VerificationResult; never raises
        """
        pass

    @classmethod
    @abstractmethod
    def get_verifier_name(cls) -> str:
        pass


class NullVerifier(BaseVerifier):
    """Verifier used when AI verification is disabled."""

    def verify(self, anonymized_text, correspondence=None):
        return VerificationResult(is_complete=True, confidence=0.0, available=False)

    @classmethod
    def get_verifier_name(cls) -> str:
        return "none"


class OpenAIVerifier(BaseVerifier):
    """Verifier backed by an OpenAI chat completion in JSON mode."""

    def __init__(self, config: Optional[VerificationConfig] = None, client=None):
        self.config = config or VerificationConfig()
        self._client = client

    @property
    def client(self):
        if self._client is None:
            from openai import OpenAI

            api_key = self.config.api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise VerificationError(
                    "OpenAI API key required. Set OPENAI_API_KEY env var or pass api_key."
                )
            self._client = OpenAI(
                api_key=api_key,
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                max_retries=self.config.max_retries,
            )
        return self._client

    @classmethod
    def get_verifier_name(cls) -> str:
        return "openai"

    def build_user_message(
        self,
        anonymized_text: str,
        correspondence: Optional[Mapping[str, str]] = None,
    ) -> str:
        message = (
            "Analyse ce document anonymisé et identifie toute donnée sensible "
            "qui aurait pu être oubliée :\n\n---\n"
            f"{truncate_text(anonymized_text, self.config.max_chars)}\n---\n"
        )
        if correspondence:
            message += "\nÉléments déjà anonymisés :\n"
            for replacement in correspondence.values():
                message += f"- {replacement} (type : {describe_replacement(replacement)})\n"
        return message

    def _request(self, user_message: str) -> Dict[str, Any]:
        response = self.client.chat.completions.create(
            model=self.config.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_message},
            ],
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            response_format={"type": "json_object"},
        )
        if not response.choices:
            raise VerificationError("Empty response from AI")
        content = response.choices[0].message.content
        if not content:
            raise VerificationError("Empty response from AI")
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise VerificationError(f"Invalid JSON from AI: {e}") from e
        if not isinstance(data, dict):
            raise VerificationError("AI response is not a JSON object")
        return data

    @staticmethod
    def _parse(data: Mapping[str, Any]) -> VerificationResult:
        try:
            confidence = float(data.get("confidence", 0.5))
        except (TypeError, ValueError):
            confidence = 0.5
        items = data.get("missedEntities") or []
        suggestions = data.get("suggestions") or []
        if not isinstance(items, list) or not isinstance(suggestions, list):
            raise VerificationError("Malformed AI response: expected lists")
        missed = [
            MissedEntity.from_response(item)
            for item in items
            if isinstance(item, Mapping)
        ]
        return VerificationResult(
            is_complete=bool(data.get("isComplete", True)),
            confidence=max(0.0, min(1.0, confidence)),
            missed=missed,
            suggestions=[str(s) for s in suggestions],
        )

    def verify(self, anonymized_text, correspondence=None):
        try:
            data = self._request(self.build_user_message(anonymized_text, correspondence))
            result = self._parse(data)
        except Exception as e:
            # Network, auth, timeout or response shape: all non-fatal
            self.log_warning(f"AI verification failed: {e}")
            return VerificationResult.unavailable(str(e))

        self.log_info(
            f"AI verification: {len(result.missed)} missed entities "
            f"(confidence {result.confidence:.2f})"
        )
        return result


def create_verifier(config: VerificationConfig) -> BaseVerifier:
    """Verifier for a configuration: OpenAI when enabled, otherwise none."""
    if config.enabled:
        return OpenAIVerifier(config)
    return NullVerifier()

