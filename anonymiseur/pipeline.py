"""
End-to-end anonymisation pipeline.

extraction -> detection -> optional AI verification -> locating -> redaction,
for one document per call. All numbering and bookkeeping state is created
inside plan() and process(), so one pipeline instance can serve concurrent
callers.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .config import (
    AnonymiseurConfig,
    CorrespondenceEntry,
    DetectedEntity,
    EntityType,
    RedactionTarget,
    ReplacementCounter,
)
from .detector import EntityDetector, anonymize_text, merge_entities
from .errors import UnsupportedDocumentError
from .extraction import ExtractionResult, TextExtractor
from .locator import PositionLocator, TextPosition
from .logger import LoggerMixin
from .normalizer import build_flexible_pattern, normalize_text, normalized_key
from .pdf_utils import TextLayerReader, open_pdf
from .redactor import Redactor
from .verification import (
    BaseVerifier,
    NullVerifier,
    OpenAIVerifier,
    VerificationResult,
    create_verifier,
)


def build_term_targets(
    terms: Iterable[str],
    counter: Optional[ReplacementCounter] = None,
    split_words: bool = True,
) -> List[RedactionTarget]:
    """
    Turn operator terms into custom redaction targets.

    "Jean Dupont" yields targets for "Jean Dupont", "Jean" and "Dupont", so
    the parts are hidden wherever they appear alone. Words shorter than two
    characters are ignored. The result is sorted longest first.
    """
    counter = counter if counter is not None else ReplacementCounter()
    targets: List[RedactionTarget] = []
    seen = set()

    def add(original: str) -> None:
        key = normalized_key(original)
        if not key or key in seen:
            return
        seen.add(key)
        targets.append(RedactionTarget(
            original=original,
            replacement=counter.next_token(EntityType.CUSTOM),
            entity_type=EntityType.CUSTOM,
            source="manual",
        ))

    for term in terms:
        trimmed = (term or "").strip()
        if not trimmed:
            continue
        add(trimmed)
        words = [w for w in trimmed.split() if len(w) >= 2]
        if split_words and len(words) > 1:
            for word in words:
                add(word)

    targets.sort(key=lambda t: len(t.original), reverse=True)
    return targets


def count_occurrences(text: str, original: str, case_sensitive: bool = False) -> int:
    """Occurrences of a target in a text, with flexible whitespace."""
    pattern = build_flexible_pattern(original, case_sensitive)
    if pattern is None:
        return 0
    return sum(1 for _ in pattern.finditer(normalize_text(text)))


def preview_terms(text: str, terms: Iterable[str], split_words: bool = True) -> List[Dict[str, Any]]:
    """How many times each generated target occurs in text, before redacting."""
    return [
        {
            "original": target.original,
            "replacement": target.replacement,
            "count": count_occurrences(text, target.original),
        }
        for target in build_term_targets(terms, split_words=split_words)
    ]


def mask_targets(text: str, targets: Sequence[RedactionTarget]) -> str:
    """Replace every occurrence of each target by its token, longest first."""
    result = normalize_text(text)
    for target in sorted(targets, key=lambda t: len(t.original), reverse=True):
        pattern = build_flexible_pattern(target.original)
        if pattern is not None:
            result = pattern.sub(lambda _: target.replacement, result)
    return result


@dataclass
class TextAnalysis:
    """Detection over a plain text."""
    text: str
    entities: List[DetectedEntity]
    anonymized_text: str

    @property
    def counts_by_type(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for entity in self.entities:
            counts[entity.entity_type.value] = counts.get(entity.entity_type.value, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entities": [e.to_dict() for e in self.entities],
            "anonymized_text": self.anonymized_text,
            "counts_by_type": self.counts_by_type,
            "total": len(self.entities),
        }


def analyze_text(
    text: str,
    types: Optional[Iterable[EntityType]] = None,
    detector: Optional[EntityDetector] = None,
) -> TextAnalysis:
    """Detect entities in a plain string and build its anonymised preview."""
    detector = detector or EntityDetector()
    entities = detector.detect(text, types)
    return TextAnalysis(text=text, entities=entities, anonymized_text=anonymize_text(text, entities))


@dataclass
class TargetPlan:
    """Every target of one run, grouped by origin, in priority order."""
    manual: List[RedactionTarget] = field(default_factory=list)
    terms: List[RedactionTarget] = field(default_factory=list)
    entities: List[DetectedEntity] = field(default_factory=list)
    ai: List[RedactionTarget] = field(default_factory=list)
    verification: Optional[VerificationResult] = None

    @property
    def detected(self) -> List[RedactionTarget]:
        return [RedactionTarget.from_entity(e) for e in self.entities]

    @property
    def targets(self) -> List[RedactionTarget]:
        """De-duplicated on the normalised, case-folded original; first wins."""
        unique, seen = [], set()
        for target in self.manual + self.terms + self.detected + self.ai:
            key = normalized_key(target.original)
            if key and key not in seen:
                seen.add(key)
                unique.append(target)
        return unique

    @property
    def counts(self) -> Dict[str, int]:
        return {
            "manual": len(self.manual) + len(self.terms),
            "auto": len(self.entities),
            "ai": len(self.ai),
        }


@dataclass
class PipelineResult:
    """Redacted document plus the audit correspondence table."""
    pdf_bytes: bytes
    correspondence: List[CorrespondenceEntry]
    entities: List[DetectedEntity]
    extraction: ExtractionResult
    verification: Optional[VerificationResult] = None
    positions: List[TextPosition] = field(default_factory=list)
    statistics: Dict[str, Any] = field(default_factory=dict)
    processing_time_ms: float = 0.0

    @property
    def unlocated(self) -> List[CorrespondenceEntry]:
        """Targets that produced no position and need operator attention."""
        return [entry for entry in self.correspondence if not entry.located]

    @property
    def is_complete(self) -> bool:
        return not self.unlocated

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly summary (redacted bytes excluded)."""
        return {
            "correspondence": [entry.to_dict() for entry in self.correspondence],
            "unlocated": [entry.original for entry in self.unlocated],
            "entities": [entity.to_dict() for entity in self.entities],
            "extraction": self.extraction.to_dict(),
            "verification": self.verification.to_dict() if self.verification else None,
            "statistics": self.statistics,
            "processing_time_ms": round(self.processing_time_ms, 1),
        }


class AnonymizationPipeline(LoggerMixin):
    """
    Sequences the engine stages for one document per call.

    Args:
        config: Pipeline configuration
        extractor: Text extraction collaborator (defaults to TextExtractor)
        verifier: AI verification collaborator (defaults from config)
    """

    def __init__(
        self,
        config: Optional[AnonymiseurConfig] = None,
        extractor: Optional[TextExtractor] = None,
        verifier: Optional[BaseVerifier] = None,
    ):
        self.config = config or AnonymiseurConfig()
        self.extractor = extractor or TextExtractor(self.config.extraction)
        self.verifier = verifier or create_verifier(self.config.verification)
        self.detector = EntityDetector(self.config.detection)
        self.reader = TextLayerReader(gap_ratio=self.config.locator.gap_ratio)
        self.locator = PositionLocator(self.config.locator)
        self.redactor = Redactor(self.config.redaction)

    def _verifier_for(self, verify: Optional[bool]) -> Optional[BaseVerifier]:
        enabled = self.config.verification.enabled if verify is None else verify
        if not enabled:
            return None
        if isinstance(self.verifier, NullVerifier):
            return OpenAIVerifier(self.config.verification)
        return self.verifier

    def _ai_targets(
        self,
        text: str,
        verification: VerificationResult,
        counter: ReplacementCounter,
        tokens: Dict[str, str],
    ) -> List[RedactionTarget]:
        targets = []
        for missed in verification.missed:
            value = missed.value.strip()
            if len(value) < 2 or count_occurrences(text, value) == 0:
                self.log_debug(f"AI finding not present in text, ignored: {value!r}")
                continue
            key = normalized_key(value)
            if key in tokens:
                continue
            tokens[key] = counter.next_token(missed.entity_type)
            targets.append(RedactionTarget(
                original=value,
                replacement=tokens[key],
                entity_type=missed.entity_type,
                source="ai",
            ))
        return targets

    def plan(
        self,
        text: str,
        terms: Iterable[str] = (),
        targets: Iterable[RedactionTarget] = (),
        types: Optional[Iterable[EntityType]] = None,
        verify: Optional[bool] = None,
        split_terms: bool = True,
    ) -> TargetPlan:
        """
        Collect the redaction targets of one run over an extracted text.

        Operator targets and terms come first; detected entities overlapping
        an operator value are dropped; AI findings are kept only when their
        value occurs in the text. Numbering uses one counter for the run.
        """
        terms = [t.strip() for t in terms if t and t.strip()]
        counter = ReplacementCounter()
        plan = TargetPlan(
            manual=[t for t in targets if t.original and t.original.strip()],
            terms=build_term_targets(terms, counter, split_words=split_terms),
        )
        # Whole operator values, not their split words
        operator_values = [t.original for t in plan.manual] + terms

        plan.entities = merge_entities(self.detector.detect(text, types), operator_values)
        # Renumber in this run's sequence, after operator priority was applied.
        # One token per distinct value; repeated occurrences share it.
        tokens: Dict[str, str] = {}
        for target in plan.manual + plan.terms:
            tokens.setdefault(normalized_key(target.original), target.replacement)
        for entity in plan.entities:
            key = normalized_key(entity.value)
            if key not in tokens:
                tokens[key] = counter.next_token(entity.entity_type)
            entity.replacement = tokens[key]

        verifier = self._verifier_for(verify)
        if verifier is not None:
            known = plan.manual + plan.terms + plan.detected
            plan.verification = verifier.verify(
                mask_targets(text, known),
                {t.original: t.replacement for t in known},
            )
            plan.ai = self._ai_targets(text, plan.verification, counter, tokens)

        self.log_info(
            f"{len(plan.targets)} targets ({plan.counts['manual']} manual, "
            f"{plan.counts['auto']} detected, {plan.counts['ai']} AI)"
        )
        for target in plan.targets:
            self.log_debug(f"Target {target.replacement}: {target.original!r}")
        return plan

    def _correspondence(
        self,
        targets: Sequence[RedactionTarget],
        positions: Sequence[TextPosition],
    ) -> List[CorrespondenceEntry]:
        matches: Dict[str, set] = {}
        for position in positions:
            matches.setdefault(position.original, set()).add((position.page_index, position.match_start))

        entries = []
        for target in targets:
            found = matches.get(target.original, set())
            entry = CorrespondenceEntry.from_target(target)
            entry.occurrences = len(found)
            entry.located = entry.occurrences > 0
            entry.pages = sorted({page + 1 for page, _ in found})
            entries.append(entry)
        return entries

    def process(
        self,
        pdf_bytes: bytes,
        terms: Iterable[str] = (),
        targets: Iterable[RedactionTarget] = (),
        types: Optional[Iterable[EntityType]] = None,
        verify: Optional[bool] = None,
        source_name: str = "document.pdf",
        split_terms: bool = True,
    ) -> PipelineResult:
        """
        Anonymise one PDF.

        Args:
            pdf_bytes: Input document
            terms: Operator terms, hidden as [ELEMENT_n]
            targets: Ready-made targets, hidden first and as given
            types: Entity types to detect; None for the configured ones
            verify: Force AI verification on or off; None follows the config
            source_name: File name shown on the audit page
            split_terms: Also hide each word of multi-word terms

        Returns:
            PipelineResult; targets never located are flagged, not dropped

        Raises:
            ExtractionError: every extraction method failed
            UnsupportedDocumentError: the document has no text layer
            DocumentOpenError: the bytes cannot be opened for redaction
        """
        started = time.perf_counter()

        extraction = self.extractor.extract(pdf_bytes)
        if not extraction.has_text:
            raise UnsupportedDocumentError(
                f"No extractable text in {source_name} ({extraction.page_count} pages); "
                "image-only documents are not supported"
            )
        text = extraction.text

        plan = self.plan(text, terms, targets, types, verify, split_terms)
        all_targets = plan.targets
        ordered = sorted(all_targets, key=lambda t: len(t.original), reverse=True)
        counts = plan.counts

        doc = open_pdf(pdf_bytes)
        try:
            pages = self.reader.read_document(doc)
            positions = [p for page in self.locator.locate(ordered, pages) for p in page]
            correspondence = self._correspondence(all_targets, positions)

            self.redactor.redact_document(doc, positions)
            audit_pages = 0
            if self.config.redaction.include_audit_page:
                audit_pages = self.redactor.insert_audit_pages(doc, correspondence, source_name, counts)
            output = doc.tobytes(garbage=3, deflate=True)
            page_count = doc.page_count - audit_pages
        finally:
            doc.close()

        unlocated = [e for e in correspondence if not e.located]
        if unlocated:
            self.log_warning(f"{len(unlocated)} targets not located in the document; manual review needed")

        statistics = {
            "targets": len(correspondence),
            "located": len(correspondence) - len(unlocated),
            "unlocated": len(unlocated),
            "pages": page_count,
            "audit_pages": audit_pages,
            "counts": counts,
            "redaction": self.redactor.get_redaction_statistics(positions),
        }

        elapsed_ms = (time.perf_counter() - started) * 1000
        self.log_info(f"Anonymised {source_name} in {elapsed_ms:.0f} ms")
        return PipelineResult(
            pdf_bytes=output,
            correspondence=correspondence,
            entities=plan.entities,
            extraction=extraction,
            verification=plan.verification,
            positions=positions,
            statistics=statistics,
            processing_time_ms=elapsed_ms,
        )
