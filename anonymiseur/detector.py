"""
Sensitive data detection over plain text.

The regex pattern library does the work; an optional spaCy model can add
person-name candidates. Overlaps are resolved first-accepted-wins in pattern
priority order, so the output is always sorted and non-overlapping.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from .config import (
    DetectedEntity,
    DetectionConfig,
    EntityType,
    ReplacementCounter,
    Span,
)
from .logger import LoggerMixin
from .patterns import PatternConfig, passes_heuristics, patterns_for


# (entity_type, value, confidence, span)
Candidate = Tuple[EntityType, str, float, Span]


class SpacyNameDetector(LoggerMixin):
    """spaCy-based person-name detector (optional)."""

    PERSON_LABELS = ("PER", "PERSON")

    def __init__(self, config: DetectionConfig):
        self.config = config
        self.nlp = None
        self._initialize_spacy()

    def _initialize_spacy(self) -> None:
        try:
            import spacy
        except ImportError:
            self.log_warning("spaCy not installed, name detection stays regex-only "
                             "(pip install anonymiseur[ner])")
            return

        try:
            self.nlp = spacy.load(
                self.config.spacy_model,
                exclude=["parser", "tagger", "lemmatizer", "textcat"]
            )
            self.log_info(f"Loaded spaCy model: {self.config.spacy_model}")
        except OSError as e:
            self.log_warning(f"Failed to load spaCy model {self.config.spacy_model}: {e}")
            self.nlp = None

    @property
    def available(self) -> bool:
        return self.nlp is not None

    def detect(self, text: str) -> List[Candidate]:
        """Person-name candidates, in text order."""
        if self.nlp is None:
            return []

        candidates = []
        for ent in self.nlp(text).ents:
            if ent.label_ in self.PERSON_LABELS:
                candidates.append((
                    EntityType.NAME,
                    ent.text,
                    self.config.spacy_confidence,
                    Span(ent.start_char, ent.end_char),
                ))
        return candidates


class EntityDetector(LoggerMixin):
    """
    Runs the pattern library over a text and assigns replacement tokens.

    The detector itself holds no per-run state; numbering lives in a
    ReplacementCounter allocated for each call (or supplied by the caller to
    continue an existing run).
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()
        self.spacy_detector = None
        if self.config.use_spacy:
            self.spacy_detector = SpacyNameDetector(self.config)
            if not self.spacy_detector.available:
                self.spacy_detector = None
        self.log_debug(f"Entity detector ready (spaCy: {self.spacy_detector is not None})")

    def _active_patterns(self, types: Sequence[EntityType]) -> List[PatternConfig]:
        threshold = self.config.confidence_threshold
        return [p for p in patterns_for(types) if p.confidence >= threshold]

    def _candidates(self, text: str, types: Sequence[EntityType]) -> Iterable[Tuple[Candidate, Optional[PatternConfig]]]:
        for config in self._active_patterns(types):
            for match in config.pattern.finditer(text):
                span = Span(match.start(), match.end())
                yield (config.entity_type, match.group(), config.confidence, span), config

        if self.spacy_detector is not None and EntityType.NAME in types:
            for candidate in self.spacy_detector.detect(text):
                if candidate[2] >= self.config.confidence_threshold:
                    yield candidate, None

    def detect(
        self,
        text: str,
        types: Optional[Iterable[EntityType]] = None,
        counter: Optional[ReplacementCounter] = None,
    ) -> List[DetectedEntity]:
        """
        Detect sensitive data in text.

        Args:
            text: Source text
            types: Restrict detection to these types; None means the
                configured enabled types. An empty collection returns [].
            counter: Replacement numbering to continue; a fresh one is used
                when omitted

        Returns:
            Non-overlapping entities sorted by start offset
        """
        selected = list(self.config.enabled_types if types is None else types)
        if not selected or not text:
            return []

        counter = counter if counter is not None else ReplacementCounter()
        accepted: List[Tuple[Candidate, str]] = []

        for candidate, pattern in self._candidates(text, selected):
            entity_type, value, _, span = candidate
            if any(span.overlaps(used[0][3]) for used in accepted):
                continue
            # A rejected candidate leaves its span open for later patterns
            if pattern is not None and not pattern.accepts(value):
                continue
            if not passes_heuristics(entity_type, value):
                continue
            accepted.append((candidate, "regex" if pattern is not None else "spacy"))

        # Tokens are numbered in reading order
        accepted.sort(key=lambda item: item[0][3].start)
        entities = []
        for (entity_type, value, confidence, span), source in accepted:
            entities.append(DetectedEntity(
                id=f"{entity_type.value}-{span.start}-{span.end}",
                entity_type=entity_type,
                value=value,
                replacement=counter.next_token(entity_type),
                position=span,
                confidence=confidence,
                source=source,
            ))

        self.log_info(f"Detected {len(entities)} sensitive entities")
        return entities


def detect_sensitive_data(
    text: str,
    types: Optional[Iterable[EntityType]] = None,
) -> List[DetectedEntity]:
    """Regex-only detection with default settings."""
    return EntityDetector().detect(text, types)


def anonymize_text(text: str, entities: Sequence[DetectedEntity]) -> str:
    """Replace each entity span by its replacement token."""
    result = text
    # Right to left so earlier offsets stay valid
    for entity in sorted(entities, key=lambda e: e.start, reverse=True):
        result = result[:entity.start] + entity.replacement + result[entity.end:]
    return result


def merge_entities(
    auto_detected: Sequence[DetectedEntity],
    user_terms: Iterable[str],
) -> List[DetectedEntity]:
    """
    Drop auto-detected entities that contain, or are contained in, an
    operator term (case-insensitive). Operator terms take priority.
    """
    terms = [t.strip().lower() for t in user_terms if t and t.strip()]
    merged = []
    for entity in auto_detected:
        value = entity.value.lower()
        if any(term in value or value in term for term in terms):
            continue
        merged.append(entity)
    return merged
