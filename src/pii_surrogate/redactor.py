"""Redactor — the main API.

Usage:
    from pii_surrogate import HtmlDocument, RedactionSession, Redactor, RedactorConfig

    redactor = Redactor(RedactorConfig(enabled_types={"properNouns", "emails"}))
    session = RedactionSession(HtmlDocument(html))     # one per document

    result = redactor.protect(session)
    print(session.document.render())                   # fake but consistent values
    print(result.applied_count, result.skipped_count)

    redactor.restore(session)                          # byte-exact original

Each ``protect`` runs the whole pipeline once:
linearize → detect → build → refine → enabled filter → link → synthesize → apply.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Iterable

from .config import RedactorConfig
from .consistency import ConsistencyCache
from .document import PlainTextDocument, TextSurface
from .errors import FatalInitializationError
from .lexicon import Lexicon, default_lexicon
from .linearize import PageContext, TextLinearizer
from .mutation import MutationEngine, MutationSnapshot
from .patterns import PATTERN_TYPES, detect
from .propernouns import ProperNounScorer
from .resolver import EntityResolver
from .synthesizer import ValueSynthesizer
from .types import Candidate, Entity, EntitySummary, PiiType, ProtectionResult, TextSegment

logger = logging.getLogger(__name__)

# Attempts at a fresh value before accepting a collision with another entity's replacement.
_MAX_DRAWS = 8


@dataclass(slots=True)
class RedactionSession:
    """Everything one protected document owns between protect and restore."""
    document: TextSurface
    cache: ConsistencyCache = field(default_factory=ConsistencyCache)
    snapshot: MutationSnapshot = field(default_factory=MutationSnapshot)
    resolver: EntityResolver | None = None
    synthesizer: ValueSynthesizer | None = None
    active: bool = False
    last_result: ProtectionResult | None = None

    def reset(self) -> None:
        self.cache.clear()
        self.snapshot.clear()
        self.resolver = None
        self.synthesizer = None
        self.active = False

    def replacement_for(self, entity: Entity) -> str | None:
        return self.cache.get(entity.type, entity.original)


@dataclass(slots=True)
class RedactedText:
    """Result of redacting a plain string."""
    text: str
    result: ProtectionResult
    session: RedactionSession


class Redactor:
    """Reusable pipeline; all per-document state lives on a RedactionSession."""

    def __init__(self, config: RedactorConfig | None = None, lexicon: Lexicon | None = None) -> None:
        self.config = config or RedactorConfig()
        self.lexicon = lexicon if lexicon is not None else default_lexicon()

        missing = [t.value for t in PiiType if t not in self.config.type_priorities]
        if missing:
            raise FatalInitializationError(f"type priority table has no entry for {missing}")

        self.linearizer = TextLinearizer(self.config.skip_tags)
        self.scorer = ProperNounScorer(self.config, self.lexicon)
        # Fails fast when the replacement pools cannot be loaded.
        ValueSynthesizer(self.config)

        self.warnings = [f"{name} list unavailable; detection precision reduced"
                         for name in self.lexicon.gaps]
        for w in self.warnings:
            logger.warning(w)

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def _pattern_candidates(self, segment: TextSegment) -> list[Candidate]:
        out: list[Candidate] = []
        for pii_type in PATTERN_TYPES:
            threshold = self.config.threshold_for(pii_type)
            for m in detect(segment.text, pii_type,
                            lexicon=self.lexicon,
                            region=self.config.default_phone_region,
                            custom=self.config.compiled_patterns):
                out.append(Candidate(
                    type=pii_type,
                    text=m.value,
                    segment_id=segment.id,
                    start=m.start,
                    end=m.end,
                    confidence=m.confidence,
                    breakdown={"pattern": m.confidence},
                    threshold=threshold,
                    metadata=m.metadata,
                ))
        return out

    def detect(self, document: TextSurface) -> tuple[list[TextSegment], list[Candidate], PageContext]:
        """Linearize and run every detector.  Candidates are unfiltered."""
        segments, page = self.linearizer.linearize(document)
        candidates: list[Candidate] = []
        for segment in segments:
            candidates.extend(self._pattern_candidates(segment))
            candidates.extend(self.scorer.score_candidates(segment, page))
        logger.debug("%d candidates across %d segments", len(candidates), len(segments))
        return segments, candidates, page

    def explain(
        self,
        document: TextSurface | str,
        enabled_types: Iterable[PiiType | str] | None = None,
    ) -> list[Candidate]:
        """Every candidate, sub-threshold ones included, for visualization."""
        if isinstance(document, str):
            document = PlainTextDocument(document)
        _, candidates, _ = self.detect(document)
        if enabled_types is not None:
            enabled = {PiiType.parse(t) for t in enabled_types}
            candidates = [c for c in candidates if c.type in enabled]
        return sorted(candidates, key=lambda c: (c.segment_id, c.start, c.type.value))

    # ------------------------------------------------------------------
    # Protect / restore
    # ------------------------------------------------------------------

    def protect(
        self,
        session: RedactionSession,
        enabled_types: Iterable[PiiType | str] | None = None,
    ) -> ProtectionResult:
        """Detect, resolve and replace PII in the session's document."""
        if session.active:
            logger.warning("protect requested while the document is already protected; ignored")
            return ProtectionResult(status="already_protected")

        session.reset()
        types = (self.config.enabled_types if enabled_types is None
                 else frozenset(PiiType.parse(t) for t in enabled_types))

        segments, candidates, _ = self.detect(session.document)

        resolver = EntityResolver(self.config)
        resolver.build(candidates, segments)
        resolver.refine()
        session.resolver = resolver
        entities = resolver.get_enabled(types)

        synth = ValueSynthesizer(self.config)
        session.synthesizer = synth
        if self.config.redaction_mode == "random":
            session.cache.auto_link_related(entities)
        replacements = self._generate(session, entities)

        engine = MutationEngine(session.document, session.snapshot)
        report = engine.apply(entities, replacements)
        session.active = True

        result = ProtectionResult(
            status="protected",
            applied_count=report.applied,
            detected_count=sum(len(e.occurrences) for e in entities),
            skipped=report.skipped,
            entities=[
                EntitySummary(e.type, e.original, e.confidence, replacements.get(e.key))
                for e in entities
            ],
            warnings=list(self.warnings),
        )
        session.last_result = result
        logger.info("protected %d of %d occurrences (%d entities, %d skipped)",
                    result.applied_count, result.detected_count, len(entities),
                    result.skipped_count)
        return result

    def _generate(self, session: RedactionSession, entities: list[Entity]) -> dict:
        """One replacement per entity key.  Proper nouns go first so linked values derive from them."""
        cache, synth = session.cache, session.synthesizer
        propagate = self.config.redaction_mode == "random"
        used = set()

        ordered = sorted(entities, key=lambda e: (e.type is not PiiType.PROPER_NOUN, e.id))
        for entity in ordered:
            if cache.has(entity.type, entity.original):
                continue
            value = synth.replace(entity.type, entity.original, entity.context, entity.metadata)
            for _ in range(_MAX_DRAWS if propagate else 0):
                if value.lower() != entity.original.lower() and value not in used:
                    break
                value = synth.replace(entity.type, entity.original, entity.context, entity.metadata)
            used.add(value)
            cache.set(entity.type, entity.original, value)
            if propagate:
                cache.propagate_to_related(entity.type, entity.original, value)

        return {e.key: cache.get(e.type, e.original) for e in entities
                if cache.has(e.type, e.original)}

    def restore(self, session: RedactionSession) -> int:
        """Undo every mutation of the last protect and drop all session state."""
        restored = MutationEngine(session.document, session.snapshot).restore()
        session.reset()
        return restored

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    def redact_text(
        self,
        text: str,
        enabled_types: Iterable[PiiType | str] | None = None,
    ) -> RedactedText:
        session = RedactionSession(PlainTextDocument(text))
        result = self.protect(session, enabled_types)
        return RedactedText(text=session.document.render(), result=result, session=session)
