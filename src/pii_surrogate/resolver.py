"""Entity dictionary: aggregate candidates, resolve overlaps, apply thresholds."""

from __future__ import annotations
import logging
from collections import Counter, defaultdict
from typing import Iterable

from .config import RedactorConfig
from .types import Candidate, Entity, EntityKey, Occurrence, PiiType, TextSegment, normalize

logger = logging.getLogger(__name__)


def _overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return a_start < b_end and a_end > b_start


def _longest_per_type(candidates: list[Candidate]) -> list[Candidate]:
    """Within one segment, same-type overlapping candidates collapse to the longest."""
    by_type: dict[PiiType, list[Candidate]] = defaultdict(list)
    for c in candidates:
        by_type[c.type].append(c)

    kept: list[Candidate] = []
    for group in by_type.values():
        ranked = sorted(group, key=lambda c: (-c.length, -c.confidence, c.start))
        taken: list[Candidate] = []
        for c in ranked:
            if not any(_overlaps(c.start, c.end, t.start, t.end) for t in taken):
                taken.append(c)
        kept.extend(taken)
    return sorted(kept, key=lambda c: (c.start, c.type.value))


class EntityResolver:
    """Builds and refines the entity dictionary for one pass.

    ``build`` groups candidates by (type, normalized text).  ``refine``
    drops occurrences that lose an overlap to a higher-priority type and
    removes entities that are below their type's threshold or have no
    occurrences left.  ``get_enabled`` only filters a view.
    """

    def __init__(self, config: RedactorConfig) -> None:
        self.config = config
        self.entities: dict[EntityKey, Entity] = {}
        self.dropped: Counter = Counter()          # reason → count, for diagnostics

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(
        self,
        candidates: Iterable[Candidate],
        segments: Iterable[TextSegment],
    ) -> dict[EntityKey, Entity]:
        self.entities = {}
        self.dropped = Counter()
        seg_by_id = {s.id: s for s in segments}

        per_segment: dict[int, list[Candidate]] = defaultdict(list)
        for c in candidates:
            per_segment[c.segment_id].append(c)

        for seg_id in sorted(per_segment):
            segment = seg_by_id[seg_id]
            for c in _longest_per_type(per_segment[seg_id]):
                key = (c.type, normalize(c.text))
                entity = self.entities.get(key)
                if entity is None:
                    # Proper nouns keep the score of their first detection.
                    entity = Entity(
                        id=len(self.entities),
                        type=c.type,
                        original=c.text,
                        confidence=c.confidence,
                        context=c.context,
                        metadata=dict(c.metadata),
                    )
                    self.entities[key] = entity
                elif c.type is not PiiType.PROPER_NOUN:
                    entity.confidence = max(entity.confidence, c.confidence)
                entity.occurrences.append(Occurrence(
                    segment_id=seg_id,
                    start=c.start,
                    end=c.end,
                    text=c.text,
                    node_spans=segment.node_spans(c.start, c.end),
                ))

        logger.debug("built %d entities from %d segments", len(self.entities), len(per_segment))
        return self.entities

    # ------------------------------------------------------------------
    # Refine
    # ------------------------------------------------------------------

    def _rank(self, entity: Entity, occ: Occurrence) -> tuple:
        # Priority first; ties go to the longer span, then confidence, then a fixed order.
        return (
            -self.config.priority_of(entity.type),
            -(occ.end - occ.start),
            -entity.confidence,
            entity.type.value,
            occ.start,
            entity.id,
        )

    def refine(self) -> dict[EntityKey, Entity]:
        per_segment: dict[int, list[tuple[Entity, Occurrence]]] = defaultdict(list)
        for entity in self.entities.values():
            for occ in entity.occurrences:
                per_segment[occ.segment_id].append((entity, occ))

        survivors: dict[EntityKey, list[Occurrence]] = defaultdict(list)
        for pairs in per_segment.values():
            taken: list[Occurrence] = []
            for entity, occ in sorted(pairs, key=lambda p: self._rank(*p)):
                if any(_overlaps(occ.start, occ.end, t.start, t.end) for t in taken):
                    self.dropped["overlap"] += 1
                    continue
                taken.append(occ)
                survivors[entity.key].append(occ)

        refined: dict[EntityKey, Entity] = {}
        for key, entity in self.entities.items():
            entity.occurrences = sorted(survivors.get(key, []),
                                        key=lambda o: (o.segment_id, o.start))
            if entity.confidence < self.config.threshold_for(entity.type):
                self.dropped["below_threshold"] += 1
                continue
            if not entity.occurrences:
                self.dropped["no_occurrences"] += 1
                continue
            refined[key] = entity
        self.entities = refined

        logger.debug("refined to %d entities (dropped: %s)", len(refined), dict(self.dropped))
        return refined

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_enabled(self, types: Iterable[PiiType] | None = None) -> list[Entity]:
        """Entities whose type is enabled; ``None`` means every type."""
        if types is None:
            return list(self.entities.values())
        enabled = {PiiType.parse(t) for t in types}
        return [e for e in self.entities.values() if e.type in enabled]

    def stats(self) -> dict[str, int]:
        counts = Counter(e.type.value for e in self.entities.values())
        return dict(counts)
