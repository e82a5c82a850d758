"""Offset-safe application of replacements, and exact restoration."""

from __future__ import annotations
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Hashable, Iterable, Mapping

from .document import TextSurface
from .errors import SkipReason
from .types import Entity, EntityKey, Occurrence

logger = logging.getLogger(__name__)


class MutationSnapshot:
    """node handle → text before its first mutation in this session."""

    __slots__ = ("_original",)

    def __init__(self) -> None:
        self._original: dict[Hashable, str] = {}

    def capture(self, doc: TextSurface, node: Hashable) -> None:
        if node not in self._original:
            self._original[node] = doc.get_text(node)

    def restore(self, doc: TextSurface) -> int:
        for node, text in self._original.items():
            doc.set_text(node, text)
        restored = len(self._original)
        self._original.clear()
        return restored

    def __len__(self) -> int:
        return len(self._original)

    def __contains__(self, node: Hashable) -> bool:
        return node in self._original

    def clear(self) -> None:
        self._original.clear()


@dataclass(slots=True)
class MutationReport:
    applied: int = 0
    skipped: Counter = field(default_factory=Counter)


class MutationEngine:
    """Writes replacements into a TextSurface, back-to-front within each segment."""

    def __init__(self, document: TextSurface, snapshot: MutationSnapshot | None = None) -> None:
        self.document = document
        self.snapshot = snapshot if snapshot is not None else MutationSnapshot()

    def _write(self, node: Hashable, text: str) -> None:
        self.snapshot.capture(self.document, node)
        self.document.set_text(node, text)

    def apply(
        self,
        entities: Iterable[Entity],
        replacements: Mapping[EntityKey, str],
    ) -> MutationReport:
        report = MutationReport()
        per_segment: dict[int, list[tuple[Occurrence, str]]] = defaultdict(list)

        for entity in entities:
            replacement = replacements.get(entity.key)
            if replacement is None:
                report.skipped[SkipReason.UNRESOLVED_REPLACEMENT.value] += len(entity.occurrences)
                logger.warning("no replacement for %s entity; %d occurrence(s) left as is",
                               entity.type.value, len(entity.occurrences))
                continue
            for occ in entity.occurrences:
                per_segment[occ.segment_id].append((occ, replacement))

        for seg_id, items in per_segment.items():
            # Later offsets first so earlier ones stay valid.
            for occ, replacement in sorted(items, key=lambda i: i[0].start, reverse=True):
                if self._apply_one(occ, replacement):
                    report.applied += 1
                else:
                    report.skipped[SkipReason.SPAN_MISMATCH.value] += 1
                    logger.warning("segment %d [%d:%d]: text changed since detection, skipped",
                                   seg_id, occ.start, occ.end)

        logger.debug("applied %d replacements, skipped %s", report.applied, dict(report.skipped))
        return report

    def _apply_one(self, occ: Occurrence, replacement: str) -> bool:
        doc = self.document
        if not occ.node_spans:
            return False

        if not occ.is_cross_node:
            span = occ.node_spans[0]
            current = doc.get_text(span.node)
            if current[span.start:span.end] != occ.text:
                return False
            self._write(span.node, current[:span.start] + replacement + current[span.end:])
            return True

        if self._apply_recorded_spans(occ, replacement):
            return True
        return self._apply_via_ancestor(occ, replacement)

    def _apply_recorded_spans(self, occ: Occurrence, replacement: str) -> bool:
        """Cross-node occurrence whose node spans still hold the expected pieces."""
        doc = self.document
        pieces = []
        offset = 0
        for span in occ.node_spans:
            current = doc.get_text(span.node)
            expected = occ.text[offset:offset + span.end - span.start]
            if current[span.start:span.end] != expected:
                return False
            pieces.append((span, current))
            offset += span.end - span.start

        # Whole replacement goes to the first node; the rest of the span is blanked.
        for i, (span, current) in enumerate(pieces):
            insert = replacement if i == 0 else ""
            self._write(span.node, current[:span.start] + insert + current[span.end:])
        return True

    def _apply_via_ancestor(self, occ: Occurrence, replacement: str) -> bool:
        """Find the nearest ancestor whose flattened text contains the original and re-walk it.

        When the original appears more than once, the copy closest to where the
        first recorded span starts wins.
        """
        doc = self.document
        first = occ.node_spans[0]
        for element in doc.ancestors(first.node):
            nodes = doc.descendant_text_nodes(element)
            texts = [doc.get_text(n) for n in nodes]
            flat = "".join(texts)
            idx = _closest_match(flat, occ.text, _flat_offset(nodes, texts, first.node) + first.start)
            if idx < 0:
                continue

            end = idx + len(occ.text)
            contributing = []
            pos = 0
            for node, text in zip(nodes, texts):
                n_start, n_end = pos, pos + len(text)
                pos = n_end
                if n_end <= idx or n_start >= end or not text:
                    continue
                contributing.append((node, text, max(idx, n_start) - n_start, min(end, n_end) - n_start))

            for i, (node, text, s, e) in enumerate(contributing):
                insert = replacement if i == 0 else ""
                self._write(node, text[:s] + insert + text[e:])
            return True
        return False

    def restore(self) -> int:
        """Write back every captured node.  Returns the number of nodes restored."""
        restored = self.snapshot.restore(self.document)
        logger.debug("restored %d nodes", restored)
        return restored


def _flat_offset(nodes: list, texts: list[str], node: Hashable) -> int:
    """Offset of ``node`` inside the concatenation of ``texts``, or 0 when absent."""
    pos = 0
    for n, text in zip(nodes, texts):
        if n == node:
            return pos
        pos += len(text)
    return 0


def _closest_match(flat: str, needle: str, anchor: int) -> int:
    best = -1
    idx = flat.find(needle)
    while idx >= 0:
        if best < 0 or abs(idx - anchor) < abs(best - anchor):
            best = idx
        idx = flat.find(needle, idx + 1)
    return best
