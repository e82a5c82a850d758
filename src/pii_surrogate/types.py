"""Core types."""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable


class PiiType(str, Enum):
    """Closed set of entity types the pipeline knows how to detect and replace."""

    PROPER_NOUN = "properNoun"
    EMAIL = "email"
    PHONE = "phone"
    MONEY = "money"
    QUANTITY = "quantity"
    DATE = "date"
    ADDRESS = "address"
    URL = "url"
    IP_ADDRESS = "ipAddress"
    SSN = "ssn"
    CREDIT_CARD = "creditCard"
    LOCATION = "location"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, name: str | PiiType) -> PiiType:
        """Accept enum values, enum names, and the plural names used by host settings."""
        if isinstance(name, PiiType):
            return name
        key = name.strip()
        if key in _ALIASES:
            return _ALIASES[key]
        for member in cls:
            if key == member.value or key.upper() == member.name:
                return member
        raise ValueError(f"unknown PII type: {name!r}")

    def __str__(self) -> str:
        return self.value


_ALIASES: dict[str, PiiType] = {
    "properNouns": PiiType.PROPER_NOUN,
    "emails": PiiType.EMAIL,
    "phones": PiiType.PHONE,
    "quantities": PiiType.QUANTITY,
    "dates": PiiType.DATE,
    "addresses": PiiType.ADDRESS,
    "urls": PiiType.URL,
    "ips": PiiType.IP_ADDRESS,
    "creditCards": PiiType.CREDIT_CARD,
    "ssns": PiiType.SSN,
    "locations": PiiType.LOCATION,
    "customRegex": PiiType.CUSTOM,
}

EntityKey = tuple[PiiType, str]


def normalize(text: str) -> str:
    """Identity used for entity keys: trimmed and lowercased."""
    return text.strip().lower()


# ── Segments ──────────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class SourceRef:
    """Maps [start, end) of a segment's text back to one text node."""
    node: Hashable
    start: int
    end: int
    inside_link: bool = False


@dataclass(frozen=True, slots=True)
class NodeSpan:
    """A node-relative range."""
    node: Hashable
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class TextSegment:
    """A maximal run of visible text built from one or more adjacent nodes."""
    id: int
    text: str
    source_refs: tuple[SourceRef, ...] = ()

    def node_spans(self, start: int, end: int) -> tuple[NodeSpan, ...]:
        spans: list[NodeSpan] = []
        for ref in self.source_refs:
            if ref.end <= start or ref.start >= end:
                continue
            spans.append(NodeSpan(
                node=ref.node,
                start=max(start, ref.start) - ref.start,
                end=min(end, ref.end) - ref.start,
            ))
        return tuple(spans)

    def inside_link(self, start: int, end: int) -> bool:
        return any(
            ref.inside_link for ref in self.source_refs
            if ref.start < end and ref.end > start
        )


# ── Detection ─────────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class Match:
    """Raw detector output over a single string."""
    value: str
    start: int
    end: int
    confidence: float = 1.0
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Candidate:
    """An unfiltered detection, kept for explainability even when sub-threshold."""
    type: PiiType
    text: str
    segment_id: int
    start: int
    end: int
    confidence: float
    breakdown: dict[str, float] = field(default_factory=dict)
    context: str = "auto"
    threshold: float = 1.0
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def will_be_protected(self) -> bool:
        return self.confidence >= self.threshold

    @property
    def length(self) -> int:
        return self.end - self.start

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "type": self.type.value,
            "segment_id": self.segment_id,
            "span": [self.start, self.end],
            "confidence": self.confidence,
            "breakdown": dict(self.breakdown),
            "threshold": self.threshold,
            "context": self.context,
            "will_be_protected": self.will_be_protected,
        }


# ── Entities ──────────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class Occurrence:
    """One physical location of an entity."""
    segment_id: int
    start: int
    end: int
    text: str
    node_spans: tuple[NodeSpan, ...] = ()

    @property
    def is_cross_node(self) -> bool:
        return len(self.node_spans) > 1


@dataclass(slots=True)
class Entity:
    """Deduplicated unit of redaction, keyed by (type, normalized text)."""
    id: int
    type: PiiType
    original: str
    confidence: float
    context: str = "auto"
    occurrences: list[Occurrence] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def normalized_text(self) -> str:
        return normalize(self.original)

    @property
    def key(self) -> EntityKey:
        return (self.type, self.normalized_text)


@dataclass(frozen=True, slots=True)
class EntitySummary:
    type: PiiType
    original: str
    confidence: float
    replacement: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "original": self.original,
            "confidence": self.confidence,
            "replacement": self.replacement,
        }


@dataclass(slots=True)
class ProtectionResult:
    """Outcome of one protect pass."""
    status: str                                   # "protected" | "already_protected"
    applied_count: int = 0
    detected_count: int = 0
    skipped: Counter = field(default_factory=Counter)   # SkipReason value → count
    entities: list[EntitySummary] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return sum(self.skipped.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "applied_count": self.applied_count,
            "detected_count": self.detected_count,
            "skipped_count": self.skipped_count,
            "skipped": dict(self.skipped),
            "entities": [e.to_dict() for e in self.entities],
            "warnings": list(self.warnings),
        }
