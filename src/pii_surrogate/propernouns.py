"""Heuristic proper-noun scorer.

No model is involved: each capitalized word gets an additive score from a
handful of independent signals (dictionary, context, page-wide hints) and
is returned with a per-signal breakdown.  Filtering by threshold happens
later, in the resolver.
"""

from __future__ import annotations
import logging
import re

from .config import RedactorConfig
from .lexicon import Lexicon
from .linearize import PageContext
from .patterns import EMAIL_RE, detect_phone
from .types import Candidate, PiiType, TextSegment

logger = logging.getLogger(__name__)

CANDIDATE_RE = re.compile(r"(?<![A-Za-z'’])[A-Z][a-z]+(?:['’\-][A-Z]?[a-z]+)?(?![A-Za-z'’])")

# Capitalized function words and salutations that are never names.
STOPLIST = frozenset({
    "By", "In", "On", "At", "For", "With", "From", "To", "As", "Of", "The", "A", "An",
    "Meet", "See", "Contact", "Call", "Visit", "Email", "Ask",
    "Mr", "Mrs", "Ms", "Dr", "Prof", "Inc", "Corp", "Ltd", "Llc", "Co",
})

HONORIFIC_RE = re.compile(r"\b(?:Mr|Mrs|Ms|Dr|Prof)\.?\s*$")
JOB_TITLE_RE = re.compile(r"\b(?:CEO|CTO|CFO|COO|VP|SVP|EVP)\s*$")
LEGAL_SUFFIX_RE = re.compile(
    r"\b(Inc|Corp|LLC|Ltd|Limited|Company|Co\.|Corporation|Group|Partners|Associates)\b",
    re.IGNORECASE,
)
_FOLLOWED_BY_SUFFIX_RE = re.compile(
    r"^,?\s+(?:Inc|Corp|LLC|Ltd|Limited|Company|Co|Corporation|Group|Partners|Associates)\b"
)
_PRECEDING_CAPITALIZED_RE = re.compile(r"[A-Z][a-z]+[ \t]$")

ADJECTIVE_SUFFIXES = (
    "able", "ible", "al", "ful", "ic", "ical", "ive", "less", "ous", "ious",
    "ish", "ese", "an", "ian", "ern", "ly",
)
# Short suffixes need a longer word before they count ("Ryan", "Stan" are names).
_SUFFIX_MIN_LENGTH = {"an": 7, "ian": 7, "al": 6, "ic": 6, "ish": 6, "ese": 6, "ern": 6}
_DEFAULT_SUFFIX_MIN_LENGTH = 4

# Ratio used for the dictionary signal when no word list is loaded.
_UNKNOWN_RATIO_WITHOUT_DICTIONARY = 0.5


def is_adjective_like(word: str) -> bool:
    w = word.lower()
    for suffix in ADJECTIVE_SUFFIXES:
        if w.endswith(suffix) and len(w) >= _SUFFIX_MIN_LENGTH.get(suffix, _DEFAULT_SUFFIX_MIN_LENGTH):
            return True
    return False


def is_sentence_start(text: str, start: int) -> bool:
    if start == 0:
        return True
    before = text[:start].rstrip()
    return not before or before[-1] in ".!?" or text[start - 1] == "\n"


def looks_like_company(text: str) -> bool:
    return bool(LEGAL_SUFFIX_RE.search(text))


class ProperNounScorer:
    """Scores single capitalized words as possible names."""

    def __init__(self, config: RedactorConfig, lexicon: Lexicon | None = None) -> None:
        self.config = config
        self.weights = config.weights
        self.lexicon = lexicon or Lexicon()

    def _unknown_ratio(self, word: str) -> float:
        common = self.lexicon.is_common(word)
        if common is None:
            return _UNKNOWN_RATIO_WITHOUT_DICTIONARY
        return 0.0 if common else 1.0

    def score_candidates(
        self,
        segment: TextSegment,
        page_context: PageContext | None = None,
    ) -> list[Candidate]:
        """Every capitalized word in the segment, scored.  Nothing is dropped."""
        page = page_context or PageContext()
        text = segment.text
        w = self.weights
        threshold = self.config.proper_noun_threshold
        window = self.config.nearby_pii_window

        emails = list(EMAIL_RE.finditer(text))
        pii_spans = [(m.start(), m.end()) for m in emails]
        pii_spans += [(m.start, m.end) for m in detect_phone(text, self.config.default_phone_region)]
        email_domains = set()
        for m in emails:
            domain = m.group().split("@", 1)[1]
            email_domains.add(domain.split(".", 1)[0].lower())

        candidates: list[Candidate] = []
        for m in CANDIDATE_RE.finditer(text):
            word = m.group()
            if word in STOPLIST:
                continue
            start, end = m.start(), m.end()
            # Inside an email address or URL; the pattern detectors own those.
            if start > 0 and text[start - 1] in "@./":
                continue

            lower = word.lower()
            before = text[max(0, start - 10):start]
            breakdown: dict[str, float] = {"capitalizationPattern": w.capitalization}

            if self._unknown_ratio(word) > 0.5:
                breakdown["unknownInDictionary"] = w.unknown_in_dictionary

            context = "auto"
            if HONORIFIC_RE.search(before):
                breakdown["hasHonorificOrSuffix"] = w.honorific_or_title
                context = "surname"
            elif JOB_TITLE_RE.search(before):
                breakdown["hasHonorificOrSuffix"] = w.honorific_or_title
                context = "person"
            elif _PRECEDING_CAPITALIZED_RE.search(text[max(0, start - 30):start]):
                prev = text[:start].rstrip().rsplit(None, 1)[-1]
                if prev not in STOPLIST:
                    context = "surname"
            if _FOLLOWED_BY_SUFFIX_RE.match(text[end:]):
                context = "company"

            if not is_sentence_start(text, start):
                breakdown["notSentenceStart"] = w.not_sentence_start

            if any(s - window <= end and start <= e + window for s, e in pii_spans):
                breakdown["nearOtherPII"] = w.near_other_pii

            if LEGAL_SUFFIX_RE.sub("", lower).strip() in email_domains:
                breakdown["matchesEmailDomain"] = w.matches_email_domain

            if segment.inside_link(start, end):
                breakdown["insideLink"] = w.inside_link

            if self.lexicon.is_location(word):
                breakdown["knownLocation"] = w.known_location

            if lower in page.words_in_links:
                breakdown["appearsInPageLinks"] = w.appears_in_page_links

            if lower in page.words_in_headers_footers:
                breakdown["appearsInHeaderFooter"] = w.appears_in_header_footer

            if is_adjective_like(word):
                breakdown["nonNounPOS"] = w.adjective_suffix

            # Rounded so that sums like 0.3 + 0.45 compare exactly against the threshold.
            score = round(min(1.0, max(0.0, sum(breakdown.values()))), 6)
            candidates.append(Candidate(
                type=PiiType.PROPER_NOUN,
                text=word,
                segment_id=segment.id,
                start=start,
                end=end,
                confidence=score,
                breakdown=breakdown,
                context=context,
                threshold=threshold,
            ))

        logger.debug("segment %d: %d proper-noun candidates", segment.id, len(candidates))
        return candidates
