"""Pattern detectors for structured PII.

Every detector is a pure function ``(text) -> list[Match]``.  Phone and
credit-card matches go through a validator and are dropped silently when
they fail it.  Money and quantity matches carry the formatting metadata the
synthesizer needs to reproduce them.
"""

from __future__ import annotations
import ipaddress
import re
from typing import Callable, Iterable, Mapping

import phonenumbers

from .lexicon import Lexicon
from .types import Match, PiiType

# ── Regexes ───────────────────────────────────────────────────────

EMAIL_RE = re.compile(r"\b[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}\b")

PHONE_RE = re.compile(
    r"(?<!\w)"
    r"(?:\+\d{1,3}[\-.\s]?)?"
    r"\(?\d{3}\)?[\-.\s]?\d{3}[\-.\s]?\d{4}\b"
)

URL_RE = re.compile(
    r"https?://(?:www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b[-a-zA-Z0-9()@:%_+.~#?&/=]*"
    r"|\bwww\.[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b[-a-zA-Z0-9()@:%_+.~#?&/=]*"
)

IPV4_RE = re.compile(
    r"\b(?:(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\.){3}"
    r"(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\b"
)

IPV6_RE = re.compile(r"\b(?:[A-F0-9]{1,4}:){7}[A-F0-9]{1,4}\b", re.IGNORECASE)

SSN_RE = re.compile(r"\b\d{3}([\-\s])\d{2}\1\d{4}\b")

CREDIT_CARD_RE = re.compile(r"\b(?:\d{4}[\-\s]?){3}\d{4}\b")

_CURRENCY_SYMBOLS = "$€£¥₹"
_CURRENCY_CODES = ("USD", "EUR", "GBP", "JPY", "INR", "CAD", "AUD", "CHF")
_AMOUNT = r"\d{1,3}(?:\s*,\s*\d{3})+(?:\s*\.\s*\d{2,})?|\d+(?:\s*\.\s*\d{2,})?"

# Whitespace may appear between characters when an amount is split across nodes.
MONEY_RE = re.compile(
    rf"(?P<symbol>[{_CURRENCY_SYMBOLS}])\s*(?P<amount>{_AMOUNT})"
    rf"|(?P<amount2>{_AMOUNT})\s*(?P<code>{'|'.join(_CURRENCY_CODES)})\b",
    re.IGNORECASE,
)

_QUANTITY_UNITS = (
    "items", "item", "units", "unit", "pieces", "pcs", "qty", "count",
    "kg", "lbs", "lb", "oz", "g", "ml", "l", "meters", "feet", "ft",
    "inches", "cm", "mm", "km", "miles",
)
QUANTITY_RE = re.compile(
    r"(?P<prefix>(?:\b(?:total|count|order|item|quantity|amount|number|qty)\b)[:\s]+)?"
    r"(?<![.,/:@#\-\w])"
    r"(?P<number>\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"
    rf"(?:\s*(?P<unit>{'|'.join(_QUANTITY_UNITS)}))?"
    r"(?![\w.]\d)\b",
    re.IGNORECASE,
)

MONTHS_LONG = ("January", "February", "March", "April", "May", "June", "July",
               "August", "September", "October", "November", "December")
MONTHS_SHORT = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sept", "Sep",
                "Oct", "Nov", "Dec")
_MONTH = "|".join(MONTHS_LONG + MONTHS_SHORT)

DATE_RE = re.compile(
    r"\b(?:"
    r"\d{4}[\-/]\d{1,2}[\-/]\d{1,2}"
    r"|\d{1,2}[\-/]\d{1,2}[\-/](?:\d{4}|\d{2})"
    rf"|(?:{_MONTH})(?:\.?\s+\d{{1,2}}(?:st|nd|rd|th)?(?:,?\s+\d{{4}})?)?"
    # a bare year is never the last group of a phone, SSN or card number
    rf"|(?<![{_CURRENCY_SYMBOLS}.,])(?<!\d[\-\s.])(?:19|20)\d{{2}}(?![.,]\d)(?![\-\s.]\d)"
    r")\b"
)

STREET_SUFFIXES = (
    "Street", "St", "Avenue", "Ave", "Road", "Rd", "Boulevard", "Blvd", "Lane", "Ln",
    "Drive", "Dr", "Court", "Ct", "Circle", "Cir", "Way", "Wy", "Place", "Pl",
)
ADDRESS_RE = re.compile(
    r"\b\d{1,5}\s+(?:[A-Z][a-z]+\s+){1,4}"
    rf"(?:{'|'.join(STREET_SUFFIXES)})\b"
)

GEO_KEYWORDS = (
    "Bay", "Valley", "Area", "Region", "Islands", "Island", "Coast", "Peninsula",
    "County", "Province", "District", "Metropolitan", "Metro", "Territory",
    "Highlands", "Highland", "Plains", "Plain", "Mountains", "Mountain", "Hills", "Hill",
    "Ocean", "Sea", "River", "Lake", "Gulf", "Desert", "Forest", "Falls", "Canyon",
    "Peak", "Reef", "Strait", "Channel", "Basin", "Plateau", "Ridge", "Grove", "Creek",
    "Range",
)
LOCATION_KEYWORD_RE = re.compile(
    rf"\b(?:[A-Z][a-z]+\s+){{0,3}}(?:{'|'.join(GEO_KEYWORDS)})\b"
)
CAPITALIZED_PHRASE_RE = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b")

LOCATION_PATTERN_CONFIDENCE = 0.90
LOCATION_GAZETTEER_CONFIDENCE = 0.95


# ── Validators ────────────────────────────────────────────────────

def luhn_valid(digits: str) -> bool:
    """Luhn checksum over a string of digits."""
    total = 0
    for i, ch in enumerate(reversed(digits)):
        d = int(ch)
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10 == 0


def phone_valid(raw: str, region: str = "US") -> bool:
    """Parse as a national or international number and check it is assignable."""
    try:
        parsed = phonenumbers.parse(raw, region)
    except phonenumbers.NumberParseException:
        return False
    return phonenumbers.is_valid_number(parsed)


def _decimal_places(number: str) -> int:
    if "." not in number:
        return 0
    return len(number.rsplit(".", 1)[1])


# ── Detectors ─────────────────────────────────────────────────────

def _simple(regex: re.Pattern, text: str) -> list[Match]:
    return [Match(m.group(), m.start(), m.end()) for m in regex.finditer(text)]


def detect_email(text: str) -> list[Match]:
    return _simple(EMAIL_RE, text)


def detect_url(text: str) -> list[Match]:
    out = []
    for m in URL_RE.finditer(text):
        value = m.group().rstrip(".,;:)")
        out.append(Match(value, m.start(), m.start() + len(value)))
    return out


def detect_phone(text: str, region: str = "US") -> list[Match]:
    return [
        Match(m.group(), m.start(), m.end(), metadata={"region": region})
        for m in PHONE_RE.finditer(text)
        if phone_valid(m.group(), region)
    ]


def detect_ip_address(text: str) -> list[Match]:
    out = []
    for regex, version in ((IPV4_RE, 4), (IPV6_RE, 6)):
        for m in regex.finditer(text):
            try:
                ipaddress.ip_address(m.group())
            except ValueError:
                continue
            out.append(Match(m.group(), m.start(), m.end(), metadata={"version": version}))
    return out


def detect_ssn(text: str) -> list[Match]:
    return [
        Match(m.group(), m.start(), m.end(), metadata={"separator": m.group(1)})
        for m in SSN_RE.finditer(text)
    ]


def detect_credit_card(text: str) -> list[Match]:
    out = []
    for m in CREDIT_CARD_RE.finditer(text):
        digits = re.sub(r"\D", "", m.group())
        if luhn_valid(digits):
            out.append(Match(m.group(), m.start(), m.end()))
    return out


def detect_money(text: str) -> list[Match]:
    out = []
    for m in MONEY_RE.finditer(text):
        amount = m.group("amount") or m.group("amount2")
        compact = re.sub(r"\s+", "", amount)
        if m.group("symbol"):
            currency, position = m.group("symbol"), "prefix"
        else:
            currency, position = m.group("code").upper(), "suffix"
        out.append(Match(m.group(), m.start(), m.end(), metadata={
            "numeric_value": float(compact.replace(",", "")),
            "currency": currency,
            "has_symbol": bool(m.group("symbol")),
            "symbol_position": position,
            "has_commas": "," in compact,
            "decimal_places": _decimal_places(compact),
        }))
    return out


def detect_quantity(text: str) -> list[Match]:
    out = []
    for m in QUANTITY_RE.finditer(text):
        number = m.group("number")
        out.append(Match(m.group(), m.start(), m.end(), metadata={
            "numeric_value": float(number.replace(",", "")),
            "unit": m.group("unit"),
            "prefix": m.group("prefix"),
            "has_commas": "," in number,
            "decimal_places": _decimal_places(number),
        }))
    return out


def detect_date(text: str) -> list[Match]:
    return _simple(DATE_RE, text)


def detect_address(text: str) -> list[Match]:
    return _simple(ADDRESS_RE, text)


def _gazetteer_subphrases(
    text: str, phrase: re.Match, lexicon: Lexicon,
) -> list[tuple[str, int, int]]:
    words = [(phrase.start() + w.start(), phrase.start() + w.end())
             for w in re.finditer(r"[A-Z][a-z]+", phrase.group())]
    found = []
    i = 0
    while i < len(words):
        for j in range(len(words), i, -1):
            start, end = words[i][0], words[j - 1][1]
            if lexicon.is_location(text[start:end]):
                found.append((text[start:end], start, end))
                i = j
                break
        else:
            i += 1
    return found


def detect_location(text: str, lexicon: Lexicon | None = None) -> list[Match]:
    """Keyword pattern first, then gazetteer lookup over what is left."""
    matches: list[Match] = []
    claimed: list[tuple[int, int]] = []

    def free(start: int, end: int) -> bool:
        return not any(start < e and end > s for s, e in claimed)

    for m in LOCATION_KEYWORD_RE.finditer(text):
        matches.append(Match(m.group(), m.start(), m.end(), LOCATION_PATTERN_CONFIDENCE,
                             {"source": "pattern"}))
        claimed.append((m.start(), m.end()))

    if lexicon is None or (lexicon.locations is None and lexicon.countries is None):
        return matches

    for m in CAPITALIZED_PHRASE_RE.finditer(text):
        if lexicon.is_location(m.group()):
            spans = [(m.group(), m.start(), m.end())]
        else:
            # "In California", "Visit New York City" → longest known sub-phrases
            spans = _gazetteer_subphrases(text, m, lexicon)
        for value, start, end in spans:
            if free(start, end):
                matches.append(Match(value, start, end, LOCATION_GAZETTEER_CONFIDENCE,
                                     {"source": "gazetteer",
                                      "country": lexicon.is_country(value)}))
                claimed.append((start, end))
    return sorted(matches, key=lambda m: m.start)


def detect_custom(text: str, patterns: Mapping[str, re.Pattern]) -> list[Match]:
    out = []
    for name, regex in patterns.items():
        for m in regex.finditer(text):
            if m.end() > m.start():
                out.append(Match(m.group(), m.start(), m.end(), metadata={"pattern": name}))
    return out


_SIMPLE_DETECTORS: dict[PiiType, Callable[[str], list[Match]]] = {
    PiiType.EMAIL: detect_email,
    PiiType.URL: detect_url,
    PiiType.IP_ADDRESS: detect_ip_address,
    PiiType.SSN: detect_ssn,
    PiiType.CREDIT_CARD: detect_credit_card,
    PiiType.MONEY: detect_money,
    PiiType.QUANTITY: detect_quantity,
    PiiType.DATE: detect_date,
    PiiType.ADDRESS: detect_address,
}

PATTERN_TYPES: tuple[PiiType, ...] = (
    *_SIMPLE_DETECTORS, PiiType.PHONE, PiiType.LOCATION, PiiType.CUSTOM,
)


def detect(
    text: str,
    pii_type: PiiType,
    *,
    lexicon: Lexicon | None = None,
    region: str = "US",
    custom: Mapping[str, re.Pattern] | None = None,
) -> list[Match]:
    """Run the detector for one type."""
    if pii_type in _SIMPLE_DETECTORS:
        return _SIMPLE_DETECTORS[pii_type](text)
    if pii_type is PiiType.PHONE:
        return detect_phone(text, region)
    if pii_type is PiiType.LOCATION:
        return detect_location(text, lexicon)
    if pii_type is PiiType.CUSTOM:
        return detect_custom(text, custom or {})
    raise ValueError(f"{pii_type} has no pattern detector")


def detect_all(
    text: str,
    *,
    lexicon: Lexicon | None = None,
    region: str = "US",
    custom: Mapping[str, re.Pattern] | None = None,
    types: Iterable[PiiType] = PATTERN_TYPES,
) -> dict[PiiType, list[Match]]:
    return {
        t: detect(text, t, lexicon=lexicon, region=region, custom=custom)
        for t in types
    }
