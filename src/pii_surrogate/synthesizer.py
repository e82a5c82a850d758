"""ValueSynthesizer — format-preserving fake values, one method per type.

Money and quantities share a single magnitude multiplier per session, and
all dates share a single day offset, so relative sizes and intervals in the
document survive redaction.  Name, company, street, city and domain pools
come from Faker.
"""

from __future__ import annotations
import logging
import random
import re
from datetime import date, timedelta
from typing import Any, Callable

from faker import Faker

from .config import RedactorConfig
from .errors import FatalInitializationError
from .consistency import replace_domain_base
from .patterns import GEO_KEYWORDS, MONTHS_LONG, STREET_SUFFIXES, luhn_valid
from .propernouns import LEGAL_SUFFIX_RE
from .types import PiiType

logger = logging.getLogger(__name__)

BLOCK_CHAR = "█"

_LONG_TO_SHORT_SUFFIX = dict(zip(STREET_SUFFIXES[0::2], STREET_SUFFIXES[1::2]))
_SHORT_SUFFIXES = frozenset(STREET_SUFFIXES[1::2])

_ISO_DATE_RE = re.compile(r"^(\d{4})([\-/])(\d{1,2})\2(\d{1,2})$")
_NUMERIC_DATE_RE = re.compile(r"^(\d{1,2})([\-/])(\d{1,2})\2(\d{4}|\d{2})$")
_TEXT_DATE_RE = re.compile(
    r"^(?P<month>[A-Za-z]+)(?P<dot>\.?)"
    r"(?:(?P<sp1>\s+)(?P<day>\d{1,2})(?P<ord>st|nd|rd|th)?"
    r"(?:(?P<comma>,?)(?P<sp2>\s+)(?P<year>\d{4}))?)?$"
)
_YEAR_RE = re.compile(r"^\d{4}$")
_NUMBER_RE = re.compile(r"\d[\d,\s]*(?:\.\s*\d+)?")
# Reference year for dates written without one; a leap year so Feb 29 parses.
_REFERENCE_YEAR = 2000

_SHORT_MONTHS = tuple(m[:3] for m in MONTHS_LONG)
_LONG_MONTHS = frozenset(m.lower() for m in MONTHS_LONG)
_MONTH_INDEX = {m.lower(): i + 1 for i, m in enumerate(MONTHS_LONG)}
_MONTH_INDEX.update({m.lower(): i + 1 for i, m in enumerate(_SHORT_MONTHS)})
_MONTH_INDEX["sept"] = 9


def blackout(original: str) -> str:
    """A block per visible character; whitespace is kept so word shapes survive."""
    masked = re.sub(r"\S", BLOCK_CHAR, original)
    return masked if masked.strip() else BLOCK_CHAR


def _match_case(value: str, original: str) -> str:
    if original.isupper() and len(original) > 1:
        return value.upper()
    if original.islower():
        return value.lower()
    return value


class ValueSynthesizer:
    """Generates replacements for one session."""

    def __init__(self, config: RedactorConfig) -> None:
        self.config = config
        self.mode = config.redaction_mode
        self.rng = random.Random(config.seed)
        self.fake = Faker("en_US")
        try:
            if config.seed is not None:
                self.fake.seed_instance(config.seed)
            # Pools must be present before any pass starts.
            for provider in ("first_name", "last_name", "company", "city", "country", "domain_word"):
                getattr(self.fake, provider)()
        except AttributeError as e:
            raise FatalInitializationError(f"replacement pools unavailable: {e}") from e

        self.multiplier = 1.0
        self.day_offset = 0
        self.reset_session()

        self._dispatch: dict[PiiType, Callable[..., str]] = {
            PiiType.PROPER_NOUN: self.replace_proper_noun,
            PiiType.EMAIL: self.replace_email,
            PiiType.PHONE: self.replace_phone,
            PiiType.MONEY: self.replace_money,
            PiiType.QUANTITY: self.replace_quantity,
            PiiType.DATE: self.replace_date,
            PiiType.ADDRESS: self.replace_address,
            PiiType.URL: self.replace_url,
            PiiType.IP_ADDRESS: self.replace_ip_address,
            PiiType.SSN: self.replace_ssn,
            PiiType.CREDIT_CARD: self.replace_credit_card,
            PiiType.LOCATION: self.replace_location,
            PiiType.CUSTOM: self.replace_custom,
        }

    def reset_session(self) -> None:
        """Draw the session-wide multiplier and day offset."""
        variance = self.config.magnitude_variance / 100
        self.multiplier = 1.0
        if variance > 0:
            while True:
                m = 1 + self.rng.uniform(-1, 1) * variance
                if abs(m - 1) >= 0.01 and m > 0:
                    break
            self.multiplier = m

        span = self.config.date_variance_days
        self.day_offset = self.rng.choice([d for d in range(-span, span + 1) if d != 0])
        logger.debug("session multiplier %.4f, day offset %+d", self.multiplier, self.day_offset)

    def replace(self, pii_type: PiiType, original: str, context: str = "auto",
                metadata: dict[str, Any] | None = None) -> str:
        if self.mode == "blackout":
            return blackout(original)
        pii_type = PiiType.parse(pii_type)
        method = self._dispatch[pii_type]
        if pii_type is PiiType.PROPER_NOUN:
            return method(original, context)
        if pii_type is PiiType.LOCATION:
            return method(original, bool((metadata or {}).get("country")))
        return method(original)

    # ------------------------------------------------------------------
    # Digits
    # ------------------------------------------------------------------

    def _digit(self, low: int = 0, high: int = 9) -> str:
        return str(self.rng.randint(low, high))

    def _replay(self, original: str, digits: str) -> str:
        """Write ``digits`` into the digit positions of ``original``."""
        it = iter(digits)
        return "".join(next(it) if ch.isdigit() else ch for ch in original)

    def _scramble_digits(self, original: str) -> str:
        return self._replay(original, "".join(self._digit() for ch in original if ch.isdigit()))

    # ------------------------------------------------------------------
    # Magnitude-preserving
    # ------------------------------------------------------------------

    def _scale_number(self, original: str) -> str:
        m = _NUMBER_RE.search(original)
        if m is None:
            return original
        raw = re.sub(r"\s+", "", m.group())
        decimals = len(raw.rsplit(".", 1)[1]) if "." in raw else 0
        value = float(raw.replace(",", ""))
        scaled = round(value * self.multiplier, decimals)
        if value > 0 and scaled <= 0:
            scaled = 10 ** -decimals
        if "," in raw:
            number = f"{scaled:,.{decimals}f}"
        else:
            number = f"{scaled:.{decimals}f}"
        # Trailing whitespace captured by the number pattern belongs to the suffix.
        tail = m.group()[len(m.group().rstrip()):]
        return original[:m.start()] + number + tail + original[m.end():]

    def replace_money(self, original: str) -> str:
        return self._scale_number(original)

    def replace_quantity(self, original: str) -> str:
        return self._scale_number(original)

    # ------------------------------------------------------------------
    # Dates
    # ------------------------------------------------------------------

    def _shift(self, d: date) -> date:
        return d + timedelta(days=self.day_offset)

    def _shift_months(self, month: int) -> int:
        months = round(abs(self.day_offset) / 30) or 1
        months = months if self.day_offset > 0 else -months
        return (month - 1 + months) % 12 + 1

    def replace_date(self, original: str) -> str:
        s = original.strip()

        m = _ISO_DATE_RE.match(s)
        if m:
            year, sep, month, day = m.groups()
            d = self._safe_date(int(year), int(month), int(day))
            if d:
                d = self._shift(d)
                return (f"{d.year:04d}{sep}{self._pad(d.month, len(month) == 2)}"
                        f"{sep}{self._pad(d.day, len(day) == 2)}")

        m = _NUMERIC_DATE_RE.match(s)
        if m:
            first, sep, second, year = m.groups()
            y = int(year) if len(year) == 4 else 2000 + int(year)
            # US order unless the first field cannot be a month.
            day_first = int(first) > 12
            month, day = (second, first) if day_first else (first, second)
            d = self._safe_date(y, int(month), int(day))
            if d:
                d = self._shift(d)
                y_out = f"{d.year:04d}" if len(year) == 4 else f"{d.year % 100:02d}"
                padded = first.startswith("0") or second.startswith("0")
                mm, dd = self._pad(d.month, padded), self._pad(d.day, padded)
                return f"{dd}{sep}{mm}{sep}{y_out}" if day_first else f"{mm}{sep}{dd}{sep}{y_out}"

        m = _TEXT_DATE_RE.match(s)
        if m and m.group("month").lower() in _MONTH_INDEX:
            return self._replace_text_date(m)

        if _YEAR_RE.match(s):
            return str(int(s) + (1 if self.day_offset > 0 else -1))

        return self._scramble_digits(original)

    @staticmethod
    def _safe_date(year: int, month: int, day: int) -> date | None:
        try:
            return date(year, month, day)
        except ValueError:
            return None

    @staticmethod
    def _pad(value: int, padded: bool) -> str:
        return f"{value:02d}" if padded else str(value)

    def _month_name(self, month: int, original: str) -> str:
        if original.lower() in _LONG_MONTHS:
            name = MONTHS_LONG[month - 1]
        elif original.lower() == "sept" and month == 9:
            name = "Sept"
        else:
            name = _SHORT_MONTHS[month - 1]
        return _match_case(name, original)

    def _replace_text_date(self, m: re.Match) -> str:
        month_text = m.group("month")
        month = _MONTH_INDEX[month_text.lower()]
        if m.group("day") is None:
            return self._month_name(self._shift_months(month), month_text) + m.group("dot")

        year = int(m.group("year")) if m.group("year") else _REFERENCE_YEAR
        d = self._safe_date(year, month, int(m.group("day")))
        if d is None:
            return self._scramble_digits(m.group())
        d = self._shift(d)

        out = [self._month_name(d.month, month_text), m.group("dot"), m.group("sp1"),
               self._pad(d.day, m.group("day").startswith("0"))]
        if m.group("ord"):
            out.append(_ordinal(d.day))
        if m.group("year"):
            out += [m.group("comma"), m.group("sp2"), str(d.year)]
        return "".join(out)

    # ------------------------------------------------------------------
    # Format-preserving digits
    # ------------------------------------------------------------------

    def replace_phone(self, original: str) -> str:
        digits = re.sub(r"\D", "", original)
        national = digits[-10:]
        prefix = digits[:-10]
        new = [self._digit() for _ in national]
        # Area code and exchange cannot start with 0 or 1.
        if len(new) == 10:
            new[0] = self._digit(2, 9)
            new[3] = self._digit(2, 9)
        return self._replay(original, prefix + "".join(new))

    def replace_ssn(self, original: str) -> str:
        while True:
            area = self.rng.randint(1, 899)
            if area != 666:
                break
        group = self.rng.randint(1, 99)
        serial = self.rng.randint(1, 9999)
        return self._replay(original, f"{area:03d}{group:02d}{serial:04d}")

    def replace_credit_card(self, original: str) -> str:
        digits = re.sub(r"\D", "", original)
        body = digits[0] + "".join(self._digit() for _ in range(len(digits) - 2))
        for check in "0123456789":
            if luhn_valid(body + check):
                return self._replay(original, body + check)
        raise AssertionError("unreachable: some check digit always satisfies Luhn")

    def replace_ip_address(self, original: str) -> str:
        if ":" in original:
            groups = original.split(":")
            out = []
            for g in groups:
                new = "".join(self.rng.choice("0123456789abcdef") for _ in g)
                out.append(new.upper() if g.isupper() else new)
            return ":".join(out)
        octets = [str(self.rng.randint(1, 223))] + [str(self.rng.randint(0, 255)) for _ in range(2)]
        if octets[0] == "127":
            octets[0] = "10"
        octets.append(str(self.rng.randint(1, 254)))
        return ".".join(octets)

    # ------------------------------------------------------------------
    # Pool-based
    # ------------------------------------------------------------------

    def _company_word(self) -> str:
        return re.split(r"[\s,\-]", self.fake.company())[0]

    def replace_proper_noun(self, original: str, context: str = "auto") -> str:
        words = original.split()
        suffix = LEGAL_SUFFIX_RE.search(original)
        if context == "company" or suffix:
            if suffix and len(words) > 1:
                value = f"{self._company_word()} {suffix.group()}"
            else:
                value = self._company_word()
        elif context == "surname":
            value = self.fake.last_name()
        elif len(words) > 1:
            value = f"{self.fake.first_name()} {self.fake.last_name()}"
        else:
            value = self.fake.first_name()
        return _match_case(value, original)

    def replace_email(self, original: str) -> str:
        tld = original.rsplit(".", 1)[-1].lower()
        local = f"{self.fake.first_name()}.{self.fake.last_name()}".lower()
        local = re.sub(r"[^a-z0-9.]", "", local)
        return f"{local}@{self.fake.domain_word()}.{tld}"

    def replace_url(self, original: str) -> str:
        return replace_domain_base(original, re.sub(r"[^a-z0-9\-]", "", self.fake.domain_word().lower()))

    def replace_address(self, original: str) -> str:
        m = re.match(r"^(\d+)\s+(.*?)\s*(\b\w+)$", original.strip())
        if m is None:
            return f"{self.rng.randint(100, 9999)} {self.fake.street_name()}"
        number, _, suffix = m.groups()
        new_number = str(self.rng.randint(10 ** (len(number) - 1), 10 ** len(number) - 1))
        if suffix in _SHORT_SUFFIXES:
            new_suffix = self.rng.choice(sorted(_SHORT_SUFFIXES))
        else:
            new_suffix = self.rng.choice(sorted(_LONG_TO_SHORT_SUFFIX))
        return f"{new_number} {self.fake.last_name()} {new_suffix}"

    def replace_location(self, original: str, is_country: bool = False) -> str:
        words = original.split()
        if words and words[-1] in GEO_KEYWORDS:
            if len(words) == 1:
                return original
            return f"{self.fake.last_name()} {words[-1]}"
        if is_country:
            return self.fake.country()
        return self.fake.city()

    def replace_custom(self, original: str) -> str:
        """Shuffle characters within their class: digit→digit, letter→letter of the same case."""
        out = []
        for ch in original:
            if ch.isdigit():
                out.append(self._digit())
            elif ch.isupper():
                out.append(self.rng.choice("ABCDEFGHIJKLMNOPQRSTUVWXYZ"))
            elif ch.islower():
                out.append(self.rng.choice("abcdefghijklmnopqrstuvwxyz"))
            else:
                out.append(ch)
        return "".join(out)


def _ordinal(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
