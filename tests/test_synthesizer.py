"""Tests for format-preserving replacement values."""

import ipaddress
import re
import sys, os
from datetime import date, timedelta
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

import pii_surrogate.synthesizer as synthesizer
from pii_surrogate.config import RedactorConfig
from pii_surrogate.errors import FatalInitializationError
from pii_surrogate.patterns import MONTHS_LONG, STREET_SUFFIXES, luhn_valid
from pii_surrogate.synthesizer import ValueSynthesizer, blackout
from pii_surrogate.types import PiiType


def _synth(**kw):
    kw.setdefault("seed", 7)
    return ValueSynthesizer(RedactorConfig(**kw))


def _amount(text):
    return float(re.sub(r"[^\d.]", "", text))


# ── Session ──────────────────────────────────────────────────────────

def test_session_draws_nonzero_offset_and_bounded_multiplier():
    s = _synth(magnitude_variance=30, date_variance_days=60)
    assert 0.7 <= s.multiplier <= 1.3
    assert abs(s.multiplier - 1) >= 0.01
    assert s.day_offset != 0
    assert -60 <= s.day_offset <= 60


def test_same_seed_same_values():
    a, b = _synth(seed=42), _synth(seed=42)
    for pii_type, original in [
        (PiiType.PROPER_NOUN, "Zelinski"),
        (PiiType.MONEY, "$1,199.99"),
        (PiiType.DATE, "2024-03-05"),
        (PiiType.PHONE, "650-253-0000"),
    ]:
        assert a.replace(pii_type, original) == b.replace(pii_type, original)


def test_zero_variance_keeps_amounts():
    s = _synth(magnitude_variance=0)
    assert s.multiplier == 1.0
    assert s.replace(PiiType.MONEY, "$1,199.99") == "$1,199.99"


def test_missing_pools_fail_at_construction(monkeypatch):
    monkeypatch.setattr(synthesizer, "Faker", lambda locale: object())
    with pytest.raises(FatalInitializationError):
        ValueSynthesizer(RedactorConfig())


# ── Money / quantity ─────────────────────────────────────────────────

def test_money_keeps_format():
    s = _synth()
    out = s.replace(PiiType.MONEY, "$1,199.99")
    assert re.fullmatch(r"\$\d{1,3}(,\d{3})*\.\d{2}", out)
    assert out != "$1,199.99"
    assert abs(_amount(out) - 1199.99 * s.multiplier) <= 0.01


def test_money_ratios_survive():
    s = _synth()
    small = _amount(s.replace(PiiType.MONEY, "$100.00"))
    large = _amount(s.replace(PiiType.MONEY, "$200.00"))
    assert abs(large - 2 * small) <= 0.011


def test_money_suffix_code_and_quantity_unit_kept():
    s = _synth()
    assert re.fullmatch(r"\d+ USD", s.replace(PiiType.MONEY, "500 USD"))
    assert re.fullmatch(r"\d+ items", s.replace(PiiType.QUANTITY, "12 items"))
    assert re.fullmatch(r"Quantity: \d+", s.replace(PiiType.QUANTITY, "Quantity: 300"))


# ── Dates ────────────────────────────────────────────────────────────

def test_iso_date_shifted_by_session_offset():
    s = _synth()
    expected = date(2024, 3, 5) + timedelta(days=s.day_offset)
    assert s.replace(PiiType.DATE, "2024-03-05") == expected.isoformat()


def test_intervals_between_dates_survive():
    s = _synth()
    a = date.fromisoformat(s.replace(PiiType.DATE, "2024-03-05"))
    b = date.fromisoformat(s.replace(PiiType.DATE, "2024-03-15"))
    assert (b - a).days == 10


def test_textual_date_keeps_style():
    s = _synth()
    d = date(2026, 1, 17) + timedelta(days=s.day_offset)
    assert s.replace(PiiType.DATE, "Jan 17, 2026") == f"{MONTHS_LONG[d.month - 1][:3]} {d.day}, {d.year}"
    d = date(2000, 3, 1) + timedelta(days=s.day_offset)
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(d.day % 10, "th") if not 11 <= d.day <= 13 else "th"
    assert s.replace(PiiType.DATE, "March 1st") == f"{MONTHS_LONG[d.month - 1]} {d.day}{suffix}"


def test_numeric_dates():
    s = _synth()
    d = date(2024, 3, 5) + timedelta(days=s.day_offset)
    assert s.replace(PiiType.DATE, "3/5/2024") == f"{d.month}/{d.day}/{d.year}"
    d = date(2026, 1, 17) + timedelta(days=s.day_offset)
    assert s.replace(PiiType.DATE, "17/01/2026") == f"{d.day:02d}/{d.month:02d}/{d.year}"


def test_month_and_year_alone():
    s = _synth()
    month = s.replace(PiiType.DATE, "March")
    assert month in MONTHS_LONG and month != "March"
    assert s.replace(PiiType.DATE, "1999") in {"1998", "2000"}


# ── Identifiers ──────────────────────────────────────────────────────

def test_phone_format_and_validity():
    s = _synth()
    assert re.fullmatch(r"[2-9]\d{2}-[2-9]\d{2}-\d{4}", s.replace(PiiType.PHONE, "650-253-0000"))
    assert re.fullmatch(r"\+1 \([2-9]\d{2}\) [2-9]\d{2}-\d{4}", s.replace(PiiType.PHONE, "+1 (202) 456-1111"))


def test_ssn():
    s = _synth()
    for _ in range(20):
        out = s.replace(PiiType.SSN, "123-45-6789")
        assert re.fullmatch(r"\d{3}-\d{2}-\d{4}", out)
        assert out[:3] not in {"000", "666"}


def test_credit_card_is_luhn_valid():
    s = _synth()
    out = s.replace(PiiType.CREDIT_CARD, "4111-1111-1111-1111")
    assert re.fullmatch(r"4\d{3}-\d{4}-\d{4}-\d{4}", out)
    assert luhn_valid(out.replace("-", ""))


def test_ip_addresses():
    s = _synth()
    assert ipaddress.ip_address(s.replace(PiiType.IP_ADDRESS, "192.168.1.100")).version == 4
    v6 = s.replace(PiiType.IP_ADDRESS, "2001:0db8:85a3:0000:0000:8a2e:0370:7334")
    assert ipaddress.ip_address(v6).version == 6
    assert [len(g) for g in v6.split(":")] == [4] * 8


def test_custom_keeps_character_classes():
    assert re.fullmatch(r"[A-Z]{3}-\d{6}", _synth().replace(PiiType.CUSTOM, "EMP-123456"))


# ── Pool-based ───────────────────────────────────────────────────────

def test_proper_noun_shapes():
    s = _synth()
    assert len(s.replace(PiiType.PROPER_NOUN, "Zelinski", "surname").split()) == 1
    assert len(s.replace(PiiType.PROPER_NOUN, "John Doe").split()) == 2
    assert s.replace(PiiType.PROPER_NOUN, "Initech Corp", "company").endswith(" Corp")
    assert s.replace(PiiType.PROPER_NOUN, "ZELINSKI").isupper()


def test_email_url_address_location():
    s = _synth()
    email = s.replace(PiiType.EMAIL, "john.doe@example.com")
    local, domain = email.split("@")
    assert local == local.lower() and "." in local
    assert domain.endswith(".com")

    url = s.replace(PiiType.URL, "https://www.acme.com/docs")
    assert url.startswith("https://www.") and url.endswith(".com/docs")

    parts = s.replace(PiiType.ADDRESS, "123 Main Street").split()
    assert re.fullmatch(r"\d{3}", parts[0])
    assert parts[-1] in STREET_SUFFIXES[0::2]
    parts = s.replace(PiiType.ADDRESS, "42 Elm St").split()
    assert re.fullmatch(r"\d{2}", parts[0])
    assert parts[-1] in STREET_SUFFIXES[1::2]

    assert s.replace(PiiType.LOCATION, "Bay Area").endswith(" Area")


def test_blackout():
    assert blackout("John Doe") == "████ ███"
    assert _synth(redaction_mode="blackout").replace(PiiType.EMAIL, "a@b.co") == "██████"
