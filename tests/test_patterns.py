"""Tests for the pattern detectors."""

import re
import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from pii_surrogate.lexicon import Lexicon, default_lexicon
from pii_surrogate.patterns import detect, detect_location, luhn_valid, phone_valid
from pii_surrogate.types import PiiType


def _values(text, pii_type, **kw):
    return [m.value for m in detect(text, pii_type, **kw)]


# ── Contact details ──────────────────────────────────────────────────

def test_email_detection():
    matches = detect("Contact me at alice@example.com please", PiiType.EMAIL)
    assert len(matches) == 1
    assert matches[0].value == "alice@example.com"
    assert matches[0].confidence == 1.0


def test_phone_detection_validates_number():
    assert _values("Call 650-253-0000 today", PiiType.PHONE) == ["650-253-0000"]
    assert _values("Or +1 202-456-1111", PiiType.PHONE) == ["+1 202-456-1111"]


def test_phone_with_impossible_area_code_is_dropped():
    assert _values("Ref 123-456-7890", PiiType.PHONE) == []
    assert not phone_valid("123-456-7890")


def test_url_detection():
    assert _values("Docs at https://www.acme.com/docs, or www.globex.io.", PiiType.URL) == [
        "https://www.acme.com/docs",
        "www.globex.io",
    ]


def test_ip_detection():
    assert _values("Server at 192.168.1.100", PiiType.IP_ADDRESS) == ["192.168.1.100"]
    assert _values("Not an IP: 999.1.1.1", PiiType.IP_ADDRESS) == []
    full_v6 = "2001:0db8:85a3:0000:0000:8a2e:0370:7334"
    assert _values(f"v6 {full_v6}", PiiType.IP_ADDRESS) == [full_v6]


# ── Identifiers ──────────────────────────────────────────────────────

def test_ssn_detection():
    matches = detect("SSN: 123-45-6789", PiiType.SSN)
    assert [m.value for m in matches] == ["123-45-6789"]
    assert matches[0].metadata["separator"] == "-"


def test_credit_card_requires_luhn():
    assert _values("Card: 4111-1111-1111-1111", PiiType.CREDIT_CARD) == ["4111-1111-1111-1111"]
    assert _values("Card: 4111-1111-1111-1112", PiiType.CREDIT_CARD) == []


def test_luhn():
    assert luhn_valid("4111111111111111")
    assert luhn_valid("79927398713")
    assert not luhn_valid("79927398710")


# ── Money / quantity ─────────────────────────────────────────────────

def test_money_metadata():
    [m] = detect("Total due: $1,199.99", PiiType.MONEY)
    assert m.value == "$1,199.99"
    assert m.metadata["numeric_value"] == 1199.99
    assert m.metadata["currency"] == "$"
    assert m.metadata["symbol_position"] == "prefix"
    assert m.metadata["has_commas"] is True
    assert m.metadata["decimal_places"] == 2


def test_money_without_commas_is_one_match():
    assert _values("It was $1199.99 in total", PiiType.MONEY) == ["$1199.99"]


def test_money_currency_code_suffix():
    [m] = detect("Budget of 500 USD", PiiType.MONEY)
    assert m.value == "500 USD"
    assert m.metadata["currency"] == "USD"
    assert m.metadata["symbol_position"] == "suffix"
    assert m.metadata["decimal_places"] == 0


def test_money_tolerates_whitespace_from_split_nodes():
    [m] = detect("$ 1,199 . 99", PiiType.MONEY)
    assert m.value == "$ 1,199 . 99"
    assert m.metadata["numeric_value"] == 1199.99


def test_quantity_does_not_take_cents_of_an_amount():
    values = _values("$1,199.99", PiiType.QUANTITY)
    assert "99" not in values


def test_quantity_units_and_prefix():
    [m] = detect("Shipped 12 items", PiiType.QUANTITY)
    assert m.value == "12 items"
    assert m.metadata["unit"] == "items"
    assert m.metadata["numeric_value"] == 12

    [m] = detect("Quantity: 3", PiiType.QUANTITY)
    assert m.metadata["prefix"].lower().startswith("quantity")


def test_quantity_skips_identifiers_and_paths():
    assert "42" not in _values("see example.com/page/42 or ticket #42", PiiType.QUANTITY)


# ── Dates ────────────────────────────────────────────────────────────

def test_date_formats():
    assert _values("Due Jan 17, 2026.", PiiType.DATE) == ["Jan 17, 2026"]
    assert _values("ISO 2024-03-05", PiiType.DATE) == ["2024-03-05"]
    assert _values("US 3/5/2024", PiiType.DATE) == ["3/5/2024"]
    assert _values("Founded in 1999", PiiType.DATE) == ["1999"]
    assert _values("Since March", PiiType.DATE) == ["March"]


def test_year_inside_an_amount_is_not_a_date():
    assert _values("Paid $2019.50", PiiType.DATE) == []


def test_year_inside_a_digit_group_is_not_a_date():
    assert _values("Call 650-253-2019 now", PiiType.DATE) == []
    assert _values("SSN 123-45-1987 on file", PiiType.DATE) == []
    assert _values("Card 4111 1111 1111 2019", PiiType.DATE) == []
    assert _values("Call 650.253.2019", PiiType.DATE) == []
    assert _values("Since 2019 - closed", PiiType.DATE) == ["2019"]


# ── Addresses / locations ───────────────────────────────────────────

def test_address_detection():
    assert _values("I live at 123 Main Street now", PiiType.ADDRESS) == ["123 Main Street"]


def test_location_keyword_pattern():
    [m] = detect_location("Offices across the Bay Area", default_lexicon())
    assert m.value == "Bay Area"
    assert m.confidence == 0.90


def test_location_gazetteer_with_word_fallback():
    lexicon = default_lexicon()
    assert [(m.value, m.confidence) for m in detect_location("Paris and Tokyo", lexicon)] == [
        ("Paris", 0.95), ("Tokyo", 0.95),
    ]
    assert [m.value for m in detect_location("We met In California", lexicon)] == ["California"]
    assert [m.value for m in detect_location("Visit New York City", lexicon)] == ["New York"]


def test_location_pattern_claims_first():
    lexicon = Lexicon(locations=frozenset({"monterey", "monterey bay"}))
    matches = detect_location("Kayaking in Monterey Bay", lexicon)
    assert [(m.value, m.metadata["source"]) for m in matches] == [("Monterey Bay", "pattern")]


def test_location_without_gazetteer_only_uses_pattern():
    assert detect_location("Paris and Tokyo", Lexicon()) == []


# ── Custom ───────────────────────────────────────────────────────────

def test_custom_pattern():
    patterns = {"employee_id": re.compile(r"EMP-\d{6}")}
    [m] = detect("Badge EMP-123456 issued", PiiType.CUSTOM, custom=patterns)
    assert m.value == "EMP-123456"
    assert m.metadata["pattern"] == "employee_id"
