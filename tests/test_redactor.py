"""Tests for the redactor pipeline: protect, restore, explain, config and CLI."""

import io
import json
import re
import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from pii_surrogate import (
    ConfigError,
    FatalInitializationError,
    HtmlDocument,
    InvalidCustomPatternError,
    Lexicon,
    PiiType,
    PlainTextDocument,
    RedactionSession,
    Redactor,
    RedactorConfig,
    create_redactor,
    load_config,
    load_from_yaml,
)
from pii_surrogate.cli import main
from pii_surrogate.consistency import person_to_email


def _redactor(**kw):
    kw.setdefault("seed", 11)
    return Redactor(RedactorConfig(**kw))


def _replacements(result):
    return {e.original: e.replacement for e in result.entities}


# ── Scenarios ────────────────────────────────────────────────────────

def test_names_and_email_stay_consistent():
    r = _redactor(enabled_types={"properNouns", "emails"})
    out = r.redact_text("Contact John Doe at john.doe@example.com")
    repl = _replacements(out.result)
    assert set(repl) == {"John", "Doe", "john.doe@example.com"}
    assert repl["john.doe@example.com"] == person_to_email(repl["John"], repl["Doe"])
    assert out.text == f"Contact {repl['John']} {repl['Doe']} at {repl['john.doe@example.com']}"
    assert out.result.applied_count == 3
    assert out.result.skipped_count == 0


def test_money_keeps_shape_and_session_ratio():
    r = _redactor(enabled_types={"money"}, magnitude_variance=30)
    out = r.redact_text("$1,199.99 and $500.00")
    first, second = out.text.split(" and ")
    assert re.fullmatch(r"\$\d{1,3}(,\d{3})*\.\d{2}", first)
    assert first != "$1,199.99"
    m = out.session.synthesizer.multiplier
    assert abs(float(first[1:].replace(",", "")) - 1199.99 * m) <= 0.006
    assert abs(float(second[1:]) - 500.00 * m) <= 0.006


def test_date_wins_over_overlapping_proper_noun():
    r = _redactor(enabled_types={"dates", "properNouns"})
    out = r.redact_text("Jan 17, 2026")
    assert [e.type for e in out.result.entities] == [PiiType.DATE]
    assert re.fullmatch(r"[A-Z][a-z]{2} \d{1,2}, \d{4}", out.text)
    assert out.text != "Jan 17, 2026"


def test_numbers_ending_in_a_year_are_fully_replaced():
    out = _redactor(enabled_types={"phones"}).redact_text("Call 650-253-2019 now")
    assert [e.type for e in out.result.entities] == [PiiType.PHONE]
    assert "650-253-" not in out.text

    out = _redactor(enabled_types={"phones", "dates"}).redact_text("Call 650-253-2019 now")
    assert [e.type for e in out.result.entities] == [PiiType.PHONE]
    assert "650-253-" not in out.text

    out = _redactor(enabled_types={"ssns"}).redact_text("SSN 123-45-1987 on file")
    assert [e.type for e in out.result.entities] == [PiiType.SSN]
    assert "123-45-1987" not in out.text


def test_common_business_words_are_not_protected():
    out = _redactor().redact_text("Average Receipt Value")
    assert out.result.entities == []
    assert out.text == "Average Receipt Value"


def test_restore_is_exact():
    r = _redactor(enabled_types={"locations"})
    text = "Paris  and\tTokyo\n"
    session = RedactionSession(PlainTextDocument(text))
    result = r.protect(session)
    assert {e.original for e in result.entities} == {"Paris", "Tokyo"}
    assert session.document.render() != text
    assert r.restore(session) == 1
    assert session.document.render() == text


# ── Pipeline behavior ────────────────────────────────────────────────

def test_threshold_is_inclusive():
    text = "I met Zelinski, then Zelinski left."
    out = _redactor(proper_noun_threshold=0.8).redact_text(text)
    [entity] = out.result.entities
    assert entity.confidence == 0.8
    value = entity.replacement
    assert out.text == f"I met {value}, then {value} left."

    out = _redactor(proper_noun_threshold=0.81).redact_text(text)
    assert out.result.entities == []
    assert out.text == text


def test_protect_twice_is_ignored():
    r = _redactor(enabled_types={"emails"})
    session = RedactionSession(PlainTextDocument("mail a.b@example.com"))
    r.protect(session)
    once = session.document.render()
    again = r.protect(session)
    assert again.status == "already_protected"
    assert session.document.render() == once
    r.restore(session)
    assert r.protect(session).status == "protected"


def test_html_cross_node_amount_and_restore():
    html = ("<html><body><p>Total: <span>$</span><span>1,199</span><span>.</span><span>99</span></p>"
            "<script>var owner = 'John';</script></body></html>")
    doc = HtmlDocument(html)
    before = doc.render()
    r = _redactor(enabled_types={"money"})
    session = RedactionSession(doc)
    result = r.protect(session)
    assert result.applied_count == 1
    assert re.fullmatch(r"Total: \$\d{1,3}(,\d{3})*\.\d{2}", doc.soup.p.get_text())
    assert "var owner = 'John';" in doc.render()
    r.restore(session)
    assert doc.render() == before


def test_enabled_types_override_per_call():
    r = _redactor(enabled_types={"emails", "phones"})
    session = RedactionSession(PlainTextDocument("Reach a.b@example.com or 650-253-0000"))
    result = r.protect(session, ["phones"])
    assert [e.type for e in result.entities] == [PiiType.PHONE]
    assert "a.b@example.com" in session.document.render()


def test_blackout_mode():
    out = _redactor(enabled_types={"emails"}, redaction_mode="blackout").redact_text(
        "Contact John Doe at john.doe@example.com")
    assert out.text == "Contact John Doe at " + "█" * len("john.doe@example.com")


def test_custom_pattern_end_to_end():
    r = _redactor(enabled_types={"customRegex"}, custom_patterns={"employee_id": r"EMP-\d{6}"})
    out = r.redact_text("Badge EMP-123456 issued")
    assert re.fullmatch(r"Badge [A-Z]{3}-\d{6} issued", out.text)
    assert out.text != "Badge EMP-123456 issued"


def test_explain_lists_sub_threshold_candidates():
    candidates = _redactor().explain("Average Receipt Value")
    assert [c.text for c in candidates] == ["Average", "Receipt", "Value"]
    d = candidates[0].to_dict()
    assert d["will_be_protected"] is False
    assert d["type"] == "properNoun"
    assert d["breakdown"] == {"capitalizationPattern": 0.3}


def test_missing_word_list_is_reported():
    lexicon = Lexicon(locations=frozenset({"paris"}), countries=frozenset())
    r = Redactor(RedactorConfig(seed=1), lexicon=lexicon)
    assert len(r.warnings) == 1 and "common_words" in r.warnings[0]
    assert r.redact_text("Meeting at noon").result.warnings == r.warnings


# ── Initialization ───────────────────────────────────────────────────

def test_incomplete_priority_table_is_fatal():
    config = RedactorConfig()
    object.__setattr__(config, "type_priorities", {PiiType.DATE: 90})
    with pytest.raises(FatalInitializationError):
        Redactor(config)


def test_missing_pools_are_fatal(monkeypatch):
    import pii_surrogate.synthesizer as synthesizer
    monkeypatch.setattr(synthesizer, "Faker", lambda locale: object())
    with pytest.raises(FatalInitializationError):
        Redactor(RedactorConfig())


# ── Config ───────────────────────────────────────────────────────────

def test_config_validation():
    with pytest.raises(ConfigError):
        RedactorConfig(proper_noun_threshold=1.5)
    with pytest.raises(ConfigError):
        RedactorConfig(nearby_pii_window=5)
    with pytest.raises(ConfigError):
        RedactorConfig(redaction_mode="scramble")
    with pytest.raises(ConfigError):
        RedactorConfig(enabled_types={"passports"})


def test_invalid_custom_patterns():
    with pytest.raises(InvalidCustomPatternError):
        RedactorConfig(custom_patterns={"broken": "EMP-("})
    with pytest.raises(InvalidCustomPatternError):
        RedactorConfig(custom_patterns={"empty": r"\d*"})


def test_load_config_accepts_host_settings():
    config = load_config({"pii_surrogate": {
        "enabledTypes": {"emails": True, "phones": False, "dates": True},
        "properNounThreshold": 0.6,
        "nearbyPIIWindowSize": 40,
        "typePriorities": {"quantities": 95},
    }})
    assert config.enabled_types == {PiiType.EMAIL, PiiType.DATE}
    assert config.proper_noun_threshold == 0.6
    assert config.nearby_pii_window == 40
    assert config.priority_of(PiiType.QUANTITY) == 95
    assert config.priority_of(PiiType.DATE) == 90
    with pytest.raises(ConfigError):
        load_config({"colour": "blue"})


def test_load_from_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "pii_surrogate:\n"
        "  enabledTypes: [emails, money]\n"
        "  magnitudeVariance: 10\n"
        "  seed: 3\n",
        encoding="utf-8",
    )
    config = load_from_yaml(path)
    assert config.enabled_types == {PiiType.EMAIL, PiiType.MONEY}
    assert config.magnitude_variance == 10
    assert config.seed == 3


def test_create_redactor_from_dict():
    r = create_redactor({"enabledTypes": ["emails"], "seed": 5})
    assert r.config.enabled_types == {PiiType.EMAIL}


# ── CLI ──────────────────────────────────────────────────────────────

@pytest.fixture
def cli(monkeypatch):
    # Keep the root logger free of handlers bound to captured streams.
    monkeypatch.setattr("pii_surrogate.cli.setup_logging", lambda verbose=False: None)
    return main


def test_cli_redact_text(cli, monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO("Write to a.b@example.com"))
    assert cli(["--types", "emails", "--seed", "3", "redact-text"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert "a.b@example.com" not in out["text"]
    assert out["status"] == "protected"
    assert out["applied_count"] == 1


def test_cli_explain(cli, monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO("Average Receipt Value"))
    assert cli(["explain"]) == 0
    rows = json.loads(capsys.readouterr().out)
    assert [row["text"] for row in rows] == ["Average", "Receipt", "Value"]


def test_cli_rejects_bad_config(cli, monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO(""))
    assert cli(["--threshold", "2", "explain"]) == 2
    assert "proper_noun_threshold" in capsys.readouterr().err
