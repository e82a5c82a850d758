"""Configuration for pii-surrogate.

A ``RedactorConfig`` is an immutable value handed to every component at
construction time.  It can be built directly, from a plain dict, or from a
YAML file (for embedding in a larger host config).

Example YAML:

    pii_surrogate:
      enabledTypes: [properNouns, emails, money, dates]
      properNounThreshold: 0.75
      magnitudeVariance: 30
      redactionMode: random         # or "blackout"
      nearbyPIIWindowSize: 50
      typePriorities:
        date: 95
      customPatterns:
        employee_id: "EMP-\\d{6}"
      seed: 1234

Both camelCase and snake_case keys are accepted.
"""

from __future__ import annotations
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from .errors import ConfigError, InvalidCustomPatternError
from .types import PiiType

if TYPE_CHECKING:
    from .lexicon import Lexicon
    from .redactor import Redactor


DEFAULT_TYPE_PRIORITIES: dict[PiiType, int] = {
    PiiType.DATE: 90,
    PiiType.EMAIL: 85,
    PiiType.PHONE: 80,
    PiiType.SSN: 80,
    PiiType.CREDIT_CARD: 80,
    PiiType.IP_ADDRESS: 80,
    PiiType.MONEY: 70,
    PiiType.QUANTITY: 60,
    PiiType.ADDRESS: 50,
    PiiType.URL: 40,
    PiiType.LOCATION: 30,
    PiiType.CUSTOM: 20,
    PiiType.PROPER_NOUN: 10,
}

# Location candidates come out of the detector at 0.90 / 0.95.
LOCATION_THRESHOLD = 0.9
PATTERN_THRESHOLD = 1.0

DEFAULT_ENABLED_TYPES = frozenset({PiiType.PROPER_NOUN, PiiType.MONEY, PiiType.QUANTITY})

# Elements whose text is never content.
DEFAULT_SKIP_TAGS = frozenset({
    "script", "style", "noscript", "iframe", "svg", "template", "head", "title",
    "label", "th", "dt", "button",
    "nav", "header", "footer", "aside",
})

REDACTION_MODES = ("random", "blackout")


@dataclass(frozen=True, slots=True)
class ScoringWeights:
    """Additive weights for the proper-noun signals."""
    capitalization: float = 0.30
    unknown_in_dictionary: float = 0.35
    honorific_or_title: float = 0.45
    not_sentence_start: float = 0.15
    near_other_pii: float = 0.25
    matches_email_domain: float = 0.30
    inside_link: float = 0.25
    known_location: float = 0.50
    appears_in_page_links: float = 0.30
    appears_in_header_footer: float = -0.50
    adjective_suffix: float = -0.50

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ScoringWeights:
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, float] = {}
        for raw_key, value in data.items():
            key = _snake(raw_key)
            if key not in known:
                raise ConfigError(f"unknown scoring weight: {raw_key!r}")
            kwargs[key] = float(value)
        return cls(**kwargs)


@dataclass(frozen=True, slots=True)
class RedactorConfig:
    """Options recognized by every stage of the pipeline."""
    enabled_types: frozenset[PiiType] = DEFAULT_ENABLED_TYPES
    proper_noun_threshold: float = 0.75
    magnitude_variance: int = 30            # percent, 0–100
    date_variance_days: int = 60
    redaction_mode: str = "random"
    nearby_pii_window: int = 50             # characters, 10–100
    type_priorities: Mapping[PiiType, int] = field(
        default_factory=lambda: dict(DEFAULT_TYPE_PRIORITIES))
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    custom_patterns: Mapping[str, str] = field(default_factory=dict)
    skip_tags: frozenset[str] = DEFAULT_SKIP_TAGS
    seed: int | None = None
    default_phone_region: str = "US"
    compiled_patterns: dict[str, re.Pattern] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "enabled_types",
                               frozenset(PiiType.parse(t) for t in self.enabled_types))
        except ValueError as e:
            raise ConfigError(str(e)) from e

        if not 0.0 <= self.proper_noun_threshold <= 1.0:
            raise ConfigError(
                f"proper_noun_threshold must be within [0, 1], got {self.proper_noun_threshold}")
        if not 0 <= self.magnitude_variance <= 100:
            raise ConfigError(
                f"magnitude_variance must be within [0, 100], got {self.magnitude_variance}")
        if self.date_variance_days < 1:
            raise ConfigError(f"date_variance_days must be positive, got {self.date_variance_days}")
        if self.redaction_mode not in REDACTION_MODES:
            raise ConfigError(
                f"redaction_mode must be one of {REDACTION_MODES}, got {self.redaction_mode!r}")
        if not 10 <= self.nearby_pii_window <= 100:
            raise ConfigError(
                f"nearby_pii_window must be within [10, 100], got {self.nearby_pii_window}")

        # Overrides are merged over the defaults; completeness is checked by the Redactor.
        priorities = dict(DEFAULT_TYPE_PRIORITIES)
        for t, p in self.type_priorities.items():
            priorities[PiiType.parse(t)] = int(p)
        object.__setattr__(self, "type_priorities", priorities)

        object.__setattr__(self, "skip_tags", frozenset(t.lower() for t in self.skip_tags))

        compiled: dict[str, re.Pattern] = {}
        for name, pattern in self.custom_patterns.items():
            try:
                compiled[name] = re.compile(pattern)
            except re.error as e:
                raise InvalidCustomPatternError(name, pattern, str(e)) from e
            if compiled[name].match(""):
                raise InvalidCustomPatternError(name, pattern, "pattern matches the empty string")
        object.__setattr__(self, "compiled_patterns", compiled)

    def threshold_for(self, pii_type: PiiType) -> float:
        if pii_type is PiiType.PROPER_NOUN:
            return self.proper_noun_threshold
        if pii_type is PiiType.LOCATION:
            return LOCATION_THRESHOLD
        return PATTERN_THRESHOLD

    def priority_of(self, pii_type: PiiType) -> int:
        return self.type_priorities[pii_type]


# ── Loading ───────────────────────────────────────────────────────

_KEY_ALIASES = {
    "nearby_pii_window_size": "nearby_pii_window",
    "minimum_score": "proper_noun_threshold",
    "custom_regex": "custom_patterns",
}


def _snake(key: str) -> str:
    key = re.sub(r"PII", "Pii", key)
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", key).lower()


def _parse_types(values: Iterable[str] | Mapping[str, bool]) -> frozenset[PiiType]:
    # Host settings store enabled types as {"emails": true, "phones": false, ...}
    if isinstance(values, Mapping):
        values = [name for name, on in values.items() if on]
    try:
        return frozenset(PiiType.parse(v) for v in values)
    except ValueError as e:
        raise ConfigError(str(e)) from e


def load_config(data: Mapping[str, Any]) -> RedactorConfig:
    """Build a RedactorConfig from a config dict (from YAML or inline)."""
    # Support nested under "pii_surrogate" key or flat
    if "pii_surrogate" in data:
        data = data["pii_surrogate"] or {}

    known = {f.name for f in fields(RedactorConfig) if f.init}
    kwargs: dict[str, Any] = {}
    for raw_key, value in data.items():
        key = _snake(raw_key)
        key = _KEY_ALIASES.get(key, key)
        if key not in known:
            raise ConfigError(f"unknown option: {raw_key!r}")
        kwargs[key] = value

    if "enabled_types" in kwargs:
        kwargs["enabled_types"] = _parse_types(kwargs["enabled_types"])
    if "weights" in kwargs and not isinstance(kwargs["weights"], ScoringWeights):
        kwargs["weights"] = ScoringWeights.from_dict(kwargs["weights"])
    if "skip_tags" in kwargs:
        kwargs["skip_tags"] = frozenset(kwargs["skip_tags"])
    if "type_priorities" in kwargs:
        try:
            kwargs["type_priorities"] = {
                PiiType.parse(k): v for k, v in kwargs["type_priorities"].items()
            }
        except ValueError as e:
            raise ConfigError(str(e)) from e
    return RedactorConfig(**kwargs)


def load_from_yaml(path: str | Path) -> RedactorConfig:
    """Load config from a YAML file."""
    import yaml
    with open(path, encoding="utf-8") as f:
        return load_config(yaml.safe_load(f) or {})


def create_redactor(
    config: RedactorConfig | Mapping[str, Any] | None = None,
    lexicon: Lexicon | None = None,
) -> Redactor:
    """Create a fully configured Redactor from a config value or dict."""
    from .redactor import Redactor

    if config is not None and not isinstance(config, RedactorConfig):
        config = load_config(config)
    return Redactor(config, lexicon=lexicon)
