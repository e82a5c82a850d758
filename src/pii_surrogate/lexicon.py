"""Static word lists: common English words, a place-name gazetteer, countries.

The lists ship as plain text under ``pii_surrogate/data``; a host may point
at its own files instead.  A list that cannot be read leaves its attribute as
``None`` and the scorer treats the signal it feeds as absent.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from importlib import resources
from pathlib import Path

logger = logging.getLogger(__name__)

_BUNDLED = {
    "common_words": "common_words.txt",
    "locations": "locations.txt",
    "countries": "countries.txt",
}


def _read_word_list(path: str | Path | None, bundled: str) -> frozenset[str] | None:
    try:
        if path is None:
            text = resources.files("pii_surrogate").joinpath("data").joinpath(bundled).read_text("utf-8")
        else:
            text = Path(path).read_text("utf-8")
    except OSError as e:
        logger.warning("word list %s unavailable: %s", path or bundled, e)
        return None
    words = set()
    for line in text.splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            words.add(line.lower())
    return frozenset(words)


@dataclass(frozen=True, slots=True)
class Lexicon:
    common_words: frozenset[str] | None = None
    locations: frozenset[str] | None = None
    countries: frozenset[str] | None = field(default=None)

    @classmethod
    def load(
        cls,
        common_words: str | Path | None = None,
        locations: str | Path | None = None,
        countries: str | Path | None = None,
    ) -> Lexicon:
        """Load the bundled lists, or the given files in their place."""
        return cls(
            common_words=_read_word_list(common_words, _BUNDLED["common_words"]),
            locations=_read_word_list(locations, _BUNDLED["locations"]),
            countries=_read_word_list(countries, _BUNDLED["countries"]),
        )

    @property
    def gaps(self) -> list[str]:
        """Names of the lists that failed to load."""
        return [name for name in _BUNDLED if getattr(self, name) is None]

    def is_common(self, word: str) -> bool | None:
        """True/False when known, None when no dictionary is loaded."""
        if self.common_words is None:
            return None
        w = word.lower().replace("’", "'")
        if w in self.common_words:
            return True
        if w.endswith("'s") and w[:-2] in self.common_words:
            return True
        # Plural of a common noun ("Receipts")
        return len(w) > 3 and w.endswith("s") and w[:-1] in self.common_words

    def is_location(self, phrase: str) -> bool:
        if self.locations is None and self.countries is None:
            return False
        p = " ".join(phrase.lower().split())
        return p in (self.locations or ()) or p in (self.countries or ())

    def is_country(self, phrase: str) -> bool:
        return self.countries is not None and " ".join(phrase.lower().split()) in self.countries


@lru_cache(maxsize=1)
def default_lexicon() -> Lexicon:
    return Lexicon.load()
