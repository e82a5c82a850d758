"""ConsistencyCache — one replacement per entity key for the whole session.

Design goals:
  - Deterministic: the same (type, normalized text) always maps to the same value
  - Fast: dict lookups only, no scanning
  - Linked: related entities (company ↔ domain, person ↔ email) get values
    derived from each other so the fake document stays self-consistent
"""

from __future__ import annotations
import logging
import re
from collections import defaultdict
from typing import Iterable

from .propernouns import LEGAL_SUFFIX_RE
from .types import Entity, EntityKey, PiiType, normalize

logger = logging.getLogger(__name__)

DERIVED_EMAIL_DOMAIN = "example.com"

_URL_HOST_RE = re.compile(r"^(?P<scheme>https?://)?(?P<host>[^/?#:\s]+)(?P<rest>.*)$", re.IGNORECASE)
_LOCAL_TOKEN_RE = re.compile(r"[._+\-\d]+")


# ------------------------------------------------------------------
# Transforms
# ------------------------------------------------------------------

def split_url_host(url: str) -> tuple[str, str, str]:
    """``https://www.acme.com/x`` → (``https://``, ``www.acme.com``, ``/x``)."""
    m = _URL_HOST_RE.match(url.strip())
    if m is None:
        return "", url, ""
    return m.group("scheme") or "", m.group("host"), m.group("rest")


def domain_base(url: str) -> str:
    """The registrable label of a URL's host: ``www.acme-corp.co`` → ``acme-corp``."""
    host = split_url_host(url)[1].lower()
    labels = [l for l in host.split(".") if l]
    if labels and labels[0] == "www":
        labels = labels[1:]
    if len(labels) >= 2:
        return labels[-2]
    return labels[0] if labels else host


def replace_domain_base(url: str, new_base: str) -> str:
    scheme, host, rest = split_url_host(url)
    labels = host.split(".")
    idx = len(labels) - 2 if len(labels) >= 2 else 0
    labels[idx] = new_base
    return f"{scheme}{'.'.join(labels)}{rest}"


def company_to_domain(company: str) -> str:
    """Strip the legal suffix, lowercase, drop everything that is not a letter or digit."""
    base = LEGAL_SUFFIX_RE.sub("", company)
    return re.sub(r"[^a-z0-9]", "", base.lower()) or "company"


def domain_to_company(url: str) -> str:
    """Strip scheme, www and TLD; hyphens become word breaks; title-case."""
    return " ".join(part.capitalize() for part in domain_base(url).split("-") if part)


def email_local_tokens(email: str) -> list[str]:
    local = email.split("@", 1)[0].lower()
    return [t for t in _LOCAL_TOKEN_RE.split(local) if t]


def email_to_person(email: str) -> str:
    return " ".join(t.capitalize() for t in re.split(r"[._]", email.split("@", 1)[0]) if t)


def person_to_email(*names: str, domain: str = DERIVED_EMAIL_DOMAIN) -> str:
    parts = []
    for name in names:
        for word in name.lower().split():
            word = re.sub(r"[^a-z0-9]", "", word)
            if word:
                parts.append(word)
    return f"{'.'.join(parts) or 'user'}@{domain}"


def are_similar(a: str, b: str) -> bool:
    """Equal, one contains the other, or >70% of the shorter string's characters appear in the longer."""
    a, b = a.lower(), b.lower()
    if not a or not b:
        return False
    if a == b or a in b or b in a:
        return True
    shorter, longer = sorted((a, b), key=len)
    pool = list(longer)
    overlap = 0
    for ch in shorter:
        if ch in pool:
            pool.remove(ch)
            overlap += 1
    return overlap / len(shorter) > 0.7


def is_company_like(entity: Entity) -> bool:
    return entity.context == "company" or bool(LEGAL_SUFFIX_RE.search(entity.original))


class ConsistencyCache:
    """Session-scoped (type, normalized text) → replacement store with links."""

    __slots__ = ("_values", "_derived", "_links", "_originals")

    def __init__(self) -> None:
        self._values: dict[EntityKey, str] = {}
        self._derived: set[EntityKey] = set()         # values produced by propagation
        self._links: dict[EntityKey, set[EntityKey]] = defaultdict(set)
        self._originals: dict[EntityKey, str] = {}    # surface text, for transforms

    @staticmethod
    def key(pii_type: PiiType, text: str) -> EntityKey:
        return (PiiType.parse(pii_type), normalize(text))

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    def has(self, pii_type: PiiType, text: str) -> bool:
        return self.key(pii_type, text) in self._values

    def get(self, pii_type: PiiType, text: str) -> str | None:
        return self._values.get(self.key(pii_type, text))

    def set(self, pii_type: PiiType, text: str, value: str) -> None:
        key = self.key(pii_type, text)
        self._values[key] = value
        self._derived.discard(key)
        self._originals.setdefault(key, text)

    def is_derived(self, pii_type: PiiType, text: str) -> bool:
        return self.key(pii_type, text) in self._derived

    def values(self) -> set[str]:
        return set(self._values.values())

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def link_related(self, a: Entity, b: Entity) -> None:
        if a.key == b.key:
            return
        self._links[a.key].add(b.key)
        self._links[b.key].add(a.key)
        self._originals.setdefault(a.key, a.original)
        self._originals.setdefault(b.key, b.original)

    def get_related(self, pii_type: PiiType, text: str) -> set[EntityKey]:
        return set(self._links.get(self.key(pii_type, text), ()))

    def auto_link_related(self, entities: Iterable[Entity]) -> int:
        """Link company names to similar URLs and person names to emails that contain them."""
        entities = list(entities)
        names = [e for e in entities if e.type is PiiType.PROPER_NOUN]
        urls = [e for e in entities if e.type is PiiType.URL]
        emails = [e for e in entities if e.type is PiiType.EMAIL]

        linked = 0
        for name in names:
            if is_company_like(name):
                slug = company_to_domain(name.original)
                for url in urls:
                    if are_similar(slug, domain_base(url.original)):
                        self.link_related(name, url)
                        linked += 1
            else:
                token = name.normalized_text
                if len(token) < 2:
                    continue
                for email in emails:
                    if token in email_local_tokens(email.original):
                        self.link_related(name, email)
                        linked += 1
        if linked:
            logger.debug("auto-linked %d entity pairs", linked)
        return linked

    # ------------------------------------------------------------------
    # Propagation
    # ------------------------------------------------------------------

    def propagate_to_related(self, pii_type: PiiType, text: str, replacement: str) -> list[EntityKey]:
        """Derive values for linked keys that were not assigned directly.  Returns the keys written."""
        source = self.key(pii_type, text)
        written: list[EntityKey] = []
        for target in sorted(self._links.get(source, ()), key=lambda k: (k[0].value, k[1])):
            if target in self._values and target not in self._derived:
                continue
            value = self._derive(source, replacement, target)
            if value is None:
                continue
            self._values[target] = value
            self._derived.add(target)
            written.append(target)
        return written

    def _derive(self, source: EntityKey, replacement: str, target: EntityKey) -> str | None:
        src_type, tgt_type = source[0], target[0]
        original = self._originals.get(target, target[1])

        if src_type is PiiType.PROPER_NOUN and tgt_type is PiiType.URL:
            return replace_domain_base(original, company_to_domain(replacement))

        if src_type is PiiType.URL and tgt_type is PiiType.PROPER_NOUN:
            return domain_to_company(replacement)

        if src_type is PiiType.PROPER_NOUN and tgt_type is PiiType.EMAIL:
            return self._compose_email(target)

        if src_type is PiiType.EMAIL and tgt_type is PiiType.PROPER_NOUN:
            names = self._linked_names_in_order(source)
            parts = email_to_person(replacement).split()
            if target in names and len(parts) == len(names):
                return parts[names.index(target)]
            return " ".join(parts) or None

        return None

    def _linked_names_in_order(self, email_key: EntityKey) -> list[EntityKey]:
        """Proper nouns linked to an email, ordered by where they appear in its local part."""
        local = self._originals.get(email_key, email_key[1]).split("@", 1)[0].lower()
        names = [k for k in self._links.get(email_key, ()) if k[0] is PiiType.PROPER_NOUN]
        return sorted(names, key=lambda k: (local.find(k[1]), k[1]))

    def _compose_email(self, email_key: EntityKey) -> str | None:
        names = [k for k in self._linked_names_in_order(email_key) if k in self._values]
        if not names:
            return None
        return person_to_email(*(self._values[k] for k in names))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        return len(self._values)

    def export(self) -> dict[str, str]:
        """Return a copy of the key→replacement mapping (for debugging)."""
        return {f"{t.value}:{text}": v for (t, text), v in self._values.items()}

    def clear(self) -> None:
        self._values.clear()
        self._derived.clear()
        self._links.clear()
        self._originals.clear()
