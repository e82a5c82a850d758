"""Document tree → ordered TextSegments with back-references to source nodes."""

from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import Iterable

from .config import DEFAULT_SKIP_TAGS
from .document import TextSurface
from .types import SourceRef, TextSegment

logger = logging.getLogger(__name__)

# Elements that flow inside a line of text.  Any other enclosing element
# starts a new segment.
INLINE_TAGS = frozenset({
    "a", "abbr", "b", "bdi", "bdo", "cite", "code", "data", "del", "dfn", "em",
    "font", "i", "ins", "kbd", "mark", "q", "s", "samp", "small", "span",
    "strong", "sub", "sup", "time", "u", "var",
})

SKIP_ROLES = frozenset({"label", "button", "navigation", "banner"})
_CHROME_TAGS = frozenset({"header", "footer", "nav"})
_CHROME_ROLES = frozenset({"banner", "navigation", "contentinfo"})
_HIDDEN_STYLE = re.compile(r"display\s*:\s*none|visibility\s*:\s*hidden", re.IGNORECASE)
_WORD = re.compile(r"[A-Za-z][A-Za-z'’\-]*")


@dataclass(slots=True)
class PageContext:
    """Page-wide word sets, computed once per pass."""
    words_in_links: set[str] = field(default_factory=set)
    words_in_headers_footers: set[str] = field(default_factory=set)

    def add_link_text(self, text: str) -> None:
        self.words_in_links.update(w.lower() for w in _WORD.findall(text))

    def add_chrome_text(self, text: str) -> None:
        self.words_in_headers_footers.update(w.lower() for w in _WORD.findall(text))


class TextLinearizer:
    """Walks a TextSurface and groups adjacent inline text into segments."""

    def __init__(self, skip_tags: Iterable[str] = DEFAULT_SKIP_TAGS) -> None:
        self.skip_tags = frozenset(t.lower() for t in skip_tags)

    def _is_skipped(self, doc: TextSurface, element: int) -> bool:
        if doc.tag_of(element) in self.skip_tags:
            return True
        attrs = doc.attrs_of(element)
        if attrs.get("role", "").lower() in SKIP_ROLES:
            return True
        if "hidden" in attrs or attrs.get("aria-hidden", "").lower() == "true":
            return True
        return bool(_HIDDEN_STYLE.search(attrs.get("style", "")))

    def _is_chrome(self, doc: TextSurface, element: int) -> bool:
        return (doc.tag_of(element) in _CHROME_TAGS
                or doc.attrs_of(element).get("role", "").lower() in _CHROME_ROLES)

    def linearize(self, doc: TextSurface) -> tuple[list[TextSegment], PageContext]:
        """Return the content segments of ``doc`` and its page-wide context."""
        segments: list[TextSegment] = []
        page = PageContext()

        run_text: list[str] = []
        run_refs: list[SourceRef] = []
        run_block: int | None = None
        offset = 0

        def flush() -> None:
            nonlocal run_text, run_refs, offset
            text = "".join(run_text)
            if text.strip():
                segments.append(TextSegment(id=len(segments), text=text, source_refs=tuple(run_refs)))
            run_text, run_refs, offset = [], [], 0

        for node in doc.text_nodes():
            text = doc.get_text(node)
            if not text:
                continue
            chain = doc.ancestors(node)
            inside_link = any(doc.tag_of(el) == "a" for el in chain)

            if inside_link:
                page.add_link_text(text)
            if any(self._is_chrome(doc, el) for el in chain):
                page.add_chrome_text(text)
            if any(self._is_skipped(doc, el) for el in chain):
                continue

            # Nearest non-inline ancestor; a node with no element ancestor is its own block.
            block = next((el for el in chain if doc.tag_of(el) not in INLINE_TAGS), None)
            block_key = block if block is not None else -1 - node
            if block_key != run_block or doc.starts_new_run(node):
                flush()
                run_block = block_key

            run_refs.append(SourceRef(node=node, start=offset, end=offset + len(text),
                                      inside_link=inside_link))
            run_text.append(text)
            offset += len(text)
        flush()

        logger.debug("linearized %d segments (%d link words, %d header/footer words)",
                     len(segments), len(page.words_in_links), len(page.words_in_headers_footers))
        return segments, page
