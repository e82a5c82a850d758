"""Document surfaces the pipeline can read from and write back to.

The core never touches a document API directly.  It sees opaque integer
handles for text-bearing nodes and for elements, and reads/writes node text
through the ``TextSurface`` protocol.  Two surfaces ship with the package:

  - ``PlainTextDocument``: paragraphs of a plain string
  - ``HtmlDocument``: a BeautifulSoup tree, including text-like form inputs
"""

from __future__ import annotations
import re
from typing import Mapping, Protocol, runtime_checkable

from bs4 import BeautifulSoup, NavigableString, Tag


@runtime_checkable
class TextSurface(Protocol):
    """What the linearizer and mutation engine need from a document."""

    def text_nodes(self) -> list[int]:
        """Handles of every text-bearing node, in document order."""

    def get_text(self, node: int) -> str: ...

    def set_text(self, node: int, text: str) -> None: ...

    def ancestors(self, node: int) -> list[int]:
        """Element handles from the nearest enclosing element outward."""

    def tag_of(self, element: int) -> str: ...

    def attrs_of(self, element: int) -> Mapping[str, str]: ...

    def descendant_text_nodes(self, element: int) -> list[int]: ...

    def starts_new_run(self, node: int) -> bool:
        """True when something non-textual (a line break) separates this node from the previous one."""

    def render(self) -> str: ...


# ── Plain text ────────────────────────────────────────────────────

_PARAGRAPH_BREAK = re.compile(r"(\n[ \t]*\n\s*)")


class PlainTextDocument:
    """A plain string split into paragraphs; each paragraph is one text node.

    Paragraph breaks are kept verbatim so ``render()`` reproduces the input
    exactly when nothing has been replaced.
    """

    def __init__(self, text: str) -> None:
        parts = _PARAGRAPH_BREAK.split(text)
        self._paragraphs: list[str] = parts[0::2]
        self._breaks: list[str] = parts[1::2]

    def text_nodes(self) -> list[int]:
        return list(range(len(self._paragraphs)))

    def get_text(self, node: int) -> str:
        return self._paragraphs[node]

    def set_text(self, node: int, text: str) -> None:
        self._paragraphs[node] = text

    def ancestors(self, node: int) -> list[int]:
        return []

    def tag_of(self, element: int) -> str:
        return "p"

    def attrs_of(self, element: int) -> Mapping[str, str]:
        return {}

    def descendant_text_nodes(self, element: int) -> list[int]:
        return [element]

    def starts_new_run(self, node: int) -> bool:
        return False

    def render(self) -> str:
        out = [self._paragraphs[0]]
        for sep, para in zip(self._breaks, self._paragraphs[1:]):
            out.append(sep)
            out.append(para)
        return "".join(out)

    def __str__(self) -> str:
        return self.render()


# ── HTML ──────────────────────────────────────────────────────────

# Form inputs whose value is free text the user typed.
_TEXT_INPUT_TYPES = frozenset({"text", "email", "tel", "url", "search", "number", "date", ""})

# Void elements that visually separate the text around them.
_BREAKING_TAGS = frozenset({"br", "hr", "img", "input", "wbr"})


class _InputValue:
    """Stands in for the ``value`` attribute of a form input."""
    __slots__ = ("tag",)

    def __init__(self, tag: Tag) -> None:
        self.tag = tag


def _is_text_input(tag: Tag) -> bool:
    if tag.name == "input":
        return (tag.get("type") or "text").lower() in _TEXT_INPUT_TYPES and tag.has_attr("value")
    return False


class HtmlDocument:
    """A BeautifulSoup tree exposed through stable integer handles.

    Replacing a string in bs4 swaps the ``NavigableString`` object, so the
    handle table is updated in place and handles stay valid across
    mutations and restores.
    """

    def __init__(self, html: str, parser: str = "html.parser") -> None:
        self.soup = BeautifulSoup(html, parser)
        self._nodes: list[NavigableString | _InputValue] = []
        self._node_ids: dict[int, int] = {}          # id(obj) → text handle
        self._elements: list[Tag] = []
        self._element_ids: dict[int, int] = {}       # id(tag) → element handle

        for el in self.soup.descendants:
            if isinstance(el, Tag):
                self._element_handle(el)
                if _is_text_input(el):
                    self._add_node(_InputValue(el))
            elif type(el) is NavigableString:
                # Comments, doctypes and CDATA are NavigableString subclasses.
                self._add_node(el)

    def _add_node(self, obj: NavigableString | _InputValue) -> None:
        self._node_ids[id(obj)] = len(self._nodes)
        self._nodes.append(obj)

    def _element_handle(self, tag: Tag) -> int:
        handle = self._element_ids.get(id(tag))
        if handle is None:
            handle = len(self._elements)
            self._element_ids[id(tag)] = handle
            self._elements.append(tag)
        return handle

    # ------------------------------------------------------------------
    # TextSurface
    # ------------------------------------------------------------------

    def text_nodes(self) -> list[int]:
        return list(range(len(self._nodes)))

    def get_text(self, node: int) -> str:
        obj = self._nodes[node]
        if isinstance(obj, _InputValue):
            return obj.tag.get("value", "")
        return str(obj)

    def set_text(self, node: int, text: str) -> None:
        obj = self._nodes[node]
        if isinstance(obj, _InputValue):
            obj.tag["value"] = text
            return
        if str(obj) == text:
            return
        replacement = NavigableString(text)
        obj.replace_with(replacement)
        del self._node_ids[id(obj)]
        self._node_ids[id(replacement)] = node
        self._nodes[node] = replacement

    def ancestors(self, node: int) -> list[int]:
        obj = self._nodes[node]
        if isinstance(obj, _InputValue):
            chain = [obj.tag, *obj.tag.parents]
        else:
            chain = list(obj.parents)
        return [self._element_handle(t) for t in chain if t.name != "[document]"]

    def tag_of(self, element: int) -> str:
        return self._elements[element].name

    def attrs_of(self, element: int) -> Mapping[str, str]:
        attrs = self._elements[element].attrs
        return {k: " ".join(v) if isinstance(v, list) else v for k, v in attrs.items()}

    def descendant_text_nodes(self, element: int) -> list[int]:
        tag = self._elements[element]
        if _is_text_input(tag):
            return [self._input_handle(tag)]
        out: list[int] = []
        for el in tag.descendants:
            if isinstance(el, Tag):
                if _is_text_input(el):
                    out.append(self._input_handle(el))
            elif type(el) is NavigableString:
                handle = self._node_ids.get(id(el))
                if handle is not None:
                    out.append(handle)
        return out

    def _input_handle(self, tag: Tag) -> int:
        for handle, obj in enumerate(self._nodes):
            if isinstance(obj, _InputValue) and obj.tag is tag:
                return handle
        raise KeyError(tag)

    def starts_new_run(self, node: int) -> bool:
        obj = self._nodes[node]
        if isinstance(obj, _InputValue):
            return True
        prev = obj.previous_sibling
        return isinstance(prev, Tag) and prev.name in _BREAKING_TAGS

    def render(self) -> str:
        return str(self.soup)

    def __str__(self) -> str:
        return self.render()
