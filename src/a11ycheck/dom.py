"""HTML fragment tree: parsing, serialization, and XPath-like node paths.

The tree is intentionally small: elements, text and comments. Text nodes
keep their raw source (entities included) so that an untouched fragment
serializes back to the same markup.
"""

from __future__ import annotations

import html
import re
from html.parser import HTMLParser
from typing import Iterator, Union

ROOT_TAG = "#root"

VOID_ELEMENTS: frozenset[str] = frozenset(
    {
        "area", "base", "br", "col", "embed", "hr", "img", "input",
        "link", "meta", "param", "source", "track", "wbr",
    }
)
RAW_TEXT_ELEMENTS: frozenset[str] = frozenset({"script", "style"})

# Opening one of these implicitly closes an open <p>.
_CLOSES_P: frozenset[str] = frozenset(
    {
        "address", "article", "aside", "blockquote", "div", "dl", "fieldset",
        "footer", "form", "h1", "h2", "h3", "h4", "h5", "h6", "header", "hr",
        "main", "nav", "ol", "p", "pre", "section", "table", "ul",
    }
)
# tag -> tags it closes when opened as a sibling
_CLOSES_SIBLING: dict[str, frozenset[str]] = {
    "li": frozenset({"li"}),
    "tr": frozenset({"tr", "td", "th"}),
    "td": frozenset({"td", "th"}),
    "th": frozenset({"td", "th"}),
    "option": frozenset({"option"}),
    "dt": frozenset({"dt", "dd"}),
    "dd": frozenset({"dt", "dd"}),
}

_STEP_RE = re.compile(r"^([a-z][a-z0-9-]*)(?:\[(\d+)\])?$")


def escape_attribute(value: str) -> str:
    """Escape a double-quoted attribute value, leaving apostrophes and '>' alone."""
    return value.replace("&", "&amp;").replace("<", "&lt;").replace('"', "&quot;")


class Text:
    """A run of character data, stored as raw HTML source."""

    def __init__(self, raw: str) -> None:
        self.raw = raw
        self.parent: Element | None = None

    @classmethod
    def from_plain(cls, value: str) -> Text:
        return cls(html.escape(value, quote=False))

    @property
    def text(self) -> str:
        return html.unescape(self.raw)

    def to_html(self) -> str:
        return self.raw


class Comment:
    def __init__(self, data: str) -> None:
        self.data = data
        self.parent: Element | None = None

    def to_html(self) -> str:
        return f"<!--{self.data}-->"


Node = Union["Element", Text, Comment]


class Element:
    """An HTML element with ordered attributes and child nodes."""

    def __init__(self, tag_name: str, attrs: dict[str, str] | None = None) -> None:
        self.tag_name = tag_name.lower()
        self.attrs: dict[str, str] = dict(attrs or {})
        self.children: list[Node] = []
        self.parent: Element | None = None

    def __repr__(self) -> str:
        return f"<Element {self.tag_name} {self.attrs!r}>"

    # -- attributes -------------------------------------------------------

    def has_attribute(self, name: str) -> bool:
        return name.lower() in self.attrs

    def get_attribute(self, name: str) -> str | None:
        return self.attrs.get(name.lower())

    def set_attribute(self, name: str, value: str) -> None:
        self.attrs[name.lower()] = value

    def remove_attribute(self, name: str) -> None:
        self.attrs.pop(name.lower(), None)

    def __getitem__(self, name: str) -> str | None:
        return self.get_attribute(name)

    def __setitem__(self, name: str, value: str) -> None:
        self.set_attribute(name, value)

    # -- tree -------------------------------------------------------------

    def append(self, node: Node) -> None:
        node.parent = self
        self.children.append(node)

    def insert(self, index: int, node: Node) -> None:
        node.parent = self
        self.children.insert(index, node)

    def remove(self, node: Node) -> None:
        self.children.remove(node)
        node.parent = None

    def replace_with(self, *nodes: Node) -> None:
        """Replace this element in its parent by *nodes*."""
        parent = self.parent
        if parent is None:
            msg = "Cannot replace the root element"
            raise ValueError(msg)
        index = parent.children.index(self)
        parent.children[index : index + 1] = list(nodes)
        for node in nodes:
            node.parent = parent
        self.parent = None

    def rename(self, tag_name: str) -> None:
        self.tag_name = tag_name.lower()

    def element_children(self) -> list[Element]:
        return [c for c in self.children if isinstance(c, Element)]

    def iter_elements(self) -> Iterator[Element]:
        """Yield all descendant elements in document order."""
        for child in self.children:
            if isinstance(child, Element):
                yield child
                yield from child.iter_elements()

    def find_all(self, tag_name: str) -> list[Element]:
        tag = tag_name.lower()
        return [e for e in self.iter_elements() if e.tag_name == tag]

    def ancestors(self) -> Iterator[Element]:
        node = self.parent
        while node is not None and node.tag_name != ROOT_TAG:
            yield node
            node = node.parent

    def next_element_sibling(self, *, skip_whitespace_only: bool = True) -> Element | None:
        """Return the next sibling element.

        When *skip_whitespace_only* is set, any non-blank text between the
        two elements makes the result ``None``.
        """
        if self.parent is None:
            return None
        siblings = self.parent.children
        for node in siblings[siblings.index(self) + 1 :]:
            if isinstance(node, Element):
                return node
            if isinstance(node, Text) and node.text.strip() and skip_whitespace_only:
                return None
        return None

    @property
    def text_content(self) -> str:
        parts: list[str] = []
        for child in self.children:
            if isinstance(child, Text):
                parts.append(child.text)
            elif isinstance(child, Element):
                parts.append(child.text_content)
        return "".join(parts)

    # -- serialization ----------------------------------------------------

    def start_tag(self) -> str:
        attrs = "".join(
            f' {name}="{escape_attribute(value)}"' for name, value in self.attrs.items()
        )
        return f"<{self.tag_name}{attrs}>"

    @property
    def inner_html(self) -> str:
        return "".join(child.to_html() for child in self.children)

    @property
    def outer_html(self) -> str:
        return self.to_html()

    def to_html(self) -> str:
        if self.tag_name == ROOT_TAG:
            return self.inner_html
        if self.tag_name in VOID_ELEMENTS:
            return self.start_tag()
        return f"{self.start_tag()}{self.inner_html}</{self.tag_name}>"


class _TreeBuilder(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=False)
        self.root = Element(ROOT_TAG)
        self.stack: list[Element] = [self.root]

    @property
    def current(self) -> Element:
        return self.stack[-1]

    def _close_implied(self, tag: str) -> None:
        if tag in _CLOSES_P and self.current.tag_name == "p":
            self.stack.pop()
        closes = _CLOSES_SIBLING.get(tag)
        if closes:
            while len(self.stack) > 1 and self.current.tag_name in closes:
                self.stack.pop()

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        tag = tag.lower()
        self._close_implied(tag)
        elem = Element(tag, {name: value or "" for name, value in attrs})
        self.current.append(elem)
        if tag not in VOID_ELEMENTS:
            self.stack.append(elem)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        tag = tag.lower()
        self._close_implied(tag)
        self.current.append(Element(tag, {name: value or "" for name, value in attrs}))

    def handle_endtag(self, tag: str) -> None:
        tag = tag.lower()
        for depth in range(len(self.stack) - 1, 0, -1):
            if self.stack[depth].tag_name == tag:
                del self.stack[depth:]
                return
        # stray end tag: ignored

    def handle_data(self, data: str) -> None:
        self.current.append(Text(data))

    def handle_entityref(self, name: str) -> None:
        self.current.append(Text(f"&{name};"))

    def handle_charref(self, name: str) -> None:
        self.current.append(Text(f"&#{name};"))

    def handle_comment(self, data: str) -> None:
        self.current.append(Comment(data))

    def handle_decl(self, decl: str) -> None:
        self.current.append(Text(f"<!{decl}>"))

    def unknown_decl(self, data: str) -> None:
        self.current.append(Text(f"<![{data}]>"))

    def handle_pi(self, data: str) -> None:
        self.current.append(Text(f"<?{data}>"))


def parse_fragment(source: str) -> Element:
    """Parse an HTML fragment (or document) into a tree under a synthetic root."""
    builder = _TreeBuilder()
    builder.feed(source)
    builder.close()
    return builder.root


def serialize(root: Element) -> str:
    return root.to_html()


# ---------------------------------------------------------------------------
# Node paths
# ---------------------------------------------------------------------------


def _step(elem: Element) -> str:
    parent = elem.parent
    if parent is None:
        return elem.tag_name
    same = [c for c in parent.element_children() if c.tag_name == elem.tag_name]
    if len(same) <= 1:
        return elem.tag_name
    return f"{elem.tag_name}[{same.index(elem) + 1}]"


def node_path(elem: Element) -> str:
    """Return the path of *elem* relative to the fragment root, e.g. ``./div/p[2]``."""
    steps: list[str] = []
    node: Element | None = elem
    while node is not None and node.tag_name != ROOT_TAG:
        steps.append(_step(node))
        node = node.parent
    return "./" + "/".join(reversed(steps))


def find_by_path(root: Element, path: str) -> Element | None:
    """Resolve a path produced by :func:`node_path`; ``None`` when it does not match."""
    if not path.startswith("./"):
        return None
    current = root
    for raw_step in path[2:].split("/"):
        match = _STEP_RE.match(raw_step.lower())
        if match is None:
            return None
        tag, index_raw = match.group(1), match.group(2)
        candidates = [c for c in current.element_children() if c.tag_name == tag]
        index = int(index_raw) if index_raw else 1
        if index < 1 or index > len(candidates):
            return None
        current = candidates[index - 1]
    return current if current is not root else None
