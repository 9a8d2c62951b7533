"""List structure rule: paragraphs that fake a bulleted or numbered list."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from a11ycheck import forms
from a11ycheck.dom import Element, Text
from a11ycheck.rules.base import FixError, Rule, register

if TYPE_CHECKING:
    from a11ycheck.forms import Form

BULLET_MARKER = re.compile(r"^\s*([-*•●◦▪])\s+")
NUMBER_MARKER = re.compile(r"^\s*(\d+|[a-zA-Z])[.)]\s+")


def _marker(elem: Element) -> str | None:
    """``"ul"``/``"ol"`` when *elem* is a paragraph starting with a list marker."""
    if elem.tag_name != "p":
        return None
    text = elem.text_content
    if BULLET_MARKER.match(text):
        return "ul"
    if NUMBER_MARKER.match(text):
        return "ol"
    return None


def _previous_element_sibling(elem: Element) -> Element | None:
    parent = elem.parent
    if parent is None:
        return None
    siblings = parent.children
    for node in reversed(siblings[: siblings.index(elem)]):
        if isinstance(node, Element):
            return node
        if isinstance(node, Text) and node.text.strip():
            return None
    return None


def list_run(elem: Element) -> list[Element]:
    """The consecutive marker paragraphs starting at *elem*."""
    kind = _marker(elem)
    if kind is None:
        return []
    run = [elem]
    node = elem.next_element_sibling()
    while node is not None and _marker(node) == kind:
        run.append(node)
        node = node.next_element_sibling()
    return run


def _strip_marker(paragraph: Element, kind: str) -> None:
    """Remove the list marker from the first text of *paragraph*.

    The parser splits character references into their own text nodes, so the
    leading run of text nodes is matched and rewritten as one.
    """
    pattern = BULLET_MARKER if kind == "ul" else NUMBER_MARKER
    children = paragraph.children
    index = 0
    while index < len(children):
        child = children[index]
        if isinstance(child, Element):
            _strip_marker(child, kind)
            return
        if not isinstance(child, Text):
            index += 1
            continue
        end = index
        while end < len(children) and isinstance(children[end], Text):
            end += 1
        plain = "".join(node.text for node in children[index:end] if isinstance(node, Text))
        if not plain.strip():
            index = end
            continue
        for node in children[index:end]:
            node.parent = None
        stripped = Text.from_plain(pattern.sub("", plain, count=1))
        stripped.parent = paragraph
        children[index:end] = [stripped]
        return


@register
class ListStructureRule(Rule):
    id = "list-structure"
    link = "https://www.w3.org/TR/WCAG20-TECHS/H48.html"
    display_name = "List not formatted as list"
    message = "This looks like a list but it is made of separate paragraphs."
    why = (
        "Screen readers announce real lists with their length and let users "
        "jump between items. Paragraphs with typed bullets get none of that."
    )

    def test(self, elem: Element) -> str | None:
        kind = _marker(elem)
        if kind is None:
            return None
        prev = _previous_element_sibling(elem)
        if prev is not None and _marker(prev) == kind:
            return None
        if len(list_run(elem)) < 2:
            return None
        return "Lists should be formatted as lists."

    def form(self, elem: Element) -> Form:
        return forms.button(
            label="Reformat",
            undo_text="List reformatted",
            value="false",
        )

    def fix(self, elem: Element, value: str | None) -> Element:
        run = list_run(elem)
        if len(run) < 2:
            msg = "Paragraphs no longer form a list."
            raise FixError(msg)
        kind = _marker(elem) or "ul"
        parent = elem.parent
        assert parent is not None
        first = parent.children.index(run[0])
        last = parent.children.index(run[-1])
        for node in parent.children[first + 1 : last + 1]:
            parent.remove(node)

        container = Element(kind)
        for paragraph in run:
            _strip_marker(paragraph, kind)
            item = Element("li")
            for child in list(paragraph.children):
                paragraph.remove(child)
                item.append(child)
            container.append(item)
        elem.replace_with(container)
        return container
