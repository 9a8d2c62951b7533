"""Link rules."""

from __future__ import annotations

from typing import TYPE_CHECKING

from a11ycheck import forms
from a11ycheck.dom import Element, Text
from a11ycheck.rules.base import FixError, Rule, register

if TYPE_CHECKING:
    from a11ycheck.forms import Form


def _normalized_href(elem: Element) -> str | None:
    href = elem.get_attribute("href")
    if href is None:
        return None
    return href.strip()


def duplicate_next_link(elem: Element) -> Element | None:
    """The immediately following link pointing to the same target, if any."""
    if elem.tag_name != "a":
        return None
    href = _normalized_href(elem)
    if not href:
        return None
    sibling = elem.next_element_sibling()
    if sibling is None or sibling.tag_name != "a":
        return None
    if _normalized_href(sibling) != href:
        return None
    return sibling


@register
class AdjacentLinksRule(Rule):
    id = "adjacent-links"
    link = "https://www.w3.org/TR/WCAG20-TECHS/H2.html"
    display_name = "Duplicate links"
    message = "Adjacent links point to the same place. Merge them into one link."
    why = (
        "Screen readers announce each link separately, so the same destination "
        "is read out twice and keyboard users tab through it twice."
    )

    def test(self, elem: Element) -> str | None:
        if duplicate_next_link(elem) is None:
            return None
        return "Adjacent links with the same URL should be a single link."

    def form(self, elem: Element) -> Form:
        return forms.button(
            label="Merge links",
            undo_text="Links merged",
            value="false",
        )

    def fix(self, elem: Element, value: str | None) -> Element:
        sibling = duplicate_next_link(elem)
        if sibling is None:
            msg = "Links are no longer adjacent."
            raise FixError(msg)
        parent = elem.parent
        assert parent is not None
        start = parent.children.index(elem) + 1
        end = parent.children.index(sibling)
        for node in parent.children[start:end]:
            parent.remove(node)
        if elem.text_content.strip() and sibling.text_content.strip():
            elem.append(Text(" "))
        for child in list(sibling.children):
            sibling.remove(child)
            elem.append(child)
        parent.remove(sibling)
        return elem
