"""Heading structure rules."""

from __future__ import annotations

from typing import TYPE_CHECKING

from a11ycheck import forms
from a11ycheck.rules.base import FixError, Rule, document_root, heading_level, register

if TYPE_CHECKING:
    from a11ycheck.dom import Element
    from a11ycheck.forms import Form

MAX_HEADING_LENGTH = 120

CHANGE_TO_H2 = "Change it to Heading 2"
TURN_INTO_PARAGRAPH = "Turn into paragraph"
FIX_HIERARCHY = "Fix heading hierarchy"


def previous_heading(elem: Element) -> Element | None:
    """The heading closest before *elem* in document order."""
    last: Element | None = None
    for node in document_root(elem).iter_elements():
        if node is elem:
            return last
        if heading_level(node) is not None:
            last = node
    return None


@register
class HeadingsStartAtH2Rule(Rule):
    id = "headings-start-at-h2"
    link = "https://www.w3.org/WAI/tutorials/page-structure/headings/"
    display_name = "Heading 1 in content"
    message = (
        "Heading 1 is reserved for the page title. Content headings should start at Heading 2."
    )
    why = (
        "Screen reader users navigate by headings. A second Heading 1 makes it "
        "hard to tell where the page title is."
    )

    def test(self, elem: Element) -> str | None:
        if elem.tag_name != "h1":
            return None
        return "Headings should start at h2."

    def form(self, elem: Element) -> Form:
        return forms.radio_input_group(
            CHANGE_TO_H2,
            TURN_INTO_PARAGRAPH,
            label="How would you like to proceed?",
            undo_text="Heading structure changed",
            value=CHANGE_TO_H2,
        )

    def fix(self, elem: Element, value: str | None) -> Element:
        self.check_form_value(elem, value)
        elem.rename("h2" if value == CHANGE_TO_H2 else "p")
        return elem


@register
class HeadingsSequenceRule(Rule):
    id = "headings-sequence"
    link = "https://www.w3.org/TR/WCAG20-TECHS/G141.html"
    display_name = "Skipped heading level"
    message = "Heading levels should only increase one step at a time."
    why = (
        "Sighted users scan headings by size; screen reader users rely on heading "
        "levels to understand how sections nest. Skipped levels break that outline."
    )

    def test(self, elem: Element) -> str | None:
        level = heading_level(elem)
        if level is None:
            return None
        prev = previous_heading(elem)
        if prev is None:
            return None
        prev_level = heading_level(prev) or 0
        if level > prev_level + 1:
            return f"Heading h{level} follows h{prev_level}; levels should not be skipped."
        return None

    def form(self, elem: Element) -> Form:
        return forms.radio_input_group(
            FIX_HIERARCHY,
            TURN_INTO_PARAGRAPH,
            label="How would you like to proceed?",
            undo_text="Heading hierarchy is now correct",
            value=FIX_HIERARCHY,
        )

    def fix(self, elem: Element, value: str | None) -> Element:
        self.check_form_value(elem, value)
        if value == TURN_INTO_PARAGRAPH:
            elem.rename("p")
            return elem
        prev = previous_heading(elem)
        if prev is None:
            msg = "No previous heading to align with."
            raise FixError(msg)
        target = min((heading_level(prev) or 1) + 1, 6)
        elem.rename(f"h{target}")
        return elem


@register
class ParagraphsForHeadingsRule(Rule):
    id = "paragraphs-for-headings"
    link = "https://www.w3.org/TR/WCAG20-TECHS/G130.html"
    display_name = "Heading is too long"
    message = f"Headings should be short. This one is longer than {MAX_HEADING_LENGTH} characters."
    why = (
        "Headings are used to navigate the page. Long text marked as a heading is "
        "probably a paragraph and makes navigation noisy."
    )

    def test(self, elem: Element) -> str | None:
        if heading_level(elem) is None:
            return None
        if len(elem.text_content.strip()) > MAX_HEADING_LENGTH:
            return "Headings should not contain more than 120 characters."
        return None

    def form(self, elem: Element) -> Form:
        return forms.button(
            label="Reformat",
            undo_text="Formatted as paragraph",
            value="false",
        )

    def fix(self, elem: Element, value: str | None) -> Element:
        elem.rename("p")
        return elem
