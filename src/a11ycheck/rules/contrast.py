"""Text color contrast rules (WCAG 1.4.3)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from a11ycheck import forms
from a11ycheck.contrast import (
    LARGE_TEXT_MIN_RATIO,
    NORMAL_TEXT_MIN_RATIO,
    contrast_ratio,
    effective_background,
    effective_foreground,
    format_style,
    is_large_text,
    parse_color,
    parse_style,
    to_hex,
)
from a11ycheck.dom import Text
from a11ycheck.rules.base import FixError, Rule, register

if TYPE_CHECKING:
    from a11ycheck.dom import Element
    from a11ycheck.forms import Form

SUGGESTED_COLORS: tuple[str, ...] = ("#000000", "#248029", "#9242B4", "#2063C1", "#B50000")

_NON_TEXT_TAGS: frozenset[str] = frozenset({"script", "style", "title"})


def has_own_text(elem: Element) -> bool:
    if elem.tag_name in _NON_TEXT_TAGS:
        return False
    return any(isinstance(c, Text) and c.text.strip() for c in elem.children)


class _ContrastRule(Rule):
    link = "https://www.w3.org/TR/WCAG20-TECHS/G18.html"
    min_ratio: float = NORMAL_TEXT_MIN_RATIO
    large: bool = False

    def applies_to(self, elem: Element) -> bool:
        return has_own_text(elem) and is_large_text(elem) == self.large

    def test(self, elem: Element) -> str | None:
        if not self.applies_to(elem):
            return None
        ratio = contrast_ratio(effective_foreground(elem), effective_background(elem))
        if ratio >= self.min_ratio:
            return None
        return f"Text contrast ratio is {ratio}:1, at least {self.min_ratio}:1 is required."

    def form(self, elem: Element) -> Form:
        fg = effective_foreground(elem)
        bg = effective_background(elem)
        return forms.color_picker(
            label="Contrast ratio",
            undo_text="Color changed",
            input_label="New text color",
            title_label="Text color",
            options=SUGGESTED_COLORS,
            background_color=to_hex(bg),
            contrast_ratio=contrast_ratio(fg, bg),
            value=to_hex(fg),
        )

    def fix(self, elem: Element, value: str | None) -> Element:
        color = parse_color(value)
        if color is None:
            msg = f"Invalid color value: {value}"
            raise FixError(msg)
        ratio = contrast_ratio(color, effective_background(elem))
        if ratio < self.min_ratio:
            msg = f"Contrast ratio {ratio}:1 is still below {self.min_ratio}:1."
            raise FixError(msg)
        props = parse_style(elem.get_attribute("style"))
        props["color"] = to_hex(color)
        elem["style"] = format_style(props)
        return elem


@register
class SmallTextContrastRule(_ContrastRule):
    id = "small-text-contrast"
    display_name = "Small text contrast"
    message = "The text color does not stand out enough from the background."
    why = (
        "Text is hard to read for people with low vision or color blindness "
        "when it does not contrast enough with its background. Normal text "
        "needs a ratio of at least 4.5:1."
    )
    min_ratio = NORMAL_TEXT_MIN_RATIO
    large = False


@register
class LargeTextContrastRule(_ContrastRule):
    id = "large-text-contrast"
    display_name = "Large text contrast"
    message = "The large text color does not stand out enough from the background."
    why = (
        "Large text is easier to read, so the required ratio is lower, "
        "but it still needs at least 3:1 against its background."
    )
    min_ratio = LARGE_TEXT_MIN_RATIO
    large = True
