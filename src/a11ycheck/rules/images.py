"""Image alt text rules."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from a11ycheck import forms
from a11ycheck.rules.base import FixError, Rule, register

if TYPE_CHECKING:
    from a11ycheck.dom import Element
    from a11ycheck.forms import Form

IMAGE_FILENAME_PATTERN = re.compile(r"[^\s]+(.*?)\.(jpg|jpeg|png|gif|svg|bmp|webp)$", re.IGNORECASE)

FILENAME_ERROR = "Image filenames should not be used as the alt attribute."


def is_decorative(elem: Element) -> bool:
    return elem.get_attribute("role") == "presentation"


class _ImageAltRule(Rule):
    """Shared form and fix for the three alt text rules."""

    link = "https://www.w3.org/TR/WCAG20-TECHS/H37.html"

    def form(self, elem: Element) -> Form:
        return forms.checkbox_text_input(
            checkbox_label="This image is decorative",
            checkbox_subtext=(
                "This image is for visual decoration only and screen readers can skip it."
            ),
            undo_text="Alt text fixed",
            input_label="Alt text",
            input_description="Describe what's on the picture.",
            input_max_length=self.settings.max_alt_length,
            can_generate_fix=self.settings.generate_alt_text is not None,
            generate_button_label="Generate alt text",
            value=elem.get_attribute("alt") or "",
        )

    def fix(self, elem: Element, value: str | None) -> Element:
        if value is None or not value.strip():
            elem["alt"] = ""
            elem["role"] = "presentation"
            return elem
        if IMAGE_FILENAME_PATTERN.search(value):
            raise FixError(FILENAME_ERROR)
        if len(value) > self.settings.max_alt_length:
            msg = f"Keep alt text under {self.settings.max_alt_length} characters."
            raise FixError(msg)

        if is_decorative(elem):
            elem.remove_attribute("role")
        if elem["alt"] == value:
            return elem
        elem["alt"] = value
        return elem

    def generate_fix(self, elem: Element) -> str | None:
        if elem.tag_name != "img" or not elem.has_attribute("src"):
            return None
        generator = self.settings.generate_alt_text
        if generator is None:
            return None
        return generator(elem.get_attribute("src") or "")


@register
class ImgAltRule(_ImageAltRule):
    id = "img-alt"
    display_name = "Missing alt text"
    message = (
        "Images need alt text so people who are blind or have low vision "
        "can understand what's in the image."
    )
    why = (
        "Alt text is a description of an image only visible to screen readers. "
        "Without it, screen readers announce nothing useful about the image."
    )

    def test(self, elem: Element) -> str | None:
        if elem.tag_name != "img" or is_decorative(elem):
            return None
        alt = elem.get_attribute("alt")
        if alt is None or not alt.strip():
            return "Image elements should have an alt attribute."
        return None


@register
class ImgAltFilenameRule(_ImageAltRule):
    id = "img-alt-filename"
    display_name = "Alt text is filename"
    message = (
        "The alt text is just the file name. Add a description for screen readers "
        "so people who are blind or have low vision can understand what's in the image."
    )
    why = (
        "Alt text is a description of an image only visible to screen readers. "
        "The filename is not an adequate description of an image."
    )

    def test(self, elem: Element) -> str | None:
        if elem.tag_name != "img" or not elem.has_attribute("alt"):
            return None
        alt = elem.get_attribute("alt") or ""
        if alt == "" and is_decorative(elem):
            return None
        if not alt.strip():
            return None
        if IMAGE_FILENAME_PATTERN.search(alt):
            return FILENAME_ERROR
        return None


@register
class ImgAltLengthRule(_ImageAltRule):
    id = "img-alt-length"
    display_name = "Alt text is too long"
    message = "The alt text is too long. Keep it short and describe only what matters."
    why = (
        "Screen readers read alt text in one go and cannot skip through it, "
        "so long descriptions are tiring to listen to."
    )

    def test(self, elem: Element) -> str | None:
        if elem.tag_name != "img":
            return None
        alt = elem.get_attribute("alt")
        if alt is None or len(alt) <= self.settings.max_alt_length:
            return None
        return f"Alt text should be shorter than {self.settings.max_alt_length} characters."
