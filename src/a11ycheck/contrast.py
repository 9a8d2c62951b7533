"""Color parsing and WCAG 2.x contrast ratio computation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from a11ycheck.dom import Element

RGB = tuple[int, int, int]

DEFAULT_FOREGROUND = "#000000"
DEFAULT_BACKGROUND = "#FFFFFF"

NORMAL_TEXT_MIN_RATIO = 4.5
LARGE_TEXT_MIN_RATIO = 3.0
GRAPHICS_MIN_RATIO = 3.0

# px equivalents of 18pt and 14pt
LARGE_TEXT_PX = 24.0
LARGE_BOLD_TEXT_PX = 18.66

NAMED_COLORS: dict[str, RGB] = {
    "black": (0, 0, 0),
    "white": (255, 255, 255),
    "red": (255, 0, 0),
    "green": (0, 128, 0),
    "blue": (0, 0, 255),
    "yellow": (255, 255, 0),
    "orange": (255, 165, 0),
    "purple": (128, 0, 128),
    "gray": (128, 128, 128),
    "grey": (128, 128, 128),
    "silver": (192, 192, 192),
    "lightgray": (211, 211, 211),
    "lightgrey": (211, 211, 211),
    "darkgray": (169, 169, 169),
    "darkgrey": (169, 169, 169),
    "navy": (0, 0, 128),
    "teal": (0, 128, 128),
    "maroon": (128, 0, 0),
    "olive": (128, 128, 0),
    "lime": (0, 255, 0),
    "aqua": (0, 255, 255),
    "cyan": (0, 255, 255),
    "fuchsia": (255, 0, 255),
    "magenta": (255, 0, 255),
    "pink": (255, 192, 203),
    "brown": (165, 42, 42),
}

_HEX_RE = re.compile(r"^#([0-9a-f]{3}|[0-9a-f]{6})$")
_RGB_RE = re.compile(
    r"^rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*[\d.]+\s*)?\)$"
)
_SIZE_RE = re.compile(r"^([\d.]+)\s*(px|pt|em|rem)?$")
_HEADING_SIZES_PX: dict[str, float] = {"h1": 32.0, "h2": 24.0, "h3": 18.72}


@dataclass(frozen=True)
class ContrastData:
    """Contrast between two colors and which WCAG AA thresholds it meets."""

    contrast: float
    is_valid_normal_text: bool
    is_valid_large_text: bool
    is_valid_graphics_text: bool
    first_color: str
    second_color: str

    def to_dict(self) -> dict[str, object]:
        return {
            "contrast": self.contrast,
            "isValidNormalText": self.is_valid_normal_text,
            "isValidLargeText": self.is_valid_large_text,
            "isValidGraphicsText": self.is_valid_graphics_text,
            "firstColor": self.first_color,
            "secondColor": self.second_color,
        }


def parse_color(value: str | None) -> RGB | None:
    """Parse a CSS color value; returns ``None`` for anything unsupported."""
    if not value:
        return None
    text = value.strip().lower()
    if text in NAMED_COLORS:
        return NAMED_COLORS[text]
    match = _HEX_RE.match(text)
    if match:
        digits = match.group(1)
        if len(digits) == 3:
            digits = "".join(ch * 2 for ch in digits)
        return (int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))
    match = _RGB_RE.match(text)
    if match:
        channels = tuple(min(int(c), 255) for c in match.groups())
        return (channels[0], channels[1], channels[2])
    return None


def to_hex(color: RGB) -> str:
    return "#{:02X}{:02X}{:02X}".format(*color)


def _channel(c: int) -> float:
    s = c / 255
    return s / 12.92 if s <= 0.03928 else ((s + 0.055) / 1.055) ** 2.4


def relative_luminance(color: RGB) -> float:
    r, g, b = color
    return 0.2126 * _channel(r) + 0.7152 * _channel(g) + 0.0722 * _channel(b)


def contrast_ratio(first: RGB, second: RGB) -> float:
    l1 = relative_luminance(first)
    l2 = relative_luminance(second)
    lighter, darker = max(l1, l2), min(l1, l2)
    return round((lighter + 0.05) / (darker + 0.05), 2)


def contrast_data(first: str, second: str) -> ContrastData:
    """Build :class:`ContrastData` for two CSS colors.

    Raises ``ValueError`` if either color cannot be parsed.
    """
    a = parse_color(first)
    b = parse_color(second)
    if a is None or b is None:
        msg = f"Unsupported color value: {first if a is None else second!r}"
        raise ValueError(msg)
    ratio = contrast_ratio(a, b)
    return ContrastData(
        contrast=ratio,
        is_valid_normal_text=ratio >= NORMAL_TEXT_MIN_RATIO,
        is_valid_large_text=ratio >= LARGE_TEXT_MIN_RATIO,
        is_valid_graphics_text=ratio >= GRAPHICS_MIN_RATIO,
        first_color=to_hex(a),
        second_color=to_hex(b),
    )


# ---------------------------------------------------------------------------
# Inline style resolution
# ---------------------------------------------------------------------------


def parse_style(style: str | None) -> dict[str, str]:
    """Parse an inline ``style`` attribute into a property dict."""
    result: dict[str, str] = {}
    if not style:
        return result
    for declaration in style.split(";"):
        if ":" not in declaration:
            continue
        prop, _, value = declaration.partition(":")
        prop = prop.strip().lower()
        if prop:
            result[prop] = value.replace("!important", "").strip()
    return result


def format_style(props: dict[str, str]) -> str:
    return "; ".join(f"{k}: {v}" for k, v in props.items()) + ";" if props else ""


def _own_background(props: dict[str, str]) -> RGB | None:
    color = parse_color(props.get("background-color"))
    if color is not None:
        return color
    background = props.get("background")
    if background:
        for token in background.split():
            color = parse_color(token)
            if color is not None:
                return color
    return None


def _chain(elem: Element) -> list[Element]:
    return [elem, *elem.ancestors()]


def effective_foreground(elem: Element) -> RGB:
    for node in _chain(elem):
        color = parse_color(parse_style(node.get_attribute("style")).get("color"))
        if color is not None:
            return color
    return parse_color(DEFAULT_FOREGROUND)  # type: ignore[return-value]


def effective_background(elem: Element) -> RGB:
    for node in _chain(elem):
        color = _own_background(parse_style(node.get_attribute("style")))
        if color is not None:
            return color
    return parse_color(DEFAULT_BACKGROUND)  # type: ignore[return-value]


def _size_px(value: str) -> float | None:
    match = _SIZE_RE.match(value.strip().lower())
    if match is None:
        return None
    size = float(match.group(1))
    unit = match.group(2) or "px"
    if unit == "pt":
        return size * 4 / 3
    if unit in ("em", "rem"):
        return size * 16
    return size


def is_large_text(elem: Element) -> bool:
    """Whether the element's text counts as large under WCAG."""
    size: float | None = None
    bold = False
    for node in _chain(elem):
        props = parse_style(node.get_attribute("style"))
        if size is None and "font-size" in props:
            size = _size_px(props["font-size"])
        if size is None and node.tag_name in _HEADING_SIZES_PX:
            size = _HEADING_SIZES_PX[node.tag_name]
        weight = props.get("font-weight", "")
        if weight in ("bold", "bolder") or (weight.isdigit() and int(weight) >= 700):
            bold = True
        if node.tag_name in ("b", "strong", "h1", "h2", "h3", "h4", "h5", "h6", "th"):
            bold = True
    if size is None:
        return False
    return size >= LARGE_TEXT_PX or (bold and size >= LARGE_BOLD_TEXT_PX)
