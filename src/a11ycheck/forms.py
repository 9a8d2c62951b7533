"""Form descriptors: what input a rule needs from the user to fix an issue."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class FormType(str, Enum):
    TEXT_INPUT = "textinput"
    RADIO_INPUT_GROUP = "radio_input_group"
    BUTTON = "button"
    COLOR_PICKER = "colorpicker"
    CHECKBOX_TEXT_INPUT = "checkbox_text_input"


# dataclass field name -> serialized key
_KEYS: dict[str, str] = {
    "label": "label",
    "undo_text": "undoText",
    "can_generate_fix": "canGenerateFix",
    "generate_button_label": "generateButtonLabel",
    "value": "value",
    "options": "options",
    "action": "action",
    "input_label": "inputLabel",
    "title_label": "titleLabel",
    "background_color": "backgroundColor",
    "contrast_ratio": "contrastRatio",
    "checkbox_label": "checkboxLabel",
    "checkbox_subtext": "checkboxSubtext",
    "input_description": "inputDescription",
    "input_max_length": "inputMaxLength",
}


@dataclass(frozen=True)
class Form:
    """Base descriptor; subclasses fix the ``type``."""

    type: FormType = FormType.TEXT_INPUT
    label: str | None = None
    undo_text: str | None = None
    can_generate_fix: bool = False
    generate_button_label: str | None = None
    value: str | None = None
    options: tuple[str, ...] = field(default_factory=tuple)
    action: str | None = None
    input_label: str | None = None
    title_label: str | None = None
    background_color: str | None = None
    contrast_ratio: float | None = None
    checkbox_label: str | None = None
    checkbox_subtext: str | None = None
    input_description: str | None = None
    input_max_length: int | None = None

    def accepts(self, value: str | None) -> bool:
        """Whether *value* is a valid submission for this form."""
        return True

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"type": self.type.value}
        for attr, key in _KEYS.items():
            value = getattr(self, attr)
            if value is None or value == ():
                continue
            if attr == "can_generate_fix" and not value:
                continue
            data[key] = list(value) if isinstance(value, tuple) else value
        return data


def text_input(**kwargs: object) -> Form:
    return Form(type=FormType.TEXT_INPUT, **kwargs)  # type: ignore[arg-type]


def button(**kwargs: object) -> Form:
    return Form(type=FormType.BUTTON, **kwargs)  # type: ignore[arg-type]


def color_picker(**kwargs: object) -> Form:
    return Form(type=FormType.COLOR_PICKER, **kwargs)  # type: ignore[arg-type]


def checkbox_text_input(**kwargs: object) -> Form:
    return Form(type=FormType.CHECKBOX_TEXT_INPUT, **kwargs)  # type: ignore[arg-type]


@dataclass(frozen=True)
class RadioInputGroup(Form):
    type: FormType = FormType.RADIO_INPUT_GROUP

    def accepts(self, value: str | None) -> bool:
        return value in self.options


def radio_input_group(*options: str, **kwargs: object) -> RadioInputGroup:
    return RadioInputGroup(options=tuple(options), **kwargs)  # type: ignore[arg-type]
