"""Rule base class, settings, and the rule registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, ClassVar

from a11ycheck.dom import ROOT_TAG

if TYPE_CHECKING:
    from pathlib import Path

    from a11ycheck.config import Config
    from a11ycheck.dom import Element
    from a11ycheck.forms import Form


class FixError(Exception):
    """Raised when a fix value is rejected or a fix cannot be applied."""


@dataclass(frozen=True)
class RuleSettings:
    """Tunables shared by all rules."""

    max_alt_length: int = 120
    generate_alt_text: Callable[[str], str | None] | None = field(default=None, compare=False)


class Rule:
    """A named predicate over one element, paired with a fix action.

    Subclasses set the class attributes and implement :meth:`test`,
    :meth:`form` and :meth:`fix`. :meth:`fix` mutates the tree in place and
    returns the element that now represents the fixed content.
    """

    id: ClassVar[str] = ""
    link: ClassVar[str] = ""
    display_name: ClassVar[str] = ""
    message: ClassVar[str] = ""
    why: ClassVar[str] = ""

    def __init__(self, settings: RuleSettings | None = None) -> None:
        self.settings = settings or RuleSettings()

    def test(self, elem: Element) -> str | None:
        raise NotImplementedError

    def form(self, elem: Element) -> Form:
        raise NotImplementedError

    def fix(self, elem: Element, value: str | None) -> Element | None:
        raise NotImplementedError

    def generate_fix(self, elem: Element) -> str | None:
        return None

    def check_form_value(self, elem: Element, value: str | None) -> None:
        """Raise :class:`FixError` unless the form accepts *value*."""
        if not self.form(elem).accepts(value):
            msg = f"Invalid value for form: {value}"
            raise FixError(msg)


RULES: dict[str, type[Rule]] = {}


def register(cls: type[Rule]) -> type[Rule]:
    if not cls.id:
        msg = f"{cls.__name__} has no id"
        raise ValueError(msg)
    if cls.id in RULES:
        msg = f"Duplicate rule id '{cls.id}'"
        raise ValueError(msg)
    RULES[cls.id] = cls
    return cls


def get_rule_class(rule_id: str) -> type[Rule] | None:
    return RULES.get(rule_id)


def settings_from_config(config: Config, base_dir: Path | None = None) -> RuleSettings:
    from a11ycheck.alt_text import make_generator

    return RuleSettings(
        max_alt_length=config.max_alt_length,
        generate_alt_text=make_generator(config, base_dir),
    )


def build_rules(config: Config | None = None) -> list[Rule]:
    """Instantiate every registered rule not disabled in *config*."""
    if config is None:
        settings = RuleSettings()
        disabled: frozenset[str] = frozenset()
    else:
        settings = settings_from_config(config)
        disabled = config.disabled_rules
    return [cls(settings) for rule_id, cls in sorted(RULES.items()) if rule_id not in disabled]


def build_rule(
    rule_id: str, config: Config | None = None, *, base_dir: Path | None = None
) -> Rule | None:
    cls = get_rule_class(rule_id)
    if cls is None:
        return None
    if config is None:
        return cls(RuleSettings())
    return cls(settings_from_config(config, base_dir))


# ---------------------------------------------------------------------------
# Tree helpers shared by rules
# ---------------------------------------------------------------------------


def document_root(elem: Element) -> Element:
    node = elem
    while node.parent is not None:
        node = node.parent
    return node


def heading_level(elem: Element) -> int | None:
    tag = elem.tag_name
    if len(tag) == 2 and tag[0] == "h" and tag[1] in "123456":
        return int(tag[1])
    return None


def is_root(elem: Element) -> bool:
    return elem.tag_name == ROOT_TAG
