"""Accessibility rules: one module per family, all registered on import."""

from a11ycheck.rules import contrast, headings, images, links, lists, tables  # noqa: F401
from a11ycheck.rules.base import (
    RULES,
    FixError,
    Rule,
    RuleSettings,
    build_rule,
    build_rules,
    get_rule_class,
)

__all__ = [
    "RULES",
    "FixError",
    "Rule",
    "RuleSettings",
    "build_rule",
    "build_rules",
    "get_rule_class",
]
