"""HtmlFixer: apply, preview, or generate a fix for one issue in one document."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from a11ycheck.dom import find_by_path, node_path, parse_fragment, serialize
from a11ycheck.rules import FixError, build_rule

if TYPE_CHECKING:
    from pathlib import Path

    from a11ycheck.config import Config
    from a11ycheck.dom import Element
    from a11ycheck.rules import Rule


@dataclass(frozen=True)
class FixResult:
    """Fixed markup and the path of the fixed element (``None`` if it is gone)."""

    content: str
    path: str | None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"content": self.content}
        if self.path is not None:
            data["path"] = self.path
        return data


class HtmlFixer:
    """Resolve *path* in *body* and run the fix of rule *rule_id* with *value*."""

    def __init__(
        self,
        rule_id: str,
        body: str,
        path: str,
        value: str | None,
        *,
        config: Config | None = None,
        base_dir: Path | None = None,
    ) -> None:
        self.rule_id = rule_id
        self.body = body
        self.path = path
        self.value = value
        self.config = config
        self.base_dir = base_dir

    def _rule(self) -> Rule:
        rule = build_rule(self.rule_id, self.config, base_dir=self.base_dir)
        if rule is None:
            msg = "Invalid rule"
            raise FixError(msg)
        return rule

    def _locate(self, root: Element, rule: Rule) -> Element:
        # A stored path can point at a different element once an earlier fix
        # reshaped the document, so the rule must still fail there.
        elem = find_by_path(root, self.path)
        if elem is None or rule.test(elem) is None:
            msg = "Element not found"
            raise FixError(msg)
        return elem

    def _fix(self) -> tuple[Element, Element | None]:
        rule = self._rule()
        root = parse_fragment(self.body)
        elem = self._locate(root, rule)
        fixed = rule.fix(elem, self.value)
        return root, fixed

    def apply_fix(self) -> FixResult:
        """Return the whole document with the fix applied.

        Raises
        ------
        FixError
            Unknown rule, a path that no longer points at a failing element,
            or a value the rule rejects.
        """
        root, fixed = self._fix()
        return FixResult(
            content=serialize(root),
            path=node_path(fixed) if fixed is not None else None,
        )

    def preview_fix(self) -> FixResult:
        """Return only the fixed element; the current element when no value is given."""
        if self.value is None:
            elem = self._locate(parse_fragment(self.body), self._rule())
            return FixResult(content=elem.outer_html, path=self.path)

        _root, fixed = self._fix()
        if fixed is None:
            return FixResult(content="", path=None)
        return FixResult(content=fixed.outer_html, path=node_path(fixed))

    def generate_fix(self) -> str | None:
        rule = self._rule()
        elem = self._locate(parse_fragment(self.body), rule)
        return rule.generate_fix(elem)
