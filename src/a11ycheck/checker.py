"""Content checker: evaluate every enabled rule against every element of a document."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from a11ycheck.dom import node_path, parse_fragment
from a11ycheck.rules import build_rules

if TYPE_CHECKING:
    from a11ycheck.config import Config
    from a11ycheck.rules import Rule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssueRecord:
    """A single rule violation found in a document."""

    id: str
    rule_id: str
    display_name: str
    message: str
    why: str
    element: str  # tag name
    path: str
    form: dict[str, object] = field(default_factory=dict)
    issue_url: str = ""
    failure: str = ""  # text returned by the rule's test

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "ruleId": self.rule_id,
            "displayName": self.display_name,
            "message": self.message,
            "why": self.why,
            "element": self.element,
            "path": self.path,
            "issueUrl": self.issue_url,
            "form": self.form,
        }


def issue_key(rule_id: str, path: str) -> str:
    """Stable identifier for a (rule, element path) pair."""
    return hashlib.sha256(f"{rule_id}|{path}".encode()).hexdigest()[:16]


def check_content(
    html: str,
    *,
    rules: list[Rule] | None = None,
    config: Config | None = None,
) -> list[IssueRecord]:
    """Run *rules* (default: all enabled by *config*) over *html*.

    Elements are visited in document order, and for each element the rules
    run in id order. A rule that raises is logged and skipped for that
    element; it never aborts the check.
    """
    if rules is None:
        rules = build_rules(config)
    root = parse_fragment(html)

    records: list[IssueRecord] = []
    for elem in root.iter_elements():
        for rule in rules:
            try:
                failure = rule.test(elem)
            except Exception:
                logger.warning(
                    "Rule %s failed on <%s>", rule.id, elem.tag_name, exc_info=True
                )
                continue
            if failure is None:
                continue
            path = node_path(elem)
            records.append(
                IssueRecord(
                    id=issue_key(rule.id, path),
                    rule_id=rule.id,
                    display_name=rule.display_name,
                    message=rule.message,
                    why=rule.why,
                    element=elem.tag_name,
                    path=path,
                    form=rule.form(elem).to_dict(),
                    issue_url=rule.link,
                    failure=failure,
                )
            )

    logger.debug("Checked %d rule(s), found %d issue(s)", len(rules), len(records))
    return records
