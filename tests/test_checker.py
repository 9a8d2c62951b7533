"""Tests for a11ycheck.checker: running rules over a document."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from a11ycheck.checker import check_content, issue_key
from a11ycheck.config import Config
from a11ycheck.rules import Rule, build_rule

if TYPE_CHECKING:
    import pytest

    from a11ycheck.dom import Element


class _ExplodingRule(Rule):
    id = "exploding"

    def test(self, elem: Element) -> str | None:
        msg = "boom"
        raise RuntimeError(msg)


def test_finds_issues_in_document_order() -> None:
    records = check_content('<h1>Title</h1><p><img src="cat.png"></p>')
    assert [(r.rule_id, r.path) for r in records] == [
        ("headings-start-at-h2", "./h1"),
        ("img-alt", "./p/img"),
    ]


def test_record_fields() -> None:
    (record,) = check_content("<h1>Title</h1>")
    assert record.id == issue_key("headings-start-at-h2", "./h1")
    assert record.element == "h1"
    assert record.display_name == "Heading 1 in content"
    assert record.issue_url.startswith("https://")
    assert record.form["type"] == "radio_input_group"
    assert record.failure == "Headings should start at h2."

    data = record.to_dict()
    assert data["ruleId"] == "headings-start-at-h2"
    assert data["path"] == "./h1"
    assert "failure" not in data


def test_clean_document() -> None:
    assert check_content("<h2>Intro</h2><p>Plain text.</p>") == []


def test_disabled_rules_skipped() -> None:
    config = Config(disabled_rules=frozenset({"headings-start-at-h2"}))
    assert check_content("<h1>Title</h1>", config=config) == []


def test_failing_rule_is_logged_and_skipped(caplog: pytest.LogCaptureFixture) -> None:
    img_alt = build_rule("img-alt")
    assert img_alt is not None
    with caplog.at_level(logging.WARNING, logger="a11ycheck.checker"):
        records = check_content('<img src="a.png">', rules=[_ExplodingRule(), img_alt])
    assert [r.rule_id for r in records] == ["img-alt"]
    assert "Rule exploding failed on <img>" in caplog.text


def test_issue_key_stable() -> None:
    key = issue_key("img-alt", "./p/img")
    assert key == issue_key("img-alt", "./p/img")
    assert key != issue_key("img-alt", "./p[2]/img")
    assert len(key) == 16
