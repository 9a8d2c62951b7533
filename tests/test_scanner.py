"""Tests for a11ycheck.scanner: resource scans and the scan table."""

from __future__ import annotations

import unittest.mock
from typing import TYPE_CHECKING

import pytest

from a11ycheck.config import Config
from a11ycheck.infrastructure.db import get_meta
from a11ycheck.resources import ResourceNotFoundError, ResourceType, add_resource
from a11ycheck.scanner import (
    TOO_LARGE_MESSAGE,
    ScanNotFoundError,
    get_scan,
    get_scan_for_resource,
    list_scans,
    rescan,
    scan_all,
    scan_resource,
)

if TYPE_CHECKING:
    import sqlite3

BODY = '<h1>Title</h1><p><img src="cat.png"></p>'


def _issue_rows(conn: sqlite3.Connection, scan_id: int) -> list[tuple[str, str, str]]:
    rows = conn.execute(
        "SELECT rule_type, node_path, workflow_state FROM issues WHERE scan_id = ? ORDER BY id",
        (scan_id,),
    ).fetchall()
    return [(r["rule_type"], r["node_path"], r["workflow_state"]) for r in rows]


class TestScanResource:
    def test_records_findings(self, db_conn: sqlite3.Connection) -> None:
        page = add_resource(db_conn, ResourceType.PAGE, "Syllabus", BODY)
        scan = scan_resource(db_conn, page)

        assert scan.workflow_state == "completed"
        assert scan.issue_count == 2
        assert scan.scanned_at is not None
        assert scan.resource_name == "Syllabus"
        assert scan.resource_url == f"/pages/{page.id}"
        assert _issue_rows(db_conn, scan.id) == [
            ("headings-start-at-h2", "./h1", "active"),
            ("img-alt", "./p/img", "active"),
        ]

    def test_issue_metadata_stored(self, db_conn: sqlite3.Connection) -> None:
        page = add_resource(db_conn, ResourceType.PAGE, "Syllabus", "<h1>Title</h1>")
        scan = scan_resource(db_conn, page)
        (metadata,) = [
            r["metadata"]
            for r in db_conn.execute("SELECT metadata FROM issues WHERE scan_id = ?", (scan.id,))
        ]
        assert '"displayName": "Heading 1 in content"' in metadata
        assert '"failure": "Headings should start at h2."' in metadata

    def test_rescan_replaces_active_issues(self, db_conn: sqlite3.Connection) -> None:
        page = add_resource(db_conn, ResourceType.PAGE, "Syllabus", BODY)
        first = scan_resource(db_conn, page)
        db_conn.execute(
            "UPDATE resources SET body = ? WHERE id = ?", ("<h1>Title</h1>", page.id)
        )
        db_conn.commit()

        second = rescan(db_conn, page.id)
        assert second.id == first.id
        assert second.issue_count == 1
        assert _issue_rows(db_conn, second.id) == [("headings-start-at-h2", "./h1", "active")]

    def test_rescan_keeps_resolved_and_dismissed(self, db_conn: sqlite3.Connection) -> None:
        page = add_resource(db_conn, ResourceType.PAGE, "Syllabus", BODY)
        scan = scan_resource(db_conn, page)
        db_conn.execute(
            "UPDATE issues SET workflow_state = 'dismissed' WHERE rule_type = 'img-alt'"
        )
        db_conn.execute(
            "UPDATE issues SET workflow_state = 'resolved' "
            "WHERE rule_type = 'headings-start-at-h2'"
        )
        db_conn.commit()

        again = rescan(db_conn, page.id)
        assert again.issue_count == 1
        assert sorted(_issue_rows(db_conn, scan.id)) == [
            ("headings-start-at-h2", "./h1", "active"),
            ("headings-start-at-h2", "./h1", "resolved"),
            ("img-alt", "./p/img", "dismissed"),
        ]

    def test_too_large(self, db_conn: sqlite3.Connection) -> None:
        page = add_resource(db_conn, ResourceType.PAGE, "Big", BODY)
        scan = scan_resource(db_conn, page, Config(max_content_size=10))
        assert scan.workflow_state == "failed"
        assert scan.error_message == TOO_LARGE_MESSAGE
        assert scan.issue_count == 0
        assert scan.to_dict()["errorMessage"] == TOO_LARGE_MESSAGE

    def test_checker_crash_marks_failed(self, db_conn: sqlite3.Connection) -> None:
        page = add_resource(db_conn, ResourceType.PAGE, "Syllabus", BODY)
        with unittest.mock.patch(
            "a11ycheck.scanner.check_content", side_effect=RuntimeError("boom")
        ):
            scan = scan_resource(db_conn, page)
        assert scan.workflow_state == "failed"
        assert scan.error_message == "boom"
        assert _issue_rows(db_conn, scan.id) == []

    def test_attachments_not_checked(self, db_conn: sqlite3.Connection) -> None:
        attachment = add_resource(db_conn, ResourceType.ATTACHMENT, "file.html", BODY)
        scan = scan_resource(db_conn, attachment)
        assert scan.workflow_state == "completed"
        assert scan.issue_count == 0

    def test_disabled_rule(self, db_conn: sqlite3.Connection) -> None:
        page = add_resource(db_conn, ResourceType.PAGE, "Syllabus", BODY)
        scan = scan_resource(db_conn, page, Config(disabled_rules=frozenset({"img-alt"})))
        assert scan.issue_count == 1

    def test_rescan_missing_resource(self, db_conn: sqlite3.Connection) -> None:
        with pytest.raises(ResourceNotFoundError):
            rescan(db_conn, 42)


class TestScanAll:
    def test_scans_pages_and_assignments(self, db_conn: sqlite3.Connection) -> None:
        add_resource(db_conn, ResourceType.PAGE, "A", BODY)
        add_resource(db_conn, ResourceType.ASSIGNMENT, "B", "<p>clean</p>")
        add_resource(db_conn, ResourceType.ATTACHMENT, "c.pdf", "")

        result = scan_all(db_conn)
        assert not result.skipped
        assert result.failed == 0
        assert [s.resource_name for s in result.scans] == ["A", "B"]
        assert [s.issue_count for s in result.scans] == [2, 0]
        assert get_meta(db_conn, "accessibility_scan_disabled") == "0"
        assert get_meta(db_conn, "last_checked_at") is not None

    def test_skipped_over_resource_limit(self, db_conn: sqlite3.Connection) -> None:
        add_resource(db_conn, ResourceType.PAGE, "A", BODY)
        add_resource(db_conn, ResourceType.PAGE, "B", BODY)

        result = scan_all(db_conn, Config(max_resources=1))
        assert result.skipped
        assert result.scans == []
        assert get_meta(db_conn, "accessibility_scan_disabled") == "1"
        assert list_scans(db_conn).total == 0

    def test_counts_failures(self, db_conn: sqlite3.Connection) -> None:
        add_resource(db_conn, ResourceType.PAGE, "A", BODY)
        add_resource(db_conn, ResourceType.PAGE, "B", "<p>x</p>")
        result = scan_all(db_conn, Config(max_content_size=20))
        assert result.failed == 1


class TestScanTable:
    @pytest.fixture()
    def scanned(self, db_conn: sqlite3.Connection) -> sqlite3.Connection:
        add_resource(db_conn, ResourceType.PAGE, "Gamma", "<p>clean</p>")
        add_resource(db_conn, ResourceType.ASSIGNMENT, "Alpha", BODY)
        add_resource(db_conn, ResourceType.PAGE, "Beta", "<h1>x</h1>", published=False)
        scan_all(db_conn)
        return db_conn

    def test_default_order_is_scan_id(self, scanned: sqlite3.Connection) -> None:
        page = list_scans(scanned)
        assert [s.resource_name for s in page.scans] == ["Gamma", "Alpha", "Beta"]
        assert page.total == 3
        assert page.page_count == 1

    def test_sort_by_issue_count_descending(self, scanned: sqlite3.Connection) -> None:
        page = list_scans(scanned, sort_id="issue_count", sort_direction="descending")
        assert [s.issue_count for s in page.scans] == [2, 1, 0]

    def test_sort_by_name(self, scanned: sqlite3.Connection) -> None:
        page = list_scans(scanned, sort_id="resource_name")
        assert [s.resource_name for s in page.scans] == ["Alpha", "Beta", "Gamma"]

    def test_unknown_sort_falls_back(self, scanned: sqlite3.Connection) -> None:
        page = list_scans(scanned, sort_id="bogus; DROP TABLE issues")
        assert [s.resource_name for s in page.scans] == ["Gamma", "Alpha", "Beta"]

    def test_search(self, scanned: sqlite3.Connection) -> None:
        page = list_scans(scanned, search="ALP")
        assert [s.resource_name for s in page.scans] == ["Alpha"]
        assert page.total == 1

    def test_pagination(self, scanned: sqlite3.Connection) -> None:
        page = list_scans(scanned, page=2, page_size=2)
        assert [s.resource_name for s in page.scans] == ["Beta"]
        assert page.page_count == 2

    def test_bounds_clamped(self, scanned: sqlite3.Connection) -> None:
        page = list_scans(scanned, page=0, page_size=0)
        assert page.page == 1
        assert page.page_size == 1
        assert len(page.scans) == 1

    def test_resource_workflow_state(self, scanned: sqlite3.Connection) -> None:
        states = {s.resource_name: s.resource_workflow_state for s in list_scans(scanned).scans}
        assert states == {"Gamma": "published", "Alpha": "published", "Beta": "unpublished"}

    def test_lookups(self, scanned: sqlite3.Connection) -> None:
        first = list_scans(scanned).scans[0]
        assert get_scan(scanned, first.id) == first
        assert get_scan_for_resource(scanned, first.resource_id) == first
        assert get_scan_for_resource(scanned, 999) is None
        with pytest.raises(ScanNotFoundError):
            get_scan(scanned, 999)
