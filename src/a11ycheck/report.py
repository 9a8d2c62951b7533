"""Course accessibility report: per-resource summary, search, and formatters."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from a11ycheck.config import Config
from a11ycheck.infrastructure.db import get_meta
from a11ycheck.issues import active_issues_for_scan, severity_for
from a11ycheck.resources import ResourceType, list_resources
from a11ycheck.scanner import exceeds_scan_limit, get_scan_for_resource

if TYPE_CHECKING:
    import sqlite3

# report key -> resource type
SECTIONS: dict[str, ResourceType] = {
    "pages": ResourceType.PAGE,
    "assignments": ResourceType.ASSIGNMENT,
}


def format_last_checked(moment: datetime) -> str:
    """``Mar 4, 2025`` style date (no zero padding on the day)."""
    return f"{moment:%b} {moment.day}, {moment.year}"


def _last_checked(conn: sqlite3.Connection) -> str:
    raw = get_meta(conn, "last_checked_at")
    moment = datetime.fromisoformat(raw) if raw else datetime.now(tz=timezone.utc)
    return format_last_checked(moment)


def _content_items(
    conn: sqlite3.Connection, resource_type: ResourceType, *, skip_scan: bool
) -> dict[int, dict[str, Any]]:
    items: dict[int, dict[str, Any]] = {}
    for resource in list_resources(conn, (resource_type,)):
        issues: list[dict[str, object]] = []
        if not skip_scan:
            scan = get_scan_for_resource(conn, resource.id)
            if scan is not None:
                issues = [i.to_dict() for i in active_issues_for_scan(conn, scan.id)]
        items[resource.id] = {
            "id": resource.id,
            "type": resource.resource_type.value,
            "title": resource.title,
            "published": resource.published,
            "updated_at": resource.updated_at,
            "count": len(issues),
            "url": resource.url,
            "edit_url": resource.edit_url,
            "issues": issues,
            "severity": severity_for(len(issues)),
        }
    return items


def generate(conn: sqlite3.Connection, config: Config | None = None) -> dict[str, Any]:
    """Summary of every page and assignment with its active issues.

    When the course exceeds the resource limit, items are listed without
    issues and ``accessibility_scan_disabled`` is set. Attachments are never
    checked and are always empty.
    """
    config = config or Config()
    skip_scan = exceeds_scan_limit(conn, config)
    data: dict[str, Any] = {
        key: _content_items(conn, rtype, skip_scan=skip_scan) for key, rtype in SECTIONS.items()
    }
    data["attachments"] = {}
    data["last_checked"] = _last_checked(conn)
    data["accessibility_scan_disabled"] = skip_scan
    return data


def _filter_items(items: dict[int, dict[str, Any]], query: str) -> dict[int, dict[str, Any]]:
    needle = query.lower()
    return {
        item_id: item
        for item_id, item in items.items()
        if any(needle in str(value).lower() for value in item.values())
    }


def search(
    conn: sqlite3.Connection, query: str | None, config: Config | None = None
) -> dict[str, Any]:
    """:func:`generate`, keeping items where any field contains *query* (case-insensitive)."""
    data = generate(conn, config)
    if query is None or not query.strip():
        return data
    for key in (*SECTIONS, "attachments"):
        data[key] = _filter_items(data[key], query)
    return data


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def _all_items(data: dict[str, Any]) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    for key in (*SECTIONS, "attachments"):
        items.extend(data.get(key, {}).values())
    return items


def format_rich(data: dict[str, Any]) -> str:
    """Human-readable report (plain text).

    Example::

        Last checked: Mar 4, 2025

        ✗ Syllabus (Page) - 2 issues [Low]
          img-alt-filename  ./p/img
          headings-start-at-h2  ./h1

        2 issues in 1 of 3 resources
    """
    lines: list[str] = [f"Last checked: {data['last_checked']}"]
    if data.get("accessibility_scan_disabled"):
        lines.append("Accessibility scan disabled: too many resources in this course.")
    lines.append("")

    items = _all_items(data)
    with_issues = [item for item in items if item["count"]]
    for item in with_issues:
        noun = "issue" if item["count"] == 1 else "issues"
        lines.append(
            f"✗ {item['title']} ({item['type']}) - {item['count']} {noun} [{item['severity']}]"
        )
        for issue in item["issues"]:
            lines.append(f"  {issue['ruleId']}  {issue['path']}")
        lines.append("")

    total = sum(item["count"] for item in items)
    if total:
        lines.append(f"{total} issues in {len(with_issues)} of {len(items)} resources")
    else:
        lines.append(f"✓ No issues found ({len(items)} resources)")
    return "\n".join(lines)


def format_json(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def format_porcelain(data: dict[str, Any]) -> str:
    """One line per issue: ``type:resource_id:rule_id:path``. Empty when clean."""
    lines: list[str] = []
    for item in _all_items(data):
        for issue in item["issues"]:
            lines.append(f"{item['type']}:{item['id']}:{issue['ruleId']}:{issue['path']}")
    return "\n".join(lines)
