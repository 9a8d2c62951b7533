"""Resource scans: run the checker on content and persist the findings."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from a11ycheck.checker import check_content
from a11ycheck.config import Config
from a11ycheck.infrastructure.db import set_meta, utc_now
from a11ycheck.resources import (
    SCANNABLE_TYPES,
    Resource,
    count_resources,
    get_resource,
    list_resources,
)
from a11ycheck.rules import build_rules

if TYPE_CHECKING:
    import sqlite3

    from a11ycheck.rules import Rule

logger = logging.getLogger(__name__)

TOO_LARGE_MESSAGE = "This content is too large to check"


class ScanWorkflowState(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class ScanNotFoundError(Exception):
    """Raised when a scan id does not exist."""


@dataclass(frozen=True)
class ResourceScan:
    """A resource's scan record joined with the resource fields shown in tables."""

    id: int
    resource_id: int
    resource_type: str
    resource_name: str
    resource_published: bool
    resource_updated_at: str
    resource_url: str
    workflow_state: str
    error_message: str | None
    issue_count: int
    scanned_at: str | None

    @property
    def resource_workflow_state(self) -> str:
        return "published" if self.resource_published else "unpublished"

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "id": self.id,
            "resourceId": self.resource_id,
            "resourceType": self.resource_type,
            "resourceName": self.resource_name,
            "resourceWorkflowState": self.resource_workflow_state,
            "resourceUpdatedAt": self.resource_updated_at,
            "resourceUrl": self.resource_url,
            "workflowState": self.workflow_state,
            "issueCount": self.issue_count,
        }
        if self.error_message:
            data["errorMessage"] = self.error_message
        return data


@dataclass
class ScanAllResult:
    scans: list[ResourceScan] = field(default_factory=list)
    skipped: bool = False
    failed: int = 0
    elapsed_ms: float = 0.0


@dataclass
class ScanPage:
    scans: list[ResourceScan]
    total: int
    page: int
    page_size: int

    @property
    def page_count(self) -> int:
        return max(1, -(-self.total // self.page_size))


_SCAN_SELECT = (
    "SELECT s.id, s.resource_id, s.workflow_state, s.error_message, s.issue_count, "
    "s.scanned_at, r.resource_type, r.title, r.published, r.updated_at "
    "FROM resource_scans s JOIN resources r ON r.id = s.resource_id"
)

# sort id -> SQL column
SORT_COLUMNS: dict[str, str] = {
    "resource_name": "r.title",
    "resource_type": "r.resource_type",
    "resource_workflow_state": "r.published",
    "resource_updated_at": "r.updated_at",
    "issue_count": "s.issue_count",
}


def _row_to_scan(row: sqlite3.Row) -> ResourceScan:
    segment = "pages" if row["resource_type"] == "Page" else "assignments"
    return ResourceScan(
        id=row["id"],
        resource_id=row["resource_id"],
        resource_type=row["resource_type"],
        resource_name=row["title"],
        resource_published=bool(row["published"]),
        resource_updated_at=row["updated_at"],
        resource_url=f"/{segment}/{row['resource_id']}",
        workflow_state=row["workflow_state"],
        error_message=row["error_message"],
        issue_count=row["issue_count"],
        scanned_at=row["scanned_at"],
    )


def get_scan(conn: sqlite3.Connection, scan_id: int) -> ResourceScan:
    row = conn.execute(f"{_SCAN_SELECT} WHERE s.id = ?", (scan_id,)).fetchone()
    if row is None:
        msg = f"Scan {scan_id} not found"
        raise ScanNotFoundError(msg)
    return _row_to_scan(row)


def get_scan_for_resource(conn: sqlite3.Connection, resource_id: int) -> ResourceScan | None:
    row = conn.execute(f"{_SCAN_SELECT} WHERE s.resource_id = ?", (resource_id,)).fetchone()
    return _row_to_scan(row) if row is not None else None


def recount_issues(conn: sqlite3.Connection, scan_id: int) -> int:
    """Recompute ``issue_count`` from active issues. Caller commits."""
    count: int = conn.execute(
        "SELECT count(*) FROM issues WHERE scan_id = ? AND workflow_state = 'active'",
        (scan_id,),
    ).fetchone()[0]
    conn.execute("UPDATE resource_scans SET issue_count = ? WHERE id = ?", (count, scan_id))
    return count


def _set_state(
    conn: sqlite3.Connection,
    scan_id: int,
    state: ScanWorkflowState,
    error_message: str | None = None,
) -> None:
    conn.execute(
        "UPDATE resource_scans SET workflow_state = ?, error_message = ? WHERE id = ?",
        (state.value, error_message, scan_id),
    )
    conn.commit()


def _ensure_scan(conn: sqlite3.Connection, resource_id: int) -> int:
    conn.execute(
        "INSERT OR IGNORE INTO resource_scans (resource_id) VALUES (?)", (resource_id,)
    )
    row = conn.execute(
        "SELECT id FROM resource_scans WHERE resource_id = ?", (resource_id,)
    ).fetchone()
    return int(row["id"])


def _store_findings(
    conn: sqlite3.Connection, scan_id: int, resource: Resource, rules: list[Rule]
) -> None:
    dismissed = {
        (r["rule_type"], r["node_path"])
        for r in conn.execute(
            "SELECT rule_type, node_path FROM issues "
            "WHERE scan_id = ? AND workflow_state = 'dismissed'",
            (scan_id,),
        ).fetchall()
    }
    records = check_content(resource.body, rules=rules)

    now = utc_now()
    conn.execute(
        "DELETE FROM issues WHERE scan_id = ? AND workflow_state = 'active'", (scan_id,)
    )
    for record in records:
        if (record.rule_id, record.path) in dismissed:
            continue
        metadata = record.to_dict()
        metadata["failure"] = record.failure
        conn.execute(
            "INSERT INTO issues "
            "(scan_id, rule_type, node_path, workflow_state, metadata, created_at, updated_at) "
            "VALUES (?, ?, ?, 'active', ?, ?, ?)",
            (scan_id, record.rule_id, record.path, json.dumps(metadata), now, now),
        )
    recount_issues(conn, scan_id)
    conn.execute("UPDATE resource_scans SET scanned_at = ? WHERE id = ?", (now, scan_id))


def scan_resource(
    conn: sqlite3.Connection,
    resource: Resource,
    config: Config | None = None,
    *,
    rules: list[Rule] | None = None,
) -> ResourceScan:
    """Check one resource and replace its active issues with the new findings.

    Resolved issues are kept. A finding matching a dismissed issue (same
    rule and path) is not re-created. Oversized content and checker crashes
    leave the scan in ``failed`` with an error message.
    """
    config = config or Config()
    if rules is None:
        rules = build_rules(config)

    scan_id = _ensure_scan(conn, resource.id)
    _set_state(conn, scan_id, ScanWorkflowState.QUEUED)

    if resource.resource_type not in SCANNABLE_TYPES:
        logger.debug("Skipping %s %d", resource.resource_type.value, resource.id)
        _set_state(conn, scan_id, ScanWorkflowState.COMPLETED)
        return get_scan(conn, scan_id)

    _set_state(conn, scan_id, ScanWorkflowState.IN_PROGRESS)

    if len(resource.body) > config.max_content_size:
        logger.warning(
            "%s %d is %d characters, over the %d limit",
            resource.resource_type.value,
            resource.id,
            len(resource.body),
            config.max_content_size,
        )
        _set_state(conn, scan_id, ScanWorkflowState.FAILED, TOO_LARGE_MESSAGE)
        return get_scan(conn, scan_id)

    try:
        _store_findings(conn, scan_id, resource, rules)
    except Exception as exc:
        conn.rollback()
        logger.exception("Scan of %s %d failed", resource.resource_type.value, resource.id)
        _set_state(conn, scan_id, ScanWorkflowState.FAILED, str(exc) or type(exc).__name__)
        return get_scan(conn, scan_id)

    _set_state(conn, scan_id, ScanWorkflowState.COMPLETED)
    return get_scan(conn, scan_id)


def exceeds_scan_limit(conn: sqlite3.Connection, config: Config) -> bool:
    return count_resources(conn) > config.max_resources


def scan_all(conn: sqlite3.Connection, config: Config | None = None) -> ScanAllResult:
    """Scan every page and assignment, unless the course is over the resource limit."""
    start = time.monotonic()
    config = config or Config()

    if exceeds_scan_limit(conn, config):
        logger.warning(
            "Course has more than %d resources; accessibility scan disabled",
            config.max_resources,
        )
        set_meta(conn, "accessibility_scan_disabled", "1")
        return ScanAllResult(skipped=True, elapsed_ms=(time.monotonic() - start) * 1000)

    set_meta(conn, "accessibility_scan_disabled", "0")
    rules = build_rules(config)
    result = ScanAllResult()
    for resource in list_resources(conn):
        scan = scan_resource(conn, resource, config, rules=rules)
        if scan.workflow_state == ScanWorkflowState.FAILED.value:
            result.failed += 1
        result.scans.append(scan)

    set_meta(conn, "last_checked_at", utc_now())
    result.elapsed_ms = (time.monotonic() - start) * 1000
    logger.info("Scanned %d resource(s), %d failed", len(result.scans), result.failed)
    return result


def rescan(
    conn: sqlite3.Connection, resource_id: int, config: Config | None = None
) -> ResourceScan:
    return scan_resource(conn, get_resource(conn, resource_id), config)


def list_scans(
    conn: sqlite3.Connection,
    *,
    page: int = 1,
    page_size: int = 10,
    sort_id: str | None = None,
    sort_direction: str = "ascending",
    search: str | None = None,
) -> ScanPage:
    """One page of scans, optionally filtered by resource name and sorted.

    Unknown sort ids fall back to scan id order; page numbers and sizes
    below 1 are clamped to 1.
    """
    page = max(page, 1)
    page_size = max(page_size, 1)

    where = ""
    params: list[object] = []
    if search:
        where = " WHERE lower(r.title) LIKE ?"
        params.append(f"%{search.lower()}%")

    column = SORT_COLUMNS.get(sort_id or "")
    direction = "DESC" if sort_direction == "descending" else "ASC"
    order = f" ORDER BY {column} {direction}, s.id ASC" if column else " ORDER BY s.id ASC"

    total: int = conn.execute(
        "SELECT count(*) FROM resource_scans s JOIN resources r ON r.id = s.resource_id"
        + where,
        params,
    ).fetchone()[0]
    rows = conn.execute(
        f"{_SCAN_SELECT}{where}{order} LIMIT ? OFFSET ?",
        [*params, page_size, (page - 1) * page_size],
    ).fetchall()
    return ScanPage(
        scans=[_row_to_scan(r) for r in rows],
        total=total,
        page=page,
        page_size=page_size,
    )
