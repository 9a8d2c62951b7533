"""Issue store: workflow updates, content fixes, filtering, and summaries."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from a11ycheck.fixer import FixResult, HtmlFixer
from a11ycheck.infrastructure.db import get_meta, utc_now
from a11ycheck.resources import Resource, find_resource, get_resource, update_body
from a11ycheck.rules import get_rule_class
from a11ycheck.scanner import recount_issues

if TYPE_CHECKING:
    import sqlite3

    from a11ycheck.config import Config

logger = logging.getLogger(__name__)


class IssueWorkflowState(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


VALID_WORKFLOW_STATES: frozenset[str] = frozenset(s.value for s in IssueWorkflowState)


class IssueNotFoundError(Exception):
    """Raised when an issue id does not exist."""


class InvalidWorkflowStateError(ValueError):
    """Raised for a workflow state outside active/resolved/dismissed."""


class IssueUpdateError(ValueError):
    """Raised when an update request is missing required data."""


@dataclass(frozen=True)
class Issue:
    id: int
    scan_id: int
    resource_id: int
    resource_type: str
    rule_type: str
    node_path: str
    workflow_state: str
    metadata: dict[str, Any]
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, object]:
        """Serialized form used by the remediation workflow and ``--json`` output."""
        return {
            "id": str(self.id),
            "ruleId": self.rule_type,
            "displayName": self.metadata.get("displayName", self.rule_type),
            "message": self.metadata.get("message", ""),
            "why": self.metadata.get("why", ""),
            "element": self.metadata.get("element", ""),
            "path": self.node_path,
            "issueUrl": self.metadata.get("issueUrl", ""),
            "form": self.metadata.get("form", {}),
            "workflowState": self.workflow_state,
            "resourceId": self.resource_id,
            "resourceType": self.resource_type,
        }


@dataclass(frozen=True)
class Filters:
    """Issue list filters; empty fields match everything."""

    rule_types: tuple[str, ...] = ()
    artifact_types: tuple[str, ...] = ()
    workflow_states: tuple[str, ...] = ()
    from_date: str | None = None  # ISO date, inclusive
    to_date: str | None = None  # ISO date, inclusive


@dataclass(frozen=True)
class IssueDataPoint:
    id: str
    issue: str
    count: int
    severity: str

    def to_dict(self) -> dict[str, object]:
        return {"id": self.id, "issue": self.issue, "count": self.count, "severity": self.severity}


@dataclass
class UpdateResult:
    issue: Issue
    issue_count: int
    fix: FixResult | None = field(default=None)


def severity_for(count: int) -> str:
    """High above 30 issues, Medium above 2, else Low."""
    if count > 30:
        return "High"
    if count > 2:
        return "Medium"
    return "Low"


_ISSUE_SELECT = (
    "SELECT i.*, s.resource_id, r.resource_type FROM issues i "
    "JOIN resource_scans s ON s.id = i.scan_id "
    "JOIN resources r ON r.id = s.resource_id"
)


def _row_to_issue(row: sqlite3.Row) -> Issue:
    try:
        metadata = json.loads(row["metadata"] or "{}")
    except json.JSONDecodeError:
        logger.warning("Issue %d has malformed metadata", row["id"])
        metadata = {}
    return Issue(
        id=row["id"],
        scan_id=row["scan_id"],
        resource_id=row["resource_id"],
        resource_type=row["resource_type"],
        rule_type=row["rule_type"],
        node_path=row["node_path"],
        workflow_state=row["workflow_state"],
        metadata=metadata,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def get_issue(conn: sqlite3.Connection, issue_id: int) -> Issue:
    row = conn.execute(f"{_ISSUE_SELECT} WHERE i.id = ?", (issue_id,)).fetchone()
    if row is None:
        msg = f"Issue {issue_id} not found"
        raise IssueNotFoundError(msg)
    return _row_to_issue(row)


def active_issues_for_scan(conn: sqlite3.Connection, scan_id: int) -> list[Issue]:
    rows = conn.execute(
        f"{_ISSUE_SELECT} WHERE i.scan_id = ? AND i.workflow_state = 'active' ORDER BY i.id",
        (scan_id,),
    ).fetchall()
    return [_row_to_issue(r) for r in rows]


def list_issues(conn: sqlite3.Connection, filters: Filters | None = None) -> list[Issue]:
    """Issues matching *filters*, in scan then id order."""
    filters = filters or Filters()
    clauses: list[str] = []
    params: list[object] = []

    def _in(column: str, values: tuple[str, ...]) -> None:
        if values:
            clauses.append(f"{column} IN ({','.join('?' for _ in values)})")
            params.extend(values)

    _in("i.rule_type", filters.rule_types)
    _in("r.resource_type", filters.artifact_types)
    _in("i.workflow_state", filters.workflow_states)
    if filters.from_date:
        clauses.append("substr(i.created_at, 1, 10) >= ?")
        params.append(filters.from_date[:10])
    if filters.to_date:
        clauses.append("substr(i.created_at, 1, 10) <= ?")
        params.append(filters.to_date[:10])

    where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = conn.execute(f"{_ISSUE_SELECT}{where} ORDER BY i.scan_id, i.id", params).fetchall()
    return [_row_to_issue(r) for r in rows]


def issue_summary(conn: sqlite3.Connection) -> list[IssueDataPoint]:
    """Active issue counts per rule, most frequent first."""
    rows = conn.execute(
        "SELECT rule_type, count(*) AS cnt FROM issues WHERE workflow_state = 'active' "
        "GROUP BY rule_type ORDER BY cnt DESC, rule_type"
    ).fetchall()
    points: list[IssueDataPoint] = []
    for row in rows:
        cls = get_rule_class(row["rule_type"])
        points.append(
            IssueDataPoint(
                id=row["rule_type"],
                issue=cls.display_name if cls is not None else row["rule_type"],
                count=row["cnt"],
                severity=severity_for(row["cnt"]),
            )
        )
    return points


# ---------------------------------------------------------------------------
# Fix routing
# ---------------------------------------------------------------------------


def resource_base_dir(conn: sqlite3.Connection, resource: Resource) -> Path | None:
    """Directory that relative image sources of *resource* resolve against."""
    content_root = get_meta(conn, "content_root")
    if content_root is None or resource.source_path is None:
        return None
    return (Path(content_root) / resource.source_path).parent


def _fixer(
    conn: sqlite3.Connection,
    resource: Resource,
    rule_id: str,
    path: str,
    value: str | None,
    config: Config | None,
) -> HtmlFixer:
    return HtmlFixer(
        rule_id,
        resource.body,
        path,
        value,
        config=config,
        base_dir=resource_base_dir(conn, resource),
    )


def update_content(
    conn: sqlite3.Connection,
    rule_id: str,
    resource_type: str,
    resource_id: int,
    path: str,
    value: str | None,
    config: Config | None = None,
) -> FixResult:
    """Apply a fix, save the resource body, and resolve the matching active issue."""
    resource = find_resource(conn, resource_type, resource_id)
    result = _fixer(conn, resource, rule_id, path, value, config).apply_fix()
    update_body(conn, resource.id, result.content)

    scan_row = conn.execute(
        "SELECT id FROM resource_scans WHERE resource_id = ?", (resource.id,)
    ).fetchone()
    if scan_row is not None:
        conn.execute(
            "UPDATE issues SET workflow_state = 'resolved', updated_at = ? "
            "WHERE scan_id = ? AND rule_type = ? AND node_path = ? AND workflow_state = 'active'",
            (utc_now(), scan_row["id"], rule_id, path),
        )
        recount_issues(conn, scan_row["id"])
    conn.commit()
    return result


def update_preview(
    conn: sqlite3.Connection,
    rule_id: str,
    resource_type: str,
    resource_id: int,
    path: str,
    value: str | None,
    config: Config | None = None,
) -> FixResult:
    resource = find_resource(conn, resource_type, resource_id)
    return _fixer(conn, resource, rule_id, path, value, config).preview_fix()


def generate_fix(
    conn: sqlite3.Connection,
    rule_id: str,
    resource_type: str,
    resource_id: int,
    path: str,
    value: str | None = None,
    config: Config | None = None,
) -> str | None:
    resource = find_resource(conn, resource_type, resource_id)
    return _fixer(conn, resource, rule_id, path, value, config).generate_fix()


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


def update_issue(
    conn: sqlite3.Connection,
    issue_id: int,
    workflow_state: str,
    value: str | None = None,
    config: Config | None = None,
) -> UpdateResult:
    """Move an issue to *workflow_state*.

    ``resolved`` applies the rule's fix with *value* to the resource body
    first; nothing is written if the fix fails. The scan's ``issue_count``
    is recomputed afterwards.

    Raises
    ------
    IssueNotFoundError
        Unknown *issue_id*.
    InvalidWorkflowStateError
        *workflow_state* is not one of active/resolved/dismissed.
    IssueUpdateError
        ``resolved`` requested without a value.
    FixError
        The fix rejected *value* or could not locate the element.
    """
    issue = get_issue(conn, issue_id)

    if workflow_state not in VALID_WORKFLOW_STATES:
        msg = "Invalid workflow_state"
        raise InvalidWorkflowStateError(msg)

    fix: FixResult | None = None
    if workflow_state == IssueWorkflowState.RESOLVED.value:
        if value is None or value == "":
            msg = "Value is required for resolved state"
            raise IssueUpdateError(msg)
        resource = get_resource(conn, issue.resource_id)
        fix = _fixer(conn, resource, issue.rule_type, issue.node_path, value, config).apply_fix()
        update_body(conn, resource.id, fix.content)

    conn.execute(
        "UPDATE issues SET workflow_state = ?, updated_at = ? WHERE id = ?",
        (workflow_state, utc_now(), issue_id),
    )
    count = recount_issues(conn, issue.scan_id)
    conn.commit()
    logger.info("Issue %d (%s) -> %s", issue_id, issue.rule_type, workflow_state)
    return UpdateResult(issue=get_issue(conn, issue_id), issue_count=count, fix=fix)
