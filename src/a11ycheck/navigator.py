"""Remediation workflow: step through one resource's issues, preview, fix, and move on."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from a11ycheck.alt_text import LLMError
from a11ycheck.fixer import FixResult, HtmlFixer
from a11ycheck.issues import (
    Issue,
    IssueWorkflowState,
    active_issues_for_scan,
    resource_base_dir,
    update_issue,
)
from a11ycheck.resources import get_resource
from a11ycheck.rules import FixError
from a11ycheck.scanner import ResourceScan, get_scan, list_scans

if TYPE_CHECKING:
    import sqlite3

    from a11ycheck.config import Config

logger = logging.getLogger(__name__)


class IssueNavigator:
    """Cursor over the active issues of one resource scan.

    The cursor index is always clamped to the issue list. ``preview`` and
    ``undo`` never write to the database; ``save_and_next`` and ``dismiss``
    do, and then drop the issue from the list.
    """

    def __init__(
        self, conn: sqlite3.Connection, scan_id: int, config: Config | None = None
    ) -> None:
        self.conn = conn
        self.config = config
        self.scan: ResourceScan = get_scan(conn, scan_id)
        self.issues: list[Issue] = active_issues_for_scan(conn, scan_id)
        self.index = 0
        self.is_remediated = False
        self.error: str | None = None
        self.preview_result: FixResult | None = None

    @property
    def current(self) -> Issue | None:
        if not self.issues:
            return None
        return self.issues[self.index]

    @property
    def is_done(self) -> bool:
        return not self.issues

    def _reset_form(self) -> None:
        self.is_remediated = False
        self.error = None
        self.preview_result = None

    def next(self) -> Issue | None:
        self.index = min(self.index + 1, max(len(self.issues) - 1, 0))
        self._reset_form()
        return self.current

    def previous(self) -> Issue | None:
        self.index = max(self.index - 1, 0)
        self._reset_form()
        return self.current

    def _fixer(self, value: str | None) -> HtmlFixer:
        issue = self.current
        if issue is None:
            msg = "No issue selected"
            raise FixError(msg)
        resource = get_resource(self.conn, issue.resource_id)
        return HtmlFixer(
            issue.rule_type,
            resource.body,
            issue.node_path,
            value,
            config=self.config,
            base_dir=resource_base_dir(self.conn, resource),
        )

    def preview(self, value: str | None) -> FixResult | None:
        """Preview the fix for the current issue; errors are kept in :attr:`error`."""
        try:
            result = self._fixer(value).preview_fix()
        except FixError as exc:
            self.error = str(exc)
            self.is_remediated = False
            self.preview_result = None
            return None
        self.error = None
        self.is_remediated = value is not None
        self.preview_result = result
        return result

    def undo(self) -> FixResult | None:
        """Drop a previewed fix and show the element as stored."""
        result = self.preview(None)
        self.is_remediated = False
        return result

    def generate(self) -> str | None:
        try:
            return self._fixer(None).generate_fix()
        except (FixError, LLMError) as exc:
            self.error = str(exc)
            return None

    def _drop_current(self) -> None:
        del self.issues[self.index]
        self.index = max(0, min(self.index, len(self.issues) - 1))
        self._reset_form()
        self.scan = get_scan(self.conn, self.scan.id)
        logger.debug("%d issue(s) left on scan %d", len(self.issues), self.scan.id)

    def save_and_next(self, value: str) -> Issue | None:
        """Resolve the current issue with *value* and move to the next one.

        Raises :class:`FixError` (and keeps the issue) when the fix is rejected.
        """
        issue = self.current
        if issue is None:
            return None
        try:
            update_issue(
                self.conn, issue.id, IssueWorkflowState.RESOLVED.value, value, self.config
            )
        except FixError as exc:
            self.error = str(exc)
            raise
        self._drop_current()
        return self.current

    def dismiss(self) -> Issue | None:
        issue = self.current
        if issue is None:
            return None
        update_issue(self.conn, issue.id, IssueWorkflowState.DISMISSED.value, config=self.config)
        self._drop_current()
        return self.current

    def next_resource(
        self, *, sort_id: str | None = None, sort_direction: str = "ascending"
    ) -> ResourceScan | None:
        """The next scan in table order that still has issues, wrapping around."""
        scans = list_scans(
            self.conn,
            page=1,
            page_size=1_000_000,
            sort_id=sort_id,
            sort_direction=sort_direction,
        ).scans
        position = next((i for i, s in enumerate(scans) if s.id == self.scan.id), -1)
        ordered = scans[position + 1 :] + scans[: max(position, 0)]
        for scan in ordered:
            if scan.issue_count > 0 and scan.id != self.scan.id:
                return scan
        return None
