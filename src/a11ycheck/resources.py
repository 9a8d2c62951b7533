"""Course content resources: storage, lookup, and directory import/export."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from a11ycheck.dom import parse_fragment
from a11ycheck.infrastructure.db import utc_now

if TYPE_CHECKING:
    import sqlite3

logger = logging.getLogger(__name__)


class ResourceType(str, Enum):
    PAGE = "Page"
    ASSIGNMENT = "Assignment"
    ATTACHMENT = "Attachment"


# Only these are checked; attachments are recorded but never scanned.
SCANNABLE_TYPES: tuple[ResourceType, ...] = (ResourceType.PAGE, ResourceType.ASSIGNMENT)

# sub-directory -> resource type
IMPORT_DIRS: dict[str, ResourceType] = {
    "pages": ResourceType.PAGE,
    "assignments": ResourceType.ASSIGNMENT,
}


class ResourceNotFoundError(Exception):
    """Raised when a resource id does not exist."""


@dataclass(frozen=True)
class Resource:
    id: int
    resource_type: ResourceType
    title: str
    body: str
    published: bool
    updated_at: str
    source_path: str | None = None

    @property
    def url(self) -> str:
        return f"/{_url_segment(self.resource_type)}/{self.id}"

    @property
    def edit_url(self) -> str:
        return f"{self.url}/edit"


@dataclass
class ImportResult:
    added: int = 0
    updated: int = 0
    unchanged: int = 0


def _url_segment(resource_type: ResourceType) -> str:
    for segment, rtype in IMPORT_DIRS.items():
        if rtype is resource_type:
            return segment
    return "files"


def parse_resource_type(value: str) -> ResourceType:
    """Map a type name to :class:`ResourceType`.

    Raises ``ValueError`` for types that cannot be fixed or scanned.
    """
    for rtype in SCANNABLE_TYPES:
        if value in (rtype.value, rtype.name.lower()):
            return rtype
    msg = f"Unsupported resource type: {value}"
    raise ValueError(msg)


def _row_to_resource(row: sqlite3.Row) -> Resource:
    return Resource(
        id=row["id"],
        resource_type=ResourceType(row["resource_type"]),
        title=row["title"],
        body=row["body"],
        published=bool(row["published"]),
        updated_at=row["updated_at"],
        source_path=row["source_path"],
    )


def add_resource(
    conn: sqlite3.Connection,
    resource_type: ResourceType,
    title: str,
    body: str,
    *,
    published: bool = True,
    source_path: str | None = None,
) -> Resource:
    cur = conn.execute(
        "INSERT INTO resources (resource_type, title, body, published, source_path, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        (resource_type.value, title, body, int(published), source_path, utc_now()),
    )
    conn.commit()
    return get_resource(conn, int(cur.lastrowid or 0))


def get_resource(conn: sqlite3.Connection, resource_id: int) -> Resource:
    row = conn.execute("SELECT * FROM resources WHERE id = ?", (resource_id,)).fetchone()
    if row is None:
        msg = f"Resource {resource_id} not found"
        raise ResourceNotFoundError(msg)
    return _row_to_resource(row)


def find_resource(conn: sqlite3.Connection, resource_type: str, resource_id: int) -> Resource:
    """Look up a resource of a given type.

    Raises
    ------
    ValueError
        When *resource_type* is not a fixable type.
    ResourceNotFoundError
        When no resource of that type has *resource_id*.
    """
    rtype = parse_resource_type(resource_type)
    row = conn.execute(
        "SELECT * FROM resources WHERE id = ? AND resource_type = ?",
        (resource_id, rtype.value),
    ).fetchone()
    if row is None:
        msg = f"{rtype.value} {resource_id} not found"
        raise ResourceNotFoundError(msg)
    return _row_to_resource(row)


def list_resources(
    conn: sqlite3.Connection, types: tuple[ResourceType, ...] = SCANNABLE_TYPES
) -> list[Resource]:
    placeholders = ",".join("?" for _ in types)
    query = f"SELECT * FROM resources WHERE resource_type IN ({placeholders}) ORDER BY id"
    rows = conn.execute(
        query,
        tuple(t.value for t in types),
    ).fetchall()
    return [_row_to_resource(r) for r in rows]


def count_resources(conn: sqlite3.Connection) -> int:
    return int(conn.execute("SELECT count(*) FROM resources").fetchone()[0])


def update_body(conn: sqlite3.Connection, resource_id: int, body: str) -> None:
    """Persist a new body. Caller commits."""
    conn.execute(
        "UPDATE resources SET body = ?, updated_at = ? WHERE id = ?",
        (body, utc_now(), resource_id),
    )


# ---------------------------------------------------------------------------
# Directory import / export
# ---------------------------------------------------------------------------


def extract_title(body: str, fallback: str) -> str:
    """Title from ``<title>``, then the first ``<h1>``, else *fallback*."""
    root = parse_fragment(body)
    for tag in ("title", "h1"):
        found = root.find_all(tag)
        if found and found[0].text_content.strip():
            return " ".join(found[0].text_content.split())
    return fallback


def import_directory(conn: sqlite3.Connection, content_root: Path) -> ImportResult:
    """Load ``pages/*.html`` and ``assignments/*.html`` under *content_root*.

    Files already imported (matched by relative path) are updated when their
    body changed.
    """
    result = ImportResult()
    for dirname, rtype in IMPORT_DIRS.items():
        directory = content_root / dirname
        if not directory.is_dir():
            continue
        for html_file in sorted(directory.glob("*.html")):
            rel = html_file.relative_to(content_root).as_posix()
            try:
                body = html_file.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                logger.warning("Cannot read content file: %s", html_file)
                continue
            title = extract_title(body, html_file.stem.replace("-", " ").replace("_", " "))

            row = conn.execute(
                "SELECT id, body FROM resources WHERE source_path = ?", (rel,)
            ).fetchone()
            if row is None:
                add_resource(conn, rtype, title, body, source_path=rel)
                result.added += 1
            elif row["body"] != body:
                conn.execute(
                    "UPDATE resources SET title = ?, body = ?, updated_at = ? WHERE id = ?",
                    (title, body, utc_now(), row["id"]),
                )
                conn.commit()
                result.updated += 1
            else:
                result.unchanged += 1

    logger.info(
        "Imported content: %d added, %d updated, %d unchanged",
        result.added,
        result.updated,
        result.unchanged,
    )
    return result


def export_directory(conn: sqlite3.Connection, content_root: Path) -> int:
    """Write current bodies back to their source files; returns files written."""
    written = 0
    for resource in list_resources(conn):
        if resource.source_path is None:
            continue
        target = content_root / resource.source_path
        if target.is_file() and target.read_text(encoding="utf-8") == resource.body:
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(resource.body, encoding="utf-8")
        written += 1
    return written
