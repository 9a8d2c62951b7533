"""Shared test fixtures for a11ycheck."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from a11ycheck.infrastructure.db import create_schema, open_db

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture()
def db_conn(tmp_path: Path) -> Iterator[sqlite3.Connection]:
    """An initialized database in a temp directory."""
    conn = open_db(tmp_path / "test.db")
    create_schema(conn)
    yield conn
    conn.close()


@pytest.fixture()
def tmp_project(tmp_path: Path) -> Path:
    """Create a minimal project structure for testing."""
    (tmp_path / ".a11ycheck").mkdir()
    return tmp_path
