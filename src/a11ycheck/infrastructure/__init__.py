"""Infrastructure domain: SQLite database layer and meta helpers."""

from a11ycheck.infrastructure.db import (
    SCHEMA_VERSION,
    create_schema,
    get_meta,
    open_db,
    set_meta,
)

__all__ = [
    "SCHEMA_VERSION",
    "create_schema",
    "get_meta",
    "open_db",
    "set_meta",
]
