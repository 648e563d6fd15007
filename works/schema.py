"""
Storage schema for the works engine.

Each collection is a table of JSON documents keyed by a 24-hex-character
document id.  Documents are stored exactly as ingested, in either schema
generation; the normalizer resolves canonical values at query time.

    works_completed     completed works
    works_recommended   recommended works
    expenditures        payment installments
    mps                 representative directory

Schema changes are applied as numbered migrations recorded in
``schema_version``, so ``create_schema()`` is idempotent.

The expression indexes below must stay textually identical to the
normalizer's renderings of ``work_id``/``house``/``ls_term`` (apart from
the table alias) or SQLite will not use them.
"""

from __future__ import annotations

import json
import secrets
import sqlite3
from pathlib import Path
from typing import Any, Iterable, Mapping

from utils.database import batch_insert, init_pragmas
from utils.patterns import OBJECT_ID

COLLECTIONS = ("works_completed", "works_recommended", "expenditures", "mps")

_DDL_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    description TEXT,
    applied_at  TEXT    DEFAULT (datetime('now'))
);
"""

_DDL_001_COLLECTIONS = """
CREATE TABLE IF NOT EXISTS works_completed (
    id   TEXT PRIMARY KEY,      -- 24 hex chars
    doc  TEXT NOT NULL          -- JSON document, current or legacy field names
);

CREATE TABLE IF NOT EXISTS works_recommended (
    id   TEXT PRIMARY KEY,
    doc  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS expenditures (
    id   TEXT PRIMARY KEY,
    doc  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS mps (
    id   TEXT PRIMARY KEY,
    doc  TEXT NOT NULL          -- {name, house, state, constituency}
);
"""

_DDL_002_IDENTITY_INDEXES = """
-- Composite identity (workId, house, lsTerm) probed by the NOT EXISTS
-- exclusion for every recommended row.
CREATE INDEX IF NOT EXISTS idx_completed_identity ON works_completed (
    COALESCE(json_extract(doc, '$.workId'), json_extract(doc, '$.work_id')),
    json_extract(doc, '$.house'),
    json_extract(doc, '$.lsTerm')
);

CREATE INDEX IF NOT EXISTS idx_expenditures_work ON expenditures (
    json_extract(doc, '$.workId'),
    json_extract(doc, '$.house')
);

CREATE INDEX IF NOT EXISTS idx_mps_name ON mps (
    json_extract(doc, '$.name')
);
"""

# Each entry: (version, description, sql)
_MIGRATIONS = [
    (1, "001_collections: document tables", _DDL_001_COLLECTIONS),
    (2, "002_identity_indexes: expression indexes on identity fields", _DDL_002_IDENTITY_INDEXES),
]


def _current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 if none applied)."""
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] or 0


def create_schema(conn: sqlite3.Connection) -> int:
    """Apply all pending migrations in order.

    Args:
        conn: An open, writable SQLite connection.

    Returns:
        Number of migrations applied in this call (0 if already up to date).
    """
    conn.execute(_DDL_SCHEMA_VERSION)
    conn.commit()

    current = _current_version(conn)
    applied = 0

    for version, description, sql in _MIGRATIONS:
        if version <= current:
            continue
        conn.executescript(sql)
        conn.execute(
            "INSERT INTO schema_version (version, description) VALUES (?, ?)",
            (version, description),
        )
        conn.commit()
        applied += 1

    return applied


def create_works_db(db_path: Path) -> sqlite3.Connection:
    """Open (or create) a works database and apply all migrations.

    Args:
        db_path: Filesystem path for the SQLite file (created if absent).

    Returns:
        An open, writable sqlite3.Connection.
    """
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    init_pragmas(conn)
    create_schema(conn)
    return conn


def new_document_id() -> str:
    """Return a fresh 24-hex-character document id."""
    return secrets.token_hex(12)


def _document_row(doc: Mapping[str, Any]) -> tuple[str, str]:
    body = dict(doc)
    doc_id = body.pop("id", None) or body.pop("_id", None) or new_document_id()
    doc_id = str(doc_id)
    if not OBJECT_ID.match(doc_id):
        raise ValueError(f"Document id must be 24 hex characters: {doc_id!r}")
    return doc_id, json.dumps(body, default=str)


def insert_documents(
    conn: sqlite3.Connection,
    collection: str,
    docs: Iterable[Mapping[str, Any]],
    batch_size: int = 1000,
) -> list[str]:
    """Insert raw documents into a collection table.

    Intended for loaders and test fixtures; the engine itself never writes.
    An ``id`` (or ``_id``) key is used as the document id and removed from
    the stored body; documents without one get a generated id.

    Args:
        conn: Writable SQLite connection.
        collection: One of ``COLLECTIONS``.
        docs: Raw documents in either schema generation.
        batch_size: Rows per executemany batch.

    Returns:
        The document ids, in input order.

    Raises:
        ValueError: If ``collection`` is unknown or an id is malformed.
    """
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {collection!r}")
    rows = [_document_row(d) for d in docs]
    batch_insert(conn, f"INSERT INTO {collection} (id, doc) VALUES (?, ?)", rows,
                 batch_size=batch_size)
    return [r[0] for r in rows]
