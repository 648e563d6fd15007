"""Database helpers for loading works databases.

The engine itself only reads, through the read-only pool in
``works.database``.  These helpers serve the writable side: the schema
migrations, fixture loaders and tests.
"""

import sqlite3
from itertools import islice
from typing import Iterable, Sequence


def init_pragmas(conn: sqlite3.Connection) -> None:
    """Apply the pragmas used on writable (loader) connections.

    WAL lets the pooled read-only connections keep reading while a loader
    appends documents.

    Args:
        conn: Writable SQLite connection
    """
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA temp_store=MEMORY")
    conn.execute("PRAGMA cache_size=-64000")


def batch_insert(conn: sqlite3.Connection, query: str, rows: Iterable[Sequence],
                 batch_size: int = 1000) -> int:
    """Insert ``rows`` with ``executemany`` in committed batches.

    Args:
        conn: Writable SQLite connection
        query: INSERT statement with ? placeholders
        rows: Parameter tuples; any iterable, consumed once
        batch_size: Rows per executemany call and commit

    Returns:
        Number of rows inserted
    """
    it = iter(rows)
    inserted = 0
    while batch := list(islice(it, batch_size)):
        conn.executemany(query, batch)
        conn.commit()
        inserted += len(batch)
    return inserted
