"""
Representative Directory: resolves a representative id to a name.

Work documents store the sponsoring representative by *name* (``mpName``),
not by id, so an ``mp_id`` filter has to be translated first.  When the
value is not a 24-hex id, has no ``mps`` row, or the lookup fails, the raw
value is used as a literal name instead of failing the request.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from utils.patterns import OBJECT_ID
from works.normalizer import load_doc

logger = logging.getLogger(__name__)


def find_representative(conn: sqlite3.Connection, doc_id: str) -> dict[str, Any] | None:
    """Return the ``mps`` document with ``id`` added, or None."""
    row = conn.execute("SELECT id, doc FROM mps WHERE id = ?", (doc_id,)).fetchone()
    if row is None:
        return None
    return {"id": row["id"], **load_doc(row["doc"])}


def find_representative_by_name(conn: sqlite3.Connection, name: str | None) -> dict[str, Any] | None:
    """Return the first ``mps`` document whose name equals ``name``."""
    if not name:
        return None
    row = conn.execute(
        "SELECT id, doc FROM mps WHERE json_extract(doc, '$.name') = ? ORDER BY id LIMIT 1",
        (name,),
    ).fetchone()
    if row is None:
        return None
    return {"id": row["id"], **load_doc(row["doc"])}


def resolve_representative(conn: sqlite3.Connection, mp_id: str) -> str:
    """Resolve ``mp_id`` into the canonical representative name.

    Args:
        conn: Read-only connection.
        mp_id: Directory id, or a representative name.

    Returns:
        The directory name when ``mp_id`` is a known id, otherwise ``mp_id``.
    """
    if not OBJECT_ID.match(mp_id):
        logger.debug("mp_id %r is not a directory id; matching it as a name", mp_id)
        return mp_id
    try:
        record = find_representative(conn, mp_id)
    except sqlite3.Error:
        logger.warning("Representative lookup failed for %s; matching it as a name",
                       mp_id, exc_info=True)
        return mp_id
    name = record.get("name") if record else None
    if not name:
        logger.info("No representative with id %s; matching it as a name", mp_id)
        return mp_id
    return str(name)
