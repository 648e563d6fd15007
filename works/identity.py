"""
Identity Matcher: recommended/completed work correspondence.

A recommended work and a completed work are the same project when their
``(workId, house, lsTerm)`` triples are equal.  The term comparison is
null-safe: an absent term equals only another absent term, never a number
and never a wildcard.

The rule has two renderings that must agree:

  - ``WorkKey`` / ``IdentityIndex`` for a bounded batch of rows in Python
    (Fast Path buffer filtering);
  - ``not_completed_sql()`` for the ``NOT EXISTS`` exclusion rendered into
    every Full Path pass (``IS`` is SQLite's null-safe equality).

Identity values are compared exactly as stored (no numeric coercion of
``workId``), in both renderings.  Rows missing ``workId`` or ``house`` have
no key and never match anything.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from utils.query import placeholders
from works.normalizer import RULES, load_doc, pick, sql_field

_CHUNK = 500


@dataclass(frozen=True)
class WorkKey:
    """Composite identity of a work."""
    work_id: Any
    house: str
    term: Any = None

    @classmethod
    def from_doc(cls, collection: str, doc: Mapping[str, Any]) -> WorkKey | None:
        """Extract the key from a raw document, or None if it has none."""
        rules = RULES[collection]
        work_id = pick(doc, rules["work_id"])
        house = pick(doc, rules["house"])
        if work_id is None or house is None:
            return None
        return cls(work_id=work_id, house=house, term=pick(doc, rules["ls_term"]))


def not_completed_sql(alias: str, collection: str = "recommended") -> str:
    """SQL condition: no completed work shares the identity of ``alias``."""
    match = " AND ".join((
        f"{sql_field('completed', 'work_id', 'c')} = {sql_field(collection, 'work_id', alias)}",
        f"{sql_field('completed', 'house', 'c')} = {sql_field(collection, 'house', alias)}",
        f"{sql_field('completed', 'ls_term', 'c')} IS {sql_field(collection, 'ls_term', alias)}",
    ))
    return f"NOT EXISTS (SELECT 1 FROM works_completed c WHERE {match})"


class IdentityIndex:
    """Set of completed-work keys for a bounded batch of candidates."""

    def __init__(self, keys: Iterable[WorkKey] = ()) -> None:
        self._keys = set(keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def excludes(self, collection: str, doc: Mapping[str, Any]) -> bool:
        """True when ``doc`` has a completed counterpart in the index."""
        key = WorkKey.from_doc(collection, doc)
        return key is not None and key in self._keys

    @classmethod
    def load(cls, conn: sqlite3.Connection, candidates: Iterable[WorkKey | None]) -> IdentityIndex:
        """Load the completed keys matching any of ``candidates``.

        Completed rows are fetched by work id (index-backed), then narrowed
        to exact key matches in Python.
        """
        wanted = {k for k in candidates if k is not None}
        if not wanted:
            return cls()
        work_ids = sorted({k.work_id for k in wanted}, key=repr)
        id_expr = sql_field("completed", "work_id", "c")
        found: set[WorkKey] = set()
        for i in range(0, len(work_ids), _CHUNK):
            chunk = work_ids[i:i + _CHUNK]
            rows = conn.execute(
                f"SELECT c.doc FROM works_completed c WHERE {id_expr} IN ({placeholders(len(chunk))})",
                chunk,
            ).fetchall()
            for row in rows:
                key = WorkKey.from_doc("completed", load_doc(row[0]))
                if key in wanted:
                    found.add(key)
        return cls(found)
