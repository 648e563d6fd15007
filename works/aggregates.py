"""
Aggregate Calculator: the passes that make up one list response.

Every pass is a standalone query that re-derives the same scope from
scratch:

    filter + gate  ->  [scan cap]  ->  identity exclusion  ->  [payment filter]

The scope is rendered as a ``WITH scope AS (...)`` prefix by ``Scope.cte()``
and each pass selects from it, so page, count, summary and status
distribution can never disagree about which rows are in play.  Passes take
their own connection and are run concurrently by the planner.

Numeric aggregates are rounded to 2 decimal places only here, at the
boundary.  Distinct sets are returned sorted with nulls dropped.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from typing import Any

from utils.query import build_where_clause
from works.filters import ALIAS, CompiledFilter
from works.identity import not_completed_sql
from works.models import (
    CategoryTotal,
    CompletedSummary,
    RecommendedSummary,
    StatusBucket,
    SubRegion,
)
from works.normalizer import sql_field
from works.payments import PAYMENT_COLUMNS, payment_columns_sql

TABLES = {"completed": "works_completed", "recommended": "works_recommended"}

# (cost field, beneficiaries field) per collection
SUMMARY_FIELDS = {
    "completed": ("cost", "beneficiaries"),
    "recommended": ("estimated_cost", "expected_beneficiaries"),
}


@dataclass(frozen=True)
class Scope:
    """The filtered, gated and deduplicated row set shared by all passes.

    Attributes:
        collection: "completed" or "recommended".
        conditions: Filter and gate conditions over alias ``w``.
        params: Parameters for ``conditions``.
        dedup: Exclude rows with a completed counterpart.
        scan_cap: Bound on the filter+gate candidates (stable rowid order)
            taken before the identity exclusion; None for no cap.
        with_payments: Add the inline payment columns.
        has_payments: Keep only rows whose payment presence equals this;
            None for no payment filtering.
    """
    collection: str
    conditions: tuple[str, ...]
    params: tuple[Any, ...]
    dedup: bool = False
    scan_cap: int | None = None
    with_payments: bool = False
    has_payments: bool | None = None

    @property
    def table(self) -> str:
        return TABLES[self.collection]

    def field(self, name: str) -> str:
        return sql_field(self.collection, name, ALIAS)

    def cte(self) -> tuple[str, list[Any]]:
        """Render ``WITH scope AS (...)`` and its parameters."""
        params = list(self.params)
        if self.scan_cap is not None:
            candidates = (
                f"SELECT {ALIAS}.rowid AS rid, {ALIAS}.id, {ALIAS}.doc FROM {self.table} {ALIAS} "
                f"{build_where_clause(list(self.conditions))} "
                f"ORDER BY {ALIAS}.rowid LIMIT {int(self.scan_cap)}"
            )
            source = f"({candidates}) {ALIAS}"
            where: list[str] = []
        else:
            source = f"{self.table} {ALIAS}"
            where = list(self.conditions)
        if self.dedup:
            where.append(not_completed_sql(ALIAS, self.collection))

        columns = f"{ALIAS}.id, {ALIAS}.doc"
        if self.with_payments or self.has_payments is not None:
            columns += ", " + payment_columns_sql(ALIAS)
        body = f"SELECT {columns} FROM {source} {build_where_clause(where)}"
        if self.has_payments is not None:
            body = f"SELECT * FROM ({body}) p WHERE p.pay_has = ?"
            params.append(1 if self.has_payments else 0)
        return f"WITH scope AS ({body})", params


def build_scope(
    compiled: CompiledFilter,
    gate_sql: tuple[str, list[Any]],
    dedup: bool,
    scan_cap: int | None = None,
    with_payments: bool = False,
) -> Scope:
    """Combine a compiled filter and a rendered gate into a pass scope."""
    gate_condition, gate_params = gate_sql
    return Scope(
        collection=compiled.collection,
        conditions=(*compiled.conditions, gate_condition),
        params=(*compiled.params, *gate_params),
        dedup=dedup,
        scan_cap=scan_cap,
        with_payments=with_payments,
        has_payments=compiled.has_payments,
    )


def _distinct(raw: str | None) -> list[str]:
    values = json.loads(raw) if raw else []
    return sorted({str(v) for v in values if v is not None})


# ── Passes ────────────────────────────────────────────────────────────────────

def page_pass(
    conn: sqlite3.Connection,
    scope: Scope,
    order_clause: str,
    limit: int,
    offset: int,
) -> list[sqlite3.Row]:
    """Sorted page of scope rows (id, doc and any payment columns)."""
    cte, params = scope.cte()
    extra = ""
    if scope.with_payments or scope.has_payments is not None:
        extra = ", " + ", ".join(f"{ALIAS}.{c}" for c in PAYMENT_COLUMNS)
    sql = (
        f"{cte} SELECT {ALIAS}.id, {ALIAS}.doc{extra} FROM scope {ALIAS} "
        f"{order_clause} LIMIT ? OFFSET ?"
    )
    return conn.execute(sql, [*params, limit, offset]).fetchall()


def count_pass(conn: sqlite3.Connection, scope: Scope) -> int:
    """Exact number of scope rows."""
    cte, params = scope.cte()
    return conn.execute(f"{cte} SELECT COUNT(*) FROM scope", params).fetchone()[0]


def simple_count_pass(conn: sqlite3.Connection, scope: Scope) -> int:
    """Filter + gate count without the identity exclusion (degraded count)."""
    where = build_where_clause(list(scope.conditions))
    sql = f"SELECT COUNT(*) FROM {scope.table} {ALIAS} {where}"
    return conn.execute(sql, list(scope.params)).fetchone()[0]


def summary_pass(conn: sqlite3.Connection, scope: Scope) -> CompletedSummary | RecommendedSummary:
    """Sums, average, distinct categories/sub-regions over the scope."""
    cost_name, beneficiaries_name = SUMMARY_FIELDS[scope.collection]
    cost = scope.field(cost_name)
    cte, params = scope.cte()
    sql = (
        f"{cte} SELECT "
        f"COALESCE(SUM({cost}), 0) AS total_cost, "
        f"COALESCE(AVG({cost}), 0) AS avg_cost, "
        f"COUNT(*) AS total_works, "
        f"json_group_array(DISTINCT {scope.field('category')}) AS categories, "
        f"json_group_array(DISTINCT {scope.field('district')}) AS districts, "
        f"COALESCE(SUM({scope.field(beneficiaries_name)}), 0) AS beneficiaries "
        f"FROM scope {ALIAS}"
    )
    row = conn.execute(sql, params).fetchone()
    if scope.collection == "completed":
        return CompletedSummary(
            total_cost=round(row["total_cost"], 2),
            avg_cost=round(row["avg_cost"], 2),
            total_works=row["total_works"],
            unique_categories=_distinct(row["categories"]),
            unique_districts=_distinct(row["districts"]),
            total_beneficiaries=round(row["beneficiaries"], 2),
        )
    return RecommendedSummary(
        total_estimated_cost=round(row["total_cost"], 2),
        avg_estimated_cost=round(row["avg_cost"], 2),
        total_works=row["total_works"],
        unique_categories=_distinct(row["categories"]),
        unique_districts=_distinct(row["districts"]),
        total_expected_beneficiaries=round(row["beneficiaries"], 2),
    )


def status_pass(conn: sqlite3.Connection, scope: Scope) -> list[StatusBucket]:
    """Count and cost per canonical status, most frequent first."""
    status = scope.field("status")
    cost = scope.field(SUMMARY_FIELDS[scope.collection][0])
    cte, params = scope.cte()
    sql = (
        f"{cte} SELECT {status} AS status, COUNT(*) AS count, "
        f"COALESCE(SUM({cost}), 0) AS total_cost "
        f"FROM scope {ALIAS} GROUP BY 1 ORDER BY count DESC, status ASC"
    )
    return [
        StatusBucket(status=str(r["status"]), count=r["count"], total_cost=round(r["total_cost"], 2))
        for r in conn.execute(sql, params).fetchall()
    ]


def category_pass(conn: sqlite3.Connection, scope: Scope) -> list[CategoryTotal]:
    """Per-category work count, total and average cost, largest total first."""
    category = scope.field("category")
    cost = scope.field(SUMMARY_FIELDS[scope.collection][0])
    cte, params = scope.cte()
    sql = (
        f"{cte} SELECT {category} AS category, COUNT(*) AS work_count, "
        f"COALESCE(SUM({cost}), 0) AS total_cost, COALESCE(AVG({cost}), 0) AS avg_cost "
        f"FROM scope {ALIAS} GROUP BY 1 ORDER BY total_cost DESC, category ASC"
    )
    return [
        CategoryTotal(
            category=None if r["category"] is None else str(r["category"]),
            work_count=r["work_count"],
            total_cost=round(r["total_cost"], 2),
            avg_cost=round(r["avg_cost"], 2),
        )
        for r in conn.execute(sql, params).fetchall()
    ]


def sub_region_pass(conn: sqlite3.Connection, scope: Scope) -> list[dict[str, Any]]:
    """Project count and unrounded amount per (sub-region, state)."""
    district = scope.field("district")
    state = scope.field("state")
    cost = scope.field(SUMMARY_FIELDS[scope.collection][0])
    cte, params = scope.cte()
    sql = (
        f"{cte} SELECT {district} AS constituency, {state} AS state, "
        f"COUNT(*) AS project_count, COALESCE(SUM({cost}), 0) AS total_amount "
        f"FROM scope {ALIAS} GROUP BY 1, 2"
    )
    return [dict(r) for r in conn.execute(sql, params).fetchall()]


def merge_sub_regions(*groups: list[dict[str, Any]]) -> list[SubRegion]:
    """Merge per-collection sub-region rows keyed by (constituency, state)."""
    merged: dict[tuple[Any, Any], dict[str, Any]] = {}
    for rows in groups:
        for r in rows:
            key = (r["constituency"], r["state"])
            entry = merged.setdefault(key, {"project_count": 0, "total_amount": 0.0})
            entry["project_count"] += r["project_count"]
            entry["total_amount"] += r["total_amount"]
    regions = [
        SubRegion(
            constituency=None if c is None else str(c),
            state=None if s is None else str(s),
            project_count=v["project_count"],
            total_amount=round(v["total_amount"], 2),
        )
        for (c, s), v in merged.items()
    ]
    regions.sort(key=lambda r: (r.constituency or "", r.state or ""))
    return regions
