"""
Payment Correlator: expenditure data attached to recommended works.

Per work row:
    has_payments   at least one "Payment Success" installment exists
    total_paid     sum of "Payment Success" amounts only
    payment_count  installments of any status

An expenditure belongs to a work when ``workId`` and ``house`` are equal
and, for the Lok Sabha, the terms are equal with null-safe comparison.

Two modes produce the identical ``PaymentInfo`` shape:

  - inline: correlated sub-selects rendered into the Full Path scope when
    the request filters on payment presence (``payment_columns_sql``);
  - post-pass: one lookup per page row, run concurrently, for every other
    request (``attach_payments``).  A failing lookup yields False/0/0 for
    that row only.

``get_work_payments`` builds the per-work payment report.
"""

from __future__ import annotations

import logging
import sqlite3
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Mapping

from utils.config import LOK_SABHA, PAYMENT_SUCCESS
from utils.strings import parse_work_id
from works.database import ConnectionPool
from works.errors import WorkNotFoundError, WorksError
from works.identity import WorkKey
from works.models import (
    PaymentDay,
    PaymentInfo,
    PaymentRecord,
    PaymentSummary,
    WorkPaymentReport,
)
from works.normalizer import canonical, load_doc, sql_field

logger = logging.getLogger(__name__)

PAYMENT_COLUMNS = ("pay_has", "pay_total", "pay_count")


def payment_info(has_success, total_paid, payment_count) -> PaymentInfo:
    """Build the per-row payment shape shared by both modes."""
    return PaymentInfo(
        has_payments=bool(has_success),
        total_paid=round(float(total_paid or 0.0), 2),
        payment_count=int(payment_count or 0),
    )


# ── Inline mode ───────────────────────────────────────────────────────────────

def _match_sql(alias: str) -> str:
    def e(name: str) -> str:
        return sql_field("expenditure", name, "e")

    def w(name: str) -> str:
        return sql_field("recommended", name, alias)

    return (
        f"{e('work_id')} = {w('work_id')} AND {e('house')} = {w('house')} "
        f"AND ({w('house')} <> '{LOK_SABHA}' OR {e('ls_term')} IS {w('ls_term')})"
    )


def payment_columns_sql(alias: str) -> str:
    """Render the three payment columns as correlated sub-selects."""
    match = _match_sql(alias)
    success = f"{sql_field('expenditure', 'status', 'e')} = '{PAYMENT_SUCCESS}'"
    amount = sql_field("expenditure", "amount", "e")
    return (
        f"EXISTS (SELECT 1 FROM expenditures e WHERE {match} AND {success}) AS pay_has, "
        f"(SELECT COALESCE(SUM({amount}), 0) FROM expenditures e "
        f"WHERE {match} AND {success}) AS pay_total, "
        f"(SELECT COUNT(*) FROM expenditures e WHERE {match}) AS pay_count"
    )


def inline_payment(row: Mapping[str, Any]) -> PaymentInfo:
    """Read the inline payment columns off a page row."""
    return payment_info(row["pay_has"], row["pay_total"], row["pay_count"])


# ── Post-pass mode ────────────────────────────────────────────────────────────

def lookup_payment(conn: sqlite3.Connection, key: WorkKey | None) -> PaymentInfo:
    """Correlate the expenditures of one work.

    Args:
        conn: Read-only connection.
        key: Identity of the recommended work; None yields no payments.
    """
    if key is None:
        return PaymentInfo()
    status = sql_field("expenditure", "status", "e")
    amount = sql_field("expenditure", "amount", "e")
    sql = (
        f"SELECT SUM(CASE WHEN {status} = ? THEN 1 ELSE 0 END) AS success_count, "
        f"SUM(CASE WHEN {status} = ? THEN {amount} ELSE 0 END) AS total_paid, "
        f"COUNT(*) AS payment_count "
        f"FROM expenditures e "
        f"WHERE {sql_field('expenditure', 'work_id', 'e')} = ? "
        f"AND {sql_field('expenditure', 'house', 'e')} = ?"
    )
    params: list[Any] = [PAYMENT_SUCCESS, PAYMENT_SUCCESS, key.work_id, key.house]
    if key.house == LOK_SABHA:
        sql += f" AND {sql_field('expenditure', 'ls_term', 'e')} IS ?"
        params.append(key.term)
    row = conn.execute(sql, params).fetchone()
    return payment_info(row["success_count"], row["total_paid"], row["payment_count"])


def _lookup_or_default(pool: ConnectionPool, doc_id: str, key: WorkKey | None) -> PaymentInfo:
    try:
        with pool.connection() as conn:
            return lookup_payment(conn, key)
    except (sqlite3.Error, WorksError):
        logger.warning("Payment lookup failed for %s; using defaults", doc_id, exc_info=True)
        return PaymentInfo()


def attach_payments(
    pool: ConnectionPool,
    rows: list[tuple[str, Mapping[str, Any]]],
    max_workers: int = 8,
) -> list[PaymentInfo]:
    """Post-pass enrichment: one concurrent lookup per row.

    Args:
        pool: Connection pool; each lookup takes its own connection.
        rows: (document id, raw document) pairs in page order.
        max_workers: Upper bound on concurrent lookups.

    Returns:
        PaymentInfo per row, in the same order.  Every lookup completes or
        is default-filled before this returns.
    """
    if not rows:
        return []
    keys = [(doc_id, WorkKey.from_doc("recommended", doc)) for doc_id, doc in rows]
    workers = max(1, min(max_workers, len(keys)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(_lookup_or_default, pool, doc_id, key) for doc_id, key in keys]
        return [f.result() for f in futures]


# ── Per-work payment report ───────────────────────────────────────────────────

def _day(date_value: str | None) -> str:
    if not date_value:
        return "Unknown"
    return str(date_value)[:10]


def get_work_payments(conn: sqlite3.Connection, work_id: str, last_updated: str) -> WorkPaymentReport:
    """Build the payment report for every expenditure of ``work_id``.

    A numeric ``work_id`` is matched as a number, anything else as an exact
    string.  Payments are listed newest first.

    Raises:
        WorkNotFoundError: If no expenditure matches.
    """
    parsed = parse_work_id(work_id)
    if parsed is None:
        raise WorkNotFoundError("No payment records found for this work", work_id)
    date_expr = sql_field("expenditure", "date", "e")
    rows = conn.execute(
        f"SELECT e.id, e.doc FROM expenditures e "
        f"WHERE {sql_field('expenditure', 'work_id', 'e')} = ? "
        f"ORDER BY {date_expr} DESC, e.id ASC",
        (parsed,),
    ).fetchall()
    if not rows:
        raise WorkNotFoundError("No payment records found for this work", work_id)

    payments = [canonical("expenditure", load_doc(r["doc"])) for r in rows]
    records = [
        PaymentRecord(
            amount=p["amount"],
            date=p["date"],
            status=p["status"],
            vendor=p["vendor"],
            ida=p["ida"],
        )
        for p in payments
    ]

    successful = [p for p in payments if p["status"] == PAYMENT_SUCCESS]
    summary = PaymentSummary(
        total_installments=len(payments),
        total_amount_paid=round(sum(p["amount"] for p in successful), 2),
        successful_payments=len(successful),
        pending_payments=len(payments) - len(successful),
        first_payment_date=payments[-1]["date"],
        last_payment_date=payments[0]["date"],
    )

    days: OrderedDict[str, list[PaymentRecord]] = OrderedDict()
    for record in records:
        days.setdefault(_day(record.date), []).append(record)
    timeline = [
        PaymentDay(
            date=day,
            payments=items,
            total_amount=round(sum(i.amount for i in items), 2),
            count=len(items),
        )
        for day, items in days.items()
    ]
    timeline.sort(key=lambda d: (d.date != "Unknown", d.date), reverse=True)

    first = payments[0]
    return WorkPaymentReport(
        work_id=parsed,
        work_details={
            "description": first["work"],
            "mpName": first["mp_name"],
            "constituency": first["constituency"],
            "ida": first["ida"],
        },
        summary=summary,
        payment_timeline=timeline,
        all_payments=records,
        last_updated=last_updated,
    )
