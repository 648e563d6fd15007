"""
Reconciliation Planner: Fast Path / Full Path selection and execution.

The plan is decided once per request from the compiled filter:

    FastPathPlan   first page of recommended works only; no search, year,
                   category or payment filter, and
                   ``limit <= fast_path_max_limit``.  A bounded buffer of
                   candidates is read in sort order from the top, completed
                   duplicates are removed from the buffer alone, and the page
                   is sliced from what remains.  Later pages need an offset
                   over deduplicated rows, which only the Full Path has.
                   The total comes from a best-effort deduplicated count.
    FullPathPlan   everything else.  Page, count, summary and status
                   distribution run concurrently against the same scope.

Each pass runs on its own pooled connection under ``query_timeout_ms``.
When a pass times out (its connection is interrupted) or fails, that pass
alone degrades:

    page     -> []
    count    -> filter+gate count without the identity exclusion, flagged
                approximate; 0 if that fails too.  It runs on what is left
                of the request budget, never a fresh one
    summary  -> zero summary
    status   -> []
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar

from utils.config import WorksConfig
from works import aggregates
from works.aggregates import Scope
from works.database import ConnectionPool
from works.errors import QueryTimeoutError, WorksError
from works.filters import CompiledFilter
from works.identity import IdentityIndex, WorkKey
from works.models import (
    CompletedSummary,
    PaymentInfo,
    RecommendedSummary,
    StatusBucket,
    WorksQuery,
)
from works.normalizer import load_doc, resolve, RECOMMENDED_FIELDS
from works.payments import attach_payments, inline_payment

logger = logging.getLogger(__name__)

SLOW_PASS_MS = 500.0
# Floor on what the degraded count gets once the request budget is spent.
FALLBACK_GRACE_SECONDS = 0.1


# ── Plans ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FastPathPlan:
    """Bounded-buffer strategy for small unfiltered pages."""
    buffer_size: int
    strategy: ClassVar[str] = "fast"


@dataclass(frozen=True)
class FullPathPlan:
    """Exhaustive strategy; ``scan_cap`` is set only with payment filtering."""
    scan_cap: int | None = None
    with_payments: bool = False
    strategy: ClassVar[str] = "full"


Plan = FastPathPlan | FullPathPlan


def plan_recommended(query: WorksQuery, compiled: CompiledFilter, config: WorksConfig) -> Plan:
    """Choose the strategy for a recommended-works list request."""
    if (not compiled.blocks_fast_path() and query.page == 1
            and query.limit <= config.fast_path_max_limit):
        buffer_size = max(query.limit * config.fast_path_buffer_factor, config.fast_path_min_buffer)
        plan: Plan = FastPathPlan(buffer_size=buffer_size)
    elif compiled.payment_filtering:
        plan = FullPathPlan(scan_cap=config.payment_scan_cap, with_payments=True)
    else:
        plan = FullPathPlan()
    logger.debug("Planned %s path for recommended works: %s", plan.strategy, plan,
                 extra={"strategy": plan.strategy, "collection": "recommended"})
    return plan


def plan_completed(query: WorksQuery, compiled: CompiledFilter, config: WorksConfig) -> FullPathPlan:
    """Completed works always take the Full Path."""
    return FullPathPlan()


# ── Pass execution ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PassSpec:
    """One unit of work: ``run(conn)`` or, on timeout/failure, ``fallback()``."""
    run: Callable[[sqlite3.Connection], Any]
    fallback: Callable[[], Any]


@dataclass
class PassOutcome:
    name: str
    value: Any
    ok: bool
    duration_ms: float = 0.0


def _await(future, name: str, remaining: float, timeout_ms: int):
    try:
        return future.result(timeout=remaining)
    except FuturesTimeoutError as exc:
        raise QueryTimeoutError(name, timeout_ms) from exc


def run_passes(
    pool: ConnectionPool,
    specs: dict[str, PassSpec],
    config: WorksConfig,
    strategy: str,
    collection: str,
    deadline: float | None = None,
) -> dict[str, PassOutcome]:
    """Run independent passes concurrently, each under the time budget.

    Every pass gets its own pooled connection.  A pass still running at the
    deadline has its connection interrupted and is replaced by its
    fallback; the other passes are unaffected.  The executor is shut down
    without waiting, so an overrunning pass never delays the response.

    Args:
        deadline: ``time.monotonic()`` value shared with earlier passes of
            the same request; defaults to a fresh ``query_timeout_ms``.
    """
    active: dict[str, sqlite3.Connection] = {}
    lock = threading.Lock()

    def work(name: str, spec: PassSpec):
        conn = pool.acquire()
        with lock:
            active[name] = conn
        start = time.perf_counter()
        try:
            return spec.run(conn), (time.perf_counter() - start) * 1000
        finally:
            with lock:
                active.pop(name, None)
            pool.release(conn)

    executor = ThreadPoolExecutor(max_workers=len(specs), thread_name_prefix="works-pass")
    outcomes: dict[str, PassOutcome] = {}
    try:
        futures = {name: executor.submit(work, name, spec) for name, spec in specs.items()}
        if deadline is None:
            deadline = time.monotonic() + config.query_timeout_seconds
        for name, future in futures.items():
            extra = {"pass_name": name, "strategy": strategy, "collection": collection}
            remaining = max(0.0, deadline - time.monotonic())
            try:
                value, duration_ms = _await(future, name, remaining, config.query_timeout_ms)
            except QueryTimeoutError:
                with lock:
                    conn = active.get(name)
                    if conn is not None:
                        conn.interrupt()
                future.cancel()
                logger.warning("%s pass timed out; degrading", name, exc_info=True, extra=extra)
                outcomes[name] = PassOutcome(name, specs[name].fallback(), ok=False)
                continue
            except (sqlite3.Error, WorksError):
                logger.warning("%s pass failed; degrading", name, exc_info=True, extra=extra)
                outcomes[name] = PassOutcome(name, specs[name].fallback(), ok=False)
                continue
            extra["duration_ms"] = round(duration_ms, 1)
            if duration_ms > SLOW_PASS_MS:
                logger.warning("Slow %s pass: %.0f ms", name, duration_ms, extra=extra)
            else:
                logger.debug("%s pass: %.1f ms", name, duration_ms, extra=extra)
            outcomes[name] = PassOutcome(name, value, ok=True, duration_ms=duration_ms)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
    return outcomes


# ── Results ───────────────────────────────────────────────────────────────────

@dataclass
class ListResult:
    """Everything a list operation needs to build its response."""
    strategy: str
    rows: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    payments: list[PaymentInfo] | None = None
    total: int = 0
    approximate: bool = False
    summary: CompletedSummary | RecommendedSummary | None = None
    status_distribution: list[StatusBucket] = field(default_factory=list)


def empty_summary(collection: str) -> CompletedSummary | RecommendedSummary:
    """Zero summary used when the summary pass degrades."""
    return CompletedSummary() if collection == "completed" else RecommendedSummary()


def _decode(rows: list[sqlite3.Row]) -> list[tuple[str, dict[str, Any]]]:
    return [(r["id"], load_doc(r["doc"])) for r in rows]


def _degraded_count(pool: ConnectionPool, scope: Scope, config: WorksConfig, strategy: str,
                    deadline: float) -> int:
    grace = min(FALLBACK_GRACE_SECONDS, config.query_timeout_seconds)
    outcome = run_passes(
        pool,
        {"count_fallback": PassSpec(lambda conn: aggregates.simple_count_pass(conn, scope), lambda: 0)},
        config, strategy, scope.collection,
        deadline=max(deadline, time.monotonic() + grace),
    )["count_fallback"]
    return outcome.value


def execute_full(
    pool: ConnectionPool,
    scope: Scope,
    order_clause: str,
    query: WorksQuery,
    config: WorksConfig,
) -> ListResult:
    """Run the Full Path passes for ``scope``.

    Recommended scopes also get the status distribution and payment data:
    inline columns when the scope carries them, the post-pass otherwise.
    """
    collection = scope.collection
    specs = {
        "page": PassSpec(
            lambda conn: aggregates.page_pass(conn, scope, order_clause, query.limit, query.skip),
            list,
        ),
        "count": PassSpec(lambda conn: aggregates.count_pass(conn, scope), lambda: None),
        "summary": PassSpec(lambda conn: aggregates.summary_pass(conn, scope),
                            lambda: empty_summary(collection)),
    }
    if collection == "recommended":
        specs["status"] = PassSpec(lambda conn: aggregates.status_pass(conn, scope), list)

    deadline = time.monotonic() + config.query_timeout_seconds
    outcomes = run_passes(pool, specs, config, FullPathPlan.strategy, collection, deadline=deadline)

    page_rows = outcomes["page"].value
    total = outcomes["count"].value
    approximate = not outcomes["count"].ok
    if total is None:
        total = _degraded_count(pool, scope, config, FullPathPlan.strategy, deadline)

    result = ListResult(
        strategy=FullPathPlan.strategy,
        rows=_decode(page_rows),
        total=total,
        approximate=approximate,
        summary=outcomes["summary"].value,
    )
    if collection == "recommended":
        result.status_distribution = outcomes["status"].value
        if scope.with_payments or scope.has_payments is not None:
            result.payments = [inline_payment(r) for r in page_rows]
        else:
            result.payments = attach_payments(pool, result.rows, max_workers=config.pool_size)
    return result


def _buffer_pass(
    conn: sqlite3.Connection,
    scope: Scope,
    order_clause: str,
    plan: FastPathPlan,
    query: WorksQuery,
) -> list[tuple[str, dict[str, Any]]]:
    candidates = _decode(aggregates.page_pass(conn, scope, order_clause, plan.buffer_size, 0))
    index = IdentityIndex.load(
        conn, (WorkKey.from_doc(scope.collection, doc) for _, doc in candidates)
    )
    kept = [(doc_id, doc) for doc_id, doc in candidates
            if not index.excludes(scope.collection, doc)]
    return kept[:query.limit]


def execute_fast(
    pool: ConnectionPool,
    buffer_scope: Scope,
    count_scope: Scope,
    order_clause: str,
    query: WorksQuery,
    plan: FastPathPlan,
    config: WorksConfig,
) -> ListResult | None:
    """Run the Fast Path.

    Args:
        buffer_scope: Filter + gate scope without the identity exclusion.
        count_scope: Same scope with the exclusion, for the total.

    Returns:
        The result, or None when the buffer read failed and the caller
        should fall back to the Full Path.
    """
    outcomes = run_passes(
        pool,
        {
            "buffer": PassSpec(
                lambda conn: _buffer_pass(conn, buffer_scope, order_clause, plan, query),
                lambda: None,
            ),
            "count": PassSpec(lambda conn: aggregates.count_pass(conn, count_scope), lambda: 0),
        },
        config, FastPathPlan.strategy, buffer_scope.collection,
    )
    rows = outcomes["buffer"].value
    if rows is None:
        logger.warning("Fast path buffer unavailable; falling back to full path",
                       extra={"strategy": FastPathPlan.strategy, "collection": buffer_scope.collection})
        return None

    total = outcomes["count"].value
    cost_rule = RECOMMENDED_FIELDS["estimated_cost"]
    costs = [resolve(doc, cost_rule) for _, doc in rows]
    page_cost = sum(costs)
    summary = RecommendedSummary(
        total_estimated_cost=round(page_cost, 2),
        avg_estimated_cost=round(page_cost / len(costs), 2) if costs else 0.0,
        total_works=total,
    )
    return ListResult(
        strategy=FastPathPlan.strategy,
        rows=rows,
        payments=attach_payments(pool, rows, max_workers=config.pool_size),
        total=total,
        approximate=not outcomes["count"].ok,
        summary=summary,
    )
