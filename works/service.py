"""
Caller-facing operations of the works engine.

Each operation accepts a flat parameter bag (a ``WorksQuery`` or the same
fields as keyword arguments) and returns a pydantic model; call
``to_response()`` on it for the JSON-ready dict.

    list_completed_works     paginated completed works + summary
    list_recommended_works   paginated recommended works (completed
                             duplicates removed) + summary + status
                             distribution + payment data
    get_work_categories      per-category totals for both collections
    get_sub_regions          merged (constituency, state) totals + states
    get_completed_work       one completed work with detail-only fields
    get_recommended_work     one recommended work with detail-only fields
    get_work_payments        payment report for one work id

``config`` defaults to ``WorksConfig.from_env()``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from utils.config import WorksConfig
from utils.patterns import OBJECT_ID
from utils.query import build_order_clause
from works import payments
from works.aggregates import (
    build_scope,
    category_pass,
    merge_sub_regions,
    sub_region_pass,
)
from works.database import get_pool
from works.directory import find_representative_by_name, resolve_representative
from works.errors import InvalidIdentifierError, PoolExhaustedError, WorkNotFoundError
from works.filters import ALIAS, compile_filters
from works.gate import build_gate
from works.models import (
    CompletedWorksPage,
    DetailResponse,
    Pagination,
    RecommendedWorksPage,
    SubRegions,
    WorkCategories,
    WorkPaymentReport,
    WorksQuery,
)
from works.normalizer import (
    completed_detail,
    load_doc,
    normalize_completed,
    normalize_recommended,
    recommended_detail,
    sort_fields,
)
from works.planner import (
    FastPathPlan,
    FullPathPlan,
    PassSpec,
    execute_fast,
    execute_full,
    plan_completed,
    plan_recommended,
    run_passes,
)

logger = logging.getLogger(__name__)

DEFAULT_SORTS = {"completed": "-completedDate", "recommended": "-recommendationDate"}

COMPLETED_FILTER_KEYS = (
    "mp_id", "state", "constituency", "district", "category", "year",
    "min_cost", "max_cost", "search", "house", "ls_term",
)
RECOMMENDED_FILTER_KEYS = COMPLETED_FILTER_KEYS + ("status", "has_payments")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_query(query: WorksQuery | None, params: dict[str, Any]) -> WorksQuery:
    if query is None:
        return WorksQuery.model_validate(params)
    if params:
        return query.model_copy(update=params)
    return query


def _order_clause(collection: str, sort: str | None) -> str:
    return build_order_clause(
        sort,
        sort_fields(collection, ALIAS),
        DEFAULT_SORTS[collection],
        tiebreaker=f"{ALIAS}.id",
    )


def _mp_resolver(pool):
    def resolve(mp_id: str) -> str:
        try:
            with pool.connection() as conn:
                return resolve_representative(conn, mp_id)
        except PoolExhaustedError:
            logger.warning("No connection for representative lookup of %s; matching it as a name",
                           mp_id, exc_info=True)
            return mp_id
    return resolve


# ── List operations ───────────────────────────────────────────────────────────

def list_completed_works(
    query: WorksQuery | None = None,
    *,
    config: WorksConfig | None = None,
    **params,
) -> CompletedWorksPage:
    """List completed works with pagination and summary statistics.

    Args:
        query: Parameter bag; keyword arguments build (or override) one.
        config: Engine configuration.

    Returns:
        CompletedWorksPage (items, pagination, summary, filters,
        last_updated, strategy).
    """
    config = config or WorksConfig.from_env()
    query = _as_query(query, params)
    pool = get_pool(config)

    compiled = compile_filters(query, "completed", _mp_resolver(pool))
    gate = build_gate(query.house, query.ls_term, config)
    plan = plan_completed(query, compiled, config)
    scope = build_scope(compiled, gate.render("completed", ALIAS), dedup=False,
                        scan_cap=plan.scan_cap)
    result = execute_full(pool, scope, _order_clause("completed", query.sort), query, config)

    return CompletedWorksPage(
        items=[normalize_completed(doc_id, doc) for doc_id, doc in result.rows],
        pagination=Pagination.build(query.page, query.limit, result.total, result.approximate),
        summary=result.summary,
        filters=query.echo(COMPLETED_FILTER_KEYS),
        last_updated=_now(),
        strategy=result.strategy,
    )


def list_recommended_works(
    query: WorksQuery | None = None,
    *,
    config: WorksConfig | None = None,
    **params,
) -> RecommendedWorksPage:
    """List recommended works that have no completed counterpart.

    Small pages without search/year/category/payment filters use the Fast
    Path; its total is flagged approximate whenever the count pass did not
    complete.

    Args:
        query: Parameter bag; keyword arguments build (or override) one.
        config: Engine configuration.

    Returns:
        RecommendedWorksPage whose items carry has_payments, total_paid and
        payment_count, and whose summary includes the status distribution.
    """
    config = config or WorksConfig.from_env()
    query = _as_query(query, params)
    pool = get_pool(config)

    compiled = compile_filters(query, "recommended", _mp_resolver(pool))
    gate_sql = build_gate(query.house, query.ls_term, config).render("recommended", ALIAS)
    order_clause = _order_clause("recommended", query.sort)
    plan = plan_recommended(query, compiled, config)

    result = None
    if isinstance(plan, FastPathPlan):
        result = execute_fast(
            pool,
            build_scope(compiled, gate_sql, dedup=False),
            build_scope(compiled, gate_sql, dedup=True),
            order_clause, query, plan, config,
        )
    if result is None:
        full = plan if isinstance(plan, FullPathPlan) else FullPathPlan()
        scope = build_scope(compiled, gate_sql, dedup=True, scan_cap=full.scan_cap,
                            with_payments=full.with_payments)
        result = execute_full(pool, scope, order_clause, query, config)

    paid = result.payments or []
    items = [
        normalize_recommended(doc_id, doc, paid[i].model_dump() if i < len(paid) else None)
        for i, (doc_id, doc) in enumerate(result.rows)
    ]
    summary = result.summary.model_copy(update={"status_distribution": result.status_distribution})
    return RecommendedWorksPage(
        items=items,
        pagination=Pagination.build(query.page, query.limit, result.total, result.approximate),
        summary=summary,
        filters=query.echo(RECOMMENDED_FILTER_KEYS),
        last_updated=_now(),
        strategy=result.strategy,
    )


# ── Reference lists ───────────────────────────────────────────────────────────

def _reference_scopes(state, house, ls_term, config: WorksConfig):
    query = WorksQuery(state=state)
    gate = build_gate(house, ls_term, config)
    completed = build_scope(compile_filters(query, "completed"),
                            gate.render("completed", ALIAS), dedup=False)
    recommended = build_scope(compile_filters(query, "recommended"),
                              gate.render("recommended", ALIAS), dedup=True)
    return completed, recommended


def get_work_categories(
    state: str | None = None,
    house: str | None = None,
    ls_term: str | None = None,
    *,
    config: WorksConfig | None = None,
) -> WorkCategories:
    """Per-category work count, total and average cost for both collections.

    The house/term gate always applies; recommended works with a completed
    counterpart are excluded.  Each list is sorted by total cost, largest
    first.
    """
    config = config or WorksConfig.from_env()
    pool = get_pool(config)
    completed, recommended = _reference_scopes(state, house, ls_term, config)
    outcomes = run_passes(
        pool,
        {
            "completed_categories": PassSpec(lambda conn: category_pass(conn, completed), list),
            "recommended_categories": PassSpec(lambda conn: category_pass(conn, recommended), list),
        },
        config, FullPathPlan.strategy, "categories",
    )
    return WorkCategories(
        completed=outcomes["completed_categories"].value,
        recommended=outcomes["recommended_categories"].value,
        last_updated=_now(),
    )


def get_sub_regions(
    state: str | None = None,
    house: str | None = None,
    ls_term: str | None = None,
    *,
    config: WorksConfig | None = None,
) -> SubRegions:
    """Merged (constituency, state) project counts and amounts.

    Rows from both collections with the same (constituency, state) pair are
    combined; the list is sorted by constituency.  ``states`` is the sorted
    union of the states that appear.
    """
    config = config or WorksConfig.from_env()
    pool = get_pool(config)
    completed, recommended = _reference_scopes(state, house, ls_term, config)
    outcomes = run_passes(
        pool,
        {
            "completed_regions": PassSpec(lambda conn: sub_region_pass(conn, completed), list),
            "recommended_regions": PassSpec(lambda conn: sub_region_pass(conn, recommended), list),
        },
        config, FullPathPlan.strategy, "sub_regions",
    )
    regions = merge_sub_regions(outcomes["completed_regions"].value,
                                outcomes["recommended_regions"].value)
    states = sorted({r.state for r in regions if r.state is not None})
    return SubRegions(
        constituencies=regions,
        states=states,
        total_constituencies=len(regions),
        total_states=len(states),
        last_updated=_now(),
    )


# ── Detail operations ─────────────────────────────────────────────────────────

def _fetch_document(pool, table: str, doc_id: str, label: str):
    if not isinstance(doc_id, str) or not OBJECT_ID.match(doc_id):
        raise InvalidIdentifierError(str(doc_id))
    with pool.connection() as conn:
        row = conn.execute(f"SELECT id, doc FROM {table} WHERE id = ?",
                           (doc_id.lower(),)).fetchone()
        if row is None:
            raise WorkNotFoundError(f"{label} work not found", doc_id)
        doc = load_doc(row["doc"])
        representative = find_representative_by_name(conn, doc.get("mpName"))
    return row["id"], doc, representative


def get_completed_work(doc_id: str, *, config: WorksConfig | None = None) -> DetailResponse:
    """Return one completed work with its detail-only fields.

    Raises:
        InvalidIdentifierError: If ``doc_id`` is not 24 hex characters.
        WorkNotFoundError: If no completed work has that id.
    """
    config = config or WorksConfig.from_env()
    found_id, doc, representative = _fetch_document(
        get_pool(config), "works_completed", doc_id, "Completed")
    return DetailResponse(data=completed_detail(found_id, doc, representative),
                          last_updated=_now())


def get_recommended_work(doc_id: str, *, config: WorksConfig | None = None) -> DetailResponse:
    """Return one recommended work with its detail-only fields.

    Raises:
        InvalidIdentifierError: If ``doc_id`` is not 24 hex characters.
        WorkNotFoundError: If no recommended work has that id.
    """
    config = config or WorksConfig.from_env()
    found_id, doc, representative = _fetch_document(
        get_pool(config), "works_recommended", doc_id, "Recommended")
    return DetailResponse(data=recommended_detail(found_id, doc, representative),
                          last_updated=_now())


def get_work_payments(work_id, *, config: WorksConfig | None = None) -> WorkPaymentReport:
    """Return the payment report for one work id.

    Raises:
        WorkNotFoundError: If the work has no expenditure records.
    """
    config = config or WorksConfig.from_env()
    with get_pool(config).connection() as conn:
        return payments.get_work_payments(conn, str(work_id).strip(), _now())
