"""
Filter Compiler: request parameters to a SQL predicate over canonical fields.

Rules (empty or whitespace-only values count as absent):

    search          description OR location contains the text (case-insensitive)
    state           state contains the text (case-insensitive)
    category        category contains the text (case-insensitive)
    constituency /  exact sub-region match; both given and distinct -> either,
    district        both given and equal ignoring case -> constituency value
    min_cost /      inclusive range on the canonical cost
    max_cost
    year            derived completion/recommendation year equals
    status          canonical status equals (recommended only)
    has_payments    presence requests payment filtering; "true"/"1" means
                    at least one successful payment (recommended only)
    mp_id           resolved to a representative name, equality on mpName

User text is escaped for LIKE (``%``, ``_`` and ``\\``) before it is used.
The compiled filter carries only canonical-field conditions; the house/term
gate and the identity exclusion are added by the planner.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from utils.query import in_condition
from utils.strings import LIKE_ESCAPE, clean_param, contains_pattern, safe_float
from works.models import WorksQuery
from works.normalizer import sql_field

logger = logging.getLogger(__name__)

ALIAS = "w"

_LIKE = f"LIKE ? ESCAPE '{LIKE_ESCAPE}'"

_DATE_YEAR_FIELD = {"completed": "completion_year", "recommended": "recommended_year"}
_COST_FIELD = {"completed": "cost", "recommended": "estimated_cost"}

# Filters that make a bounded candidate buffer unrepresentative.
FAST_PATH_BLOCKERS = frozenset({"search", "year", "category", "has_payments"})


@dataclass(frozen=True)
class CompiledFilter:
    """Compiled predicate for one collection, rendered over alias ``w``.

    Attributes:
        collection: "completed" or "recommended".
        conditions: SQL condition fragments, ANDed together.
        params: Positional parameters for ``conditions``.
        applied: Names of the filters that were present.
        has_payments: None when no payment filtering was requested,
            otherwise the requested presence.
    """
    collection: str
    conditions: tuple[str, ...] = ()
    params: tuple[Any, ...] = ()
    applied: frozenset[str] = frozenset()
    has_payments: bool | None = None

    @property
    def payment_filtering(self) -> bool:
        return self.has_payments is not None

    def blocks_fast_path(self) -> bool:
        return bool(self.applied & FAST_PATH_BLOCKERS)


def _sub_regions(constituency: str | None, district: str | None) -> list[str]:
    if constituency and district:
        if constituency.lower() == district.lower():
            return [constituency]
        return [constituency, district]
    if constituency:
        return [constituency]
    if district:
        return [district]
    return []


def _number(name: str, raw: str) -> float | None:
    value = safe_float(raw, None)
    if value is None:
        logger.debug("Ignoring non-numeric %s filter %r", name, raw)
    return value


def _year(raw: str) -> int | None:
    try:
        return int(raw)
    except ValueError:
        logger.debug("Ignoring non-numeric year filter %r", raw)
        return None


def parse_has_payments(raw) -> bool | None:
    """Map a payment-presence parameter to True/False, or None when absent."""
    text = clean_param(raw)
    if text is None:
        return None
    return text.lower() in ("true", "1")


def compile_filters(
    query: WorksQuery,
    collection: str,
    resolve_mp: Callable[[str], str] | None = None,
) -> CompiledFilter:
    """Compile the filter parameters of ``query`` for ``collection``.

    Args:
        query: Request parameter bag.
        collection: "completed" or "recommended".
        resolve_mp: Maps an ``mp_id`` to a representative name; the raw
            value is used as the name when omitted.

    Returns:
        CompiledFilter with conditions over alias ``w``.
    """
    def field(name: str) -> str:
        return sql_field(collection, name, ALIAS)

    conditions: list[str] = []
    params: list[Any] = []
    applied: set[str] = set()

    mp_id = clean_param(query.mp_id)
    if mp_id:
        name = resolve_mp(mp_id) if resolve_mp else mp_id
        conditions.append(f"{field('mp_name')} = ?")
        params.append(name)
        applied.add("mp_id")

    state = clean_param(query.state)
    if state:
        conditions.append(f"{field('state')} {_LIKE}")
        params.append(contains_pattern(state))
        applied.add("state")

    regions = _sub_regions(clean_param(query.constituency), clean_param(query.district))
    if regions:
        sql, region_params = in_condition(field("district"), regions)
        conditions.append(sql)
        params.extend(region_params)
        applied.add("constituency")

    category = clean_param(query.category)
    if category:
        conditions.append(f"{field('category')} {_LIKE}")
        params.append(contains_pattern(category))
        applied.add("category")

    cost = field(_COST_FIELD[collection])
    min_cost = clean_param(query.min_cost)
    if min_cost is not None and (value := _number("min_cost", min_cost)) is not None:
        conditions.append(f"{cost} >= ?")
        params.append(value)
        applied.add("min_cost")
    max_cost = clean_param(query.max_cost)
    if max_cost is not None and (value := _number("max_cost", max_cost)) is not None:
        conditions.append(f"{cost} <= ?")
        params.append(value)
        applied.add("max_cost")

    year = clean_param(query.year)
    if year is not None and (year_value := _year(year)) is not None:
        conditions.append(f"{field(_DATE_YEAR_FIELD[collection])} = ?")
        params.append(year_value)
        applied.add("year")

    search = clean_param(query.search)
    if search:
        pattern = contains_pattern(search)
        conditions.append(
            f"{field('work_description')} {_LIKE} OR {field('location')} {_LIKE}"
        )
        params.extend([pattern, pattern])
        applied.add("search")

    has_payments = None
    if collection == "recommended":
        status = clean_param(query.status)
        if status:
            conditions.append(f"{field('status')} = ?")
            params.append(status)
            applied.add("status")
        has_payments = parse_has_payments(query.has_payments)
        if has_payments is not None:
            applied.add("has_payments")

    return CompiledFilter(
        collection=collection,
        conditions=tuple(conditions),
        params=tuple(params),
        applied=frozenset(applied),
        has_payments=has_payments,
    )
