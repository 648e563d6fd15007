"""
Record Normalizer: one canonical shape for two schema generations.

Stored documents use either the current field names (``workId``,
``finalAmount``, ``completedDate`` ...) or the legacy ones (``work_id``,
``cost``, ``completion_date`` ...).  Each canonical field is described once
in a rule table below, and that table is rendered two ways:

  - ``normalize_completed()`` / ``normalize_recommended()`` resolve a raw
    document into a typed pydantic record;
  - ``sql_field()`` renders the same coalescing rule as a SQL expression
    over the stored JSON, so filters, sorts and aggregates operate on exactly
    the values callers see.

The numeric and year coercions are shared Python functions registered on
every connection (see ``SQL_FUNCTIONS``), so the SQL rendering cannot drift
from the Python one.

Rule kinds:
    text     value as-is (str() for non-strings), default None
    number   safe_float(), default 0.0
    id       work identifier, int or str as stored
    term     Lok Sabha term number, None when absent
    date     ISO date string -> datetime.date
    year     calendar year derived from the same fields as a date rule
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping

from utils.config import DEFAULT_STATUS
from utils.strings import parse_date, safe_float, year_of
from works.models import (
    CompletedWork,
    CompletedWorkDetail,
    GpsCoordinates,
    MPDetails,
    RecommendedWork,
    RecommendedWorkDetail,
    RepresentativeOut,
)


@dataclass(frozen=True)
class FieldRule:
    """Coalescing rule for one canonical field."""
    name: str
    current: str
    legacy: str | None = None
    kind: str = "text"
    default: Any = None


def _index(*rules: FieldRule) -> dict[str, FieldRule]:
    return {r.name: r for r in rules}


# ── Rule tables ───────────────────────────────────────────────────────────────

COMPLETED_FIELDS = _index(
    FieldRule("work_id", "workId", "work_id", kind="id"),
    FieldRule("house", "house"),
    FieldRule("ls_term", "lsTerm", kind="term"),
    FieldRule("work_description", "workDescription", "work_description"),
    FieldRule("category", "workCategory", "category"),
    FieldRule("cost", "finalAmount", "cost", kind="number", default=0.0),
    FieldRule("completion_date", "completedDate", "completion_date", kind="date"),
    FieldRule("completion_year", "completedDate", "completion_date", kind="year"),
    FieldRule("location", "ida", "location"),
    FieldRule("district", "constituency", "district"),
    FieldRule("state", "state"),
    FieldRule("beneficiaries", "beneficiaries", kind="number", default=0.0),
    FieldRule("mp_name", "mpName"),
)

RECOMMENDED_FIELDS = _index(
    FieldRule("work_id", "workId", "work_id", kind="id"),
    FieldRule("house", "house"),
    FieldRule("ls_term", "lsTerm", kind="term"),
    FieldRule("work_description", "workDescription", "work_description"),
    FieldRule("category", "workCategory", "category"),
    FieldRule("estimated_cost", "recommendedAmount", "estimated_cost", kind="number", default=0.0),
    FieldRule("recommended_date", "recommendationDate", "recommended_date", kind="date"),
    FieldRule("recommended_year", "recommendationDate", "recommended_date", kind="year"),
    FieldRule("status", "status", default=DEFAULT_STATUS),
    FieldRule("priority", "priority"),
    FieldRule("location", "ida", "location"),
    FieldRule("district", "constituency", "district"),
    FieldRule("state", "state"),
    FieldRule("expected_beneficiaries", "expected_beneficiaries", kind="number", default=0.0),
    FieldRule("mp_name", "mpName"),
)

EXPENDITURE_FIELDS = _index(
    FieldRule("work_id", "workId", kind="id"),
    FieldRule("house", "house"),
    FieldRule("ls_term", "lsTerm", kind="term"),
    FieldRule("amount", "expenditureAmount", kind="number", default=0.0),
    FieldRule("date", "expenditureDate"),
    FieldRule("status", "paymentStatus"),
    FieldRule("vendor", "vendor"),
    FieldRule("ida", "ida"),
    FieldRule("work", "work"),
    FieldRule("mp_name", "mpName"),
    FieldRule("constituency", "constituency"),
    FieldRule("state", "state"),
)

RULES: dict[str, dict[str, FieldRule]] = {
    "completed": COMPLETED_FIELDS,
    "recommended": RECOMMENDED_FIELDS,
    "expenditure": EXPENDITURE_FIELDS,
}


# ── SQL rendering ─────────────────────────────────────────────────────────────

def _sql_number(value) -> float:
    return safe_float(value)


SQL_FUNCTIONS = {
    "works_num": _sql_number,
    "works_year": year_of,
}


def _json_path(alias: str, field: str) -> str:
    return f"json_extract({alias}.doc, '$.{field}')"


def _sql_literal(value: Any) -> str:
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    return repr(value)


def raw_sql(rule: FieldRule, alias: str) -> str:
    """Render the current-else-legacy lookup without any coercion."""
    current = _json_path(alias, rule.current)
    if rule.legacy:
        return f"COALESCE({current}, {_json_path(alias, rule.legacy)})"
    return current


def sql_field(collection: str, name: str, alias: str) -> str:
    """Render a canonical field of ``collection`` as a SQL expression.

    Args:
        collection: "completed", "recommended" or "expenditure".
        name: Canonical field name from the rule table.
        alias: Table alias of the row being read.

    Returns:
        SQL expression yielding the canonical value.

    Raises:
        KeyError: If the field is not in the rule table.
    """
    rule = RULES[collection][name]
    expr = raw_sql(rule, alias)
    if rule.kind == "number":
        return f"works_num({expr})"
    if rule.kind == "year":
        return f"works_year({expr})"
    if rule.default is not None:
        return f"COALESCE({expr}, {_sql_literal(rule.default)})"
    return expr


def sort_fields(collection: str, alias: str) -> dict[str, str]:
    """Map every accepted sort name to its SQL expression.

    Canonical names plus the current and legacy storage names of each field
    are accepted; the expression is always the canonical one.
    """
    allowed: dict[str, str] = {}
    for rule in RULES[collection].values():
        expr = sql_field(collection, rule.name, alias)
        for key in (rule.name, rule.current, rule.legacy):
            if key and key not in allowed:
                allowed[key] = expr
    return allowed


# ── Python rendering ──────────────────────────────────────────────────────────

def pick(doc: Mapping[str, Any], rule: FieldRule) -> Any:
    """Return the raw stored value: current name first, else legacy."""
    value = doc.get(rule.current)
    if value is None and rule.legacy:
        value = doc.get(rule.legacy)
    return value


def _as_term(value) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip()
    return int(text) if text.isdigit() else None


def resolve(doc: Mapping[str, Any], rule: FieldRule) -> Any:
    """Resolve one canonical value from a raw document."""
    value = pick(doc, rule)
    if rule.kind == "number":
        return safe_float(value, rule.default)
    if rule.kind == "year":
        return year_of(value)
    if rule.kind == "date":
        return parse_date(value)
    if rule.kind == "term":
        return _as_term(value)
    if rule.kind == "id":
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value if isinstance(value, (int, str)) else str(value)
    if value is None:
        return rule.default
    return value if isinstance(value, str) else str(value)


def canonical(collection: str, doc: Mapping[str, Any]) -> dict[str, Any]:
    """Resolve every canonical field of ``collection`` from ``doc``."""
    return {name: resolve(doc, rule) for name, rule in RULES[collection].items()}


def load_doc(raw: str | bytes | Mapping[str, Any] | None) -> dict[str, Any]:
    """Decode a stored JSON document; mappings pass through unchanged."""
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    return json.loads(raw)


def _mp_details(doc: Mapping[str, Any]) -> MPDetails:
    return MPDetails(
        name=doc.get("mpName"),
        constituency=doc.get("constituency"),
        house=doc.get("house"),
    )


def normalize_completed(doc_id: str, doc: Mapping[str, Any]) -> CompletedWork:
    """Build the canonical completed-work record from either schema generation."""
    values = canonical("completed", doc)
    values.pop("mp_name")
    return CompletedWork(id=doc_id, mp_details=_mp_details(doc), **values)


def normalize_recommended(
    doc_id: str,
    doc: Mapping[str, Any],
    payment: Mapping[str, Any] | None = None,
) -> RecommendedWork:
    """Build the canonical recommended-work record.

    Args:
        doc_id: Document identifier.
        doc: Raw stored document.
        payment: Optional ``PaymentInfo`` fields (has_payments, total_paid,
            payment_count); defaults to no payments.
    """
    values = canonical("recommended", doc)
    values.pop("mp_name")
    return RecommendedWork(id=doc_id, mp_details=_mp_details(doc), **values, **(payment or {}))


# ── Detail views ──────────────────────────────────────────────────────────────

def _gps(doc: Mapping[str, Any]) -> GpsCoordinates:
    lat = doc.get("latitude")
    lon = doc.get("longitude")
    return GpsCoordinates(
        latitude=safe_float(lat, None) if lat is not None else None,
        longitude=safe_float(lon, None) if lon is not None else None,
    )


def _timestamp(doc: Mapping[str, Any], snake: str, camel: str) -> str | None:
    value = doc.get(snake)
    if value is None:
        value = doc.get(camel)
    return None if value is None else str(value)


def _representative(row: Mapping[str, Any] | None) -> RepresentativeOut | None:
    if row is None:
        return None
    return RepresentativeOut(
        id=row.get("id"),
        name=row.get("name"),
        constituency=row.get("constituency"),
        house=row.get("house"),
        state=row.get("state"),
    )


def completed_detail(
    doc_id: str,
    doc: Mapping[str, Any],
    representative: Mapping[str, Any] | None = None,
) -> CompletedWorkDetail:
    """Canonical completed work plus the detail-only fields."""
    base = normalize_completed(doc_id, doc).model_dump()
    return CompletedWorkDetail(
        **base,
        implementing_agency=doc.get("implementing_agency"),
        photos_before=list(doc.get("before_photos") or []),
        photos_after=list(doc.get("after_photos") or []),
        gps_coordinates=_gps(doc),
        status_timeline=doc.get("timeline"),
        quality_rating=safe_float(doc.get("quality_rating")),
        impact_metrics={
            "schools_connected": doc.get("schools_connected"),
            "roads_length_km": doc.get("roads_length_km"),
            "water_connections": doc.get("water_connections"),
            "beneficiary_households": doc.get("beneficiary_households"),
        },
        representative=_representative(representative),
        created_at=_timestamp(doc, "created_at", "createdAt"),
        updated_at=_timestamp(doc, "updated_at", "updatedAt"),
    )


def recommended_detail(
    doc_id: str,
    doc: Mapping[str, Any],
    representative: Mapping[str, Any] | None = None,
) -> RecommendedWorkDetail:
    """Canonical recommended work plus the detail-only fields."""
    values = canonical("recommended", doc)
    values.pop("mp_name")
    expected = doc.get("expected_completion_date")
    return RecommendedWorkDetail(
        id=doc_id,
        mp_details=_mp_details(doc),
        **values,
        implementing_agency=doc.get("implementing_agency"),
        gps_coordinates=_gps(doc),
        status_timeline=doc.get("timeline"),
        approval_status=doc.get("approval_details"),
        expected_completion_date=None if expected is None else str(expected),
        funding_source=doc.get("funding_source"),
        environmental_clearance=doc.get("environmental_clearance"),
        technical_feasibility=doc.get("technical_feasibility"),
        representative=_representative(representative),
        created_at=_timestamp(doc, "created_at", "createdAt"),
        updated_at=_timestamp(doc, "updated_at", "updatedAt"),
    )
