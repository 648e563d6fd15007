"""Shared SQL query builder utilities for the works engine.

Provides DRY WHERE clause, IN-list and ORDER BY construction used by the
filter compiler, the house/term gate and the aggregate passes.
"""

from typing import Any


def placeholders(count: int) -> str:
    """Return ``count`` comma-separated ``?`` placeholders."""
    return ",".join("?" * count)


def in_condition(expr: str, values: list[Any]) -> tuple[str, list[Any]]:
    """Build ``expr IN (?, ...)`` for a non-empty value list.

    A single value is rendered as plain equality so SQLite can use an
    expression index on ``expr``.

    Raises:
        ValueError: If ``values`` is empty.
    """
    if not values:
        raise ValueError("in_condition() needs at least one value")
    if len(values) == 1:
        return f"{expr} = ?", [values[0]]
    return f"{expr} IN ({placeholders(len(values))})", list(values)


def build_where_clause(conditions: list[str]) -> str:
    """Join condition fragments into a WHERE clause.

    Returns:
        "WHERE a AND b ..." when any conditions exist, otherwise "".
    """
    if not conditions:
        return ""
    return "WHERE " + " AND ".join(f"({c})" for c in conditions)


def parse_sort(sort: str | None, default: str) -> tuple[str, str]:
    """Split a ``-field`` / ``field`` sort spec into (field, direction).

    Args:
        sort: Caller sort spec; a leading ``-`` means descending.
        default: Spec used when ``sort`` is empty.

    Returns:
        Tuple of (field_name, "ASC" | "DESC").
    """
    spec = (sort or "").strip() or default
    if spec.startswith("-"):
        return spec[1:], "DESC"
    if spec.startswith("+"):
        return spec[1:], "ASC"
    return spec, "ASC"


def build_order_clause(
    sort: str | None,
    allowed_sorts: dict[str, str],
    default_sort: str,
    tiebreaker: str | None = None,
) -> str:
    """Build a safe SQL ORDER BY clause.

    Args:
        sort: Caller sort spec such as "-recommendationDate".
        allowed_sorts: Maps accepted field names to SQL expressions.
        default_sort: Sort spec used when ``sort`` names an unknown field.
        tiebreaker: Expression appended ascending so equal keys keep a
            stable order between runs.

    Returns:
        ORDER BY clause string, e.g. "ORDER BY expr DESC, r.id ASC".
    """
    field, direction = parse_sort(sort, default_sort)
    if field not in allowed_sorts:
        field, direction = parse_sort(default_sort, default_sort)
    clause = f"ORDER BY {allowed_sorts[field]} {direction}"
    if tiebreaker:
        clause += f", {tiebreaker} ASC"
    return clause
