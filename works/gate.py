"""
House/Term Gate: the legislative-house restriction ANDed into every query.

The Rajya Sabha has one continuous lineage and no term concept.  The Lok
Sabha is re-elected in numbered terms and each of its records carries an
``lsTerm``.  Given a requested house and a term selector the gate admits:

    house unspecified  ->  all Rajya Sabha records
                           + Lok Sabha records whose term is selected
    "Rajya Sabha"      ->  all Rajya Sabha records (selector ignored)
    "Lok Sabha"        ->  Lok Sabha records whose term is selected

A record without a term never satisfies a term restriction; in SQL this
falls out of ``NULL IN (...)`` never being true.

There is no "no restriction" mode: ``build_gate()`` always returns a gate
and every query path renders it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from utils.config import BOTH_TERMS, HOUSES, LOK_SABHA, RAJYA_SABHA, WorksConfig
from utils.query import in_condition
from utils.strings import clean_param
from works.normalizer import sql_field


def parse_house(raw) -> str | None:
    """Return the canonical house name, or None for unspecified/unknown."""
    text = clean_param(raw)
    if text is None:
        return None
    for house in HOUSES:
        if text.lower() == house.lower():
            return house
    return None


def parse_term_selector(raw, config: WorksConfig) -> tuple[int, ...]:
    """Resolve a term selector into the tuple of admitted Lok Sabha terms.

    ``"both"`` (any case) selects every known term; an integer selects that
    term.  Missing or unparseable selectors fall back to the default term.

    Example:
        "both" -> (18, 17);  "17" -> (17,);  "x" -> (18,)
    """
    text = clean_param(raw)
    if text is None:
        return (config.default_ls_term,)
    if text.lower() == BOTH_TERMS:
        return tuple(config.known_ls_terms)
    try:
        return (int(text),)
    except ValueError:
        return (config.default_ls_term,)


@dataclass(frozen=True)
class Gate:
    """A resolved house/term restriction."""
    house: str | None
    terms: tuple[int, ...]

    def render(self, collection: str, alias: str) -> tuple[str, list[Any]]:
        """Render the gate as a SQL condition over ``alias``.

        Returns:
            Tuple of (condition, params).
        """
        house_expr = sql_field(collection, "house", alias)
        term_expr = sql_field(collection, "ls_term", alias)
        term_sql, term_params = in_condition(term_expr, list(self.terms))

        if self.house == RAJYA_SABHA:
            return f"{house_expr} = ?", [RAJYA_SABHA]
        lok_sabha = f"{house_expr} = ? AND {term_sql}"
        if self.house == LOK_SABHA:
            return lok_sabha, [LOK_SABHA, *term_params]
        return (
            f"{house_expr} = ? OR ({lok_sabha})",
            [RAJYA_SABHA, LOK_SABHA, *term_params],
        )

    def admits(self, house: str | None, term: int | None) -> bool:
        """Python rendering of the same rule, for in-memory rows."""
        rajya = house == RAJYA_SABHA
        lok = house == LOK_SABHA and term is not None and term in self.terms
        if self.house == RAJYA_SABHA:
            return rajya
        if self.house == LOK_SABHA:
            return lok
        return rajya or lok


def build_gate(house, ls_term, config: WorksConfig) -> Gate:
    """Build the gate for a requested house and term selector."""
    return Gate(house=parse_house(house), terms=parse_term_selector(ls_term, config))
