"""
Tests for works/gate.py — the house/term restriction

Checks selector parsing, the SQL rendering against a real SQLite table, and
that the Python and SQL renderings admit the same rows (records without a
term never satisfy a term restriction).
"""
import json
import sqlite3
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.config import WorksConfig  # noqa: E402
from works.database import register_functions  # noqa: E402
from works.gate import Gate, build_gate, parse_house, parse_term_selector  # noqa: E402

ROWS = {
    "rs_no_term": {"house": "Rajya Sabha"},
    "rs_term_18": {"house": "Rajya Sabha", "lsTerm": 18},
    "ls_18": {"house": "Lok Sabha", "lsTerm": 18},
    "ls_17": {"house": "Lok Sabha", "lsTerm": 17},
    "ls_null": {"house": "Lok Sabha"},
    "no_house": {"lsTerm": 18},
}


@pytest.fixture
def gate_config():
    cfg = WorksConfig()
    cfg.default_ls_term = 18
    cfg.known_ls_terms = (18, 17)
    return cfg


@pytest.fixture
def conn():
    conn = sqlite3.connect(":memory:")
    register_functions(conn)
    conn.execute("CREATE TABLE works_recommended (id TEXT, doc TEXT)")
    conn.executemany("INSERT INTO works_recommended VALUES (?, ?)",
                     [(k, json.dumps(v)) for k, v in ROWS.items()])
    yield conn
    conn.close()


def _admitted_sql(conn, gate: Gate) -> set[str]:
    sql, params = gate.render("recommended", "w")
    rows = conn.execute(f"SELECT w.id FROM works_recommended w WHERE {sql}", params)
    return {r[0] for r in rows}


def _admitted_py(gate: Gate) -> set[str]:
    return {k for k, v in ROWS.items() if gate.admits(v.get("house"), v.get("lsTerm"))}


class TestParseHouse:
    def test_canonical_names(self):
        assert parse_house("Lok Sabha") == "Lok Sabha"
        assert parse_house("rajya sabha") == "Rajya Sabha"

    def test_unknown_and_empty(self):
        assert parse_house("Senate") is None
        assert parse_house("") is None
        assert parse_house(None) is None


class TestParseTermSelector:
    def test_default(self, gate_config):
        assert parse_term_selector(None, gate_config) == (18,)

    def test_both(self, gate_config):
        assert parse_term_selector("BOTH", gate_config) == (18, 17)

    def test_number(self, gate_config):
        assert parse_term_selector("17", gate_config) == (17,)

    def test_unparseable_falls_back(self, gate_config):
        assert parse_term_selector("latest", gate_config) == (18,)


class TestGateRendering:
    def test_unspecified_house_default_term(self, conn, gate_config):
        gate = build_gate(None, None, gate_config)
        assert _admitted_sql(conn, gate) == {"rs_no_term", "rs_term_18", "ls_18"}

    def test_unspecified_house_both_terms(self, conn, gate_config):
        gate = build_gate(None, "both", gate_config)
        assert _admitted_sql(conn, gate) == {"rs_no_term", "rs_term_18", "ls_18", "ls_17"}

    def test_rajya_sabha_ignores_selector(self, conn, gate_config):
        gate = build_gate("Rajya Sabha", "17", gate_config)
        assert _admitted_sql(conn, gate) == {"rs_no_term", "rs_term_18"}

    def test_lok_sabha_term(self, conn, gate_config):
        gate = build_gate("Lok Sabha", "17", gate_config)
        assert _admitted_sql(conn, gate) == {"ls_17"}

    def test_null_term_never_admitted(self, conn, gate_config):
        for house in (None, "Lok Sabha"):
            gate = build_gate(house, "both", gate_config)
            assert "ls_null" not in _admitted_sql(conn, gate)

    def test_python_rendering_agrees(self, conn, gate_config):
        for house in (None, "Lok Sabha", "Rajya Sabha"):
            for selector in (None, "17", "both"):
                gate = build_gate(house, selector, gate_config)
                assert _admitted_py(gate) == _admitted_sql(conn, gate), (house, selector)
