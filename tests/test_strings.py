"""
Tests for utils/strings.py — numeric coercion, LIKE escaping, identifiers
and dates.
"""
import sys
from datetime import date, datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.strings import (  # noqa: E402
    clean_param,
    contains_pattern,
    escape_like,
    parse_date,
    parse_work_id,
    safe_float,
    year_of,
)


class TestSafeFloat:
    def test_numbers(self):
        assert safe_float(12) == 12.0
        assert safe_float(1.5) == 1.5

    def test_thousands_separators(self):
        assert safe_float("45,000") == 45000.0
        assert safe_float("2,10,000") == 210000.0

    def test_currency_symbol(self):
        assert safe_float("₹ 1,200.50") == 1200.5

    def test_none_and_empty(self):
        assert safe_float(None) == 0.0
        assert safe_float("") == 0.0
        assert safe_float("   ") == 0.0

    def test_invalid_uses_default(self):
        assert safe_float("n/a") == 0.0
        assert safe_float("n/a", None) is None

    def test_bool_rejected(self):
        assert safe_float(True) == 0.0


class TestCleanParam:
    def test_none(self):
        assert clean_param(None) is None

    def test_whitespace_only(self):
        assert clean_param("   ") is None

    def test_stripped(self):
        assert clean_param("  Kerala ") == "Kerala"

    def test_number(self):
        assert clean_param(2024) == "2024"


class TestEscapeLike:
    def test_percent_and_underscore(self):
        assert escape_like("50%_off") == "50\\%\\_off"

    def test_backslash(self):
        assert escape_like("a\\b") == "a\\\\b"

    def test_plain_text_unchanged(self):
        assert escape_like("Road") == "Road"

    def test_contains_pattern(self):
        assert contains_pattern("50%") == "%50\\%%"


class TestParseWorkId:
    def test_numeric_string(self):
        assert parse_work_id("501") == 501

    def test_leading_integer(self):
        assert parse_work_id("42abc") == 42

    def test_non_numeric_kept(self):
        assert parse_work_id("WK-7") == "WK-7"

    def test_int_passthrough(self):
        assert parse_work_id(7) == 7

    def test_empty(self):
        assert parse_work_id("  ") is None
        assert parse_work_id(None) is None


class TestDates:
    def test_iso_date(self):
        assert parse_date("2024-03-15") == date(2024, 3, 15)

    def test_iso_timestamp_with_z(self):
        assert parse_date("2024-03-15T10:00:00Z") == date(2024, 3, 15)

    def test_datetime(self):
        assert parse_date(datetime(2024, 3, 15, 10)) == date(2024, 3, 15)

    def test_garbage(self):
        assert parse_date("not a date") is None
        assert parse_date(None) is None

    def test_year_of(self):
        assert year_of("2023-11-05") == 2023
        assert year_of(None) is None
        assert year_of("tomorrow") is None
