"""String processing utilities for the works engine.

Critical functions like safe_float() run once per field per normalized
record, so they use pre-compiled patterns from utils.patterns.
"""

from datetime import date, datetime

from utils.patterns import CURRENCY_SYMBOLS, ISO_YEAR, LEADING_INT, LIKE_SPECIAL_CHARS

LIKE_ESCAPE = "\\"


def safe_float(val, default: float = 0.0) -> float:
    """Safely convert value to float with fallback default.

    Handles:
    - None, empty strings -> default
    - Numeric types -> float (bools are rejected)
    - Strings with currency symbols, whitespace, commas
    - Invalid input -> default

    Args:
        val: Value to convert (any type)
        default: Value to return on failure (default: 0.0)

    Returns:
        float: Parsed value or default
    """
    if val is None or val == '' or isinstance(val, bool):
        return default
    if isinstance(val, (int, float)):
        return float(val)

    try:
        s = str(val).strip()
        s = CURRENCY_SYMBOLS.sub('', s)
        s = s.replace(',', '').strip()
        return float(s) if s else default
    except (ValueError, TypeError):
        return default


def clean_param(value) -> str | None:
    """Return a stripped filter value, or None when it is empty/whitespace.

    Non-string values are converted with str() first so numeric query
    parameters behave like their string form.
    """
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def escape_like(text: str) -> str:
    """Escape user input for literal use inside a SQL LIKE pattern.

    Pair with ``ESCAPE '\\'`` in the SQL.  ``%`` and ``_`` lose their
    wildcard meaning and a literal backslash stays a backslash.

    Example:
        '50%_off' -> '50\\%\\_off'
    """
    return LIKE_SPECIAL_CHARS.sub(r'\\\1', text)


def contains_pattern(text: str) -> str:
    """Build an escaped ``%...%`` substring pattern for a LIKE comparison."""
    return f"%{escape_like(text)}%"


def parse_work_id(raw) -> int | str | None:
    """Parse a work identifier the way the ingest stores it.

    Numeric strings become ints ("501" -> 501, "42abc" -> 42 like a lenient
    integer parse); anything without a leading integer stays a string.
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    match = LEADING_INT.match(text)
    if match:
        return int(match.group(1))
    return text


def parse_date(val) -> date | None:
    """Coerce an ISO-8601 string, datetime or date into a date.

    Accepts "2024-03-15", "2024-03-15T10:00:00Z" and "2024-03-15 10:00:00".
    Anything unparseable yields None.
    """
    if val is None or val == '':
        return None
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    text = str(val).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def year_of(val) -> int | None:
    """Return the calendar year of a date-like value, or None."""
    parsed = parse_date(val)
    if parsed is not None:
        return parsed.year
    if isinstance(val, str):
        match = ISO_YEAR.match(val.strip())
        if match:
            return int(match.group(1))
    return None
