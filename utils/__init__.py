"""Shared utilities for the MPLADS works engine."""

# Pattern definitions
from utils.patterns import OBJECT_ID, LIKE_SPECIAL_CHARS

# String utilities
from utils.strings import (
    safe_float,
    clean_param,
    escape_like,
    contains_pattern,
    parse_work_id,
    parse_date,
    year_of,
)

# Database utilities
from utils.database import (
    init_pragmas,
    batch_insert,
)

# Query builders
from utils.query import (
    placeholders,
    in_condition,
    build_where_clause,
    build_order_clause,
)

# Configuration
from utils.config import Config, WorksConfig

__all__ = [
    # Patterns
    "OBJECT_ID",
    "LIKE_SPECIAL_CHARS",
    # Strings
    "safe_float",
    "clean_param",
    "escape_like",
    "contains_pattern",
    "parse_work_id",
    "parse_date",
    "year_of",
    # Database
    "init_pragmas",
    "batch_insert",
    # Query
    "placeholders",
    "in_condition",
    "build_where_clause",
    "build_order_clause",
    # Config
    "Config",
    "WorksConfig",
]
