"""Pre-compiled regex patterns for the works engine.

All patterns are compiled once at module import.

Usage:
    from utils.patterns import OBJECT_ID, LIKE_SPECIAL_CHARS

    if OBJECT_ID.match(doc_id):
        ...
"""

import re

# Document identifiers: 24 hexadecimal characters (e.g. 64f1c2a9e4b0a1d2c3b4a5f6)
OBJECT_ID = re.compile(r'^[0-9a-fA-F]{24}$')

# Characters with special meaning inside a SQL LIKE pattern (plus the escape char)
LIKE_SPECIAL_CHARS = re.compile(r'([\\%_])')

# Leading signed integer, as accepted for work identifiers: "501", "-3", "42abc"
LEADING_INT = re.compile(r'^\s*([+-]?\d+)')

# Currency symbols and thousands separators stripped during numeric conversion
CURRENCY_SYMBOLS = re.compile(r'[\$€£¥₹₽]')

# Four-digit year at the start of an ISO-8601 date string
ISO_YEAR = re.compile(r'^(\d{4})-')
