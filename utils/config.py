"""Configuration management utilities for the MPLADS works engine.

Provides:
- The ``Config`` base class (settings from dicts and JSON files)
- ``WorksConfig``: engine settings loaded from environment variables
- Domain constants shared by the filter, gate and payment modules
"""

import json
import os
from pathlib import Path
from typing import Any, Dict


# ── Domain constants ──────────────────────────────────────────────────────────

# The upper house has a single continuous lineage; the lower house is
# re-elected in numbered terms and every record carries an ``lsTerm``.
RAJYA_SABHA = "Rajya Sabha"
LOK_SABHA = "Lok Sabha"
HOUSES = (RAJYA_SABHA, LOK_SABHA)

BOTH_TERMS = "both"

PAYMENT_SUCCESS = "Payment Success"
DEFAULT_STATUS = "Recommended"


class Config:
    """Attribute bag for settings, loadable from plain JSON."""

    def to_dict(self) -> Dict[str, Any]:
        """Public attributes as a dict (names starting with ``_`` skipped)."""
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Build an instance, then overlay ``data`` onto its defaults."""
        config = cls()
        for key, value in data.items():
            setattr(config, key, value)
        return config

    @classmethod
    def load_json(cls, path: Path) -> "Config":
        """Read a JSON settings file; its keys override the defaults.

        Raises:
            FileNotFoundError: If ``path`` is missing
            json.JSONDecodeError: If the file is not valid JSON
        """
        with open(path) as f:
            return cls.from_dict(json.load(f))


def _parse_terms(raw: str) -> tuple[int, ...]:
    terms = []
    for part in raw.split(","):
        part = part.strip()
        if part.isdigit():
            terms.append(int(part))
    return tuple(sorted(set(terms), reverse=True))


class WorksConfig(Config):
    """Engine configuration loaded from environment variables.

    All env vars have sensible defaults so the engine works out of the box
    without any configuration.

    Environment variables:
        WORKS_DB_PATH: Path to the SQLite database file (default: mplads_works.sqlite)
        WORKS_DB_POOL_SIZE: Max pooled read-only connections (default: 10)
        WORKS_DB_ACQUIRE_TIMEOUT: Seconds to wait for a free pooled connection (default: 30)
        WORKS_QUERY_TIMEOUT_MS: Time budget per aggregate pass (default: 5000)
        WORKS_FAST_PATH_MAX_LIMIT: Largest page size eligible for the fast path (default: 5)
        WORKS_FAST_PATH_MIN_BUFFER: Minimum fast-path candidate buffer (default: 20)
        WORKS_FAST_PATH_BUFFER_FACTOR: Buffer size as a multiple of the page size (default: 3)
        WORKS_PAYMENT_SCAN_CAP: Candidate cap when filtering on payments (default: 1000)
        WORKS_DEFAULT_LS_TERM: Lok Sabha term used when none is requested (default: 18)
        WORKS_KNOWN_LS_TERMS: Comma-separated terms covered by "both" (default: 17,18)
        WORKS_LOG_FORMAT: "text" or "json" (default: text)
        WORKS_LOG_LEVEL: Root log level name (default: INFO)
    """

    def __init__(self) -> None:
        self.db_path = Path(os.getenv("WORKS_DB_PATH", "mplads_works.sqlite"))
        self.pool_size = int(os.getenv("WORKS_DB_POOL_SIZE", "10"))
        self.pool_acquire_timeout = float(os.getenv("WORKS_DB_ACQUIRE_TIMEOUT", "30"))
        self.query_timeout_ms = int(os.getenv("WORKS_QUERY_TIMEOUT_MS", "5000"))
        self.fast_path_max_limit = int(os.getenv("WORKS_FAST_PATH_MAX_LIMIT", "5"))
        self.fast_path_min_buffer = int(os.getenv("WORKS_FAST_PATH_MIN_BUFFER", "20"))
        self.fast_path_buffer_factor = int(os.getenv("WORKS_FAST_PATH_BUFFER_FACTOR", "3"))
        self.payment_scan_cap = int(os.getenv("WORKS_PAYMENT_SCAN_CAP", "1000"))
        self.default_ls_term = int(os.getenv("WORKS_DEFAULT_LS_TERM", "18"))
        self.known_ls_terms: tuple[int, ...] = (
            _parse_terms(os.getenv("WORKS_KNOWN_LS_TERMS", "17,18")) or (18, 17)
        )
        self.log_format = os.getenv("WORKS_LOG_FORMAT", "text")
        self.log_level = os.getenv("WORKS_LOG_LEVEL", "INFO").upper()

    @property
    def query_timeout_seconds(self) -> float:
        return self.query_timeout_ms / 1000.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorksConfig":
        """Environment defaults overlaid with ``data`` (JSON-typed values coerced)."""
        config = super().from_dict(data)
        config.db_path = Path(config.db_path)
        config.known_ls_terms = tuple(int(t) for t in config.known_ls_terms)
        return config

    @classmethod
    def from_env(cls) -> "WorksConfig":
        """Create a WorksConfig instance populated from environment variables."""
        return cls()
