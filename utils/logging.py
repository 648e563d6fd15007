"""Logging setup for the works engine.

Modules log through ``logging.getLogger(__name__)``; this module only
configures the root handler once, from ``WorksConfig``:

    WORKS_LOG_FORMAT=text   "%(asctime)s %(levelname)s %(name)s %(message)s"
    WORKS_LOG_FORMAT=json   newline-delimited JSON via JsonFormatter

Extra keys passed with ``logger.x("...", extra={...})`` that appear in
``EXTRA_KEYS`` are carried into the JSON output.
"""

from __future__ import annotations

import json
import logging

from utils.config import WorksConfig

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

EXTRA_KEYS = ("pass_name", "duration_ms", "strategy", "collection")


class JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in EXTRA_KEYS:
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


def configure_logging(config: WorksConfig | None = None) -> logging.Handler:
    """Install a single stream handler on the root logger.

    Args:
        config: Source of ``log_format`` and ``log_level``; read from the
            environment when omitted.

    Returns:
        The installed handler.
    """
    config = config or WorksConfig.from_env()
    handler = logging.StreamHandler()
    if config.log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    level = getattr(logging, config.log_level, logging.INFO)
    logging.basicConfig(handlers=[handler], level=level, force=True)
    return handler
