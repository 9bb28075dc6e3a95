"""Logging for join runs.

Join output goes to stdout, so log handlers write to stderr (and optionally
a file). ``JoinLogger`` tags each record with the two inputs of the run and
attaches run statistics and error payloads as structured fields, which
``JSONFormatter`` writes out as top-level keys.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from mergejoin.lib.errors import JoinError

__all__ = [
    "setup_logging",
    "JSONFormatter",
    "JoinLogger",
    "get_join_logger",
]

# record attributes JSONFormatter lifts into the output
_STRUCTURED_FIELDS = ("inputs", "stats", "error")


class JSONFormatter(logging.Formatter):
    """One JSON object per log record.

    Example output:
        {"timestamp": "2025-01-15T10:30:00.123Z", "level": "INFO",
         "logger": "mergejoin.lib.runner", "message": "Join complete: ...",
         "inputs": {"left": "customers.tsv", "right": "orders.tsv"},
         "stats": {"matched_rows": 1000, ...}}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in _STRUCTURED_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_data[name] = value
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


class JoinLogger:
    """Logger bound to the inputs of the join being run.

    Example:
        logger = get_join_logger(__name__)
        logger.bind("customers.tsv", "orders.tsv")
        logger.info("Starting join")
        logger.stats({"matched_rows": 10, "right_rewinds": 2})
        logger.unbind()
    """

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)
        self._inputs: Optional[Dict[str, str]] = None

    def bind(self, left: str, right: str) -> None:
        self._inputs = {"left": left, "right": right}

    def unbind(self) -> None:
        self._inputs = None

    def _log(self, level: int, msg: str, *args: Any, **fields: Any) -> None:
        extra = {"inputs": self._inputs}
        extra.update(fields)
        self._logger.log(level, msg, *args, extra=extra)

    def debug(self, msg: str, *args: Any) -> None:
        self._log(logging.DEBUG, msg, *args)

    def info(self, msg: str, *args: Any) -> None:
        self._log(logging.INFO, msg, *args)

    def stats(self, stats: Dict[str, Any]) -> None:
        """Log the statistics of a finished run as one structured record."""
        summary = " ".join(f"{key}={value}" for key, value in stats.items())
        self._log(logging.INFO, "STATS %s", summary, stats=stats)

    def failure(self, exc: JoinError, rows_written: int) -> None:
        """Log a join error with its payload (kind, side, index, details)."""
        self._log(
            logging.ERROR,
            "Join aborted after %d rows: %s",
            rows_written,
            exc.kind,
            error=exc.to_dict(),
        )


def get_join_logger(name: str) -> JoinLogger:
    return JoinLogger(name)


def setup_logging(
    verbose: bool = False,
    json_format: bool = False,
    log_file: Optional[str] = None,
    quiet: bool = False,
) -> None:
    """Configure logging for a join run.

    Args:
        verbose: Enable debug-level logging
        json_format: Use JSON output format (for log aggregation)
        log_file: Optional file path to write logs to
        quiet: Only log warnings and errors
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    if json_format:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
