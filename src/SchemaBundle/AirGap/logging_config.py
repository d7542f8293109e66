"""
Structured Logging Utilities

This module centralizes logging setup for the air-gapped bundle builder. It
emits plain ``LEVEL: message`` lines to the console and, when a log directory
is configured, JSON-lines records carrying the structured ``extra`` fields
(``stage``, ``index``, ``url``, ``schema_file``) that the pipeline attaches to
every event. A per-run correlation identifier links the records of one build.
"""

from __future__ import annotations

import gzip
import json
import logging
import sys
import uuid
from datetime import datetime, timedelta, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .settings import LoggingSettings

LOGGER_NAME = "SchemaBundle.AirGap"

_STRUCTURED_FIELDS = (
    "correlation_id",
    "stage",
    "index",
    "url",
    "schema_file",
    "attempt",
    "delay_ms",
    "status",
    "error",
)


def generate_correlation_id() -> str:
    """Create a short identifier that links the log records of a single build.

    Returns:
        Twelve character hexadecimal identifier.

    Examples:
        >>> len(generate_correlation_id())
        12
    """
    return uuid.uuid4().hex[:12]


class BuildLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that merges per-call ``extra`` fields with run context.

    The stock adapter replaces the caller's ``extra`` mapping; pipeline events
    need both the run's correlation id and their own ``stage``/``index`` fields.
    """

    def process(self, msg, kwargs):
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs


class JSONFormatter(logging.Formatter):
    """Formatter emitting JSON structured logs.

    Examples:
        >>> formatter = JSONFormatter()
        >>> isinstance(formatter.format(logging.makeLogRecord({'msg': 'test'})), str)
        True
    """

    def format(self, record: logging.LogRecord) -> str:
        """Serialize a logging record into a JSON line."""
        now = datetime.now(timezone.utc)
        log_obj = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in _STRUCTURED_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_obj[field] = value
        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, default=str)


def _compress_old_log(path: Path) -> None:
    compressed_path = path.with_suffix(path.suffix + ".gz")
    with path.open("rb") as source, gzip.open(compressed_path, "wb") as target:
        target.write(source.read())
    path.unlink(missing_ok=True)


def _cleanup_logs(log_dir: Path, retention_days: int) -> None:
    """Compress logs older than the retention window and drop stale archives."""
    now = datetime.now(timezone.utc)
    retention_delta = timedelta(days=retention_days)
    for file in log_dir.glob("*.jsonl"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > retention_delta:
            _compress_old_log(file)
    for file in log_dir.glob("*.jsonl.gz"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > 2 * retention_delta:
            file.unlink(missing_ok=True)


def setup_logging(config: LoggingSettings) -> logging.Logger:
    """Configure console and optional JSON file handlers for bundle builds.

    Handlers installed by a previous call are replaced, so repeated builds in
    one process do not duplicate output.

    Args:
        config: Logging configuration containing level, directory, and retention.

    Returns:
        Configured logger scoped to the bundle builder.

    Examples:
        >>> logger = setup_logging(LoggingSettings(level="INFO"))
        >>> logger.name
        'SchemaBundle.AirGap'
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(config.level_int())

    for handler in list(logger.handlers):
        if getattr(handler, "_airgap_managed", False):
            logger.removeHandler(handler)
            handler.close()

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    stream_handler._airgap_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    if config.log_dir is not None:
        log_dir = Path(config.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        _cleanup_logs(log_dir, config.retention_days)
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        file_handler = RotatingFileHandler(
            log_dir / f"airgap-{today}.jsonl",
            maxBytes=int(config.max_log_size_mb * 1024 * 1024),
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler._airgap_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.propagate = True
    return logger


__all__ = [
    "LOGGER_NAME",
    "BuildLoggerAdapter",
    "JSONFormatter",
    "setup_logging",
    "generate_correlation_id",
]
