"""JSON-lines logging shared by every stage.

Each line carries the fields listed in ``JSON_LOG_FIELDS`` (``None`` when a
call site did not set them) so run logs can be filtered with ``jq``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from precompile.common.constants import JSON_LOG_FIELDS
from precompile.common.fs import ensure_dir
from precompile.common.time_utils import utc_timestamp_iso


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": utc_timestamp_iso(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in JSON_LOG_FIELDS:
            payload.setdefault(field, getattr(record, field, None))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def build_logger(run_id: str, log_dir: Path | None = None, level: str = "INFO") -> logging.Logger:
    """Logger for one run: JSON lines to stderr and to ``<log_dir>/<run_id>.log.jsonl``."""
    logger = logging.getLogger(f"precompile.{run_id}")
    logger.setLevel(level.upper())
    _reset_handlers(logger)
    logger.propagate = False

    formatter = JsonLineFormatter()
    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    if log_dir is not None:
        ensure_dir(log_dir)
        file_handler = logging.FileHandler(log_dir / f"{run_id}.log.jsonl", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def log_event(logger: logging.Logger, message: str, *, level: int = logging.INFO, **event_fields: Any) -> None:
    logger.log(level, message, extra=event_fields)
