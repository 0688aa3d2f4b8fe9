"""JSON-lines logging for the chat service.

Every category (``server``, ``llm``, ``access``) writes to its own
``<log_dir>/<category>.jsonl`` file, rotated on size and on day boundaries,
and mirrors its records to stderr at ``log_level``.
"""

import json
import logging
import os
import re
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any

from server.core.config import get_settings
from server.core.trace import get_trace_id

# Structured values passed through ``extra={"fields": {...}}``
FIELDS_ATTR = "fields"


def _secret_patterns() -> list[str]:
    raw = get_settings().mask_secrets_patterns
    return [p.strip().lower() for p in raw.split(",") if p.strip()]


_BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+")


def mask_secrets(fields: dict[str, Any]) -> dict[str, Any]:
    """Hide values whose key looks like a secret."""
    patterns = _secret_patterns()
    return {
        key: "***" if value and any(p in key.lower() for p in patterns) else value
        for key, value in fields.items()
    }


class JsonFormatter(logging.Formatter):
    """One JSON object per record, tagged with the current trace id."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "category": record.name,
            "message": _BEARER_RE.sub(r"\1***", record.getMessage()),
            "trace_id": get_trace_id() or None,
        }
        fields = getattr(record, FIELDS_ATTR, None)
        if isinstance(fields, dict):
            entry.update(mask_secrets(fields))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class SizeAndTimeRotatingFileHandler(TimedRotatingFileHandler):
    """Timed rotation that also rolls over once the file exceeds ``max_bytes``."""

    def __init__(self, filename: str | Path, *, max_bytes: int = 0, backup_count: int = 0) -> None:
        self.max_bytes = max_bytes
        super().__init__(
            str(filename),
            when="midnight",
            backupCount=backup_count,
            encoding="utf-8",
            delay=True,
        )

    def shouldRollover(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if self.max_bytes > 0 and os.path.exists(self.baseFilename):
            pending = len(f"{self.format(record)}\n".encode("utf-8"))
            if os.path.getsize(self.baseFilename) + pending >= self.max_bytes:
                return True
        return super().shouldRollover(record)


def _build_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    settings = get_settings()
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    formatter = JsonFormatter()

    file_handler = SizeAndTimeRotatingFileHandler(
        log_dir / f"{name}.jsonl",
        max_bytes=settings.log_rotate_mb * 1024 * 1024,
        backup_count=settings.log_retention_days,
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.setLevel(settings.log_level.upper())
    logger.addHandler(console)

    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


_LOGGERS: dict[str, logging.Logger] = {}


def get_logger(name: str) -> logging.Logger:
    """Return an existing logger or build it on first use."""
    if name not in _LOGGERS:
        _LOGGERS[name] = _build_logger(name)
    return _LOGGERS[name]
