"""
Unified logging for the referrer map - one console handler, one rotating file.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

LOG_DIR = Path("logs")
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAX_LOG_SIZE_MB = 10
BACKUP_COUNT = 5

_loggers: Dict[str, logging.Logger] = {}
_file_handler_added = False


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured sync events."""
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        for key in ("event_type", "program_id", "counts", "failed"):
            if hasattr(record, key):
                log_data[key] = getattr(record, key)
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Get or create a logger."""
    if name in _loggers:
        return _loggers[name]
    logger = logging.getLogger(name)
    logger.setLevel(level)
    _loggers[name] = logger
    return logger


def setup_console_logging(level: int = logging.INFO) -> None:
    """Set up console logging."""
    root_logger = logging.getLogger()

    for handler in root_logger.handlers:
        if isinstance(handler, logging.StreamHandler) and getattr(handler, "stream", None) is sys.stdout:
            return

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    root_logger.addHandler(console_handler)
    if root_logger.level > level or root_logger.level == logging.NOTSET:
        root_logger.setLevel(level)


def setup_file_logging(
    filename: str = "referrer_map.log",
    level: int = logging.INFO,
    use_rotation: bool = True
) -> None:
    """Set up file logging once per process."""
    global _file_handler_added

    if _file_handler_added:
        return

    LOG_DIR.mkdir(exist_ok=True)
    log_path = LOG_DIR / Path(filename).name

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if use_rotation:
        file_handler = logging.handlers.RotatingFileHandler(
            str(log_path),
            maxBytes=MAX_LOG_SIZE_MB * 1024 * 1024,
            backupCount=BACKUP_COUNT,
            encoding='utf-8'
        )
    else:
        file_handler = logging.FileHandler(str(log_path), encoding='utf-8')

    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    root_logger.addHandler(file_handler)

    _file_handler_added = True


def setup_json_logging(filename: str = "sync_events.jsonl") -> logging.Logger:
    """Set up JSON logging for sync events."""
    json_logger = logging.getLogger("referrals.events")
    json_logger.setLevel(logging.INFO)
    json_logger.propagate = False

    for handler in json_logger.handlers:
        if isinstance(handler, logging.FileHandler):
            return json_logger

    LOG_DIR.mkdir(exist_ok=True)
    json_handler = logging.handlers.RotatingFileHandler(
        str(LOG_DIR / filename),
        maxBytes=MAX_LOG_SIZE_MB * 1024 * 1024,
        backupCount=BACKUP_COUNT,
        encoding='utf-8'
    )
    json_handler.setFormatter(JSONFormatter())
    json_logger.addHandler(json_handler)
    return json_logger


def log_sync_event(
    event_type: str,
    program_id: str,
    counts: Dict[str, int],
    failed: Optional[Dict[str, str]] = None,
    extra: Optional[Dict[str, Any]] = None
) -> None:
    """Log a structured sync event."""
    json_logger = setup_json_logging()
    level = logging.WARNING if failed else logging.INFO
    record = json_logger.makeRecord(
        name="referrals.events",
        level=level,
        fn="", lno=0,
        msg=f"{event_type}: program {program_id[:8]}... scans={counts}",
        args=(), exc_info=None
    )
    record.event_type = event_type
    record.program_id = program_id
    record.counts = counts
    record.failed = failed or {}
    if extra:
        for key, value in extra.items():
            setattr(record, key, value)
    json_logger.handle(record)
