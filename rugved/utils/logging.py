"""Logging configuration and utilities."""

import sys
import logging
import logging.handlers
import structlog
from pathlib import Path
from datetime import datetime, timezone
import json
from typing import Optional, Union


# Record attributes that the JSON formatter already covers or never reports
_STANDARD_ATTRS = {
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
    "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "created", "msecs", "relativeCreated", "thread", "threadName",
    "processName", "process", "message", "taskName",
}


# Event keys whose values must never reach a log sink
_SECRET_KEYS = ("api_key", "apikey", "authorization", "token", "password")


def redact_secrets(logger, method_name, event_dict):
    """structlog processor masking credential-looking fields."""
    for key in event_dict:
        if any(secret in key.lower() for secret in _SECRET_KEYS):
            event_dict[key] = "***"
    return event_dict


def setup_logging(
    debug: bool = False,
    log_file: bool = False,
    log_level: str = "INFO",
    log_format: str = "json",
    log_dir: Optional[Union[str, Path]] = None,
    file_rotation_mb: int = 10,
    file_backup_count: int = 7,
    quiet: bool = False,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        debug: Enable debug logging (overrides log_level)
        log_file: Whether to log to file in addition to console
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Console log format (json, dev)
        log_dir: Directory for log files
        file_rotation_mb: File rotation size in MB
        file_backup_count: Number of backup files to keep
        quiet: Only let warnings and errors through to the console
    """
    if debug:
        log_level = "DEBUG"
    log_level = log_level.upper()

    base_processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    use_dev_renderer = log_format == "dev" or (
        sys.stderr.isatty() and log_format != "json"
    )
    if use_dev_renderer:
        console_processor = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    else:
        console_processor = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=base_processors + [console_processor],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Console output shares the terminal with the chat, so it goes to stderr
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel("WARNING" if quiet and not debug else log_level)
    console_handler.setFormatter(
        logging.Formatter("%(message)s") if use_dev_renderer else JsonFormatter()
    )
    root_logger.addHandler(console_handler)

    if log_file:
        log_dir = Path(log_dir or "./logs")
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        log_path = log_dir / f"rugved_{timestamp}.log"

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=file_rotation_mb * 1024 * 1024,
            backupCount=file_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        # Always use JSON formatter for file logs
        file_handler.setFormatter(JsonFormatter())
        root_logger.addHandler(file_handler)

        structlog.get_logger().info(
            "Logging configured",
            log_file=str(log_path),
            log_level=log_level,
            log_format=log_format,
        )

    root_logger.setLevel(log_level)


class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logs."""

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_dict["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        if self.include_extra:
            extra_attrs = {
                key: value
                for key, value in record.__dict__.items()
                if key not in _STANDARD_ATTRS
                and key not in log_dict
                and not key.startswith("_")
            }
            if extra_attrs:
                log_dict["attributes"] = extra_attrs

        return json.dumps(
            log_dict, ensure_ascii=False, separators=(",", ":"), default=str
        )
