import logging
import sys
import json
from datetime import datetime
from typing import Dict, Any, Optional
from pathlib import Path
import re

from fbtoken.core.config import settings


class JsonFormatter(logging.Formatter):
    """
    Custom formatter that outputs log records as JSON objects.
    Tokens, passwords and keys never reach the log file in clear text.
    """
    SENSITIVE_FIELDS = ['token', 'password', 'secret', 'key']
    JWT_PATTERN = re.compile(r'eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*')
    MAX_STRING_LENGTH = 1000

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON object.
        """
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "message": self.sanitize_string(record.getMessage()),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }
        if record.exc_info and record.exc_info[0]:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": self.sanitize_string(str(record.exc_info[1])) if record.exc_info[1] else "",
                "traceback": self.formatException(record.exc_info)
            }

        # Add any additional attributes from the record
        for key, value in record.__dict__.items():
            if key in ["args", "asctime", "created", "exc_info", "exc_text",
                       "filename", "funcName", "id", "levelname", "levelno",
                       "lineno", "module", "msecs", "message", "msg",
                       "name", "pathname", "process", "processName",
                       "relativeCreated", "stack_info", "thread", "threadName",
                       "taskName", "extra"]:
                continue
            try:
                if self.is_sensitive_key(key):
                    value = self.redact(value)
                elif isinstance(value, dict):
                    value = self.sanitize_dict(value)
                elif isinstance(value, str):
                    value = self.sanitize_string(value)
                json.dumps({key: value})
                log_entry[key] = value
            except (TypeError, OverflowError):
                log_entry[key] = str(value)

        return json.dumps(log_entry)

    def is_sensitive_key(self, key: str) -> bool:
        return any(field in key.lower() for field in self.SENSITIVE_FIELDS)

    def redact(self, value: Any) -> str:
        if isinstance(value, str):
            return f"[REDACTED: {len(value)} chars]"
        return "[REDACTED]"

    def sanitize_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Sanitize a dictionary by redacting secrets and truncating long strings.
        """
        if not isinstance(data, dict):
            return data

        result = {}
        for key, value in data.items():
            if self.is_sensitive_key(str(key)):
                result[key] = self.redact(value)
            elif isinstance(value, dict):
                result[key] = self.sanitize_dict(value)
            elif isinstance(value, str):
                result[key] = self.sanitize_string(value)
            else:
                result[key] = value
        return result

    def sanitize_string(self, value: str) -> str:
        """
        Sanitize a string by removing JWTs and truncating if necessary.
        """
        if not isinstance(value, str):
            return value

        sanitized = self.JWT_PATTERN.sub("[JWT REDACTED]", value)

        if len(sanitized) > self.MAX_STRING_LENGTH:
            return sanitized[:self.MAX_STRING_LENGTH] + f"... [TRUNCATED, total length: {len(value)} chars]"

        return sanitized


class RedactingFormatter(logging.Formatter):
    """
    Plain-text console formatter that still hides JWTs.
    """
    def format(self, record: logging.LogRecord) -> str:
        return JsonFormatter.JWT_PATTERN.sub("[JWT REDACTED]", super().format(record))


def setup_logging() -> logging.Logger:
    """
    Set up application-wide logging configuration.
    Returns the configured logger instance.
    """
    log_level_name = getattr(settings, "LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)

    app_logger = logging.getLogger("fbtoken")
    app_logger.setLevel(log_level)
    app_logger.propagate = False

    if app_logger.handlers:
        app_logger.handlers.clear()

    # stderr keeps stdout clean for tokens piped out of the CLI
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)

    if getattr(settings, "LOG_FORMAT", "text") == "json":
        console_handler.setFormatter(JsonFormatter())
    else:
        console_handler.setFormatter(RedactingFormatter(
            "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
        ))
    app_logger.addHandler(console_handler)

    # File handler with JSON formatting for easier parsing
    if getattr(settings, "LOG_TO_FILE", False):
        log_dir = Path("logs")
        log_dir.mkdir(exist_ok=True)
        log_file = log_dir / f"{datetime.now().strftime('%Y-%m-%d')}.log"
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(JsonFormatter())
        app_logger.addHandler(file_handler)

    setup_module_loggers(log_level)

    return app_logger


def setup_module_loggers(default_level: int) -> None:
    """
    Quiet down third-party loggers that would otherwise print request URLs (and API keys).
    """
    module_levels = {
        "urllib3": max(default_level, logging.WARNING),
        "google.auth": max(default_level, logging.WARNING),
        "uvicorn.access": default_level,
    }

    for module, level in module_levels.items():
        logging.getLogger(module).setLevel(level)


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that adds context information to log records.
    """
    def __init__(self, logger, extra=None):
        super().__init__(logger, extra or {})

    def process(self, msg, kwargs):
        extra_dict = kwargs.get("extra", {})
        merged_extra = dict(self.extra) if self.extra is not None else {}
        for key, value in extra_dict.items():
            merged_extra[key] = value

        kwargs["extra"] = merged_extra
        return msg, kwargs

    def bind(self, **kwargs) -> "ContextLogger":
        """
        Create a new logger with additional context data.
        """
        new_extra = dict(self.extra) if self.extra is not None else {}
        for key, value in kwargs.items():
            new_extra[key] = value
        return ContextLogger(self.logger, new_extra)


base_logger = setup_logging()
logger = ContextLogger(base_logger)


def get_logger(name: Optional[str] = None, **context) -> ContextLogger:
    """
    Get a logger with additional context information.

    Args:
        name: Optional name for the logger
        **context: Additional context data to add to log records

    Returns:
        A logger instance with the specified context
    """
    if name:
        context["logger_name"] = name

    return logger.bind(**context)
