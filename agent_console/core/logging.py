"""
Logging Configuration
JSON and text output with structured extra fields. Values of secret-bearing
fields (passwords, tokens, API keys, signatures) are masked before output.
"""

import logging
import sys
import json
from datetime import datetime
from typing import Any, Dict, Optional
from functools import lru_cache

SERVICE_NAME = "agent-console"

REDACTED = "***"
SENSITIVE_KEYS = ("password", "token", "secret", "api_key", "signature", "authorization", "cookie")


def redact(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Mask values whose key names a credential"""
    masked = {}
    for key, value in fields.items():
        if any(marker in key.lower() for marker in SENSITIVE_KEYS):
            masked[key] = REDACTED
        elif isinstance(value, dict):
            masked[key] = redact(value)
        else:
            masked[key] = value
    return masked


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with structured fields merged in"""

    def __init__(self, environment: Optional[str] = None):
        super().__init__()
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}"
        }
        if self.environment:
            log_entry["environment"] = self.environment

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            log_entry["fields"] = redact(extra_fields)

        return json.dumps(log_entry, default=str)


class TextFormatter(logging.Formatter):
    """Colored single-line output for local development"""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m"
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now().strftime("%H:%M:%S")
        line = f"{timestamp} {color}{record.levelname:<8}{self.RESET} {record.name} | {record.getMessage()}"

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            line += " " + " ".join(f"{key}={value}" for key, value in redact(extra_fields).items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = "INFO",
    format_type: str = "text",
    log_file: Optional[str] = None,
    environment: Optional[str] = None
) -> None:
    """
    Configure the root logger

    Args:
        level: Log level name
        format_type: "json" or "text"
        log_file: Optional path; file output is always JSON
        environment: Added to JSON records when given
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    if format_type.lower() == "json":
        console_handler.setFormatter(JSONFormatter(environment))
    else:
        console_handler.setFormatter(TextFormatter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter(environment))
        root_logger.addHandler(file_handler)

    # Request-level chatter from HTTP clients and the ORM
    for logger_name in ("httpx", "httpcore", "sqlalchemy.engine", "uvicorn.access"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)


class StructuredLogger:
    """Logger wrapper: keyword arguments become structured fields"""

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, message: str, fields: Dict[str, Any], exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        self._logger.log(
            level,
            message,
            exc_info=exc_info,
            extra={"extra_fields": fields} if fields else None,
            stacklevel=3
        )

    def debug(self, message: str, **fields) -> None:
        self._log(logging.DEBUG, message, fields)

    def info(self, message: str, **fields) -> None:
        self._log(logging.INFO, message, fields)

    def warning(self, message: str, **fields) -> None:
        self._log(logging.WARNING, message, fields)

    def error(self, message: str, exc_info: bool = False, **fields) -> None:
        self._log(logging.ERROR, message, fields, exc_info=exc_info)

    def critical(self, message: str, **fields) -> None:
        self._log(logging.CRITICAL, message, fields)

    def exception(self, message: str, **fields) -> None:
        self._log(logging.ERROR, message, fields, exc_info=True)


@lru_cache(maxsize=128)
def get_logger(name: str) -> StructuredLogger:
    """Cached structured logger for a module"""
    return StructuredLogger(name)
