"""
Centralized Logging Framework
Structured (JSON) or human-readable logging for the client registry.
"""
import sys
import json
import logging
import traceback
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from enum import Enum


ROOT_LOGGER_NAME = "client_registry"


class LogCategory(str, Enum):
    """Log categories for filtering and routing"""
    INDEX = "index"
    CONFLICT = "conflict"


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter for production"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        # Add extra fields
        if hasattr(record, "category"):
            log_data["category"] = record.category
        if hasattr(record, "collection"):
            log_data["collection"] = record.collection
        if hasattr(record, "extra_data"):
            log_data["data"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info)
            }

        return json.dumps(log_data, ensure_ascii=False, default=str)


class DevelopFormatter(logging.Formatter):
    """Human-readable formatter for development"""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m"
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset = self.COLORS["RESET"]

        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        base = f"{color}[{timestamp}] {record.levelname:8}{reset} {record.name}: {record.getMessage()}"

        context_parts = []
        if hasattr(record, "category"):
            context_parts.append(f"cat={record.category}")
        if hasattr(record, "collection"):
            context_parts.append(f"coll={record.collection}")

        if context_parts:
            base = f"{base} [{', '.join(context_parts)}]"

        if hasattr(record, "extra_data") and record.extra_data:
            base = f"{base}\n    {color}→{reset} {json.dumps(record.extra_data, ensure_ascii=False, default=str)}"

        if record.exc_info:
            exc_text = "".join(traceback.format_exception(*record.exc_info))
            base = f"{base}\n{color}{exc_text}{reset}"

        return base


def log_context(
    category: LogCategory,
    collection: Optional[str] = None,
    **extra_data: Any
) -> Dict[str, Any]:
    """Build the ``extra`` mapping understood by the formatters"""
    extra: Dict[str, Any] = {"category": category.value}
    if collection:
        extra["collection"] = collection
    if extra_data:
        extra["extra_data"] = extra_data
    return extra


def configure_logging(level: str = "INFO", json_format: bool = False) -> logging.Logger:
    """
    Install a single stdout handler on the package root logger.

    Calling it again replaces the handler, so it is safe to re-run after
    settings change.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers
    logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if json_format else DevelopFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    return logger
