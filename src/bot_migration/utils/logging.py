"""Logging configuration for Bot Bridge using structlog.

Console output is rendered through Rich for humans, the optional log file
receives one JSON object per line for machines.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any

import structlog
from rich.console import Console
from rich.logging import RichHandler
from structlog.typing import EventDict, WrappedLogger

from bot_migration import __version__

APP_NAME = "bot-bridge"

_ANSI_PATTERN = re.compile(r"\x1b\[[0-9;]*m")

# Field names whose values never reach the logs (case-insensitive substring match)
SENSITIVE_FIELDS = frozenset(
    {
        "token",
        "password",
        "secret",
        "api_key",
        "authorization",
        "credential",
        "access_token",
        "refresh_token",
        "client_secret",
    }
)


def add_app_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add application name and version to every log entry."""
    event_dict["app"] = APP_NAME
    event_dict["version"] = __version__
    return event_dict


class JSONFileFormatter(logging.Formatter):
    """Formatter that writes already-rendered structlog messages as JSON lines.

    ANSI escape codes are stripped from the event message.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        log_entry = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": _ANSI_PATTERN.sub("", record.getMessage()),
            "app": APP_NAME,
            "version": __version__,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def configure_logging(
    level: str = "WARNING",
    log_format: str = "json",
    log_file: str | None = None,
    file_level: str | None = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: File output format ('json' or 'console'). The console
            itself is always human-readable.
        log_file: Optional path to log file
        file_level: File log level (defaults to DEBUG)
    """
    console_level = getattr(logging, level.upper(), logging.WARNING)
    file_log_level = getattr(logging, (file_level or "DEBUG").upper(), logging.DEBUG)

    rich_handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,  # structlog already adds timestamps
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(console_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # handlers filter

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.addHandler(rich_handler)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_app_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(colors=False),  # RichHandler handles coloring
    ]

    # The bound logger must let DEBUG through when the file wants it
    effective_level = min(console_level, file_log_level) if log_file else console_level

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(effective_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(file_log_level)
        if log_format == "json":
            file_handler.setFormatter(JSONFileFormatter())
        else:
            file_handler.setFormatter(logging.Formatter("%(message)s"))

        root_logger.addHandler(file_handler)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Optional logger name (typically __name__)

    Returns:
        structlog.stdlib.BoundLogger: Configured logger instance
    """
    return structlog.get_logger(name)


def bind_import_context(import_id: str) -> None:
    """Attach ``import_id`` to every event logged by the current task.

    Bound through ``structlog.contextvars``; each asyncio task works on its
    own copy of the context, so concurrent imports do not mix ids.
    """
    structlog.contextvars.bind_contextvars(import_id=import_id)


def log_api_request(
    logger: structlog.stdlib.BoundLogger,
    method: str,
    url: str,
    status_code: int,
    duration_ms: float,
) -> None:
    """Log a completed API call; error statuses are logged as warnings."""
    log = logger.warning if status_code >= 400 else logger.info
    log(
        "api_request_failed" if status_code >= 400 else "api_request_success",
        method=method,
        url=url,
        status_code=status_code,
        duration_ms=round(duration_ms, 2),
    )


def log_orphaned_resources(
    logger: structlog.stdlib.BoundLogger,
    bundle: str,
    orphans: list[str],
) -> None:
    """Log resources no imported bot depends on.

    Nothing is rolled back after a failure, so operators need the list of
    created-but-unreferenced resources to clean up by hand.

    Args:
        logger: Logger instance
        bundle: Name of the extracted bundle
        orphans: Canonical references created but not reached by any created bot
    """
    if not orphans:
        return
    logger.warning(
        "orphaned_resources",
        bundle=bundle,
        count=len(orphans),
        references=orphans,
    )


def log_error(
    logger: structlog.stdlib.BoundLogger,
    error: Exception,
    context: str,
    **extra: Any,
) -> None:
    """Log an unexpected error with its traceback.

    Args:
        logger: Logger instance
        error: Exception that occurred
        context: Operation during which it occurred
        **extra: Additional context to log
    """
    logger.error(
        "error_occurred",
        error_type=type(error).__name__,
        error_message=str(error),
        context=context,
        **extra,
        exc_info=True,
    )


def sanitize_payload(payload: Any, max_depth: int = 10) -> Any:
    """Copy of ``payload`` with the values of sensitive keys redacted."""
    if max_depth <= 0:
        return "[MAX_DEPTH_EXCEEDED]"
    if isinstance(payload, dict):
        return {
            key: "[REDACTED]"
            if any(field in str(key).lower() for field in SENSITIVE_FIELDS)
            else sanitize_payload(value, max_depth - 1)
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [sanitize_payload(item, max_depth - 1) for item in payload]
    return payload


def truncate_payload(payload: Any, max_size: int = 10000) -> str:
    """Serialize ``payload`` for logging, cut to ``max_size`` characters."""
    try:
        text = json.dumps(payload, default=str)
    except (TypeError, ValueError):
        text = str(payload)
    if len(text) <= max_size:
        return text
    return f"{text[:max_size]}... [TRUNCATED - {len(text)} total chars]"


def should_log_payloads(log_payloads_enabled: bool) -> bool:
    """Payloads are logged only when enabled and some handler takes DEBUG records."""
    if not log_payloads_enabled:
        return False
    return any(handler.level <= logging.DEBUG for handler in logging.getLogger().handlers)
